"""
Resolve human status names to Pylon issue search filters.

Built-in states filter on ``state``. Custom statuses are modelled in Pylon
as ``on_hold`` issues carrying a tag, so they filter on both.
"""

from dataclasses import dataclass
from typing import Any

BUILTIN_STATES = (
    "new",
    "waiting_on_you",
    "waiting_on_customer",
    "on_hold",
    "closed",
)

CUSTOM_STATUS_STATE = "on_hold"

# lower-cased display name -> tag
CUSTOM_STATUS_TAGS = {
    "waiting on eng": "waiting on eng",
    "waiting on eng input": "waiting on eng",
}


@dataclass(frozen=True)
class ResolvedStatus:
    state: str
    tag: str | None = None

    @property
    def is_custom(self) -> bool:
        return self.tag is not None

    def to_filter(self) -> dict[str, Any]:
        search_filter: dict[str, Any] = {
            "state": {"operator": "equals", "value": self.state},
        }
        if self.tag:
            search_filter["tags"] = {"operator": "contains", "value": self.tag}
        return search_filter

    def to_dict(self) -> dict[str, Any]:
        resolved: dict[str, Any] = {"state": self.state}
        if self.tag:
            resolved["tag"] = self.tag
        resolved["isCustom"] = self.is_custom
        return resolved


def resolve_status(status: str) -> ResolvedStatus:
    """Case-insensitive; unknown names are treated as custom status tags."""
    normalized = " ".join(status.strip().lower().split())
    if not normalized:
        raise ValueError("status must not be empty")

    snake = normalized.replace(" ", "_")
    if snake in BUILTIN_STATES:
        return ResolvedStatus(state=snake)

    tag = CUSTOM_STATUS_TAGS.get(normalized, normalized)
    return ResolvedStatus(state=CUSTOM_STATUS_STATE, tag=tag)
