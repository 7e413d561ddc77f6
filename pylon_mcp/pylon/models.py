"""
Input models for the Pylon issue search API.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

FilterOperator = Literal[
    "equals",
    "in",
    "not_in",
    "contains",
    "does_not_contain",
    "is_set",
    "is_unset",
    "time_is_after",
    "time_is_before",
    "time_range",
    "string_contains",
    "string_does_not_contain",
]


class FilterCondition(BaseModel):
    """
    One field condition in a search filter.

    Supported operators depend on the field:
    - state: equals, in, not_in
    - tags: contains, does_not_contain, in, not_in
    - created_at: time_is_after, time_is_before, time_range
    - requester_id, account_id, assignee_id, team_id: equals, in, not_in, is_set, is_unset
    """

    operator: FilterOperator
    value: str | list[str] | None = None
    start: str | None = None  # time_range only
    end: str | None = None


class IssueSearchFilter(BaseModel):
    """
    Structured filter for /issues/search.

    Custom fields are accepted as extra keys named by their slug.
    """

    model_config = ConfigDict(extra="allow")

    state: FilterCondition | None = None
    tags: FilterCondition | None = None
    requester_id: FilterCondition | None = None
    account_id: FilterCondition | None = None
    assignee_id: FilterCondition | None = None
    team_id: FilterCondition | None = None
    created_at: FilterCondition | None = None
    title: FilterCondition | None = None
    body_html: FilterCondition | None = None
    ticket_form_id: FilterCondition | None = None
    issue_type: FilterCondition | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
