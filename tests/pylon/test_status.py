"""Tests for status name resolution."""

from __future__ import annotations

import pytest

from pylon_mcp.pylon.status import resolve_status


@pytest.mark.parametrize(
    "status, state",
    [
        ("new", "new"),
        ("on_hold", "on_hold"),
        ("On Hold", "on_hold"),
        ("WAITING_ON_CUSTOMER", "waiting_on_customer"),
        ("  closed ", "closed"),
    ],
)
def test_builtin_states(status: str, state: str) -> None:
    resolved = resolve_status(status)

    assert resolved.state == state
    assert not resolved.is_custom
    assert resolved.to_filter() == {"state": {"operator": "equals", "value": state}}


@pytest.mark.parametrize(
    "status",
    ["Waiting on Eng", "waiting on eng", "WAITING ON ENG", "Waiting on Eng Input"],
)
def test_waiting_on_eng_variants(status: str) -> None:
    resolved = resolve_status(status)

    assert resolved.state == "on_hold"
    assert resolved.tag == "waiting on eng"
    assert resolved.to_dict() == {
        "state": "on_hold",
        "tag": "waiting on eng",
        "isCustom": True,
    }


def test_unknown_status_becomes_tag() -> None:
    resolved = resolve_status("Pending  Legal Review")

    assert resolved.to_filter() == {
        "state": {"operator": "equals", "value": "on_hold"},
        "tags": {"operator": "contains", "value": "pending legal review"},
    }


@pytest.mark.parametrize("status", ["", "   "])
def test_empty_status_rejected(status: str) -> None:
    with pytest.raises(ValueError):
        resolve_status(status)
