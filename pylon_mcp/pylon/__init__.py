"""
Pylon API endpoints built on the resilient service layer.
"""

from pylon_mcp.pylon.client import (
    PylonClient,
    close_pylon_client,
    get_pylon_client,
)
from pylon_mcp.pylon.models import FilterCondition, IssueSearchFilter
from pylon_mcp.pylon.status import ResolvedStatus, resolve_status

__all__ = [
    "PylonClient",
    "get_pylon_client",
    "close_pylon_client",
    "FilterCondition",
    "IssueSearchFilter",
    "ResolvedStatus",
    "resolve_status",
]
