"""
Pylon customer-support API client.

API Documentation: https://docs.usepylon.com/pylon-docs/developer/api
Every endpoint names its OperationKind explicitly: READ calls are cached and
retried, QUERY/UPDATE/DELETE calls are retried but never cached, CREATE calls
are sent exactly once.
"""

import asyncio
from typing import Any

from loguru import logger

from pylon_mcp.pylon.models import IssueSearchFilter
from pylon_mcp.pylon.status import resolve_status
from pylon_mcp.services.client import (
    OperationKind,
    RequestDescriptor,
    ServiceClient,
)
from pylon_mcp.services.retry import RetryPolicy
from pylon_mcp.settings import Settings, global_settings

READ = OperationKind.READ
QUERY = OperationKind.QUERY
UPDATE = OperationKind.UPDATE
CREATE = OperationKind.CREATE


def unwrap_data(payload: Any) -> Any:
    """Return ``payload["data"]`` for wrapped responses, else the payload."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def unwrap_list(payload: Any) -> list[Any]:
    """Accept a bare list or ``{"data": [...]}``; anything else is empty."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    return []


def _exclude_source(issues: list[dict[str, Any]], issue_id: str) -> list[dict[str, Any]]:
    """Drop the source issue, matching on id or issue number."""
    return [
        issue
        for issue in issues
        if issue.get("id") != issue_id
        and (issue.get("number") is None or str(issue["number"]) != str(issue_id))
    ]


class PylonClient:
    """
    Pylon API client.

    Usage:
        async with PylonClient(api_token="...") as pylon:
            me = await pylon.get_me()
            issues = await pylon.search_issues(
                IssueSearchFilter(state={"operator": "equals", "value": "on_hold"})
            )
    """

    BASE_URL = "https://api.usepylon.com"
    SERVICE_ID = "pylon"
    SERVICE_NAME = "Pylon API"

    def __init__(
        self,
        api_token: str,
        base_url: str | None = None,
        cache_ttl_ms: int = 30000,
        max_cache_size: int = 1000,
        max_retries: int = 3,
        retry_base_delay_ms: int = 1000,
        debug: bool = False,
        client: ServiceClient | None = None,
    ):
        self.client = client or ServiceClient(
            service_id=self.SERVICE_ID,
            service_name=self.SERVICE_NAME,
            base_url=base_url or self.BASE_URL,
            headers={
                "Authorization": f"Bearer {api_token}",
                "Accept": "application/json",
            },
            cache_ttl_ms=cache_ttl_ms,
            cache_max_size=max_cache_size,
            retry_policy=RetryPolicy(
                max_retries=max(max_retries, 0),
                base_delay_ms=retry_base_delay_ms,
            ),
            debug=debug,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PylonClient":
        return cls(
            api_token=settings.pylon_api_token,
            base_url=settings.pylon_base_url,
            cache_ttl_ms=settings.cache_ttl_ms,
            max_cache_size=settings.max_cache_size,
            max_retries=settings.max_retries,
            retry_base_delay_ms=settings.retry_base_delay_ms,
            debug=settings.debug,
        )

    async def _call(
        self,
        method: str,
        path: str,
        operation: OperationKind,
        **kwargs: Any,
    ) -> Any:
        return await self.client.request(
            RequestDescriptor(method=method, path=path, operation=operation, **kwargs)
        )

    # Users

    async def get_me(self) -> dict[str, Any]:
        """Current user; /me wraps its payload in ``data``."""
        return unwrap_data(await self._call("GET", "/me", READ))

    async def get_users(self) -> list[dict[str, Any]]:
        return unwrap_list(await self._call("GET", "/users", READ))

    async def search_users(self, query: str) -> list[dict[str, Any]]:
        payload = await self._call(
            "POST", "/users/search", QUERY, json_data={"query": query}
        )
        return unwrap_list(payload)

    # Contacts

    async def get_contacts(
        self,
        search: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        payload = await self._call(
            "GET", "/contacts", READ, params={"search": search, "limit": limit}
        )
        return unwrap_list(payload)

    async def create_contact(
        self,
        name: str,
        email: str,
        portal_role: str | None = None,
    ) -> dict[str, Any]:
        contact = {"name": name, "email": email}
        if portal_role:
            contact["portal_role"] = portal_role
        return unwrap_data(
            await self._call("POST", "/contacts", CREATE, json_data=contact)
        )

    async def search_contacts(self, query: str) -> list[dict[str, Any]]:
        payload = await self._call(
            "POST", "/contacts/search", QUERY, json_data={"query": query}
        )
        return unwrap_list(payload)

    # Issues

    async def get_issues(
        self,
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Issues created within a time range (RFC3339, at most 30 days apart).

        Use search_issues() to filter by state, tags or other fields.
        """
        payload = await self._call(
            "GET",
            "/issues",
            READ,
            params={"start_time": start_time, "end_time": end_time},
        )
        return unwrap_list(payload)

    async def get_issue(self, issue_id: str) -> dict[str, Any]:
        return unwrap_data(await self._call("GET", f"/issues/{issue_id}", READ))

    async def create_issue(self, issue: dict[str, Any]) -> dict[str, Any]:
        return unwrap_data(
            await self._call("POST", "/issues", CREATE, json_data=issue)
        )

    async def update_issue(
        self,
        issue_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any]:
        return unwrap_data(
            await self._call("PATCH", f"/issues/{issue_id}", UPDATE, json_data=updates)
        )

    async def snooze_issue(self, issue_id: str, until: str) -> None:
        """Snooze until an RFC3339 timestamp; re-sending sets the same deadline."""
        await self._call(
            "POST", f"/issues/{issue_id}/snooze", UPDATE, json_data={"until": until}
        )

    async def search_issues(
        self,
        search_filter: IssueSearchFilter | dict[str, Any] | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Search issues with Pylon's structured filter format.

        Example:
            await pylon.search_issues({
                "state": {"operator": "equals", "value": "on_hold"},
                "tags": {"operator": "contains", "value": "waiting on eng"},
            })
        """
        body: dict[str, Any] = {}
        if isinstance(search_filter, IssueSearchFilter):
            search_filter = search_filter.to_payload()
        if search_filter:
            body["filter"] = search_filter
        if limit:
            body["limit"] = limit
        if cursor:
            body["cursor"] = cursor

        payload = await self._call("POST", "/issues/search", QUERY, json_data=body)
        return unwrap_list(payload)

    async def search_issues_by_status(
        self,
        status: str,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Search by a built-in state or a custom status display name."""
        resolved = resolve_status(status)
        issues = await self.search_issues(resolved.to_filter(), limit=limit)
        return {
            "status_resolved": resolved.to_dict(),
            "issue_count": len(issues),
            "issues": issues,
        }

    async def get_issue_messages(self, issue_id: str) -> list[dict[str, Any]]:
        payload = await self._call("GET", f"/issues/{issue_id}/messages", READ)
        return unwrap_list(payload)

    async def get_issue_with_messages(self, issue_id: str) -> dict[str, Any]:
        issue, messages = await asyncio.gather(
            self.get_issue(issue_id),
            self.get_issue_messages(issue_id),
        )
        return {"issue": issue, "messages": messages}

    # Similar issues

    async def _find_similar(
        self,
        issue_id: str,
        source_issue: dict[str, Any],
        search_filter: dict[str, Any],
        query: str | None,
        limit: int | None,
    ) -> dict[str, Any]:
        if query:
            search_filter["title"] = {"operator": "string_contains", "value": query}

        results = await self.search_issues(search_filter, limit=limit)
        return {
            "source_issue": source_issue,
            "similar_issues": _exclude_source(results, issue_id),
        }

    async def find_similar_issues_for_requestor(
        self,
        issue_id: str,
        query: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Other issues raised by the same contact."""
        source_issue = await self.get_issue(issue_id)
        requester = source_issue.get("requester") or {}
        requestor_id = (
            source_issue.get("requestor_id")
            or source_issue.get("requester_id")
            or requester.get("id")
        )
        if not requestor_id:
            logger.debug(f"Issue {issue_id} has no requester, skipping search")
            return {"source_issue": source_issue, "similar_issues": []}

        return await self._find_similar(
            issue_id,
            source_issue,
            {"requester_id": {"operator": "equals", "value": requestor_id}},
            query,
            limit,
        )

    async def find_similar_issues_for_account(
        self,
        issue_id: str,
        query: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Other issues from the same account/company."""
        source_issue = await self.get_issue(issue_id)
        account = source_issue.get("account") or {}
        account_id = source_issue.get("account_id") or account.get("id")
        if not account_id:
            logger.debug(f"Issue {issue_id} has no account, skipping search")
            return {"source_issue": source_issue, "similar_issues": []}

        return await self._find_similar(
            issue_id,
            source_issue,
            {"account_id": {"operator": "equals", "value": account_id}},
            query,
            limit,
        )

    async def find_similar_issues_global(
        self,
        issue_id: str,
        query: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Issues across all customers whose title matches the query or source title."""
        source_issue = await self.get_issue(issue_id)
        search_text = (query or source_issue.get("title") or "").strip()
        if not search_text:
            # An empty filter would match every issue in the workspace
            logger.debug(f"Issue {issue_id} has no title and no query, skipping search")
            return {"source_issue": source_issue, "similar_issues": []}

        return await self._find_similar(
            issue_id,
            source_issue,
            {},
            search_text,
            limit,
        )

    # Knowledge bases

    async def get_knowledge_bases(self) -> list[dict[str, Any]]:
        return unwrap_list(await self._call("GET", "/knowledge-bases", READ))

    async def create_knowledge_base_article(
        self,
        knowledge_base_id: str,
        article: dict[str, Any],
    ) -> dict[str, Any]:
        """Requests take ``body_html``/``author_user_id``; responses differ."""
        return unwrap_data(
            await self._call(
                "POST",
                f"/knowledge-bases/{knowledge_base_id}/articles",
                CREATE,
                json_data=article,
            )
        )

    # Teams

    async def get_teams(self) -> list[dict[str, Any]]:
        return unwrap_list(await self._call("GET", "/teams", READ))

    async def get_team(self, team_id: str) -> dict[str, Any]:
        return unwrap_data(await self._call("GET", f"/teams/{team_id}", READ))

    async def create_team(self, team: dict[str, Any]) -> dict[str, Any]:
        return unwrap_data(
            await self._call("POST", "/teams", CREATE, json_data=team)
        )

    # Accounts

    async def get_accounts(self) -> list[dict[str, Any]]:
        return unwrap_list(await self._call("GET", "/accounts", READ))

    async def get_account(self, account_id: str) -> dict[str, Any]:
        return unwrap_data(
            await self._call("GET", f"/accounts/{account_id}", READ)
        )

    # Tags and ticket forms

    async def get_tags(self) -> list[dict[str, Any]]:
        return unwrap_list(await self._call("GET", "/tags", READ))

    async def create_tag(self, name: str, color: str | None = None) -> dict[str, Any]:
        tag = {"name": name}
        if color:
            tag["color"] = color
        return unwrap_data(await self._call("POST", "/tags", CREATE, json_data=tag))

    async def get_ticket_forms(self) -> list[dict[str, Any]]:
        return unwrap_list(await self._call("GET", "/ticket-forms", READ))

    # Attachments

    async def get_attachment(self, attachment_id: str) -> dict[str, Any]:
        return unwrap_data(
            await self._call("GET", f"/attachments/{attachment_id}", READ)
        )

    async def create_attachment_from_url(
        self,
        file_url: str,
        description: str | None = None,
    ) -> dict[str, Any]:
        payload = {"file_url": file_url}
        if description:
            payload["description"] = description
        return unwrap_data(
            await self._call("POST", "/attachments", CREATE, json_data=payload)
        )

    async def create_attachment(
        self,
        filename: str,
        content: bytes,
        description: str | None = None,
        content_type: str = "application/octet-stream",
    ) -> dict[str, Any]:
        """Upload raw file content as a multipart attachment."""
        return unwrap_data(
            await self._call(
                "POST",
                "/attachments",
                CREATE,
                files={"file": (filename, content, content_type)},
                data={"description": description} if description else None,
            )
        )

    # Lifecycle

    def clear_cache(self) -> None:
        self.client.clear_cache()

    def get_cache_stats(self) -> dict[str, Any] | None:
        return self.client.cache_stats()

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "PylonClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


# Global client instance
_global_client: PylonClient | None = None


def get_pylon_client() -> PylonClient:
    """Get the global Pylon client, built from environment settings."""
    global _global_client
    if _global_client is None:
        if not global_settings.pylon_api_token:
            raise RuntimeError("PYLON_API_TOKEN environment variable is required")
        _global_client = PylonClient.from_settings(global_settings)
        logger.info(
            f"Pylon client created (cache: {_global_client.get_cache_stats()}, "
            f"retries: {global_settings.max_retries})"
        )
    return _global_client


async def close_pylon_client() -> None:
    """Close the global Pylon client."""
    global _global_client
    if _global_client:
        await _global_client.close()
        _global_client = None
