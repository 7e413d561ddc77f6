"""
Pylon MCP tool server.

Each tool is a thin wrapper around one PylonClient method: arguments are
validated from the type hints, forwarded, and the JSON result returned.
Errors propagate to FastMCP, which reports them as tool errors.

Naming:
- pylon_get_* / pylon_search_* / pylon_find_* are read-only
- pylon_create_* / pylon_update_* / pylon_snooze_* change remote state
"""

from typing import Annotated, Any

from fastmcp import FastMCP
from loguru import logger
from pydantic import Field

from pylon_mcp.pylon.client import get_pylon_client
from pylon_mcp.pylon.models import IssueSearchFilter

IssueId = Annotated[str, Field(description="The issue ID or issue number")]
Limit = Annotated[
    int | None,
    Field(ge=1, le=1000, description="Maximum number of results"),
]


def _drop_none(**fields: Any) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


def _log_request(tool_name: str, **params: Any) -> None:
    param_str = ", ".join(f"{k}={v!r}" for k, v in params.items() if v is not None)
    logger.info(f"{tool_name} called with: {param_str}")


# Users


async def pylon_get_me() -> dict[str, Any]:
    """Get the authenticated Pylon user (name, email, role). Use this to verify access."""
    _log_request("pylon_get_me")
    return await get_pylon_client().get_me()


async def pylon_get_users() -> list[dict[str, Any]]:
    """List all team members/agents in the Pylon workspace."""
    _log_request("pylon_get_users")
    return await get_pylon_client().get_users()


async def pylon_search_users(
    query: Annotated[str, Field(description="Name or email to search for")],
) -> list[dict[str, Any]]:
    """Search Pylon team members by name or email."""
    _log_request("pylon_search_users", query=query)
    return await get_pylon_client().search_users(query)


# Contacts


async def pylon_get_contacts(
    search: Annotated[
        str | None,
        Field(description="Filter by name, email or company"),
    ] = None,
    limit: Limit = None,
) -> list[dict[str, Any]]:
    """Get customer contacts, optionally filtered by a search string."""
    _log_request("pylon_get_contacts", search=search, limit=limit)
    return await get_pylon_client().get_contacts(search=search, limit=limit)


async def pylon_create_contact(
    name: Annotated[str, Field(description="Full name of the contact")],
    email: Annotated[str, Field(description="Contact email address")],
    portal_role: Annotated[
        str | None,
        Field(description="Customer portal role, e.g. 'member'"),
    ] = None,
) -> dict[str, Any]:
    """Create a new customer contact. This creates a record in Pylon; use carefully."""
    _log_request("pylon_create_contact", name=name, email=email)
    return await get_pylon_client().create_contact(name, email, portal_role)


async def pylon_search_contacts(
    query: Annotated[str, Field(description="Name, email or company to search for")],
) -> list[dict[str, Any]]:
    """Search customer contacts."""
    _log_request("pylon_search_contacts", query=query)
    return await get_pylon_client().search_contacts(query)


# Issues


async def pylon_get_issues(
    start_time: Annotated[
        str | None,
        Field(description="RFC3339 start of the time range"),
    ] = None,
    end_time: Annotated[
        str | None,
        Field(description="RFC3339 end of the time range (max 30 days)"),
    ] = None,
) -> list[dict[str, Any]]:
    """Get issues created within a time range. Use pylon_search_issues to filter by state or tags."""
    _log_request("pylon_get_issues", start_time=start_time, end_time=end_time)
    return await get_pylon_client().get_issues(start_time, end_time)


async def pylon_get_issue(issue_id: IssueId) -> dict[str, Any]:
    """Get one issue with its full details."""
    _log_request("pylon_get_issue", issue_id=issue_id)
    return await get_pylon_client().get_issue(issue_id)


async def pylon_create_issue(
    title: Annotated[str, Field(description="Short summary of the issue")],
    body_html: Annotated[str, Field(description="HTML body of the issue")],
    requester_email: str | None = None,
    requester_name: str | None = None,
    account_id: str | None = None,
    assignee_id: str | None = None,
    priority: Annotated[
        str | None,
        Field(description="urgent, high, medium or low"),
    ] = None,
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Create a new support issue. The request is sent once and never retried."""
    _log_request("pylon_create_issue", title=title, requester_email=requester_email)
    issue = _drop_none(
        title=title,
        body_html=body_html,
        requester_email=requester_email,
        requester_name=requester_name,
        account_id=account_id,
        assignee_id=assignee_id,
        priority=priority,
        tags=tags,
    )
    return await get_pylon_client().create_issue(issue)


async def pylon_update_issue(
    issue_id: IssueId,
    state: Annotated[
        str | None,
        Field(description="new, waiting_on_you, waiting_on_customer, on_hold, closed or a custom slug"),
    ] = None,
    assignee_id: str | None = None,
    team_id: str | None = None,
    priority: str | None = None,
    tags: Annotated[
        list[str] | None,
        Field(description="Replaces the issue's tags"),
    ] = None,
) -> dict[str, Any]:
    """Update an issue's state, assignee, team, priority or tags."""
    updates = _drop_none(
        state=state,
        assignee_id=assignee_id,
        team_id=team_id,
        priority=priority,
        tags=tags,
    )
    _log_request("pylon_update_issue", issue_id=issue_id, **updates)
    if not updates:
        raise ValueError("At least one field to update is required")
    return await get_pylon_client().update_issue(issue_id, updates)


async def pylon_snooze_issue(
    issue_id: IssueId,
    until: Annotated[str, Field(description="RFC3339 timestamp to snooze until")],
) -> dict[str, Any]:
    """Snooze an issue until the given time."""
    _log_request("pylon_snooze_issue", issue_id=issue_id, until=until)
    await get_pylon_client().snooze_issue(issue_id, until)
    return {
        "success": True,
        "message": "Issue snoozed successfully",
        "issue_id": issue_id,
        "snoozed_until": until,
    }


async def pylon_search_issues(
    filter: Annotated[
        IssueSearchFilter | None,
        Field(
            description=(
                "Structured filter keyed by field (state, tags, requester_id, "
                "account_id, assignee_id, team_id, created_at, title, body_html, "
                "ticket_form_id, issue_type or a custom field slug), each value "
                "{operator, value}"
            ),
        ),
    ] = None,
    limit: Limit = None,
    cursor: Annotated[
        str | None,
        Field(description="Pagination cursor from a previous search"),
    ] = None,
) -> list[dict[str, Any]]:
    """Search issues with Pylon's structured filter format."""
    _log_request("pylon_search_issues", filter=filter, limit=limit, cursor=cursor)
    return await get_pylon_client().search_issues(filter, limit=limit, cursor=cursor)


async def pylon_search_issues_by_status(
    status: Annotated[
        str,
        Field(description="Built-in state (e.g. 'on_hold') or custom status name (e.g. 'Waiting on Eng')"),
    ],
    limit: Limit = None,
) -> dict[str, Any]:
    """Find issues by status name, resolving custom statuses to their state and tag."""
    _log_request("pylon_search_issues_by_status", status=status, limit=limit)
    return await get_pylon_client().search_issues_by_status(status, limit=limit)


async def pylon_get_issue_messages(issue_id: IssueId) -> list[dict[str, Any]]:
    """Get the conversation messages of an issue."""
    _log_request("pylon_get_issue_messages", issue_id=issue_id)
    return await get_pylon_client().get_issue_messages(issue_id)


async def pylon_get_issue_with_messages(issue_id: IssueId) -> dict[str, Any]:
    """Get an issue together with all of its messages."""
    _log_request("pylon_get_issue_with_messages", issue_id=issue_id)
    return await get_pylon_client().get_issue_with_messages(issue_id)


async def pylon_find_similar_issues_for_requestor(
    issue_id: IssueId,
    query: Annotated[
        str | None,
        Field(description="Optional title text to narrow the search"),
    ] = None,
    limit: Limit = None,
) -> dict[str, Any]:
    """Find other issues raised by the same customer contact."""
    _log_request("pylon_find_similar_issues_for_requestor", issue_id=issue_id, query=query)
    return await get_pylon_client().find_similar_issues_for_requestor(
        issue_id, query=query, limit=limit
    )


async def pylon_find_similar_issues_for_account(
    issue_id: IssueId,
    query: Annotated[
        str | None,
        Field(description="Optional title text to narrow the search"),
    ] = None,
    limit: Limit = None,
) -> dict[str, Any]:
    """Find other issues from the same customer account."""
    _log_request("pylon_find_similar_issues_for_account", issue_id=issue_id, query=query)
    return await get_pylon_client().find_similar_issues_for_account(
        issue_id, query=query, limit=limit
    )


async def pylon_find_similar_issues_global(
    issue_id: IssueId,
    query: Annotated[
        str | None,
        Field(description="Title text to match; defaults to the source issue title"),
    ] = None,
    limit: Limit = None,
) -> dict[str, Any]:
    """Find issues across all customers with a similar title."""
    _log_request("pylon_find_similar_issues_global", issue_id=issue_id, query=query)
    return await get_pylon_client().find_similar_issues_global(
        issue_id, query=query, limit=limit
    )


# Knowledge bases


async def pylon_get_knowledge_bases() -> list[dict[str, Any]]:
    """List the knowledge bases in the workspace."""
    _log_request("pylon_get_knowledge_bases")
    return await get_pylon_client().get_knowledge_bases()


async def pylon_create_knowledge_base_article(
    knowledge_base_id: Annotated[str, Field(description="Target knowledge base ID")],
    title: Annotated[str, Field(description="Article title")],
    body_html: Annotated[str, Field(description="Article content as HTML")],
    author_user_id: Annotated[str, Field(description="ID of the authoring user")],
    collection_id: str | None = None,
    is_published: bool | None = None,
    is_unlisted: bool | None = None,
    slug: str | None = None,
) -> dict[str, Any]:
    """Create a knowledge base article."""
    _log_request(
        "pylon_create_knowledge_base_article",
        knowledge_base_id=knowledge_base_id,
        title=title,
    )
    article = _drop_none(
        title=title,
        body_html=body_html,
        author_user_id=author_user_id,
        collection_id=collection_id,
        is_published=is_published,
        is_unlisted=is_unlisted,
        slug=slug,
    )
    return await get_pylon_client().create_knowledge_base_article(
        knowledge_base_id, article
    )


# Teams and accounts


async def pylon_get_teams() -> list[dict[str, Any]]:
    """List support teams."""
    _log_request("pylon_get_teams")
    return await get_pylon_client().get_teams()


async def pylon_get_team(
    team_id: Annotated[str, Field(description="Team ID")],
) -> dict[str, Any]:
    """Get one team and its members."""
    _log_request("pylon_get_team", team_id=team_id)
    return await get_pylon_client().get_team(team_id)


async def pylon_create_team(
    name: Annotated[str, Field(description="Team name")],
    description: str | None = None,
) -> dict[str, Any]:
    """Create a support team."""
    _log_request("pylon_create_team", name=name)
    return await get_pylon_client().create_team(
        _drop_none(name=name, description=description)
    )


async def pylon_get_accounts() -> list[dict[str, Any]]:
    """List customer accounts (companies)."""
    _log_request("pylon_get_accounts")
    return await get_pylon_client().get_accounts()


async def pylon_get_account(
    account_id: Annotated[str, Field(description="Account ID")],
) -> dict[str, Any]:
    """Get one customer account."""
    _log_request("pylon_get_account", account_id=account_id)
    return await get_pylon_client().get_account(account_id)


# Tags, forms and attachments


async def pylon_get_tags() -> list[dict[str, Any]]:
    """List issue tags."""
    _log_request("pylon_get_tags")
    return await get_pylon_client().get_tags()


async def pylon_create_tag(
    name: Annotated[str, Field(description="Tag name")],
    color: Annotated[
        str | None,
        Field(description="Hex color, e.g. '#ff0000'"),
    ] = None,
) -> dict[str, Any]:
    """Create an issue tag."""
    _log_request("pylon_create_tag", name=name, color=color)
    return await get_pylon_client().create_tag(name, color)


async def pylon_get_ticket_forms() -> list[dict[str, Any]]:
    """List ticket forms used to collect issue details."""
    _log_request("pylon_get_ticket_forms")
    return await get_pylon_client().get_ticket_forms()


async def pylon_get_attachment(
    attachment_id: Annotated[str, Field(description="Attachment ID")],
) -> dict[str, Any]:
    """Get attachment metadata including its signed download URL."""
    _log_request("pylon_get_attachment", attachment_id=attachment_id)
    return await get_pylon_client().get_attachment(attachment_id)


async def pylon_create_attachment_from_url(
    file_url: Annotated[str, Field(description="Public URL of the file to attach")],
    description: str | None = None,
) -> dict[str, Any]:
    """Create an attachment by having Pylon fetch a file from a URL."""
    _log_request("pylon_create_attachment_from_url", file_url=file_url)
    return await get_pylon_client().create_attachment_from_url(file_url, description)


TOOLS = (
    pylon_get_me,
    pylon_get_users,
    pylon_search_users,
    pylon_get_contacts,
    pylon_create_contact,
    pylon_search_contacts,
    pylon_get_issues,
    pylon_get_issue,
    pylon_create_issue,
    pylon_update_issue,
    pylon_snooze_issue,
    pylon_search_issues,
    pylon_search_issues_by_status,
    pylon_get_issue_messages,
    pylon_get_issue_with_messages,
    pylon_find_similar_issues_for_requestor,
    pylon_find_similar_issues_for_account,
    pylon_find_similar_issues_global,
    pylon_get_knowledge_bases,
    pylon_create_knowledge_base_article,
    pylon_get_teams,
    pylon_get_team,
    pylon_create_team,
    pylon_get_accounts,
    pylon_get_account,
    pylon_get_tags,
    pylon_create_tag,
    pylon_get_ticket_forms,
    pylon_get_attachment,
    pylon_create_attachment_from_url,
)


def create_server() -> FastMCP:
    """Build the FastMCP server with every Pylon tool registered."""
    mcp = FastMCP("pylon-mcp-server")
    for tool in TOOLS:
        mcp.tool()(tool)
    return mcp


mcp = create_server()
