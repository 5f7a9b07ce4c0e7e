"""MCP tool server exposing Help Scout operations over stdio."""

import logging
from dataclasses import replace
from typing import Annotated, Any, Literal, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from helpscout_cli.client import HelpScoutClient
from helpscout_cli.errors import HelpScoutError, classify_error
from helpscout_cli.output import OutputOptions, render

logger = logging.getLogger(__name__)

##
# Initialize FastMCP server
##
mcp = FastMCP("helpscout")

_client: Optional[HelpScoutClient] = None
_options = OutputOptions()

ConversationStatus = Literal["active", "pending", "closed", "spam", "all"]


def configure(client: HelpScoutClient, options: Optional[OutputOptions] = None) -> None:
    global _client, _options
    _client = client
    # Tool results are always pretty JSON text.
    _options = replace(options or OutputOptions(), compact=False, output_format="json")


def _get_client() -> HelpScoutClient:
    if _client is None:
        raise ToolError("Help Scout client is not configured")
    return _client


def _json_response(data: Any) -> str:
    return render(data, _options)


def _tool_error(exc: HelpScoutError) -> ToolError:
    error = classify_error(exc)["error"]
    logger.debug("Tool call failed: %s", error)
    return ToolError(f"{error['name']} ({error['statusCode']}): {error['detail']}")


@mcp.tool("list_conversations")
def list_conversations(
    status: Annotated[Optional[ConversationStatus], Field(description="Conversation status filter")] = None,
    mailbox: Annotated[Optional[str], Field(description="Mailbox ID to filter by")] = None,
    tag: Annotated[Optional[str], Field(description="Tag to filter by")] = None,
    assigned_to: Annotated[Optional[str], Field(description="User ID assigned to")] = None,
    query: Annotated[Optional[str], Field(description="Search query")] = None,
    page: Annotated[Optional[int], Field(description="Page number")] = None,
) -> str:
    """List conversations with optional filtering by status, mailbox, tag, or assignee."""
    try:
        result = _get_client().list_conversations(
            mailbox=mailbox, status=status, tag=tag, assigned_to=assigned_to, query=query, page=page
        )
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response(result)


@mcp.tool("get_conversation")
def get_conversation(
    conversation_id: Annotated[int, Field(ge=1, description="Conversation ID")],
    include_threads: Annotated[bool, Field(description="Include conversation threads")] = False,
) -> str:
    """Get detailed information about a specific conversation, optionally with its threads."""
    client = _get_client()
    try:
        conversation = client.get_conversation(conversation_id)
        if include_threads:
            conversation = {**conversation, "threads": client.get_conversation_threads(conversation_id)}
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response(conversation)


@mcp.tool("search_conversations")
def search_conversations(
    query: Annotated[str, Field(description='Search query (e.g. "email:domain.com", "subject:billing")')],
    status: Annotated[Optional[ConversationStatus], Field(description="Status filter")] = None,
) -> str:
    """Search all conversations matching a query, following every result page."""
    try:
        result = _get_client().list_all_conversations(query=query, status=status)
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response(result)


@mcp.tool("list_mailboxes")
def list_mailboxes() -> str:
    """List all mailboxes in the Help Scout account."""
    try:
        result = _get_client().list_mailboxes()
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response(result)


@mcp.tool("get_mailbox")
def get_mailbox(mailbox_id: Annotated[int, Field(ge=1, description="Mailbox ID")]) -> str:
    """Get detailed information about a specific mailbox."""
    try:
        result = _get_client().get_mailbox(mailbox_id)
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response(result)


@mcp.tool("list_customers")
def list_customers(
    query: Annotated[Optional[str], Field(description="Search query")] = None,
    first_name: Annotated[Optional[str], Field(description="Filter by first name")] = None,
    last_name: Annotated[Optional[str], Field(description="Filter by last name")] = None,
    page: Annotated[Optional[int], Field(description="Page number")] = None,
) -> str:
    """List customers with optional filtering."""
    try:
        result = _get_client().list_customers(
            query=query, first_name=first_name, last_name=last_name, page=page
        )
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response(result)


@mcp.tool("get_customer")
def get_customer(customer_id: Annotated[int, Field(ge=1, description="Customer ID")]) -> str:
    """Get detailed information about a specific customer."""
    try:
        result = _get_client().get_customer(customer_id)
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response(result)


@mcp.tool("list_tags")
def list_tags(page: Annotated[Optional[int], Field(description="Page number")] = None) -> str:
    """List all tags in the Help Scout account."""
    try:
        result = _get_client().list_tags(page=page)
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response(result)


@mcp.tool("list_workflows")
def list_workflows(
    mailbox: Annotated[Optional[int], Field(description="Mailbox ID to filter by")] = None,
    type: Annotated[Optional[Literal["automatic", "manual"]], Field(description="Workflow type")] = None,
    page: Annotated[Optional[int], Field(description="Page number")] = None,
) -> str:
    """List workflows with optional filtering."""
    try:
        result = _get_client().list_workflows(mailbox=mailbox, type=type, page=page)
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response(result)


@mcp.tool("create_note")
def create_note(
    conversation_id: Annotated[int, Field(ge=1, description="Conversation ID")],
    text: Annotated[str, Field(min_length=1, description="Note text content")],
) -> str:
    """Add a private note to a conversation."""
    try:
        _get_client().create_note(conversation_id, text=text)
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response({"success": True})


@mcp.tool("add_tag")
def add_tag(
    conversation_id: Annotated[int, Field(ge=1, description="Conversation ID")],
    tag: Annotated[str, Field(min_length=1, description="Tag name to add")],
) -> str:
    """Add a tag to a conversation."""
    try:
        _get_client().add_conversation_tag(conversation_id, tag)
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response({"success": True})


@mcp.tool("remove_tag")
def remove_tag(
    conversation_id: Annotated[int, Field(ge=1, description="Conversation ID")],
    tag: Annotated[str, Field(min_length=1, description="Tag name to remove")],
) -> str:
    """Remove a tag from a conversation."""
    try:
        _get_client().remove_conversation_tag(conversation_id, tag)
    except HelpScoutError as exc:
        raise _tool_error(exc) from exc
    return _json_response({"success": True})


@mcp.tool("check_auth")
def check_auth() -> str:
    """Check if Help Scout authentication is configured."""
    tokens = _get_client().tokens
    return _json_response({"authenticated": tokens.is_authenticated(), "configured": tokens.is_configured()})


def run_server(client: HelpScoutClient, options: Optional[OutputOptions] = None) -> None:
    configure(client, options)
    logger.info("Starting Help Scout MCP server on stdio")
    mcp.run(transport="stdio")
