"""Help Scout CLI.

JSON-first command-line access to the Help Scout Mailbox API v2
(https://api.helpscout.net/v2): conversations, customers, tags, workflows
and mailboxes, plus an MCP server exposing the same operations.

Usage examples:
    helpscout auth login --app-id <id> --app-secret <secret>
    helpscout conversations list --status active --tag billing
    helpscout --plain --fields id,subject conversations view 123 --embed threads
    helpscout --format table customers list --first-name Jane --all
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from helpscout_cli import __version__
from helpscout_cli.client import API_BASE_URL, AppConfig, HelpScoutClient, tag_name
from helpscout_cli.dates import build_date_query, parse_datetime
from helpscout_cli.errors import ValidationError, handle_error
from helpscout_cli.output import OUTPUT_FORMATS, OutputOptions, emit
from helpscout_cli.store import APP_ID_ACCOUNT, APP_SECRET_ACCOUNT, DEFAULT_ENV_FILE, CredentialStore, Settings

# Prevent BrokenPipeError when piping output
if hasattr(signal, "SIGPIPE"):
    signal.signal(signal.SIGPIPE, signal.SIG_DFL)

CONVERSATION_STATUSES = ["active", "all", "closed", "open", "pending", "spam"]
EMAIL_THREAD_TYPES = ["customer", "message", "chat", "phone"]


def parse_id_arg(value: Any, resource_type: str = "resource") -> int:
    try:
        parsed = int(str(value).strip())
    except ValueError:
        parsed = 0
    if parsed <= 0:
        raise ValidationError(f'Invalid {resource_type} ID: "{value}"')
    return parsed


def require_at_least_one_field(data: Dict[str, Any], operation: str) -> None:
    if not any(v is not None for v in data.values()):
        raise ValidationError(f"{operation} requires at least one field to update")


def require_confirmation(item_type: str, confirmed: bool = False) -> None:
    if not confirmed:
        raise ValidationError(f"Deleting {item_type} requires --yes flag to confirm")


def parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def summarize_conversations(conversations: List[Dict[str, Any]]) -> Dict[str, Any]:
    by_status: Dict[str, int] = {}
    by_tag: Dict[str, int] = {}
    rows = []
    for conv in conversations:
        status = str(conv.get("status"))
        by_status[status] = by_status.get(status, 0) + 1
        tags = [tag_name(t) for t in conv.get("tags") or []]
        for name in tags:
            by_tag[name] = by_tag.get(name, 0) + 1
        rows.append(
            {
                "id": conv.get("id"),
                "subject": conv.get("subject"),
                "status": conv.get("status"),
                "tags": tags,
                "preview": conv.get("preview"),
            }
        )
    return {"total": len(conversations), "byStatus": by_status, "byTag": by_tag, "conversations": rows}


def filter_threads(
    threads: List[Dict[str, Any]],
    types: Optional[str] = None,
    include_notes: bool = False,
    show_all: bool = False,
) -> List[Dict[str, Any]]:
    if types:
        wanted = [t.strip().lower() for t in types.split(",") if t.strip()]
    elif show_all:
        return threads
    else:
        wanted = EMAIL_THREAD_TYPES + (["note"] if include_notes else [])
    return [t for t in threads if t.get("type") in wanted]


# Handlers for subcommands


def handle_auth_login(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    client.store.set(APP_ID_ACCOUNT, args.app_id)
    client.store.set(APP_SECRET_ACCOUNT, args.app_secret)
    client.tokens.clear()
    client.tokens.refresh()
    emit({"message": "Successfully authenticated with Help Scout"}, options)


def handle_auth_logout(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    client.tokens.clear()
    Settings(client.store).clear_default_mailbox()
    emit({"message": "Logged out successfully"}, options)


def handle_auth_status(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    emit(
        {
            "authenticated": client.tokens.is_authenticated(),
            "configured": client.tokens.is_configured(),
        },
        options,
    )


def handle_auth_refresh(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    client.tokens.invalidate()
    client.tokens.refresh()
    emit({"message": "Access token refreshed"}, options)


def handle_mailboxes_list(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    emit(client.list_mailboxes(page=args.page), options)


def handle_mailboxes_view(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    emit(client.get_mailbox(parse_id_arg(args.id, "mailbox")), options)


def handle_mailboxes_set_default(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    mailbox_id = parse_id_arg(args.id, "mailbox")
    Settings(client.store).set_default_mailbox(str(mailbox_id))
    emit({"message": f"Default mailbox set to {mailbox_id}"}, options)


def handle_mailboxes_get_default(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    emit({"defaultMailbox": Settings(client.store).get_default_mailbox()}, options)


def handle_mailboxes_clear_default(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    Settings(client.store).clear_default_mailbox()
    emit({"message": "Default mailbox cleared"}, options)


def handle_conversations_list(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    filters = {
        "mailbox": args.mailbox or Settings(client.store).get_default_mailbox(),
        "status": args.status,
        "tag": args.tag,
        "assigned_to": args.assigned_to,
        "modified_since": parse_datetime(args.modified_since) if args.modified_since else None,
        "query": build_date_query(
            created_since=args.created_since,
            created_before=args.created_before,
            query=args.query,
        ),
    }
    if args.summary:
        emit(summarize_conversations(client.list_all_conversations(**filters)), options)
        return

    sorting = {"sort_field": args.sort_field, "sort_order": args.sort_order, "embed": args.embed}
    if args.all:
        emit(client.list_all_conversations(page=args.page, **filters, **sorting), options)
        return
    emit(client.list_conversations(page=args.page, **filters, **sorting), options)


def handle_conversations_view(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    emit(client.get_conversation(parse_id_arg(args.id, "conversation"), args.embed), options)


def handle_conversations_threads(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    threads = client.get_conversation_threads(parse_id_arg(args.id, "conversation"))
    emit(filter_threads(threads, args.type, args.include_notes, args.all), options)


def handle_conversations_update(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    conversation_id = parse_id_arg(args.id, "conversation")
    value = parse_value(args.value) if args.value is not None else None
    client.update_conversation(conversation_id, args.op, args.path, value)
    emit({"message": "Conversation updated"}, options)


def handle_conversations_delete(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    require_confirmation("conversation", args.yes)
    client.delete_conversation(parse_id_arg(args.id, "conversation"))
    emit({"message": "Conversation deleted"}, options)


def handle_conversations_add_tag(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    client.add_conversation_tag(parse_id_arg(args.id, "conversation"), args.tag)
    emit({"message": f'Tag "{args.tag}" added'}, options)


def handle_conversations_remove_tag(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    client.remove_conversation_tag(parse_id_arg(args.id, "conversation"), args.tag)
    emit({"message": f'Tag "{args.tag}" removed'}, options)


def handle_conversations_reply(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    conversation_id = parse_id_arg(args.id, "conversation")
    client.create_reply(
        conversation_id,
        text=args.text,
        user=parse_id_arg(args.user, "user") if args.user else None,
        draft=True if args.draft else None,
        status=args.status,
    )
    emit({"message": "Reply sent"}, options)


def handle_conversations_note(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    conversation_id = parse_id_arg(args.id, "conversation")
    client.create_note(
        conversation_id,
        text=args.text,
        user=parse_id_arg(args.user, "user") if args.user else None,
    )
    emit({"message": "Note added"}, options)


def handle_customers_list(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    query = build_date_query(
        created_since=args.created_since,
        created_before=args.created_before,
        modified_since=args.modified_since,
        modified_before=args.modified_before,
        query=args.query,
    )
    filters = {
        "mailbox": args.mailbox,
        "first_name": args.first_name,
        "last_name": args.last_name,
        "sort_field": args.sort_field,
        "sort_order": args.sort_order,
        "query": query,
    }
    if args.all:
        emit(client.list_all_customers(page=args.page, **filters), options)
        return
    emit(client.list_customers(page=args.page, **filters), options)


def handle_customers_view(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    emit(client.get_customer(parse_id_arg(args.id, "customer")), options)


def handle_customers_create(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    data = {
        "firstName": args.first_name or None,
        "lastName": args.last_name or None,
        "emails": [{"type": "work", "value": args.email}] if args.email else None,
        "phones": [{"type": "work", "value": args.phone}] if args.phone else None,
    }
    require_at_least_one_field(data, "Customer create")
    client.create_customer(_drop_none(data))
    emit({"message": "Customer created"}, options)


def handle_customers_update(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    customer_id = parse_id_arg(args.id, "customer")
    data = {
        "firstName": args.first_name or None,
        "lastName": args.last_name or None,
        "jobTitle": args.job_title or None,
        "location": args.location or None,
        "organization": args.organization or None,
        "background": args.background or None,
    }
    require_at_least_one_field(data, "Customer update")
    client.update_customer(customer_id, _drop_none(data))
    emit({"message": "Customer updated"}, options)


def handle_customers_delete(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    require_confirmation("customer", args.yes)
    client.delete_customer(parse_id_arg(args.id, "customer"))
    emit({"message": "Customer deleted"}, options)


def handle_tags_list(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    if args.all:
        emit(client.list_all_tags(page=args.page), options)
        return
    emit(client.list_tags(page=args.page), options)


def handle_tags_view(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    emit(client.get_tag(parse_id_arg(args.id, "tag")), options)


def handle_workflows_list(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    mailbox = parse_id_arg(args.mailbox, "mailbox") if args.mailbox else None
    emit(client.list_workflows(mailbox=mailbox, type=args.type, page=args.page), options)


def handle_workflows_run(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    workflow_id = parse_id_arg(args.id, "workflow")
    conversation_ids = [parse_id_arg(raw, "conversation") for raw in args.conversations.split(",")]
    client.run_workflow(workflow_id, conversation_ids)
    emit({"message": "Workflow executed"}, options)


def handle_workflows_activate(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    client.update_workflow_status(parse_id_arg(args.id, "workflow"), "active")
    emit({"message": "Workflow activated"}, options)


def handle_workflows_deactivate(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    client.update_workflow_status(parse_id_arg(args.id, "workflow"), "inactive")
    emit({"message": "Workflow deactivated"}, options)


def handle_mcp(args: argparse.Namespace, client: HelpScoutClient, options: OutputOptions) -> None:
    from helpscout_cli.mcp_server import run_server

    run_server(client, options)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="helpscout", description="A command-line interface for Help Scout")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--env-file",
        default=str(DEFAULT_ENV_FILE),
        help="Path to .env file holding stored credentials (default: .env)",
    )
    parser.add_argument("--base-url", default=API_BASE_URL, help="Override API base URL")
    parser.add_argument("-c", "--compact", action="store_true", help="Minified JSON output (single line)")
    parser.add_argument("-p", "--plain", action="store_true", help="Strip HTML from body fields, output plain text")
    parser.add_argument(
        "--include-metadata",
        action="store_true",
        help="Include _links and _embedded in responses (stripped by default)",
    )
    parser.add_argument("-f", "--fields", help="Comma-separated list of fields to include in output")
    parser.add_argument(
        "--format",
        default="json",
        choices=list(OUTPUT_FORMATS),
        help="Output format (default: json)",
    )
    parser.add_argument("--debug", action="store_true", help="Log HTTP calls to stderr")
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="HTTP connect/read timeout in seconds (default: 30)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Auth
    auth = subparsers.add_parser("auth", help="Authentication operations")
    auth_sub = auth.add_subparsers(dest="action", required=True)

    auth_login = auth_sub.add_parser("login", help="Configure Help Scout API credentials")
    auth_login.add_argument("--app-id", required=True, help="Help Scout App ID")
    auth_login.add_argument("--app-secret", required=True, help="Help Scout App Secret")
    auth_login.set_defaults(func=handle_auth_login)

    auth_sub.add_parser("logout", help="Remove stored credentials").set_defaults(func=handle_auth_logout)
    auth_sub.add_parser("status", help="Check authentication status").set_defaults(func=handle_auth_status)
    auth_sub.add_parser("refresh", help="Refresh access token").set_defaults(func=handle_auth_refresh)

    # Mailboxes
    mailboxes = subparsers.add_parser("mailboxes", help="Mailbox operations")
    mb_sub = mailboxes.add_subparsers(dest="action", required=True)

    mb_list = mb_sub.add_parser("list", help="List mailboxes")
    mb_list.add_argument("--page", type=int, help="Page number")
    mb_list.set_defaults(func=handle_mailboxes_list)

    mb_view = mb_sub.add_parser("view", help="View a mailbox")
    mb_view.add_argument("id", help="Mailbox ID")
    mb_view.set_defaults(func=handle_mailboxes_view)

    mb_set = mb_sub.add_parser("set-default", help="Set default mailbox")
    mb_set.add_argument("id", help="Mailbox ID")
    mb_set.set_defaults(func=handle_mailboxes_set_default)

    mb_sub.add_parser("get-default", help="Get default mailbox").set_defaults(func=handle_mailboxes_get_default)
    mb_sub.add_parser("clear-default", help="Clear default mailbox").set_defaults(
        func=handle_mailboxes_clear_default
    )

    # Conversations
    conversations = subparsers.add_parser("conversations", help="Conversation operations")
    conv_sub = conversations.add_subparsers(dest="action", required=True)

    conv_list = conv_sub.add_parser("list", help="List conversations")
    conv_list.add_argument("-m", "--mailbox", help="Filter by mailbox ID (default: stored default mailbox)")
    conv_list.add_argument("-s", "--status", choices=CONVERSATION_STATUSES, help="Filter by status")
    conv_list.add_argument("-t", "--tag", help="Filter by tag(s), comma-separated")
    conv_list.add_argument("--assigned-to", help="Filter by assignee user ID")
    conv_list.add_argument("--modified-since", help="Filter by modified date")
    conv_list.add_argument("--created-since", help="Show conversations created after this date")
    conv_list.add_argument("--created-before", help="Show conversations created before this date")
    conv_list.add_argument("-q", "--query", help="Advanced search query")
    conv_list.add_argument("--sort-field", help="Sort by field (createdAt, modifiedAt, number, status, subject)")
    conv_list.add_argument("--sort-order", choices=["asc", "desc"], help="Sort order")
    conv_list.add_argument("--page", type=int, help="Page number")
    conv_list.add_argument("--embed", help="Embed resources (threads)")
    conv_list.add_argument("--all", action="store_true", help="Fetch every page and output a flat list")
    conv_list.add_argument(
        "--summary",
        action="store_true",
        help="Output aggregated summary instead of full conversation list",
    )
    conv_list.set_defaults(func=handle_conversations_list)

    conv_view = conv_sub.add_parser("view", help="View a conversation")
    conv_view.add_argument("id", help="Conversation ID")
    conv_view.add_argument("--embed", help="Embed resources (threads)")
    conv_view.set_defaults(func=handle_conversations_view)

    conv_threads = conv_sub.add_parser(
        "threads",
        help="List threads for a conversation (defaults to email communications only)",
    )
    conv_threads.add_argument("id", help="Conversation ID")
    conv_threads.add_argument("--include-notes", action="store_true", help="Include internal notes")
    conv_threads.add_argument("--all", action="store_true", help="Show all thread types")
    conv_threads.add_argument("-t", "--type", help="Filter by thread type(s), comma-separated")
    conv_threads.set_defaults(func=handle_conversations_threads)

    conv_update = conv_sub.add_parser("update", help="Update a conversation (JSON patch operation)")
    conv_update.add_argument("id", help="Conversation ID")
    conv_update.add_argument("--op", default="replace", help="Patch operation (default: replace)")
    conv_update.add_argument("--path", required=True, help="Patch path, e.g. /status or /assignTo")
    conv_update.add_argument("--value", help="Patch value (parsed as JSON when possible)")
    conv_update.set_defaults(func=handle_conversations_update)

    conv_delete = conv_sub.add_parser("delete", help="Delete a conversation")
    conv_delete.add_argument("id", help="Conversation ID")
    conv_delete.add_argument("-y", "--yes", action="store_true", help="Confirm deletion")
    conv_delete.set_defaults(func=handle_conversations_delete)

    conv_add_tag = conv_sub.add_parser("add-tag", help="Add a tag to a conversation")
    conv_add_tag.add_argument("id", help="Conversation ID")
    conv_add_tag.add_argument("tag", help="Tag name")
    conv_add_tag.set_defaults(func=handle_conversations_add_tag)

    conv_remove_tag = conv_sub.add_parser("remove-tag", help="Remove a tag from a conversation")
    conv_remove_tag.add_argument("id", help="Conversation ID")
    conv_remove_tag.add_argument("tag", help="Tag name")
    conv_remove_tag.set_defaults(func=handle_conversations_remove_tag)

    conv_reply = conv_sub.add_parser("reply", help="Reply to a conversation")
    conv_reply.add_argument("id", help="Conversation ID")
    conv_reply.add_argument("--text", required=True, help="Reply text")
    conv_reply.add_argument("--user", help="User ID sending the reply")
    conv_reply.add_argument("--draft", action="store_true", help="Save as draft")
    conv_reply.add_argument(
        "--status",
        choices=["active", "closed", "pending"],
        help="Set conversation status after reply",
    )
    conv_reply.set_defaults(func=handle_conversations_reply)

    conv_note = conv_sub.add_parser("note", help="Add a note to a conversation")
    conv_note.add_argument("id", help="Conversation ID")
    conv_note.add_argument("--text", required=True, help="Note text")
    conv_note.add_argument("--user", help="User ID adding the note")
    conv_note.set_defaults(func=handle_conversations_note)

    # Customers
    customers = subparsers.add_parser("customers", help="Customer operations")
    cust_sub = customers.add_subparsers(dest="action", required=True)

    cust_list = cust_sub.add_parser("list", help="List customers")
    cust_list.add_argument("-m", "--mailbox", help="Filter by mailbox ID")
    cust_list.add_argument("--first-name", help="Filter by first name")
    cust_list.add_argument("--last-name", help="Filter by last name")
    cust_list.add_argument("--created-since", help="Show customers created after this date")
    cust_list.add_argument("--created-before", help="Show customers created before this date")
    cust_list.add_argument("--modified-since", help="Show customers modified after this date")
    cust_list.add_argument("--modified-before", help="Show customers modified before this date")
    cust_list.add_argument("--sort-field", help="Sort by field (createdAt, firstName, lastName, modifiedAt)")
    cust_list.add_argument("--sort-order", choices=["asc", "desc"], help="Sort order")
    cust_list.add_argument("--page", type=int, help="Page number")
    cust_list.add_argument("-q", "--query", help="Advanced search query")
    cust_list.add_argument("--all", action="store_true", help="Fetch every page and output a flat list")
    cust_list.set_defaults(func=handle_customers_list)

    cust_view = cust_sub.add_parser("view", help="View a customer")
    cust_view.add_argument("id", help="Customer ID")
    cust_view.set_defaults(func=handle_customers_view)

    cust_create = cust_sub.add_parser("create", help="Create a customer")
    cust_create.add_argument("--first-name", help="First name")
    cust_create.add_argument("--last-name", help="Last name")
    cust_create.add_argument("--email", help="Email address")
    cust_create.add_argument("--phone", help="Phone number")
    cust_create.set_defaults(func=handle_customers_create)

    cust_update = cust_sub.add_parser("update", help="Update a customer")
    cust_update.add_argument("id", help="Customer ID")
    cust_update.add_argument("--first-name", help="First name")
    cust_update.add_argument("--last-name", help="Last name")
    cust_update.add_argument("--job-title", help="Job title")
    cust_update.add_argument("--location", help="Location")
    cust_update.add_argument("--organization", help="Organization")
    cust_update.add_argument("--background", help="Background notes")
    cust_update.set_defaults(func=handle_customers_update)

    cust_delete = cust_sub.add_parser("delete", help="Delete a customer")
    cust_delete.add_argument("id", help="Customer ID")
    cust_delete.add_argument("-y", "--yes", action="store_true", help="Confirm deletion")
    cust_delete.set_defaults(func=handle_customers_delete)

    # Tags
    tags = subparsers.add_parser("tags", help="Tag operations")
    tags_sub = tags.add_subparsers(dest="action", required=True)

    tags_list = tags_sub.add_parser("list", help="List all tags")
    tags_list.add_argument("--page", type=int, help="Page number")
    tags_list.add_argument("--all", action="store_true", help="Fetch every page and output a flat list")
    tags_list.set_defaults(func=handle_tags_list)

    tags_view = tags_sub.add_parser("view", help="View a tag")
    tags_view.add_argument("id", help="Tag ID")
    tags_view.set_defaults(func=handle_tags_view)

    # Workflows
    workflows = subparsers.add_parser("workflows", help="Workflow operations")
    wf_sub = workflows.add_subparsers(dest="action", required=True)

    wf_list = wf_sub.add_parser("list", help="List workflows")
    wf_list.add_argument("-m", "--mailbox", help="Filter by mailbox ID")
    wf_list.add_argument("-t", "--type", choices=["manual", "automatic"], help="Filter by type")
    wf_list.add_argument("--page", type=int, help="Page number")
    wf_list.set_defaults(func=handle_workflows_list)

    wf_run = wf_sub.add_parser("run", help="Run a manual workflow on conversations")
    wf_run.add_argument("id", help="Workflow ID")
    wf_run.add_argument("--conversations", required=True, help="Comma-separated conversation IDs")
    wf_run.set_defaults(func=handle_workflows_run)

    wf_activate = wf_sub.add_parser("activate", help="Activate a workflow")
    wf_activate.add_argument("id", help="Workflow ID")
    wf_activate.set_defaults(func=handle_workflows_activate)

    wf_deactivate = wf_sub.add_parser("deactivate", help="Deactivate a workflow")
    wf_deactivate.add_argument("id", help="Workflow ID")
    wf_deactivate.set_defaults(func=handle_workflows_deactivate)

    # MCP
    subparsers.add_parser("mcp", help="Run Help Scout MCP server on stdio").set_defaults(func=handle_mcp)

    return parser


def build_output_options(args: argparse.Namespace) -> OutputOptions:
    return OutputOptions(
        compact=args.compact,
        slim=not args.include_metadata,
        plain=args.plain,
        fields=args.fields,
        output_format=args.format,
    )


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )
    options = build_output_options(args)
    store = CredentialStore(Path(args.env_file))
    config = AppConfig(base_url=args.base_url, request_timeout=args.timeout)
    client = HelpScoutClient(config, store)

    try:
        args.func(args, client, options)
    except Exception as exc:
        handle_error(exc, options)


if __name__ == "__main__":
    main()
