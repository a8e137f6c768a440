"""Individual tool handler functions."""
import json
from typing import Any

from mcp import types
from pydantic import BaseModel

from helpdesk_mcp_server.models import (
    CreateTicketRequest,
    TicketFilterOptions,
    TicketNoteRequest,
    TicketPriority,
    TicketResponseRequest,
    UpdateTicketRequest,
)

_LISTING_KEYS = (
    "page",
    "limit",
    "sort_by",
    "sort_order",
    "include_description",
    "include_custom_fields",
)
_SEARCH_KEYS = ("requester_email", "assignee_email", "status", "priority")


def _json_response(data: Any) -> list[types.TextContent]:
    """Helper to format JSON response."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data]
    return [types.TextContent(type="text", text=json.dumps(data, indent=2))]


def _require_args(arguments: dict[str, Any] | None, *required_keys: str) -> None:
    """Helper to validate required arguments."""
    if not arguments:
        raise ValueError("Missing arguments")
    missing = [key for key in required_keys if key not in arguments or arguments[key] is None]
    if missing:
        raise ValueError(f"Missing required arguments: {', '.join(missing)}")


def _pick(arguments: dict[str, Any] | None, keys: tuple[str, ...]) -> dict[str, Any]:
    return {k: arguments[k] for k in keys if arguments and arguments.get(k) is not None}


def _filter_options(arguments: dict[str, Any] | None, *extra_keys: str) -> TicketFilterOptions:
    return TicketFilterOptions(**_pick(arguments, _LISTING_KEYS + tuple(extra_keys)))


async def handle_validate_config(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle validate_config tool."""
    return _json_response(await client.validate_config())


async def handle_create_ticket(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle create_ticket tool."""
    _require_args(arguments, "subject", "description", "requester_email")
    request = CreateTicketRequest(
        **_pick(arguments, ("subject", "description", "requester_email", "priority", "custom_fields"))
    )
    created = await client.create_ticket(request)
    return _json_response({"message": "Ticket created successfully", "ticket": created.model_dump(mode="json")})


async def handle_list_user_tickets(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle list_user_tickets tool."""
    _require_args(arguments, "user_email")
    tickets = await client.list_user_tickets(arguments["user_email"], _filter_options(arguments))
    return _json_response(tickets)


async def handle_list_assigned_tickets(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle list_assigned_tickets tool."""
    _require_args(arguments, "admin_email")
    tickets = await client.list_assigned_tickets(arguments["admin_email"], _filter_options(arguments))
    return _json_response(tickets)


async def handle_search_tickets(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle search_tickets tool."""
    results = await client.search_tickets(_filter_options(arguments, *_SEARCH_KEYS))
    return _json_response(results)


async def handle_get_ticket_details(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle get_ticket_details tool."""
    _require_args(arguments, "ticket_id")
    details = await client.get_ticket_details(
        str(arguments["ticket_id"]),
        include_conversation=bool(arguments.get("include_conversation", False)),
    )
    return _json_response(details)


async def handle_get_ticket_conversations(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle get_ticket_conversations tool."""
    _require_args(arguments, "ticket_id")
    messages = await client.get_ticket_conversations(str(arguments["ticket_id"]))
    return _json_response(messages)


async def handle_respond_to_ticket(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle respond_to_ticket tool."""
    _require_args(arguments, "ticket_id", "message")
    request = TicketResponseRequest(
        ticket_id=str(arguments["ticket_id"]),
        **_pick(arguments, (
            "message",
            "cc_emails",
            "bcc_emails",
            "agent_email",
            "from_email",
            "include_previous_ccs",
            "include_previous_messages",
        )),
    )
    attachments = arguments.get("attachments") or []
    if attachments:
        message = await client.respond_to_ticket_with_attachments(request, attachments)
    else:
        message = await client.respond_to_ticket(request)
    return _json_response({"message": "Response sent", "reply": message.model_dump(mode="json")})


async def handle_add_note(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle add_note tool."""
    _require_args(arguments, "ticket_id", "note")
    request = TicketNoteRequest(
        ticket_id=str(arguments["ticket_id"]),
        **_pick(arguments, ("note", "is_private", "agent_email", "notify_emails")),
    )
    attachments = arguments.get("attachments") or []
    if attachments:
        note = await client.add_note_with_attachments(request, attachments)
    else:
        note = await client.add_note(request)
    return _json_response({"message": "Note added", "note": note.model_dump(mode="json")})


async def handle_assign_ticket(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle assign_ticket tool."""
    _require_args(arguments, "ticket_id", "assignee_email")
    ticket = await client.assign_ticket(str(arguments["ticket_id"]), arguments["assignee_email"])
    return _json_response({"message": "Ticket assigned successfully", "ticket": ticket.model_dump(mode="json")})


async def handle_escalate_ticket(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle escalate_ticket tool."""
    _require_args(arguments, "ticket_id", "priority")
    ticket = await client.escalate_ticket(str(arguments["ticket_id"]), TicketPriority(arguments["priority"]))
    return _json_response({"message": "Ticket priority updated", "ticket": ticket.model_dump(mode="json")})


async def handle_update_ticket(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle update_ticket tool."""
    _require_args(arguments, "ticket_id")
    request = UpdateTicketRequest(
        ticket_id=str(arguments["ticket_id"]),
        **_pick(arguments, ("status", "priority", "assignee_email")),
    )
    updated = await client.update_ticket(request)
    return _json_response({"message": "Ticket updated successfully", "ticket": updated.model_dump(mode="json")})


async def handle_close_ticket(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle close_ticket tool."""
    _require_args(arguments, "ticket_id")
    ticket = await client.close_ticket(str(arguments["ticket_id"]))
    return _json_response({"message": "Ticket closed", "ticket": ticket.model_dump(mode="json")})


async def handle_reopen_ticket(client: Any, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """Handle reopen_ticket tool."""
    _require_args(arguments, "ticket_id")
    ticket = await client.reopen_ticket(str(arguments["ticket_id"]))
    return _json_response({"message": "Ticket reopened", "ticket": ticket.model_dump(mode="json")})
