"""Translation between the normalized ticket model and Desk365's wire layout.

Every function here is pure and total: vendor payloads that are missing
fields, use a different field name on another endpoint, or are not JSON
objects at all still map to a complete domain value. Degraded input is
reported through a warning and replaced with sentinel defaults.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from helpdesk_mcp_server.models import (
    PaginatedTickets,
    SortKey,
    SortOrder,
    Ticket,
    TicketAttachment,
    TicketConversation,
    TicketDetails,
    TicketFilterOptions,
    TicketMessage,
    TicketPriority,
    TicketStatus,
    UpdateTicketRequest,
)

logger = logging.getLogger(__name__)

UNKNOWN_ID = "unknown"
UNKNOWN_SUBJECT = "Unknown Subject"
UNKNOWN_DESCRIPTION = "No description available"
UNKNOWN_EMAIL = "unknown@example.com"

DEFAULT_WIRE_PRIORITY = 5
TICKET_COUNT_TIERS = (30, 50, 100)

PRIORITY_TO_WIRE: Dict[TicketPriority, int] = {
    TicketPriority.LOW: 1,
    TicketPriority.MEDIUM: 5,
    TicketPriority.HIGH: 10,
    TicketPriority.URGENT: 20,
}
WIRE_TO_PRIORITY: Dict[int, TicketPriority] = {v: k for k, v in PRIORITY_TO_WIRE.items()}

STATUS_TO_WIRE: Dict[TicketStatus, str] = {
    TicketStatus.OPEN: "open",
    TicketStatus.CLOSED: "closed",
    TicketStatus.PENDING: "pending",
    TicketStatus.RESOLVED: "resolved",
}
WIRE_TO_STATUS: Dict[str, TicketStatus] = {v: k for k, v in STATUS_TO_WIRE.items()}

SORT_KEY_TO_WIRE: Dict[SortKey, str] = {
    SortKey.CREATED_AT: "created_time",
    SortKey.UPDATED_AT: "updated_time",
    SortKey.PRIORITY: "priority",
}


def _first(payload: Dict[str, Any], *keys: str) -> Any:
    """Return the first value under ``keys`` that is neither None nor empty."""
    for key in keys:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_text(value: Any, default: str) -> str:
    return default if value is None else str(value)


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# Priority

def priority_to_wire(priority: Optional[TicketPriority]) -> int:
    if priority is None:
        return DEFAULT_WIRE_PRIORITY
    return PRIORITY_TO_WIRE.get(TicketPriority(priority), DEFAULT_WIRE_PRIORITY)


def priority_from_wire(value: Any) -> TicketPriority:
    # Desk365 sends the numeric level either as a number or a numeric string.
    if isinstance(value, bool):
        return TicketPriority.MEDIUM
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            return TicketPriority.MEDIUM
    return WIRE_TO_PRIORITY.get(_as_int(value, DEFAULT_WIRE_PRIORITY), TicketPriority.MEDIUM)


# Status

def status_to_wire(status: Optional[TicketStatus]) -> str:
    if status is None:
        return STATUS_TO_WIRE[TicketStatus.OPEN]
    return STATUS_TO_WIRE[TicketStatus(status)]


def status_from_wire(value: Any) -> TicketStatus:
    if not isinstance(value, str):
        return TicketStatus.OPEN
    return WIRE_TO_STATUS.get(value.strip().lower(), TicketStatus.OPEN)


# Listing parameters

def ticket_count_for(limit: int) -> int:
    """Snap a requested page size up to the vendor's fixed tiers."""
    for tier in TICKET_COUNT_TIERS:
        if limit <= tier:
            return tier
    return TICKET_COUNT_TIERS[-1]


def offset_for(page: int, limit: int) -> int:
    return (max(page, 1) - 1) * limit


def filters_to_wire(options: Optional[TicketFilterOptions]) -> Optional[str]:
    """Compose filter predicates into the single JSON blob Desk365 expects.

    Returns None when no predicate is set so the parameter is left out.
    """
    if options is None:
        return None
    filters: Dict[str, List[str]] = {}
    if options.requester_email:
        filters["contact"] = [options.requester_email]
    if options.assignee_email:
        filters["assigned_to"] = [options.assignee_email]
    if options.status is not None:
        filters["status"] = [status_to_wire(options.status)]
    if options.priority is not None:
        filters["priority"] = [str(priority_to_wire(options.priority))]
    if not filters:
        return None
    return json.dumps(filters, separators=(",", ":"))


def list_params_to_wire(options: Optional[TicketFilterOptions], include_filters: bool = True) -> Dict[str, Any]:
    """Build the query parameters for the ticket list endpoint."""
    options = options or TicketFilterOptions()
    params: Dict[str, Any] = {
        "offset": offset_for(options.page, options.limit),
        "ticket_count": ticket_count_for(options.limit),
    }
    if options.sort_by is not None:
        params["order_by"] = SORT_KEY_TO_WIRE[SortKey(options.sort_by)]
        if options.sort_order is not None:
            params["order_type"] = SortOrder(options.sort_order).value.lower()
    if options.include_description:
        params["include_description"] = 1
    if options.include_custom_fields:
        params["include_custom_fields"] = 1
    if include_filters:
        filters = filters_to_wire(options)
        if filters is not None:
            params["filters"] = filters
    return params


def update_to_wire(request: UpdateTicketRequest) -> Dict[str, Any]:
    """Body for the update endpoint holding only the supplied fields."""
    body: Dict[str, Any] = {}
    if request.status is not None:
        body["status"] = status_to_wire(request.status)
    if request.priority is not None:
        body["priority"] = priority_to_wire(request.priority)
    if request.assignee_email:
        body["assign_to"] = request.assignee_email
    return body


def flag(value: bool) -> int:
    """Desk365 takes booleans as 0/1 integers."""
    return 1 if value else 0


def without_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


# Vendor -> domain

def attachment_from_wire(payload: Any) -> TicketAttachment:
    if not isinstance(payload, dict):
        logger.warning("Unexpected attachment payload from Desk365: %r", payload)
        return TicketAttachment(filename="unknown")
    return TicketAttachment(
        filename=_as_text(_first(payload, "file_name", "fileName", "filename"), "unknown"),
        size=_as_int(_first(payload, "size", "fileSize", "file_size")),
        content_type=_as_text(
            _first(payload, "content_type", "contentType", "fileType"), "application/octet-stream"
        ),
        created_at=_as_text(_first(payload, "created_on", "createdOn"), ""),
        url=_as_text(_first(payload, "url", "content_url"), ""),
    )


def attachments_from_wire(payload: Any) -> tuple:
    if not isinstance(payload, list):
        return ()
    return tuple(attachment_from_wire(item) for item in payload)


def ticket_from_wire(payload: Any) -> Ticket:
    """Map a Desk365 ticket to the normalized Ticket.

    Desk365 names the same field differently across endpoints, so each value
    is coalesced across the known spellings before falling back to a
    sentinel.
    """
    if not isinstance(payload, dict) or not payload:
        logger.warning("Received empty or non-object ticket data from Desk365: %r", payload)
        payload = {}

    ticket_id = _first(payload, "ticket_number", "id")
    assignee = _first(payload, "assigned_to", "assign_to")
    if ticket_id is None and payload:
        logger.warning("Desk365 ticket payload has no identifier; using %r", UNKNOWN_ID)

    return Ticket(
        id=_as_text(ticket_id, UNKNOWN_ID),
        subject=_as_text(_first(payload, "subject"), UNKNOWN_SUBJECT),
        description=_as_text(_first(payload, "description"), UNKNOWN_DESCRIPTION),
        status=status_from_wire(_first(payload, "status")),
        priority=priority_from_wire(_first(payload, "priority")),
        requester_email=_as_text(_first(payload, "contact_email", "email"), UNKNOWN_EMAIL),
        assignee_email=None if assignee is None else str(assignee),
        created_at=_as_text(_first(payload, "created_on", "created_time"), ""),
        updated_at=_as_text(_first(payload, "updated_on", "updated_time"), ""),
        attachments=attachments_from_wire(payload.get("attachments")),
    )


def ticket_details_from_wire(payload: Any, conversation: tuple = ()) -> TicketDetails:
    ticket = ticket_from_wire(payload)
    attachments = list(ticket.attachments)
    for message in conversation:
        attachments.extend(message.attachments)
    return TicketDetails(
        **ticket.model_dump(exclude={"attachments"}),
        attachments=tuple(attachments),
        conversation=tuple(conversation),
    )


def message_from_wire(payload: Any, ticket_id: Optional[str] = None) -> TicketMessage:
    """Map a reply, note or conversation entry to a TicketMessage.

    Reply endpoints answer in snake_case while the conversation listing uses
    camelCase; both spellings are accepted.
    """
    if not isinstance(payload, dict):
        logger.warning("Received non-object message data from Desk365: %r", payload)
        payload = {}

    is_staff = payload.get("is_agent")
    if is_staff is None:
        sender_type = payload.get("senderType") or payload.get("sender_type")
        is_staff = isinstance(sender_type, str) and sender_type.lower() == "agent"

    return TicketMessage(
        id=_as_text(_first(payload, "id", "message_id"), UNKNOWN_ID),
        ticket_id=_as_text(_first(payload, "ticket_number", "ticketNumber"), ticket_id or UNKNOWN_ID),
        body=_as_text(_first(payload, "content", "body", "bodyText"), ""),
        sender_email=_as_text(_first(payload, "email", "createdBy", "created_by"), UNKNOWN_EMAIL),
        is_staff=bool(is_staff),
        created_at=_as_text(_first(payload, "created_on", "createdOn"), ""),
        attachments=attachments_from_wire(payload.get("attachments")),
    )


def conversation_from_wire(payload: Any, ticket_id: Optional[str] = None) -> TicketConversation:
    if isinstance(payload, list):
        payload = {"conversations": payload}
    if not isinstance(payload, dict):
        logger.warning("Received non-object conversation data from Desk365: %r", payload)
        payload = {}

    entries = payload.get("conversations")
    if not isinstance(entries, list):
        entries = []
    messages = tuple(message_from_wire(entry, ticket_id) for entry in entries)

    return TicketConversation(
        count=_as_int(_first(payload, "count"), len(messages)),
        agent_reply_count=_as_int(_first(payload, "agent_reply_count", "agentReplyCount")),
        contact_reply_count=_as_int(_first(payload, "contact_reply_count", "contactReplyCount")),
        public_note_count=_as_int(_first(payload, "public_note_count", "publicNoteCount")),
        private_note_count=_as_int(_first(payload, "private_note_count", "privateNoteCount")),
        forward_message_count=_as_int(_first(payload, "forward_message_count", "forwardMessageCount")),
        messages=messages,
    )


def paginated_from_wire(payload: Any, options: Optional[TicketFilterOptions] = None) -> PaginatedTickets:
    """Map a list response and echo the requested page and limit.

    The vendor answers with a whole tier (30/50/100) starting at the
    requested offset, so the first ``limit`` rows are exactly the page.
    """
    options = options or TicketFilterOptions()
    if not isinstance(payload, dict):
        logger.warning("Received non-object ticket list from Desk365: %r", payload)
        payload = {}

    rows = payload.get("tickets")
    if not isinstance(rows, list):
        rows = []
    tickets = tuple(ticket_from_wire(row) for row in rows[:options.limit])

    return PaginatedTickets(
        tickets=tickets,
        total=_as_int(_first(payload, "count", "total"), len(tickets)),
        page=options.page,
        limit=options.limit,
    )
