import asyncio
import json

import pytest

from helpdesk_mcp_server.handlers import TOOL_HANDLERS
from helpdesk_mcp_server.models import (
    PaginatedTickets,
    Ticket,
    TicketMessage,
    TicketPriority,
    TicketStatus,
)

TICKET = Ticket(id="42", subject="Broken", description="d", requester_email="user@example.com")
MESSAGE = TicketMessage(id="7", ticket_id="42", body="ok", sender_email="agent@example.com")


class RecordingClient:
    """Stands in for a SupportApi implementation and records calls."""

    def __init__(self):
        self.calls = []

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))

    async def list_user_tickets(self, user_email, options=None):
        self._record("list_user_tickets", user_email, options)
        return PaginatedTickets(tickets=(TICKET,), total=1, page=options.page, limit=options.limit)

    async def search_tickets(self, options):
        self._record("search_tickets", options)
        return PaginatedTickets()

    async def respond_to_ticket(self, request):
        self._record("respond_to_ticket", request)
        return MESSAGE

    async def respond_to_ticket_with_attachments(self, request, attachments):
        self._record("respond_to_ticket_with_attachments", request, attachments)
        return MESSAGE

    async def escalate_ticket(self, ticket_id, priority):
        self._record("escalate_ticket", ticket_id, priority)
        return TICKET

    async def update_ticket(self, request):
        self._record("update_ticket", request)
        return TICKET


def _call(name, arguments, client=None):
    client = client or RecordingClient()
    result = asyncio.run(TOOL_HANDLERS[name](client, arguments))
    return client, json.loads(result[0].text)


def test_registry_covers_every_operation():
    assert set(TOOL_HANDLERS) == {
        "validate_config",
        "create_ticket",
        "list_user_tickets",
        "list_assigned_tickets",
        "search_tickets",
        "get_ticket_details",
        "get_ticket_conversations",
        "respond_to_ticket",
        "add_note",
        "assign_ticket",
        "escalate_ticket",
        "update_ticket",
        "close_ticket",
        "reopen_ticket",
    }


def test_list_user_tickets_passes_paging_options():
    client, payload = _call("list_user_tickets", {"user_email": "user@example.com", "page": 2, "limit": 50})

    name, (email, options), _ = client.calls[0]
    assert email == "user@example.com"
    assert options.page == 2
    assert options.limit == 50
    assert payload["tickets"][0]["id"] == "42"
    assert payload["total_pages"] == 1


def test_search_tickets_builds_enum_filters():
    client, _ = _call("search_tickets", {"status": "pending", "priority": "high", "sort_by": "priority"})

    options = client.calls[0][1][0]
    assert options.status is TicketStatus.PENDING
    assert options.priority is TicketPriority.HIGH


def test_respond_routes_to_attachment_variant_when_files_given():
    client, payload = _call("respond_to_ticket", {
        "ticket_id": 42,
        "message": "see attached",
        "attachments": ["/tmp/report.txt"],
    })

    name, (request, attachments), _ = client.calls[0]
    assert name == "respond_to_ticket_with_attachments"
    assert request.ticket_id == "42"
    assert attachments == ["/tmp/report.txt"]
    assert payload["reply"]["id"] == "7"


def test_respond_without_files_uses_plain_reply():
    client, _ = _call("respond_to_ticket", {"ticket_id": "42", "message": "hi"})

    assert client.calls[0][0] == "respond_to_ticket"


def test_escalate_converts_priority():
    client, payload = _call("escalate_ticket", {"ticket_id": "42", "priority": "urgent"})

    assert client.calls[0][1] == ("42", TicketPriority.URGENT)
    assert payload["message"] == "Ticket priority updated"


def test_update_ticket_only_forwards_given_fields():
    client, _ = _call("update_ticket", {"ticket_id": "42", "status": "closed"})

    request = client.calls[0][1][0]
    assert request.status is TicketStatus.CLOSED
    assert request.priority is None
    assert request.assignee_email is None


@pytest.mark.parametrize("name,arguments", [
    ("create_ticket", {"subject": "s", "description": "d"}),
    ("assign_ticket", {"ticket_id": "42"}),
    ("close_ticket", None),
])
def test_missing_arguments_are_rejected(name, arguments):
    with pytest.raises(ValueError):
        asyncio.run(TOOL_HANDLERS[name](RecordingClient(), arguments))
