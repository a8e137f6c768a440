import json

import pytest
from pydantic import ValidationError

from helpdesk_mcp_server.client import codec
from helpdesk_mcp_server.models import (
    PaginatedTickets,
    SortKey,
    SortOrder,
    TicketAttachment,
    TicketFilterOptions,
    TicketMessage,
    TicketPriority,
    TicketStatus,
    UpdateTicketRequest,
)


@pytest.mark.parametrize("priority,wire", [
    (TicketPriority.LOW, 1),
    (TicketPriority.MEDIUM, 5),
    (TicketPriority.HIGH, 10),
    (TicketPriority.URGENT, 20),
])
def test_priority_levels_map_both_ways(priority, wire):
    assert codec.priority_to_wire(priority) == wire
    assert codec.priority_from_wire(wire) is priority


def test_priority_defaults_to_medium():
    assert codec.priority_to_wire(None) == 5
    assert codec.priority_from_wire("10") is TicketPriority.HIGH
    for value in (7, None, True, "urgent", ""):
        assert codec.priority_from_wire(value) is TicketPriority.MEDIUM


def test_status_from_wire_is_case_insensitive_and_falls_back_to_open():
    assert codec.status_from_wire("Closed") is TicketStatus.CLOSED
    assert codec.status_from_wire(" resolved ") is TicketStatus.RESOLVED
    assert codec.status_from_wire("on hold") is TicketStatus.OPEN
    assert codec.status_from_wire(None) is TicketStatus.OPEN


@pytest.mark.parametrize("limit,tier", [
    (1, 30), (30, 30), (31, 50), (50, 50), (51, 100), (100, 100), (101, 100),
])
def test_ticket_count_snaps_to_vendor_tiers(limit, tier):
    assert codec.ticket_count_for(limit) == tier


def test_list_params_default_page():
    assert codec.list_params_to_wire(TicketFilterOptions()) == {"offset": 0, "ticket_count": 30}


def test_list_params_use_requested_limit_for_offset():
    params = codec.list_params_to_wire(TicketFilterOptions(page=3, limit=20))

    assert params["offset"] == 40
    assert params["ticket_count"] == 30


def test_list_params_sorting_and_flags():
    options = TicketFilterOptions(
        sort_by=SortKey.UPDATED_AT,
        sort_order=SortOrder.DESC,
        include_description=True,
        include_custom_fields=True,
    )
    params = codec.list_params_to_wire(options)

    assert params["order_by"] == "updated_time"
    assert params["order_type"] == "desc"
    assert params["include_description"] == 1
    assert params["include_custom_fields"] == 1

    priority_sort = codec.list_params_to_wire(TicketFilterOptions(sort_by=SortKey.PRIORITY))
    assert priority_sort["order_by"] == "priority"
    assert "order_type" not in priority_sort


def test_filters_are_a_single_compact_json_string():
    options = TicketFilterOptions(requester_email="user@example.com")
    assert codec.filters_to_wire(options) == '{"contact":["user@example.com"]}'

    options = TicketFilterOptions(
        assignee_email="agent@example.com",
        status=TicketStatus.PENDING,
        priority=TicketPriority.HIGH,
    )
    assert json.loads(codec.filters_to_wire(options)) == {
        "assigned_to": ["agent@example.com"],
        "status": ["pending"],
        "priority": ["10"],
    }
    assert codec.filters_to_wire(TicketFilterOptions()) is None


def test_filter_options_reject_non_positive_paging():
    with pytest.raises(ValidationError):
        TicketFilterOptions(page=0)
    with pytest.raises(ValidationError):
        TicketFilterOptions(limit=0)


def test_update_body_holds_only_supplied_fields():
    body = codec.update_to_wire(UpdateTicketRequest(ticket_id="1", priority=TicketPriority.URGENT))
    assert body == {"priority": 20}

    body = codec.update_to_wire(UpdateTicketRequest(
        ticket_id="1", status=TicketStatus.CLOSED, assignee_email="agent@example.com"
    ))
    assert body == {"status": "closed", "assign_to": "agent@example.com"}


def test_ticket_from_wire_maps_vendor_fields():
    ticket = codec.ticket_from_wire({
        "ticket_number": 12345,
        "subject": "Printer on fire",
        "description": "Smoke everywhere",
        "status": "Pending",
        "priority": 20,
        "contact_email": "user@example.com",
        "assigned_to": "agent@example.com",
        "created_on": "2024-03-01T10:00:00Z",
        "updated_on": "2024-03-02T10:00:00Z",
        "attachments": [{"file_name": "smoke.jpg", "size": 2048, "content_type": "image/jpeg"}],
    })

    assert ticket.id == "12345"
    assert ticket.status is TicketStatus.PENDING
    assert ticket.priority is TicketPriority.URGENT
    assert ticket.requester_email == "user@example.com"
    assert ticket.assignee_email == "agent@example.com"
    assert ticket.created_at == "2024-03-01T10:00:00Z"
    assert ticket.updated_at == "2024-03-02T10:00:00Z"
    assert ticket.attachments == (
        TicketAttachment(filename="smoke.jpg", size=2048, content_type="image/jpeg"),
    )


def test_ticket_from_wire_accepts_alternate_field_names():
    ticket = codec.ticket_from_wire({
        "id": "77",
        "subject": "Alt names",
        "email": "other@example.com",
        "assign_to": "agent@example.com",
        "created_time": "2024-01-01",
        "updated_time": "2024-01-02",
    })

    assert ticket.id == "77"
    assert ticket.requester_email == "other@example.com"
    assert ticket.assignee_email == "agent@example.com"
    assert ticket.created_at == "2024-01-01"
    assert ticket.updated_at == "2024-01-02"


@pytest.mark.parametrize("payload", [{}, None, "oops", []])
def test_ticket_from_wire_fills_sentinels_for_degraded_payloads(payload):
    ticket = codec.ticket_from_wire(payload)

    assert ticket.id == "unknown"
    assert ticket.subject == "Unknown Subject"
    assert ticket.description == "No description available"
    assert ticket.requester_email == "unknown@example.com"
    assert ticket.status is TicketStatus.OPEN
    assert ticket.priority is TicketPriority.MEDIUM
    assert ticket.assignee_email is None
    assert ticket.attachments == ()


def test_message_from_wire_reads_camel_case_conversation_entries():
    message = codec.message_from_wire({
        "id": 9,
        "ticketNumber": 42,
        "bodyText": "Have you tried turning it off?",
        "createdBy": "agent@example.com",
        "senderType": "Agent",
        "createdOn": "2024-03-01",
        "attachments": [{"fileName": "log.txt", "fileSize": 12, "fileType": "text/plain"}],
    })

    assert message.id == "9"
    assert message.ticket_id == "42"
    assert message.body == "Have you tried turning it off?"
    assert message.sender_email == "agent@example.com"
    assert message.is_staff is True
    assert message.attachments[0].filename == "log.txt"
    assert message.attachments[0].content_type == "text/plain"


def test_message_from_wire_uses_ticket_id_fallback():
    message = codec.message_from_wire({"content": "hi", "email": "user@example.com"}, "42")

    assert message.ticket_id == "42"
    assert message.id == "unknown"
    assert message.is_staff is False


def test_conversation_from_wire_keeps_counters():
    conversation = codec.conversation_from_wire({
        "count": 2,
        "agentReplyCount": 1,
        "contact_reply_count": 1,
        "privateNoteCount": 0,
        "conversations": [
            {"id": 1, "content": "help", "email": "user@example.com"},
            {"id": 2, "content": "on it", "email": "agent@example.com", "is_agent": True},
        ],
    }, "42")

    assert conversation.count == 2
    assert conversation.agent_reply_count == 1
    assert conversation.contact_reply_count == 1
    assert [m.body for m in conversation.messages] == ["help", "on it"]
    assert all(m.ticket_id == "42" for m in conversation.messages)


def test_conversation_from_wire_accepts_bare_list():
    conversation = codec.conversation_from_wire([{"id": 1, "content": "hi"}], "42")

    assert conversation.count == 1
    assert conversation.messages[0].body == "hi"


def test_ticket_details_collect_conversation_attachments():
    message = TicketMessage(
        id="1",
        ticket_id="42",
        body="see file",
        sender_email="user@example.com",
        attachments=(TicketAttachment(filename="trace.log"),),
    )
    details = codec.ticket_details_from_wire(
        {"ticket_number": 42, "attachments": [{"file_name": "screen.png"}]}, (message,)
    )

    assert [a.filename for a in details.attachments] == ["screen.png", "trace.log"]
    assert details.conversation == (message,)


def test_paginated_from_wire_trims_to_limit_and_echoes_paging():
    rows = [{"ticket_number": n, "subject": f"Ticket {n}"} for n in range(30)]
    page = codec.paginated_from_wire({"tickets": rows, "count": 45}, TicketFilterOptions(page=2, limit=10))

    assert len(page.tickets) == 10
    assert page.tickets[0].id == "0"
    assert page.total == 45
    assert page.page == 2
    assert page.limit == 10
    assert page.total_pages == 5
    assert page.model_dump()["total_pages"] == 5


def test_paginated_from_wire_handles_missing_rows():
    page = codec.paginated_from_wire("not json", TicketFilterOptions())

    assert page.tickets == ()
    assert page.total == 0
    assert page.total_pages == 0


def test_total_pages_rounds_up():
    assert PaginatedTickets(total=61, limit=30).total_pages == 3
    assert PaginatedTickets(total=60, limit=30).total_pages == 2
