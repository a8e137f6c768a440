"""Ticket-related methods for Desk365Client."""
import logging
from typing import Any, Dict, List, Optional

from helpdesk_mcp_server.client import codec
from helpdesk_mcp_server.client.outcomes import RecoverableRejection, Success
from helpdesk_mcp_server.exceptions import SupportValidationError
from helpdesk_mcp_server.models import (
    CreateTicketRequest,
    PaginatedTickets,
    SortKey,
    SortOrder,
    Ticket,
    TicketConversation,
    TicketDetails,
    TicketFilterOptions,
    TicketMessage,
    TicketNoteRequest,
    TicketPriority,
    TicketResponseRequest,
    TicketStatus,
    UpdateTicketRequest,
)

logger = logging.getLogger(__name__)

UPDATE_ENDPOINT = "/tickets/update"


def reply_to_wire(request: TicketResponseRequest) -> Dict[str, Any]:
    return codec.without_none({
        "body": request.message,
        "cc_emails": request.cc_emails,
        "bcc_emails": request.bcc_emails,
        "agent_email": request.agent_email,
        "from_email": request.from_email,
        "include_prev_ccs": codec.flag(request.include_previous_ccs),
        "include_prev_messages": codec.flag(request.include_previous_messages),
    })


def note_to_wire(request: TicketNoteRequest) -> Dict[str, Any]:
    return codec.without_none({
        "body": request.note,
        "agent_email": request.agent_email,
        "notify_emails": request.notify_emails,
        "private_note": codec.flag(request.is_private),
    })


class TicketMixin:
    """Mixin providing ticket-related methods."""

    async def create_ticket(self, request: CreateTicketRequest) -> Ticket:
        """Create a ticket; the create response is the source of its identifier."""
        body: Dict[str, Any] = {
            "subject": request.subject,
            "description": request.description,
            "priority": codec.priority_to_wire(request.priority),
            "contact_email": request.requester_email,
        }
        if request.custom_fields:
            body["custom_fields"] = dict(request.custom_fields)

        response = await self._request("POST", "/tickets/create", body=body)
        ticket = codec.ticket_from_wire(response)
        if ticket.id != codec.UNKNOWN_ID:
            return ticket

        # Desk365 has been seen to answer a successful create without the
        # ticket number; look for it among the requester's newest tickets.
        logger.warning(
            "Create response carried no ticket number; searching recent tickets of %s",
            request.requester_email,
        )
        recent = await self.list_user_tickets(
            request.requester_email,
            TicketFilterOptions(sort_by=SortKey.CREATED_AT, sort_order=SortOrder.DESC),
        )
        for candidate in recent.tickets:
            if candidate.subject == request.subject:
                logger.info("Found created ticket with ID: %s", candidate.id)
                return candidate
        return ticket

    async def list_tickets(self, options: Optional[TicketFilterOptions] = None) -> PaginatedTickets:
        options = options or TicketFilterOptions()
        params = codec.list_params_to_wire(options)
        response = await self._request("GET", "/tickets", params=params)
        return codec.paginated_from_wire(response, options)

    async def list_user_tickets(
        self, user_email: str, options: Optional[TicketFilterOptions] = None
    ) -> PaginatedTickets:
        """List tickets raised by ``user_email``."""
        options = (options or TicketFilterOptions()).model_copy(
            update={"requester_email": user_email, "assignee_email": None, "status": None, "priority": None}
        )
        return await self.list_tickets(options)

    async def list_assigned_tickets(
        self, admin_email: str, options: Optional[TicketFilterOptions] = None
    ) -> PaginatedTickets:
        """List tickets assigned to ``admin_email``."""
        options = (options or TicketFilterOptions()).model_copy(
            update={"requester_email": None, "assignee_email": admin_email, "status": None, "priority": None}
        )
        return await self.list_tickets(options)

    async def search_tickets(self, options: TicketFilterOptions) -> PaginatedTickets:
        """Search with every filter predicate set on ``options``."""
        return await self.list_tickets(options)

    async def get_ticket_details(self, ticket_id: str, include_conversation: bool = False) -> TicketDetails:
        """Fetch one ticket.

        The conversation lives behind a separate endpoint and is only fetched
        when ``include_conversation`` is set.
        """
        response = await self._request("GET", "/tickets/details", params={"ticket_number": ticket_id})
        conversation: tuple = ()
        if include_conversation:
            conversation = (await self.get_ticket_conversation(ticket_id)).messages
        return codec.ticket_details_from_wire(response, conversation)

    async def get_ticket_conversation(self, ticket_id: str) -> TicketConversation:
        response = await self._request(
            "GET", "/tickets/conversations", params={"ticket_number": ticket_id}
        )
        return codec.conversation_from_wire(response, ticket_id)

    async def get_ticket_conversations(self, ticket_id: str) -> List[TicketMessage]:
        return list((await self.get_ticket_conversation(ticket_id)).messages)

    async def respond_to_ticket(self, request: TicketResponseRequest) -> TicketMessage:
        response = await self._request(
            "POST",
            "/tickets/add_reply",
            params={"ticket_number": request.ticket_id},
            body=reply_to_wire(request),
        )
        return codec.message_from_wire(response, request.ticket_id)

    async def add_note(self, request: TicketNoteRequest) -> TicketMessage:
        response = await self._request(
            "POST",
            "/tickets/add_note",
            params={"ticket_number": request.ticket_id},
            body=note_to_wire(request),
        )
        return codec.message_from_wire(response, request.ticket_id)

    async def _update(self, ticket_id: str, body: Dict[str, Any], action: str) -> Ticket:
        """PUT to the update endpoint; a 405 is reported as a known limitation."""
        outcome = await self._call("PUT", UPDATE_ENDPOINT, params={"ticket_number": ticket_id}, body=body)
        if isinstance(outcome, RecoverableRejection):
            logger.warning(
                "Desk365 returned 405 Method Not Allowed for %s. The API may not support this "
                "operation; consider using the Desk365 web interface instead.",
                action,
            )
        return codec.ticket_from_wire(outcome.unwrap())

    async def close_ticket(self, ticket_id: str) -> Ticket:
        return await self._update(ticket_id, {"status": codec.status_to_wire(TicketStatus.CLOSED)}, "closing tickets")

    async def reopen_ticket(self, ticket_id: str) -> Ticket:
        return await self._update(ticket_id, {"status": codec.status_to_wire(TicketStatus.OPEN)}, "reopening tickets")

    async def escalate_ticket(self, ticket_id: str, priority: TicketPriority) -> Ticket:
        body = {"priority": codec.priority_to_wire(priority)}
        return await self._update(ticket_id, body, "changing ticket priority")

    async def update_ticket(self, request: UpdateTicketRequest) -> Ticket:
        body = codec.update_to_wire(request)
        if not body:
            raise SupportValidationError("Nothing to update: set status, priority or assignee_email")
        return await self._update(request.ticket_id, body, "updating tickets")

    async def assign_ticket(self, ticket_id: str, assignee_email: str) -> Ticket:
        """Assign a ticket to an agent.

        Assignment is the one update Desk365 also accepts over POST, so a 405
        on PUT is retried once with the identical request.
        """
        params = {"ticket_number": ticket_id}
        body = {"assign_to": assignee_email}

        outcome = await self._call("PUT", UPDATE_ENDPOINT, params=params, body=body)
        if isinstance(outcome, RecoverableRejection):
            logger.warning("Desk365 rejected PUT for assignment (405); retrying with POST")
            outcome = await self._call("POST", UPDATE_ENDPOINT, params=params, body=body)
            if isinstance(outcome, Success):
                logger.info("Assignment via POST fallback succeeded")
            else:
                logger.error(
                    "Assignment failed with POST as well; the operation may not be supported "
                    "by the Desk365 API. Consider using the Desk365 web interface."
                )
        return codec.ticket_from_wire(outcome.unwrap())
