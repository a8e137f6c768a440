"""Provider-agnostic helpdesk API.

Callers depend on :class:`SupportApi` and obtain an implementation from
:func:`create_support_api`; only Desk365 is implemented today.
"""
from enum import Enum
from typing import List, Optional, Protocol, Sequence, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict

from helpdesk_mcp_server.client import Desk365Client
from helpdesk_mcp_server.exceptions import SupportConfigurationError
from helpdesk_mcp_server.models import (
    CreateTicketRequest,
    PaginatedTickets,
    Ticket,
    TicketDetails,
    TicketFilterOptions,
    TicketMessage,
    TicketNoteRequest,
    TicketPriority,
    TicketResponseRequest,
    UpdateTicketRequest,
    ValidationResult,
)


class SupportProvider(str, Enum):
    DESK365 = "desk365"


@runtime_checkable
class SupportApi(Protocol):
    """Normalized ticket lifecycle operations every provider client offers."""

    async def validate_config(self) -> ValidationResult:
        ...

    # Requester operations
    async def create_ticket(self, request: CreateTicketRequest) -> Ticket:
        ...

    async def list_user_tickets(
        self, user_email: str, options: Optional[TicketFilterOptions] = None
    ) -> PaginatedTickets:
        ...

    async def search_tickets(self, options: TicketFilterOptions) -> PaginatedTickets:
        ...

    async def get_ticket_details(self, ticket_id: str, include_conversation: bool = False) -> TicketDetails:
        ...

    async def get_ticket_conversations(self, ticket_id: str) -> List[TicketMessage]:
        ...

    async def respond_to_ticket(self, request: TicketResponseRequest) -> TicketMessage:
        ...

    async def respond_to_ticket_with_attachments(
        self, request: TicketResponseRequest, attachments: Sequence
    ) -> TicketMessage:
        ...

    async def close_ticket(self, ticket_id: str) -> Ticket:
        ...

    async def reopen_ticket(self, ticket_id: str) -> Ticket:
        ...

    # Agent operations
    async def list_assigned_tickets(
        self, admin_email: str, options: Optional[TicketFilterOptions] = None
    ) -> PaginatedTickets:
        ...

    async def add_note(self, request: TicketNoteRequest) -> TicketMessage:
        ...

    async def add_note_with_attachments(self, request: TicketNoteRequest, attachments: Sequence) -> TicketMessage:
        ...

    async def assign_ticket(self, ticket_id: str, assignee_email: str) -> Ticket:
        ...

    async def escalate_ticket(self, ticket_id: str, priority: TicketPriority) -> Ticket:
        ...

    async def update_ticket(self, request: UpdateTicketRequest) -> Ticket:
        ...


class SupportApiConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: Union[SupportProvider, str] = SupportProvider.DESK365
    base_url: str
    api_key: str
    verbose: bool = False
    timeout: float = 30.0


def create_support_api(config: SupportApiConfig) -> SupportApi:
    """Build the client for ``config.provider``.

    Raises:
        SupportConfigurationError: if the provider is not supported
    """
    try:
        provider = SupportProvider(config.provider)
    except ValueError:
        raise SupportConfigurationError(f"Unsupported support provider: {config.provider}")

    if provider is SupportProvider.DESK365:
        return Desk365Client(
            base_url=config.base_url,
            api_key=config.api_key,
            verbose=config.verbose,
            timeout=config.timeout,
        )
    raise SupportConfigurationError(f"Unsupported support provider: {config.provider}")
