"""Normalized, provider-neutral data model for helpdesk tickets."""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


class TicketStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    PENDING = "pending"
    RESOLVED = "resolved"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class SortKey(str, Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    PRIORITY = "priority"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class HelpdeskModel(BaseModel):
    """Base model for all normalized helpdesk values.

    Instances are immutable once constructed.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")


class TicketAttachment(HelpdeskModel):
    """A file attached to a ticket or to one of its messages."""

    filename: str
    size: int = 0
    content_type: str = "application/octet-stream"
    created_at: str = ""
    url: str = ""


class Ticket(HelpdeskModel):
    """Represents a support ticket."""

    id: str
    subject: str
    description: str
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MEDIUM
    requester_email: str
    assignee_email: Optional[str] = None
    # Vendor timestamp strings are kept verbatim.
    created_at: str = ""
    updated_at: str = ""
    attachments: Tuple[TicketAttachment, ...] = ()


class TicketMessage(HelpdeskModel):
    """Represents a message in a ticket conversation."""

    id: str
    ticket_id: str
    body: str
    sender_email: str
    is_staff: bool = False
    created_at: str = ""
    attachments: Tuple[TicketAttachment, ...] = ()


class TicketDetails(Ticket):
    """A ticket plus its conversation, when one was fetched."""

    conversation: Tuple[TicketMessage, ...] = ()


class TicketConversation(HelpdeskModel):
    """Conversation history with the vendor's per-kind counters."""

    count: int = 0
    agent_reply_count: int = 0
    contact_reply_count: int = 0
    public_note_count: int = 0
    private_note_count: int = 0
    forward_message_count: int = 0
    messages: Tuple[TicketMessage, ...] = ()


class TicketFilterOptions(HelpdeskModel):
    """Filtering, paging and sorting options for ticket listings."""

    requester_email: Optional[str] = None
    assignee_email: Optional[str] = None
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=30, ge=1)
    sort_by: Optional[SortKey] = None
    sort_order: Optional[SortOrder] = None
    include_description: bool = False
    include_custom_fields: bool = False


class PaginatedTickets(HelpdeskModel):
    """One page of tickets with the totals needed to walk the rest."""

    tickets: Tuple[Ticket, ...] = ()
    total: int = 0
    page: int = 1
    limit: int = 30

    @computed_field
    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class CreateTicketRequest(HelpdeskModel):
    subject: str
    description: str
    requester_email: str
    priority: Optional[TicketPriority] = None
    custom_fields: Optional[Dict[str, str]] = None


class TicketResponseRequest(HelpdeskModel):
    """A reply sent to the requester on an existing ticket.

    ``cc_emails`` and ``bcc_emails`` are comma-separated address lists.
    """

    ticket_id: str
    message: str
    cc_emails: Optional[str] = None
    bcc_emails: Optional[str] = None
    agent_email: Optional[str] = None
    from_email: Optional[str] = None
    include_previous_ccs: bool = False
    include_previous_messages: bool = False


class TicketNoteRequest(HelpdeskModel):
    ticket_id: str
    note: str
    is_private: bool = True
    agent_email: Optional[str] = None
    notify_emails: Optional[str] = None


class UpdateTicketRequest(HelpdeskModel):
    """Partial ticket update; only the fields that are set are sent."""

    ticket_id: str
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assignee_email: Optional[str] = None


class ValidationResult(HelpdeskModel):
    """Outcome of the pre-flight connectivity check."""

    success: bool
    message: str


@dataclass(frozen=True)
class LocalPath:
    """An attachment read from the local file system."""

    path: str


@dataclass(frozen=True)
class InMemoryBlob:
    """An attachment whose bytes are already in memory."""

    content: bytes
    filename: str
    content_type: Optional[str] = None


AttachmentSource = Union[LocalPath, InMemoryBlob]
