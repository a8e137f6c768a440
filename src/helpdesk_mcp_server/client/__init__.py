"""Desk365Client - composed from base and specialized mixins."""
from helpdesk_mcp_server.client.base import ClientConfig, Desk365ClientBase
from helpdesk_mcp_server.client.tickets import TicketMixin
from helpdesk_mcp_server.client.attachments import AttachmentsMixin


class Desk365Client(
    Desk365ClientBase,
    TicketMixin,
    AttachmentsMixin,
):
    """
    Desk365 implementation of the normalized helpdesk API.

    All methods are available through multiple inheritance from the mixins.
    The client keeps no per-call state, so one instance can serve
    concurrent callers.
    """
    pass


__all__ = ['ClientConfig', 'Desk365Client']
