"""Tool handler registry."""
from helpdesk_mcp_server.handlers import tools

# Registry mapping tool names to handler functions
TOOL_HANDLERS = {
    "validate_config": tools.handle_validate_config,
    "create_ticket": tools.handle_create_ticket,
    "list_user_tickets": tools.handle_list_user_tickets,
    "list_assigned_tickets": tools.handle_list_assigned_tickets,
    "search_tickets": tools.handle_search_tickets,
    "get_ticket_details": tools.handle_get_ticket_details,
    "get_ticket_conversations": tools.handle_get_ticket_conversations,
    "respond_to_ticket": tools.handle_respond_to_ticket,
    "add_note": tools.handle_add_note,
    "assign_ticket": tools.handle_assign_ticket,
    "escalate_ticket": tools.handle_escalate_ticket,
    "update_ticket": tools.handle_update_ticket,
    "close_ticket": tools.handle_close_ticket,
    "reopen_ticket": tools.handle_reopen_ticket,
}

__all__ = ['TOOL_HANDLERS']
