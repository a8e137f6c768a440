import asyncio
import json
import logging
import os
from typing import Any, Dict

from cachetools import TTLCache
from dotenv import load_dotenv
from mcp.server import InitializationOptions, NotificationOptions
from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server
from pydantic import AnyUrl

from helpdesk_mcp_server.support_api import SupportApi, SupportApiConfig, create_support_api

LOGGER_NAME = "helpdesk_mcp_server"
logger = logging.getLogger(LOGGER_NAME)

REQUIRED_ENV_VARS: dict[str, str] = {
    "DESK365_API_URL": "Desk365 API root, e.g. https://your-subdomain.desk365.io/apis",
    "DESK365_API_KEY": "Desk365 API key for that subdomain",
}
OPTIONAL_ENV_VARS: dict[str, str] = {
    "SUPPORT_PROVIDER": "desk365",
    "SUPPORT_VERBOSE": "false",
}

CONNECTION_RESOURCE_URI = "helpdesk://connection"


def load_settings() -> dict[str, str]:
    """Validate required environment variables and return their values."""
    missing: list[str] = []
    values: dict[str, str] = {}

    for key, description in REQUIRED_ENV_VARS.items():
        value = os.getenv(key)
        if value:
            values[key] = value
        else:
            missing.append(f"{key} ({description})")

    if missing:
        detail = ", ".join(missing)
        raise RuntimeError(
            f"Missing required environment variables: {detail}. "
            "Populate .env or export them before launching the server."
        )

    for key, default in OPTIONAL_ENV_VARS.items():
        values[key] = os.getenv(key) or default

    return values


def _is_truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


TICKET_ANALYSIS_TEMPLATE = """
You are a helpful support analyst. You've been asked to analyze ticket #{ticket_id}.

Please fetch the ticket details together with its conversation and provide:
1. A summary of the issue
2. The current status, priority and timeline
3. Key points of interaction between the requester and staff

Remember to be professional and focus on actionable insights.
"""

RESPONSE_DRAFT_TEMPLATE = """
You are a helpful support agent. You need to draft a response to ticket #{ticket_id}.

Please fetch the ticket details and its conversation to draft a professional and helpful response that:
1. Acknowledges the customer's concern
2. Addresses the specific issues raised
3. Provides clear next steps or asks for the specific details needed to proceed
4. Maintains a friendly and professional tone
5. Asks for confirmation before replying on the ticket

The response should be formatted well and ready to be sent with respond_to_ticket.
"""


load_dotenv()
_settings_cache: dict[str, str] | None = None
_support_client: SupportApi | None = None
_connection_cache: TTLCache = TTLCache(maxsize=1, ttl=300)


def get_settings() -> dict[str, str]:
    """Return cached settings, loading them on first use."""
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = load_settings()
    return _settings_cache


def get_support_client() -> SupportApi:
    """Instantiate the helpdesk client lazily so imports succeed in test environments."""
    global _support_client
    if _support_client is None:
        settings = get_settings()
        _support_client = create_support_api(SupportApiConfig(
            provider=settings["SUPPORT_PROVIDER"],
            base_url=settings["DESK365_API_URL"],
            api_key=settings["DESK365_API_KEY"],
            verbose=_is_truthy(settings["SUPPORT_VERBOSE"]),
        ))
    return _support_client


def _reset_client_cache_for_tests() -> None:
    """Clear cached settings/client; intended for use in unit tests."""
    global _settings_cache, _support_client
    _settings_cache = None
    _support_client = None
    _connection_cache.clear()


server = Server("Helpdesk Server")

@server.list_prompts()
async def handle_list_prompts() -> list[types.Prompt]:
    """List available prompts"""
    return [
        types.Prompt(
            name="analyze-ticket",
            description="Analyze a helpdesk ticket and provide insights",
            arguments=[
                types.PromptArgument(
                    name="ticket_id",
                    description="The ID of the ticket to analyze",
                    required=True,
                )
            ],
        ),
        types.Prompt(
            name="draft-ticket-response",
            description="Draft a professional response to a helpdesk ticket",
            arguments=[
                types.PromptArgument(
                    name="ticket_id",
                    description="The ID of the ticket to respond to",
                    required=True,
                )
            ],
        )
    ]


@server.get_prompt()
async def handle_get_prompt(name: str, arguments: Dict[str, str] | None) -> types.GetPromptResult:
    """Handle prompt requests"""
    if not arguments or "ticket_id" not in arguments:
        raise ValueError("Missing required argument: ticket_id")

    ticket_id = str(arguments["ticket_id"])
    try:
        if name == "analyze-ticket":
            prompt = TICKET_ANALYSIS_TEMPLATE.format(ticket_id=ticket_id)
            description = f"Analysis prompt for ticket #{ticket_id}"

        elif name == "draft-ticket-response":
            prompt = RESPONSE_DRAFT_TEMPLATE.format(ticket_id=ticket_id)
            description = f"Response draft prompt for ticket #{ticket_id}"

        else:
            raise ValueError(f"Unknown prompt: {name}")

        return types.GetPromptResult(
            description=description,
            messages=[
                types.PromptMessage(
                    role="user",
                    content=types.TextContent(type="text", text=prompt.strip()),
                )
            ],
        )

    except Exception as e:
        logger.error(f"Error generating prompt: {e}")
        raise


_STATUS_VALUES = ["open", "closed", "pending", "resolved"]
_PRIORITY_VALUES = ["low", "medium", "high", "urgent"]

_LISTING_PROPERTIES: dict[str, Any] = {
    "page": {"type": "integer", "description": "Page number (1-based)", "default": 1},
    "limit": {
        "type": "integer",
        "description": "Tickets per page. Desk365 serves 30, 50 or 100 rows per call",
        "default": 30,
    },
    "sort_by": {"type": "string", "enum": ["created_at", "updated_at", "priority"]},
    "sort_order": {"type": "string", "enum": ["asc", "desc"]},
    "include_description": {"type": "boolean", "default": False},
    "include_custom_fields": {"type": "boolean", "default": False},
}

_ATTACHMENTS_PROPERTY: dict[str, Any] = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Local file paths to attach. Missing files are skipped.",
}


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available helpdesk tools"""
    return [
        types.Tool(
            name="validate_config",
            description="Check that the configured API key and subdomain can reach the helpdesk",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        types.Tool(
            name="create_ticket",
            description="Create a new helpdesk ticket on behalf of a requester",
            inputSchema={
                "type": "object",
                "properties": {
                    "subject": {"type": "string", "description": "Ticket subject"},
                    "description": {"type": "string", "description": "Ticket description"},
                    "requester_email": {"type": "string", "description": "Email of the requester"},
                    "priority": {"type": "string", "enum": _PRIORITY_VALUES},
                    "custom_fields": {"type": "object", "additionalProperties": {"type": "string"}},
                },
                "required": ["subject", "description", "requester_email"],
            }
        ),
        types.Tool(
            name="list_user_tickets",
            description="List tickets raised by a requester, with pagination",
            inputSchema={
                "type": "object",
                "properties": {
                    "user_email": {"type": "string", "description": "Requester email"},
                    **_LISTING_PROPERTIES,
                },
                "required": ["user_email"],
            }
        ),
        types.Tool(
            name="list_assigned_tickets",
            description="List tickets assigned to an agent, with pagination",
            inputSchema={
                "type": "object",
                "properties": {
                    "admin_email": {"type": "string", "description": "Agent email"},
                    **_LISTING_PROPERTIES,
                },
                "required": ["admin_email"],
            }
        ),
        types.Tool(
            name="search_tickets",
            description="Search tickets by requester, assignee, status and priority",
            inputSchema={
                "type": "object",
                "properties": {
                    "requester_email": {"type": "string"},
                    "assignee_email": {"type": "string"},
                    "status": {"type": "string", "enum": _STATUS_VALUES},
                    "priority": {"type": "string", "enum": _PRIORITY_VALUES},
                    **_LISTING_PROPERTIES,
                },
                "required": [],
            }
        ),
        types.Tool(
            name="get_ticket_details",
            description="Retrieve a ticket by its ID, optionally with its conversation",
            inputSchema={
                "type": "object",
                "properties": {
                    "ticket_id": {"type": "string", "description": "The ID of the ticket to retrieve"},
                    "include_conversation": {
                        "type": "boolean",
                        "description": "Also fetch the conversation (one extra API call)",
                        "default": False,
                    },
                },
                "required": ["ticket_id"]
            }
        ),
        types.Tool(
            name="get_ticket_conversations",
            description="Retrieve the conversation history of a ticket",
            inputSchema={
                "type": "object",
                "properties": {"ticket_id": {"type": "string"}},
                "required": ["ticket_id"]
            }
        ),
        types.Tool(
            name="respond_to_ticket",
            description="Send a reply on a ticket, optionally with file attachments",
            inputSchema={
                "type": "object",
                "properties": {
                    "ticket_id": {"type": "string"},
                    "message": {"type": "string", "description": "Reply body"},
                    "cc_emails": {"type": "string", "description": "Comma-separated CC addresses"},
                    "bcc_emails": {"type": "string", "description": "Comma-separated BCC addresses"},
                    "agent_email": {"type": "string"},
                    "from_email": {"type": "string"},
                    "include_previous_ccs": {"type": "boolean", "default": False},
                    "include_previous_messages": {"type": "boolean", "default": False},
                    "attachments": _ATTACHMENTS_PROPERTY,
                },
                "required": ["ticket_id", "message"]
            }
        ),
        types.Tool(
            name="add_note",
            description="Add an internal note to a ticket, optionally with file attachments",
            inputSchema={
                "type": "object",
                "properties": {
                    "ticket_id": {"type": "string"},
                    "note": {"type": "string"},
                    "is_private": {"type": "boolean", "default": True},
                    "agent_email": {"type": "string"},
                    "notify_emails": {"type": "string", "description": "Comma-separated addresses to notify"},
                    "attachments": _ATTACHMENTS_PROPERTY,
                },
                "required": ["ticket_id", "note"]
            }
        ),
        types.Tool(
            name="assign_ticket",
            description="Assign a ticket to an agent by email",
            inputSchema={
                "type": "object",
                "properties": {
                    "ticket_id": {"type": "string"},
                    "assignee_email": {"type": "string"},
                },
                "required": ["ticket_id", "assignee_email"]
            }
        ),
        types.Tool(
            name="escalate_ticket",
            description="Change the priority of a ticket",
            inputSchema={
                "type": "object",
                "properties": {
                    "ticket_id": {"type": "string"},
                    "priority": {"type": "string", "enum": _PRIORITY_VALUES},
                },
                "required": ["ticket_id", "priority"]
            }
        ),
        types.Tool(
            name="update_ticket",
            description="Update status, priority and/or assignee of a ticket; only given fields change",
            inputSchema={
                "type": "object",
                "properties": {
                    "ticket_id": {"type": "string"},
                    "status": {"type": "string", "enum": _STATUS_VALUES},
                    "priority": {"type": "string", "enum": _PRIORITY_VALUES},
                    "assignee_email": {"type": "string"},
                },
                "required": ["ticket_id"]
            }
        ),
        types.Tool(
            name="close_ticket",
            description="Close a ticket",
            inputSchema={
                "type": "object",
                "properties": {"ticket_id": {"type": "string"}},
                "required": ["ticket_id"]
            }
        ),
        types.Tool(
            name="reopen_ticket",
            description="Reopen a closed ticket",
            inputSchema={
                "type": "object",
                "properties": {"ticket_id": {"type": "string"}},
                "required": ["ticket_id"]
            }
        ),
    ]


@server.call_tool()
async def handle_call_tool(
        name: str,
        arguments: dict[str, Any] | None
) -> list[types.TextContent]:
    """Handle helpdesk tool execution requests"""
    try:
        from helpdesk_mcp_server.handlers import TOOL_HANDLERS

        client = get_support_client()

        # Dispatch to registered handler
        handler = TOOL_HANDLERS.get(name)
        if handler:
            return await handler(client, arguments)

        raise ValueError(f"Unknown tool: {name}")
    except Exception as e:
        logger.error(f"Tool {name} failed: {e}")
        return [types.TextContent(
            type="text",
            text=f"Error: {str(e)}"
        )]


@server.list_resources()
async def handle_list_resources() -> list[types.Resource]:
    logger.debug("Handling list_resources request")
    return [
        types.Resource(
            uri=AnyUrl(CONNECTION_RESOURCE_URI),
            name="Helpdesk connection status",
            description="Result of the connectivity check against the configured helpdesk",
            mimeType="application/json",
        )
    ]


async def get_connection_status() -> dict[str, Any]:
    """Run the connectivity check, reusing a result younger than five minutes."""
    status = _connection_cache.get("status")
    if status is None:
        result = await get_support_client().validate_config()
        status = result.model_dump(mode="json")
        _connection_cache["status"] = status
    return status


@server.read_resource()
async def handle_read_resource(uri: AnyUrl) -> str:
    logger.debug(f"Handling read_resource request for URI: {uri}")
    if uri.scheme != "helpdesk":
        logger.error(f"Unsupported URI scheme: {uri.scheme}")
        raise ValueError(f"Unsupported URI scheme: {uri.scheme}")

    path = str(uri).replace("helpdesk://", "")
    if path != "connection":
        logger.error(f"Unknown resource path: {path}")
        raise ValueError(f"Unknown resource path: {path}")

    try:
        status = await get_connection_status()
        return json.dumps({
            "connection": status,
            "metadata": {"base_url": get_settings()["DESK365_API_URL"]},
        }, indent=2)
    except Exception as e:
        logger.error(f"Error checking helpdesk connection: {e}")
        raise


def configure_logging() -> None:
    """Configure package logging without overriding host configuration."""
    if logger.handlers:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


async def main():
    configure_logging()
    logger.info("helpdesk mcp server started")
    # Run the server using stdin/stdout streams
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream=read_stream,
            write_stream=write_stream,
            initialization_options=InitializationOptions(
                server_name="Helpdesk",
                server_version="0.1.0",
                capabilities=server.get_capabilities(
                    notification_options=NotificationOptions(),
                    experimental_capabilities={},
                ),
            ),
        )


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
