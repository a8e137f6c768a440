#!/usr/bin/env python3
"""
Manual smoke test of the Desk365 client against a live helpdesk.

Environment variables:
    DESK365_API_URL   API root, e.g. https://your-subdomain.desk365.io/apis
    DESK365_API_KEY   API key for that subdomain
    TEST_USER_EMAIL   Requester used for the test ticket
    ADMIN_EMAIL       Optional second agent for the assignment round trip

Usage:
    uv run python scripts/smoke_client.py [--verbose|-v] [--log-to-file|-f]

Every step is attempted even when an earlier one fails; a summary is
printed at the end.
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from helpdesk_mcp_server.exceptions import SupportAPIError, SupportError
from helpdesk_mcp_server.models import (
    CreateTicketRequest,
    TicketFilterOptions,
    TicketNoteRequest,
    TicketPriority,
    TicketResponseRequest,
)
from helpdesk_mcp_server.support_api import SupportApiConfig, create_support_api

LOG_DIRECTORY = Path("logs")
logger = logging.getLogger("smoke_client")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Smoke test the Desk365 client")
    parser.add_argument("-v", "--verbose", action="store_true", help="log request parameters and bodies")
    parser.add_argument("-f", "--log-to-file", action="store_true", help="write a detailed log under logs/")
    return parser.parse_args(argv)


def configure_logging(verbose: bool, log_to_file: bool) -> Path | None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_file = None
    if log_to_file:
        LOG_DIRECTORY.mkdir(exist_ok=True)
        stamp = datetime.now().isoformat(timespec="seconds").replace(":", "-")
        log_file = LOG_DIRECTORY / f"desk365-test-{stamp}.log"
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )
    return log_file


def format_error(error: Exception) -> str:
    if isinstance(error, SupportAPIError):
        return str(error)
    return f"{type(error).__name__}: {error}"


class SmokeRun:
    """Runs independent steps and records which ones passed."""

    def __init__(self):
        self.results: list[tuple[str, bool, str]] = []

    async def step(self, name: str, coro):
        print(f"\n--> {name}")
        try:
            result = await coro
        except SupportError as e:
            logger.debug("Step %s failed", name, exc_info=True)
            print(f"FAILED: {format_error(e)}")
            self.results.append((name, False, format_error(e)))
            return None
        print("OK")
        self.results.append((name, True, ""))
        return result

    def summary(self) -> int:
        print("\n" + "=" * 80)
        print("SUMMARY")
        print("=" * 80)
        for name, ok, detail in self.results:
            print(f"{'PASS' if ok else 'FAIL'}  {name}{'  - ' + detail if detail else ''}")
        failed = sum(1 for _, ok, _ in self.results if not ok)
        print(f"\n{len(self.results) - failed} passed, {failed} failed")
        return 1 if failed else 0


async def run(args: argparse.Namespace) -> int:
    base_url = os.getenv("DESK365_API_URL")
    api_key = os.getenv("DESK365_API_KEY")
    user_email = os.getenv("TEST_USER_EMAIL", "test@example.com")
    admin_email = os.getenv("ADMIN_EMAIL")

    if not all([base_url, api_key]):
        print("Error: Missing required environment variables.")
        print("Please set DESK365_API_URL and DESK365_API_KEY")
        return 1

    client = create_support_api(SupportApiConfig(base_url=base_url, api_key=api_key, verbose=args.verbose))
    smoke = SmokeRun()

    print(f"API URL: {base_url}")
    print(f"Test user: {user_email}")

    validation = await client.validate_config()
    print(f"\nConfiguration check: {validation.message}")
    if not validation.success:
        print("The remaining steps will likely fail; continuing anyway.")

    await smoke.step("ping", client.ping())
    await smoke.step(
        "list user tickets",
        client.list_user_tickets(user_email, TicketFilterOptions(page=1, limit=1)),
    )

    ticket = await smoke.step("create ticket", client.create_ticket(CreateTicketRequest(
        subject="Test Ticket from API Wrapper",
        description="This is a test ticket created through the API wrapper.",
        priority=TicketPriority.MEDIUM,
        requester_email=user_email,
    )))
    if ticket is None:
        print("\nUnable to create ticket, skipping ticket-specific steps.")
        return smoke.summary()

    ticket_id = ticket.id
    print(f"Created ticket {ticket_id}")

    await smoke.step("get ticket details", client.get_ticket_details(ticket_id, include_conversation=True))
    await smoke.step("respond to ticket", client.respond_to_ticket(TicketResponseRequest(
        ticket_id=ticket_id,
        message="This is a test response from the API wrapper.",
        agent_email=user_email,
    )))

    LOG_DIRECTORY.mkdir(exist_ok=True)
    attachment = LOG_DIRECTORY / "test-attachment.txt"
    if not attachment.exists():
        attachment.write_text("This is a test attachment created for API testing purposes.")

    await smoke.step("respond with attachment", client.respond_to_ticket_with_attachments(
        TicketResponseRequest(
            ticket_id=ticket_id,
            message="This is a test response with an attachment.",
            agent_email=user_email,
        ),
        [str(attachment)],
    ))
    await smoke.step("add note with attachment", client.add_note_with_attachments(
        TicketNoteRequest(
            ticket_id=ticket_id,
            note="This is a test private note with an attachment.",
            agent_email=user_email,
        ),
        [str(attachment)],
    ))
    await smoke.step(
        "list assigned tickets",
        client.list_assigned_tickets(user_email, TicketFilterOptions(page=1, limit=10)),
    )

    if admin_email and admin_email != user_email:
        await smoke.step(f"assign to {admin_email}", client.assign_ticket(ticket_id, admin_email))
        await smoke.step(f"assign back to {user_email}", client.assign_ticket(ticket_id, user_email))
    else:
        print("\nSkipping assignment steps: set ADMIN_EMAIL to a different agent to run them")

    await smoke.step("escalate to HIGH", client.escalate_ticket(ticket_id, TicketPriority.HIGH))
    await smoke.step("close ticket", client.close_ticket(ticket_id))
    await smoke.step("reopen ticket", client.reopen_ticket(ticket_id))

    return smoke.summary()


if __name__ == '__main__':
    args = parse_args()
    log_file = configure_logging(args.verbose, args.log_to_file)
    if log_file:
        print(f"Detailed logs will be written to: {log_file}")
    try:
        sys.exit(asyncio.run(run(args)))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)
