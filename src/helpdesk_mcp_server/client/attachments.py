"""Attachment-related methods for Desk365Client."""
import json
import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from urllib3 import encode_multipart_formdata

from helpdesk_mcp_server.client import codec
from helpdesk_mcp_server.client.tickets import note_to_wire, reply_to_wire
from helpdesk_mcp_server.exceptions import SupportValidationError
from helpdesk_mcp_server.models import (
    AttachmentSource,
    InMemoryBlob,
    LocalPath,
    TicketMessage,
    TicketNoteRequest,
    TicketResponseRequest,
)

logger = logging.getLogger(__name__)

FILES_FIELD = "files"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Accepted at the call boundary: explicit variants, plain paths or open
# binary file objects.
AttachmentInput = Union[AttachmentSource, str, os.PathLike, Any]


@dataclass(frozen=True)
class MultipartFile:
    """A fully read attachment ready to become one multipart part."""

    filename: str
    content: bytes
    content_type: str

    def as_field(self) -> Tuple[str, Tuple[str, bytes, str]]:
        return FILES_FIELD, (self.filename, self.content, self.content_type)


def _guess_type(filename: str) -> str:
    return mimetypes.guess_type(filename)[0] or DEFAULT_CONTENT_TYPE


def to_source(item: AttachmentInput) -> AttachmentSource:
    """Normalize a caller supplied attachment into a LocalPath or InMemoryBlob."""
    if isinstance(item, (LocalPath, InMemoryBlob)):
        return item
    if isinstance(item, (str, os.PathLike)):
        return LocalPath(os.fspath(item))
    if hasattr(item, "read"):
        content = item.read()
        if isinstance(content, str):
            content = content.encode("utf-8")
        name = os.path.basename(getattr(item, "name", "") or "") or "attachment"
        return InMemoryBlob(content=content, filename=name)
    raise SupportValidationError(f"Unsupported attachment type: {type(item).__name__}")


def resolve_attachment(source: AttachmentSource) -> Optional[MultipartFile]:
    """Read one attachment fully; unreadable local files yield None."""
    if isinstance(source, InMemoryBlob):
        return MultipartFile(
            filename=source.filename,
            content=source.content,
            content_type=source.content_type or _guess_type(source.filename),
        )

    path = Path(source.path)
    try:
        content = path.read_bytes()
    except FileNotFoundError:
        logger.warning("File not found, skipping attachment: %s", source.path)
        return None
    except OSError as e:
        logger.warning("Could not read attachment %s, skipping: %s", source.path, e)
        return None
    return MultipartFile(filename=path.name, content=content, content_type=_guess_type(path.name))


def resolve_attachments(items: Iterable[AttachmentInput]) -> List[MultipartFile]:
    files: List[MultipartFile] = []
    for item in items:
        resolved = resolve_attachment(to_source(item))
        if resolved is None:
            continue
        logger.debug("Added file: %s (%d bytes)", resolved.filename, len(resolved.content))
        files.append(resolved)
    return files


class AttachmentsMixin:
    """Mixin providing multipart reply and note methods."""

    async def _post_multipart(
        self,
        path: str,
        ticket_id: str,
        object_field: str,
        payload: dict,
        attachments: Sequence[AttachmentInput],
    ) -> Any:
        attachments = list(attachments)
        files = resolve_attachments(attachments)
        if len(files) < len(attachments):
            logger.warning(
                "%d of %d attachment(s) were skipped", len(attachments) - len(files), len(attachments)
            )

        fields: List[Tuple[str, Any]] = [
            ("ticket_number", str(ticket_id)),
            (object_field, json.dumps(payload)),
        ]
        fields.extend(f.as_field() for f in files)
        data, content_type = encode_multipart_formdata(fields)

        logger.debug("Multipart request to %s carries %d file(s)", path, len(files))
        return await self._request("POST", path, data=data, content_type=content_type)

    async def respond_to_ticket_with_attachments(
        self, request: TicketResponseRequest, attachments: Sequence[AttachmentInput]
    ) -> TicketMessage:
        """Reply to a ticket with files attached.

        Missing or unreadable local files are skipped with a warning; the
        reply is still sent with the remaining files.
        """
        response = await self._post_multipart(
            "/tickets/add_reply_with_attachment",
            request.ticket_id,
            "reply_object",
            reply_to_wire(request),
            attachments,
        )
        return codec.message_from_wire(response, request.ticket_id)

    async def add_note_with_attachments(
        self, request: TicketNoteRequest, attachments: Sequence[AttachmentInput]
    ) -> TicketMessage:
        response = await self._post_multipart(
            "/tickets/add_note_with_attachment",
            request.ticket_id,
            "note_object",
            note_to_wire(request),
            attachments,
        )
        return codec.message_from_wire(response, request.ticket_id)
