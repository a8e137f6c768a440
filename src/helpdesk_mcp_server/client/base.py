"""Base Desk365Client class and core utilities."""
import asyncio
import json
import logging
import re
import socket
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, Optional

from helpdesk_mcp_server.client import codec
from helpdesk_mcp_server.client.outcomes import CallOutcome, Success, classify
from helpdesk_mcp_server.exceptions import (
    SupportAPIError,
    SupportAuthenticationError,
    SupportConfigurationError,
    SupportError,
    SupportMethodNotAllowedError,
    SupportNetworkError,
    SupportNotFoundError,
    SupportRateLimitError,
)
from helpdesk_mcp_server.models import TicketFilterOptions, ValidationResult

logger = logging.getLogger(__name__)

API_PREFIX = "/v3"
JSON_CONTENT_TYPE = "application/json"
ERROR_EXCERPT_LENGTH = 100

_HTML_MESSAGE_RE = re.compile(r"<b>Message</b>\s*([^<]+)</p>", re.IGNORECASE)

_ERRORS_BY_STATUS = {
    401: SupportAuthenticationError,
    403: SupportAuthenticationError,
    404: SupportNotFoundError,
    405: SupportMethodNotAllowedError,
    429: SupportRateLimitError,
}


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings fixed for the lifetime of a client."""

    base_url: str
    api_key: str
    verbose: bool = False
    timeout: float = 30.0

    @property
    def headers(self) -> Dict[str, str]:
        # Desk365 expects the raw key, not a "Bearer" style scheme.
        return {"Content-Type": JSON_CONTENT_TYPE, "Authorization": self.api_key}

    @property
    def subdomain(self) -> str:
        host = urllib.parse.urlparse(self.base_url).hostname
        return host.split(".")[0] if host else "unknown"


def extract_vendor_message(body: str | None) -> str | None:
    """Best-effort human readable detail from an error response body.

    JSON bodies yield their ``message`` or ``error`` field. HTML error pages
    yield the text after ``<b>Message</b>`` when present, otherwise nothing,
    so markup never reaches the caller. Anything else is cut to a short
    excerpt.
    """
    if not body:
        return None
    text = body.strip()
    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if isinstance(data, dict):
        detail = data.get("message") or data.get("error")
        if detail:
            return str(detail)
        return json.dumps(data)[:ERROR_EXCERPT_LENGTH]

    lowered = text.lower()
    if lowered.startswith("<!doctype html") or "<html" in lowered:
        match = _HTML_MESSAGE_RE.search(text)
        return match.group(1).strip() if match else None

    if len(text) > ERROR_EXCERPT_LENGTH:
        return text[:ERROR_EXCERPT_LENGTH] + "..."
    return text


def _api_error_from_http(e: urllib.error.HTTPError) -> SupportAPIError:
    error_body = e.read().decode("utf-8", errors="replace") if getattr(e, "fp", None) else ""
    headers = getattr(e, "headers", None) or getattr(e, "hdrs", None)
    allowed = headers.get("Allow") if headers else None
    status_text = str(e.reason) if e.reason else ""
    vendor_message = extract_vendor_message(error_body)

    message = f"Desk365 API Error: HTTP {e.code} {status_text}".rstrip()
    if vendor_message:
        message += f": {vendor_message}"
    if allowed:
        message += f" (Allowed methods: {allowed})"

    error_cls = _ERRORS_BY_STATUS.get(e.code, SupportAPIError)
    return error_cls(
        message,
        status_code=e.code,
        response_body=error_body,
        status_text=status_text,
        vendor_message=vendor_message,
        allowed_methods=allowed,
    )


def _urlopen(req: urllib.request.Request, timeout: float):
    """Open ``req`` and translate transport failures into SupportError types."""
    try:
        return urllib.request.urlopen(req, timeout=timeout)
    except urllib.error.HTTPError as e:
        raise _api_error_from_http(e) from e
    except urllib.error.URLError as e:
        raise SupportNetworkError(
            f"Desk365 API Error: No response received from server ({e.reason})",
            reason=e.reason,
            is_dns_failure=isinstance(e.reason, socket.gaierror),
        ) from e
    except OSError as e:
        raise SupportNetworkError(
            f"Desk365 API Error: No response received from server ({e})",
            reason=e,
        ) from e


def _parse_body(raw: bytes) -> Any:
    """Parse a response body as JSON, falling back to the decoded text."""
    text = raw.decode("utf-8", errors="replace").strip() if raw else ""
    if not text:
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return text


class Desk365ClientBase:
    """Base class for Desk365Client with core initialization and helpers."""

    def __init__(self, base_url: str, api_key: str, verbose: bool = False, timeout: float = 30.0):
        """
        Initialize the Desk365 client.

        Args:
            base_url: API root, e.g. ``https://acme.desk365.io/apis``
            api_key: Credential sent verbatim in the Authorization header
            verbose: Log query parameters and request bodies
            timeout: Socket timeout handed to the transport, in seconds
        """
        if not base_url:
            raise SupportConfigurationError("Desk365 base URL is required")
        if not api_key:
            raise SupportConfigurationError("Desk365 API key is required")
        self.config = ClientConfig(
            base_url=base_url.rstrip("/"),
            api_key=api_key,
            verbose=verbose,
            timeout=timeout,
        )

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def verbose(self) -> bool:
        return self.config.verbose

    def _build_url(self, path: str, params: Dict[str, Any] | None = None) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        if not path.startswith(f"{API_PREFIX}/"):
            path = f"{API_PREFIX}{path}"
        query = urllib.parse.urlencode({k: v for k, v in (params or {}).items() if v is not None})
        return f"{self.config.base_url}{path}{('?' + query) if query else ''}"

    def _send(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] | None = None,
        body: Dict[str, Any] | None = None,
        data: bytes | None = None,
        content_type: str = JSON_CONTENT_TYPE,
    ) -> Any:
        """Perform one HTTP call and return the parsed response body."""
        url = self._build_url(path, params)
        if body is not None and method != "GET":
            data = json.dumps(body).encode("utf-8")
        if method == "GET":
            data = None

        logger.info("%s %s", method, urllib.parse.urlparse(url).path)
        if self.verbose:
            logger.info("Request parameters: %s", params or {})
            if body is not None:
                logger.info("Request body: %s", json.dumps(body, indent=2))

        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Authorization", self.config.api_key)
        req.add_header("Content-Type", content_type)

        try:
            with _urlopen(req, self.config.timeout) as response:
                status = getattr(response, "status", None)
                raw = response.read()
        except SupportAPIError as e:
            logger.error("%s %s failed: HTTP %s %s", method, path, e.status_code, e.status_text or "")
            if self.verbose and e.response_body:
                logger.error("Response: %s", e.response_body)
            raise
        except OSError as e:
            raise SupportNetworkError(f"Desk365 API Error: Failed reading response ({e})", reason=e) from e

        logger.info("Response: %s", status if status is not None else "OK")
        payload = _parse_body(raw)
        if self.verbose:
            logger.info("Response data: %s", payload)
        return payload

    def _call_sync(self, method: str, path: str, **kwargs: Any) -> CallOutcome:
        try:
            return Success(self._send(method, path, **kwargs))
        except SupportError as e:
            return classify(e)

    async def _call(self, method: str, path: str, **kwargs: Any) -> CallOutcome:
        """Run one vendor call off the event loop and report its outcome."""
        return await asyncio.to_thread(self._call_sync, method, path, **kwargs)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        outcome = await self._call(method, path, **kwargs)
        return outcome.unwrap()

    async def validate_config(self) -> ValidationResult:
        """Check the credential and subdomain with a one-row ticket listing.

        Failures are reported in the result rather than raised.
        """
        subdomain = self.config.subdomain
        params = codec.list_params_to_wire(TicketFilterOptions(limit=1))
        outcome = await self._call("GET", "/tickets", params=params)
        if isinstance(outcome, Success):
            return ValidationResult(
                success=True,
                message=f"Successfully connected to Desk365 API with subdomain '{subdomain}'",
            )

        error = outcome.error
        if isinstance(error, SupportAPIError) and error.status_code == 403:
            message = (
                f"Authentication failed: API key may not be valid for subdomain '{subdomain}'. "
                "Desk365 API keys are tied to specific subdomains."
            )
        elif isinstance(error, SupportAPIError):
            message = f"API error: {error.status_code} {error.status_text or ''}".rstrip()
        elif isinstance(error, SupportNetworkError) and error.is_dns_failure:
            message = (
                f"Could not connect to Desk365 API: The subdomain '{subdomain}' "
                "may not exist or is not reachable."
            )
        else:
            message = f"Failed to validate Desk365 API configuration: {error}"
        logger.warning(message)
        return ValidationResult(success=False, message=message)

    async def ping(self) -> str:
        """Hit the vendor's ping endpoint; raises on any failure."""
        await self._request("GET", "/ping")
        return f"Successfully pinged Desk365 API at {self.config.base_url}{API_PREFIX}/ping"
