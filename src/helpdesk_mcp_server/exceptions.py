"""Custom exception hierarchy for helpdesk operations."""


class SupportError(Exception):
    """Base exception for helpdesk operations."""
    pass


class SupportAPIError(SupportError):
    """Errors returned by the helpdesk API with an HTTP response."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        status_text: str | None = None,
        vendor_message: str | None = None,
        allowed_methods: str | None = None,
    ):
        """
        Initialize helpdesk API error.

        Args:
            message: Error message
            status_code: HTTP status code if available
            response_body: Response body if available
            status_text: HTTP reason phrase
            vendor_message: Message extracted from the vendor payload, if any
            allowed_methods: Value of the Allow header on 405 responses
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.status_text = status_text
        self.vendor_message = vendor_message
        self.allowed_methods = allowed_methods


class SupportMethodNotAllowedError(SupportAPIError):
    """The endpoint rejected the HTTP verb (405)."""
    pass


class SupportAuthenticationError(SupportAPIError):
    """Credential rejected or not valid for this subdomain (401/403)."""
    pass


class SupportNotFoundError(SupportAPIError):
    """Resource not found (404)."""
    pass


class SupportRateLimitError(SupportAPIError):
    """Rate limit exceeded (429)."""
    pass


class SupportValidationError(SupportError):
    """Validation/input errors."""
    pass


class SupportNetworkError(SupportError):
    """Network/connection errors where no response was received."""

    def __init__(self, message: str, reason: object | None = None, is_dns_failure: bool = False):
        super().__init__(message)
        self.reason = reason
        self.is_dns_failure = is_dns_failure


class SupportConfigurationError(SupportError):
    """Unknown provider or unusable client configuration."""
    pass
