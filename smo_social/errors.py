"""
Domain errors raised by the SMO Social services.

AJAX handlers turn these into `{"success": false, "data": message}` envelopes;
`status_code` picks the HTTP status of that envelope.
"""


class SMOError(Exception):
    """Base exception for all SMO Social errors."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(SMOError):
    """Raised when request input fails validation."""

    status_code = 400


class NotFoundError(SMOError):
    """Raised when a requested record does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id=None):
        message = f"{entity} not found"
        super().__init__(message, details={"entity": entity, "id": entity_id})


class PermissionDeniedError(SMOError):
    """Raised when the caller lacks a capability or permission."""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class RateLimitError(SMOError):
    """Raised when a client exceeds its request budget."""

    status_code = 429

    def __init__(self, message: str = "Too many requests. Please try again later."):
        super().__init__(message)


class PlatformError(SMOError):
    """Raised when a social platform call fails or the platform is not connected."""

    status_code = 502

    def __init__(self, platform: str, reason: str | None = None):
        message = f"Platform '{platform}' request failed"
        if reason:
            message += f": {reason}"
        super().__init__(message, details={"platform": platform, "reason": reason})


class AIProviderError(SMOError):
    """Raised when the AI provider is missing or returns unusable output."""

    status_code = 502


class AuthenticationError(SMOError):
    """Raised when a request carries no valid credentials."""

    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)
