from typing import Optional, Any


class CushError(Exception):
    """
    Base exception for the Cush application.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ResourceNotFoundError(CushError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class AuthenticationError(CushError):
    """
    Raised when credentials or the session are missing or invalid.

    ``reason`` distinguishes bad credentials from an unverified account
    for callers that need it; the message stays generic.
    """
    INVALID_CREDENTIALS = "invalid_credentials"
    VERIFICATION_REQUIRED = "verification_required"
    MISSING_SESSION = "missing_session"

    def __init__(
        self,
        message: str = "Authentication failed",
        reason: str = INVALID_CREDENTIALS,
        details: Optional[Any] = None,
    ):
        code = "EMAIL_VERIFICATION_REQUIRED" if reason == self.VERIFICATION_REQUIRED else "AUTHENTICATION_FAILED"
        super().__init__(message, code=code, status_code=401, details=details)
        self.reason = reason


class AuthorizationError(CushError):
    """
    Raised when the session is valid but the role lacks the capability.
    """
    def __init__(self, message: str = "Insufficient permissions", details: Optional[Any] = None):
        super().__init__(message, code="FORBIDDEN", status_code=403, details=details)


class ValidationError(CushError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class ConflictError(CushError):
    """
    Raised when a uniqueness constraint would be violated.
    """
    def __init__(self, message: str = "Resource already exists", details: Optional[Any] = None):
        super().__init__(message, code="CONFLICT", status_code=409, details=details)


class ExternalServiceError(CushError):
    """
    Raised when the key-value store or a third-party API (Stripe, AstroPay, OpenAI) fails.
    """
    def __init__(self, message: str = "External service error", details: Optional[Any] = None):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", status_code=502, details=details)


class WebhookSignatureError(CushError):
    """
    Raised when an inbound payment webhook fails signature verification.
    """
    def __init__(self, message: str = "Webhook signature verification failed", details: Optional[Any] = None):
        super().__init__(message, code="INVALID_SIGNATURE", status_code=400, details=details)
