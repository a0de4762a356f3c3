"""
Console API exceptions.

Every failure of a backend call surfaces as a ``ConsoleAPIError``
subclass. Callers in the editor catch the base class, log it and
report it inline; nothing here is fatal to an editing session.
"""

from typing import Any, Dict, Optional


class ConsoleAPIError(Exception):
    """Base exception for console backend errors.

    Attributes:
        message: Human-readable error message
        code: Backend or client error code
        status_code: HTTP status, when a response was received
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', code='{self.code}')"


class AuthenticationError(ConsoleAPIError):
    """Raised when the access token is missing, invalid or expired."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, code="AUTHENTICATION_ERROR", status_code=401)


class NotFoundError(ConsoleAPIError):
    """Raised when a workflow, model or test session does not exist.

    Test sessions expire server-side after inactivity, so a stale
    ``testSessionId`` also ends up here.
    """

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, code="NOT_FOUND", status_code=404)


class ValidationError(ConsoleAPIError):
    """Raised when the backend rejects the request payload."""

    def __init__(
        self,
        message: str = "Validation failed",
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message, code="VALIDATION_ERROR", status_code=status_code, details=details,
        )


class ServerError(ConsoleAPIError):
    """Raised on 5xx responses."""

    def __init__(self, message: str = "Server error", status_code: int = 500) -> None:
        super().__init__(message, code="SERVER_ERROR", status_code=status_code)


class TransportError(ConsoleAPIError):
    """Raised when no response was received (connect error, timeout)."""

    def __init__(self, message: str = "Transport error") -> None:
        super().__init__(message, code="TRANSPORT_ERROR")


class EnvelopeError(ConsoleAPIError):
    """Raised when an HTTP 200 response carries a non-success envelope code."""

    def __init__(self, message: str, envelope_code: Optional[int] = None) -> None:
        super().__init__(
            message,
            code="ENVELOPE_ERROR",
            status_code=200,
            details={"envelope_code": envelope_code},
        )
        self.envelope_code = envelope_code
