"""
Custom exceptions for the log shipper.

Every error raised on the shipping path carries an error code, structured
details for logging, and a ``retryable`` flag consulted by the retry policy.
"""

from typing import Any, Dict, Optional


class LogShipException(Exception):
    """Base exception for the log shipper."""

    retryable = False

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class TransientBackendError(LogShipException):
    """Raised when the backend is unreachable, throttling, or failing."""

    retryable = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="transient_backend_error",
            details=details,
        )


class TokenConflictError(LogShipException):
    """Raised when an append presents a stale write token."""

    retryable = True

    def __init__(
        self,
        message: str = "Write token is stale",
        expected_token: Optional[str] = None,
    ) -> None:
        details = {}
        if expected_token:
            details["expected_token"] = expected_token

        super().__init__(
            message=message,
            error_code="token_conflict",
            details=details,
        )
        self.expected_token = expected_token


class StreamNotFoundError(LogShipException):
    """Raised when the target stream is absent from the backend listing."""

    def __init__(self, group: str, stream: str) -> None:
        super().__init__(
            message=f"Log stream {group}/{stream} not found",
            error_code="stream_not_found",
            details={"group": group, "stream": stream},
        )


class BackendRequestError(LogShipException):
    """Raised when the backend rejects a request as malformed or unauthorized."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="backend_request_error",
            details=details,
        )


class RetryExhaustedError(LogShipException):
    """Raised when a retry policy runs out of attempts."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            message=f"Gave up after {attempts} attempts: {last_error}",
            error_code="retry_exhausted",
            details={
                "attempts": attempts,
                "last_error": str(last_error),
                "last_error_type": type(last_error).__name__,
            },
        )
        self.attempts = attempts
        self.last_error = last_error
        # An exhausted inner policy costs the outer policy one attempt.
        self.retryable = is_retryable(last_error)


def is_retryable(error: BaseException) -> bool:
    """Classify an error for retry purposes; unknown errors are retryable."""
    return bool(getattr(error, "retryable", True))
