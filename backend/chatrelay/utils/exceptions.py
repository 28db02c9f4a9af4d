"""
Base exceptions shared across the relay.

WHAT: Exception roots carrying an error code and structured details
WHY: Callers log and report failures without re-deriving their context
HOW: Custom exception classes with error codes and messages
"""

from typing import Any, Optional


class RelayException(Exception):
    """Base class for relay exceptions."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class DeliveryError(RelayException):
    """Pushing text to the chat transport failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, attempts: int = 1):
        super().__init__(
            message=message,
            code="DELIVERY_FAILED",
            details={"attempts": attempts, "cause": repr(cause) if cause else None}
        )
        self.cause = cause
        self.attempts = attempts


class MaxRetriesExceededError(DeliveryError):
    """Rate-limited delivery still failing after the last retry."""

    def __init__(self, last_error: BaseException, attempts: int):
        super().__init__(
            message=f"max retries exceeded: {last_error}",
            cause=last_error,
            attempts=attempts
        )
        self.code = "DELIVERY_MAX_RETRIES"
        self.last_error = last_error
