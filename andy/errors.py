"""
Error taxonomy.

Every error that can reach a caller is an AppError: a stable machine-readable
code, a human-readable message and an HTTP-ish status. Internal detail
(provider payloads, tracebacks) goes to the log, never into the message.
"""

from __future__ import annotations


class AppError(Exception):
    """Base for all surfaced errors."""

    code = "UNKNOWN_ERROR"
    status = 500

    def __init__(self, message: str = "", code: str | None = None, status: int | None = None):
        super().__init__(message)
        self.message = message or "An unexpected error occurred"
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} code={self.code!r} status={self.status} message={self.message!r}>"


class ValidationFailed(AppError):
    code = "VALIDATION_FAILED"
    status = 400


class RateLimited(AppError):
    code = "RATE_LIMITED"
    status = 429

    def __init__(self, message: str = "Too many requests. Please wait a moment.", retry_after_ms: float = 0.0):
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


class TimedOut(AppError):
    code = "TIMEOUT"
    status = 504

    def __init__(self, message: str = "Request timed out. Please try again."):
        super().__init__(message)


class ChatError(AppError):
    """User-facing wrapper for a provider failure that exhausted retries."""
    code = "CHAT_ERROR"
    status = 502

    def __init__(self, message: str = "Failed to process message. Please try again later."):
        super().__init__(message)


class ProviderError(AppError):
    """
    Raised by an LLM provider. Not user-facing: the orchestrator logs it and
    surfaces a ChatError instead.
    """
    code = "PROVIDER_ERROR"
    status = 502

    def __init__(self, message: str, provider: str = "", status_code: int = 0, retryable: bool = True):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable


class PersistenceError(AppError):
    code = "PERSISTENCE_ERROR"
    status = 500


class AttachmentProcessingError(AppError):
    code = "ATTACHMENT_ERROR"
    status = 422


class ServiceInitError(AppError):
    code = "SERVICE_INIT_ERROR"
    status = 500


class NotFound(AppError):
    code = "NOT_FOUND"
    status = 404
