"""Exception types shared across the assistant."""

from __future__ import annotations

from typing import Any


class AssistantError(Exception):
    """Base class for errors raised by the assistant core."""


class ModelAdapterError(AssistantError):
    """The external model could not produce a usable reply.

    ``reason`` is one of ``timeout``, ``transport``, ``malformed`` or
    ``not_configured``. A plain free-text answer is not an error.
    """

    def __init__(self, reason: str, message: str = "") -> None:
        super().__init__(message or reason)
        self.reason = reason


class DuplicateDocumentError(AssistantError):
    def __init__(self, document: str) -> None:
        super().__init__(f"document {document} already registered")
        self.document = document


class ExecutionFailure(AssistantError):
    """Structured failure reported by the execution sink."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def as_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "details": dict(self.details),
        }
