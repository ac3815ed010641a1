"""Contracts the core expects from its collaborators.

Implementations live outside the core (database, HTTP clients); the
in-memory versions in :mod:`fiscal_assistant.collaborators.memory` back the
tests and the developer CLI.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, Sequence

from fiscal_assistant.intent.types import Turn

from .records import (
    Counterparty,
    ExecutionResult,
    FiscalRegistration,
    InvoiceRecord,
    InvoiceStatus,
    QuotaStatus,
)


class CounterpartyDirectory(Protocol):
    def find_by_document(self, tenant_id: str, document: str) -> Counterparty | None: ...

    def search(self, tenant_id: str, query: str, limit: int = 10) -> list[Counterparty]: ...

    def get(self, tenant_id: str, counterparty_id: str) -> Counterparty | None: ...

    def list_all(self, tenant_id: str, limit: int = 20) -> list[Counterparty]: ...

    def create(
        self,
        tenant_id: str,
        name: str,
        document: str,
        email: str | None = None,
        phone: str | None = None,
    ) -> Counterparty:
        """Raises ``DuplicateDocumentError`` when ``document`` exists."""
        ...


class InvoiceHistory(Protocol):
    def find(
        self,
        tenant_id: str,
        status: InvoiceStatus | Sequence[InvoiceStatus] | None = None,
        counterparty_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 10,
    ) -> list[InvoiceRecord]: ...

    def get(self, tenant_id: str, invoice_id: str) -> InvoiceRecord | None: ...

    def latest(self, tenant_id: str) -> InvoiceRecord | None: ...

    def by_number(self, tenant_id: str, number: str) -> InvoiceRecord | None: ...

    def count(
        self,
        tenant_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        status: InvoiceStatus | None = None,
    ) -> int: ...

    def total(
        self,
        tenant_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        status: InvoiceStatus | None = InvoiceStatus.AUTHORIZED,
    ) -> float: ...


class QuotaService(Protocol):
    def status(self, tenant_id: str) -> QuotaStatus: ...


class FiscalRegistry(Protocol):
    def registration(self, tenant_id: str) -> FiscalRegistration | None: ...


class ExecutionSink(Protocol):
    """Performs the real side effect; raises ``ExecutionFailure`` on error."""

    def emit_invoice(self, tenant_id: str, payload: dict[str, Any]) -> ExecutionResult: ...

    def cancel_invoice(
        self, tenant_id: str, invoice_id: str, justification: str
    ) -> ExecutionResult: ...


class TurnLog(Protocol):
    def append(
        self, user_id: str, role: str, content: str, metadata: dict[str, Any] | None = None
    ) -> None: ...

    def recent(self, user_id: str, limit: int = 20) -> list[Turn]: ...
