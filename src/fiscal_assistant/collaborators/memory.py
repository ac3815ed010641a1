"""In-memory collaborator implementations used by tests and the dev CLI."""

from __future__ import annotations

import threading
import unicodedata
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from fiscal_assistant.errors import DuplicateDocumentError, ExecutionFailure
from fiscal_assistant.intent.types import Turn
from fiscal_assistant.validation.plans import PLANS, upgrade_options

from .records import (
    Counterparty,
    ExecutionResult,
    FiscalRegistration,
    InvoiceRecord,
    InvoiceStatus,
    QuotaStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def fold(text: str) -> str:
    """Casefold and strip accents so "João" matches "joao"."""
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    return " ".join("".join(c for c in decomposed if not unicodedata.combining(c)).split())


class InMemoryCounterpartyDirectory:
    def __init__(self, counterparties: Sequence[Counterparty] = ()) -> None:
        self._items: dict[str, Counterparty] = {c.id: c for c in counterparties}
        self._lock = threading.Lock()

    def _scoped(self, tenant_id: str) -> list[Counterparty]:
        return [c for c in self._items.values() if c.tenant_id == tenant_id and c.active]

    def find_by_document(self, tenant_id: str, document: str) -> Counterparty | None:
        for c in self._scoped(tenant_id):
            if c.document == document:
                return c
        return None

    def search(self, tenant_id: str, query: str, limit: int = 10) -> list[Counterparty]:
        q = fold(query)
        if not q:
            return []
        scoped = self._scoped(tenant_id)

        def names(c: Counterparty) -> list[str]:
            return [fold(c.name), *(fold(a) for a in c.aliases)]

        exact = [c for c in scoped if q in names(c)]
        if exact:
            return exact[:limit]
        partial = [c for c in scoped if any(q in n for n in names(c))]
        if partial:
            return partial[:limit]
        tokens = q.split()
        return [
            c for c in scoped if any(all(t in n.split() for t in tokens) for n in names(c))
        ][:limit]

    def get(self, tenant_id: str, counterparty_id: str) -> Counterparty | None:
        c = self._items.get(counterparty_id)
        return c if c is not None and c.tenant_id == tenant_id else None

    def list_all(self, tenant_id: str, limit: int = 20) -> list[Counterparty]:
        return sorted(self._scoped(tenant_id), key=lambda c: fold(c.name))[:limit]

    def create(
        self,
        tenant_id: str,
        name: str,
        document: str,
        email: str | None = None,
        phone: str | None = None,
    ) -> Counterparty:
        with self._lock:
            if self.find_by_document(tenant_id, document) is not None:
                raise DuplicateDocumentError(document)
            record = Counterparty(
                id=uuid.uuid4().hex,
                tenant_id=tenant_id,
                name=name,
                document=document,
                document_kind="cnpj" if len(document) == 14 else "cpf",
                email=email,
                phone=phone,
            )
            self._items[record.id] = record
            return record


class InMemoryInvoiceHistory:
    def __init__(self, invoices: Sequence[InvoiceRecord] = ()) -> None:
        self._items: list[InvoiceRecord] = list(invoices)
        self._lock = threading.Lock()

    def add(self, record: InvoiceRecord) -> None:
        with self._lock:
            self._items.append(record)

    def get(self, tenant_id: str, invoice_id: str) -> InvoiceRecord | None:
        for inv in self._items:
            if inv.tenant_id == tenant_id and inv.id == invoice_id:
                return inv
        return None

    def find(
        self,
        tenant_id: str,
        status: InvoiceStatus | Sequence[InvoiceStatus] | None = None,
        counterparty_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 10,
    ) -> list[InvoiceRecord]:
        if isinstance(status, InvoiceStatus):
            statuses: set[InvoiceStatus] | None = {status}
        else:
            statuses = set(status) if status else None
        out = [
            inv
            for inv in self._items
            if inv.tenant_id == tenant_id
            and (statuses is None or inv.status in statuses)
            and (counterparty_id is None or inv.counterparty_id == counterparty_id)
            and (start is None or inv.issued_at >= start)
            and (end is None or inv.issued_at < end)
        ]
        out.sort(key=lambda inv: inv.issued_at, reverse=True)
        return out[:limit]

    def latest(self, tenant_id: str) -> InvoiceRecord | None:
        found = self.find(tenant_id, limit=1)
        return found[0] if found else None

    def by_number(self, tenant_id: str, number: str) -> InvoiceRecord | None:
        for inv in self._items:
            if inv.tenant_id == tenant_id and (inv.number == number or inv.id == number):
                return inv
        return None

    def count(
        self,
        tenant_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        status: InvoiceStatus | None = None,
    ) -> int:
        return len(self.find(tenant_id, status, None, start, end, limit=len(self._items)))

    def total(
        self,
        tenant_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        status: InvoiceStatus | None = InvoiceStatus.AUTHORIZED,
    ) -> float:
        found = self.find(tenant_id, status, None, start, end, limit=len(self._items))
        return sum(inv.amount for inv in found)


class InMemoryQuotaService:
    """Derives quota status from a plan id and the invoice history.

    Drafts do not count toward the monthly emission limit.
    """

    def __init__(
        self,
        history: InMemoryInvoiceHistory,
        plans: dict[str, str] | None = None,
        subscription_status: dict[str, str] | None = None,
        companies_used: dict[str, int] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.history = history
        self.plans = plans or {}
        self.subscription_status = subscription_status or {}
        self.companies_used = companies_used or {}
        self._clock = clock

    def status(self, tenant_id: str) -> QuotaStatus:
        plan_id = self.plans.get(tenant_id, "trial")
        plan = PLANS.get(plan_id, PLANS["trial"])
        now = self._clock()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        counted = [s for s in InvoiceStatus if s is not InvoiceStatus.DRAFT]
        used = len(self.history.find(tenant_id, counted, start=month_start, limit=10_000))
        return QuotaStatus(
            plan_id=plan_id,
            subscription_status=self.subscription_status.get(tenant_id, "ativo"),
            invoices_used=used,
            invoices_allowed=plan.max_invoices,
            companies_used=self.companies_used.get(tenant_id, 1),
            companies_allowed=plan.max_companies,
            upgrade_options=upgrade_options(plan_id),
        )


class InMemoryFiscalRegistry:
    def __init__(self, registrations: Sequence[FiscalRegistration] = ()) -> None:
        self._items = {r.tenant_id: r for r in registrations}
        self.calls = 0

    def registration(self, tenant_id: str) -> FiscalRegistration | None:
        self.calls += 1
        return self._items.get(tenant_id)


class InMemoryExecutionSink:
    """Records emissions and cancellations into an ``InMemoryInvoiceHistory``.

    ``fail_with`` makes every call raise the given failure, for exercising
    error translation.
    """

    def __init__(
        self,
        history: InMemoryInvoiceHistory,
        fail_with: ExecutionFailure | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.history = history
        self.fail_with = fail_with
        self._clock = clock
        self.emitted: list[dict[str, Any]] = []
        self.cancelled: list[tuple[str, str]] = []

    def emit_invoice(self, tenant_id: str, payload: dict[str, Any]) -> ExecutionResult:
        if self.fail_with is not None:
            raise self.fail_with
        self.emitted.append(payload)
        number = str(len(self.emitted))
        record = InvoiceRecord(
            id=uuid.uuid4().hex,
            tenant_id=tenant_id,
            number=number,
            counterparty_id=payload.get("counterparty"),
            counterparty_name=payload.get("counterparty_name", ""),
            amount=float(payload["amount"]),
            status=InvoiceStatus.AUTHORIZED,
            issued_at=self._clock(),
            verification_code=uuid.uuid4().hex[:8].upper(),
        )
        self.history.add(record)
        return ExecutionResult(
            record_id=record.id,
            status=record.status.value,
            number=record.number,
            verification_code=record.verification_code,
        )

    def cancel_invoice(
        self, tenant_id: str, invoice_id: str, justification: str
    ) -> ExecutionResult:
        if self.fail_with is not None:
            raise self.fail_with
        record = self.history.get(tenant_id, invoice_id)
        if record is None:
            raise ExecutionFailure("Nota não encontrada", code="not_found", status_code=404)
        record.status = InvoiceStatus.CANCELLED
        self.cancelled.append((invoice_id, justification))
        return ExecutionResult(
            record_id=record.id,
            status=record.status.value,
            number=record.number,
            verification_code=record.verification_code,
        )


class InMemoryTurnLog:
    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._turns: dict[str, list[Turn]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def append(
        self, user_id: str, role: str, content: str, metadata: dict[str, Any] | None = None
    ) -> None:
        turn = Turn(role=role, content=content, created_at=self._clock(), metadata=metadata or {})
        with self._lock:
            self._turns.setdefault(user_id, []).append(turn)

    def recent(self, user_id: str, limit: int = 20) -> list[Turn]:
        with self._lock:
            return list(self._turns.get(user_id, [])[-limit:])
