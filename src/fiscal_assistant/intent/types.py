from __future__ import annotations

import calendar
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any


class IntentTag(str, Enum):
    EMIT_INVOICE = "emit_invoice"
    CANCEL_INVOICE = "cancel_invoice"
    LIST_INVOICES = "list_invoices"
    LAST_INVOICE = "last_invoice"
    INVOICE_STATUS = "invoice_status"
    REJECTED_INVOICES = "rejected_invoices"
    PENDING_INVOICES = "pending_invoices"
    CREATE_CLIENT = "create_client"
    LIST_CLIENTS = "list_clients"
    SEARCH_CLIENT = "search_client"
    REVENUE_QUERY = "revenue_query"
    VIEW_TAXES = "view_taxes"
    PAY_TAX = "pay_tax"
    GENERATE_TAX = "generate_tax"
    CHECK_CONNECTION = "check_connection"
    HELP = "help"
    GREETING = "greeting"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Turn:
    role: str  # "user"|"assistant"
    content: str
    created_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Utterance:
    text: str
    user_id: str = "anonymous"
    tenant_id: str = "default"
    history: tuple[Turn, ...] = ()
    active_counterparty_id: str | None = None
    municipality_name: str | None = None


@dataclass(frozen=True)
class DocumentRef:
    kind: str  # "cpf" (11 digits) | "cnpj" (14 digits)
    value: str

    @classmethod
    def from_digits(cls, digits: str) -> DocumentRef | None:
        if len(digits) == 11:
            return cls(kind="cpf", value=digits)
        if len(digits) == 14:
            return cls(kind="cnpj", value=digits)
        return None

    def formatted(self) -> str:
        v = self.value
        if self.kind == "cpf":
            return f"{v[:3]}.{v[3:6]}.{v[6:9]}-{v[9:]}"
        return f"{v[:2]}.{v[2:5]}.{v[5:8]}/{v[8:12]}-{v[12:]}"


@dataclass(frozen=True)
class Period:
    kind: str  # today|yesterday|this_week|this_month|last_month|this_year|month|day
    value: int | None = None

    @property
    def token(self) -> str:
        if self.kind == "month":
            return f"month:{self.value:02d}"
        if self.kind == "day":
            return f"day:{self.value}"
        return self.kind

    def date_range(self, today: date) -> tuple[date, date]:
        """Half-open ``[start, end)`` range this period covers."""
        tomorrow = today + timedelta(days=1)
        if self.kind == "today":
            return today, tomorrow
        if self.kind == "yesterday":
            return today - timedelta(days=1), today
        if self.kind == "this_week":
            return today - timedelta(days=today.weekday()), tomorrow
        if self.kind == "this_month":
            return today.replace(day=1), tomorrow
        if self.kind == "last_month":
            first = today.replace(day=1)
            prev_last = first - timedelta(days=1)
            return prev_last.replace(day=1), first
        if self.kind == "this_year":
            return today.replace(month=1, day=1), tomorrow
        if self.kind == "month" and self.value:
            year = today.year if self.value <= today.month else today.year - 1
            start = date(year, self.value, 1)
            days = calendar.monthrange(year, self.value)[1]
            return start, start + timedelta(days=days)
        if self.kind == "day" and self.value:
            last_day = calendar.monthrange(today.year, today.month)[1]
            day = today.replace(day=min(self.value, last_day))
            return day, day + timedelta(days=1)
        raise ValueError(f"unsupported period {self.token!r}")


@dataclass
class ExtractedEntities:
    amount: float | None = None
    document: DocumentRef | None = None
    counterparty_name: str | None = None
    period: Period | None = None
    service_description: str | None = None


@dataclass(frozen=True)
class IntentScore:
    intent: IntentTag
    confidence: float  # 0..1


@dataclass
class Classification:
    top: IntentScore
    alternatives: list[IntentScore] = field(default_factory=list)
    scores: list[IntentScore] = field(default_factory=list)


@dataclass
class Clarification:
    needed: bool
    question: str = ""
    options: list[IntentTag] = field(default_factory=list)


@dataclass
class ActionPlan:
    type: str
    data: dict[str, Any] = field(default_factory=dict)
    explanation: str = ""
    requires_confirmation: bool = False
    intent: IntentTag = IntentTag.UNKNOWN
    source: str = "deterministic"  # "deterministic"|"model"|"fallback"
    plan_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def as_dict(self) -> dict[str, Any]:
        return {
            "plan_id": self.plan_id,
            "type": self.type,
            "intent": self.intent.value,
            "source": self.source,
            "requires_confirmation": self.requires_confirmation,
            "explanation": self.explanation,
            "data": dict(self.data),
        }
