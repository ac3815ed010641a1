"""Records exchanged with the persistence and fiscal-authority collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class InvoiceStatus(str, Enum):
    AUTHORIZED = "autorizada"
    REJECTED = "rejeitada"
    PROCESSING = "processando"
    CANCELLED = "cancelada"
    DRAFT = "rascunho"


class ConnectionHealth(str, Enum):
    HEALTHY = "healthy"
    FAILED = "failed"
    NOT_CONNECTED = "not_connected"


class TaxRegime(str, Enum):
    MEI = "mei"
    SIMPLES_NACIONAL = "simples_nacional"
    LUCRO_PRESUMIDO = "lucro_presumido"
    LUCRO_REAL = "lucro_real"


@dataclass
class Counterparty:
    id: str
    tenant_id: str
    name: str
    document: str  # digits only
    document_kind: str  # "cpf"|"cnpj"
    aliases: tuple[str, ...] = ()
    email: str | None = None
    phone: str | None = None
    active: bool = True


@dataclass
class InvoiceRecord:
    id: str
    tenant_id: str
    number: str | None
    counterparty_id: str | None
    counterparty_name: str
    amount: float
    status: InvoiceStatus
    issued_at: datetime
    municipality_code: str | None = None
    verification_code: str | None = None
    rejection_reason: str | None = None


@dataclass(frozen=True)
class PlanOption:
    plan_id: str
    name: str
    monthly_price: float | None
    max_invoices: int | None  # None = unlimited
    max_companies: int | None
    per_invoice_price: float | None = None


@dataclass
class QuotaStatus:
    plan_id: str
    subscription_status: str  # "ativo"|"trial"|"cancelado"|...
    invoices_used: int
    invoices_allowed: int | None  # None = unlimited
    companies_used: int = 0
    companies_allowed: int | None = None
    upgrade_options: list[PlanOption] = field(default_factory=list)

    @property
    def remaining(self) -> int | None:
        if self.invoices_allowed is None:
            return None
        return max(0, self.invoices_allowed - self.invoices_used)


@dataclass
class FiscalRegistration:
    tenant_id: str
    external_id: str | None
    municipality_code: str | None
    connection: ConnectionHealth = ConnectionHealth.NOT_CONNECTED
    credential_present: bool = False
    credential_expires_at: datetime | None = None
    regime: TaxRegime = TaxRegime.SIMPLES_NACIONAL
    municipality_supported: bool | None = None
    municipality_name: str | None = None
    company_name: str | None = None


@dataclass
class ExecutionResult:
    record_id: str
    status: str
    number: str | None = None
    verification_code: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
