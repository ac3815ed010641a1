"""Pytest configuration file."""

from datetime import datetime, timedelta, timezone

import pytest
from fiscal_assistant.collaborators.memory import (
    InMemoryCounterpartyDirectory,
    InMemoryExecutionSink,
    InMemoryFiscalRegistry,
    InMemoryInvoiceHistory,
    InMemoryQuotaService,
    InMemoryTurnLog,
)
from fiscal_assistant.collaborators.records import (
    ConnectionHealth,
    Counterparty,
    FiscalRegistration,
    InvoiceRecord,
    InvoiceStatus,
    TaxRegime,
)
from fiscal_assistant.execution.executor import ActionExecutor
from fiscal_assistant.responder.chain import DeterministicResponder
from fiscal_assistant.validation.validator import ActionValidator

TENANT = "t1"
NOW = datetime(2026, 10, 15, 12, 0, tzinfo=timezone.utc)


def clock() -> datetime:
    return NOW


def _cp(id_: str, name: str, document: str, aliases: tuple[str, ...] = ()) -> Counterparty:
    return Counterparty(
        id=id_,
        tenant_id=TENANT,
        name=name,
        document=document,
        document_kind="cnpj" if len(document) == 14 else "cpf",
        aliases=aliases,
    )


def _inv(
    id_: str,
    number: str,
    counterparty_id: str,
    name: str,
    amount: float,
    status: InvoiceStatus,
    age: timedelta,
) -> InvoiceRecord:
    return InvoiceRecord(
        id=id_,
        tenant_id=TENANT,
        number=number,
        counterparty_id=counterparty_id,
        counterparty_name=name,
        amount=amount,
        status=status,
        issued_at=NOW - age,
    )


@pytest.fixture
def directory() -> InMemoryCounterpartyDirectory:
    return InMemoryCounterpartyDirectory(
        [
            _cp("cp-joao", "João Silva", "12345678901"),
            _cp("cp-maria", "Maria Souza", "11222333000181"),
            _cp("cp-abc", "Empresa ABC Ltda", "44555666000177", aliases=("Empresa ABC",)),
            _cp("cp-ana-l", "Ana Lima", "98765432100"),
            _cp("cp-ana-c", "Ana Costa", "10987654321"),
        ]
    )


@pytest.fixture
def history() -> InMemoryInvoiceHistory:
    return InMemoryInvoiceHistory(
        [
            _inv("inv-101", "101", "cp-joao", "João Silva", 1500.0, InvoiceStatus.AUTHORIZED, timedelta(hours=2)),
            _inv("inv-102", "102", "cp-maria", "Maria Souza", 800.0, InvoiceStatus.REJECTED, timedelta(hours=5)),
            _inv("inv-103", "103", "cp-abc", "Empresa ABC Ltda", 2000.0, InvoiceStatus.PROCESSING, timedelta(hours=1)),
            _inv("inv-90", "90", "cp-joao", "João Silva", 500.0, InvoiceStatus.AUTHORIZED, timedelta(days=10)),
        ]
    )


@pytest.fixture
def registration() -> FiscalRegistration:
    return FiscalRegistration(
        tenant_id=TENANT,
        external_id="nf-123",
        municipality_code="3550308",
        connection=ConnectionHealth.HEALTHY,
        credential_present=True,
        credential_expires_at=NOW + timedelta(days=200),
        regime=TaxRegime.SIMPLES_NACIONAL,
        municipality_supported=True,
        municipality_name="São Paulo",
        company_name="Minha Empresa",
    )


@pytest.fixture
def registry(registration: FiscalRegistration) -> InMemoryFiscalRegistry:
    return InMemoryFiscalRegistry([registration])


@pytest.fixture
def quota(history: InMemoryInvoiceHistory) -> InMemoryQuotaService:
    return InMemoryQuotaService(history, plans={TENANT: "essential"}, clock=clock)


@pytest.fixture
def sink(history: InMemoryInvoiceHistory) -> InMemoryExecutionSink:
    return InMemoryExecutionSink(history, clock=clock)


@pytest.fixture
def turn_log() -> InMemoryTurnLog:
    return InMemoryTurnLog(clock=clock)


@pytest.fixture
def responder(
    directory: InMemoryCounterpartyDirectory,
    history: InMemoryInvoiceHistory,
    registry: InMemoryFiscalRegistry,
) -> DeterministicResponder:
    return DeterministicResponder(directory, history, registry, clock=clock)


@pytest.fixture
def validator(
    quota: InMemoryQuotaService,
    registry: InMemoryFiscalRegistry,
    history: InMemoryInvoiceHistory,
) -> ActionValidator:
    return ActionValidator(quota, registry, history, clock=clock)


@pytest.fixture
def executor(
    validator: ActionValidator,
    sink: InMemoryExecutionSink,
    directory: InMemoryCounterpartyDirectory,
    turn_log: InMemoryTurnLog,
) -> ActionExecutor:
    return ActionExecutor(validator, sink, directory, turn_log)
