from datetime import timedelta

import pytest
from conftest import NOW, TENANT, clock
from fiscal_assistant.collaborators.memory import (
    InMemoryFiscalRegistry,
    InMemoryInvoiceHistory,
    InMemoryQuotaService,
)
from fiscal_assistant.collaborators.records import (
    ConnectionHealth,
    FiscalRegistration,
    QuotaStatus,
    TaxRegime,
)
from fiscal_assistant.intent.types import ActionPlan
from fiscal_assistant.validation.plans import quota_suggestions, upgrade_options
from fiscal_assistant.validation.validator import ActionValidator


class StubQuota:
    def __init__(self, used: int, allowed: int | None, status: str = "ativo") -> None:
        self.quota = QuotaStatus(
            plan_id="essential",
            subscription_status=status,
            invoices_used=used,
            invoices_allowed=allowed,
            upgrade_options=upgrade_options("essential"),
        )

    def status(self, tenant_id: str) -> QuotaStatus:
        return self.quota


class BrokenQuota:
    def status(self, tenant_id: str) -> QuotaStatus:
        raise ConnectionError("billing service down")


def _emission(**overrides) -> dict:
    data = {
        "amount": 1500.0,
        "counterparty": "cp-joao",
        "counterparty_name": "João Silva",
        "iss_rate": None,
    }
    data.update(overrides)
    return data


def _validator(quota, registry, history) -> ActionValidator:
    return ActionValidator(quota, registry, history, clock=clock)


def test_healthy_emission_is_valid(validator: ActionValidator) -> None:
    verdict = validator.validate_emission(TENANT, _emission())
    assert verdict.valid
    assert verdict.errors == []
    assert verdict.warnings == []


def test_quota_exhausted_blocks_with_upgrade_suggestions(
    registry: InMemoryFiscalRegistry, history: InMemoryInvoiceHistory
) -> None:
    verdict = _validator(StubQuota(30, 30), registry, history).validate_emission(TENANT, _emission())
    assert verdict.codes() == ["quota-exceeded"]
    item = verdict.errors[0]
    assert item.details["remaining"] == 0
    assert any("Pay per Use" in s for s in item.suggestions)
    assert any("Pro" in s for s in item.suggestions)


def test_quota_near_limit_warns(
    registry: InMemoryFiscalRegistry, history: InMemoryInvoiceHistory
) -> None:
    verdict = _validator(StubQuota(27, 30), registry, history).validate_emission(TENANT, _emission())
    assert verdict.valid
    assert [w.code for w in verdict.warnings] == ["quota-near-limit"]
    assert "3 notas restantes" in verdict.warnings[0].message


def test_unlimited_plan_never_warns(
    registry: InMemoryFiscalRegistry, history: InMemoryInvoiceHistory
) -> None:
    verdict = _validator(StubQuota(500, None), registry, history).validate_emission(TENANT, _emission())
    assert verdict.valid
    assert verdict.warnings == []


def test_inactive_subscription(
    registry: InMemoryFiscalRegistry, history: InMemoryInvoiceHistory
) -> None:
    quota = InMemoryQuotaService(
        history, plans={TENANT: "essential"}, subscription_status={TENANT: "cancelado"}, clock=clock
    )
    verdict = _validator(quota, registry, history).validate_emission(TENANT, _emission())
    assert "subscription-inactive" in verdict.codes()


def test_errors_accumulate_in_check_order(
    quota: InMemoryQuotaService, history: InMemoryInvoiceHistory
) -> None:
    verdict = _validator(quota, InMemoryFiscalRegistry([]), history).validate_emission(
        TENANT, _emission(amount=0, counterparty_name="")
    )
    assert verdict.codes() == [
        "counterparty-name-missing",
        "amount-invalid",
        "company-not-registered",
    ]
    rendered = verdict.render("Não é possível emitir a nota:")
    assert rendered.startswith("Não é possível emitir a nota:")
    assert "Configurações > Dados Fiscais" in rendered


@pytest.mark.parametrize(
    ("changes", "code"),
    [
        ({"municipality_code": None}, "municipality-missing"),
        ({"municipality_code": "35503"}, "municipality-invalid"),
        ({"municipality_supported": False}, "municipality-unsupported"),
        ({"credential_present": False}, "credentials-missing"),
        ({"credential_expires_at": NOW - timedelta(days=1)}, "certificate-expired"),
        ({"connection": ConnectionHealth.FAILED}, "fiscal-connection-failed"),
        ({"connection": ConnectionHealth.NOT_CONNECTED}, "fiscal-not-connected"),
    ],
)
def test_registration_problems_block(
    registration: FiscalRegistration,
    quota: InMemoryQuotaService,
    history: InMemoryInvoiceHistory,
    changes: dict,
    code: str,
) -> None:
    for key, value in changes.items():
        setattr(registration, key, value)
    verdict = _validator(quota, InMemoryFiscalRegistry([registration]), history).validate_emission(
        TENANT, _emission()
    )
    assert verdict.codes() == [code]


@pytest.mark.parametrize(
    ("changes", "code"),
    [
        ({"municipality_supported": None}, "municipality-support-unknown"),
        ({"credential_expires_at": NOW + timedelta(days=10)}, "certificate-expiring"),
    ],
)
def test_registration_warnings_do_not_block(
    registration: FiscalRegistration,
    quota: InMemoryQuotaService,
    history: InMemoryInvoiceHistory,
    changes: dict,
    code: str,
) -> None:
    for key, value in changes.items():
        setattr(registration, key, value)
    verdict = _validator(quota, InMemoryFiscalRegistry([registration]), history).validate_emission(
        TENANT, _emission()
    )
    assert verdict.valid
    assert [w.code for w in verdict.warnings] == [code]


def test_mei_rules(
    registration: FiscalRegistration,
    quota: InMemoryQuotaService,
    history: InMemoryInvoiceHistory,
) -> None:
    registration.regime = TaxRegime.MEI
    validator = _validator(quota, InMemoryFiscalRegistry([registration]), history)

    over = validator.validate_emission(TENANT, _emission(amount=80_000.0, iss_rate=2.0))
    assert over.codes() == ["mei-annual-limit-exceeded", "mei-iss-rate"]

    near = validator.validate_emission(TENANT, _emission(amount=64_000.0))
    assert near.valid
    assert [w.code for w in near.warnings] == ["mei-annual-limit-near"]


def test_simples_iss_rate_range(validator: ActionValidator) -> None:
    assert validator.validate_emission(TENANT, _emission(iss_rate=3.5)).valid
    assert validator.validate_emission(TENANT, _emission(iss_rate=7.0)).codes() == ["simples-iss-rate"]


def test_failing_check_becomes_blocking_item(
    registry: InMemoryFiscalRegistry, history: InMemoryInvoiceHistory
) -> None:
    verdict = _validator(BrokenQuota(), registry, history).validate_emission(TENANT, _emission())
    assert not verdict.valid
    assert verdict.codes() == ["check-unavailable"]
    assert verdict.errors[0].details == {"check": "plan", "error": "ConnectionError"}


def test_read_only_plans_are_not_checked(validator: ActionValidator) -> None:
    verdict = validator.validate(ActionPlan(type="list_clients"), TENANT)
    assert verdict.valid


def test_quota_suggestions_for_trial() -> None:
    quota = QuotaStatus("trial", "trial", 5, 5)
    suggestions = quota_suggestions(quota)
    assert suggestions[0].startswith("Fazer upgrade para o plano Essential")
    assert suggestions[-1].startswith("Usar Pay per Use")
