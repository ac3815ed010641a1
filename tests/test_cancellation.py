from datetime import timedelta

import pytest
from conftest import NOW, TENANT
from fiscal_assistant.collaborators.memory import InMemoryInvoiceHistory
from fiscal_assistant.collaborators.records import InvoiceRecord, InvoiceStatus
from fiscal_assistant.config import settings
from fiscal_assistant.validation.rules import cancellation_rule, is_valid_municipality_code
from fiscal_assistant.validation.validator import ActionValidator

JUSTIFICATION = "Serviço não foi prestado"


def _add(history: InMemoryInvoiceHistory, id_: str, age: timedelta, **kwargs) -> None:
    fields = {
        "number": id_,
        "counterparty_id": "cp-joao",
        "counterparty_name": "João Silva",
        "amount": 100.0,
        "status": InvoiceStatus.AUTHORIZED,
    }
    fields.update(kwargs)
    history.add(InvoiceRecord(id=id_, tenant_id=TENANT, issued_at=NOW - age, **fields))


def test_recent_authorized_invoice_can_be_cancelled(validator: ActionValidator) -> None:
    verdict = validator.validate_cancellation(
        TENANT, {"invoice_id": "inv-101", "justification": JUSTIFICATION}
    )
    assert verdict.valid
    assert verdict.warnings == []


def test_lookup_by_number(validator: ActionValidator) -> None:
    verdict = validator.validate_cancellation(
        TENANT, {"invoice_number": "101", "justification": JUSTIFICATION}
    )
    assert verdict.valid


@pytest.mark.parametrize(
    ("justification", "codes"),
    [
        ("", ["justification-required"]),
        ("   ", ["justification-required"]),
        ("a" * 14, ["justification-too-short"]),
        ("a" * 15, []),
    ],
)
def test_justification_length(validator: ActionValidator, justification: str, codes: list[str]) -> None:
    verdict = validator.validate_cancellation(
        TENANT, {"invoice_id": "inv-101", "justification": justification}
    )
    assert verdict.codes() == codes
    assert settings.MIN_JUSTIFICATION_LENGTH == 15


def test_deadline_expired(validator: ActionValidator) -> None:
    verdict = validator.validate_cancellation(
        TENANT, {"invoice_id": "inv-90", "justification": JUSTIFICATION}
    )
    assert verdict.codes() == ["cancellation-deadline-expired"]
    assert verdict.errors[0].details["max_hours"] == 48
    assert "10 dia(s)" in verdict.errors[0].message


def test_deadline_near_warns(validator: ActionValidator, history: InMemoryInvoiceHistory) -> None:
    _add(history, "inv-40h", timedelta(hours=40))
    verdict = validator.validate_cancellation(
        TENANT, {"invoice_id": "inv-40h", "justification": JUSTIFICATION}
    )
    assert verdict.valid
    assert [w.code for w in verdict.warnings] == ["cancellation-deadline-near"]


def test_municipality_specific_window(validator: ActionValidator, history: InMemoryInvoiceHistory) -> None:
    """Porto Alegre allows five days, so a 72h-old invoice is still cancellable."""
    _add(history, "inv-poa", timedelta(hours=72), municipality_code="4314902")
    verdict = validator.validate_cancellation(
        TENANT, {"invoice_id": "inv-poa", "justification": JUSTIFICATION}
    )
    assert verdict.valid
    assert verdict.warnings == []


def test_already_cancelled_reports_a_single_error(
    validator: ActionValidator, history: InMemoryInvoiceHistory
) -> None:
    _add(history, "inv-c", timedelta(hours=1), status=InvoiceStatus.CANCELLED)
    verdict = validator.validate_cancellation(
        TENANT, {"invoice_id": "inv-c", "justification": JUSTIFICATION}
    )
    assert verdict.codes() == ["already-cancelled"]


def test_rejected_invoice_cannot_be_cancelled(validator: ActionValidator) -> None:
    verdict = validator.validate_cancellation(
        TENANT, {"invoice_id": "inv-102", "justification": JUSTIFICATION}
    )
    assert verdict.codes() == ["invalid-status"]


def test_unknown_invoice(validator: ActionValidator) -> None:
    verdict = validator.validate_cancellation(
        TENANT, {"invoice_id": "nope", "justification": JUSTIFICATION}
    )
    assert verdict.codes() == ["invoice-not-found"]


def test_cancellation_rules_table() -> None:
    assert cancellation_rule("3304557").max_hours == 72
    assert cancellation_rule("3106200").max_hours == 24
    assert cancellation_rule("9999999").max_hours == settings.CANCEL_DEADLINE_HOURS
    assert cancellation_rule(None).allowed_statuses == (InvoiceStatus.AUTHORIZED,)
    assert is_valid_municipality_code("3550308")
    assert not is_valid_municipality_code("355030")
    assert not is_valid_municipality_code(None)
