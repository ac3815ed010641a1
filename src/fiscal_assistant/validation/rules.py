"""Jurisdiction and tax-regime rule tables."""

from __future__ import annotations

import re
from dataclasses import dataclass

from fiscal_assistant.collaborators.records import InvoiceStatus, TaxRegime
from fiscal_assistant.config import settings


@dataclass(frozen=True)
class CancellationRule:
    max_hours: int
    allowed_statuses: tuple[InvoiceStatus, ...] = (InvoiceStatus.AUTHORIZED,)
    notes: str = ""


# IBGE municipality code -> cancellation window after issuance
MUNICIPALITY_CANCELLATION_RULES: dict[str, CancellationRule] = {
    "3550308": CancellationRule(48, notes="São Paulo permite cancelamento em até 48 horas"),
    "3304557": CancellationRule(72, notes="Rio de Janeiro permite cancelamento em até 72 horas"),
    "3106200": CancellationRule(24, notes="Belo Horizonte permite cancelamento em até 24 horas"),
    "4106902": CancellationRule(48, notes="Curitiba permite cancelamento em até 48 horas"),
    "4314902": CancellationRule(120, notes="Porto Alegre permite cancelamento em até 5 dias"),
    "4205407": CancellationRule(48, notes="Florianópolis permite cancelamento em até 48 horas"),
}

_NON_DIGITS = re.compile(r"\D")
_IBGE_RE = re.compile(r"^\d{7}$")


def cancellation_rule(municipality_code: str | None) -> CancellationRule:
    code = _NON_DIGITS.sub("", municipality_code or "")
    rule = MUNICIPALITY_CANCELLATION_RULES.get(code)
    if rule is None:
        return CancellationRule(settings.CANCEL_DEADLINE_HOURS)
    return rule


def is_valid_municipality_code(code: str | None) -> bool:
    return bool(code) and bool(_IBGE_RE.match(code))


@dataclass(frozen=True)
class RegimeRule:
    name: str
    annual_limit: float | None = None
    fixed_iss_rate: float | None = None
    max_iss_rate: float | None = None


REGIME_RULES: dict[TaxRegime, RegimeRule] = {
    TaxRegime.MEI: RegimeRule(
        "Microempreendedor Individual",
        annual_limit=settings.MEI_ANNUAL_LIMIT,
        fixed_iss_rate=settings.MEI_ISS_RATE,
    ),
    TaxRegime.SIMPLES_NACIONAL: RegimeRule("Simples Nacional", max_iss_rate=5.0),
    TaxRegime.LUCRO_PRESUMIDO: RegimeRule("Lucro Presumido"),
    TaxRegime.LUCRO_REAL: RegimeRule("Lucro Real"),
}
