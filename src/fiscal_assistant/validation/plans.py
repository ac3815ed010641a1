"""Subscription plan catalog and upgrade suggestions."""

from __future__ import annotations

from fiscal_assistant.collaborators.records import PlanOption, QuotaStatus
from fiscal_assistant.config import settings
from fiscal_assistant.utils.formatting import format_brl

PLANS: dict[str, PlanOption] = {
    "trial": PlanOption("trial", "Trial", 0.0, max_invoices=5, max_companies=1),
    "essential": PlanOption("essential", "Essential", 79.0, max_invoices=30, max_companies=2),
    "pro": PlanOption("pro", "Pro", 97.0, max_invoices=None, max_companies=1),
    "professional": PlanOption(
        "professional", "Professional", 149.0, max_invoices=100, max_companies=5
    ),
    "business": PlanOption("business", "Business", 197.0, max_invoices=None, max_companies=5),
    "accountant": PlanOption("accountant", "Accountant", None, max_invoices=None, max_companies=None),
    "pay_per_use": PlanOption(
        "pay_per_use",
        "Pay per Use",
        None,
        max_invoices=None,
        max_companies=1,
        per_invoice_price=settings.PAY_PER_USE_PRICE,
    ),
}

UPGRADE_ORDER: tuple[str, ...] = (
    "trial",
    "essential",
    "pro",
    "professional",
    "business",
    "accountant",
)

ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"ativo", "active", "trial", "trialing"})


def upgrade_options(plan_id: str) -> list[PlanOption]:
    """Plans above ``plan_id`` in the upgrade order, then pay-per-use."""
    try:
        idx = UPGRADE_ORDER.index(plan_id)
    except ValueError:
        idx = -1
    options = [PLANS[p] for p in UPGRADE_ORDER[idx + 1 :]]
    if plan_id != "pay_per_use":
        options.append(PLANS["pay_per_use"])
    return options


def describe_option(option: PlanOption) -> str:
    if option.per_invoice_price is not None:
        return f"Usar {option.name} ({format_brl(option.per_invoice_price)} por nota emitida)"
    limit = (
        "notas ilimitadas"
        if option.max_invoices is None
        else f"até {option.max_invoices} notas/mês"
    )
    if option.monthly_price is None:
        return f"Fazer upgrade para o plano {option.name} ({limit}, preço sob consulta)"
    return (
        f"Fazer upgrade para o plano {option.name} "
        f"({limit}) por {format_brl(option.monthly_price)}/mês"
    )


def quota_suggestions(quota: QuotaStatus) -> list[str]:
    options = quota.upgrade_options or upgrade_options(quota.plan_id)
    return [describe_option(o) for o in options]
