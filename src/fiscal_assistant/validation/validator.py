"""Pre-execution checks for emission and cancellation plans.

Every check runs; errors accumulate so the user gets the whole remediation
list in one turn. Checks read collaborator state independently and run on
a thread pool, and the verdict keeps the declared check order.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from fiscal_assistant.collaborators.base import FiscalRegistry, InvoiceHistory, QuotaService
from fiscal_assistant.collaborators.records import (
    ConnectionHealth,
    FiscalRegistration,
    InvoiceRecord,
    InvoiceStatus,
    TaxRegime,
)
from fiscal_assistant.config import settings
from fiscal_assistant.intent.types import ActionPlan
from fiscal_assistant.logging import get_logger
from fiscal_assistant.utils.formatting import format_brl, format_date

from .plans import ACTIVE_SUBSCRIPTION_STATUSES, quota_suggestions
from .rules import REGIME_RULES, cancellation_rule, is_valid_municipality_code
from .types import ValidationVerdict

logger = get_logger(__name__)

CONNECT_HINT = "Acesse Configurações > Dados Fiscais para conectar sua empresa à prefeitura."
CERT_HINT = "Envie um novo certificado digital em Configurações > Certificado."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


@dataclass
class CheckContext:
    tenant_id: str
    data: dict[str, Any]
    now: datetime
    extras: dict[str, Any] = field(default_factory=dict)


Check = Callable[[CheckContext], ValidationVerdict]


class ActionValidator:
    def __init__(
        self,
        quota: QuotaService,
        registry: FiscalRegistry,
        history: InvoiceHistory,
        clock: Callable[[], datetime] = _utcnow,
        workers: int | None = None,
    ) -> None:
        self.quota = quota
        self.registry = registry
        self.history = history
        self._clock = clock
        self.workers = workers or settings.VALIDATION_WORKERS

        self.emission_checks: tuple[tuple[str, Check], ...] = (
            ("plan", self._check_plan),
            ("counterparty", self._check_counterparty),
            ("registration", self._check_registration),
            ("municipality", self._check_municipality),
            ("credentials", self._check_credentials),
            ("connection", self._check_connection),
            ("regime", self._check_regime),
        )
        self.cancellation_checks: tuple[tuple[str, Check], ...] = (
            ("subscription", self._check_subscription),
            ("registration", self._check_registration),
            ("municipality", self._check_municipality),
            ("credentials", self._check_credentials),
            ("connection", self._check_connection),
            ("invoice", self._check_cancellable),
            ("justification", self._check_justification),
            ("deadline", self._check_deadline),
        )

    # -- entry points ------------------------------------------------------

    def validate(self, plan: ActionPlan, tenant_id: str) -> ValidationVerdict:
        if plan.type == "emit_invoice":
            return self.validate_emission(tenant_id, plan.data)
        if plan.type == "cancel_invoice":
            return self.validate_cancellation(tenant_id, plan.data)
        return ValidationVerdict()

    def validate_emission(self, tenant_id: str, data: dict[str, Any]) -> ValidationVerdict:
        return self._run(self.emission_checks, CheckContext(tenant_id, dict(data), self._clock()))

    def validate_cancellation(self, tenant_id: str, data: dict[str, Any]) -> ValidationVerdict:
        return self._run(self.cancellation_checks, CheckContext(tenant_id, dict(data), self._clock()))

    def _run(self, checks: Sequence[tuple[str, Check]], ctx: CheckContext) -> ValidationVerdict:
        def run_one(entry: tuple[str, Check]) -> ValidationVerdict:
            name, check = entry
            try:
                return check(ctx)
            except Exception as exc:
                logger.exception(f"validation check {name!r} failed for tenant={ctx.tenant_id}")
                partial = ValidationVerdict()
                partial.error(
                    "check-unavailable",
                    "Não foi possível concluir todas as verificações agora. Tente novamente em instantes.",
                    check=name,
                    error=type(exc).__name__,
                )
                return partial

        verdict = ValidationVerdict()
        with ThreadPoolExecutor(max_workers=self.workers) as ex:
            for partial in ex.map(run_one, checks):
                verdict.extend(partial)
        logger.info(
            f"validation tenant={ctx.tenant_id} valid={verdict.valid} "
            f"errors={verdict.codes()} warnings={[w.code for w in verdict.warnings]}"
        )
        return verdict

    # -- shared ------------------------------------------------------------

    def _registration(self, ctx: CheckContext) -> FiscalRegistration | None:
        reg = self.registry.registration(ctx.tenant_id)
        if reg is None or not reg.external_id:
            return None
        return reg

    def _check_subscription(self, ctx: CheckContext) -> ValidationVerdict:
        v = ValidationVerdict()
        quota = self.quota.status(ctx.tenant_id)
        if quota.subscription_status.lower() not in ACTIVE_SUBSCRIPTION_STATUSES:
            item = v.error(
                "subscription-inactive",
                "Sua assinatura não está ativa. Regularize o pagamento para continuar emitindo notas.",
                status=quota.subscription_status,
            )
            item.suggestions.append("Acesse Configurações > Assinatura para reativar seu plano.")
        return v

    def _check_plan(self, ctx: CheckContext) -> ValidationVerdict:
        v = self._check_subscription(ctx)
        quota = self.quota.status(ctx.tenant_id)
        remaining = quota.remaining
        if remaining is None:
            return v
        if remaining <= 0:
            item = v.error(
                "quota-exceeded",
                f"Você atingiu o limite de {quota.invoices_allowed} notas fiscais deste mês.",
                current=quota.invoices_used,
                max=quota.invoices_allowed,
                remaining=remaining,
            )
            item.suggestions.extend(quota_suggestions(quota))
        elif remaining <= settings.QUOTA_WARNING_REMAINING:
            plural = "s" if remaining > 1 else ""
            v.warn(
                "quota-near-limit",
                f"Você tem apenas {remaining} nota{plural} restante{plural} este mês.",
                current=quota.invoices_used,
                max=quota.invoices_allowed,
                remaining=remaining,
            )
        return v

    def _check_registration(self, ctx: CheckContext) -> ValidationVerdict:
        v = ValidationVerdict()
        if self._registration(ctx) is None:
            item = v.error(
                "company-not-registered",
                "Sua empresa ainda não está registrada para emissão de notas fiscais.",
            )
            item.suggestions.append(CONNECT_HINT)
        return v

    def _check_municipality(self, ctx: CheckContext) -> ValidationVerdict:
        v = ValidationVerdict()
        reg = self._registration(ctx)
        if reg is None:
            return v
        code = reg.municipality_code
        if not code:
            v.error(
                "municipality-missing",
                "O município da empresa não está configurado.",
            ).suggestions.append("Informe o código IBGE do município em Configurações > Empresa.")
        elif not is_valid_municipality_code(code):
            v.error(
                "municipality-invalid",
                "O código do município deve ter 7 dígitos (código IBGE).",
                municipality_code=code,
            )
        elif reg.municipality_supported is False:
            where = reg.municipality_name or code
            v.error(
                "municipality-unsupported",
                f"A emissão de NFS-e ainda não está disponível para {where}.",
                municipality_code=code,
            )
        elif reg.municipality_supported is None:
            v.warn(
                "municipality-support-unknown",
                "Não conseguimos confirmar se seu município está habilitado para emissão.",
                municipality_code=code,
            )
        return v

    def _check_credentials(self, ctx: CheckContext) -> ValidationVerdict:
        v = ValidationVerdict()
        reg = self._registration(ctx)
        if reg is None:
            return v
        if not reg.credential_present:
            v.error(
                "credentials-missing",
                "Nenhum certificado digital ou credencial da prefeitura foi configurado.",
            ).suggestions.append(CERT_HINT)
            return v
        if reg.credential_expires_at is None:
            return v
        expires = _aware(reg.credential_expires_at)
        days_left = (expires - ctx.now).total_seconds() / 86400
        if days_left <= 0:
            v.error(
                "certificate-expired",
                f"Seu certificado digital expirou em {format_date(expires)}.",
                expires_at=expires.isoformat(),
            ).suggestions.append(CERT_HINT)
        elif days_left <= settings.CERT_EXPIRY_WARNING_DAYS:
            v.warn(
                "certificate-expiring",
                f"Seu certificado digital expira em {int(days_left)} dia(s).",
                expires_at=expires.isoformat(),
                days_left=int(days_left),
            )
        return v

    def _check_connection(self, ctx: CheckContext) -> ValidationVerdict:
        v = ValidationVerdict()
        reg = self._registration(ctx)
        if reg is None:
            return v
        if reg.connection is ConnectionHealth.FAILED:
            v.error(
                "fiscal-connection-failed",
                "A última verificação de conexão com a prefeitura falhou.",
            ).suggestions.append("Verifique suas credenciais e teste a conexão novamente.")
        elif reg.connection is ConnectionHealth.NOT_CONNECTED:
            v.error(
                "fiscal-not-connected",
                "Sua empresa ainda não está conectada à prefeitura.",
            ).suggestions.append(CONNECT_HINT)
        return v

    # -- emission ----------------------------------------------------------

    def _check_counterparty(self, ctx: CheckContext) -> ValidationVerdict:
        v = ValidationVerdict()
        if not (ctx.data.get("counterparty_name") or "").strip():
            v.error("counterparty-name-missing", "Nome do cliente é obrigatório.")
        amount = ctx.data.get("amount")
        if not isinstance(amount, (int, float)) or amount <= 0:
            v.error(
                "amount-invalid",
                "Valor da nota fiscal deve ser maior que zero.",
                amount=amount,
            )
        return v

    def _check_regime(self, ctx: CheckContext) -> ValidationVerdict:
        v = ValidationVerdict()
        reg = self._registration(ctx)
        if reg is None:
            return v
        rule = REGIME_RULES.get(reg.regime)
        iss_rate = ctx.data.get("iss_rate")
        if reg.regime is TaxRegime.MEI and rule is not None:
            amount = float(ctx.data.get("amount") or 0)
            year_start = ctx.now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
            ytd = self.history.total(ctx.tenant_id, start=year_start)
            new_total = ytd + amount
            if rule.annual_limit and new_total > rule.annual_limit:
                v.error(
                    "mei-annual-limit-exceeded",
                    f"Esta nota ultrapassaria o limite anual do MEI ({format_brl(rule.annual_limit)}). "
                    f"Faturamento atual: {format_brl(ytd)}.",
                    year_to_date=ytd,
                    limit=rule.annual_limit,
                ).suggestions.append("Converse com seu contador sobre a migração para o Simples Nacional.")
            elif rule.annual_limit and new_total >= rule.annual_limit * 0.8:
                v.warn(
                    "mei-annual-limit-near",
                    "Você está próximo do limite anual do MEI. Considere migrar para o Simples Nacional.",
                    year_to_date=ytd,
                    limit=rule.annual_limit,
                )
            if iss_rate is not None and float(iss_rate) != rule.fixed_iss_rate:
                v.error(
                    "mei-iss-rate",
                    f"MEI deve usar alíquota de ISS de {rule.fixed_iss_rate:g}%. Valor fornecido: {float(iss_rate):g}%.",
                    iss_rate=iss_rate,
                )
        elif reg.regime is TaxRegime.SIMPLES_NACIONAL and rule is not None and iss_rate is not None:
            if not 0 <= float(iss_rate) <= (rule.max_iss_rate or 5.0):
                v.error(
                    "simples-iss-rate",
                    "Alíquota de ISS inválida para Simples Nacional. Verifique a alíquota do seu município.",
                    iss_rate=iss_rate,
                )
        return v

    # -- cancellation ------------------------------------------------------

    def _invoice(self, ctx: CheckContext) -> InvoiceRecord | None:
        if "invoice" not in ctx.extras:
            invoice_id = ctx.data.get("invoice_id")
            number = ctx.data.get("invoice_number")
            found = self.history.get(ctx.tenant_id, invoice_id) if invoice_id else None
            if found is None and number:
                found = self.history.by_number(ctx.tenant_id, str(number))
            ctx.extras["invoice"] = found
        return ctx.extras["invoice"]

    def _check_cancellable(self, ctx: CheckContext) -> ValidationVerdict:
        v = ValidationVerdict()
        inv = self._invoice(ctx)
        if inv is None:
            v.error("invoice-not-found", "Nota fiscal não encontrada.")
            return v
        rule = cancellation_rule(inv.municipality_code)
        if inv.status is InvoiceStatus.CANCELLED:
            v.error("already-cancelled", "Esta nota fiscal já foi cancelada.", number=inv.number)
        elif inv.status not in rule.allowed_statuses:
            allowed = ", ".join(s.value for s in rule.allowed_statuses)
            v.error(
                "invalid-status",
                f'Notas com status "{inv.status.value}" não podem ser canceladas. '
                f"Apenas notas com status: {allowed}.",
                status=inv.status.value,
            )
        return v

    def _check_justification(self, ctx: CheckContext) -> ValidationVerdict:
        v = ValidationVerdict()
        text = (ctx.data.get("justification") or "").strip()
        minimum = settings.MIN_JUSTIFICATION_LENGTH
        if not text:
            v.error("justification-required", "É obrigatório informar o motivo do cancelamento.")
        elif len(text) < minimum:
            v.error(
                "justification-too-short",
                f"O motivo do cancelamento deve ter pelo menos {minimum} caracteres.",
                length=len(text),
                minimum=minimum,
            )
        return v

    def _check_deadline(self, ctx: CheckContext) -> ValidationVerdict:
        v = ValidationVerdict()
        inv = self._invoice(ctx)
        if inv is None or inv.status is not InvoiceStatus.AUTHORIZED:
            return v
        reg = self.registry.registration(ctx.tenant_id)
        rule = cancellation_rule(inv.municipality_code or (reg.municipality_code if reg else None))
        elapsed = (ctx.now - _aware(inv.issued_at)).total_seconds() / 3600
        if elapsed > rule.max_hours:
            days, hours = divmod(int(elapsed), 24)
            v.error(
                "cancellation-deadline-expired",
                f"O prazo para cancelamento desta nota expirou. Limite: {rule.max_hours} horas. "
                f"Tempo decorrido: {days} dia(s) e {hours} hora(s).",
                max_hours=rule.max_hours,
                hours_elapsed=int(elapsed),
                issued_at=_aware(inv.issued_at).isoformat(),
            )
        elif elapsed > rule.max_hours * (1 - settings.CANCEL_WARNING_MARGIN):
            v.warn(
                "cancellation-deadline-near",
                f"Atenção: restam apenas {int(rule.max_hours - elapsed)} hora(s) para cancelar esta nota.",
                max_hours=rule.max_hours,
                hours_elapsed=int(elapsed),
            )
        return v
