"""Runs a confirmed, validated action plan against the execution sink."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from fiscal_assistant.collaborators.base import CounterpartyDirectory, ExecutionSink, TurnLog
from fiscal_assistant.collaborators.records import ExecutionResult
from fiscal_assistant.config import settings
from fiscal_assistant.errors import DuplicateDocumentError, ExecutionFailure
from fiscal_assistant.intent.normalize import normalize_text
from fiscal_assistant.intent.types import ActionPlan, Utterance
from fiscal_assistant.logging import get_logger
from fiscal_assistant.utils.formatting import format_brl
from fiscal_assistant.validation.types import ValidationVerdict
from fiscal_assistant.validation.validator import ActionValidator

from .errors import translate_error

logger = get_logger(__name__)

AFFIRMATIVE_REPLIES = frozenset(
    {
        "sim",
        "s",
        "confirmo",
        "confirma",
        "confirmar",
        "confirmado",
        "ok",
        "pode",
        "pode sim",
        "pode emitir",
        "pode cancelar",
        "isso",
        "isso mesmo",
        "certo",
        "claro",
        "manda",
        "yes",
    }
)
_PUNCT_RE = re.compile(r"[!.?,;]+")

CONFIRMATION_REQUIRED_TEXT = "Preciso da sua confirmação antes de continuar. Responda \"sim\" para confirmar."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Confirmation:
    plan_id: str
    confirmed_at: datetime


def confirm(
    plan: ActionPlan, reply: str, clock: Callable[[], datetime] = _utcnow
) -> Confirmation | None:
    """Confirmation for ``plan`` if ``reply`` is an explicit yes."""
    text = _PUNCT_RE.sub("", normalize_text(reply)).strip()
    if text in AFFIRMATIVE_REPLIES:
        return Confirmation(plan_id=plan.plan_id, confirmed_at=clock())
    return None


@dataclass
class ExecutionOutcome:
    ok: bool
    plan: ActionPlan
    message: str
    result: ExecutionResult | None = None
    verdict: ValidationVerdict | None = None
    # operator-only detail; never rendered to the user
    diagnostics: dict[str, Any] = field(default_factory=dict)


class ActionExecutor:
    def __init__(
        self,
        validator: ActionValidator,
        sink: ExecutionSink,
        directory: CounterpartyDirectory,
        turn_log: TurnLog | None = None,
    ) -> None:
        self.validator = validator
        self.sink = sink
        self.directory = directory
        self.turn_log = turn_log

    def execute(
        self,
        plan: ActionPlan,
        utterance: Utterance,
        confirmation: Confirmation | None = None,
    ) -> ExecutionOutcome:
        if plan.requires_confirmation and (
            confirmation is None or confirmation.plan_id != plan.plan_id
        ):
            logger.warning(f"plan {plan.plan_id} ({plan.type}) refused: no matching confirmation")
            outcome = ExecutionOutcome(
                ok=False,
                plan=plan,
                message=CONFIRMATION_REQUIRED_TEXT,
                diagnostics={"reason": "confirmation-required"},
            )
        elif plan.type == "emit_invoice":
            outcome = self._emit(plan, utterance)
        elif plan.type == "cancel_invoice":
            outcome = self._cancel(plan, utterance)
        elif plan.type == "create_client":
            outcome = self._create_client(plan, utterance)
        else:
            outcome = ExecutionOutcome(ok=True, plan=plan, message=plan.explanation)
        self._record(utterance, outcome)
        return outcome

    # -- actions -----------------------------------------------------------

    def _validated(
        self, plan: ActionPlan, utterance: Utterance, title: str
    ) -> tuple[ValidationVerdict, ExecutionOutcome | None]:
        verdict = self.validator.validate(plan, utterance.tenant_id)
        if verdict.valid:
            return verdict, None
        return verdict, ExecutionOutcome(
            ok=False,
            plan=plan,
            message=verdict.render(title),
            verdict=verdict,
            diagnostics={"reason": "validation", "codes": verdict.codes()},
        )

    def _failure(
        self, plan: ActionPlan, utterance: Utterance, exc: Exception, verdict: ValidationVerdict | None
    ) -> ExecutionOutcome:
        translated = translate_error(exc, municipality=utterance.municipality_name)
        detail = exc.as_dict() if isinstance(exc, ExecutionFailure) else {"message": str(exc)}
        logger.error(
            f"execution of {plan.type} failed for tenant={utterance.tenant_id}: "
            f"{type(exc).__name__} {detail}"
        )
        return ExecutionOutcome(
            ok=False,
            plan=plan,
            message=translated.render(),
            verdict=verdict,
            diagnostics={
                "reason": "execution",
                "category": translated.category,
                "error": detail,
                "exception": type(exc).__name__,
            },
        )

    @staticmethod
    def _with_warnings(message: str, verdict: ValidationVerdict | None) -> str:
        if verdict is None or not verdict.warnings:
            return message
        return message + "\n\n" + "\n".join(f"⚠️ {w.message}" for w in verdict.warnings)

    def _emit(self, plan: ActionPlan, utterance: Utterance) -> ExecutionOutcome:
        verdict, blocked = self._validated(plan, utterance, "Não é possível emitir a nota:")
        if blocked is not None:
            return blocked
        payload = dict(plan.data)
        if payload.get("iss_rate") is None:
            payload["iss_rate"] = settings.DEFAULT_ISS_RATE
        try:
            result = self.sink.emit_invoice(utterance.tenant_id, payload)
        except Exception as exc:
            return self._failure(plan, utterance, exc, verdict)
        message = (
            f"✅ Nota fiscal emitida com sucesso! {format_brl(float(payload['amount']))} "
            f"para {payload.get('counterparty_name', '')}."
        )
        if result.number:
            message += f" Número: {result.number}."
        if result.verification_code:
            message += f" Código de verificação: {result.verification_code}."
        return ExecutionOutcome(
            ok=True,
            plan=plan,
            message=self._with_warnings(message, verdict),
            result=result,
            verdict=verdict,
        )

    def _cancel(self, plan: ActionPlan, utterance: Utterance) -> ExecutionOutcome:
        verdict, blocked = self._validated(plan, utterance, "Não é possível cancelar a nota:")
        if blocked is not None:
            return blocked
        try:
            result = self.sink.cancel_invoice(
                utterance.tenant_id,
                plan.data["invoice_id"],
                (plan.data.get("justification") or "").strip(),
            )
        except Exception as exc:
            return self._failure(plan, utterance, exc, verdict)
        number = plan.data.get("invoice_number") or result.number
        return ExecutionOutcome(
            ok=True,
            plan=plan,
            message=self._with_warnings(f"✅ Nota {number} cancelada com sucesso.", verdict),
            result=result,
            verdict=verdict,
        )

    def _create_client(self, plan: ActionPlan, utterance: Utterance) -> ExecutionOutcome:
        data = plan.data
        try:
            cp = self.directory.create(
                utterance.tenant_id,
                name=data["name"],
                document=data["document"],
                email=data.get("email"),
                phone=data.get("phone"),
            )
        except DuplicateDocumentError as exc:
            logger.info(f"client create rejected: {exc}")
            return ExecutionOutcome(
                ok=False,
                plan=plan,
                message="Já existe um cliente cadastrado com este CPF/CNPJ.",
                diagnostics={"reason": "duplicate-document", "document": exc.document},
            )
        return ExecutionOutcome(
            ok=True,
            plan=plan,
            message=f"✅ Cliente {cp.name} cadastrado com sucesso!",
            result=ExecutionResult(record_id=cp.id, status="created"),
        )

    def _record(self, utterance: Utterance, outcome: ExecutionOutcome) -> None:
        if self.turn_log is None:
            return
        try:
            self.turn_log.append(
                utterance.user_id,
                "assistant",
                outcome.message,
                metadata={
                    "plan_id": outcome.plan.plan_id,
                    "type": outcome.plan.type,
                    "ok": outcome.ok,
                    "record_id": outcome.result.record_id if outcome.result else None,
                },
            )
        except Exception:
            logger.exception(f"could not record outcome for user={utterance.user_id}")
