"""Top-level controller for one conversational turn.

received -> classified -> (handled_deterministically | delegated_to_model)
-> responded. The delegated path is bounded by ``LLM_TIMEOUT_S`` and any
failure on it falls back to the deterministic responder with the
classification already computed, so a turn always produces a plan.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Sequence

from fiscal_assistant.collaborators.base import FiscalRegistry, TurnLog
from fiscal_assistant.config import settings
from fiscal_assistant.errors import ModelAdapterError
from fiscal_assistant.intent.interpreter import Interpretation, interpret
from fiscal_assistant.intent.llm import (
    CLARIFICATION_OPERATION,
    ChatAdapter,
    ModelProposal,
    propose,
)
from fiscal_assistant.intent.types import ActionPlan, IntentTag, Turn, Utterance
from fiscal_assistant.logging import get_logger
from fiscal_assistant.responder.chain import DeterministicResponder, ResponderRequest
from fiscal_assistant.responder.messages import NOT_UNDERSTOOD_TEXT

from .routing import RouteAction, RouteDecision, Router

logger = get_logger(__name__)


class TurnState:
    RECEIVED = "received"
    CLASSIFIED = "classified"
    HANDLED_DETERMINISTICALLY = "handled_deterministically"
    DELEGATED_TO_MODEL = "delegated_to_model"
    RESPONDED = "responded"


@dataclass
class TurnRecord:
    plan: ActionPlan
    interpretation: Interpretation
    route: RouteDecision
    states: list[str] = field(default_factory=list)
    model_error: str | None = None
    usage: dict[str, int] = field(default_factory=dict)


def not_understood_plan() -> ActionPlan:
    return ActionPlan(
        type="not_understood",
        explanation=NOT_UNDERSTOOD_TEXT,
        requires_confirmation=False,
        intent=IntentTag.UNKNOWN,
        source="fallback",
    )


class CommandOrchestrator:
    def __init__(
        self,
        responder: DeterministicResponder,
        turn_log: TurnLog,
        registry: FiscalRegistry | None = None,
        adapter: ChatAdapter | None = None,
        model_timeout_s: float | None = None,
    ) -> None:
        self.responder = responder
        self.turn_log = turn_log
        self.registry = registry
        self.adapter = adapter
        self.model_timeout_s = model_timeout_s or settings.LLM_TIMEOUT_S
        self.router = Router(settings, model_available=adapter is not None or bool(settings.OPENAI_API_KEY))
        self._pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="model")

    def close(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)

    # -- history / context -------------------------------------------------

    def _history(self, utterance: Utterance) -> Sequence[Turn]:
        if utterance.history:
            return utterance.history
        try:
            return self.turn_log.recent(utterance.user_id, limit=settings.HISTORY_LIMIT)
        except Exception:
            logger.exception(f"could not read history for user={utterance.user_id}; continuing without")
            return ()

    def _company_context(self, tenant_id: str) -> str:
        reg = self.registry.registration(tenant_id) if self.registry else None
        if reg is None:
            return ""
        parts = []
        if reg.company_name:
            parts.append(f"EMPRESA: {reg.company_name}")
        if reg.regime:
            parts.append(f"REGIME: {reg.regime.value}")
        if reg.municipality_name:
            parts.append(f"MUNICÍPIO: {reg.municipality_name}")
        return "\n".join(parts)

    # -- model path --------------------------------------------------------

    def _delegate(self, utterance: Utterance, history: Sequence[Turn]) -> ModelProposal:
        fut = self._pool.submit(
            propose,
            utterance.text,
            history,
            self._company_context(utterance.tenant_id),
            self.adapter,
            self.model_timeout_s,
        )
        try:
            return fut.result(timeout=self.model_timeout_s)
        except FutureTimeout as exc:
            fut.cancel()
            raise ModelAdapterError("timeout", f"no reply after {self.model_timeout_s}s") from exc

    def _plan_from_proposal(
        self, proposal: ModelProposal, interp: Interpretation, utterance: Utterance
    ) -> ActionPlan:
        if proposal.is_text:
            return ActionPlan(
                type="explain",
                explanation=proposal.text,
                intent=interp.classification.top.intent,
                source="model",
            )
        if proposal.operation == CLARIFICATION_OPERATION:
            suggestions = proposal.arguments.get("suggestions") or []
            question = proposal.arguments.get("missing_info", "")
            if suggestions:
                question += "\n\n" + "\n".join(f"{i}. {s}" for i, s in enumerate(suggestions, start=1))
            return ActionPlan(
                type="clarify",
                data={"options": list(suggestions)},
                explanation=question,
                source="model",
            )
        request = ResponderRequest(
            text=interp.text,
            normalized=interp.normalized,
            entities=interp.entities,
            tenant_id=utterance.tenant_id,
            intent=proposal.intent or IntentTag.UNKNOWN,
            arguments=proposal.arguments,
            active_counterparty_id=utterance.active_counterparty_id,
        )
        plan = self.responder.plan_for(request)
        if plan is None:
            raise ModelAdapterError("malformed", f"no handler for {proposal.operation!r}")
        plan.source = "model"
        return plan

    # -- deterministic path ------------------------------------------------

    def _respond(self, interp: Interpretation, utterance: Utterance, source: str) -> ActionPlan:
        try:
            plan = self.responder.respond(
                interp,
                tenant_id=utterance.tenant_id,
                active_counterparty_id=utterance.active_counterparty_id,
            )
        except Exception:
            logger.exception("deterministic responder failed")
            return not_understood_plan()
        plan.source = source
        return plan

    # -- entry point -------------------------------------------------------

    def handle(self, utterance: Utterance) -> TurnRecord:
        states = [TurnState.RECEIVED]
        history = self._history(utterance)
        interp = interpret(utterance.text)
        states.append(TurnState.CLASSIFIED)

        route = self.router.decide(interp)
        logger.info(
            f"user={utterance.user_id} intent={interp.classification.top.intent.value} "
            f"confidence={interp.confidence:.2f} route={route.action} reason={route.reason}"
        )

        model_error = None
        usage: dict[str, int] = {}
        if route.action == RouteAction.DELEGATE:
            states.append(TurnState.DELEGATED_TO_MODEL)
            try:
                proposal = self._delegate(utterance, history)
                usage = proposal.usage
                plan = self._plan_from_proposal(proposal, interp, utterance)
            except Exception as exc:
                model_error = exc.reason if isinstance(exc, ModelAdapterError) else type(exc).__name__
                logger.warning(f"model delegation failed ({type(exc).__name__}: {exc}); falling back")
                states.append(TurnState.HANDLED_DETERMINISTICALLY)
                plan = self._respond(interp, utterance, source="fallback")
        else:
            states.append(TurnState.HANDLED_DETERMINISTICALLY)
            plan = self._respond(interp, utterance, source="deterministic")

        self._record(utterance, plan)
        states.append(TurnState.RESPONDED)
        return TurnRecord(
            plan=plan,
            interpretation=interp,
            route=route,
            states=states,
            model_error=model_error,
            usage=usage,
        )

    def _record(self, utterance: Utterance, plan: ActionPlan) -> None:
        try:
            self.turn_log.append(utterance.user_id, "user", utterance.text)
            self.turn_log.append(
                utterance.user_id, "assistant", plan.explanation, metadata=plan.as_dict()
            )
        except Exception:
            logger.exception(f"could not append turn for user={utterance.user_id}")
