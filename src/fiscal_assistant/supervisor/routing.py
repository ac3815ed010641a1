"""Route decision for one classified utterance."""

from __future__ import annotations

from dataclasses import dataclass

from fiscal_assistant.config import Settings
from fiscal_assistant.intent.interpreter import Interpretation
from fiscal_assistant.responder.chain import match_priority_pattern


class RouteAction:
    DETERMINISTIC = "DETERMINISTIC"
    DELEGATE = "DELEGATE"


@dataclass
class RouteDecision:
    action: str
    reason: str
    pattern: str | None = None


class Router:
    def __init__(self, settings: Settings, model_available: bool):
        self.tau_direct = settings.DIRECT_CONFIDENCE_TAU
        self.model_available = model_available and settings.USE_LLM

    def decide(self, interp: Interpretation) -> RouteDecision:
        if not interp.text:
            return RouteDecision(RouteAction.DETERMINISTIC, "empty")
        pattern = match_priority_pattern(interp.text, interp.normalized)
        if pattern is not None:
            return RouteDecision(RouteAction.DETERMINISTIC, "priority_pattern", pattern)
        if interp.confidence >= self.tau_direct:
            return RouteDecision(RouteAction.DETERMINISTIC, "confident")
        if not self.model_available:
            return RouteDecision(RouteAction.DETERMINISTIC, "model_unavailable")
        return RouteDecision(RouteAction.DELEGATE, "low_confidence")
