from __future__ import annotations

from fiscal_assistant.config import settings

from .catalog import describe
from .types import Clarification, Classification, IntentTag

GENERIC_CLARIFICATION = (
    "Desculpe, não entendi completamente. Pode reformular sua pergunta? "
    "Posso ajudar com:\n\n"
    "• Emitir notas fiscais\n"
    "• Consultar faturamento\n"
    "• Ver impostos pendentes\n"
    "• Gerenciar clientes"
)


def needs_clarification(classification: Classification) -> bool:
    top = classification.top
    if top.confidence < settings.CLARIFY_CONFIDENCE_TAU:
        return True
    if classification.alternatives:
        best_alt = classification.alternatives[0]
        if (
            best_alt.confidence > settings.CLARIFY_ALTERNATIVE_TAU
            and top.confidence - best_alt.confidence < settings.CLARIFY_GAP
        ):
            return True
    return False


def clarify(classification: Classification) -> Clarification:
    """Build the question asking the user to pick among close intents.

    Falls back to the generic menu when fewer than two of the candidates
    have a human-readable label.
    """
    if not needs_clarification(classification):
        return Clarification(needed=False)

    candidates = [classification.top, *classification.alternatives][:3]
    options: list[IntentTag] = []
    labels: list[str] = []
    for score in candidates:
        label = describe(score.intent)
        if label:
            options.append(score.intent)
            labels.append(label)

    if len(labels) < 2:
        return Clarification(needed=True, question=GENERIC_CLARIFICATION)

    numbered = "\n".join(f"{i}. {label}" for i, label in enumerate(labels, start=1))
    question = f"Não tenho certeza se você quer:\n{numbered}\n\nPode me dizer qual opção?"
    return Clarification(needed=True, question=question, options=options)
