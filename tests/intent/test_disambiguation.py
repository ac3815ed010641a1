from fiscal_assistant.intent.disambiguation import (
    GENERIC_CLARIFICATION,
    clarify,
    needs_clarification,
)
from fiscal_assistant.intent.types import Classification, IntentScore, IntentTag


def _classification(*scores: tuple[IntentTag, float]) -> Classification:
    items = [IntentScore(intent, conf) for intent, conf in scores]
    return Classification(top=items[0], alternatives=items[1:], scores=items)


def test_close_alternatives_need_clarification() -> None:
    c = _classification((IntentTag.EMIT_INVOICE, 0.5), (IntentTag.CANCEL_INVOICE, 0.45))
    assert needs_clarification(c) is True


def test_clear_winner_does_not_need_clarification() -> None:
    c = _classification((IntentTag.EMIT_INVOICE, 0.9), (IntentTag.CANCEL_INVOICE, 0.2))
    assert needs_clarification(c) is False
    assert clarify(c).needed is False


def test_low_confidence_needs_clarification() -> None:
    assert needs_clarification(_classification((IntentTag.REVENUE_QUERY, 0.3))) is True


def test_clarify_lists_labelled_options() -> None:
    c = _classification((IntentTag.EMIT_INVOICE, 0.5), (IntentTag.CANCEL_INVOICE, 0.45))
    result = clarify(c)
    assert result.needed is True
    assert result.options == [IntentTag.EMIT_INVOICE, IntentTag.CANCEL_INVOICE]
    assert "1. emitir uma nota fiscal" in result.question
    assert "2. cancelar uma nota fiscal" in result.question


def test_clarify_falls_back_to_generic_menu() -> None:
    """Intents without a label cannot be offered as options."""
    c = _classification((IntentTag.GREETING, 0.35), (IntentTag.HELP, 0.3))
    result = clarify(c)
    assert result.needed is True
    assert result.question == GENERIC_CLARIFICATION
    assert result.options == []
