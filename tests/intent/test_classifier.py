import pytest
from fiscal_assistant.intent.catalog import INTENT_CATALOG, rule_for
from fiscal_assistant.intent.classifier import (
    CLIENT_CREATION_CONFIDENCE,
    classify,
    score_intents,
)
from fiscal_assistant.intent.types import IntentTag


def _intents(text: str) -> list[IntentTag]:
    return [s.intent for s in score_intents(text)]


def test_classify_emission_is_confident() -> None:
    result = classify("Emitir nota de R$ 1.500 para João Silva")
    assert result.top.intent == IntentTag.EMIT_INVOICE
    assert result.top.confidence >= 0.6


def test_classify_survives_typos() -> None:
    result = classify("emtir nf pra joao 500 reais")
    assert result.top.intent == IntentTag.EMIT_INVOICE
    assert result.top.confidence >= 0.6


def test_classify_greeting_exact_match() -> None:
    result = classify("oi")
    assert result.top.intent == IntentTag.GREETING
    assert result.top.confidence == pytest.approx(0.78)


def test_classify_client_creation_shortcut() -> None:
    result = classify("João Silva cpf 123.456.789-01")
    assert result.top.intent == IntentTag.CREATE_CLIENT
    assert result.top.confidence == CLIENT_CREATION_CONFIDENCE
    assert result.alternatives == []


def test_bare_das_is_not_a_tax_query_when_a_document_is_present() -> None:
    assert IntentTag.VIEW_TAXES in _intents("notas das clientes")
    assert IntentTag.VIEW_TAXES not in _intents("notas das clientes 12345678901")


def test_explicit_tax_words_still_count() -> None:
    result = classify("ver impostos")
    assert result.top.intent == IntentTag.VIEW_TAXES


def test_scores_are_bounded_and_sorted() -> None:
    scores = score_intents("emitir nova nota fiscal de serviço gerar criar fazer")
    values = [s.confidence for s in scores]
    assert values == sorted(values, reverse=True)
    assert all(0.0 < v <= 1.0 for v in values)


def test_alternatives_are_capped() -> None:
    result = classify("ver minhas notas e meus clientes")
    assert len(result.alternatives) <= 2
    assert result.top not in result.alternatives


def test_unknown_for_empty_or_unrelated_text() -> None:
    assert classify("").top.intent == IntentTag.UNKNOWN
    assert classify(None).top.confidence == 0.0
    assert classify("xyzzy plugh").top.intent == IntentTag.UNKNOWN


def test_catalog_confirmation_flags() -> None:
    """Only state-changing intents require confirmation."""
    mutating = {r.intent for r in INTENT_CATALOG if r.requires_confirmation}
    assert mutating == {
        IntentTag.EMIT_INVOICE,
        IntentTag.CANCEL_INVOICE,
        IntentTag.CREATE_CLIENT,
    }
    assert rule_for(IntentTag.UNKNOWN) is None


def test_emission_with_document_is_not_a_client_reply() -> None:
    result = classify("emitir nota de 300 reais para cnpj 11.222.333/0001-81")
    assert result.top.intent == IntentTag.EMIT_INVOICE
