from __future__ import annotations

import re

from fiscal_assistant.config import settings

from .catalog import INTENT_CATALOG, IntentRule
from .entities import contains_document_pattern
from .normalize import normalize_text
from .types import Classification, IntentScore, IntentTag

PHRASE_SCORE = 0.5
KEYWORD_SCORE = 0.3
CONTEXT_SCORE = 0.1
NEGATIVE_PENALTY = 0.5
EXACT_MATCH_BONUS = 0.5

# "João Silva cpf 123.456.789-00": a reply naming a client and its document.
CLIENT_CREATION_RE = re.compile(
    r"^(?P<name>.+?)\s+(?:cpf|cnpj)\s*:?\s*"
    r"(?P<doc>\d{3}\.?\d{3}\.?\d{3}[-.]?\d{2}|\d{2}\.?\d{3}\.?\d{3}/?\d{4}[-.]?\d{2}|\d{11}|\d{14})$",
    re.IGNORECASE,
)
CLIENT_CREATION_CONFIDENCE = 0.95


def score_rule(rule: IntentRule, normalized: str, has_document: bool) -> float:
    score = 0.0
    score += PHRASE_SCORE * rule.matches("phrases", normalized)
    score += KEYWORD_SCORE * rule.matches("keywords", normalized)
    score += CONTEXT_SCORE * rule.matches("context", normalized)
    score -= NEGATIVE_PENALTY * rule.matches("negative", normalized)
    if rule.document_guard and has_document:
        score -= NEGATIVE_PENALTY
    if rule.exact_match and normalized in rule.keywords:
        score += EXACT_MATCH_BONUS
    score *= rule.weight
    return min(1.0, max(0.0, score))


def score_intents(text: str | None) -> list[IntentScore]:
    """Score ``text`` against every catalog rule.

    Zero scores are dropped; the rest are sorted descending with ties kept
    in catalog order.
    """
    normalized = normalize_text(text)
    if not normalized:
        return []
    has_document = contains_document_pattern(text)
    scored = [
        IntentScore(rule.intent, score_rule(rule, normalized, has_document))
        for rule in INTENT_CATALOG
    ]
    scored = [s for s in scored if s.confidence > 0]
    # sorted() is stable, so equal scores keep catalog order
    return sorted(scored, key=lambda s: s.confidence, reverse=True)


def is_client_reply(text: str) -> bool:
    """True for a bare "<name> cpf <document>" reply.

    The name part must not carry digits or any catalog phrase, so
    "emitir nota de 300 para cnpj ..." stays an emission.
    """
    m = CLIENT_CREATION_RE.match(text)
    if m is None:
        return False
    name = normalize_text(m.group("name"))
    if any(ch.isdigit() for ch in name):
        return False
    return not any(rule.matches("phrases", name) for rule in INTENT_CATALOG)


def classify(text: str | None) -> Classification:
    raw = (text or "").strip()
    if raw and is_client_reply(raw):
        top = IntentScore(IntentTag.CREATE_CLIENT, CLIENT_CREATION_CONFIDENCE)
        return Classification(top=top, alternatives=[], scores=[top])

    scores = score_intents(raw)
    if not scores:
        return Classification(top=IntentScore(IntentTag.UNKNOWN, 0.0))
    return Classification(
        top=scores[0],
        alternatives=scores[1 : 1 + settings.MAX_ALTERNATIVES],
        scores=scores,
    )
