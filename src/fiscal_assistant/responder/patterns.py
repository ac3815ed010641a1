"""Declarative pattern tables and the single matcher that evaluates them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Sequence

from fiscal_assistant.intent.entities import contains_document_pattern

_DOC = r"\d{3}\.?\d{3}\.?\d{3}[-.]?\d{2}|\d{2}\.?\d{3}\.?\d{3}/?\d{4}[-.]?\d{2}|\d{11}|\d{14}"


@dataclass(frozen=True)
class PatternRule:
    """A surface pattern and the named groups it captures.

    ``source`` picks the text variant to match: ``normalized`` (lowercase,
    typo-corrected) or ``raw`` (as typed, case preserved).
    """

    pattern: re.Pattern[str]
    source: str = "normalized"
    unless_document: bool = False

    @classmethod
    def of(cls, regex: str, source: str = "normalized", unless_document: bool = False) -> PatternRule:
        flags = re.IGNORECASE if source == "raw" else 0
        return cls(re.compile(regex, flags), source, unless_document)


@dataclass(frozen=True)
class PatternMatch:
    rule: PatternRule
    groups: dict[str, Any]


def match_first(rules: Sequence[PatternRule], raw: str, normalized: str) -> PatternMatch | None:
    for rule in rules:
        text = raw if rule.source == "raw" else normalized
        m = rule.pattern.search(text)
        if m is None:
            continue
        if rule.unless_document and contains_document_pattern(raw):
            continue
        return PatternMatch(rule, {k: v for k, v in m.groupdict().items() if v is not None})
    return None


def _p(*regexes: str, source: str = "normalized") -> tuple[PatternRule, ...]:
    return tuple(PatternRule.of(r, source) for r in regexes)


LAST_INVOICE = _p(
    r"\b(?:última|ultima)\s+nota",
    r"\bnota\s+mais\s+recente",
    r"\bminha\s+última\b",
)

REJECTED_INVOICES = _p(
    r"\bnotas?\s+(?:fiscal\s+|fiscais\s+)?(?:rejeitadas?|recusadas?|com\s+erro|que\s+falharam)",
    r"\brejeitadas\b",
)

PENDING_INVOICES = _p(
    r"\bnotas?\s+(?:fiscal\s+|fiscais\s+)?(?:pendentes?|processando|em\s+análise|aguardando)",
)

INVOICE_STATUS = _p(
    r"\b(?:status|situação|andamento)\s+da\s+nota(?:\s+fiscal)?\s*(?:n[º°o.]?\s*|número\s*|#)?(?P<number>\d+)",
    r"\bcomo\s+está\s+a\s+nota(?:\s+fiscal)?\s*(?:n[º°o.]?\s*|número\s*|#)?(?P<number>\d+)",
    r"^(?:e\s+)?(?:a\s+)?nota(?:\s+fiscal)?\s+(?:n[º°o.]\s*|número\s+|#)(?P<number>\d+)\s*\??$",
)

INVOICE_COUNT = _p(r"\bquantas\s+notas")

INVOICES_BY_COUNTERPARTY = _p(
    r"\bnotas\s+(?:fiscais\s+)?(?:emitidas\s+)?(?:para|do|da|de)\s+(?:o\s+|a\s+)?(?:cliente\s+)?[a-zà-ÿ]",
)

LIST_INVOICES = _p(
    r"\b(?:listar|ver|mostrar|exibir)\s+(?:as\s+|minhas\s+|todas\s+as\s+)*notas",
    r"\bminhas\s+notas",
    r"\bhistórico\s+de\s+notas",
    r"\btodas\s+as\s+notas",
)

# A bare reply such as "João Silva 123.456.789-00" after we asked for it.
NAME_WITH_DOCUMENT = _p(
    r"^(?P<name>[A-Za-zÀ-ÿ][A-Za-zÀ-ÿ'&.\- ]*?)\s*[,;:-]?\s*(?:(?:cpf|cnpj)\s*:?\s*)?"
    r"(?P<document>" + _DOC + r")\s*$",
    source="raw",
)

CREATE_CLIENT = _p(
    r"\b(?:cadastrar|criar|adicionar|registrar)\s+(?:um\s+|uma\s+|o\s+|a\s+)?(?:nov[oa]\s+)?cliente",
    r"\bnov[oa]\s+cliente",
)

LIST_CLIENTS = _p(
    r"\b(?:listar|ver|mostrar)\s+(?:os\s+|meus\s+|todos\s+os\s+)*clientes",
    r"\bmeus\s+clientes",
    r"\bclientes\s+cadastrados",
    r"\btodos\s+os\s+clientes",
)

SEARCH_CLIENT = _p(
    r"\b(?:buscar|procurar|encontrar|pesquisar)\s+(?:o\s+|a\s+|um\s+)?cliente",
    r"\bqual\s+(?:é\s+)?o\s+(?:cpf|cnpj)\s+d[oa]\b",
)

EMIT_INVOICE = _p(
    r"\b(?:emitir|emite|emita|gerar|gere|criar|fazer|faz|faça)\s+(?:uma\s+|a\s+)?(?:nova\s+)?nota\b",
    r"\bnova\s+nota\b",
    r"\bemissão\s+de\s+nota",
)

CANCEL_INVOICE = _p(r"\b(?:cancelar|anular|estornar)\b")

REVENUE = _p(
    r"\bfaturamento\b",
    r"\bfaturei\b",
    r"\breceita\b",
    r"\bquanto\s+(?:eu\s+)?(?:ganhei|faturei|vendi)",
    r"\btotal\s+de\s+vendas",
)

PAY_TAX = _p(r"\b(?:pagar|quitar)\s+(?:o\s+|a\s+|meu\s+|minha\s+)?(?:das|impostos?|guias?)\b")

GENERATE_TAX = _p(r"\b(?:gerar|emitir|criar)\s+(?:o\s+|a\s+|uma\s+)?(?:das|guias?)\b")

# Explicit tax words always count; the bare "das" (also "de + as") only when
# no CPF/CNPJ is present.
VIEW_TAXES = (
    *_p(r"\bimpostos?\b", r"\btributos?\b", r"\bguias?\b", r"\bdas\s+pendentes?\b"),
    PatternRule.of(r"\bdas\b", unless_document=True),
)

CHECK_CONNECTION = _p(
    r"\bconexão\b",
    r"\bconectad[oa]\b",
    r"\bprefeitura\s+(?:está\s+)?online\b",
)

HELP = _p(
    r"\bajuda\b",
    r"\bhelp\b",
    r"\bsocorro\b",
    r"\bcomo\s+funciona\b",
    r"\bo\s+que\s+você\s+(?:faz|pode)",
)

GREETING = _p(
    r"^(?:oi|olá|ola|hey|hello|bom\s+dia|boa\s+tarde|boa\s+noite|e\s+aí|eai|tudo\s+bem)[\s!.?,]*$",
)

CANCEL_NUMBER_RE = re.compile(r"\bnota(?:\s+fiscal)?\s*(?:n[º°o.]?\s*|número\s*|#)?(\d+)")
JUSTIFICATION_RE = re.compile(
    r"\b(?:motivo|porque|pois|justificativa|por\s+causa)\b\s*:?\s*(.+)$", re.IGNORECASE
)
