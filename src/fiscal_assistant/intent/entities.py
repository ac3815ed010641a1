"""Entity extraction: amounts, CPF/CNPJ documents, counterparty names, periods.

Every extractor is a pure function of the text it receives and returns
``None`` when nothing usable is found.
"""

from __future__ import annotations

import re

from fiscal_assistant.config import settings

from .normalize import normalize_text
from .types import DocumentRef, ExtractedEntities, Period

# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------

NUMBER_WORDS: dict[str, int] = {
    "zero": 0,
    "um": 1,
    "uma": 1,
    "dois": 2,
    "duas": 2,
    "três": 3,
    "tres": 3,
    "quatro": 4,
    "cinco": 5,
    "seis": 6,
    "sete": 7,
    "oito": 8,
    "nove": 9,
    "dez": 10,
    "onze": 11,
    "doze": 12,
    "treze": 13,
    "quatorze": 14,
    "catorze": 14,
    "quinze": 15,
    "dezesseis": 16,
    "dezessete": 17,
    "dezoito": 18,
    "dezenove": 19,
    "vinte": 20,
    "trinta": 30,
    "quarenta": 40,
    "cinquenta": 50,
    "sessenta": 60,
    "setenta": 70,
    "oitenta": 80,
    "noventa": 90,
    "cem": 100,
    "cento": 100,
    "duzentos": 200,
    "duzentas": 200,
    "trezentos": 300,
    "trezentas": 300,
    "quatrocentos": 400,
    "quatrocentas": 400,
    "quinhentos": 500,
    "quinhentas": 500,
    "seiscentos": 600,
    "seiscentas": 600,
    "setecentos": 700,
    "setecentas": 700,
    "oitocentos": 800,
    "oitocentas": 800,
    "novecentos": 900,
    "novecentas": 900,
}

SCALE_WORDS: dict[str, int] = {
    "mil": 1_000,
    "milhão": 1_000_000,
    "milhao": 1_000_000,
    "milhões": 1_000_000,
    "milhoes": 1_000_000,
}

_CURRENCY_WORDS = ("reais", "real", "conto", "contos", "pila")

_SYMBOL_AMOUNT_RE = re.compile(r"r\$\s*(\d[\d.,]*)")
_WORD_AMOUNT_RE = re.compile(r"(\d[\d.,]*)\s*(?:" + "|".join(_CURRENCY_WORDS) + r")\b")
_K_AMOUNT_RE = re.compile(r"(?<![\w.,])(\d+(?:[.,]\d+)?)\s*k\b")
_PREP_AMOUNT_RE = re.compile(r"\b(?:de|valor(?:\s+de)?)\s+(\d[\d.,]*)")
_BARE_NUMBER_RE = re.compile(r"(?<![\w.,/-])(\d[\d.,]*)")
_TOKEN_RE = re.compile(r"[a-zà-ÿ]+|\d[\d.,]*")
_THOUSANDS_RE = re.compile(r"\d{1,3}(?:\.\d{3})+")


def _parse_brl_number(raw: str) -> float | None:
    """Parse a number written with Brazilian grouping.

    ``1.500,00`` -> 1500.0, ``1.500`` -> 1500.0, ``1500.5`` -> 1500.5.
    """
    s = raw.strip().rstrip(".,")
    if not s:
        return None
    if "," in s:
        s = s.replace(".", "").replace(",", ".")
    elif _THOUSANDS_RE.fullmatch(s):
        s = s.replace(".", "")
    try:
        return float(s)
    except ValueError:
        return None


def _digit_count(raw: str) -> int:
    return sum(ch.isdigit() for ch in raw)


def _positive(value: float | None) -> float | None:
    if value is None or value <= 0:
        return None
    return value


def _number_word_amount(text: str) -> float | None:
    """Compose cardinal number words such as "mil e quinhentos" or "2 mil".

    A run of number tokens is accepted when it contains a scale word
    ("mil", "milhão") or is directly followed by a currency word.
    """
    tokens = _TOKEN_RE.findall(text)
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        starts_run = tok in NUMBER_WORDS or tok in SCALE_WORDS or (
            tok[0].isdigit() and i + 1 < len(tokens) and tokens[i + 1] in SCALE_WORDS
        )
        if not starts_run:
            i += 1
            continue

        total = 0.0
        current = 0.0
        has_scale = False
        j = i
        while j < len(tokens):
            t = tokens[j]
            if t in NUMBER_WORDS:
                current += NUMBER_WORDS[t]
            elif t in SCALE_WORDS:
                total += (current or 1) * SCALE_WORDS[t]
                current = 0.0
                has_scale = True
            elif t[0].isdigit() and j + 1 < len(tokens) and tokens[j + 1] in SCALE_WORDS:
                current += _parse_brl_number(t) or 0.0
            elif (
                t == "e"
                and j + 1 < len(tokens)
                and (tokens[j + 1] in NUMBER_WORDS or tokens[j + 1] in SCALE_WORDS)
            ):
                pass
            else:
                break
            j += 1

        followed_by_currency = j < len(tokens) and tokens[j] in _CURRENCY_WORDS
        value = total + current
        if (has_scale or followed_by_currency) and value > 0:
            return value
        i = j if j > i else i + 1
    return None


def strip_documents(text: str) -> str:
    for pattern in (_CNPJ_RE, _CPF_RE, _BARE_DOC_RE):
        text = pattern.sub(" ", text)
    return text


def extract_amount(text: str | None) -> float | None:
    """Return the monetary amount mentioned in ``text``, if any."""
    norm = normalize_text(text)
    if not norm:
        return None

    m = _SYMBOL_AMOUNT_RE.search(norm)
    if m:
        value = _positive(_parse_brl_number(m.group(1)))
        if value is not None:
            return value

    m = _WORD_AMOUNT_RE.search(norm)
    if m:
        value = _positive(_parse_brl_number(m.group(1)))
        if value is not None:
            return value

    m = _K_AMOUNT_RE.search(norm)
    if m:
        base = _parse_brl_number(m.group(1).replace(",", "."))
        if base is not None and base > 0:
            return base * 1000

    value = _number_word_amount(norm)
    if value is not None:
        return value

    # Plain numbers never come from a CPF/CNPJ.
    cleaned = strip_documents(norm)
    for m in _PREP_AMOUNT_RE.finditer(cleaned):
        raw = m.group(1)
        if _digit_count(raw) in (11, 14):
            continue
        value = _positive(_parse_brl_number(raw))
        if value is not None:
            return value

    for m in _BARE_NUMBER_RE.finditer(cleaned):
        raw = m.group(1)
        if _digit_count(raw) in (11, 14):
            continue
        value = _parse_brl_number(raw)
        if value is not None and settings.AMOUNT_MIN <= value <= settings.AMOUNT_MAX:
            return value
    return None


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

_CNPJ_RE = re.compile(r"(?<!\d)(\d{2}\.?\d{3}\.?\d{3}/?\d{4}-?\d{2})(?!\d)")
_CPF_RE = re.compile(r"(?<!\d)(\d{3}\.?\d{3}\.?\d{3}-?\d{2})(?!\d)")
_BARE_DOC_RE = re.compile(r"\b(\d{11}|\d{14})\b")
_LABELED_DOC_RE = re.compile(r"documento\s*:?\s*([\d./\-\s]{11,20})", re.IGNORECASE)


def _digits(raw: str) -> str:
    return re.sub(r"\D", "", raw)


def extract_document(text: str | None) -> DocumentRef | None:
    """Find a CNPJ (14 digits) or CPF (11 digits) in ``text``."""
    if not text:
        return None
    for pattern in (_CNPJ_RE, _CPF_RE, _BARE_DOC_RE, _LABELED_DOC_RE):
        for m in pattern.finditer(text):
            doc = DocumentRef.from_digits(_digits(m.group(1)))
            if doc is not None:
                return doc
    return None


def contains_document_pattern(text: str | None) -> bool:
    return extract_document(text) is not None


# ---------------------------------------------------------------------------
# Counterparty names
# ---------------------------------------------------------------------------

_NAME = r"([A-Za-zÀ-ÿ][A-Za-zÀ-ÿ'&.\- ]*)"

NAME_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(?:nome\s+(?:é|e|eh)|se\s+chama)\s*:?\s+" + _NAME,
        r"\bchamad[oa]\s+" + _NAME,
        r"\bcliente\s*:\s*" + _NAME,
        r"\b(?:cadastr\w*|cri\w*|adicion\w*|registr\w*|nov[oa])\s+"
        r"(?:(?:o|a|um|uma)\s+)?(?:nov[oa]\s+)?cliente\s+" + _NAME,
        r"\b(?:para|pra)\s+(?:(?:o|a)\s+)?(?:cliente\s+)?" + _NAME,
        r"\bcliente\s+" + _NAME,
        r"\b(?:do|da)\s+(?:cliente\s+)?" + _NAME,
        r"\braz[ãa]o\s+social\s*:?\s*" + _NAME,
    )
)

# A candidate made only of these words is not a name.
NAME_STOPWORDS: frozenset[str] = frozenset(
    {
        "novo",
        "nova",
        "com",
        "o",
        "a",
        "os",
        "as",
        "um",
        "uma",
        "de",
        "do",
        "da",
        "e",
        "cliente",
        "clientes",
        "nota",
        "notas",
        "fiscal",
        "mês",
        "mes",
        "dia",
        "ano",
        "semana",
        "passado",
        "passada",
        "atual",
        "este",
        "esse",
        "esta",
        "essa",
        "hoje",
        "ontem",
        "meu",
        "minha",
        "meus",
        "minhas",
        "todos",
        "todas",
        "valor",
        "mim",
        "janeiro",
        "fevereiro",
        "março",
        "marco",
        "abril",
        "maio",
        "junho",
        "julho",
        "agosto",
        "setembro",
        "outubro",
        "novembro",
        "dezembro",
    }
)

# Words that end a name ("João Silva cpf ...", "Empresa X no valor ...").
_NAME_TERMINATORS = re.compile(
    r"\s+(?:cpf|cnpj|documento|valor|no|na|por|pelo|pela|referente|com|email|"
    r"e-mail|telefone|tel|celular|hoje|ontem|r\$)(?:\s|$)",
    re.IGNORECASE,
)
_TRAILING_CONNECTORS = re.compile(r"(?:\s+(?:de|do|da|dos|das|e|o|a|em))+$", re.IGNORECASE)

_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.]+")
_PHONE_RE = re.compile(r"\(?\b\d{2}\)?\s*9?\d{4}-?\d{4}\b")
_CURRENCY_STRIP_RE = re.compile(
    r"r\$\s*\d[\d.,]*|\b\d[\d.,]*\s*(?:reais|real|mil|k)\b", re.IGNORECASE
)
_NUMBER_WORD = (
    r"(?:" + "|".join(sorted(list(NUMBER_WORDS) + list(SCALE_WORDS), key=len, reverse=True)) + r")"
)
_NUMBER_WORD_RUN_RE = re.compile(
    r"\b" + _NUMBER_WORD + r"(?:(?:\s+e\s+|\s+)" + _NUMBER_WORD + r")*\b"
    r"(?P<currency>\s+(?:" + "|".join(_CURRENCY_WORDS) + r")\b)?",
    re.IGNORECASE,
)


def _strip_amount_words(m: re.Match[str]) -> str:
    # "mil e quinhentos", "dois mil", "cem reais" are amounts; "Sete Lagoas" is a name
    words = m.group(0).lower().split()
    if m.group("currency") or any(w in SCALE_WORDS for w in words):
        return " "
    return m.group(0)


def _clean_for_names(text: str) -> str:
    text = _EMAIL_RE.sub(" ", text)
    text = strip_documents(text)
    text = _PHONE_RE.sub(" ", text)
    text = _CURRENCY_STRIP_RE.sub(" ", text)
    text = _NUMBER_WORD_RUN_RE.sub(_strip_amount_words, text)
    return re.sub(r"\s+", " ", text).strip()


def _clean_candidate(raw: str) -> str | None:
    candidate = " " + raw.strip() + " "
    m = _NAME_TERMINATORS.search(candidate)
    if m:
        candidate = candidate[: m.start()]
    candidate = _TRAILING_CONNECTORS.sub("", candidate.strip()).strip(" .-'")
    if len(candidate) < 2:
        return None
    words = candidate.lower().split()
    if all(w in NAME_STOPWORDS for w in words):
        return None
    return candidate


def extract_counterparty_name(text: str | None) -> str | None:
    """Return the counterparty (client) name mentioned in ``text``.

    Case is preserved from the input.
    """
    if not text:
        return None
    cleaned = _clean_for_names(text)
    for pattern in NAME_PATTERNS:
        for m in pattern.finditer(cleaned):
            candidate = _clean_candidate(m.group(1))
            if candidate:
                return candidate
    return None


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------

# Specific phrases precede the generic ones they contain.
PERIOD_KEYWORDS: tuple[tuple[str, Period], ...] = (
    ("hoje", Period("today")),
    ("ontem", Period("yesterday")),
    ("mês passado", Period("last_month")),
    ("mes passado", Period("last_month")),
    ("último mês", Period("last_month")),
    ("ultimo mes", Period("last_month")),
    ("mês anterior", Period("last_month")),
    ("esta semana", Period("this_week")),
    ("essa semana", Period("this_week")),
    ("semana", Period("this_week")),
    ("janeiro", Period("month", 1)),
    ("fevereiro", Period("month", 2)),
    ("março", Period("month", 3)),
    ("marco", Period("month", 3)),
    ("abril", Period("month", 4)),
    ("maio", Period("month", 5)),
    ("junho", Period("month", 6)),
    ("julho", Period("month", 7)),
    ("agosto", Period("month", 8)),
    ("setembro", Period("month", 9)),
    ("outubro", Period("month", 10)),
    ("novembro", Period("month", 11)),
    ("dezembro", Period("month", 12)),
    ("mês atual", Period("this_month")),
    ("este mês", Period("this_month")),
    ("esse mês", Period("this_month")),
    ("mês", Period("this_month")),
    ("mes", Period("this_month")),
    ("ano atual", Period("this_year")),
    ("este ano", Period("this_year")),
    ("esse ano", Period("this_year")),
    ("ano", Period("this_year")),
)

_PERIOD_RES: tuple[tuple[re.Pattern[str], Period], ...] = tuple(
    (re.compile(r"(?<!\w)" + re.escape(k) + r"(?!\w)"), p) for k, p in PERIOD_KEYWORDS
)
_DAY_RE = re.compile(r"\bdia\s+(\d{1,2})\b")


def extract_period(text: str | None) -> Period | None:
    norm = normalize_text(text)
    if not norm:
        return None
    for pattern, period in _PERIOD_RES:
        if pattern.search(norm):
            return period
    m = _DAY_RE.search(norm)
    if m:
        day = int(m.group(1))
        if 1 <= day <= 31:
            return Period("day", day)
    return None


# ---------------------------------------------------------------------------
# Service description
# ---------------------------------------------------------------------------

_SERVICE_RE = re.compile(
    r"\b(?:referente\s+(?:a|à|ao|aos|às)|serviço\s+de)\s+(.+?)\s*(?:[.;]|$)",
    re.IGNORECASE,
)


def extract_service_description(text: str | None) -> str | None:
    if not text:
        return None
    m = _SERVICE_RE.search(text)
    if not m:
        return None
    desc = m.group(1).strip()
    return desc or None


def extract_entities(text: str | None) -> ExtractedEntities:
    return ExtractedEntities(
        amount=extract_amount(text),
        document=extract_document(text),
        counterparty_name=extract_counterparty_name(text),
        period=extract_period(text),
        service_description=extract_service_description(text),
    )
