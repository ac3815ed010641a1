"""Lowercasing, whitespace cleanup and typo/abbreviation correction."""

from __future__ import annotations

import re

# Whole-word corrections applied in a single pass. No value may contain a key
# as a whole word, otherwise normalizing twice would not be a no-op.
TYPO_CORRECTIONS: dict[str, str] = {
    # emitir
    "emtir": "emitir",
    "emiti": "emitir",
    "emitr": "emitir",
    "emiitr": "emitir",
    "emissao": "emissão",
    # faturamento
    "faturamneto": "faturamento",
    "fatuamento": "faturamento",
    "faturament": "faturamento",
    "fat": "faturamento",
    # última
    "ulitma": "última",
    "utlima": "última",
    "ultma": "última",
    "ult": "última",
    # cliente
    "clinte": "cliente",
    "cleinte": "cliente",
    "clienet": "cliente",
    "cli": "cliente",
    # nota
    "nta": "nota",
    "noat": "nota",
    "notaf": "nota",
    "nf": "nota fiscal",
    "nfs": "nota fiscal",
    "nfse": "nota fiscal de serviço",
    "nfs-e": "nota fiscal de serviço",
    # cancelar
    "cancelra": "cancelar",
    "cancela": "cancelar",
    "canelar": "cancelar",
    "canc": "cancelar",
    # listar
    "lisatr": "listar",
    "lsitar": "listar",
    # misc
    "impsto": "imposto",
    "imposots": "impostos",
    "qauntas": "quantas",
    "qnts": "quantas",
    "qto": "quanto",
    "qnto": "quanto",
    "cnjp": "cnpj",
    "cpnj": "cnpj",
    "cfp": "cpf",
    "pend": "pendente",
    "rej": "rejeitada",
    "vc": "você",
    "pra": "para",
}

_WS_RE = re.compile(r"\s+")
# Longest keys first so "nfs-e" wins over "nfs" inside the single pass.
_TYPO_RE = re.compile(
    r"(?<![\w-])("
    + "|".join(re.escape(k) for k in sorted(TYPO_CORRECTIONS, key=len, reverse=True))
    + r")(?![\w-])"
)


def collapse(text: str | None) -> str:
    if not text:
        return ""
    return _WS_RE.sub(" ", text.lower()).strip()


def normalize_text(text: str | None) -> str:
    """Lowercase, trim, collapse whitespace and fix known typos.

    Never raises; ``None`` and blank input give ``""``.
    """
    base = collapse(text)
    if not base:
        return ""
    return _TYPO_RE.sub(lambda m: TYPO_CORRECTIONS[m.group(1)], base)
