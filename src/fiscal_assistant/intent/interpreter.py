from __future__ import annotations

from dataclasses import dataclass, field

from .classifier import classify
from .disambiguation import clarify
from .entities import extract_entities
from .normalize import normalize_text
from .types import Clarification, Classification, ExtractedEntities


@dataclass
class Interpretation:
    text: str
    normalized: str
    classification: Classification
    entities: ExtractedEntities = field(default_factory=ExtractedEntities)
    clarification: Clarification = field(default_factory=lambda: Clarification(needed=False))

    @property
    def confidence(self) -> float:
        return self.classification.top.confidence


def interpret(text: str | None) -> Interpretation:
    raw = (text or "").strip()
    classification = classify(raw)
    return Interpretation(
        text=raw,
        normalized=normalize_text(raw),
        classification=classification,
        entities=extract_entities(raw),
        clarification=clarify(classification),
    )
