from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ValidationItem:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestions: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
            "suggestions": list(self.suggestions),
        }


@dataclass
class ValidationVerdict:
    """Blocking errors and non-blocking warnings, in check order.

    ``valid`` is derived from ``errors``, never stored.
    """

    errors: list[ValidationItem] = field(default_factory=list)
    warnings: list[ValidationItem] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def error(self, code: str, message: str, **details: Any) -> ValidationItem:
        item = ValidationItem(code, message, details)
        self.errors.append(item)
        return item

    def warn(self, code: str, message: str, **details: Any) -> ValidationItem:
        item = ValidationItem(code, message, details)
        self.warnings.append(item)
        return item

    def extend(self, other: ValidationVerdict) -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def codes(self) -> list[str]:
        return [i.code for i in self.errors]

    def render(self, title: str) -> str:
        lines = []
        if self.errors:
            lines.append(title)
            for item in self.errors:
                lines.append(f"• {item.message}")
                lines.extend(f"  → {s}" for s in item.suggestions)
        if self.warnings:
            if lines:
                lines.append("")
            lines.extend(f"⚠️ {w.message}" for w in self.warnings)
        return "\n".join(lines)

    def as_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [i.as_dict() for i in self.errors],
            "warnings": [i.as_dict() for i in self.warnings],
        }
