"""Brazilian display formats for money, dates and documents."""

from __future__ import annotations

from datetime import date, datetime


def format_brl(value: float) -> str:
    """``1500.5`` -> ``"R$ 1.500,50"``."""
    text = f"{value:,.2f}"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_date(value: date | datetime) -> str:
    return value.strftime("%d/%m/%Y")
