from __future__ import annotations


def format_currency(amount: float) -> str:
    """en-US dollar rendering with two decimals, e.g. ``$1,234.50``."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_btc(amount: float) -> str:
    return f"{amount:.6f}"
