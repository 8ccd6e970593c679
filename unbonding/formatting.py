"""Display helpers shared by the CLI scripts."""

from __future__ import annotations

from .config import NetworkParameters


def format_amount(amount: float) -> str:
    if amount >= 1_000_000:
        return f"{amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"{amount / 1_000:.1f}K"
    return f"{amount:g}"


def eras_to_days(eras: float, params: NetworkParameters) -> float:
    return eras / params.eras_per_day


def format_eras(eras: int, params: NetworkParameters) -> str:
    """Render an era count with its approximate length in days."""
    days = eras_to_days(eras, params)
    if params.eras_per_day == 1:
        return f"{eras} eras (~{days:g} days)"
    return f"{eras} eras (~{days:.1f} days)"
