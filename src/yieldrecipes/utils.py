from __future__ import annotations

import json
import re
from typing import Any, Optional, Union

import click

Number = Union[int, float, str]

HEAVY_RULE = "═"
LIGHT_RULE = "─"


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def format_apy(rate: Optional[Number]) -> str:
    return f"{to_float(rate) * 100:.2f}%"


def format_usd(value: Optional[Number]) -> str:
    num = to_float(value)
    if num >= 1_000_000:
        return f"${num / 1_000_000:.2f}M"
    if num >= 1000:
        return f"${num / 1000:.2f}K"
    return f"${num:.2f}"


def format_amount(value: Optional[Number]) -> str:
    """Thousands-separated amount with up to three decimals, trailing zeros trimmed."""
    num = to_float(value)
    text = f"{num:,.3f}".rstrip("0").rstrip(".")
    return text or "0"


def format_pnl(value: Optional[Number]) -> str:
    num = to_float(value)
    prefix = "+" if num > 0 else "-" if num < 0 else ""
    return f"{prefix}${abs(num):.2f}"


def humanize_key(key: str) -> str:
    """``stopLossPrice`` -> ``Stop Loss Price``."""
    spaced = re.sub(r"([A-Z])", r" \1", key).strip()
    return spaced[:1].upper() + spaced[1:]


def display_value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def rule(char: str = LIGHT_RULE, width: int = 70) -> None:
    click.echo(char * width)


def section(title: str, width: int = 70) -> None:
    """Print a light-ruled section header."""
    rule(LIGHT_RULE, width)
    click.echo(title)
    rule(LIGHT_RULE, width)


def banner(title: str, subtitle: Optional[str] = None, width: int = 70) -> None:
    """Print a heavy-ruled title block."""
    click.echo()
    rule(HEAVY_RULE, width)
    click.secho(title, bold=True)
    if subtitle:
        click.echo(subtitle)
    rule(HEAVY_RULE, width)
    click.echo()


def label(name: str, value: Any, indent: int = 2) -> None:
    click.echo(" " * indent + click.style(f"{name}: ", dim=True) + str(value))
