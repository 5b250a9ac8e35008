# formats.py
# -------------------------
# Column formats
# Value -> display text (plain-text target) and value -> markup (HTML target).
# -------------------------

import datetime as dt
import html
import numbers
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import TypeMismatchError
from .options import RenderOptions

FORMAT_KINDS = ("text", "number", "integer", "currency", "percent", "date", "markdown", "bar", "sparkline")

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥", "CHF": "CHF ", "INR": "₹"}

SPARK_LEVELS = "▁▂▃▄▅▆▇█"

_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"\*(?!\s)(.+?)\*")
_CODE = re.compile(r"`([^`]+)`")
_LINK = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if not pd.api.types.is_scalar(value):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def is_number(value: Any) -> bool:
    return isinstance(value, numbers.Number) and not isinstance(value, (bool, np.bool_))


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple, np.ndarray, pd.Series))


def _require_number(kind: str, value: Any) -> float:
    if not is_number(value):
        raise TypeMismatchError(kind, value)
    return float(value)


def format_text(value: Any) -> str:
    if is_sequence(value):
        return ", ".join(str(v) for v in value)
    return str(value)


def format_number(value: Any, decimals: int = 2, use_seps: bool = True, pattern: str = "{x}") -> str:
    number = _require_number("number", value)
    sep = "," if use_seps else ""
    return pattern.format(x=f"{number:{sep}.{decimals}f}")


def format_integer(value: Any, use_seps: bool = True, pattern: str = "{x}") -> str:
    number = _require_number("integer", value)
    sep = "," if use_seps else ""
    return pattern.format(x=f"{number:{sep}.0f}")


def format_currency(
    value: Any,
    currency: str = "USD",
    decimals: int = 2,
    use_seps: bool = True,
    placement: str = "left",
) -> str:
    """Format like ``$1,234.50``; negatives as ``-$1,234.50``.

    ``currency`` is an ISO code from :data:`CURRENCY_SYMBOLS` or a literal symbol.
    """
    number = _require_number("currency", value)
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    sep = "," if use_seps else ""
    body = f"{abs(number):{sep}.{decimals}f}"
    text = f"{symbol}{body}" if placement == "left" else f"{body}{symbol}"
    return f"-{text}" if round(number, decimals) < 0 else text


def format_percent(
    value: Any,
    decimals: int = 1,
    scale_values: bool = True,
    use_seps: bool = True,
    force_sign: bool = False,
) -> str:
    number = _require_number("percent", value)
    if scale_values:
        number *= 100.0
    sign = "+" if force_sign else ""
    sep = "," if use_seps else ""
    return f"{number:{sign}{sep}.{decimals}f}%"


def format_date(value: Any, date_format: str = "%Y-%m-%d") -> str:
    if isinstance(value, dt.date):
        return value.strftime(date_format)
    if isinstance(value, (np.datetime64, str)):
        try:
            return pd.Timestamp(value).strftime(date_format)
        except ValueError:
            raise TypeMismatchError("date", value) from None
    raise TypeMismatchError("date", value)


def markdown_to_text(value: Any) -> str:
    text = str(value)
    text = _LINK.sub(r"\1", text)
    text = _BOLD.sub(r"\1", text)
    text = _ITALIC.sub(r"\1", text)
    return _CODE.sub(r"\1", text)


def markdown_to_html(value: Any) -> str:
    """Render the markdown-lite subset: **bold**, *italic*, `code` and [links](url)."""
    text = html.escape(str(value), quote=False)
    text = _CODE.sub(r"<code>\1</code>", text)
    text = _LINK.sub(lambda m: f'<a href="{m.group(2).replace(chr(34), "&quot;")}">{m.group(1)}</a>', text)
    text = _BOLD.sub(r"<strong>\1</strong>", text)
    return _ITALIC.sub(r"<em>\1</em>", text)


# =============================================================
# Mini visualizations
# =============================================================

def bar_fraction(value: float, low: float, high: float, scaled: bool = True) -> float:
    """Map ``value`` to [0, 1]: between ``low`` and ``high``, or 0 and ``high`` if not scaled."""
    if not scaled:
        low = 0.0
    if is_missing(low) or is_missing(high):
        return 0.0
    span = high - low
    if span <= 0:
        return 1.0 if high > 0 or scaled else 0.0
    return min(1.0, max(0.0, (value - low) / span))


def bar_svg(fraction: float, width: int, height: int, fill: str) -> str:
    return (
        f'<svg class="st-bar" xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}"><rect x="0" y="0" width="{fraction * width:.2f}" '
        f'height="{height}" fill="{html.escape(fill)}"/></svg>'
    )


def bar_text(fraction: float, chars: int) -> str:
    return "█" * int(round(fraction * chars))


def _spark_values(value: Any) -> np.ndarray:
    if not is_sequence(value):
        raise TypeMismatchError("sparkline", value)
    try:
        data = np.asarray(list(value), dtype=float)
    except (TypeError, ValueError):
        raise TypeMismatchError("sparkline", value) from None
    return data[~np.isnan(data)]


def normalize(values: Sequence[float]) -> List[float]:
    """Scale values linearly onto [0, 1]; a flat series maps to 0.5."""
    data = np.asarray(values, dtype=float)
    if not len(data):
        return []
    low, high = data.min(), data.max()
    if high == low:
        return [0.5] * len(data)
    return [float(v) for v in (data - low) / (high - low)]


def sparkline_points(values: Sequence[float], width: float, height: float) -> List[Tuple[float, float]]:
    """Polyline points for a sparkline: even x steps, y flipped so larger is higher. No smoothing."""
    norm = normalize(values)
    step = width / (len(norm) - 1) if len(norm) > 1 else 0.0
    return [(i * step, (1.0 - n) * height) for i, n in enumerate(norm)]


def sparkline_svg(points: List[Tuple[float, float]], width: int, height: int, stroke: str) -> str:
    coords = " ".join(f"{x:.2f},{y:.2f}" for x, y in points)
    last_x, last_y = points[-1]
    stroke = html.escape(stroke)
    return (
        f'<svg class="st-spark" xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}" overflow="visible">'
        f'<polyline points="{coords}" fill="none" stroke="{stroke}" stroke-width="1.5"/>'
        f'<circle cx="{last_x:.2f}" cy="{last_y:.2f}" r="2" fill="{stroke}"/></svg>'
    )


def sparkline_text(values: Sequence[float]) -> str:
    top = len(SPARK_LEVELS) - 1
    return "".join(SPARK_LEVELS[int(round(n * top))] for n in normalize(values))


_TEXT_FORMATTERS = {
    "text": format_text,
    "number": format_number,
    "integer": format_integer,
    "currency": format_currency,
    "percent": format_percent,
    "date": format_date,
    "markdown": markdown_to_text,
}


@dataclass(frozen=True)
class ColumnFormat:
    """A display rule for one column: a kind plus keyword options."""

    kind: str = "text"
    options: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, kind: str, **options) -> "ColumnFormat":
        if kind not in FORMAT_KINDS:
            raise ValueError(f"Unknown format kind '{kind}'; expected one of {', '.join(FORMAT_KINDS)}")
        return cls(kind, tuple(sorted(options.items())))

    @property
    def opts(self) -> Dict[str, Any]:
        return dict(self.options)

    def stat_refs(self, column: str):
        if self.kind == "bar":
            return {(column, "min"), (column, "max")}
        return set()

    def is_empty(self, value: Any) -> bool:
        """True when the renderer should show the missing-value placeholder instead."""
        if is_missing(value):
            return True
        return self.kind == "sparkline" and is_sequence(value) and len(_spark_values(value)) == 0

    def display(self, value: Any, column: Optional[str] = None, stats=None, options=None) -> str:
        try:
            if self.kind == "bar":
                return bar_text(self._bar_fraction(value, column, stats), self._opt(options, "chars", "text_bar_chars"))
            if self.kind == "sparkline":
                return sparkline_text(_spark_values(value))
            return _TEXT_FORMATTERS[self.kind](value, **self.opts)
        except TypeMismatchError as exc:
            raise self._with_column(exc, column) from None

    def markup(self, value: Any, column: Optional[str] = None, stats=None, options=None) -> str:
        try:
            if self.kind == "bar":
                svg = bar_svg(
                    self._bar_fraction(value, column, stats),
                    self._opt(options, "width", "bar_width"),
                    self._opt(options, "height", "bar_height"),
                    self._opt(options, "fill", "bar_fill"),
                )
                label = self.opts.get("label")
                if label is not None:
                    svg += f' <span class="st-bar-label">{html.escape(label.display(value, column))}</span>'
                return svg
            if self.kind == "sparkline":
                width = self._opt(options, "width", "sparkline_width")
                height = self._opt(options, "height", "sparkline_height")
                points = sparkline_points(_spark_values(value), width, height)
                return sparkline_svg(points, width, height, self._opt(options, "stroke", "sparkline_stroke"))
            if self.kind == "markdown":
                return markdown_to_html(value)
            return html.escape(_TEXT_FORMATTERS[self.kind](value, **self.opts), quote=False)
        except TypeMismatchError as exc:
            raise self._with_column(exc, column) from None

    def _opt(self, options, name: str, default_name: str):
        own = self.opts.get(name)
        if own is not None:
            return own
        if options is None:
            options = RenderOptions()
        return getattr(options, default_name)

    def _bar_fraction(self, value: Any, column: Optional[str], stats) -> float:
        number = _require_number("bar", value)
        if stats is None or column is None:
            return bar_fraction(number, 0.0, number, scaled=False)
        return bar_fraction(
            number,
            stats.get(column, "min"),
            stats.get(column, "max"),
            scaled=self.opts.get("scaled", True),
        )

    @staticmethod
    def _with_column(exc: TypeMismatchError, column: Optional[str]) -> TypeMismatchError:
        if column is None or exc.column is not None:
            return exc
        return TypeMismatchError(exc.kind, exc.value, column)


DEFAULT_FORMAT = ColumnFormat()
