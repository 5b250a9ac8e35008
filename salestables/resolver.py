# resolver.py
# -------------------------
# Style resolver
# Layers, lowest first: table defaults, column defaults (alignment and
# width), then every matching style rule and color scale in declaration
# order. A later rule overrides an earlier one property by property.
# -------------------------

from dataclasses import dataclass
from typing import Any, Dict, Optional

from plotly.colors import make_colorscale, sample_colorscale, unlabel_rgb

from .aggregate import is_numeric_column
from .finalize import FinalTable
from .formats import is_missing, is_number
from .options import RenderOptions
from .predicates import CellContext, ColumnStats
from .spec import ColorScale, StyleRule


NUMERIC_FORMATS = ("number", "integer", "currency", "percent")

DARK_TEXT = "#111827"
LIGHT_TEXT = "#FFFFFF"


@dataclass(frozen=True)
class CellCoordinate:
    """A cell by part and column; ``row`` is a body row or a summary line index."""

    part: str
    column: str
    row: Optional[int] = None


def scale_color(palette, fraction: float) -> str:
    """Sample a plotly colorscale (name or list of colors) at ``fraction``."""
    scale = palette if isinstance(palette, str) else make_colorscale(list(palette))
    return sample_colorscale(scale, [min(1.0, max(0.0, fraction))])[0]


def contrast_text(color: str) -> str:
    red, green, blue = unlabel_rgb(color)
    luminance = (0.299 * red + 0.587 * green + 0.114 * blue) / 255.0
    return DARK_TEXT if luminance > 0.6 else LIGHT_TEXT


def color_scale_properties(rule: ColorScale, value: Any, column: str, stats: ColumnStats) -> Dict[str, str]:
    if is_missing(value) or not is_number(value):
        return {}
    if rule.domain is not None:
        low, high = rule.domain
    else:
        low, high = stats.get(column, "min"), stats.get(column, "max")
    if is_missing(low) or is_missing(high):
        return {}
    fraction = 0.5 if high == low else (float(value) - low) / (high - low)
    fill = scale_color(rule.palette, fraction)
    props = {"fill": fill}
    if rule.autocolor_text:
        props["color"] = contrast_text(fill)
    return props


class StyleResolver:
    def __init__(self, table: FinalTable, stats: ColumnStats, options: Optional[RenderOptions] = None):
        self.table = table
        self.stats = stats
        self.options = options or RenderOptions()
        self.table_defaults = dict(self.options.table_defaults)
        self.column_defaults = {c: self._column_default(c) for c in table.columns}

    def _column_default(self, column: str) -> Dict[str, str]:
        fmt = self.table.format_for(column)
        if fmt.kind in NUMERIC_FORMATS:
            auto = "right"
        elif fmt.kind in ("bar", "sparkline"):
            auto = "left"
        else:
            auto = "right" if is_numeric_column(self.table.frame[column]) else "left"
        props = {"text_align": self.table.alignments.get(column, auto)}
        if column in self.table.widths:
            props["width"] = f"{self.table.widths[column]}px"
        return props

    def context(self, cell: CellCoordinate) -> CellContext:
        if cell.part == "body":
            row = self.table.records[cell.row]
            value = row.get(cell.column)
        elif cell.part == "summary":
            row = self.table.summary_lines[cell.row].values
            value = row.get(cell.column)
        else:
            row = {}
            value = self.table.label_for(cell.column)
        return CellContext(cell.column, value, row, self.stats, cell.part)

    def resolve(self, cell: CellCoordinate) -> Dict[str, str]:
        ctx = self.context(cell)
        merged = dict(self.table_defaults)
        merged.update(self.column_defaults.get(cell.column, {}))
        for rule in self.table.rules:
            merged.update(self._matched(rule, cell, ctx))
        return merged

    def _matched(self, rule, cell: CellCoordinate, ctx: CellContext) -> Dict[str, str]:
        if isinstance(rule, StyleRule):
            selector = rule.selector
            if not selector.covers(cell.part, cell.column):
                return {}
            if selector.where is not None and not selector.where.test(ctx):
                return {}
            if rule.predicate is not None and not rule.predicate.test(ctx):
                return {}
            return dict(rule.properties)
        if isinstance(rule, ColorScale) and cell.part == "body" and cell.column in rule.targets:
            return color_scale_properties(rule, ctx.value, cell.column, self.stats)
        return {}
