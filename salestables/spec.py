# spec.py
# -------------------------
# Table spec builder
# A TableSpec is a base dataset plus an ordered tuple of directives. Each
# directive method returns a new spec, so one base spec can be branched
# into several variant tables:
#
#     base = table(sales, groupname_col="type", rowname_col="size")
#     report = (
#         base.fmt_currency("income")
#         .style(body("income"), col("income") == col_max("income"), fill="#fde68a")
#         .summary_row(["sold", "income"], "sum", scope="group")
#     )
#     html = report.render()
#
# Nothing is validated here. Column references are checked at render time
# against the final column set, and errors name the directive's position.
# -------------------------

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, ClassVar, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .aggregate import as_frame
from .formats import ColumnFormat
from .predicates import Expr

Columns = Union[str, Sequence[str]]

PARTS = ("body", "labels", "summary")
ALIGNMENTS = ("left", "center", "right")
SCOPES = ("table", "group")

DEFAULT_SCALE_END = "#1F77B4"

_PROPERTY_ALIASES = {
    "background": "fill",
    "background_color": "fill",
    "weight": "font_weight",
    "align": "text_align",
    "size": "font_size",
}


def _cols(columns: Columns) -> Tuple[str, ...]:
    if isinstance(columns, str):
        return (columns,)
    return tuple(columns)


def normalize_properties(properties: Optional[Mapping[str, Any]], extra: Mapping[str, Any]) -> Tuple[Tuple[str, str], ...]:
    merged: Dict[str, str] = {}
    for source in (properties or {}, extra):
        for name, prop in source.items():
            merged[_PROPERTY_ALIASES.get(name, name)] = str(prop)
    return tuple(merged.items())


# =============================================================
# Selectors
# =============================================================

@dataclass(frozen=True, eq=False)
class Cells:
    """Selects cells of one table part, optionally limited to columns and rows."""

    part: str = "body"
    columns: Optional[Tuple[str, ...]] = None  # None selects every visible column
    where: Optional[Expr] = None

    def __post_init__(self):
        if self.part not in PARTS:
            raise ValueError(f"Unknown table part '{self.part}'; expected one of {', '.join(PARTS)}")

    def referenced(self) -> Tuple[str, ...]:
        refs = list(self.columns or ())
        if self.where is not None:
            refs.extend(sorted(self.where.columns()))
        return tuple(refs)

    def covers(self, part: str, column: str) -> bool:
        return part == self.part and (self.columns is None or column in self.columns)


def body(*columns: str, where: Optional[Expr] = None) -> Cells:
    return Cells("body", tuple(columns) or None, where)


def column_labels(*columns: str) -> Cells:
    return Cells("labels", tuple(columns) or None)


def summary(*columns: str, where: Optional[Expr] = None) -> Cells:
    return Cells("summary", tuple(columns) or None, where)


@dataclass(frozen=True)
class ColumnRange:
    """An inclusive run of visible columns, resolved when the table is rendered."""

    first: str
    last: str


def between(first: str, last: str) -> ColumnRange:
    return ColumnRange(first, last)


# =============================================================
# Directives
# =============================================================

@dataclass(frozen=True, eq=False)
class Directive:
    kind: ClassVar[str] = "directive"

    def columns(self) -> Tuple[str, ...]:
        return ()


@dataclass(frozen=True, eq=False)
class AggregateRows(Directive):
    kind: ClassVar[str] = "aggregate"
    group_key: Tuple[str, ...]
    reductions: Tuple[Tuple[str, Tuple[str, str]], ...]
    forbid_empty: bool = False


@dataclass(frozen=True, eq=False)
class SortRows(Directive):
    kind: ClassVar[str] = "sort"
    by: Tuple[str, ...]
    ascending: bool = True

    def columns(self):
        return self.by


@dataclass(frozen=True, eq=False)
class RowGroups(Directive):
    kind: ClassVar[str] = "group_by"
    column: str

    def columns(self):
        return (self.column,)


@dataclass(frozen=True, eq=False)
class Stub(Directive):
    kind: ClassVar[str] = "stub"
    column: str

    def columns(self):
        return (self.column,)


@dataclass(frozen=True, eq=False)
class Format(Directive):
    kind: ClassVar[str] = "format"
    targets: Tuple[str, ...]
    fmt: ColumnFormat

    def columns(self):
        return self.targets


@dataclass(frozen=True, eq=False)
class Label(Directive):
    kind: ClassVar[str] = "label"
    column: str
    text: str

    def columns(self):
        return (self.column,)


@dataclass(frozen=True, eq=False)
class Align(Directive):
    kind: ClassVar[str] = "align"
    targets: Tuple[str, ...]
    alignment: str

    def columns(self):
        return self.targets


@dataclass(frozen=True, eq=False)
class Width(Directive):
    kind: ClassVar[str] = "width"
    column: str
    pixels: int

    def columns(self):
        return (self.column,)


@dataclass(frozen=True, eq=False)
class StyleRule(Directive):
    kind: ClassVar[str] = "style"
    selector: Cells
    predicate: Optional[Expr]
    properties: Tuple[Tuple[str, str], ...]

    def columns(self):
        refs = list(self.selector.referenced())
        if self.predicate is not None:
            refs.extend(sorted(self.predicate.columns()))
        return tuple(refs)


@dataclass(frozen=True, eq=False)
class ColorScale(Directive):
    kind: ClassVar[str] = "data_color"
    targets: Tuple[str, ...]
    palette: Union[str, Tuple[str, ...]]
    domain: Optional[Tuple[float, float]] = None
    autocolor_text: bool = True

    def columns(self):
        return self.targets


@dataclass(frozen=True, eq=False)
class Spanner(Directive):
    kind: ClassVar[str] = "spanner"
    label: str
    targets: Union[Tuple[str, ...], ColumnRange] = ()
    spanners: Tuple[str, ...] = ()
    id: Optional[str] = None

    @property
    def spanner_id(self) -> str:
        return self.id or self.label

    def columns(self):
        if isinstance(self.targets, ColumnRange):
            return (self.targets.first, self.targets.last)
        return self.targets


@dataclass(frozen=True, eq=False)
class SummaryRow(Directive):
    kind: ClassVar[str] = "summary_row"
    targets: Tuple[str, ...]
    fns: Tuple[Tuple[str, str], ...]
    scope: str = "table"
    fmt: Optional[ColumnFormat] = None

    def columns(self):
        return self.targets


@dataclass(frozen=True, eq=False)
class Footnote(Directive):
    kind: ClassVar[str] = "footnote"
    text: str
    selector: Optional[Cells] = None

    def columns(self):
        return self.selector.referenced() if self.selector is not None else ()


@dataclass(frozen=True, eq=False)
class Header(Directive):
    kind: ClassVar[str] = "header"
    title: str
    subtitle: Optional[str] = None


@dataclass(frozen=True, eq=False)
class SourceNote(Directive):
    kind: ClassVar[str] = "source_note"
    text: str


@dataclass(frozen=True, eq=False)
class Hide(Directive):
    kind: ClassVar[str] = "hide"
    targets: Tuple[str, ...]

    def columns(self):
        return self.targets


@dataclass(frozen=True, eq=False)
class Missing(Directive):
    kind: ClassVar[str] = "missing"
    targets: Tuple[str, ...]
    text: str

    def columns(self):
        return self.targets


DATA_DIRECTIVES = (AggregateRows, SortRows)


# =============================================================
# TableSpec
# =============================================================

@dataclass(frozen=True, eq=False)
class TableSpec:
    data: pd.DataFrame
    directives: Tuple[Directive, ...] = ()

    def __post_init__(self):
        # rows are addressed by position from here on
        data = self.data
        if not isinstance(data, pd.DataFrame) or not data.index.equals(pd.RangeIndex(len(data))):
            object.__setattr__(self, "data", as_frame(data))

    def _add(self, directive: Directive) -> "TableSpec":
        return replace(self, directives=self.directives + (directive,))

    # --- data ---------------------------------------------------------

    def aggregate(self, group_key: Columns, reductions: Mapping[str, Tuple[str, str]], forbid_empty: bool = False) -> "TableSpec":
        """Replace the rows with one aggregated row per ``group_key`` combination."""
        pairs = tuple((out, (src, fn)) for out, (src, fn) in reductions.items())
        return self._add(AggregateRows(_cols(group_key), pairs, forbid_empty))

    def sort(self, by: Columns, ascending: bool = True) -> "TableSpec":
        return self._add(SortRows(_cols(by), ascending))

    def group_by(self, column: str) -> "TableSpec":
        return self._add(RowGroups(column))

    def stub(self, column: str) -> "TableSpec":
        return self._add(Stub(column))

    # --- formats ------------------------------------------------------

    def format(self, columns: Columns, kind: str = "text", **options) -> "TableSpec":
        return self._add(Format(_cols(columns), ColumnFormat.of(kind, **options)))

    def fmt_number(self, columns: Columns, decimals: int = 2, use_seps: bool = True, pattern: str = "{x}") -> "TableSpec":
        return self.format(columns, "number", decimals=decimals, use_seps=use_seps, pattern=pattern)

    def fmt_integer(self, columns: Columns, use_seps: bool = True, pattern: str = "{x}") -> "TableSpec":
        return self.format(columns, "integer", use_seps=use_seps, pattern=pattern)

    def fmt_currency(self, columns: Columns, currency: str = "USD", decimals: int = 2, use_seps: bool = True) -> "TableSpec":
        return self.format(columns, "currency", currency=currency, decimals=decimals, use_seps=use_seps)

    def fmt_percent(self, columns: Columns, decimals: int = 1, scale_values: bool = True, force_sign: bool = False) -> "TableSpec":
        return self.format(columns, "percent", decimals=decimals, scale_values=scale_values, force_sign=force_sign)

    def fmt_date(self, columns: Columns, date_format: str = "%Y-%m-%d") -> "TableSpec":
        return self.format(columns, "date", date_format=date_format)

    def fmt_markdown(self, columns: Columns) -> "TableSpec":
        return self.format(columns, "markdown")

    def fmt_bar(
        self,
        columns: Columns,
        scaled: bool = True,
        width: Optional[int] = None,
        height: Optional[int] = None,
        fill: Optional[str] = None,
        label: Optional[ColumnFormat] = None,
    ) -> "TableSpec":
        options = {"width": width, "height": height, "fill": fill, "label": label}
        return self.format(columns, "bar", scaled=scaled, **{k: v for k, v in options.items() if v is not None})

    def fmt_sparkline(self, columns: Columns, width: Optional[int] = None, height: Optional[int] = None, stroke: Optional[str] = None) -> "TableSpec":
        options = {"width": width, "height": height, "stroke": stroke}
        return self.format(columns, "sparkline", **{k: v for k, v in options.items() if v is not None})

    # --- columns ------------------------------------------------------

    def label(self, column: str, text: str) -> "TableSpec":
        return self._add(Label(column, text))

    def labels(self, **mapping: str) -> "TableSpec":
        spec = self
        for column, text in mapping.items():
            spec = spec.label(column, text)
        return spec

    def align(self, columns: Columns, alignment: str) -> "TableSpec":
        if alignment not in ALIGNMENTS:
            raise ValueError(f"alignment must be one of {', '.join(ALIGNMENTS)}, got '{alignment}'")
        return self._add(Align(_cols(columns), alignment))

    def width(self, column: str, pixels: int) -> "TableSpec":
        return self._add(Width(column, int(pixels)))

    def hide(self, columns: Columns) -> "TableSpec":
        return self._add(Hide(_cols(columns)))

    def missing(self, columns: Columns, text: str) -> "TableSpec":
        return self._add(Missing(_cols(columns), text))

    # --- styling ------------------------------------------------------

    def style(self, selector: Cells, predicate: Optional[Expr] = None, properties: Optional[Mapping[str, Any]] = None, **props: Any) -> "TableSpec":
        """Apply visual properties to the selected cells where ``predicate`` holds.

        Property names are snake_case CSS names (``font_weight``, ``text_align``);
        ``fill`` is the cell background. When several rules set the same
        property on a cell, the one declared last wins.
        """
        return self._add(StyleRule(selector, predicate, normalize_properties(properties, props)))

    def data_color(
        self,
        columns: Columns,
        palette: Union[str, Sequence[str], None] = None,
        domain: Optional[Tuple[float, float]] = None,
        autocolor_text: bool = True,
    ) -> "TableSpec":
        """Fill body cells from a color scale: a plotly scale name or a list of colors."""
        if palette is None:
            palette = ("#FFFFFF", DEFAULT_SCALE_END)
        elif not isinstance(palette, str):
            palette = tuple(palette)
        return self._add(ColorScale(_cols(columns), palette, tuple(domain) if domain else None, autocolor_text))

    # --- structure ----------------------------------------------------

    def spanner(
        self,
        label: str,
        columns: Union[Columns, ColumnRange] = (),
        spanners: Columns = (),
        id: Optional[str] = None,
    ) -> "TableSpec":
        targets = columns if isinstance(columns, ColumnRange) else _cols(columns)
        return self._add(Spanner(label, targets, _cols(spanners), id))

    def summary_row(
        self,
        columns: Columns,
        fns: Union[str, Sequence[str], Mapping[str, str]] = "sum",
        scope: str = "table",
        fmt: Optional[ColumnFormat] = None,
    ) -> "TableSpec":
        """Append reduction rows to each group (``scope="group"``) or to the table."""
        if scope not in SCOPES:
            raise ValueError(f"scope must be 'table' or 'group', got '{scope}'")
        if isinstance(fns, str):
            pairs = ((fns.title(), fns),)
        elif isinstance(fns, Mapping):
            pairs = tuple(fns.items())
        else:
            pairs = tuple((fn.title(), fn) for fn in fns)
        return self._add(SummaryRow(_cols(columns), pairs, scope, fmt))

    def footnote(self, text: str, selector: Optional[Cells] = None) -> "TableSpec":
        return self._add(Footnote(text, selector))

    def header(self, title: str, subtitle: Optional[str] = None) -> "TableSpec":
        return self._add(Header(title, subtitle))

    def source_note(self, text: str) -> "TableSpec":
        return self._add(SourceNote(text))

    # --- output -------------------------------------------------------

    def render(self, sink=None, output: str = "html", options=None) -> str:
        from .render import render

        return render(self, sink=sink, output=output, options=options)


def table(data: Union[pd.DataFrame, Iterable[Mapping[str, Any]]], rowname_col: Optional[str] = None, groupname_col: Optional[str] = None) -> TableSpec:
    """Start a spec from a DataFrame or a sequence of row mappings."""
    spec = TableSpec(as_frame(data))
    if rowname_col is not None:
        spec = spec.stub(rowname_col)
    if groupname_col is not None:
        spec = spec.group_by(groupname_col)
    return spec
