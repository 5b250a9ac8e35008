# __init__.py
# -------------------------
# salestables
# Presentation tables for sales data: aggregate, format, style, render.
# -------------------------

from .aggregate import REDUCTIONS, aggregate, partition, reduce_series
from .errors import (
    EmptyGroupError,
    EmptyTableError,
    InvalidReduction,
    OverlappingSpannerError,
    SpannerError,
    TableError,
    TypeMismatchError,
    UnknownColumnError,
)
from .formats import ColumnFormat
from .options import RenderOptions
from .predicates import (
    CellContext,
    ColumnStats,
    col,
    col_max,
    col_mean,
    col_median,
    col_min,
    col_sum,
    stat,
    value,
    where,
)
from .render import render
from .resolver import CellCoordinate, StyleResolver
from .spec import TableSpec, between, body, column_labels, summary, table

__all__ = [
    "REDUCTIONS",
    "aggregate",
    "partition",
    "reduce_series",
    "EmptyGroupError",
    "EmptyTableError",
    "InvalidReduction",
    "OverlappingSpannerError",
    "SpannerError",
    "TableError",
    "TypeMismatchError",
    "UnknownColumnError",
    "ColumnFormat",
    "RenderOptions",
    "CellContext",
    "ColumnStats",
    "col",
    "col_max",
    "col_mean",
    "col_median",
    "col_min",
    "col_sum",
    "stat",
    "value",
    "where",
    "render",
    "CellCoordinate",
    "StyleResolver",
    "TableSpec",
    "between",
    "body",
    "column_labels",
    "summary",
    "table",
]
