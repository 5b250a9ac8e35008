# predicates.py
# -------------------------
# Cell predicates and the per-render column statistics cache
# Predicates are small expression trees built from value(), col() and the
# column statistics helpers, combined with comparisons and & | ~:
#
#     col("income") == col_max("income")
#     (value() > 10) & (col("type") == "classic")
#
# An expression reports the columns and statistics it reads, so the
# renderer validates them and computes each statistic once up front.
# -------------------------

from __future__ import annotations

import logging
import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .aggregate import is_numeric_column
from .formats import is_missing

logger = logging.getLogger(__name__)

STATISTICS = ("mean", "min", "max", "median", "sum", "count")

StatRef = Tuple[str, str]


class ColumnStats:
    """Read-only cache of whole-column statistics for one render pass."""

    def __init__(self, values: Optional[Mapping[StatRef, Any]] = None):
        self._values: Dict[StatRef, Any] = dict(values or {})

    @classmethod
    def compute(cls, frame: pd.DataFrame, refs: Iterable[StatRef]) -> "ColumnStats":
        values: Dict[StatRef, Any] = {}
        for column, stat in sorted(set(refs)):
            if stat not in STATISTICS:
                raise ValueError(f"Unknown column statistic '{stat}'")
            series = frame[column]
            if stat == "count":
                values[(column, stat)] = int(series.count())
                continue
            numeric = series if is_numeric_column(series) else pd.to_numeric(series, errors="coerce")
            result = getattr(numeric, stat)()
            values[(column, stat)] = result.item() if isinstance(result, np.generic) else result
        logger.debug("Precomputed %d column statistics", len(values))
        return cls(values)

    def get(self, column: str, stat: str) -> Any:
        try:
            return self._values[(column, stat)]
        except KeyError:
            raise KeyError(f"Statistic '{stat}' of column '{column}' was not precomputed") from None

    def __contains__(self, ref: StatRef) -> bool:
        return ref in self._values

    def __len__(self) -> int:
        return len(self._values)


@dataclass(frozen=True)
class CellContext:
    """What a predicate can see: the cell, its row and the column statistics."""

    column: str
    value: Any
    row: Mapping[str, Any] = field(default_factory=dict)
    stats: ColumnStats = field(default_factory=ColumnStats)
    part: str = "body"


def _wrap(other: Any) -> "Expr":
    return other if isinstance(other, Expr) else _Literal(other)


class Expr:
    """Base class for predicate expressions."""

    def evaluate(self, ctx: CellContext) -> Any:
        raise NotImplementedError

    def test(self, ctx: CellContext) -> bool:
        result = self.evaluate(ctx)
        return False if is_missing(result) else bool(result)

    def columns(self) -> FrozenSet[str]:
        return frozenset()

    def stat_refs(self) -> FrozenSet[StatRef]:
        return frozenset()

    def needs_all_stats(self) -> bool:
        return False

    def __bool__(self):
        raise TypeError("Combine predicates with &, | and ~ instead of and/or/not")

    # comparisons build expressions, they do not compare
    def __gt__(self, other):
        return _Compare(operator.gt, self, _wrap(other))

    def __ge__(self, other):
        return _Compare(operator.ge, self, _wrap(other))

    def __lt__(self, other):
        return _Compare(operator.lt, self, _wrap(other))

    def __le__(self, other):
        return _Compare(operator.le, self, _wrap(other))

    def __eq__(self, other):  # type: ignore[override]
        return _Compare(operator.eq, self, _wrap(other))

    def __ne__(self, other):  # type: ignore[override]
        return _Compare(operator.ne, self, _wrap(other))

    __hash__ = None  # type: ignore[assignment]

    def __add__(self, other):
        return _Arith(operator.add, self, _wrap(other))

    def __sub__(self, other):
        return _Arith(operator.sub, self, _wrap(other))

    def __mul__(self, other):
        return _Arith(operator.mul, self, _wrap(other))

    __rmul__ = __mul__

    def __truediv__(self, other):
        return _Arith(operator.truediv, self, _wrap(other))

    def __and__(self, other):
        return _Logical(all, self, _wrap(other))

    def __or__(self, other):
        return _Logical(any, self, _wrap(other))

    def __invert__(self):
        return _Not(self)

    def isin(self, values: Iterable[Any]) -> "Expr":
        return _IsIn(self, tuple(values))


class _Binary(Expr):
    def __init__(self, op: Callable[[Any, Any], Any], left: Expr, right: Expr):
        self.op = op
        self.left = left
        self.right = right

    def columns(self):
        return self.left.columns() | self.right.columns()

    def stat_refs(self):
        return self.left.stat_refs() | self.right.stat_refs()

    def needs_all_stats(self):
        return self.left.needs_all_stats() or self.right.needs_all_stats()


class _Compare(_Binary):
    def evaluate(self, ctx):
        left, right = self.left.evaluate(ctx), self.right.evaluate(ctx)
        if is_missing(left) or is_missing(right):
            return False
        try:
            return bool(self.op(left, right))
        except (TypeError, ValueError):
            # e.g. "abc" > 10, or an array-valued cell
            return False


class _Arith(_Binary):
    def evaluate(self, ctx):
        left, right = self.left.evaluate(ctx), self.right.evaluate(ctx)
        if is_missing(left) or is_missing(right):
            return None
        return self.op(left, right)


class _Logical(_Binary):
    def evaluate(self, ctx):
        return self.op((self.left.test(ctx), self.right.test(ctx)))


class _Not(Expr):
    def __init__(self, inner: Expr):
        self.inner = inner

    def evaluate(self, ctx):
        return not self.inner.test(ctx)

    def columns(self):
        return self.inner.columns()

    def stat_refs(self):
        return self.inner.stat_refs()

    def needs_all_stats(self):
        return self.inner.needs_all_stats()


class _IsIn(Expr):
    def __init__(self, inner: Expr, values: Tuple[Any, ...]):
        self.inner = inner
        self.values = values

    def evaluate(self, ctx):
        found = self.inner.evaluate(ctx)
        return not is_missing(found) and found in self.values

    def columns(self):
        return self.inner.columns()

    def stat_refs(self):
        return self.inner.stat_refs()

    def needs_all_stats(self):
        return self.inner.needs_all_stats()


class _Literal(Expr):
    def __init__(self, literal: Any):
        self.literal = literal

    def evaluate(self, ctx):
        return self.literal


class _Value(Expr):
    def evaluate(self, ctx):
        return ctx.value


class _Column(Expr):
    def __init__(self, name: str):
        self.name = name

    def evaluate(self, ctx):
        return ctx.row.get(self.name)

    def columns(self):
        return frozenset([self.name])


class _Stat(Expr):
    def __init__(self, column: str, stat: str):
        if stat not in STATISTICS:
            raise ValueError(f"Unknown column statistic '{stat}'; expected one of {STATISTICS}")
        self.column = column
        self.stat = stat

    def evaluate(self, ctx):
        return ctx.stats.get(self.column, self.stat)

    def columns(self):
        return frozenset([self.column])

    def stat_refs(self):
        return frozenset([(self.column, self.stat)])


class _Callable(Expr):
    def __init__(self, fn: Callable[[CellContext], Any]):
        self.fn = fn

    def evaluate(self, ctx):
        return self.fn(ctx)

    def needs_all_stats(self):
        return True


def value() -> Expr:
    """The value of the cell being styled."""
    return _Value()


def col(name: str) -> Expr:
    """The value of another column in the same row."""
    return _Column(name)


def stat(column: str, name: str) -> Expr:
    return _Stat(column, name)


def col_mean(column: str) -> Expr:
    return _Stat(column, "mean")


def col_min(column: str) -> Expr:
    return _Stat(column, "min")


def col_max(column: str) -> Expr:
    return _Stat(column, "max")


def col_median(column: str) -> Expr:
    return _Stat(column, "median")


def col_sum(column: str) -> Expr:
    return _Stat(column, "sum")


def where(fn: Callable[[CellContext], Any]) -> Expr:
    """Wrap an arbitrary callable taking a :class:`CellContext`.

    The columns and statistics a callable reads cannot be inspected, so a
    render containing one precomputes every statistic of every numeric column.
    """
    return _Callable(fn)
