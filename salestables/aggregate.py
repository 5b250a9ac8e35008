# aggregate.py
# -------------------------
# Aggregation stage
# Groups sales rows by key columns and reduces each group to one row.
# -------------------------

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from .errors import EmptyGroupError, InvalidReduction, UnknownColumnError

logger = logging.getLogger(__name__)

REDUCTIONS = ("sum", "count", "mean", "min", "max", "median", "first", "pct_total")
NUMERIC_ONLY = {"sum", "mean", "median", "pct_total"}

GroupKey = Union[str, Sequence[str]]
Reductions = Mapping[str, Tuple[str, str]]


def as_frame(data: Union[pd.DataFrame, Iterable[Mapping[str, Any]]]) -> pd.DataFrame:
    """Return a private copy of ``data`` as a DataFrame with a fresh RangeIndex."""
    if isinstance(data, pd.DataFrame):
        return data.reset_index(drop=True).copy()
    return pd.DataFrame(list(data))


def is_numeric_column(values: pd.Series) -> bool:
    return is_numeric_dtype(values) and not is_bool_dtype(values)


def key_list(group_key: GroupKey) -> List[str]:
    keys = [group_key] if isinstance(group_key, str) else list(group_key)
    if not keys:
        raise ValueError("group_key must name at least one column")
    if len(keys) > 2:
        raise ValueError("At most two grouping levels are supported")
    return keys


def _first(values: pd.Series) -> Any:
    return values.iloc[0] if len(values) else np.nan


_PANDAS_AGG = {
    "sum": "sum",
    "count": "count",
    "mean": "mean",
    "min": "min",
    "max": "max",
    "median": "median",
    "first": _first,
    "pct_total": "sum",
}


def check_reductions(df: pd.DataFrame, reductions: Reductions) -> None:
    for out, spec in reductions.items():
        try:
            source, fn = spec
        except (TypeError, ValueError):
            raise InvalidReduction(f"Reduction for '{out}' must be a (column, function) pair, got {spec!r}")
        if fn not in REDUCTIONS:
            raise InvalidReduction(f"Unknown reduction '{fn}' for output column '{out}'")
        if source not in df.columns:
            raise InvalidReduction(f"Reduction '{fn}' for '{out}' references missing column '{source}'")
        if fn in NUMERIC_ONLY and not is_numeric_column(df[source]):
            raise InvalidReduction(
                f"Reduction '{fn}' needs a numeric column but '{source}' is {df[source].dtype}"
            )


def _nested_order(outer_seen: pd.Index, outer_values: pd.Series) -> np.ndarray:
    # outer groups in first-seen order, inner order preserved within each
    rank = outer_seen.get_indexer(outer_values)
    return np.argsort(rank, kind="stable")


def aggregate(
    data: Union[pd.DataFrame, Iterable[Mapping[str, Any]]],
    group_key: GroupKey,
    reductions: Reductions,
    forbid_empty: bool = False,
    sort_by: Optional[Union[str, Sequence[str]]] = None,
    ascending: bool = True,
) -> pd.DataFrame:
    """Reduce ``data`` to one row per distinct ``group_key`` combination.

    ``reductions`` maps each output column to ``(source_column, reduction)``.
    Groups come out in first-seen order (outer key first for two-level keys)
    unless ``sort_by`` is given. ``pct_total`` yields each group's share of
    the grand total as a fraction; the grand total is taken over the
    ungrouped column before any group is reduced.
    """
    df = as_frame(data)
    keys = key_list(group_key)
    for key in keys:
        if key not in df.columns:
            raise UnknownColumnError(key)
    check_reductions(df, reductions)

    # Frozen before grouping: shares are of the grand total, never a running one.
    grand_totals = {
        source: df[source].sum()
        for source, fn in reductions.values()
        if fn == "pct_total"
    }

    grouped = df.groupby(keys, sort=False, observed=False, dropna=False)
    sizes = grouped.size()
    named = {out: (source, _PANDAS_AGG[fn]) for out, (source, fn) in reductions.items()}
    result = grouped.agg(**named) if named else pd.DataFrame(index=sizes.index)

    non_empty = sizes.to_numpy() > 0
    if not non_empty.all():
        empty_keys = list(sizes.index[~non_empty])
        if forbid_empty:
            raise EmptyGroupError(empty_keys)
        logger.debug("Dropping %d empty group(s): %s", len(empty_keys), empty_keys)
        result = result[non_empty].copy()

    for out, (source, fn) in reductions.items():
        if fn == "pct_total":
            total = grand_totals[source]
            result[out] = result[out] / total if total else np.nan

    result = result.reset_index()
    if len(keys) == 2:
        outer_seen = pd.Index(pd.unique(df[keys[0]]))
        result = result.iloc[_nested_order(outer_seen, result[keys[0]])]
    if sort_by is not None:
        result = result.sort_values(sort_by, ascending=ascending, kind="stable")

    logger.debug("Aggregated %d rows into %d groups by %s", len(df), len(result), keys)
    return result.reset_index(drop=True)


def partition(data: Union[pd.DataFrame, Iterable[Mapping[str, Any]]], group_key: GroupKey) -> List[Tuple[tuple, pd.DataFrame]]:
    """Split ``data`` into ``(key, rows)`` pairs in first-seen order.

    Every input row lands in exactly one group; row order inside a group is
    the input order and the original index is kept.
    """
    df = data if isinstance(data, pd.DataFrame) else as_frame(data)
    keys = key_list(group_key)
    for key in keys:
        if key not in df.columns:
            raise UnknownColumnError(key)

    groups = []
    for key, frame in df.groupby(keys, sort=False, dropna=False):
        groups.append((key if isinstance(key, tuple) else (key,), frame))
    if len(keys) == 2 and groups:
        outer_seen = pd.Index(pd.unique(df[keys[0]]))
        outer_values = pd.Series([key[0] for key, _ in groups])
        groups = [groups[i] for i in _nested_order(outer_seen, outer_values)]
    return groups


def reduce_series(values: pd.Series, reduction: str) -> Any:
    """Apply one named reduction to a column (used for summary rows)."""
    if reduction not in REDUCTIONS or reduction == "pct_total":
        raise InvalidReduction(f"Unknown summary reduction '{reduction}'")
    if reduction == "first":
        return values.iloc[0] if len(values) else None
    if reduction == "count":
        return int(values.count())
    if reduction in NUMERIC_ONLY and not is_numeric_column(values):
        raise InvalidReduction(
            f"Reduction '{reduction}' needs a numeric column but '{values.name}' is {values.dtype}"
        )
    result = getattr(values, reduction)()
    return result.item() if isinstance(result, np.generic) else result
