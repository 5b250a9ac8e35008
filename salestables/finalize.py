# finalize.py
# -------------------------
# Finalize a TableSpec for rendering
# Applies data directives, validates every directive against the final
# column set and resolves last-wins settings, spanners, groups, summary
# rows and footnotes. Nothing here writes output.
# -------------------------

import logging
import string
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple

import pandas as pd

from .aggregate import aggregate, is_numeric_column, partition, reduce_series
from .errors import (
    EmptyTableError,
    InvalidReduction,
    OverlappingSpannerError,
    SpannerError,
    UnknownColumnError,
)
from .formats import DEFAULT_FORMAT, ColumnFormat
from .options import RenderOptions
from .predicates import STATISTICS
from .spec import (
    AggregateRows,
    Align,
    Cells,
    ColorScale,
    ColumnRange,
    Footnote,
    Format,
    Header,
    Hide,
    Label,
    Missing,
    RowGroups,
    SortRows,
    SourceNote,
    Spanner,
    StyleRule,
    Stub,
    SummaryRow,
    TableSpec,
    Width,
)

logger = logging.getLogger(__name__)

_SYMBOLS = "*†‡§‖¶"


@dataclass(frozen=True)
class ResolvedSpanner:
    id: str
    label: str
    level: int  # 1 sits directly above the column labels, 2 above level 1
    columns: Tuple[str, ...]


@dataclass(frozen=True, eq=False)
class SummaryLine:
    label: str
    scope: str
    values: Dict[str, Any]
    formats: Dict[str, ColumnFormat]


@dataclass(frozen=True)
class RowGroup:
    label: Optional[str]
    rows: Tuple[int, ...]
    summaries: Tuple[int, ...] = ()


@dataclass(frozen=True, eq=False)
class FootnoteEntry:
    mark: str
    text: str
    selector: Optional[Cells]


@dataclass(frozen=True, eq=False)
class FinalTable:
    frame: pd.DataFrame
    records: Tuple[Dict[str, Any], ...]
    columns: Tuple[str, ...]
    stub: Optional[str]
    group_column: Optional[str]
    labels: Dict[str, str]
    formats: Dict[str, ColumnFormat]
    alignments: Dict[str, str]
    widths: Dict[str, int]
    missing_text: Dict[str, str]
    spanners: Tuple[ResolvedSpanner, ...]
    groups: Tuple[RowGroup, ...]
    summary_lines: Tuple[SummaryLine, ...]
    grand_summaries: Tuple[int, ...]
    footnotes: Tuple[FootnoteEntry, ...]
    rules: Tuple[Any, ...]
    title: Optional[str]
    subtitle: Optional[str]
    source_notes: Tuple[str, ...]
    stat_refs: FrozenSet[Tuple[str, str]]

    def label_for(self, column: str) -> str:
        return self.labels.get(column, column)

    def format_for(self, column: str) -> ColumnFormat:
        return self.formats.get(column, DEFAULT_FORMAT)

    def spanner_levels(self) -> List[int]:
        """Header spanner rows, outermost first."""
        return sorted({s.level for s in self.spanners}, reverse=True)


def footnote_mark(index: int, style: str) -> str:
    if style == "letters":
        return string.ascii_lowercase[index % 26] * (index // 26 + 1)
    if style == "symbols":
        return _SYMBOLS[index % len(_SYMBOLS)] * (index // len(_SYMBOLS) + 1)
    return str(index + 1)


def _apply_data_directives(spec: TableSpec) -> pd.DataFrame:
    frame = spec.data
    for position, directive in enumerate(spec.directives, start=1):
        if isinstance(directive, AggregateRows):
            try:
                frame = aggregate(frame, list(directive.group_key), dict(directive.reductions), directive.forbid_empty)
            except UnknownColumnError as exc:
                raise UnknownColumnError(exc.column, position, directive.kind) from None
            except InvalidReduction as exc:
                raise InvalidReduction(f"Directive #{position} (aggregate): {exc}") from exc
        elif isinstance(directive, SortRows):
            for column in directive.by:
                if column not in frame.columns:
                    raise UnknownColumnError(column, position, directive.kind)
            frame = frame.sort_values(list(directive.by), ascending=directive.ascending, kind="stable")
            frame = frame.reset_index(drop=True)
    return frame


def _resolve_range(targets, visible: List[str], position: int, label: str) -> List[str]:
    if not isinstance(targets, ColumnRange):
        return list(targets)
    if targets.first not in visible or targets.last not in visible:
        raise SpannerError(f"Spanner '{label}' (directive #{position}) ranges over a hidden column")
    start, stop = visible.index(targets.first), visible.index(targets.last)
    if start > stop:
        raise SpannerError(f"Spanner '{label}' (directive #{position}): '{targets.first}' comes after '{targets.last}'")
    return visible[start:stop + 1]


def resolve_spanners(declared: List[Tuple[int, Spanner]], visible: List[str]) -> Tuple[ResolvedSpanner, ...]:
    by_id: Dict[str, Tuple[int, Spanner]] = {}
    for position, spanner in declared:
        if spanner.spanner_id in by_id:
            raise SpannerError(f"Duplicate spanner id '{spanner.spanner_id}' (directive #{position})")
        by_id[spanner.spanner_id] = (position, spanner)

    own: Dict[str, List[str]] = {}
    for position, spanner in declared:
        own[spanner.spanner_id] = [
            c for c in _resolve_range(spanner.targets, visible, position, spanner.label) if c in visible
        ]

    resolved: List[ResolvedSpanner] = []
    for position, spanner in declared:
        leaves = list(own[spanner.spanner_id])
        for child_id in spanner.spanners:
            if child_id not in by_id:
                raise SpannerError(f"Spanner '{spanner.label}' (directive #{position}) nests unknown spanner '{child_id}'")
            child = by_id[child_id][1]
            if child.spanners:
                raise SpannerError(
                    f"Spanner '{spanner.label}' (directive #{position}) nests '{child.label}', "
                    "which already nests spanners; only one level of nesting is supported"
                )
            leaves.extend(own[child_id])
        leaves = [c for c in visible if c in set(leaves)]
        if not leaves:
            continue
        indexes = [visible.index(c) for c in leaves]
        if indexes != list(range(indexes[0], indexes[0] + len(indexes))):
            raise SpannerError(
                f"Spanner '{spanner.label}' (directive #{position}) covers non-contiguous columns: " + ", ".join(leaves)
            )
        level = 2 if spanner.spanners else 1
        resolved.append(ResolvedSpanner(spanner.spanner_id, spanner.label, level, tuple(leaves)))

    # only a parent and the children it nests may share columns
    for i, first in enumerate(resolved):
        for second in resolved[i + 1:]:
            if second.id in by_id[first.id][1].spanners or first.id in by_id[second.id][1].spanners:
                continue
            shared = [c for c in first.columns if c in second.columns]
            if shared:
                raise OverlappingSpannerError(first.label, second.label, shared)
    return tuple(resolved)


def _summary_values(frame: pd.DataFrame, rows, columns, fn: str, position: int) -> Dict[str, Any]:
    subset = frame.loc[list(rows)]
    values = {}
    for column in columns:
        try:
            values[column] = reduce_series(subset[column], fn)
        except InvalidReduction as exc:
            raise InvalidReduction(f"Directive #{position} (summary_row): {exc}") from exc
    return values


def finalize(spec: TableSpec, options: Optional[RenderOptions] = None) -> FinalTable:
    """Validate ``spec`` against its final column set and resolve it for rendering."""
    options = options or RenderOptions()
    frame = _apply_data_directives(spec)
    available = set(frame.columns)

    for position, directive in enumerate(spec.directives, start=1):
        if isinstance(directive, (AggregateRows, SortRows)):
            continue
        for column in directive.columns():
            if column not in available:
                raise UnknownColumnError(column, position, directive.kind)

    if frame.empty and not options.allow_empty:
        raise EmptyTableError("Table has no rows; pass RenderOptions(allow_empty=True) to render it anyway")

    stub = group_column = title = subtitle = None
    labels: Dict[str, str] = {}
    formats: Dict[str, ColumnFormat] = {}
    alignments: Dict[str, str] = {}
    widths: Dict[str, int] = {}
    missing_text: Dict[str, str] = {}
    hidden: Set[str] = set()
    source_notes: List[str] = []
    spanners: List[Tuple[int, Spanner]] = []
    summaries: List[Tuple[int, SummaryRow]] = []
    footnotes: List[FootnoteEntry] = []
    rules = []

    for position, directive in enumerate(spec.directives, start=1):
        if isinstance(directive, Stub):
            stub = directive.column
        elif isinstance(directive, RowGroups):
            group_column = directive.column
        elif isinstance(directive, Format):
            formats.update((c, directive.fmt) for c in directive.targets)
        elif isinstance(directive, Label):
            labels[directive.column] = directive.text
        elif isinstance(directive, Align):
            alignments.update((c, directive.alignment) for c in directive.targets)
        elif isinstance(directive, Width):
            widths[directive.column] = directive.pixels
        elif isinstance(directive, Missing):
            missing_text.update((c, directive.text) for c in directive.targets)
        elif isinstance(directive, Hide):
            hidden.update(directive.targets)
        elif isinstance(directive, Header):
            title, subtitle = directive.title, directive.subtitle
        elif isinstance(directive, SourceNote):
            source_notes.append(directive.text)
        elif isinstance(directive, Spanner):
            spanners.append((position, directive))
        elif isinstance(directive, SummaryRow):
            summaries.append((position, directive))
        elif isinstance(directive, Footnote):
            mark = footnote_mark(len(footnotes), options.footnote_marks)
            footnotes.append(FootnoteEntry(mark, directive.text, directive.selector))
        elif isinstance(directive, (StyleRule, ColorScale)):
            rules.append(directive)

    visible = [c for c in frame.columns if c not in hidden and c not in (group_column, stub)]
    if stub is not None and stub not in hidden:
        visible.insert(0, stub)

    if group_column is not None:
        groups = [
            (options.missing_text if pd.isna(key[0]) else str(key[0]), tuple(rows.index))
            for key, rows in partition(frame, group_column)
        ]
    else:
        groups = [(None, tuple(range(len(frame))))]

    lines: List[SummaryLine] = []
    group_lines: List[List[int]] = [[] for _ in groups]
    grand: List[int] = []
    for position, directive in summaries:
        override = {c: directive.fmt for c in directive.targets} if directive.fmt is not None else {}
        for label, fn in directive.fns:
            if directive.scope == "group":
                for index, (_, rows) in enumerate(groups):
                    values = _summary_values(frame, rows, directive.targets, fn, position)
                    group_lines[index].append(len(lines))
                    lines.append(SummaryLine(label, "group", values, override))
            else:
                values = _summary_values(frame, range(len(frame)), directive.targets, fn, position)
                grand.append(len(lines))
                lines.append(SummaryLine(label, "table", values, override))

    refs: Set[Tuple[str, str]] = set()
    needs_all = False
    predicates = [r.predicate for r in rules if isinstance(r, StyleRule)]
    predicates += [r.selector.where for r in rules if isinstance(r, StyleRule)]
    predicates += [f.selector.where for f in footnotes if f.selector is not None]
    for predicate in predicates:
        if predicate is not None:
            refs |= predicate.stat_refs()
            needs_all = needs_all or predicate.needs_all_stats()
    for rule in rules:
        if isinstance(rule, ColorScale) and rule.domain is None:
            refs |= {(c, s) for c in rule.targets for s in ("min", "max")}
    for column, fmt in formats.items():
        refs |= fmt.stat_refs(column)
    if needs_all:
        numeric = [c for c in frame.columns if is_numeric_column(frame[c])]
        refs |= {(c, s) for c in numeric for s in STATISTICS}

    logger.debug(
        "Finalized table: %d rows, %d visible columns, %d directives, %d groups",
        len(frame), len(visible), len(spec.directives), len(groups),
    )
    return FinalTable(
        frame=frame,
        records=tuple(frame.to_dict("records")),
        columns=tuple(visible),
        stub=stub if stub in visible else None,
        group_column=group_column,
        labels=labels,
        formats=formats,
        alignments=alignments,
        widths=widths,
        missing_text=missing_text,
        spanners=resolve_spanners(spanners, visible),
        groups=tuple(RowGroup(label, rows, tuple(group_lines[i])) for i, (label, rows) in enumerate(groups)),
        summary_lines=tuple(lines),
        grand_summaries=tuple(grand),
        footnotes=tuple(footnotes),
        rules=tuple(rules),
        title=title,
        subtitle=subtitle,
        source_notes=tuple(source_notes),
        stat_refs=frozenset(refs),
    )
