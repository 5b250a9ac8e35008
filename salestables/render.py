# render.py
# -------------------------
# Renderer
# Walks a finalized table row by row and emits HTML (with inline SVG bars
# and sparklines) or aligned plain text. All markup is built in memory; the
# sink is touched only once the whole table rendered without error.
# -------------------------

import logging
import os
from html import escape
from typing import IO, List, Optional, Union

from .finalize import FinalTable, finalize
from .formats import ColumnFormat
from .options import RenderOptions
from .predicates import ColumnStats
from .resolver import CellCoordinate, StyleResolver
from .spec import TableSpec

logger = logging.getLogger(__name__)

OUTPUTS = ("html", "text")

Sink = Union[str, "os.PathLike[str]", IO[str]]


def css_name(prop: str) -> str:
    return "background-color" if prop == "fill" else prop.replace("_", "-")


class _Renderer:
    def __init__(self, table: FinalTable, resolver: StyleResolver, options: RenderOptions):
        self.table = table
        self.resolver = resolver
        self.options = options

    def marks(self, cell: CellCoordinate) -> List[str]:
        found = []
        for note in self.table.footnotes:
            selector = note.selector
            if selector is None or not selector.covers(cell.part, cell.column):
                continue
            if selector.where is not None and not selector.where.test(self.resolver.context(cell)):
                continue
            found.append(note.mark)
        return found

    def placeholder(self, column: str) -> str:
        return self.table.missing_text.get(column, self.options.missing_text)

    def summary_format(self, line_index: int, column: str) -> ColumnFormat:
        line = self.table.summary_lines[line_index]
        return line.formats.get(column) or self.table.format_for(column)

    def summary_label_column(self, line_index: int) -> Optional[str]:
        """Column whose cell carries a summary row's label: the stub, else a free first column."""
        if self.table.stub is not None:
            return self.table.stub
        first = self.table.columns[0] if self.table.columns else None
        if first is not None and first not in self.table.summary_lines[line_index].values:
            return first
        return None


# =============================================================
# HTML
# =============================================================

class HtmlRenderer(_Renderer):
    def render(self) -> str:
        table, options = self.table, self.options
        width = max(1, len(table.columns))
        parts: List[str] = [f'<div id="{escape(options.table_id)}" class="st-wrap">', self._css()]
        parts.append('<table class="st-table">')

        if table.widths:
            parts.append("<colgroup>")
            for column in table.columns:
                px = table.widths.get(column)
                parts.append(f'<col style="width: {px}px">' if px else "<col>")
            parts.append("</colgroup>")

        parts.append("<thead>")
        if table.title is not None:
            parts.append(f'<tr><th colspan="{width}" class="st-title">{escape(table.title)}</th></tr>')
        if table.subtitle is not None:
            parts.append(f'<tr><th colspan="{width}" class="st-subtitle">{escape(table.subtitle)}</th></tr>')
        for level in table.spanner_levels():
            parts.append(self._spanner_row(level))
        labels = [self._label_cell(c) for c in table.columns]
        parts.append('<tr class="st-labels">' + "".join(labels) + "</tr>")
        parts.append("</thead>")

        for group in table.groups:
            parts.append("<tbody>")
            if group.label is not None:
                parts.append(
                    f'<tr class="st-group"><th colspan="{width}" scope="rowgroup">{escape(group.label)}</th></tr>'
                )
            for row in group.rows:
                parts.append("<tr>" + "".join(self._body_cell(row, c) for c in table.columns) + "</tr>")
            for line in group.summaries:
                parts.append(self._summary_row(line, "st-summary"))
            parts.append("</tbody>")

        if table.grand_summaries:
            parts.append('<tbody class="st-grand-summary">')
            for line in table.grand_summaries:
                parts.append(self._summary_row(line, "st-summary st-grand"))
            parts.append("</tbody>")

        if table.footnotes or table.source_notes:
            parts.append("<tfoot>")
            for note in table.footnotes:
                mark = f'<sup class="st-mark">{escape(note.mark)}</sup> ' if note.selector is not None else ""
                parts.append(f'<tr><td colspan="{width}" class="st-footnote">{mark}{escape(note.text)}</td></tr>')
            for text in table.source_notes:
                parts.append(f'<tr><td colspan="{width}" class="st-source-note">{escape(text)}</td></tr>')
            parts.append("</tfoot>")

        parts.append("</table>")
        parts.append("</div>")
        body = "\n".join(parts) + "\n"
        return self._page(body) if options.full_html else body

    def _style_attr(self, cell: CellCoordinate) -> str:
        props = self.resolver.resolve(cell)
        defaults = self.resolver.table_defaults
        decls = [f"{css_name(k)}: {v}" for k, v in props.items() if defaults.get(k) != v]
        return f' style="{escape("; ".join(decls))}"' if decls else ""

    def _marks_html(self, cell: CellCoordinate) -> str:
        marks = self.marks(cell)
        if not marks:
            return ""
        return f'<sup class="st-mark">{escape(",".join(marks))}</sup>'

    def _spanner_row(self, level: int) -> str:
        columns = self.table.columns
        covering = {}
        for spanner in self.table.spanners:
            if spanner.level == level:
                for column in spanner.columns:
                    covering[column] = spanner
        cells, i = [], 0
        while i < len(columns):
            spanner = covering.get(columns[i])
            if spanner is not None:
                span = len(spanner.columns)
                cells.append(f'<th colspan="{span}" class="st-spanner">{escape(spanner.label)}</th>')
            else:
                span = 1
                while i + span < len(columns) and columns[i + span] not in covering:
                    span += 1
                cells.append(f'<th colspan="{span}" class="st-spanner-empty"></th>')
            i += span
        return f'<tr class="st-spanners st-level-{level}">' + "".join(cells) + "</tr>"

    def _label_cell(self, column: str) -> str:
        cell = CellCoordinate("labels", column)
        text = escape(self.table.label_for(column))
        return f'<th scope="col" class="st-label"{self._style_attr(cell)}>{text}{self._marks_html(cell)}</th>'

    def _inner(self, column: str, value, fmt: ColumnFormat) -> str:
        if fmt.is_empty(value):
            return escape(self.placeholder(column))
        return fmt.markup(value, column, self.resolver.stats, self.options)

    def _body_cell(self, row: int, column: str) -> str:
        cell = CellCoordinate("body", column, row)
        value = self.table.records[row].get(column)
        inner = self._inner(column, value, self.table.format_for(column)) + self._marks_html(cell)
        if column == self.table.stub:
            return f'<th scope="row" class="st-stub"{self._style_attr(cell)}>{inner}</th>'
        return f"<td{self._style_attr(cell)}>{inner}</td>"

    def _summary_row(self, line_index: int, classes: str) -> str:
        line = self.table.summary_lines[line_index]
        label_column = self.summary_label_column(line_index)
        cells = []
        for column in self.table.columns:
            cell = CellCoordinate("summary", column, line_index)
            if column in line.values:
                inner = self._inner(column, line.values[column], self.summary_format(line_index, column))
            elif column == label_column:
                inner = escape(line.label)
            else:
                inner = ""
            inner += self._marks_html(cell)
            tag = "th" if column == label_column else "td"
            scope = ' scope="row"' if tag == "th" else ""
            cells.append(f"<{tag}{scope}{self._style_attr(cell)}>{inner}</{tag}>")
        return f'<tr class="{classes}">' + "".join(cells) + "</tr>"

    def _css(self) -> str:
        o = self.options
        root = f"#{o.table_id}"
        defaults = "; ".join(f"{css_name(k)}: {v}" for k, v in o.table_defaults.items())
        rules = [
            f"{root} .st-table {{ border-collapse: collapse; font-family: {o.font_family}; font-size: {o.font_size}; }}",
            f"{root} .st-table th, {root} .st-table td {{ padding: 4px 8px; border-bottom: 1px solid {o.border_color}; vertical-align: middle; }}",
            f"{root} .st-table th, {root} .st-table td {{ {defaults} }}" if defaults else "",
            f"{root} .st-title {{ font-size: 1.25em; font-weight: 700; text-align: center; border-bottom: none; }}",
            f"{root} .st-subtitle {{ color: {o.muted_color}; font-weight: 400; text-align: center; }}",
            f"{root} .st-spanner {{ text-align: center; font-weight: 600; border-bottom: 2px solid {o.border_color}; }}",
            f"{root} .st-spanner-empty {{ border-bottom: none; }}",
            f"{root} .st-label {{ font-weight: 600; border-bottom: 2px solid {o.border_color}; }}",
            f"{root} .st-stub {{ font-weight: 400; text-align: left; }}",
            f"{root} .st-group th {{ text-align: left; font-weight: 600; background-color: #f9fafb; }}",
            f"{root} .st-summary td, {root} .st-summary th {{ background-color: #f9fafb; }}",
            f"{root} .st-grand td, {root} .st-grand th {{ border-top: 2px solid {o.border_color}; font-weight: 600; }}",
            f"{root} .st-footnote, {root} .st-source-note {{ color: {o.muted_color}; font-size: 12px; text-align: left; border-bottom: none; }}",
            f"{root} sup.st-mark {{ font-size: 0.75em; margin-left: 2px; }}",
            f"{root} .st-bar, {root} .st-spark {{ vertical-align: middle; }}",
        ]
        return "<style>\n" + "\n".join(r for r in rules if r) + "\n</style>"

    def _page(self, fragment: str) -> str:
        o = self.options
        extras = "".join(f'<div class="st-extra">{extra}</div>\n' for extra in o.page_extras)
        return (
            "<!DOCTYPE html>\n"
            "<html lang='en'>\n"
            "<head>\n"
            "<meta charset='utf-8'>\n"
            "<meta name='viewport' content='width=device-width,initial-scale=1'>\n"
            f"<title>{escape(o.page_title)}</title>\n"
            f"<style>body {{ font-family: {o.font_family}; margin: 24px; }} .st-extra {{ margin-top: 24px; }}</style>\n"
            "</head>\n"
            "<body>\n"
            f"{fragment}"
            f"{extras}"
            "</body>\n"
            "</html>\n"
        )


# =============================================================
# Plain text
# =============================================================

class TextRenderer(_Renderer):
    """Aligned plain-text table. Styling degrades to alignment only."""

    SEP = "  "

    def render(self) -> str:
        table = self.table
        columns = list(table.columns)
        labels = {c: table.label_for(c) + self._marks_text(CellCoordinate("labels", c)) for c in columns}

        blocks = []  # (kind, payload)
        for group in table.groups:
            if group.label is not None:
                blocks.append(("group", group.label))
            for row in group.rows:
                blocks.append(("row", [self._body_cell(row, c) for c in columns]))
            for line in group.summaries:
                blocks.append(("row", self._summary_cells(line)))
        if table.grand_summaries:
            blocks.append(("rule", None))
            for line in table.grand_summaries:
                blocks.append(("row", self._summary_cells(line)))

        widths = {c: len(labels[c]) for c in columns}
        for kind, cells in blocks:
            if kind == "row":
                for column, (text, _) in zip(columns, cells):
                    widths[column] = max(widths[column], len(text))
        for spanner in table.spanners:
            span = sum(widths[c] for c in spanner.columns) + len(self.SEP) * (len(spanner.columns) - 1)
            if len(spanner.label) + 2 > span:
                widths[spanner.columns[-1]] += len(spanner.label) + 2 - span

        total = sum(widths.values()) + len(self.SEP) * max(0, len(columns) - 1)
        lines: List[str] = []
        if table.title is not None:
            lines.append(table.title.center(total).rstrip())
        if table.subtitle is not None:
            lines.append(table.subtitle.center(total).rstrip())
        for level in table.spanner_levels():
            lines.append(self._spanner_line(level, columns, widths))
        lines.append(self.SEP.join(
            self._pad(labels[c], widths[c], self.resolver.column_defaults[c]["text_align"]) for c in columns
        ).rstrip())
        lines.append("─" * total)
        for kind, payload in blocks:
            if kind == "group":
                lines.append(payload)
            elif kind == "rule":
                lines.append("─" * total)
            else:
                lines.append(self.SEP.join(
                    self._pad(text, widths[c], align) for c, (text, align) in zip(columns, payload)
                ).rstrip())
        if table.footnotes or table.source_notes:
            lines.append("─" * total)
            for note in table.footnotes:
                prefix = f"[{note.mark}] " if note.selector is not None else ""
                lines.append(prefix + note.text)
            lines.extend(table.source_notes)
        return "\n".join(lines) + "\n"

    @staticmethod
    def _pad(text: str, width: int, align: str) -> str:
        if align == "right":
            return text.rjust(width)
        if align == "center":
            return text.center(width)
        return text.ljust(width)

    def _marks_text(self, cell: CellCoordinate) -> str:
        return "".join(f"[{m}]" for m in self.marks(cell))

    def _text(self, column: str, value, fmt: ColumnFormat) -> str:
        if fmt.is_empty(value):
            return self.placeholder(column)
        return fmt.display(value, column, self.resolver.stats, self.options)

    def _body_cell(self, row: int, column: str):
        cell = CellCoordinate("body", column, row)
        text = self._text(column, self.table.records[row].get(column), self.table.format_for(column))
        return text + self._marks_text(cell), self.resolver.resolve(cell).get("text_align", "left")

    def _summary_cells(self, line_index: int):
        line = self.table.summary_lines[line_index]
        label_column = self.summary_label_column(line_index)
        cells = []
        for column in self.table.columns:
            cell = CellCoordinate("summary", column, line_index)
            if column in line.values:
                text = self._text(column, line.values[column], self.summary_format(line_index, column))
            elif column == label_column:
                text = line.label
            else:
                text = ""
            cells.append((text + self._marks_text(cell), self.resolver.resolve(cell).get("text_align", "left")))
        return cells

    def _spanner_line(self, level: int, columns: List[str], widths) -> str:
        covering = {}
        for spanner in self.table.spanners:
            if spanner.level == level:
                for column in spanner.columns:
                    covering[column] = spanner
        pieces, i = [], 0
        while i < len(columns):
            spanner = covering.get(columns[i])
            if spanner is None:
                pieces.append(" " * widths[columns[i]])
                i += 1
                continue
            span = sum(widths[c] for c in spanner.columns) + len(self.SEP) * (len(spanner.columns) - 1)
            pieces.append(f" {spanner.label} ".center(span, "─"))
            i += len(spanner.columns)
        return self.SEP.join(pieces).rstrip()


# =============================================================
# Entry point
# =============================================================

def write_output(text: str, sink: Sink) -> None:
    if isinstance(sink, (str, os.PathLike)):
        with open(sink, "w", encoding="utf-8") as f:
            f.write(text)
    else:
        sink.write(text)
    logger.debug("Wrote %d characters to %s", len(text), sink)


def render(spec: TableSpec, sink: Optional[Sink] = None, output: str = "html", options: Optional[RenderOptions] = None) -> str:
    """Validate and render ``spec``; write the result to ``sink`` if one is given.

    Raises any :class:`~salestables.errors.TableError` before touching the sink.
    """
    if output not in OUTPUTS:
        raise ValueError(f"output must be one of {', '.join(OUTPUTS)}, got '{output}'")
    options = options or RenderOptions()
    table = finalize(spec, options)
    stats = ColumnStats.compute(table.frame, table.stat_refs)
    resolver = StyleResolver(table, stats, options)
    renderer = HtmlRenderer if output == "html" else TextRenderer
    text = renderer(table, resolver, options).render()
    if sink is not None:
        write_output(text, sink)
    return text
