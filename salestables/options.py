# options.py
# -------------------------
# Render options
# One dataclass of presentation settings passed to render().
# -------------------------

from dataclasses import dataclass, field
from typing import Dict, Tuple

from plotly.colors import DEFAULT_PLOTLY_COLORS

FOOTNOTE_MARKS = ("numbers", "letters", "symbols")


@dataclass
class RenderOptions:
    table_id: str = "sales-table"
    missing_text: str = ""  # placeholder for missing values
    allow_empty: bool = False
    full_html: bool = False  # wrap the table in a standalone page
    page_title: str = "Sales Table"
    page_extras: Tuple[str, ...] = ()  # HTML fragments placed after the table on a full page
    font_family: str = "Inter, system-ui, -apple-system, Segoe UI, Roboto, Arial"
    font_size: str = "14px"
    border_color: str = "#e5e7eb"
    muted_color: str = "#6b7280"
    footnote_marks: str = "numbers"  # numbers | letters | symbols
    bar_width: int = 100
    bar_height: int = 12
    bar_fill: str = DEFAULT_PLOTLY_COLORS[0]
    sparkline_width: int = 80
    sparkline_height: int = 20
    sparkline_stroke: str = DEFAULT_PLOTLY_COLORS[0]
    text_bar_chars: int = 10
    table_defaults: Dict[str, str] = field(default_factory=lambda: {"color": "#111827"})

    def __post_init__(self):
        if self.footnote_marks not in FOOTNOTE_MARKS:
            raise ValueError(
                f"footnote_marks must be one of {', '.join(FOOTNOTE_MARKS)}, got '{self.footnote_marks}'"
            )
