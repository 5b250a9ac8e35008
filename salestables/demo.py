# demo.py
# -------------------------
# Pizza sales summary table
# CLI that builds a presentation table from sales records (synthetic or CSV)
# and writes a standalone HTML report (or plain text).
# -------------------------

import argparse
import logging
import math
import os
import sys
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import plotly.io as pio

from .aggregate import aggregate
from .errors import TableError
from .options import RenderOptions
from .predicates import col, col_max, col_mean, value
from .spec import TableSpec, body, column_labels, table

# =============================================================
# Data utilities
# =============================================================

REQUIRED_COLS = {
    "date": ["date", "order_date", "transaction_date"],
    "type": ["type", "category", "pizza_category"],
    "size": ["size", "pizza_size"],
    "price": ["price", "unit_price", "amount", "revenue"],
}

OPTIONAL_COLS = {
    "name": ["name", "pizza_name", "product", "item"],
}

PIZZAS = {
    "classic": ["Hawaiian", "Pepperoni", "Big Meat", "Napolitana"],
    "chicken": ["BBQ Chicken", "Thai Chicken", "Chicken Pesto"],
    "supreme": ["Spicy Italian", "Soppressata", "Calabrese"],
    "veggie": ["Four Cheese", "Mediterranean", "Spinach Pesto", "Green Garden"],
}

SIZE_PRICES = {"S": 12.0, "M": 16.0, "L": 20.5}


def generate_demo_data(seed: int = 7, days: int = 365) -> pd.DataFrame:
    """Generate a year of pizza orders with weekly and seasonal swings.
    Columns: date, type, name, size, price
    """
    np.random.seed(seed)
    dates = pd.date_range("2015-01-01", periods=days, freq="D")
    types = list(PIZZAS)
    sizes = list(SIZE_PRICES)

    rows = []
    for d in dates:
        base = 45 + 8 * math.sin(2 * math.pi * (d.dayofyear / 365))
        day_multiplier = 1.25 if d.weekday() in (4, 5) else 1.0  # Friday and Saturday busier
        orders = max(10, int(np.random.normal(base * day_multiplier, 6)))
        for _ in range(orders):
            kind = np.random.choice(types, p=[0.30, 0.22, 0.24, 0.24])
            name = np.random.choice(PIZZAS[kind])
            size = np.random.choice(sizes, p=[0.35, 0.38, 0.27])
            price = SIZE_PRICES[size] + np.random.choice([0.0, 0.5, 0.75, 1.25])
            rows.append((d, kind, name, size, round(float(price), 2)))

    return pd.DataFrame(rows, columns=["date", "type", "name", "size", "price"])


def auto_map_columns(df: pd.DataFrame) -> Dict[str, str]:
    mapping: Dict[str, str] = {}
    lower_cols = {c.lower(): c for c in df.columns}
    for key, cands in {**REQUIRED_COLS, **OPTIONAL_COLS}.items():
        for cand in cands:
            if cand in lower_cols:
                mapping[key] = lower_cols[cand]
                break
    return mapping


def coerce_schema(df: pd.DataFrame, mapping: Dict[str, str]) -> pd.DataFrame:
    df = df.copy()
    missing = [k for k in REQUIRED_COLS.keys() if k not in mapping]
    if missing:
        raise ValueError(
            "Missing required columns: " + ", ".join(missing) +
            ". Map your columns or rename them in your CSV."
        )
    df = df.rename(columns={v: k for k, v in mapping.items()})

    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    if df["date"].isna().any():
        raise ValueError("Some dates could not be parsed. Expected YYYY-MM-DD or similar.")

    df["price"] = pd.to_numeric(df["price"], errors="coerce")
    if df["price"].isna().any():
        raise ValueError("Column 'price' contains non-numeric values.")

    for c in ["type", "size"]:
        df[c] = df[c].astype(str).str.strip()
    return df


def monthly_income(df: pd.DataFrame, keys: List[str]) -> pd.DataFrame:
    """One list of month-by-month income per key combination, for sparklines."""
    months = df.assign(month=df["date"].dt.to_period("M").dt.to_timestamp())
    totals = months.groupby(keys + ["month"])["price"].sum()
    trend = totals.groupby(level=list(range(len(keys)))).agg(list)
    return trend.rename("trend").reset_index()


def compute_kpis(df: pd.DataFrame) -> Tuple[float, int, float]:
    income = float(df["price"].sum())
    sold = int(len(df))
    avg_price = income / max(1, sold)
    return income, sold, avg_price


# =============================================================
# Table and chart builders
# =============================================================

def sales_summary(df: pd.DataFrame) -> pd.DataFrame:
    summary = aggregate(df, ["type", "size"], {
        "sold": ("price", "count"),
        "income": ("price", "sum"),
        "share": ("price", "pct_total"),
        "income_bar": ("price", "sum"),
    })
    return summary.merge(monthly_income(df, ["type", "size"]), on=["type", "size"], how="left")


def build_sales_table(df: pd.DataFrame, title: str = "Pizza Sales") -> TableSpec:
    start, end = df["date"].min(), df["date"].max()
    return (
        table(sales_summary(df), rowname_col="size", groupname_col="type")
        .header(title, subtitle=f"{start:%B %d, %Y} to {end:%B %d, %Y}")
        .labels(size="Size", sold="Sold", income="Income", share="Share", income_bar="", trend="By month")
        .fmt_integer("sold")
        .fmt_currency("income")
        .fmt_percent("share")
        .fmt_bar("income_bar", scaled=False)
        .fmt_sparkline("trend")
        .spanner("Performance", ["sold", "income", "share"])
        .spanner("Visuals", ["income_bar", "trend"])
        .spanner("Sales", spanners=["Performance", "Visuals"])
        .data_color("sold", palette=["#FFFFFF", "#93C5FD"])
        .style(body("share"), value() < col_mean("share"), color="#b91c1c")
        .style(body("income"), col("income") == col_max("income"), fill="#fde68a", font_weight="bold")
        .summary_row(["sold", "income", "share"], "sum", scope="group")
        .summary_row(["sold", "income", "share"], {"Grand total": "sum"}, scope="table")
        .footnote("Share of income across every pizza type and size.", column_labels("share"))
        .footnote("Top earner.", body("income", where=col("income") == col_max("income")))
        .source_note("Synthetic order data generated by salestables.demo.")
    )


def fig_income_by_type(df: pd.DataFrame) -> go.Figure:
    by_type = (
        df.groupby("type", as_index=False)["price"].sum()
        .sort_values("price", ascending=False)
    )
    fig = px.bar(by_type, x="type", y="price", title="Income by Pizza Type")
    fig.update_layout(margin=dict(l=10, r=10, t=50, b=10), xaxis_title="Type", yaxis_title="Income")
    return fig


# =============================================================
# Report extras
# =============================================================

def kpi_note(kpis: Tuple[float, int, float]) -> str:
    income, sold, avg_price = kpis
    return f"Total income ${income:,.0f} | Pizzas sold {sold:,} | Avg price ${avg_price:,.2f}"


def chart_snippets(figures: List[go.Figure]) -> Tuple[str, ...]:
    return tuple(pio.to_html(fig, full_html=False, include_plotlyjs="cdn") for fig in figures)


# =============================================================
# CLI
# =============================================================

def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Build a pizza sales summary table and write it as a report.")
    parser.add_argument("--csv", type=str, default=None, help="Path to CSV (if omitted, uses demo data)")
    parser.add_argument("--out", type=str, default="sales_table_report.html", help="Output report path")
    parser.add_argument("--output", type=str, default="html", choices=["html", "text"], help="Report format")
    parser.add_argument("--title", type=str, default="Pizza Sales", help="Table title")
    parser.add_argument("--seed", type=int, default=7, help="Random seed for demo data")
    parser.add_argument("--days", type=int, default=365, help="Days of demo data")
    parser.add_argument("--missing-text", type=str, default="", help="Placeholder for missing values")
    parser.add_argument("--no-chart", action="store_true", help="Leave the plotly chart out of the HTML report")
    parser.add_argument("--save-csv", type=str, default=None, help="Optional path to save the aggregated table as CSV")
    parser.add_argument("--verbose", action="store_true", help="Log rendering details")

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.csv and os.path.exists(args.csv):
        raw = pd.read_csv(args.csv)
        try:
            df = coerce_schema(raw, auto_map_columns(raw))
        except ValueError as e:
            print(f"[ERROR] {e}")
            return 1
    else:
        df = generate_demo_data(seed=args.seed, days=args.days)

    if df.empty:
        print("[INFO] No sales records to summarize.")
        return 0

    spec = build_sales_table(df, title=args.title).source_note(kpi_note(compute_kpis(df)))
    figs = [] if args.no_chart or args.output == "text" else [fig_income_by_type(df)]
    options = RenderOptions(
        missing_text=args.missing_text,
        full_html=True,
        page_title=args.title,
        page_extras=chart_snippets(figs),
    )
    try:
        spec.render(args.out, output=args.output, options=options)
    except TableError as e:
        print(f"[ERROR] {e}")
        return 1

    print(f"[OK] Report written to: {args.out}")
    if args.save_csv:
        sales_summary(df).drop(columns=["trend", "income_bar"]).to_csv(args.save_csv, index=False)
        print(f"[OK] Summary CSV saved to: {args.save_csv}")
    return 0


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
