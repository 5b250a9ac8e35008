import datetime as dt
import unittest

import numpy as np
import pandas as pd

from salestables import ColumnFormat, ColumnStats, TypeMismatchError
from salestables.formats import (
    bar_fraction,
    format_currency,
    format_date,
    format_integer,
    format_number,
    format_percent,
    format_text,
    markdown_to_html,
    markdown_to_text,
    sparkline_points,
    sparkline_text,
)


class TestTextFormats(unittest.TestCase):
    def test_currency(self):
        self.assertEqual(format_currency(1234.5), "$1,234.50")
        self.assertEqual(format_currency(-1234.5), "-$1,234.50")
        self.assertEqual(format_currency(1234.5, currency="EUR"), "€1,234.50")
        self.assertEqual(format_currency(1234.4, decimals=0), "$1,234")
        self.assertEqual(format_currency(1234.5, use_seps=False), "$1234.50")

    def test_currency_rounding_to_zero_has_no_sign(self):
        self.assertEqual(format_currency(-0.001), "$0.00")

    def test_currency_parses_back_within_half_a_cent(self):
        for amount in [0.0, 1.5, 1234.567, -98765.4321, 10 ** 7 + 0.004]:
            text = format_currency(amount)
            parsed = float(text.replace("$", "").replace(",", ""))
            self.assertLessEqual(abs(parsed - amount), 0.005 + 1e-9)

    def test_number_and_integer(self):
        self.assertEqual(format_number(1234.5678, decimals=1), "1,234.6")
        self.assertEqual(format_number(1234.5678, use_seps=False), "1234.57")
        self.assertEqual(format_number(3, decimals=0, pattern="{x} pies"), "3 pies")
        self.assertEqual(format_integer(1234.6), "1,235")
        self.assertEqual(format_integer(np.int64(42)), "42")

    def test_percent(self):
        self.assertEqual(format_percent(0.256), "25.6%")
        self.assertEqual(format_percent(0.256, force_sign=True), "+25.6%")
        self.assertEqual(format_percent(12.5, scale_values=False), "12.5%")
        self.assertEqual(format_percent(0.5, decimals=0), "50%")

    def test_date(self):
        self.assertEqual(format_date(dt.date(2024, 3, 5)), "2024-03-05")
        self.assertEqual(format_date(pd.Timestamp("2024-03-05 10:30")), "2024-03-05")
        self.assertEqual(format_date("2024-03-05", date_format="%d/%m/%Y"), "05/03/2024")
        with self.assertRaises(TypeMismatchError):
            format_date(5)

    def test_text_joins_sequences(self):
        self.assertEqual(format_text(["a", "b"]), "a, b")
        self.assertEqual(format_text(7), "7")

    def test_numeric_formats_reject_text_and_bools(self):
        with self.assertRaises(TypeMismatchError):
            format_currency("abc")
        with self.assertRaises(TypeMismatchError):
            format_number(True)

    def test_format_error_names_the_column(self):
        fmt = ColumnFormat.of("currency")
        with self.assertRaises(TypeMismatchError) as ctx:
            fmt.display("abc", "price")
        self.assertEqual(ctx.exception.column, "price")
        self.assertIn("price", str(ctx.exception))

    def test_markdown(self):
        src = "**Big** *deal* `x` [site](http://a.b)"
        self.assertEqual(
            markdown_to_html(src),
            '<strong>Big</strong> <em>deal</em> <code>x</code> <a href="http://a.b">site</a>',
        )
        self.assertEqual(markdown_to_text(src), "Big deal x site")

    def test_markdown_escapes_html(self):
        self.assertEqual(markdown_to_html("a < b & **c**"), "a &lt; b &amp; <strong>c</strong>")


class TestColumnFormat(unittest.TestCase):
    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            ColumnFormat.of("roman")

    def test_markup_escapes_text(self):
        self.assertEqual(ColumnFormat().markup("<b>"), "&lt;b&gt;")

    def test_empty_values(self):
        fmt = ColumnFormat.of("sparkline")
        self.assertTrue(fmt.is_empty(None))
        self.assertTrue(fmt.is_empty(float("nan")))
        self.assertTrue(fmt.is_empty([]))
        self.assertFalse(fmt.is_empty([1, 2]))
        self.assertFalse(ColumnFormat().is_empty(0))

    def test_bar_markup_uses_column_range(self):
        stats = ColumnStats({("x", "min"): 0, ("x", "max"): 10})
        svg = ColumnFormat.of("bar", width=100, height=10).markup(5, "x", stats)
        self.assertIn('width="50.00"', svg)
        self.assertIn('class="st-bar"', svg)

    def test_bar_label(self):
        stats = ColumnStats({("x", "min"): 0, ("x", "max"): 10})
        fmt = ColumnFormat.of("bar", label=ColumnFormat.of("currency", decimals=0))
        self.assertIn('<span class="st-bar-label">$5</span>', fmt.markup(5, "x", stats))

    def test_sparkline_markup(self):
        svg = ColumnFormat.of("sparkline", width=10, height=4).markup([1, 3, 2])
        self.assertIn('points="0.00,4.00 5.00,0.00 10.00,2.00"', svg)
        self.assertIn('<circle cx="10.00" cy="2.00"', svg)

    def test_sparkline_rejects_scalars(self):
        with self.assertRaises(TypeMismatchError):
            ColumnFormat.of("sparkline").markup(3, "trend")


class TestMiniCharts(unittest.TestCase):
    def test_bar_fraction(self):
        self.assertAlmostEqual(bar_fraction(5, 0, 10), 0.5)
        self.assertAlmostEqual(bar_fraction(5, 5, 10), 0.0)
        self.assertAlmostEqual(bar_fraction(5, 5, 10, scaled=False), 0.5)
        self.assertAlmostEqual(bar_fraction(3, 3, 3), 1.0)
        self.assertAlmostEqual(bar_fraction(20, 0, 10), 1.0)

    def test_sparkline_points(self):
        self.assertEqual(sparkline_points([1, 3, 2], 10, 4), [(0.0, 4.0), (5.0, 0.0), (10.0, 2.0)])

    def test_flat_sparkline_sits_mid_height(self):
        self.assertEqual([y for _, y in sparkline_points([7, 7, 7], 10, 4)], [2.0, 2.0, 2.0])

    def test_single_point_sparkline(self):
        self.assertEqual(sparkline_points([5], 10, 4), [(0.0, 2.0)])

    def test_sparkline_text(self):
        self.assertEqual(sparkline_text([1, 2, 3]), "▁▅█")
