import unittest

import pandas as pd

from salestables import (
    EmptyTableError,
    InvalidReduction,
    OverlappingSpannerError,
    RenderOptions,
    SpannerError,
    TableSpec,
    UnknownColumnError,
    between,
    body,
    col,
    table,
)
from salestables.finalize import finalize, footnote_mark
from salestables.spec import Cells, normalize_properties


class TestBuilder(unittest.TestCase):
    def setUp(self):
        self.rows = [
            {"type": "A", "size": "S", "price": 10},
            {"type": "A", "size": "L", "price": 20},
            {"type": "B", "size": "S", "price": 5},
        ]

    def test_directives_return_new_specs(self):
        base = table(self.rows)
        styled = base.fmt_currency("price").style(body("price"), fill="red")
        self.assertEqual(len(base.directives), 0)
        self.assertEqual(len(styled.directives), 2)
        branch = base.fmt_integer("price")
        self.assertEqual([d.kind for d in branch.directives], ["format"])

    def test_source_frame_is_copied(self):
        df = pd.DataFrame(self.rows)
        spec = table(df)
        df.loc[0, "price"] = 999
        self.assertEqual(spec.data.loc[0, "price"], 10)

    def test_direct_spec_with_labelled_index(self):
        spec = TableSpec(pd.DataFrame({"g": ["x", "y"], "v": [1, 2]}, index=[10, 20]))
        self.assertEqual(list(spec.data.index), [0, 1])
        text = spec.summary_row("v", "sum").render(output="text")
        self.assertIn("Sum  3", text.splitlines())
        grouped = spec.group_by("g").summary_row("v", "sum", scope="group")
        self.assertEqual([line.values["v"] for line in finalize(grouped).summary_lines], [1, 2])

    def test_direct_spec_from_rows(self):
        spec = TableSpec([{"v": 1}, {"v": 2}])
        self.assertIsInstance(spec.data, pd.DataFrame)
        self.assertIn(">3</td>", spec.summary_row("v").render())

    def test_table_shortcuts(self):
        spec = table(self.rows, rowname_col="size", groupname_col="type")
        self.assertEqual([d.kind for d in spec.directives], ["stub", "group_by"])

    def test_summary_row_labels(self):
        spec = table(self.rows)
        self.assertEqual(spec.summary_row("price").directives[-1].fns, (("Sum", "sum"),))
        self.assertEqual(
            spec.summary_row("price", ["sum", "mean"]).directives[-1].fns,
            (("Sum", "sum"), ("Mean", "mean")),
        )
        self.assertEqual(
            spec.summary_row("price", {"Grand total": "sum"}).directives[-1].fns,
            (("Grand total", "sum"),),
        )

    def test_eager_argument_checks(self):
        spec = table(self.rows)
        with self.assertRaises(ValueError):
            spec.summary_row("price", scope="page")
        with self.assertRaises(ValueError):
            spec.align("price", "justify")
        with self.assertRaises(ValueError):
            spec.format("price", "roman")
        with self.assertRaises(ValueError):
            Cells("footer")

    def test_property_aliases(self):
        self.assertEqual(
            normalize_properties({"background": "red"}, {"weight": "bold", "text_align": "left"}),
            (("fill", "red"), ("font_weight", "bold"), ("text_align", "left")),
        )

    def test_footnote_marks(self):
        self.assertEqual(footnote_mark(0, "numbers"), "1")
        self.assertEqual(footnote_mark(1, "letters"), "b")
        self.assertEqual(footnote_mark(26, "letters"), "aa")
        self.assertEqual(footnote_mark(0, "symbols"), "*")

    def test_invalid_footnote_marks_option(self):
        with self.assertRaises(ValueError):
            RenderOptions(footnote_marks="roman")


class TestRenderTimeValidation(unittest.TestCase):
    def setUp(self):
        self.rows = [
            {"type": "A", "price": 10},
            {"type": "A", "price": 20},
            {"type": "B", "price": 5},
        ]

    def test_unknown_column_names_directive_position(self):
        spec = table(self.rows).label("price", "Price").fmt_currency("nope")
        with self.assertRaises(UnknownColumnError) as ctx:
            spec.render()
        self.assertEqual(ctx.exception.column, "nope")
        self.assertEqual(ctx.exception.position, 2)
        self.assertEqual(ctx.exception.directive, "format")
        self.assertIn("#2", str(ctx.exception))

    def test_unknown_column_in_predicate(self):
        spec = table(self.rows).style(body("price"), col("cost") > 1, fill="red")
        with self.assertRaises(UnknownColumnError) as ctx:
            spec.render()
        self.assertEqual(ctx.exception.column, "cost")
        self.assertEqual(ctx.exception.position, 1)

    def test_columns_checked_after_aggregation(self):
        reductions = {"total": ("price", "sum")}
        ok = table(self.rows).fmt_currency("total").aggregate("type", reductions)
        self.assertIn("$30.00", ok.render())

        dropped = table(self.rows).fmt_currency("price").aggregate("type", reductions)
        with self.assertRaises(UnknownColumnError) as ctx:
            dropped.render()
        self.assertEqual(ctx.exception.position, 1)

    def test_aggregate_errors_surface_at_render(self):
        spec = table(self.rows).aggregate("type", {"x": ("type", "mean")})
        with self.assertRaises(InvalidReduction):
            spec.render()
        missing_key = table(self.rows).aggregate("region", {"x": ("price", "sum")})
        with self.assertRaises(UnknownColumnError) as ctx:
            missing_key.render()
        self.assertEqual(ctx.exception.position, 1)

    def test_sort_directive(self):
        spec = table(self.rows).sort("price", ascending=False)
        self.assertEqual(list(finalize(spec).frame["price"]), [20, 10, 5])

    def test_empty_table(self):
        empty = table(pd.DataFrame({"a": pd.Series([], dtype=float)}))
        with self.assertRaises(EmptyTableError):
            empty.render()
        html = empty.render(options=RenderOptions(allow_empty=True))
        self.assertIn('class="st-label"', html)


class TestSpanners(unittest.TestCase):
    def setUp(self):
        self.spec = table([{"a": 1, "b": 2, "c": 3, "d": 4}])

    def test_overlap_on_same_level(self):
        spec = self.spec.spanner("X", ["a", "b"]).spanner("Y", ["b", "c"])
        with self.assertRaises(OverlappingSpannerError):
            spec.render()

    def test_overlap_across_levels_without_nesting(self):
        spec = (
            self.spec.spanner("A", ["a", "b"])
            .spanner("inner", ["d"])
            .spanner("outer", ["b", "c"], spanners=["inner"])
        )
        with self.assertRaises(OverlappingSpannerError) as ctx:
            spec.render(output="text")
        self.assertEqual(ctx.exception.columns, ("b",))

    def test_parent_may_share_columns_with_its_children(self):
        spec = self.spec.spanner("P", ["a", "b"]).spanner("All", ["c"], spanners=["P"])
        resolved = {s.id: s for s in finalize(spec).spanners}
        self.assertEqual(resolved["All"].columns, ("a", "b", "c"))

    def test_non_contiguous(self):
        with self.assertRaises(SpannerError):
            self.spec.spanner("X", ["a", "c"]).render()

    def test_hidden_gap_is_contiguous(self):
        spec = self.spec.hide("b").spanner("X", ["a", "c"])
        self.assertEqual(finalize(spec).spanners[0].columns, ("a", "c"))

    def test_one_level_of_nesting(self):
        nested = self.spec.spanner("P", ["a", "b"]).spanner("Q", ["c"]).spanner("All", spanners=["P", "Q"])
        resolved = {s.id: s for s in finalize(nested).spanners}
        self.assertEqual(resolved["All"].columns, ("a", "b", "c"))
        self.assertEqual(resolved["All"].level, 2)
        self.assertEqual(resolved["P"].level, 1)

        too_deep = nested.spanner("Top", spanners=["All"])
        with self.assertRaises(SpannerError):
            too_deep.render()

    def test_unknown_nested_spanner(self):
        with self.assertRaises(SpannerError):
            self.spec.spanner("All", spanners=["missing"]).render()

    def test_duplicate_ids(self):
        with self.assertRaises(SpannerError):
            self.spec.spanner("X", ["a"]).spanner("X", ["d"]).render()

    def test_column_range(self):
        spec = self.spec.spanner("X", between("a", "c"), id="x")
        spanner = finalize(spec).spanners[0]
        self.assertEqual(spanner.columns, ("a", "b", "c"))
        self.assertEqual(spanner.id, "x")
