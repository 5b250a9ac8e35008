import random
import unittest

import pandas as pd

from salestables import (
    EmptyGroupError,
    InvalidReduction,
    UnknownColumnError,
    aggregate,
    partition,
    reduce_series,
)


class TestAggregate(unittest.TestCase):
    def setUp(self):
        self.rows = [
            {"type": "A", "size": "S", "price": 10},
            {"type": "A", "size": "L", "price": 20},
            {"type": "B", "size": "S", "price": 5},
        ]

    def test_sum_by_type_in_first_seen_order(self):
        out = aggregate(self.rows, ["type"], {"total": ("price", "sum")})
        self.assertEqual(list(out["type"]), ["A", "B"])
        self.assertEqual(list(out["total"]), [30, 5])

    def test_first_seen_order_follows_input(self):
        out = aggregate(list(reversed(self.rows)), "type", {"total": ("price", "sum")})
        self.assertEqual(list(out["type"]), ["B", "A"])

    def test_two_level_key_groups_inner_within_outer(self):
        rows = [
            {"type": "A", "size": "S", "price": 1},
            {"type": "B", "size": "S", "price": 2},
            {"type": "A", "size": "L", "price": 3},
        ]
        out = aggregate(rows, ["type", "size"], {"n": ("price", "count")})
        self.assertEqual(list(zip(out["type"], out["size"])), [("A", "S"), ("A", "L"), ("B", "S")])

    def test_declared_sort_overrides_first_seen(self):
        out = aggregate(self.rows, "type", {"total": ("price", "sum")}, sort_by="total")
        self.assertEqual(list(out["type"]), ["B", "A"])

    def test_all_reductions(self):
        out = aggregate(self.rows, "type", {
            "n": ("price", "count"),
            "mean": ("price", "mean"),
            "lo": ("price", "min"),
            "hi": ("price", "max"),
            "med": ("price", "median"),
            "first_size": ("size", "first"),
        })
        a = out.iloc[0]
        self.assertEqual(a["n"], 2)
        self.assertAlmostEqual(a["mean"], 15.0)
        self.assertEqual(a["lo"], 10)
        self.assertEqual(a["hi"], 20)
        self.assertAlmostEqual(a["med"], 15.0)
        self.assertEqual(a["first_size"], "S")

    def test_percent_of_total_uses_grand_total(self):
        out = aggregate(self.rows, "type", {"share": ("price", "pct_total")})
        self.assertAlmostEqual(out["share"].sum(), 1.0)
        self.assertAlmostEqual(out.loc[out["type"] == "A", "share"].iloc[0], 30 / 35)
        self.assertAlmostEqual(out.loc[out["type"] == "B", "share"].iloc[0], 5 / 35)

    def test_percent_of_total_independent_of_order(self):
        rows = [{"k": k, "v": v} for k, v in zip("abcabcdd", [3, 1, 4, 1, 5, 9, 2, 6])]
        expected = aggregate(rows, "k", {"share": ("v", "pct_total")}).set_index("k")["share"]
        shuffled = list(rows)
        random.Random(3).shuffle(shuffled)
        got = aggregate(shuffled, "k", {"share": ("v", "pct_total")}).set_index("k")["share"]
        for key in expected.index:
            self.assertAlmostEqual(got[key], expected[key])
        self.assertAlmostEqual(got.sum(), 1.0)

    def test_partition_covers_every_row_once(self):
        df = pd.DataFrame({"k": list("abacbca"), "v": range(7)})
        groups = partition(df, "k")
        self.assertEqual([key for key, _ in groups], [("a",), ("b",), ("c",)])
        seen = [i for _, frame in groups for i in frame.index]
        self.assertEqual(sorted(seen), list(range(7)))
        self.assertEqual(len(seen), len(set(seen)))

    def test_partition_keeps_missing_keys(self):
        df = pd.DataFrame({"k": ["a", None, "a"], "v": [1, 2, 3]})
        seen = [i for _, frame in partition(df, "k") for i in frame.index]
        self.assertEqual(sorted(seen), [0, 1, 2])

    def test_unknown_reduction(self):
        with self.assertRaises(InvalidReduction):
            aggregate(self.rows, "type", {"x": ("price", "mode")})

    def test_missing_source_column(self):
        with self.assertRaises(InvalidReduction):
            aggregate(self.rows, "type", {"x": ("cost", "sum")})

    def test_mean_over_text_column(self):
        with self.assertRaises(InvalidReduction):
            aggregate(self.rows, "type", {"x": ("size", "mean")})

    def test_missing_group_key(self):
        with self.assertRaises(UnknownColumnError):
            aggregate(self.rows, "region", {"x": ("price", "sum")})

    def test_empty_groups_dropped_unless_forbidden(self):
        df = pd.DataFrame({
            "type": pd.Categorical(["A", "B", "A"], categories=["A", "B", "C"]),
            "price": [1, 2, 3],
        })
        out = aggregate(df, "type", {"total": ("price", "sum")})
        self.assertEqual(sorted(str(t) for t in out["type"]), ["A", "B"])
        with self.assertRaises(EmptyGroupError):
            aggregate(df, "type", {"total": ("price", "sum")}, forbid_empty=True)

    def test_input_frame_not_mutated(self):
        df = pd.DataFrame(self.rows)
        before = df.copy()
        aggregate(df, "type", {"share": ("price", "pct_total")})
        pd.testing.assert_frame_equal(df, before)


class TestReduceSeries(unittest.TestCase):
    def test_reductions(self):
        s = pd.Series([4, 1, 7], name="v")
        self.assertEqual(reduce_series(s, "sum"), 12)
        self.assertEqual(reduce_series(s, "count"), 3)
        self.assertEqual(reduce_series(s, "first"), 4)
        self.assertEqual(reduce_series(s, "max"), 7)

    def test_sum_is_python_scalar(self):
        self.assertIsInstance(reduce_series(pd.Series([1.5, 2.5]), "sum"), float)

    def test_rejects_percent_of_total_and_text_sums(self):
        with self.assertRaises(InvalidReduction):
            reduce_series(pd.Series([1, 2]), "pct_total")
        with self.assertRaises(InvalidReduction):
            reduce_series(pd.Series(["a", "b"], name="t"), "sum")
