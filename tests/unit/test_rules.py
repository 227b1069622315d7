"""Unit tests for cell filter rules."""

import pytest
import numpy as np
import pandas as pd

from umi_qc.core.qc import (
    AnnotationFlagRule,
    CellMetric,
    Comparison,
    DefaultFilterConfig,
    MADRule,
    ManualFilterConfig,
    ThresholdRule,
    cell_qc_table,
    compute_cell_metrics,
    default_rules,
    evaluate_rules,
    manual_rules,
)
from umi_qc.utils import mad_outliers, median_and_mad, robust_zscore


@pytest.fixture
def tiny_table(tiny_dataset) -> pd.DataFrame:
    return cell_qc_table(tiny_dataset, compute_cell_metrics(tiny_dataset))


class TestThresholdRule:
    """Tests for ThresholdRule."""

    def test_library_size_floor_excludes_empty_cell(self, tiny_table):
        """Any positive library-size floor removes a cell with zero counts."""
        for floor in (0.5, 1, 10):
            rule = ThresholdRule("lib", CellMetric.TOTAL_COUNTS, floor, Comparison.GT)
            keep = rule.evaluate(tiny_table)
            assert not keep["cell_d"]

    @pytest.mark.parametrize(
        "comparison,expected",
        [
            (Comparison.GT, [True, False, False, False]),
            (Comparison.GE, [True, True, False, False]),
            (Comparison.LT, [False, False, True, True]),
            (Comparison.LE, [False, True, True, True]),
            (Comparison.EQ, [False, True, False, False]),
            (Comparison.NE, [True, False, True, True]),
        ],
    )
    def test_comparisons(self, tiny_table, comparison, expected):
        rule = ThresholdRule("lib", CellMetric.TOTAL_COUNTS, 14, comparison)
        assert rule.evaluate(tiny_table).tolist() == expected

    def test_batch_exclusion(self, tiny_table):
        rule = ThresholdRule("no_b2", "batch", "b2", Comparison.NE)
        assert rule.evaluate(tiny_table).tolist() == [True, True, False, False]

    def test_missing_column(self, tiny_table):
        rule = ThresholdRule("bad", "not_a_column", 1)
        with pytest.raises(ValueError, match="not_a_column"):
            rule.evaluate(tiny_table)

    def test_mask_name_and_index(self, tiny_table):
        keep = ThresholdRule("lib", CellMetric.TOTAL_COUNTS, 1).evaluate(tiny_table)
        assert keep.name == "lib"
        assert keep.index.equals(tiny_table.index)
        assert keep.dtype == bool


class TestMADRule:
    """Tests for the median-absolute-deviation rule."""

    @pytest.fixture
    def table(self) -> pd.DataFrame:
        # median 10, absolute deviations [0,1,1,2,2,40,0] -> MAD 1
        values = [10, 9, 11, 8, 12, 50, 10]
        return pd.DataFrame(
            {"total_counts": values}, index=[f"c{i}" for i in range(len(values))]
        )

    def test_flags_far_value(self, table):
        rule = MADRule("mad", CellMetric.TOTAL_COUNTS, nmads=5)
        keep = rule.evaluate(table)
        assert keep.tolist() == [True, True, True, True, True, False, True]

    def test_boundary_is_strict(self, table):
        """A deviation exactly equal to k * MAD is kept."""
        rule = MADRule("mad", CellMetric.TOTAL_COUNTS, nmads=2)
        keep = rule.evaluate(table)
        assert keep["c3"]
        assert keep["c4"]
        assert not keep["c5"]

    def test_direction(self, table):
        lower = MADRule("mad", CellMetric.TOTAL_COUNTS, nmads=1, direction="lower")
        higher = MADRule("mad", CellMetric.TOTAL_COUNTS, nmads=1, direction="higher")
        assert lower.evaluate(table).tolist() == [True, True, True, False, True, True, True]
        assert higher.evaluate(table).tolist() == [True, True, True, True, False, False, True]

    def test_monotonic_in_nmads(self, mock_dataset):
        """Raising the deviation multiplier never decreases the kept cells."""
        table = compute_cell_metrics(mock_dataset)
        previous = -1
        for k in [0, 0.5, 1, 2, 3, 5, 8, 20]:
            kept = int(MADRule("mad", CellMetric.TOTAL_COUNTS, nmads=k).evaluate(table).sum())
            assert kept >= previous
            previous = kept

    def test_monotonic_per_cell(self, mock_dataset):
        """Every cell kept at k stays kept at any larger k."""
        table = compute_cell_metrics(mock_dataset)
        ks = [0.5, 1, 2, 5]
        masks = [
            MADRule("mad", CellMetric.DETECTED_GENES, nmads=k).evaluate(table) for k in ks
        ]
        for small, large in zip(masks, masks[1:]):
            assert not (small & ~large).any()

    def test_deviations(self, table):
        z = MADRule("mad", CellMetric.TOTAL_COUNTS).deviations(table)
        assert z.name == "robust_z_total_counts"
        assert z["c0"] == 0

    def test_zero_mad(self):
        """With zero MAD every value off the median is an outlier."""
        table = pd.DataFrame({"total_counts": [5, 5, 5, 6]})
        keep = MADRule("mad", CellMetric.TOTAL_COUNTS, nmads=100).evaluate(table)
        assert keep.tolist() == [True, True, True, False]


class TestAnnotationFlagRule:
    """Tests for control-well exclusion."""

    def test_missing_column_keeps_all(self, tiny_table):
        keep = AnnotationFlagRule("ctrl", "is_cell_control").evaluate(tiny_table)
        assert keep.all()

    def test_boolean_column(self, tiny_table):
        table = tiny_table.assign(is_cell_control=[False, True, False, False])
        keep = AnnotationFlagRule("ctrl", "is_cell_control").evaluate(table)
        assert keep.tolist() == [True, False, True, True]

    def test_text_column(self, tiny_table):
        table = tiny_table.assign(is_cell_control=["FALSE", "TRUE", "false", "FALSE"])
        keep = AnnotationFlagRule("ctrl", "is_cell_control").evaluate(table)
        assert keep.tolist() == [True, False, True, True]


class TestRuleSets:
    """Tests for the manual and default rule sets."""

    def test_manual_rule_names(self):
        rules = manual_rules(ManualFilterConfig())
        names = [r.name for r in rules]
        assert names == [
            "filter_by_total_counts",
            "filter_by_expr_features",
            "filter_by_MT",
            "exclude_batch_NA19098.r2",
        ]

    def test_manual_defaults(self):
        rules = {r.name: r for r in manual_rules(ManualFilterConfig())}
        assert rules["filter_by_total_counts"].threshold == 25000
        assert rules["filter_by_expr_features"].threshold == 7000
        assert rules["filter_by_MT"].comparison is Comparison.LT

    def test_default_rules(self):
        rules = default_rules(DefaultFilterConfig(), ["ERCC", "MT"])
        names = [r.name for r in rules]
        assert "filter_on_total_counts" in names
        assert "filter_on_pct_counts_ERCC" in names
        assert "filter_on_pct_counts_MT" in names
        assert "filter_on_cell_control" in names
        assert all(r.nmads == 5.0 for r in rules if isinstance(r, MADRule))

    def test_default_control_ceiling(self, tiny_table):
        """Cells with more than 80% control counts are rejected."""
        table = tiny_table.copy()
        table.loc["cell_c", "pct_counts_ERCC"] = 85.0
        rules = [r for r in default_rules(DefaultFilterConfig(), ["ERCC"])
                 if r.name == "filter_on_pct_counts_ERCC"]
        masks = evaluate_rules(rules, table)
        assert not masks.loc["cell_c", "filter_on_pct_counts_ERCC"]

    def test_evaluate_rules_table(self, tiny_table):
        rules = manual_rules(
            ManualFilterConfig(
                min_total_counts=13,
                min_detected_genes=2,
                max_pct_control={"MT": 10},
                exclude_batches=["b2"],
            )
        )
        masks = evaluate_rules(rules, tiny_table)
        assert list(masks.columns) == [r.name for r in rules]
        assert masks.all(axis=1).tolist() == [True, False, False, False]

    def test_duplicate_names_rejected(self, tiny_table):
        rule = ThresholdRule("same", CellMetric.TOTAL_COUNTS, 1)
        with pytest.raises(ValueError, match="Duplicate"):
            evaluate_rules([rule, rule], tiny_table)


class TestStats:
    """Tests for robust statistics helpers."""

    def test_median_and_mad(self):
        median, mad = median_and_mad([1, 2, 3, 4, 100])
        assert median == 3
        assert mad == 1

    def test_median_and_mad_ignores_nan(self):
        median, mad = median_and_mad([1, np.nan, 3])
        assert median == 2
        assert mad == 1

    def test_mad_outliers_nan_never_flagged(self):
        flags = mad_outliers(np.array([1.0, 1.0, np.nan, 100.0]), nmads=1)
        assert flags.tolist() == [False, False, False, True]

    def test_mad_outliers_bad_direction(self):
        with pytest.raises(ValueError):
            mad_outliers([1, 2, 3], 1, direction="sideways")

    def test_robust_zscore_zero_mad(self):
        z = robust_zscore([2.0, 2.0, 2.0])
        assert z.tolist() == [0.0, 0.0, 0.0]
