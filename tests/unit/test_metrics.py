"""Unit tests for QC metric computation."""

import pytest
import numpy as np
import pandas as pd

from umi_qc.core.qc import (
    CELL_METRIC_COLUMNS,
    CellMetric,
    ControlMetric,
    GeneMetric,
    cell_qc_table,
    compute_cell_metrics,
    compute_gene_metrics,
)


class TestCellMetrics:
    """Tests for compute_cell_metrics."""

    def test_total_counts_equal_column_sums(self, mock_dataset):
        """Library size of every cell is the sum of its matrix column."""
        metrics = compute_cell_metrics(mock_dataset)
        expected = mock_dataset.counts.sum(axis=0)
        np.testing.assert_array_equal(
            metrics[CellMetric.TOTAL_COUNTS.value].to_numpy(), expected.to_numpy()
        )

    def test_fixed_columns_present(self, mock_dataset):
        metrics = compute_cell_metrics(mock_dataset)
        for column in CELL_METRIC_COLUMNS:
            assert column in metrics.columns
        for name in ("ERCC", "MT"):
            for template in ControlMetric:
                assert template.column(name) in metrics.columns

    def test_hand_computed_values(self, tiny_dataset):
        """Metrics of the tiny dataset match hand-computed values."""
        metrics = compute_cell_metrics(tiny_dataset)
        row = metrics.loc["cell_a"]
        assert row[CellMetric.TOTAL_COUNTS.value] == 16
        assert row[CellMetric.DETECTED_GENES.value] == 4
        assert row[CellMetric.TOTAL_COUNTS_CONTROL.value] == 3
        assert row[CellMetric.TOTAL_COUNTS_ENDOGENOUS.value] == 13
        assert row[CellMetric.PCT_COUNTS_CONTROL.value] == pytest.approx(18.75)
        assert row[CellMetric.DETECTED_CONTROL_GENES.value] == 2
        assert row[ControlMetric.PCT_COUNTS.column("ERCC")] == pytest.approx(12.5)
        assert row[ControlMetric.PCT_COUNTS.column("MT")] == pytest.approx(6.25)
        assert row[CellMetric.LOG10_TOTAL_COUNTS.value] == pytest.approx(np.log10(17))

        assert metrics.loc["cell_c", ControlMetric.TOTAL_COUNTS.column("ERCC")] == 8
        assert metrics.loc["cell_b", ControlMetric.DETECTED_GENES.column("MT")] == 1

    def test_empty_library(self, tiny_dataset):
        """A cell with no counts gets zero percentages rather than NaN."""
        metrics = compute_cell_metrics(tiny_dataset)
        row = metrics.loc["cell_d"]
        assert row[CellMetric.TOTAL_COUNTS.value] == 0
        assert row[CellMetric.PCT_COUNTS_CONTROL.value] == 0
        assert row[CellMetric.PCT_COUNTS_TOP_100.value] == 0
        assert not metrics.isna().any().any()

    def test_top_genes_with_few_genes(self, tiny_dataset):
        """With fewer than 100 genes the top genes hold every count."""
        metrics = compute_cell_metrics(tiny_dataset)
        assert metrics.loc["cell_a", CellMetric.PCT_COUNTS_TOP_100.value] == pytest.approx(100.0)

    def test_top_genes_subset(self, tiny_dataset):
        metrics = compute_cell_metrics(tiny_dataset, n_top=1)
        # cell_a: 10 of 16 counts in GENE1
        assert metrics.loc["cell_a", CellMetric.PCT_COUNTS_TOP_100.value] == pytest.approx(62.5)

    def test_recomputed_after_subset(self, tiny_dataset):
        """Metrics follow the dataset they are computed on."""
        subset = tiny_dataset.subset(genes=["GENE1", "GENE2", "GENE3"])
        metrics = compute_cell_metrics(subset)
        assert metrics.loc["cell_a", CellMetric.TOTAL_COUNTS.value] == 13
        assert metrics.loc["cell_a", CellMetric.TOTAL_COUNTS_CONTROL.value] == 0


class TestGeneMetrics:
    """Tests for compute_gene_metrics."""

    def test_gene_totals(self, tiny_dataset):
        metrics = compute_gene_metrics(tiny_dataset)
        assert metrics.loc["GENE1", GeneMetric.TOTAL_COUNTS.value] == 15
        assert metrics.loc["GENE1", GeneMetric.N_CELLS_DETECTED.value] == 2
        assert metrics.loc["GENE1", GeneMetric.PCT_DROPOUT.value] == pytest.approx(50.0)
        assert metrics.loc["GENE1", GeneMetric.MEAN_COUNTS.value] == pytest.approx(3.75)

    def test_control_flags(self, tiny_dataset):
        metrics = compute_gene_metrics(tiny_dataset)
        assert bool(metrics.loc["ERCC-00001", GeneMetric.IS_CONTROL.value])
        assert metrics.loc["MTGENE", GeneMetric.CONTROL_SET.value] == "MT"
        assert not bool(metrics.loc["GENE2", GeneMetric.IS_CONTROL.value])


class TestCellQCTable:
    """Tests for joining annotations and metrics."""

    def test_join(self, tiny_dataset):
        table = cell_qc_table(tiny_dataset, compute_cell_metrics(tiny_dataset))
        assert "batch" in table.columns
        assert CellMetric.TOTAL_COUNTS.value in table.columns
        assert list(table.index) == list(tiny_dataset.cell_ids)
