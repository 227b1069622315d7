"""Unit tests for QC figures."""

import pytest
import pandas as pd

from umi_qc.core.qc import QCEngine, venn_counts
from umi_qc.viz import (
    plot_filter_overlap,
    plot_metric_histogram,
    plot_pca_outliers,
    plot_session,
)


@pytest.fixture
def qc_result(mock_dataset, relaxed_config):
    return QCEngine(relaxed_config).run(mock_dataset)


class TestPlots:
    """Tests for individual plotting functions."""

    def test_histogram(self, qc_result, tmp_output_dir):
        path = plot_metric_histogram(
            qc_result.cell_table,
            "total_counts",
            tmp_output_dir / "hist.png",
            threshold=500,
            dpi=50,
        )
        assert path.exists()

    def test_filter_overlap(self, tmp_output_dir):
        index = ["a", "b", "c"]
        venn = venn_counts({
            "manual": pd.Series([True, False, True], index=index),
            "default": pd.Series([True, True, False], index=index),
        })
        path = plot_filter_overlap(venn, tmp_output_dir / "overlap.png", dpi=50)
        assert path.exists()

    def test_pca_outliers_single_component(self, tmp_output_dir):
        """A projection with only PC1 is drawn on a flat second axis."""
        index = ["a", "b", "c", "d"]
        projection = pd.DataFrame({"PC1": [0.1, -0.4, 0.3, 2.5]}, index=index)
        keep = pd.Series([True, True, True, False], index=index)
        path = plot_pca_outliers(projection, keep, tmp_output_dir / "pca.png", dpi=50)
        assert path.exists()


class TestPlotSession:
    """Tests for the standard figure set."""

    def test_writes_all_figures(self, qc_result, relaxed_config, tmp_output_dir):
        relaxed_config.export.dpi = 50
        paths = plot_session(qc_result, tmp_output_dir / "figures", relaxed_config)
        for key in (
            "total_counts_hist",
            "detected_genes_hist",
            "ERCC_scatter",
            "MT_scatter",
            "pca_outliers",
            "highest_expressed",
            "filter_overlap",
        ):
            assert paths[key].exists()
            assert paths[key].suffix == ".png"
