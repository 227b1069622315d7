"""Unit tests for the gene filter and filtering order."""

import pytest
import pandas as pd

from umi_qc.core.qc import (
    DataLoader,
    GeneFilterConfig,
    filter_dataset,
    gene_detection_mask,
)


@pytest.fixture
def small_dataset():
    """4 genes x 3 cells with one gene sensitive to filtering order."""
    counts = pd.DataFrame(
        {
            "c1": [2, 2, 1, 5],
            "c2": [2, 1, 1, 0],
            "c3": [0, 1, 1, 0],
        },
        index=["two_cells", "one_cell", "exactly_one", "single_high"],
    )
    annotation = pd.DataFrame(
        {"batch": ["b1", "b1", "b2"], "sample_id": ["c1", "c2", "c3"]},
        index=["c1", "c2", "c3"],
    )
    return DataLoader().build_dataset(counts, annotation, control_sets=[])


class TestGeneDetectionMask:
    """Tests for gene_detection_mask."""

    def test_default_thresholds(self, small_dataset):
        mask = gene_detection_mask(small_dataset.counts)
        assert mask.to_dict() == {
            "two_cells": True,
            "one_cell": False,
            "exactly_one": False,
            "single_high": False,
        }

    def test_count_threshold_is_strict(self, small_dataset):
        """A count equal to min_count does not count as detected."""
        mask = gene_detection_mask(small_dataset.counts, min_count=1, min_cells=1)
        assert not mask["exactly_one"]
        assert mask["single_high"]

    def test_custom_thresholds(self, small_dataset):
        mask = gene_detection_mask(small_dataset.counts, min_count=0, min_cells=3)
        assert mask["exactly_one"]
        assert mask["one_cell"]
        assert not mask["two_cells"]


class TestFilterDataset:
    """Tests for filter_dataset."""

    def test_cells_then_genes(self, small_dataset):
        """The gene filter only sees the retained cells."""
        cell_mask = pd.Series([False, True, True], index=small_dataset.cell_ids)
        with pytest.raises(ValueError, match="No gene detected"):
            filter_dataset(small_dataset, cell_mask)

    def test_filtering_order_matters(self):
        """Genes-first keeps a gene that cells-first drops, reproducibly."""
        counts = pd.DataFrame(
            {"c1": [2, 3], "c2": [2, 3], "c3": [0, 3]},
            index=["two_cells", "everywhere"],
        )
        annotation = pd.DataFrame(
            {"batch": ["b1", "b1", "b2"], "sample_id": ["c1", "c2", "c3"]},
            index=["c1", "c2", "c3"],
        )
        dataset = DataLoader().build_dataset(counts, annotation, control_sets=[])
        cell_mask = pd.Series([False, True, True], index=dataset.cell_ids)

        def genes_first():
            genes = gene_detection_mask(dataset.counts)
            return list(
                dataset.subset(genes=genes.to_numpy())
                .subset(cells=cell_mask.to_numpy())
                .gene_ids
            )

        def cells_first():
            return list(filter_dataset(dataset, cell_mask).dataset.gene_ids)

        for _ in range(2):
            assert genes_first() == ["two_cells", "everywhere"]
            assert cells_first() == ["everywhere"]

    def test_cells_first_subset_of_full_data(self, mock_dataset):
        """Cells-first never keeps a gene that the full-data gene filter rejects."""
        cell_mask = pd.Series(
            [i % 3 != 0 for i in range(mock_dataset.n_cells)], index=mock_dataset.cell_ids
        )
        cells_first = filter_dataset(mock_dataset, cell_mask)

        genes_first = gene_detection_mask(mock_dataset.counts)
        assert set(cells_first.dataset.gene_ids) <= set(genes_first[genes_first].index)

    def test_keeps_masked_cells(self, small_dataset):
        cell_mask = pd.Series([True, True, False], index=small_dataset.cell_ids)
        result = filter_dataset(small_dataset, cell_mask)
        assert list(result.dataset.cell_ids) == ["c1", "c2"]
        assert list(result.dataset.gene_ids) == ["two_cells"]
        assert result.gene_mask.index.equals(small_dataset.gene_ids)

    def test_idempotent(self, mock_dataset):
        keep_all = pd.Series(True, index=mock_dataset.cell_ids)
        once = filter_dataset(mock_dataset, keep_all).dataset
        twice = filter_dataset(once, pd.Series(True, index=once.cell_ids)).dataset
        assert list(once.gene_ids) == list(twice.gene_ids)
        assert once.counts.equals(twice.counts)

    def test_input_unchanged(self, small_dataset):
        before = small_dataset.counts.copy()
        cell_mask = pd.Series([True, True, False], index=small_dataset.cell_ids)
        filter_dataset(small_dataset, cell_mask)
        assert small_dataset.counts.equals(before)
        assert small_dataset.n_cells == 3

    def test_empty_cell_mask(self, small_dataset):
        cell_mask = pd.Series(False, index=small_dataset.cell_ids)
        with pytest.raises(ValueError, match="removed every cell"):
            filter_dataset(small_dataset, cell_mask)

    def test_misaligned_mask(self, small_dataset):
        cell_mask = pd.Series(True, index=["c3", "c2", "c1"])
        with pytest.raises(ValueError, match="not aligned"):
            filter_dataset(small_dataset, cell_mask)

    def test_config_thresholds(self, small_dataset):
        cell_mask = pd.Series(True, index=small_dataset.cell_ids)
        result = filter_dataset(
            small_dataset, cell_mask, GeneFilterConfig(min_count=0, min_cells=1)
        )
        assert result.dataset.n_genes == 4

    def test_to_dict(self, small_dataset):
        cell_mask = pd.Series([True, True, False], index=small_dataset.cell_ids)
        summary = filter_dataset(small_dataset, cell_mask).to_dict()
        assert summary == {
            "cells_total": 3,
            "cells_kept": 2,
            "genes_total": 4,
            "genes_kept": 1,
        }
