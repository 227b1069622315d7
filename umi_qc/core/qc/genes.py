"""Gene filter and the cells-then-genes filtering order."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import pandas as pd

from .config import GeneFilterConfig
from .dataset import QCDataset

logger = logging.getLogger(__name__)


@dataclass
class FilterResult:
    """Result of filtering a dataset by a cell mask.

    Attributes
    ----------
    dataset : QCDataset
        Dataset restricted to retained cells and genes
    cell_mask : pd.Series
        Keep-mask over the input cells
    gene_mask : pd.Series
        Keep-mask over the input genes, computed on retained cells
    """

    dataset: QCDataset
    cell_mask: pd.Series
    gene_mask: pd.Series

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "cells_total": int(len(self.cell_mask)),
            "cells_kept": int(self.cell_mask.sum()),
            "genes_total": int(len(self.gene_mask)),
            "genes_kept": int(self.gene_mask.sum()),
        }


def gene_detection_mask(
    counts: pd.DataFrame,
    min_count: int = 1,
    min_cells: int = 2,
) -> pd.Series:
    """Flag genes detected in enough cells.

    Parameters
    ----------
    counts : pd.DataFrame
        Gene-by-cell count matrix
    min_count : int
        A gene is detected in a cell with strictly more counts than this
    min_cells : int
        Minimum number of cells the gene must be detected in

    Returns
    -------
    pd.Series
        Boolean keep-mask indexed by gene
    """
    n_cells = (counts > min_count).sum(axis=1)
    return pd.Series(
        (n_cells >= min_cells).to_numpy(), index=counts.index, name="use"
    )


def filter_dataset(
    dataset: QCDataset,
    cell_mask: pd.Series,
    config: Optional[GeneFilterConfig] = None,
) -> FilterResult:
    """Apply a cell mask, then the gene filter on the retained cells.

    Raises
    ------
    ValueError
        If the mask is not aligned with the dataset or leaves no cell or
        no gene
    """
    config = config or GeneFilterConfig()
    if not cell_mask.index.equals(dataset.cell_ids):
        raise ValueError("Cell mask is not aligned with the dataset cells")

    n_kept = int(cell_mask.sum())
    if n_kept == 0:
        raise ValueError("Cell filter removed every cell")

    cells = dataset.subset(cells=cell_mask.to_numpy(dtype=bool))
    gene_mask = gene_detection_mask(cells.counts, config.min_count, config.min_cells)
    if not gene_mask.any():
        raise ValueError(
            f"No gene detected (> {config.min_count} counts) in at least "
            f"{config.min_cells} of the {n_kept} retained cells"
        )

    filtered = cells.subset(genes=gene_mask.to_numpy())
    logger.info(
        f"Filtered dataset: {filtered.n_cells}/{dataset.n_cells} cells, "
        f"{filtered.n_genes}/{dataset.n_genes} genes"
    )
    return FilterResult(dataset=filtered, cell_mask=cell_mask, gene_mask=gene_mask)
