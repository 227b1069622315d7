"""Per-cell and per-gene QC metrics.

Metrics are recomputed from a :class:`QCDataset` and returned as new
frames; nothing is cached on the dataset.
"""

from enum import Enum
from typing import Dict, List

import numpy as np
import pandas as pd

from .dataset import QCDataset


TOP_N_GENES = 100


class CellMetric(str, Enum):
    """Fixed per-cell metric fields."""

    TOTAL_COUNTS = "total_counts"
    LOG10_TOTAL_COUNTS = "log10_total_counts"
    DETECTED_GENES = "total_detected_genes"
    PCT_COUNTS_TOP_100 = "pct_counts_top_100_genes"
    TOTAL_COUNTS_ENDOGENOUS = "total_counts_endogenous"
    LOG10_COUNTS_ENDOGENOUS = "log10_counts_endogenous"
    TOTAL_COUNTS_CONTROL = "total_counts_control"
    LOG10_COUNTS_CONTROL = "log10_counts_control"
    PCT_COUNTS_CONTROL = "pct_counts_control"
    DETECTED_CONTROL_GENES = "detected_control_genes"


class ControlMetric(str, Enum):
    """Per-control-set metric templates."""

    TOTAL_COUNTS = "total_counts_{name}"
    PCT_COUNTS = "pct_counts_{name}"
    DETECTED_GENES = "detected_genes_{name}"

    def column(self, name: str) -> str:
        return self.value.format(name=name)


class GeneMetric(str, Enum):
    """Fixed per-gene metric fields."""

    TOTAL_COUNTS = "total_counts"
    LOG10_TOTAL_COUNTS = "log10_total_counts"
    MEAN_COUNTS = "mean_counts"
    N_CELLS_DETECTED = "n_cells_detected"
    PCT_DROPOUT = "pct_dropout"
    IS_CONTROL = "is_control"
    CONTROL_SET = "control_set"


CELL_METRIC_COLUMNS: List[str] = [m.value for m in CellMetric]


def _safe_pct(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    """Percentage with zero where the denominator is zero."""
    num = np.asarray(numerator, dtype=float)
    den = np.asarray(denominator, dtype=float)
    pct = np.zeros_like(num, dtype=float)
    mask = den > 0
    pct[mask] = 100.0 * num[mask] / den[mask]
    return pct


def _top_n_sum(values: np.ndarray, n_top: int) -> np.ndarray:
    """Sum of the ``n_top`` largest entries of every column."""
    n_rows = values.shape[0]
    if n_rows == 0:
        return np.zeros(values.shape[1], dtype=float)
    if n_top >= n_rows:
        return values.sum(axis=0).astype(float)
    top = -np.partition(-values, n_top - 1, axis=0)[:n_top]
    return top.sum(axis=0).astype(float)


def compute_cell_metrics(dataset: QCDataset, n_top: int = TOP_N_GENES) -> pd.DataFrame:
    """Compute the per-cell metric table.

    Parameters
    ----------
    dataset : QCDataset
        Input dataset
    n_top : int
        Number of most highly counted genes for the top-gene percentage

    Returns
    -------
    pd.DataFrame
        One row per cell; :class:`CellMetric` columns followed by
        :class:`ControlMetric` columns for each control set
    """
    values = dataset.counts.to_numpy()
    is_control = dataset.is_control.to_numpy()

    total = values.sum(axis=0).astype(float)
    detected = (values > 0).sum(axis=0)
    control_values = values[is_control]
    total_control = control_values.sum(axis=0).astype(float)
    total_endogenous = total - total_control

    metrics: Dict[str, np.ndarray] = {
        CellMetric.TOTAL_COUNTS.value: total,
        CellMetric.LOG10_TOTAL_COUNTS.value: np.log10(total + 1),
        CellMetric.DETECTED_GENES.value: detected.astype(np.int64),
        CellMetric.PCT_COUNTS_TOP_100.value: _safe_pct(_top_n_sum(values, n_top), total),
        CellMetric.TOTAL_COUNTS_ENDOGENOUS.value: total_endogenous,
        CellMetric.LOG10_COUNTS_ENDOGENOUS.value: np.log10(total_endogenous + 1),
        CellMetric.TOTAL_COUNTS_CONTROL.value: total_control,
        CellMetric.LOG10_COUNTS_CONTROL.value: np.log10(total_control + 1),
        CellMetric.PCT_COUNTS_CONTROL.value: _safe_pct(total_control, total),
        CellMetric.DETECTED_CONTROL_GENES.value: (control_values > 0).sum(axis=0).astype(np.int64),
    }

    gene_pos = dataset.counts.index
    for name, genes in dataset.control_sets.items():
        rows = gene_pos.get_indexer(list(genes))
        set_values = values[rows] if len(rows) else np.zeros((0, values.shape[1]))
        set_total = set_values.sum(axis=0).astype(float)
        metrics[ControlMetric.TOTAL_COUNTS.column(name)] = set_total
        metrics[ControlMetric.PCT_COUNTS.column(name)] = _safe_pct(set_total, total)
        metrics[ControlMetric.DETECTED_GENES.column(name)] = (
            (set_values > 0).sum(axis=0).astype(np.int64)
        )

    return pd.DataFrame(metrics, index=dataset.cell_ids)


def compute_gene_metrics(dataset: QCDataset) -> pd.DataFrame:
    """Compute the per-gene metric table.

    Returns
    -------
    pd.DataFrame
        One row per gene with :class:`GeneMetric` columns
    """
    values = dataset.counts.to_numpy()
    n_cells = values.shape[1]
    total = values.sum(axis=1).astype(float)
    n_detected = (values > 0).sum(axis=1)

    return pd.DataFrame(
        {
            GeneMetric.TOTAL_COUNTS.value: total,
            GeneMetric.LOG10_TOTAL_COUNTS.value: np.log10(total + 1),
            GeneMetric.MEAN_COUNTS.value: total / n_cells if n_cells else np.zeros_like(total),
            GeneMetric.N_CELLS_DETECTED.value: n_detected.astype(np.int64),
            GeneMetric.PCT_DROPOUT.value: (
                100.0 * (1 - n_detected / n_cells) if n_cells else np.full_like(total, 100.0)
            ),
            GeneMetric.IS_CONTROL.value: dataset.is_control.to_numpy(),
            GeneMetric.CONTROL_SET.value: dataset.control_set_labels().to_numpy(),
        },
        index=dataset.gene_ids,
    )


def cell_qc_table(dataset: QCDataset, metrics: pd.DataFrame) -> pd.DataFrame:
    """Join annotations and metrics into one per-cell table.

    Metric columns win on name clashes.
    """
    annotation = dataset.annotation.drop(
        columns=[c for c in dataset.annotation.columns if c in metrics.columns]
    )
    return annotation.join(metrics)
