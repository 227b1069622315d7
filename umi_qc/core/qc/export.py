"""Export functions for QC session results.

Writes the filtered dataset as AnnData (.h5ad) plus per-cell, per-gene
and filter-comparison tables and a JSON summary.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

import anndata as ad
import numpy as np
import pandas as pd
import yaml

from ...io.tables import ensure_output_dir, write_dataframe
from .config import ExportConfig, QCConfig
from .engine import QCResult
from .metrics import cell_qc_table, compute_cell_metrics, compute_gene_metrics

logger = logging.getLogger(__name__)


def log_counts(counts: np.ndarray) -> np.ndarray:
    """log2(counts + 1), as float32."""
    return np.log2(np.asarray(counts, dtype=np.float64) + 1).astype(np.float32)


def filtered_cell_table(result: QCResult) -> pd.DataFrame:
    """Per-cell table of the filtered dataset.

    Metrics are recomputed on the retained cells and genes; rule masks and
    filter masks are those the retained cells received during QC.
    """
    filtered = result.filtered.dataset
    cells = filtered.cell_ids
    table = cell_qc_table(filtered, compute_cell_metrics(filtered))
    for masks in (result.manual_rules, result.default_rules, result.filters):
        table = table.join(masks.loc[cells])
    return table


def filtered_gene_table(result: QCResult) -> pd.DataFrame:
    """Per-gene metrics recomputed on the filtered dataset, with the gene mask."""
    filtered = result.filtered.dataset
    table = compute_gene_metrics(filtered)
    table["use"] = result.filtered.gene_mask.loc[filtered.gene_ids].to_numpy()
    return table


def to_anndata(
    result: QCResult,
    config: Optional[QCConfig] = None,
) -> ad.AnnData:
    """Build a cells x genes AnnData of the filtered dataset.

    Parameters
    ----------
    result : QCResult
        QC session result
    config : QCConfig, optional
        Session configuration stored in ``uns``

    Returns
    -------
    ad.AnnData
        ``X`` raw UMI counts, a log2(counts + 1) layer, per-cell metadata
        (annotation, metrics, masks) in ``obs`` and per-gene metadata in
        ``var``; metrics describe the filtered matrix
    """
    config = config or QCConfig()
    filtered = result.filtered.dataset

    counts = filtered.counts.to_numpy().T.astype(np.int64)

    obs = filtered_cell_table(result)
    obs.index = obs.index.astype(str)
    obs.index.name = "cell_id"
    for col in obs.columns:
        if obs[col].dtype == object:
            obs[col] = obs[col].astype(str)

    var = filtered_gene_table(result)
    var.index = var.index.astype(str)
    var.index.name = "gene_id"

    adata = ad.AnnData(X=counts, obs=obs, var=var)
    adata.layers[config.export.log_layer] = log_counts(counts)
    adata.uns["umi_qc"] = {
        "selected_filter": result.selected_filter,
        "config": yaml.safe_dump(config.to_dict(), sort_keys=False),
        "venn_counts": result.venn.copy(),
    }
    return adata


def write_h5ad(adata: ad.AnnData, path: Path) -> Path:
    """Write AnnData to ``path`` creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    adata.write_h5ad(path)
    logger.info(f"Wrote {adata.n_obs} cells x {adata.n_vars} genes to {path}")
    return path


def export_cell_table(result: QCResult, output_dir: Path) -> Path:
    """Export the per-cell QC table (all cells, before filtering)."""
    return write_dataframe(result.cell_table, Path(output_dir) / "cell_qc.tsv", index=True)


def export_gene_table(result: QCResult, output_dir: Path) -> Path:
    """Export the per-gene QC table with the gene mask."""
    return write_dataframe(result.gene_table, Path(output_dir) / "gene_qc.tsv", index=True)


def export_filter_comparison(result: QCResult, output_dir: Path) -> Dict[str, Path]:
    """Export Venn-region counts and pairwise overlaps of the cell filters."""
    output_dir = Path(output_dir)
    return {
        "venn": write_dataframe(result.venn, output_dir / "filter_venn_counts.tsv"),
        "overlap": write_dataframe(
            result.overlap, output_dir / "filter_overlap.tsv", index=True
        ),
    }


def export_summary(result: QCResult, output_dir: Path) -> Path:
    """Export the session summary as JSON."""
    path = Path(output_dir) / "qc_summary.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(result.to_dict(), f, indent=2, default=str)
    return path


def export_session(
    result: QCResult,
    output_dir: Path,
    config: Optional[QCConfig] = None,
) -> Dict[str, Path]:
    """Write every session output to ``output_dir``.

    Returns
    -------
    Dict[str, Path]
        Output name -> written path
    """
    config = config or QCConfig()
    export_cfg: ExportConfig = config.export
    output_dir = ensure_output_dir(output_dir)

    paths: Dict[str, Path] = {
        "h5ad": write_h5ad(to_anndata(result, config), output_dir / export_cfg.h5ad_name),
        "cell_table": export_cell_table(result, output_dir),
        "gene_table": export_gene_table(result, output_dir),
        "summary": export_summary(result, output_dir),
        "config": config.to_yaml(output_dir / "qc_config.yaml"),
    }
    paths.update(export_filter_comparison(result, output_dir))
    return paths
