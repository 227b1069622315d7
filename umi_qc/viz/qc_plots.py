"""QC visualization functions.

Provides:
- Metric histogram with a threshold line
- Detected genes vs control percentage scatter, colored by batch
- PCA projection of QC metrics colored by outlier status
- Highest expressed genes (scanpy)
- Filter overlap bar chart of the Venn regions
"""

from pathlib import Path
from typing import Dict, List, Optional, Union
import logging

import numpy as np
import pandas as pd

from .style import (
    STATUS_COLORS,
    THRESHOLD_COLOR,
    create_figure,
    get_batch_palette,
    save_figure,
)

logger = logging.getLogger(__name__)


def plot_metric_histogram(
    cell_table: pd.DataFrame,
    metric: str,
    output_path: Union[str, Path],
    threshold: Optional[float] = None,
    bins: int = 100,
    dpi: int = 200,
) -> Path:
    """Histogram of one per-cell metric.

    Args:
        cell_table: Per-cell QC table
        metric: Column to plot
        output_path: Path to save figure
        threshold: Optional vertical threshold line
        bins: Number of histogram bins
        dpi: Figure resolution

    Returns:
        Path to saved figure
    """
    import seaborn as sns

    fig, ax = create_figure(figsize=(7, 4))
    sns.histplot(cell_table[metric].astype(float), bins=bins, ax=ax, color="#7f8c8d")
    if threshold is not None:
        ax.axvline(threshold, color=THRESHOLD_COLOR, linestyle="--", linewidth=1.2)
        n_below = int((cell_table[metric] <= threshold).sum())
        ax.set_title(f"{metric} ({n_below} cells at or below {threshold:g})")
    else:
        ax.set_title(metric)
    ax.set_xlabel(metric)
    ax.set_ylabel("Cells")
    return save_figure(fig, output_path, dpi=dpi)


def plot_metric_scatter(
    cell_table: pd.DataFrame,
    x: str,
    y: str,
    output_path: Union[str, Path],
    color_by: Optional[str] = "batch",
    size_by: Optional[str] = None,
    dpi: int = 200,
) -> Path:
    """Scatter plot of two per-cell metrics.

    Args:
        cell_table: Per-cell QC table
        x: Column on the x axis
        y: Column on the y axis
        output_path: Path to save figure
        color_by: Categorical column used for colors
        size_by: Numeric column used for point sizes
        dpi: Figure resolution

    Returns:
        Path to saved figure
    """
    import seaborn as sns

    fig, ax = create_figure(figsize=(7, 5))
    hue = None
    kwargs = {}
    if color_by and color_by in cell_table.columns:
        hue = cell_table[color_by].astype(str)
        kwargs["hue"] = hue
        kwargs["palette"] = get_batch_palette(hue.tolist())
    if size_by:
        kwargs["size"] = cell_table[size_by]
    else:
        kwargs["s"] = 18
    sns.scatterplot(
        x=cell_table[x],
        y=cell_table[y],
        alpha=0.8,
        linewidth=0,
        ax=ax,
        **kwargs,
    )
    ax.set_xlabel(x)
    ax.set_ylabel(y)
    if hue is not None:
        ax.legend(loc="best", fontsize=7, markerscale=0.8)
    return save_figure(fig, output_path, dpi=dpi)


def plot_pca_outliers(
    projection: pd.DataFrame,
    keep: pd.Series,
    output_path: Union[str, Path],
    size: Optional[pd.Series] = None,
    dpi: int = 200,
) -> Path:
    """Cells on the first two QC principal components, colored by status.

    Args:
        projection: PC coordinates (PC1, and PC2 when present)
        keep: Keep-mask of the automatic filter
        output_path: Path to save figure
        size: Optional per-cell sizes (e.g. detected genes)
        dpi: Figure resolution

    Returns:
        Path to saved figure
    """
    fig, ax = create_figure(figsize=(6, 5))
    sizes = 15.0
    if size is not None:
        values = size.loc[projection.index].to_numpy(dtype=float)
        span = np.ptp(values) or 1.0
        sizes = 5 + 40 * (values - values.min()) / span

    x = projection["PC1"].to_numpy()
    # a single component is drawn on a flat axis
    has_pc2 = "PC2" in projection.columns
    y = projection["PC2"].to_numpy() if has_pc2 else np.zeros(len(projection))

    status = np.where(keep.loc[projection.index].to_numpy(), "kept", "removed")
    for label in ("kept", "removed"):
        mask = status == label
        ax.scatter(
            x[mask],
            y[mask],
            s=sizes[mask] if isinstance(sizes, np.ndarray) else sizes,
            c=STATUS_COLORS[label],
            label=f"{label} ({int(mask.sum())})",
            alpha=0.8,
            linewidths=0,
        )
    ax.set_xlabel("PC1")
    ax.set_ylabel("PC2" if has_pc2 else "")
    ax.legend(loc="best")
    ax.set_title("QC metric PCA")
    return save_figure(fig, output_path, dpi=dpi)


def plot_highest_expressed_genes(
    counts: pd.DataFrame,
    output_path: Union[str, Path],
    n_top: int = 50,
    dpi: int = 200,
) -> Path:
    """Share of counts taken by the most expressed genes.

    Args:
        counts: Gene-by-cell count matrix
        output_path: Path to save figure
        n_top: Number of genes shown
        dpi: Figure resolution

    Returns:
        Path to saved figure
    """
    import anndata as ad
    import scanpy as sc

    adata = ad.AnnData(
        X=counts.to_numpy().T.astype(np.float32),
        obs=pd.DataFrame(index=counts.columns.astype(str)),
        var=pd.DataFrame(index=counts.index.astype(str)),
    )
    ax = sc.pl.highest_expr_genes(adata, n_top=min(n_top, adata.n_vars), show=False)
    return save_figure(ax.figure, output_path, dpi=dpi)


def plot_filter_overlap(
    venn: pd.DataFrame,
    output_path: Union[str, Path],
    dpi: int = 200,
) -> Path:
    """Bar chart of cell counts in every region of the filter Venn partition.

    Args:
        venn: Output of ``venn_counts``
        output_path: Path to save figure
        dpi: Figure resolution

    Returns:
        Path to saved figure
    """
    names: List[str] = [c for c in venn.columns if c != "count"]
    labels = []
    for _, row in venn.iterrows():
        members = [n for n in names if row[n] == 1]
        labels.append(" & ".join(members) if members else "none")

    fig, ax = create_figure(figsize=(8, 4))
    y_pos = np.arange(len(labels))
    bars = ax.barh(y_pos, venn["count"].to_numpy(), color="#3498db")
    for bar, count in zip(bars, venn["count"].to_numpy()):
        ax.text(
            bar.get_width(),
            bar.get_y() + bar.get_height() / 2,
            f" {int(count)}",
            va="center",
            fontsize=9,
        )
    ax.set_yticks(y_pos)
    ax.set_yticklabels(labels)
    ax.invert_yaxis()
    ax.set_xlabel("Cells")
    ax.set_title("Cells kept by filter combination")
    return save_figure(fig, output_path, dpi=dpi)


def plot_session(
    result,
    output_dir: Union[str, Path],
    config=None,
) -> Dict[str, Path]:
    """Write the standard set of QC figures for a session.

    Args:
        result: QCResult from the QC engine
        output_dir: Directory for figures
        config: QCConfig used for the session (thresholds, dpi)

    Returns:
        Map of figure name to path
    """
    from ..core.qc.config import QCConfig
    from ..core.qc.metrics import CellMetric, ControlMetric

    config = config or QCConfig()
    output_dir = Path(output_dir)
    dpi = config.export.dpi
    table = result.cell_table
    batch_col = config.loader.batch_col

    paths: Dict[str, Path] = {
        "total_counts_hist": plot_metric_histogram(
            table,
            CellMetric.TOTAL_COUNTS.value,
            output_dir / "total_counts_hist.png",
            threshold=config.manual.min_total_counts,
            dpi=dpi,
        ),
        "detected_genes_hist": plot_metric_histogram(
            table,
            CellMetric.DETECTED_GENES.value,
            output_dir / "detected_genes_hist.png",
            threshold=config.manual.min_detected_genes,
            dpi=dpi,
        ),
    }
    for name in result.dataset.control_sets:
        column = ControlMetric.PCT_COUNTS.column(name)
        paths[f"{name}_scatter"] = plot_metric_scatter(
            table,
            CellMetric.DETECTED_GENES.value,
            column,
            output_dir / f"detected_genes_vs_pct_{name}.png",
            color_by=batch_col,
            dpi=dpi,
        )
    paths["pca_outliers"] = plot_pca_outliers(
        result.automatic.projection,
        result.automatic.keep,
        output_dir / "qc_pca_outliers.png",
        size=table[CellMetric.DETECTED_GENES.value],
        dpi=dpi,
    )
    paths["highest_expressed"] = plot_highest_expressed_genes(
        result.dataset.counts,
        output_dir / "highest_expressed_genes.png",
        n_top=config.export.top_n_genes,
        dpi=dpi,
    )
    paths["filter_overlap"] = plot_filter_overlap(
        result.venn, output_dir / "filter_overlap.png", dpi=dpi
    )
    logger.info(f"Wrote {len(paths)} figures to {output_dir}")
    return paths
