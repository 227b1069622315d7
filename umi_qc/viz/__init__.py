"""Visualization utilities for UMI-QC."""

from .qc_plots import (
    plot_filter_overlap,
    plot_highest_expressed_genes,
    plot_metric_histogram,
    plot_metric_scatter,
    plot_pca_outliers,
    plot_session,
)
from .style import create_figure, save_figure, set_publication_style

__all__ = [
    "plot_filter_overlap",
    "plot_highest_expressed_genes",
    "plot_metric_histogram",
    "plot_metric_scatter",
    "plot_pca_outliers",
    "plot_session",
    "create_figure",
    "save_figure",
    "set_publication_style",
]
