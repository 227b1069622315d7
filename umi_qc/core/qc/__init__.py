"""Expression quality control for UMI count matrices.

Provides functions for loading a count matrix, computing QC metrics,
evaluating cell filters, filtering cells then genes, and exporting the
filtered data.

Workflow Steps
--------------
- Loading: count matrix + annotation -> QCDataset
- Metrics: per-cell and per-gene QC metrics
- Cell filters: manual thresholds, MAD default, PCA automatic
- Comparison: combined masks and Venn-region counts
- Filtering: cells first, then genes on the retained cells
- Export: AnnData (.h5ad) and QC tables

Example Usage
-------------
>>> from umi_qc.core.qc import DataLoader, QCEngine, QCConfig
>>> config = QCConfig()
>>> dataset = DataLoader(config.loader).load_dataset(
...     "molecules.txt", "annotation.txt", config.control_sets
... )
>>> result = QCEngine(config).run(dataset)
>>> result.venn
"""

# Configuration classes
from .config import (
    AutomaticFilterConfig,
    ControlSetConfig,
    DefaultFilterConfig,
    ExportConfig,
    GeneFilterConfig,
    LoaderConfig,
    ManualFilterConfig,
    QCConfig,
    MT_GENES,
)

# Data
from .dataset import QCDataset, resolve_control_sets
from .loader import DataLoader, drop_undetected_genes

# Metrics
from .metrics import (
    CELL_METRIC_COLUMNS,
    CellMetric,
    ControlMetric,
    GeneMetric,
    cell_qc_table,
    compute_cell_metrics,
    compute_gene_metrics,
)

# Cell filters
from .rules import (
    AnnotationFlagRule,
    CellRule,
    Comparison,
    MADRule,
    ThresholdRule,
    default_rules,
    evaluate_rules,
    manual_rules,
)
from .outliers import (
    OUTLIER_METRICS,
    MultivariateOutlierDetector,
    MultivariateOutlierResult,
)

# Comparison and gene filter
from .compare import combine_masks, overlap_summary, venn_counts
from .genes import FilterResult, filter_dataset, gene_detection_mask

# Session
from .engine import QCEngine, QCResult
from .export import (
    export_session,
    filtered_cell_table,
    filtered_gene_table,
    to_anndata,
    write_h5ad,
)

__all__ = [
    # Config
    "AutomaticFilterConfig",
    "ControlSetConfig",
    "DefaultFilterConfig",
    "ExportConfig",
    "GeneFilterConfig",
    "LoaderConfig",
    "ManualFilterConfig",
    "QCConfig",
    "MT_GENES",
    # Data
    "QCDataset",
    "resolve_control_sets",
    "DataLoader",
    "drop_undetected_genes",
    # Metrics
    "CELL_METRIC_COLUMNS",
    "CellMetric",
    "ControlMetric",
    "GeneMetric",
    "cell_qc_table",
    "compute_cell_metrics",
    "compute_gene_metrics",
    # Cell filters
    "AnnotationFlagRule",
    "CellRule",
    "Comparison",
    "MADRule",
    "ThresholdRule",
    "default_rules",
    "evaluate_rules",
    "manual_rules",
    "OUTLIER_METRICS",
    "MultivariateOutlierDetector",
    "MultivariateOutlierResult",
    # Comparison and gene filter
    "combine_masks",
    "overlap_summary",
    "venn_counts",
    "FilterResult",
    "filter_dataset",
    "gene_detection_mask",
    # Session
    "QCEngine",
    "QCResult",
    "export_session",
    "filtered_cell_table",
    "filtered_gene_table",
    "to_anndata",
    "write_h5ad",
]
