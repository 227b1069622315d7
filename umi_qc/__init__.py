"""UMI-QC: expression quality control for UMI single-cell count matrices.

This package provides tools for:
- Loading a genes x cells UMI count matrix with per-cell annotations
- Per-cell and per-gene QC metrics (library size, detected genes,
  control-feature percentages)
- Manual threshold, MAD-based default and PCA-based automatic cell filters
- Comparing filters and filtering cells, then genes
- Persisting the filtered data as AnnData

Example usage:
    >>> from umi_qc.core.qc import QCConfig, QCEngine, export_session
    >>>
    >>> engine = QCEngine(QCConfig())
    >>> result = engine.run_files("molecules.txt", "annotation.txt")
    >>> export_session(result, "out/")
"""

__version__ = "0.1.0"
