"""Core computational modules for UMI-QC.

This package contains:
- qc: Data loading, QC metrics, cell filters, gene filter and export
"""
