"""Utility functions for UMI-QC.

Provides statistical helpers used across modules.
"""

from .stats import (
    chi2_cutoff,
    mad_outliers,
    median_and_mad,
    robust_zscore,
)

__all__ = [
    "chi2_cutoff",
    "mad_outliers",
    "median_and_mad",
    "robust_zscore",
]
