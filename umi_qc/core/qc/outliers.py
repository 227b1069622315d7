"""Automatic cell filter: multivariate outlier detection on QC metrics.

The QC metric table is standardised, projected onto its first principal
components, and a Minimum Covariance Determinant fit in that space gives
robust squared Mahalanobis distances. Cells beyond the chi-squared
quantile are outliers.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.covariance import MinCovDet
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from ...utils.stats import chi2_cutoff
from .config import AutomaticFilterConfig
from .metrics import CellMetric

logger = logging.getLogger(__name__)


# QC columns entering the PCA
OUTLIER_METRICS: List[CellMetric] = [
    CellMetric.PCT_COUNTS_TOP_100,
    CellMetric.DETECTED_GENES,
    CellMetric.PCT_COUNTS_CONTROL,
    CellMetric.DETECTED_CONTROL_GENES,
    CellMetric.LOG10_COUNTS_ENDOGENOUS,
    CellMetric.LOG10_COUNTS_CONTROL,
]


@dataclass
class MultivariateOutlierResult:
    """Result from multivariate outlier detection.

    Attributes
    ----------
    keep : pd.Series
        Boolean keep-mask (True = not an outlier)
    projection : pd.DataFrame
        Cell coordinates on the principal components (PC1, PC2, ...)
    distances : pd.Series
        Robust squared Mahalanobis distances in the projected space
    cutoff : float
        Squared-distance cutoff
    explained_variance_ratio : List[float]
        Variance explained by each component
    used_columns : List[str]
        Metric columns that entered the PCA
    dropped_columns : List[str]
        Constant metric columns left out
    """

    keep: pd.Series
    projection: pd.DataFrame
    distances: pd.Series
    cutoff: float
    explained_variance_ratio: List[float] = field(default_factory=list)
    used_columns: List[str] = field(default_factory=list)
    dropped_columns: List[str] = field(default_factory=list)

    @property
    def n_outliers(self) -> int:
        return int((~self.keep).sum())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "n_cells": int(len(self.keep)),
            "n_outliers": self.n_outliers,
            "cutoff": round(self.cutoff, 4),
            "explained_variance_ratio": [round(v, 4) for v in self.explained_variance_ratio],
            "used_columns": self.used_columns,
            "dropped_columns": self.dropped_columns,
        }


class MultivariateOutlierDetector:
    """PCA + robust Mahalanobis distance outlier detector.

    Parameters
    ----------
    config : AutomaticFilterConfig
        Detector configuration

    Example
    -------
    >>> detector = MultivariateOutlierDetector(AutomaticFilterConfig())
    >>> result = detector.detect(cell_metrics)
    >>> result.keep.sum()
    """

    def __init__(self, config: Optional[AutomaticFilterConfig] = None):
        self.config = config or AutomaticFilterConfig()

    def select_features(self, metrics: pd.DataFrame) -> pd.DataFrame:
        """Extract the fixed QC columns, dropping constant ones."""
        columns = [m.value for m in OUTLIER_METRICS]
        missing = [c for c in columns if c not in metrics.columns]
        if missing:
            raise ValueError(f"Cell metrics missing columns: {missing}")

        features = metrics[columns].astype(float)
        if not np.isfinite(features.to_numpy()).all():
            raise ValueError("Cell metrics contain non-finite values")

        constant = [c for c in columns if features[c].nunique() <= 1]
        if constant:
            logger.warning(f"Dropping constant QC columns from PCA: {constant}")
        features = features.drop(columns=constant)
        if features.shape[1] == 0:
            raise ValueError("No variable QC column left for outlier detection")
        return features

    def detect(self, metrics: pd.DataFrame) -> MultivariateOutlierResult:
        """Flag multivariate outliers among cells.

        Parameters
        ----------
        metrics : pd.DataFrame
            Per-cell metric table from ``compute_cell_metrics``

        Returns
        -------
        MultivariateOutlierResult
            Keep-mask plus projection and distances
        """
        features = self.select_features(metrics)
        n_cells = features.shape[0]
        n_components = min(self.config.n_components, features.shape[1])
        if n_cells < n_components + 2:
            raise ValueError(
                f"Need at least {n_components + 2} cells for outlier detection, "
                f"got {n_cells}"
            )

        scaled = StandardScaler().fit_transform(features.to_numpy())
        pca = PCA(n_components=n_components, random_state=self.config.random_seed)
        coords = pca.fit_transform(scaled)

        mcd = MinCovDet(
            support_fraction=self.config.support_fraction,
            random_state=self.config.random_seed,
        ).fit(coords)
        distances = mcd.mahalanobis(coords)
        cutoff = chi2_cutoff(self.config.quantile, n_components)
        outlier = distances > cutoff

        pc_names = [f"PC{i + 1}" for i in range(n_components)]
        result = MultivariateOutlierResult(
            keep=pd.Series(~outlier, index=features.index, name="automatic"),
            projection=pd.DataFrame(coords, index=features.index, columns=pc_names),
            distances=pd.Series(distances, index=features.index, name="mahalanobis_sq"),
            cutoff=cutoff,
            explained_variance_ratio=[float(v) for v in pca.explained_variance_ratio_],
            used_columns=list(features.columns),
            dropped_columns=[
                m.value for m in OUTLIER_METRICS if m.value not in features.columns
            ],
        )
        logger.info(
            f"Automatic filter: {result.n_outliers}/{n_cells} outliers "
            f"(cutoff {cutoff:.2f}, explained variance "
            f"{sum(result.explained_variance_ratio):.1%})"
        )
        return result
