"""Statistical utilities for UMI-QC.

Provides robust location/spread statistics used by the outlier rules.
"""

from __future__ import annotations

from typing import Iterable, Tuple, Union

import numpy as np
from scipy.stats import chi2, median_abs_deviation

ArrayLike = Union[Iterable[float], np.ndarray]

# Conversion factor making the MAD consistent with the normal SD
MAD_NORMAL_SCALE = 1.4826


def _to_array(values: ArrayLike) -> np.ndarray:
    if isinstance(values, np.ndarray):
        return values.astype(float, copy=False)
    return np.asarray(list(values), dtype=float)


def median_and_mad(values: ArrayLike) -> Tuple[float, float]:
    """Median and unscaled median absolute deviation of finite values.

    Parameters
    ----------
    values : ArrayLike
        Input values.

    Returns
    -------
    Tuple[float, float]
        (median, MAD). Both NaN if there is no finite value.
    """
    arr = _to_array(values)
    clean = arr[np.isfinite(arr)]
    if clean.size == 0:
        return float("nan"), float("nan")
    return float(np.median(clean)), float(median_abs_deviation(clean, scale=1.0))


def mad_outliers(
    values: ArrayLike,
    nmads: float,
    direction: str = "both",
) -> np.ndarray:
    """Flag values lying more than ``nmads`` MADs from the median.

    A value ``r`` is flagged when ``|r - median| > nmads * MAD`` (on the
    requested side only for ``lower``/``higher``). Non-finite values are
    never flagged.

    Parameters
    ----------
    values : ArrayLike
        Input values.
    nmads : float
        Deviation multiplier.
    direction : str
        'both', 'lower' or 'higher'.

    Returns
    -------
    np.ndarray
        Boolean outlier flags.
    """
    if direction not in ("both", "lower", "higher"):
        raise ValueError(f"Unknown direction '{direction}'")
    if nmads < 0:
        raise ValueError(f"nmads must be non-negative, got {nmads}")

    arr = _to_array(values)
    median, mad = median_and_mad(arr)
    if not np.isfinite(median):
        return np.zeros(arr.shape, dtype=bool)

    with np.errstate(invalid="ignore"):
        deviation = arr - median
        limit = nmads * mad
        if direction == "lower":
            flags = -deviation > limit
        elif direction == "higher":
            flags = deviation > limit
        else:
            flags = np.abs(deviation) > limit
    return flags & np.isfinite(arr)


def robust_zscore(values: ArrayLike) -> np.ndarray:
    """Compute a robust z-score using the median absolute deviation (MAD).

    Uses the standard conversion factor of 1.4826 to make MAD comparable
    to standard deviation for normally distributed data.

    Parameters
    ----------
    values : ArrayLike
        Input values.

    Returns
    -------
    np.ndarray
        Robust z-scores. Non-finite inputs become NaN in output; a zero
        MAD yields zeros.
    """
    arr = _to_array(values)
    result = np.full(arr.shape, np.nan, dtype=float)
    mask = np.isfinite(arr)
    if not mask.any():
        return result

    median, mad = median_and_mad(arr)
    scale = mad * MAD_NORMAL_SCALE
    if scale == 0:
        result[mask] = 0.0
    else:
        result[mask] = (arr[mask] - median) / scale
    return result


def chi2_cutoff(quantile: float, df: int) -> float:
    """Chi-squared quantile used as a squared-distance cutoff."""
    if not 0 < quantile < 1:
        raise ValueError(f"quantile must be in (0, 1), got {quantile}")
    return float(chi2.ppf(quantile, df=df))
