"""
Descriptive statistics and low-outlier trimming for benchmark samples.

Quartiles use the nearest-rank positions floor(0.25 n) and floor(0.75 n)
of the sorted sample, without interpolation. Only the lower tail is
trimmed.
"""

import logging
import math
from typing import Iterable, List, Tuple

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_IQR_MULTIPLIER = 1.5

# Samples this small are returned untouched by filter_low_outliers
MIN_FILTER_SIZE = 4


def _as_array(sample: Iterable[float]) -> np.ndarray:
    values = np.asarray(list(sample), dtype=float)
    if values.size and not np.all(np.isfinite(values)):
        raise ValueError("sample contains non-finite values (NaN or infinity)")
    return values


def mean(sample: Iterable[float]) -> float:
    values = _as_array(sample)
    if values.size == 0:
        return 0.0
    return float(values.mean())


def median(sample: Iterable[float]) -> float:
    values = _as_array(sample)
    if values.size == 0:
        return 0.0
    return float(np.median(values))


def standard_deviation(sample: Iterable[float]) -> float:
    """Population standard deviation (divides by N)."""
    values = _as_array(sample)
    if values.size == 0:
        return 0.0
    return float(values.std(ddof=0))


def quartiles(sample: Iterable[float]) -> Tuple[float, float]:
    """(Q1, Q3) by nearest rank."""
    ordered = np.sort(_as_array(sample))
    n = ordered.size
    if n == 0:
        raise ValueError("quartiles of an empty sample")
    return float(ordered[int(0.25 * n)]), float(ordered[int(0.75 * n)])


def iqr_lower_bound(sample: Iterable[float], multiplier: float = DEFAULT_IQR_MULTIPLIER) -> float:
    """Q1 - multiplier * (Q3 - Q1)."""
    if not math.isfinite(multiplier):
        raise ValueError(f"multiplier must be finite, got {multiplier}")
    q1, q3 = quartiles(sample)
    return q1 - multiplier * (q3 - q1)


def filter_low_outliers(sample: Iterable[float], multiplier: float = DEFAULT_IQR_MULTIPLIER) -> List[float]:
    """Drop values below Q1 - multiplier * IQR, keeping input order.

    Samples of MIN_FILTER_SIZE values or fewer come back unchanged. Values
    above Q3 are never removed.
    """
    values = _as_array(sample)
    if values.size <= MIN_FILTER_SIZE:
        return [float(v) for v in values]

    lower_bound = iqr_lower_bound(values, multiplier)
    kept = [float(v) for v in values if v >= lower_bound]

    removed = values.size - len(kept)
    logger.debug(
        f"IQR filtering: {removed} low outliers removed "
        f"({removed / values.size * 100:.1f}%), lower bound {lower_bound:.6g}"
    )
    return kept
