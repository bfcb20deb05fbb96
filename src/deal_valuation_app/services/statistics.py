from __future__ import annotations

from typing import List, Sequence

import numpy as np

from ..errors import EmptySample
from ..models.common import SampleSummary


DEFAULT_OUTLIER_THRESHOLD = 2.0


def _as_array(sample: Sequence[float]) -> np.ndarray:
    values = np.asarray(sample, dtype=float)
    if values.size == 0:
        raise EmptySample("Cannot summarize an empty sample")
    return values


def percentile(sample: Sequence[float], p: float) -> float:
    """Percentile ``p`` (0-1) with linear interpolation between closest ranks."""
    values = _as_array(sample)
    return float(np.percentile(values, p * 100, method="linear"))


def summarize(sample: Sequence[float]) -> SampleSummary:
    values = _as_array(sample)
    p25, p50, p75 = np.percentile(values, [25, 50, 75], method="linear")
    return SampleSummary(
        count=int(values.size),
        min=float(values.min()),
        max=float(values.max()),
        mean=float(values.mean()),
        median=float(p50),
        percentile25=float(p25),
        percentile75=float(p75),
    )


def weighted_mean(values: Sequence[float], weights: Sequence[float]) -> float:
    data = _as_array(values)
    w = np.asarray(weights, dtype=float)
    if w.shape != data.shape:
        raise ValueError("values and weights must have the same length")
    total = w.sum()
    if total <= 0:
        raise EmptySample("Weights sum to zero")
    return float(np.dot(data, w / total))


def outlier_mask(sample: Sequence[float], threshold: float = DEFAULT_OUTLIER_THRESHOLD) -> List[bool]:
    """Keep-flag per value for a z-score filter using the population stdev.

    A zero-variance sample keeps every value, and so does a threshold tight
    enough to reject the whole sample.
    """
    values = _as_array(sample)
    sigma = values.std()
    if sigma == 0:
        return [True] * int(values.size)
    keep = np.abs(values - values.mean()) / sigma <= threshold
    if not keep.any():
        return [True] * int(values.size)
    return [bool(flag) for flag in keep]


def filter_outliers(sample: Sequence[float], threshold: float = DEFAULT_OUTLIER_THRESHOLD) -> List[float]:
    mask = outlier_mask(sample, threshold)
    return [float(value) for value, keep in zip(sample, mask) if keep]
