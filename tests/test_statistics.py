from __future__ import annotations

import pytest

from deal_valuation_app.errors import EmptySample
from deal_valuation_app.services.statistics import (
    filter_outliers,
    outlier_mask,
    percentile,
    summarize,
    weighted_mean,
)


def test_summary_interpolates_percentiles():
    summary = summarize([4, 1, 3, 2])

    assert summary.count == 4
    assert summary.min == 1
    assert summary.max == 4
    assert summary.mean == pytest.approx(2.5)
    assert summary.median == pytest.approx(2.5)
    assert summary.percentile25 == pytest.approx(1.75)
    assert summary.percentile75 == pytest.approx(3.25)


def test_summary_single_value():
    summary = summarize([7.5])

    assert summary.median == 7.5
    assert summary.percentile25 == 7.5
    assert summary.percentile75 == 7.5


def test_odd_sample_median_is_middle_value():
    assert summarize([9, 1, 5]).median == 5


def test_percentile_helper():
    assert percentile([1, 2, 3, 4], 0.5) == pytest.approx(2.5)
    assert percentile([10, 20, 30], 0.25) == pytest.approx(15.0)


def test_empty_sample_fails():
    with pytest.raises(EmptySample):
        summarize([])
    with pytest.raises(EmptySample):
        filter_outliers([])


def test_outlier_excluded():
    assert filter_outliers([10, 10, 10, 10, 100], threshold=1.0) == [10, 10, 10, 10]


def test_outlier_kept_within_threshold():
    assert filter_outliers([10, 10, 10, 10, 100], threshold=2.0) == [10, 10, 10, 10, 100]


def test_zero_variance_sample_unchanged():
    assert filter_outliers([5, 5, 5, 5], threshold=0.01) == [5, 5, 5, 5]


def test_filter_never_returns_empty_sample():
    # both values sit exactly one sigma from the mean
    assert filter_outliers([1, 3], threshold=0.5) == [1, 3]


def test_outlier_mask_preserves_positions():
    assert outlier_mask([100, 10, 10, 10, 10], threshold=1.0) == [False, True, True, True, True]


def test_weighted_mean_normalizes_weights():
    assert weighted_mean([1, 3], [1, 3]) == pytest.approx(2.5)
    assert weighted_mean([1, 3], [0.2, 0.6]) == pytest.approx(2.5)


def test_weighted_mean_rejects_zero_weights():
    with pytest.raises(EmptySample):
        weighted_mean([1, 2], [0, 0])
