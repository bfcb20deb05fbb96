from __future__ import annotations

import math
from datetime import date

import pytest

from deal_valuation_app.errors import InsufficientData
from deal_valuation_app.models.common import StatisticalMethod
from deal_valuation_app.models.precedents import (
    Acquirer,
    AcquirerType,
    DealStatus,
    IndustryMatch,
    MarketConditions,
    PrecedentAnalysisSettings,
    PrecedentTransaction,
    TransactionFilters,
    TransactionFinancials,
    TransactionParty,
)
from deal_valuation_app.sample_data import (
    SAMPLE_AS_OF,
    build_sample_precedent_request,
    build_sample_precedent_target,
    build_sample_transactions,
)
from deal_valuation_app.services.precedents import PrecedentTransactionValuator, transaction_age


def _txn(
    txn_id,
    announced,
    ev_ebitda=None,
    premium=30.0,
    acquirer_type=AcquirerType.STRATEGIC,
    status=DealStatus.COMPLETED,
    transaction_value=200_000_000,
    industry="Software",
    industry_median=None,
    **financials,
):
    financials.setdefault("enterprise_value", transaction_value)
    return PrecedentTransaction(
        id=txn_id,
        announcement_date=announced,
        status=status,
        target_company=TransactionParty(id=f"t-{txn_id}", name=f"Target {txn_id}", sector="Technology", industry=industry),
        acquirer=Acquirer(id=f"a-{txn_id}", name=f"Acquirer {txn_id}", type=acquirer_type),
        financials=TransactionFinancials(
            transaction_value=transaction_value,
            ev_ebitda=ev_ebitda,
            premium_to_last_close=premium,
            **financials,
        ),
        market_conditions=MarketConditions(industry_multiple_median=industry_median),
    )


def _run(transactions, settings=None, filters=None, as_of=SAMPLE_AS_OF):
    return PrecedentTransactionValuator().run(
        build_sample_precedent_target(),
        transactions,
        as_of=as_of,
        settings=settings,
        filters=filters,
    )


def test_transaction_age_in_years():
    assert transaction_age(date(2023, 6, 15), date(2024, 6, 30)) == pytest.approx(1 + 15 / 365.25)
    assert transaction_age(date(2022, 3, 1), date(2024, 9, 1)) == pytest.approx(2.5)
    assert transaction_age(date(2024, 7, 1), date(2024, 6, 30)) < 0


def test_sample_analysis():
    request = build_sample_precedent_request()
    result = PrecedentTransactionValuator().run(
        request.target, request.transactions, request.as_of, request.settings, request.filters
    )

    assert result.transactions_used == 2
    assert result.total_transactions == 3
    assert [t.id for t in result.selected_transactions] == ["txn-1", "txn-2"]

    ev_ebitda = result.multiples["ev_ebitda"]
    assert ev_ebitda.selected_value == pytest.approx(16.6)
    implied = result.implied_valuation
    assert implied.enterprise_value == pytest.approx(16.6 * 25_000_000)
    assert implied.equity_value == pytest.approx(16.6 * 25_000_000 - 25_000_000)
    assert implied.enterprise_value_low == pytest.approx(ev_ebitda.percentile25 * 25_000_000)
    assert implied.enterprise_value_high == pytest.approx(ev_ebitda.percentile75 * 25_000_000)
    assert implied.implied_offer_price == pytest.approx(300_000_000 * 1.3)
    assert implied.implied_premium == pytest.approx(0.3)

    premiums = result.premium_analysis
    assert premiums.average_control_premium == pytest.approx(31.5)
    assert premiums.median_control_premium == pytest.approx(31.5)
    assert premiums.min_premium == 28.0
    assert premiums.max_premium == 35.0
    assert premiums.premium_by_acquirer_type == {"financial": 28.0, "strategic": 35.0}


def test_filtering_to_nothing_fails():
    with pytest.raises(InsufficientData):
        _run(build_sample_transactions(), filters=TransactionFilters(max_transaction_age=0))


def test_empty_transaction_list_fails():
    with pytest.raises(InsufficientData):
        _run([])


def test_filters_drop_transactions():
    transactions = [
        _txn("old", date(2019, 1, 1), ev_ebitda=10.0),
        _txn("small", date(2024, 1, 1), ev_ebitda=11.0, transaction_value=50_000_000),
        _txn("withdrawn", date(2024, 1, 1), ev_ebitda=12.0, status=DealStatus.WITHDRAWN),
        _txn("financial", date(2024, 1, 1), ev_ebitda=13.0, acquirer_type=AcquirerType.FINANCIAL),
        _txn("keep", date(2024, 1, 1), ev_ebitda=14.0),
    ]
    filters = TransactionFilters(
        max_transaction_age=3,
        min_transaction_value=100_000_000,
        acquirer_types={AcquirerType.STRATEGIC},
    )
    result = _run(transactions, filters=filters)

    assert [t.id for t in result.selected_transactions] == ["keep"]
    assert result.multiples["ev_ebitda"].selected_value == pytest.approx(14.0)


def test_hostile_deals_excluded_unless_allowed():
    transactions = build_sample_transactions()
    default = _run(transactions, filters=TransactionFilters(required_status=set(DealStatus)))
    allowed = _run(
        transactions,
        filters=TransactionFilters(required_status=set(DealStatus), exclude_hostile_deals=False),
    )

    assert default.transactions_used == 2
    assert allowed.transactions_used == 3


def test_industry_match_exact():
    transactions = build_sample_transactions()
    filters = TransactionFilters(
        required_status=set(DealStatus),
        exclude_hostile_deals=False,
        industry_match=IndustryMatch.EXACT,
    )
    result = _run(transactions, filters=filters)

    assert [t.id for t in result.selected_transactions] == ["txn-1", "txn-2"]


def test_future_transaction_warned_and_excluded():
    transactions = [_txn("past", date(2024, 1, 1), ev_ebitda=12.0), _txn("future", date(2024, 12, 1), ev_ebitda=20.0)]
    result = _run(transactions)

    assert result.transactions_used == 1
    assert [w.subject for w in result.warnings if w.code == "FutureTransaction"] == ["future"]


def test_time_weighted_mean():
    transactions = build_sample_transactions()[:2]
    settings = PrecedentAnalysisSettings(
        statistical_method=StatisticalMethod.WEIGHTED_MEAN,
        time_weighting=True,
        time_decay_factor=0.5,
    )
    result = _run(transactions, settings=settings)

    ages = [transaction_age(txn.announcement_date, SAMPLE_AS_OF) for txn in transactions]
    raw = [math.exp(-0.5 * age) for age in ages]
    weights = [w / sum(raw) for w in raw]
    assert [t.weight for t in result.selected_transactions] == pytest.approx(weights)
    assert sum(t.weight for t in result.selected_transactions) == pytest.approx(1.0)
    assert result.multiples["ev_ebitda"].selected_value == pytest.approx(weights[0] * 15.0 + weights[1] * 18.2)
    # the newer deal carries more weight
    assert weights[0] > weights[1]


def test_steep_time_decay_keeps_youngest_deal():
    request = build_sample_precedent_request()
    settings = request.settings.model_copy(
        update={"statistical_method": StatisticalMethod.WEIGHTED_MEAN, "time_decay_factor": 800.0}
    )
    result = PrecedentTransactionValuator().run(
        request.target, request.transactions, request.as_of, settings, request.filters
    )

    weights = {t.id: t.weight for t in result.selected_transactions}
    assert weights["txn-1"] == pytest.approx(1.0)
    assert weights["txn-2"] == pytest.approx(0.0)
    assert sum(weights.values()) == pytest.approx(1.0)
    assert result.multiples["ev_ebitda"].selected_value == pytest.approx(15.0)


def test_weighted_mean_without_time_weighting_equals_mean():
    settings = PrecedentAnalysisSettings(statistical_method=StatisticalMethod.WEIGHTED_MEAN)
    result = _run(build_sample_transactions()[:2], settings=settings)

    ev_ebitda = result.multiples["ev_ebitda"]
    assert ev_ebitda.selected_value == pytest.approx(ev_ebitda.mean)


def test_multiples_derived_when_not_reported():
    transactions = [
        _txn("a", date(2024, 1, 1), ebitda=20_000_000, enterprise_value=300_000_000),
        _txn("b", date(2024, 2, 1), ebitda=0.0),
    ]
    settings = PrecedentAnalysisSettings(include_multiples=["ev_ebitda"])
    result = _run(transactions, settings=settings)

    assert result.multiples["ev_ebitda"].count == 1
    assert result.multiples["ev_ebitda"].selected_value == pytest.approx(15.0)
    assert [w.subject for w in result.warnings if w.code == "InvalidTransaction"] == ["b"]


def test_market_condition_adjustment():
    settings = PrecedentAnalysisSettings(
        include_multiples=["ev_ebitda"],
        market_condition_adjustment=True,
        current_industry_multiple_median=13.8,
    )
    result = _run(build_sample_transactions()[:2], settings=settings)

    expected = (15.0 * 13.8 / 12.5 + 18.2) / 2
    assert result.multiples["ev_ebitda"].selected_value == pytest.approx(expected)


def test_market_condition_adjustment_needs_current_median():
    settings = PrecedentAnalysisSettings(market_condition_adjustment=True)
    result = _run(build_sample_transactions()[:2], settings=settings)

    assert result.multiples["ev_ebitda"].selected_value == pytest.approx(16.6)
    assert any(w.code == "MarketAdjustmentSkipped" for w in result.warnings)


def test_outlier_removal_keeps_weights_aligned():
    transactions = [_txn(str(i), date(2024, 1, 1), ev_ebitda=10.0) for i in range(4)]
    transactions.append(_txn("x", date(2024, 1, 1), ev_ebitda=100.0))
    settings = PrecedentAnalysisSettings(
        statistical_method=StatisticalMethod.WEIGHTED_MEAN,
        outlier_removal=True,
        outlier_threshold=1.0,
    )
    result = _run(transactions, settings=settings)

    ev_ebitda = result.multiples["ev_ebitda"]
    assert ev_ebitda.outliers_removed == 1
    assert ev_ebitda.selected_value == pytest.approx(10.0)


def test_missing_ev_ebitda_leaves_valuation_empty():
    settings = PrecedentAnalysisSettings(include_multiples=["ev_revenue"])
    result = _run(build_sample_transactions()[:2], settings=settings)

    assert result.implied_valuation.enterprise_value is None
    assert result.implied_valuation.implied_offer_price == pytest.approx(300_000_000)
    assert any(w.code == "NoImpliedValuation" for w in result.warnings)


def test_premium_analysis_absent_without_premiums():
    transactions = [_txn("a", date(2024, 1, 1), ev_ebitda=12.0, premium=None)]
    result = _run(transactions)

    assert result.premium_analysis is None
    assert any(w.code == "NoPremiumData" for w in result.warnings)
