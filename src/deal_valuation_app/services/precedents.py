from __future__ import annotations

import math
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

import structlog
from dateutil.relativedelta import relativedelta

from ..errors import InsufficientData
from ..models.common import MultipleName, MultipleStatistic, SampleSummary, StatisticalMethod, ValuationWarning
from ..models.precedents import (
    ImpliedValuation,
    IndustryMatch,
    PrecedentAnalysisSettings,
    PrecedentTarget,
    PrecedentTransaction,
    PrecedentValuationResult,
    PremiumAnalysis,
    TransactionFilters,
    TransactionWeight,
)
from .comparables import enterprise_value_warning
from .statistics import outlier_mask, summarize, weighted_mean


logger = structlog.get_logger(__name__)

# multiple -> (numerator field, denominator field), used when a deal record
# does not carry the multiple itself
TRANSACTION_MULTIPLES: Dict[MultipleName, Tuple[str, str]] = {
    MultipleName.EV_REVENUE: ("enterprise_value", "revenue"),
    MultipleName.EV_EBITDA: ("enterprise_value", "ebitda"),
    MultipleName.EV_EBIT: ("enterprise_value", "ebit"),
    MultipleName.PE_RATIO: ("equity_value", "net_income"),
    MultipleName.PB_RATIO: ("equity_value", "book_value"),
}


def transaction_age(announced: date, as_of: date) -> float:
    """Age in years; negative when the deal was announced after ``as_of``."""
    delta = relativedelta(as_of, announced)
    return delta.years + delta.months / 12 + delta.days / 365.25


def reduce_sample(
    values: Sequence[float],
    weights: Sequence[float],
    method: StatisticalMethod,
    summary: Optional[SampleSummary] = None,
) -> float:
    summary = summary or summarize(values)
    if method == StatisticalMethod.MEDIAN:
        return summary.median
    if method == StatisticalMethod.MEAN:
        return summary.mean
    return weighted_mean(values, weights)


class PrecedentTransactionValuator:
    def __init__(self, enterprise_value_tolerance: float = 0.05) -> None:
        self.enterprise_value_tolerance = enterprise_value_tolerance

    def run(
        self,
        target: PrecedentTarget,
        transactions: Sequence[PrecedentTransaction],
        as_of: date,
        settings: Optional[PrecedentAnalysisSettings] = None,
        filters: Optional[TransactionFilters] = None,
    ) -> PrecedentValuationResult:
        settings = settings or PrecedentAnalysisSettings()
        filters = filters or TransactionFilters()
        warnings: List[ValuationWarning] = []
        if not transactions:
            raise InsufficientData("At least one precedent transaction is required")

        warning = enterprise_value_warning(target, "target", self.enterprise_value_tolerance)
        if warning is not None:
            warnings.append(warning)

        selected = self._filter(target, transactions, as_of, filters, warnings)
        if not selected:
            raise InsufficientData(
                "No precedent transaction passed the filters",
                detail={"total_transactions": len(transactions), "as_of": as_of.isoformat()},
            )

        weights = self._weights(selected, settings)
        adjustments = self._market_adjustments(selected, settings, warnings)

        multiples: Dict[str, MultipleStatistic] = {}
        for name in settings.include_multiples:
            try:
                metric = MultipleName(name)
            except ValueError:
                warnings.append(
                    ValuationWarning(code="UnknownMultiple", metric=name, message=f"Unsupported multiple {name!r}")
                )
                continue
            statistic = self._multiple_statistic(metric, selected, weights, adjustments, settings, warnings)
            if statistic is not None:
                multiples[metric.value] = statistic

        premium_analysis = self._premium_analysis(selected, weights, settings.statistical_method, warnings)
        implied = self._implied_valuation(target, multiples, settings, warnings)

        ages = [age for _, age in selected]
        logger.info(
            "precedent_valuation_completed",
            transactions_used=len(selected),
            total_transactions=len(transactions),
            method=settings.statistical_method.value,
            warnings=len(warnings),
        )
        return PrecedentValuationResult(
            multiples=multiples,
            premium_analysis=premium_analysis,
            implied_valuation=implied,
            transactions_used=len(selected),
            total_transactions=len(transactions),
            average_transaction_age=sum(ages) / len(ages),
            selected_transactions=[
                TransactionWeight(id=txn.id, age_years=age, weight=weight)
                for (txn, age), weight in zip(selected, weights)
            ],
            statistical_method=settings.statistical_method,
            warnings=warnings,
        )

    def _filter(
        self,
        target: PrecedentTarget,
        transactions: Sequence[PrecedentTransaction],
        as_of: date,
        filters: TransactionFilters,
        warnings: List[ValuationWarning],
    ) -> List[Tuple[PrecedentTransaction, float]]:
        industry_field = {IndustryMatch.EXACT: "industry", IndustryMatch.SECTOR: "sector"}.get(filters.industry_match)
        if industry_field is not None and getattr(target, industry_field) is None:
            warnings.append(
                ValuationWarning(
                    code="IndustryMatchSkipped",
                    subject="target",
                    message=f"Target has no {industry_field}; industry filter not applied",
                )
            )
            industry_field = None

        selected: List[Tuple[PrecedentTransaction, float]] = []
        for txn in transactions:
            age = transaction_age(txn.announcement_date, as_of)
            if age < 0:
                warnings.append(
                    ValuationWarning(
                        code="FutureTransaction",
                        subject=txn.id,
                        message=f"Announced {txn.announcement_date.isoformat()}, after {as_of.isoformat()}",
                    )
                )
                continue
            reason = None
            if filters.max_transaction_age is not None and age > filters.max_transaction_age:
                reason = "too_old"
            elif txn.financials.transaction_value < filters.min_transaction_value:
                reason = "below_min_value"
            elif txn.status not in filters.required_status:
                reason = "status"
            elif filters.exclude_hostile_deals and txn.hostile:
                reason = "hostile"
            elif filters.acquirer_types and txn.acquirer.type not in filters.acquirer_types:
                reason = "acquirer_type"
            elif industry_field is not None and (
                getattr(txn.target_company, industry_field) != getattr(target, industry_field)
            ):
                reason = "industry"
            if reason is not None:
                logger.debug("transaction_filtered", transaction_id=txn.id, reason=reason, age=age)
                continue
            selected.append((txn, age))
        return selected

    @staticmethod
    def _weights(
        selected: Sequence[Tuple[PrecedentTransaction, float]],
        settings: PrecedentAnalysisSettings,
    ) -> List[float]:
        if settings.time_weighting:
            # Measured from the youngest deal so its weight stays 1 before normalising.
            youngest = min(age for _, age in selected)
            raw = [math.exp(-settings.time_decay_factor * (age - youngest)) for _, age in selected]
        else:
            raw = [1.0] * len(selected)
        total = sum(raw)
        return [w / total for w in raw]

    @staticmethod
    def _market_adjustments(
        selected: Sequence[Tuple[PrecedentTransaction, float]],
        settings: PrecedentAnalysisSettings,
        warnings: List[ValuationWarning],
    ) -> List[float]:
        factors = [1.0] * len(selected)
        if not settings.market_condition_adjustment:
            return factors
        current = settings.current_industry_multiple_median
        if current is None:
            warnings.append(
                ValuationWarning(
                    code="MarketAdjustmentSkipped",
                    message="Market condition adjustment needs the current industry multiple median",
                )
            )
            return factors
        for index, (txn, _) in enumerate(selected):
            historical = txn.market_conditions.industry_multiple_median
            if historical is None or historical <= 0:
                warnings.append(
                    ValuationWarning(
                        code="MarketAdjustmentSkipped",
                        subject=txn.id,
                        message="No industry multiple median at announcement",
                    )
                )
                continue
            factors[index] = current / historical
        return factors

    @staticmethod
    def _transaction_multiple(txn: PrecedentTransaction, metric: MultipleName) -> Optional[float]:
        financials = txn.financials
        supplied = getattr(financials, metric.value)
        if supplied is not None:
            return supplied if supplied > 0 else None
        numerator_field, denominator_field = TRANSACTION_MULTIPLES[metric]
        numerator = getattr(financials, numerator_field)
        denominator = getattr(financials, denominator_field)
        if numerator <= 0 or denominator <= 0:
            return None
        return numerator / denominator

    def _multiple_statistic(
        self,
        metric: MultipleName,
        selected: Sequence[Tuple[PrecedentTransaction, float]],
        weights: Sequence[float],
        adjustments: Sequence[float],
        settings: PrecedentAnalysisSettings,
        warnings: List[ValuationWarning],
    ) -> Optional[MultipleStatistic]:
        values: List[float] = []
        value_weights: List[float] = []
        for (txn, _), weight, factor in zip(selected, weights, adjustments):
            value = self._transaction_multiple(txn, metric)
            if value is None:
                warnings.append(
                    ValuationWarning(
                        code="InvalidTransaction",
                        subject=txn.id,
                        metric=metric.value,
                        message=f"No usable {metric.value} for transaction {txn.id}",
                    )
                )
                continue
            values.append(value * factor)
            value_weights.append(weight)
        if not values:
            warnings.append(
                ValuationWarning(
                    code="MultipleOmitted",
                    metric=metric.value,
                    message=f"No transaction has a usable {metric.value} multiple",
                )
            )
            return None

        removed = 0
        if settings.outlier_removal:
            mask = outlier_mask(values, settings.outlier_threshold)
            removed = mask.count(False)
            values = [v for v, keep in zip(values, mask) if keep]
            value_weights = [w for w, keep in zip(value_weights, mask) if keep]

        summary = summarize(values)
        return MultipleStatistic(
            **summary.model_dump(),
            selected_value=reduce_sample(values, value_weights, settings.statistical_method, summary),
            outliers_removed=removed,
        )

    @staticmethod
    def _premium_analysis(
        selected: Sequence[Tuple[PrecedentTransaction, float]],
        weights: Sequence[float],
        method: StatisticalMethod,
        warnings: List[ValuationWarning],
    ) -> Optional[PremiumAnalysis]:
        premiums: List[float] = []
        premium_weights: List[float] = []
        by_type: Dict[str, Tuple[List[float], List[float]]] = defaultdict(lambda: ([], []))
        for (txn, _), weight in zip(selected, weights):
            premium = txn.financials.premium_to_last_close
            if premium is None:
                continue
            premiums.append(premium)
            premium_weights.append(weight)
            group_values, group_weights = by_type[txn.acquirer.type.value]
            group_values.append(premium)
            group_weights.append(weight)
        if not premiums:
            warnings.append(
                ValuationWarning(code="NoPremiumData", message="No transaction reports a premium to last close")
            )
            return None

        summary = summarize(premiums)
        return PremiumAnalysis(
            average_control_premium=summary.mean,
            median_control_premium=summary.median,
            selected_control_premium=reduce_sample(premiums, premium_weights, method, summary),
            min_premium=summary.min,
            max_premium=summary.max,
            premium_by_acquirer_type={
                acquirer_type: reduce_sample(group_values, group_weights, method)
                for acquirer_type, (group_values, group_weights) in sorted(by_type.items())
            },
            transactions_with_premium=len(premiums),
        )

    @staticmethod
    def _implied_valuation(
        target: PrecedentTarget,
        multiples: Dict[str, MultipleStatistic],
        settings: PrecedentAnalysisSettings,
        warnings: List[ValuationWarning],
    ) -> ImpliedValuation:
        adjustment = settings.control_premium_adjustment
        offer_price = target.market_cap * (1 + adjustment)
        ev_ebitda = multiples.get(MultipleName.EV_EBITDA.value)
        if ev_ebitda is None:
            warnings.append(
                ValuationWarning(
                    code="NoImpliedValuation",
                    metric=MultipleName.EV_EBITDA.value,
                    message="Implied enterprise value needs an EV/EBITDA multiple",
                )
            )
            return ImpliedValuation(
                enterprise_value=None,
                enterprise_value_low=None,
                enterprise_value_high=None,
                equity_value=None,
                implied_premium=adjustment,
                implied_offer_price=offer_price,
            )
        enterprise_value = ev_ebitda.selected_value * target.ebitda
        return ImpliedValuation(
            enterprise_value=enterprise_value,
            enterprise_value_low=ev_ebitda.percentile25 * target.ebitda,
            enterprise_value_high=ev_ebitda.percentile75 * target.ebitda,
            equity_value=enterprise_value - target.net_debt(),
            implied_premium=adjustment,
            implied_offer_price=offer_price,
        )
