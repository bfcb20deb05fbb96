from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from ..errors import InsufficientData
from ..models.common import FinancialSnapshot, MultipleName, MultipleStatistic, ValuationWarning
from ..models.comparables import (
    ComparableAnalysisSettings,
    ComparableCompany,
    ComparableMultiples,
    ComparableValuationResult,
    SelectionCriteria,
)
from .statistics import filter_outliers, summarize


logger = structlog.get_logger(__name__)

# multiple -> (numerator field, denominator field)
TRADING_MULTIPLES: Dict[MultipleName, Tuple[str, str]] = {
    MultipleName.EV_REVENUE: ("enterprise_value", "revenue"),
    MultipleName.EV_EBITDA: ("enterprise_value", "ebitda"),
    MultipleName.EV_EBIT: ("enterprise_value", "ebit"),
    MultipleName.PE_RATIO: ("market_cap", "net_income"),
}
REQUIRED_MULTIPLES = {MultipleName.EV_REVENUE, MultipleName.EV_EBITDA}


def enterprise_value_warning(
    snapshot: FinancialSnapshot,
    subject: str,
    tolerance: float,
) -> Optional[ValuationWarning]:
    gap = snapshot.enterprise_value_gap()
    if gap is None or gap <= tolerance:
        return None
    return ValuationWarning(
        code="InconsistentEnterpriseValue",
        subject=subject,
        message=f"Enterprise value differs from market cap + debt - cash by {gap:.1%}",
    )


class ComparableCompanyValuator:
    def __init__(self, enterprise_value_tolerance: float = 0.05) -> None:
        self.enterprise_value_tolerance = enterprise_value_tolerance

    def run(
        self,
        target: FinancialSnapshot,
        comparables: Sequence[ComparableCompany],
        settings: Optional[ComparableAnalysisSettings] = None,
        criteria: Optional[SelectionCriteria] = None,
    ) -> ComparableValuationResult:
        settings = settings or ComparableAnalysisSettings()
        warnings: List[ValuationWarning] = []
        if not comparables:
            raise InsufficientData("At least one comparable company is required")

        selected = self._screen(comparables, criteria, warnings)
        if not selected:
            raise InsufficientData(
                "No comparable company passed the selection criteria",
                detail={"comparables": len(comparables)},
            )

        for subject, snapshot in [("target", target)] + [(comp.ticker, comp.financials) for comp in selected]:
            warning = enterprise_value_warning(snapshot, subject, self.enterprise_value_tolerance)
            if warning is not None:
                warnings.append(warning)

        per_company: Dict[str, Dict[str, float]] = {comp.ticker: {} for comp in selected}
        multiples: Dict[str, MultipleStatistic] = {}
        for metric, (numerator_field, denominator_field) in TRADING_MULTIPLES.items():
            if metric not in REQUIRED_MULTIPLES and not any(
                getattr(comp.financials, denominator_field) > 0 for comp in selected
            ):
                continue
            sample: List[float] = []
            for comp in selected:
                numerator = getattr(comp.financials, numerator_field)
                denominator = getattr(comp.financials, denominator_field)
                if denominator <= 0 or numerator <= 0:
                    warnings.append(
                        ValuationWarning(
                            code="InvalidComparable",
                            subject=comp.ticker,
                            metric=metric.value,
                            message=f"{comp.name} has non-positive {numerator_field} or {denominator_field}",
                        )
                    )
                    continue
                value = numerator / denominator
                sample.append(value)
                per_company[comp.ticker][metric.value] = value
            if not sample:
                warnings.append(
                    ValuationWarning(
                        code="MultipleOmitted",
                        metric=metric.value,
                        message=f"No comparable has a usable {metric.value} multiple",
                    )
                )
                continue
            multiples[metric.value] = self._statistic(sample, settings)

        implied_values = self._implied_values(target, multiples, warnings)
        implied_ev = implied_values.get(MultipleName.EV_EBITDA.value)
        implied_equity = implied_ev - target.net_debt() if implied_ev is not None else None

        logger.info(
            "comparable_valuation_completed",
            comparables_used=len(selected),
            multiples=sorted(multiples),
            warnings=len(warnings),
        )
        return ComparableValuationResult(
            multiples=multiples,
            implied_enterprise_value=implied_ev,
            implied_equity_value=implied_equity,
            implied_values=implied_values,
            selected_comparables=[
                ComparableMultiples(name=comp.name, ticker=comp.ticker, multiples=per_company[comp.ticker])
                for comp in selected
            ],
            comparables_used=len(selected),
            confidence_level=settings.confidence_level,
            warnings=warnings,
        )

    def _screen(
        self,
        comparables: Sequence[ComparableCompany],
        criteria: Optional[SelectionCriteria],
        warnings: List[ValuationWarning],
    ) -> List[ComparableCompany]:
        if criteria is None:
            return list(comparables)
        selected: List[ComparableCompany] = []
        for comp in comparables:
            reason = self._exclusion_reason(comp, criteria)
            if reason is None:
                selected.append(comp)
                continue
            logger.debug("comparable_excluded", ticker=comp.ticker, reason=reason)
            warnings.append(ValuationWarning(code="ExcludedComparable", subject=comp.ticker, message=reason))
        return selected

    @staticmethod
    def _exclusion_reason(comp: ComparableCompany, criteria: SelectionCriteria) -> Optional[str]:
        revenue = comp.financials.revenue
        if criteria.min_revenue is not None and revenue < criteria.min_revenue:
            return f"Revenue {revenue:,.0f} below minimum {criteria.min_revenue:,.0f}"
        if criteria.max_revenue is not None and revenue > criteria.max_revenue:
            return f"Revenue {revenue:,.0f} above maximum {criteria.max_revenue:,.0f}"
        if criteria.geographic_focus and comp.geography not in criteria.geographic_focus:
            return f"Geography {comp.geography!r} outside focus"
        if (
            criteria.minimum_liquidity_score is not None
            and comp.quality_metrics.liquidity_score < criteria.minimum_liquidity_score
        ):
            return f"Liquidity score {comp.quality_metrics.liquidity_score} below minimum"
        return None

    @staticmethod
    def _statistic(sample: List[float], settings: ComparableAnalysisSettings) -> MultipleStatistic:
        kept = sample
        if settings.include_outlier_analysis:
            kept = filter_outliers(sample, settings.outlier_threshold)
        summary = summarize(kept)
        return MultipleStatistic(
            **summary.model_dump(),
            selected_value=summary.median,
            outliers_removed=len(sample) - len(kept),
        )

    @staticmethod
    def _implied_values(
        target: FinancialSnapshot,
        multiples: Dict[str, MultipleStatistic],
        warnings: List[ValuationWarning],
    ) -> Dict[str, float]:
        implied: Dict[str, float] = {}
        for metric, (_, denominator_field) in TRADING_MULTIPLES.items():
            statistic = multiples.get(metric.value)
            if statistic is None:
                if metric == MultipleName.EV_EBITDA:
                    warnings.append(
                        ValuationWarning(
                            code="NoImpliedValuation",
                            metric=metric.value,
                            message="Implied enterprise value needs an EV/EBITDA multiple",
                        )
                    )
                continue
            target_metric = getattr(target, denominator_field)
            if target_metric <= 0:
                warnings.append(
                    ValuationWarning(
                        code="NonPositiveTargetMetric",
                        subject="target",
                        metric=metric.value,
                        message=f"Target {denominator_field} is {target_metric:,.0f}",
                    )
                )
            implied[metric.value] = target_metric * statistic.selected_value
        return implied
