from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import structlog

from ..errors import InvalidInvestment, InvalidStepDownSchedule, InvalidTerm, NoConvergence
from ..models.common import ValuationWarning
from ..models.rpr import (
    AnnualCashFlowRecord,
    HurdleImpact,
    RevenueBase,
    RevenueProjection,
    RevenueScenario,
    RPRAnalysisResult,
    RPRStructure,
    ScenarioAnalysisResult,
    ScenarioOutcome,
)
from .solver import IRRSolver, npv


logger = structlog.get_logger(__name__)


class RevenueParticipationEngine:
    """Projects investor cash flows under a revenue participation rights deal.

    The per-year series is built in a fixed order: step-down rates, optional
    performance adjustments, the revenue hurdle, the return floor at maturity
    and finally the return cap, which is a ceiling on the total paid.
    """

    def __init__(self, solver: Optional[IRRSolver] = None) -> None:
        self.solver = solver or IRRSolver()

    def analyze(
        self,
        structure: RPRStructure,
        projection: RevenueProjection,
        initial_investment: float,
        discount_rate: float,
        exercised_extensions: int = 0,
    ) -> RPRAnalysisResult:
        if initial_investment <= 0:
            raise InvalidInvestment(
                "Initial investment must be positive",
                detail={"initial_investment": initial_investment},
            )
        term = self.term(structure, exercised_extensions)
        if projection.horizon != term:
            raise InvalidTerm(
                f"Revenue projection covers {projection.horizon} years but the term is {term}",
                detail={"projection_years": projection.horizon, "term": term},
            )
        self.validate_step_downs(structure, term)

        warnings: List[ValuationWarning] = []
        revenues = self._revenue_series(structure, projection, warnings)
        rates = self._effective_rates(structure, revenues)
        applied_rates, hurdle_impact = self._apply_hurdle(structure, revenues, rates)
        flows = [revenue * rate for revenue, rate in zip(revenues, applied_rates)]

        floor_top_up = self._floor_top_up(structure, flows, discount_rate)
        if floor_top_up > 0:
            flows[-1] += floor_top_up

        cap_trigger_year = self._apply_cap(structure, flows, initial_investment)
        if cap_trigger_year is not None:
            for index in range(cap_trigger_year - 1, len(flows)):
                applied_rates[index] = flows[index] / revenues[index] if revenues[index] else 0.0

        records: List[AnnualCashFlowRecord] = []
        cumulative = 0.0
        for year, (revenue, rate, cash_flow) in enumerate(zip(revenues, applied_rates, flows), start=1):
            cumulative += cash_flow
            records.append(
                AnnualCashFlowRecord(
                    year=year,
                    company_revenue=revenue,
                    effective_participation_rate=rate,
                    cash_flow=cash_flow,
                    cumulative_cash_flow=cumulative,
                )
            )

        series = [-initial_investment] + flows
        irr_value: Optional[float] = None
        irr_status = "converged"
        try:
            irr_value = self.solver.solve(series)
        except NoConvergence as exc:
            irr_status = NoConvergence.code
            warnings.append(ValuationWarning(code="NoConvergence", message=exc.message))
            logger.warning("rpr_irr_not_converged", structure=structure.name, reason=exc.message)

        result = RPRAnalysisResult(
            annual_cash_flows=records,
            irr=irr_value,
            irr_status=irr_status,
            npv=npv(discount_rate, series),
            return_multiple=sum(cf for cf in flows if cf > 0) / initial_investment,
            total_cash_returns=sum(flows),
            cap_triggered=cap_trigger_year is not None,
            cap_trigger_year=cap_trigger_year,
            floor_triggered=floor_top_up > 0,
            floor_top_up=floor_top_up,
            hurdle_impact=hurdle_impact,
            term=term,
            warnings=warnings,
        )
        logger.info(
            "rpr_analysis_completed",
            structure=structure.name,
            term=term,
            irr=irr_value,
            return_multiple=result.return_multiple,
            cap_triggered=result.cap_triggered,
            floor_triggered=result.floor_triggered,
        )
        return result

    def analyze_scenarios(
        self,
        structure: RPRStructure,
        scenarios: Sequence[RevenueScenario],
        initial_investment: float,
        discount_rate: float,
        exercised_extensions: int = 0,
    ) -> ScenarioAnalysisResult:
        outcomes: List[ScenarioOutcome] = []
        for scenario in scenarios:
            result = self.analyze(structure, scenario.projection, initial_investment, discount_rate, exercised_extensions)
            outcomes.append(
                ScenarioOutcome(
                    name=scenario.name,
                    probability=scenario.probability,
                    irr=result.irr,
                    return_multiple=result.return_multiple,
                    total_cash_returns=result.total_cash_returns,
                    cap_triggered=result.cap_triggered,
                )
            )
        total_probability = sum(outcome.probability for outcome in outcomes)
        if total_probability <= 0:
            return ScenarioAnalysisResult(
                scenarios=outcomes,
                expected_return_multiple=None,
                expected_total_cash_returns=None,
            )
        return ScenarioAnalysisResult(
            scenarios=outcomes,
            expected_return_multiple=sum(o.probability * o.return_multiple for o in outcomes) / total_probability,
            expected_total_cash_returns=sum(o.probability * o.total_cash_returns for o in outcomes) / total_probability,
        )

    @staticmethod
    def term(structure: RPRStructure, exercised_extensions: int = 0) -> int:
        options = structure.term_structure.extension_options
        if exercised_extensions < 0 or exercised_extensions > options.number_of_extensions:
            raise InvalidTerm(
                f"Cannot exercise {exercised_extensions} extensions; "
                f"the structure grants {options.number_of_extensions}",
                detail={"exercised_extensions": exercised_extensions},
            )
        return structure.term_structure.initial_term + exercised_extensions * options.extension_period

    @staticmethod
    def validate_step_downs(structure: RPRStructure, term: int) -> None:
        previous_year = 0
        previous_rate = structure.participation_rate
        for step in structure.step_downs:
            if step.year <= previous_year:
                raise InvalidStepDownSchedule(
                    "Step-down years must be strictly increasing and start at year 1",
                    detail={"year": step.year, "previous_year": previous_year},
                )
            if step.year > term:
                raise InvalidStepDownSchedule(
                    f"Step-down in year {step.year} falls after the {term}-year term",
                    detail={"year": step.year, "term": term},
                )
            if not 0 < step.new_participation_rate <= previous_rate:
                raise InvalidStepDownSchedule(
                    "Step-downs must lower the participation rate and keep it positive",
                    detail={"year": step.year, "rate": step.new_participation_rate, "previous_rate": previous_rate},
                )
            previous_year = step.year
            previous_rate = step.new_participation_rate

    @staticmethod
    def _revenue_series(
        structure: RPRStructure,
        projection: RevenueProjection,
        warnings: List[ValuationWarning],
    ) -> List[float]:
        for base, series in projection.breakdown.items():
            if len(series) != projection.horizon:
                raise InvalidTerm(
                    f"{base.value} revenue covers {len(series)} years, expected {projection.horizon}",
                    detail={"revenue_base": base.value},
                )
        base = structure.revenue_base
        if base == RevenueBase.GROSS:
            return list(projection.revenues)
        if base in projection.breakdown:
            return list(projection.breakdown[base])
        warnings.append(
            ValuationWarning(
                code="RevenueBaseFallback",
                metric=base.value,
                message=f"No {base.value} revenue series supplied; using gross revenue",
            )
        )
        return list(projection.revenues)

    @staticmethod
    def _effective_rates(structure: RPRStructure, revenues: Sequence[float]) -> List[float]:
        triggers = sorted(structure.performance_triggers, key=lambda t: t.revenue_growth_threshold)
        rates: List[float] = []
        for year in range(1, len(revenues) + 1):
            rate = structure.participation_rate
            for step in structure.step_downs:
                if step.year <= year:
                    rate = step.new_participation_rate
            if structure.performance_adjustments_enabled and year > 1 and revenues[year - 2] > 0:
                growth = revenues[year - 1] / revenues[year - 2] - 1
                factor = 1.0
                for trigger in triggers:
                    if growth >= trigger.revenue_growth_threshold:
                        factor = trigger.adjustment_factor
                rate = min(1.0, rate * factor)
            rates.append(rate)
        return rates

    @staticmethod
    def _apply_hurdle(
        structure: RPRStructure,
        revenues: Sequence[float],
        rates: Sequence[float],
    ) -> Tuple[List[float], Optional[HurdleImpact]]:
        hurdle = structure.revenue_hurdle
        if not hurdle.enabled:
            return list(rates), None

        applied: List[float] = []
        cumulative_revenue = 0.0
        crossing_year: Optional[int] = None
        years_below = 0
        forgone = 0.0
        for year, (revenue, rate) in enumerate(zip(revenues, rates), start=1):
            cumulative_revenue += revenue
            if crossing_year is not None:
                applied.append(rate)
            elif cumulative_revenue < hurdle.hurdle_amount:
                applied.append(0.0)
                years_below += 1
                forgone += revenue * rate
            else:
                # the crossing year pays the catch-up rate once
                crossing_year = year
                applied.append(hurdle.catch_up_rate)
        return applied, HurdleImpact(
            years_below_hurdle=years_below,
            forgone_cash_flow=forgone,
            crossing_year=crossing_year,
        )

    @staticmethod
    def _floor_top_up(structure: RPRStructure, flows: Sequence[float], discount_rate: float) -> float:
        floor = structure.return_floor
        if not floor.enabled or not flows:
            return 0.0
        horizon = len(flows)
        growth = (1 + discount_rate) ** horizon
        present_value = npv(discount_rate, [0.0] + list(flows))
        guaranteed_value = floor.guaranteed_amount / growth
        if present_value >= guaranteed_value:
            return 0.0
        return (guaranteed_value - present_value) * growth

    @staticmethod
    def _apply_cap(structure: RPRStructure, flows: List[float], initial_investment: float) -> Optional[int]:
        """Clip ``flows`` in place; returns the year the cap was hit."""
        cap = structure.return_cap
        limit = cap.limit(initial_investment) if cap.enabled else None
        if limit is None:
            return None
        cumulative = 0.0
        trigger_year: Optional[int] = None
        for index, cash_flow in enumerate(flows):
            if trigger_year is not None:
                flows[index] = 0.0
                continue
            if cumulative + cash_flow > limit:
                flows[index] = limit - cumulative
                trigger_year = index + 1
            cumulative += flows[index]
        return trigger_year
