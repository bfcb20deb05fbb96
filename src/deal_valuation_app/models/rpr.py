from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, confloat, conint

from .common import ValuationWarning


class RevenueBase(str, Enum):
    GROSS = "gross"
    NET = "net"
    RECURRING = "recurring"
    PRODUCT_SPECIFIC = "product_specific"


class ReturnCap(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    cap_multiple: Optional[float] = Field(default=None, gt=0, description="Multiple of the initial investment")
    cap_amount: Optional[float] = Field(default=None, gt=0, description="Absolute ceiling on total payments")

    def limit(self, initial_investment: float) -> Optional[float]:
        """The tighter of the multiple-based and absolute ceilings."""
        limits = []
        if self.cap_multiple is not None:
            limits.append(initial_investment * self.cap_multiple)
        if self.cap_amount is not None:
            limits.append(self.cap_amount)
        return min(limits) if limits else None


class ReturnFloor(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    floor_rate: float = 0.0
    guaranteed_amount: float = Field(0.0, ge=0, description="Minimum payment, measured at maturity")


class RevenueHurdle(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    hurdle_amount: float = Field(0.0, ge=0, description="Cumulative revenue that must be reached before payments start")
    catch_up_rate: confloat(ge=0, le=1) = 0.0


class ExtensionOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    number_of_extensions: conint(ge=0) = 0
    extension_period: conint(ge=0) = 0
    extension_conditions: List[str] = Field(default_factory=list)


class EarlyTermination(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    buyout_multiple: float = 0.0
    notice_period: int = Field(0, description="Months")


class TermStructure(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial_term: conint(ge=1)
    extension_options: ExtensionOptions = Field(default_factory=ExtensionOptions)
    early_termination: EarlyTermination = Field(default_factory=EarlyTermination)


class StepDown(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    new_participation_rate: float


class PerformanceTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    revenue_growth_threshold: float
    adjustment_factor: float = Field(..., gt=0)


class RPRStructure(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "Revenue Participation Rights"
    participation_rate: confloat(gt=0, le=1)
    revenue_base: RevenueBase = RevenueBase.GROSS
    return_cap: ReturnCap = Field(default_factory=ReturnCap)
    return_floor: ReturnFloor = Field(default_factory=ReturnFloor)
    revenue_hurdle: RevenueHurdle = Field(default_factory=RevenueHurdle)
    term_structure: TermStructure
    step_downs: List[StepDown] = Field(default_factory=list, description="Ordered by year")
    performance_adjustments_enabled: bool = False
    performance_triggers: List[PerformanceTrigger] = Field(default_factory=list)


class RevenueProjection(BaseModel):
    model_config = ConfigDict(frozen=True)

    revenues: List[float] = Field(..., description="Gross revenue per projection year")
    breakdown: Dict[RevenueBase, List[float]] = Field(
        default_factory=dict,
        description="Optional per-base series (net, recurring, product_specific)",
    )

    @property
    def horizon(self) -> int:
        return len(self.revenues)


class AnnualCashFlowRecord(BaseModel):
    year: int
    company_revenue: float
    effective_participation_rate: float = Field(
        ...,
        description=(
            "Rate behind cash_flow; from the cap year on it is the clipped cash flow over revenue."
            " An uncapped final year carries any floor top-up on top of this rate"
        ),
    )
    cash_flow: float
    cumulative_cash_flow: float


class HurdleImpact(BaseModel):
    years_below_hurdle: int
    forgone_cash_flow: float
    crossing_year: Optional[int]


class RPRAnalysisResult(BaseModel):
    annual_cash_flows: List[AnnualCashFlowRecord]
    irr: Optional[float]
    irr_status: str = Field(..., description="'converged' or 'no_convergence'")
    npv: float
    return_multiple: float
    total_cash_returns: float
    cap_triggered: bool
    cap_trigger_year: Optional[int] = None
    floor_triggered: bool
    floor_top_up: float = 0.0
    hurdle_impact: Optional[HurdleImpact] = None
    term: int
    warnings: List[ValuationWarning] = Field(default_factory=list)


class RevenueScenario(BaseModel):
    name: str
    projection: RevenueProjection
    probability: confloat(ge=0, le=1) = 0.0


class ScenarioOutcome(BaseModel):
    name: str
    probability: float
    irr: Optional[float]
    return_multiple: float
    total_cash_returns: float
    cap_triggered: bool


class ScenarioAnalysisResult(BaseModel):
    scenarios: List[ScenarioOutcome]
    expected_return_multiple: Optional[float]
    expected_total_cash_returns: Optional[float]
