from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, confloat

from .common import FinancialSnapshot, MultipleStatistic, ValuationWarning


class QualityMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    liquidity_score: float = 0.0
    growth_profile: float = 0.0
    profitability_score: float = 0.0
    business_model: Optional[str] = None
    geographic_exposure: Optional[str] = None


class ComparableCompany(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    ticker: str
    sector: Optional[str] = None
    industry: Optional[str] = None
    geography: Optional[str] = None
    financials: FinancialSnapshot
    quality_metrics: QualityMetrics = Field(default_factory=QualityMetrics)


class SelectionCriteria(BaseModel):
    """Screens applied to the comparable set before any multiple is computed."""

    min_revenue: Optional[float] = None
    max_revenue: Optional[float] = None
    geographic_focus: List[str] = Field(default_factory=list)
    minimum_liquidity_score: Optional[float] = None


class ComparableAnalysisSettings(BaseModel):
    include_outlier_analysis: bool = True
    outlier_threshold: float = Field(2.0, gt=0)
    confidence_level: confloat(gt=0, lt=1) = Field(0.95, description="Reported with the result; not used in any computation")


class ComparableMultiples(BaseModel):
    name: str
    ticker: str
    multiples: Dict[str, float]


class ComparableValuationResult(BaseModel):
    multiples: Dict[str, MultipleStatistic]
    implied_enterprise_value: Optional[float]
    implied_equity_value: Optional[float]
    implied_values: Dict[str, float] = Field(
        default_factory=dict,
        description="Target metric x selected multiple; EV for EV multiples, equity value for P/E",
    )
    selected_comparables: List[ComparableMultiples]
    comparables_used: int
    confidence_level: float
    warnings: List[ValuationWarning]
