from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, conint

from .models.common import FinancialSnapshot
from .models.comparables import ComparableAnalysisSettings, ComparableCompany, SelectionCriteria
from .models.precedents import (
    PrecedentAnalysisSettings,
    PrecedentTarget,
    PrecedentTransaction,
    TransactionFilters,
)
from .models.rpr import RevenueProjection, RevenueScenario, RPRAnalysisResult, RPRStructure, ScenarioAnalysisResult


class NPVRequest(BaseModel):
    rate: float
    cash_flows: List[float] = Field(..., min_length=1)


class NPVResponse(BaseModel):
    npv: float


class IRRRequest(BaseModel):
    cash_flows: List[float] = Field(..., min_length=2)


class IRRResponse(BaseModel):
    irr: float
    npv_at_irr: float


class SampleRequest(BaseModel):
    sample: List[float]


class OutlierRequest(BaseModel):
    sample: List[float]
    threshold: Optional[float] = Field(default=None, gt=0)


class OutlierResponse(BaseModel):
    kept: List[float]
    removed: List[float]
    threshold: float


class ComparableValuationRequest(BaseModel):
    target: FinancialSnapshot
    comparables: List[ComparableCompany] = Field(..., min_length=1)
    settings: ComparableAnalysisSettings = Field(default_factory=ComparableAnalysisSettings)
    selection_criteria: Optional[SelectionCriteria] = None


class PrecedentValuationRequest(BaseModel):
    target: PrecedentTarget
    transactions: List[PrecedentTransaction] = Field(..., min_length=1)
    as_of: date = Field(..., description="Reference date for transaction ages")
    settings: PrecedentAnalysisSettings = Field(default_factory=PrecedentAnalysisSettings)
    filters: TransactionFilters = Field(default_factory=TransactionFilters)


class RPRAnalysisRequest(BaseModel):
    structure: RPRStructure
    projection: RevenueProjection
    initial_investment: float = Field(..., gt=0)
    discount_rate: float = Field(..., gt=-1)
    exercised_extensions: conint(ge=0) = 0
    scenarios: List[RevenueScenario] = Field(default_factory=list)


class RPRAnalysisResponse(BaseModel):
    result: RPRAnalysisResult
    scenario_analysis: Optional[ScenarioAnalysisResult] = None
