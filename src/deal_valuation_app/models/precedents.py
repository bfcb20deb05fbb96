from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from .common import FinancialSnapshot, MultipleStatistic, StatisticalMethod, ValuationWarning


class DealStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    WITHDRAWN = "withdrawn"


class AcquirerType(str, Enum):
    STRATEGIC = "strategic"
    FINANCIAL = "financial"
    HYBRID = "hybrid"


class ConsiderationType(str, Enum):
    CASH = "cash"
    STOCK = "stock"
    MIXED = "mixed"


class ActivityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class IndustryMatch(str, Enum):
    EXACT = "exact"
    SECTOR = "sector"
    BROAD = "broad"


class TransactionParty(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    ticker: Optional[str] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    geography: Optional[str] = None


class Acquirer(TransactionParty):
    type: AcquirerType = AcquirerType.STRATEGIC


class ConsiderationStructure(BaseModel):
    model_config = ConfigDict(frozen=True)

    consideration: ConsiderationType = ConsiderationType.CASH
    cash_percentage: Optional[float] = None
    stock_percentage: Optional[float] = None


class TransactionFinancials(BaseModel):
    """Deal-time financials; multiples left empty are derived from the values."""

    model_config = ConfigDict(frozen=True)

    transaction_value: float
    enterprise_value: float
    equity_value: float = 0.0
    revenue: float = 0.0
    ebitda: float = 0.0
    ebit: float = 0.0
    net_income: float = 0.0
    book_value: float = 0.0
    ev_revenue: Optional[float] = None
    ev_ebitda: Optional[float] = None
    ev_ebit: Optional[float] = None
    pe_ratio: Optional[float] = None
    pb_ratio: Optional[float] = None
    premium_to_last_close: Optional[float] = Field(default=None, description="Percent, e.g. 35.0 for 35%")
    premium_to_20_day_avg: Optional[float] = None
    premium_to_52_week_high: Optional[float] = None


class MarketConditions(BaseModel):
    model_config = ConfigDict(frozen=True)

    stock_market_index: Optional[float] = None
    credit_spreads: Optional[float] = Field(default=None, description="Basis points")
    risk_free_rate: Optional[float] = None
    vix_level: Optional[float] = None
    industry_multiple_median: Optional[float] = None
    mna_activity_level: Optional[ActivityLevel] = None


class PrecedentTransaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    announcement_date: date
    closing_date: Optional[date] = None
    status: DealStatus
    target_company: TransactionParty
    acquirer: Acquirer
    structure: ConsiderationStructure = Field(default_factory=ConsiderationStructure)
    financials: TransactionFinancials
    market_conditions: MarketConditions = Field(default_factory=MarketConditions)
    hostile: bool = False


class PrecedentTarget(FinancialSnapshot):
    sector: Optional[str] = None
    industry: Optional[str] = None


class PrecedentAnalysisSettings(BaseModel):
    include_multiples: List[str] = Field(
        default_factory=lambda: ["ev_revenue", "ev_ebitda", "ev_ebit", "pe_ratio"],
    )
    statistical_method: StatisticalMethod = StatisticalMethod.MEDIAN
    time_weighting: bool = False
    time_decay_factor: float = Field(0.1, ge=0)
    control_premium_adjustment: float = Field(0.0, description="Fraction added to market cap, e.g. 0.3 for 30%")
    outlier_removal: bool = False
    outlier_threshold: float = Field(2.0, gt=0)
    market_condition_adjustment: bool = False
    current_industry_multiple_median: Optional[float] = Field(default=None, gt=0)


class TransactionFilters(BaseModel):
    max_transaction_age: Optional[float] = Field(default=None, ge=0, description="Years")
    min_transaction_value: float = 0.0
    required_status: Set[DealStatus] = Field(
        default_factory=lambda: {DealStatus.COMPLETED, DealStatus.PENDING},
    )
    exclude_hostile_deals: bool = True
    acquirer_types: Set[AcquirerType] = Field(default_factory=set, description="Empty accepts every type")
    industry_match: IndustryMatch = IndustryMatch.BROAD


class PremiumAnalysis(BaseModel):
    average_control_premium: float
    median_control_premium: float
    selected_control_premium: float
    min_premium: float
    max_premium: float
    premium_by_acquirer_type: Dict[str, float]
    transactions_with_premium: int


class ImpliedValuation(BaseModel):
    enterprise_value: Optional[float]
    enterprise_value_low: Optional[float]
    enterprise_value_high: Optional[float]
    equity_value: Optional[float]
    implied_premium: float
    implied_offer_price: float


class TransactionWeight(BaseModel):
    id: str
    age_years: float
    weight: float


class PrecedentValuationResult(BaseModel):
    multiples: Dict[str, MultipleStatistic]
    premium_analysis: Optional[PremiumAnalysis]
    implied_valuation: ImpliedValuation
    transactions_used: int
    total_transactions: int
    average_transaction_age: float
    selected_transactions: List[TransactionWeight]
    statistical_method: StatisticalMethod
    warnings: List[ValuationWarning]
