from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MultipleName(str, Enum):
    EV_REVENUE = "ev_revenue"
    EV_EBITDA = "ev_ebitda"
    EV_EBIT = "ev_ebit"
    PE_RATIO = "pe_ratio"
    PB_RATIO = "pb_ratio"


class StatisticalMethod(str, Enum):
    MEDIAN = "median"
    MEAN = "mean"
    WEIGHTED_MEAN = "weighted_mean"


class FinancialSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    revenue: float
    ebitda: float
    ebit: float = 0.0
    net_income: float = 0.0
    total_assets: float = 0.0
    total_debt: float = 0.0
    market_cap: float = 0.0
    enterprise_value: float = 0.0
    cash: Optional[float] = Field(default=None, description="Cash and equivalents; treated as 0 when absent")

    def net_debt(self) -> float:
        return self.total_debt - (self.cash or 0.0)

    def enterprise_value_gap(self) -> Optional[float]:
        """Relative gap between the stated EV and market cap + debt - cash.

        Only defined when cash, market cap and enterprise value are all
        supplied.
        """
        if self.cash is None or self.market_cap <= 0 or self.enterprise_value <= 0:
            return None
        bridged = self.market_cap + self.total_debt - self.cash
        return abs(self.enterprise_value - bridged) / self.enterprise_value


class ValuationWarning(BaseModel):
    code: str
    message: str
    subject: Optional[str] = Field(default=None, description="Comparable ticker, transaction id or scenario name")
    metric: Optional[str] = None


class SampleSummary(BaseModel):
    count: int
    min: float
    max: float
    mean: float
    median: float
    percentile25: float
    percentile75: float


class MultipleStatistic(SampleSummary):
    selected_value: float
    outliers_removed: int = 0
