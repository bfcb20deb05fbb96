from __future__ import annotations

from typing import Any, Optional


class CalculationError(Exception):
    """Base class for fatal calculation failures.

    Per-item problems (a bad comparable, an unusable transaction) are never
    raised; they are collected as ``ValuationWarning`` records instead.
    """

    code = "calculation_error"

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class EmptySample(CalculationError):
    code = "empty_sample"


class InsufficientData(CalculationError):
    code = "insufficient_data"


class InvalidRate(CalculationError):
    code = "invalid_rate"


class NoConvergence(CalculationError):
    code = "no_convergence"


class InvalidTerm(CalculationError):
    code = "invalid_term"


class InvalidStepDownSchedule(CalculationError):
    code = "invalid_step_down_schedule"


class InvalidInvestment(CalculationError):
    code = "invalid_investment"
