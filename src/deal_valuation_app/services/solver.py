from __future__ import annotations

from typing import Sequence

import structlog

from ..errors import InvalidRate, NoConvergence


logger = structlog.get_logger(__name__)

DEFAULT_INITIAL_GUESS = 0.1
DEFAULT_TOLERANCE = 1e-6
DEFAULT_RATE_TOLERANCE = 1e-12
DEFAULT_MAX_ITERATIONS = 100
DEFAULT_LOWER_BOUND = -0.99
DEFAULT_UPPER_BOUND = 10.0


def npv(rate: float, cash_flows: Sequence[float]) -> float:
    """Net present value of annual cash flows, the first one at t=0."""
    if rate <= -1:
        raise InvalidRate(f"Discount rate must be greater than -100%, got {rate:.4f}", detail={"rate": rate})
    base = 1 + rate
    return sum(cf / base**t for t, cf in enumerate(cash_flows))


def _npv_slope(rate: float, cash_flows: Sequence[float]) -> float:
    base = 1 + rate
    return sum(-t * cf / base ** (t + 1) for t, cf in enumerate(cash_flows) if t)


class IRRSolver:
    """Newton-Raphson IRR search with a bracketed bisection fallback."""

    def __init__(
        self,
        initial_guess: float = DEFAULT_INITIAL_GUESS,
        tolerance: float = DEFAULT_TOLERANCE,
        rate_tolerance: float = DEFAULT_RATE_TOLERANCE,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        lower_bound: float = DEFAULT_LOWER_BOUND,
        upper_bound: float = DEFAULT_UPPER_BOUND,
    ) -> None:
        if lower_bound <= -1 or lower_bound >= upper_bound:
            raise InvalidRate(
                "IRR bracket must satisfy -1 < lower_bound < upper_bound",
                detail={"lower_bound": lower_bound, "upper_bound": upper_bound},
            )
        self.initial_guess = initial_guess
        self.tolerance = tolerance
        self.rate_tolerance = rate_tolerance
        self.max_iterations = max_iterations
        self.lower_bound = lower_bound
        self.upper_bound = upper_bound

    def solve(self, cash_flows: Sequence[float]) -> float:
        flows = [float(cf) for cf in cash_flows]
        if not any(cf > 0 for cf in flows) or not any(cf < 0 for cf in flows):
            raise NoConvergence(
                "Cash flows need both positive and negative values to have an IRR",
                detail={"periods": len(flows)},
            )

        rate = self.initial_guess
        if self.lower_bound <= rate <= self.upper_bound:
            for iteration in range(self.max_iterations):
                value = npv(rate, flows)
                if abs(value) < self.tolerance:
                    logger.debug("irr_solved", method="newton", iterations=iteration, rate=rate)
                    return rate
                slope = _npv_slope(rate, flows)
                if slope == 0:
                    break
                step = value / slope
                rate = rate - step
                # NPV of very large flows cannot reach the absolute tolerance; a settled rate is a root.
                if abs(step) < self.rate_tolerance:
                    logger.debug("irr_solved", method="newton", iterations=iteration, rate=rate)
                    return rate
                if not self.lower_bound <= rate <= self.upper_bound:
                    break
        return self._bisect(flows)

    def _bisect(self, flows: Sequence[float]) -> float:
        low, high = self.lower_bound, self.upper_bound
        low_value = npv(low, flows)
        high_value = npv(high, flows)
        if abs(low_value) < self.tolerance:
            return low
        if abs(high_value) < self.tolerance:
            return high
        if (low_value < 0) == (high_value < 0):
            raise NoConvergence(
                f"No IRR between {low:.0%} and {high:.0%}",
                detail={"lower_bound": low, "upper_bound": high},
            )
        # Halving the bracket this many times reaches machine precision.
        for iteration in range(self.max_iterations * 4):
            mid = (low + high) / 2
            mid_value = npv(mid, flows)
            if abs(mid_value) < self.tolerance or high - low < self.rate_tolerance:
                logger.debug("irr_solved", method="bisection", iterations=iteration, rate=mid)
                return mid
            if (mid_value < 0) == (low_value < 0):
                low, low_value = mid, mid_value
            else:
                high = mid
        raise NoConvergence(
            "IRR search did not converge",
            detail={"iterations": self.max_iterations * 4, "last_rate": (low + high) / 2},
        )


def irr(cash_flows: Sequence[float]) -> float:
    return IRRSolver().solve(cash_flows)
