from __future__ import annotations

import pytest

from deal_valuation_app.errors import InvalidRate, NoConvergence
from deal_valuation_app.services.solver import IRRSolver, irr, npv


def test_npv_discounts_from_time_zero():
    assert npv(0.1, [-100.0, 110.0]) == pytest.approx(0.0)
    assert npv(0.0, [-100.0, 40.0, 70.0]) == pytest.approx(10.0)


def test_npv_rejects_rate_at_or_below_minus_one():
    with pytest.raises(InvalidRate):
        npv(-1.0, [-100.0, 50.0])


def test_irr_round_trip():
    flows = [-1_000_000, 300_000, 400_000, 500_000, 600_000]
    rate = irr(flows)

    assert rate == pytest.approx(0.2489, abs=1e-3)
    assert abs(npv(rate, flows)) < 1e-6


def test_irr_large_cash_flows():
    small = irr([-1_000_000, 300_000, 400_000, 500_000, 600_000])
    flows = [-1e10, 3e9, 4e9, 5e9, 6e9]

    assert irr(flows) == pytest.approx(small, abs=1e-9)
    assert IRRSolver(initial_guess=20.0).solve(flows) == pytest.approx(small, abs=1e-9)
    # relative to the investment the residual is negligible
    assert abs(npv(irr(flows), flows)) / 1e10 < 1e-9


def test_irr_is_deterministic():
    flows = [-2_500_000, 400_000, 900_000, 1_100_000, 1_300_000]
    assert irr(flows) == irr(flows)


def test_irr_bisection_fallback():
    solver = IRRSolver(initial_guess=20.0)
    rate = solver.solve([-100.0, 150.0])

    assert rate == pytest.approx(0.5, abs=1e-6)


def test_irr_negative_rate():
    rate = irr([-1000.0, 400.0, 400.0])

    assert rate < 0
    assert abs(npv(rate, [-1000.0, 400.0, 400.0])) < 1e-6


@pytest.mark.parametrize(
    "flows",
    [
        [0.0, 0.0, 0.0],
        [100.0, 200.0, 300.0],
        [-100.0, -50.0],
        [],
    ],
)
def test_irr_without_sign_change_does_not_converge(flows):
    with pytest.raises(NoConvergence):
        irr(flows)


def test_irr_outside_bracket_does_not_converge():
    with pytest.raises(NoConvergence):
        irr([-100.0, 1_000_000.0])


def test_solver_rejects_bad_bracket():
    with pytest.raises(InvalidRate):
        IRRSolver(lower_bound=-1.5)
