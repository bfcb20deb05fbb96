from __future__ import annotations

from typing import Callable, Dict

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import get_settings
from .errors import CalculationError
from .models.common import SampleSummary
from .models.comparables import ComparableValuationResult
from .models.precedents import PrecedentValuationResult
from .sample_data import build_sample_comparable_request, build_sample_precedent_request, build_sample_rpr_request
from .schemas import (
    ComparableValuationRequest,
    IRRRequest,
    IRRResponse,
    NPVRequest,
    NPVResponse,
    OutlierRequest,
    OutlierResponse,
    PrecedentValuationRequest,
    RPRAnalysisRequest,
    RPRAnalysisResponse,
    SampleRequest,
)
from .services.comparables import ComparableCompanyValuator
from .services.precedents import PrecedentTransactionValuator
from .services.rpr import RevenueParticipationEngine
from .services.solver import IRRSolver, npv
from .services.statistics import outlier_mask, summarize


logger = structlog.get_logger(__name__)

settings = get_settings()
app = FastAPI(title=settings.app_name, version="0.1.0")

solver = IRRSolver(
    initial_guess=settings.irr_initial_guess,
    tolerance=settings.irr_tolerance,
    rate_tolerance=settings.irr_rate_tolerance,
    max_iterations=settings.irr_max_iterations,
    lower_bound=settings.irr_lower_bound,
    upper_bound=settings.irr_upper_bound,
)
comparable_valuator = ComparableCompanyValuator(enterprise_value_tolerance=settings.enterprise_value_tolerance)
precedent_valuator = PrecedentTransactionValuator(enterprise_value_tolerance=settings.enterprise_value_tolerance)
rpr_engine = RevenueParticipationEngine(solver=solver)

SAMPLES: Dict[str, Callable[[], BaseModel]] = {
    "comparables": build_sample_comparable_request,
    "precedents": build_sample_precedent_request,
    "rpr": build_sample_rpr_request,
}


@app.exception_handler(CalculationError)
async def calculation_error_handler(request: Request, exc: CalculationError) -> JSONResponse:
    logger.warning("calculation_failed", error=exc.code, message=exc.message, path=request.url.path)
    return JSONResponse(
        status_code=422,
        content={"error": exc.code, "message": exc.message, "detail": exc.detail},
    )


@app.post("/solver/npv", response_model=NPVResponse)
def compute_npv(payload: NPVRequest) -> NPVResponse:
    return NPVResponse(npv=npv(payload.rate, payload.cash_flows))


@app.post("/solver/irr", response_model=IRRResponse)
def compute_irr(payload: IRRRequest) -> IRRResponse:
    rate = solver.solve(payload.cash_flows)
    return IRRResponse(irr=rate, npv_at_irr=npv(rate, payload.cash_flows))


@app.post("/statistics/summary", response_model=SampleSummary)
def summarize_sample(payload: SampleRequest) -> SampleSummary:
    return summarize(payload.sample)


@app.post("/statistics/outliers", response_model=OutlierResponse)
def filter_sample(payload: OutlierRequest) -> OutlierResponse:
    threshold = payload.threshold if payload.threshold is not None else settings.default_outlier_threshold
    mask = outlier_mask(payload.sample, threshold)
    return OutlierResponse(
        kept=[value for value, keep in zip(payload.sample, mask) if keep],
        removed=[value for value, keep in zip(payload.sample, mask) if not keep],
        threshold=threshold,
    )


@app.post("/valuations/comparables", response_model=ComparableValuationResult)
def value_comparables(payload: ComparableValuationRequest) -> ComparableValuationResult:
    return comparable_valuator.run(
        payload.target,
        payload.comparables,
        settings=payload.settings,
        criteria=payload.selection_criteria,
    )


@app.post("/valuations/precedents", response_model=PrecedentValuationResult)
def value_precedents(payload: PrecedentValuationRequest) -> PrecedentValuationResult:
    return precedent_valuator.run(
        payload.target,
        payload.transactions,
        as_of=payload.as_of,
        settings=payload.settings,
        filters=payload.filters,
    )


@app.post("/rpr/analysis", response_model=RPRAnalysisResponse)
def analyze_rpr(payload: RPRAnalysisRequest) -> RPRAnalysisResponse:
    result = rpr_engine.analyze(
        payload.structure,
        payload.projection,
        payload.initial_investment,
        payload.discount_rate,
        exercised_extensions=payload.exercised_extensions,
    )
    scenario_analysis = None
    if payload.scenarios:
        scenario_analysis = rpr_engine.analyze_scenarios(
            payload.structure,
            payload.scenarios,
            payload.initial_investment,
            payload.discount_rate,
            exercised_extensions=payload.exercised_extensions,
        )
    return RPRAnalysisResponse(result=result, scenario_analysis=scenario_analysis)


@app.get("/samples/{name}")
def get_sample(name: str) -> dict:
    builder = SAMPLES.get(name)
    if builder is None:
        raise HTTPException(status_code=404, detail=f"Sample {name} not found")
    return builder().model_dump(mode="json")


@app.get("/health")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}
