"""Dashboard statistics endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from jobwarden.api.responses import envelope
from jobwarden.dependencies import Orchestrator
from jobwarden.schemas.stats import StatsQuery

router = APIRouter()

StatsParams = Annotated[StatsQuery, Query()]


@router.get("/stats/jobs")
async def job_stats(orchestrator: Orchestrator, query: StatsParams) -> JSONResponse:
    return envelope(await orchestrator.get_job_stats(query))


@router.get("/stats/status-distribution")
async def status_distribution(orchestrator: Orchestrator, query: StatsParams) -> JSONResponse:
    return envelope(await orchestrator.get_status_distribution(query))


@router.get("/stats/type-distribution")
async def type_distribution(orchestrator: Orchestrator, query: StatsParams) -> JSONResponse:
    return envelope(await orchestrator.get_type_distribution(query))


@router.get("/stats/execution-trend")
async def execution_trend(orchestrator: Orchestrator, query: StatsParams) -> JSONResponse:
    """Hourly success/failure counts over the requested range."""
    return envelope(await orchestrator.get_execution_trend(query))


@router.get("/stats/execution-time")
async def execution_time(orchestrator: Orchestrator, query: StatsParams) -> JSONResponse:
    return envelope(await orchestrator.get_execution_time_histogram(query))
