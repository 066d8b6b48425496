"""Execution log endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from jobwarden.api.responses import envelope
from jobwarden.dependencies import Config, Orchestrator
from jobwarden.schemas.log import JobLogQuery

router = APIRouter()


@router.get("/logs")
async def list_logs(
    orchestrator: Orchestrator,
    query: Annotated[JobLogQuery, Query()],
) -> JSONResponse:
    return envelope(await orchestrator.get_job_logs(query))


@router.delete("/logs")
async def clear_logs(
    orchestrator: Orchestrator,
    query: Annotated[JobLogQuery, Query()],
) -> JSONResponse:
    """Delete log entries matching the filters (every entry when no filter is given)."""
    return envelope(await orchestrator.clear_job_logs(None if query.is_empty() else query))


@router.delete("/logs/expired")
async def clear_expired_logs(
    orchestrator: Orchestrator,
    config: Config,
    days_to_keep: int | None = Query(default=None, ge=0),
) -> JSONResponse:
    days = days_to_keep if days_to_keep is not None else config.storage.log_retention_days
    return envelope(await orchestrator.clear_expired_logs(days))
