"""Scheduling engine control endpoints."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from jobwarden.api.responses import envelope
from jobwarden.dependencies import Orchestrator

router = APIRouter()


@router.get("/scheduler/status")
async def scheduler_status(orchestrator: Orchestrator) -> JSONResponse:
    return envelope(await orchestrator.get_scheduler_status())


@router.post("/scheduler/start")
async def start_scheduler(orchestrator: Orchestrator) -> JSONResponse:
    """Start the engine and reconcile it with the stored jobs."""
    return envelope(await orchestrator.start_scheduler())


@router.post("/scheduler/shutdown")
async def shutdown_scheduler(orchestrator: Orchestrator) -> JSONResponse:
    return envelope(await orchestrator.shutdown_scheduler())


@router.post("/scheduler/clear")
async def clear_scheduler(orchestrator: Orchestrator) -> JSONResponse:
    """Drop every engine registration. Stored jobs are kept."""
    return envelope(await orchestrator.clear_all_jobs())
