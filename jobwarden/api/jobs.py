"""Job definition and job control endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from jobwarden.api.responses import envelope
from jobwarden.dependencies import Orchestrator
from jobwarden.schemas.job import DEFAULT_GROUP, JobDefinition, JobKey, JobQuery

router = APIRouter()


class JobKeyRequest(BaseModel):
    job_name: str
    job_group: str = DEFAULT_GROUP


class BatchDeleteRequest(BaseModel):
    """Request body for deleting several jobs at once."""

    jobs: list[JobKeyRequest] = Field(min_length=1)


@router.get("/jobs")
async def list_jobs(
    orchestrator: Orchestrator,
    query: Annotated[JobQuery, Query()],
) -> JSONResponse:
    """List jobs with filtering, sorting and paging."""
    return envelope(await orchestrator.get_jobs(query))


@router.get("/jobs/all")
async def list_all_jobs(orchestrator: Orchestrator) -> JSONResponse:
    return envelope(await orchestrator.get_all_jobs())


@router.get("/jobs/classes")
async def list_job_classes(orchestrator: Orchestrator) -> JSONResponse:
    """Registered class-kind job names usable as `job_target`."""
    return envelope(await orchestrator.get_job_classes())


@router.get("/jobs/next-run-times")
async def preview_next_run_times(
    orchestrator: Orchestrator,
    cron: str = Query(description="Quartz cron expression"),
    count: int = Query(default=5, ge=1, le=50),
) -> JSONResponse:
    return envelope(await orchestrator.get_next_run_times(cron, count))


@router.post("/jobs")
async def create_job(orchestrator: Orchestrator, job: JobDefinition) -> JSONResponse:
    return envelope(await orchestrator.add_job(job))


@router.put("/jobs")
async def update_job(orchestrator: Orchestrator, job: JobDefinition) -> JSONResponse:
    return envelope(await orchestrator.update_job(job))


@router.post("/jobs/batch-delete")
async def batch_delete_jobs(orchestrator: Orchestrator, request: BatchDeleteRequest) -> JSONResponse:
    keys = [JobKey(j.job_name, j.job_group) for j in request.jobs]
    return envelope(await orchestrator.batch_delete_jobs(keys))


@router.get("/jobs/{job_group}/{job_name}")
async def get_job(orchestrator: Orchestrator, job_group: str, job_name: str) -> JSONResponse:
    return envelope(await orchestrator.get_job_detail(JobKey(job_name, job_group)))


@router.delete("/jobs/{job_group}/{job_name}")
async def delete_job(orchestrator: Orchestrator, job_group: str, job_name: str) -> JSONResponse:
    return envelope(await orchestrator.delete_job(JobKey(job_name, job_group)))


@router.post("/jobs/{job_group}/{job_name}/pause")
async def pause_job(orchestrator: Orchestrator, job_group: str, job_name: str) -> JSONResponse:
    return envelope(await orchestrator.pause_job(JobKey(job_name, job_group)))


@router.post("/jobs/{job_group}/{job_name}/resume")
async def resume_job(orchestrator: Orchestrator, job_group: str, job_name: str) -> JSONResponse:
    return envelope(await orchestrator.resume_job(JobKey(job_name, job_group)))


@router.post("/jobs/{job_group}/{job_name}/trigger")
async def trigger_job(orchestrator: Orchestrator, job_group: str, job_name: str) -> JSONResponse:
    """Fire the job once, now (paused jobs included)."""
    return envelope(await orchestrator.trigger_job(JobKey(job_name, job_group)))


@router.post("/jobs/{job_group}/{job_name}/refresh-run-times")
async def refresh_run_times(orchestrator: Orchestrator, job_group: str, job_name: str) -> JSONResponse:
    return envelope(await orchestrator.update_execution_times(JobKey(job_name, job_group)))
