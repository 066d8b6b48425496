"""
Startup reconciler.

The engine starts empty on every process start. This pass replays the
orchestrator's scheduling step for every stored job that should be live
(enabled and not paused) and is not already known to the engine. Running
it twice never duplicates a trigger.
"""

from typing import TYPE_CHECKING

from pydantic import BaseModel

from jobwarden.core.logging import get_logger
from jobwarden.schemas.job import JobStatus

if TYPE_CHECKING:
    from jobwarden.services.orchestrator import JobOrchestrator

logger = get_logger(__name__)


class ReconcileResult(BaseModel):
    """Counts from one reconciliation pass."""

    scheduled: int = 0
    skipped: int = 0
    failed: int = 0


class StartupReconciler:
    """Bridges stored job definitions into a fresh engine."""

    def __init__(self, orchestrator: "JobOrchestrator") -> None:
        self.orchestrator = orchestrator
        self.store = orchestrator.store
        self.engine = orchestrator.engine

    async def reconcile(self) -> ReconcileResult:
        result = ReconcileResult()
        jobs = await self.store.get_all_jobs()

        for job in jobs:
            if not job.is_enabled or job.status == JobStatus.PAUSED:
                result.skipped += 1
                continue

            async with self.orchestrator.lock_for(job.key):
                try:
                    if await self.engine.get_triggers(job.key):
                        result.skipped += 1
                        continue
                    await self.orchestrator.schedule_from_store(job)
                    result.scheduled += 1
                except Exception as e:
                    result.failed += 1
                    logger.bind(job=str(job.key), error=str(e)).error("reconcile_job_failed")

        logger.bind(
            total=len(jobs),
            scheduled=result.scheduled,
            skipped=result.skipped,
            failed=result.failed,
        ).info("startup_reconciliation_complete")
        return result
