"""
Job orchestrator.

Keeps the durable store and the memory-only scheduling engine consistent.
The store is the source of truth; every engine registration can be
re-derived from a stored definition (`schedule_from_store`), which is also
what the startup reconciler replays after a restart.

Observed job states:
    Unregistered  in the store, unknown to the engine
    Scheduled     in the engine, status Normal
    Paused        in the engine but paused, next_run_time cleared
    Running       mid-firing (visible only through the engine and the logs)

Every public operation returns an ApiResponse envelope. Mutations of one
identity are serialized with a per-identity asyncio.Lock.
"""

import asyncio
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime
from urllib.parse import urlparse

from jobwarden.core.datetime_utils import to_display_time, utc_now
from jobwarden.core.errors import JobNotFoundError, JobValidationError
from jobwarden.core.logging import get_logger
from jobwarden.engine.base import SchedulingEngine, TriggerSpec
from jobwarden.engine.cron import get_next_fire_times, validate_cron
from jobwarden.jobs.base import MANUAL_TRIGGER_FLAG, parse_json_map
from jobwarden.jobs.registry import get_job_class, list_job_classes
from jobwarden.schemas.common import ApiResponse, PagedResult
from jobwarden.schemas.job import (
    BatchDeleteResult,
    JobDefinition,
    JobKey,
    JobKind,
    JobQuery,
    JobStatus,
    SchedulerStatus,
)
from jobwarden.schemas.log import ExecutionLogEntry, JobLogQuery
from jobwarden.schemas.notification import NotificationConfig, NotificationQuery, NotificationRecord
from jobwarden.schemas.stats import (
    ExecutionTimeBucket,
    ExecutionTrendPoint,
    JobStats,
    StatsQuery,
    StatusDistribution,
    TypeDistribution,
)
from jobwarden.services.notifications import NotificationDispatcher
from jobwarden.services.reconciler import ReconcileResult, StartupReconciler
from jobwarden.storage.base import JobStore

logger = get_logger(__name__)

STORE_ERROR = "store_error"
ENGINE_ERROR = "engine_error"


def validate_job(job: JobDefinition) -> None:
    """
    Check everything about a definition that must hold before it is stored.

    Raises:
        JobValidationError: On a bad cron expression, target, JSON field or window
    """
    cron_error = validate_cron(job.cron_expression)
    if cron_error:
        raise JobValidationError(cron_error)

    if job.job_kind == JobKind.HTTP:
        parsed = urlparse(job.job_target)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise JobValidationError(f"Job target must be an absolute http(s) URL: {job.job_target}")
    elif get_job_class(job.job_target) is None:
        raise JobValidationError(f"Job class not registered: {job.job_target}")

    try:
        parse_json_map(job.job_data, "job_data")
        parse_json_map(job.api_headers, "api_headers")
    except ValueError as e:
        raise JobValidationError(str(e)) from e

    if job.start_time and job.end_time and job.end_time <= job.start_time:
        raise JobValidationError("end_time must be later than start_time")


class JobOrchestrator:
    """Single entry point for every job, log, stats and notification operation."""

    def __init__(
        self,
        store: JobStore,
        engine: SchedulingEngine,
        dispatcher: NotificationDispatcher,
        max_concurrent_jobs: int = 10,
    ) -> None:
        self.store = store
        self.engine = engine
        self.dispatcher = dispatcher
        self.max_concurrent_jobs = max_concurrent_jobs
        self._locks: defaultdict[JobKey, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock_for(self, key: JobKey) -> asyncio.Lock:
        return self._locks[key]

    # =========================================================================
    # Engine helpers
    # =========================================================================

    async def _schedule(self, job: JobDefinition) -> None:
        spec = TriggerSpec(
            job_key=job.key,
            trigger_key=job.trigger_key,
            cron_expression=job.cron_expression,
            start_time=job.start_time,
            end_time=job.end_time,
            description=job.description,
        )
        await self.engine.schedule(spec, replace_existing=True)

    async def _engine_run_times(self, key: JobKey) -> tuple[datetime | None, datetime | None] | None:
        """Display-time (next, previous) from the engine, or None if it has no trigger."""
        triggers = await self.engine.get_triggers(key)
        if not triggers:
            return None
        trigger = triggers[0]
        return to_display_time(trigger.next_fire_time), to_display_time(trigger.previous_fire_time)

    async def _refresh_run_times(self, job: JobDefinition) -> bool:
        times = await self._engine_run_times(job.key)
        if times is None:
            return False
        next_run, previous_run = times
        return await self.store.update_job_run_times(
            job.key, next_run, previous_run or job.previous_run_time
        )

    async def schedule_from_store(self, job: JobDefinition) -> None:
        """Register a stored definition with the engine and cache its run times."""
        await self._schedule(job)
        await self._refresh_run_times(job)

    async def _overlay(self, job: JobDefinition) -> JobDefinition:
        """Prefer live engine run times over the cached ones."""
        try:
            times = await self._engine_run_times(job.key)
        except Exception as e:
            logger.bind(job=str(job.key), error=str(e)).warning("engine_trigger_lookup_failed")
            return job
        if times is None:
            return job
        next_run, previous_run = times
        return job.model_copy(
            update={
                "next_run_time": next_run,
                "previous_run_time": previous_run or job.previous_run_time,
            }
        )

    async def _remove_from_engine(self, job: JobDefinition) -> None:
        """Pause, unschedule and delete in the engine; every step is best-effort."""
        key = job.key
        for step, call in (
            ("pause", lambda: self.engine.pause(key)),
            ("unschedule", lambda: self.engine.unschedule(job.trigger_key)),
            ("delete", lambda: self.engine.delete(key)),
        ):
            try:
                await call()
            except Exception as e:
                logger.bind(job=str(key), step=step, error=str(e)).warning("engine_step_failed")

    async def _require_job(self, key: JobKey) -> JobDefinition:
        job = await self.store.get_job(key)
        if job is None:
            raise JobNotFoundError(f"Job {key} not found")
        return job

    # =========================================================================
    # Job definitions
    # =========================================================================

    async def add_job(self, job: JobDefinition) -> ApiResponse[JobDefinition]:
        try:
            validate_job(job)
        except JobValidationError as e:
            return ApiResponse.fail(str(e), e.error_code)

        key = job.key
        async with self.lock_for(key):
            if await self.store.get_job(key) is not None:
                return ApiResponse.fail(f"Job {key} already exists", "duplicate_job")

            record = job.with_trigger_defaults().model_copy(update={"status": JobStatus.NORMAL})
            if not await self.store.add_job(record):
                return ApiResponse.fail(f"Failed to save job {key}", STORE_ERROR)

            message = "Job added"
            if record.is_enabled:
                try:
                    await self.schedule_from_store(record)
                except Exception as e:
                    logger.bind(job=str(key), error=str(e)).error("engine_schedule_failed")
                    message = f"Job added; scheduling failed: {e}"

        logger.bind(job=str(key), enabled=record.is_enabled).info("job_added")
        return ApiResponse.ok(await self.store.get_job(key), message)

    async def update_job(self, job: JobDefinition) -> ApiResponse[JobDefinition]:
        try:
            validate_job(job)
        except JobValidationError as e:
            return ApiResponse.fail(str(e), e.error_code)

        key = job.key
        async with self.lock_for(key):
            existing = await self.store.get_job(key)
            if existing is None:
                return ApiResponse.fail(f"Job {key} not found", "not_found")

            was_paused = existing.status == JobStatus.PAUSED
            await self._remove_from_engine(existing)

            updated = job.model_copy(
                update={
                    "trigger_name": job.trigger_name or existing.trigger_name,
                    "trigger_group": job.trigger_group or existing.trigger_group,
                    "status": JobStatus.PAUSED if was_paused else JobStatus.NORMAL,
                    "next_run_time": None,
                    "previous_run_time": existing.previous_run_time if job.is_enabled else None,
                    "created_at": existing.created_at,
                    "created_by": existing.created_by,
                    "updated_at": utc_now(),
                }
            ).with_trigger_defaults()

            if not await self.store.update_job(updated):
                return ApiResponse.fail(f"Failed to update job {key}", STORE_ERROR)

            message = "Job updated"
            if updated.is_enabled:
                try:
                    await self._schedule(updated)
                    if was_paused:
                        await self.engine.pause(key)
                    else:
                        await self._refresh_run_times(updated)
                except Exception as e:
                    logger.bind(job=str(key), error=str(e)).error("engine_schedule_failed")
                    message = f"Job updated; scheduling failed: {e}"

        logger.bind(job=str(key), enabled=updated.is_enabled).info("job_updated")
        return ApiResponse.ok(await self.store.get_job(key), message)

    async def delete_job(self, key: JobKey) -> ApiResponse[bool]:
        try:
            async with self.lock_for(key):
                try:
                    if not await self.engine.delete(key):
                        logger.bind(job=str(key)).warning("engine_job_not_found")
                except Exception as e:
                    logger.bind(job=str(key), error=str(e)).warning("engine_delete_failed")

                if await self.store.get_job(key) is None:
                    logger.bind(job=str(key)).warning("store_job_not_found")
                    return ApiResponse.ok(True, "Job not found; nothing to delete")

                if not await self.store.delete_job(key):
                    return ApiResponse.fail(f"Failed to delete job {key}", STORE_ERROR)
        finally:
            # Deleted identities do not keep their lock
            self._locks.pop(key, None)

        logger.bind(job=str(key)).info("job_deleted")
        return ApiResponse.ok(True, "Job deleted")

    async def batch_delete_jobs(self, keys: Iterable[JobKey]) -> ApiResponse[BatchDeleteResult]:
        result = BatchDeleteResult()
        for key in keys:
            response = await self.delete_job(key)
            if response.success:
                result.success_count += 1
            else:
                result.failed_count += 1
                result.failed_keys.append(str(key))

        message = f"Deleted {result.success_count} job(s), {result.failed_count} failed"
        if result.failed_count:
            return ApiResponse(success=False, message=message, data=result, error_code=STORE_ERROR)
        return ApiResponse.ok(result, message)

    # =========================================================================
    # Pause / resume / trigger
    # =========================================================================

    async def pause_job(self, key: JobKey) -> ApiResponse[JobDefinition]:
        async with self.lock_for(key):
            job = await self.store.get_job(key)
            if job is None:
                return ApiResponse.fail(f"Job {key} not found", "not_found")

            try:
                if not await self.engine.pause(key):
                    logger.bind(job=str(key)).warning("engine_job_not_found")
            except Exception as e:
                logger.bind(job=str(key), error=str(e)).warning("engine_pause_failed")

            if not await self.store.update_job_status(key, JobStatus.PAUSED):
                return ApiResponse.fail(f"Failed to pause job {key}", STORE_ERROR)
            if not await self.store.update_job_run_times(key, None, job.previous_run_time):
                return ApiResponse.fail(f"Failed to pause job {key}", STORE_ERROR)

        logger.bind(job=str(key)).info("job_paused")
        return ApiResponse.ok(await self.store.get_job(key), "Job paused")

    async def resume_job(self, key: JobKey) -> ApiResponse[JobDefinition]:
        async with self.lock_for(key):
            job = await self.store.get_job(key)
            if job is None:
                return ApiResponse.fail(f"Job {key} not found", "not_found")

            try:
                if await self.engine.exists(key):
                    await self.engine.resume(key)
                    if not await self.engine.get_triggers(key):
                        logger.bind(job=str(key)).info("engine_job_without_triggers_rescheduled")
                        await self._schedule(job)
                else:
                    await self._schedule(job)
            except Exception as e:
                logger.bind(job=str(key), error=str(e)).error("engine_resume_failed")
                return ApiResponse.fail(f"Failed to resume job {key}: {e}", ENGINE_ERROR)

            if not await self.store.update_job_status(key, JobStatus.NORMAL):
                return ApiResponse.fail(f"Failed to resume job {key}", STORE_ERROR)
            await self._refresh_run_times(job)

        logger.bind(job=str(key)).info("job_resumed")
        return ApiResponse.ok(await self.store.get_job(key), "Job resumed")

    async def trigger_job(self, key: JobKey) -> ApiResponse[bool]:
        """Fire a job once, now. Paused jobs run too; their status is left alone."""
        async with self.lock_for(key):
            job = await self.store.get_job(key)
            if job is None:
                return ApiResponse.fail(f"Job {key} not found", "not_found")

            try:
                if not await self.engine.exists(key):
                    if job.is_enabled and job.status != JobStatus.PAUSED:
                        await self.schedule_from_store(job)
                    else:
                        await self.engine.register_durable(key)
                await self.engine.trigger_now(key, {MANUAL_TRIGGER_FLAG: True})
            except Exception as e:
                logger.bind(job=str(key), error=str(e)).error("engine_trigger_failed")
                return ApiResponse.fail(f"Failed to trigger job {key}: {e}", ENGINE_ERROR)

        logger.bind(job=str(key)).info("job_triggered")
        return ApiResponse.ok(True, "Job triggered")

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_jobs(self, query: JobQuery) -> ApiResponse[PagedResult[JobDefinition]]:
        page = await self.store.get_jobs(query)
        page.items = [await self._overlay(job) for job in page.items]
        return ApiResponse.ok(page)

    async def get_job_detail(self, key: JobKey) -> ApiResponse[JobDefinition]:
        try:
            job = await self._require_job(key)
        except JobNotFoundError as e:
            return ApiResponse.fail(str(e), e.error_code)
        return ApiResponse.ok(await self._overlay(job))

    async def get_all_jobs(self) -> ApiResponse[list[JobDefinition]]:
        jobs = await self.store.get_all_jobs()
        return ApiResponse.ok([await self._overlay(job) for job in jobs])

    async def update_execution_times(self, key: JobKey) -> ApiResponse[bool]:
        """Copy the engine's next/previous fire times into the store."""
        job = await self.store.get_job(key)
        if job is None:
            return ApiResponse.fail(f"Job {key} not found", "not_found")
        try:
            updated = await self._refresh_run_times(job)
        except Exception as e:
            logger.bind(job=str(key), error=str(e)).warning("engine_trigger_lookup_failed")
            updated = False
        return ApiResponse.ok(updated)

    async def get_job_classes(self) -> ApiResponse[list[str]]:
        return ApiResponse.ok(list_job_classes())

    async def get_next_run_times(self, cron_expression: str, count: int = 5) -> ApiResponse[list[datetime]]:
        error = validate_cron(cron_expression)
        if error:
            return ApiResponse.fail(error, "validation_error")
        times = get_next_fire_times(cron_expression, count)
        return ApiResponse.ok([t for t in (to_display_time(t) for t in times) if t is not None])

    # =========================================================================
    # Scheduler
    # =========================================================================

    async def clear_all_jobs(self) -> ApiResponse[bool]:
        """Drop every engine registration; stored definitions are untouched."""
        try:
            await self.engine.clear()
        except Exception as e:
            logger.bind(error=str(e)).error("engine_clear_failed")
            return ApiResponse.fail(f"Failed to clear scheduler: {e}", ENGINE_ERROR)
        return ApiResponse.ok(True, "Scheduler cleared")

    async def get_scheduler_status(self) -> ApiResponse[SchedulerStatus]:
        status = await self.engine.status()
        return ApiResponse.ok(
            SchedulerStatus(
                scheduler_name=status.name,
                is_started=status.is_started,
                is_shutdown=status.is_shutdown,
                job_count=status.job_count,
                executing_jobs=[str(k) for k in status.executing],
                max_concurrent_jobs=self.max_concurrent_jobs,
            )
        )

    async def start_scheduler(self) -> ApiResponse[ReconcileResult]:
        """Start the engine and bring it in line with the store."""
        try:
            await self.engine.start()
        except Exception as e:
            logger.bind(error=str(e)).error("engine_start_failed")
            await self.dispatcher.notify_scheduler_error(e)
            return ApiResponse.fail(f"Failed to start scheduler: {e}", ENGINE_ERROR)

        result = await StartupReconciler(self).reconcile()
        return ApiResponse.ok(result, "Scheduler started")

    async def shutdown_scheduler(self, wait: bool = True) -> ApiResponse[bool]:
        try:
            await self.engine.shutdown(wait=wait)
        except Exception as e:
            logger.bind(error=str(e)).error("engine_shutdown_failed")
            return ApiResponse.fail(f"Failed to stop scheduler: {e}", ENGINE_ERROR)
        return ApiResponse.ok(True, "Scheduler stopped")

    # =========================================================================
    # Execution logs
    # =========================================================================

    async def get_job_logs(self, query: JobLogQuery) -> ApiResponse[PagedResult[ExecutionLogEntry]]:
        return ApiResponse.ok(await self.store.get_job_logs(query))

    async def clear_expired_logs(self, days_to_keep: int) -> ApiResponse[int]:
        if days_to_keep < 0:
            return ApiResponse.fail("days_to_keep must not be negative", "validation_error")
        removed = await self.store.clear_expired_logs(days_to_keep)
        return ApiResponse.ok(removed, f"Removed {removed} log entries")

    async def clear_job_logs(self, query: JobLogQuery | None = None) -> ApiResponse[int]:
        removed = await self.store.clear_job_logs(query)
        return ApiResponse.ok(removed, f"Removed {removed} log entries")

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_job_stats(self, query: StatsQuery) -> ApiResponse[JobStats]:
        return ApiResponse.ok(await self.store.get_job_stats(query))

    async def get_status_distribution(self, query: StatsQuery) -> ApiResponse[list[StatusDistribution]]:
        return ApiResponse.ok(await self.store.get_status_distribution(query))

    async def get_type_distribution(self, query: StatsQuery) -> ApiResponse[list[TypeDistribution]]:
        return ApiResponse.ok(await self.store.get_type_distribution(query))

    async def get_execution_trend(self, query: StatsQuery) -> ApiResponse[list[ExecutionTrendPoint]]:
        return ApiResponse.ok(await self.store.get_execution_trend(query))

    async def get_execution_time_histogram(
        self, query: StatsQuery
    ) -> ApiResponse[list[ExecutionTimeBucket]]:
        return ApiResponse.ok(await self.store.get_execution_time_histogram(query))

    # =========================================================================
    # Notifications
    # =========================================================================

    async def get_notifications(
        self, query: NotificationQuery
    ) -> ApiResponse[PagedResult[NotificationRecord]]:
        return ApiResponse.ok(await self.store.get_notifications(query))

    async def get_notification(self, notification_id: str) -> ApiResponse[NotificationRecord]:
        record = await self.store.get_notification(notification_id)
        if record is None:
            return ApiResponse.fail(f"Notification {notification_id} not found", "not_found")
        return ApiResponse.ok(record)

    async def delete_notification(self, notification_id: str) -> ApiResponse[bool]:
        if not await self.store.delete_notification(notification_id):
            return ApiResponse.fail(f"Notification {notification_id} not found", "not_found")
        return ApiResponse.ok(True, "Notification deleted")

    async def clear_notifications(self) -> ApiResponse[int]:
        removed = await self.store.clear_notifications()
        return ApiResponse.ok(removed, f"Removed {removed} notifications")

    async def get_notification_config(self) -> ApiResponse[NotificationConfig]:
        return ApiResponse.ok(await self.dispatcher.get_config())

    async def save_notification_config(self, config: NotificationConfig) -> ApiResponse[bool]:
        if config.template not in ("html", "txt", "markdown"):
            return ApiResponse.fail(f"Unsupported template: {config.template}", "validation_error")
        if not await self.dispatcher.save_config(config):
            return ApiResponse.fail("Failed to save notification config", STORE_ERROR)
        return ApiResponse.ok(True, "Notification config saved")

    async def send_test_notification(self) -> ApiResponse[bool]:
        if await self.dispatcher.send_test():
            return ApiResponse.ok(True, "Test notification sent")
        return ApiResponse.fail("Test notification failed", "channel_error")
