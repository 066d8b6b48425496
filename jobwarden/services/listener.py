"""
Execution listener.

Hooks called around every firing:

- before_fire: blocks scheduled firings of jobs whose definition is paused
- after_fire: writes exactly one execution log entry, refreshes the cached
  run times and hands the outcome to the notification dispatcher
- vetoed: records a firing the engine refused to run
"""

import traceback
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from jobwarden.core.datetime_utils import duration_ms, to_naive_utc, utc_now
from jobwarden.core.logging import get_logger
from jobwarden.jobs.base import JobContext
from jobwarden.schemas.job import JobKey, JobStatus
from jobwarden.schemas.log import ExecutionLogEntry, LogStatus
from jobwarden.services.notifications import NotificationDispatcher
from jobwarden.storage.base import JobStore

logger = get_logger(__name__)

SUCCESS_MESSAGE = "Job executed successfully"

RunTimeUpdater = Callable[[JobKey], Awaitable[Any]]


class ExecutionListener:
    """Bridges engine firings back into the store and the dispatcher."""

    def __init__(
        self,
        store: JobStore,
        dispatcher: NotificationDispatcher,
        update_execution_times: RunTimeUpdater | None = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.update_execution_times = update_execution_times

    async def before_fire(self, context: JobContext) -> bool:
        """Return False to veto a scheduled firing of a paused job.

        Uses the definition the runner loaded for this firing.
        """
        if context.is_manual:
            return True

        if context.definition.status == JobStatus.PAUSED:
            logger.bind(job=str(context.job_key)).warning("job_execution_blocked")
            return False
        return True

    async def after_fire(
        self,
        context: JobContext,
        result: str | None = None,
        error: BaseException | None = None,
    ) -> None:
        end = utc_now()
        start = to_naive_utc(context.fire_time)
        elapsed = duration_ms(start, end)
        success = error is None

        entry = ExecutionLogEntry(
            job_name=context.job_key.name,
            job_group=context.job_key.group,
            status=LogStatus.SUCCESS if success else LogStatus.FAILED,
            start_time=start,
            end_time=end,
            duration_ms=elapsed,
            trigger_name=context.trigger_key.name if context.trigger_key else None,
            trigger_group=context.trigger_key.group if context.trigger_key else None,
            job_data=context.data_json(),
        )
        if success:
            entry.message = SUCCESS_MESSAGE
            entry.result = result
        else:
            stack = "".join(traceback.format_exception(error))
            entry.message = f"Job execution failed: {error}"
            entry.exception = stack
            entry.error_message = str(error)
            entry.error_stack_trace = "".join(traceback.format_tb(error.__traceback__))

        try:
            if not await self.store.add_job_log(entry):
                logger.bind(job=str(context.job_key)).error("listener_log_write_failed")
        except Exception as e:
            logger.bind(job=str(context.job_key), error=str(e)).error("listener_log_write_failed")

        if self.update_execution_times is not None:
            try:
                await self.update_execution_times(context.job_key)
            except Exception as e:
                logger.bind(job=str(context.job_key), error=str(e)).error(
                    "listener_run_times_update_failed"
                )

        try:
            await self.dispatcher.notify_job_result(
                context.job_key,
                success,
                entry.message or "",
                elapsed,
                None if success else str(error),
            )
        except Exception as e:
            logger.bind(job=str(context.job_key), error=str(e)).error("listener_notify_failed")

        log = logger.bind(job=str(context.job_key), duration_ms=elapsed, manual=context.is_manual)
        if success:
            log.info("job_execution_succeeded")
        else:
            log.bind(error=str(error)).error("job_execution_failed")

    async def vetoed(self, key: JobKey, fire_time: datetime, reason: str) -> None:
        entry = ExecutionLogEntry(
            job_name=key.name,
            job_group=key.group,
            status=LogStatus.FAILED,
            start_time=to_naive_utc(fire_time),
            message=f"Job execution vetoed: {reason}",
        )
        try:
            await self.store.add_job_log(entry)
        except Exception as e:
            logger.bind(job=str(key), error=str(e)).error("listener_log_write_failed")
        logger.bind(job=str(key), reason=reason).warning("job_execution_vetoed")
