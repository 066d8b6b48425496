"""
Job runner: the firing pipeline the engine calls into.

For every firing: load the definition, merge the data map, ask the
listener whether to proceed, run the job body under the global
concurrency limit and always report the outcome to the listener.
"""

import asyncio
from datetime import datetime

from jobwarden.core.logging import get_logger
from jobwarden.engine.base import FireEvent
from jobwarden.jobs.base import JobContext, parse_json_map
from jobwarden.jobs.registry import create_job
from jobwarden.schemas.job import JobKey
from jobwarden.services.listener import ExecutionListener
from jobwarden.services.notifications import NotificationDispatcher
from jobwarden.storage.base import JobStore

logger = get_logger(__name__)


class JobRunner:
    """Implements the engine's firing callbacks."""

    def __init__(
        self,
        store: JobStore,
        listener: ExecutionListener,
        dispatcher: NotificationDispatcher,
        max_concurrent_jobs: int = 10,
    ) -> None:
        self.store = store
        self.listener = listener
        self.dispatcher = dispatcher
        self.max_concurrent_jobs = max_concurrent_jobs
        self._semaphore = asyncio.Semaphore(max_concurrent_jobs)

    async def run(self, event: FireEvent) -> None:
        key = event.job_key
        definition = await self.store.get_job(key)
        if definition is None:
            logger.bind(job=str(key)).warning("runner_job_definition_missing")
            return

        try:
            stored_data = parse_json_map(definition.job_data)
        except ValueError as e:
            logger.bind(job=str(key), error=str(e)).warning("runner_job_data_invalid")
            stored_data = {}

        context = JobContext(
            job_key=key,
            definition=definition,
            fire_time=event.fire_time,
            previous_fire_time=event.previous_fire_time,
            trigger_key=event.trigger_key or definition.trigger_key,
            data={**stored_data, **event.data},
        )

        if not await self.listener.before_fire(context):
            return

        result: str | None = None
        error: BaseException | None = None
        async with self._semaphore:
            try:
                job = create_job(definition)
                result = await job.execute(context)
            except asyncio.CancelledError as e:
                error = e
                raise
            except Exception as e:
                error = e
            finally:
                await self.listener.after_fire(context, result, error)

    async def on_vetoed(self, job_key: JobKey, fire_time: datetime, reason: str) -> None:
        await self.listener.vetoed(job_key, fire_time, reason)

    async def on_engine_error(self, error: BaseException) -> None:
        logger.bind(error=str(error)).error("scheduler_error")
        await self.dispatcher.notify_scheduler_error(error)
