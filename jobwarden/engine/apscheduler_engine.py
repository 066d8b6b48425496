"""
APScheduler-backed scheduling engine.

One AsyncIOScheduler per process with an in-memory job store. Every job
fires through `_fire`, which hands a FireEvent to the runner; the engine
itself knows nothing about job kinds, logs or notifications.

APScheduler job ids are `<len(group)>:group.name`, so a dotted group such
as `etl.nightly` decodes back to exactly one JobKey. Manual firings get a
one-off id `manual:<hex>:<job id>` with a date trigger.
"""

import asyncio
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_MISSED,
    JobEvent,
    JobExecutionEvent,
    JobSubmissionEvent,
)
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from jobwarden.core.logging import get_logger
from jobwarden.engine.base import (
    EngineStatus,
    EngineTrigger,
    FireEvent,
    FiringHandler,
    SchedulingEngine,
    TriggerSpec,
)
from jobwarden.engine.cron import parse_cron
from jobwarden.schemas.job import JobKey, TriggerKey

logger = get_logger(__name__)

MANUAL_PREFIX = "manual:"


class ApschedulerEngine(SchedulingEngine):
    """SchedulingEngine on APScheduler's AsyncIOScheduler (memory-only)."""

    def __init__(
        self,
        name: str = "jobwarden",
        timezone: str = "UTC",
        misfire_grace_seconds: int = 60,
        coalesce: bool = True,
    ) -> None:
        self.name = name
        self.timezone = timezone
        self.misfire_grace_seconds = misfire_grace_seconds
        self.coalesce = coalesce

        self._scheduler: AsyncIOScheduler | None = None
        self._runner: FiringHandler | None = None
        self._is_shutdown = False

        self._triggers: dict[JobKey, TriggerSpec] = {}
        self._durable: set[JobKey] = set()
        self._paused: set[JobKey] = set()
        self._previous_fire: dict[JobKey, datetime] = {}
        self._executing: set[JobKey] = set()
        self._pending: set[asyncio.Task[Any]] = set()

    # =========================================================================
    # Scheduler lifecycle
    # =========================================================================

    def _create_scheduler(self) -> AsyncIOScheduler:
        scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": self.coalesce,
                "max_instances": 1,
                "misfire_grace_time": self.misfire_grace_seconds,
            },
            timezone=self.timezone,
        )
        scheduler.add_listener(
            self._on_scheduler_event,
            EVENT_JOB_MAX_INSTANCES | EVENT_JOB_MISSED | EVENT_JOB_ERROR,
        )
        return scheduler

    def _ensure_scheduler(self) -> AsyncIOScheduler:
        if self._scheduler is None:
            self._scheduler = self._create_scheduler()
        return self._scheduler

    def set_runner(self, runner: FiringHandler) -> None:
        self._runner = runner

    async def start(self, paused: bool = False) -> None:
        scheduler = self._ensure_scheduler()
        if scheduler.running:
            logger.debug("engine_already_running")
            return
        scheduler.start(paused=paused)
        self._is_shutdown = False
        logger.bind(name=self.name, timezone=self.timezone).info("engine_started")

    async def shutdown(self, wait: bool = True) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        self._is_shutdown = True

        # Memory-only: registrations do not survive a restart
        self._triggers.clear()
        self._durable.clear()
        self._paused.clear()
        self._previous_fire.clear()
        logger.bind(name=self.name).info("engine_shutdown")

    async def status(self) -> EngineStatus:
        known = set(self._triggers) | self._durable
        return EngineStatus(
            name=self.name,
            is_started=self._scheduler is not None and self._scheduler.running,
            is_shutdown=self._is_shutdown,
            job_count=len(known),
            executing=sorted(self._executing, key=str),
        )

    # =========================================================================
    # Registrations
    # =========================================================================

    async def schedule(self, spec: TriggerSpec, replace_existing: bool = True) -> datetime | None:
        scheduler = self._ensure_scheduler()
        trigger = parse_cron(
            spec.cron_expression,
            start_time=spec.start_time,
            end_time=spec.end_time,
            timezone=self.timezone,
        )
        key = spec.job_key

        job = scheduler.add_job(
            self._fire,
            trigger=trigger,
            args=[key.name, key.group],
            id=_job_id(key),
            name=str(spec.trigger_key),
            replace_existing=replace_existing,
        )
        self._triggers[key] = spec
        self._durable.discard(key)
        self._paused.discard(key)

        next_fire = getattr(job, "next_run_time", None)
        if next_fire is None and not scheduler.running:
            next_fire = trigger.get_next_fire_time(None, datetime.now(UTC))
        logger.bind(job=str(key), cron=spec.cron_expression, next_fire=str(next_fire)).debug(
            "engine_job_scheduled"
        )
        return next_fire

    async def unschedule(self, trigger_key: TriggerKey) -> bool:
        for key, spec in list(self._triggers.items()):
            if spec.trigger_key == trigger_key:
                self._remove_scheduler_job(key)
                del self._triggers[key]
                self._paused.discard(key)
                return True
        return False

    async def delete(self, job_key: JobKey) -> bool:
        known = job_key in self._triggers or job_key in self._durable
        self._remove_scheduler_job(job_key)
        self._triggers.pop(job_key, None)
        self._durable.discard(job_key)
        self._paused.discard(job_key)
        self._previous_fire.pop(job_key, None)
        return known

    def _remove_scheduler_job(self, job_key: JobKey) -> None:
        if self._scheduler is None:
            return
        try:
            self._scheduler.remove_job(_job_id(job_key))
        except JobLookupError:
            logger.bind(job=str(job_key)).debug("engine_job_not_registered")

    async def pause(self, job_key: JobKey) -> bool:
        if job_key in self._triggers and self._scheduler is not None:
            try:
                self._scheduler.pause_job(_job_id(job_key))
            except JobLookupError:
                self._triggers.pop(job_key, None)
                return False
            self._paused.add(job_key)
            return True
        if job_key in self._durable:
            self._paused.add(job_key)
            return True
        return False

    async def resume(self, job_key: JobKey) -> bool:
        self._paused.discard(job_key)
        if job_key in self._triggers and self._scheduler is not None:
            try:
                self._scheduler.resume_job(_job_id(job_key))
            except JobLookupError:
                self._triggers.pop(job_key, None)
                return False
            # APScheduler drops a resumed job whose trigger has no future fire time
            if self._scheduler.get_job(_job_id(job_key)) is None:
                self._triggers.pop(job_key, None)
            return True
        return job_key in self._durable

    async def trigger_now(self, job_key: JobKey, data: dict[str, Any] | None = None) -> None:
        if not await self.exists(job_key):
            raise KeyError(f"Job {job_key} is not registered with the engine")

        scheduler = self._ensure_scheduler()
        scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=datetime.now(UTC)),
            args=[job_key.name, job_key.group],
            kwargs={"manual": True, "data": dict(data or {})},
            id=f"{MANUAL_PREFIX}{uuid4().hex}:{_job_id(job_key)}",
            name=f"{job_key} (manual)",
        )
        logger.bind(job=str(job_key)).info("engine_job_triggered")

    async def register_durable(self, job_key: JobKey) -> None:
        if job_key not in self._triggers:
            self._durable.add(job_key)

    async def exists(self, job_key: JobKey) -> bool:
        return job_key in self._triggers or job_key in self._durable

    async def get_triggers(self, job_key: JobKey) -> list[EngineTrigger]:
        spec = self._triggers.get(job_key)
        if spec is None or self._scheduler is None:
            return []

        job = self._scheduler.get_job(_job_id(job_key))
        if job is None:
            # Trigger ran out of fire times and was dropped by APScheduler
            self._triggers.pop(job_key, None)
            return []

        next_fire = getattr(job, "next_run_time", None)
        paused = job_key in self._paused
        if next_fire is None and not paused and not self._scheduler.running:
            next_fire = job.trigger.get_next_fire_time(None, datetime.now(UTC))

        return [
            EngineTrigger(
                trigger_key=spec.trigger_key,
                job_key=job_key,
                next_fire_time=next_fire,
                previous_fire_time=self._previous_fire.get(job_key),
                paused=paused,
            )
        ]

    async def get_executing_jobs(self) -> list[JobKey]:
        return sorted(self._executing, key=str)

    async def clear(self) -> None:
        if self._scheduler is not None:
            self._scheduler.remove_all_jobs()
        self._triggers.clear()
        self._durable.clear()
        self._paused.clear()
        self._previous_fire.clear()
        logger.info("engine_cleared")

    # =========================================================================
    # Firing
    # =========================================================================

    async def _fire(
        self,
        name: str,
        group: str,
        manual: bool = False,
        data: dict[str, Any] | None = None,
    ) -> None:
        key = JobKey(name, group)
        fire_time = datetime.now(UTC)

        if self._runner is None:
            logger.bind(job=str(key)).warning("engine_fired_without_runner")
            return

        if key in self._executing:
            await self._runner.on_vetoed(key, fire_time, "job is already executing")
            return

        spec = self._triggers.get(key)
        previous = self._previous_fire.get(key)
        if not manual:
            self._previous_fire[key] = fire_time

        event = FireEvent(
            job_key=key,
            fire_time=fire_time,
            previous_fire_time=previous,
            trigger_key=spec.trigger_key if spec and not manual else None,
            data={**(spec.data if spec else {}), **(data or {})},
            is_manual=manual,
        )

        self._executing.add(key)
        try:
            await self._runner.run(event)
        finally:
            self._executing.discard(key)

    def _on_scheduler_event(self, event: JobEvent) -> None:
        """Map APScheduler events onto the runner's veto and error hooks."""
        if self._runner is None:
            return

        key = _key_for(event.job_id)

        if event.code == EVENT_JOB_MAX_INSTANCES:
            fire_time = _first_run_time(event)
            self._spawn(self._runner.on_vetoed(key, fire_time, "maximum running instances reached"))
        elif event.code == EVENT_JOB_MISSED:
            fire_time = getattr(event, "scheduled_run_time", None) or datetime.now(UTC)
            self._spawn(self._runner.on_vetoed(key, fire_time, "misfire grace time exceeded"))
        elif event.code == EVENT_JOB_ERROR and isinstance(event, JobExecutionEvent):
            logger.bind(job=str(key), error=str(event.exception)).error("engine_job_error")
            if event.exception is not None:
                self._spawn(self._runner.on_engine_error(event.exception))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


def _job_id(key: JobKey) -> str:
    # Length-prefixed group so dotted groups and names never collide
    return f"{len(key.group)}:{key.group}.{key.name}"


def _key_for(job_id: str) -> JobKey:
    """Decode a scheduled or manual APScheduler job id back into its JobKey."""
    if job_id.startswith(MANUAL_PREFIX):
        # manual:<32 hex>:<job id>
        job_id = job_id[len(MANUAL_PREFIX) + 33 :]
    length, _, rest = job_id.partition(":")
    size = int(length)
    return JobKey(name=rest[size + 1 :], group=rest[:size])


def _first_run_time(event: JobEvent) -> datetime:
    if isinstance(event, JobSubmissionEvent) and event.scheduled_run_times:
        return event.scheduled_run_times[0]
    return datetime.now(UTC)
