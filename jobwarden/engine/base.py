"""Scheduling engine contract.

The engine is a memory-only cache of what the store says should be
scheduled: it loses every registration on shutdown and is rebuilt by the
startup reconciler. All engine times are timezone-aware UTC.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from jobwarden.schemas.job import JobKey, TriggerKey


@dataclass
class TriggerSpec:
    """Everything the engine needs to register one cron trigger for a job."""

    job_key: JobKey
    trigger_key: TriggerKey
    cron_expression: str
    start_time: datetime | None = None
    end_time: datetime | None = None
    description: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class EngineTrigger:
    """Live view of a registered trigger."""

    trigger_key: TriggerKey
    job_key: JobKey
    next_fire_time: datetime | None
    previous_fire_time: datetime | None
    paused: bool = False


@dataclass
class EngineStatus:
    name: str
    is_started: bool
    is_shutdown: bool
    job_count: int
    executing: list[JobKey] = field(default_factory=list)


@dataclass
class FireEvent:
    """One firing handed from the engine to the runner."""

    job_key: JobKey
    fire_time: datetime
    previous_fire_time: datetime | None = None
    trigger_key: TriggerKey | None = None
    data: dict[str, Any] = field(default_factory=dict)
    is_manual: bool = False


class FiringHandler(Protocol):
    """What the engine calls back into (implemented by the job runner)."""

    async def run(self, event: FireEvent) -> None: ...

    async def on_vetoed(self, job_key: JobKey, fire_time: datetime, reason: str) -> None: ...

    async def on_engine_error(self, error: BaseException) -> None: ...


class SchedulingEngine(ABC):
    """Keyed registry of jobs and cron triggers with fire callbacks."""

    @abstractmethod
    def set_runner(self, runner: FiringHandler) -> None:
        pass

    @abstractmethod
    async def start(self) -> None:
        pass

    @abstractmethod
    async def shutdown(self, wait: bool = True) -> None:
        """Stop firing and discard every registration."""

    @abstractmethod
    async def status(self) -> EngineStatus:
        pass

    @abstractmethod
    async def schedule(self, spec: TriggerSpec, replace_existing: bool = True) -> datetime | None:
        """Register (or replace) the job's trigger. Returns the next fire time."""

    @abstractmethod
    async def unschedule(self, trigger_key: TriggerKey) -> bool:
        pass

    @abstractmethod
    async def delete(self, job_key: JobKey) -> bool:
        """Remove the job and all of its triggers."""

    @abstractmethod
    async def pause(self, job_key: JobKey) -> bool:
        pass

    @abstractmethod
    async def resume(self, job_key: JobKey) -> bool:
        pass

    @abstractmethod
    async def trigger_now(self, job_key: JobKey, data: dict[str, Any] | None = None) -> None:
        """Fire the job once, immediately, outside its schedule."""

    @abstractmethod
    async def register_durable(self, job_key: JobKey) -> None:
        """Make the job known to the engine without any trigger."""

    @abstractmethod
    async def exists(self, job_key: JobKey) -> bool:
        pass

    @abstractmethod
    async def get_triggers(self, job_key: JobKey) -> list[EngineTrigger]:
        pass

    @abstractmethod
    async def get_executing_jobs(self) -> list[JobKey]:
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Drop every job and trigger registration."""
