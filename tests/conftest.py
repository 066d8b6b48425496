"""
Pytest configuration and fixtures for jobwarden tests.

Provides:
- File store in a temp directory and an in-memory SQLite store
- An in-memory scheduling engine that fires jobs synchronously
- An orchestrator wired to both, with a recording notification channel
- Test client for API testing
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import create_async_engine

from jobwarden.core.database import create_session_factory
from jobwarden.core.scheduler import build_orchestrator, get_orchestrator
from jobwarden.engine.base import (
    EngineStatus,
    EngineTrigger,
    FireEvent,
    FiringHandler,
    SchedulingEngine,
    TriggerSpec,
)
from jobwarden.engine.cron import parse_cron
from jobwarden.jobs import BaseJob, JobContext, register_job
from jobwarden.main import app
from jobwarden.schemas.job import JobDefinition, JobKey, JobKind, TriggerKey
from jobwarden.services.notifications import ChannelResult, NotificationChannel
from jobwarden.services.orchestrator import JobOrchestrator
from jobwarden.storage import FileJobStore, SqlJobStore

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ============================================================================
# Test jobs
# ============================================================================

# Contexts seen by RecordingJob, cleared per test
executed_contexts: list[JobContext] = []


@register_job("tests.recording")
class RecordingJob(BaseJob):
    """Remembers every context it was fired with."""

    async def execute(self, context: JobContext) -> str | None:
        executed_contexts.append(context)
        return "recorded"


@register_job("tests.failing")
class FailingJob(BaseJob):
    """Always raises."""

    async def execute(self, context: JobContext) -> str | None:
        raise RuntimeError("boom")


@pytest.fixture(autouse=True)
def clear_executed_contexts():
    executed_contexts.clear()
    yield
    executed_contexts.clear()


@pytest.fixture
def executed() -> list[JobContext]:
    """Contexts RecordingJob has run with during the current test."""
    return executed_contexts


# ============================================================================
# In-memory engine
# ============================================================================


class InMemoryEngine(SchedulingEngine):
    """
    SchedulingEngine double that never runs a timer.

    Manual triggers and `fire()` call the runner inline, so a test sees the
    log entry as soon as the call returns. Names in `fail_on` make the
    matching method raise RuntimeError.
    """

    def __init__(self) -> None:
        self.runner: FiringHandler | None = None
        self.started = False
        self.is_shutdown = False
        self.triggers: dict[JobKey, TriggerSpec] = {}
        self.durable: set[JobKey] = set()
        self.paused: set[JobKey] = set()
        self.previous: dict[JobKey, datetime] = {}
        self.fired: list[FireEvent] = []
        self.fail_on: set[str] = set()

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise RuntimeError(f"engine {operation} failed")

    def set_runner(self, runner: FiringHandler) -> None:
        self.runner = runner

    async def start(self) -> None:
        self._check("start")
        self.started = True
        self.is_shutdown = False

    async def shutdown(self, wait: bool = True) -> None:
        self.started = False
        self.is_shutdown = True
        self.triggers.clear()
        self.durable.clear()
        self.paused.clear()

    async def status(self) -> EngineStatus:
        return EngineStatus(
            name="test",
            is_started=self.started,
            is_shutdown=self.is_shutdown,
            job_count=len(set(self.triggers) | self.durable),
        )

    async def schedule(self, spec: TriggerSpec, replace_existing: bool = True) -> datetime | None:
        self._check("schedule")
        trigger = parse_cron(spec.cron_expression, spec.start_time, spec.end_time)
        self.triggers[spec.job_key] = spec
        self.durable.discard(spec.job_key)
        self.paused.discard(spec.job_key)
        return trigger.get_next_fire_time(None, datetime.now(UTC))

    async def unschedule(self, trigger_key: TriggerKey) -> bool:
        for key, spec in list(self.triggers.items()):
            if spec.trigger_key == trigger_key:
                del self.triggers[key]
                return True
        return False

    async def delete(self, job_key: JobKey) -> bool:
        self._check("delete")
        known = job_key in self.triggers or job_key in self.durable
        self.triggers.pop(job_key, None)
        self.durable.discard(job_key)
        self.paused.discard(job_key)
        return known

    async def pause(self, job_key: JobKey) -> bool:
        self._check("pause")
        if job_key in self.triggers or job_key in self.durable:
            self.paused.add(job_key)
            return True
        return False

    async def resume(self, job_key: JobKey) -> bool:
        self._check("resume")
        self.paused.discard(job_key)
        return job_key in self.triggers or job_key in self.durable

    async def trigger_now(self, job_key: JobKey, data: dict[str, Any] | None = None) -> None:
        self._check("trigger_now")
        if not await self.exists(job_key):
            raise KeyError(str(job_key))
        event = FireEvent(
            job_key=job_key,
            fire_time=datetime.now(UTC),
            data=dict(data or {}),
            is_manual=True,
        )
        self.fired.append(event)
        await self.runner.run(event)

    async def register_durable(self, job_key: JobKey) -> None:
        if job_key not in self.triggers:
            self.durable.add(job_key)

    async def exists(self, job_key: JobKey) -> bool:
        return job_key in self.triggers or job_key in self.durable

    async def get_triggers(self, job_key: JobKey) -> list[EngineTrigger]:
        spec = self.triggers.get(job_key)
        if spec is None:
            return []
        paused = job_key in self.paused
        next_fire = None
        if not paused:
            trigger = parse_cron(spec.cron_expression, spec.start_time, spec.end_time)
            next_fire = trigger.get_next_fire_time(None, datetime.now(UTC))
        return [
            EngineTrigger(
                trigger_key=spec.trigger_key,
                job_key=job_key,
                next_fire_time=next_fire,
                previous_fire_time=self.previous.get(job_key),
                paused=paused,
            )
        ]

    async def get_executing_jobs(self) -> list[JobKey]:
        return []

    async def clear(self) -> None:
        self._check("clear")
        self.triggers.clear()
        self.durable.clear()
        self.paused.clear()

    async def fire(self, job_key: JobKey) -> None:
        """Simulate a scheduled (non-manual) firing of a registered trigger."""
        spec = self.triggers[job_key]
        fire_time = datetime.now(UTC)
        event = FireEvent(
            job_key=job_key,
            fire_time=fire_time,
            previous_fire_time=self.previous.get(job_key),
            trigger_key=spec.trigger_key,
            data=dict(spec.data),
        )
        self.previous[job_key] = fire_time
        self.fired.append(event)
        await self.runner.run(event)


class RecordingChannel(NotificationChannel):
    """Notification channel that stores every send instead of delivering it."""

    channel_name = "recording"

    def __init__(self, success: bool = True) -> None:
        self.success = success
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, title: str, content: str, template: str = "html") -> ChannelResult:
        self.sent.append((title, content, template))
        if self.success:
            return ChannelResult(success=True)
        return ChannelResult(success=False, error_message="delivery refused")


# ============================================================================
# Store fixtures
# ============================================================================


@pytest_asyncio.fixture
async def file_store(tmp_path) -> FileJobStore:
    """File store rooted in a per-test temp directory."""
    store = FileJobStore(tmp_path / "data", backup_path=tmp_path / "backups")
    assert await store.initialize()
    return store


@pytest_asyncio.fixture
async def sql_store() -> AsyncGenerator[SqlJobStore, None]:
    """SQL store on an in-memory SQLite database."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    store = SqlJobStore(create_session_factory(engine))
    assert await store.initialize()

    yield store

    await engine.dispose()


@pytest_asyncio.fixture(params=["file", "database"])
async def store(request, tmp_path) -> AsyncGenerator[FileJobStore | SqlJobStore, None]:
    """Each test using this fixture runs once per backend."""
    if request.param == "file":
        file_backed = FileJobStore(tmp_path / "data", backup_path=tmp_path / "backups")
        assert await file_backed.initialize()
        yield file_backed
        return

    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    sql_backed = SqlJobStore(create_session_factory(engine))
    assert await sql_backed.initialize()
    yield sql_backed
    await engine.dispose()


# ============================================================================
# Orchestrator fixtures
# ============================================================================


@pytest.fixture
def engine() -> InMemoryEngine:
    return InMemoryEngine()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest_asyncio.fixture
async def orchestrator(
    file_store: FileJobStore,
    engine: InMemoryEngine,
    channel: RecordingChannel,
) -> JobOrchestrator:
    """Orchestrator over the file store and the in-memory engine."""
    orch = build_orchestrator(store=file_store, engine=engine, channel_factory=lambda config: channel)
    await engine.start()
    return orch


@pytest_asyncio.fixture
async def client(orchestrator: JobOrchestrator) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with the orchestrator override."""
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest.fixture
def make_job():
    """Factory for in-memory job definitions (not stored)."""

    def _make(
        name: str = "report",
        group: str = "DEFAULT",
        cron: str = "0 0/5 * * * ?",
        target: str = "tests.recording",
        kind: JobKind = JobKind.CLASS,
        **kwargs: Any,
    ) -> JobDefinition:
        return JobDefinition(
            job_name=name,
            job_group=group,
            cron_expression=cron,
            job_kind=kind,
            job_target=target,
            **kwargs,
        )

    return _make
