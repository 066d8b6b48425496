"""Tests for the APScheduler-backed scheduling engine."""

import asyncio
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from apscheduler.events import EVENT_JOB_MAX_INSTANCES, EVENT_JOB_MISSED, JobEvent

from jobwarden.engine.apscheduler_engine import ApschedulerEngine
from jobwarden.engine.base import FireEvent, TriggerSpec
from jobwarden.schemas.job import JobKey, TriggerKey

pytestmark = pytest.mark.asyncio

FAR_FUTURE_CRON = "0 0 0 1 1 ? 2099"
KEY = JobKey("report", "reports")
DOTTED_KEY = JobKey("load", "etl.nightly")


def _spec(key: JobKey = KEY, cron: str = FAR_FUTURE_CRON) -> TriggerSpec:
    return TriggerSpec(
        job_key=key,
        trigger_key=TriggerKey(f"{key.name}_Trigger", key.group),
        cron_expression=cron,
    )


class RecordingRunner:
    """FiringHandler that records calls and can hold a firing open."""

    def __init__(self, block: bool = False) -> None:
        self.events: list[FireEvent] = []
        self.vetoes: list[tuple[JobKey, str]] = []
        self.errors: list[BaseException] = []
        self.started = asyncio.Event()
        self.vetoed = asyncio.Event()
        self.release = asyncio.Event()
        if not block:
            self.release.set()

    async def run(self, event: FireEvent) -> None:
        self.events.append(event)
        self.started.set()
        await self.release.wait()

    async def on_vetoed(self, job_key: JobKey, fire_time: datetime, reason: str) -> None:
        self.vetoes.append((job_key, reason))
        self.vetoed.set()

    async def on_engine_error(self, error: BaseException) -> None:
        self.errors.append(error)


@pytest_asyncio.fixture
async def paused_engine() -> AsyncGenerator[ApschedulerEngine, None]:
    """Engine whose scheduler is started but never processes due jobs."""
    engine = ApschedulerEngine(name="test")
    await engine.start(paused=True)
    yield engine
    await engine.shutdown(wait=False)


@pytest_asyncio.fixture
async def running_engine() -> AsyncGenerator[ApschedulerEngine, None]:
    engine = ApschedulerEngine(name="test")
    await engine.start()
    yield engine
    await engine.shutdown(wait=False)


class TestRegistration:
    """Tests for schedule / unschedule / delete."""

    async def test_schedule_reports_next_fire_time(self, paused_engine):
        """Should return the first fire time of the cron."""
        next_fire = await paused_engine.schedule(_spec())

        assert next_fire == datetime(2099, 1, 1, tzinfo=UTC)
        assert await paused_engine.exists(KEY)

    async def test_schedule_before_start(self):
        """Should compute fire times before the scheduler starts."""
        engine = ApschedulerEngine()
        next_fire = await engine.schedule(_spec())

        assert next_fire == datetime(2099, 1, 1, tzinfo=UTC)
        triggers = await engine.get_triggers(KEY)
        assert triggers[0].next_fire_time == datetime(2099, 1, 1, tzinfo=UTC)

    async def test_get_triggers(self, paused_engine):
        """Should expose the registered trigger with its keys."""
        await paused_engine.schedule(_spec())

        triggers = await paused_engine.get_triggers(KEY)
        assert len(triggers) == 1
        assert triggers[0].trigger_key == TriggerKey("report_Trigger", "reports")
        assert triggers[0].job_key == KEY
        assert triggers[0].previous_fire_time is None
        assert triggers[0].paused is False

    async def test_replace_keeps_single_trigger(self, paused_engine):
        """Should replace the trigger when a job is rescheduled."""
        await paused_engine.schedule(_spec())
        await paused_engine.schedule(_spec(cron="0 0 0 1 6 ? 2099"))

        triggers = await paused_engine.get_triggers(KEY)
        assert len(triggers) == 1
        assert triggers[0].next_fire_time == datetime(2099, 6, 1, tzinfo=UTC)
        assert (await paused_engine.status()).job_count == 1

    async def test_unschedule_by_trigger_key(self, paused_engine):
        """Should remove the trigger by key exactly once."""
        await paused_engine.schedule(_spec())

        assert await paused_engine.unschedule(TriggerKey("report_Trigger", "reports")) is True
        assert await paused_engine.get_triggers(KEY) == []
        assert await paused_engine.unschedule(TriggerKey("report_Trigger", "reports")) is False

    async def test_delete_reports_whether_known(self, paused_engine):
        """Should report whether the job was registered."""
        await paused_engine.schedule(_spec())

        assert await paused_engine.delete(KEY) is True
        assert await paused_engine.exists(KEY) is False
        assert await paused_engine.delete(KEY) is False

    async def test_durable_registration_has_no_triggers(self, paused_engine):
        """Should know durable jobs without giving them triggers."""
        await paused_engine.register_durable(KEY)

        assert await paused_engine.exists(KEY)
        assert await paused_engine.get_triggers(KEY) == []

    async def test_clear_drops_everything(self, paused_engine):
        """Should forget triggers and durable jobs on clear."""
        await paused_engine.schedule(_spec())
        await paused_engine.register_durable(JobKey("other"))

        await paused_engine.clear()

        assert (await paused_engine.status()).job_count == 0
        assert await paused_engine.exists(KEY) is False


class TestPauseResume:
    """Tests for pause and resume."""

    async def test_pause_clears_next_fire_time(self, paused_engine):
        """Should report no next fire time while paused."""
        await paused_engine.schedule(_spec())

        assert await paused_engine.pause(KEY) is True
        trigger = (await paused_engine.get_triggers(KEY))[0]
        assert trigger.paused is True
        assert trigger.next_fire_time is None

    async def test_resume_restores_next_fire_time(self, paused_engine):
        """Should restore the next fire time on resume."""
        await paused_engine.schedule(_spec())
        await paused_engine.pause(KEY)

        assert await paused_engine.resume(KEY) is True
        trigger = (await paused_engine.get_triggers(KEY))[0]
        assert trigger.paused is False
        assert trigger.next_fire_time == datetime(2099, 1, 1, tzinfo=UTC)

    async def test_pause_unknown_job(self, paused_engine):
        """Should report False when pausing an unknown job."""
        assert await paused_engine.pause(JobKey("ghost")) is False


class TestLifecycle:
    """Tests for start, status and shutdown."""

    async def test_status_after_start(self, paused_engine):
        """Should report a started, not shut down engine."""
        status = await paused_engine.status()
        assert status.name == "test"
        assert status.is_started is True
        assert status.is_shutdown is False

    async def test_shutdown_forgets_registrations(self):
        """Should drop every registration on shutdown."""
        engine = ApschedulerEngine()
        await engine.start(paused=True)
        await engine.schedule(_spec())

        await engine.shutdown(wait=False)

        status = await engine.status()
        assert status.is_started is False
        assert status.is_shutdown is True
        assert await engine.exists(KEY) is False

    async def test_restart_after_shutdown(self):
        """Should start again after a shutdown."""
        engine = ApschedulerEngine()
        await engine.start(paused=True)
        await engine.shutdown(wait=False)

        await engine.start(paused=True)
        assert (await engine.status()).is_started is True
        await engine.shutdown(wait=False)


class TestManualTrigger:
    """Tests for trigger_now and firing."""

    async def test_trigger_unknown_job_raises(self, running_engine):
        """Should raise KeyError for an unregistered job."""
        with pytest.raises(KeyError):
            await running_engine.trigger_now(JobKey("ghost"))

    async def test_trigger_fires_through_runner(self, running_engine):
        """Should hand a manual FireEvent to the runner."""
        runner = RecordingRunner()
        running_engine.set_runner(runner)
        await running_engine.register_durable(KEY)

        await running_engine.trigger_now(KEY, {"is_manual_trigger": True})
        await asyncio.wait_for(runner.started.wait(), timeout=5)

        event = runner.events[0]
        assert event.job_key == KEY
        assert event.is_manual is True
        assert event.data == {"is_manual_trigger": True}
        assert event.fire_time.tzinfo is not None

    async def test_manual_firing_keeps_cron_trigger(self, running_engine):
        """Should leave the cron trigger untouched on a manual firing."""
        runner = RecordingRunner()
        running_engine.set_runner(runner)
        await running_engine.schedule(_spec())

        await running_engine.trigger_now(KEY)
        await asyncio.wait_for(runner.started.wait(), timeout=5)
        await asyncio.sleep(0)

        triggers = await running_engine.get_triggers(KEY)
        assert triggers[0].next_fire_time == datetime(2099, 1, 1, tzinfo=UTC)
        # Manual firings do not count as the trigger's previous fire
        assert triggers[0].previous_fire_time is None

    async def test_overlapping_firing_is_vetoed(self, running_engine):
        """Should veto a firing while the same job is executing."""
        runner = RecordingRunner(block=True)
        running_engine.set_runner(runner)
        await running_engine.register_durable(KEY)

        await running_engine.trigger_now(KEY)
        await asyncio.wait_for(runner.started.wait(), timeout=5)
        assert await running_engine.get_executing_jobs() == [KEY]

        await running_engine.trigger_now(KEY)
        await asyncio.wait_for(runner.vetoed.wait(), timeout=5)

        assert runner.vetoes == [(KEY, "job is already executing")]
        assert len(runner.events) == 1

        runner.release.set()
        await asyncio.sleep(0.05)
        assert await running_engine.get_executing_jobs() == []


class TestDottedGroups:
    """Tests that job identities with dots survive the APScheduler job id."""

    async def test_missed_event_maps_to_dotted_group(self, paused_engine):
        """Should report a misfire against the job's real name and group."""
        runner = RecordingRunner()
        paused_engine.set_runner(runner)
        await paused_engine.schedule(_spec(DOTTED_KEY))
        job_id = paused_engine._scheduler.get_jobs()[0].id

        paused_engine._on_scheduler_event(JobEvent(EVENT_JOB_MISSED, job_id, "default"))
        await asyncio.wait_for(runner.vetoed.wait(), timeout=5)

        assert runner.vetoes == [(DOTTED_KEY, "misfire grace time exceeded")]

    async def test_manual_veto_maps_to_dotted_group(self, paused_engine):
        """Should decode one-off manual job ids back to the dotted identity."""
        runner = RecordingRunner()
        paused_engine.set_runner(runner)
        await paused_engine.register_durable(DOTTED_KEY)
        await paused_engine.trigger_now(DOTTED_KEY)
        job_id = paused_engine._scheduler.get_jobs()[0].id

        paused_engine._on_scheduler_event(JobEvent(EVENT_JOB_MAX_INSTANCES, job_id, "default"))
        await asyncio.wait_for(runner.vetoed.wait(), timeout=5)

        assert runner.vetoes == [(DOTTED_KEY, "maximum running instances reached")]

    async def test_keys_with_same_text_do_not_collide(self, paused_engine):
        """Should keep `a.b` + `c` and `a` + `b.c` as two separate jobs."""
        first = JobKey("c", "a.b")
        second = JobKey("b.c", "a")

        await paused_engine.schedule(_spec(first))
        await paused_engine.schedule(_spec(second))

        assert (await paused_engine.status()).job_count == 2
        assert len(paused_engine._scheduler.get_jobs()) == 2
        assert (await paused_engine.get_triggers(first))[0].job_key == first
        assert (await paused_engine.get_triggers(second))[0].job_key == second

    async def test_dotted_job_fires_under_its_own_key(self, running_engine):
        """Should fire the runner with the dotted identity intact."""
        runner = RecordingRunner()
        running_engine.set_runner(runner)
        await running_engine.register_durable(DOTTED_KEY)

        await running_engine.trigger_now(DOTTED_KEY)
        await asyncio.wait_for(runner.started.wait(), timeout=5)

        assert runner.events[0].job_key == DOTTED_KEY
