"""Behaviour shared by every JobStore backend (runs against file and SQL)."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from jobwarden.core.datetime_utils import utc_now
from jobwarden.schemas.job import JobKey, JobKind, JobQuery, JobStatus
from jobwarden.schemas.log import ExecutionLogEntry, JobLogQuery, LogStatus
from jobwarden.schemas.notification import (
    NotificationQuery,
    NotificationRecord,
    NotificationStatus,
    Setting,
)
from jobwarden.schemas.stats import StatsQuery

pytestmark = pytest.mark.asyncio


def _log(
    name: str = "report",
    group: str = "DEFAULT",
    status: LogStatus = LogStatus.SUCCESS,
    start: datetime | None = None,
    duration: int | None = 100,
    created_at: datetime | None = None,
) -> ExecutionLogEntry:
    start = start or utc_now()
    return ExecutionLogEntry(
        job_name=name,
        job_group=group,
        status=status,
        start_time=start,
        end_time=start + timedelta(milliseconds=duration or 0),
        duration_ms=duration,
        created_at=created_at or start,
    )


class TestJobCrud:
    """Tests for job definition CRUD."""

    async def test_add_and_get(self, store, make_job):
        """Should return the stored definition with every field intact."""
        job = make_job(job_data='{"a": 1}', description="nightly")
        assert await store.add_job(job) is True

        loaded = await store.get_job(job.key)
        assert loaded is not None
        assert loaded.job_target == "tests.recording"
        assert loaded.job_data == '{"a": 1}'
        assert loaded.description == "nightly"
        assert loaded.job_kind == JobKind.CLASS

    async def test_duplicate_identity_rejected(self, store, make_job):
        """Should refuse a second job with the same name and group."""
        assert await store.add_job(make_job())
        assert await store.add_job(make_job(cron="0 0 * * * ?")) is False

    async def test_same_name_in_other_group_allowed(self, store, make_job):
        """Should treat name plus group as the identity."""
        assert await store.add_job(make_job(group="a"))
        assert await store.add_job(make_job(group="b"))
        assert len(await store.get_all_jobs()) == 2

    async def test_get_missing_returns_none(self, store):
        """Should return None for an unknown identity."""
        assert await store.get_job(JobKey("missing")) is None

    async def test_update_overwrites_fields(self, store, make_job):
        """Should replace the stored fields on update."""
        job = make_job()
        await store.add_job(job)

        changed = job.model_copy(update={"cron_expression": "0 0 * * * ?", "remark": "edited"})
        assert await store.update_job(changed)

        loaded = await store.get_job(job.key)
        assert loaded.cron_expression == "0 0 * * * ?"
        assert loaded.remark == "edited"

    async def test_update_missing_returns_false(self, store, make_job):
        """Should report False when updating a job that was never added."""
        assert await store.update_job(make_job(name="ghost")) is False

    async def test_delete(self, store, make_job):
        """Should delete once and report False on the second attempt."""
        job = make_job()
        await store.add_job(job)

        assert await store.delete_job(job.key) is True
        assert await store.get_job(job.key) is None
        assert await store.delete_job(job.key) is False

    async def test_update_status_and_run_times(self, store, make_job):
        """Should patch status and cached run times without touching the rest."""
        job = make_job()
        await store.add_job(job)
        next_run = datetime(2026, 3, 10, 12, 5)
        previous = datetime(2026, 3, 10, 12, 0)

        assert await store.update_job_status(job.key, JobStatus.PAUSED)
        assert await store.update_job_run_times(job.key, next_run, previous)

        loaded = await store.get_job(job.key)
        assert loaded.status == JobStatus.PAUSED
        assert loaded.updated_at is not None
        assert loaded.next_run_time == next_run
        assert loaded.previous_run_time == previous

    async def test_status_update_on_missing_job(self, store):
        """Should report False when the job does not exist."""
        assert await store.update_job_status(JobKey("ghost"), JobStatus.PAUSED) is False


class TestJobQueries:
    """Tests for filtering, sorting and paging jobs."""

    async def _seed(self, store, make_job):
        base = datetime(2026, 1, 1)
        for index, (name, group) in enumerate(
            [("Backup", "ops"), ("cleanup", "ops"), ("report", "sales"), ("sync", "sales")]
        ):
            await store.add_job(
                make_job(
                    name=name,
                    group=group,
                    is_enabled=name != "sync",
                    created_at=base + timedelta(hours=index),
                )
            )

    async def test_name_filter_is_case_insensitive_substring(self, store, make_job):
        """Should match job names by case-insensitive substring."""
        await self._seed(store, make_job)
        page = await store.get_jobs(JobQuery(job_name="BACK"))
        assert [j.job_name for j in page.items] == ["Backup"]

    async def test_group_and_enabled_filters(self, store, make_job):
        """Should combine the group and enabled filters."""
        await self._seed(store, make_job)
        page = await store.get_jobs(JobQuery(job_group="sal", is_enabled=True))
        assert [j.job_name for j in page.items] == ["report"]

    async def test_default_sort_is_newest_first(self, store, make_job):
        """Should sort by creation time descending when no sort is given."""
        await self._seed(store, make_job)
        page = await store.get_jobs(JobQuery())
        assert [j.job_name for j in page.items] == ["sync", "report", "cleanup", "Backup"]

    async def test_sort_by_name_ascending(self, store, make_job):
        """Should honor an explicit sort field and order."""
        await self._seed(store, make_job)
        page = await store.get_jobs(JobQuery(sort_by="jobName", sort_order="asc"))
        assert [j.job_group for j in page.items] == ["ops", "ops", "sales", "sales"]

    async def test_paging(self, store, make_job):
        """Should return the requested page with the full count."""
        await self._seed(store, make_job)
        page = await store.get_jobs(JobQuery(page_index=2, page_size=3))
        assert page.total_count == 4
        assert page.total_pages == 2
        assert [j.job_name for j in page.items] == ["Backup"]

    async def test_status_filter(self, store, make_job):
        """Should filter by durable status."""
        await self._seed(store, make_job)
        await store.update_job_status(JobKey("cleanup", "ops"), JobStatus.PAUSED)
        page = await store.get_jobs(JobQuery(status=JobStatus.PAUSED))
        assert [j.job_name for j in page.items] == ["cleanup"]


class TestExecutionLogs:
    """Tests for execution log storage and clearing."""

    async def test_add_and_filter_logs(self, store):
        """Should filter logs by name substring and status."""
        await store.add_job_log(_log(name="report"))
        await store.add_job_log(_log(name="report", status=LogStatus.FAILED))
        await store.add_job_log(_log(name="cleanup"))

        page = await store.get_job_logs(JobLogQuery(job_name="rep", status=LogStatus.FAILED))
        assert page.total_count == 1
        assert page.items[0].status == LogStatus.FAILED

    async def test_clear_expired_logs(self, store):
        """Should remove only logs older than the retention window."""
        old = utc_now() - timedelta(days=40)
        await store.add_job_log(_log(start=old, created_at=old))
        await store.add_job_log(_log())

        assert await store.clear_expired_logs(30) == 1
        page = await store.get_job_logs(JobLogQuery())
        assert page.total_count == 1

    async def test_clear_job_logs_with_filter(self, store):
        """Should clear only the logs matching the filter."""
        await store.add_job_log(_log(name="report"))
        await store.add_job_log(_log(name="cleanup"))

        assert await store.clear_job_logs(JobLogQuery(job_name="cleanup")) == 1
        remaining = await store.get_job_logs(JobLogQuery())
        assert [log.job_name for log in remaining.items] == ["report"]

    async def test_clear_job_logs_without_filter_removes_all(self, store):
        """Should clear every log when no filter is given."""
        await store.add_job_log(_log(name="report"))
        await store.add_job_log(_log(name="cleanup"))

        assert await store.clear_job_logs(None) == 2
        assert (await store.get_job_logs(JobLogQuery())).total_count == 0


class TestTimezoneNormalization:
    """Tests that aware datetimes behave the same on every backend."""

    async def test_aware_log_window_matches_naive_logs(self, store):
        """Should match stored logs when the query window is timezone-aware."""
        await store.add_job_log(_log())

        page = await store.get_job_logs(
            JobLogQuery(start_time=datetime.now(UTC) - timedelta(hours=1))
        )
        assert page.total_count == 1

    async def test_aware_job_window_round_trips_as_naive_utc(self, store, make_job):
        """Should store an aware start time as the equivalent naive UTC value."""
        job = make_job(start_time=datetime(2030, 1, 1, 8, tzinfo=UTC))
        await store.add_job(job)

        loaded = await store.get_job(job.key)
        assert loaded.start_time == datetime(2030, 1, 1, 8, 0)
        assert loaded.start_time.tzinfo is None

    async def test_offset_is_converted_to_utc(self, store, make_job):
        """Should shift non-UTC offsets to UTC before storing."""
        plus_two = timezone(timedelta(hours=2))
        job = make_job(end_time=datetime(2030, 1, 1, 10, tzinfo=plus_two))
        await store.add_job(job)

        loaded = await store.get_job(job.key)
        assert loaded.end_time == datetime(2030, 1, 1, 8, 0)

    async def test_aware_stats_window(self, store):
        """Should count logs inside an aware custom stats range."""
        await store.add_job_log(_log())

        stats = await store.get_job_stats(
            StatsQuery(
                time_range_type="custom",
                start_time=datetime.now(UTC) - timedelta(hours=1),
                end_time=datetime.now(UTC) + timedelta(hours=1),
            )
        )
        assert stats.success_count == 1


class TestStatistics:
    """Tests for dashboard statistics."""

    async def test_job_stats(self, store, make_job):
        """Should count jobs by state and logs by outcome."""
        await store.add_job(make_job(name="a"))
        await store.add_job(make_job(name="b", is_enabled=False))
        await store.update_job_status(JobKey("a"), JobStatus.PAUSED)
        await store.add_job_log(_log(status=LogStatus.SUCCESS))
        await store.add_job_log(_log(status=LogStatus.FAILED))
        await store.add_job_log(_log(status=LogStatus.FAILED))

        stats = await store.get_job_stats(StatsQuery(time_range_type="last30Days"))
        assert stats.total_jobs == 2
        assert stats.enabled_jobs == 1
        assert stats.disabled_jobs == 1
        assert stats.paused_count == 1
        assert stats.success_count == 1
        assert stats.failed_count == 2

    async def test_logs_outside_range_are_ignored(self, store):
        """Should ignore logs older than the selected range."""
        old = utc_now() - timedelta(days=60)
        await store.add_job_log(_log(start=old, created_at=old))

        stats = await store.get_job_stats(StatsQuery(time_range_type="last30Days"))
        assert stats.success_count == 0

    async def test_status_distribution(self, store, make_job):
        """Should return counts and percentages per status."""
        await store.add_job(make_job(name="a"))
        await store.add_job(make_job(name="b"))
        await store.add_job(make_job(name="c"))
        await store.update_job_status(JobKey("c"), JobStatus.PAUSED)

        distribution = {d.status: d for d in await store.get_status_distribution(StatsQuery())}
        assert distribution["Normal"].count == 2
        assert distribution["Paused"].percentage == pytest.approx(33.33)

    async def test_type_distribution(self, store, make_job):
        """Should count jobs per kind."""
        await store.add_job(make_job(name="a"))
        await store.add_job(
            make_job(name="b", kind=JobKind.HTTP, target="https://example.com/hook")
        )

        distribution = {d.type: d.count for d in await store.get_type_distribution(StatsQuery())}
        assert distribution == {"class": 1, "http": 1}

    async def test_execution_time_histogram(self, store):
        """Should bucket durations into the fixed ranges."""
        await store.add_job_log(_log(duration=200))
        await store.add_job_log(_log(duration=2_500))
        await store.add_job_log(_log(duration=400_000))

        buckets = {
            b.time_range: b.count
            for b in await store.get_execution_time_histogram(StatsQuery(time_range_type="last30Days"))
        }
        assert buckets["< 1s"] == 1
        assert buckets["1-5s"] == 1
        assert buckets[">= 5m"] == 1
        assert buckets["5-10s"] == 0

    async def test_execution_trend_groups_by_hour(self, store):
        """Should group log outcomes into hourly points."""
        hour = utc_now().replace(minute=0, second=0, microsecond=0) - timedelta(hours=2)
        await store.add_job_log(_log(start=hour + timedelta(minutes=5)))
        await store.add_job_log(_log(start=hour + timedelta(minutes=50), status=LogStatus.FAILED))

        trend = await store.get_execution_trend(StatsQuery(time_range_type="last30Days"))
        assert len(trend) == 1
        assert trend[0].time == hour.strftime("%Y-%m-%d %H:00")
        assert trend[0].success_count == 1
        assert trend[0].failed_count == 1
        assert trend[0].total_count == 2


class TestSettings:
    """Tests for key/value settings."""

    async def test_save_is_upsert_by_key(self, store):
        """Should overwrite the value when saving an existing key."""
        assert await store.save_setting(Setting(key="theme", value="dark"))
        assert await store.save_setting(Setting(key="theme", value="light"))

        settings = await store.get_settings()
        assert len(settings) == 1
        assert (await store.get_setting("theme")).value == "light"

    async def test_delete_setting(self, store):
        """Should delete once and report False on the second attempt."""
        await store.save_setting(Setting(key="theme", value="dark"))
        assert await store.delete_setting("theme") is True
        assert await store.get_setting("theme") is None
        assert await store.delete_setting("theme") is False


class TestNotifications:
    """Tests for notification history."""

    async def test_add_update_and_get(self, store):
        """Should persist status changes made after the first write."""
        record = NotificationRecord(title="Job failed: report", content="boom", triggered_by="DEFAULT.report")
        assert await store.add_notification(record)

        sent = record.model_copy(update={"status": NotificationStatus.SENT, "sent_at": utc_now()})
        assert await store.update_notification(sent)

        loaded = await store.get_notification(record.notification_id)
        assert loaded.status == NotificationStatus.SENT
        assert loaded.sent_at is not None

    async def test_filter_and_clear(self, store):
        """Should filter by source and status, then clear everything."""
        await store.add_notification(NotificationRecord(title="a", content="", triggered_by="Scheduler"))
        await store.add_notification(
            NotificationRecord(
                title="b",
                content="",
                triggered_by="DEFAULT.report",
                status=NotificationStatus.FAILED,
            )
        )

        page = await store.get_notifications(NotificationQuery(triggered_by="sched"))
        assert [n.title for n in page.items] == ["a"]
        page = await store.get_notifications(NotificationQuery(status=NotificationStatus.FAILED))
        assert [n.title for n in page.items] == ["b"]

        assert await store.clear_notifications() == 2
        assert (await store.get_notifications(NotificationQuery())).total_count == 0

    async def test_delete_missing_notification(self, store):
        """Should report False for an unknown notification id."""
        assert await store.delete_notification("nope") is False
