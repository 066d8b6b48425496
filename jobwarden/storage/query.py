"""Query semantics shared by every store backend.

The file backend evaluates these helpers directly over loaded records; the
SQL backend mirrors the same rules in SQL and reuses the statistics
bucketing so that both produce identical results:

- name/group/triggered-by filters: case-insensitive substring match
- status / enabled filters: exact match
- sort: named field + direction, falling back to creation time descending
- paging: 1-based page index
"""

import enum
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timedelta
from typing import Any, TypeVar

from jobwarden.core.datetime_utils import utc_now
from jobwarden.schemas.common import PagedResult, PageQuery
from jobwarden.schemas.job import JobDefinition, JobQuery, JobStatus
from jobwarden.schemas.log import ExecutionLogEntry, JobLogQuery, LogStatus
from jobwarden.schemas.notification import NotificationQuery, NotificationRecord
from jobwarden.schemas.stats import (
    ExecutionTimeBucket,
    ExecutionTrendPoint,
    JobStats,
    StatsQuery,
    StatusDistribution,
    TypeDistribution,
)

T = TypeVar("T")

# Sort field name -> attribute, per record type
JOB_SORT_FIELDS: dict[str, str] = {
    "jobname": "job_name",
    "jobgroup": "job_group",
    "status": "status",
    "isenabled": "is_enabled",
    "createtime": "created_at",
    "updatetime": "updated_at",
    "previousruntime": "previous_run_time",
    "nextruntime": "next_run_time",
}

LOG_SORT_FIELDS: dict[str, str] = {
    "jobname": "job_name",
    "jobgroup": "job_group",
    "status": "status",
    "createtime": "created_at",
    "starttime": "start_time",
    "endtime": "end_time",
    "duration": "duration_ms",
}

NOTIFICATION_SORT_FIELDS: dict[str, str] = {
    "title": "title",
    "status": "status",
    "createtime": "created_at",
    "sendtime": "sent_at",
}

# (label, lower bound seconds inclusive, upper bound seconds exclusive)
DURATION_BUCKETS: list[tuple[str, float | None, float | None]] = [
    ("< 1s", None, 1),
    ("1-5s", 1, 5),
    ("5-10s", 5, 10),
    ("10-30s", 10, 30),
    ("30s-1m", 30, 60),
    ("1-5m", 60, 300),
    (">= 5m", 300, None),
]


def contains(value: str | None, needle: str | None) -> bool:
    """Case-insensitive substring match; an empty needle matches everything."""
    if not needle:
        return True
    return needle.lower() in (value or "").lower()


def _sort_value(value: Any) -> Any:
    # Enum members sort by declaration order, None sorts first
    if isinstance(value, enum.Enum):
        value = list(type(value)).index(value)
    return (value is not None, value)


def sort_records(
    records: list[T],
    query: PageQuery,
    fields: dict[str, str],
) -> list[T]:
    """Sort by the query's named field, defaulting to created_at descending."""
    attr = fields.get((query.sort_by or "").lower())
    if attr is None:
        return sorted(records, key=lambda r: _sort_value(getattr(r, "created_at")), reverse=True)
    return sorted(records, key=lambda r: _sort_value(getattr(r, attr)), reverse=query.descending)


def paginate(records: Sequence[T], query: PageQuery) -> PagedResult[T]:
    """Cut one 1-based page out of an already filtered and sorted list."""
    skip = (query.page_index - 1) * query.page_size
    return PagedResult(
        items=list(records[skip : skip + query.page_size]),
        total_count=len(records),
        page_index=query.page_index,
        page_size=query.page_size,
    )


def filter_jobs(jobs: Iterable[JobDefinition], query: JobQuery) -> list[JobDefinition]:
    return [
        job
        for job in jobs
        if contains(job.job_name, query.job_name)
        and contains(job.job_group, query.job_group)
        and (query.status is None or job.status == query.status)
        and (query.is_enabled is None or job.is_enabled == query.is_enabled)
    ]


def log_matcher(query: JobLogQuery | None) -> Callable[[ExecutionLogEntry], bool]:
    """Predicate for log filters; None matches every entry."""

    def _match(log: ExecutionLogEntry) -> bool:
        if query is None:
            return True
        return (
            contains(log.job_name, query.job_name)
            and contains(log.job_group, query.job_group)
            and (query.status is None or log.status == query.status)
            and (query.start_time is None or log.start_time >= query.start_time)
            and (query.end_time is None or log.start_time <= query.end_time)
        )

    return _match


def filter_notifications(
    records: Iterable[NotificationRecord], query: NotificationQuery
) -> list[NotificationRecord]:
    return [
        record
        for record in records
        if (query.status is None or record.status == query.status)
        and contains(record.triggered_by, query.triggered_by)
        and (query.start_time is None or record.created_at >= query.start_time)
        and (query.end_time is None or record.created_at <= query.end_time)
    ]


# =============================================================================
# Statistics
# =============================================================================


def calculate_time_range(query: StatsQuery, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Resolve a stats query into an inclusive (start, end) window."""
    if query.time_range_type == "custom" and query.start_time and query.end_time:
        return query.start_time, query.end_time

    end = now or utc_now()
    midnight = end.replace(hour=0, minute=0, second=0, microsecond=0)

    match query.time_range_type:
        case "today":
            start = midnight
        case "yesterday":
            start = midnight - timedelta(days=1)
            end = midnight - timedelta(milliseconds=1)
        case "thisWeek":
            # Week starts on Sunday
            days_since_sunday = (end.weekday() + 1) % 7
            start = midnight - timedelta(days=days_since_sunday)
        case "thisMonth":
            start = midnight.replace(day=1)
        case "last30Days":
            start = end - timedelta(days=30)
        case _:
            start = end - timedelta(days=7)

    return start, end


def in_window(log: ExecutionLogEntry, start: datetime, end: datetime) -> bool:
    return start <= log.start_time <= end


def compute_job_stats(
    jobs: Sequence[JobDefinition], logs: Sequence[ExecutionLogEntry]
) -> JobStats:
    """Counts over all jobs and over the logs already limited to the window."""
    return JobStats(
        total_jobs=len(jobs),
        enabled_jobs=sum(1 for j in jobs if j.is_enabled),
        disabled_jobs=sum(1 for j in jobs if not j.is_enabled),
        executing_jobs=sum(1 for log in logs if log.status == LogStatus.RUNNING),
        success_count=sum(1 for log in logs if log.status == LogStatus.SUCCESS),
        failed_count=sum(1 for log in logs if log.status == LogStatus.FAILED),
        paused_count=sum(1 for j in jobs if j.status == JobStatus.PAUSED),
        blocked_count=sum(1 for j in jobs if j.status == JobStatus.BLOCKED),
    )


def _percentage(count: int, total: int) -> float:
    return round(count / total * 100, 2) if total > 0 else 0.0


def status_distribution(counts: dict[str, int]) -> list[StatusDistribution]:
    total = sum(counts.values())
    return [
        StatusDistribution(status=status, count=count, percentage=_percentage(count, total))
        for status, count in counts.items()
    ]


def type_distribution(counts: dict[str, int]) -> list[TypeDistribution]:
    total = sum(counts.values())
    return [
        TypeDistribution(type=kind, count=count, percentage=_percentage(count, total))
        for kind, count in counts.items()
    ]


def execution_trend(logs: Iterable[ExecutionLogEntry]) -> list[ExecutionTrendPoint]:
    """Hourly success/failure counts, keyed `YYYY-MM-DD HH:00`, ascending."""
    points: dict[str, ExecutionTrendPoint] = {}
    for log in logs:
        label = log.start_time.strftime("%Y-%m-%d %H:00")
        point = points.setdefault(label, ExecutionTrendPoint(time=label))
        point.total_count += 1
        if log.status == LogStatus.SUCCESS:
            point.success_count += 1
        elif log.status == LogStatus.FAILED:
            point.failed_count += 1
    return [points[label] for label in sorted(points)]


def execution_time_histogram(logs: Iterable[ExecutionLogEntry]) -> list[ExecutionTimeBucket]:
    """Duration histogram of finished firings (Running entries excluded)."""
    buckets = [ExecutionTimeBucket(time_range=label) for label, _, _ in DURATION_BUCKETS]
    for log in logs:
        if log.status == LogStatus.RUNNING or log.duration_ms is None:
            continue
        seconds = log.duration_ms / 1000.0
        for bucket, (_, low, high) in zip(buckets, DURATION_BUCKETS, strict=True):
            if (low is None or seconds >= low) and (high is None or seconds < high):
                bucket.count += 1
                break
    return buckets
