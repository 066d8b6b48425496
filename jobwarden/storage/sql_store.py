"""
Relational job store on SQLAlchemy 2 async sessions.

Filters, sorting and paging are pushed down into SQL and follow the same
rules as `storage.query`; the statistics bucketing is shared with the file
backend so both report identical numbers.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, case, delete, func, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobwarden.core.datetime_utils import get_cutoff, utc_now
from jobwarden.core.logging import get_logger
from jobwarden.models import Base, JobLogRecord, JobRecord, NotificationRecordRow, SettingRecord
from jobwarden.schemas.common import PagedResult, PageQuery
from jobwarden.schemas.job import JobDefinition, JobKey, JobQuery, JobStatus
from jobwarden.schemas.log import ExecutionLogEntry, JobLogQuery, LogStatus
from jobwarden.schemas.notification import (
    NotificationQuery,
    NotificationRecord,
    NotificationStatus,
    Setting,
)
from jobwarden.schemas.stats import (
    ExecutionTimeBucket,
    ExecutionTrendPoint,
    JobStats,
    StatsQuery,
    StatusDistribution,
    TypeDistribution,
)
from jobwarden.storage import query as q
from jobwarden.storage.base import JobStore, store_operation

logger = get_logger(__name__)


def _enum_order(column: Any, enum_cls: type) -> ColumnElement[int]:
    """Order an enum column by declaration order rather than by its text."""
    return case(
        *[(column == member, index) for index, member in enumerate(enum_cls)],
        else_=len(list(enum_cls)),
    )


JOB_ORDER_COLUMNS: dict[str, Any] = {
    "jobname": JobRecord.job_name,
    "jobgroup": JobRecord.job_group,
    "status": _enum_order(JobRecord.status, JobStatus),
    "isenabled": JobRecord.is_enabled,
    "createtime": JobRecord.created_at,
    "updatetime": JobRecord.updated_at,
    "previousruntime": JobRecord.previous_run_time,
    "nextruntime": JobRecord.next_run_time,
}

LOG_ORDER_COLUMNS: dict[str, Any] = {
    "jobname": JobLogRecord.job_name,
    "jobgroup": JobLogRecord.job_group,
    "status": _enum_order(JobLogRecord.status, LogStatus),
    "createtime": JobLogRecord.created_at,
    "starttime": JobLogRecord.start_time,
    "endtime": JobLogRecord.end_time,
    "duration": JobLogRecord.duration_ms,
}

NOTIFICATION_ORDER_COLUMNS: dict[str, Any] = {
    "title": NotificationRecordRow.title,
    "status": _enum_order(NotificationRecordRow.status, NotificationStatus),
    "createtime": NotificationRecordRow.created_at,
    "sendtime": NotificationRecordRow.sent_at,
}


def _order_by(query: PageQuery, columns: dict[str, Any], default: Any) -> Any:
    column = columns.get((query.sort_by or "").lower())
    if column is None:
        return default.desc()
    # Match the in-memory rule: NULL is the smallest value
    if query.descending:
        return column.desc().nulls_last()
    return column.asc().nulls_first()


def _contains(column: Any, needle: str | None) -> ColumnElement[bool] | None:
    if not needle:
        return None
    return column.ilike(f"%{needle}%")


def _job_filters(query: JobQuery) -> list[ColumnElement[bool]]:
    conditions = [
        _contains(JobRecord.job_name, query.job_name),
        _contains(JobRecord.job_group, query.job_group),
    ]
    if query.status is not None:
        conditions.append(JobRecord.status == query.status)
    if query.is_enabled is not None:
        conditions.append(JobRecord.is_enabled == query.is_enabled)
    return [c for c in conditions if c is not None]


def _log_filters(query: JobLogQuery | None) -> list[ColumnElement[bool]]:
    if query is None:
        return []
    conditions = [
        _contains(JobLogRecord.job_name, query.job_name),
        _contains(JobLogRecord.job_group, query.job_group),
    ]
    if query.status is not None:
        conditions.append(JobLogRecord.status == query.status)
    if query.start_time is not None:
        conditions.append(JobLogRecord.start_time >= query.start_time)
    if query.end_time is not None:
        conditions.append(JobLogRecord.start_time <= query.end_time)
    return [c for c in conditions if c is not None]


def _notification_filters(query: NotificationQuery) -> list[ColumnElement[bool]]:
    conditions = [_contains(NotificationRecordRow.triggered_by, query.triggered_by)]
    if query.status is not None:
        conditions.append(NotificationRecordRow.status == query.status)
    if query.start_time is not None:
        conditions.append(NotificationRecordRow.created_at >= query.start_time)
    if query.end_time is not None:
        conditions.append(NotificationRecordRow.created_at <= query.end_time)
    return [c for c in conditions if c is not None]


def _identity(key: JobKey) -> list[ColumnElement[bool]]:
    return [JobRecord.job_name == key.name, JobRecord.job_group == key.group]


class SqlJobStore(JobStore):
    """Job store backed by a relational database."""

    backend_name = "database"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        if session_factory is None:
            from jobwarden.core.database import AsyncSessionLocal

            session_factory = AsyncSessionLocal
        self.session_factory = session_factory

    async def _page(
        self,
        session: AsyncSession,
        model: Any,
        conditions: Sequence[ColumnElement[bool]],
        query: PageQuery,
        order: Any,
    ) -> tuple[list[Any], int]:
        total = await session.scalar(select(func.count()).select_from(model).where(*conditions))
        stmt = (
            select(model)
            .where(*conditions)
            .order_by(order)
            .offset((query.page_index - 1) * query.page_size)
            .limit(query.page_size)
        )
        rows = list((await session.scalars(stmt)).all())
        return rows, total or 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @store_operation("initialize", False)
    async def initialize(self) -> bool:
        bind = self.session_factory.kw["bind"]
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("sql_store_initialized")
        return True

    @store_operation("is_initialized", False)
    async def is_initialized(self) -> bool:
        async with self.session_factory() as session:
            await session.execute(text("SELECT 1"))
            await session.scalar(select(func.count()).select_from(JobRecord))
        return True

    # =========================================================================
    # Jobs
    # =========================================================================

    @store_operation("add_job", False)
    async def add_job(self, job: JobDefinition) -> bool:
        async with self.session_factory() as session:
            existing = await session.scalar(select(JobRecord.id).where(*_identity(job.key)))
            if existing is not None:
                logger.bind(job=str(job.key)).warning("storage_job_already_exists")
                return False
            session.add(JobRecord(**job.model_dump()))
            await session.commit()
        return True

    @store_operation("update_job", False)
    async def update_job(self, job: JobDefinition) -> bool:
        async with self.session_factory() as session:
            record = await session.scalar(select(JobRecord).where(*_identity(job.key)))
            if record is None:
                return False
            for field, value in job.model_dump(exclude={"created_at"}).items():
                setattr(record, field, value)
            await session.commit()
        return True

    @store_operation("delete_job", False)
    async def delete_job(self, key: JobKey) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(delete(JobRecord).where(*_identity(key)))
            await session.commit()
        return bool(result.rowcount)

    @store_operation("get_job", None)
    async def get_job(self, key: JobKey) -> JobDefinition | None:
        async with self.session_factory() as session:
            record = await session.scalar(select(JobRecord).where(*_identity(key)))
        return JobDefinition.model_validate(record) if record else None

    @store_operation("get_jobs", PagedResult)
    async def get_jobs(self, query: JobQuery) -> PagedResult[JobDefinition]:
        async with self.session_factory() as session:
            rows, total = await self._page(
                session,
                JobRecord,
                _job_filters(query),
                query,
                _order_by(query, JOB_ORDER_COLUMNS, JobRecord.created_at),
            )
        return PagedResult(
            items=[JobDefinition.model_validate(r) for r in rows],
            total_count=total,
            page_index=query.page_index,
            page_size=query.page_size,
        )

    @store_operation("get_all_jobs", list)
    async def get_all_jobs(self) -> list[JobDefinition]:
        async with self.session_factory() as session:
            rows = (await session.scalars(select(JobRecord))).all()
        return [JobDefinition.model_validate(r) for r in rows]

    @store_operation("update_job_status", False)
    async def update_job_status(self, key: JobKey, status: JobStatus) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                update(JobRecord)
                .where(*_identity(key))
                .values(status=status, updated_at=utc_now())
            )
            await session.commit()
        return bool(result.rowcount)

    @store_operation("update_job_run_times", False)
    async def update_job_run_times(
        self,
        key: JobKey,
        next_run_time: datetime | None,
        previous_run_time: datetime | None,
    ) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                update(JobRecord)
                .where(*_identity(key))
                .values(next_run_time=next_run_time, previous_run_time=previous_run_time)
            )
            await session.commit()
        return bool(result.rowcount)

    # =========================================================================
    # Execution logs
    # =========================================================================

    @store_operation("add_job_log", False)
    async def add_job_log(self, log: ExecutionLogEntry) -> bool:
        async with self.session_factory() as session:
            session.add(JobLogRecord(**log.model_dump()))
            await session.commit()
        return True

    @store_operation("get_job_logs", PagedResult)
    async def get_job_logs(self, query: JobLogQuery) -> PagedResult[ExecutionLogEntry]:
        async with self.session_factory() as session:
            rows, total = await self._page(
                session,
                JobLogRecord,
                _log_filters(query),
                query,
                _order_by(query, LOG_ORDER_COLUMNS, JobLogRecord.created_at),
            )
        return PagedResult(
            items=[ExecutionLogEntry.model_validate(r) for r in rows],
            total_count=total,
            page_index=query.page_index,
            page_size=query.page_size,
        )

    @store_operation("clear_expired_logs", 0)
    async def clear_expired_logs(self, days_to_keep: int) -> int:
        cutoff = get_cutoff(days=days_to_keep)
        async with self.session_factory() as session:
            result = await session.execute(
                delete(JobLogRecord).where(JobLogRecord.created_at < cutoff)
            )
            await session.commit()
        logger.bind(removed=result.rowcount, days_to_keep=days_to_keep).info(
            "expired_logs_cleared"
        )
        return result.rowcount or 0

    @store_operation("clear_job_logs", 0)
    async def clear_job_logs(self, query: JobLogQuery | None = None) -> int:
        conditions = _log_filters(None if query is None or query.is_empty() else query)
        async with self.session_factory() as session:
            result = await session.execute(delete(JobLogRecord).where(*conditions))
            await session.commit()
        return result.rowcount or 0

    # =========================================================================
    # Statistics
    # =========================================================================

    async def _logs_in_range(self, session: AsyncSession, query: StatsQuery) -> list[ExecutionLogEntry]:
        start, end = q.calculate_time_range(query)
        rows = (
            await session.scalars(
                select(JobLogRecord).where(
                    JobLogRecord.start_time >= start, JobLogRecord.start_time <= end
                )
            )
        ).all()
        return [ExecutionLogEntry.model_validate(r) for r in rows]

    async def _grouped_counts(self, column: Any) -> dict[str, int]:
        async with self.session_factory() as session:
            rows = (await session.execute(select(column, func.count()).group_by(column))).all()
        return {value.value: count for value, count in rows}

    @store_operation("get_job_stats", JobStats)
    async def get_job_stats(self, query: StatsQuery) -> JobStats:
        async with self.session_factory() as session:
            jobs = [
                JobDefinition.model_validate(r)
                for r in (await session.scalars(select(JobRecord))).all()
            ]
            logs = await self._logs_in_range(session, query)
        return q.compute_job_stats(jobs, logs)

    @store_operation("get_status_distribution", list)
    async def get_status_distribution(self, query: StatsQuery) -> list[StatusDistribution]:
        return q.status_distribution(await self._grouped_counts(JobRecord.status))

    @store_operation("get_type_distribution", list)
    async def get_type_distribution(self, query: StatsQuery) -> list[TypeDistribution]:
        return q.type_distribution(await self._grouped_counts(JobRecord.job_kind))

    @store_operation("get_execution_trend", list)
    async def get_execution_trend(self, query: StatsQuery) -> list[ExecutionTrendPoint]:
        async with self.session_factory() as session:
            logs = await self._logs_in_range(session, query)
        return q.execution_trend(logs)

    @store_operation("get_execution_time_histogram", list)
    async def get_execution_time_histogram(self, query: StatsQuery) -> list[ExecutionTimeBucket]:
        async with self.session_factory() as session:
            logs = await self._logs_in_range(session, query)
        return q.execution_time_histogram(logs)

    # =========================================================================
    # Settings
    # =========================================================================

    @store_operation("save_setting", False)
    async def save_setting(self, setting: Setting) -> bool:
        async with self.session_factory() as session:
            record = await session.scalar(
                select(SettingRecord).where(SettingRecord.key == setting.key)
            )
            if record is None:
                session.add(SettingRecord(**setting.model_dump()))
            else:
                record.value = setting.value
                record.description = setting.description
                record.enabled = setting.enabled
                record.updated_at = utc_now()
            await session.commit()
        return True

    @store_operation("get_setting", None)
    async def get_setting(self, key: str) -> Setting | None:
        async with self.session_factory() as session:
            record = await session.scalar(select(SettingRecord).where(SettingRecord.key == key))
        return Setting.model_validate(record) if record else None

    @store_operation("get_settings", list)
    async def get_settings(self) -> list[Setting]:
        async with self.session_factory() as session:
            rows = (await session.scalars(select(SettingRecord))).all()
        return [Setting.model_validate(r) for r in rows]

    @store_operation("delete_setting", False)
    async def delete_setting(self, key: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(delete(SettingRecord).where(SettingRecord.key == key))
            await session.commit()
        return bool(result.rowcount)

    # =========================================================================
    # Notifications
    # =========================================================================

    @store_operation("add_notification", False)
    async def add_notification(self, notification: NotificationRecord) -> bool:
        async with self.session_factory() as session:
            session.add(NotificationRecordRow(**notification.model_dump()))
            await session.commit()
        return True

    @store_operation("update_notification", False)
    async def update_notification(self, notification: NotificationRecord) -> bool:
        async with self.session_factory() as session:
            record = await session.get(NotificationRecordRow, notification.notification_id)
            if record is None:
                return False
            for field, value in notification.model_dump(exclude={"notification_id"}).items():
                setattr(record, field, value)
            await session.commit()
        return True

    @store_operation("get_notifications", PagedResult)
    async def get_notifications(
        self, query: NotificationQuery
    ) -> PagedResult[NotificationRecord]:
        async with self.session_factory() as session:
            rows, total = await self._page(
                session,
                NotificationRecordRow,
                _notification_filters(query),
                query,
                _order_by(query, NOTIFICATION_ORDER_COLUMNS, NotificationRecordRow.created_at),
            )
        return PagedResult(
            items=[NotificationRecord.model_validate(r) for r in rows],
            total_count=total,
            page_index=query.page_index,
            page_size=query.page_size,
        )

    @store_operation("get_notification", None)
    async def get_notification(self, notification_id: str) -> NotificationRecord | None:
        async with self.session_factory() as session:
            record = await session.get(NotificationRecordRow, notification_id)
        return NotificationRecord.model_validate(record) if record else None

    @store_operation("delete_notification", False)
    async def delete_notification(self, notification_id: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(NotificationRecordRow).where(
                    NotificationRecordRow.notification_id == notification_id
                )
            )
            await session.commit()
        return bool(result.rowcount)

    @store_operation("clear_notifications", 0)
    async def clear_notifications(self) -> int:
        async with self.session_factory() as session:
            result = await session.execute(delete(NotificationRecordRow))
            await session.commit()
        return result.rowcount or 0
