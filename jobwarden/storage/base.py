"""Abstract job store contract.

Every backend catches its own I/O, serialization and database errors and
reports them through the return value: `False` for writes, `None` for
single lookups, `0` for counts and empty lists/pages for queries. Callers
check return values; storage exceptions never propagate.
"""

import functools
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

from jobwarden.core.logging import get_logger
from jobwarden.schemas.common import PagedResult
from jobwarden.schemas.job import JobDefinition, JobKey, JobQuery, JobStatus
from jobwarden.schemas.log import ExecutionLogEntry, JobLogQuery
from jobwarden.schemas.notification import NotificationQuery, NotificationRecord, Setting
from jobwarden.schemas.stats import (
    ExecutionTimeBucket,
    ExecutionTrendPoint,
    JobStats,
    StatsQuery,
    StatusDistribution,
    TypeDistribution,
)

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


class JobStore(ABC):
    """Durable CRUD and query for jobs, logs, settings and notifications."""

    backend_name: str = "unknown"

    # --- lifecycle ---

    @abstractmethod
    async def initialize(self) -> bool:
        """Create files/tables if missing. Returns False on failure."""

    @abstractmethod
    async def is_initialized(self) -> bool:
        """Whether the backing storage is ready for use."""

    # --- jobs ---

    @abstractmethod
    async def add_job(self, job: JobDefinition) -> bool:
        """Insert a new definition; False if the identity already exists."""

    @abstractmethod
    async def update_job(self, job: JobDefinition) -> bool:
        """Overwrite all mutable fields of the stored definition with this identity."""

    @abstractmethod
    async def delete_job(self, key: JobKey) -> bool:
        """Remove a definition; False if it does not exist."""

    @abstractmethod
    async def get_job(self, key: JobKey) -> JobDefinition | None:
        pass

    @abstractmethod
    async def get_jobs(self, query: JobQuery) -> PagedResult[JobDefinition]:
        pass

    @abstractmethod
    async def get_all_jobs(self) -> list[JobDefinition]:
        pass

    @abstractmethod
    async def update_job_status(self, key: JobKey, status: JobStatus) -> bool:
        pass

    @abstractmethod
    async def update_job_run_times(
        self,
        key: JobKey,
        next_run_time: datetime | None,
        previous_run_time: datetime | None,
    ) -> bool:
        """Write the engine-reported fire times cached on a definition."""

    # --- execution logs ---

    @abstractmethod
    async def add_job_log(self, log: ExecutionLogEntry) -> bool:
        pass

    @abstractmethod
    async def get_job_logs(self, query: JobLogQuery) -> PagedResult[ExecutionLogEntry]:
        pass

    @abstractmethod
    async def clear_expired_logs(self, days_to_keep: int) -> int:
        """Delete log entries created more than `days_to_keep` days ago."""

    @abstractmethod
    async def clear_job_logs(self, query: JobLogQuery | None = None) -> int:
        """Delete log entries matching the filter (all entries when None or empty)."""

    # --- statistics ---

    @abstractmethod
    async def get_job_stats(self, query: StatsQuery) -> JobStats:
        pass

    @abstractmethod
    async def get_status_distribution(self, query: StatsQuery) -> list[StatusDistribution]:
        pass

    @abstractmethod
    async def get_type_distribution(self, query: StatsQuery) -> list[TypeDistribution]:
        pass

    @abstractmethod
    async def get_execution_trend(self, query: StatsQuery) -> list[ExecutionTrendPoint]:
        pass

    @abstractmethod
    async def get_execution_time_histogram(self, query: StatsQuery) -> list[ExecutionTimeBucket]:
        pass

    # --- settings ---

    @abstractmethod
    async def save_setting(self, setting: Setting) -> bool:
        """Insert or update by key."""

    @abstractmethod
    async def get_setting(self, key: str) -> Setting | None:
        pass

    @abstractmethod
    async def get_settings(self) -> list[Setting]:
        pass

    @abstractmethod
    async def delete_setting(self, key: str) -> bool:
        pass

    # --- notifications ---

    @abstractmethod
    async def add_notification(self, notification: NotificationRecord) -> bool:
        pass

    @abstractmethod
    async def update_notification(self, notification: NotificationRecord) -> bool:
        pass

    @abstractmethod
    async def get_notifications(
        self, query: NotificationQuery
    ) -> PagedResult[NotificationRecord]:
        pass

    @abstractmethod
    async def get_notification(self, notification_id: str) -> NotificationRecord | None:
        pass

    @abstractmethod
    async def delete_notification(self, notification_id: str) -> bool:
        pass

    @abstractmethod
    async def clear_notifications(self) -> int:
        pass


def store_operation(operation: str, default: Any) -> Callable[[F], F]:
    """
    Convert any exception raised by a store method into a failure value.

    Args:
        operation: Short name used in the `storage_<operation>_failed` log event
        default: Value (or zero-argument factory) returned on failure

    Returns:
        Decorator for async store methods
    """

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        async def wrapper(self: "JobStore", *args: Any, **kwargs: Any) -> Any:
            try:
                return await fn(self, *args, **kwargs)
            except Exception as e:
                logger.bind(backend=self.backend_name, error=str(e)).error(
                    f"storage_{operation}_failed"
                )
                return default() if callable(default) else default

        return wrapper  # type: ignore[return-value]

    return decorator
