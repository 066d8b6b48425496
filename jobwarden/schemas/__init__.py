from jobwarden.schemas.common import ApiResponse, PagedResult, PageQuery
from jobwarden.schemas.job import (
    BatchDeleteResult,
    JobDefinition,
    JobKey,
    JobKind,
    JobQuery,
    JobStatus,
    SchedulerStatus,
    TriggerKey,
)
from jobwarden.schemas.log import ExecutionLogEntry, JobLogQuery, LogStatus
from jobwarden.schemas.notification import (
    NotificationConfig,
    NotificationQuery,
    NotificationRecord,
    NotificationStatus,
    NotificationStrategy,
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

__all__ = [
    "ApiResponse",
    "PagedResult",
    "PageQuery",
    "BatchDeleteResult",
    "JobDefinition",
    "JobKey",
    "JobKind",
    "JobQuery",
    "JobStatus",
    "SchedulerStatus",
    "TriggerKey",
    "ExecutionLogEntry",
    "JobLogQuery",
    "LogStatus",
    "NotificationConfig",
    "NotificationQuery",
    "NotificationRecord",
    "NotificationStatus",
    "NotificationStrategy",
    "Setting",
    "ExecutionTimeBucket",
    "ExecutionTrendPoint",
    "JobStats",
    "StatsQuery",
    "StatusDistribution",
    "TypeDistribution",
]
