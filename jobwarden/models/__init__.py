from jobwarden.models.base import Base
from jobwarden.models.job import JobRecord
from jobwarden.models.job_log import JobLogRecord
from jobwarden.models.notification import NotificationRecordRow, SettingRecord

__all__ = [
    "Base",
    "JobRecord",
    "JobLogRecord",
    "NotificationRecordRow",
    "SettingRecord",
]
