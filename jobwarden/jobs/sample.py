"""Built-in class-kind jobs."""

from jobwarden.core.logging import get_logger
from jobwarden.jobs.base import BaseJob, JobContext
from jobwarden.jobs.registry import register_job

logger = get_logger(__name__)


@register_job("sample.log_message")
class LogMessageJob(BaseJob):
    """Writes the `message` data value to the log. Useful for smoke tests."""

    async def execute(self, context: JobContext) -> str | None:
        message = str(context.data.get("message", "Hello from jobwarden"))
        logger.bind(job=str(context.job_key), manual=context.is_manual).info(message)
        return message


@register_job("maintenance.clear_expired_logs")
class ClearExpiredLogsJob(BaseJob):
    """Deletes execution log entries older than `days_to_keep` (default from config)."""

    async def execute(self, context: JobContext) -> str | None:
        from jobwarden.config import get_config
        from jobwarden.storage import get_job_store

        days = int(context.data.get("days_to_keep", get_config().storage.log_retention_days))
        removed = await get_job_store().clear_expired_logs(days)
        logger.bind(removed=removed, days_to_keep=days).info("maintenance_logs_cleared")
        return f"Removed {removed} log entries older than {days} days"
