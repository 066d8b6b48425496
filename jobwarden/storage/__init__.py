"""
Job store backends.

Usage:
    from jobwarden.storage import get_job_store

    store = get_job_store()
    await store.initialize()
    job = await store.get_job(JobKey("cleanup", "maintenance"))

The backend is selected by `STORAGE_TYPE` (`file` or `database`).
"""

from jobwarden.config import get_config
from jobwarden.core.logging import get_logger
from jobwarden.storage.base import JobStore
from jobwarden.storage.file_store import FileJobStore
from jobwarden.storage.sql_store import SqlJobStore

logger = get_logger(__name__)

__all__ = [
    "FileJobStore",
    "JobStore",
    "SqlJobStore",
    "create_job_store",
    "get_job_store",
    "reset_job_store",
]

_store: JobStore | None = None


def create_job_store() -> JobStore:
    """Build a new store for the configured backend."""
    config = get_config()
    storage_type = config.settings.storage_type

    if storage_type == "database":
        logger.bind(backend="database").info("job_store_selected")
        return SqlJobStore()

    storage = config.storage
    logger.bind(backend="file", path=storage.file_path).info("job_store_selected")
    return FileJobStore(
        storage_path=storage.file_path,
        backup_enabled=storage.enable_backup,
        backup_path=storage.backup_path,
        backup_interval_seconds=storage.backup_interval_seconds,
        max_backup_files=storage.max_backup_files,
    )


def get_job_store() -> JobStore:
    """
    Get the process-wide job store.

    Returns:
        The cached JobStore instance for the configured backend
    """
    global _store

    if _store is None:
        _store = create_job_store()

    return _store


def reset_job_store() -> None:
    """Reset the store singleton (for testing)."""
    global _store
    _store = None
