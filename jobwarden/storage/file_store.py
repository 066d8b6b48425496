"""
JSON file job store.

Keeps four files under the storage directory:

- jobs.json           job definitions
- logs.json           execution log entries
- settings.json       key/value settings
- notifications.json  notification history

Each file has its own asyncio lock so read-modify-write cycles against one
file are serialized (single writer, last writer wins). Files are replaced
atomically, so lock-free readers always see a complete document. Before
jobs, settings and notifications are overwritten, the previous file can be
copied to the backup directory (throttled, oldest backups pruned).
"""

import asyncio
import json
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import aiofiles
import aiofiles.os
from pydantic import BaseModel

from jobwarden.core.datetime_utils import get_cutoff, utc_now
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
from jobwarden.storage import query as q
from jobwarden.storage.base import JobStore, store_operation

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

JOBS_FILE = "jobs.json"
LOGS_FILE = "logs.json"
SETTINGS_FILE = "settings.json"
NOTIFICATIONS_FILE = "notifications.json"


class FileJobStore(JobStore):
    """Job store backed by JSON documents on the local filesystem."""

    backend_name = "file"

    def __init__(
        self,
        storage_path: str | Path,
        backup_enabled: bool = False,
        backup_path: str | Path | None = None,
        backup_interval_seconds: int = 3600,
        max_backup_files: int = 10,
    ) -> None:
        self.root = Path(storage_path)
        self.backup_enabled = backup_enabled
        self.backup_dir = Path(backup_path) if backup_path else self.root / "backups"
        self.backup_interval_seconds = backup_interval_seconds
        self.max_backup_files = max_backup_files

        self.jobs_file = self.root / JOBS_FILE
        self.logs_file = self.root / LOGS_FILE
        self.settings_file = self.root / SETTINGS_FILE
        self.notifications_file = self.root / NOTIFICATIONS_FILE

        self._locks: defaultdict[Path, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._last_backup: dict[Path, datetime] = {}

    # =========================================================================
    # File primitives
    # =========================================================================

    async def _load(self, path: Path, model: type[M]) -> list[M]:
        raw = await _read_json_list(path)
        return [model.model_validate(item) for item in raw]

    async def _save(self, path: Path, records: list[M], backup: bool = True) -> None:
        payload = [record.model_dump(mode="json") for record in records]
        if backup and self.backup_enabled:
            await self._create_backup(path)
        await _write_json_list(path, payload)

    async def _create_backup(self, path: Path) -> None:
        """Copy the current file into the backup directory (throttled)."""
        if not await aiofiles.os.path.exists(path):
            return

        now = utc_now()
        last = self._last_backup.get(path)
        if (
            last is not None
            and self.backup_interval_seconds > 0
            and (now - last).total_seconds() < self.backup_interval_seconds
        ):
            return

        try:
            await aiofiles.os.makedirs(self.backup_dir, exist_ok=True)
            target = self.backup_dir / f"{path.stem}_{now:%Y%m%d_%H%M%S}.json"
            async with aiofiles.open(path, "rb") as src:
                content = await src.read()
            async with aiofiles.open(target, "wb") as dst:
                await dst.write(content)
            self._last_backup[path] = now
            logger.bind(file=path.name, backup=target.name).debug("storage_backup_created")
            await self._prune_backups(path.stem)
        except OSError as e:
            # A failed backup never blocks the save itself
            logger.bind(file=path.name, error=str(e)).warning("storage_backup_failed")

    async def _prune_backups(self, stem: str) -> None:
        names = [
            name
            for name in await aiofiles.os.listdir(self.backup_dir)
            if name.startswith(f"{stem}_") and name.endswith(".json")
        ]
        mtimes = {name: (await aiofiles.os.stat(self.backup_dir / name)).st_mtime for name in names}
        backups = sorted(names, key=lambda name: (mtimes[name], name), reverse=True)
        for stale in backups[self.max_backup_files :]:
            await aiofiles.os.remove(self.backup_dir / stale)
            logger.bind(backup=stale).debug("storage_backup_pruned")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @store_operation("initialize", False)
    async def initialize(self) -> bool:
        await aiofiles.os.makedirs(self.root, exist_ok=True)
        for path in (
            self.jobs_file,
            self.logs_file,
            self.settings_file,
            self.notifications_file,
        ):
            if not await aiofiles.os.path.exists(path):
                await _write_json_list(path, [])
        if self.backup_enabled:
            await aiofiles.os.makedirs(self.backup_dir, exist_ok=True)

        logger.bind(path=str(self.root)).info("file_store_initialized")
        return True

    @store_operation("is_initialized", False)
    async def is_initialized(self) -> bool:
        return await aiofiles.os.path.exists(self.jobs_file) and await aiofiles.os.path.exists(
            self.logs_file
        )

    # =========================================================================
    # Jobs
    # =========================================================================

    @store_operation("add_job", False)
    async def add_job(self, job: JobDefinition) -> bool:
        async with self._locks[self.jobs_file]:
            jobs = await self._load(self.jobs_file, JobDefinition)
            if any(j.key == job.key for j in jobs):
                logger.bind(job=str(job.key)).warning("storage_job_already_exists")
                return False
            jobs.append(job)
            await self._save(self.jobs_file, jobs)
        return True

    @store_operation("update_job", False)
    async def update_job(self, job: JobDefinition) -> bool:
        async with self._locks[self.jobs_file]:
            jobs = await self._load(self.jobs_file, JobDefinition)
            for index, existing in enumerate(jobs):
                if existing.key == job.key:
                    jobs[index] = job.model_copy(update={"created_at": existing.created_at})
                    await self._save(self.jobs_file, jobs)
                    return True
        return False

    @store_operation("delete_job", False)
    async def delete_job(self, key: JobKey) -> bool:
        async with self._locks[self.jobs_file]:
            jobs = await self._load(self.jobs_file, JobDefinition)
            remaining = [j for j in jobs if j.key != key]
            if len(remaining) == len(jobs):
                return False
            await self._save(self.jobs_file, remaining)
        return True

    @store_operation("get_job", None)
    async def get_job(self, key: JobKey) -> JobDefinition | None:
        jobs = await self._load(self.jobs_file, JobDefinition)
        return next((j for j in jobs if j.key == key), None)

    @store_operation("get_jobs", PagedResult)
    async def get_jobs(self, query: JobQuery) -> PagedResult[JobDefinition]:
        jobs = await self._load(self.jobs_file, JobDefinition)
        matched = q.sort_records(q.filter_jobs(jobs, query), query, q.JOB_SORT_FIELDS)
        return q.paginate(matched, query)

    @store_operation("get_all_jobs", list)
    async def get_all_jobs(self) -> list[JobDefinition]:
        return await self._load(self.jobs_file, JobDefinition)

    async def _patch_job(self, key: JobKey, changes: dict[str, Any]) -> bool:
        async with self._locks[self.jobs_file]:
            jobs = await self._load(self.jobs_file, JobDefinition)
            for index, existing in enumerate(jobs):
                if existing.key == key:
                    jobs[index] = existing.model_copy(update=changes)
                    await self._save(self.jobs_file, jobs)
                    return True
        return False

    @store_operation("update_job_status", False)
    async def update_job_status(self, key: JobKey, status: JobStatus) -> bool:
        return await self._patch_job(key, {"status": status, "updated_at": utc_now()})

    @store_operation("update_job_run_times", False)
    async def update_job_run_times(
        self,
        key: JobKey,
        next_run_time: datetime | None,
        previous_run_time: datetime | None,
    ) -> bool:
        return await self._patch_job(
            key,
            {"next_run_time": next_run_time, "previous_run_time": previous_run_time},
        )

    # =========================================================================
    # Execution logs
    # =========================================================================

    @store_operation("add_job_log", False)
    async def add_job_log(self, log: ExecutionLogEntry) -> bool:
        async with self._locks[self.logs_file]:
            logs = await self._load(self.logs_file, ExecutionLogEntry)
            logs.append(log)
            await self._save(self.logs_file, logs, backup=False)
        return True

    @store_operation("get_job_logs", PagedResult)
    async def get_job_logs(self, query: JobLogQuery) -> PagedResult[ExecutionLogEntry]:
        logs = await self._load(self.logs_file, ExecutionLogEntry)
        matched = [log for log in logs if q.log_matcher(query)(log)]
        return q.paginate(q.sort_records(matched, query, q.LOG_SORT_FIELDS), query)

    @store_operation("clear_expired_logs", 0)
    async def clear_expired_logs(self, days_to_keep: int) -> int:
        cutoff = get_cutoff(days=days_to_keep)
        async with self._locks[self.logs_file]:
            logs = await self._load(self.logs_file, ExecutionLogEntry)
            kept = [log for log in logs if log.created_at >= cutoff]
            removed = len(logs) - len(kept)
            if removed:
                await self._save(self.logs_file, kept, backup=False)
        logger.bind(removed=removed, days_to_keep=days_to_keep).info("expired_logs_cleared")
        return removed

    @store_operation("clear_job_logs", 0)
    async def clear_job_logs(self, query: JobLogQuery | None = None) -> int:
        match = q.log_matcher(None if query is None or query.is_empty() else query)
        async with self._locks[self.logs_file]:
            logs = await self._load(self.logs_file, ExecutionLogEntry)
            kept = [log for log in logs if not match(log)]
            removed = len(logs) - len(kept)
            await self._save(self.logs_file, kept, backup=False)
        return removed

    # =========================================================================
    # Statistics
    # =========================================================================

    async def _logs_in_range(self, query: StatsQuery) -> list[ExecutionLogEntry]:
        start, end = q.calculate_time_range(query)
        logs = await self._load(self.logs_file, ExecutionLogEntry)
        return [log for log in logs if q.in_window(log, start, end)]

    @store_operation("get_job_stats", JobStats)
    async def get_job_stats(self, query: StatsQuery) -> JobStats:
        jobs = await self._load(self.jobs_file, JobDefinition)
        return q.compute_job_stats(jobs, await self._logs_in_range(query))

    @store_operation("get_status_distribution", list)
    async def get_status_distribution(self, query: StatsQuery) -> list[StatusDistribution]:
        jobs = await self._load(self.jobs_file, JobDefinition)
        counts: dict[str, int] = {}
        for job in jobs:
            counts[job.status.value] = counts.get(job.status.value, 0) + 1
        return q.status_distribution(counts)

    @store_operation("get_type_distribution", list)
    async def get_type_distribution(self, query: StatsQuery) -> list[TypeDistribution]:
        jobs = await self._load(self.jobs_file, JobDefinition)
        counts: dict[str, int] = {}
        for job in jobs:
            counts[job.job_kind.value] = counts.get(job.job_kind.value, 0) + 1
        return q.type_distribution(counts)

    @store_operation("get_execution_trend", list)
    async def get_execution_trend(self, query: StatsQuery) -> list[ExecutionTrendPoint]:
        return q.execution_trend(await self._logs_in_range(query))

    @store_operation("get_execution_time_histogram", list)
    async def get_execution_time_histogram(self, query: StatsQuery) -> list[ExecutionTimeBucket]:
        return q.execution_time_histogram(await self._logs_in_range(query))

    # =========================================================================
    # Settings
    # =========================================================================

    @store_operation("save_setting", False)
    async def save_setting(self, setting: Setting) -> bool:
        async with self._locks[self.settings_file]:
            settings = await self._load(self.settings_file, Setting)
            for index, existing in enumerate(settings):
                if existing.key == setting.key:
                    settings[index] = existing.model_copy(
                        update={
                            "value": setting.value,
                            "description": setting.description,
                            "enabled": setting.enabled,
                            "updated_at": utc_now(),
                        }
                    )
                    break
            else:
                settings.append(setting)
            await self._save(self.settings_file, settings)
        return True

    @store_operation("get_setting", None)
    async def get_setting(self, key: str) -> Setting | None:
        settings = await self._load(self.settings_file, Setting)
        return next((s for s in settings if s.key == key), None)

    @store_operation("get_settings", list)
    async def get_settings(self) -> list[Setting]:
        return await self._load(self.settings_file, Setting)

    @store_operation("delete_setting", False)
    async def delete_setting(self, key: str) -> bool:
        async with self._locks[self.settings_file]:
            settings = await self._load(self.settings_file, Setting)
            remaining = [s for s in settings if s.key != key]
            if len(remaining) == len(settings):
                return False
            await self._save(self.settings_file, remaining)
        return True

    # =========================================================================
    # Notifications
    # =========================================================================

    @store_operation("add_notification", False)
    async def add_notification(self, notification: NotificationRecord) -> bool:
        async with self._locks[self.notifications_file]:
            records = await self._load(self.notifications_file, NotificationRecord)
            records.append(notification)
            await self._save(self.notifications_file, records)
        return True

    @store_operation("update_notification", False)
    async def update_notification(self, notification: NotificationRecord) -> bool:
        async with self._locks[self.notifications_file]:
            records = await self._load(self.notifications_file, NotificationRecord)
            for index, existing in enumerate(records):
                if existing.notification_id == notification.notification_id:
                    records[index] = notification
                    await self._save(self.notifications_file, records)
                    return True
        return False

    @store_operation("get_notifications", PagedResult)
    async def get_notifications(
        self, query: NotificationQuery
    ) -> PagedResult[NotificationRecord]:
        records = await self._load(self.notifications_file, NotificationRecord)
        matched = q.filter_notifications(records, query)
        return q.paginate(q.sort_records(matched, query, q.NOTIFICATION_SORT_FIELDS), query)

    @store_operation("get_notification", None)
    async def get_notification(self, notification_id: str) -> NotificationRecord | None:
        records = await self._load(self.notifications_file, NotificationRecord)
        return next((r for r in records if r.notification_id == notification_id), None)

    @store_operation("delete_notification", False)
    async def delete_notification(self, notification_id: str) -> bool:
        async with self._locks[self.notifications_file]:
            records = await self._load(self.notifications_file, NotificationRecord)
            remaining = [r for r in records if r.notification_id != notification_id]
            if len(remaining) == len(records):
                return False
            await self._save(self.notifications_file, remaining)
        return True

    @store_operation("clear_notifications", 0)
    async def clear_notifications(self) -> int:
        async with self._locks[self.notifications_file]:
            records = await self._load(self.notifications_file, NotificationRecord)
            await self._save(self.notifications_file, [])
        return len(records)


async def _read_json_list(path: Path) -> list[dict[str, Any]]:
    if not await aiofiles.os.path.exists(path):
        return []
    async with aiofiles.open(path, encoding="utf-8") as f:
        text = await f.read()
    if not text.strip():
        return []
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError(f"{path.name} does not contain a JSON array")
    return data


async def _write_json_list(path: Path, payload: list[dict[str, Any]]) -> None:
    await aiofiles.os.makedirs(path.parent, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
        await f.write(json.dumps(payload, ensure_ascii=False, indent=2))
    await aiofiles.os.replace(tmp, path)
