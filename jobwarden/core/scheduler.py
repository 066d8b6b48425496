"""
Runtime wiring for the scheduling engine.

Builds the process-wide orchestrator (store, APScheduler engine, runner,
listener, notification dispatcher) and starts/stops it with the app.

Startup:
1. Initialize the job store (create files or tables)
2. Start the engine (always empty, memory-only)
3. Reconcile: schedule every enabled, non-paused stored job
"""

from collections.abc import Callable

from jobwarden.config import get_config
from jobwarden.core.logging import get_logger
from jobwarden.engine.apscheduler_engine import ApschedulerEngine
from jobwarden.engine.base import SchedulingEngine
from jobwarden.schemas.notification import NotificationConfig
from jobwarden.services.listener import ExecutionListener
from jobwarden.services.notifications import NotificationChannel, NotificationDispatcher, create_channel
from jobwarden.services.orchestrator import JobOrchestrator
from jobwarden.services.runner import JobRunner
from jobwarden.storage import get_job_store
from jobwarden.storage.base import JobStore

logger = get_logger(__name__)

# Global orchestrator instance
orchestrator: JobOrchestrator | None = None


def build_orchestrator(
    store: JobStore | None = None,
    engine: SchedulingEngine | None = None,
    channel_factory: Callable[[NotificationConfig], NotificationChannel] = create_channel,
) -> JobOrchestrator:
    """Wire the store, engine, runner, listener and dispatcher together."""
    config = get_config()
    settings = config.settings

    store = store or get_job_store()
    engine = engine or ApschedulerEngine(
        name=config.scheduler.name,
        timezone=settings.scheduler_timezone,
        misfire_grace_seconds=config.scheduler.misfire_grace_seconds,
        coalesce=config.scheduler.coalesce,
    )
    dispatcher = NotificationDispatcher(store, channel_factory=channel_factory)
    orch = JobOrchestrator(
        store,
        engine,
        dispatcher,
        max_concurrent_jobs=settings.scheduler_max_concurrent_jobs,
    )
    listener = ExecutionListener(store, dispatcher, update_execution_times=orch.update_execution_times)
    engine.set_runner(
        JobRunner(
            store,
            listener,
            dispatcher,
            max_concurrent_jobs=settings.scheduler_max_concurrent_jobs,
        )
    )
    return orch


def get_orchestrator() -> JobOrchestrator:
    """Get the process-wide orchestrator, building it on first use."""
    global orchestrator
    if orchestrator is None:
        orchestrator = build_orchestrator()
    return orchestrator


def reset_orchestrator() -> None:
    """Reset the orchestrator instance (for testing)."""
    global orchestrator
    orchestrator = None


async def start_scheduler() -> JobOrchestrator | None:
    """Initialize the store, start the engine and reconcile stored jobs."""
    config = get_config()
    orch = get_orchestrator()

    if not await orch.store.initialize():
        logger.bind(backend=orch.store.backend_name).error("job_store_initialize_failed")
        return None

    if not config.settings.scheduler_enabled or not config.scheduler.auto_start:
        logger.info("scheduler_disabled_by_config")
        return orch

    response = await orch.start_scheduler()
    if not response.success:
        logger.bind(error=response.message).error("scheduler_start_failed")
        return orch

    logger.bind(**response.data.model_dump()).info("scheduler_started")
    return orch


async def stop_scheduler() -> None:
    """Gracefully stop the engine."""
    global orchestrator
    if orchestrator is not None:
        await orchestrator.shutdown_scheduler(wait=False)
        logger.info("scheduler_stopped")
        orchestrator = None
