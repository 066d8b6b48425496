"""
Explicit registry of class-kind jobs.

Usage:
    from jobwarden.jobs.registry import register_job

    @register_job("reports.nightly")
    class NightlyReport(BaseJob):
        async def execute(self, context: JobContext) -> str | None:
            ...

A job definition with `job_kind=class` names its implementation by the
registered name in `job_target`.
"""

from collections.abc import Callable

from jobwarden.core.errors import JobValidationError
from jobwarden.core.logging import get_logger
from jobwarden.jobs.base import BaseJob
from jobwarden.schemas.job import JobDefinition, JobKind

logger = get_logger(__name__)

_registry: dict[str, type[BaseJob]] = {}


def register_job(name: str) -> Callable[[type[BaseJob]], type[BaseJob]]:
    """Class decorator registering a job implementation under `name`."""

    def decorator(cls: type[BaseJob]) -> type[BaseJob]:
        existing = _registry.get(name)
        if existing is not None and existing is not cls:
            raise ValueError(f"Job name {name!r} is already registered to {existing.__name__}")
        cls.job_name = name
        _registry[name] = cls
        return cls

    return decorator


def unregister_job(name: str) -> None:
    _registry.pop(name, None)


def get_job_class(name: str) -> type[BaseJob] | None:
    return _registry.get(name)


def list_job_classes() -> list[str]:
    """Registered class-kind job names, sorted."""
    return sorted(_registry)


def create_job(definition: JobDefinition) -> BaseJob:
    """
    Instantiate the implementation for a definition.

    Raises:
        JobValidationError: If a class-kind target is not registered
    """
    if definition.job_kind == JobKind.HTTP:
        from jobwarden.jobs.http_job import HttpCallJob

        return HttpCallJob()

    cls = _registry.get(definition.job_target)
    if cls is None:
        raise JobValidationError(f"Job class not registered: {definition.job_target}")
    return cls()
