"""Job implementations and the class-kind registry."""

from jobwarden.jobs.base import MANUAL_TRIGGER_FLAG, BaseJob, JobContext, parse_json_map
from jobwarden.jobs.registry import (
    create_job,
    get_job_class,
    list_job_classes,
    register_job,
    unregister_job,
)

# Registers the built-in jobs
from jobwarden.jobs import sample  # noqa: E402, F401  isort: skip

__all__ = [
    "MANUAL_TRIGGER_FLAG",
    "BaseJob",
    "JobContext",
    "create_job",
    "get_job_class",
    "list_job_classes",
    "parse_json_map",
    "register_job",
    "unregister_job",
]
