"""Base class and firing context for job implementations."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from jobwarden.schemas.job import JobDefinition, JobKey, TriggerKey

MANUAL_TRIGGER_FLAG = "is_manual_trigger"


@dataclass
class JobContext:
    """What a job sees when it fires."""

    job_key: JobKey
    definition: JobDefinition
    fire_time: datetime
    previous_fire_time: datetime | None = None
    trigger_key: TriggerKey | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_manual(self) -> bool:
        return bool(self.data.get(MANUAL_TRIGGER_FLAG, False))

    def data_json(self) -> str:
        return json.dumps(self.data, default=str, ensure_ascii=False)


class BaseJob(ABC):
    """A unit of work the engine can fire."""

    job_name: str = "unknown"

    @abstractmethod
    async def execute(self, context: JobContext) -> str | None:
        """
        Run the job once.

        Args:
            context: Firing context with the definition and merged data map

        Returns:
            Optional result text stored on the execution log entry

        Raises:
            Exception: Any failure; the runner records it as a failed firing
        """
        pass


def parse_json_map(raw: str | None, field_name: str = "job_data") -> dict[str, Any]:
    """
    Parse a flat JSON object stored as text.

    Raises:
        ValueError: If the text is not a JSON object
    """
    if raw is None or not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"{field_name} is not valid JSON: {e.msg}") from e
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a JSON object")
    return value
