"""
HTTP call job.

Fires one HTTP request described by the job definition:

- method: `api_method` (upper-cased, default GET)
- url: `job_target`
- headers: `api_headers` JSON object
- body: `api_body`, sent as application/json when present
- timeout: `api_timeout` seconds (default 60)
- TLS verification disabled when `skip_ssl_validation` is set

Non-2xx responses raise, so the firing is logged as failed.
"""

import asyncio

import httpx

from jobwarden.core.logging import get_logger
from jobwarden.jobs.base import BaseJob, JobContext, parse_json_map
from jobwarden.schemas.job import JobStatus

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60
MAX_RESULT_LENGTH = 2000


class HttpCallJob(BaseJob):
    """Executes the HTTP request described by an http-kind definition."""

    job_name = "http"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.transport = transport

    async def execute(self, context: JobContext) -> str | None:
        definition = context.definition

        if definition.status == JobStatus.PAUSED and not context.is_manual:
            logger.bind(job=str(context.job_key)).info("http_job_skipped_paused")
            return "Job is paused, request skipped"

        method = (definition.api_method or "GET").upper()
        url = definition.job_target
        headers = {
            str(k): str(v) for k, v in parse_json_map(definition.api_headers, "api_headers").items()
        }
        timeout = definition.api_timeout or DEFAULT_TIMEOUT_SECONDS

        content: bytes | None = None
        if definition.api_body:
            content = definition.api_body.encode("utf-8")
            headers.setdefault("Content-Type", "application/json")

        logger.bind(job=str(context.job_key), method=method, url=url).debug("http_job_request")

        async with asyncio.timeout(timeout):
            async with httpx.AsyncClient(
                timeout=float(timeout),
                verify=not definition.skip_ssl_validation,
                transport=self.transport,
            ) as client:
                response = await client.request(method, url, headers=headers, content=content)
                response.raise_for_status()

        logger.bind(
            job=str(context.job_key),
            status=response.status_code,
        ).info("http_job_completed")
        return f"HTTP {response.status_code}: {response.text[:MAX_RESULT_LENGTH]}"
