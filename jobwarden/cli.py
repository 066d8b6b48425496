"""
jobwarden CLI - Command line interface for the job orchestrator.

Usage:
    jobwarden --help                        Show all commands
    jobwarden serve                         Start the API server (scheduler included)
    jobwarden init-store                    Create storage files or tables
    jobwarden list-jobs                     List stored jobs
    jobwarden add-job NAME --target T       Add a job
    jobwarden pause GROUP.NAME              Pause a job
    jobwarden resume GROUP.NAME             Resume a job
    jobwarden trigger GROUP.NAME            Fire a job once in this process
    jobwarden delete GROUP.NAME             Delete a job
    jobwarden clear-logs --days 30          Delete old execution logs
    jobwarden next-runs "0 0/5 * * * ?"     Preview upcoming fire times

Commands other than `serve` work against the store directly. A running
server picks up changes made here on its next scheduler start.
"""

import asyncio

import typer

from jobwarden.schemas.common import ApiResponse
from jobwarden.schemas.job import DEFAULT_CRON, DEFAULT_GROUP, JobKey

app = typer.Typer(
    name="jobwarden",
    help="jobwarden CLI - cron job orchestration",
    no_args_is_help=True,
)


# --- Output helpers ---


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_warning(message: str) -> None:
    """Print a warning message."""
    typer.echo(f"  ⚠️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


def _report(response: ApiResponse) -> None:
    """Print an orchestrator envelope and exit non-zero on failure."""
    if not response.success:
        _print_error(response.message)
        raise typer.Exit(1)
    _print_success(response.message)


def _parse_key(value: str) -> JobKey:
    if "." not in value:
        return JobKey(value, DEFAULT_GROUP)
    try:
        return JobKey.parse(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


async def _orchestrator():
    from jobwarden.core.scheduler import build_orchestrator

    orch = build_orchestrator()
    if not await orch.store.initialize():
        _print_error("Job store could not be initialized")
        raise typer.Exit(1)
    return orch


@app.command()
def serve(
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable hot reload"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
):
    """Start the API server."""
    import subprocess

    cmd = ["uvicorn", "jobwarden.main:app", "--host", "0.0.0.0", "--port", str(port)]
    if reload:
        cmd.append("--reload")

    subprocess.run(cmd, check=False)


@app.command()
def migrate():
    """Run database migrations (alembic upgrade head)."""
    import subprocess

    result = subprocess.run(["alembic", "upgrade", "head"], check=False)
    raise typer.Exit(result.returncode)


@app.command("init-store")
def init_store():
    """Create the storage files or tables for the configured backend."""
    from jobwarden.core.logging import setup_logging
    from jobwarden.storage import get_job_store

    setup_logging()
    store = get_job_store()
    if not asyncio.run(store.initialize()):
        _print_error(f"Failed to initialize {store.backend_name} store")
        raise typer.Exit(1)
    _print_success(f"{store.backend_name} store ready")


@app.command("list-jobs")
def list_jobs(
    group: str | None = typer.Option(None, "--group", "-g", help="Filter by group (substring)"),
    name: str | None = typer.Option(None, "--name", "-n", help="Filter by name (substring)"),
    page_size: int = typer.Option(50, "--limit", "-l", help="Maximum number of jobs"),
):
    """List stored jobs."""
    from jobwarden.schemas.job import JobQuery

    async def run():
        orch = await _orchestrator()
        return await orch.get_jobs(JobQuery(job_name=name, job_group=group, page_size=page_size))

    response = asyncio.run(run())
    page = response.data
    if not page or not page.items:
        typer.echo("No jobs found.")
        return

    for job in page.items:
        state = job.status.value if job.is_enabled else "Disabled"
        next_run = job.next_run_time.strftime("%Y-%m-%d %H:%M:%S") if job.next_run_time else "-"
        typer.echo(f"{str(job.key):<40} {job.cron_expression:<22} {state:<10} next: {next_run}")
    typer.echo(f"\n{page.total_count} job(s)")


@app.command("add-job")
def add_job(
    name: str = typer.Argument(..., help="Job name"),
    target: str = typer.Option(..., "--target", "-t", help="Registered job class or http(s) URL"),
    group: str = typer.Option(DEFAULT_GROUP, "--group", "-g", help="Job group"),
    cron: str = typer.Option(DEFAULT_CRON, "--cron", "-c", help="Quartz cron expression"),
    http: bool = typer.Option(False, "--http", help="Target is a URL to call"),
    method: str = typer.Option("GET", "--method", "-m", help="HTTP method for --http jobs"),
    data: str | None = typer.Option(None, "--data", "-d", help="Job data as a JSON object"),
    description: str | None = typer.Option(None, "--description", help="Free-text description"),
    disabled: bool = typer.Option(False, "--disabled", help="Store without scheduling"),
):
    """Add a job definition."""
    from pydantic import ValidationError

    from jobwarden.schemas.job import JobDefinition, JobKind

    try:
        job = JobDefinition(
            job_name=name,
            job_group=group,
            cron_expression=cron,
            job_kind=JobKind.HTTP if http else JobKind.CLASS,
            job_target=target,
            job_data=data,
            api_method=method,
            description=description,
            is_enabled=not disabled,
            created_by="cli",
        )
    except ValidationError as e:
        _print_error(str(e))
        raise typer.Exit(1) from e

    async def run():
        orch = await _orchestrator()
        return await orch.add_job(job)

    _report(asyncio.run(run()))


@app.command()
def pause(job: str = typer.Argument(..., help="Job key as GROUP.NAME")):
    """Pause a job."""
    key = _parse_key(job)

    async def run():
        orch = await _orchestrator()
        return await orch.pause_job(key)

    _report(asyncio.run(run()))


@app.command()
def resume(job: str = typer.Argument(..., help="Job key as GROUP.NAME")):
    """Resume a paused job."""
    key = _parse_key(job)

    async def run():
        orch = await _orchestrator()
        return await orch.resume_job(key)

    _report(asyncio.run(run()))


@app.command()
def delete(job: str = typer.Argument(..., help="Job key as GROUP.NAME")):
    """Delete a job."""
    key = _parse_key(job)

    async def run():
        orch = await _orchestrator()
        return await orch.delete_job(key)

    _report(asyncio.run(run()))


@app.command()
def trigger(
    job: str = typer.Argument(..., help="Job key as GROUP.NAME"),
    timeout: float = typer.Option(300, "--timeout", help="Seconds to wait for the firing"),
):
    """Fire a job once in this process and wait for it to finish."""
    from jobwarden.core.logging import setup_logging
    from jobwarden.schemas.log import JobLogQuery

    setup_logging()
    key = _parse_key(job)

    async def run():
        orch = await _orchestrator()
        await orch.engine.start()
        try:
            response = await orch.trigger_job(key)
            if not response.success:
                return response, None

            # The one-off trigger fires on the next loop iteration
            await asyncio.sleep(0.5)
            async with asyncio.timeout(timeout):
                while await orch.engine.get_executing_jobs():
                    await asyncio.sleep(0.2)

            logs = await orch.get_job_logs(
                JobLogQuery(job_name=key.name, job_group=key.group, page_size=1)
            )
            return response, logs.data.items[0] if logs.data and logs.data.items else None
        finally:
            await orch.engine.shutdown(wait=False)

    response, entry = asyncio.run(run())
    _report(response)
    if entry is None:
        _print_warning("No execution log entry found")
        return
    typer.echo(f"  {entry.status.value}: {entry.message} ({entry.duration_ms} ms)")
    if entry.error_message:
        raise typer.Exit(1)


@app.command("clear-logs")
def clear_logs(
    days: int | None = typer.Option(None, "--days", help="Keep entries newer than this many days"),
    all_logs: bool = typer.Option(False, "--all", help="Delete every log entry"),
):
    """Delete execution log entries."""
    from jobwarden.config import get_config

    async def run():
        orch = await _orchestrator()
        if all_logs:
            return await orch.clear_job_logs(None)
        return await orch.clear_expired_logs(
            days if days is not None else get_config().storage.log_retention_days
        )

    _report(asyncio.run(run()))


@app.command("next-runs")
def next_runs(
    cron: str = typer.Argument(..., help="Quartz cron expression"),
    count: int = typer.Option(5, "--count", "-c", help="Number of fire times"),
):
    """Preview the next fire times of a cron expression."""
    from jobwarden.engine.cron import get_next_fire_times, validate_cron

    error = validate_cron(cron)
    if error:
        _print_error(error)
        raise typer.Exit(1)

    for fire_time in get_next_fire_times(cron, count):
        typer.echo(fire_time.strftime("%Y-%m-%d %H:%M:%S %Z"))


if __name__ == "__main__":
    app()
