"""Notification bodies in the three supported formats (html, txt, markdown)."""

import html
import traceback
from datetime import datetime

from jobwarden.schemas.job import JobKey

FOOTER = "Sent automatically by the jobwarden scheduler. Do not reply."

_ROW = '<tr><td style="padding:6px 12px;font-weight:600;background:#f6f8fa;">{label}</td><td style="padding:6px 12px;">{value}</td></tr>'


def _html_table(heading: str, color: str, rows: list[tuple[str, str]]) -> str:
    body = "".join(_ROW.format(label=html.escape(k), value=html.escape(v)) for k, v in rows)
    return (
        '<div style="font-family:Helvetica,Arial,sans-serif;font-size:14px;max-width:720px;">'
        f'<h2 style="color:{color};">{html.escape(heading)}</h2>'
        f'<table style="border-collapse:collapse;width:100%;">{body}</table>'
        f'<p style="font-size:12px;color:#656d76;">{FOOTER}</p>'
        "</div>"
    )


def _render(template: str, heading: str, color: str, rows: list[tuple[str, str]]) -> str:
    match template:
        case "txt":
            lines = [heading, ""] + [f"{k}: {v}" for k, v in rows] + ["", FOOTER]
            return "\n".join(lines)
        case "markdown":
            lines = [f"## {heading}", ""] + [f"- **{k}**: {v}" for k, v in rows] + ["", f"_{FOOTER}_"]
            return "\n".join(lines)
        case _:
            return _html_table(heading, color, rows)


def render_job_result(
    template: str,
    key: JobKey,
    success: bool,
    message: str,
    duration_ms: int,
    error: str | None,
    executed_at: datetime,
) -> str:
    status = "Succeeded" if success else "Failed"
    rows = [
        ("Job name", key.name),
        ("Job group", key.group),
        ("Status", status),
        ("Executed at", executed_at.strftime("%Y-%m-%d %H:%M:%S")),
        ("Duration", f"{duration_ms} ms"),
        ("Message", message or ""),
    ]
    if error:
        rows.append(("Error", error))
    color = "#1a7f37" if success else "#cf222e"
    return _render(template, f"Job {status.lower()}: {key.name}", color, rows)


def render_scheduler_error(template: str, error: BaseException, occurred_at: datetime) -> str:
    rows = [
        ("Occurred at", occurred_at.strftime("%Y-%m-%d %H:%M:%S")),
        ("Error type", type(error).__name__),
        ("Message", str(error)),
    ]
    stack = "".join(traceback.format_exception(error)).strip()
    if stack:
        rows.append(("Stack trace", stack))
    return _render(template, "Scheduler error", "#cf222e", rows)
