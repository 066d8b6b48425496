"""Notification history and configuration endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from jobwarden.api.responses import envelope
from jobwarden.dependencies import Orchestrator
from jobwarden.schemas.notification import NotificationConfig, NotificationQuery

router = APIRouter()


@router.get("/notifications")
async def list_notifications(
    orchestrator: Orchestrator,
    query: Annotated[NotificationQuery, Query()],
) -> JSONResponse:
    return envelope(await orchestrator.get_notifications(query))


@router.delete("/notifications")
async def clear_notifications(orchestrator: Orchestrator) -> JSONResponse:
    return envelope(await orchestrator.clear_notifications())


@router.get("/notifications/config")
async def get_notification_config(orchestrator: Orchestrator) -> JSONResponse:
    return envelope(await orchestrator.get_notification_config())


@router.put("/notifications/config")
async def save_notification_config(
    orchestrator: Orchestrator, config: NotificationConfig
) -> JSONResponse:
    return envelope(await orchestrator.save_notification_config(config))


@router.post("/notifications/test")
async def send_test_notification(orchestrator: Orchestrator) -> JSONResponse:
    """Send a test message through the configured channel."""
    return envelope(await orchestrator.send_test_notification())


@router.get("/notifications/{notification_id}")
async def get_notification(orchestrator: Orchestrator, notification_id: str) -> JSONResponse:
    return envelope(await orchestrator.get_notification(notification_id))


@router.delete("/notifications/{notification_id}")
async def delete_notification(orchestrator: Orchestrator, notification_id: str) -> JSONResponse:
    return envelope(await orchestrator.delete_notification(notification_id))
