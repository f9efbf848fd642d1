"""Notification inbox and preference endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_notifications
from app.domain.notifications.models import NotificationPreferences
from app.domain.notifications.scheduler import NotificationScheduler
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    limit: int = Query(default=50, ge=1, le=200),
    auth_user: AuthenticatedUser = Depends(get_current_user),
    scheduler: NotificationScheduler = Depends(get_notifications),
) -> dict:
    items = await scheduler.list_notifications(auth_user.id, limit=limit)
    return {"items": [item.to_dict() for item in items]}


@router.get("/preferences")
async def get_preferences(
    auth_user: AuthenticatedUser = Depends(get_current_user),
    scheduler: NotificationScheduler = Depends(get_notifications),
) -> NotificationPreferences:
    return await scheduler.get_preferences(auth_user.id)


@router.put("/preferences")
async def put_preferences(
    payload: NotificationPreferences,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    scheduler: NotificationScheduler = Depends(get_notifications),
) -> NotificationPreferences:
    return await scheduler.update_preferences(auth_user.id, payload)
