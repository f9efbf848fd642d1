"""Safety alert, check-in and emergency contact endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.deps import get_safety
from app.domain.safety.schemas import AlertActionPayload, AlertPayload, CheckPayload, ContactPayload
from app.domain.safety.service import SafetyService
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/safety", tags=["safety"])


@router.get("/alerts")
async def list_alerts(
    active: bool = Query(default=False),
    auth_user: AuthenticatedUser = Depends(get_current_user),
    safety: SafetyService = Depends(get_safety),
) -> dict:
    if active:
        alerts = await safety.get_active_alerts(auth_user.id)
    else:
        alerts = await safety.list_alerts(auth_user.id)
    return {"items": [alert.to_dict() for alert in alerts]}


@router.post("/alerts", status_code=status.HTTP_201_CREATED)
async def create_alert(
    payload: AlertPayload,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    safety: SafetyService = Depends(get_safety),
) -> dict:
    alert = await safety.create_alert(auth_user.id, payload.to_draft())
    return alert.to_dict()


@router.get("/alerts/{alert_id}")
async def get_alert(
    alert_id: str,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    safety: SafetyService = Depends(get_safety),
) -> dict:
    alert = await safety.get_alert(auth_user.id, alert_id)
    return alert.to_dict()


@router.put("/alerts/{alert_id}")
async def update_alert(
    alert_id: str,
    payload: AlertActionPayload,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    safety: SafetyService = Depends(get_safety),
) -> dict:
    if payload.action == "dismiss":
        alert = await safety.dismiss_alert(alert_id, auth_user.id)
    else:
        alert = await safety.resolve_alert(alert_id, auth_user.id)
    return alert.to_dict()


@router.get("/checks")
async def list_checks(
    check_status: Optional[str] = Query(default=None, alias="status"),
    auth_user: AuthenticatedUser = Depends(get_current_user),
    safety: SafetyService = Depends(get_safety),
) -> dict:
    checks = await safety.list_checks(auth_user.id, status=check_status)
    return {"items": [check.to_dict() for check in checks]}


@router.post("/checks", status_code=status.HTTP_201_CREATED)
async def create_check(
    payload: CheckPayload,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    safety: SafetyService = Depends(get_safety),
) -> dict:
    check = await safety.create_safety_check(auth_user.id, payload.to_draft())
    return check.to_dict()


@router.post("/checks/{check_id}/complete")
async def complete_check(
    check_id: str,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    safety: SafetyService = Depends(get_safety),
) -> dict:
    check = await safety.complete_safety_check(check_id, auth_user.id)
    return check.to_dict()


@router.get("/contacts")
async def list_contacts(
    auth_user: AuthenticatedUser = Depends(get_current_user),
    safety: SafetyService = Depends(get_safety),
) -> dict:
    contacts = await safety.list_contacts(auth_user.id)
    return {"items": [contact.to_dict() for contact in contacts]}


@router.post("/contacts", status_code=status.HTTP_201_CREATED)
async def add_contact(
    payload: ContactPayload,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    safety: SafetyService = Depends(get_safety),
) -> dict:
    contact = await safety.add_contact(auth_user.id, **payload.model_dump())
    return contact.to_dict()


@router.delete("/contacts/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_contact(
    contact_id: str,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    safety: SafetyService = Depends(get_safety),
) -> Response:
    await safety.remove_contact(auth_user.id, contact_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
