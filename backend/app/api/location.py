"""REST API surface for the location store."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_locations
from app.domain.proximity.schemas import LocationUpdatePayload, NearbyQuery, SharingStatePayload
from app.domain.proximity.service import LocationService
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/location", tags=["location"])


@router.get("")
async def current_location(
    auth_user: AuthenticatedUser = Depends(get_current_user),
    service: LocationService = Depends(get_locations),
) -> dict:
    record = await service.get_current_location(auth_user.id)
    return record.to_dict()


@router.post("")
async def record_location(
    payload: LocationUpdatePayload,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    service: LocationService = Depends(get_locations),
) -> dict:
    record = await service.record_location(auth_user.id, payload.to_update())
    return record.to_dict()


@router.patch("")
async def update_sharing_state(
    payload: SharingStatePayload,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    service: LocationService = Depends(get_locations),
) -> dict:
    record = await service.update_sharing_state(auth_user.id, payload.to_changes())
    return record.to_dict()


@router.get("/nearby")
async def nearby_users(
    auth_user: AuthenticatedUser = Depends(get_current_user),
    query: NearbyQuery = Depends(),
    service: LocationService = Depends(get_locations),
) -> dict:
    users = await service.get_nearby_users(auth_user.id, query.radius_m)
    return {"radius_m": query.radius_m, "items": [user.to_dict() for user in users]}
