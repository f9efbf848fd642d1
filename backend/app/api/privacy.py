"""Privacy zone endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from app.api.deps import get_zones
from app.domain.proximity.privacy import PrivacyZoneService
from app.domain.proximity.schemas import ZoneCreatePayload, ZonePatchPayload
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/privacy/zones", tags=["privacy"])


@router.get("")
async def list_zones(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	zones: PrivacyZoneService = Depends(get_zones),
) -> dict:
	items = await zones.list_zones(auth_user.id)
	return {"items": [zone.to_dict() for zone in items]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_zone(
	payload: ZoneCreatePayload,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	zones: PrivacyZoneService = Depends(get_zones),
) -> dict:
	result = await zones.create_zone(
		auth_user.id,
		payload.name,
		payload.center,
		payload.radius_m,
		hide_from_non_matches=payload.hide_from_non_matches,
	)
	return result.to_dict()


@router.patch("/{zone_id}")
async def update_zone(
	zone_id: str,
	payload: ZonePatchPayload,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	zones: PrivacyZoneService = Depends(get_zones),
) -> dict:
	result = await zones.update_zone(auth_user.id, zone_id, payload.to_changes())
	return result.to_dict()


@router.delete("/{zone_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_zone(
	zone_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	zones: PrivacyZoneService = Depends(get_zones),
) -> Response:
	await zones.delete_zone(auth_user.id, zone_id)
	return Response(status_code=status.HTTP_204_NO_CONTENT)
