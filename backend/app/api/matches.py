"""Match discovery and lifecycle endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import ValidationError as PayloadError

from app.api.deps import get_lifecycle, get_matching
from app.domain.errors import ValidationError
from app.domain.matching.lifecycle import MatchLifecycleManager
from app.domain.matching.models import MatchFilters, MatchPreferences
from app.domain.matching.schemas import MatchActionPayload, MatchRequestPayload
from app.domain.matching.service import MatchScoringEngine
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/matches", tags=["matches"])


def match_filters(
	max_distance_km: Optional[float] = Query(default=None),
	min_age: Optional[int] = Query(default=None),
	max_age: Optional[int] = Query(default=None),
	verified_only: Optional[bool] = Query(default=None),
	with_photo: Optional[bool] = Query(default=None),
	activity_type: Optional[str] = Query(default=None),
	time_window: Optional[str] = Query(default=None),
	privacy_mode: Optional[str] = Query(default=None),
	use_bluetooth_proximity: Optional[bool] = Query(default=None),
) -> MatchFilters:
	try:
		return MatchFilters(
			max_distance_km=max_distance_km,
			min_age=min_age,
			max_age=max_age,
			verified_only=verified_only,
			with_photo=with_photo,
			activity_type=activity_type,
			time_window=time_window,
			privacy_mode=privacy_mode,
			use_bluetooth_proximity=use_bluetooth_proximity,
		)
	except PayloadError as exc:
		raise ValidationError("invalid match filters") from exc


@router.get("")
async def find_matches(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	filters: MatchFilters = Depends(match_filters),
	engine: MatchScoringEngine = Depends(get_matching),
) -> dict:
	candidates = await engine.find_matches(auth_user.id, filters)
	return {"items": [candidate.to_dict() for candidate in candidates]}


@router.get("/preferences")
async def get_preferences(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	engine: MatchScoringEngine = Depends(get_matching),
) -> MatchPreferences:
	return await engine.get_preferences(auth_user.id)


@router.post("")
async def update_preferences(
	payload: MatchPreferences,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	engine: MatchScoringEngine = Depends(get_matching),
) -> MatchPreferences:
	return await engine.update_preferences(auth_user.id, payload)


@router.post("/requests", status_code=status.HTTP_201_CREATED)
async def request_match(
	payload: MatchRequestPayload,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	lifecycle: MatchLifecycleManager = Depends(get_lifecycle),
) -> dict:
	match = await lifecycle.request_match(auth_user.id, payload.matched_user_id)
	return match.to_dict()


@router.get("/mine")
async def my_matches(
	match_status: Optional[str] = Query(default=None, alias="status"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	lifecycle: MatchLifecycleManager = Depends(get_lifecycle),
) -> dict:
	matches = await lifecycle.list_matches(auth_user.id, status=match_status)
	return {"items": [match.to_dict() for match in matches]}


@router.get("/{match_id}")
async def match_status(
	match_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	lifecycle: MatchLifecycleManager = Depends(get_lifecycle),
) -> dict:
	match = await lifecycle.get_match_status(auth_user.id, match_id)
	return match.to_dict()


@router.post("/{match_id}")
async def match_action(
	match_id: str,
	payload: MatchActionPayload,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	lifecycle: MatchLifecycleManager = Depends(get_lifecycle),
) -> dict:
	if payload.action == "report":
		report = await lifecycle.report_match(auth_user.id, match_id, payload.reason or "")
		return {"reported": True, "report_id": report.id, "match_id": report.match_id}
	transition = {
		"accept": lifecycle.accept_match,
		"decline": lifecycle.reject_match,
		"block": lifecycle.block_match,
	}[payload.action]
	match = await transition(auth_user.id, match_id, expected_version=payload.expected_version)
	return match.to_dict()
