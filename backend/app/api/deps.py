"""FastAPI dependencies handing out services from the app's container."""

from __future__ import annotations

from fastapi import Request

from app.container import Container
from app.domain.matching.lifecycle import MatchLifecycleManager
from app.domain.matching.service import MatchScoringEngine
from app.domain.notifications.scheduler import NotificationScheduler
from app.domain.proximity.privacy import PrivacyZoneService
from app.domain.proximity.service import LocationService
from app.domain.safety.service import SafetyService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_locations(request: Request) -> LocationService:
    return get_container(request).locations


def get_zones(request: Request) -> PrivacyZoneService:
    return get_container(request).zones


def get_matching(request: Request) -> MatchScoringEngine:
    return get_container(request).matching


def get_lifecycle(request: Request) -> MatchLifecycleManager:
    return get_container(request).lifecycle


def get_safety(request: Request) -> SafetyService:
    return get_container(request).safety


def get_notifications(request: Request) -> NotificationScheduler:
    return get_container(request).notifications
