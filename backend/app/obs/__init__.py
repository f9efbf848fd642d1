"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from app.obs import logging as obs_logging
from app.obs import middleware
from app.settings import settings


def init(app: FastAPI) -> None:
	"""Install JSON logging and request instrumentation once per app."""
	if not settings.obs_enabled or getattr(app.state, "obs_initialised", False):
		return
	obs_logging.configure_logging()
	middleware.install(app)
	app.state.obs_initialised = True


__all__ = ["init"]
