"""JWT helpers for access tokens issued by the identity provider.

Tokens are HS256 signed with the shared secret and must carry the
configured issuer and audience.
"""

from __future__ import annotations

import time
from typing import Any, Dict

import jwt
from jwt import InvalidTokenError

from app.settings import settings

ACCESS_TTL_SECONDS = 900


def encode_access(payload: dict[str, object], *, ttl_seconds: int = ACCESS_TTL_SECONDS) -> str:
	"""Encode an access token; used by local tooling and tests."""
	now = int(time.time())
	body: Dict[str, Any] = {
		"iss": settings.jwt_issuer,
		"aud": settings.jwt_audience,
		"iat": now,
		"exp": now + ttl_seconds,
	}
	body.update(payload)
	return jwt.encode(body, settings.secret_key, algorithm="HS256")


def decode_access(token: str) -> dict[str, object]:
	"""Decode and validate an access token.

	Raises jwt.InvalidTokenError subclasses on failure.
	"""
	payload = jwt.decode(
		token,
		settings.secret_key,
		algorithms=["HS256"],
		audience=settings.jwt_audience,
		issuer=settings.jwt_issuer,
		leeway=5,
		options={"require": ["exp", "iat", "iss", "aud", "sub"]},
	)
	if not str(payload.get("sub") or "").strip():
		raise InvalidTokenError("missing_claim:sub")
	return payload
