"""Authentication helpers for FastAPI endpoints and sockets.

The identity provider issues the tokens; this module only verifies them and
hands the trusted user id and role to the core.
- Bearer JWT (HS256) is always accepted.
- X-User-Id / X-User-Role headers are honoured in development only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from app.domain.errors import AuthenticationRequired, Forbidden
from app.infra import jwt as jwt_helper
from app.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	role: str = "user"
	session_id: Optional[str] = None

	def has_role(self, role: str) -> bool:
		return self.role == role


_bearer_scheme = HTTPBearer(auto_error=False)


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode an access JWT into an AuthenticatedUser or raise AuthenticationRequired."""
	try:
		payload = jwt_helper.decode_access(token)
	except InvalidTokenError:
		raise AuthenticationRequired("invalid token") from None
	role = str(payload.get("role") or "user").strip() or "user"
	session_id = payload.get("sid")
	return AuthenticatedUser(
		id=str(payload["sub"]).strip(),
		role=role,
		session_id=str(session_id) if session_id is not None else None,
	)


def resolve_socket_user(auth: Optional[dict], headers: dict[str, str]) -> AuthenticatedUser:
	"""Authenticate a socket handshake from its auth payload or headers."""
	auth = auth or {}
	token = auth.get("token")
	header = headers.get("authorization", "")
	if not token and header.lower().startswith("bearer "):
		token = header.split(" ", 1)[1]
	if token:
		return verify_access_jwt(str(token))
	if settings.is_dev():
		user_id = auth.get("userId") or headers.get("x-user-id")
		if user_id:
			return AuthenticatedUser(id=str(user_id), role=str(auth.get("role") or "user"))
	raise AuthenticationRequired()


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user.

	In development we allow simple headers. In all other environments, headers are
	ignored and a valid Bearer JWT is required.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)
	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=x_user_id, role=(x_user_role or "user").strip() or "user")
	raise AuthenticationRequired()


def require_role(role: str):
	"""Return a dependency that only admits users holding ``role``."""

	async def _dep(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
		if user.has_role(role):
			return user
		raise Forbidden("insufficient role")

	return _dep
