"""Error taxonomy shared by every core service.

Each error carries the HTTP status it maps to and a stable machine readable
code. Messages are safe to show to callers; internal details stay in logs.
"""

from __future__ import annotations

from fastapi import status


class CoreError(Exception):
	"""Base class for domain errors surfaced to callers."""

	status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
	code: str = "internal"
	message: str = "unexpected error"

	def __init__(self, message: str | None = None) -> None:
		super().__init__(message or self.message)
		if message:
			self.message = message


class ValidationError(CoreError):
	"""Malformed input not caught by schema validation."""

	status_code = status.HTTP_400_BAD_REQUEST
	code = "validation_error"
	message = "invalid input"


class InvalidCoordinates(ValidationError):
	code = "invalid_coordinates"
	message = "latitude must be within ±90 and longitude within ±180"


class LocationRequired(ValidationError):
	"""The requesting user has no current location on record."""

	code = "location_required"
	message = "a current location is required"


class AuthenticationRequired(CoreError):
	status_code = status.HTTP_401_UNAUTHORIZED
	code = "authentication_required"
	message = "authentication required"


class Forbidden(CoreError):
	"""Caller is identified but not permitted to act on the resource."""

	status_code = status.HTTP_403_FORBIDDEN
	code = "forbidden"
	message = "not permitted"


class NotFound(CoreError):
	status_code = status.HTTP_404_NOT_FOUND
	code = "not_found"
	message = "resource not found"


class Conflict(CoreError):
	"""Duplicate resource or lost compare-and-swap race."""

	status_code = status.HTTP_409_CONFLICT
	code = "conflict"
	message = "conflicting state"


class RateLimited(CoreError):
	status_code = status.HTTP_429_TOO_MANY_REQUESTS
	code = "rate_limited"
	message = "too many attempts, try again later"

	def __init__(
		self,
		message: str | None = None,
		*,
		action: str | None = None,
		retry_after: int = 60,
	) -> None:
		super().__init__(message)
		self.action = action
		self.retry_after = retry_after


class Unavailable(CoreError):
	"""An external dependency (storage, cache) could not be reached."""

	status_code = status.HTTP_503_SERVICE_UNAVAILABLE
	code = "unavailable"
	message = "dependency unavailable"


__all__ = [
	"AuthenticationRequired",
	"Conflict",
	"CoreError",
	"Forbidden",
	"InvalidCoordinates",
	"LocationRequired",
	"NotFound",
	"RateLimited",
	"Unavailable",
	"ValidationError",
]
