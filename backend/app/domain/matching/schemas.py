"""Request bodies for match endpoints."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class MatchRequestPayload(BaseModel):
	matched_user_id: str = Field(..., min_length=1, max_length=64)


class MatchActionPayload(BaseModel):
	action: Literal["accept", "decline", "block", "report"]
	reason: Optional[str] = Field(default=None, max_length=500)
	# last version the caller saw; a mismatch is a conflict
	expected_version: Optional[int] = Field(default=None, ge=1)
