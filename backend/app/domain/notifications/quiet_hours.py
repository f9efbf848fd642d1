"""Quiet-hours window arithmetic.

Windows are half-open, ``[start, end)``, and wrap past midnight when
``end`` is earlier than ``start``. A window whose start equals its end is
empty.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta


def parse_hhmm(value: str) -> time:
	hours, minutes = value.split(":", 1)
	return time(int(hours), int(minutes))


def in_quiet_hours(local: datetime, start: str, end: str) -> bool:
	begin, finish = parse_hhmm(start), parse_hhmm(end)
	now = local.time().replace(second=0, microsecond=0, tzinfo=None)
	if begin == finish:
		return False
	if begin < finish:
		return begin <= now < finish
	return now >= begin or now < finish


def window_end(local: datetime, end: str) -> datetime:
	"""Next occurrence of ``end`` after ``local`` in the same timezone."""
	finish = parse_hhmm(end)
	candidate = local.replace(hour=finish.hour, minute=finish.minute, second=0, microsecond=0)
	if candidate <= local:
		candidate = candidate + timedelta(days=1)
	return candidate
