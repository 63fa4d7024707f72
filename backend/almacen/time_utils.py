# Overview: UTC timestamp helpers shared by models, services and routes.
#
# Timestamps are stored naive and always mean UTC. Anything carrying an
# offset is converted on the way in; every value leaves as "...Z".

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional

END_OF_DAY = time(23, 59, 59)


def _as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utcnow() -> datetime:
    return _as_naive_utc(datetime.now(timezone.utc))


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2024-03-01T10:30", "2024-03-01T10:30:00Z" or "...-03:00" -> naive UTC.

    Blank input gives None. A naive value is taken to be UTC already.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return _as_naive_utc(datetime.fromisoformat(text))


def parse_range_bound(value: Optional[str], *, end_of_day: bool) -> Optional[datetime]:
    """
    Parse a from/to filter value.

    A bare date ("2024-03-01") expands to the first or last second of that
    day, so `to=2024-03-01` includes everything recorded on the 1st.
    """
    text = (value or "").strip()
    if not text:
        return None
    if "T" in text or " " in text:
        return parse_iso_datetime(text)
    day = date.fromisoformat(text)
    return datetime.combine(day, END_OF_DAY if end_of_day else time.min)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    stamp = _as_naive_utc(dt).replace(microsecond=0)
    return stamp.isoformat() + "Z"
