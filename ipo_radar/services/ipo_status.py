"""
IPO Status Classifier

Lifecycle state is a pure function of the three dates and the current time.
It is evaluated top-down against fixed UTC cutovers that correspond to Indian
market hours, independent of the caller's time zone:

    listing day 04:30 UTC (10:00 IST)  -> Listed
    close day   10:00 UTC (15:30 IST)  -> Closed
    open day    04:00 UTC (09:30 IST)  -> Open
    otherwise                          -> Upcoming

Each rung short-circuits and an absent date skips its rung. Status changes
with elapsed time alone, so it is recomputed on every read and never trusted
from a stored value.
"""
from datetime import date, datetime, time, timezone
from typing import Optional

from ipo_radar.core.utils import ensure_utc
from ipo_radar.schemas.ipo import IpoStatus

LISTING_CUTOVER_UTC = time(4, 30, tzinfo=timezone.utc)
CLOSE_CUTOVER_UTC = time(10, 0, tzinfo=timezone.utc)
OPEN_CUTOVER_UTC = time(4, 0, tzinfo=timezone.utc)


def _reached(day: Optional[date], cutover: time, now: datetime) -> bool:
    if day is None:
        return False
    return datetime.combine(day, cutover) <= now


def determine_status(
    open_date: Optional[date] = None,
    close_date: Optional[date] = None,
    listing_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> IpoStatus:
    """Classify an IPO from its dates. A naive `now` is taken as UTC."""
    current = ensure_utc(now)

    if _reached(listing_date, LISTING_CUTOVER_UTC, current):
        return IpoStatus.LISTED
    if _reached(close_date, CLOSE_CUTOVER_UTC, current):
        return IpoStatus.CLOSED
    if _reached(open_date, OPEN_CUTOVER_UTC, current):
        return IpoStatus.OPEN
    return IpoStatus.UPCOMING
