"""
Time helpers shared by the engine.

All engine timestamps are epoch milliseconds. Wall-clock decisions (daily
reset window, display strings) happen in the instrument timezone.
"""

import time
from datetime import datetime

import pytz

MS_PER_MINUTE = 60_000


def now_ms() -> int:
    """Current wall clock in epoch milliseconds"""
    return int(time.time() * 1000)


def minute_boundary_passed(anchor_ms: int, tick_ms: int) -> bool:
    """
    True once the wall clock has crossed into a later calendar minute than
    the anchor.

    The effective lockout therefore lasts anywhere from just over 0 to just
    under 60 seconds depending on where in the minute it started.
    """
    return tick_ms // MS_PER_MINUTE > anchor_ms // MS_PER_MINUTE


def to_local(ms: int, tz_name: str) -> datetime:
    tz = pytz.timezone(tz_name)
    return datetime.fromtimestamp(ms / 1000, tz=pytz.utc).astimezone(tz)


def format_local_time(ms: int, tz_name: str) -> str:
    """Display string, e.g. '19/10/2026 05:30:00'"""
    return to_local(ms, tz_name).strftime("%d/%m/%Y %H:%M:%S")


def local_date_str(ms: int, tz_name: str) -> str:
    return to_local(ms, tz_name).strftime("%Y-%m-%d")


def in_reset_window(ms: int, tz_name: str, hour: int, minute: int) -> bool:
    """True during the one-minute window starting at hour:minute local time"""
    local = to_local(ms, tz_name)
    return local.hour == hour and minute <= local.minute < minute + 1
