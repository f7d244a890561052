"""Duration and date helpers.

Instants are integers of milliseconds since the epoch. Week boundaries are
computed in local time, weeks run Sunday to Saturday.
"""
import time
from datetime import date, datetime, timedelta

MS_PER_SECOND = 1000
MS_PER_HOUR = 60 * 60 * MS_PER_SECOND


def now_ms() -> int:
    return int(time.time() * MS_PER_SECOND)


def ms_to_hours(ms) -> float:
    return ms / MS_PER_HOUR


def hours_minutes_to_ms(hours: float = 0, minutes: float = 0) -> int:
    return int(round(((hours or 0) + (minutes or 0) / 60) * MS_PER_HOUR))


def format_duration(ms) -> str:
    seconds = int(ms // MS_PER_SECOND)
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def parse_duration(value: str) -> int:
    """Parse HH:MM or HH:MM:SS into milliseconds."""
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid duration: {value!r}")
    try:
        h = int(parts[0])
        m = int(parts[1])
        s = int(parts[2]) if len(parts) == 3 else 0
    except ValueError:
        raise ValueError(f"Invalid duration: {value!r}") from None
    if h < 0 or not (0 <= m < 60 and 0 <= s < 60):
        raise ValueError(f"Invalid duration: {value!r}")
    return (h * 3600 + m * 60 + s) * MS_PER_SECOND


def to_local(instant_ms) -> datetime:
    return datetime.fromtimestamp(instant_ms / MS_PER_SECOND)


def to_ms(moment: datetime) -> int:
    return int(round(moment.timestamp() * MS_PER_SECOND))


def week_start_date(instant_ms) -> date:
    day = to_local(instant_ms).date()
    # date.weekday() is 0 for Monday, Sunday is 6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_start(instant_ms) -> int:
    sunday = week_start_date(instant_ms)
    return to_ms(datetime(sunday.year, sunday.month, sunday.day))


def week_key(instant_ms) -> str:
    return week_start_date(instant_ms).isoformat()


def format_date(value) -> str:
    """en-US short date, e.g. 3/10/2024. Accepts a date or an instant in ms."""
    if not isinstance(value, date):
        value = to_local(value).date()
    return f"{value.month}/{value.day}/{value.year}"


def format_money(value) -> str:
    return f"${value:.2f}"
