# backend/dates.py
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple, Union

WhenLike = Union[datetime, date, str, int, float, None]

# Records stamped late the evening before the first day of a week still
# belong to that week.
WEEK_LEAD = timedelta(hours=8)
LAST_MS = timedelta(milliseconds=1)

_ISO_DURATION = re.compile(
    r"^P(?!$)"
    r"(\d+(?:\.\d+)?Y)?(\d+(?:\.\d+)?M)?(\d+(?:\.\d+)?W)?(\d+(?:\.\d+)?D)?"
    r"(T(?=\d)(\d+(?:\.\d+)?H)?(\d+(?:\.\d+)?M)?(\d+(?:\.\d+)?S)?)?$"
)
_NUMBER = re.compile(r"-?\d+(\.\d+)?")
# A "+hh:mm" offset arrives as " hh:mm" when it went through a query string unescaped.
_MANGLED_OFFSET = re.compile(r"(T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?) (\d{2}:?\d{2})$")


def _truncate_ms(dt: datetime) -> datetime:
    # BSON dates only keep millisecond precision
    return dt.replace(microsecond=dt.microsecond - dt.microsecond % 1000)


def _from_epoch_ms(value: float) -> datetime:
    try:
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise ValueError(f"not a date: {value!r} ms is out of range") from None


def parse_when(value: WhenLike) -> Optional[datetime]:
    """
    Normalize any of the date shapes the front end (or the database) hands us
    into a timezone-aware UTC datetime:

      - datetime (naive values are read as UTC)
      - date (midnight UTC)
      - ISO-8601 string: "2002-09-03", "2002-09-03T07:30:00.000-04:00", "...Z"
      - epoch milliseconds, as produced by JavaScript's Date.getTime()

    None and blank strings give None. Anything else raises ValueError.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"not a date: {value!r}")

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        dt = _from_epoch_ms(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        text = _MANGLED_OFFSET.sub(r"\1+\2", text)
        numeric = _NUMBER.fullmatch(text)
        # fromisoformat would happily read "1031011200000" as 1031-01-12T00:00
        if numeric and len(text) > 8:
            dt = _from_epoch_ms(float(text))
        else:
            try:
                dt = datetime.fromisoformat(text)
            except ValueError:
                if not numeric:
                    raise ValueError(f"not an ISO-8601 date: {value!r}") from None
                dt = _from_epoch_ms(float(text))
    else:
        raise ValueError(f"not a date: {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        try:
            dt = dt.astimezone(timezone.utc)
        except OverflowError:
            raise ValueError(f"not a date: {value!r} is out of range in UTC") from None
    return _truncate_ms(dt)


def to_storage(dt: Optional[datetime]) -> Optional[datetime]:
    """UTC-aware datetime -> naive UTC, the form pymongo stores and returns."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def week_bounds(day: WhenLike, week_starts_on: int = 0) -> Tuple[datetime, datetime]:
    """
    First and last instant of the calendar week containing `day`.
    `week_starts_on` uses Python's weekday numbering (0 = Monday, 6 = Sunday).
    """
    when = parse_when(day)
    if when is None:
        raise ValueError("a day inside the week is required")
    midnight = start_of_day(when)
    offset = (midnight.weekday() - week_starts_on) % 7
    try:
        start = midnight - timedelta(days=offset)
        end = start + timedelta(days=7) - LAST_MS
    except OverflowError:
        raise ValueError(f"week of {day!r} runs past the supported calendar") from None
    return start, end


def week_query_window(day: WhenLike, week_starts_on: int = 0) -> Tuple[datetime, datetime]:
    """Exclusive (lower, upper) dateAwake bounds used by the week view."""
    start, end = week_bounds(day, week_starts_on)
    try:
        return start - WEEK_LEAD, end
    except OverflowError:
        raise ValueError(f"week of {day!r} runs past the supported calendar") from None


def _minutes_to_iso(minutes: float) -> str:
    if minutes < 0:
        raise ValueError(f"duration cannot be negative: {minutes!r}")
    seconds = int(round(minutes * 60))
    hours, rest = divmod(seconds, 3600)
    mins, secs = divmod(rest, 60)
    out = "PT"
    if hours:
        out += f"{hours}H"
    if mins:
        out += f"{mins}M"
    if secs:
        out += f"{secs}S"
    return out if out != "PT" else "PT0M"


def parse_duration(value: Union[str, int, float]) -> str:
    """
    Interruption lengths are stored as ISO-8601 durations ("PT3H", "PT1H30M").
    Bare numbers (or numeric strings) are taken as minutes.
    """
    if isinstance(value, bool):
        raise ValueError(f"not a duration: {value!r}")
    if isinstance(value, (int, float)):
        return _minutes_to_iso(value)
    if isinstance(value, str):
        text = value.strip().upper()
        if re.fullmatch(r"\d+(\.\d+)?", text):
            return _minutes_to_iso(float(text))
        if _ISO_DURATION.match(text):
            return text
    raise ValueError(f"not an ISO-8601 duration: {value!r}")
