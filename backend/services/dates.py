import math
import re
from datetime import date, datetime, timezone

DATE_HEADER_RE = re.compile(r"^\d{1,4}[/\-]\d{1,2}[/\-]\d{1,4}$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
EPOCH_SECONDS_RE = re.compile(r"^\d{10}$")
EPOCH_MILLIS_RE = re.compile(r"^\d{11,13}$")

_FALLBACK_FORMATS = ("%Y/%m/%d", "%Y%m%d", "%d %b %Y", "%d %B %Y", "%b %d, %Y", "%B %d, %Y", "%d.%m.%Y")


def is_date_header(value) -> bool:
    return DATE_HEADER_RE.match(str(value).strip()) is not None


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date_header(value, strict: bool = False) -> date | None:
    """Parse ``A/B/C`` or ``A-B-C`` numeric dates, preferring day-first order.

    ISO ``YYYY-MM-DD`` is read as is and a leading four-digit group is taken
    as the year. Otherwise the last group is the year (two digits mean
    20xx) and the first two groups are day then month, except when the
    middle group cannot be a month, in which case the first group is the
    month. ``03/05/2024`` is the 3rd of May. With ``strict`` such ambiguous
    strings (both leading groups 12 or less and different) are rejected.
    """
    text = str(value).strip()
    if ISO_DATE_RE.match(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None

    raw_parts = re.split(r"[/\-]", text)
    if len(raw_parts) != 3 or not all(part.isdigit() for part in raw_parts):
        return None
    a, b, c = (int(part) for part in raw_parts)

    if len(raw_parts[0]) == 4:
        return _safe_date(a, b, c)

    year = c + 2000 if c < 100 else c
    if b > 12:
        return _safe_date(year, a, b)
    if strict and a <= 12 and a != b:
        return None
    return _safe_date(year, b, a)


def _from_epoch(seconds: float) -> date | None:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).date()
    except (OverflowError, OSError, ValueError):
        return None


def parse_time_value(raw, strict: bool = False) -> date | None:
    """Best-effort conversion of a long-form time cell into a calendar date.

    Ten-digit numbers are UNIX seconds and eleven to thirteen digits are
    milliseconds. Other strings go through the numeric date rules above and
    then ISO / a handful of spelled-out formats.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            return None
        digits = str(int(abs(raw)))
        if len(digits) == 10:
            return _from_epoch(float(raw))
        if 11 <= len(digits) <= 13:
            return _from_epoch(float(raw) / 1000.0)
        return None

    text = str(raw).strip()
    if not text:
        return None
    if EPOCH_SECONDS_RE.match(text):
        return _from_epoch(int(text))
    if EPOCH_MILLIS_RE.match(text):
        return _from_epoch(int(text) / 1000.0)
    if DATE_HEADER_RE.match(text):
        return parse_date_header(text, strict=strict)

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None
