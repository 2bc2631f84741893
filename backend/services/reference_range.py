import logging
import re
from typing import Any, Sequence

from backend.schemas.series import ReferenceRange
from backend.services.dates import parse_time_value
from backend.services.trend_analyzer import to_float

logger = logging.getLogger(__name__)

LOW_KEYS = ("ref_low", "reference_low", "low", "ref_lo", "lower_limit", "ref_lower")
HIGH_KEYS = ("ref_high", "reference_high", "high", "ref_hi", "upper_limit", "ref_upper")
RANGE_TEXT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*[-–]\s*(\d+(?:\.\d+)?)")


def _first_numeric(row: dict[str, Any], keys: Sequence[str]) -> float | None:
    for key in keys:
        if key in row and row[key] is not None:
            number = to_float(row[key])
            if number is not None:
                return number
    return None


def explicit_range(rows: Sequence[dict[str, Any]]) -> ReferenceRange | None:
    """Low/high from well-known columns of the first row that has either side.

    Later rows are not consulted for the missing side.
    """
    for row in rows:
        low = _first_numeric(row, LOW_KEYS)
        high = _first_numeric(row, HIGH_KEYS)
        if low is not None or high is not None:
            return ReferenceRange(low=low, high=high)
    return None


def text_range(rows: Sequence[dict[str, Any]]) -> ReferenceRange | None:
    """First ``low - high`` pair written inside any string field, e.g. ``"0.1-3.3"``."""
    for row in rows:
        for value in row.values():
            if not isinstance(value, str) or parse_time_value(value) is not None:
                continue
            match = RANGE_TEXT_RE.search(value)
            if match:
                return ReferenceRange(low=float(match.group(1)), high=float(match.group(2)))
    return None


def extract_reference_range(rows: Sequence[dict[str, Any]]) -> ReferenceRange | None:
    try:
        return explicit_range(rows) or text_range(rows)
    except Exception as exc:
        logger.warning("Reference range scan failed: %s", exc)
        return None
