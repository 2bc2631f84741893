import re
from typing import Any, Sequence

from backend.schemas.series import InferredSchema, Longform, Pivoted
from backend.services.dates import is_date_header, parse_time_value
from backend.services.trend_analyzer import to_float

TIME_KEY_CANDIDATES = ("collected_at", "collectedAt", "date", "day", "timestamp", "time", "reported_at")
TIME_KEY_HINT_RE = re.compile(r"date|time|collected|reported|day|specimen|visit", re.IGNORECASE)
VALUE_KEY_CANDIDATES = (
    "value_numeric",
    "value",
    "result_numeric",
    "result",
    "numeric_value",
    "measurement",
    "value_number",
    "value_text",
    "reported_value",
    "amount",
)

TIME_SAMPLE_SIZE = 50
VALUE_SAMPLE_SIZE = 100
MIN_PARSE_RATIO = 0.5
MIN_NUMERIC_SAMPLES = 2


def date_header_keys(keys: Sequence[str]) -> list[str]:
    return [key for key in keys if is_date_header(key)]


def date_ratio(rows: Sequence[dict[str, Any]], key: str, limit: int = TIME_SAMPLE_SIZE) -> tuple[float, int]:
    """Share of non-null values in ``key`` that parse as dates, and how many were seen."""
    good = total = 0
    for row in rows[:limit]:
        value = row.get(key)
        if value is None:
            continue
        total += 1
        if parse_time_value(value) is not None:
            good += 1
    return (good / total if total else 0.0), total


def numeric_ratio(rows: Sequence[dict[str, Any]], key: str, limit: int = VALUE_SAMPLE_SIZE) -> tuple[float, int]:
    good = total = 0
    for row in rows[:limit]:
        value = row.get(key)
        if value is None:
            continue
        total += 1
        if to_float(value) is not None:
            good += 1
    return (good / total if total else 0.0), total


def pick_time_key(keys: Sequence[str], sample: dict[str, Any], rows: Sequence[dict[str, Any]]) -> str | None:
    for candidate in TIME_KEY_CANDIDATES:
        if candidate in sample:
            return candidate
    for key in keys:
        if TIME_KEY_HINT_RE.search(key):
            return key
    for key in keys:
        ratio, total = date_ratio(rows, key)
        if total > 0 and ratio >= MIN_PARSE_RATIO:
            return key
    # Last resort: depends on upstream column order, so it can change between sources.
    return keys[0] if keys else None


def pick_value_key(
    keys: Sequence[str], rows: Sequence[dict[str, Any]], time_key: str | None = None
) -> str | None:
    for candidate in VALUE_KEY_CANDIDATES:
        if candidate in keys:
            return candidate
    for key in keys:
        if key == time_key:
            continue
        ratio, total = numeric_ratio(rows, key)
        if total >= MIN_NUMERIC_SAMPLES and ratio >= MIN_PARSE_RATIO:
            return key
    return None


def infer_schema(sample: dict[str, Any], rows: Sequence[dict[str, Any]]) -> InferredSchema:
    keys = list(sample.keys())
    date_keys = date_header_keys(keys)
    if date_keys:
        return Pivoted(date_column_keys=date_keys)
    time_key = pick_time_key(keys, sample, rows)
    return Longform(time_key=time_key, value_key=pick_value_key(keys, rows, time_key=time_key))
