import re
from collections import OrderedDict
from datetime import date
from typing import Any, Sequence

from backend.schemas.series import AnalyteSeries, Longform, Pivoted, SeriesPoint
from backend.services.dates import parse_date_header, parse_time_value
from backend.services.trend_analyzer import to_float

UNKNOWN_ANALYTE = "unknown"
UNIT_KEYS = ("unit", "units", "unit_of_measure")


def names_regex(names: Sequence[str]) -> re.Pattern | None:
    escaped = [re.escape(name) for name in names if name]
    if not escaped:
        return None
    return re.compile("|".join(escaped), re.IGNORECASE)


def row_matches(row: dict[str, Any], pattern: re.Pattern) -> bool:
    return any(isinstance(value, str) and pattern.search(value) for value in row.values())


def prefer_requested_rows(rows: Sequence[dict[str, Any]], names: Sequence[str]) -> list[dict[str, Any]]:
    """Rows mentioning a requested analyte, or every row when none do."""
    pattern = names_regex(names)
    if pattern is None:
        return list(rows)
    matching = [row for row in rows if row_matches(row, pattern)]
    return matching or list(rows)


def analyte_label(row: dict[str, Any]) -> str:
    label = row.get("analyte")
    text = str(label).strip() if label is not None else ""
    return text or UNKNOWN_ANALYTE


def row_unit(row: dict[str, Any]) -> str | None:
    for key in UNIT_KEYS:
        value = row.get(key)
        if value:
            return str(value)
    return None


def _sorted_points(points: list[SeriesPoint]) -> list[SeriesPoint]:
    # Stable sort keeps same-day samples in row order; duplicates are not merged.
    return sorted(points, key=lambda point: point.date)


def assemble_pivoted(
    rows: Sequence[dict[str, Any]], schema: Pivoted, strict_dates: bool = False
) -> list[AnalyteSeries]:
    header_dates: dict[str, date | None] = {
        key: parse_date_header(key, strict=strict_dates) for key in schema.date_column_keys
    }

    grouped: OrderedDict[str, list[SeriesPoint]] = OrderedDict()
    units: dict[str, str | None] = {}
    for row in rows:
        name = analyte_label(row)
        if name not in units:
            units[name] = row_unit(row)
        for key, parsed_date in header_dates.items():
            value = to_float(row.get(key))
            if value is None or parsed_date is None:
                continue
            grouped.setdefault(name, []).append(SeriesPoint(date=parsed_date, value=value))

    return [
        AnalyteSeries(name=name, unit=units.get(name), points=_sorted_points(points))
        for name, points in grouped.items()
        if points
    ]


def assemble_longform(
    rows: Sequence[dict[str, Any]],
    schema: Longform,
    requested: Sequence[str],
    strict_dates: bool = False,
) -> list[AnalyteSeries]:
    if not rows or schema.time_key is None or schema.value_key is None:
        return []

    points: list[SeriesPoint] = []
    for row in rows:
        when = parse_time_value(row.get(schema.time_key), strict=strict_dates)
        value = to_float(row.get(schema.value_key))
        if when is None or value is None:
            continue
        points.append(SeriesPoint(date=when, value=value))
    if not points:
        return []

    sample = rows[0]
    label = sample.get("analyte")
    name = str(label).strip() if label is not None and str(label).strip() else ", ".join(requested)
    return [AnalyteSeries(name=name, unit=row_unit(sample), points=_sorted_points(points))]


def assemble_series(
    rows: Sequence[dict[str, Any]],
    schema: Pivoted | Longform,
    requested: Sequence[str],
    strict_dates: bool = False,
) -> list[AnalyteSeries]:
    if isinstance(schema, Pivoted):
        return assemble_pivoted(rows, schema, strict_dates=strict_dates)
    return assemble_longform(rows, schema, requested, strict_dates=strict_dates)
