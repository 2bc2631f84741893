import math
from collections import OrderedDict
from decimal import Decimal
from typing import Any, Iterable


def to_float(value: Any) -> float | None:
    """Strict numeric parse of a cell; ``"5,4"`` reads as 5.4, free text is rejected.

    With both separators present the last one is the decimal mark, so
    ``"1.234,5"`` and ``"1,234.5"`` both read as 1234.5.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        return number if math.isfinite(number) else None

    cleaned = str(value).strip().replace(" ", "")
    if not cleaned:
        return None
    if "," in cleaned and "." in cleaned:
        # the rightmost separator is the decimal mark
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        cleaned = cleaned.replace(",", ".")
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def daily_averages(observations: Iterable[tuple[str, str, float]]) -> list[dict[str, Any]]:
    """Average ``(analyte, iso_day, value)`` observations per analyte and day.

    Analyte names are grouped case-insensitively; the first spelling seen is kept.
    """
    buckets: OrderedDict[tuple[str, str], dict[str, Any]] = OrderedDict()
    for analyte, day, value in observations:
        key = (analyte.lower(), day)
        bucket = buckets.setdefault(key, {"analyte": analyte, "day": day, "sum": 0.0, "n": 0})
        bucket["sum"] += value
        bucket["n"] += 1

    return [
        {"analyte": bucket["analyte"], "day": bucket["day"], "value": bucket["sum"] / bucket["n"]}
        for bucket in buckets.values()
    ]
