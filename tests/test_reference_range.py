from backend.schemas.series import ReferenceRange
from backend.services.reference_range import explicit_range, extract_reference_range, text_range


def test_range_from_free_text():
    rows = [{"analyte": "Progesterone", "range": "0.1-3.3"}]
    assert extract_reference_range(rows) == ReferenceRange(low=0.1, high=3.3)


def test_range_from_free_text_with_en_dash():
    rows = [{"analyte": "TSH", "notes": "normal 0.4 – 4.0 mIU/L"}]
    assert text_range(rows) == ReferenceRange(low=0.4, high=4.0)


def test_explicit_keys_beat_free_text():
    rows = [{"analyte": "Progesterone 0.4 ng/mL", "ref_low": 0.1, "ref_high": 3.3, "range": "5-10"}]
    assert extract_reference_range(rows) == ReferenceRange(low=0.1, high=3.3)


def test_scan_stops_at_first_row_with_either_side():
    rows = [
        {"analyte": "LDL", "upper_limit": "130"},
        {"analyte": "LDL", "lower_limit": "0", "upper_limit": "130"},
    ]
    assert explicit_range(rows) == ReferenceRange(low=None, high=130.0)


def test_null_explicit_values_are_skipped():
    rows = [{"ref_low": None, "ref_high": None}, {"ref_lo": "1,5", "ref_hi": "4,5"}]
    assert explicit_range(rows) == ReferenceRange(low=1.5, high=4.5)


def test_dates_are_not_read_as_ranges():
    rows = [{"collected_at": "2024-01-31", "when": "2024-01-31T08:00:00", "value": "12"}]
    assert extract_reference_range(rows) is None


def test_nothing_found():
    assert extract_reference_range([{"analyte": "LDL", "value": 120}]) is None
    assert extract_reference_range([]) is None
