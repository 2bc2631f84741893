from datetime import date

from backend.schemas.series import AnalyteSeries, Longform, Pivoted, SeriesPoint
from backend.services.series_assembler import (
    assemble_longform,
    assemble_pivoted,
    assemble_series,
    prefer_requested_rows,
)


def test_pivoted_rows_become_sorted_series():
    rows = [{"analyte": "LDL", "2012-01-01": "140", "2011-08-06": "120"}]
    schema = Pivoted(date_column_keys=["2012-01-01", "2011-08-06"])
    assert assemble_pivoted(rows, schema) == [
        AnalyteSeries(
            name="LDL",
            unit=None,
            points=[
                SeriesPoint(date=date(2011, 8, 6), value=120.0),
                SeriesPoint(date=date(2012, 1, 1), value=140.0),
            ],
        )
    ]


def test_pivoted_groups_by_analyte_and_skips_blank_cells():
    rows = [
        {"analyte": "HDL", "unit": "mg/dL", "06/08/2011": "55,5", "01/01/2012": None},
        {"analyte": "LDL", "unit": "mg/dL", "06/08/2011": "120", "01/01/2012": "n/a"},
        {"analyte": None, "06/08/2011": "3", "01/01/2012": "4"},
    ]
    schema = Pivoted(date_column_keys=["06/08/2011", "01/01/2012"])
    series = assemble_pivoted(rows, schema)

    assert [item.name for item in series] == ["HDL", "LDL", "unknown"]
    assert series[0].unit == "mg/dL"
    assert series[0].points == [SeriesPoint(date=date(2011, 8, 6), value=55.5)]
    assert [p.value for p in series[2].points] == [3.0, 4.0]


def test_pivoted_keeps_same_day_duplicates():
    rows = [
        {"analyte": "Glucose", "2024-01-01": "90"},
        {"analyte": "Glucose", "2024-01-01": "95"},
    ]
    series = assemble_pivoted(rows, Pivoted(date_column_keys=["2024-01-01"]))
    assert [p.value for p in series[0].points] == [90.0, 95.0]


def test_longform_rows_sorted_and_unparseable_rows_dropped():
    rows = [
        {"analyte": "Ferritin", "unit": "ng/mL", "collected_at": "2024-03-01", "value": "70"},
        {"analyte": "Ferritin", "unit": "ng/mL", "collected_at": "1704067200", "value": "88,5"},
        {"analyte": "Ferritin", "unit": "ng/mL", "collected_at": "someday", "value": "10"},
        {"analyte": "Ferritin", "unit": "ng/mL", "collected_at": "2024-02-01", "value": "hemolyzed"},
    ]
    schema = Longform(time_key="collected_at", value_key="value")
    series = assemble_longform(rows, schema, ["Ferritin"])

    assert len(series) == 1
    assert series[0].name == "Ferritin"
    assert series[0].unit == "ng/mL"
    assert series[0].points == [
        SeriesPoint(date=date(2024, 1, 1), value=88.5),
        SeriesPoint(date=date(2024, 3, 1), value=70.0),
    ]


def test_longform_name_falls_back_to_requested_names():
    rows = [{"date": "2024-01-01", "result": 4.2}]
    series = assemble_series(rows, Longform(time_key="date", value_key="result"), ["TSH", "Free T4"])
    assert series[0].name == "TSH, Free T4"


def test_longform_without_points_is_empty():
    rows = [{"date": "not a date", "result": "x"}]
    assert assemble_series(rows, Longform(time_key="date", value_key="result"), ["TSH"]) == []
    assert assemble_series(rows, Longform(time_key="date", value_key=None), ["TSH"]) == []


def test_prefer_requested_rows():
    rows = [{"analyte": "LDL"}, {"analyte": "HDL"}, {"analyte": "Cholesterol LDL"}]
    assert prefer_requested_rows(rows, ["ldl"]) == [rows[0], rows[2]]
    assert prefer_requested_rows(rows, ["Ferritin"]) == rows
