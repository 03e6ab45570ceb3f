import pytest

from meterprofiles import classify, exceptions
from meterprofiles.types import ParsedTable


def _table(headers, rows):
    return ParsedTable(headers=tuple(headers), rows=tuple(tuple(r) for r in rows))


@pytest.fixture
def scada_table():
    return _table(
        ["Date", "Time", "kWh", "kVArh", "Status"],
        [
            ["2024-01-01", "00:00", "12.5", "0", "OK"],
            ["2024-01-01", "00:30", "10.0", "0", "OK"],
            ["2024-01-02", "00:00", "8.0", "1.0", "OK"],
        ],
    )


def test_roles_and_recommendation(scada_table):
    out = classify.classify_columns(scada_table)
    roles = [c.role for c in out.columns]
    assert roles == ["date", "time", "value", "value", "ignore"]
    assert out.recommended == 2

    kwh = out.columns[2]
    assert kwh.non_zero_count == 3
    assert kwh.avg_value == pytest.approx(30.5 / 3)
    assert kwh.sample_values == ["12.5", "10.0", "8.0"]


def test_status_column_is_excluded_with_reason():
    table = _table(["Timestamp", "kWh", "Status"], [["2024-01-01 00:00", "1", "0"]] * 3)
    out = classify.classify_columns(table)
    status = out.columns[2]
    assert status.role == "ignore"
    assert status.reason


def test_exact_scada_headers():
    table = _table(["rdate", "rtime", "kwh"], [["01/01/2024", "00:30", "1.5"]] * 2)
    out = classify.classify_columns(table)
    assert [c.role for c in out.columns] == ["date", "time", "value"]


def test_combined_timestamp_under_time_header_is_a_date_column():
    table = _table(["DateTime", "Timestamp", "kW"], [["2024-01-01 00:30", "2024-01-01 00:30", "3"]])
    out = classify.classify_columns(table)
    assert out.columns[0].role == "date"
    assert out.columns[1].role == "date"


def test_currency_and_thousands_separators_count_as_numbers():
    table = _table(["When", "Cost"], [["2024-01-01", "R1,234.50"], ["2024-01-02", '"$2,000"']])
    out = classify.classify_columns(table)
    cost = out.columns[1]
    assert cost.role == "value"
    assert cost.avg_value == pytest.approx(1617.25)


def test_numeric_ratio_threshold():
    # 1 numeric cell in 20 is below the 10% bar
    rows = [["2024-01-01", "n/a"]] * 19 + [["2024-01-01", "5"]]
    out = classify.classify_columns(_table(["Date", "Notes"], rows))
    assert out.columns[1].role == "ignore"
    assert out.recommended is None
    assert out.value_columns == []


def test_ties_go_to_leftmost_column():
    rows = [["2024-01-01", "1", "2"], ["2024-01-02", "0", "3"]]
    out = classify.classify_columns(_table(["Date", "A", "B"], rows))
    # A has one non-zero, B has two
    assert out.recommended == 2
    rows = [["2024-01-01", "1", "2"], ["2024-01-02", "3", "4"]]
    out = classify.classify_columns(_table(["Date", "A", "B"], rows))
    assert out.recommended == 1


def test_sample_window_limits_rows_inspected():
    rows = [["2024-01-01", "0"]] * 5 + [["2024-01-01", "7"]] * 5
    out = classify.classify_columns(_table(["Date", "kWh"], rows), sample_rows=5)
    assert out.columns[1].non_zero_count == 0


def test_resolve_roles_date_and_time(scada_table):
    roles = classify.resolve_roles(classify.classify_columns(scada_table))
    assert roles.date_column == 0
    assert roles.time_column == 1
    assert roles.timestamp_column is None
    assert roles.value_column == 2
    assert roles.unit == "kWh"


def test_resolve_roles_single_timestamp_column():
    table = _table(["Timestamp", "Demand kW"], [["2024-01-01 00:00", "4"]])
    roles = classify.resolve_roles(classify.classify_columns(table))
    assert roles.timestamp_column == 0
    assert roles.date_column is None
    assert roles.unit == "kW"


def test_missing_date_column_is_ambiguous():
    table = _table(["Reading", "kWh"], [["a", "1"], ["b", "2"]])
    c = classify.classify_columns(table)
    with pytest.raises(exceptions.ColumnAmbiguityError):
        classify.resolve_roles(c)


def test_override_wins_over_heuristics():
    table = _table(["Reading", "kWh", "kW"], [["x", "1", "9"], ["y", "2", "9"]])
    c = classify.classify_columns(table)
    roles = classify.resolve_roles(
        c, {"timestamp_column": 0, "value_column": 2}, unit="W"
    )
    assert roles.timestamp_column == 0
    assert roles.value_column == 2
    assert roles.unit == "W"


def test_no_value_column_is_a_format_error():
    table = _table(["Date", "Notes"], [["2024-01-01", "x"]])
    with pytest.raises(exceptions.FormatError):
        classify.resolve_roles(classify.classify_columns(table))


@pytest.mark.parametrize(
    "header, unit",
    [
        ("Energy MWh", "MWh"),
        ("Demand MW", "MW"),
        ("kVAh", "kVAh"),
        ("Apparent kVA", "kVA"),
        ("Consumption", "kWh"),
        ("Power (kW)", "kW"),
        ("Wh", "Wh"),
        ("Active Power W", "W"),
        ("Current (A)", "A"),
        ("Value", "kWh"),
    ],
)
def test_detect_unit_from_header(header, unit):
    assert classify.detect_unit_from_header(header) == unit
