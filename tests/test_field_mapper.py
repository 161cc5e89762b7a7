"""Tests for canonical measurement mapping and re-export."""

from __future__ import annotations

from datetime import datetime, time

import pandas as pd
import pytest

from pv_rsd.ingestion import (
    ParsedSpreadsheet,
    SpreadsheetMetadata,
    measurements_to_csv_bytes,
    parse,
    parse_float,
    to_canonical_measurements,
    to_worksheet_bytes,
)
from pv_rsd.ingestion.field_mapper import CANONICAL_HEADERS, parse_timestamp

PARSE_TIME = datetime(2025, 3, 1, 12, 0, 0)


# -----------------------------------------------------------------------
# parse_float
# -----------------------------------------------------------------------


def test_parse_float_reads_leading_number() -> None:
    assert parse_float("0.52A") == 0.52
    assert parse_float(" -3.5 ") == -3.5
    assert parse_float(7) == 7.0
    assert parse_float("1e3") == 1000.0


def test_parse_float_rejects_non_numbers() -> None:
    assert parse_float("abc") is None
    assert parse_float("") is None
    assert parse_float(None) is None
    assert parse_float(float("nan")) is None
    assert parse_float(True) is None


# -----------------------------------------------------------------------
# Alias mapping
# -----------------------------------------------------------------------


def test_both_alias_spellings_are_read() -> None:
    spaced, compact = to_canonical_measurements(
        [
            {"电流 (A)": 0.5, "电压 (V)": 20.0, "功率 (W)": 10.0},
            {"电流(A)": 0.6, "电压(V)": 21.0, "功率(W)": 12.6},
        ],
        parse_time=PARSE_TIME,
    )
    assert (spaced.current_a, spaced.voltage_v, spaced.power_w) == (0.5, 20.0, 10.0)
    assert (compact.current_a, compact.voltage_v, compact.power_w) == (0.6, 21.0, 12.6)


def test_first_alias_wins() -> None:
    [m] = to_canonical_measurements([{"电流 (A)": 1.0, "电流(A)": 2.0}], parse_time=PARSE_TIME)
    assert m.current_a == 1.0


def test_empty_first_alias_falls_through() -> None:
    [m] = to_canonical_measurements([{"电流 (A)": "", "电流(A)": 2.0}], parse_time=PARSE_TIME)
    assert m.current_a == 2.0


def test_missing_and_invalid_values_default() -> None:
    [first, second] = to_canonical_measurements(
        [{"电流 (A)": "n/a"}, {}],
        parse_time=PARSE_TIME,
    )
    assert first.current_a == 0.0
    assert first.voltage_v == 0.0
    assert first.power_w == 0.0
    assert first.temperature_c is None
    assert first.humidity_percent is None
    assert first.timestamp == PARSE_TIME
    # sequence number falls back to the 1-based position
    assert (first.sequence_number, second.sequence_number) == (1, 2)


def test_sequence_and_optional_fields() -> None:
    [m] = to_canonical_measurements(
        [{"序号": 42.0, "温度 (°C)": "25.5", "湿度(%)": 60, "设备地址": 3.0, "设备类型": "RSD"}],
        parse_time=PARSE_TIME,
    )
    assert m.sequence_number == 42
    assert m.temperature_c == 25.5
    assert m.humidity_percent == 60.0
    assert m.device_address == "3"
    assert m.device_type == "RSD"
    assert m.additional_data() == {"device_address": "3", "device_type": "RSD"}


def test_metadata_fills_device_fields() -> None:
    parsed = ParsedSpreadsheet(
        headers=["序号"],
        records=[{"序号": 1}],
        metadata=SpreadsheetMetadata(record_time="x", device_address="01", device_type="RSD-1000"),
    )
    [m] = to_canonical_measurements(parsed, parse_time=PARSE_TIME)
    assert m.device_address == "01"
    assert m.device_type == "RSD-1000"


def test_mapping_does_not_mutate_records() -> None:
    records = [{"电流(A)": "0.5"}]
    to_canonical_measurements(records, parse_time=PARSE_TIME)
    assert records == [{"电流(A)": "0.5"}]


# -----------------------------------------------------------------------
# Timestamps
# -----------------------------------------------------------------------


def test_timestamp_strings_and_datetimes() -> None:
    assert parse_timestamp("2025-03-01 10:00:05", PARSE_TIME) == datetime(2025, 3, 1, 10, 0, 5)
    assert parse_timestamp(datetime(2024, 1, 2), PARSE_TIME) == datetime(2024, 1, 2)
    assert parse_timestamp(pd.Timestamp("2024-01-02 03:04:05"), PARSE_TIME) == datetime(2024, 1, 2, 3, 4, 5)


def test_numeric_timestamp_is_epoch_milliseconds() -> None:
    assert parse_timestamp(0, PARSE_TIME) == datetime(1970, 1, 1)
    assert parse_timestamp(1_000, PARSE_TIME) == datetime(1970, 1, 1, 0, 0, 1)


def test_unparseable_timestamp_uses_default() -> None:
    assert parse_timestamp("not a date", PARSE_TIME) == PARSE_TIME
    assert parse_timestamp(None, PARSE_TIME) == PARSE_TIME


@pytest.mark.parametrize("value", [1e20, -1e20, float("inf"), float("-inf"), 10**30])
def test_out_of_range_timestamp_uses_default(value) -> None:
    assert parse_timestamp(value, PARSE_TIME) == PARSE_TIME


def test_out_of_range_csv_timestamp_maps_to_parse_time(csv_factory) -> None:
    parsed = parse(csv_factory([["序号", "时间戳", "电流(A)"], [1, "1e20", 0.5]]), filename="t.csv")
    [m] = to_canonical_measurements(parsed, parse_time=PARSE_TIME)
    assert m.timestamp == PARSE_TIME
    assert m.current_a == 0.5


def test_time_only_cell_uses_parse_date() -> None:
    # same input, same output regardless of the current date
    assert parse_timestamp(time(10, 0, 5), PARSE_TIME) == datetime(2025, 3, 1, 10, 0, 5)
    other_day = datetime(2024, 12, 31, 8, 0)
    assert parse_timestamp(time(10, 0, 5), other_day) == datetime(2024, 12, 31, 10, 0, 5)


# -----------------------------------------------------------------------
# Re-export
# -----------------------------------------------------------------------


def test_canonical_export_parses_back(xlsx_factory) -> None:
    content = xlsx_factory([
        ["序号", "电流(A)", "电压(V)", "时间戳"],
        [1, 0.5, 20.0, "2025-03-01 10:00:01"],
        [2, 0.6, 21.0, "2025-03-01 10:00:02"],
    ])
    measurements = to_canonical_measurements(parse(content, filename="in.xlsx"), parse_time=PARSE_TIME)

    reparsed = parse(to_worksheet_bytes(measurements), filename="out.xlsx")

    assert reparsed.metadata is None
    assert reparsed.headers == list(CANONICAL_HEADERS.values())
    assert len(reparsed.records) == 2

    again = to_canonical_measurements(reparsed, parse_time=PARSE_TIME)
    assert [(m.sequence_number, m.current_a, m.voltage_v, m.timestamp) for m in again] == [
        (m.sequence_number, m.current_a, m.voltage_v, m.timestamp) for m in measurements
    ]


def test_worksheet_columns_follow_first_record() -> None:
    content = to_worksheet_bytes([{"b": 1, "a": 2}, {"a": 3, "c": 4}])
    parsed = parse(content, filename="out.xlsx")
    assert parsed.headers == ["b", "a", "c"]
    assert parsed.records[1] == {"b": None, "a": 3, "c": 4}


def test_measurement_csv_export() -> None:
    measurements = to_canonical_measurements(
        [{"序号": 1, "电流(A)": 0.5, "电压(V)": 20.0, "时间戳": "2025-03-01 10:00:01"}],
        parse_time=PARSE_TIME,
    )
    text = measurements_to_csv_bytes(measurements).decode("utf-8-sig")
    lines = text.splitlines()
    assert lines[0] == "序号,时间戳,电流(A),电压(V),功率(W),温度(°C),湿度(%)"
    assert lines[1].startswith("1,2025-03-01 10:00:01,0.5,20.0,0.0")


def test_header_only_sheet_round_trips(xlsx_factory) -> None:
    parsed = parse(xlsx_factory([["序号", "电流 (A)"]]), filename="empty.xlsx")
    measurements = to_canonical_measurements(parsed, parse_time=PARSE_TIME)
    assert measurements == []

    reparsed = parse(to_worksheet_bytes(measurements), filename="out.xlsx")
    assert reparsed.headers == list(CANONICAL_HEADERS.values())
    assert reparsed.records == []


def test_worksheet_explicit_columns() -> None:
    parsed = parse(to_worksheet_bytes([], columns=["a", "b"]), filename="out.xlsx")
    assert parsed.headers == ["a", "b"]
    assert parsed.records == []

    parsed = parse(to_worksheet_bytes([{"b": 1, "c": 2}], columns=["a", "b"]), filename="out.xlsx")
    assert parsed.headers == ["a", "b", "c"]
    assert parsed.records == [{"a": None, "b": 1, "c": 2}]
