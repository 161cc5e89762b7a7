"""Chart and table preparation for parsed uploads and stored measurements.

The dashboard plots every numeric-looking column of an upload against
the sequence column (序号/index/seq) when one exists, otherwise against
the 1-based row position.
"""

from typing import Dict, List, Any, Optional, Iterable

import numpy as np
import pandas as pd

from config.config import CHART_CONFIG
from pv_rsd.ingestion.field_mapper import parse_float
from pv_rsd.ingestion.spreadsheet import ParsedSpreadsheet


def numeric_columns(parsed: ParsedSpreadsheet) -> List[str]:
    """Headers with at least one cell that parses as a number."""
    return [
        header for header in parsed.headers
        if any(parse_float(record.get(header)) is not None for record in parsed.records)
    ]


def find_index_column(headers: Iterable[str]) -> Optional[str]:
    """First header naming a sequence/index column."""
    keywords = CHART_CONFIG["index_keywords"]
    for header in headers:
        lowered = header.lower()
        if any(kw in header or kw in lowered for kw in keywords):
            return header
    return None


def series_color(column: str) -> str:
    """Fixed colour for a series name.

    When a name matches several keywords the last one in CHART_CONFIG wins.
    """
    color = CHART_CONFIG["default_color"]
    for key, value in CHART_CONFIG["series_colors"].items():
        if key in column:
            color = value
    return color


def build_chart_frame(parsed: ParsedSpreadsheet) -> pd.DataFrame:
    """Numeric series of an upload, indexed by its sequence column.

    Cells that do not parse as numbers are plotted as 0.0.
    """
    index_col = find_index_column(parsed.headers)
    columns = [c for c in numeric_columns(parsed) if c != index_col]

    if index_col:
        index = [record.get(index_col) for record in parsed.records]
    else:
        index = list(range(1, len(parsed.records) + 1))

    data = {
        col: [_zero_if_none(parse_float(record.get(col))) for record in parsed.records]
        for col in columns
    }
    df = pd.DataFrame(data, columns=columns)
    df.index = pd.Index(index, name=index_col or '#')
    return df


def chart_colors(columns: Iterable[str]) -> List[str]:
    """Colours for each column, in order."""
    return [series_color(c) for c in columns]


def measurements_frame(measurements: Iterable[Any]) -> pd.DataFrame:
    """DataFrame of stored measurements for historical and live charts."""
    rows = [
        {
            'sequence_number': m.sequence_number,
            'timestamp': m.timestamp,
            'voltage_v': m.voltage_v,
            'current_a': m.current_a,
            'power_w': m.power_w,
            'temperature_c': m.temperature_c,
            'humidity_percent': m.humidity_percent,
        }
        for m in measurements
    ]
    columns = ['sequence_number', 'timestamp', 'voltage_v', 'current_a', 'power_w',
               'temperature_c', 'humidity_percent']
    return pd.DataFrame.from_records(rows, columns=columns)


def measurement_summary(measurements: Iterable[Any]) -> Dict[str, float]:
    """Average voltage, current and power; missing readings count as 0.

    Returns:
        Dictionary with count, avg_voltage_v, avg_current_a, avg_power_w
        (averages are NaN when there are no measurements)
    """
    df = measurements_frame(measurements)
    count = len(df)
    if count == 0:
        return {'count': 0, 'avg_voltage_v': np.nan, 'avg_current_a': np.nan, 'avg_power_w': np.nan}

    return {
        'count': count,
        'avg_voltage_v': float(df['voltage_v'].fillna(0).astype(float).mean()),
        'avg_current_a': float(df['current_a'].fillna(0).astype(float).mean()),
        'avg_power_w': float(df['power_w'].fillna(0).astype(float).mean()),
    }


def format_cell_value(value: Any) -> str:
    """Table text for a raw cell: '-' for blanks, 3 decimals for fractions."""
    if value is None:
        return '-'
    if isinstance(value, float):
        if value != value:
            return '-'
        if not value.is_integer():
            return f"{value:.3f}"
        return str(int(value))
    return str(value)


def table_frame(parsed: ParsedSpreadsheet) -> pd.DataFrame:
    """Upload records formatted for display, one column per header."""
    return pd.DataFrame(
        [[format_cell_value(record.get(h)) for h in parsed.headers] for record in parsed.records],
        columns=parsed.headers,
    )


def _zero_if_none(value: Optional[float]) -> float:
    return 0.0 if value is None else value
