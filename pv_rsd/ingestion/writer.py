"""Write records back out as spreadsheet or CSV bytes."""

import io
from typing import Dict, List, Any, Iterable, Mapping, Optional

import pandas as pd

from config.config import INGESTION_CONFIG
from .field_mapper import CANONICAL_HEADERS

MEASUREMENT_CSV_HEADERS = ['序号', '时间戳', '电流(A)', '电压(V)', '功率(W)', '温度(°C)', '湿度(%)']


def _as_record(item: Any) -> Mapping[str, Any]:
    if hasattr(item, 'to_record'):
        return item.to_record()
    return item


def to_worksheet_bytes(
    records: Iterable[Any],
    sheet_name: Optional[str] = None,
    columns: Optional[List[str]] = None,
) -> bytes:
    """Serialise flat records into a single-sheet .xlsx workbook.

    Column order follows columns, or else the keys of the first record;
    keys first seen in later records are appended. With no records and no
    columns the canonical measurement headers are written, so the sheet
    always has a header row. No metadata block is written.

    Args:
        records: Mappings, or objects with a to_record() method
        sheet_name: Worksheet name (default from INGESTION_CONFIG)
        columns: Leading column order

    Returns:
        Workbook content as bytes
    """
    rows = [dict(_as_record(r)) for r in records]

    if columns is not None:
        columns = list(columns)
    elif rows:
        columns = []
    else:
        columns = list(CANONICAL_HEADERS.values())

    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)

    df = pd.DataFrame.from_records(rows, columns=columns)

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name=sheet_name or INGESTION_CONFIG["export_sheet_name"], index=False)
    return buffer.getvalue()


def measurements_to_csv_bytes(measurements: Iterable[Any]) -> bytes:
    """CSV export of stored or canonical measurements.

    Timestamps are written as 'YYYY-MM-DD HH:MM:SS'; the UTF-8 BOM keeps
    the Chinese headers readable in Excel.
    """
    rows: List[Dict[str, Any]] = []
    for m in measurements:
        rows.append({
            '序号': m.sequence_number,
            '时间戳': m.timestamp.strftime('%Y-%m-%d %H:%M:%S') if m.timestamp else '',
            '电流(A)': m.current_a,
            '电压(V)': m.voltage_v,
            '功率(W)': m.power_w,
            '温度(°C)': m.temperature_c,
            '湿度(%)': m.humidity_percent,
        })

    df = pd.DataFrame.from_records(rows, columns=MEASUREMENT_CSV_HEADERS)
    return df.to_csv(index=False).encode('utf-8-sig')
