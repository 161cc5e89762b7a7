"""Data Ingestion Module for RSD Test Spreadsheets.

File Formats:
- XLSX/XLS (Excel, first worksheet only)
- CSV (comma/semicolon/tab separated, UTF-8 or GBK)

Features:
- Format detection from content signature, file name or MIME type
- Vendor metadata block detection (记录时间/设备地址/设备类型/数据点数)
- Header row location and empty row removal
- Alias-based mapping onto canonical measurements
- Re-export to .xlsx and CSV
"""

from .exceptions import (
    SpreadsheetParseError,
    DecodeError,
    UnsupportedFormatError,
    MissingHeaderError,
)
from .base_loader import BaseLoader
from .auto_detector import AutoDetector
from .csv_loader import CsvLoader
from .xlsx_loader import XlsxLoader
from .spreadsheet import ParsedSpreadsheet, SpreadsheetMetadata, parse, parse_grid, upload_fingerprint
from .field_mapper import (
    CanonicalMeasurement,
    FIELD_ALIASES,
    to_canonical_measurements,
    parse_float,
)
from .writer import to_worksheet_bytes, measurements_to_csv_bytes

__all__ = [
    "SpreadsheetParseError",
    "DecodeError",
    "UnsupportedFormatError",
    "MissingHeaderError",
    "BaseLoader",
    "AutoDetector",
    "CsvLoader",
    "XlsxLoader",
    "ParsedSpreadsheet",
    "SpreadsheetMetadata",
    "parse",
    "parse_grid",
    "upload_fingerprint",
    "CanonicalMeasurement",
    "FIELD_ALIASES",
    "to_canonical_measurements",
    "parse_float",
    "to_worksheet_bytes",
    "measurements_to_csv_bytes",
]
