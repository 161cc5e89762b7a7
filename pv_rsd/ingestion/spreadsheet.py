"""Spreadsheet parsing for RSD test exports.

Turns an uploaded workbook into headers, field-keyed records and the
optional vendor metadata block.

Vendor layout with metadata:

    row 0   title
    row 1   记录时间: ... | 设备地址: ... | 设备类型: ... | 数据点数: ...
    row 2   (blank)
    row 3   header row
    row 4+  data

Without the metadata marker in row 1, row 0 is the header row.
"""

import hashlib
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional

from config.config import INGESTION_CONFIG
from .auto_detector import AutoDetector
from .base_loader import Grid
from .exceptions import MissingHeaderError

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r'^\s*([+-]?\d+)')


@dataclass
class SpreadsheetMetadata:
    """Provenance fields from the vendor metadata row."""
    record_time: Optional[str] = None
    device_address: Optional[str] = None
    device_type: Optional[str] = None
    data_points: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Return the populated fields only."""
        result = {
            'record_time': self.record_time,
            'device_address': self.device_address,
            'device_type': self.device_type,
            'data_points': self.data_points,
        }
        return {k: v for k, v in result.items() if v is not None}


@dataclass
class ParsedSpreadsheet:
    """Result of parsing one upload."""
    headers: List[str]
    records: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Optional[SpreadsheetMetadata] = None

    def __len__(self) -> int:
        return len(self.records)


def parse(file_bytes: bytes, filename: Optional[str] = None, mime_type: Optional[str] = None) -> ParsedSpreadsheet:
    """Parse the first worksheet of an uploaded spreadsheet.

    Args:
        file_bytes: Raw upload content (xlsx, xls or csv)
        filename: Optional original file name, used for format detection
        mime_type: Optional MIME type reported by the uploader

    Returns:
        ParsedSpreadsheet with headers, records and metadata

    Raises:
        DecodeError: content is not a readable spreadsheet
        MissingHeaderError: header row is empty or absent
    """
    loader = AutoDetector.get_loader(file_bytes, filename, mime_type)
    grid = loader.read_grid()
    parsed = parse_grid(grid)
    logger.info(
        "Parsed %s: %d columns, %d records, metadata=%s",
        filename or "<upload>", len(parsed.headers), len(parsed.records), parsed.metadata is not None,
    )
    return parsed


def upload_fingerprint(file_bytes: bytes, filename: Optional[str] = None) -> str:
    """Identity of an upload: changes with the content even if the name does not."""
    digest = hashlib.sha256(file_bytes).hexdigest()
    return f"{filename or ''}:{digest}"


def parse_grid(grid: Grid) -> ParsedSpreadsheet:
    """Split a raw cell grid into metadata, headers and records."""
    metadata = detect_metadata(grid)
    if metadata is not None:
        header_idx = INGESTION_CONFIG["header_row_with_metadata"]
    else:
        header_idx = INGESTION_CONFIG["header_row_default"]

    if header_idx >= len(grid):
        raise MissingHeaderError(f"Header row {header_idx + 1} is missing")

    headers = extract_headers(grid[header_idx])
    if not headers:
        raise MissingHeaderError(f"Header row {header_idx + 1} is empty")

    records = []
    for row in grid[header_idx + 1:]:
        if is_empty_row(row):
            continue
        records.append({
            header: row[idx] if idx < len(row) else None
            for idx, header in enumerate(headers)
        })

    return ParsedSpreadsheet(headers=headers, records=records, metadata=metadata)


def detect_metadata(grid: Grid) -> Optional[SpreadsheetMetadata]:
    """Return metadata if the metadata row carries the record-time marker."""
    row_idx = INGESTION_CONFIG["metadata_row_index"]
    if len(grid) <= row_idx or not grid[row_idx]:
        return None

    first_cell = grid[row_idx][0]
    if not isinstance(first_cell, str) or INGESTION_CONFIG["metadata_marker"] not in first_cell:
        return None

    values: Dict[str, str] = {}
    for cell in grid[row_idx]:
        if isinstance(cell, str):
            values.update(_split_labels(cell))

    return SpreadsheetMetadata(
        record_time=values.get('record_time'),
        device_address=values.get('device_address'),
        device_type=values.get('device_type'),
        data_points=_parse_int(values.get('data_points')),
    )


def extract_headers(row: List[Any]) -> List[str]:
    """Header names of a row, trailing blank cells dropped."""
    cells = list(row)
    while cells and _is_blank(cells[-1]):
        cells.pop()

    headers = []
    for idx, cell in enumerate(cells):
        if _is_blank(cell):
            headers.append(f"Unnamed: {idx}")
        elif isinstance(cell, float) and cell.is_integer():
            headers.append(str(int(cell)))
        else:
            headers.append(str(cell))
    return headers


def is_empty_row(row: List[Any]) -> bool:
    """True if every cell is None or an empty string."""
    return all(cell is None or cell == '' for cell in row)


def _is_blank(cell: Any) -> bool:
    return cell is None or (isinstance(cell, str) and cell.strip() == '')


def _split_labels(cell: str) -> Dict[str, str]:
    # A cell may hold one label or several ("记录时间: ... 设备地址: ...")
    found = []
    for key, label in INGESTION_CONFIG["metadata_labels"].items():
        pos = cell.find(label)
        if pos >= 0:
            found.append((pos, key, label))
    found.sort()

    values = {}
    for i, (pos, key, label) in enumerate(found):
        end = found[i + 1][0] if i + 1 < len(found) else len(cell)
        values[key] = cell[pos + len(label):end].strip()
    return values


def _parse_int(value: Optional[str]) -> int:
    if not value:
        return 0
    match = _LEADING_INT_RE.match(value)
    return int(match.group(1)) if match else 0
