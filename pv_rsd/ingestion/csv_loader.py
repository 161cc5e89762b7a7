"""Loader for CSV files (.csv)."""

import csv
import io
import re
import pandas as pd
from typing import Any, Optional
from config.config import UPLOAD_CONFIG
from .base_loader import BaseLoader
from .exceptions import DecodeError

_INT_RE = re.compile(r'^[+-]?\d+$')
_FLOAT_RE = re.compile(r'^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$')


class CsvLoader(BaseLoader):
    """Load CSV exports.

    Numeric-looking cells are turned into int/float so CSV uploads yield
    the same raw values as the equivalent Excel workbook.
    """

    DELIMITERS = [',', '\t', ';', '|']

    def __init__(self, file_bytes: bytes, filename: Optional[str] = None):
        super().__init__(file_bytes, filename)
        self.encoding = None
        self.delimiter = None

    def read_frame(self) -> pd.DataFrame:
        """Load data from CSV bytes."""
        text = self.decode_text()
        if not text.strip():
            return pd.DataFrame()

        self.delimiter = self.detect_delimiter(text)

        # Vendor files mix a one-cell title row with wide data rows
        width = max((len(row) for row in csv.reader(io.StringIO(text), delimiter=self.delimiter)), default=0)

        try:
            df = pd.read_csv(
                io.StringIO(text),
                sep=self.delimiter,
                header=None,
                names=range(width),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
            )
        except Exception as e:
            raise DecodeError(f"Could not read CSV file: {e}") from e

        return df.apply(lambda col: col.map(self._coerce_cell))

    def decode_text(self) -> str:
        """Decode the bytes with the first configured encoding that fits."""
        if b'\x00' in self.file_bytes:
            raise DecodeError("Binary content is not a CSV file")

        for encoding in UPLOAD_CONFIG["csv_encodings"]:
            try:
                text = self.file_bytes.decode(encoding)
            except UnicodeDecodeError:
                continue
            self.encoding = encoding
            return text

        raise DecodeError(
            f"CSV file is not in a supported encoding ({', '.join(UPLOAD_CONFIG['csv_encodings'])})"
        )

    @classmethod
    def detect_delimiter(cls, text: str) -> str:
        """Detect delimiter from the first lines of the file."""
        head = '\n'.join(text.splitlines()[:10])

        # Check common delimiters
        delimiter_counts = {d: head.count(d) for d in cls.DELIMITERS}

        # Return delimiter with highest count
        return max(delimiter_counts, key=delimiter_counts.get)

    @staticmethod
    def _coerce_cell(value: Any) -> Any:
        if value is None or (isinstance(value, float) and value != value):
            return None
        value = str(value)
        stripped = value.strip()
        if stripped == '':
            return None
        if _INT_RE.match(stripped):
            return int(stripped)
        if _FLOAT_RE.match(stripped):
            return float(stripped)
        return value
