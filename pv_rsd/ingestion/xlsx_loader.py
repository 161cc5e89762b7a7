"""Loader for Excel files (.xlsx, .xls)."""

import io
import pandas as pd
from typing import Optional, List
from .base_loader import BaseLoader
from .exceptions import DecodeError


class XlsxLoader(BaseLoader):
    """Load Excel workbooks exported by RSD test benches."""

    ENGINES = {
        '.xlsx': 'openpyxl',
        '.xls': 'xlrd',
    }

    def __init__(self, file_bytes: bytes, filename: Optional[str] = None, file_format: str = '.xlsx'):
        super().__init__(file_bytes, filename)
        if file_format not in self.ENGINES:
            raise DecodeError(f"Not an Excel format: {file_format}")
        self.file_format = file_format

    def read_frame(self) -> pd.DataFrame:
        """Load the first sheet with every cell kept as read."""
        try:
            return pd.read_excel(
                io.BytesIO(self.file_bytes),
                sheet_name=0,
                header=None,
                dtype=object,
                engine=self.ENGINES[self.file_format],
            )
        except Exception as e:
            raise DecodeError(f"Could not read Excel workbook: {e}") from e

    def list_sheets(self) -> List[str]:
        """List all sheet names in the workbook."""
        try:
            xl_file = pd.ExcelFile(io.BytesIO(self.file_bytes), engine=self.ENGINES[self.file_format])
        except Exception as e:
            raise DecodeError(f"Could not read Excel workbook: {e}") from e
        return xl_file.sheet_names
