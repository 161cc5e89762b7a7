"""Base loader class for all spreadsheet upload types."""

import logging
from abc import ABC, abstractmethod
from typing import List, Any, Optional
import pandas as pd
import numpy as np

from config.config import UPLOAD_CONFIG
from .exceptions import DecodeError

logger = logging.getLogger(__name__)

Grid = List[List[Any]]


class BaseLoader(ABC):
    """Abstract base class for spreadsheet loaders.

    Loaders work on in-memory bytes (an upload), never on a path, and only
    ever read the first worksheet.
    """

    def __init__(self, file_bytes: bytes, filename: Optional[str] = None):
        if file_bytes is None:
            raise DecodeError("No file content supplied")

        max_bytes = UPLOAD_CONFIG["max_file_size_mb"] * 1024 * 1024
        if len(file_bytes) > max_bytes:
            raise DecodeError(
                f"File exceeds {UPLOAD_CONFIG['max_file_size_mb']} MB upload limit"
            )

        self.file_bytes = bytes(file_bytes)
        self.filename = filename

    @abstractmethod
    def read_frame(self) -> pd.DataFrame:
        """Read the first sheet as a DataFrame without a header row.

        Raises:
            DecodeError: if the bytes are not a readable spreadsheet
        """
        pass

    def read_grid(self) -> Grid:
        """Return the first sheet as a row-major grid of raw cell values.

        Blank cells become None; every row has the sheet's full width.
        """
        df = self.read_frame()
        grid = [[self.clean_cell(value) for value in row] for row in df.itertuples(index=False, name=None)]
        logger.debug("Read %d rows from %s", len(grid), self.filename or "<upload>")
        return grid

    @staticmethod
    def clean_cell(value: Any) -> Any:
        """Normalise a pandas cell: NaN/NaT -> None, numpy scalars -> Python."""
        if value is None:
            return None
        if isinstance(value, np.generic):
            value = value.item()
        try:
            if pd.isna(value):
                return None
        except (TypeError, ValueError):
            pass
        return value
