"""Auto-detect spreadsheet format of an upload."""

import logging
from pathlib import Path
from typing import Optional
from config.config import UPLOAD_CONFIG
from .base_loader import BaseLoader
from .csv_loader import CsvLoader
from .xlsx_loader import XlsxLoader
from .exceptions import UnsupportedFormatError

logger = logging.getLogger(__name__)


class AutoDetector:
    """Pick the right loader for uploaded bytes."""

    MAGIC_BYTES = {
        b'PK\x03\x04': '.xlsx',  # Office Open XML (zip container)
        b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1': '.xls',  # OLE2 compound document
    }

    @classmethod
    def detect_format(
        cls,
        filename: Optional[str] = None,
        mime_type: Optional[str] = None,
        file_bytes: Optional[bytes] = None,
    ) -> str:
        """Detect the spreadsheet format of an upload.

        Content signature wins over the file name, which wins over the
        MIME type. Uploads with no signature, name or MIME type are read
        as CSV text.

        Returns:
            One of '.xlsx', '.xls', '.csv'

        Raises:
            UnsupportedFormatError: extension or MIME type is not supported
        """
        if file_bytes:
            for magic, ext in cls.MAGIC_BYTES.items():
                if file_bytes.startswith(magic):
                    return ext

        if filename:
            ext = Path(filename).suffix.lower()
            if ext in UPLOAD_CONFIG["allowed_extensions"]:
                return ext
            if ext:
                raise UnsupportedFormatError(f"Unsupported file extension: {ext}")

        if mime_type:
            mime = mime_type.split(';')[0].strip().lower()
            if mime in UPLOAD_CONFIG["mime_types"]:
                return UPLOAD_CONFIG["mime_types"][mime]
            raise UnsupportedFormatError(f"Unsupported MIME type: {mime_type}")

        return '.csv'

    @classmethod
    def get_loader(
        cls,
        file_bytes: bytes,
        filename: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> BaseLoader:
        """Select appropriate loader for the upload."""
        ext = cls.detect_format(filename, mime_type, file_bytes)
        logger.info("Loading %s as %s", filename or "<upload>", ext)

        if ext == '.csv':
            return CsvLoader(file_bytes, filename)
        return XlsxLoader(file_bytes, filename, file_format=ext)
