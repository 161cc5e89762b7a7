"""Errors raised while ingesting spreadsheet uploads."""


class SpreadsheetParseError(ValueError):
    """Base class for every failure to turn an upload into a ParsedSpreadsheet."""


class DecodeError(SpreadsheetParseError):
    """The bytes could not be read as a supported spreadsheet."""


class UnsupportedFormatError(DecodeError):
    """Extension, MIME type and content all fail to identify a known format."""


class MissingHeaderError(SpreadsheetParseError):
    """The designated header row is empty or absent."""
