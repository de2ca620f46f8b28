"""
Exception hierarchy for pst.

Configuration problems are raised while the run is being planned, before any
extractor thread exists. Source and numeric errors surface from the running
pipeline and stop it; rows already written stay written.
"""

from typing import Optional


class PstError(Exception):
    """Base exception for pst errors."""

    pass


class ConfigError(PstError):
    """Raised when the requested specs cannot describe a valid run."""

    pass


class RangeFormatError(ConfigError):
    """Raised when a range token such as ``3`` or ``2-5`` is malformed."""

    pass


class SourceError(PstError):
    """Base class for errors raised while reading one input source."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(message)
        self.source = source


class SourceOpenError(SourceError):
    """Raised when a source cannot be opened."""

    pass


class SourceScanError(SourceError):
    """Raised when reading a source fails part way through."""

    pass


class ColumnOutOfRangeError(SourceError):
    """Raised when a line has fewer fields than a requested column index."""

    def __init__(self, source: str, column: int, line: Optional[int] = None) -> None:
        message = f"error parsing file {source}: requested column {column} does not exist"
        if line is not None:
            message += f" (line {line})"
        super().__init__(source, message)
        self.column = column
        self.line = line


class NumericConversionError(PstError):
    """Raised when a field cannot be converted to a float in statistics mode."""

    def __init__(self, field: str, position: int) -> None:
        super().__init__(
            f"could not convert field {position} ({field!r}) into a floating point value"
        )
        self.field = field
        self.position = position


class InternalConsistencyError(PstError):
    """Raised when the running median heaps drift apart by more than one element."""

    pass
