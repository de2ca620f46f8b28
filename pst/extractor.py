#!/usr/bin/env python3
"""
Source Extractor
Reads one column-oriented text source line by line, keeps the rows selected by
the row filter and streams the requested columns of each row to a channel.
"""

import contextlib
import logging
import re
import sys
from pathlib import Path
from typing import IO, ContextManager, Iterable, List, Optional, Union

from .channels import RowChannel
from .errors import ColumnOutOfRangeError, SourceOpenError, SourceScanError
from .specs import ColumnSpec, RowFilter

logger = logging.getLogger(__name__)

STDIN_NAME = "-"


def split_fields(line: str, separators: Optional[str] = None) -> List[str]:
    """
    Split a line into fields.

    Surrounding whitespace is trimmed first. Without separators the line is
    split on runs of whitespace; otherwise on runs of any character contained in
    ``separators``. Empty tokens are dropped in both cases.
    """
    line = line.strip()
    if not separators:
        return line.split()
    pattern = "[" + re.escape(separators) + "]+"
    return [tok for tok in re.split(pattern, line) if tok]


def open_source(name: Union[str, Path]) -> ContextManager[IO[str]]:
    """
    Open a source for line reading. ``-`` reads standard input, which is left
    open on exit.

    Raises:
        SourceOpenError: If the file cannot be opened.
    """
    if str(name) == STDIN_NAME:
        return contextlib.nullcontext(sys.stdin)
    try:
        return open(name, "r", encoding="utf-8", newline=None)
    except OSError as e:
        raise SourceOpenError(str(name), f"error opening file {name}: {e}") from e


class SourceExtractor:
    """
    Producer for one input source.

    ``run`` is meant to be the target of a dedicated thread. It sends one field
    vector per selected row to ``channel`` and closes the channel when done.
    A failure closes the channel with the error instead of raising, so the
    synchronizer sees it right after the last row this source delivered.

    ``stream`` is an already opened source; without it ``run`` opens ``name``.
    """

    def __init__(
        self,
        name: Union[str, Path],
        column_spec: ColumnSpec,
        row_filter: RowFilter,
        channel: RowChannel,
        separators: Optional[str] = None,
        stream: Optional[ContextManager[IO[str]]] = None,
    ) -> None:
        self.name = str(name)
        self.column_spec = tuple(column_spec)
        self.row_filter = row_filter
        self.channel = channel
        self.separators = separators
        self.stream = stream
        self.rows_sent = 0

    def extract(self, line: str, line_number: int) -> List[str]:
        """
        Build the field vector for one line.

        Raises:
            ColumnOutOfRangeError: If a requested column is missing on the line.
        """
        if not self.column_spec:
            return [line.strip()]
        items = split_fields(line, self.separators)
        row = []
        for c in self.column_spec:
            if c >= len(items):
                raise ColumnOutOfRangeError(self.name, c, line_number)
            row.append(items[c])
        return row

    def _scan(self, lines: Iterable[str]) -> None:
        max_row = self.row_filter.max_entry()
        for count, line in enumerate(lines):
            if count > max_row:
                logger.debug("%s: past last requested row %s, stopping", self.name, max_row)
                break
            if not self.row_filter.contains(count):
                continue
            row = self.extract(line, count + 1)
            if not self.channel.send(row):
                logger.debug("%s: cancelled after %d row(s)", self.name, self.rows_sent)
                return
            self.rows_sent += 1

    def run(self) -> None:
        logger.debug("%s: extracting columns %s", self.name, self.column_spec or "(line)")
        error = None
        try:
            stream = self.stream if self.stream is not None else open_source(self.name)
            with stream as fh:
                try:
                    self._scan(fh)
                except (OSError, UnicodeDecodeError) as e:
                    raise SourceScanError(
                        self.name, f"error reading file {self.name}: {e}"
                    ) from e
        except Exception as e:
            logger.debug("%s: failed with %s", self.name, type(e).__name__)
            error = e
        finally:
            self.channel.close(error)
            logger.debug("%s: closed after %d row(s)", self.name, self.rows_sent)
