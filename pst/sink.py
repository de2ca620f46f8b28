"""Output sink for merged rows and reducer results."""

import logging
import sys
from typing import IO, List, Optional, Sequence

logger = logging.getLogger(__name__)

VALUE_FORMAT = "{:15.15f}"


def format_values(values: Sequence[float]) -> List[str]:
    return [VALUE_FORMAT.format(v) for v in values]


class Sink:
    """
    Buffered line writer.

    Lines are collected in memory and written in chunks of ``flush_lines``;
    whatever remains is written by ``flush``, which also runs on context exit
    so rows produced before an error still reach the stream.
    """

    def __init__(
        self,
        stream: Optional[IO[str]] = None,
        separator: str = " ",
        flush_lines: int = 4096,
    ) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.separator = separator
        self.flush_lines = max(1, flush_lines)
        self.rows_written = 0
        self._pending: List[str] = []

    def write_row(self, fields: Sequence[str]) -> None:
        self._pending.append(self.separator.join(fields))
        self.rows_written += 1
        if len(self._pending) >= self.flush_lines:
            self._drain()

    def write_values(self, values: Sequence[float]) -> None:
        self.write_row(format_values(values))

    def _drain(self) -> None:
        if self._pending:
            self.stream.write("\n".join(self._pending) + "\n")
            self._pending.clear()

    def flush(self) -> None:
        self._drain()
        self.stream.flush()
        logger.debug("Sink flushed (%d row(s) written)", self.rows_written)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.flush()
