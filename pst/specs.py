"""
Range spec parsing and row filtering.

A range spec is a comma separated list of tokens, each either a single index
``a`` or an inclusive interval ``a-b``. Input specs carry one such list per
source, separated by ``|``. All indices are zero based.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple, Union

from .errors import ConfigError, RangeFormatError

logger = logging.getLogger(__name__)

ColumnSpec = Tuple[int, ...]
OutputSpec = Tuple[int, ...]

_INDEX_RE = re.compile(r"[0-9]+")


def _parse_index(token: str, context: str) -> int:
    token = token.strip()
    if not _INDEX_RE.fullmatch(token):
        raise RangeFormatError(
            f"could not convert {token!r} into integer representation (in {context!r})"
        )
    return int(token)


def parse_range(text: str) -> Tuple[int, int]:
    """
    Parse a single range token.

    Args:
        text: Either ``"a"`` or ``"a-b"`` with non-negative integers a and b.

    Returns:
        Tuple[int, int]: Inclusive (begin, end). A bare ``"a"`` yields ``(a, a)``.

    Raises:
        RangeFormatError: If the token is empty, not numeric, has more than one
            ``-`` or describes a reversed interval.
    """
    parts = text.strip().split("-")
    if len(parts) == 1:
        begin = _parse_index(parts[0], text)
        return begin, begin
    if len(parts) == 2:
        begin = _parse_index(parts[0], text)
        end = _parse_index(parts[1], text)
        if end < begin:
            raise RangeFormatError(
                f"the end of interval {text.strip()} is smaller than its beginning"
            )
        return begin, end
    raise RangeFormatError(f"incorrect range specification {text!r}")


def make_int_range(begin: int, end: int) -> List[int]:
    """Consecutive ints from begin up to and including end."""
    return list(range(begin, end + 1))


def parse_index_list(text: str) -> Tuple[int, ...]:
    """
    Expand a comma separated list of range tokens, keeping order and duplicates.

    ``"0,1-3,10"`` -> ``(0, 1, 2, 3, 10)``
    """
    indices: List[int] = []
    for token in text.split(","):
        begin, end = parse_range(token)
        indices.extend(make_int_range(begin, end))
    return tuple(indices)


def parse_input_spec(text: str) -> List[ColumnSpec]:
    """Parse ``"<cols file1>|<cols file2>|..."`` into one ColumnSpec per entry."""
    specs: List[ColumnSpec] = []
    for i, entry in enumerate(text.split("|")):
        if not entry.strip():
            raise RangeFormatError(
                f"empty input specification for file entry #{i}: {entry!r}"
            )
        specs.append(parse_index_list(entry))
    return specs


def get_input_spec(text: str, num_sources: int) -> List[ColumnSpec]:
    """
    Build exactly one ColumnSpec per source.

    An empty ``text`` means the entire line of every source. When fewer specs
    than sources are given, the last spec is repeated for the remaining ones.

    Raises:
        ConfigError: If there are more per-source specs than sources.
        RangeFormatError: If any token is malformed.
    """
    if not text:
        return [()] * num_sources

    specs = parse_input_spec(text)
    if len(specs) > num_sources:
        raise ConfigError(
            "there are more per file column specifiers than supplied input files "
            f"({len(specs)} > {num_sources})"
        )
    padding = num_sources - len(specs)
    if padding:
        logger.debug("Reusing final column spec %s for %d more source(s)", specs[-1], padding)
    specs.extend([specs[-1]] * padding)
    return specs


def total_columns(specs: Sequence[ColumnSpec]) -> int:
    """Width of a merged row; an empty spec contributes the whole line as one column."""
    return sum(len(s) if s else 1 for s in specs)


def get_output_spec(text: str, num_columns: int) -> OutputSpec:
    """
    Parse the output column order and check it against the merged row width.

    Raises:
        ConfigError: If an index falls outside ``[0, num_columns)``.
    """
    if not text:
        return ()

    spec = parse_index_list(text)
    out_of_bounds = [c for c in spec if c >= num_columns]
    if out_of_bounds:
        raise ConfigError(
            f"output column specifier(s) {out_of_bounds} out of bounds for "
            f"{num_columns} extracted column(s)"
        )
    return spec


@dataclass(frozen=True, order=True)
class RowRange:
    """Inclusive range of 0-based row indices."""

    begin: int
    end: int

    def __post_init__(self) -> None:
        if self.end < self.begin:
            raise RangeFormatError(
                f"the end of interval {self.begin}-{self.end} is smaller than its beginning"
            )


class RowFilter:
    """
    Set of row ranges deciding which rows get processed.

    Ranges are sorted by ``begin`` on construction so that ``contains`` can stop
    at the first range starting past the row index. An empty filter matches
    every row.
    """

    def __init__(self, ranges: Iterable[Union[RowRange, Tuple[int, int]]] = ()) -> None:
        normalized = [r if isinstance(r, RowRange) else RowRange(*r) for r in ranges]
        self._ranges: Tuple[RowRange, ...] = tuple(
            sorted(normalized, key=lambda r: r.begin)
        )

    @property
    def ranges(self) -> Tuple[RowRange, ...]:
        return self._ranges

    def __len__(self) -> int:
        return len(self._ranges)

    def __repr__(self) -> str:
        inner = ",".join(f"{r.begin}-{r.end}" for r in self._ranges)
        return f"RowFilter({inner or '*'})"

    def contains(self, row_index: int) -> bool:
        if not self._ranges:
            return True
        for r in self._ranges:
            if row_index < r.begin:
                return False
            if row_index <= r.end:
                return True
        return False

    def max_entry(self) -> Union[int, float]:
        """Largest row index any range can match; ``math.inf`` when unfiltered."""
        if not self._ranges:
            return math.inf
        return max(r.end for r in self._ranges)


def parse_row_spec(text: str) -> List[RowRange]:
    """Parse ``"1,2,4-8,22"`` into RowRanges in the order given."""
    return [RowRange(*parse_range(token)) for token in text.split(",")]


def get_row_spec(text: str) -> RowFilter:
    """Build a sorted RowFilter; an empty ``text`` matches all rows."""
    if not text:
        return RowFilter()
    return RowFilter(parse_row_spec(text))
