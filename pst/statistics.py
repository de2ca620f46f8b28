"""
Row statistics.

Each compute action reduces the full numeric vector of one output row to a
single float. The median is computed with the same two-heap running median
used for streaming input, fed one value at a time.
"""

import heapq
import logging
import math
import re
import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np

from .errors import ConfigError, InternalConsistencyError, NumericConversionError

logger = logging.getLogger(__name__)

# Decimal or exponent notation, inf and nan. Digit separators such as "1_000"
# are not numbers here even though float() takes them.
NUMBER_RE = re.compile(
    r"[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE | re.ASCII,
)

ComputeAction = Callable[[Sequence[float]], float]


def to_floats(fields: Sequence[str]) -> np.ndarray:
    """
    Convert string fields to a float64 vector.

    Raises:
        NumericConversionError: On the first field that is not a number.
    """
    values = np.empty(len(fields), dtype=np.float64)
    for i, item in enumerate(fields):
        text = item.strip()
        if not NUMBER_RE.fullmatch(text):
            raise NumericConversionError(item, i)
        values[i] = float(text)
    return values


def mean(items: Sequence[float]) -> float:
    if len(items) == 0:
        return math.nan
    total = 0.0
    for x in items:
        total += x
    return float(total / len(items))


def variance(items: Sequence[float]) -> float:
    """One pass sample variance; 0 for fewer than two items."""
    mk = 0.0
    qk = 0.0
    for i, d in enumerate(items):
        k = float(i + 1)
        qk += (k - 1) * (d - mk) * (d - mk) / k
        mk += (d - mk) / k
    if len(items) > 1:
        return float(qk / (len(items) - 1))
    return 0.0


def std(items: Sequence[float]) -> float:
    return math.sqrt(variance(items))


def minimum(items: Sequence[float]) -> float:
    min_val = sys.float_info.max
    for x in items:
        if x < min_val:
            min_val = x
    return float(min_val)


def maximum(items: Sequence[float]) -> float:
    max_val = -sys.float_info.max
    for x in items:
        if x > max_val:
            max_val = x
    return float(max_val)


class RunningMedian:
    """
    Running median over a stream of floats.

    ``smaller`` holds the values at or below the median as negated entries so
    that heapq's min-heap acts as a max-heap; ``larger`` holds the values at or
    above it. Storage grows with the number of values seen.
    """

    def __init__(self) -> None:
        self.smaller: List[float] = []
        self.larger: List[float] = []
        self.value = 0.0

    def __len__(self) -> int:
        return len(self.smaller) + len(self.larger)

    def update(self, v: float) -> float:
        smaller, larger = self.smaller, self.larger

        if not smaller and not larger:
            heapq.heappush(smaller, -v)
        elif not smaller:
            if v > larger[0]:
                heapq.heappush(smaller, -heapq.heappop(larger))
                heapq.heappush(larger, v)
            else:
                heapq.heappush(smaller, -v)
        elif not larger:
            if v < -smaller[0]:
                heapq.heappush(larger, -heapq.heappop(smaller))
                heapq.heappush(smaller, -v)
            else:
                heapq.heappush(larger, v)
        elif v < self.value:
            heapq.heappush(smaller, -v)
        elif v > self.value:
            heapq.heappush(larger, v)
        elif len(smaller) <= len(larger):
            heapq.heappush(smaller, -v)
        else:
            heapq.heappush(larger, v)

        if len(smaller) == len(larger) + 2:
            heapq.heappush(larger, -heapq.heappop(smaller))
        elif len(larger) == len(smaller) + 2:
            heapq.heappush(smaller, -heapq.heappop(larger))

        if len(smaller) == len(larger):
            self.value = 0.5 * (larger[0] - smaller[0])
        elif len(smaller) > len(larger):
            self.value = -smaller[0]
        else:
            self.value = larger[0]

        if abs(len(smaller) - len(larger)) > 1:
            raise InternalConsistencyError(
                f"median heaps differ by more than one element "
                f"({len(smaller)} vs {len(larger)})"
            )
        return self.value


def median(items: Sequence[float]) -> float:
    m = RunningMedian()
    for x in items:
        m.update(float(x))
    return float(m.value)


COMPUTE_ACTIONS: Dict[str, ComputeAction] = {
    "mean": mean,
    "var": variance,
    "std": std,
    "min": minimum,
    "max": maximum,
    "median": median,
}


@dataclass(frozen=True)
class ComputeSpec:
    """Ordered, named list of compute actions. Empty means no reduction."""

    names: Tuple[str, ...] = ()

    @property
    def actions(self) -> Tuple[ComputeAction, ...]:
        return tuple(COMPUTE_ACTIONS[n] for n in self.names)

    def __bool__(self) -> bool:
        return bool(self.names)

    def __len__(self) -> int:
        return len(self.names)


def parse_compute_spec(text: str) -> ComputeSpec:
    """
    Parse a comma separated list of action names, e.g. ``"mean, std, median"``.

    Raises:
        ConfigError: On an unknown action name.
    """
    if not text:
        return ComputeSpec()
    names = []
    for item in text.split(","):
        name = item.strip()
        if name not in COMPUTE_ACTIONS:
            raise ConfigError(
                f"encountered unknown compute action {name!r}; "
                f"choose from {', '.join(COMPUTE_ACTIONS)}"
            )
        names.append(name)
    return ComputeSpec(tuple(names))


class StatisticsEngine:
    """Replaces each output row with one value per compute action."""

    def __init__(self, spec: ComputeSpec) -> None:
        if not spec:
            raise ConfigError("a statistics engine needs at least one compute action")
        self.spec = spec
        self._actions = spec.actions

    def reduce(self, fields: Sequence[str]) -> List[float]:
        values = to_floats(fields)
        return [action(values) for action in self._actions]
