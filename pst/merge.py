"""
Lockstep merge of several sources.

One ``SourceExtractor`` thread per source feeds a bounded channel; the calling
thread pulls exactly one field vector from every channel per logical row, in
the order the sources were given, and yields the merged row.
"""

import contextlib
import logging
import threading
from pathlib import Path
from typing import IO, ContextManager, Iterator, List, Optional, Sequence, Union

from .channels import DEFAULT_CAPACITY, FanIn, RowChannel
from .extractor import SourceExtractor, open_source
from .specs import ColumnSpec, OutputSpec, RowFilter

logger = logging.getLogger(__name__)


class RowSynchronizer:
    """
    Single consumer assembling merged rows from all source channels.

    By default the run ends as soon as any source is exhausted and the partly
    assembled row is dropped. With ``pad_exhausted`` an exhausted source
    contributes empty fields instead, and the run ends once every source is
    exhausted.
    """

    def __init__(
        self,
        hub: FanIn,
        channels: Sequence[RowChannel],
        widths: Sequence[int],
        output_spec: OutputSpec = (),
        pad_exhausted: bool = False,
    ) -> None:
        if len(channels) != len(widths):
            raise ValueError("need exactly one width per channel")
        self.hub = hub
        self.channels = list(channels)
        self.placeholders = [[""] * w for w in widths]
        self.output_spec = tuple(output_spec)
        self.pad_exhausted = pad_exhausted
        self.rows_merged = 0

    def _select(self, merged: List[str]) -> List[str]:
        if not self.output_spec:
            return merged
        return [merged[c] for c in self.output_spec]

    def rows(self) -> Iterator[List[str]]:
        """
        Yield output rows in increasing row order.

        Raises:
            The error a source ended with, when the merge reaches it.
        """
        dead = [False] * len(self.channels)
        active = len(self.channels)
        while True:
            merged: List[str] = []
            for i, channel in enumerate(self.channels):
                fields = self.hub.receive(channel)
                if fields is None:
                    if not self.pad_exhausted:
                        logger.debug(
                            "Source #%d exhausted after %d row(s); stopping",
                            i,
                            self.rows_merged,
                        )
                        return
                    if not dead[i]:
                        dead[i] = True
                        active -= 1
                        logger.debug("Source #%d exhausted, %d still active", i, active)
                    if active == 0:
                        return
                    fields = self.placeholders[i]
                merged.extend(fields)
            self.rows_merged += 1
            yield self._select(merged)


def _open_all(sources: Sequence[Union[str, Path]]) -> List[ContextManager[IO[str]]]:
    """
    Open every source before any extractor starts.

    Raises:
        SourceOpenError: For the first source that cannot be opened. Sources
            already opened are closed again.
    """
    with contextlib.ExitStack() as stack:
        streams = []
        for name in sources:
            stream = open_source(name)
            stack.push(stream)
            streams.append(stream)
        stack.pop_all()
    return streams


def paste_rows(
    sources: Sequence[Union[str, Path]],
    column_specs: Sequence[ColumnSpec],
    row_filter: Optional[RowFilter] = None,
    output_spec: OutputSpec = (),
    separators: Optional[str] = None,
    capacity: int = DEFAULT_CAPACITY,
    pad_exhausted: bool = False,
) -> Iterator[List[str]]:
    """
    Run one extractor thread per source and yield merged output rows.

    All sources are opened up front, so a missing file fails the run before any
    row is produced. An error found while reading a source is raised when the
    merge reaches that source's failing row; a run that stops earlier because
    another source ran out never sees it.

    Extractors are cancelled and joined when the generator finishes, raises, or
    is closed early by the caller, so no thread outlives the iteration.
    """
    if len(sources) != len(column_specs):
        raise ValueError(
            f"need one column spec per source ({len(column_specs)} specs, {len(sources)} sources)"
        )
    row_filter = row_filter if row_filter is not None else RowFilter()
    hub = FanIn()
    channels = [hub.channel(capacity) for _ in sources]
    streams = _open_all(sources)
    threads: List[threading.Thread] = []
    for i, (name, spec, channel, stream) in enumerate(
        zip(sources, column_specs, channels, streams)
    ):
        extractor = SourceExtractor(name, spec, row_filter, channel, separators, stream)
        threads.append(
            threading.Thread(target=extractor.run, name=f"pst-extract-{i}", daemon=True)
        )

    widths = [len(s) if s else 1 for s in column_specs]
    synchronizer = RowSynchronizer(hub, channels, widths, output_spec, pad_exhausted)

    for t in threads:
        t.start()
    logger.debug("Started %d extractor thread(s)", len(threads))
    try:
        yield from synchronizer.rows()
    finally:
        hub.cancel()
        for t in threads:
            t.join()
        logger.debug("Joined extractors after %d merged row(s)", synchronizer.rows_merged)
