#!/usr/bin/env python3
"""
pst - paste columns from several column oriented files.

This module exposes the pipeline as plain functions:
- get_default_params()
- build_plan()
- run_paste()

Configuration is parsed and validated up front by build_plan(); run_paste()
then streams rows through the concurrent merge and writes them to a Sink.
main() is the command line entry point.
"""

import logging
import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import IO, List, Optional, Tuple

from . import __version__
from .channels import DEFAULT_CAPACITY
from .errors import ConfigError, InternalConsistencyError, PstError
from .extractor import STDIN_NAME
from .merge import paste_rows
from .sink import Sink
from .specs import (
    ColumnSpec,
    OutputSpec,
    RowFilter,
    get_input_spec,
    get_output_spec,
    get_row_spec,
    total_columns,
)
from .statistics import ComputeSpec, StatisticsEngine, parse_compute_spec

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


@dataclass
class PasteParams:
    """
    User supplied parameters for one run, as given on the command line.

    Attributes:
        sources: Input file paths in paste order; ``-`` reads standard input.
        input_spec: Per source column lists, ``"<cols file1>|<cols file2>|..."``.
            Empty extracts every line whole.
        output_spec: Order of the merged columns in the output, e.g. ``"2,0-1,0"``.
            Requires input_spec.
        row_spec: 0-based rows to process, e.g. ``"1,2,4-8"``. Empty processes all.
        compute_spec: Comma separated compute actions (mean, var, std, min, max, median).
        input_sep: Characters separating input columns. Empty means whitespace.
        output_sep: String placed between output columns.
        buffer_rows: Capacity of each per source channel.
        pad_exhausted: Keep going with empty fields for exhausted sources until
            every source is exhausted, instead of stopping at the first one.
    """

    sources: List[Path] = field(default_factory=list)
    input_spec: str = ""
    output_spec: str = ""
    row_spec: str = ""
    compute_spec: str = ""
    input_sep: str = ""
    output_sep: str = " "
    buffer_rows: int = DEFAULT_CAPACITY
    pad_exhausted: bool = False


@dataclass(frozen=True)
class PastePlan:
    """Validated, immutable description of a run."""

    sources: Tuple[str, ...]
    column_specs: Tuple[ColumnSpec, ...]
    output_spec: OutputSpec
    row_filter: RowFilter
    compute: ComputeSpec
    input_sep: Optional[str]
    output_sep: str
    buffer_rows: int
    pad_exhausted: bool

    @property
    def total_columns(self) -> int:
        return total_columns(self.column_specs)


def get_default_params() -> PasteParams:
    """Single source of the CLI visible defaults."""
    return PasteParams()


def build_plan(params: PasteParams) -> PastePlan:
    """
    Parse and cross-check every spec before anything is read.

    Raises:
        ConfigError: On any malformed or inconsistent spec.
    """
    if not params.sources:
        raise ConfigError("at least one input file is required")
    if params.output_spec and not params.input_spec:
        raise ConfigError("an output paste spec requires an input column spec")
    if params.buffer_rows < 1:
        raise ConfigError(f"buffer rows must be a positive integer, got: {params.buffer_rows}")

    sources = tuple(str(s) for s in params.sources)
    if sources.count(STDIN_NAME) > 1:
        raise ConfigError(f"standard input ('{STDIN_NAME}') can only be given once")
    column_specs = tuple(get_input_spec(params.input_spec, len(sources)))
    output_spec = get_output_spec(params.output_spec, total_columns(column_specs))
    row_filter = get_row_spec(params.row_spec)
    compute = parse_compute_spec(params.compute_spec)

    plan = PastePlan(
        sources=sources,
        column_specs=column_specs,
        output_spec=output_spec,
        row_filter=row_filter,
        compute=compute,
        input_sep=params.input_sep or None,
        output_sep=params.output_sep,
        buffer_rows=params.buffer_rows,
        pad_exhausted=params.pad_exhausted,
    )
    logger.info(
        "Pasting %d source(s), %d column(s), rows=%r, compute=%s",
        len(sources),
        plan.total_columns,
        row_filter,
        ",".join(compute.names) or "none",
    )
    return plan


def run_paste(plan: PastePlan, stream: Optional[IO[str]] = None) -> int:
    """
    Execute a plan, writing rows to ``stream`` (stdout by default).

    Returns:
        int: Number of output rows written.

    Raises:
        PstError: Source, numeric or internal errors from the pipeline. Rows
            written before the error remain in the stream.
    """
    engine = StatisticsEngine(plan.compute) if plan.compute else None
    rows = paste_rows(
        plan.sources,
        plan.column_specs,
        row_filter=plan.row_filter,
        output_spec=plan.output_spec,
        separators=plan.input_sep,
        capacity=plan.buffer_rows,
        pad_exhausted=plan.pad_exhausted,
    )
    with Sink(stream, separator=plan.output_sep) as sink:
        try:
            for row in rows:
                if engine is not None:
                    sink.write_values(engine.reduce(row))
                else:
                    sink.write_row(row)
        finally:
            rows.close()
    logger.info("Wrote %d row(s)", sink.rows_written)
    return sink.rows_written


EXAMPLES = """\
Notes:

    Column and row specifiers are zero based and can include ranges. The end
    of a range is included, i.e. the range 2-5 selects columns 2, 3, 4, 5.

Examples:

    pst -i "0,1" file1 file2 file3 > outfile

    Selects columns 0 and 1 from each of file1, file2 and file3 (6 columns).

    pst -i "0,1|3" file1 file2 file3 > outfile

    Selects columns 0 and 1 from file1, and column 3 from file2 and file3
    (4 columns).

    pst -t "," -s ";" -i "0,1|3|4-5" file1 file2 file3 > outfile

    Splits the input files on ';', selects columns 0 and 1 from file1, column 3
    from file2 and columns 4 and 5 from file3, and joins the 5 output columns
    with ','.

    pst -c "mean,var" -s ";" -i "0,1|3|4-5" file1 file2 file3 > outfile

    Same selection, but prints the mean and variance of the 5 values of each
    row instead. Every selected value has to be convertible to a float.
"""


def _build_cli_parser():
    import argparse

    parser = argparse.ArgumentParser(
        prog="pst",
        description="Paste selected columns of several column oriented files, "
        "optionally reducing each row to statistics.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EXAMPLES,
    )
    parser.add_argument("files", nargs="*", metavar="FILE", help="Input files ('-' for stdin).")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--print-defaults",
        action="store_true",
        help="Print default parameter values and exit.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Debug logging and full tracebacks (also PST_DEBUG=1).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log run summaries.")

    g_spec = parser.add_argument_group("Specs")
    g_spec.add_argument(
        "-i",
        "--input",
        dest="input_spec",
        metavar="SPEC",
        help='Columns to extract per file, "<cols file1>|<cols file2>|...". If there are '
        "fewer entries than files the last one applies to the remaining files. "
        "Default: the whole line of every file.",
    )
    g_spec.add_argument(
        "-o",
        "--output",
        dest="output_spec",
        metavar="SPEC",
        help='Order of the extracted columns in the output, e.g. "3,0-2,0". '
        "Columns may repeat. Requires --input.",
    )
    g_spec.add_argument(
        "-r",
        "--rows",
        dest="row_spec",
        metavar="SPEC",
        help='Rows to process, e.g. "1,2,4-8,22". Default: all rows.',
    )
    g_spec.add_argument(
        "-c",
        "--compute",
        dest="compute_spec",
        metavar="ACTIONS",
        help="Comma separated statistics computed across each output row instead of "
        "printing it: mean, std, var, median, max, min.",
    )

    g_fmt = parser.add_argument_group("Format")
    g_fmt.add_argument(
        "-s",
        "--input-sep",
        dest="input_sep",
        metavar="CHARS",
        help="Column separator characters for input files. Default: whitespace.",
    )
    g_fmt.add_argument(
        "-t",
        "--output-sep",
        dest="output_sep",
        metavar="SEP",
        help="Column separator for the output. Default: a single space.",
    )

    g_run = parser.add_argument_group("Run")
    g_run.add_argument(
        "--buffer-rows",
        type=int,
        help=f"Rows buffered per input file (default {DEFAULT_CAPACITY}).",
    )
    g_run.add_argument(
        "--pad",
        dest="pad_exhausted",
        action="store_true",
        default=None,
        help="Pad files that run out of rows with empty fields until all files are "
        "exhausted, instead of stopping at the shortest file.",
    )
    return parser


def _args_to_params(args) -> PasteParams:
    """
    Merge CLI args over defaults.
    Only values explicitly provided by the user override defaults.
    """
    params = get_default_params()
    params.sources = [Path(f) for f in (args.files or [])]
    for name in (
        "input_spec",
        "output_spec",
        "row_spec",
        "compute_spec",
        "input_sep",
        "output_sep",
        "buffer_rows",
        "pad_exhausted",
    ):
        value = getattr(args, name, None)
        if value is not None:
            setattr(params, name, value)
    return params


def configure_logging(verbose: bool = False, debug: bool = False) -> None:
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if debug:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger("pst").setLevel(level)


def main(argv: Optional[List[str]] = None) -> None:
    """
    CLI entry point. Parses arguments, builds the plan, then runs it.

    Exit status is 2 for user-correctable problems (bad specs, unreadable or
    short files, non-numeric values) and 1 for unexpected failures.
    """
    import json

    argv = sys.argv[1:] if argv is None else argv
    parser = _build_cli_parser()
    args = parser.parse_args(argv)

    if args.print_defaults:
        print(json.dumps({"PasteParams": asdict(get_default_params())}, indent=2))
        return

    debug_mode = bool(args.debug or os.getenv("PST_DEBUG", "") == "1")
    configure_logging(verbose=args.verbose, debug=debug_mode)

    if not args.files:
        parser.print_usage(sys.stderr)
        print("Error: at least one input file is required", file=sys.stderr)
        sys.exit(2)

    try:
        plan = build_plan(_args_to_params(args))
        run_paste(plan)
    except InternalConsistencyError:
        logger.exception("Internal consistency check failed")
        sys.exit(1)
    except PstError as e:
        logger.info("User-facing error: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unhandled exception during execution")
        if debug_mode:
            import traceback

            traceback.print_exc()
        else:
            print(f"Unexpected error: {e}", file=sys.stderr)
            print(
                "Run with --debug or set PST_DEBUG=1 to see the full traceback.",
                file=sys.stderr,
            )
        sys.exit(1)


if __name__ == "__main__":
    main()
