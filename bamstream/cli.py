"""
bamstream-view: print one summary line per alignment in a SAM/BAM file, and
optionally copy the alignments to another SAM/BAM file.
"""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING, TextIO

from loguru import logger

from bamstream.handles import open_in_file, open_out_file

if TYPE_CHECKING:
    from collections.abc import Sequence

    from bamstream.record import AlignmentRecord

MISSING = "*"

# Emit a progress debug line after this many records
DEBUG_EVERY: int = 100_000


# ----------------------------- LOGGING SETUP ------------------------------- #


def configure_logging(verbose: int, quiet: int) -> None:
    """
    Base at SUCCESS (0). Positive → louder (more verbose), negative → quieter.
    Map:
      +3.. = TRACE
      +2   = DEBUG
      +1   = INFO
       0   = SUCCESS
      -1   = WARNING
      -2   = ERROR
      <=-3 = CRITICAL
    """
    logger.remove()
    logger.enable("bamstream")
    delta = verbose - quiet
    match delta:
        case d if d >= 3:  # noqa: PLR2004
            level_str = "TRACE"
        case 2:
            level_str = "DEBUG"
        case 1:
            level_str = "INFO"
        case 0:
            level_str = "SUCCESS"
        case -1:
            level_str = "WARNING"
        case -2:
            level_str = "ERROR"
        case d if d <= -3:  # noqa: PLR2004
            level_str = "CRITICAL"
    logger.add(sys.stderr, level=level_str)
    logger.debug(f"Logger configured at level: {level_str}")


# ------------------------------- FORMATTING --------------------------------- #


def _or_missing(value: object) -> str:
    return MISSING if value is None else str(value)


def format_record(record: AlignmentRecord) -> str:
    """
    Tab-separated summary: name, flag, target, 1-based position, CIGAR,
    reference location, NM, NH, MD.
    """
    position = record.position
    fields = [
        record.query_name or MISSING,
        str(record.flag),
        _or_missing(record.target_name),
        "0" if position is None else str(position + 1),
        str(record.cigar),
        _or_missing(record.reference_location),
        _or_missing(record.n_mismatch),
        _or_missing(record.n_hits),
        _or_missing(record.match_descriptor),
    ]
    return "\t".join(fields)


# ------------------------------- CORE LOGIC -------------------------------- #


def view(
    in_path: str,
    out: TextIO,
    out_path: str | None = None,
    targets_path: str | None = None,
    mapped_only: bool = False,  # noqa: FBT001, FBT002
) -> tuple[int, int]:
    """
    Stream `in_path`, printing a summary line per record to `out` and copying
    records to `out_path` if given.

    Returns:
        Tuple of (records_seen, records_written)
    """
    seen = 0
    written = 0
    with open_in_file(in_path, index=targets_path) as inh:
        outh = open_out_file(out_path, inh.targets) if out_path else None
        try:
            for record in inh:
                seen += 1
                if seen % DEBUG_EVERY == 0:
                    logger.debug(f"Progress: seen={seen}, written={written}")
                if mapped_only and (record.is_unmapped or record.target_id is None):
                    logger.debug(f"Skipping unmapped read '{record.query_name}'")
                    continue
                print(format_record(record), file=out)
                if outh is not None:
                    outh.write(record)
                    written += 1
        finally:
            if outh is not None:
                outh.close()
    return seen, written


# --------------------------------- CLI ------------------------------------- #


def build_parser() -> argparse.ArgumentParser:
    """
    CLI:
      -v / -vv / -vvv : increase verbosity (INFO -> DEBUG -> TRACE)
      -q / -qq / -qqq : decrease verbosity (WARNING -> ERROR -> CRITICAL)
    (Mutually exclusive.)
    """
    p = argparse.ArgumentParser(
        description=(
            "Summarize the alignments of a SAM/BAM file, one tab-separated line per record:\n"
            "  name, flag, target, position, CIGAR, reference location, NM, NH, MD.\n"
            "Optionally copy the alignments to another SAM/BAM file."
        ),
    )

    p.add_argument(
        "-i",
        "--in",
        dest="in_path",
        required=True,
        help="Input SAM/BAM",
    )
    p.add_argument(
        "-t",
        "--targets",
        dest="targets_path",
        default=None,
        help="Target list (name<TAB>length per line) for SAM input without @SQ headers",
    )
    p.add_argument(
        "-o",
        "--out",
        dest="out_path",
        default=None,
        help="Optional output SAM/BAM receiving the (filtered) alignments",
    )
    p.add_argument(
        "--mapped-only",
        action="store_true",
        help="Skip unmapped records",
    )

    g = p.add_mutually_exclusive_group()
    g.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (use up to -vvv).",
    )
    g.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease verbosity (use up to -qqq).",
    )

    return p


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.quiet)
    logger.info(f"Reading alignments from {args.in_path}")

    seen, written = view(
        args.in_path,
        sys.stdout,
        out_path=args.out_path,
        targets_path=args.targets_path,
        mapped_only=bool(args.mapped_only),
    )

    if args.out_path:
        logger.success(f"Records: {seen} | Written to {args.out_path}: {written}")
    else:
        logger.success(f"Records: {seen}")


if __name__ == "__main__":
    main()
