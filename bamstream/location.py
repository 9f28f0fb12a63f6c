"""
Reference locations derived from CIGAR alignments.

A mapped record covers one or more disjoint reference intervals: skipped
reference bases (N runs, typically introns) split the footprint, deletions do
not.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, NamedTuple

from bamstream.cigar import CigarKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from bamstream.cigar import CigarOp

# Kinds that extend the covered footprint on the reference
FOOTPRINT_KINDS = frozenset(
    {CigarKind.MATCH, CigarKind.DELETION, CigarKind.EQUAL, CigarKind.DIFF},
)


class Strand(Enum):
    FORWARD = "+"
    REVERSE_COMPLEMENT = "-"

    @staticmethod
    def from_reverse(is_reverse: bool) -> Strand:  # noqa: FBT001
        return Strand.REVERSE_COMPLEMENT if is_reverse else Strand.FORWARD


class Interval(NamedTuple):
    """0-based, half-open reference interval."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class SpliceLocation:
    """One or more ordered, disjoint intervals on a single strand."""

    intervals: tuple[Interval, ...]
    strand: Strand = Strand.FORWARD

    def __post_init__(self) -> None:
        assert self.intervals, "A spliced location needs at least one interval"
        for prev, nxt in zip(self.intervals, self.intervals[1:]):
            assert prev.end <= nxt.start, (
                f"Intervals must be ordered and disjoint: {prev} then {nxt}"
            )

    def __iter__(self) -> Iterator[Interval]:
        return iter(self.intervals)

    @property
    def start(self) -> int:
        return self.intervals[0].start

    @property
    def end(self) -> int:
        return self.intervals[-1].end

    @property
    def length(self) -> int:
        """Number of covered reference bases (gaps excluded)."""
        return sum(iv.length for iv in self.intervals)

    def __str__(self) -> str:
        return ",".join(str(iv) for iv in self.intervals) + f"({self.strand.value})"


class SeqLocation(NamedTuple):
    """A spliced location on a named target sequence."""

    name: str
    location: SpliceLocation

    def __str__(self) -> str:
        return f"{self.name}:{self.location}"


def derive_reference_location(
    position: int | None,
    cigar: Iterable[CigarOp],
    strand: Strand,
) -> SpliceLocation | None:
    """
    Walk `cigar` from `position` and collect the covered reference intervals.

    Match-like runs and deletions extend the open interval; a skip closes it and
    moves the cursor past the gap; insertions, clips and padding leave the
    cursor alone. Returns None without a position, for an empty CIGAR, or when
    no reference base is covered.
    """
    if position is None:
        return None
    assert position >= 0, f"Reference position must be non-negative: {position}"

    intervals: list[Interval] = []
    cursor = position
    open_start = position
    for run in cigar:
        if run.kind in FOOTPRINT_KINDS:
            cursor += run.length
        elif run.kind == CigarKind.SKIP:
            if cursor > open_start:
                intervals.append(Interval(open_start, cursor))
            cursor += run.length
            open_start = cursor
    if cursor > open_start:
        intervals.append(Interval(open_start, cursor))

    if not intervals:
        return None
    return SpliceLocation(tuple(intervals), strand)


def locate_on_target(
    name: str | None,
    location: SpliceLocation | None,
) -> SeqLocation | None:
    """Pair a location with its target name; None if either is missing."""
    if name is None or location is None:
        return None
    return SeqLocation(name, location)
