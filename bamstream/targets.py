"""
Target sequence sets: the ordered reference sequences alignments are reported
against. A set is built once from a stream header (or supplied by the caller
for writing) and never changes afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple

import pysam
from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

# Minimum number of tab-separated columns in a target list line (name, length)
MIN_INDEX_COLUMNS: int = 2


class TargetSequence(NamedTuple):
    """One reference sequence: name and total length."""

    name: str
    length: int


@dataclass(frozen=True)
class TargetSet:
    """Immutable, ordered collection of target sequences."""

    sequences: tuple[TargetSequence, ...] = ()

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, int]]) -> TargetSet:
        """Build a set from (name, length) pairs, keeping their order."""
        seqs = []
        for name, length in pairs:
            assert length >= 0, f"Target length must be non-negative: {name}={length}"
            seqs.append(TargetSequence(str(name), int(length)))
        return cls(tuple(seqs))

    @classmethod
    def from_header(cls, header: pysam.AlignmentHeader) -> TargetSet:
        """Build a set from the @SQ lines of a pysam header."""
        return cls.from_pairs(zip(header.references, header.lengths, strict=True))

    @classmethod
    def from_index_file(cls, path: str | Path) -> TargetSet:
        """
        Read a target list: one sequence per line, tab-separated name and length.
        Further columns (as in a .fai index) are ignored. Blank lines and lines
        starting with '#' are skipped.
        """
        pairs: list[tuple[str, int]] = []
        with open(path) as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.rstrip("\r\n")
                if not line or line.startswith("#"):
                    continue
                fields = line.split("\t")
                if len(fields) < MIN_INDEX_COLUMNS:
                    msg = f"{path}:{lineno}: expected '<name>\\t<length>', got {line!r}"
                    logger.error(msg)
                    raise ValueError(msg)
                try:
                    length = int(fields[1])
                except ValueError as err:
                    msg = f"{path}:{lineno}: invalid target length {fields[1]!r}"
                    logger.error(msg)
                    raise ValueError(msg) from err
                pairs.append((fields[0], length))
        logger.debug(f"Read {len(pairs)} target sequences from {path}")
        return cls.from_pairs(pairs)

    def to_header(self) -> pysam.AlignmentHeader:
        """Derive an equivalent pysam header, for opening an output file."""
        return pysam.AlignmentHeader.from_references(
            list(self.names),
            list(self.lengths),
        )

    # -------------------------------------------------------------- lookups

    def __len__(self) -> int:
        return len(self.sequences)

    def __iter__(self) -> Iterator[TargetSequence]:
        return iter(self.sequences)

    def count(self) -> int:
        """Number of target sequences."""
        return len(self.sequences)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(seq.name for seq in self.sequences)

    @property
    def lengths(self) -> tuple[int, ...]:
        return tuple(seq.length for seq in self.sequences)

    def sequence_at(self, index: int) -> TargetSequence:
        """Target at `index`. Raises IndexError outside 0 <= index < count()."""
        if not 0 <= index < len(self.sequences):
            msg = f"Target index {index} out of range for {len(self.sequences)} targets"
            raise IndexError(msg)
        return self.sequences[index]

    def index_of(self, name: str) -> int | None:
        """Index of the first target called `name`, or None."""
        for i, seq in enumerate(self.sequences):
            if seq.name == name:
                return i
        return None

    def name_of(self, index: int) -> str | None:
        if 0 <= index < len(self.sequences):
            return self.sequences[index].name
        return None

    def length_of(self, index: int) -> int | None:
        if 0 <= index < len(self.sequences):
            return self.sequences[index].length
        return None
