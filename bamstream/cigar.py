"""CIGAR operations as reported in BAM records, with pysam conversion helpers."""

from __future__ import annotations

import re
from enum import IntEnum
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from collections.abc import Iterable

# ------------------------------- CONSTANTS -------------------------------- #

# BAM op codes
# 0:M, 1:I, 2:D, 3:N, 4:S, 5:H, 6:P, 7:=, 8:X
CIGAR_SYMBOLS = "MIDNSHP=X"
REF_CONSUME = frozenset({0, 2, 3, 7, 8})
QRY_CONSUME = frozenset({0, 1, 4, 7, 8})

_CIGAR_RUN = re.compile(r"(\d+)([MIDNSHP=X])")


# ------------------------------- DATA TYPES -------------------------------- #


class CigarKind(IntEnum):
    """CIGAR operation kinds, valued by their BAM op code."""

    MATCH = 0
    INSERTION = 1
    DELETION = 2
    SKIP = 3
    SOFT_CLIP = 4
    HARD_CLIP = 5
    PADDING = 6
    EQUAL = 7
    DIFF = 8

    @property
    def symbol(self) -> str:
        return CIGAR_SYMBOLS[self.value]

    @property
    def consumes_reference(self) -> bool:
        return self.value in REF_CONSUME

    @property
    def consumes_query(self) -> bool:
        return self.value in QRY_CONSUME

    @classmethod
    def from_symbol(cls, symbol: str) -> CigarKind:
        idx = CIGAR_SYMBOLS.find(symbol)
        if len(symbol) != 1 or idx < 0:
            msg = f"Unknown CIGAR operation symbol {symbol!r}"
            raise ValueError(msg)
        return cls(idx)


class CigarOp(NamedTuple):
    """One CIGAR run: (operation kind, run length)."""

    kind: CigarKind
    length: int

    @staticmethod
    def from_tuple(t: tuple[int, int]) -> CigarOp:
        """Convert a raw (op, len) tuple to CigarOp."""
        op, ln = t
        try:
            kind = CigarKind(op)
        except ValueError as err:
            msg = f"Invalid CIGAR operation code {op}: must be 0-8 (M,I,D,N,S,H,P,=,X)"
            raise ValueError(msg) from err
        return CigarOp(kind, ln)

    def to_tuple(self) -> tuple[int, int]:
        """Convert back to a raw (op, len) tuple."""
        return (int(self.kind), self.length)

    def __str__(self) -> str:
        return f"{self.length}{self.kind.symbol}"


class Cigar(tuple[CigarOp, ...]):
    """An immutable sequence of CigarOp."""

    def __new__(cls, ops: Iterable[CigarOp] = ()) -> Cigar:
        return super().__new__(cls, ops)

    @classmethod
    def from_pysam(cls, cig_raw: Iterable[tuple[int, int]] | None) -> Cigar:
        """
        Convert pysam's list[(op, len)] to a Cigar. None (no CIGAR) gives an
        empty Cigar.
        """
        if cig_raw is None:
            return cls()
        return cls(CigarOp.from_tuple(t) for t in cig_raw)

    @classmethod
    def parse(cls, text: str) -> Cigar:
        """Parse a SAM CIGAR string such as '20M30N20M'. '*' is the empty CIGAR."""
        if text in ("", "*"):
            return cls()
        runs = _CIGAR_RUN.findall(text)
        if "".join(f"{n}{s}" for n, s in runs) != text:
            msg = f"Malformed CIGAR string {text!r}"
            raise ValueError(msg)
        return cls(CigarOp(CigarKind.from_symbol(s), int(n)) for n, s in runs)

    def to_pysam(self) -> list[tuple[int, int]]:
        """Convert this Cigar back to list[(op, len)] for pysam."""
        return [run.to_tuple() for run in self]

    @property
    def reference_length(self) -> int:
        """Reference bases spanned, including deletions and skips."""
        return sum(run.length for run in self if run.kind.consumes_reference)

    @property
    def query_length(self) -> int:
        """Query bases described, including soft clips."""
        return sum(run.length for run in self if run.kind.consumes_query)

    def __str__(self) -> str:
        return "".join(str(run) for run in self) or "*"

    def __repr__(self) -> str:
        return f"Cigar({str(self)!r})"
