"""
Alignment records.

An AlignmentRecord is an immutable snapshot of one BAM record: the raw core
fields exactly as the file stores them (signed sentinels included) plus the
TargetSet used to resolve target indices. Every public accessor is a pure
projection of those fields; "absent" values come back as None.
"""

from __future__ import annotations

import array
from dataclasses import dataclass, field
from enum import IntFlag
from typing import TYPE_CHECKING, Any, NamedTuple

import pysam
from loguru import logger

from bamstream.cigar import Cigar
from bamstream.location import (
    SeqLocation,
    SpliceLocation,
    Strand,
    derive_reference_location,
    locate_on_target,
)
from bamstream.sequence import decode_nucleotides, encode_text, pack_sequence

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from bamstream.targets import TargetSet

# ------------------------------- CONSTANTS -------------------------------- #

# MAPQ 255 means "mapping quality not available"
MAPQ_UNAVAILABLE: int = 255

# BAM aux type codes, grouped by the Python type pysam decodes them to
INTEGER_TAG_TYPES = frozenset("cCsSiI")
STRING_TAG_TYPES = frozenset("Z")
ARRAY_TAG_TYPE = "B"

# B-array element subtype -> the array.array typecode pysam decodes it to
ARRAY_TYPECODES: dict[str, str] = {
    "c": "b",
    "C": "B",
    "s": "h",
    "S": "H",
    "i": "i",
    "I": "I",
    "f": "f",
}
_ARRAY_SUBTYPES: dict[str, str] = {code: sub for sub, code in ARRAY_TYPECODES.items()}


class Flag(IntFlag):
    """Bits of the SAM FLAG field."""

    PAIRED = 0x1
    PROPER_PAIR = 0x2
    UNMAPPED = 0x4
    MATE_UNMAPPED = 0x8
    REVERSE = 0x10
    MATE_REVERSE = 0x20
    READ1 = 0x40
    READ2 = 0x80
    SECONDARY = 0x100
    QC_FAIL = 0x200
    DUPLICATE = 0x400
    SUPPLEMENTARY = 0x800


class Tag(NamedTuple):
    """
    One optional field. `value_type` is the BAM type code, if known. Arrays
    carry their element subtype after the "B" (e.g. "BS"), or just "B" when
    the subtype was never fixed.
    """

    key: str
    value: Any
    value_type: str | None = None


def _freeze_tag(key: str, value: Any, value_type: str | None) -> Tag:
    if isinstance(value, array.array):
        subtype = _ARRAY_SUBTYPES.get(value.typecode, "")
        return Tag(key, tuple(value), ARRAY_TAG_TYPE + subtype)
    if isinstance(value, (list, tuple)):
        return Tag(key, tuple(value), ARRAY_TAG_TYPE)
    return Tag(key, value, value_type)


def _thaw_array(tag: Tag) -> array.array | list:
    """The value to hand pysam for a B-array tag, keeping its element subtype."""
    subtype = tag.value_type[len(ARRAY_TAG_TYPE):]
    if subtype:
        return array.array(ARRAY_TYPECODES[subtype], tag.value)
    if not tag.value:
        # pysam cannot pick a subtype for an empty list
        return array.array(ARRAY_TYPECODES["i"])
    return list(tag.value)


# ------------------------------- THE RECORD -------------------------------- #


@dataclass(frozen=True)
class AlignmentRecord:
    """
    One decoded alignment.

    Raw fields follow the BAM core layout: `tid`/`mtid` and `pos`/`mpos` are -1
    when unset, `isize` is the signed template length, `packed_seq` holds
    `l_seq` 4-bit base codes, `qual` is raw phred bytes or None.
    """

    targets: TargetSet = field(repr=False, compare=False)
    qname: str
    flag: int
    tid: int
    pos: int
    mapq: int
    cigar: Cigar
    mtid: int
    mpos: int
    isize: int
    l_seq: int
    packed_seq: bytes
    qual: bytes | None = None
    aux: tuple[Tag, ...] = ()

    def __post_init__(self) -> None:
        assert 0 <= self.l_seq <= 2 * len(self.packed_seq), (
            f"Record '{self.qname}': l_seq={self.l_seq} does not fit "
            f"{len(self.packed_seq)} packed bytes"
        )
        if self.qual is not None:
            assert len(self.qual) == self.l_seq, (
                f"Record '{self.qname}': {len(self.qual)} qualities for {self.l_seq} bases"
            )

    # ----------------------------- construction ----------------------------- #

    @classmethod
    def from_segment(
        cls,
        segment: pysam.AlignedSegment,
        targets: TargetSet,
    ) -> AlignmentRecord:
        """Decode a pysam segment once; the record keeps no reference to it."""
        seq = segment.query_sequence
        qual = segment.query_qualities
        return cls(
            targets=targets,
            qname=segment.query_name or "",
            flag=segment.flag,
            tid=segment.reference_id,
            pos=segment.reference_start,
            mapq=segment.mapping_quality,
            cigar=Cigar.from_pysam(segment.cigartuples),
            mtid=segment.next_reference_id,
            mpos=segment.next_reference_start,
            isize=segment.template_length,
            l_seq=len(seq) if seq else 0,
            packed_seq=pack_sequence(seq) if seq else b"",
            qual=bytes(qual) if seq and qual is not None else None,
            aux=tuple(
                _freeze_tag(key, value, value_type)
                for key, value, value_type in segment.get_tags(with_value_type=True)
            ),
        )

    @classmethod
    def from_fields(  # noqa: PLR0913
        cls,
        targets: TargetSet,
        query_name: str,
        *,
        flag: int = 0,
        target_id: int | None = None,
        position: int | None = None,
        mapq: int = MAPQ_UNAVAILABLE,
        cigar: Iterable[tuple[int, int]] | str = (),
        query_sequence: str | None = None,
        qualities: Iterable[int] | None = None,
        mate_target_id: int | None = None,
        mate_position: int | None = None,
        insert_size: int = 0,
        tags: Mapping[str, Any] | None = None,
    ) -> AlignmentRecord:
        """Build a record for writing from semantic values (None = unset)."""
        seq = query_sequence or ""
        return cls(
            targets=targets,
            qname=query_name,
            flag=int(flag),
            tid=-1 if target_id is None else target_id,
            pos=-1 if position is None else position,
            mapq=mapq,
            cigar=(
                Cigar.parse(cigar) if isinstance(cigar, str) else Cigar.from_pysam(cigar)
            ),
            mtid=-1 if mate_target_id is None else mate_target_id,
            mpos=-1 if mate_position is None else mate_position,
            isize=insert_size,
            l_seq=len(seq),
            packed_seq=pack_sequence(seq),
            qual=None if qualities is None else bytes(qualities),
            aux=tuple(_freeze_tag(k, v, None) for k, v in (tags or {}).items()),
        )

    def to_segment(self, header: pysam.AlignmentHeader) -> pysam.AlignedSegment:
        """Build the pysam segment that carries this record's raw fields."""
        segment = pysam.AlignedSegment(header)
        if self.qname:
            segment.query_name = self.qname
        segment.flag = self.flag
        segment.reference_id = self.tid
        segment.reference_start = self.pos
        segment.mapping_quality = self.mapq
        segment.cigartuples = self.cigar.to_pysam() if self.cigar else None
        segment.next_reference_id = self.mtid
        segment.next_reference_start = self.mpos
        segment.template_length = self.isize
        # Sequence first: assigning it resets the qualities
        if self.l_seq > 0:
            segment.query_sequence = encode_text(self.packed_seq, self.l_seq)
            if self.qual is not None:
                segment.query_qualities = array.array("B", self.qual)
        for tag in self.aux:
            if tag.value_type is not None and tag.value_type.startswith(ARRAY_TAG_TYPE):
                segment.set_tag(tag.key, _thaw_array(tag))
            else:
                segment.set_tag(tag.key, tag.value, value_type=tag.value_type)
        return segment

    # ---------------------------- target & position --------------------------- #

    @property
    def target_id(self) -> int | None:
        """Index into the target set, or None for an unmapped read."""
        return None if self.tid < 0 else self.tid

    @property
    def target_name(self) -> str | None:
        tid = self.target_id
        return None if tid is None else self.targets.name_of(tid)

    @property
    def target_len(self) -> int | None:
        tid = self.target_id
        return None if tid is None else self.targets.length_of(tid)

    @property
    def position(self) -> int | None:
        """0-based leftmost aligned coordinate, or None when unplaced."""
        if self.tid < 0 or self.pos < 0:
            return None
        return self.pos

    # -------------------------------- flags ---------------------------------- #

    def has_flag(self, bit: Flag) -> bool:
        return (self.flag & bit) == bit

    @property
    def is_paired(self) -> bool:
        return self.has_flag(Flag.PAIRED)

    @property
    def is_proper_pair(self) -> bool:
        return self.has_flag(Flag.PROPER_PAIR)

    @property
    def is_unmapped(self) -> bool:
        return self.has_flag(Flag.UNMAPPED)

    @property
    def is_mate_unmapped(self) -> bool:
        return self.has_flag(Flag.MATE_UNMAPPED)

    @property
    def is_reverse(self) -> bool:
        """Is the reverse complement of the fragment aligned to the target."""
        return self.has_flag(Flag.REVERSE)

    @property
    def is_mate_reverse(self) -> bool:
        return self.has_flag(Flag.MATE_REVERSE)

    @property
    def is_read1(self) -> bool:
        return self.has_flag(Flag.READ1)

    @property
    def is_read2(self) -> bool:
        return self.has_flag(Flag.READ2)

    @property
    def is_secondary(self) -> bool:
        return self.has_flag(Flag.SECONDARY)

    @property
    def is_qc_fail(self) -> bool:
        return self.has_flag(Flag.QC_FAIL)

    @property
    def is_duplicate(self) -> bool:
        return self.has_flag(Flag.DUPLICATE)

    @property
    def is_supplementary(self) -> bool:
        return self.has_flag(Flag.SUPPLEMENTARY)

    # --------------------------------- query --------------------------------- #

    @property
    def query_name(self) -> str:
        return self.qname

    @property
    def query_length(self) -> int | None:
        return None if self.l_seq < 1 else self.l_seq

    @property
    def query_sequence(self) -> str | None:
        """
        The query bases, or None when the record stores no sequence. Raises
        SequenceDecodeError for ambiguity codes other than N.
        """
        if self.l_seq < 1:
            return None
        return decode_nucleotides(self.packed_seq, self.l_seq)

    @property
    def query_qualities(self) -> bytes | None:
        return self.qual

    @property
    def mapping_quality(self) -> int | None:
        return None if self.mapq == MAPQ_UNAVAILABLE else self.mapq

    # --------------------------------- mate ---------------------------------- #

    @property
    def mate_target_id(self) -> int | None:
        return None if self.mtid < 0 else self.mtid

    @property
    def mate_target_name(self) -> str | None:
        mtid = self.mate_target_id
        return None if mtid is None else self.targets.name_of(mtid)

    @property
    def mate_target_len(self) -> int | None:
        mtid = self.mate_target_id
        return None if mtid is None else self.targets.length_of(mtid)

    @property
    def mate_position(self) -> int | None:
        if self.mtid < 0 or self.mpos < 0:
            return None
        return self.mpos

    @property
    def insert_size(self) -> int | None:
        """Template length; None when unavailable or not positive."""
        return None if self.isize < 1 else self.isize

    # ------------------------------ optional tags ----------------------------- #

    def find_tag(self, key: str) -> Tag | None:
        for tag in self.aux:
            if tag.key == key:
                return tag
        return None

    def get_tag(self, key: str) -> Any | None:
        """Value of optional field `key`, or None if the record lacks it."""
        tag = self.find_tag(key)
        return None if tag is None else tag.value

    @property
    def tags(self) -> dict[str, Any]:
        return {tag.key: tag.value for tag in reversed(self.aux)}

    def _typed_tag(self, key: str, value_types: frozenset[str], py_type: type) -> Any | None:
        tag = self.find_tag(key)
        if tag is None:
            return None
        if (
            (tag.value_type is not None and tag.value_type not in value_types)
            or not isinstance(tag.value, py_type)
            or isinstance(tag.value, bool)
        ):
            logger.trace(
                f"Ignoring {key} on '{self.qname}': unexpected value {tag.value!r} "
                f"(type {tag.value_type})",
            )
            return None
        return tag.value

    @property
    def match_descriptor(self) -> str | None:
        """The MD string, or None when absent."""
        return self._typed_tag("MD", STRING_TAG_TYPES, str)

    @property
    def n_hits(self) -> int | None:
        """Number of reported alignments for the query (NH), or None."""
        return self._typed_tag("NH", INTEGER_TAG_TYPES, int)

    @property
    def n_mismatch(self) -> int | None:
        """Edit distance to the reference (NM), or None."""
        return self._typed_tag("NM", INTEGER_TAG_TYPES, int)

    # --------------------------- reference location --------------------------- #

    @property
    def reference_location(self) -> SpliceLocation | None:
        """
        Reference intervals covered by the alignment: deleted positions are
        included, skipped ones are not. None for unmapped reads and for reads
        without CIGAR information.
        """
        if self.is_unmapped or self.target_id is None:
            return None
        return derive_reference_location(
            self.position,
            self.cigar,
            Strand.from_reverse(self.is_reverse),
        )

    @property
    def reference_seq_location(self) -> SeqLocation | None:
        """`reference_location` on the named target."""
        return locate_on_target(self.target_name, self.reference_location)
