"""
BAM 4-bit nucleotide packing.

Records keep the query sequence in the packed form BAM stores it in: two bases
per byte, high nibble first, each base a 4-bit code indexing "=ACMGRSVTWYHKDBN".
Decoding back to text only accepts the unambiguous bases and N.
"""

from __future__ import annotations

from loguru import logger

from bamstream.errors import SequenceDecodeError

# Full BAM alphabet, indexed by 4-bit code; used for packing
BAM_NT16 = "=ACMGRSVTWYHKDBN"

# Codes accepted when decoding a query sequence
NUCLEOTIDE_CODES: dict[int, str] = {1: "A", 2: "C", 4: "G", 8: "T", 15: "N"}

# Code used for characters outside the BAM alphabet, as htslib does
UNKNOWN_CODE: int = 15

_CHAR_TO_CODE: dict[str, int] = {ch: code for code, ch in enumerate(BAM_NT16)}


def pack_sequence(seq: str) -> bytes:
    """Pack a sequence string into BAM nibbles. Case-insensitive."""
    codes = [_CHAR_TO_CODE.get(ch, UNKNOWN_CODE) for ch in seq.upper()]
    if len(codes) % 2:
        codes.append(0)
    return bytes((codes[i] << 4) | codes[i + 1] for i in range(0, len(codes), 2))


def unpack_codes(packed: bytes, length: int) -> list[int]:
    """The first `length` 4-bit codes of a packed sequence."""
    assert 0 <= length <= 2 * len(packed), (
        f"Sequence length {length} exceeds packed buffer of {len(packed)} bytes"
    )
    codes = []
    for i in range(length):
        byte = packed[i >> 1]
        codes.append(byte & 0x0F if i & 1 else byte >> 4)
    return codes


def decode_nucleotides(packed: bytes, length: int) -> str:
    """
    Decode a packed sequence to text over {A, C, G, T, N}.

    Raises SequenceDecodeError on the first code outside that set; no
    placeholder is substituted.
    """
    out = []
    for i, code in enumerate(unpack_codes(packed, length)):
        try:
            out.append(NUCLEOTIDE_CODES[code])
        except KeyError as err:
            msg = (
                f"Unknown nucleotide code {code} ({BAM_NT16[code]!r}) "
                f"at sequence position {i}"
            )
            logger.error(msg)
            raise SequenceDecodeError(msg) from err
    return "".join(out)


def encode_text(packed: bytes, length: int) -> str:
    """Render packed codes with the full BAM alphabet (for handing to pysam)."""
    return "".join(BAM_NT16[code] for code in unpack_codes(packed, length))
