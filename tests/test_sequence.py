"""Unit tests for BAM nucleotide packing."""

import pytest

from bamstream import SequenceDecodeError
from bamstream.sequence import decode_nucleotides, encode_text, pack_sequence, unpack_codes


class TestPacking:
    def test_pack_even_length(self):
        # A=1, C=2, G=4, T=8
        assert pack_sequence("ACGT") == bytes([0x12, 0x48])

    def test_pack_odd_length_pads_low_nibble(self):
        assert pack_sequence("ACN") == bytes([0x12, 0xF0])
        assert unpack_codes(pack_sequence("ACN"), 3) == [1, 2, 15]

    def test_pack_is_case_insensitive_and_maps_unknown_to_n(self):
        assert pack_sequence("acgt") == pack_sequence("ACGT")
        assert unpack_codes(pack_sequence("A.Z"), 3) == [1, 15, 15]

    def test_encode_text_keeps_ambiguity_codes(self):
        assert encode_text(pack_sequence("ACRY=N"), 6) == "ACRY=N"


class TestDecoding:
    def test_decode(self):
        seq = "ACGTNNACGT"
        assert decode_nucleotides(pack_sequence(seq), len(seq)) == seq

    def test_decode_empty(self):
        assert decode_nucleotides(b"", 0) == ""

    @pytest.mark.parametrize("seq", ["ACR", "=AC", "ACGM"])
    def test_decode_rejects_ambiguity_codes(self, seq):
        with pytest.raises(SequenceDecodeError, match="Unknown nucleotide code"):
            decode_nucleotides(pack_sequence(seq), len(seq))
