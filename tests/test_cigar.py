"""Unit tests for the CIGAR model."""

import pytest

from bamstream import Cigar, CigarKind, CigarOp


class TestCigarKind:
    @pytest.mark.parametrize(
        "kind,symbol,ref,qry",
        [
            (CigarKind.MATCH, "M", True, True),
            (CigarKind.INSERTION, "I", False, True),
            (CigarKind.DELETION, "D", True, False),
            (CigarKind.SKIP, "N", True, False),
            (CigarKind.SOFT_CLIP, "S", False, True),
            (CigarKind.HARD_CLIP, "H", False, False),
            (CigarKind.PADDING, "P", False, False),
            (CigarKind.EQUAL, "=", True, True),
            (CigarKind.DIFF, "X", True, True),
        ],
    )
    def test_properties(self, kind, symbol, ref, qry):
        assert kind.symbol == symbol
        assert kind.consumes_reference is ref
        assert kind.consumes_query is qry
        assert CigarKind.from_symbol(symbol) is kind

    def test_unknown_symbol(self):
        with pytest.raises(ValueError, match="Unknown CIGAR operation"):
            CigarKind.from_symbol("Q")


class TestCigar:
    def test_from_pysam(self):
        cig = Cigar.from_pysam([(0, 20), (3, 30), (0, 20)])
        assert cig == (
            CigarOp(CigarKind.MATCH, 20),
            CigarOp(CigarKind.SKIP, 30),
            CigarOp(CigarKind.MATCH, 20),
        )
        assert cig.to_pysam() == [(0, 20), (3, 30), (0, 20)]

    def test_from_pysam_none_is_empty(self):
        assert Cigar.from_pysam(None) == ()
        assert str(Cigar.from_pysam(None)) == "*"

    def test_invalid_op_code(self):
        with pytest.raises(ValueError, match="Invalid CIGAR operation code 9"):
            Cigar.from_pysam([(9, 1)])

    def test_parse_and_format(self):
        cig = Cigar.parse("5S20M2I3M1D10M3H")
        assert str(cig) == "5S20M2I3M1D10M3H"
        assert cig.reference_length == 20 + 3 + 1 + 10
        assert cig.query_length == 5 + 20 + 2 + 3 + 10

    @pytest.mark.parametrize("text", ["10", "M10", "10M5", "10Q"])
    def test_parse_malformed(self, text):
        with pytest.raises(ValueError):
            Cigar.parse(text)
