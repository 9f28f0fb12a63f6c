"""
Pytest fixtures and configuration for bamstream testing.

This module provides shared fixtures: target sets, SAM/BAM files written
directly with pysam, and records built for writing through an OutHandle.
"""

import sys
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pysam
import pytest

from bamstream import AlignmentRecord, TargetSet

# qname, flag, tid, pos, cigar, sequence, mate tid, mate pos, tlen, tags
SAMPLE_READS: list[tuple[Any, ...]] = [
    ("read_fwd", 0, 0, 100, [(0, 50)], "ACGT" * 12 + "AC", -1, -1, 0,
     [("NM", 1), ("NH", 1), ("MD", "20A29")]),
    ("read_spliced", 16, 1, 100, [(0, 20), (3, 30), (0, 20)], "ACGTN" * 8, -1, -1, 0,
     [("NH", 2)]),
    ("pair_r1", 99, 0, 200, [(4, 5), (0, 25)], "ACGTA" * 6, 0, 300, 130,
     [("NM", 0)]),
    ("pair_r2", 147, 0, 300, [(0, 25), (1, 2), (0, 3)], "TTGCA" * 6, 0, 200, -130,
     []),
    ("unmapped", 4, -1, -1, None, "ACGTACGTAC", -1, -1, 0,
     []),
]  # fmt: skip


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def targets() -> TargetSet:
    """Two target sequences matching the sample header."""
    return TargetSet.from_pairs([("chr1", 1000), ("chr2", 500)])


def create_sam_header() -> dict[str, Any]:
    """Create a minimal SAM header for testing."""
    return {
        "HD": {"VN": "1.6"},
        "SQ": [{"SN": "chr1", "LN": 1000}, {"SN": "chr2", "LN": 500}],
    }


def make_segment(
    header: pysam.AlignmentHeader,
    qname: str,
    flag: int,
    tid: int,
    pos: int,
    cigar: list[tuple[int, int]] | None,
    seq: str,
    mtid: int = -1,
    mpos: int = -1,
    tlen: int = 0,
    tags: list[tuple[str, Any]] | None = None,
) -> pysam.AlignedSegment:
    """Build a pysam read with qualities of 30."""
    read = pysam.AlignedSegment(header)
    read.query_name = qname
    read.flag = flag
    read.reference_id = tid
    read.reference_start = pos
    read.mapping_quality = 60 if tid >= 0 else 0
    read.cigartuples = cigar
    read.next_reference_id = mtid
    read.next_reference_start = mpos
    read.template_length = tlen
    read.query_sequence = seq
    read.query_qualities = [30] * len(seq)
    for key, value in tags or []:
        read.set_tag(key, value)
    return read


def write_sample_file(path: Path, mode: str) -> Path:
    with pysam.AlignmentFile(str(path), mode, header=create_sam_header()) as out:
        for row in SAMPLE_READS:
            out.write(make_segment(out.header, *row))
    return path


@pytest.fixture
def sample_sam_file(temp_dir: Path) -> Path:
    """SAM text file (with @SQ header) holding SAMPLE_READS."""
    return write_sample_file(temp_dir / "sample.sam", "w")


@pytest.fixture
def sample_bam_file(temp_dir: Path) -> Path:
    """BAM file holding SAMPLE_READS."""
    return write_sample_file(temp_dir / "sample.bam", "wb")


@pytest.fixture
def empty_bam_file(temp_dir: Path) -> Path:
    """BAM file with a header and no records."""
    bam_path = temp_dir / "empty.bam"
    with pysam.AlignmentFile(str(bam_path), "wb", header=create_sam_header()):
        pass
    return bam_path


def write_numbered_bam(path: Path, n_reads: int, read_len: int = 50) -> Path:
    """BAM with reads named read_0 .. read_{n-1}, all mapped to chr1."""
    seq = ("ACGTTGCA" * (read_len // 8 + 1))[:read_len]
    with pysam.AlignmentFile(str(path), "wb", header=create_sam_header()) as out:
        for i in range(n_reads):
            out.write(
                make_segment(out.header, f"read_{i}", 0, 0, i % 900, [(0, read_len)], seq),
            )
    return path


@pytest.fixture
def large_bam_file(temp_dir: Path) -> Path:
    """BAM with 2000 numbered reads."""
    return write_numbered_bam(temp_dir / "large.bam", 2000)


@pytest.fixture
def target_list_file(temp_dir: Path) -> Path:
    """A .fai-style target list for chr1/chr2."""
    path = temp_dir / "targets.fai"
    path.write_text("chr1\t1000\t6\t60\t61\nchr2\t500\t1030\t60\t61\n")
    return path


@pytest.fixture
def headerless_sam_file(temp_dir: Path) -> Path:
    """SAM text body without @SQ lines, for reading with a target list."""
    path = temp_dir / "headerless.sam"
    path.write_text(
        "r1\t0\tchr1\t101\t60\t10M\t*\t0\t0\tACGTACGTAC\tIIIIIIIIII\tNM:i:0\tMD:Z:10\n"
        "r2\t16\tchr2\t11\t60\t5M100N5M\t*\t0\t0\tACGTNACGTN\t*\tNH:i:3\n"
        "r3\t4\t*\t0\t0\t*\t*\t0\t0\tACGT\t*\n",
    )
    return path


@pytest.fixture
def records_for_writing(targets: TargetSet) -> list[AlignmentRecord]:
    """SAMPLE_READS built as records (no qualities on the unmapped read)."""
    records = []
    for qname, flag, tid, pos, cigar, seq, mtid, mpos, tlen, tags in SAMPLE_READS:
        records.append(
            AlignmentRecord.from_fields(
                targets,
                qname,
                flag=flag,
                target_id=None if tid < 0 else tid,
                position=None if pos < 0 else pos,
                mapq=60 if tid >= 0 else 0,
                cigar=cigar or (),
                query_sequence=seq,
                qualities=None if tid < 0 else [30] * len(seq),
                mate_target_id=None if mtid < 0 else mtid,
                mate_position=None if mpos < 0 else mpos,
                insert_size=tlen,
                tags=dict(tags),
            ),
        )
    return records


@pytest.fixture(autouse=True)
def configure_logging_for_tests() -> None:
    """Configure logging for tests to reduce noise."""
    # Remove existing handlers and set to WARNING level for tests
    from loguru import logger

    logger.remove()
    logger.add(sys.stderr, level="WARNING")
