"""
Read and write SAM/BAM alignment records through thread-safe stream handles.

Library logging goes through loguru and is disabled until the application
enables it (`logger.enable("bamstream")`, done by the CLI).
"""

from loguru import logger

from bamstream.cigar import Cigar, CigarKind, CigarOp
from bamstream.errors import (
    AlignmentIOError,
    AlignmentOpenError,
    AlignmentReadError,
    AlignmentWriteError,
    HandleClosedError,
    SequenceDecodeError,
)
from bamstream.handles import (
    AlignmentFormat,
    InHandle,
    OutHandle,
    open_bam_in_file,
    open_bam_out_file,
    open_in_file,
    open_out_file,
    open_tam_in_file,
    open_tam_in_file_with_index,
    open_tam_out_file,
)
from bamstream.location import (
    Interval,
    SeqLocation,
    SpliceLocation,
    Strand,
    derive_reference_location,
    locate_on_target,
)
from bamstream.record import AlignmentRecord, Flag, Tag
from bamstream.targets import TargetSequence, TargetSet

__version__ = "0.1.0"

__all__ = [
    "AlignmentFormat",
    "AlignmentIOError",
    "AlignmentOpenError",
    "AlignmentReadError",
    "AlignmentRecord",
    "AlignmentWriteError",
    "Cigar",
    "CigarKind",
    "CigarOp",
    "Flag",
    "HandleClosedError",
    "InHandle",
    "Interval",
    "OutHandle",
    "SeqLocation",
    "SequenceDecodeError",
    "SpliceLocation",
    "Strand",
    "Tag",
    "TargetSequence",
    "TargetSet",
    "derive_reference_location",
    "locate_on_target",
    "open_bam_in_file",
    "open_bam_out_file",
    "open_in_file",
    "open_out_file",
    "open_tam_in_file",
    "open_tam_in_file_with_index",
    "open_tam_out_file",
]

logger.disable("bamstream")
