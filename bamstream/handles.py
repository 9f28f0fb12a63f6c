"""
Input and output handles for SAM ("TAM", tab-delimited text) and BAM files.

Each handle owns one pysam stream and one lock. Every record transfer takes the
lock for exactly one read or write, so a handle can be shared between threads:
transfers are serialized, never interleaved. Closing is idempotent and waits
for a transfer in flight; any transfer attempted afterwards raises
HandleClosedError. The target set of a handle stays usable after it is closed.
"""

from __future__ import annotations

import threading
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import pysam
from loguru import logger

from bamstream.errors import (
    AlignmentIOError,
    AlignmentOpenError,
    AlignmentReadError,
    AlignmentWriteError,
    HandleClosedError,
)
from bamstream.record import AlignmentRecord
from bamstream.targets import TargetSet

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType


# ------------------------------- DATA TYPES -------------------------------- #


class AlignmentFormat(Enum):
    """On-disk alignment formats a handle can be opened on."""

    TAM = auto()  # SAM text
    BAM = auto()

    @staticmethod
    def from_path(path: str | Path) -> AlignmentFormat:
        """Determine the format from the filename extension."""
        lower = str(path).lower()
        if lower.endswith(".sam"):
            return AlignmentFormat.TAM
        if lower.endswith(".bam"):
            return AlignmentFormat.BAM
        msg = f"Output/input must end with .sam or .bam: {path}"
        logger.error(msg)
        raise ValueError(msg)

    def mode(self, write: bool) -> str:  # noqa: FBT001
        """pysam open mode for this format."""
        match self:
            case AlignmentFormat.TAM:
                return "w" if write else "r"
            case AlignmentFormat.BAM:
                return "wb" if write else "rb"


class SegmentStream(Protocol):
    """What an InHandle reads from: an iterator of segments that can be closed."""

    def __next__(self) -> pysam.AlignedSegment: ...

    def close(self) -> None: ...


class TamTextStream:
    """
    Header-less SAM text, parsed one line at a time against a target list that
    was supplied separately. Header lines, if present, are skipped.
    """

    def __init__(self, path: str | Path, targets: TargetSet) -> None:
        self._header = targets.to_header()
        self._fh = open(path)  # noqa: SIM115
        self._lineno = 0

    def __iter__(self) -> TamTextStream:
        return self

    def __next__(self) -> pysam.AlignedSegment:
        for line in self._fh:
            self._lineno += 1
            text = line.rstrip("\r\n")
            if not text or text.startswith("@"):
                continue
            try:
                return pysam.AlignedSegment.fromstring(text, self._header)
            except ValueError as err:
                msg = f"line {self._lineno}: {err}"
                raise ValueError(msg) from err
        raise StopIteration

    def close(self) -> None:
        self._fh.close()


# -------------------------------- HANDLES ---------------------------------- #


class _Handle:
    """Lock and idempotent-close bookkeeping shared by both handle kinds."""

    # raised when releasing the stream fails
    close_error: type[AlignmentIOError] = AlignmentIOError

    def __init__(self, filename: str, targets: TargetSet) -> None:
        self.filename = filename
        self.targets = targets
        self._lock = threading.Lock()

    def _release(self) -> None:
        raise NotImplementedError

    @property
    def closed(self) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        """
        Release the stream. Safe to call repeatedly and from any thread. The
        handle counts as closed even when releasing fails.
        """
        with self._lock:
            if self.closed:
                return
            try:
                self._release()
            except (OSError, ValueError) as err:
                msg = f"Error closing alignment file {self.filename!r}: {err}"
                logger.error(msg)
                raise self.close_error(msg) from err
        logger.debug(f"Closed {self.filename}")

    def _closed_error(self) -> HandleClosedError:
        msg = f"Alignment file {self.filename!r} is already closed"
        logger.error(msg)
        return HandleClosedError(msg)

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<{type(self).__name__}(name={self.filename!r}, {state})>"


class InHandle(_Handle):
    """
    Handle for reading alignments.

    `read_next` returns one record per call and None once the stream is
    exhausted; the handle stays open at end-of-stream. Iterating the handle
    yields the remaining records.
    """

    close_error = AlignmentReadError

    def __init__(self, filename: str, stream: SegmentStream, targets: TargetSet) -> None:
        super().__init__(filename, targets)
        self._stream: SegmentStream | None = stream
        self._failure: AlignmentReadError | None = None

    @property
    def closed(self) -> bool:
        return self._stream is None

    def _release(self) -> None:
        stream, self._stream = self._stream, None
        stream.close()

    def read_next(self) -> AlignmentRecord | None:
        """
        Read one record, or return None at a clean end-of-file.

        Raises AlignmentReadError when the stream is malformed; the handle then
        refuses to read any further. Raises HandleClosedError after close().
        """
        with self._lock:
            if self._stream is None:
                raise self._closed_error()
            if self._failure is not None:
                raise self._failure
            try:
                segment = next(self._stream)
            except StopIteration:
                logger.debug(f"End of alignments in {self.filename}")
                return None
            except (OSError, ValueError) as err:
                msg = f"Error reading from alignment file {self.filename!r}: {err}"
                logger.error(msg)
                self._failure = AlignmentReadError(msg)
                raise self._failure from err
        record = AlignmentRecord.from_segment(segment, self.targets)
        logger.trace(f"Read '{record.query_name}' from {self.filename}")
        return record

    def __iter__(self) -> Iterator[AlignmentRecord]:
        while (record := self.read_next()) is not None:
            yield record

    def __enter__(self) -> InHandle:
        return self


class OutHandle(_Handle):
    """
    Handle for writing alignments.

    No check is made that a record's target set matches the handle's: a record
    decoded against a different set is written with its raw target indices.
    """

    close_error = AlignmentWriteError

    def __init__(
        self,
        filename: str,
        samfile: pysam.AlignmentFile,
        targets: TargetSet,
    ) -> None:
        super().__init__(filename, targets)
        self._samfile: pysam.AlignmentFile | None = samfile
        self._header = samfile.header

    @property
    def closed(self) -> bool:
        return self._samfile is None

    def _release(self) -> None:
        samfile, self._samfile = self._samfile, None
        samfile.close()

    def write(self, record: AlignmentRecord) -> None:
        """Write one record. Raises AlignmentWriteError if it was not written."""
        with self._lock:
            if self._samfile is None:
                raise self._closed_error()
            try:
                written = self._samfile.write(record.to_segment(self._header))
            except (OSError, ValueError) as err:
                msg = f"Error writing '{record.query_name}' to {self.filename!r}: {err}"
                logger.error(msg)
                raise AlignmentWriteError(msg) from err
            if written <= 0:
                msg = f"Error writing '{record.query_name}' to {self.filename!r}"
                logger.error(msg)
                raise AlignmentWriteError(msg)
        logger.trace(f"Wrote '{record.query_name}' to {self.filename}")

    def __enter__(self) -> OutHandle:
        return self


# ------------------------------ OPEN HELPERS -------------------------------- #


def _open_alignment_file(path: str, mode: str, **kwargs) -> pysam.AlignmentFile:
    logger.debug(f"Opening {path} (mode={mode})")
    try:
        return pysam.AlignmentFile(path, mode, **kwargs)
    except (OSError, ValueError) as err:
        msg = f"Error opening alignment file {path!r}: {err}"
        logger.error(msg)
        raise AlignmentOpenError(msg) from err


def _new_in_handle(path: str | Path, mode: str) -> InHandle:
    filename = str(path)
    # A header with no @SQ lines is a valid, empty target set
    samfile = _open_alignment_file(filename, mode, check_sq=False)
    try:
        targets = TargetSet.from_header(samfile.header)
    except (AssertionError, ValueError) as err:
        samfile.close()
        msg = f"Error reading header from alignment file {filename!r}: {err}"
        logger.error(msg)
        raise AlignmentOpenError(msg) from err
    logger.debug(f"{filename}: {len(targets)} target sequences")
    return InHandle(filename, samfile, targets)


def open_tam_in_file(path: str | Path) -> InHandle:
    """Open a SAM text file whose @SQ header lines give the target set."""
    return _new_in_handle(path, AlignmentFormat.TAM.mode(write=False))


def open_tam_in_file_with_index(path: str | Path, index_path: str | Path) -> InHandle:
    """
    Open a header-less SAM text file, taking the target set from a separate
    target list (name and length per line, e.g. a .fai index).
    """
    filename = str(path)
    try:
        targets = TargetSet.from_index_file(index_path)
    except (OSError, ValueError) as err:
        msg = f"Error reading target list {str(index_path)!r}: {err}"
        logger.error(msg)
        raise AlignmentOpenError(msg) from err
    logger.debug(f"Opening {filename} with target list {index_path}")
    try:
        stream = TamTextStream(filename, targets)
    except OSError as err:
        msg = f"Error opening alignment file {filename!r}: {err}"
        logger.error(msg)
        raise AlignmentOpenError(msg) from err
    return InHandle(filename, stream, targets)


def open_bam_in_file(path: str | Path) -> InHandle:
    """Open a BAM file."""
    return _new_in_handle(path, AlignmentFormat.BAM.mode(write=False))


def _new_out_handle(path: str | Path, mode: str, targets: TargetSet) -> OutHandle:
    filename = str(path)
    samfile = _open_alignment_file(filename, mode, header=targets.to_header())
    return OutHandle(filename, samfile, targets)


def open_tam_out_file(path: str | Path, targets: TargetSet) -> OutHandle:
    """Open a SAM text file for writing; @SQ lines are written from `targets`."""
    return _new_out_handle(path, AlignmentFormat.TAM.mode(write=True), targets)


def open_bam_out_file(path: str | Path, targets: TargetSet) -> OutHandle:
    """Open a BAM file for writing."""
    return _new_out_handle(path, AlignmentFormat.BAM.mode(write=True), targets)


def open_in_file(path: str | Path, index: str | Path | None = None) -> InHandle:
    """Open for reading, choosing SAM or BAM from the extension."""
    match AlignmentFormat.from_path(path):
        case AlignmentFormat.TAM if index is not None:
            return open_tam_in_file_with_index(path, index)
        case AlignmentFormat.TAM:
            return open_tam_in_file(path)
        case AlignmentFormat.BAM:
            if index is not None:
                msg = f"A separate target list only applies to SAM text input: {path}"
                logger.error(msg)
                raise ValueError(msg)
            return open_bam_in_file(path)


def open_out_file(path: str | Path, targets: TargetSet) -> OutHandle:
    """Open for writing, choosing SAM or BAM from the extension."""
    match AlignmentFormat.from_path(path):
        case AlignmentFormat.TAM:
            return open_tam_out_file(path, targets)
        case AlignmentFormat.BAM:
            return open_bam_out_file(path, targets)
