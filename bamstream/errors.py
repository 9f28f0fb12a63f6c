"""Exception types raised by bamstream handles and record decoding."""

from __future__ import annotations


class AlignmentIOError(OSError):
    """Base class for errors on an alignment stream."""


class AlignmentOpenError(AlignmentIOError):
    """The file could not be opened or its header could not be read."""


class AlignmentReadError(AlignmentIOError):
    """A record could not be decoded from the stream (not a clean end-of-file)."""


class AlignmentWriteError(AlignmentIOError):
    """The underlying library rejected a record write."""


class HandleClosedError(AlignmentIOError):
    """A transfer was attempted on a handle whose resource was already released."""


class SequenceDecodeError(ValueError):
    """A 4-bit nucleotide code outside {A, C, G, T, N} was found in a record."""
