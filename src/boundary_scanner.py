import bisect
import logging
from typing import List, Optional

import numpy as np

from data_structures import QUALITY_SENTINEL, Boundary, RecordFormat
from pair_sync import LINES_PER_RECORD, resolve_pair_boundary

logger = logging.getLogger(__name__)

# Bytes kept before each planned chunk edge so the scan window always
# contains the newline that precedes the edge. Must be >= 1.
SECURITY_MARGIN = 1024

NEWLINE = ord("\n")

_REJECTED = object()


class BoundaryScanner:
    """
    Finds the first legal record start at or after `start` in a window that
    only grows at its end.

    FASTA: a '>' at the start of a line.
    FASTQ: an '@' at the start of a line whose second following line starts
    with '+'. Quality lines starting with '@' fail this check and the scan
    moves on to the next candidate.

    Newlines are indexed once per fed block and rejected candidates are not
    looked at again, so feeding a long record block by block stays linear.
    """

    def __init__(self, fmt: RecordFormat, start: int = 0, paired: bool = False):
        self.fmt = fmt
        self.start = start
        self.paired = paired
        self.window = bytearray()
        self._starts: List[int] = [0]  # line starts, offset 0 counts as one
        self._candidate = 0  # first line not yet rejected

    @property
    def size(self) -> int:
        return len(self.window)

    def _index_lines(self, data: bytes):
        if not data:
            return
        base = len(self.window)
        self.window += data
        newlines = np.flatnonzero(np.frombuffer(data, dtype=np.uint8) == NEWLINE)
        self._starts.extend((newlines + base + 1).tolist())

    def _sentinel_lines(self, first: int) -> List[int]:
        """Indices of lines from `first` on whose first byte is the record sentinel."""
        starts = np.asarray(self._starts[first:], dtype=np.int64)
        starts = starts[starts < len(self.window)]
        if not len(starts):
            return []
        data = np.frombuffer(self.window, dtype=np.uint8)
        return (first + np.flatnonzero(data[starts] == self.fmt.sentinel)).tolist()

    def _resolve_pair(self, line: int, eof: bool):
        offset = self._starts[line]
        last = line + 2 * LINES_PER_RECORD
        if last < len(self._starts):
            end, at_end = self._starts[last], False
        elif eof:
            end, at_end = len(self.window), True
        else:
            return None

        boundary = resolve_pair_boundary(
            bytes(self.window[offset:end]), 0, self.fmt, at_end
        )
        return Boundary(offset + boundary.offset, offset + boundary.span_end)

    def _verify(self, line: int, eof: bool):
        """Boundary, None when more bytes are needed, or _REJECTED."""
        starts = self._starts
        size = len(self.window)
        offset = starts[line]

        if self.fmt is RecordFormat.FASTA:
            if line + 1 < len(starts):
                return Boundary(offset, starts[line + 1])
            return Boundary(offset, size) if eof else None

        # FASTQ: header, sequence, '+' line, quality
        if line + 2 >= len(starts) or starts[line + 2] >= size:
            return _REJECTED if eof else None

        if self.window[starts[line + 2]] != QUALITY_SENTINEL:
            logger.debug(f"Rejected '@' line at offset {offset}: not a record header")
            return _REJECTED

        if self.paired:
            return self._resolve_pair(line, eof)

        if line + 4 < len(starts):
            return Boundary(offset, starts[line + 4])
        return Boundary(offset, size) if eof else None

    def feed(self, data: bytes, eof: bool = False) -> Optional[Boundary]:
        """
        Append `data` to the window and try to resolve the boundary.

        Candidates that cannot be verified with the bytes at hand return None
        (feed more data) unless `eof` is set, in which case they are rejected.
        With no record start left before end-of-stream the boundary is the
        window size.
        """
        self._index_lines(data)
        self._candidate = max(self._candidate, bisect.bisect_left(self._starts, self.start))

        for line in self._sentinel_lines(self._candidate):
            self._candidate = line
            verdict = self._verify(line, eof)
            if verdict is None:
                return None
            if verdict is not _REJECTED:
                return verdict

        size = len(self.window)
        self._candidate = max(self._candidate, bisect.bisect_left(self._starts, size))
        if eof:
            return Boundary(size, size)
        return None


def scan_boundary(
    buffer: bytes,
    fmt: RecordFormat,
    start: int = 0,
    paired: bool = False,
    eof: bool = False,
) -> Optional[Boundary]:
    """
    Find the first legal record start at or after `start` in `buffer`.

    Returns: Boundary(offset, span_end), or None when more data is needed
    """
    return BoundaryScanner(fmt, start, paired).feed(buffer, eof)
