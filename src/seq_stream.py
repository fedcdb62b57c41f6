import logging
import os
import sys
from typing import Optional

from data_structures import RecordFormat
from errors import StreamIOError, UnsupportedCombinationError
from format_detection import sniff_format

logger = logging.getLogger(__name__)

COPY_BLOCK_SIZE = 1024 * 1024
LINES_PER_RECORD = 4


class InputStream:
    """
    Forward-only byte source with its own offset counter (pipes cannot tell).
    Subclasses decide how to skip ahead: seek or read-and-discard.
    """

    seekable = False

    def __init__(self, handle, name: str = "-", size: Optional[int] = None,
                 owns_handle: bool = True):
        self.handle = handle
        self.name = name
        self.size = size  # None when unknown
        self.owns_handle = owns_handle
        self.position = 0
        self.eof = False

    def _read_raw(self, n: int) -> bytes:
        return self.handle.read(n)

    def read(self, n: int) -> bytes:
        try:
            data = self._read_raw(n)
        except OSError as e:
            raise StreamIOError(
                f"{self.name}: read failed at offset {self.position:,}: {e}"
            ) from e

        if n > 0 and not data:
            self.eof = True
        self.position += len(data)
        return data

    def tell(self) -> int:
        return self.position

    def at_end(self) -> bool:
        return self.eof

    def advance(self, n: int):
        raise NotImplementedError

    def copy_to(self, sink, n: int) -> int:
        """Stream the next n bytes into sink. Returns bytes copied."""
        remaining = n
        while remaining > 0:
            data = self.read(min(COPY_BLOCK_SIZE, remaining))
            if not data:
                break
            sink.write(data)
            remaining -= len(data)
        return n - remaining

    def close(self):
        if self.owns_handle:
            self.handle.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class SeekableInput(InputStream):
    seekable = True

    def advance(self, n: int):
        if n <= 0:
            return
        try:
            self.handle.seek(self.position + n)
        except OSError as e:
            raise StreamIOError(
                f"{self.name}: seek to offset {self.position + n:,} failed: {e}"
            ) from e
        self.position += n


class PipeInput(InputStream):
    def advance(self, n: int):
        remaining = n
        while remaining > 0:
            data = self.read(min(COPY_BLOCK_SIZE, remaining))
            if not data:
                break
            remaining -= len(data)


class InterleavedInput(PipeInput):
    """
    Non-seekable stream alternating whole FASTQ records from two mate files.
    """

    def __init__(self, handles, names, size: Optional[int] = None):
        super().__init__(None, name=f"{names[0]}+{names[1]}", size=size)
        self.handles = handles
        self.names = names
        self._pending = bytearray()
        self._exhausted = [False, False]
        self._warned = False

    def _next_record(self, side: int) -> bytes:
        lines = []
        for _ in range(LINES_PER_RECORD):
            line = self.handles[side].readline()
            if not line:
                break
            lines.append(line)
        record = b"".join(lines)
        if record and not record.endswith(b"\n"):
            record += b"\n"
        return record

    def _fill(self, n: int):
        while len(self._pending) < n and not all(self._exhausted):
            for side in (0, 1):
                if self._exhausted[side]:
                    continue
                record = self._next_record(side)
                if record:
                    self._pending += record
                else:
                    self._exhausted[side] = True

            if any(self._exhausted) and not all(self._exhausted) and not self._warned:
                ended = self.names[self._exhausted.index(True)]
                logger.warning(
                    f"Mate file {ended} ended before its partner, "
                    f"remaining records are passed through unpaired"
                )
                self._warned = True

    def _read_raw(self, n: int) -> bytes:
        self._fill(n)
        data = bytes(self._pending[:n])
        del self._pending[:n]
        return data

    def close(self):
        for handle in self.handles:
            handle.close()


def _open_file(path: str):
    try:
        return open(path, "rb")
    except OSError as e:
        raise StreamIOError(f"Cannot open {path}: {e}") from e


def _file_size(handle) -> Optional[int]:
    if not handle.seekable():
        return None
    return os.fstat(handle.fileno()).st_size


def open_input(path: str) -> InputStream:
    """
    Open a FASTA/FASTQ input. '-' reads stdin.
    Regular files seek when skipping chunks, pipes drain.
    """
    if path == "-":
        return PipeInput(sys.stdin.buffer, name="<stdin>", owns_handle=False)

    handle = _open_file(path)
    size = _file_size(handle)
    if size is not None:
        return SeekableInput(handle, name=path, size=size)

    logger.debug(f"{path} is not seekable, skipped chunks will be drained")
    return PipeInput(handle, name=path)


def open_paired_input(path1: str, path2: str) -> InterleavedInput:
    """
    Open two mate files as one interleaved FASTQ stream.
    Size is the sum of both files, or None if either is not a regular file.
    """
    handles = [_open_file(path1)]
    try:
        handles.append(_open_file(path2))
        for handle, path in zip(handles, (path1, path2)):
            first = handle.peek(1)[:1]
            if first and sniff_format(first, path) is not RecordFormat.FASTQ:
                raise UnsupportedCombinationError(
                    f"{path}: paired chunking requires FASTQ mate files"
                )
    except Exception:
        for handle in handles:
            handle.close()
        raise

    sizes = [_file_size(handle) for handle in handles]
    size = None if None in sizes else sum(sizes)
    return InterleavedInput(handles, (path1, path2), size=size)
