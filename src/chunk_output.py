import logging
import os
import re
import sys
from typing import Optional

from errors import ConfigurationError, StreamIOError
from pair_sync import parse_identity

logger = logging.getLogger(__name__)

LINES_PER_RECORD = 4
PATTERN_CONVERSION = re.compile(r"%[-0 #+]*\d*[dixX]")


def is_output_pattern(target: Optional[str]) -> bool:
    """True if target holds a printf chunk-number conversion (e.g. out.%03d.fq)."""
    return bool(target) and PATTERN_CONVERSION.search(target) is not None


def expand_output_pattern(pattern: str, chunk_index: int,
                          input_path: Optional[str] = None) -> str:
    """
    Build the file name for one chunk. '{stem}' is replaced by the input's
    base name without extension, the printf conversion by the chunk index.
    """
    if "{stem}" in pattern:
        stem = "stdin" if input_path in (None, "-") else os.path.splitext(
            os.path.basename(input_path)
        )[0]
        pattern = pattern.replace("{stem}", stem.replace("%", "%%"))
    try:
        return pattern % chunk_index
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid output pattern {pattern!r}: {e}") from e


def _write(handle, data, name: str):
    try:
        handle.write(data)
    except OSError as e:
        raise StreamIOError(f"{name}: write failed: {e}") from e


class ChunkSink:
    """Destination for emitted chunk bytes. Performs no format interpretation."""

    def open_chunk(self, chunk_index: int):
        pass

    def write(self, data: bytes):
        raise NotImplementedError

    def close_chunk(self):
        pass

    def close(self):
        pass


class SingleSink(ChunkSink):
    """All chunks of all inputs go to one destination."""

    def __init__(self, handle, name: str, owns_handle: bool = True):
        self.handle = handle
        self.name = name
        self.owns_handle = owns_handle

    @classmethod
    def open(cls, path: str) -> "SingleSink":
        try:
            return cls(open(path, "wb"), path)
        except OSError as e:
            raise StreamIOError(f"Cannot open {path} for writing: {e}") from e

    def write(self, data: bytes):
        if data:
            _write(self.handle, data, self.name)

    def close(self):
        try:
            self.handle.flush()
            if self.owns_handle:
                self.handle.close()
        except OSError as e:
            raise StreamIOError(f"{self.name}: close failed: {e}") from e


class SplitSink(ChunkSink):
    """One file per emitted chunk, named after the chunk index."""

    def __init__(self, pattern: str, input_path: Optional[str] = None):
        self.pattern = pattern
        self.input_path = input_path
        self._handle = None
        self._path = None

    def open_chunk(self, chunk_index: int):
        self.close_chunk()
        self._path = expand_output_pattern(self.pattern, chunk_index, self.input_path)
        try:
            self._handle = open(self._path, "wb")
        except OSError as e:
            raise StreamIOError(f"Cannot open {self._path} for writing: {e}") from e
        logger.debug(f"Writing chunk {chunk_index} to {self._path}")

    def write(self, data: bytes):
        if data:
            _write(self._handle, data, self._path)

    def close_chunk(self):
        if self._handle is None:
            return
        try:
            self._handle.close()
        except OSError as e:
            raise StreamIOError(f"{self._path}: close failed: {e}") from e
        finally:
            self._handle = None

    def close(self):
        self.close_chunk()


class PairedSink(ChunkSink):
    """
    De-interleaves the FASTQ records of each chunk into two sinks.
    Records are routed by their '/1' or '/2' name suffix, and alternate
    between the sides when the suffix is missing.
    """

    def __init__(self, first: ChunkSink, second: ChunkSink):
        self.sides = (first, second)
        self._pending = bytearray()
        self._next_side = 0

    def open_chunk(self, chunk_index: int):
        for side in self.sides:
            side.open_chunk(chunk_index)
        self._pending.clear()
        self._next_side = 0

    def _route(self, record: bytes):
        newline = record.find(b"\n")
        header = record if newline == -1 else record[:newline]
        mate = parse_identity(header).mate
        side = mate - 1 if mate else self._next_side
        self.sides[side].write(record)
        self._next_side = 1 - side

    def _record_end(self, pos: int) -> Optional[int]:
        for _ in range(LINES_PER_RECORD):
            newline = self._pending.find(b"\n", pos)
            if newline == -1:
                return None
            pos = newline + 1
        return pos

    def write(self, data: bytes):
        self._pending += data
        pos = 0
        end = self._record_end(pos)
        while end is not None:
            self._route(bytes(self._pending[pos:end]))
            pos = end
            end = self._record_end(pos)
        del self._pending[:pos]

    def close_chunk(self):
        if self._pending:
            # last record of the input without trailing newline
            self._route(bytes(self._pending))
            self._pending.clear()
        for side in self.sides:
            side.close_chunk()

    def close(self):
        for side in self.sides:
            side.close()


def _build_single(target: Optional[str], input_path: Optional[str]) -> ChunkSink:
    if target in (None, "-"):
        return SingleSink(sys.stdout.buffer, "<stdout>", owns_handle=False)
    if is_output_pattern(target):
        return SplitSink(target, input_path)
    return SingleSink.open(target)


def build_sink(out: Optional[str] = None, out2: Optional[str] = None,
               input_path: Optional[str] = None) -> ChunkSink:
    """
    Pick the output policy: stdout when no target is given, one file per
    chunk for printf patterns, otherwise one continuous file. A second
    target turns on de-interleaved paired output.
    """
    if out2:
        return PairedSink(_build_single(out, input_path), _build_single(out2, input_path))
    return _build_single(out, input_path)
