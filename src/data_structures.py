from dataclasses import dataclass
from enum import Enum
from typing import Optional

from errors import ConfigurationError


class RecordFormat(Enum):
    """Supported record layouts, keyed by their header sentinel."""

    FASTA = b">"
    FASTQ = b"@"

    @property
    def sentinel(self) -> int:
        return self.value[0]


QUALITY_SENTINEL = ord("+")


@dataclass
class RecordIdentity:
    name: bytes
    mate: int = 0
    description: bytes = b""


@dataclass
class ChunkOptions:
    """
    Chunking request as given on the command line.
    Exactly one of chunk_size / chunk_number must be set.
    """

    chunk_size: Optional[int] = None
    chunk_number: Optional[int] = None
    first_chunk: int = 1
    last_chunk: Optional[int] = None
    chunk_step: int = 1
    chunks_per_step: int = 1

    def validate(self) -> "ChunkOptions":
        if (self.chunk_size is None) == (self.chunk_number is None):
            raise ConfigurationError(
                "Exactly one of chunk size or chunk number must be given"
            )
        if self.chunk_size is not None and self.chunk_size < 1:
            raise ConfigurationError(f"Chunk size must be >= 1, got {self.chunk_size}")
        if self.chunk_number is not None and self.chunk_number < 1:
            raise ConfigurationError(
                f"Chunk number must be >= 1, got {self.chunk_number}"
            )
        if self.first_chunk < 1:
            raise ConfigurationError(f"First chunk must be >= 1, got {self.first_chunk}")
        if self.last_chunk is not None and self.last_chunk < self.first_chunk:
            raise ConfigurationError(
                f"Last chunk ({self.last_chunk}) is before first chunk ({self.first_chunk})"
            )
        if self.chunk_step < 1:
            raise ConfigurationError(f"Chunk step must be >= 1, got {self.chunk_step}")
        if not 1 <= self.chunks_per_step <= self.chunk_step:
            raise ConfigurationError(
                f"Chunks per step ({self.chunks_per_step}) must be between 1 "
                f"and the chunk step ({self.chunk_step})"
            )
        return self


@dataclass
class ChunkPlan:
    stride: int
    total_chunks: Optional[int]  # None when the input size is unknown
    first_chunk: int = 1
    last_chunk: Optional[int] = None
    chunk_step: int = 1
    chunks_per_step: int = 1


@dataclass
class Boundary:
    """Resolved record start plus the end of the span verified there."""

    offset: int
    span_end: int


@dataclass
class ChunkCursor:
    """
    Lookahead state passed from one chunk extraction to the next.
    `cache` holds already-read bytes starting at stream offset `position`,
    which is always a legal record start. `span` is the length of the
    verified leading record(s) inside the cache.
    """

    index: int
    position: int
    cache: bytes = b""
    span: int = 0

    @property
    def end(self) -> int:
        return self.position + len(self.cache)
