import logging
import re
from typing import Iterator, Tuple

from data_structures import ChunkOptions, ChunkPlan
from errors import ConfigurationError

logger = logging.getLogger(__name__)

SIZE_SUFFIXES = {"": 1, "K": 1024, "M": 1024 ** 2, "G": 1024 ** 3}


def parse_size(text: str) -> int:
    """
    Parse a byte size like '4096', '64k', '10M' or '2G' (powers of 1024).
    """
    match = re.fullmatch(r"\s*(\d+)\s*([kKmMgG]?)[bB]?\s*", text)
    if not match:
        raise ConfigurationError(f"Invalid size: {text!r}")
    return int(match.group(1)) * SIZE_SUFFIXES[match.group(2).upper()]


def plan_chunks(options: ChunkOptions, total_size: int) -> ChunkPlan:
    """
    Turn a chunking request into a concrete stride for one input.
    total_size is the input size in bytes (sum of both mates for paired
    input), or 0 if unknown (pipes, stdin).
    """
    if options.chunk_size is not None:
        stride = options.chunk_size
    elif total_size <= 0:
        raise ConfigurationError(
            "Cannot derive a chunk size from a chunk number when the input "
            "size is unknown (streamed input), use --chunk_size instead"
        )
    else:
        stride = max(1, (total_size + options.chunk_number - 1) // options.chunk_number)

    total_chunks = total_size // stride + 1 if total_size > 0 else None

    if total_chunks is not None and options.first_chunk > total_chunks:
        logger.warning(
            f"First chunk {options.first_chunk} is beyond the {total_chunks} "
            f"planned chunks, nothing will be emitted"
        )

    logger.debug(
        f"Planned stride {stride:,} bytes for {total_size:,} bytes "
        f"({total_chunks if total_chunks is not None else 'unknown'} chunks)"
    )

    return ChunkPlan(
        stride=stride,
        total_chunks=total_chunks,
        first_chunk=options.first_chunk,
        last_chunk=options.last_chunk,
        chunk_step=options.chunk_step,
        chunks_per_step=options.chunks_per_step,
    )


def is_selected(index: int, first_chunk: int, chunk_step: int, chunks_per_step: int) -> bool:
    """Chunk `index` is emitted iff (index - first) mod step < per_step."""
    if index < first_chunk:
        return False
    return (index - first_chunk) % chunk_step < chunks_per_step


def iter_chunk_indices(plan: ChunkPlan) -> Iterator[Tuple[int, bool]]:
    """
    Yield (chunk_index, emit) for chunk 1, 2, ... up to last_chunk.
    Unbounded when last_chunk is unset; the caller stops at end-of-stream.
    """
    index = 1
    while plan.last_chunk is None or index <= plan.last_chunk:
        yield index, is_selected(
            index, plan.first_chunk, plan.chunk_step, plan.chunks_per_step
        )
        index += 1


def check_plan(plan: ChunkPlan) -> ChunkPlan:
    """Reject a hand-built plan that ChunkOptions.validate() would not accept."""
    ChunkOptions(
        chunk_size=plan.stride,
        first_chunk=plan.first_chunk,
        last_chunk=plan.last_chunk,
        chunk_step=plan.chunk_step,
        chunks_per_step=plan.chunks_per_step,
    ).validate()
    return plan
