import logging
import warnings
from typing import Iterable, Optional, Tuple, Union

from boundary_scanner import SECURITY_MARGIN, BoundaryScanner
from chunk_output import ChunkSink, build_sink, is_output_pattern
from chunk_planning import check_plan, iter_chunk_indices, plan_chunks
from data_structures import Boundary, ChunkCursor, ChunkOptions, ChunkPlan, RecordFormat
from errors import ConfigurationError, EmptyInputWarning, UnsupportedCombinationError
from format_detection import detect_format
from seq_stream import InputStream, open_input, open_paired_input

logger = logging.getLogger(__name__)

SCAN_BLOCK_SIZE = 64 * 1024

Source = Union[str, Tuple[str, str]]


def _stride_too_small(stream: InputStream, stride: int, detail: str) -> ConfigurationError:
    return ConfigurationError(
        f"{stream.name}: chunk size {stride:,} is too small, {detail}"
    )


def _reach(stride: int, paired: bool) -> int:
    """
    How far past a planned edge the next chunk may legally start. A record
    that is not the mate of its successor stays in the closing chunk, so in
    paired mode the boundary can sit one more unit further.
    """
    return 2 * stride if paired else stride


def _resolve(
    stream: InputStream,
    scanner: BoundaryScanner,
    window: bytes,
    read_limit: int,
) -> Optional[Boundary]:
    """
    Feed the scanner until it resolves a boundary. Returns None once the
    window grows past `read_limit` bytes without one.
    """
    boundary = scanner.feed(window, stream.at_end())
    while boundary is None:
        if scanner.size > read_limit:
            return None
        data = stream.read(SCAN_BLOCK_SIZE)
        boundary = scanner.feed(data, not data)
    return boundary


def _first_cursor(
    stream: InputStream,
    cache: bytes,
    fmt: RecordFormat,
    paired: bool,
    stride: int,
) -> ChunkCursor:
    """Verify the leading record (or mate pair) so chunk 1 gets the same size check."""
    scanner = BoundaryScanner(fmt, 0, paired)
    boundary = _resolve(stream, scanner, cache, _reach(stride, paired))
    if boundary is None:
        raise _stride_too_small(
            stream, stride, f"the first record is longer than {stride:,} bytes"
        )

    span = boundary.span_end if boundary.offset == 0 else boundary.offset
    return ChunkCursor(index=1, position=0, cache=bytes(scanner.window), span=span)


def _extract_chunk(
    stream: InputStream,
    cursor: ChunkCursor,
    edge: int,
    stride: int,
    fmt: RecordFormat,
    paired: bool,
    security_margin: int,
    sink: Optional[ChunkSink],
) -> ChunkCursor:
    """
    Move from the start of the current chunk to the first record start at or
    after `edge`. Bytes in between go to `sink`, or are skipped when sink is
    None. Returns the cursor for the next chunk.
    """
    window_start = max(edge - security_margin, cursor.position)

    if window_start < cursor.end:
        keep = window_start - cursor.position
        if sink is not None:
            sink.write(cursor.cache[:keep])
        window = cursor.cache[keep:]
    else:
        if sink is not None:
            sink.write(cursor.cache)
            stream.copy_to(sink, window_start - cursor.end)
        else:
            stream.advance(window_start - cursor.end)
        window = b""

    # the unit holding the edge ends within `reach` of it, and verifying the
    # unit found there takes at most one more stride
    reach = _reach(stride, paired)
    scanner = BoundaryScanner(fmt, edge - window_start, paired)
    boundary = _resolve(stream, scanner, window, edge + reach + stride - window_start)
    if boundary is None or window_start + boundary.offset > edge + reach:
        raise _stride_too_small(
            stream, stride,
            f"no record starts within {reach:,} bytes after offset {edge:,}"
        )

    window = scanner.window
    if sink is not None:
        sink.write(bytes(window[:boundary.offset]))

    return ChunkCursor(
        index=cursor.index + 1,
        position=window_start + boundary.offset,
        cache=bytes(window[boundary.offset:]),
        span=boundary.span_end - boundary.offset,
    )


def process_stream(
    stream: InputStream,
    plan: ChunkPlan,
    sink: ChunkSink,
    interleaved: bool = False,
    security_margin: int = SECURITY_MARGIN,
) -> int:
    """
    Split one input into record-aligned chunks and emit the selected ones.

    Chunk i covers the bytes from the first record start at or after
    (i - 1) * stride up to the first record start at or after i * stride.
    Skipped chunks are sought over (or drained for pipes) but their end
    boundary is still resolved, so emitted chunks are identical whatever
    the selection.

    Returns: number of emitted chunks
    """
    check_plan(plan)
    if security_margin < 1:
        raise ConfigurationError(f"Security margin must be >= 1, got {security_margin}")

    fmt, first = detect_format(stream)
    if fmt is None:
        warnings.warn(f"{stream.name}: empty input, skipped", EmptyInputWarning)
        return 0

    if interleaved and fmt is not RecordFormat.FASTQ:
        raise UnsupportedCombinationError(
            f"{stream.name}: interleaved chunking requires FASTQ input, got {fmt.name}"
        )

    cursor = _first_cursor(stream, first, fmt, interleaved, plan.stride)
    emitted = 0

    for index, emit in iter_chunk_indices(plan):
        if not cursor.cache and stream.at_end():
            break

        edge = index * plan.stride
        if cursor.position + cursor.span > edge:
            raise _stride_too_small(
                stream, plan.stride,
                f"the record at offset {cursor.position:,} reaches past the end "
                f"of chunk {index} (offset {edge:,})"
            )

        if emit:
            sink.open_chunk(index)
            try:
                cursor = _extract_chunk(
                    stream, cursor, edge, plan.stride, fmt, interleaved,
                    security_margin, sink
                )
            finally:
                sink.close_chunk()
            emitted += 1
            logger.debug(f"Emitted chunk {index}, next chunk starts at {cursor.position:,}")
        else:
            cursor = _extract_chunk(
                stream, cursor, edge, plan.stride, fmt, interleaved,
                security_margin, None
            )
            logger.debug(f"Skipped chunk {index}, next chunk starts at {cursor.position:,}")

    return emitted



def chunk_input(
    source: Source,
    options: ChunkOptions,
    sink: ChunkSink,
    interleaved: bool = False,
    security_margin: int = SECURITY_MARGIN,
) -> int:
    """
    Chunk a single file, or a (mate1, mate2) pair which is interleaved on the fly.
    """
    if isinstance(source, tuple):
        stream = open_paired_input(*source)
        interleaved = True
    else:
        stream = open_input(source)

    with stream:
        if stream.size == 0:
            warnings.warn(f"{stream.name}: empty input, skipped", EmptyInputWarning)
            return 0

        plan = plan_chunks(options, stream.size or 0)
        size_text = f"{stream.size:,} bytes" if stream.size is not None else "unknown size"
        logger.info(
            f"Chunking {stream.name} ({size_text}) with {plan.stride:,} byte chunks"
        )
        return process_stream(stream, plan, sink, interleaved, security_margin)


def chunk_inputs(
    inputs: Iterable[str],
    options: ChunkOptions,
    out: Optional[str] = None,
    out2: Optional[str] = None,
    paired: bool = False,
    interleaved: bool = False,
    security_margin: int = SECURITY_MARGIN,
) -> int:
    """
    Chunk every input in order. With `paired`, consecutive inputs are
    treated as mate files. Returns the total number of emitted chunks.
    """
    options.validate()
    if security_margin < 1:
        raise ConfigurationError(f"Security margin must be >= 1, got {security_margin}")

    sources = list(inputs)
    if not sources:
        raise ConfigurationError("No input files given")
    if paired:
        if len(sources) % 2:
            raise ConfigurationError(
                f"Paired mode needs mate files in pairs, got {len(sources)} files"
            )
        sources = [tuple(sources[i:i + 2]) for i in range(0, len(sources), 2)]
    if out2 and not (paired or interleaved):
        raise ConfigurationError("A second output requires paired or interleaved mode")

    targets = [t for t in (out, out2) if t]
    per_input = any(is_output_pattern(t) for t in targets)
    if per_input and len(sources) > 1 and not all("{stem}" in t for t in targets):
        raise ConfigurationError(
            "Chunk file patterns need a {stem} placeholder when chunking several inputs"
        )

    total = 0
    shared = None if per_input else build_sink(out, out2)
    try:
        for source in sources:
            name = source[0] if isinstance(source, tuple) else source
            sink = build_sink(out, out2, name) if per_input else shared
            try:
                count = chunk_input(source, options, sink, interleaved, security_margin)
            finally:
                if per_input:
                    sink.close()
            logger.info(f"{name}: emitted {count} chunk(s)")
            total += count
    finally:
        if shared is not None:
            shared.close()

    return total
