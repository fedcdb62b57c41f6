import logging
from typing import List, Optional

from data_structures import Boundary, RecordFormat, RecordIdentity
from errors import UnsupportedCombinationError

logger = logging.getLogger(__name__)

LINES_PER_RECORD = 4
MATE_SUFFIXES = (b"/1", b"/2")


def parse_identity(header_line: bytes) -> RecordIdentity:
    """
    Split a header line into read name, mate number and description.
    Only the common '/1' and '/2' name suffixes mark the mate; Casava 1.8
    style '1:N:0:...' tags end up in the description and are ignored.
    """
    line = header_line.rstrip(b"\r\n")
    if line[:1] in (b"@", b">"):
        line = line[1:]

    parts = line.split(None, 1)
    name = parts[0] if parts else b""
    description = parts[1] if len(parts) > 1 else b""

    mate = 0
    if name[-2:] in MATE_SUFFIXES:
        mate = int(name[-1:])
        name = name[:-2]

    return RecordIdentity(name=name, mate=mate, description=description)


def same_fragment(first: RecordIdentity, second: RecordIdentity) -> bool:
    return first.name == second.name


def _following_line_starts(buffer: bytes, offset: int, count: int) -> List[int]:
    """Offsets of the line at `offset` and of up to `count` lines after it."""
    starts = [offset]
    pos = offset
    while len(starts) <= count:
        newline = buffer.find(b"\n", pos)
        if newline == -1:
            break
        pos = newline + 1
        starts.append(pos)
    return starts


def resolve_pair_boundary(
    buffer: bytes,
    offset: int,
    fmt: RecordFormat = RecordFormat.FASTQ,
    eof: bool = False,
) -> Optional[Boundary]:
    """
    Decide where a chunk may start given a verified FASTQ record at `offset`.

    If the record and the one following it are mates, the boundary stays at
    `offset` and the span covers both records. Otherwise the first record is
    left to the chunk being closed and the boundary moves to the second one.
    A lone record at end-of-stream is left to the chunk being closed.

    Returns None when more bytes are needed to decide.
    """
    if fmt is not RecordFormat.FASTQ:
        raise UnsupportedCombinationError(
            f"Paired/interleaved chunking requires FASTQ input, got {fmt.name}"
        )

    size = len(buffer)
    starts = _following_line_starts(buffer, offset, 2 * LINES_PER_RECORD)

    if len(starts) <= LINES_PER_RECORD or starts[LINES_PER_RECORD] >= size:
        if not eof:
            return None
        logger.debug(f"Lone trailing record at offset {offset}")
        return Boundary(size, size)

    second = starts[LINES_PER_RECORD]
    if len(starts) > LINES_PER_RECORD + 1:
        second_header = buffer[second:starts[LINES_PER_RECORD + 1]]
    elif eof:
        second_header = buffer[second:]
    else:
        return None

    if len(starts) > 2 * LINES_PER_RECORD:
        span_end = starts[2 * LINES_PER_RECORD]
    elif eof:
        span_end = size
    else:
        return None

    first_id = parse_identity(buffer[offset:starts[1]])
    second_id = parse_identity(second_header)

    if same_fragment(first_id, second_id):
        return Boundary(offset, span_end)

    logger.debug(
        f"Records {first_id.name!r} and {second_id.name!r} are not mates, "
        f"boundary moved to offset {second}"
    )
    return Boundary(second, span_end)
