import logging
from typing import Optional, Tuple

from data_structures import RecordFormat
from errors import UnrecognizedFormatError

logger = logging.getLogger(__name__)


def sniff_format(first_bytes: bytes, name: str = "input") -> RecordFormat:
    """
    Classify a stream by its first byte: '>' is FASTA, '@' is FASTQ.
    """
    for fmt in RecordFormat:
        if first_bytes[:1] == fmt.value:
            return fmt

    raise UnrecognizedFormatError(
        f"{name}: unknown format, expected '>' (FASTA) or '@' (FASTQ) "
        f"as first byte, got {first_bytes[:1]!r}"
    )


def detect_format(stream) -> Tuple[Optional[RecordFormat], bytes]:
    """
    Read the first byte of a stream and classify it.
    The consumed byte is returned so callers can seed the lookahead cache
    (the stream may be a pipe and cannot be rewound).
    Returns: (format or None for an empty stream, consumed_bytes)
    """
    first = stream.read(1)
    if not first:
        return None, b""

    fmt = sniff_format(first, stream.name)
    logger.debug(f"{stream.name}: detected {fmt.name} format")
    return fmt, first
