import numpy as np
import pytest

BASES = np.frombuffer(b"ACGT", dtype=np.uint8)


def _sequence(rng, length):
    return BASES[rng.integers(0, 4, length)].tobytes()


def _quality(rng, length, starts_with_at=False):
    # Phred+33 range '!'..'J' includes both '@' and '+'
    qual = rng.integers(33, 75, length).astype(np.uint8)
    if starts_with_at:
        qual[0] = ord("@")
    return qual.tobytes()


def fastq_record(rng, name: bytes, description: bytes = b"", at_quality=False,
                 min_len=30, max_len=60) -> bytes:
    length = int(rng.integers(min_len, max_len + 1))
    header = b"@" + name + (b" " + description if description else b"")
    return (
        header + b"\n" + _sequence(rng, length) + b"\n+\n"
        + _quality(rng, length, at_quality) + b"\n"
    )


def build_fastq(n_records, seed=7):
    rng = np.random.default_rng(seed)
    records = [
        fastq_record(rng, b"read%d" % i, b"len=%d" % i if i % 3 == 0 else b"",
                     at_quality=i % 5 == 0)
        for i in range(n_records)
    ]
    return b"".join(records)


def build_fasta(n_records, seed=11, width=60):
    rng = np.random.default_rng(seed)
    parts = []
    for i in range(n_records):
        seq = _sequence(rng, int(rng.integers(30, 151)))
        lines = [seq[j:j + width] for j in range(0, len(seq), width)]
        parts.append(b">contig%d sample=test\n" % i + b"\n".join(lines) + b"\n")
    return b"".join(parts)


def build_mates(n_fragments, seed=13):
    """Two mate files with /1 and /2 suffixed read names."""
    rng = np.random.default_rng(seed)
    first, second = [], []
    for i in range(n_fragments):
        first.append(fastq_record(rng, b"frag%d/1" % i, at_quality=i % 4 == 0))
        second.append(fastq_record(rng, b"frag%d/2" % i, at_quality=i % 6 == 0))
    return b"".join(first), b"".join(second)


def build_interleaved(n_fragments, seed=17, single_every=7):
    """Interleaved mates with an unpaired read every `single_every` fragments."""
    rng = np.random.default_rng(seed)
    parts = []
    for i in range(n_fragments):
        if i % single_every == 3:
            parts.append(fastq_record(rng, b"single%d" % i, at_quality=True))
            continue
        parts.append(fastq_record(rng, b"frag%d/1" % i, at_quality=i % 4 == 0))
        parts.append(fastq_record(rng, b"frag%d/2" % i, at_quality=i % 6 == 0))
    return b"".join(parts)


def split_fastq_records(data: bytes):
    """Split four-line FASTQ bytes into a list of raw records."""
    lines = data.splitlines(keepends=True)
    assert len(lines) % 4 == 0, "chunk does not hold whole records"
    return [b"".join(lines[i:i + 4]) for i in range(0, len(lines), 4)]


@pytest.fixture(scope="session")
def fastq_data():
    return build_fastq(3000)


@pytest.fixture(scope="session")
def fasta_data():
    return build_fasta(3000)


@pytest.fixture(scope="session")
def interleaved_data():
    return build_interleaved(600)


@pytest.fixture(scope="session")
def mate_data():
    return build_mates(400)


@pytest.fixture
def write_file(tmp_path):
    def _write(name, data):
        path = tmp_path / name
        path.write_bytes(data)
        return str(path)

    return _write


@pytest.fixture
def split_records():
    return split_fastq_records


class RecordingSink:
    """In-memory sink keeping each emitted chunk separately."""

    def __init__(self):
        self.chunks = {}
        self._current = None
        self.closed = False

    def open_chunk(self, chunk_index):
        self._current = chunk_index
        self.chunks[chunk_index] = b""

    def write(self, data):
        self.chunks[self._current] += data

    def close_chunk(self):
        self._current = None

    def close(self):
        self.closed = True


@pytest.fixture
def recording_sink():
    return RecordingSink()
