import io

import pytest

from errors import StreamIOError, UnsupportedCombinationError
from seq_stream import (InterleavedInput, PipeInput, SeekableInput, open_input,
                        open_paired_input)


def test_open_input_regular_file_is_seekable(write_file):
    payload = b"@r\nAC\n+\nII\n"
    path = write_file("reads.fq", payload)
    with open_input(path) as stream:
        assert isinstance(stream, SeekableInput)
        assert stream.size == len(payload)


def test_open_input_missing_file():
    with pytest.raises(StreamIOError):
        open_input("/nonexistent/reads.fq")


def test_seekable_advance(write_file):
    path = write_file("data.bin", b"0123456789")
    with open_input(path) as stream:
        assert stream.read(2) == b"01"
        stream.advance(5)
        assert stream.tell() == 7
        assert stream.read(10) == b"789"
        assert not stream.at_end()
        assert stream.read(1) == b""
        assert stream.at_end()


def test_pipe_advance_drains():
    stream = PipeInput(io.BytesIO(b"0123456789"), name="pipe")
    stream.advance(4)
    assert stream.tell() == 4
    assert stream.read(3) == b"456"
    stream.advance(100)
    assert stream.at_end()


def test_copy_to():
    stream = PipeInput(io.BytesIO(b"abcdef"), name="pipe")
    target = io.BytesIO()
    assert stream.copy_to(target, 4) == 4
    assert target.getvalue() == b"abcd"
    assert stream.copy_to(target, 10) == 2


def test_read_error_is_wrapped():
    class Broken(io.RawIOBase):
        def read(self, n=-1):
            raise OSError("device gone")

    stream = PipeInput(Broken(), name="broken")
    with pytest.raises(StreamIOError, match="broken"):
        stream.read(10)


def test_interleaved_input_alternates_records(write_file, mate_data):
    first, second = mate_data
    path1 = write_file("m_1.fq", first)
    path2 = write_file("m_2.fq", second)

    with open_paired_input(path1, path2) as stream:
        assert isinstance(stream, InterleavedInput)
        assert not stream.seekable
        assert stream.size == len(first) + len(second)
        data = b""
        while not stream.at_end():
            data += stream.read(1000)

    lines = data.splitlines(keepends=True)
    headers = lines[0::4]
    assert headers[:4] == [b"@frag0/1\n", b"@frag0/2\n", b"@frag1/1\n", b"@frag1/2\n"]
    assert len(data) == len(first) + len(second)


def test_interleaved_input_unequal_mates(write_file, caplog):
    path1 = write_file("a_1.fq", b"@a/1\nAC\n+\nII\n@b/1\nGG\n+\nII\n")
    path2 = write_file("a_2.fq", b"@a/2\nTT\n+\nII")

    with open_paired_input(path1, path2) as stream:
        data = stream.read(1000)

    assert data == (
        b"@a/1\nAC\n+\nII\n@a/2\nTT\n+\nII\n@b/1\nGG\n+\nII\n"
    )
    assert "ended before its partner" in caplog.text


def test_paired_input_rejects_fasta(write_file):
    path1 = write_file("a_1.fa", b">a\nACGT\n")
    path2 = write_file("a_2.fa", b">a\nACGT\n")
    with pytest.raises(UnsupportedCombinationError):
        open_paired_input(path1, path2)
