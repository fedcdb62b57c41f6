import io
import os

import pytest

from chunk_output import (PairedSink, SingleSink, SplitSink, build_sink,
                          expand_output_pattern, is_output_pattern)
from errors import ConfigurationError


def test_expand_output_pattern():
    assert expand_output_pattern("tmp.%02d", 7) == "tmp.07"
    assert expand_output_pattern("out/{stem}.%04d.fq", 12, "/data/run1.fastq") == "out/run1.0012.fq"
    assert expand_output_pattern("{stem}.%d", 3, "-") == "stdin.3"


def test_expand_output_pattern_keeps_percent_in_stem():
    assert expand_output_pattern("{stem}.%02d.fq", 4, "/data/100%.fq") == "100%.04.fq"


@pytest.mark.parametrize("pattern", ["chunk.%s.%d", "chunk.%d.%x", "chunk.%03d.%"])
def test_expand_output_pattern_rejects_extra_conversions(pattern):
    with pytest.raises(ConfigurationError, match="output pattern"):
        expand_output_pattern(pattern, 1)


@pytest.mark.parametrize(
    "target, expected",
    [("chunk.%03d.fq", True), ("chunk.%d", True), ("out.fq", False), (None, False),
     ("100%.fq", False)],
)
def test_is_output_pattern(target, expected):
    assert is_output_pattern(target) is expected


def test_split_sink_writes_one_file_per_chunk(tmp_path):
    sink = SplitSink(str(tmp_path / "part.%02d"))
    for index, payload in ((1, b"one"), (3, b"three")):
        sink.open_chunk(index)
        sink.write(payload)
        sink.close_chunk()
    sink.close()

    assert sorted(os.listdir(tmp_path)) == ["part.01", "part.03"]
    assert (tmp_path / "part.03").read_bytes() == b"three"


def test_single_sink_keeps_foreign_handle_open():
    handle = io.BytesIO()
    sink = SingleSink(handle, "mem", owns_handle=False)
    sink.open_chunk(1)
    sink.write(b"abc")
    sink.close_chunk()
    sink.open_chunk(2)
    sink.write(b"def")
    sink.close()

    assert handle.getvalue() == b"abcdef"
    assert not handle.closed


def test_paired_sink_deinterleaves_records():
    first, second = io.BytesIO(), io.BytesIO()
    sink = PairedSink(SingleSink(first, "1", owns_handle=False),
                      SingleSink(second, "2", owns_handle=False))
    data = (
        b"@a/1\nAC\n+\nII\n@a/2\nGT\n+\nII\n"
        b"@b\nCC\n+\nII\n@b\nGG\n+\nII\n"
    )

    sink.open_chunk(1)
    # record bytes may arrive in arbitrary pieces
    for i in range(0, len(data), 5):
        sink.write(data[i:i + 5])
    sink.close_chunk()

    assert first.getvalue() == b"@a/1\nAC\n+\nII\n@b\nCC\n+\nII\n"
    assert second.getvalue() == b"@a/2\nGT\n+\nII\n@b\nGG\n+\nII\n"


def test_build_sink_policies(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert isinstance(build_sink(), SingleSink)
    assert isinstance(build_sink("chunk.%02d"), SplitSink)

    single = build_sink("all.fq")
    assert isinstance(single, SingleSink)
    single.close()

    paired = build_sink("r1.%02d.fq", "r2.%02d.fq", "sample.fq")
    assert isinstance(paired, PairedSink)
    assert all(isinstance(side, SplitSink) for side in paired.sides)
