"""
Tests for SMF serialization, output naming, refusal and readback checks.
"""
import os
import shutil
import struct
import tempfile

from midicarve.records import HeaderRecord, TrackRecord
from midicarve.signatures import END_OF_TRACK
from midicarve.writer import (
    MidiWriter,
    output_filename,
    serialize_midi,
    verify_saved_file,
)

PAYLOAD = b"\x00\x90\x3C\x40\x60\x80\x3C\x40" + END_OF_TRACK


def _header(**kwargs):
    header = HeaderRecord(format_type=1, track_count=1, time_division=96, **kwargs)
    header.append_track(TrackRecord(payload=PAYLOAD))
    return header


def test_serialize_layout():
    header = _header()
    header.append_track(TrackRecord(payload=END_OF_TRACK))
    header.track_count = 2
    data = serialize_midi(header)
    expected = (
        b"MThd" + struct.pack(">IHHH", 6, 1, 2, 96)
        + b"MTrk" + struct.pack(">I", len(PAYLOAD)) + PAYLOAD
        + b"MTrk" + struct.pack(">I", 4) + END_OF_TRACK
    )
    assert data == expected


def test_serialize_always_writes_header_length_6():
    header = _header(header_length=10)
    assert serialize_midi(header)[4:8] == b"\x00\x00\x00\x06"


def test_output_names():
    assert output_filename(HeaderRecord(), 64) == "mc-00000064-OK.mid"
    assert output_filename(HeaderRecord(is_damaged=True), 1234) == "mc-00001234-BAD.mid"
    orphan = HeaderRecord(is_damaged=True, is_synthesized=True)
    assert output_filename(orphan, 100) == "mc-00000100-ORPH.mid"
    assert output_filename(HeaderRecord(), 123456789) == "mc-123456789-OK.mid"


def test_write_and_release():
    tmpdir = tempfile.mkdtemp(prefix="test_writer_")
    try:
        header = _header()
        expected = serialize_midi(header)
        writer = MidiWriter(tmpdir)
        result = writer.write(header, 42)

        assert result.written is True
        assert result.filename == "mc-00000042-OK.mid"
        assert result.path == os.path.join(tmpdir, "mc-00000042-OK.mid")
        assert result.size == len(expected)
        with open(result.path, "rb") as f:
            assert f.read() == expected

        assert result.integrity is not None
        assert result.integrity.passed is True
        assert result.integrity.summary == f"readback OK, md5 {result.md5}"

        # The chain is gone once it has been written
        assert header.tracks == []
        assert header.is_released is True
        assert writer.results == [result]
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_trackless_header_refused():
    tmpdir = tempfile.mkdtemp(prefix="test_writer_")
    try:
        writer = MidiWriter(tmpdir)
        result = writer.write(HeaderRecord(track_count=0), 0)
        assert result.refused is True
        assert result.written is False
        assert os.listdir(tmpdir) == []
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_preview_writes_nothing():
    tmpdir = tempfile.mkdtemp(prefix="test_writer_")
    try:
        writer = MidiWriter(tmpdir, preview_only=True)
        result = writer.write(_header(), 0)
        assert result.written is False
        assert result.refused is False
        assert result.size == 14 + 8 + len(PAYLOAD)
        assert len(result.md5) == 32
        assert os.listdir(tmpdir) == []
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_unwritable_directory_is_reported():
    tmpdir = tempfile.mkdtemp(prefix="test_writer_")
    try:
        writer = MidiWriter(os.path.join(tmpdir, "missing"))
        result = writer.write(_header(), 0)
        assert result.written is False
        assert result.error
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_verify_saved_file_mismatch():
    tmpdir = tempfile.mkdtemp(prefix="test_writer_")
    try:
        path = os.path.join(tmpdir, "x.mid")
        with open(path, "wb") as f:
            f.write(b"MThd")
        check = verify_saved_file(path, b"MThd\x00")
        assert check.passed is False
        assert len(check.issues) == 2
        assert check.summary == "4 bytes on disk, 5 serialized; MD5 differs from serialized data"

        missing = verify_saved_file(os.path.join(tmpdir, "nope.mid"), b"")
        assert missing.passed is False
        assert missing.summary.startswith("Cannot read saved file")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def main():
    print("=" * 60)
    print("  MIDI Carver — writer tests")
    print("=" * 60)

    for name, fn in sorted(globals().items()):
        if name.startswith("test_") and callable(fn):
            fn()
            print(f"  ✅ {name}: PASS")

    print()
    print("  ALL TESTS PASSED ✅")


if __name__ == "__main__":
    main()
