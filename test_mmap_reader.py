"""
Tests for loading the input blob.
"""
import os
import shutil
import tempfile

import pytest

from midicarve.mmap_reader import BlobLoadError, BlobReader, load_blob


def test_blob_reader_mmap():
    tmpdir = tempfile.mkdtemp(prefix="test_blob_")
    try:
        path = os.path.join(tmpdir, "blob.bin")
        data = b"A" * 4096 + b"MThd" + b"B" * 4096
        with open(path, "wb") as f:
            f.write(data)

        with BlobReader(path) as reader:
            assert reader.size == len(data)
            assert reader.is_mmap is True
            assert reader.data[4096:4100] == b"MThd"
            assert reader.data.find(b"MThd") == 4096
            assert len(reader.data) == len(data)

        with BlobReader(path, use_mmap=False) as reader:
            assert reader.is_mmap is False
            assert reader.data == data
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_empty_blob():
    tmpdir = tempfile.mkdtemp(prefix="test_blob_")
    try:
        path = os.path.join(tmpdir, "empty.bin")
        open(path, "wb").close()
        with BlobReader(path) as reader:
            assert reader.size == 0
            assert reader.is_mmap is False
            assert reader.data == b""
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_load_blob():
    tmpdir = tempfile.mkdtemp(prefix="test_blob_")
    try:
        path = os.path.join(tmpdir, "blob.bin")
        with open(path, "wb") as f:
            f.write(b"\x00MTrk\x00")
        assert load_blob(path) == b"\x00MTrk\x00"
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_missing_blob():
    with pytest.raises(BlobLoadError):
        BlobReader("/nonexistent/path/blob.img")


def test_directory_is_not_a_blob():
    tmpdir = tempfile.mkdtemp(prefix="test_blob_")
    try:
        with pytest.raises(BlobLoadError):
            load_blob(tmpdir)
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def main():
    print("=" * 60)
    print("  MIDI Carver — mmap reader tests")
    print("=" * 60)

    for name, fn in sorted(globals().items()):
        if name.startswith("test_") and callable(fn):
            fn()
            print(f"  ✅ {name}: PASS")

    print()
    print("  ALL TESTS PASSED ✅")


if __name__ == "__main__":
    main()
