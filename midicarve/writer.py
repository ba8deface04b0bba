"""
MIDI Writer — canonical Standard MIDI File output for carved songs.

Output layout (big-endian throughout):
  MThd  u32(6)  u16 format  u16 track_count  u16 time_division
  MTrk  u32 length  payload        ← once per track, in chain order

Files are named mc-<offset:08d>-<SUFFIX>.mid where SUFFIX is
  ORPH  — header was synthesized for orphan tracks
  OK    — nothing needed repair
  BAD   — recovered with repairs

After saving, the file is read back and checked against the serialized
bytes (size + MD5).
"""

from __future__ import annotations

import os
import struct
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Optional

from .records import HeaderRecord
from .signatures import MTHD, MTRK, HEADER_CHUNK_LENGTH

logger = logging.getLogger(__name__)


@dataclass
class IntegrityCheck:
    """Result of post-save readback verification."""
    passed: bool = False
    actual_md5: str = ""
    actual_size: int = 0
    issues: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        if self.passed:
            return f"readback OK, md5 {self.actual_md5}"
        return "; ".join(self.issues)


@dataclass
class WriteResult:
    """Outcome of handing one header to the writer."""
    offset: int
    filename: str
    path: str = ""
    size: int = 0
    md5: str = ""
    written: bool = False
    refused: bool = False
    error: str = ""
    integrity: Optional[IntegrityCheck] = None


def output_filename(header: HeaderRecord, offset: int) -> str:
    return f"mc-{offset:08d}-{header.suffix}.mid"


def serialize_midi(header: HeaderRecord) -> bytes:
    """Build the complete SMF byte stream for `header` and its tracks."""
    out = bytearray()
    out += MTHD
    out += struct.pack(
        ">IHHH",
        HEADER_CHUNK_LENGTH,
        header.format_type & 0xFFFF,
        header.track_count & 0xFFFF,
        header.time_division & 0xFFFF,
    )
    for track in header.tracks:
        out += MTRK
        out += struct.pack(">I", track.length)
        out += track.payload
    return bytes(out)


def verify_saved_file(file_path: str, expected_data: bytes) -> IntegrityCheck:
    """Read a saved file back and compare it with what was meant to be written."""
    check = IntegrityCheck()
    try:
        with open(file_path, "rb") as f:
            saved = f.read()
    except OSError as e:
        check.issues.append(f"Cannot read saved file: {e}")
        return check

    check.actual_size = len(saved)
    check.actual_md5 = hashlib.md5(saved).hexdigest()
    if check.actual_size != len(expected_data):
        check.issues.append(
            f"{check.actual_size} bytes on disk, {len(expected_data)} serialized")
    if check.actual_md5 != hashlib.md5(expected_data).hexdigest():
        check.issues.append("MD5 differs from serialized data")

    check.passed = not check.issues
    return check


class MidiWriter:
    """
    Serializes finished headers into an output directory.

    The directory must already exist.  In preview mode every step runs
    except the actual file write.
    """

    def __init__(self, output_dir: str, preview_only: bool = False,
                 verify: bool = True):
        self.output_dir = output_dir
        self.preview_only = preview_only
        self.verify = verify
        self.results: list[WriteResult] = []

    def write(self, header: HeaderRecord, offset: int) -> WriteResult:
        """Serialize `header`, save it, and release its tracks.

        A header without tracks is refused and nothing is written.
        """
        if not header.has_tracks:
            return self.refuse(header, offset)

        result = WriteResult(offset=offset, filename=output_filename(header, offset))
        self.results.append(result)

        data = serialize_midi(header)
        result.size = len(data)
        result.md5 = hashlib.md5(data).hexdigest()
        header.release()

        if self.preview_only:
            logger.info("Preview: %s (%d bytes)", result.filename, result.size)
            return result

        path = os.path.join(self.output_dir, result.filename)
        try:
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error("Could not open %s for writing: %s", path, e)
            result.error = str(e)
            return result

        result.path = path
        result.written = True
        logger.info("Success! Wrote %s to disk", path)

        if self.verify:
            result.integrity = verify_saved_file(path, data)
            if not result.integrity.passed:
                logger.error("Integrity check failed for %s: %s",
                             path, result.integrity.summary)
        return result

    def refuse(self, header: HeaderRecord, offset: int) -> WriteResult:
        """Record a header that ended up with no tracks; nothing is written."""
        logger.warning("Refusing to write trackless MIDI file (offset %d)", offset)
        result = WriteResult(offset=offset, filename=output_filename(header, offset),
                             refused=True)
        self.results.append(result)
        header.release()
        return result
