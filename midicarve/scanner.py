"""
MIDI Scanner — top-level carving loop over a raw blob.

HOW IT WORKS
────────────
1.  Load the whole blob (mmap where possible).
2.  Walk it byte by byte (bytes.find() between candidates) for a tag:
      • MThd  → parse the header, recover its tracks, write the song
      • MTrk  → orphan track: synthesize a header, recover, write
      • else  → skip ahead to the next candidate
3.  After each song, jump past every byte it consumed.  A track cut short
    by an overwriting MThd gives those bytes back, so the next song is
    picked up from its own header.

Each song is written (or refused) and released before the scan moves on.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Optional, Callable

from .chunk_parser import parse_header
from .engine import extract_midi
from .mmap_reader import BlobReader
from .orphan import synthesize_header
from .records import HeaderRecord
from .signatures import MTHD, MTRK, CarvePolicy, DEFAULT_POLICY
from .writer import MidiWriter, WriteResult

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
#  Data Classes
# ─────────────────────────────────────────────────────────────

@dataclass
class CarvedMidi:
    """One song carved from the blob."""
    offset: int                     # MThd (or first orphan MTrk) in the blob
    suffix: str                     # OK, BAD, ORPH
    filename: str
    format_type: int = 1
    track_count: int = 0
    declared_track_count: int = 0
    time_division: int = 0
    is_damaged: bool = False
    is_synthesized: bool = False
    size: int = 0
    md5: str = ""
    recovered_path: str = ""        # Empty in preview mode or when refused
    is_saved: bool = False
    is_refused: bool = False
    error: str = ""
    integrity_ok: Optional[bool] = None
    issues: list[str] = field(default_factory=list)

    @property
    def size_human(self) -> str:
        return _human_size(self.size)

    @property
    def missing_tracks(self) -> int:
        return max(0, self.declared_track_count - self.track_count)

    @classmethod
    def from_header(cls, header: HeaderRecord, result: WriteResult) -> "CarvedMidi":
        return cls(
            offset=result.offset,
            suffix=header.suffix,
            filename=result.filename,
            format_type=header.format_type,
            track_count=header.track_count,
            declared_track_count=header.declared_track_count,
            time_division=header.time_division,
            is_damaged=header.is_damaged,
            is_synthesized=header.is_synthesized,
            size=result.size,
            md5=result.md5,
            recovered_path=result.path,
            is_saved=result.written,
            is_refused=result.refused,
            error=result.error,
            integrity_ok=result.integrity.passed if result.integrity else None,
            issues=list(header.issues),
        )


@dataclass
class ScanProgress:
    total_bytes: int = 0
    current_offset: int = 0
    headers_found: int = 0
    orphans_found: int = 0
    files_written: int = 0
    files_refused: int = 0
    elapsed_time: float = 0.0
    is_scanning: bool = False

    @property
    def files_found(self) -> int:
        return self.headers_found + self.orphans_found

    @property
    def progress_percent(self) -> float:
        if self.total_bytes == 0:
            return 0.0
        return min(100.0, (self.current_offset / self.total_bytes) * 100)


# ─────────────────────────────────────────────────────────────
#  Scanner
# ─────────────────────────────────────────────────────────────

class MidiScanner:
    """
    Signature-driven MIDI carver.

    Finds MThd/MTrk tags anywhere in a blob, rebuilds the songs around
    them, and writes each one to the output directory.
    """

    def __init__(self, policy: CarvePolicy = DEFAULT_POLICY):
        self.policy = policy
        self.progress = ScanProgress()
        self.results: list[CarvedMidi] = []
        self._on_progress: Optional[Callable] = None
        self._on_file_found: Optional[Callable] = None

    def set_progress_callback(self, cb):
        self._on_progress = cb

    def set_file_found_callback(self, cb):
        self._on_file_found = cb

    def scan(self, blob_path: str, output_dir: str,
             preview_only: bool = False) -> list[CarvedMidi]:
        """Carve every MIDI song out of the file at `blob_path`.

        Raises:
            BlobLoadError: the blob can't be opened or read.
        """
        with BlobReader(blob_path) as reader:
            logger.info("Scanning %s (%d bytes, %s)", blob_path, reader.size,
                        "mmap" if reader.is_mmap else "in RAM")
            return self.scan_buffer(reader.data, output_dir, preview_only)

    def scan_buffer(self, data, output_dir: str,
                    preview_only: bool = False) -> list[CarvedMidi]:
        """Carve every MIDI song out of an in-memory buffer."""
        writer = MidiWriter(output_dir, preview_only=preview_only)
        size = len(data)
        self.progress = ScanProgress(total_bytes=size, is_scanning=True)
        self.results = []
        start = time.time()

        i = 0
        while i < size:
            if data[i:i + 4] == MTRK:
                self.progress.orphans_found += 1
                header = synthesize_header(data, i, self.policy)
                i += self._carve(header, data, i, i, writer)
            elif data[i:i + 4] == MTHD:
                logger.info("Found a MIDI header starting at %d", i)
                self.progress.headers_found += 1
                header, consumed = parse_header(data, i)
                i += consumed + self._carve(header, data, i + consumed, i, writer)
            else:
                # Both tags start with "M"; skip straight to the next one
                i = data.find(b"M", i + 1)
                if i == -1:
                    break

        self.progress.current_offset = size
        self.progress.elapsed_time = time.time() - start
        self.progress.is_scanning = False
        logger.info(
            "Scan complete: %d song(s), %d written, %d refused in %.1fs",
            len(self.results), self.progress.files_written,
            self.progress.files_refused, self.progress.elapsed_time,
        )
        return self.results

    def _carve(self, header: HeaderRecord, data, pos: int, offset: int,
               writer: MidiWriter) -> int:
        consumed = extract_midi(header, data, pos, offset, writer, self.policy)
        rf = CarvedMidi.from_header(header, writer.results[-1])
        self.results.append(rf)

        if rf.is_refused:
            self.progress.files_refused += 1
        elif rf.is_saved:
            self.progress.files_written += 1
        if not rf.is_refused and self._on_file_found:
            self._on_file_found(rf)

        self.progress.current_offset = pos + consumed
        if self._on_progress:
            self._on_progress(self.progress)
        return consumed

    def get_recovery_log(self) -> list[dict]:
        return [
            {
                "offset": rf.offset,
                "offset_hex": f"0x{rf.offset:X}",
                "filename": rf.filename,
                "status": "refused" if rf.is_refused else rf.suffix,
                "format_type": rf.format_type,
                "tracks": rf.track_count,
                "declared_tracks": rf.declared_track_count,
                "time_division": rf.time_division,
                "size": rf.size,
                "size_human": rf.size_human,
                "md5": rf.md5,
                "saved_to": rf.recovered_path,
                "integrity_ok": rf.integrity_ok,
                "error": rf.error,
                "issues": rf.issues,
            }
            for rf in self.results
        ]


def _human_size(nbytes: int) -> str:
    size = float(nbytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"
