"""
Chunk Signatures & Carving Policy — Standard MIDI File layout constants.

A Standard MIDI File is a sequence of chunks, each one a 4-byte ASCII tag
followed by a 32-bit big-endian length:

  • MThd  — header chunk, always 6 bytes of body
            (format type, track count, time division; u16 BE each)
  • MTrk  — track chunk, `length` bytes of event data that must close
            with the end-of-track meta event 00 FF 2F 00

The carver finds both tags by content alone, so the only knobs it has are
how far it may search after losing sync and how far back it may look for
a header that overwrote a running track.  Those live in CarvePolicy.
"""

from dataclasses import dataclass


MTHD = b"MThd"
MTRK = b"MTrk"

# Delta-time 0 + meta event 0x2F ("end of track") with zero-length body
END_OF_TRACK = b"\x00\xFF\x2F\x00"
END_OF_TRACK_SUFFIX = END_OF_TRACK[1:]

SIGNATURE_SIZE = 4
HEADER_CHUNK_LENGTH = 6
HEADER_SIZE = 14          # tag + length + 3 × u16; all the carver ever consumes
TRACK_PREAMBLE = 8        # tag + length

MAX_MIDI_TYPE = 2


@dataclass(frozen=True)
class CarvePolicy:
    """Tunable limits for the recovery heuristics."""
    max_resync_distance: int = 32768    # Bytes searched for MTrk after losing sync
    min_backtrack: int = 8              # Backtrack for MThd stops above this chunk offset
    orphan_format_type: int = 1
    orphan_time_division: int = 120


DEFAULT_POLICY = CarvePolicy()


def matches_at(data, pos: int, signature: bytes) -> bool:
    """True if `signature` occurs in `data` exactly at `pos`.

    Positions that run past the end of the buffer simply don't match.
    """
    if pos < 0:
        return False
    return data[pos:pos + len(signature)] == signature
