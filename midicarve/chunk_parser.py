"""
Chunk Parser — MThd and MTrk extraction with trailer repair.

HEADER
──────
The MThd body is read at fixed offsets and exactly 14 bytes are consumed,
whatever length the chunk claims.  Recovery downstream resyncs on real
MTrk tags, never on declared sizes.

TRACK TRAILER REPAIR
────────────────────
A track must end with 00 FF 2F 00 as the last four bytes of its declared
payload.  When it doesn't, one of these applies (first match wins):

  1. exact      — full end-of-track marker where expected
  2. partial    — only FF 2F 00 matches (non-zero delta before the meta
                  event); accepted as-is
  3. split      — backtrack from the expected marker finds an MThd inside
                  the payload: the track was saved over by another song.
                  Cut at the MThd and append a terminator.
  4. truncated  — no MThd found: keep the declared payload and append a
                  terminator.

Cases 3 and 4 set truncation_adjustment: the 4 appended bytes never
existed in the blob, so the caller advances 4 bytes less than
8 + track.length.
"""

import struct
import logging
from typing import Optional

from .records import HeaderRecord, TrackRecord
from .signatures import (
    MTHD,
    MTRK,
    END_OF_TRACK,
    END_OF_TRACK_SUFFIX,
    SIGNATURE_SIZE,
    HEADER_CHUNK_LENGTH,
    HEADER_SIZE,
    TRACK_PREAMBLE,
    MAX_MIDI_TYPE,
    CarvePolicy,
    DEFAULT_POLICY,
    matches_at,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════
#  MThd
# ══════════════════════════════════════════════════════════════

def parse_header(data, pos: int = 0) -> Optional[tuple[HeaderRecord, int]]:
    """Parse an MThd chunk at `pos`.

    Returns:
        (HeaderRecord, bytes consumed) or None if there is no MThd here.
    """
    if not matches_at(data, pos, MTHD):
        return None

    raw = bytes(data[pos:pos + HEADER_SIZE])
    header = HeaderRecord()
    if len(raw) < HEADER_SIZE:
        # Blob ends inside the header; missing fields read as zero
        header.issues.append(
            f"Header cut short by end of data ({len(raw)} of {HEADER_SIZE} bytes)")
        logger.warning("MThd at %d cut short by end of data", pos)
        raw = raw.ljust(HEADER_SIZE, b"\x00")

    chunk_length, format_type, track_count, time_division = struct.unpack_from(
        ">IHHH", raw, SIGNATURE_SIZE)

    header.header_length = chunk_length
    if chunk_length == HEADER_CHUNK_LENGTH:
        logger.debug("Header indicates %d bytes length", chunk_length)
    else:
        header.issues.append(
            f"Header length is {chunk_length}, expected {HEADER_CHUNK_LENGTH}")
        logger.warning(
            "Header size says %d bytes, should be %d. Continuing anyway.",
            chunk_length, HEADER_CHUNK_LENGTH,
        )

    if format_type > MAX_MIDI_TYPE:
        header.issues.append(f"MIDI type {format_type} outside 0-{MAX_MIDI_TYPE}")
        logger.warning(
            "MIDI file is type %d (should be 0-%d). Continuing anyway.",
            format_type, MAX_MIDI_TYPE,
        )
    else:
        logger.info("MIDI file says it is type %d", format_type)

    logger.info("MIDI says there should be %d tracks here", track_count)
    if format_type == 0 and track_count != 1:
        # Type 0 is single-track by definition; fall back to the looser type
        header.issues.append(
            f"Type 0 with {track_count} tracks, altered to type 1")
        logger.warning(
            "Type 0 should have only 1 track, found %d. Altering to type 1.",
            track_count,
        )
        format_type = 1

    logger.debug("MIDI time division: %d", time_division)

    header.format_type = format_type
    header.track_count = track_count
    header.declared_track_count = track_count
    header.time_division = time_division
    return header, HEADER_SIZE


# ══════════════════════════════════════════════════════════════
#  MTrk
# ══════════════════════════════════════════════════════════════

def parse_track(data, pos: int = 0,
                policy: CarvePolicy = DEFAULT_POLICY) -> Optional[tuple[TrackRecord, int]]:
    """Parse an MTrk chunk at `pos`, repairing its trailer if needed.

    Returns:
        (TrackRecord, 8 + track.length) or None if there is no MTrk here.
        When track.truncation_adjustment is set the caller must advance
        4 bytes less than the returned count.
    """
    if not matches_at(data, pos, MTRK):
        logger.debug("Expected MTrk at %d but couldn't find it", pos)
        return None

    length_field = bytes(data[pos + SIGNATURE_SIZE:pos + TRACK_PREAMBLE])
    if len(length_field) < 4:
        logger.warning("MTrk at %d has no room for its length field", pos)
        length_field = length_field.ljust(4, b"\x00")
    (length,) = struct.unpack(">I", length_field)
    logger.info("MTrk is %d bytes long", length)

    payload_start = pos + TRACK_PREAMBLE
    eot_pos = pos + SIGNATURE_SIZE + length     # last 4 bytes of the payload

    if matches_at(data, eot_pos, END_OF_TRACK):
        logger.info("Got complete end-of-track, seems consistent enough")
        track = TrackRecord(
            payload=bytes(data[payload_start:payload_start + length]),
            repair="exact", source_length=length,
        )
        return track, TRACK_PREAMBLE + track.length

    if matches_at(data, eot_pos + 1, END_OF_TRACK_SUFFIX):
        logger.info("Got partial (FF 2F 00) end-of-track, unusual but OK")
        track = TrackRecord(
            payload=bytes(data[payload_start:payload_start + length]),
            repair="partial", source_length=length,
        )
        return track, TRACK_PREAMBLE + track.length

    found = bytes(data[eot_pos:eot_pos + 4])
    logger.warning(
        "Expected end-of-track but got %s; backtracking for an overwriting MThd",
        found.hex(" ") or "end of data",
    )

    split_at = _backtrack_for_header(data, pos, length, policy)
    if split_at is not None:
        logger.warning(
            "Song was saved over, terminating and splitting here (%d -> %d)",
            length, split_at - TRACK_PREAMBLE,
        )
        body = bytes(data[payload_start:pos + split_at])
        repair = "split"
    else:
        logger.warning(
            "File was simply damaged, appending a terminator and hoping for the best")
        body = bytes(data[payload_start:payload_start + length])
        repair = "truncated"

    track = TrackRecord(
        payload=body + END_OF_TRACK,
        truncation_adjustment=True,
        repair=repair,
        source_length=length,
    )
    return track, TRACK_PREAMBLE + track.length


def _backtrack_for_header(data, pos: int, length: int,
                          policy: CarvePolicy) -> Optional[int]:
    """Walk back from the expected end-of-track looking for MThd.

    Returns the chunk-relative offset of the MThd, or None.
    """
    start = min(SIGNATURE_SIZE + length, len(data) - pos - SIGNATURE_SIZE)
    floor = max(policy.min_backtrack, TRACK_PREAMBLE - 1)
    if start <= floor:
        return None
    # Last MThd beginning in (floor, start]
    hit = data.rfind(MTHD, pos + floor + 1, pos + start + SIGNATURE_SIZE)
    if hit == -1:
        return None
    return hit - pos
