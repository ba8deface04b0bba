"""
Recovery Engine — fill a header's track chain from the bytes after it.

Walks forward from the end of an MThd, pulling MTrk chunks until the
header's track count is met.  Three things can interrupt it:

  • another MThd          → a new song starts early; stop and shrink the count
  • neither tag           → sync lost; search ahead (bounded) for the next MTrk,
                            never stepping into another song's MThd
  • search comes up empty → stop and shrink the count

Whatever was recovered goes to the writer exactly once.
"""

import logging

from .chunk_parser import parse_track
from .records import HeaderRecord
from .signatures import (
    MTHD,
    MTRK,
    END_OF_TRACK,
    CarvePolicy,
    DEFAULT_POLICY,
    matches_at,
)

logger = logging.getLogger(__name__)


def find_resync_point(data, pos: int, limit: int) -> int:
    """Search forward from `pos` for the next MTrk.

    Looks at most `limit` bytes ahead and gives up as soon as an MThd
    shows up first.

    Returns:
        Distance from `pos` to the MTrk, or -1.
    """
    for j in range(1, limit):
        at = pos + j
        if matches_at(data, at, MTHD):
            logger.debug("Resync search ran into an MThd at %d", at)
            return -1
        if matches_at(data, at, MTRK):
            return j
    return -1


def recover_tracks(header: HeaderRecord, data, pos: int,
                   policy: CarvePolicy = DEFAULT_POLICY) -> int:
    """Append every recoverable track following `pos` to `header`.

    Args:
        header: Parsed (or synthesized) header; mutated in place.
        data:   The whole blob.
        pos:    Offset of the first byte after the header.
        policy: Resync and backtrack limits.

    Returns:
        Number of bytes consumed from `pos`.
    """
    end = len(data)
    cursor = pos
    found = 0

    while found < header.track_count:
        if matches_at(data, cursor, MTHD):
            logger.warning(
                "Collision with another MIDI, came up short in tracks "
                "(expected %d, got %d)", header.track_count, found,
            )
            header.mark_damaged(
                f"Next song starts at {cursor} after {found} of "
                f"{header.track_count} tracks")
            header.track_count = found
            break

        if not matches_at(data, cursor, MTRK):
            logger.warning(
                "Missing MTrk tag for track %d at %d; starting recovery search",
                found, cursor,
            )
            header.mark_damaged(f"Missing MTrk tag for track {found} at {cursor}")
            limit = min(end - cursor, policy.max_resync_distance)
            gap = find_resync_point(data, cursor, limit)
            if gap == -1:
                logger.warning(
                    "Recovery search exceeded end of data or %d bytes, or entered "
                    "another MIDI header. Truncating MIDI file here.",
                    policy.max_resync_distance,
                )
                header.issues.append(
                    f"Lost sync at {cursor}, kept {found} of "
                    f"{header.track_count} tracks")
                header.track_count = found
                break
            logger.info(
                "Found an MTrk tag at %d. %d bytes were lost, but sync regained.",
                cursor + gap, gap,
            )
            cursor += gap
            continue

        logger.info("Found MTrk for track %d at %d", found, cursor)
        track, consumed = parse_track(data, cursor, policy)
        if track.truncation_adjustment:
            consumed -= len(END_OF_TRACK)
            header.mark_damaged(
                f"Track {found} {track.repair}: terminator appended "
                f"({track.source_length} -> {track.length} bytes)")
        cursor += consumed
        header.append_track(track)
        found += 1

    return cursor - pos


def extract_midi(header: HeaderRecord, data, pos: int, offset: int,
                 sink, policy: CarvePolicy = DEFAULT_POLICY) -> int:
    """Recover the tracks for `header` and hand it to `sink`.

    `offset` is where the song starts in the blob (the MThd, or the first
    orphan MTrk) and only feeds the output name.

    Returns:
        Number of bytes consumed from `pos`.
    """
    consumed = recover_tracks(header, data, pos, policy)
    if header.has_tracks:
        sink.write(header, offset)
    else:
        sink.refuse(header, offset)
    return consumed

