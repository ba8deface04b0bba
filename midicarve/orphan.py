"""
Orphan Tracks — default MThd for MTrk chunks found with no header.

Usually means the source was fragmented and the song's header lives
somewhere else (or nowhere).  The fabricated header claims every MTrk up
to the next MThd, which is as far as these tracks can plausibly belong
together.
"""

import logging

from .records import HeaderRecord
from .signatures import MTHD, MTRK, CarvePolicy, DEFAULT_POLICY

logger = logging.getLogger(__name__)


def count_orphan_tracks(data, pos: int) -> int:
    """Count MTrk tags from `pos` up to the next MThd (or end of data)."""
    stop = data.find(MTHD, pos)
    if stop == -1:
        stop = len(data)
    count = 0
    hit = data.find(MTRK, pos, stop)
    while hit != -1:
        count += 1
        hit = data.find(MTRK, hit + 1, stop)
    return count


def synthesize_header(data, pos: int,
                      policy: CarvePolicy = DEFAULT_POLICY) -> HeaderRecord:
    logger.warning("Found an orphan MIDI track at %d, source is maybe fragmented", pos)
    count = count_orphan_tracks(data, pos)
    logger.info(
        "Generated a default type %d MThd; found %d MTrk tags up to the next MThd",
        policy.orphan_format_type, count,
    )
    header = HeaderRecord(
        format_type=policy.orphan_format_type,
        track_count=count,
        time_division=policy.orphan_time_division,
        is_damaged=True,
        is_synthesized=True,
        declared_track_count=count,
    )
    header.issues.append(f"Orphan MTrk at {pos}, header synthesized")
    return header
