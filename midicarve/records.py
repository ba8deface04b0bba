"""
Carved Records — header and track structures built while scanning.

A HeaderRecord owns its tracks outright.  Records are filled in while their
own chunk is being recovered, handed to the writer once, and released there.
"""

from dataclasses import dataclass, field

from .signatures import END_OF_TRACK


@dataclass
class TrackRecord:
    """One MTrk chunk as it will be written out."""
    payload: bytes
    truncation_adjustment: bool = False     # 4 synthetic terminator bytes appended
    repair: str = "exact"                   # exact, partial, split, truncated
    source_length: int = 0                  # Length field as found in the blob

    @property
    def length(self) -> int:
        return len(self.payload)

    @property
    def is_terminated(self) -> bool:
        return self.payload.endswith(END_OF_TRACK)


@dataclass
class HeaderRecord:
    """One MThd chunk plus the tracks recovered for it."""
    format_type: int = 1
    track_count: int = 0
    time_division: int = 0
    is_damaged: bool = False
    is_synthesized: bool = False
    declared_track_count: int = 0
    header_length: int = 6
    tracks: list[TrackRecord] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    is_released: bool = False

    @property
    def has_tracks(self) -> bool:
        return bool(self.tracks)

    @property
    def suffix(self) -> str:
        if self.is_synthesized:
            return "ORPH"
        if not self.is_damaged:
            return "OK"
        return "BAD"

    def append_track(self, track: TrackRecord):
        self.tracks.append(track)

    def mark_damaged(self, issue: str):
        self.is_damaged = True
        self.issues.append(issue)

    def release(self):
        """Drop the track chain once it has been serialized."""
        self.tracks.clear()
        self.is_released = True
