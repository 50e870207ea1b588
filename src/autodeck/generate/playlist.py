"""
Track records and the ordered playlist a mixing session plays from.

Tracks are immutable once ingested; the playlist owns them and releases
their audio resource when they are removed.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Optional

from .ordering import order_by_tempo

logger = logging.getLogger(__name__)


def format_time(seconds: Optional[float]) -> str:
    """Format seconds as m:ss ("0:00" for unknown)."""
    if seconds is None or not math.isfinite(seconds):
        return "0:00"
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}:{secs:02d}"


@dataclass(frozen=True)
class Track:
    """Immutable container for an ingested track."""

    id: str
    name: str
    audio_handle: Any
    bpm: Optional[int] = None
    duration: Optional[float] = None

    def release(self) -> None:
        """Release the audio resource behind audio_handle, if it holds one."""
        close = getattr(self.audio_handle, "close", None)
        if callable(close):
            try:
                close()
            except Exception as e:
                logger.warning(f"Failed to release audio for {self.name}: {e}")

    def __str__(self) -> str:
        bpm = f"{self.bpm} BPM" if self.bpm is not None else "? BPM"
        return f"{self.name} ({bpm}, {format_time(self.duration)})"


class PlaylistSequence:
    """Ordered, mutable list of tracks; insertion order is play order."""

    def __init__(self, tracks: Optional[Iterable[Track]] = None):
        self._tracks: List[Track] = list(tracks or [])

    def __len__(self) -> int:
        return len(self._tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(self._tracks)

    def __getitem__(self, index: int) -> Track:
        return self._tracks[index]

    def get(self, index: int) -> Optional[Track]:
        """Track at index, or None when out of range (negative included)."""
        if 0 <= index < len(self._tracks):
            return self._tracks[index]
        return None

    @property
    def tracks(self) -> List[Track]:
        return list(self._tracks)

    def index_of(self, track_id: str) -> Optional[int]:
        for idx, track in enumerate(self._tracks):
            if track.id == track_id:
                return idx
        return None

    def add(self, track: Track) -> None:
        self._tracks.append(track)

    def extend(self, tracks: Iterable[Track]) -> None:
        self._tracks.extend(tracks)

    def remove(self, track_id: str) -> Optional[Track]:
        """
        Remove a track and release its audio resource.

        Returns:
            The removed Track, or None if no track has that id
        """
        idx = self.index_of(track_id)
        if idx is None:
            logger.warning(f"Cannot remove unknown track {track_id}")
            return None
        track = self._tracks.pop(idx)
        track.release()
        logger.info(f"Removed track {track.name}")
        return track

    def move_up(self, index: int) -> bool:
        """Swap the track at index with its predecessor; no-op at the top."""
        if index <= 0 or index >= len(self._tracks):
            return False
        self._tracks[index - 1], self._tracks[index] = self._tracks[index], self._tracks[index - 1]
        return True

    def move_down(self, index: int) -> bool:
        """Swap the track at index with its successor; no-op at the bottom."""
        if index < 0 or index >= len(self._tracks) - 1:
            return False
        self._tracks[index], self._tracks[index + 1] = self._tracks[index + 1], self._tracks[index]
        return True

    def auto_order(self, fallback_bpm: int = 120) -> bool:
        """Reorder in place by tempo proximity to the first track."""
        if len(self._tracks) < 2:
            return False
        self._tracks = order_by_tempo(self._tracks, fallback_bpm)
        return True

    def total_duration(self) -> float:
        """Sum of known durations in seconds."""
        return sum(t.duration or 0.0 for t in self._tracks)

    def __repr__(self) -> str:
        return f"PlaylistSequence({len(self._tracks)} tracks)"
