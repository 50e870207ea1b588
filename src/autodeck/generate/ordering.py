"""
Tempo-proximity ordering ("smart order").

The first track is the anchor and never moves. The rest are sorted by
|bpm - anchor bpm| ascending; Python's sort is stable, so equal
distances keep their original relative order. Unknown BPMs compare as
the fallback tempo but the tracks themselves are not modified.
"""

import logging
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

FALLBACK_BPM = 120


def _effective_bpm(bpm: Optional[float], fallback_bpm: float) -> float:
    # 0 is treated as unknown too
    return bpm if bpm else fallback_bpm


def tempo_distance(anchor_bpm: Optional[float], bpm: Optional[float], fallback_bpm: float = FALLBACK_BPM) -> float:
    """Absolute BPM difference with unknowns mapped to fallback_bpm."""
    return abs(_effective_bpm(anchor_bpm, fallback_bpm) - _effective_bpm(bpm, fallback_bpm))


def order_by_tempo(tracks: Sequence, fallback_bpm: float = FALLBACK_BPM) -> List:
    """
    Order tracks by tempo proximity to the anchor (first track).

    Args:
        tracks: Sequence of objects with a ``bpm`` attribute
        fallback_bpm: Tempo assumed for tracks with unknown BPM

    Returns:
        New list; the input is left untouched. Fewer than two tracks
        are returned as-is.
    """
    ordered = list(tracks)
    if len(ordered) < 2:
        return ordered

    anchor, rest = ordered[0], ordered[1:]
    rest.sort(key=lambda t: tempo_distance(anchor.bpm, t.bpm, fallback_bpm))

    logger.debug(
        f"Ordered {len(rest)} tracks around anchor {getattr(anchor, 'name', anchor)} "
        f"({_effective_bpm(anchor.bpm, fallback_bpm)} BPM)"
    )
    return [anchor] + rest
