"""
Playback Module: Two-deck crossfade scheduling.

- Deck: one of two alternating playback slots over an external player
- DeckScheduler: timed gain automation and deck-role handoff
- TransportController: start, play/pause, next/prev, playlist edits
- Single-threaded: at most one deferred action pending per session
"""

__all__ = ["announce", "clock", "deck", "scheduler", "simulated", "transport"]
