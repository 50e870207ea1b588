"""
Transport controls: the only public path that drives a MixerSession.

Every operation that could invalidate the pending deferred action
cancels it synchronously before touching the decks. Operations return
False when they are no-ops (empty playlist, clamped skip, ...) instead
of raising.
"""

import logging
from typing import Iterable

from ..generate.playlist import Track
from .deck import DeckRole
from .scheduler import DeckScheduler, MixerSession, ScheduleOutcome

logger = logging.getLogger(__name__)

MIN_CROSSFADE_SECONDS = 2
MAX_CROSSFADE_SECONDS = 20


class TransportController:
    """Start, play/pause, next/prev and playlist edits for one session."""

    def __init__(self, session: MixerSession):
        self.session = session
        self.scheduler = DeckScheduler(session)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Reset to the first track on deck A and start the mix."""
        session = self.session
        if not session.playlist:
            logger.warning("Cannot start: playlist is empty")
            return False

        session.cancel_pending()
        for deck in session.decks:
            deck.unbind()
        session.in_crossfade = False
        session.active_role = DeckRole.A
        session.current_index = 0

        logger.info("▶️ Starting mix")
        return self._play_on_active(0)

    def play(self) -> bool:
        """Resume output and reschedule from the live position."""
        session = self.session
        if not session.started or session.finished:
            return self.start()
        if session.is_playing:
            return False

        active = session.active_deck
        if active.track is None:
            return self.start()

        active.ramp_gain(1.0, session.resume_ramp)
        if not active.start():
            return False
        session.is_playing = True
        logger.info(f"▶️ Resumed at {active.position():.2f}s of {active.track.name}")
        self.scheduler.schedule_next()
        return True

    def pause(self) -> bool:
        """Halt both decks, keeping bindings; cancels the pending action."""
        session = self.session
        if not session.is_playing:
            return False

        session.cancel_pending()
        if session.in_crossfade:
            # The interrupted fade is redone from live position on resume
            session.inactive_deck.rearm()
            session.in_crossfade = False
        session.active_deck.pause()
        session.is_playing = False
        logger.info("⏸️ Paused")
        return True

    def next(self) -> bool:
        """Skip to the following track on the other deck; no-op at the end."""
        return self._jump(self.session.current_index + 1)

    def prev(self) -> bool:
        """Skip back to the previous track on the other deck; no-op at the start."""
        return self._jump(self.session.current_index - 1)

    def _jump(self, target: int) -> bool:
        session = self.session
        if session.playlist.get(target) is None:
            logger.debug(f"Skip to {target} ignored ({len(session.playlist)} tracks)")
            return False

        session.cancel_pending()
        session.active_deck.unbind()
        session.active_role = session.active_role.other()
        session.in_crossfade = False
        logger.info(f"⏭️ Skipping to [{target}] {session.playlist[target].name}")
        return self._play_on_active(target)

    def _play_on_active(self, index: int) -> bool:
        session = self.session
        deck = session.active_deck
        deck.bind(session.playlist[index], index)
        session.current_index = index
        deck.ramp_gain(1.0, session.resume_ramp)
        if not deck.start():
            return False
        session.started = True
        session.finished = False
        session.is_playing = True
        self.scheduler.schedule_next()
        return True

    # ------------------------------------------------------------------
    # Audio subsystem events
    # ------------------------------------------------------------------

    def on_metadata_loaded(self, role: DeckRole) -> bool:
        """Duration became known for a deck; retry scheduling if it is the active one."""
        session = self.session
        if role is not session.active_role or not session.is_playing:
            return False
        outcome = self.scheduler.schedule_next()
        return outcome in (ScheduleOutcome.CROSSFADE_STARTED, ScheduleOutcome.RECHECK_SCHEDULED)

    def on_track_ended(self, role: DeckRole) -> bool:
        """Natural end of a deck's track; crossfades immediately or finishes the mix."""
        session = self.session
        if role is not session.active_role or not session.is_playing or session.in_crossfade:
            return False
        outcome = self.scheduler.schedule_next()
        if outcome is ScheduleOutcome.METADATA_PENDING:
            # Ended before its duration was ever reported; cut to the next track
            if self.next():
                return True
            outcome = ScheduleOutcome.END_OF_PLAYLIST
        if outcome is ScheduleOutcome.END_OF_PLAYLIST:
            self.scheduler.finish()
        return True

    # ------------------------------------------------------------------
    # Settings and playlist edits
    # ------------------------------------------------------------------

    def set_crossfade(self, seconds: float) -> bool:
        if not (MIN_CROSSFADE_SECONDS <= seconds <= MAX_CROSSFADE_SECONDS):
            logger.warning(
                f"Crossfade {seconds}s out of range [{MIN_CROSSFADE_SECONDS}, {MAX_CROSSFADE_SECONDS}]"
            )
            return False
        self.session.crossfade_seconds = seconds
        self._reschedule()
        return True

    def set_announcements(self, enabled: bool) -> None:
        self.session.announce_enabled = enabled

    def add_tracks(self, tracks: Iterable[Track]) -> int:
        added = list(tracks)
        if not added:
            return 0
        self.session.playlist.extend(added)
        self.session.reindex()
        self._reschedule()
        return len(added)

    def remove_track(self, track_id: str) -> bool:
        """Remove a track unless a deck is holding it."""
        session = self.session
        index = session.playlist.index_of(track_id)
        if index is None:
            return False
        if any(deck.track is not None and deck.track.id == track_id for deck in session.decks):
            logger.warning(f"Cannot remove {session.playlist[index].name}: bound to a deck")
            return False

        session.playlist.remove(track_id)
        session.reindex()
        self._reschedule()
        return True

    def move_track_up(self, index: int) -> bool:
        return self._edit(lambda: self.session.playlist.move_up(index))

    def move_track_down(self, index: int) -> bool:
        return self._edit(lambda: self.session.playlist.move_down(index))

    def auto_order(self) -> bool:
        """Smart order: tempo proximity to the first track."""
        return self._edit(lambda: self.session.playlist.auto_order(self.session.fallback_bpm))

    def _edit(self, operation) -> bool:
        if not operation():
            return False
        self.session.reindex()
        self._reschedule()
        return True

    def _reschedule(self) -> None:
        """Recompute the pending check after a change that may affect it."""
        session = self.session
        if session.is_playing and not session.in_crossfade:
            session.cancel_pending()
            self.scheduler.schedule_next()
