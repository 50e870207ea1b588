"""
Crossfade scheduler for two alternating decks.

One MixerSession owns the playlist, both decks and the single pending
timer. DeckScheduler.schedule_next() is the core loop:

1. Read duration and live position of the active deck.
2. If the crossfade window has been reached, bind the next track to the
   inactive deck, announce it, start it and issue complementary linear
   gain ramps; defer the deck swap to the end of the fade.
3. Otherwise defer a re-check to the moment the window opens.

Remaining time is always recomputed from the live position, never from
a delay computed earlier, so pauses and seeks cannot skew the fade.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from ..config import Config
from ..generate.playlist import PlaylistSequence, Track
from .announce import AnnouncementSink, format_announcement, safe_announce
from .clock import TimerHandle
from .deck import Deck, DeckOutput, DeckRole

logger = logging.getLogger(__name__)

WINDOW_EPSILON = 1e-6


class ScheduleOutcome(Enum):
    NOT_PLAYING = "not_playing"
    METADATA_PENDING = "metadata_pending"
    CROSSFADE_IN_PROGRESS = "crossfade_in_progress"
    END_OF_PLAYLIST = "end_of_playlist"
    CROSSFADE_STARTED = "crossfade_started"
    RECHECK_SCHEDULED = "recheck_scheduled"


class MixerSession:
    """
    Explicit state of one auto-mix session.

    Only DeckScheduler and TransportController mutate it.
    """

    def __init__(
        self,
        playlist: PlaylistSequence,
        outputs: Tuple[DeckOutput, DeckOutput],
        clock,
        crossfade_seconds: float = 8,
        announcer: Optional[AnnouncementSink] = None,
        announce_enabled: bool = True,
        guard_margin: float = 0.25,
        swap_epsilon: float = 0.05,
        resume_ramp: float = 0.05,
        fallback_bpm: int = 120,
    ):
        """
        Args:
            playlist: Tracks in play order
            outputs: Audio subsystem players for deck A and deck B
            clock: ManualClock or RealtimeClock (call_later/now)
            crossfade_seconds: Requested crossfade length
            announcer: Voiceover sink (optional)
            announce_enabled: Whether to announce upcoming tracks
            guard_margin: Seconds of slack for timer granularity
            swap_epsilon: Delay after the fade before swapping decks
            resume_ramp: Gain ramp length when (re)starting a deck
            fallback_bpm: Tempo assumed for unknown BPM when ordering
        """
        self.playlist = playlist
        self.decks: Tuple[Deck, Deck] = (Deck(DeckRole.A, outputs[0]), Deck(DeckRole.B, outputs[1]))
        self.clock = clock
        self.crossfade_seconds = crossfade_seconds
        self.announcer = announcer
        self.announce_enabled = announce_enabled
        self.guard_margin = guard_margin
        self.swap_epsilon = swap_epsilon
        self.resume_ramp = resume_ramp
        self.fallback_bpm = fallback_bpm

        self.active_role = DeckRole.A
        self.current_index = 0
        self.pending_timer: Optional[TimerHandle] = None
        self.is_playing = False
        self.started = False
        self.finished = False
        self.in_crossfade = False

    @classmethod
    def from_config(
        cls,
        config: Config,
        playlist: PlaylistSequence,
        outputs: Tuple[DeckOutput, DeckOutput],
        clock,
        announcer: Optional[AnnouncementSink] = None,
    ) -> "MixerSession":
        mixer = config["mixer"]
        return cls(
            playlist,
            outputs,
            clock,
            crossfade_seconds=mixer["crossfade_seconds"],
            announcer=announcer,
            announce_enabled=bool(config.get("announce", "enabled", True)),
            guard_margin=mixer["guard_margin_seconds"],
            swap_epsilon=mixer["swap_epsilon_seconds"],
            resume_ramp=mixer["resume_ramp_seconds"],
            fallback_bpm=mixer["fallback_bpm"],
        )

    def deck(self, role: DeckRole) -> Deck:
        return self.decks[role.index]

    @property
    def active_deck(self) -> Deck:
        return self.deck(self.active_role)

    @property
    def inactive_deck(self) -> Deck:
        return self.deck(self.active_role.other())

    @property
    def current_track(self) -> Optional[Track]:
        return self.playlist.get(self.current_index)

    def has_pending(self) -> bool:
        return self.pending_timer is not None and self.pending_timer.active

    def cancel_pending(self) -> bool:
        """Cancel the outstanding deferred action, if any."""
        handle, self.pending_timer = self.pending_timer, None
        if handle is None or not handle.active:
            return False
        handle.cancel()
        logger.debug(f"Cancelled pending action {handle}")
        return True

    def reindex(self) -> None:
        """Re-derive deck and current indices from track ids after playlist edits."""
        for deck in self.decks:
            if deck.track is not None:
                deck.bound_index = self.playlist.index_of(deck.track.id)
        active = self.active_deck
        if self.started and active.bound_index is not None:
            self.current_index = active.bound_index
        elif self.playlist:
            self.current_index = min(max(0, self.current_index), len(self.playlist) - 1)
        else:
            self.current_index = 0

    def fade_window(self, duration: float) -> float:
        """Crossfade length capped at a third of the track."""
        return min(self.crossfade_seconds, duration / 3.0)

    def snapshot(self) -> Dict[str, Any]:
        """Presentation-friendly view of the session."""
        current = self.current_track
        return {
            "is_playing": self.is_playing,
            "finished": self.finished,
            "in_crossfade": self.in_crossfade,
            "current_index": self.current_index,
            "current_track": current.name if current else None,
            "active_role": self.active_role.value,
            "crossfade_seconds": self.crossfade_seconds,
            "decks": {
                deck.role.value: {
                    "state": deck.state.value,
                    "track": deck.track.name if deck.track else None,
                    "gain": deck.gain_level,
                }
                for deck in self.decks
            },
            "total_duration": self.playlist.total_duration(),
        }


class DeckScheduler:
    """Drives gain automation and deck-role handoff over time."""

    def __init__(self, session: MixerSession):
        self.session = session

    def _defer(self, delay: float, action: Callable[[], Any], label: str) -> TimerHandle:
        """Replace the session's pending action with a new one-shot timer."""
        session = self.session
        session.cancel_pending()
        handle: Optional[TimerHandle] = None

        def fire() -> None:
            # A superseded handle must not act
            if session.pending_timer is not handle:
                logger.debug(f"Ignoring stale {label}")
                return
            session.pending_timer = None
            action()

        handle = session.clock.call_later(delay, fire)
        session.pending_timer = handle
        logger.debug(f"Scheduled {label} in {delay:.3f}s")
        return handle

    def schedule_next(self) -> ScheduleOutcome:
        """Check the active deck and either start a crossfade or schedule a re-check."""
        session = self.session

        if not session.is_playing:
            return ScheduleOutcome.NOT_PLAYING
        if session.in_crossfade:
            return ScheduleOutcome.CROSSFADE_IN_PROGRESS

        active = session.active_deck
        if active.track is None:
            return ScheduleOutcome.NOT_PLAYING

        duration = active.duration()
        if duration is None:
            logger.debug(f"Deck {active.role.value} - Duration unknown, waiting for metadata")
            return ScheduleOutcome.METADATA_PENDING

        remaining = max(0.0, duration - active.position())
        fade = session.fade_window(duration)
        delay = remaining - fade - session.guard_margin
        logger.debug(f"Deck {active.role.value} - remaining={remaining:.2f}s fade={fade:.2f}s")

        # Sub-microsecond delays are rounding noise at the window edge
        if delay <= WINDOW_EPSILON:
            next_index = session.current_index + 1
            next_track = session.playlist.get(next_index)
            if next_track is None:
                session.cancel_pending()
                logger.info(f"Last track playing out: {active.track.name}")
                return ScheduleOutcome.END_OF_PLAYLIST
            self._begin_crossfade(next_track, next_index, fade)
            return ScheduleOutcome.CROSSFADE_STARTED

        self._defer(delay, self.schedule_next, "crossfade check")
        return ScheduleOutcome.RECHECK_SCHEDULED

    def _begin_crossfade(self, next_track: Track, next_index: int, fade: float) -> None:
        session = self.session
        outgoing = session.active_deck
        incoming = session.inactive_deck

        incoming.bind(next_track, next_index)
        if session.announce_enabled:
            safe_announce(session.announcer, format_announcement(next_track.name, next_track.bpm))

        incoming.start()
        incoming.ramp_gain(1.0, fade)
        outgoing.fade_out(fade)
        session.in_crossfade = True

        logger.info(
            f"Crossfade {outgoing.role.value}->{incoming.role.value} over {fade:.2f}s: "
            f"{outgoing.track.name} -> {next_track.name}"
        )
        self._defer(fade + session.swap_epsilon, self._complete_swap, "deck swap")

    def _complete_swap(self) -> None:
        """Silence the old deck, hand the active role over and keep going."""
        session = self.session
        outgoing = session.active_deck
        incoming = session.inactive_deck

        outgoing.unbind()
        session.active_role = incoming.role
        session.in_crossfade = False
        if incoming.bound_index is not None:
            session.current_index = incoming.bound_index

        logger.info(f"Deck {incoming.role.value} now active: [{session.current_index}] {incoming.track.name}")
        self.schedule_next()

    def finish(self) -> None:
        """Terminal state after the last track ends."""
        session = self.session
        session.cancel_pending()
        for deck in session.decks:
            deck.unbind()
        session.in_crossfade = False
        session.is_playing = False
        session.finished = True
        logger.info("Playlist finished")


def build_session(
    tracks: Sequence[Track],
    outputs: Tuple[DeckOutput, DeckOutput],
    clock,
    config: Optional[Config] = None,
    announcer: Optional[AnnouncementSink] = None,
) -> MixerSession:
    """Create a session from tracks using config defaults when none is given."""
    config = config or Config.default()
    return MixerSession.from_config(config, PlaylistSequence(tracks), outputs, clock, announcer)
