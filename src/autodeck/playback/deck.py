"""
Playback decks.

A session owns exactly two Decks, addressed by DeckRole. Each Deck wraps
one DeckOutput (the external audio subsystem's player) and tracks the
state the scheduler reasons about: bound track, state, and the gain the
last issued ramp is heading to.

State flow:
    IDLE -> ARMED -> PLAYING -> FADING_OUT -> IDLE
PAUSED is entered from PLAYING/FADING_OUT by a user pause.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from ..generate.playlist import Track

logger = logging.getLogger(__name__)


class DeckRole(Enum):
    A = "A"
    B = "B"

    @property
    def index(self) -> int:
        return 0 if self is DeckRole.A else 1

    def other(self) -> "DeckRole":
        return DeckRole.B if self is DeckRole.A else DeckRole.A


class DeckState(Enum):
    IDLE = "idle"              # No track bound, silent
    ARMED = "armed"            # Track bound at start, silent, not playing
    PLAYING = "playing"        # Audible, gain at or ramping to 1
    FADING_OUT = "fading_out"  # Still playing, gain ramping to 0
    PAUSED = "paused"          # Bound and halted by the user


AUDIBLE_STATES = (DeckState.PLAYING, DeckState.FADING_OUT)


class DeckOutput(ABC):
    """
    Audio subsystem player behind one deck.

    Decoding, output and gain curves are the implementation's business;
    ramps are fire-and-forget and start when issued.
    """

    @abstractmethod
    def load(self, audio_handle: Any) -> None:
        """Point the player at a track's audio resource."""

    @abstractmethod
    def duration(self) -> Optional[float]:
        """Duration in seconds, or None until metadata is available."""

    @abstractmethod
    def position(self) -> float:
        """Current playback position in seconds."""

    @abstractmethod
    def seek(self, seconds: float) -> None:
        pass

    @abstractmethod
    def play(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def ramp_gain(self, start: float, end: float, over_seconds: float) -> None:
        """Linear gain ramp from start to end beginning now."""


class Deck:
    """One of the two playback slots."""

    # Binding is allowed from any state
    VALID_TRANSITIONS = {
        DeckState.IDLE: {DeckState.ARMED},
        DeckState.ARMED: {DeckState.ARMED, DeckState.PLAYING, DeckState.IDLE},
        DeckState.PLAYING: {DeckState.ARMED, DeckState.FADING_OUT, DeckState.PAUSED, DeckState.IDLE},
        DeckState.FADING_OUT: {DeckState.ARMED, DeckState.PAUSED, DeckState.IDLE},
        DeckState.PAUSED: {DeckState.ARMED, DeckState.PLAYING, DeckState.IDLE},
    }

    def __init__(self, role: DeckRole, output: DeckOutput):
        self.role = role
        self.output = output
        self.state = DeckState.IDLE
        self.track: Optional[Track] = None
        self.bound_index: Optional[int] = None
        self.gain_level = 0.0

    def _transition(self, new_state: DeckState) -> bool:
        if new_state not in self.VALID_TRANSITIONS[self.state]:
            logger.warning(f"Deck {self.role.value} - Invalid transition: {self.state.name} -> {new_state.name}")
            return False
        logger.debug(f"Deck {self.role.value} - {self.state.name} -> {new_state.name}")
        self.state = new_state
        return True

    @property
    def is_audible(self) -> bool:
        return self.state in AUDIBLE_STATES

    def duration(self) -> Optional[float]:
        """Live duration from the output, falling back to the track's metadata."""
        live = self.output.duration()
        if live is not None and live > 0:
            return live
        if self.track is not None and self.track.duration:
            return self.track.duration
        return None

    def position(self) -> float:
        return self.output.position()

    def bind(self, track: Track, index: int) -> bool:
        """Load a track, rewind to 0 and silence the deck (ARMED)."""
        if self.is_audible:
            self.output.pause()
        self.output.load(track.audio_handle)
        self.output.seek(0.0)
        self.set_gain(0.0)
        self.track = track
        self.bound_index = index
        logger.info(f"Deck {self.role.value} - Bound [{index}] {track.name}")
        return self._transition(DeckState.ARMED)

    def unbind(self) -> bool:
        """Halt, silence and forget the bound track (IDLE)."""
        if self.state is DeckState.IDLE:
            return False
        self.output.pause()
        self.set_gain(0.0)
        self.track = None
        self.bound_index = None
        return self._transition(DeckState.IDLE)

    def start(self) -> bool:
        if self.track is None:
            logger.warning(f"Deck {self.role.value} - Cannot play without a track")
            return False
        if not self._transition(DeckState.PLAYING):
            return False
        self.output.play()
        return True

    def pause(self) -> bool:
        if not self.is_audible:
            return False
        self.output.pause()
        return self._transition(DeckState.PAUSED)

    def rearm(self) -> bool:
        """Pause, silence and rewind without unbinding."""
        if self.track is None:
            return False
        self.output.pause()
        self.output.seek(0.0)
        self.set_gain(0.0)
        return self._transition(DeckState.ARMED)

    def ramp_gain(self, target: float, over_seconds: float) -> None:
        """Issue a linear ramp from the current level to target."""
        target = min(1.0, max(0.0, target))
        self.output.ramp_gain(self.gain_level, target, over_seconds)
        self.gain_level = target

    def set_gain(self, level: float) -> None:
        self.ramp_gain(level, 0.0)

    def fade_out(self, over_seconds: float) -> bool:
        if self.state is not DeckState.PLAYING:
            return False
        self.ramp_gain(0.0, over_seconds)
        return self._transition(DeckState.FADING_OUT)

    def __repr__(self) -> str:
        name = self.track.name if self.track else None
        return f"Deck({self.role.value}, {self.state.name}, track={name!r}, gain={self.gain_level:.2f})"
