"""
Virtual-time DeckOutput for dry runs and tests.

Position advances with a ManualClock while playing. Gain ramps are
recorded and evaluated linearly, so a dry run can report what the
listener would hear at any instant.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .clock import ManualClock, TimerHandle
from .deck import DeckOutput

logger = logging.getLogger(__name__)


class SimulatedOutput(DeckOutput):
    """
    Player that plays nothing but keeps exact time.

    Args:
        clock: Clock providing now() and call_later()
        durations: Map of audio handle -> duration in seconds
        name: Label for log lines
        metadata_ready: If False, duration() stays None after load()
                        until load_metadata() is called
        on_ended: Called when playback reaches the end of the track
        on_metadata: Called from load_metadata()
    """

    def __init__(
        self,
        clock: ManualClock,
        durations: Optional[Mapping[Any, float]] = None,
        name: str = "",
        metadata_ready: bool = True,
        on_ended: Optional[Callable[[], None]] = None,
        on_metadata: Optional[Callable[[], None]] = None,
    ):
        self.clock = clock
        self.durations: Dict[Any, float] = dict(durations or {})
        self.name = name
        self.metadata_ready = metadata_ready
        self.on_ended = on_ended
        self.on_metadata = on_metadata

        self.handle: Any = None
        self.playing = False
        self._metadata_loaded = False
        self._base_position = 0.0
        self._started_at = 0.0
        self._end_timer: Optional[TimerHandle] = None
        # (start_time, from, to, over_seconds)
        self.ramps: List[Tuple[float, float, float, float]] = []
        self.play_calls = 0
        self.pause_calls = 0

    def load(self, audio_handle: Any) -> None:
        self._halt()
        self.handle = audio_handle
        self._base_position = 0.0
        self._metadata_loaded = self.metadata_ready

    def load_metadata(self) -> None:
        """Simulate the metadata-loaded event for the current handle."""
        self._metadata_loaded = True
        self._arm_end_timer()
        if self.on_metadata is not None:
            self.on_metadata()

    def duration(self) -> Optional[float]:
        if self.handle is None or not self._metadata_loaded:
            return None
        return self.durations.get(self.handle)

    def position(self) -> float:
        position = self._base_position
        if self.playing:
            position += self.clock.now() - self._started_at
        duration = self.duration()
        if duration is not None:
            position = min(position, duration)
        return position

    def seek(self, seconds: float) -> None:
        was_playing = self.playing
        self._halt()
        self._base_position = max(0.0, seconds)
        if was_playing:
            self.play()

    def play(self) -> None:
        self.play_calls += 1
        if self.playing or self.handle is None:
            return
        self.playing = True
        self._started_at = self.clock.now()
        self._arm_end_timer()

    def pause(self) -> None:
        self.pause_calls += 1
        self._halt()

    def ramp_gain(self, start: float, end: float, over_seconds: float) -> None:
        self.ramps.append((self.clock.now(), start, end, over_seconds))

    def gain_at(self, when: Optional[float] = None) -> float:
        """Gain at a clock time, following the most recent ramp issued before it."""
        when = self.clock.now() if when is None else when
        issued = [r for r in self.ramps if r[0] <= when]
        if not issued:
            return 0.0
        start_time, start, end, over = issued[-1]
        if over <= 0 or when >= start_time + over:
            return end
        return start + (end - start) * (when - start_time) / over

    def _halt(self) -> None:
        if self.playing:
            self._base_position = self.position()
            self.playing = False
        if self._end_timer is not None:
            self._end_timer.cancel()
            self._end_timer = None

    def _arm_end_timer(self) -> None:
        if self._end_timer is not None:
            self._end_timer.cancel()
            self._end_timer = None
        duration = self.duration()
        if not self.playing or self.on_ended is None or duration is None:
            return
        self._end_timer = self.clock.call_later(max(0.0, duration - self.position()), self._reach_end)

    def _reach_end(self) -> None:
        self._end_timer = None
        self._base_position = self.position()
        self.playing = False
        logger.debug(f"{self.name or 'output'}: reached end of {self.handle}")
        if self.on_ended is not None:
            self.on_ended()
