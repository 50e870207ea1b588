"""Shared fixtures: virtual clock, tracks and two-deck sessions on simulated outputs."""

import pytest

from autodeck.generate.playlist import PlaylistSequence, Track
from autodeck.playback.announce import LoggingAnnouncer
from autodeck.playback.clock import ManualClock
from autodeck.playback.scheduler import MixerSession
from autodeck.playback.simulated import SimulatedOutput
from autodeck.playback.transport import TransportController


def make_tracks(durations, bpms=None):
    """Tracks t0..tN with handles h0..hN; durations are only known to the outputs."""
    bpms = bpms or [None] * len(durations)
    return [
        Track(id=f"t{i}", name=f"Track_{i}", audio_handle=f"h{i}", bpm=bpm)
        for i, bpm in enumerate(bpms)
    ]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def make_session(clock):
    """Factory: make_session([30, 30], crossfade=8, ...) -> (session, controller)."""

    def _make(durations, bpms=None, crossfade=8, metadata_ready=True, announcer=None, announce_enabled=True):
        tracks = make_tracks(durations, bpms)
        handles = {t.audio_handle: d for t, d in zip(tracks, durations)}
        outputs = (
            SimulatedOutput(clock, handles, name="A", metadata_ready=metadata_ready),
            SimulatedOutput(clock, handles, name="B", metadata_ready=metadata_ready),
        )
        session = MixerSession(
            PlaylistSequence(tracks),
            outputs,
            clock,
            crossfade_seconds=crossfade,
            announcer=announcer if announcer is not None else LoggingAnnouncer(),
            announce_enabled=announce_enabled,
        )
        return session, TransportController(session)

    return _make
