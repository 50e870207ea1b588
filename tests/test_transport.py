"""
Unit tests for TransportController.

Covers start/play/pause/next/prev, cancellation of the pending action,
audio subsystem events and playlist edits during playback.
"""

import pytest

from autodeck.generate.playlist import Track
from autodeck.playback.deck import DeckRole, DeckState


class TestStart:
    def test_empty_playlist(self, make_session):
        session, controller = make_session([])
        assert not controller.start()
        assert not session.is_playing

    def test_binds_first_track_to_deck_a(self, make_session):
        session, controller = make_session([30.0, 30.0])
        assert controller.start()
        deck_a = session.decks[0]
        assert session.active_role is DeckRole.A
        assert session.current_index == 0
        assert deck_a.state is DeckState.PLAYING
        assert deck_a.track.id == "t0"
        assert deck_a.gain_level == 1.0
        assert session.is_playing

    def test_restart_resets(self, make_session, clock):
        session, controller = make_session([30.0, 30.0, 30.0])
        controller.start()
        clock.advance(35.0)
        assert session.current_index == 1
        assert controller.start()
        assert session.current_index == 0
        assert session.active_role is DeckRole.A
        assert session.decks[1].state is DeckState.IDLE
        assert clock.pending() == 1

    def test_play_before_start_starts(self, make_session):
        session, controller = make_session([30.0])
        assert controller.play()
        assert session.is_playing
        assert session.active_deck.track.id == "t0"


class TestPlayPause:
    def test_pause_cancels_pending(self, make_session, clock):
        session, controller = make_session([30.0, 30.0])
        controller.start()
        assert controller.pause()
        assert not session.has_pending()
        assert clock.pending() == 0
        assert session.active_deck.state is DeckState.PAUSED
        clock.advance(60.0)
        assert not session.in_crossfade
        assert session.current_index == 0

    def test_pause_twice(self, make_session):
        session, controller = make_session([30.0])
        controller.start()
        assert controller.pause()
        assert not controller.pause()

    def test_play_while_playing(self, make_session):
        session, controller = make_session([30.0])
        controller.start()
        assert not controller.play()

    def test_resume_ramps_gain(self, make_session, clock):
        session, controller = make_session([30.0, 30.0])
        controller.start()
        clock.advance(3.0)
        controller.pause()
        assert controller.play()
        deck = session.active_deck
        assert deck.state is DeckState.PLAYING
        assert deck.output.ramps[-1] == (3.0, 1.0, 1.0, 0.05)

    def test_pause_mid_crossfade(self, make_session, clock):
        """The incoming deck is silenced and re-armed; resume redoes the fade."""
        session, controller = make_session([30.0, 30.0])
        deck_a, deck_b = session.decks
        controller.start()
        clock.advance(24.0)
        assert session.in_crossfade

        controller.pause()
        assert not session.in_crossfade
        assert clock.pending() == 0
        assert deck_a.state is DeckState.PAUSED
        assert deck_b.state is DeckState.ARMED
        assert deck_b.gain_level == 0.0
        assert not deck_b.output.playing
        assert deck_b.track.id == "t1"

        clock.advance(30.0)
        assert session.active_role is DeckRole.A

        controller.play()
        assert session.in_crossfade
        assert deck_b.state is DeckState.PLAYING
        assert deck_b.position() == 0.0
        assert clock.pending() == 1


class TestSkip:
    def test_next(self, make_session, clock):
        session, controller = make_session([30.0, 30.0, 30.0])
        controller.start()
        clock.advance(4.0)
        assert controller.next()
        deck_a, deck_b = session.decks
        assert session.active_role is DeckRole.B
        assert session.current_index == 1
        assert deck_b.state is DeckState.PLAYING
        assert deck_b.track.id == "t1"
        assert deck_a.state is DeckState.IDLE
        assert not deck_a.output.playing
        assert clock.pending() == 1

    def test_prev(self, make_session, clock):
        session, controller = make_session([30.0, 30.0, 30.0])
        controller.start()
        controller.next()
        controller.next()
        assert session.current_index == 2
        assert controller.prev()
        assert session.current_index == 1
        assert session.active_deck.track.id == "t1"

    def test_next_at_last_is_noop(self, make_session):
        session, controller = make_session([30.0, 30.0])
        controller.start()
        controller.next()
        role = session.active_role
        assert not controller.next()
        assert session.current_index == 1
        assert session.active_role is role

    def test_prev_at_first_is_noop(self, make_session):
        session, controller = make_session([30.0, 30.0])
        controller.start()
        assert not controller.prev()
        assert session.current_index == 0
        assert session.active_role is DeckRole.A

    def test_next_on_empty_playlist(self, make_session):
        session, controller = make_session([])
        assert not controller.next()
        assert not controller.prev()

    def test_next_mid_crossfade_cancels_swap(self, make_session, clock):
        session, controller = make_session([30.0, 30.0, 30.0])
        controller.start()
        clock.advance(23.0)
        swap = session.pending_timer
        assert session.in_crossfade

        assert controller.next()
        assert swap.cancelled
        assert not session.in_crossfade
        assert session.current_index == 1
        assert session.decks[0].state is DeckState.IDLE
        assert session.active_deck.position() == 0.0
        assert clock.pending() == 1

        # The stale swap never resurrects deck A
        clock.advance(10.0)
        assert session.decks[0].state is DeckState.IDLE
        assert session.active_role is DeckRole.B

    def test_single_pending_after_any_sequence(self, make_session, clock):
        session, controller = make_session([30.0, 12.0, 30.0, 9.0, 30.0])
        operations = [
            controller.start, controller.next, controller.pause, controller.play,
            controller.prev, controller.next, controller.next, controller.pause,
            controller.pause, controller.play, controller.prev, controller.next,
            controller.next, controller.next, controller.prev, controller.pause,
        ]
        for step, operation in enumerate(operations):
            operation()
            assert clock.pending() <= 1
            clock.advance(3.0 + step)
            assert clock.pending() <= 1


class TestAudioEvents:
    def test_track_ended_at_last_finishes(self, make_session, clock):
        session, controller = make_session([30.0])
        controller.start()
        clock.advance(30.0)
        assert controller.on_track_ended(DeckRole.A)
        assert session.finished
        assert not session.is_playing
        assert all(deck.state is DeckState.IDLE for deck in session.decks)
        assert controller.play()
        assert session.is_playing

    def test_track_ended_starts_crossfade(self, make_session, clock):
        session, controller = make_session([30.0, 30.0])
        controller.start()
        clock.advance(1.0)
        # Jump to the very end before the scheduled check fires
        session.active_deck.output.seek(29.9)
        clock.advance(0.1)
        assert session.active_deck.position() == pytest.approx(30.0)
        assert controller.on_track_ended(DeckRole.A)
        assert session.in_crossfade
        assert session.inactive_deck.track.id == "t1"

    def test_track_ended_for_inactive_deck(self, make_session):
        session, controller = make_session([30.0, 30.0])
        controller.start()
        assert not controller.on_track_ended(DeckRole.B)

    def test_track_ended_without_metadata_cuts_to_next(self, make_session):
        session, controller = make_session([30.0, 30.0], metadata_ready=False)
        controller.start()
        assert controller.on_track_ended(DeckRole.A)
        assert session.current_index == 1
        assert session.active_role is DeckRole.B


class TestSettings:
    @pytest.mark.parametrize("seconds", [1, 21, -5])
    def test_crossfade_out_of_range(self, make_session, seconds):
        session, controller = make_session([30.0])
        assert not controller.set_crossfade(seconds)
        assert session.crossfade_seconds == 8

    def test_crossfade_change_reschedules(self, make_session, clock):
        session, controller = make_session([60.0, 60.0])
        controller.start()
        assert session.pending_timer.when == pytest.approx(51.75)
        assert controller.set_crossfade(15)
        assert session.pending_timer.when == pytest.approx(44.75)
        assert clock.pending() == 1

    def test_toggle_announcements(self, make_session):
        session, controller = make_session([30.0])
        controller.set_announcements(False)
        assert session.announce_enabled is False


class TestPlaylistEdits:
    def test_remove_bound_track_refused(self, make_session):
        session, controller = make_session([30.0, 30.0])
        controller.start()
        assert not controller.remove_track("t0")
        assert len(session.playlist) == 2

    def test_remove_earlier_track_keeps_current(self, make_session):
        session, controller = make_session([30.0, 30.0, 30.0])
        controller.start()
        controller.next()
        assert controller.remove_track("t0")
        assert session.current_index == 0
        assert session.current_track.id == "t1"
        assert session.active_deck.bound_index == 0

    def test_remove_upcoming_reschedules(self, make_session, clock):
        session, controller = make_session([30.0, 30.0, 30.0])
        controller.start()
        first = session.pending_timer
        assert controller.remove_track("t1")
        assert first.cancelled
        assert clock.pending() == 1
        clock.advance(21.75)
        assert session.inactive_deck.track.id == "t2"

    def test_remove_unknown(self, make_session):
        session, controller = make_session([30.0])
        assert not controller.remove_track("missing")

    def test_auto_order_keeps_current(self, make_session):
        session, controller = make_session([30.0, 30.0, 30.0, 30.0], bpms=[120, 100, 140, 118])
        controller.start()
        controller.next()
        controller.next()  # playing t2 (140)
        assert controller.auto_order()
        assert [t.id for t in session.playlist] == ["t0", "t3", "t1", "t2"]
        assert session.current_track.id == "t2"
        assert session.current_index == 3

    def test_move_track_keeps_current(self, make_session):
        session, controller = make_session([30.0, 30.0, 30.0])
        controller.start()
        assert controller.move_track_down(0)
        assert session.current_index == 1
        assert session.current_track.id == "t0"
        assert not controller.move_track_up(0)

    def test_add_tracks_after_last_resumes_mixing(self, make_session, clock):
        session, controller = make_session([30.0])
        controller.start()
        clock.advance(25.0)
        assert not session.has_pending()
        extra = Track(id="x", name="Encore", audio_handle="h0")
        assert controller.add_tracks([extra]) == 1
        assert session.in_crossfade
        assert session.inactive_deck.track.id == "x"

    def test_add_nothing(self, make_session):
        session, controller = make_session([30.0])
        assert controller.add_tracks([]) == 0
