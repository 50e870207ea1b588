#!/usr/bin/env python3
"""
Simulate an Auto-Mix Session

Analyzes every audio file in a folder, optionally smart-orders them by
tempo, then plays the whole session on simulated decks in virtual time
and logs each crossfade.

Usage:
    MUSIC_LIBRARY_PATH=data/music AUTODECK_SMART_ORDER=1 python src/scripts/simulate_mix.py
"""

import os
import sys
import logging
from pathlib import Path

# Add src/ to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from autodeck.config import Config
from autodeck.analyze.ingest import AUDIO_FORMATS, analyze_file
from autodeck.generate.playlist import PlaylistSequence, format_time
from autodeck.playback.announce import LoggingAnnouncer
from autodeck.playback.clock import ManualClock
from autodeck.playback.deck import DeckRole
from autodeck.playback.scheduler import MixerSession
from autodeck.playback.simulated import SimulatedOutput
from autodeck.playback.transport import TransportController

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def discover_audio_files(library_path: str) -> list:
    """List supported audio files under library_path, sorted by path."""
    lib_path = Path(library_path)
    if not lib_path.exists():
        logger.warning(f"Library path not found: {library_path}")
        return []
    return sorted(p for p in lib_path.rglob("*") if p.suffix.lower() in AUDIO_FORMATS)


def main():
    """Main simulation entrypoint."""
    try:
        config = Config.load()
        logger.info(f"Config loaded: {config}")

        library_path = os.getenv("MUSIC_LIBRARY_PATH", "data/music")
        files = discover_audio_files(library_path)
        if not files:
            logger.warning("No audio files found!")
            return 0

        tracks = [t for t in (analyze_file(str(f), config["analysis"]) for f in files) if t]
        tracks = [t for t in tracks if t.duration]
        if not tracks:
            logger.warning("No playable tracks (unknown durations)")
            return 0

        playlist = PlaylistSequence(tracks)
        clock = ManualClock()
        durations = {t.audio_handle: t.duration for t in tracks}
        controller = None

        def ended(role):
            return lambda: controller.on_track_ended(role)

        outputs = (
            SimulatedOutput(clock, durations, name="deck-A", on_ended=ended(DeckRole.A)),
            SimulatedOutput(clock, durations, name="deck-B", on_ended=ended(DeckRole.B)),
        )
        session = MixerSession.from_config(config, playlist, outputs, clock, announcer=LoggingAnnouncer())
        controller = TransportController(session)

        if os.getenv("AUTODECK_SMART_ORDER", "0") == "1":
            controller.auto_order()

        logger.info(f"📋 {len(playlist)} tracks, total {format_time(playlist.total_duration())}")
        for idx, track in enumerate(playlist):
            logger.info(f"  [{idx}] {track}")

        controller.start()
        elapsed = clock.run_until_idle()

        logger.info("=" * 60)
        logger.info(f"✅ Simulated mix length: {format_time(elapsed)} (finished={session.finished})")
        logger.info("=" * 60)
        return 0

    except KeyboardInterrupt:
        logger.warning("Simulation interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Simulation failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
