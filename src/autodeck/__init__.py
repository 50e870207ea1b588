# AutoDeck: tempo-aware two-deck auto-mixer core
# Package: autodeck

__version__ = "0.1.0"
__author__ = "AutoDeck Contributors"
__description__ = "Tempo estimation and crossfade scheduling across two alternating decks"

# Module structure:
#   - autodeck.analyze    : BPM estimation and track ingestion
#   - autodeck.generate   : Playlist model and tempo-proximity ordering
#   - autodeck.playback   : Decks, crossfade scheduler, transport controls
#   - autodeck.config     : Configuration management
