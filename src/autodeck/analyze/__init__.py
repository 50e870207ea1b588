"""
Analysis Module: Estimate BPM from raw audio and ingest tracks.

- Pure, deterministic tempo estimation from PCM buffers
- File ingestion via aubio (decode) and mutagen (duration)
"""

__all__ = ["bpm", "ingest"]
