"""
Track ingestion: raw audio in, analyzed Track out.

Two entrypoints:
- analyze_buffer: samples already decoded by the caller (upload path)
- analyze_file: decode with aubio, probe duration with mutagen

Duration may stay unknown (None) until the audio subsystem reports it;
the scheduler waits for it instead of failing.
"""

import hashlib
import itertools
import logging
import time
from pathlib import Path
from typing import Any, Optional, Tuple

import numpy as np
from mutagen import File as MutagenFile

from .bpm import estimate_bpm
from ..generate.playlist import Track

logger = logging.getLogger(__name__)

# Supported audio formats
AUDIO_FORMATS = {".mp3", ".m4a", ".flac", ".wav", ".aif", ".aiff", ".ogg"}

_ingest_counter = itertools.count()


def display_name(file_name: str) -> str:
    """File name without its extension ("intro.mp3" -> "intro")."""
    return Path(file_name).stem or file_name


def _generate_track_id(name: str, audio_handle: Any) -> str:
    """
    Generate a unique track ID.

    Uploading the same file twice must still give two distinct tracks,
    so the ingest time is part of the key.
    """
    key_string = f"{name}:{audio_handle!r}:{time.time_ns()}:{next(_ingest_counter)}"
    return hashlib.sha256(key_string.encode()).hexdigest()[:16]


def load_samples(
    file_path: str,
    hop_size: int = 512,
    max_seconds: Optional[float] = None,
) -> Optional[Tuple[np.ndarray, int]]:
    """
    Decode an audio file to mono float samples with aubio.

    Args:
        file_path: Path to audio file
        hop_size: Read block size in samples
        max_seconds: Stop decoding after this many seconds (None = whole file)

    Returns:
        Tuple of (samples, sample_rate) or None if decoding failed
    """
    try:
        import aubio

        source = aubio.source(str(file_path), hop_size=hop_size)
        sample_rate = int(source.samplerate)
        limit = int(max_seconds * sample_rate) if max_seconds else None

        blocks = []
        total = 0
        while True:
            samples, num_read = source()
            if num_read == 0:
                break
            blocks.append(np.array(samples[:num_read], dtype=np.float64))
            total += num_read
            if num_read < hop_size or (limit is not None and total >= limit):
                break
        source.close()

        if not blocks:
            logger.warning(f"No samples decoded from {file_path}")
            return np.zeros(0), sample_rate

        audio = np.concatenate(blocks)
        if limit is not None:
            audio = audio[:limit]
        logger.debug(f"Decoded {len(audio)} samples @ {sample_rate} Hz from {Path(file_path).name}")
        return audio, sample_rate

    except Exception as e:
        logger.error(f"Decoding failed for {file_path}: {e}")
        return None


def probe_duration(file_path: str) -> Optional[float]:
    """
    Read the track duration from file metadata.

    Returns:
        Duration in seconds, or None if the metadata is unavailable
    """
    try:
        audio = MutagenFile(str(file_path))
        if audio is None or audio.info is None:
            logger.debug(f"No metadata reader for {file_path}")
            return None
        length = float(audio.info.length)
        return length if length > 0 else None
    except Exception as e:
        logger.warning(f"Could not read duration for {file_path}: {e}")
        return None


def analyze_buffer(
    name: str,
    samples: np.ndarray,
    sample_rate: int,
    audio_handle: Any,
    duration: Optional[float] = None,
    config: Optional[dict] = None,
) -> Track:
    """
    Build a Track from an already decoded sample buffer.

    Args:
        name: Display name (file name; the extension is stripped)
        samples: PCM samples (mono or multichannel)
        sample_rate: Sample rate in Hz
        audio_handle: Opaque handle the audio subsystem plays from
        duration: Duration in seconds if already known
        config: Analysis config dict

    Returns:
        Track with bpm set, or None bpm if the tempo is unknown
    """
    bpm = estimate_bpm(samples, sample_rate, config)
    track_name = display_name(name)
    if bpm is None:
        logger.warning(f"Tempo unknown for {track_name}")
    else:
        logger.info(f"{track_name}: {bpm} BPM")

    return Track(
        id=_generate_track_id(track_name, audio_handle),
        name=track_name,
        audio_handle=audio_handle,
        bpm=bpm,
        duration=duration,
    )


def analyze_file(file_path: str, config: Optional[dict] = None) -> Optional[Track]:
    """
    Decode, analyze and wrap an audio file as a Track.

    The file path itself is the Track's audio handle.

    Args:
        file_path: Path to audio file
        config: Analysis config dict (hop_size, max_analysis_seconds, ...)

    Returns:
        Track, or None if the file is not a supported audio file or cannot be decoded
    """
    config = config or {}
    path = Path(file_path)

    if path.suffix.lower() not in AUDIO_FORMATS:
        logger.warning(f"Skipping non-audio file: {path.name}")
        return None

    logger.info(f"Analyzing: {path.name}")
    decoded = load_samples(
        str(path),
        hop_size=int(config.get("hop_size", 512)),
        max_seconds=config.get("max_analysis_seconds", 60.0),
    )
    if decoded is None:
        return None

    samples, sample_rate = decoded
    return analyze_buffer(
        path.name,
        samples,
        sample_rate,
        audio_handle=str(path),
        duration=probe_duration(str(path)),
        config=config,
    )
