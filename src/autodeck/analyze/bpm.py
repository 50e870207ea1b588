"""
BPM estimation from raw PCM samples.

Pure numpy implementation, no decoding and no I/O:
- Downmix to mono and compute a short-time energy envelope
- Half-wave rectified energy flux as the onset signal
- FFT autocorrelation restricted to lags of the plausible tempo range
- Each lag scored together with its neighbours, since a beat period
  rarely lands on a whole frame; the strongest wins and ties go to the
  longer lag (lower tempo)

Returns None ("unknown tempo") for silent, too short or aperiodic input.
That is a valid result, not an error.

References:
- https://www.audiolabs-erlangen.de/resources/MIR/FMP/C6/C6S2_TempogramAutocorrelation.html
"""

import logging
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

UNKNOWN_BPM = None

DEFAULT_ANALYSIS = {
    "hop_size": 512,
    "frame_size": 1024,
    "bpm_min": 60,
    "bpm_max": 200,
    "min_duration_seconds": 4.0,
    "confidence_threshold": 0.1,
}


def _to_mono(samples: np.ndarray) -> np.ndarray:
    """Average channels; channels are assumed to be the shorter axis."""
    audio = np.asarray(samples, dtype=np.float64)
    if audio.ndim == 1:
        return audio
    if audio.ndim != 2:
        raise ValueError(f"Expected 1-D or 2-D sample buffer, got {audio.ndim}-D")
    channel_axis = 0 if audio.shape[0] < audio.shape[1] else 1
    return audio.mean(axis=channel_axis)


def onset_envelope(mono: np.ndarray, frame_size: int, hop_size: int) -> np.ndarray:
    """
    Compute the onset strength envelope of a mono signal.

    Args:
        mono: 1-D float samples
        frame_size: Analysis window length in samples
        hop_size: Step between windows in samples

    Returns:
        Half-wave rectified first difference of per-frame mean energy,
        one value per hop (length = frames - 1). Empty if too short.
    """
    if len(mono) < frame_size + hop_size:
        return np.zeros(0)

    frames = np.lib.stride_tricks.sliding_window_view(mono, frame_size)[::hop_size]
    energy = np.mean(frames ** 2, axis=1)
    return np.maximum(np.diff(energy), 0.0)


def _autocorrelation(signal: np.ndarray) -> np.ndarray:
    """Biased autocorrelation via FFT, normalized so lag 0 == 1 (zeros if flat)."""
    n = len(signal)
    n_fft = 1
    while n_fft < 2 * n:
        n_fft *= 2
    spectrum = np.fft.rfft(signal, n=n_fft)
    acf = np.fft.irfft(spectrum * np.conj(spectrum), n=n_fft)[:n]
    if acf[0] <= 0:
        return np.zeros(n)
    return acf / acf[0]


def _lag_bounds(envelope_rate: float, bpm_min: float, bpm_max: float, n: int) -> Tuple[int, int]:
    """Inclusive lag range (in envelope frames) for the tempo range."""
    min_lag = max(1, int(np.ceil(envelope_rate * 60.0 / bpm_max)))
    max_lag = min(n - 1, int(np.floor(envelope_rate * 60.0 / bpm_min)))
    return min_lag, max_lag


def _lag_scores(acf: np.ndarray, min_lag: int, max_lag: int) -> np.ndarray:
    """
    Periodicity score for each lag in [min_lag, max_lag].

    A beat period rarely falls on a whole number of envelope frames, so
    its correlation is split between the two neighbouring integer lags.
    Each lag is scored with the positive correlation summed over lag-1,
    lag and lag+1.
    """
    positive = np.concatenate([np.maximum(acf, 0.0), [0.0]])
    lags = np.arange(min_lag, max_lag + 1)
    return positive[lags - 1] + positive[lags] + positive[lags + 1]


def _refine_lag(acf: np.ndarray, lag: int) -> float:
    """Correlation-weighted centre of lag-1..lag+1."""
    lo, hi = max(1, lag - 1), min(len(acf) - 1, lag + 1)
    window = np.maximum(acf[lo:hi + 1], 0.0)
    total = float(window.sum())
    if total <= 0:
        return float(lag)
    return float(np.dot(np.arange(lo, hi + 1), window) / total)


def estimate_bpm(
    samples: np.ndarray,
    sample_rate: int,
    config: Optional[dict] = None,
) -> Optional[int]:
    """
    Estimate the tempo of a PCM buffer.

    Deterministic: the same samples and config always give the same result.

    Args:
        samples: 1-D mono or 2-D multichannel float samples
        sample_rate: Sample rate in Hz
        config: Analysis config dict (hop_size, frame_size, bpm_min, bpm_max,
                min_duration_seconds, confidence_threshold). Missing keys
                use DEFAULT_ANALYSIS.

    Returns:
        Integer BPM within [bpm_min, bpm_max], or None if unknown
    """
    settings = dict(DEFAULT_ANALYSIS)
    if config:
        settings.update({k: v for k, v in config.items() if k in DEFAULT_ANALYSIS})

    hop_size = int(settings["hop_size"])
    frame_size = int(settings["frame_size"])
    bpm_min = float(settings["bpm_min"])
    bpm_max = float(settings["bpm_max"])

    if sample_rate <= 0:
        logger.warning(f"Invalid sample rate {sample_rate}; tempo unknown")
        return UNKNOWN_BPM

    mono = _to_mono(samples)
    if mono.size == 0:
        return UNKNOWN_BPM

    if not np.all(np.isfinite(mono)):
        logger.warning("Sample buffer contains non-finite values; tempo unknown")
        return UNKNOWN_BPM

    duration = len(mono) / sample_rate
    if duration < settings["min_duration_seconds"]:
        logger.debug(f"Buffer too short for tempo analysis ({duration:.2f}s)")
        return UNKNOWN_BPM

    if not np.any(mono):
        logger.debug("Silent buffer; tempo unknown")
        return UNKNOWN_BPM

    envelope = onset_envelope(mono, frame_size, hop_size)
    envelope = envelope - envelope.mean() if envelope.size else envelope
    if envelope.size < 2 or not np.any(envelope):
        logger.debug("Flat onset envelope; tempo unknown")
        return UNKNOWN_BPM

    envelope_rate = sample_rate / hop_size
    min_lag, max_lag = _lag_bounds(envelope_rate, bpm_min, bpm_max, len(envelope))
    if min_lag > max_lag:
        logger.debug(f"Envelope too short for lag range ({len(envelope)} frames)")
        return UNKNOWN_BPM

    acf = _autocorrelation(envelope)
    search = acf[min_lag:max_lag + 1]
    peak_value = float(search.max())

    if peak_value < settings["confidence_threshold"]:
        logger.debug(f"No dominant periodicity (peak {peak_value:.3f})")
        return UNKNOWN_BPM

    scores = _lag_scores(acf, min_lag, max_lag)
    best = float(scores.max())
    # Longest lag among equal scores
    ties = np.flatnonzero(np.isclose(scores, best, rtol=1e-9, atol=1e-12))
    lag = min_lag + int(ties[-1])

    refined = _refine_lag(acf, lag)
    bpm = int(round(60.0 * envelope_rate / refined))
    bpm = int(np.clip(bpm, np.ceil(bpm_min), np.floor(bpm_max)))

    logger.debug(f"Tempo estimate: {bpm} BPM (lag {refined:.2f}, peak {peak_value:.2f})")
    return bpm
