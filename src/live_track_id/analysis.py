from __future__ import annotations

import time
from collections import deque

from live_track_id.models import AudioFingerprint, FeatureFrame

SPECTRAL_BINS = 32
TEMPO_BINS = 8
CHROMA_BINS = 12
NYQUIST_REFERENCE = 22050.0
BANDWIDTH_REFERENCE = 4000.0

# Linear map of 60-200 BPM onto 0-1.
_TEMPO_HINT_FLOOR = 60.0
_TEMPO_HINT_SPAN = 140.0

# (threshold, increment) pairs; each passed threshold adds its increment.
_LEVEL_CONFIDENCE = ((0.1, 0.3), (0.3, 0.2))
_CENTROID_CONFIDENCE = (100.0, 0.2)
_BANDWIDTH_CONFIDENCE = (200.0, 0.2)
_TIMBRE_CONFIDENCE = (0.1, 0.1)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def normalize_tempo_hint(bpm: float | None) -> float:
    if not bpm:
        return 0.0
    return _clamp((bpm - _TEMPO_HINT_FLOOR) / _TEMPO_HINT_SPAN)


def _bin_for(value: float) -> int:
    return int(value / NYQUIST_REFERENCE * SPECTRAL_BINS)


def spectral_profile(frame: FeatureFrame) -> list[float]:
    profile = [0.0] * SPECTRAL_BINS
    for i, coefficient in enumerate(frame.mfcc[:SPECTRAL_BINS]):
        profile[i] = float(coefficient)

    for value, weight in ((frame.spectral_centroid, 0.5), (frame.spectral_rolloff, 0.3)):
        index = _bin_for(value)
        if 0 <= index < SPECTRAL_BINS:
            profile[index] += weight
    return profile


def tempo_profile(frame: FeatureFrame) -> list[float]:
    profile = [0.0] * TEMPO_BINS
    profile[0] = frame.zero_crossing_rate
    profile[1] = normalize_tempo_hint(frame.tempo_hint)
    profile[2] = min(1.0, frame.spectral_bandwidth / BANDWIDTH_REFERENCE)
    for i, value in enumerate(frame.chroma[: TEMPO_BINS - 3]):
        profile[3 + i] = float(value)
    return profile


def energy_profile(frame: FeatureFrame) -> list[float]:
    return [
        frame.audio_level,
        frame.spectral_centroid / NYQUIST_REFERENCE,
        frame.spectral_bandwidth / BANDWIDTH_REFERENCE,
        frame.spectral_rolloff / NYQUIST_REFERENCE,
    ]


def key_profile(frame: FeatureFrame) -> tuple[list[float], bool]:
    if len(frame.chroma) >= CHROMA_BINS:
        return [float(v) for v in frame.chroma[:CHROMA_BINS]], True
    return [1.0 / CHROMA_BINS] * CHROMA_BINS, False


def fingerprint_confidence(frame: FeatureFrame) -> float:
    confidence = 0.0
    for threshold, increment in _LEVEL_CONFIDENCE:
        if frame.audio_level > threshold:
            confidence += increment

    threshold, increment = _CENTROID_CONFIDENCE
    if frame.spectral_centroid > threshold:
        confidence += increment

    threshold, increment = _BANDWIDTH_CONFIDENCE
    if frame.spectral_bandwidth > threshold:
        confidence += increment

    threshold, increment = _TIMBRE_CONFIDENCE
    if any(abs(v) > threshold for v in frame.mfcc):
        confidence += increment

    return _clamp(confidence)


def build_fingerprint(frame: FeatureFrame, timestamp: float | None = None) -> AudioFingerprint:
    keys, has_chroma = key_profile(frame)
    return AudioFingerprint(
        spectral_profile=spectral_profile(frame),
        tempo_profile=tempo_profile(frame),
        energy_profile=energy_profile(frame),
        key_profile=keys,
        confidence=fingerprint_confidence(frame),
        timestamp=time.monotonic() if timestamp is None else timestamp,
        tempo_hint=frame.tempo_hint if frame.tempo_hint and frame.tempo_hint > 0 else None,
        has_chroma=has_chroma,
    )


class FingerprintHistory:
    """Rolling buffer of recent fingerprints, oldest evicted first."""

    def __init__(self, capacity: int = 50) -> None:
        self._items: deque[AudioFingerprint] = deque(maxlen=max(1, capacity))

    def append(self, fingerprint: AudioFingerprint) -> None:
        self._items.append(fingerprint)

    def mean_confidence(self) -> float:
        if not self._items:
            return 0.0
        return sum(fp.confidence for fp in self._items) / len(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
