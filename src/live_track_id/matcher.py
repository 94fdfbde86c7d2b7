from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from live_track_id.enhancement import estimate_time_offset
from live_track_id.models import AudioFingerprint, AxisScores, MatchCandidate, TrackRecord

logger = logging.getLogger(__name__)

TEMPO_WEIGHT = 0.35
SPECTRAL_WEIGHT = 0.35
ENERGY_WEIGHT = 0.20
KEY_WEIGHT = 0.10

# Aggregates at or below this are treated as noise and dropped.
NOISE_FLOOR = 0.25
# Scores are weighted float sums; differences within this count as ties.
SCORE_TOLERANCE = 1e-9
MAX_CANDIDATES = 10

# (max absolute BPM difference, score); first row that fits wins.
TEMPO_STEPS = ((3.0, 1.0), (6.0, 0.9), (10.0, 0.7), (15.0, 0.5), (20.0, 0.3))
TEMPO_FLOOR_SCORE = 0.1

# (max |track energy / 10 - level|, score)
ENERGY_STEPS = ((0.2, 1.0), (0.4, 0.7), (0.6, 0.4))
ENERGY_FLOOR_SCORE = 0.1
MIN_AUDIO_LEVEL = 0.01

DEFAULT_BPM_ESTIMATE = 120.0
DARK_BPM_ESTIMATE = 100.0
BRIGHT_BPM_ESTIMATE = 128.0
DARK_BRIGHTNESS = 0.05
BRIGHT_BRIGHTNESS = 0.1
BUSY_ZCR = 0.15
BUSY_ZCR_BPM_BOOST = 5.0

UNKNOWN_GENRE = "unknown"

# Ordered signatures; the first whose bounds all hold is the detected genre.
# Bounds are (metric, low inclusive, high exclusive) with None meaning open.
GENRE_SIGNATURES: tuple[tuple[str, tuple[tuple[str, float | None, float | None], ...]], ...] = (
    ("electronic", (("brightness", 0.068, None), ("bandwidth", 0.2, None))),
    ("hip-hop", (("brightness", None, 0.036), ("rolloff", None, 0.2), ("bandwidth", 0.1, None))),
    ("classical", (("brightness", 0.01, None), ("bandwidth", None, 0.1))),
    ("rock", (("brightness", 0.036, 0.068), ("bandwidth", 0.25, None))),
)

# Free-text genre keywords per detectable family, matched as whole words.
GENRE_FAMILIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "electronic",
        (
            "electronic", "electro", "house", "techno", "edm", "trance", "dubstep",
            "drum and bass", "drum & bass", "dnb", "dance", "garage", "breakbeat",
            "breaks", "disco",
        ),
    ),
    ("rock", ("rock", "metal", "punk", "grunge", "indie", "alternative", "emo")),
    (
        "classical",
        (
            "classical", "ambient", "orchestral", "piano", "soundtrack", "score",
            "chamber", "opera", "new age", "baroque",
        ),
    ),
    ("hip-hop", ("hip-hop", "hip hop", "hiphop", "rap", "trap", "r&b", "rnb", "urban", "grime", "drill")),
)


def _keyword_pattern(keywords: tuple[str, ...]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(k) for k in keywords)
    return re.compile(rf"(?<![a-z0-9])(?:{alternatives})(?![a-z0-9])")


_FAMILY_PATTERNS = tuple((label, _keyword_pattern(keywords)) for label, keywords in GENRE_FAMILIES)

# Per detected family: (metric, direction, (threshold, score) steps, fallback).
# "above" steps match when metric >= threshold, "below" when metric <= threshold.
SPECTRAL_TIERS: dict[str, tuple[str | None, str, tuple[tuple[float, float], ...], float]] = {
    "electronic": ("brightness", "above", ((0.12, 0.9), (0.09, 0.75)), 0.6),
    "rock": ("bandwidth", "above", ((0.4, 0.85), (0.3, 0.7)), 0.55),
    "classical": ("bandwidth", "below", ((0.05, 0.85),), 0.65),
    "hip-hop": ("rolloff", "below", ((0.1, 0.85),), 0.65),
    UNKNOWN_GENRE: (None, "above", (), 0.5),
}

_NATURAL_PITCHES = {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}
_ACCIDENTALS = {"#": 1, "b": -1}
_MODE_SUFFIXES = ("minor", "major", "min", "maj", "m")


def _step_score(value: float, steps: Iterable[tuple[float, float]], fallback: float) -> float:
    for threshold, score in steps:
        if value <= threshold:
            return score
    return fallback


def _spectral_metrics(fingerprint: AudioFingerprint) -> dict[str, float]:
    return {
        "brightness": fingerprint.brightness,
        "bandwidth": fingerprint.spread,
        "rolloff": fingerprint.high_frequency_ratio,
    }


def key_to_pitch_class(key: str | None) -> int:
    """Map a key name such as "Am", "F#", "Bbm" or "C# minor" to 0-11.

    Unrecognised names map to 0.
    """
    if not key:
        return 0
    name = key.strip().replace("♯", "#").replace("♭", "b")
    lowered = name.lower()
    for suffix in _MODE_SUFFIXES:
        if lowered.endswith(suffix) and len(name) > len(suffix):
            name = name[: -len(suffix)].strip()
            break

    if not name or name[0].upper() not in _NATURAL_PITCHES:
        return 0
    pitch = _NATURAL_PITCHES[name[0].upper()]
    accidental = name[1:]
    if accidental:
        if accidental not in _ACCIDENTALS:
            return 0
        pitch += _ACCIDENTALS[accidental]
    return pitch % 12


def estimate_bpm(fingerprint: AudioFingerprint) -> float:
    if fingerprint.tempo_hint:
        return fingerprint.tempo_hint

    bpm = DEFAULT_BPM_ESTIMATE
    if fingerprint.brightness < DARK_BRIGHTNESS:
        bpm = DARK_BPM_ESTIMATE
    elif fingerprint.brightness > BRIGHT_BRIGHTNESS:
        bpm = BRIGHT_BPM_ESTIMATE
    if fingerprint.zero_crossing_rate > BUSY_ZCR:
        bpm += BUSY_ZCR_BPM_BOOST
    return bpm


def detect_genre(fingerprint: AudioFingerprint) -> str:
    metrics = _spectral_metrics(fingerprint)
    for label, bounds in GENRE_SIGNATURES:
        if all(
            (low is None or metrics[metric] >= low) and (high is None or metrics[metric] < high)
            for metric, low, high in bounds
        ):
            return label
    return UNKNOWN_GENRE


def genre_families(genre: str | None) -> set[str]:
    if not genre:
        return set()
    lowered = genre.lower()
    return {label for label, pattern in _FAMILY_PATTERNS if pattern.search(lowered)}


def is_genre_compatible(detected: str, track_genre: str | None) -> bool:
    if detected == UNKNOWN_GENRE:
        return True
    families = genre_families(track_genre)
    if not families:
        return True
    return detected in families


def tempo_score(estimated_bpm: float | None, track_bpm: float | None) -> float:
    if not estimated_bpm or not track_bpm:
        return 0.0
    return _step_score(abs(estimated_bpm - track_bpm), TEMPO_STEPS, TEMPO_FLOOR_SCORE)


def key_score(fingerprint: AudioFingerprint, track_key: str | None) -> float:
    if not fingerprint.has_chroma or not track_key:
        return 0.0
    strength = fingerprint.key_profile[key_to_pitch_class(track_key)]
    raw = min(1.0, strength * 2)
    if raw <= 0.4:
        return 0.0
    if raw <= 0.6:
        return raw * 0.7
    return raw


def energy_score(fingerprint: AudioFingerprint, track: TrackRecord) -> float:
    if track.energy is None or fingerprint.level <= MIN_AUDIO_LEVEL:
        return 0.0
    diff = abs(track.energy.overall / 10.0 - fingerprint.level)
    return _step_score(diff, ENERGY_STEPS, ENERGY_FLOOR_SCORE)


def spectral_score(fingerprint: AudioFingerprint, detected: str) -> float:
    metric, direction, steps, fallback = SPECTRAL_TIERS.get(detected, SPECTRAL_TIERS[UNKNOWN_GENRE])
    if metric is None:
        return fallback
    value = _spectral_metrics(fingerprint)[metric]
    for threshold, score in steps:
        if (direction == "above" and value >= threshold) or (direction == "below" and value <= threshold):
            return score
    return fallback


def aggregate(tempo: float, key: float, energy: float, spectral: float) -> float:
    overall = TEMPO_WEIGHT * tempo + SPECTRAL_WEIGHT * spectral + ENERGY_WEIGHT * energy + KEY_WEIGHT * key
    overall = max(0.0, min(1.0, overall))
    if overall - NOISE_FLOOR <= SCORE_TOLERANCE:
        return 0.0
    return overall


def _reasoning(scores: AxisScores, track: TrackRecord) -> list[str]:
    reasons: list[str] = []
    if scores.tempo > 0.7:
        reasons.append(f"Strong BPM match ({track.bpm:g} BPM)")
    if scores.key > 0.6:
        reasons.append(f"Key signature match ({track.key})")
    if scores.energy > 0.6:
        reasons.append("Energy level match")
    if scores.spectral > 0.6:
        reasons.append(f"Genre characteristics match ({track.genre or UNKNOWN_GENRE})")
    if not reasons:
        reasons.append("Weak overall similarity")
    return reasons


class MatchScorer:
    """Score every catalog track against one fingerprint and rank the survivors."""

    def __init__(self, max_candidates: int = MAX_CANDIDATES) -> None:
        self.max_candidates = max_candidates

    def score_track(
        self,
        fingerprint: AudioFingerprint,
        track: TrackRecord,
        detected_genre: str | None = None,
        estimated_bpm: float | None = None,
    ) -> AxisScores:
        if detected_genre is None:
            detected_genre = detect_genre(fingerprint)
        if estimated_bpm is None:
            estimated_bpm = estimate_bpm(fingerprint)

        tempo = tempo_score(estimated_bpm, track.bpm)
        key = key_score(fingerprint, track.key)
        energy = energy_score(fingerprint, track)

        # Hard gate: an incompatible genre zeroes every axis.
        if not is_genre_compatible(detected_genre, track.genre):
            return AxisScores()

        spectral = spectral_score(fingerprint, detected_genre)
        return AxisScores(
            tempo=tempo,
            key=key,
            energy=energy,
            spectral=spectral,
            overall=aggregate(tempo, key, energy, spectral),
        )

    def rank(self, fingerprint: AudioFingerprint, tracks: Iterable[TrackRecord]) -> list[MatchCandidate]:
        detected = detect_genre(fingerprint)
        bpm = estimate_bpm(fingerprint)

        candidates: list[MatchCandidate] = []
        for track in tracks:
            scores = self.score_track(fingerprint, track, detected_genre=detected, estimated_bpm=bpm)
            if scores.overall <= 0:
                continue
            candidates.append(
                MatchCandidate(
                    track=track,
                    scores=scores,
                    time_offset=estimate_time_offset(fingerprint.level, track),
                    reasoning=_reasoning(scores, track),
                )
            )

        candidates.sort(key=lambda c: c.overall, reverse=True)
        candidates = candidates[: self.max_candidates]
        logger.debug(
            "Detected %s at %.1f BPM, top matches: %s",
            detected,
            bpm,
            [f"{c.track.name} ({c.overall:.2f})" for c in candidates[:3]],
        )
        return candidates
