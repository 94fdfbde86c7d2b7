from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class EnergySummary:
    """Energy on a 1-10 scale, overall and per section."""

    overall: float
    intro: float = 0.0
    breakdown: float = 0.0
    buildup: float = 0.0
    drop: float = 0.0
    outro: float = 0.0


@dataclass(frozen=True, slots=True)
class SectionSpan:
    label: str
    start: float  # fraction of duration
    end: float


@dataclass(frozen=True, slots=True)
class TrackRecord:
    track_id: str
    name: str
    artist: str
    bpm: float = 120.0
    key: str = "C"
    duration: float = 180.0
    genre: str | None = None
    energy: EnergySummary | None = None
    song_structure: tuple[SectionSpan, ...] | None = None


@dataclass(slots=True)
class FeatureFrame:
    """Raw measurements for one analysis tick."""

    spectral_centroid: float = 0.0
    spectral_bandwidth: float = 0.0
    spectral_rolloff: float = 0.0
    zero_crossing_rate: float = 0.0
    mfcc: list[float] = field(default_factory=list)
    chroma: list[float] = field(default_factory=list)
    audio_level: float = 0.0
    tempo_hint: float | None = None


@dataclass(slots=True)
class AudioFingerprint:
    spectral_profile: list[float]
    tempo_profile: list[float]
    energy_profile: list[float]
    key_profile: list[float]
    confidence: float
    timestamp: float
    tempo_hint: float | None = None
    has_chroma: bool = False

    @property
    def level(self) -> float:
        return self.energy_profile[0]

    @property
    def brightness(self) -> float:
        return self.energy_profile[1]

    @property
    def spread(self) -> float:
        return self.energy_profile[2]

    @property
    def high_frequency_ratio(self) -> float:
        return self.energy_profile[3]

    @property
    def zero_crossing_rate(self) -> float:
        return self.tempo_profile[0]


@dataclass(frozen=True, slots=True)
class AxisScores:
    tempo: float = 0.0
    key: float = 0.0
    energy: float = 0.0
    spectral: float = 0.0
    overall: float = 0.0


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    track: TrackRecord
    scores: AxisScores
    time_offset: float
    reasoning: list[str]

    @property
    def overall(self) -> float:
        return self.scores.overall


@dataclass(frozen=True, slots=True)
class LockState:
    """Unlocked when track_id is None."""

    track_id: str | None = None
    confidence: float = 0.0

    @property
    def is_locked(self) -> bool:
        return self.track_id is not None


UNLOCKED = LockState()


@dataclass(slots=True)
class Enhancement:
    predicted_bpm: float = 120.0
    predicted_key: str = "C"
    predicted_genre: str = "unknown"
    predicted_energy: float = 0.5
    song_section: str = "unknown"
    time_in_track: float = 0.0
    time_remaining: float = 0.0


@dataclass(slots=True)
class IdentificationResult:
    current_track: MatchCandidate | None
    alternatives: list[MatchCandidate]
    is_confident: bool
    confidence_score: float
    enhancement: Enhancement


@dataclass(slots=True)
class EngineStats:
    database_size: int
    current_match_name: str
    confidence: float
    rejected_tracks: int = 0
    is_empty: bool = True
    signal_quality: float = 0.0
