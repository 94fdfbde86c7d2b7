"""FastAPI web server for live track identification."""
import threading
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from live_track_id.config import EngineSettings
from live_track_id.engine import TrackIdentifier
from live_track_id.models import FeatureFrame, IdentificationResult, MatchCandidate

app = FastAPI(title="Live Track ID")

# Enable CORS for the visualizer frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_engine: TrackIdentifier | None = None
_engine_lock = threading.Lock()


def get_engine() -> TrackIdentifier:
    """Return the process-wide identifier, creating it on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = TrackIdentifier(EngineSettings.from_env())
        return _engine


# Request/Response models
class CatalogRequest(BaseModel):
    """Catalog entries as produced by an external loader."""
    tracks: list[dict[str, Any]]

class CatalogResponse(BaseModel):
    loaded: int
    rejected: int

class FrameRequest(BaseModel):
    """One tick of derived audio measurements."""
    spectral_centroid: float = Field(default=0.0, ge=0)
    spectral_bandwidth: float = Field(default=0.0, ge=0)
    spectral_rolloff: float = Field(default=0.0, ge=0)
    zero_crossing_rate: float = Field(default=0.0, ge=0)
    mfcc: list[float] = []
    chroma: list[float] = []
    audio_level: float = Field(default=0.0, ge=0, le=1)
    tempo_hint: float | None = Field(default=None, gt=0)

class ScoresInfo(BaseModel):
    tempo: float
    key: float
    energy: float
    spectral: float
    overall: float

class CandidateInfo(BaseModel):
    """A ranked track candidate."""
    id: str
    name: str
    artist: str
    bpm: float
    key: str
    genre: str | None = None
    scores: ScoresInfo
    time_offset: float
    reasoning: list[str] = []

class EnhancementInfo(BaseModel):
    predicted_bpm: float
    predicted_key: str
    predicted_genre: str
    predicted_energy: float
    song_section: str
    time_in_track: float
    time_remaining: float

class IdentifyResponse(BaseModel):
    current_track: CandidateInfo | None = None
    alternatives: list[CandidateInfo]
    is_confident: bool
    confidence_score: float
    enhancement: EnhancementInfo

class StatsResponse(BaseModel):
    database_size: int
    current_match_name: str
    confidence: float
    rejected_tracks: int
    is_empty: bool
    signal_quality: float


def _candidate_info(candidate: MatchCandidate) -> CandidateInfo:
    track = candidate.track
    scores = candidate.scores
    return CandidateInfo(
        id=track.track_id,
        name=track.name,
        artist=track.artist,
        bpm=track.bpm,
        key=track.key,
        genre=track.genre,
        scores=ScoresInfo(
            tempo=scores.tempo,
            key=scores.key,
            energy=scores.energy,
            spectral=scores.spectral,
            overall=scores.overall,
        ),
        time_offset=candidate.time_offset,
        reasoning=list(candidate.reasoning),
    )


def _identify_response(result: IdentificationResult) -> IdentifyResponse:
    e = result.enhancement
    return IdentifyResponse(
        current_track=_candidate_info(result.current_track) if result.current_track else None,
        alternatives=[_candidate_info(c) for c in result.alternatives],
        is_confident=result.is_confident,
        confidence_score=result.confidence_score,
        enhancement=EnhancementInfo(
            predicted_bpm=e.predicted_bpm,
            predicted_key=e.predicted_key,
            predicted_genre=e.predicted_genre,
            predicted_energy=e.predicted_energy,
            song_section=e.song_section,
            time_in_track=e.time_in_track,
            time_remaining=e.time_remaining,
        ),
    )


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}

@app.post("/api/catalog", response_model=CatalogResponse)
def load_catalog(request: CatalogRequest):
    """Replace the identification catalog."""
    engine = get_engine()
    loaded = engine.load_database(request.tracks)
    return CatalogResponse(loaded=loaded, rejected=engine.database.rejected)

@app.post("/api/identify", response_model=IdentifyResponse)
def identify(request: FrameRequest):
    """Run one identification tick."""
    result = get_engine().identify(FeatureFrame(**request.model_dump()))
    return _identify_response(result)

@app.get("/api/match", response_model=CandidateInfo)
def current_match():
    """Return the locked track, if any."""
    match = get_engine().current_match()
    if match is None:
        raise HTTPException(status_code=404, detail="No track locked")
    return _candidate_info(match)

@app.get("/api/stats", response_model=StatsResponse)
def stats():
    s = get_engine().stats()
    return StatsResponse(
        database_size=s.database_size,
        current_match_name=s.current_match_name,
        confidence=s.confidence,
        rejected_tracks=s.rejected_tracks,
        is_empty=s.is_empty,
        signal_quality=s.signal_quality,
    )
