"""Per-tick track identification.

``TrackIdentifier`` is the single handle that owns the catalog, the rolling
fingerprint history and the lock. Each ``identify`` call runs one tick:

    frame -> fingerprint -> ranked candidates -> lock update -> enhancement
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from typing import Any

from live_track_id.analysis import FingerprintHistory, build_fingerprint
from live_track_id.config import EngineSettings
from live_track_id.database import TrackDatabase
from live_track_id.enhancement import generate_enhancement
from live_track_id.matcher import MatchScorer
from live_track_id.models import (
    EngineStats,
    FeatureFrame,
    IdentificationResult,
    MatchCandidate,
    TrackRecord,
)
from live_track_id.tracker import MatchTracker

logger = logging.getLogger(__name__)

ALTERNATIVES = 3
CONFIDENT_ABOVE = 0.5


class TrackIdentifier:
    def __init__(self, settings: EngineSettings | None = None) -> None:
        settings = settings or EngineSettings()
        self.settings = settings
        self.database = TrackDatabase()
        self.history = FingerprintHistory(settings.history_size)
        self.scorer = MatchScorer(max_candidates=settings.max_candidates)
        self.tracker = MatchTracker(
            acceptance_threshold=settings.acceptance_threshold,
            switch_margin=settings.switch_margin,
            reinforce_factor=settings.reinforce_factor,
        )
        # Calls may arrive from a worker pool; every read and write of tick state holds this lock.
        self._lock = threading.Lock()

    def load_database(self, tracks: Iterable[TrackRecord | Mapping[str, Any]]) -> int:
        with self._lock:
            loaded = self.database.load(tracks)
            self.tracker.reset()
            self.history.clear()
        return loaded

    def identify(self, frame: FeatureFrame) -> IdentificationResult:
        fingerprint = build_fingerprint(frame)
        with self._lock:
            self.history.append(fingerprint)
            candidates = self.scorer.rank(fingerprint, self.database.tracks)
            state = self.tracker.update(candidates)
            current = self.tracker.current
            locked_track = self.database.get(state.track_id) if state.is_locked else None
            enhancement = generate_enhancement(locked_track, fingerprint.level)

        return IdentificationResult(
            current_track=current,
            alternatives=candidates[:ALTERNATIVES],
            is_confident=state.is_locked and state.confidence > CONFIDENT_ABOVE,
            confidence_score=state.confidence if state.is_locked else 0.0,
            enhancement=enhancement,
        )

    def current_match(self) -> MatchCandidate | None:
        with self._lock:
            return self.tracker.current

    def stats(self) -> EngineStats:
        with self._lock:
            state = self.tracker.state
            current = self.tracker.current
            return EngineStats(
                database_size=len(self.database),
                current_match_name=current.track.name if current else "None",
                confidence=state.confidence if state.is_locked else 0.0,
                rejected_tracks=self.database.rejected,
                is_empty=self.database.is_empty,
                signal_quality=self.history.mean_confidence(),
            )
