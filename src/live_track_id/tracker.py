from __future__ import annotations

import logging

from live_track_id.matcher import SCORE_TOLERANCE
from live_track_id.models import UNLOCKED, LockState, MatchCandidate

logger = logging.getLogger(__name__)

ACCEPTANCE_THRESHOLD = 0.5
SWITCH_MARGIN = 0.1
REINFORCE_FACTOR = 1.05
MAX_CONFIDENCE = 0.98


def next_lock_state(
    state: LockState,
    best: MatchCandidate | None,
    acceptance_threshold: float = ACCEPTANCE_THRESHOLD,
    switch_margin: float = SWITCH_MARGIN,
    reinforce_factor: float = REINFORCE_FACTOR,
    max_confidence: float = MAX_CONFIDENCE,
) -> LockState:
    """Apply the hysteresis rules for one tick and return the new lock state."""
    if best is None:
        return UNLOCKED

    if not state.is_locked:
        if best.overall - acceptance_threshold > SCORE_TOLERANCE:
            return LockState(best.track.track_id, min(max_confidence, best.overall))
        return state

    if best.track.track_id == state.track_id:
        return LockState(state.track_id, min(max_confidence, state.confidence * reinforce_factor))

    if best.overall - state.confidence - switch_margin > SCORE_TOLERANCE:
        return LockState(best.track.track_id, min(max_confidence, best.overall))

    return state


class MatchTracker:
    """Owns the lock and the latest candidate seen for the locked track."""

    def __init__(
        self,
        acceptance_threshold: float = ACCEPTANCE_THRESHOLD,
        switch_margin: float = SWITCH_MARGIN,
        reinforce_factor: float = REINFORCE_FACTOR,
        max_confidence: float = MAX_CONFIDENCE,
    ) -> None:
        self.acceptance_threshold = acceptance_threshold
        self.switch_margin = switch_margin
        self.reinforce_factor = reinforce_factor
        self.max_confidence = max_confidence
        self._state = UNLOCKED
        self._match: MatchCandidate | None = None

    @property
    def state(self) -> LockState:
        return self._state

    @property
    def current(self) -> MatchCandidate | None:
        return self._match if self._state.is_locked else None

    def reset(self) -> None:
        self._state = UNLOCKED
        self._match = None

    def update(self, candidates: list[MatchCandidate]) -> LockState:
        best = candidates[0] if candidates else None
        previous = self._state
        self._state = next_lock_state(
            previous,
            best,
            acceptance_threshold=self.acceptance_threshold,
            switch_margin=self.switch_margin,
            reinforce_factor=self.reinforce_factor,
            max_confidence=self.max_confidence,
        )

        if not self._state.is_locked:
            self._match = None
        else:
            for candidate in candidates:
                if candidate.track.track_id == self._state.track_id:
                    self._match = candidate
                    break

        if previous.track_id != self._state.track_id:
            if self._state.is_locked:
                logger.info(
                    "Locked onto %s (confidence %.2f)",
                    self._match.track.name if self._match else self._state.track_id,
                    self._state.confidence,
                )
            else:
                logger.info("Lock released on %s", previous.track_id)
        return self._state
