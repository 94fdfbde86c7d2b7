from __future__ import annotations

from live_track_id.models import Enhancement, TrackRecord

# Audio level stands in for a playhead: quiet reads as intro, loud as chorus.
_QUIET_LEVEL = 0.3
_LOUD_LEVEL = 0.7
_INTRO_RATIO = 0.05
_VERSE_RATIO = 0.3
_CHORUS_RATIO = 0.4

_INTRO_END = 0.1
_OUTRO_START = 0.9
# Open intervals of elapsed/duration read as chorus.
_CHORUS_WINDOWS = ((0.3, 0.5), (0.7, 0.9))


def offset_ratio(level: float) -> float:
    if level < _QUIET_LEVEL:
        return _INTRO_RATIO
    if level > _LOUD_LEVEL:
        return _CHORUS_RATIO
    return _VERSE_RATIO


def estimate_time_offset(level: float, track: TrackRecord) -> float:
    return track.duration * offset_ratio(level)


def section_for_ratio(ratio: float) -> str:
    if ratio < _INTRO_END:
        return "intro"
    if ratio > _OUTRO_START:
        return "outro"
    for low, high in _CHORUS_WINDOWS:
        if low < ratio < high:
            return "chorus"
    return "verse"


def predict_section(track: TrackRecord, ratio: float) -> str:
    if not track.song_structure:
        return "unknown"
    return section_for_ratio(ratio)


def predicted_energy(track: TrackRecord) -> float:
    if track.energy is None:
        return 0.5
    return track.energy.overall / 10.0


def generate_enhancement(track: TrackRecord | None, level: float) -> Enhancement:
    """Derive playback estimates from the locked track, or defaults when unlocked."""
    if track is None:
        return Enhancement()

    ratio = offset_ratio(level)
    offset = track.duration * ratio
    return Enhancement(
        predicted_bpm=track.bpm,
        predicted_key=track.key,
        predicted_genre=track.genre or "unknown",
        predicted_energy=predicted_energy(track),
        song_section=predict_section(track, ratio),
        time_in_track=offset,
        time_remaining=max(0.0, track.duration - offset),
    )
