from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any

from live_track_id.models import EnergySummary, SectionSpan, TrackRecord

logger = logging.getLogger(__name__)

DEFAULT_BPM = 120.0
DEFAULT_DURATION = 180.0
DEFAULT_KEY = "C"

_ENERGY_SECTIONS = ("intro", "breakdown", "buildup", "drop", "outro")


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _clean_text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _build_energy(raw: Any) -> EnergySummary | None:
    if isinstance(raw, EnergySummary):
        return raw
    if isinstance(raw, (int, float)):
        return EnergySummary(overall=float(raw))
    if not isinstance(raw, Mapping):
        return None
    overall = _to_float(raw.get("overall"))
    if overall is None:
        return None
    sections = {name: _to_float(raw.get(name)) or 0.0 for name in _ENERGY_SECTIONS}
    return EnergySummary(overall=overall, **sections)


def _build_structure(raw: Any) -> tuple[SectionSpan, ...] | None:
    if not raw:
        return None
    spans: list[SectionSpan] = []
    for item in raw:
        if isinstance(item, SectionSpan):
            spans.append(item)
            continue
        if not isinstance(item, Mapping):
            continue
        start = _to_float(item.get("start"))
        end = _to_float(item.get("end"))
        if start is None or end is None or end < start:
            continue
        spans.append(SectionSpan(label=_clean_text(item.get("label")) or "section", start=start, end=end))
    return tuple(spans) or None


def build_track_record(raw: Mapping[str, Any], index: int = 0) -> TrackRecord | None:
    """Build a validated record from a catalog mapping, or None if unusable.

    Missing or zero BPM falls back to 120 and missing duration to 180 seconds.
    Records with neither name nor artist, or with a negative or non-numeric
    BPM, are dropped.
    """

    name = _clean_text(raw.get("name"))
    artist = _clean_text(raw.get("artist"))
    if not name and not artist:
        return None

    raw_bpm = raw.get("bpm")
    bpm = _to_float(raw_bpm)
    if bpm is None:
        if raw_bpm not in (None, ""):
            return None
        bpm = DEFAULT_BPM
    elif bpm < 0:
        return None
    elif bpm == 0:
        bpm = DEFAULT_BPM

    duration = _to_float(raw.get("duration"))
    if duration is None or duration <= 0:
        duration = DEFAULT_DURATION

    genre = _clean_text(raw.get("genre")) or None

    return TrackRecord(
        track_id=_clean_text(raw.get("id")) or f"track_{index}",
        name=name or "Unknown Track",
        artist=artist or "Unknown Artist",
        bpm=bpm,
        key=_clean_text(raw.get("key")) or DEFAULT_KEY,
        duration=duration,
        genre=genre,
        energy=_build_energy(raw.get("energy")),
        song_structure=_build_structure(raw.get("song_structure")),
    )


def _validate_record(record: TrackRecord) -> TrackRecord | None:
    if not record.name and not record.artist:
        return None
    if record.bpm <= 0:
        return None
    return record


class TrackDatabase:
    def __init__(self, tracks: Iterable[TrackRecord | Mapping[str, Any]] = ()) -> None:
        self._tracks: tuple[TrackRecord, ...] = ()
        self._by_id: dict[str, TrackRecord] = {}
        self.rejected = 0
        if tracks:
            self.load(tracks)

    def load(self, tracks: Iterable[TrackRecord | Mapping[str, Any]]) -> int:
        """Replace the catalog. Returns the number of usable tracks."""
        accepted: list[TrackRecord] = []
        by_id: dict[str, TrackRecord] = {}
        rejected = 0

        for index, raw in enumerate(tracks):
            if isinstance(raw, TrackRecord):
                record = _validate_record(raw)
            else:
                record = build_track_record(raw, index)
            if record is None:
                rejected += 1
                continue
            if record.track_id in by_id:
                logger.warning("Duplicate track id %s ignored", record.track_id)
                rejected += 1
                continue
            by_id[record.track_id] = record
            accepted.append(record)

        self._tracks = tuple(accepted)
        self._by_id = by_id
        self.rejected = rejected

        if rejected:
            logger.warning("Dropped %d unusable catalog entries", rejected)
        if not accepted:
            logger.warning("Catalog loaded but contains zero usable tracks")
        else:
            logger.info("Loaded %d tracks into identification database", len(accepted))
        return len(accepted)

    def get(self, track_id: str) -> TrackRecord | None:
        return self._by_id.get(track_id)

    @property
    def tracks(self) -> tuple[TrackRecord, ...]:
        return self._tracks

    @property
    def is_empty(self) -> bool:
        return not self._tracks

    def __len__(self) -> int:
        return len(self._tracks)

    def __iter__(self):
        return iter(self._tracks)
