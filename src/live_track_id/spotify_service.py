from __future__ import annotations

import logging
import os
import warnings
from typing import Iterable

import spotipy
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyClientCredentials
from requests.exceptions import HTTPError

logger = logging.getLogger(__name__)

PITCH_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")

# (genre keywords, base energy on a 1-10 scale); first match wins.
_GENRE_ENERGY = (
    (("house", "techno", "dance"), 7),
    (("ambient", "classical"), 3),
    (("rock", "metal"), 8),
    (("electronic", "edm"), 8),
)


def _status_of(exc: HTTPError | SpotifyException) -> int | None:
    return exc.response.status_code if isinstance(exc, HTTPError) else exc.http_status


def key_name(key: int | None, mode: int | None) -> str | None:
    if key is None or not 0 <= key < 12:
        return None
    return PITCH_NAMES[key] + ("m" if mode == 0 else "")


def estimate_energy(genre: str | None, bpm: float) -> dict:
    """Rough energy summary when no measured energy is available."""
    lowered = (genre or "").lower()
    base = 5
    for keywords, energy in _GENRE_ENERGY:
        if any(k in lowered for k in keywords):
            base = energy
            break

    if bpm > 140:
        base += 1
    if bpm > 160:
        base += 1
    if bpm < 100:
        base -= 1
    base = max(1, min(10, base))

    return {
        "overall": base,
        "intro": max(1, base - 2),
        "breakdown": max(1, base - 1),
        "buildup": base,
        "drop": min(10, base + 1),
        "outro": max(1, base - 3),
    }


def catalog_entry(track: dict, features: dict | None = None, analysis: dict | None = None,
                  genres: list[str] | None = None) -> dict:
    """Convert a Spotify track plus optional features/analysis into a catalog mapping."""
    features = features or {}
    analysis = analysis or {}

    duration = (track.get("duration_ms") or 0) / 1000.0
    bpm = float(features.get("tempo") or 0.0)
    genre = genres[0] if genres else None

    if features.get("energy") is not None:
        overall = round(float(features["energy"]) * 10, 1)
        energy = {
            "overall": overall,
            "intro": max(1.0, overall - 2),
            "breakdown": max(1.0, overall - 1),
            "buildup": overall,
            "drop": min(10.0, overall + 1),
            "outro": max(1.0, overall - 3),
        }
    else:
        energy = estimate_energy(genre, bpm or 120.0)

    structure = []
    if duration > 0:
        for index, section in enumerate(analysis.get("sections", [])):
            start = float(section.get("start", 0.0))
            length = float(section.get("duration", 0.0))
            structure.append({
                "label": f"section_{index}",
                "start": start / duration,
                "end": min(1.0, (start + length) / duration),
            })

    return {
        "id": track.get("id"),
        "name": track.get("name"),
        "artist": ", ".join(a.get("name", "") for a in track.get("artists", [])),
        "bpm": bpm,
        "key": key_name(features.get("key"), features.get("mode")),
        "duration": duration,
        "genre": genre,
        "energy": energy,
        "song_structure": structure,
    }


class SpotifyCatalogService:
    def __init__(self) -> None:
        self._validate_credentials()
        self.client = spotipy.Spotify(auth_manager=SpotifyClientCredentials())

    @staticmethod
    def _validate_credentials() -> None:
        missing = [name for name in ("SPOTIPY_CLIENT_ID", "SPOTIPY_CLIENT_SECRET") if not os.getenv(name)]
        if missing:
            missing_list = ", ".join(missing)
            raise ValueError(
                f"Missing Spotify credentials: {missing_list}. "
                "Set them in environment variables or local .env file."
            )

    PAGE_LIMIT = 100

    def playlist_tracks(self, playlist_id: str, limit: int = 500) -> list[dict]:
        tracks: list[dict] = []
        offset = 0
        while len(tracks) < limit:
            page_size = min(self.PAGE_LIMIT, limit - len(tracks))
            try:
                page = self.client.playlist_items(
                    playlist_id, limit=page_size, offset=offset, additional_types=("track",), market="US"
                )
            except (HTTPError, SpotifyException) as exc:
                if _status_of(exc) == 400:
                    warnings.warn(
                        f"Spotify playlist request returned 400 Bad Request (limit={page_size}, offset={offset}). "
                        "Returning tracks collected so far.",
                        RuntimeWarning,
                        stacklevel=2,
                    )
                    break
                raise
            items = page.get("items", [])
            if not items:
                break
            tracks.extend(item["track"] for item in items if item.get("track") and item["track"].get("id"))
            offset += len(items)
        return tracks[:limit]

    def artist_genres(self, track: dict) -> list[str]:
        artist_id = (track.get("artists") or [{}])[0].get("id")
        if not artist_id:
            return []
        artist = self.client.artist(artist_id)
        return artist.get("genres") or []

    def _safe_audio_features(self, track_id: str) -> dict:
        try:
            result = self.client.audio_features([track_id])[0]
            return result or {}
        except (HTTPError, SpotifyException) as exc:
            if _status_of(exc) == 403:
                warnings.warn(
                    "Spotify audio-features endpoint returned 403 Forbidden. "
                    "This endpoint may be restricted for your app credentials. "
                    "Falling back to estimated tempo and energy.",
                    RuntimeWarning,
                    stacklevel=2,
                )
                return {}
            raise

    def _safe_audio_analysis(self, track_id: str) -> dict:
        try:
            return self.client.audio_analysis(track_id) or {}
        except (HTTPError, SpotifyException) as exc:
            if _status_of(exc) == 403:
                warnings.warn(
                    "Spotify audio-analysis endpoint returned 403 Forbidden. "
                    "This endpoint may be restricted for your app credentials. "
                    "Falling back to no song structure.",
                    RuntimeWarning,
                    stacklevel=2,
                )
                return {}
            raise

    def hydrate_entry(self, track: dict) -> dict:
        features = self._safe_audio_features(track["id"])
        analysis = self._safe_audio_analysis(track["id"])
        return catalog_entry(track, features, analysis, genres=self.artist_genres(track))

    def hydrate_entries(self, tracks: Iterable[dict]) -> list[dict]:
        entries: list[dict] = []
        for track in tracks:
            entries.append(self.hydrate_entry(track))
        return entries

    def load_playlist_catalog(self, playlist_id: str, limit: int = 500) -> list[dict]:
        tracks = self.playlist_tracks(playlist_id, limit=limit)
        logger.info("Fetched %d tracks from playlist %s", len(tracks), playlist_id)
        return self.hydrate_entries(tracks)
