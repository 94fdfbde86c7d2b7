import unittest
import warnings
from unittest.mock import MagicMock, patch

from requests.exceptions import HTTPError
from requests.models import Response
from spotipy.exceptions import SpotifyException

from live_track_id.database import build_track_record
from live_track_id.spotify_service import (
    SpotifyCatalogService,
    catalog_entry,
    estimate_energy,
    key_name,
)


def _make_403_http_error() -> HTTPError:
    response = Response()
    response.status_code = 403
    return HTTPError(response=response)


def _make_403_spotify_exception() -> SpotifyException:
    return SpotifyException(http_status=403, code=-1, msg="https://api.spotify.com/v1/audio-features/")


def _make_400_spotify_exception() -> SpotifyException:
    return SpotifyException(http_status=400, code=-1, msg="https://api.spotify.com/v1/playlists/p1/tracks")


def _make_service() -> SpotifyCatalogService:
    """Return a SpotifyCatalogService with a mocked spotipy client (no network calls)."""
    with patch("live_track_id.spotify_service.SpotifyClientCredentials"), \
         patch("live_track_id.spotify_service.spotipy.Spotify"), \
         patch.dict("os.environ", {"SPOTIPY_CLIENT_ID": "x", "SPOTIPY_CLIENT_SECRET": "y"}):
        svc = SpotifyCatalogService()
    return svc


def _fake_track(track_id: str = "t1") -> dict:
    return {
        "id": track_id,
        "name": "Song",
        "artists": [{"id": "a1", "name": "Artist"}, {"id": "a2", "name": "Guest"}],
        "duration_ms": 200_000,
    }


class ConversionTests(unittest.TestCase):
    def test_key_name(self) -> None:
        self.assertEqual(key_name(9, 0), "Am")
        self.assertEqual(key_name(1, 1), "C#")
        self.assertIsNone(key_name(-1, 1))
        self.assertIsNone(key_name(None, None))

    def test_estimate_energy_from_genre_and_bpm(self) -> None:
        self.assertEqual(estimate_energy("Tech House", 128)["overall"], 7)
        self.assertEqual(estimate_energy("ambient", 90)["overall"], 2)
        self.assertEqual(estimate_energy("drum and bass", 174)["overall"], 7)
        self.assertEqual(estimate_energy("metal", 170)["overall"], 10)
        self.assertEqual(estimate_energy(None, 120)["overall"], 5)

    def test_catalog_entry_from_features_and_analysis(self) -> None:
        entry = catalog_entry(
            _fake_track(),
            features={"tempo": 124.0, "key": 5, "mode": 0, "energy": 0.75},
            analysis={"sections": [{"start": 0.0, "duration": 20.0}, {"start": 20.0, "duration": 180.0}]},
            genres=["deep house"],
        )
        self.assertEqual(entry["artist"], "Artist, Guest")
        self.assertEqual(entry["bpm"], 124.0)
        self.assertEqual(entry["key"], "Fm")
        self.assertEqual(entry["duration"], 200.0)
        self.assertEqual(entry["genre"], "deep house")
        self.assertEqual(entry["energy"]["overall"], 7.5)
        self.assertEqual(entry["song_structure"][0], {"label": "section_0", "start": 0.0, "end": 0.1})
        self.assertEqual(entry["song_structure"][1]["end"], 1.0)

    def test_catalog_entry_without_features_loads_with_defaults(self) -> None:
        entry = catalog_entry(_fake_track())
        record = build_track_record(entry)
        self.assertEqual(record.bpm, 120.0)
        self.assertEqual(record.key, "C")
        self.assertEqual(record.energy.overall, 5)
        self.assertIsNone(record.song_structure)


class CredentialsTests(unittest.TestCase):
    def test_missing_credentials_raise(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            with self.assertRaises(ValueError):
                SpotifyCatalogService()


class PlaylistTests(unittest.TestCase):
    def test_playlist_tracks_pages_until_empty(self) -> None:
        svc = _make_service()
        svc.client.playlist_items = MagicMock(side_effect=[
            {"items": [{"track": _fake_track("t1")}, {"track": None}, {"track": _fake_track("t2")}]},
            {"items": []},
        ])

        tracks = svc.playlist_tracks("p1", limit=50)

        self.assertEqual([t["id"] for t in tracks], ["t1", "t2"])
        second_call = svc.client.playlist_items.call_args_list[1]
        self.assertEqual(second_call.kwargs["offset"], 3)

    def test_playlist_tracks_page_size_is_capped(self) -> None:
        svc = _make_service()
        svc.client.playlist_items = MagicMock(return_value={"items": []})

        svc.playlist_tracks("p1", limit=500)

        self.assertLessEqual(svc.client.playlist_items.call_args.kwargs["limit"], SpotifyCatalogService.PAGE_LIMIT)

    def test_playlist_tracks_returns_collected_on_400(self) -> None:
        svc = _make_service()
        svc.client.playlist_items = MagicMock(side_effect=[
            {"items": [{"track": _fake_track("t1")}]},
            _make_400_spotify_exception(),
        ])

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            tracks = svc.playlist_tracks("p1", limit=50)

        self.assertEqual(len(tracks), 1)
        self.assertTrue(any("400" in str(w.message) for w in caught))

    def test_playlist_tracks_re_raises_other_errors(self) -> None:
        svc = _make_service()
        response = Response()
        response.status_code = 500
        svc.client.playlist_items = MagicMock(side_effect=HTTPError(response=response))

        with self.assertRaises(HTTPError):
            svc.playlist_tracks("p1")


class HydrateTests(unittest.TestCase):
    def test_hydrate_entry_falls_back_on_403(self) -> None:
        svc = _make_service()
        svc.client.audio_features = MagicMock(side_effect=_make_403_spotify_exception())
        svc.client.audio_analysis = MagicMock(side_effect=_make_403_http_error())
        svc.client.artist = MagicMock(return_value={"genres": ["techno"]})

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            entry = svc.hydrate_entry(_fake_track())

        self.assertEqual(len(caught), 2)
        self.assertEqual(entry["genre"], "techno")
        self.assertEqual(entry["energy"]["overall"], 7)
        self.assertEqual(entry["song_structure"], [])

    def test_load_playlist_catalog(self) -> None:
        svc = _make_service()
        svc.client.playlist_items = MagicMock(side_effect=[{"items": [{"track": _fake_track()}]}, {"items": []}])
        svc.client.audio_features = MagicMock(return_value=[{"tempo": 126.0, "key": 9, "mode": 0, "energy": 0.8}])
        svc.client.audio_analysis = MagicMock(return_value={"sections": []})
        svc.client.artist = MagicMock(return_value={"genres": []})

        entries = svc.load_playlist_catalog("p1")

        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]["key"], "Am")
        self.assertIsNone(entries[0]["genre"])


if __name__ == "__main__":
    unittest.main()
