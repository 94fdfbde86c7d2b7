import unittest

from live_track_id.database import TrackDatabase, build_track_record
from live_track_id.models import EnergySummary, SectionSpan, TrackRecord


def _raw_track(**overrides) -> dict:
    track = {
        "id": "t1",
        "name": "Test Song",
        "artist": "Test Artist",
        "bpm": 126,
        "key": "Am",
        "duration": 240,
        "genre": "Deep House",
    }
    track.update(overrides)
    return track


class BuildTrackRecordTests(unittest.TestCase):
    def test_fields_are_copied(self) -> None:
        record = build_track_record(_raw_track())
        self.assertEqual(record.track_id, "t1")
        self.assertEqual(record.bpm, 126.0)
        self.assertEqual(record.key, "Am")
        self.assertEqual(record.duration, 240.0)
        self.assertEqual(record.genre, "Deep House")
        self.assertIsNone(record.energy)
        self.assertIsNone(record.song_structure)

    def test_missing_numeric_fields_use_defaults(self) -> None:
        track = _raw_track()
        del track["bpm"]
        del track["duration"]
        del track["key"]
        record = build_track_record(track)
        self.assertEqual(record.bpm, 120.0)
        self.assertEqual(record.duration, 180.0)
        self.assertEqual(record.key, "C")

    def test_zero_bpm_defaults_to_120(self) -> None:
        self.assertEqual(build_track_record(_raw_track(bpm=0)).bpm, 120.0)

    def test_negative_or_invalid_bpm_is_dropped(self) -> None:
        self.assertIsNone(build_track_record(_raw_track(bpm=-5)))
        self.assertIsNone(build_track_record(_raw_track(bpm="fast")))

    def test_track_without_name_and_artist_is_dropped(self) -> None:
        self.assertIsNone(build_track_record(_raw_track(name="", artist=None)))

    def test_only_artist_is_enough(self) -> None:
        record = build_track_record(_raw_track(name=""))
        self.assertEqual(record.name, "Unknown Track")

    def test_missing_id_is_generated_from_index(self) -> None:
        track = _raw_track()
        del track["id"]
        self.assertEqual(build_track_record(track, index=7).track_id, "track_7")

    def test_blank_genre_becomes_none(self) -> None:
        self.assertIsNone(build_track_record(_raw_track(genre="  ")).genre)

    def test_energy_and_structure_are_parsed(self) -> None:
        record = build_track_record(_raw_track(
            energy={"overall": 7, "intro": 5, "drop": 8},
            song_structure=[
                {"label": "intro", "start": 0.0, "end": 0.1},
                {"label": "broken", "start": 0.5, "end": 0.2},
            ],
        ))
        self.assertEqual(record.energy, EnergySummary(overall=7.0, intro=5.0, drop=8.0))
        self.assertEqual(record.song_structure, (SectionSpan("intro", 0.0, 0.1),))

    def test_energy_without_overall_is_ignored(self) -> None:
        self.assertIsNone(build_track_record(_raw_track(energy={"intro": 3})).energy)


class TrackDatabaseTests(unittest.TestCase):
    def test_load_filters_and_counts_rejections(self) -> None:
        db = TrackDatabase()
        loaded = db.load([
            _raw_track(id="a"),
            _raw_track(id="b", name="", artist=""),
            _raw_track(id="c", bpm=-1),
            _raw_track(id="d"),
        ])
        self.assertEqual(loaded, 2)
        self.assertEqual(len(db), 2)
        self.assertEqual(db.rejected, 2)
        self.assertEqual([t.track_id for t in db], ["a", "d"])

    def test_duplicate_ids_keep_first(self) -> None:
        db = TrackDatabase([_raw_track(id="a", name="First"), _raw_track(id="a", name="Second")])
        self.assertEqual(len(db), 1)
        self.assertEqual(db.get("a").name, "First")
        self.assertEqual(db.rejected, 1)

    def test_load_replaces_catalog(self) -> None:
        db = TrackDatabase([_raw_track(id="a")])
        db.load([_raw_track(id="b")])
        self.assertIsNone(db.get("a"))
        self.assertIsNotNone(db.get("b"))

    def test_accepts_track_records(self) -> None:
        record = TrackRecord(track_id="r1", name="Song", artist="Artist", bpm=128)
        db = TrackDatabase([record, TrackRecord(track_id="r2", name="Bad", artist="X", bpm=0)])
        self.assertIs(db.get("r1"), record)
        self.assertEqual(db.rejected, 1)

    def test_empty_catalog(self) -> None:
        db = TrackDatabase()
        db.load([_raw_track(name="", artist="")])
        self.assertTrue(db.is_empty)
        self.assertEqual(db.tracks, ())


if __name__ == "__main__":
    unittest.main()
