from __future__ import annotations

import argparse
import json
from pathlib import Path

from live_track_id.config import EngineSettings, load_local_env_file, setup_logging
from live_track_id.engine import TrackIdentifier
from live_track_id.models import FeatureFrame, IdentificationResult

_FRAME_FIELDS = set(FeatureFrame.__dataclass_fields__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay audio feature frames against a track catalog")
    catalog_group = parser.add_mutually_exclusive_group(required=True)
    catalog_group.add_argument("--catalog", help="JSON file with a list of catalog track records")
    catalog_group.add_argument(
        "--spotify-playlist",
        help="Spotify playlist id used to build the catalog",
    )
    parser.add_argument("--frames", required=True, help="JSON-lines file, one feature frame per line")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to TRACKID_LOG_LEVEL env or INFO)",
    )
    return parser.parse_args(argv)


def load_catalog_file(path: str) -> list[dict]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("tracks", [])
    if not isinstance(data, list):
        raise ValueError(f"Catalog file {path} must contain a list of tracks")
    return data


def read_frames(path: str) -> list[FeatureFrame]:
    frames: list[FeatureFrame] = []
    for number, raw_line in enumerate(Path(path).read_text(encoding="utf-8").splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid frame on line {number}: {exc}") from exc
        frames.append(FeatureFrame(**{k: v for k, v in payload.items() if k in _FRAME_FIELDS}))
    return frames


def resolve_catalog(args: argparse.Namespace) -> list[dict]:
    if args.catalog:
        return load_catalog_file(args.catalog)

    from live_track_id.spotify_service import SpotifyCatalogService

    return SpotifyCatalogService().load_playlist_catalog(args.spotify_playlist)


def format_tick(index: int, result: IdentificationResult) -> str:
    if result.current_track is None:
        lock = "unlocked"
    else:
        track = result.current_track.track
        lock = f"{track.name} - {track.artist} ({result.confidence_score:.2f})"
    top = result.alternatives[0] if result.alternatives else None
    best = f"{top.track.name} {top.overall:.2f}" if top else "no candidates"
    return f"[{index:04d}] lock: {lock} | best: {best} | section: {result.enhancement.song_section}"


def main(argv: list[str] | None = None) -> None:
    load_local_env_file()
    args = parse_args(argv)
    settings = EngineSettings.from_env()
    setup_logging(args.log_level or settings.log_level)

    identifier = TrackIdentifier(settings)
    loaded = identifier.load_database(resolve_catalog(args))
    if not loaded:
        print("Catalog contains no usable tracks.")

    for index, frame in enumerate(read_frames(args.frames)):
        print(format_tick(index, identifier.identify(frame)))

    stats = identifier.stats()
    print(f"Tracks:     {stats.database_size} ({stats.rejected_tracks} rejected)")
    print(f"Match:      {stats.current_match_name}")
    print(f"Confidence: {stats.confidence:.2f}")
    print(f"Signal:     {stats.signal_quality:.2f}")


if __name__ == "__main__":
    main()
