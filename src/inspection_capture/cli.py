"""Command-line interface for the inspection_capture project."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import mimetypes
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from tqdm import tqdm

from .config import ConfigError, load_settings
from .exif.gps import ExifPositionProvider
from .geo.resolver import StaticPositionProvider
from .io.models import CaptureContext, RawCapture
from .io.outputs import write_manifest, write_photo
from .pipeline.context import RunContext
from .pipeline.supervisor import PipelineSupervisor
from .scoring.scorer import ComponentRating, missing_required, score, score_status


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the capture pipeline and scorer."""
    parser = argparse.ArgumentParser(
        description="Watermark inspection photos and score inspections."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML settings file.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    process = sub.add_parser("process", help="Process captured photos.")
    process.add_argument("images", nargs="+", help="Image files to process.")
    process.add_argument("--location-name", required=True, help="Inspected location name.")
    process.add_argument(
        "--timestamp",
        default=None,
        help="Capture time as ISO-8601 (defaults to now).",
    )
    process.add_argument("--organization", default="", help="Organization identifier.")
    process.add_argument(
        "--gps",
        default=None,
        metavar="LAT,LON",
        help="Device coordinates for the capture.",
    )
    process.add_argument(
        "--exif-gps",
        action="store_true",
        help="Use the GPS stamp embedded in each photo when --gps is not given.",
    )
    process.add_argument(
        "--no-geocode",
        action="store_true",
        help="Skip reverse geocoding and watermark raw coordinates.",
    )
    process.add_argument("--out", required=True, help="Output directory.")

    score_cmd = sub.add_parser("score", help="Score a JSON list of component ratings.")
    score_cmd.add_argument("ratings", help="Path to a JSON file of ratings.")
    return parser.parse_args(list(argv) if argv is not None else None)


def parse_gps(value: str) -> tuple[float, float]:
    """Parse ``"lat,lon"`` into floats."""
    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 2:
        raise ValueError(f"Expected LAT,LON, got {value!r}")
    latitude, longitude = float(parts[0]), float(parts[1])
    if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
        raise ValueError(f"Coordinates out of range: {value!r}")
    return latitude, longitude


def read_capture(path: Path) -> RawCapture:
    if not path.exists():
        raise FileNotFoundError(f"Input file does not exist: {path}")
    data = path.read_bytes()
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return RawCapture(data=data, mime_type=mime_type, size_bytes=len(data))


def load_ratings(path: Path) -> list[ComponentRating]:
    """Read ratings from a JSON list of ``{component, choice, note}`` objects."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("ratings", [])
    if not isinstance(payload, list):
        raise ValueError("Ratings file must contain a list of ratings")
    ratings: list[ComponentRating] = []
    for entry in payload:
        if not isinstance(entry, dict):
            raise ValueError(f"Each rating must be an object, got {entry!r}")
        ratings.append(
            ComponentRating(
                component=entry["component"],
                choice=entry["choice"],
                note=entry.get("note"),
            )
        )
    return ratings


async def _process_all(args: argparse.Namespace, supervisor: PipelineSupervisor) -> list[dict[str, Any]]:
    out_dir = Path(args.out)
    context = CaptureContext(
        location_name=args.location_name,
        timestamp_iso=args.timestamp or datetime.now().astimezone().isoformat(),
        organization_id=args.organization,
    )
    fixed = parse_gps(args.gps) if args.gps else None

    rows: list[dict[str, Any]] = []
    for name in tqdm(args.images, desc="Processing captures", unit="photo", leave=False):
        path = Path(name)
        try:
            capture = read_capture(path)
        except OSError as exc:
            print(f"[warn] {path}: {exc}")
            continue
        if fixed is not None:
            position = StaticPositionProvider(*fixed)
        elif args.exif_gps:
            position = ExifPositionProvider(capture.data)
        else:
            position = None
        run = RunContext()
        photo = await supervisor.process(capture, context, position, run)
        image_path, audit_path = write_photo(out_dir, path.stem, photo)
        print(f"[saved] {path.name}: {image_path} ({photo.mime_type}, {photo.size_bytes} bytes)")
        rows.append(
            {
                "source": str(path),
                "output": str(image_path),
                "audit": str(audit_path),
                "mime_type": photo.mime_type,
                "source_bytes": capture.size_bytes,
                "output_bytes": photo.size_bytes,
                "width": photo.width,
                "height": photo.height,
                "watermarked": photo.watermarked,
                "degraded_stages": ";".join(photo.degraded_stages),
                "correlation_id": photo.correlation_id,
            }
        )
    return rows


def _run_process(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    if args.no_geocode:
        settings = replace(settings, geocode_enabled=False)
    supervisor = PipelineSupervisor.from_settings(settings)
    rows = asyncio.run(_process_all(args, supervisor))
    manifest = write_manifest(Path(args.out) / "manifest.csv", rows)
    if manifest:
        print(f"[manifest] wrote {len(rows)} rows to {manifest}")
    return 0 if rows else 1


def _run_score(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    ratings = load_ratings(Path(args.ratings))
    result = score(ratings, settings.weights)
    status = score_status(result.value)
    print(f"Score: {result.value} ({status.value})")
    print(f"Components: {result.component_count}")
    missing = missing_required(ratings)
    if missing:
        print("Missing required: " + ", ".join(component.value for component in missing))
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "process":
            return _run_process(args)
        return _run_score(args)
    except (ConfigError, ValueError, KeyError, FileNotFoundError) as exc:
        print(f"[error] {exc}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
