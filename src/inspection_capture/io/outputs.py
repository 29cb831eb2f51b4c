"""Output helpers for persisting pipeline results."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Sequence

import pandas as pd

from .models import ProcessedPhoto

_MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
    "image/png": ".png",
    "image/heic": ".heic",
    "image/gif": ".gif",
}


def extension_for(mime_type: str) -> str:
    return _MIME_EXTENSIONS.get(mime_type.lower(), ".bin")


def audit_record(photo: ProcessedPhoto) -> Dict[str, Any]:
    """Return the JSON-serialisable audit trail of *photo* (everything but bytes)."""
    record = asdict(photo)
    record.pop("data", None)
    record["size_bytes"] = photo.size_bytes
    record["orientation"] = int(photo.orientation)
    record["watermark"]["lines"] = list(photo.watermark.lines)
    record["degraded_stages"] = list(photo.degraded_stages)
    return record


def write_photo(out_dir: Path, stem: str, photo: ProcessedPhoto) -> tuple[Path, Path]:
    """Write the image and its ``.audit.json`` sidecar; return both paths."""
    out_dir.mkdir(parents=True, exist_ok=True)
    image_path = out_dir / f"{stem}{extension_for(photo.mime_type)}"
    image_path.write_bytes(photo.data)
    audit_path = out_dir / f"{stem}.audit.json"
    audit_path.write_text(json.dumps(audit_record(photo), indent=2), encoding="utf-8")
    return image_path, audit_path


def write_manifest(path: Path, rows: Sequence[Dict[str, Any]]) -> Path | None:
    """Write one CSV row per processed capture and return the path."""
    if not rows:
        return None
    df = pd.DataFrame(list(rows))
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path
