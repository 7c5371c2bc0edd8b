"""Export/import logic: render a playlist for a destination."""

from __future__ import annotations

import csv
import io
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from shufflecore.models import ExportPayload, Playlist, ShuffleConfig

M3U_SUFFIXES = (".m3u", ".m3u8")


def relativize(identity: str, destination: Optional[Path]) -> str:
    """Express *identity* relative to the directory of *destination*.

    Absolute identities and terminal output (``destination is None``) are
    left untouched.  Falls back to the identity when no relative path exists
    (e.g. different drives on Windows).
    """
    if destination is None or os.path.isabs(identity):
        return identity
    start = str(destination.parent) or "."
    try:
        return os.path.relpath(identity, start=start)
    except ValueError:
        return identity


def export_playlist(playlist: Playlist, config: Optional[ShuffleConfig] = None) -> str:
    """Serialize *playlist* to JSON together with the settings that made it."""
    config = config or ShuffleConfig()
    payload = ExportPayload(
        tracks=list(playlist.identities),
        seed=config.seed,
        spacing=config.spacing.value,
        favourite_mode=config.favourite_mode.value,
        forced=list(playlist.forced),
        exported_at=datetime.now(timezone.utc).isoformat(),
    )
    return payload.model_dump_json(indent=2)


def import_playlist(raw_json: str) -> ExportPayload:
    """Parse a JSON export back into an ExportPayload.

    Raises ``ValueError`` if the JSON is invalid or does not look like an export.
    """
    try:
        data = json.loads(raw_json)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON: {exc}") from exc

    try:
        return ExportPayload(**data)
    except (TypeError, ValidationError) as exc:
        raise ValueError(f"Not a playlist export: {exc}") from exc


def render_playlist(
    playlist: Playlist,
    destination: Optional[Path] = None,
    config: Optional[ShuffleConfig] = None,
) -> str:
    """Render *playlist* in the format implied by the destination suffix.

    ``.m3u``/``.m3u8`` get an ``#EXTM3U`` header, ``.csv`` is a one-column
    CSV, ``.json`` is a full export; anything else is one path per line.
    Paths are relativised against the destination's directory.
    """
    suffix = destination.suffix.lower() if destination is not None else ""
    entries: List[str] = [relativize(i, destination) for i in playlist.identities]

    if suffix == ".json":
        return export_playlist(playlist.model_copy(update={"identities": tuple(entries)}), config)

    if suffix == ".csv":
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        for entry in entries:
            writer.writerow([entry])
        return buf.getvalue()

    lines = ["#EXTM3U"] if suffix in M3U_SUFFIXES else []
    lines.extend(entries)
    return "".join(f"{line}\n" for line in lines)
