"""Input resolution: turns CLI inputs into Track records.

Inputs are directories (walked recursively), list files (``.m3u``,
``.m3u8``, ``.txt``, ``.csv`` or a ``.json`` export) or single files.  Each
found file is paired with the base path its artist heuristic should be
relative to, then resolved to a Track in a thread pool.
"""

from __future__ import annotations

import csv
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Sequence

from artistic_shuffle.errors import InputError
from artistic_shuffle.tags import DEFAULT_SOURCES, MetadataSource, normalize_artist, resolve_metadata
from shufflecore.exporter import import_playlist
from shufflecore.models import ShuffleConfig, Track

logger = logging.getLogger(__name__)

LIST_SUFFIXES = (".m3u", ".m3u8", ".txt", ".csv", ".json")


class Entry(NamedTuple):
    """A file to resolve and the base its path heuristic is relative to."""

    path: Path
    base: Optional[Path]


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def walk_directory(directory: Path, extensions: Sequence[str] = ()) -> List[Entry]:
    """All non-hidden files below *directory*, sorted, filtered by suffix.

    An empty *extensions* accepts every file.
    """
    wanted = {e.lower() for e in extensions}
    entries: List[Entry] = []
    for root, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(d for d in dirnames if not _is_hidden(d))
        for name in sorted(filenames):
            if _is_hidden(name):
                continue
            if wanted and os.path.splitext(name)[1].lower() not in wanted:
                continue
            entries.append(Entry(Path(root) / name, directory))
    return entries


def _list_lines(list_file: Path) -> List[str]:
    try:
        with open(list_file, encoding="utf-8-sig", errors="replace", newline="") as fh:
            if list_file.suffix.lower() == ".csv":
                return [row[0] for row in csv.reader(fh) if row]
            if list_file.suffix.lower() == ".json":
                return import_playlist(fh.read()).tracks
            return fh.read().splitlines()
    except OSError as exc:
        raise InputError(list_file, f"cannot read list file ({exc})") from exc
    except ValueError as exc:
        raise InputError(list_file, str(exc)) from exc


def read_list_file(list_file: Path) -> List[Entry]:
    """Entries named by a playlist/list file.

    Blank lines and ``#`` comments/directives are skipped.  Relative entries
    are resolved against the list file's directory, which is also the base
    for the artist heuristic.
    """
    parent = list_file.parent
    entries: List[Entry] = []
    for line in _list_lines(list_file):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        entries.append(Entry(Path(os.path.normpath(parent / line)), parent))
    return entries


def scan_input(path: Path, extensions: Sequence[str] = ()) -> List[Entry]:
    """Expand one CLI input into entries.  Raises InputError if it is missing."""
    if path.is_dir():
        entries = walk_directory(path, extensions)
    elif path.is_file() and path.suffix.lower() in LIST_SUFFIXES:
        entries = read_list_file(path)
    elif path.is_file():
        entries = [Entry(path, None)]
    else:
        raise InputError(path, "no such file or directory")
    logger.info("Input %s: %d entries", path, len(entries))
    return entries


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def resolve_entry(
    entry: Entry,
    config: ShuffleConfig,
    *,
    favourite_rating: int = 196,
    sources: Sequence[MetadataSource] = DEFAULT_SOURCES,
) -> Track:
    """Build the Track for one entry; favourites get ``config.favourite_weight``."""
    meta = resolve_metadata(entry.path, entry.base, sources)
    favourite = meta.rating is not None and meta.rating >= favourite_rating
    return Track(
        identity=str(entry.path),
        artist=normalize_artist(meta.artist),
        weight=config.favourite_weight if favourite else 1,
    )


def resolve_entries(
    entries: Iterable[Entry],
    config: ShuffleConfig,
    *,
    favourite_rating: int = 196,
    workers: int = 8,
    sources: Sequence[MetadataSource] = DEFAULT_SOURCES,
) -> List[Track]:
    """Resolve entries concurrently; the result keeps the entry order."""
    entries = list(entries)
    if not entries:
        return []

    def _resolve(entry: Entry) -> Track:
        return resolve_entry(entry, config, favourite_rating=favourite_rating, sources=sources)

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        tracks = list(pool.map(_resolve, entries))

    favourites = sum(1 for t in tracks if t.weight > 1)
    logger.info("Resolved %d tracks (%d favourites)", len(tracks), favourites)
    return tracks
