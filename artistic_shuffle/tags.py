"""Artist and rating lookup for audio files.

Two metadata sources are chained per file:

- ``TaggedSource`` reads embedded tags with Mutagen (ID3, Vorbis comments,
  MP4 atoms) and yields the artist and a 0-255 rating when present.
- ``PathHeuristicSource`` guesses the artist from the directory layout.

``resolve_metadata`` asks each source in turn and keeps the first value found
for every field.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from mutagen import File as MutagenFile
from mutagen.id3 import ID3
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Track artist, album artist, original artist, performer, composer.
# ID3 frame ids, Vorbis comment names (case-insensitive) and MP4 atoms mixed;
# each tag format simply misses the keys of the others.
_ARTIST_KEYS = (
    "TPE1", "artist", "\xa9ART",
    "TPE2", "albumartist", "album artist", "aART",
    "TOPE", "originalartist", "origartist",
    "performer",
    "TCOM", "composer", "\xa9wrt",
)
_FRACTION_RATING_KEYS = ("fmps_rating",)  # 0.0 - 1.0
_PERCENT_RATING_KEYS = ("rating", "rate", "----:com.apple.iTunes:RATING")  # 0 - 100


class TrackMetadata(BaseModel):
    """What a source could tell about one file; ``None`` = unknown."""

    artist: Optional[str] = None
    rating: Optional[int] = None  # 0-255, POPM scale

    @property
    def complete(self) -> bool:
        return self.artist is not None and self.rating is not None


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class MetadataSource(ABC):
    """Capability: describe a file, optionally relative to an input base."""

    @abstractmethod
    def lookup(self, path: Path, base: Optional[Path] = None) -> TrackMetadata:
        """Metadata for *path*; fields it cannot determine are None."""


class TaggedSource(MetadataSource):
    """Embedded tags, read with Mutagen."""

    def lookup(self, path: Path, base: Optional[Path] = None) -> TrackMetadata:
        try:
            audio = MutagenFile(str(path))
        except Exception as exc:  # mutagen raises format-specific errors
            logger.debug("Could not read tags from %s: %s", path, exc)
            return TrackMetadata()
        if audio is None or audio.tags is None:
            return TrackMetadata()
        return TrackMetadata(
            artist=get_tag_text(audio.tags, _ARTIST_KEYS),
            rating=parse_rating(audio.tags),
        )


class PathHeuristicSource(MetadataSource):
    """Artist from the directory layout.

    Under *base*: the first directory below it (``base/Artist/Album/x.mp3``).
    Otherwise: the grandparent directory, or the parent if there is none.
    """

    def lookup(self, path: Path, base: Optional[Path] = None) -> TrackMetadata:
        path = Path(os.path.normpath(path))
        if base is not None:
            try:
                relative = path.relative_to(os.path.normpath(base))
            except ValueError:
                relative = None
            if relative is not None:
                dirs = relative.parent.parts
                return TrackMetadata(artist=dirs[0] if dirs else None)
        return TrackMetadata(artist=artist_from_path(path))


DEFAULT_SOURCES: Sequence[MetadataSource] = (TaggedSource(), PathHeuristicSource())


def resolve_metadata(
    path: Path,
    base: Optional[Path] = None,
    sources: Sequence[MetadataSource] = DEFAULT_SOURCES,
) -> TrackMetadata:
    """Fill artist and rating from the first source that knows each."""
    found = TrackMetadata()
    for source in sources:
        meta = source.lookup(path, base)
        found = TrackMetadata(
            artist=found.artist if found.artist is not None else meta.artist,
            rating=found.rating if found.rating is not None else meta.rating,
        )
        if found.complete:
            break
    return found


def normalize_artist(name: Optional[str]) -> str:
    """Grouping key for an artist name."""
    return (name or "").strip().lower()


# ---------------------------------------------------------------------------
# Tag helpers
# ---------------------------------------------------------------------------

def _tag_text(value: Any) -> Optional[str]:
    if hasattr(value, "text"):  # ID3 text frame
        value = value.text
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, bytes):  # MP4 freeform
        value = value.decode("utf-8", errors="replace")
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def get_tag_text(tags: Any, keys: Iterable[str]) -> Optional[str]:
    """First non-empty text value among *keys*."""
    for key in keys:
        try:
            value = tags.get(key)
        except (KeyError, ValueError):
            # Vorbis comments reject keys that are not plain ASCII names
            continue
        text = _tag_text(value)
        if text:
            return text
    return None


def _scaled(text: Optional[str], scale: float) -> Optional[int]:
    if text is None:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    return max(0, min(255, round(value * scale)))


def parse_rating(tags: Any) -> Optional[int]:
    """Rating on the 0-255 POPM scale, or None when the file carries none.

    ID3 ``POPM`` frames are taken as is (highest of several); ``FMPS_RATING``
    is a 0-1 fraction; ``RATING``-style values are percentages.  A stored 0
    means "unrated".
    """
    if isinstance(tags, ID3):
        ratings = [frame.rating for frame in tags.getall("POPM") if frame.rating]
        return max(ratings) if ratings else None

    for keys, scale in ((_FRACTION_RATING_KEYS, 255.0), (_PERCENT_RATING_KEYS, 2.55)):
        rating = _scaled(get_tag_text(tags, keys), scale)
        if rating:
            return rating
    return None


def artist_from_path(path: Path) -> str:
    """Grandparent directory name, else parent, else ``""``."""
    path = Path(path)
    dirs = [p for p in path.parent.parts if p not in ("..", ".", path.anchor)]
    if len(dirs) >= 2:
        return dirs[-2]
    if dirs:
        return dirs[-1]
    return ""
