"""Write a shuffled playlist to files or the terminal."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

from artistic_shuffle.errors import OutputError
from shufflecore.exporter import render_playlist
from shufflecore.models import Playlist, ShuffleConfig

logger = logging.getLogger(__name__)


def write_playlist(
    playlist: Playlist,
    destination: Path,
    config: Optional[ShuffleConfig] = None,
) -> None:
    """Write *playlist* to *destination*, creating parent directories."""
    text = render_playlist(playlist, destination, config)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise OutputError(destination, str(exc)) from exc
    logger.info("Wrote %d entries to %s", len(playlist), destination)


def print_playlist(playlist: Playlist, stream: Optional[TextIO] = None) -> None:
    """One identity per line, unchanged, on *stream* (stdout by default)."""
    stream = stream or sys.stdout
    stream.write(render_playlist(playlist))
    stream.flush()
