"""In-memory track registry for one run."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List

from shufflecore.models import Track


class TrackRegistry:
    """Collects resolved tracks; the first track seen for an identity wins.

    Safe to feed from several threads.
    """

    def __init__(self) -> None:
        self._tracks: Dict[str, Track] = {}
        self._lock = threading.Lock()

    def add(self, track: Track) -> bool:
        """Register *track*.  Returns False if its identity was already known."""
        with self._lock:
            if track.identity in self._tracks:
                return False
            self._tracks[track.identity] = track
            return True

    def extend(self, tracks: Iterable[Track]) -> int:
        """Register many tracks, returning how many were new."""
        return sum(1 for t in tracks if self.add(t))

    def tracks(self) -> List[Track]:
        with self._lock:
            return list(self._tracks.values())

    def artists(self) -> List[str]:
        """Distinct artist keys in registration order."""
        return list(dict.fromkeys(t.artist for t in self.tracks()))

    def __len__(self) -> int:
        return len(self._tracks)
