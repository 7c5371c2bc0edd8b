"""Artist grouping: partitions tracks into per-artist buckets."""

from __future__ import annotations

from typing import Dict, List, Sequence

from shufflecore.models import ArtistBucket, Track


def group_by_artist(tracks: Sequence[Track]) -> Dict[str, ArtistBucket]:
    """Split *tracks* into one bucket per artist key.

    Buckets keep the input order of their tracks and appear in order of first
    occurrence.  Tracks with an empty artist key share the ``""`` bucket and
    are spaced like any other artist.
    """
    buckets: Dict[str, ArtistBucket] = {}
    for t in tracks:
        bucket = buckets.get(t.artist)
        if bucket is None:
            bucket = buckets[t.artist] = ArtistBucket(artist=t.artist)
        bucket.tracks.append(t)
    return buckets


def expand_favourites(tracks: Sequence[Track]) -> List[Track]:
    """Repeat every track ``weight`` times (at least once), each copy weight 1.

    Used by the ``duplicate`` favourite mode, where a favourite shows up in the
    output more than once instead of just being picked more eagerly.
    """
    expanded: List[Track] = []
    for t in tracks:
        copy = t.model_copy(update={"weight": 1})
        expanded.extend([copy] * max(1, t.weight))
    return expanded
