"""Shuffle engine: pure business logic, no I/O.

Provides:
- Weighted choice (cumulative weights + binary search)
- Spacing floor per artist (adaptive or fixed, with a dominance cut-off)
- Artist-aware weighted interleaving (deadline-aware greedy pass, exact
  retry for small inputs)
- Deduplication by identity
"""

from __future__ import annotations

import bisect
import heapq
import itertools
import logging
import random
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from shufflecore.grouping import expand_favourites, group_by_artist
from shufflecore.models import (
    ArtistBucket,
    FavouriteMode,
    Playlist,
    ShuffleConfig,
    SpacingPolicy,
    Track,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Weighted choice
# ---------------------------------------------------------------------------

def weighted_index(weights: Sequence[int], rng: random.Random) -> int:
    """Pick an index with probability proportional to its weight.

    Zero-weight entries are never picked while any positive weight remains;
    if every weight is zero the pick is uniform.  *weights* must not be empty.
    """
    cumulative = list(itertools.accumulate(weights))
    total = cumulative[-1]
    if total <= 0:
        return rng.randrange(len(cumulative))
    return bisect.bisect_right(cumulative, rng.randrange(total))


# ---------------------------------------------------------------------------
# Spacing floor
# ---------------------------------------------------------------------------

def spacing_floor(bucket_size: int, total: int, config: ShuffleConfig) -> int:
    """Minimum distance between two output positions of the same artist.

    A floor of 1 means "no constraint".  Artists holding more than
    ``config.dominance_share`` of all tracks always get 1.
    """
    if bucket_size <= 0 or total <= 0:
        return 1
    if bucket_size > total * config.dominance_share:
        return 1
    if config.spacing is SpacingPolicy.FIXED:
        return config.min_gap
    return max(1, total // bucket_size)


# ---------------------------------------------------------------------------
# Interleaver
# ---------------------------------------------------------------------------

# How many upcoming deadlines the greedy pass inspects per slot.
TIGHT_WINDOW = 16

# Inputs up to this many tracks get an exhaustive retry when the greedy
# pass had to relax the floor; the budget caps the nodes that retry visits.
SEARCH_LIMIT = 32
SEARCH_BUDGET = 100_000


def _deadline(count: int, floor: int, total: int) -> int:
    """Last slot a bucket of *count* tracks may take and still fit at its floor."""
    return total - (count - 1) * floor - 1


def tight_artists(ranked: Iterable[Tuple[int, str]]) -> List[str]:
    """Artists that must fill the next slots, given ``(slack, artist)`` by slack.

    Slack is the number of slots an artist can still wait.  When k artists
    all have slack below k, the next k slots belong to them.  Returns an
    empty list when no such group exists.
    """
    seen: List[str] = []
    bound = 0
    for slack, artist in ranked:
        if bound and slack >= bound:
            break
        seen.append(artist)
        if not bound and slack < len(seen):
            bound = len(seen)
    return seen if bound else []


class _WeightTree:
    """Fenwick tree of bucket weights: point update and weighted lookup in O(log n)."""

    def __init__(self, size: int):
        self.size = size
        self.tree = [0] * (size + 1)
        self.total = 0

    def add(self, index: int, delta: int) -> None:
        self.total += delta
        i = index + 1
        while i <= self.size:
            self.tree[i] += delta
            i += i & -i

    def find(self, target: int) -> int:
        """Index whose weight range covers *target* (0 <= target < total)."""
        pos = 0
        step = 1 << self.size.bit_length()
        while step:
            nxt = pos + step
            if nxt <= self.size and self.tree[nxt] <= target:
                pos = nxt
                target -= self.tree[nxt]
            step >>= 1
        return pos


class Interleaver:
    """Orders artist buckets so that each artist is spread across the run.

    Each bucket is put in weighted random order up front, so taking a track
    is a pop.  Waiting buckets sit in a heap keyed by the first slot at which
    they are allowed again (plus a random tiebreaker); every bucket also has
    a deadline, the last slot at which its next track can go and still leave
    room for the rest at its floor.  At each slot the artists whose deadlines
    crowd the next slots are served first; otherwise the eligible buckets
    compete by the sum of their remaining weights.

    Small inputs that still needed a relaxed floor are retried with a
    bounded depth-first search before the relaxed order is accepted.
    """

    def __init__(
        self,
        config: Optional[ShuffleConfig] = None,
        *,
        search_limit: int = SEARCH_LIMIT,
        search_budget: int = SEARCH_BUDGET,
    ):
        self.config = config or ShuffleConfig()
        self.rng = random.Random(self.config.seed)
        self.search_limit = search_limit
        self.search_budget = search_budget

    def interleave(self, buckets: Mapping[str, ArtistBucket]) -> Playlist:
        """Drain *buckets* into a playlist.  The buckets are emptied."""
        total = sum(len(b) for b in buckets.values())
        if total == 0:
            return Playlist()

        floors = {a: spacing_floor(len(b), total, self.config) for a, b in buckets.items()}
        for bucket in buckets.values():
            # Ascending keys: pop() hands out the next weighted draw.
            bucket.tracks.sort(key=lambda t: self._draw_key(t.weight))
        snapshot = {a: list(b.tracks) for a, b in buckets.items()}

        playlist = self._greedy(buckets, floors, total)
        if not playlist.forced or total > self.search_limit:
            return playlist

        for artist, tracks in snapshot.items():
            buckets[artist].tracks[:] = tracks
        order = self._search(buckets, floors, total)
        if order is None:
            logger.debug("No order without relaxed floors for %d tracks", total)
            for bucket in buckets.values():
                bucket.tracks.clear()
            return playlist
        return Playlist(identities=tuple(order))

    def _draw_key(self, weight: int) -> float:
        # Sorting by u ** (1 / w) is weighted sampling without replacement;
        # zero weights go after every positive one, in uniform order.
        u = self.rng.random()
        return u ** (1.0 / weight) if weight > 0 else u - 1.0

    def _greedy(
        self,
        buckets: Mapping[str, ArtistBucket],
        floors: Mapping[str, int],
        total: int,
    ) -> Playlist:
        artists = [a for a, b in buckets.items() if b.tracks]
        index = {a: i for i, a in enumerate(artists)}
        remaining = {a: buckets[a].total_weight for a in artists}
        deadlines = {a: _deadline(len(buckets[a]), floors[a], total) for a in artists}
        tree = _WeightTree(len(artists))

        waiting: List[Tuple[int, float, str]] = [(0, self.rng.random(), a) for a in artists]
        due = [(deadlines[a], tiebreak, a) for _, tiebreak, a in waiting]
        heapq.heapify(waiting)
        heapq.heapify(due)
        eligible: Dict[str, float] = {}
        last_slot: Dict[str, int] = {}
        order: List[str] = []
        forced: List[int] = []

        for slot in range(total):
            while waiting and waiting[0][0] <= slot:
                _, tiebreak, artist = heapq.heappop(waiting)
                eligible[artist] = tiebreak
                tree.add(index[artist], remaining[artist])

            if eligible:
                tight = self._tight(due, deadlines, slot)
                artist = self._pick_eligible(eligible, tight, tree, artists, remaining)
                tiebreak = eligible.pop(artist)
                tree.add(index[artist], -remaining[artist])
            else:
                # Every remaining artist was placed too recently: relax the
                # floor for this slot and take the one placed longest ago.
                entry = min(waiting, key=lambda e: (last_slot.get(e[2], -1), e[1]))
                waiting.remove(entry)
                heapq.heapify(waiting)
                _, tiebreak, artist = entry
                forced.append(slot)
                logger.debug("Forced adjacency for artist %r at slot %d", artist, slot)

            bucket = buckets[artist]
            track = bucket.tracks.pop()
            remaining[artist] -= track.weight
            order.append(track.identity)
            last_slot[artist] = slot
            if bucket.tracks:
                deadlines[artist] += floors[artist]
                heapq.heappush(due, (deadlines[artist], tiebreak, artist))
                heapq.heappush(waiting, (slot + floors[artist], tiebreak, artist))
            else:
                del deadlines[artist]

        return Playlist(identities=tuple(order), forced=tuple(forced))

    @staticmethod
    def _tight(due: List[Tuple[int, float, str]], deadlines: Mapping[str, int], slot: int) -> List[str]:
        # Peek at the earliest live deadlines; stale heap entries are dropped.
        ranked = []
        while due and len(ranked) < TIGHT_WINDOW:
            entry = heapq.heappop(due)
            if deadlines.get(entry[2]) == entry[0]:
                ranked.append(entry)
        for entry in ranked:
            heapq.heappush(due, entry)
        return tight_artists((deadline - slot, artist) for deadline, _, artist in ranked)

    def _pick_eligible(
        self,
        eligible: Mapping[str, float],
        tight: Sequence[str],
        tree: _WeightTree,
        artists: Sequence[str],
        remaining: Mapping[str, int],
    ) -> str:
        pool = [a for a in tight if a in eligible]
        if pool:
            return pool[weighted_index([remaining[a] for a in pool], self.rng)]
        if tree.total > 0:
            return artists[tree.find(self.rng.randrange(tree.total))]
        return self.rng.choice(list(eligible))

    def _search(
        self,
        buckets: Mapping[str, ArtistBucket],
        floors: Mapping[str, int],
        total: int,
    ) -> Optional[List[str]]:
        """Depth-first search for an order that keeps every floor.

        Candidates are tried tight artists first, then by weighted draw.
        Returns None when no such order exists or the budget runs out; the
        buckets are left as they were in that case.
        """
        artists = [a for a, b in buckets.items() if b.tracks]
        ready = dict.fromkeys(artists, 0)
        deadlines = {a: _deadline(len(buckets[a]), floors[a], total) for a in artists}
        remaining = {a: buckets[a].total_weight for a in artists}
        order: List[str] = []
        budget = self.search_budget

        def extend(slot: int) -> bool:
            nonlocal budget
            if slot == total:
                return True
            budget -= 1
            if budget < 0:
                return False
            active = [a for a in artists if buckets[a].tracks]
            if any(max(ready[a], slot) > deadlines[a] for a in active):
                return False

            tight = tight_artists(sorted((deadlines[a] - slot, a) for a in active))
            candidates = [a for a in active if ready[a] <= slot]
            candidates.sort(key=lambda a: (a in tight, self._draw_key(remaining[a])), reverse=True)
            for artist in candidates:
                bucket = buckets[artist]
                track = bucket.tracks.pop()
                previous = ready[artist], deadlines[artist]
                ready[artist] = slot + floors[artist]
                deadlines[artist] += floors[artist]
                remaining[artist] -= track.weight
                order.append(track.identity)
                if extend(slot + 1):
                    return True
                order.pop()
                remaining[artist] += track.weight
                ready[artist], deadlines[artist] = previous
                bucket.tracks.append(track)
            return False

        return order if extend(0) else None


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------

def dedup_by_identity(tracks: Sequence[Track]) -> List[Track]:
    """Remove duplicate tracks (same identity), keeping first occurrence."""
    seen: Set[str] = set()
    result: List[Track] = []
    for t in tracks:
        if t.identity not in seen:
            seen.add(t.identity)
            result.append(t)
    return result


# ---------------------------------------------------------------------------
# High-level entry point
# ---------------------------------------------------------------------------

def shuffle_tracks(
    tracks: Sequence[Track],
    config: Optional[ShuffleConfig] = None,
) -> Playlist:
    """Full pipeline: dedup → (expand favourites) → group → interleave."""
    config = config or ShuffleConfig()
    entries = dedup_by_identity(tracks)
    if config.favourite_mode is FavouriteMode.DUPLICATE:
        entries = expand_favourites(entries)

    buckets = group_by_artist(entries)
    playlist = Interleaver(config).interleave(buckets)
    logger.info(
        "Shuffled %d entries from %d artists (%d forced adjacencies)",
        len(playlist), len(buckets), len(playlist.forced),
    )
    return playlist
