"""Tests for the core shuffle engine: pure logic, no I/O."""

from __future__ import annotations

import random
import time
from collections import Counter

import pytest

from shufflecore.grouping import group_by_artist
from shufflecore.models import FavouriteMode, ShuffleConfig, SpacingPolicy, Track
from shufflecore.shuffle import (
    Interleaver,
    dedup_by_identity,
    shuffle_tracks,
    spacing_floor,
    tight_artists,
    weighted_index,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _track(identity: str, artist: str = "", weight: int = 1) -> Track:
    return Track(identity=identity, artist=artist, weight=weight)


SCENARIO = [
    _track("A", "X"),
    _track("B", "X"),
    _track("C", "Y", weight=2),
    _track("D", "Y"),
    _track("E", "Z"),
]

FIXED_2 = dict(spacing=SpacingPolicy.FIXED, min_gap=2)


def _artists(order, tracks):
    by_id = {t.identity: t.artist for t in tracks}
    return [by_id[i] for i in order]


def _interleave(tracks, **config):
    return Interleaver(ShuffleConfig(**config)).interleave(group_by_artist(tracks))


def _assert_spaced(artists, floors):
    last = {}
    for pos, artist in enumerate(artists):
        if artist in last:
            assert pos - last[artist] >= floors[artist], (artists, pos)
        last[artist] = pos


def _has_valid_order(sizes, floors):
    """Brute force: can every artist be placed at its floor?"""
    total = sum(sizes.values())
    left = dict(sizes)
    last = {}

    def fill(slot):
        if slot == total:
            return True
        for artist, count in left.items():
            previous = last.get(artist)
            if not count or (previous is not None and slot - previous < floors[artist]):
                continue
            left[artist] -= 1
            last[artist] = slot
            found = fill(slot + 1)
            left[artist] += 1
            if previous is None:
                del last[artist]
            else:
                last[artist] = previous
            if found:
                return True
        return False

    return fill(0)


# ---------------------------------------------------------------------------
# weighted_index
# ---------------------------------------------------------------------------

class TestWeightedIndex:
    def test_zero_weights_never_picked(self):
        rng = random.Random(1)
        assert {weighted_index([0, 5, 0], rng) for _ in range(200)} == {1}

    def test_all_zero_is_uniform_fallback(self):
        rng = random.Random(2)
        picks = {weighted_index([0, 0, 0], rng) for _ in range(200)}
        assert picks == {0, 1, 2}

    def test_proportional(self):
        rng = random.Random(3)
        runs = 10_000
        hits = sum(weighted_index([1, 3], rng) for _ in range(runs))
        assert abs(hits / runs - 0.75) < 0.03

    def test_single_entry(self):
        assert weighted_index([4], random.Random(0)) == 0


# ---------------------------------------------------------------------------
# spacing_floor
# ---------------------------------------------------------------------------

class TestSpacingFloor:
    def test_adaptive_scales_with_share(self):
        config = ShuffleConfig()
        assert spacing_floor(2, 10, config) == 5
        assert spacing_floor(3, 10, config) == 3
        assert spacing_floor(5, 10, config) == 2

    def test_fixed(self):
        config = ShuffleConfig(spacing=SpacingPolicy.FIXED, min_gap=3)
        assert spacing_floor(2, 10, config) == 3

    def test_dominant_artist_is_unconstrained(self):
        for spacing in SpacingPolicy:
            config = ShuffleConfig(spacing=spacing, min_gap=4)
            assert spacing_floor(6, 10, config) == 1

    def test_dominance_share_configurable(self):
        config = ShuffleConfig(spacing=SpacingPolicy.FIXED, dominance_share=0.7)
        assert spacing_floor(6, 10, config) == 2

    def test_empty(self):
        assert spacing_floor(0, 0, ShuffleConfig()) == 1


# ---------------------------------------------------------------------------
# Interleaver
# ---------------------------------------------------------------------------

class TestInterleaver:
    def test_empty_input(self):
        playlist = Interleaver(ShuffleConfig(seed=1)).interleave({})
        assert playlist.identities == ()
        assert playlist.forced == ()

    def test_single_track(self):
        playlist = _interleave([_track("only", "X")], seed=1)
        assert playlist.identities == ("only",)

    def test_conserves_tracks(self):
        rng = random.Random(5)
        tracks = [_track(f"t{i}", f"artist{rng.randrange(7)}", rng.randint(1, 3)) for i in range(60)]
        playlist = _interleave(tracks, seed=5)
        assert Counter(playlist.identities) == Counter(t.identity for t in tracks)

    def test_drains_buckets(self):
        buckets = group_by_artist(SCENARIO)
        Interleaver(ShuffleConfig(seed=0)).interleave(buckets)
        assert all(len(b) == 0 for b in buckets.values())

    def test_deterministic_with_seed(self):
        tracks = [_track(f"t{i}", f"a{i % 4}", 1 + i % 2) for i in range(30)]
        a = _interleave(tracks, seed=123)
        b = _interleave(tracks, seed=123)
        assert a == b

    def test_different_seeds_differ(self):
        tracks = [_track(f"t{i}", f"a{i % 5}") for i in range(40)]
        orders = {_interleave(tracks, seed=s).identities for s in range(5)}
        assert len(orders) > 1

    def test_all_same_artist_terminates(self):
        tracks = [_track(f"t{i}", "solo") for i in range(6)]
        playlist = _interleave(tracks, seed=9)
        assert sorted(playlist.identities) == sorted(t.identity for t in tracks)
        assert playlist.forced == ()  # dominant artist has no floor

    def test_forced_adjacency_is_recorded(self):
        tracks = [_track(f"t{i}", "solo") for i in range(4)]
        playlist = _interleave(tracks, seed=9, dominance_share=1.0, **FIXED_2)
        assert len(playlist) == 4
        assert playlist.forced == (1, 2, 3)

    def test_empty_artist_key_is_spaced_like_any_other(self):
        tracks = [_track("u1"), _track("u2"), _track("k1", "known"), _track("k2", "known")]
        for seed in range(50):
            artists = _artists(_interleave(tracks, seed=seed, **FIXED_2).identities, tracks)
            assert all(a != b for a, b in zip(artists, artists[1:]))

    def test_fixed_gap_two_never_forced(self):
        """No artist above half the tracks => no two neighbours share an artist."""
        checked = 0
        for seed in range(200):
            rng = random.Random(seed)
            tracks = [
                _track(f"{a}-{i}", f"artist{a}", rng.randint(1, 3))
                for a in range(rng.randint(2, 6))
                for i in range(rng.randint(1, 5))
            ]
            if max(Counter(t.artist for t in tracks).values()) * 2 > len(tracks):
                continue
            playlist = _interleave(tracks, seed=seed, **FIXED_2)
            artists = _artists(playlist.identities, tracks)
            assert playlist.forced == ()
            assert all(a != b for a, b in zip(artists, artists[1:])), artists
            checked += 1
        assert checked > 50

    def test_two_equal_artists_alternate(self):
        tracks = [_track(f"x{i}", "X") for i in range(5)] + [_track(f"y{i}", "Y") for i in range(5)]
        for seed in range(30):
            artists = _artists(_interleave(tracks, seed=seed).identities, tracks)
            assert all(a != b for a, b in zip(artists, artists[1:]))

    def test_forced_slots_are_the_only_violations(self):
        rng = random.Random(11)
        tracks = [_track(f"t{i}", rng.choice("XXXXYYZ")) for i in range(40)]
        config = ShuffleConfig(seed=11)
        playlist = Interleaver(config).interleave(group_by_artist(tracks))
        artists = _artists(playlist.identities, tracks)
        sizes = Counter(artists)
        for pos, artist in enumerate(artists):
            floor = spacing_floor(sizes[artist], len(tracks), config)
            previous = [p for p in range(max(0, pos - floor + 1), pos) if artists[p] == artist]
            if previous:
                assert pos in playlist.forced

    def test_adaptive_never_forced_when_a_valid_order_exists(self):
        config = ShuffleConfig()
        checked = 0
        for seed in range(300):
            rng = random.Random(seed)
            sizes = {f"a{i}": rng.randint(1, 3) for i in range(rng.randint(2, 5))}
            total = sum(sizes.values())
            if total > 7:
                continue
            floors = {a: spacing_floor(n, total, config) for a, n in sizes.items()}
            if not _has_valid_order(sizes, floors):
                continue
            tracks = [_track(f"{a}-{i}", a) for a, n in sizes.items() for i in range(n)]
            playlist = _interleave(tracks, seed=seed)
            assert playlist.forced == (), sizes
            _assert_spaced(_artists(playlist.identities, tracks), floors)
            checked += 1
        assert checked > 30

    def test_crowded_deadlines_are_served_first(self):
        # Floors 4, 8, 2, 4: two buckets reach zero slack together unless
        # the deadline-crowded ones are placed ahead of time.
        sizes = {"a0": 2, "a1": 1, "a2": 3, "a3": 2}
        tracks = [_track(f"{a}-{i}", a) for a, n in sizes.items() for i in range(n)]
        floors = {a: spacing_floor(n, 8, ShuffleConfig()) for a, n in sizes.items()}
        assert floors == {"a0": 4, "a1": 8, "a2": 2, "a3": 4}
        for seed in range(50):
            playlist = _interleave(tracks, seed=seed)
            assert playlist.forced == ()
            _assert_spaced(_artists(playlist.identities, tracks), floors)

    def test_search_disabled_keeps_greedy_result(self):
        tracks = [_track(f"t{i}", "solo") for i in range(4)]
        config = ShuffleConfig(seed=3, dominance_share=1.0, **FIXED_2)
        buckets = group_by_artist(tracks)
        playlist = Interleaver(config, search_limit=0).interleave(buckets)
        assert playlist.forced == (1, 2, 3)
        assert all(len(b) == 0 for b in buckets.values())

    def test_large_library_is_fast(self):
        tracks = [
            _track(f"{a}-{i}", f"artist{a}", 1 + i % 3)
            for a in range(1000)
            for i in range(20)
        ]
        for spacing in SpacingPolicy:
            started = time.perf_counter()
            playlist = _interleave(tracks, seed=1, spacing=spacing, min_gap=2)
            assert time.perf_counter() - started < 20
            assert len(playlist) == len(tracks)
        assert _interleave(tracks, seed=1, **FIXED_2).forced == ()


# ---------------------------------------------------------------------------
# tight_artists
# ---------------------------------------------------------------------------

class TestTightArtists:
    def test_zero_slack(self):
        assert tight_artists([(0, "a"), (3, "b")]) == ["a"]

    def test_group_fills_the_next_slots(self):
        assert tight_artists([(1, "a"), (1, "b"), (1, "c"), (4, "d")]) == ["a", "b", "c"]

    def test_room_to_spare(self):
        assert tight_artists([(2, "a"), (5, "b")]) == []

    def test_empty(self):
        assert tight_artists([]) == []


# ---------------------------------------------------------------------------
# Scenario: X:2, Y:2 (C is a favourite), Z:1
# ---------------------------------------------------------------------------

class TestScenario:
    @pytest.mark.parametrize("spacing", list(SpacingPolicy))
    def test_same_artist_never_adjacent(self, spacing):
        for seed in range(300):
            order = list(_interleave(SCENARIO, seed=seed, spacing=spacing, min_gap=2).identities)
            assert abs(order.index("A") - order.index("B")) >= 2
            assert abs(order.index("C") - order.index("D")) >= 2

    def test_favourite_surfaces_earlier(self):
        first_half = Counter()
        positions = Counter()
        for seed in range(1000):
            order = list(_interleave(SCENARIO, seed=seed, **FIXED_2).identities)
            for name in ("C", "D"):
                positions[name] += order.index(name)
                if order.index(name) < len(order) / 2:
                    first_half[name] += 1
        assert first_half["C"] > first_half["D"]
        assert positions["C"] < positions["D"]

    def test_heavier_bucket_leads_more_often(self):
        tracks = [_track("heavy", "H", weight=3), _track("light", "L", weight=1)]
        runs = 2000
        leads = sum(_interleave(tracks, seed=s).identities[0] == "heavy" for s in range(runs))
        assert 0.68 < leads / runs < 0.82


# ---------------------------------------------------------------------------
# dedup_by_identity
# ---------------------------------------------------------------------------

class TestDedupByIdentity:
    def test_removes_duplicates(self):
        result = dedup_by_identity([_track("a"), _track("a", "other"), _track("b")])
        assert [t.identity for t in result] == ["a", "b"]
        assert result[0].artist == ""

    def test_no_duplicates(self):
        assert len(dedup_by_identity([_track(str(i)) for i in range(3)])) == 3


# ---------------------------------------------------------------------------
# shuffle_tracks (full pipeline)
# ---------------------------------------------------------------------------

class TestShuffleTracks:
    def test_full_pipeline(self):
        tracks = SCENARIO + [_track("A", "X")]  # duplicate identity
        playlist = shuffle_tracks(tracks, ShuffleConfig(seed=42))
        assert sorted(playlist.identities) == ["A", "B", "C", "D", "E"]

    def test_empty_playlist(self):
        playlist = shuffle_tracks([])
        assert playlist.identities == ()

    def test_duplicate_mode_repeats_favourites(self):
        config = ShuffleConfig(seed=4, favourite_mode=FavouriteMode.DUPLICATE)
        playlist = shuffle_tracks(SCENARIO, config)
        assert Counter(playlist.identities) == Counter({"A": 1, "B": 1, "C": 2, "D": 1, "E": 1})

    def test_duplicate_copies_are_spaced(self):
        config = ShuffleConfig(favourite_mode=FavouriteMode.DUPLICATE, **FIXED_2)
        tracks = [_track("fav", "X", weight=2), _track("y", "Y"), _track("z", "Z")]
        for seed in range(50):
            order = shuffle_tracks(tracks, config.model_copy(update={"seed": seed})).identities
            assert all(a != b for a, b in zip(order, order[1:]))

    def test_weight_mode_emits_each_track_once(self):
        playlist = shuffle_tracks(SCENARIO, ShuffleConfig(seed=4))
        assert Counter(playlist.identities) == Counter("ABCDE")
