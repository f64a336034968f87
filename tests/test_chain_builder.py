"""Tests for chain_builder.py"""

import random

import pytest

from chain_builder import (
    ChainBuilder, ChainState, EmptySegmentSetError, build_chain, planar_distance,
)

ORIGIN = (0.0, 0.0)


def _track(n):
    """A straight line of n vertices with 4-decimal-distinct endpoints."""
    return [(round(i * 0.01, 6), round(i * 0.02, 6)) for i in range(n)]


def _split(points, size):
    """Cut points into segments of `size` vertices sharing their endpoints."""
    segments = []
    for start in range(0, len(points) - 1, size - 1):
        segments.append(points[start:start + size])
    return segments


class TestPlanarDistance:
    def test_three_four_five(self):
        assert planar_distance((0, 0), (3, 4)) == 5.0

    def test_same_point(self):
        assert planar_distance((1.5, -2.0), (1.5, -2.0)) == 0.0


class TestStartSelection:
    def test_forward_start(self):
        builder = ChainBuilder([[(0.0, 0.0), (1.0, 1.0)]], anchor=ORIGIN)
        idx, reverse, dist = builder.select_start()
        assert (idx, reverse, dist) == (0, False, 0.0)
        assert builder.chain == [(0.0, 0.0), (1.0, 1.0)]
        assert builder.state is ChainState.EXTENDING

    def test_reversed_start(self):
        builder = ChainBuilder([[(5.0, 5.0), (0.1, 0.0)]], anchor=ORIGIN)
        idx, reverse, _ = builder.select_start()
        assert idx == 0
        assert reverse is True
        assert builder.chain == [(0.1, 0.0), (5.0, 5.0)]

    def test_picks_globally_nearest(self):
        segments = [
            [(3.0, 3.0), (4.0, 4.0)],
            [(2.0, 2.0), (0.5, 0.5)],
            [(1.0, 1.0), (9.0, 9.0)],
        ]
        builder = ChainBuilder(segments, anchor=ORIGIN)
        idx, reverse, _ = builder.select_start()
        assert (idx, reverse) == (1, True)

    def test_tie_goes_to_first_segment(self):
        segments = [[(1.0, 0.0), (2.0, 0.0)], [(0.0, 1.0), (0.0, 2.0)]]
        idx, reverse, _ = ChainBuilder(segments, anchor=ORIGIN).select_start()
        assert (idx, reverse) == (0, False)

    def test_cannot_select_twice(self):
        builder = ChainBuilder([[(0.0, 0.0), (1.0, 1.0)]], anchor=ORIGIN)
        builder.select_start()
        with pytest.raises(RuntimeError):
            builder.select_start()


class TestExactMatching:
    def test_forward_key_match(self):
        a = [(0.0, 0.0), (1.0, 1.0)]
        b = [(1.0, 1.0), (2.0, 2.0)]
        result = build_chain([a, b], anchor=(0.01, 0.01))
        assert result.points == [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0)]
        assert result.used_order == [0, 1]
        assert result.state is ChainState.COMPLETE
        assert result.exact_matches == 1
        assert result.fallback_matches == 0

    def test_end_match_reverses_segment(self):
        a = [(0.0, 0.0), (1.0, 1.0)]
        b = [(2.0, 2.0), (1.5, 1.5), (1.0, 1.0)]
        result = build_chain([a, b], anchor=ORIGIN)
        assert result.points == [(0.0, 0.0), (1.0, 1.0), (1.5, 1.5), (2.0, 2.0)]

    def test_first_candidate_wins(self):
        a = [(0.0, 0.0), (1.0, 1.0)]
        b = [(1.0, 1.0), (2.0, 2.0)]
        c = [(1.0, 1.0), (3.0, 3.0)]
        result = build_chain([a, b, c], anchor=ORIGIN)
        assert result.used_order == [0, 1]
        assert result.unused == [2]
        assert result.state is ChainState.STALLED

    def test_used_candidates_are_skipped(self):
        # (1,1) is indexed for a, b and c; a is already used when the tail hits it
        a = [(0.0, 0.0), (1.0, 1.0)]
        b = [(1.0, 1.0), (1.0, 2.0)]
        c = [(1.0, 2.0), (1.0, 1.0)]
        result = build_chain([a, b, c], anchor=ORIGIN)
        assert result.used_order == [0, 1, 2]
        assert result.points[-1] == (1.0, 1.0)
        assert result.state is ChainState.COMPLETE

    def test_shuffled_track_is_rebuilt_in_order(self):
        track = _track(61)
        segments = _split(track, 7)
        rng = random.Random(42)
        rng.shuffle(segments)
        segments = [seg[::-1] if rng.random() < 0.5 else seg for seg in segments]

        result = build_chain(segments, anchor=track[0])
        assert result.points == track
        assert result.unused == []
        assert result.fallback_matches == 0


class TestFallbackMatching:
    def test_within_tolerance(self):
        a = [(0.0, 0.0), (1.0, 1.0)]
        b = [(1.05, 1.05), (2.0, 2.0)]
        result = build_chain([a, b], anchor=(0.001, 0.001), tolerance=0.1)
        # b's first point is dropped as the shared endpoint
        assert result.points == [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0)]
        assert result.used_order == [0, 1]
        assert result.fallback_matches == 1
        assert result.exact_matches == 0

    def test_fallback_reverses_when_end_is_nearer(self):
        a = [(0.0, 0.0), (1.0, 1.0)]
        b = [(2.0, 2.0), (1.05, 1.05)]
        result = build_chain([a, b], anchor=ORIGIN)
        assert result.points == [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0)]

    def test_distance_tie_goes_to_lowest_index(self):
        a = [(0.0, 0.0), (1.0, 1.0)]
        b = [(1.05, 1.0), (2.0, 1.0)]
        c = [(1.0, 1.05), (1.0, 2.0)]
        result = build_chain([a, b, c], anchor=ORIGIN)
        assert result.used_order[:2] == [0, 1]

    def test_beyond_tolerance_stalls(self):
        a = [(0.0, 0.0), (1.0, 1.0)]
        b = [(1.0, 1.0), (2.0, 2.0)]
        c = [(10.0, 10.0), (11.0, 11.0)]
        result = build_chain([a, b, c], anchor=ORIGIN)
        assert result.state is ChainState.STALLED
        assert result.points == [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0)]
        assert result.unused == [2]
        assert result.unused_count == 1
        assert result.used_count < result.segment_count

    def test_custom_tolerance(self):
        a = [(0.0, 0.0), (1.0, 1.0)]
        b = [(1.5, 1.0), (2.0, 1.0)]
        assert build_chain([a, b], anchor=ORIGIN).state is ChainState.STALLED
        assert build_chain([a, b], anchor=ORIGIN, tolerance=1.0).state is ChainState.COMPLETE


class TestInvariants:
    def setup_method(self):
        track = _track(40)
        self.segments = _split(track, 5) + [[(50.0, 50.0), (51.0, 51.0)]]
        random.Random(7).shuffle(self.segments)

    def test_point_count(self):
        result = build_chain(self.segments, anchor=(0.0, 0.0))
        used_points = sum(len(self.segments[i]) for i in result.used_order)
        assert len(result.points) == used_points - (result.used_count - 1)

    def test_no_segment_used_twice(self):
        result = build_chain(self.segments, anchor=(0.0, 0.0))
        assert len(result.used_order) == len(set(result.used_order))
        assert set(result.used_order).isdisjoint(result.unused)
        assert len(result.used_order) + len(result.unused) == len(self.segments)

    def test_deterministic(self):
        first = build_chain(self.segments, anchor=(0.0, 0.0))
        second = build_chain(self.segments, anchor=(0.0, 0.0))
        assert first.points == second.points
        assert first.used_order == second.used_order

    def test_iterations_bounded_by_segment_count(self):
        result = build_chain(self.segments, anchor=(0.0, 0.0))
        assert result.iterations <= len(self.segments)

    def test_builder_state_matches_result(self):
        builder = ChainBuilder(self.segments, anchor=(0.0, 0.0))
        result = builder.build()
        assert builder.state is result.state is ChainState.STALLED
        assert builder.used == set(result.used_order)


class TestEdgeCases:
    def test_empty_segment_set(self):
        with pytest.raises(EmptySegmentSetError):
            build_chain([])

    def test_empty_error_is_value_error(self):
        with pytest.raises(ValueError):
            ChainBuilder([])

    def test_single_segment_completes(self):
        result = build_chain([[(0.0, 0.0), (1.0, 0.0), (2.0, 0.0)]], anchor=(2.0, 0.0))
        assert result.state is ChainState.COMPLETE
        assert result.points == [(2.0, 0.0), (1.0, 0.0), (0.0, 0.0)]
        assert result.start_reversed is True
        assert result.iterations == 0

    def test_single_point_segments(self):
        result = build_chain([[(0.0, 0.0)], [(0.05, 0.0)]], anchor=ORIGIN)
        # the second point is the shared endpoint and is deduplicated away
        assert result.points == [(0.0, 0.0)]
        assert result.used_order == [0, 1]

    def test_segments_are_not_mutated(self):
        a = [(0.0, 0.0), (1.0, 1.0)]
        b = [(2.0, 2.0), (1.0, 1.0)]
        build_chain([a, b], anchor=ORIGIN)
        assert b == [(2.0, 2.0), (1.0, 1.0)]
