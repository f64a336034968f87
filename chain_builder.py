"""
chain_builder.py — Greedy stitching of unordered trail segments into one path.

How it works:
  1. Pick the segment whose start or end is nearest the anchor point
     (reversed if its end is the nearer one).
  2. Repeatedly look up the chain's tail in the EndpointIndex; the first
     unused candidate wins.  A candidate matched on its "end" is reversed
     so its far end becomes the new tail.
  3. With no exact match, scan every unused segment for the nearest
     endpoint and accept it if it lies within the tolerance.
  4. Stop when every segment is used, the iteration budget (one per
     segment) runs out, or nothing is close enough.  A stall is a normal
     result: leftover segments are reported, not raised.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum

from config import ANCHOR_LAT, ANCHOR_LON, MATCH_TOLERANCE
from endpoint_index import END, EndpointIndex

logger = logging.getLogger(__name__)


class EmptySegmentSetError(ValueError):
    """Raised when there is nothing to chain."""


class ChainState(Enum):
    SELECTING_START = "selecting-start"
    EXTENDING = "extending"
    STALLED = "stalled"
    COMPLETE = "complete"


@dataclass
class ChainResult:
    points: list
    state: ChainState
    used_order: list[int]
    unused: list[int]
    segment_count: int
    iterations: int = 0
    exact_matches: int = 0
    fallback_matches: int = 0
    start_index: int = -1
    start_reversed: bool = False
    start_distance: float = 0.0

    @property
    def used_count(self) -> int:
        return len(self.used_order)

    @property
    def unused_count(self) -> int:
        return len(self.unused)


def planar_distance(a, b) -> float:
    """Euclidean distance between two (lon, lat) points, in degrees."""
    return math.sqrt((a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2)


@dataclass
class ChainBuilder:
    """Owns the chain, used-set and state for a single stitching pass."""

    segments: list
    anchor: tuple[float, float] = (ANCHOR_LON, ANCHOR_LAT)
    tolerance: float = MATCH_TOLERANCE
    index: EndpointIndex = None
    chain: list = field(default_factory=list)
    used: set = field(default_factory=set)
    used_order: list = field(default_factory=list)
    state: ChainState = ChainState.SELECTING_START
    iterations: int = 0
    exact_matches: int = 0
    fallback_matches: int = 0

    def __post_init__(self):
        if not self.segments:
            raise EmptySegmentSetError("empty segment set: nothing to chain")
        if self.index is None:
            self.index = EndpointIndex.build(self.segments)
        self._start = (-1, False, 0.0)

    # ── Matching helpers ─────────────────────────────────────────────

    def _nearest_endpoint(self, point) -> tuple[int, bool, float]:
        """(index, reverse, distance) of the unused endpoint nearest point.

        Ties keep the lowest segment index, and a segment's start beats its
        own end at equal distance.
        """
        best_dist = math.inf
        best_idx = -1
        best_reverse = False
        for i, seg in enumerate(self.segments):
            if i in self.used:
                continue
            d_start = planar_distance(seg[0], point)
            d_end = planar_distance(seg[-1], point)
            if d_start < best_dist:
                best_dist, best_idx, best_reverse = d_start, i, False
            if d_end < best_dist:
                best_dist, best_idx, best_reverse = d_end, i, True
        return best_idx, best_reverse, best_dist

    def _exact_match(self, point) -> tuple[int, bool] | None:
        for idx, which_end in self.index.candidates(point):
            if idx in self.used:
                continue
            return idx, which_end == END
        return None

    def _consume(self, idx: int, reverse: bool) -> None:
        if idx in self.used:
            raise RuntimeError(f"segment {idx} consumed twice")
        self.used.add(idx)
        self.used_order.append(idx)
        seg = self.segments[idx]
        if reverse:
            seg = seg[::-1]
        # The shared endpoint is already the chain's tail.
        skip = 1 if self.chain else 0
        self.chain.extend(seg[skip:])

    # ── State transitions ────────────────────────────────────────────

    def select_start(self) -> tuple[int, bool, float]:
        """Consume the segment nearest the anchor.  Returns (idx, reverse, dist)."""
        if self.state is not ChainState.SELECTING_START:
            raise RuntimeError(f"start already selected (state={self.state.value})")
        idx, reverse, dist = self._nearest_endpoint(self.anchor)
        logger.info(f"Starting segment: {idx} reverse: {reverse} dist: {dist:.6f}")
        self._consume(idx, reverse)
        self._start = (idx, reverse, dist)
        self.state = ChainState.EXTENDING
        return self._start

    def extend_once(self) -> bool:
        """Attach one more segment to the tail.  False means the chain stalled."""
        last_pt = self.chain[-1]

        match = self._exact_match(last_pt)
        if match is not None:
            self._consume(*match)
            self.exact_matches += 1
            return True

        idx, reverse, dist = self._nearest_endpoint(last_pt)
        if idx >= 0 and dist < self.tolerance:
            logger.debug(f"Fallback match: segment {idx} at {dist:.6f} from {last_pt}")
            self._consume(idx, reverse)
            self.fallback_matches += 1
            return True

        logger.warning(
            f"Chain stalled at {last_pt}: nearest unused endpoint is "
            f"{dist:.6f} away (tolerance {self.tolerance})"
        )
        self.state = ChainState.STALLED
        return False

    def build(self) -> ChainResult:
        """Run a full stitching pass and return the result."""
        if self.state is ChainState.SELECTING_START:
            self.select_start()

        max_iter = len(self.segments)
        while (self.state is ChainState.EXTENDING
               and len(self.used) < len(self.segments)
               and self.iterations < max_iter):
            self.iterations += 1
            if not self.extend_once():
                break

        if self.state is ChainState.EXTENDING:
            self.state = ChainState.COMPLETE

        unused = [i for i in range(len(self.segments)) if i not in self.used]
        logger.info(f"Chained segments: {len(self.used)} / {len(self.segments)}")
        logger.info(f"Total points in chain: {len(self.chain)}")
        if unused:
            logger.warning(f"{len(unused)} segments could not be chained and were dropped")

        start_idx, start_reverse, start_dist = self._start
        return ChainResult(
            points=list(self.chain),
            state=self.state,
            used_order=list(self.used_order),
            unused=unused,
            segment_count=len(self.segments),
            iterations=self.iterations,
            exact_matches=self.exact_matches,
            fallback_matches=self.fallback_matches,
            start_index=start_idx,
            start_reversed=start_reverse,
            start_distance=start_dist,
        )


def build_chain(segments, anchor=(ANCHOR_LON, ANCHOR_LAT), tolerance=MATCH_TOLERANCE) -> ChainResult:
    """Stitch segments into a single ordered chain starting near anchor."""
    return ChainBuilder(list(segments), anchor=anchor, tolerance=tolerance).build()
