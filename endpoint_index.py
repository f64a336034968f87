"""
endpoint_index.py — Rounded-endpoint lookup for segment stitching.

Each segment contributes two entries: its first point tagged "start" and
its last point tagged "end".  The index is built once and never updated;
callers filter out segments they have already consumed.
"""

from collections import defaultdict

from config import ENDPOINT_KEY_PRECISION

START = "start"
END = "end"


def endpoint_key(point, precision: int = ENDPOINT_KEY_PRECISION) -> str:
    """Bucket key for a (lon, lat) point, e.g. '-84.1927,34.6295'."""
    lon, lat = point[0], point[1]
    return f"{lon:.{precision}f},{lat:.{precision}f}"


class EndpointIndex:
    """Maps endpoint keys to [(segment_index, START|END), ...]."""

    def __init__(self, precision: int = ENDPOINT_KEY_PRECISION):
        self.precision = precision
        self._buckets: dict[str, list[tuple[int, str]]] = defaultdict(list)

    @classmethod
    def build(cls, segments, precision: int = ENDPOINT_KEY_PRECISION) -> "EndpointIndex":
        index = cls(precision)
        for i, seg in enumerate(segments):
            index._buckets[endpoint_key(seg[0], precision)].append((i, START))
            index._buckets[endpoint_key(seg[-1], precision)].append((i, END))
        return index

    def key(self, point) -> str:
        return endpoint_key(point, self.precision)

    def candidates(self, point) -> list[tuple[int, str]]:
        """Entries sharing point's key, in insertion order.  May be empty."""
        # .get() so a miss doesn't grow the defaultdict
        return list(self._buckets.get(self.key(point), ()))

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, point) -> bool:
        return self.key(point) in self._buckets
