"""Stride-based point reduction that always keeps the trail's terminus."""

from config import TARGET_POINTS


def downsample(chain: list, target_points: int = TARGET_POINTS) -> list:
    """Keep every n-th point of chain, n = max(1, len // target_points).

    The first point is always kept, and the last point is appended if the
    stride skipped past it.
    """
    if target_points <= 0:
        raise ValueError(f"target_points must be positive, got {target_points}")
    if not chain:
        return []

    step = max(1, len(chain) // target_points)
    sampled = list(chain[::step])
    if sampled[-1] != chain[-1]:
        sampled.append(chain[-1])
    return sampled
