"""Regular time grid helpers and gap detection for hourly series."""

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

HOUR_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def align_to_step(timestamp: int, step: int) -> int:
    """Round a timestamp down to the nearest grid point."""
    return timestamp - (timestamp % step)


def format_timestamp(timestamp: int) -> str:
    """Render a timestamp as an ISO-8601 UTC string, e.g. 2025-08-15T11:00:00Z."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(HOUR_FORMAT)


def grid_points(start: int, stop: int, step: int) -> range:
    """All grid points in [start, stop]."""
    return range(start, stop + 1, step)


def find_missing_timestamps(timestamps: Sequence[int], step: int) -> list[int]:
    """Return the grid points between min and max that are absent from timestamps.

    The input is expected sorted and deduplicated. Membership is checked
    against a set built once, so the cost is linear in the grid size.
    An empty or single-element input has no gaps.

    Example:
        >>> find_missing_timestamps([100, 200, 400], 100)
        [300]
    """
    if len(timestamps) < 2:
        return []

    present = set(timestamps)
    return [
        ts for ts in grid_points(timestamps[0], timestamps[-1], step)
        if ts not in present
    ]


def is_aligned(timestamps: Iterable[int], step: int) -> bool:
    """Check that every timestamp sits on the grid."""
    return all(ts % step == 0 for ts in timestamps)
