"""Tests for the hourly grid helpers and gap detection."""

from hbar.data.timegrid import (
    align_to_step,
    find_missing_timestamps,
    format_timestamp,
    grid_points,
    is_aligned,
)


class TestFindMissingTimestamps:
    """Gap detection against the regular grid between min and max."""

    def test_single_gap(self) -> None:
        assert find_missing_timestamps([100, 200, 400], 100) == [300]

    def test_full_grid_has_no_gaps(self) -> None:
        assert find_missing_timestamps([100, 200, 300], 100) == []

    def test_empty_input_means_nothing_to_analyze(self) -> None:
        assert find_missing_timestamps([], 100) == []

    def test_single_element_has_no_gaps(self) -> None:
        assert find_missing_timestamps([3600], 3600) == []

    def test_consecutive_gaps_ascending(self) -> None:
        assert find_missing_timestamps([0, 3600, 18000], 3600) == [7200, 10800, 14400]

    def test_gaps_and_input_partition_the_grid(self) -> None:
        """gaps ∪ seq equals the full grid and the two are disjoint."""
        step = 3600
        seq = [0, 3600, 14400, 18000, 32400, 36000]
        gaps = find_missing_timestamps(seq, step)

        full = set(grid_points(seq[0], seq[-1], step))
        assert set(gaps) | set(seq) == full
        assert set(gaps).isdisjoint(seq)
        assert gaps == sorted(gaps)

    def test_large_grid_is_linear(self) -> None:
        """A year of hours with every 10th missing is processed without quadratic scans."""
        step = 3600
        seq = [i * step for i in range(24 * 365) if i % 10 != 5]
        gaps = find_missing_timestamps(seq, step)
        assert len(gaps) == 876
        assert gaps[0] == 5 * step


class TestGridHelpers:
    def test_align_to_step_rounds_down(self) -> None:
        assert align_to_step(1_755_257_999, 3600) == 1_755_255_600
        assert align_to_step(1_755_255_600, 3600) == 1_755_255_600

    def test_format_timestamp_is_utc_iso(self) -> None:
        assert format_timestamp(1_755_255_600) == "2025-08-15T11:00:00Z"

    def test_grid_points_inclusive(self) -> None:
        assert list(grid_points(0, 300, 100)) == [0, 100, 200, 300]

    def test_is_aligned(self) -> None:
        assert is_aligned([0, 3600, 7200], 3600)
        assert not is_aligned([0, 3601], 3600)
