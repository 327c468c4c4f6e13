"""Tests for BackfillEngine: window validation, retry and batch accounting."""

import pytest
from conftest import BASE, STEP, FakeRateSource, cents_for

from hbar.collection.backfill import BackfillEngine, select_rate
from hbar.config import BackfillSettings
from hbar.data.models import PricePoint, Rate, RateWindow
from hbar.data.pricing import compute_price
from hbar.exceptions import FetchError, RateWindowMismatchError


@pytest.fixture
def sleeps() -> list[float]:
    return []


def _engine(source: FakeRateSource, settings: BackfillSettings, sleeps: list[float]) -> BackfillEngine:
    return BackfillEngine(source, STEP, settings, sleep=sleeps.append)


def _window(current_expiration: int) -> RateWindow:
    return RateWindow(
        current_rate=Rate(700_000, 30_000, current_expiration),
        next_rate=Rate(800_000, 30_000, current_expiration + STEP),
    )


class TestSelectRate:
    def test_matches_current_rate(self) -> None:
        window = _window(BASE + STEP)
        assert select_rate(window, BASE, STEP) is window.current_rate

    def test_matches_next_rate(self) -> None:
        window = _window(BASE)
        assert select_rate(window, BASE, STEP) is window.next_rate

    def test_mismatch_raises(self) -> None:
        with pytest.raises(RateWindowMismatchError, match="not found in window") as exc:
            select_rate(_window(BASE + 3 * STEP), BASE, STEP)
        assert exc.value.current_start == BASE + 2 * STEP
        assert exc.value.next_start == BASE + 3 * STEP


class TestFillOne:
    def test_queries_one_step_ahead(
        self, fake_source: FakeRateSource, backfill_settings: BackfillSettings, sleeps: list[float]
    ) -> None:
        point = _engine(fake_source, backfill_settings, sleeps).fill_one(BASE)

        assert fake_source.calls == [BASE + STEP]
        assert point == PricePoint(
            timestamp=BASE,
            price=compute_price(cents_for(BASE), 30_000),
            cent_equivalent=cents_for(BASE),
            hbar_equivalent=30_000,
        )

    def test_uses_next_rate_when_it_covers_target(
        self, backfill_settings: BackfillSettings, sleeps: list[float]
    ) -> None:
        source = FakeRateSource(shift=-STEP)
        point = _engine(source, backfill_settings, sleeps).fill_one(BASE)
        assert point.timestamp == BASE
        assert point.cent_equivalent == cents_for(BASE)

    def test_misaligned_window_is_a_hard_failure(
        self, backfill_settings: BackfillSettings, sleeps: list[float]
    ) -> None:
        source = FakeRateSource(shift=STEP)
        with pytest.raises(RateWindowMismatchError):
            _engine(source, backfill_settings, sleeps).fill_one(BASE)
        # validation failures are not retried
        assert source.calls == [BASE + STEP]
        assert sleeps == []

    def test_transient_errors_retried_with_backoff(
        self, fake_source: FakeRateSource, backfill_settings: BackfillSettings, sleeps: list[float]
    ) -> None:
        fake_source.fail_at[BASE + STEP] = 2

        point = _engine(fake_source, backfill_settings, sleeps).fill_one(BASE)

        assert point.timestamp == BASE
        assert fake_source.calls == [BASE + STEP] * 3
        assert sleeps == [1.0, 2.0]

    def test_gives_up_after_max_retries(
        self, fake_source: FakeRateSource, backfill_settings: BackfillSettings, sleeps: list[float]
    ) -> None:
        fake_source.fail_at[BASE + STEP] = 10

        with pytest.raises(FetchError):
            _engine(fake_source, backfill_settings, sleeps).fill_one(BASE)

        assert len(fake_source.calls) == 3
        assert sleeps == [1.0, 2.0]


class TestFill:
    def test_fills_every_missing_timestamp(
        self, fake_source: FakeRateSource, backfill_settings: BackfillSettings, sleeps: list[float]
    ) -> None:
        missing = [BASE, BASE + 5 * STEP, BASE + 9 * STEP]

        points, report = _engine(fake_source, backfill_settings, sleeps).fill(missing)

        assert [p.timestamp for p in points] == missing
        assert report.filled == 3
        assert report.failed == 0
        # politeness delay between requests, none after the last
        assert sleeps == [0.1, 0.1]

    def test_failure_does_not_abort_batch(
        self, fake_source: FakeRateSource, backfill_settings: BackfillSettings, sleeps: list[float]
    ) -> None:
        fake_source.fail_at[BASE + STEP] = 10
        missing = [BASE, BASE + 2 * STEP]

        points, report = _engine(fake_source, backfill_settings, sleeps).fill(missing)

        assert [p.timestamp for p in points] == [BASE + 2 * STEP]
        assert report.filled == 1
        assert report.failed == 1
        assert report.failed_timestamps == [BASE]

    def test_mismatches_reported_as_failures(
        self, backfill_settings: BackfillSettings, sleeps: list[float]
    ) -> None:
        source = FakeRateSource(shift=STEP)

        points, report = _engine(source, backfill_settings, sleeps).fill([BASE, BASE + STEP])

        assert points == []
        assert report.failed == 2
        assert report.failed_timestamps == [BASE, BASE + STEP]

    def test_nothing_missing(
        self, fake_source: FakeRateSource, backfill_settings: BackfillSettings, sleeps: list[float]
    ) -> None:
        points, report = _engine(fake_source, backfill_settings, sleeps).fill([])
        assert points == []
        assert report.filled == report.failed == 0
        assert fake_source.calls == []
