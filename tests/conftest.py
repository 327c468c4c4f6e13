"""Shared test fixtures for the HBAR price chart pipeline."""

from collections import Counter

import pytest

from hbar.config import (
    AppSettings,
    BackfillSettings,
    CollectionSettings,
    MarketSettings,
    MirrorNodeSettings,
    PathSettings,
)
from hbar.data.models import Rate, RateWindow
from hbar.exceptions import FetchError
from hbar.sources.client import RateSource

STEP = 3600
BASE = 1_755_255_600  # 2025-08-15T11:00:00Z, on the hourly grid


def cents_for(hour_start: int) -> int:
    """Deterministic cent_equivalent for an hour, distinct per hour."""
    return 750_000 + (hour_start // STEP) % 1000


class FakeRateSource(RateSource):
    """In-memory rate source following mirror node window semantics.

    A query at ``before`` returns the rate expiring at ``before`` as current
    and the one expiring a step later as next. ``fail_at`` maps query
    instants to the number of times they fail before succeeding.
    """

    steps_per_window = 2

    def __init__(self, step: int = STEP, shift: int = 0) -> None:
        self.step = step
        self.shift = shift  # misaligns returned windows when non-zero
        self.fail_at: Counter[int] = Counter()
        self.calls: list[int] = []
        self.closed = False

    def _rate(self, expiration: int) -> Rate:
        return Rate(
            cent_equivalent=cents_for(expiration - self.step),
            hbar_equivalent=30_000,
            expiration_time=expiration,
        )

    def fetch_rate_window(self, before: int) -> RateWindow:
        self.calls.append(before)
        if self.fail_at[before] > 0:
            self.fail_at[before] -= 1
            raise FetchError(f"simulated failure at {before}")
        expiration = before - (before % self.step) + self.shift
        return RateWindow(
            current_rate=self._rate(expiration),
            next_rate=self._rate(expiration + self.step),
        )

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_source() -> FakeRateSource:
    return FakeRateSource()


@pytest.fixture
def collection_settings() -> CollectionSettings:
    return CollectionSettings(step_seconds=STEP, progress_every=100)


@pytest.fixture
def backfill_settings() -> BackfillSettings:
    """Backfill settings with real delays that tests replace via a fake sleep."""
    return BackfillSettings(request_delay=0.1, max_retries=3, retry_base_delay=1.0)


@pytest.fixture
def app_settings(tmp_path, collection_settings, backfill_settings) -> AppSettings:
    """Return AppSettings with every path under tmp_path."""
    template_dir = tmp_path / "chart"
    template_dir.mkdir()
    (template_dir / "index.html").write_text(
        '<script>const cfg = { compressedCsvData: "" };</script>\n', encoding="utf-8"
    )
    (template_dir / "index.css").write_text("body {}\n", encoding="utf-8")

    return AppSettings(
        log_level="DEBUG",
        mirror_node=MirrorNodeSettings(base_url="https://mirror.test/api/v1/network/exchangerate"),
        market=MarketSettings(chart_url="https://cmc.test/chart", intervals=["5m", "1h"]),
        collection=collection_settings,
        backfill=backfill_settings,
        paths=PathSettings(
            oracle_dataset=str(tmp_path / "data" / "hedera-hbar-prices.csv"),
            market_dataset=str(tmp_path / "data" / "cmc-hbar-prices.csv"),
            merged_csv=str(tmp_path / "build" / "uncompressed-hbar-prices.csv"),
            chart_template=str(template_dir / "index.html"),
            chart_output=str(tmp_path / "release" / "index.html"),
            chart_assets=["index.css", "contrib"],
        ),
    )
