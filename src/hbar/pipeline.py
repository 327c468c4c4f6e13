"""Fixed stage sequence that refreshes the datasets and publishes the chart.

Each run:
  1. MARKET: fetch 5m/15m/1h chart points, merge into the market dataset
  2. ORACLE: bulk-fetch hours since the last stored one, detect remaining
     gaps, backfill them, atomically save the oracle dataset
  3. MERGE: as-of join market and oracle series into the merged CSV
  4. PUBLISH: embed the merged CSV into the chart page

Per-item fetch failures are counted and reported; dataset and publish
errors propagate and abort the run before anything further is written.

Commits are per dataset, not per run: the market dataset is saved at the
end of its own stage, so a later failure (a malformed oracle file, say)
leaves the refreshed market dataset in place and nothing after it written.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from hbar.collection.backfill import BackfillEngine
from hbar.collection.range_fetcher import RangeFetcher
from hbar.config import AppSettings
from hbar.data.merger import merge_series
from hbar.data.models import BackfillReport, FetchReport, MarketPoint, MergedRow, PricePoint
from hbar.data.store import MarketDatasetStore, OracleDatasetStore, write_merged_csv
from hbar.data.timegrid import align_to_step, find_missing_timestamps, format_timestamp, is_aligned
from hbar.exceptions import FetchError
from hbar.logging import bind_stage, clear_stage, get_logger
from hbar.publish.chart import publish_chart
from hbar.sources.client import RateSource
from hbar.sources.market import MarketDataClient

logger = get_logger(__name__)


@dataclass
class RunSummary:
    """Counts reported at the end of a pipeline run."""

    market_rows: int = 0
    market_failed_intervals: list[str] = field(default_factory=list)
    oracle_rows: int = 0
    fetch: FetchReport | None = None
    backfill: BackfillReport = field(default_factory=BackfillReport)
    merged_rows: int = 0
    published: Path | None = None


class Pipeline:
    """Runs the market, oracle, merge and publish stages in order.

    Args:
        settings: Application-wide settings.
        rate_source: Oracle backend used by the range fetcher and backfill.
        market_client: Market chart client.
        clock: Returns the current Unix time; injectable for tests.
        sleep: Used for backfill throttling and retry delays.
    """

    def __init__(
        self,
        settings: AppSettings,
        rate_source: RateSource,
        market_client: MarketDataClient,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._rate_source = rate_source
        self._market_client = market_client
        self._clock = clock
        self._sleep = sleep
        self._step = settings.collection.step_seconds

        paths = settings.paths
        self._oracle_store = OracleDatasetStore(paths.oracle_dataset)
        self._market_store = MarketDatasetStore(paths.market_dataset)

    # ──────────────────────────────────────────────
    # Entry point
    # ──────────────────────────────────────────────

    def run(
        self,
        start: int | None = None,
        end: int | None = None,
        skip_market: bool = False,
        skip_publish: bool = False,
    ) -> RunSummary:
        """Run every stage. Raises on the first structural failure."""
        summary = RunSummary()
        started = time.monotonic()

        try:
            if not skip_market:
                bind_stage("market")
                market = self.update_market_dataset(summary)
            else:
                # Without a refresh the stored market series is mandatory
                market = MarketDatasetStore(
                    self._settings.paths.market_dataset, required=True
                ).load()
            summary.market_rows = len(market)

            bind_stage("oracle")
            oracle = self.update_oracle_dataset(summary, start=start, end=end)
            summary.oracle_rows = len(oracle)

            bind_stage("merge")
            merged = self.merge_datasets(oracle, market)
            summary.merged_rows = len(merged)

            if not skip_publish:
                bind_stage("publish")
                summary.published = self.publish()
        finally:
            clear_stage()

        logger.info(
            "pipeline_complete",
            market_rows=summary.market_rows,
            oracle_rows=summary.oracle_rows,
            merged_rows=summary.merged_rows,
            backfill_filled=summary.backfill.filled,
            backfill_failed=summary.backfill.failed,
            duration_seconds=round(time.monotonic() - started, 1),
        )
        return summary

    # ──────────────────────────────────────────────
    # Stages
    # ──────────────────────────────────────────────

    def update_market_dataset(self, summary: RunSummary) -> list[MarketPoint]:
        """Fetch every configured interval and merge into the market dataset.

        A failing interval is logged and skipped; the dataset is only
        rewritten when at least one interval returned points.
        """
        existing = self._market_store.load()
        fetched: list[MarketPoint] = []

        for interval in self._settings.market.intervals:
            try:
                points = self._market_client.fetch_points(interval)
            except FetchError as e:
                summary.market_failed_intervals.append(interval)
                logger.warning("market_interval_failed", interval=interval, error=str(e))
                continue
            logger.info("market_interval_fetched", interval=interval, points=len(points))
            fetched.extend(points)

        points = self._market_store.merge(existing, fetched)
        if fetched:
            self._market_store.save(points)
        logger.info(
            "market_dataset_updated",
            previous_rows=len(existing),
            rows=len(points),
            failed_intervals=summary.market_failed_intervals,
        )
        return points

    def update_oracle_dataset(
        self,
        summary: RunSummary,
        start: int | None = None,
        end: int | None = None,
    ) -> list[PricePoint]:
        """Bulk-fetch new hours, backfill gaps and save the oracle dataset once."""
        existing = self._oracle_store.load()
        latest = existing[-1].timestamp if existing else None
        points = existing

        bounds = self.resolve_range(latest, start, end)
        if bounds is not None:
            fetcher = RangeFetcher(self._rate_source, self._settings.collection)
            fetched, summary.fetch = fetcher.fetch_range(*bounds)
            points = self._oracle_store.merge(points, fetched)

        timestamps = [p.timestamp for p in points]
        if not is_aligned(timestamps, self._step):
            logger.warning("oracle_timestamps_not_aligned", step=self._step)

        missing = find_missing_timestamps(timestamps, self._step)
        if timestamps:
            logger.info(
                "oracle_gap_analysis",
                first=format_timestamp(timestamps[0]),
                last=format_timestamp(timestamps[-1]),
                missing=len(missing),
            )

        engine = BackfillEngine(
            self._rate_source, self._step, self._settings.backfill, sleep=self._sleep
        )
        filled, summary.backfill = engine.fill(missing)
        points = self._oracle_store.merge(points, filled)

        if points != existing:
            self._oracle_store.save(points)
        return points

    def merge_datasets(
        self,
        oracle: list[PricePoint],
        market: list[MarketPoint],
    ) -> list[MergedRow]:
        """Join both series and write the merged CSV."""
        rows = merge_series(oracle, market)
        write_merged_csv(self._settings.paths.merged_csv, rows)
        return rows

    def publish(self) -> Path:
        paths = self._settings.paths
        return publish_chart(
            paths.merged_csv,
            paths.chart_template,
            paths.chart_output,
            assets=paths.chart_assets,
        )

    # ──────────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────────

    def resolve_range(
        self,
        latest: int | None,
        start: int | None = None,
        end: int | None = None,
    ) -> tuple[int, int] | None:
        """Work out the grid-aligned [start, end) to bulk-fetch.

        Defaults: start resumes one step after the latest stored hour (or
        falls back to a fixed lookback), end is now. Returns None when start
        lies in the future, in which case only gap filling runs.
        """
        now = int(self._clock())
        if start is None:
            if latest is not None:
                start = latest + self._step
            else:
                start = now - self._settings.collection.fallback_lookback_seconds
        if end is None:
            end = now

        start = align_to_step(start, self._step)
        end = align_to_step(end, self._step)

        if start > now:
            logger.info(
                "next_collection_in_future",
                next_start=format_timestamp(start),
                now=format_timestamp(now),
            )
            return None

        if start >= end:
            end = start + self._step
        return start, end
