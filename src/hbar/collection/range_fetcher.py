"""Bulk forward collection of a contiguous hourly range.

Walks [start, end) in windows of ``source.steps_per_window`` grid steps.
Each query is issued that many steps ahead of the cursor and every rate in
the returned window becomes a PricePoint, so the mirror node backend needs
one request per two hours. Failed queries are counted, not retried; the
holes they leave are closed later by gap detection and backfill.
"""

from hbar.config import CollectionSettings
from hbar.data.models import FetchReport, PricePoint
from hbar.data.pricing import price_point_from_rate
from hbar.data.timegrid import format_timestamp
from hbar.exceptions import FetchError, RateValidationError
from hbar.logging import get_logger
from hbar.sources.client import RateSource

logger = get_logger(__name__)


class RangeFetcher:
    """Collects PricePoints for every window of a grid-aligned range.

    Usage:
        fetcher = RangeFetcher(MirrorNodeClient(settings.mirror_node), settings.collection)
        points, report = fetcher.fetch_range(start, end)
    """

    def __init__(self, source: RateSource, settings: CollectionSettings) -> None:
        self._source = source
        self._settings = settings

    def fetch_range(self, start: int, end: int) -> tuple[list[PricePoint], FetchReport]:
        """Fetch all windows covering [start, end).

        Queries never point past ``end``. Returns the points in fetch order
        (callers merge them into the store, which sorts and deduplicates)
        and a FetchReport with request and failure counts.
        """
        step = self._settings.step_seconds
        span = self._source.steps_per_window * step
        points: list[PricePoint] = []
        report = FetchReport()

        logger.info(
            "range_fetch_starting",
            start=format_timestamp(start),
            end=format_timestamp(end),
            days=(end - start) // 86_400,
        )

        current = start
        while current < end:
            query = min(current + span, end)
            report.requests += 1

            try:
                window = self._source.fetch_rate_window(query)
                batch = [price_point_from_rate(rate, step) for rate in window.rates()]
            except (FetchError, RateValidationError) as e:
                report.failed += 1
                logger.warning("range_query_failed", query=query, error=str(e))
            else:
                points.extend(batch)
                succeeded = report.requests - report.failed
                if succeeded % self._settings.progress_every == 0:
                    logger.info(
                        "range_fetch_progress",
                        requests=succeeded,
                        records=len(points),
                        at=format_timestamp(query),
                    )

            current += span

        report.points = len(points)
        logger.info(
            "range_fetch_complete",
            requests=report.requests,
            failed=report.failed,
            records=report.points,
        )
        return points, report
