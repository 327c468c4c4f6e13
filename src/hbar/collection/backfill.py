"""Targeted backfill of missing hourly samples.

For a missing hour start ``t`` the rate source is queried at ``t + step``:
the window returned for that instant has its current rate expiring at
``t + step``, i.e. covering ``t``. The window is still checked: one in
which neither rate starts at ``t`` is a hard failure for that timestamp
(an API change or a misaligned timestamp), never a silently wrong price.

Transient fetch errors are retried with exponential backoff. A fixed
delay between timestamps keeps the request rate polite.
"""

import time
from collections.abc import Callable, Iterable

from hbar.config import BackfillSettings
from hbar.data.models import BackfillReport, PricePoint, Rate, RateWindow
from hbar.data.pricing import price_point_from_rate
from hbar.data.timegrid import format_timestamp
from hbar.exceptions import FetchError, RateValidationError, RateWindowMismatchError
from hbar.logging import get_logger
from hbar.sources.client import RateSource

logger = get_logger(__name__)


def select_rate(window: RateWindow, target: int, step: int) -> Rate:
    """Return the rate of window whose interval starts exactly at target.

    Raises:
        RateWindowMismatchError: If neither rate starts at target.
    """
    current_start = window.current_rate.interval_start(step)
    next_start = window.next_rate.interval_start(step)

    if target == current_start:
        return window.current_rate
    if target == next_start:
        return window.next_rate
    raise RateWindowMismatchError(target, current_start, next_start)


class BackfillEngine:
    """Fills individual missing timestamps from a rate source.

    Usage:
        engine = BackfillEngine(client, step=3600, settings=settings.backfill)
        points, report = engine.fill(missing)
    """

    def __init__(
        self,
        source: RateSource,
        step: int,
        settings: BackfillSettings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._source = source
        self._step = step
        self._settings = settings
        self._sleep = sleep

    # ──────────────────────────────────────────────
    # Public methods
    # ──────────────────────────────────────────────

    def fill(self, missing: Iterable[int]) -> tuple[list[PricePoint], BackfillReport]:
        """Try every missing timestamp once, never aborting the batch.

        Returns the recovered points and a report of filled vs failed
        timestamps. Failed timestamps stay missing for a later run.
        """
        targets = list(missing)
        report = BackfillReport()
        points: list[PricePoint] = []

        if not targets:
            logger.info("no_missing_data_to_fill")
            return points, report

        logger.info("backfill_starting", missing=len(targets))

        for i, target in enumerate(targets, 1):
            try:
                point = self.fill_one(target)
            except (FetchError, RateValidationError) as e:
                report.failed += 1
                report.failed_timestamps.append(target)
                logger.warning(
                    "backfill_failed",
                    timestamp=target,
                    date=format_timestamp(target),
                    error=str(e),
                )
            else:
                report.filled += 1
                points.append(point)
                logger.info(
                    "backfill_filled",
                    timestamp=target,
                    date=format_timestamp(target),
                    price=str(point.price),
                )

            if i < len(targets):
                self._sleep(self._settings.request_delay)

        logger.info(
            "backfill_complete",
            filled=report.filled,
            failed=report.failed,
        )
        return points, report

    def fill_one(self, target: int) -> PricePoint:
        """Fetch and validate the price for one missing hour start.

        Raises:
            FetchError: When every retry attempt failed.
            RateValidationError: When the window does not cover target or
                its rate is unusable.
        """
        window = self._fetch_with_retry(target + self._step)
        rate = select_rate(window, target, self._step)
        return price_point_from_rate(rate, self._step)

    # ──────────────────────────────────────────────
    # Retry wrapper
    # ──────────────────────────────────────────────

    def _fetch_with_retry(self, before: int) -> RateWindow:
        """Query the source with exponential backoff on FetchError.

        Delays are retry_base_delay * 2**attempt: 1s, 2s, 4s, ... with the
        defaults. Re-raises on the final failure.
        """
        max_retries = max(1, self._settings.max_retries)
        base_delay = self._settings.retry_base_delay

        for attempt in range(max_retries):
            try:
                return self._source.fetch_rate_window(before)
            except FetchError as e:
                if attempt == max_retries - 1:
                    logger.error(
                        "fetch_failed_permanently",
                        before=before,
                        error=str(e),
                        attempts=max_retries,
                    )
                    raise

                delay = base_delay * (2**attempt)
                logger.warning(
                    "fetch_retry",
                    before=before,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay=delay,
                    error=str(e),
                )
                self._sleep(delay)

        raise AssertionError("unreachable")  # loop always returns or raises
