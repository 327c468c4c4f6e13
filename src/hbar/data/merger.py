"""As-of join of the market series against the hourly oracle series.

The market series drives the output: every market timestamp produces one
row carrying the oracle price in force at that instant, which is the exact
oracle sample when one exists and otherwise the latest earlier one
(forward-fill). Market rows older than the first oracle sample are dropped.
"""

from collections.abc import Iterable

from hbar.data.models import MarketPoint, MergedRow, PricePoint
from hbar.exceptions import NoDataToMergeError
from hbar.logging import get_logger

logger = get_logger(__name__)


def _sorted_unique(points: Iterable[MarketPoint]) -> list[MarketPoint]:
    by_timestamp = {p.timestamp: p for p in points}
    return [by_timestamp[ts] for ts in sorted(by_timestamp)]


def merge_series(
    oracle: list[PricePoint],
    market: list[MarketPoint],
) -> list[MergedRow]:
    """Enrich each market point with the oracle price at or before its timestamp.

    Runs in O(n + m) after sorting: a single pointer walks the sorted oracle
    timestamps while market points are visited in ascending order.

    Args:
        oracle: Hourly oracle points. Sorted and deduplicated by the store.
        market: Market points in any order; sorted and deduplicated here.

    Returns:
        One MergedRow per market timestamp that has an oracle price, ascending.

    Raises:
        NoDataToMergeError: If either series is empty or no row could be built.
    """
    if not oracle:
        raise NoDataToMergeError("no oracle data to merge")
    if not market:
        raise NoDataToMergeError("no market data to merge")

    oracle_by_ts = {p.timestamp: p.price for p in oracle}
    oracle_timestamps = sorted(oracle_by_ts)

    rows: list[MergedRow] = []
    last_oracle_price = None
    cursor = 0
    dropped = 0

    for point in _sorted_unique(market):
        # Advance the carry over every oracle sample at or before this instant
        while (
            cursor < len(oracle_timestamps)
            and oracle_timestamps[cursor] <= point.timestamp
        ):
            last_oracle_price = oracle_by_ts[oracle_timestamps[cursor]]
            cursor += 1

        if last_oracle_price is None:
            dropped += 1
            continue

        rows.append(
            MergedRow(
                timestamp=point.timestamp,
                market_price=point.price,
                oracle_price=last_oracle_price,
            )
        )

    if not rows:
        raise NoDataToMergeError(
            "market data ends before the first oracle sample; nothing to merge"
        )

    logger.info(
        "series_merged",
        oracle_points=len(oracle),
        market_points=len(market),
        merged_rows=len(rows),
        dropped_leading=dropped,
    )
    return rows
