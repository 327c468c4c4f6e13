"""Oracle price collection -- bulk range fetching and targeted gap backfill."""

from hbar.collection.backfill import BackfillEngine, select_rate
from hbar.collection.range_fetcher import RangeFetcher

__all__ = ["BackfillEngine", "RangeFetcher", "select_rate"]
