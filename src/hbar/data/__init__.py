"""Price series persistence and reconciliation.

Provides data models, the hourly grid gap detector, the price calculator,
CSV dataset stores, and the market/oracle series merger.
"""

from hbar.data.merger import merge_series
from hbar.data.models import (
    BackfillReport,
    FetchReport,
    MarketPoint,
    MergedRow,
    PricePoint,
    Rate,
    RateWindow,
)
from hbar.data.pricing import compute_price, price_point_from_rate
from hbar.data.store import MarketDatasetStore, OracleDatasetStore, write_merged_csv
from hbar.data.timegrid import align_to_step, find_missing_timestamps

__all__ = [
    "BackfillReport",
    "FetchReport",
    "MarketDatasetStore",
    "MarketPoint",
    "MergedRow",
    "OracleDatasetStore",
    "PricePoint",
    "Rate",
    "RateWindow",
    "align_to_step",
    "compute_price",
    "find_missing_timestamps",
    "merge_series",
    "price_point_from_rate",
    "write_merged_csv",
]
