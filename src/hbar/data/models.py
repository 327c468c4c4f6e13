"""Data models for exchange-rate windows and the price series built from them.

All prices use Decimal. Never use float for prices: the datasets are
compared and deduplicated on their exact decimal text.
"""

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class Rate:
    """One exchange rate as published by the network.

    cent_equivalent / hbar_equivalent is the USD cent value of one hbar.
    The rate is valid for the step-sized interval ending at expiration_time.
    """

    cent_equivalent: int
    hbar_equivalent: int
    expiration_time: int

    def interval_start(self, step: int) -> int:
        """Start of the interval this rate covers."""
        return self.expiration_time - step


@dataclass(frozen=True)
class RateWindow:
    """The (current, next) rate pair returned by a point-in-time query."""

    current_rate: Rate
    next_rate: Rate

    def rates(self) -> tuple[Rate, ...]:
        """Rates in chronological order."""
        return (self.current_rate, self.next_rate)


@dataclass(frozen=True)
class PricePoint:
    """One hourly row of the oracle dataset.

    timestamp is the start of the interval [timestamp, timestamp + step).
    """

    timestamp: int
    price: Decimal
    cent_equivalent: int
    hbar_equivalent: int


@dataclass(frozen=True)
class MarketPoint:
    """One row of the market dataset. Timestamps are not grid-aligned."""

    timestamp: int
    price: Decimal


@dataclass(frozen=True)
class MergedRow:
    """One row of the published table, keyed by a market timestamp."""

    timestamp: int
    market_price: Decimal
    oracle_price: Decimal


@dataclass
class FetchReport:
    """Summary of a bulk range fetch."""

    requests: int = 0
    failed: int = 0
    points: int = 0


@dataclass
class BackfillReport:
    """Summary of a gap backfill run."""

    filled: int = 0
    failed: int = 0
    failed_timestamps: list[int] = field(default_factory=list)
