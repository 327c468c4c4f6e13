"""Remote price sources -- mirror node exchange rates and market chart data."""

from hbar.sources.client import RateSource
from hbar.sources.market import MarketDataClient
from hbar.sources.mirror_node import MirrorNodeClient

__all__ = ["MarketDataClient", "MirrorNodeClient", "RateSource"]
