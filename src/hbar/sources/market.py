"""CoinMarketCap chart client for the market price series."""

from decimal import Decimal
from typing import Any

import requests

from hbar.config import MarketSettings
from hbar.data.models import MarketPoint
from hbar.exceptions import FetchError
from hbar.logging import get_logger

logger = get_logger(__name__)


def parse_chart_points(payload: Any) -> list[MarketPoint]:
    """Extract (timestamp, price) points from a chart response.

    Response shape: {"data": {"points": [{"s": "1755269700", "v": [0.2472986, ...]}]}}.
    The first element of ``v`` is the USD price.

    Raises:
        FetchError: If the payload does not have the expected shape.
    """
    try:
        raw_points = payload["data"]["points"]
        return [
            MarketPoint(timestamp=int(p["s"]), price=Decimal(str(p["v"][0])))
            for p in raw_points
        ]
    except (KeyError, IndexError, TypeError, ValueError, ArithmeticError) as e:
        raise FetchError(f"malformed chart response: {e!r}") from e


class MarketDataClient:
    """Fetches HBAR price points at a given sampling interval.

    Usage:
        client = MarketDataClient(settings.market)
        points = client.fetch_points("15m")
    """

    def __init__(
        self,
        settings: MarketSettings,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    def fetch_points(self, interval: str, time_range: str | None = None) -> list[MarketPoint]:
        """Fetch completed points for one interval, oldest first.

        The newest point of every response is still being aggregated and is
        discarded.

        Raises:
            FetchError: On network, timeout, status or payload errors.
        """
        params: dict[str, Any] = {"id": self._settings.asset_id, "interval": interval}
        time_range = time_range or self._settings.time_range
        if time_range:
            params["range"] = time_range

        try:
            response = self._session.get(
                self._settings.chart_url,
                params=params,
                timeout=self._settings.timeout_seconds,
            )
            response.raise_for_status()
            # parse_float keeps the exact digits of each price
            payload = response.json(parse_float=Decimal)
        except requests.RequestException as e:
            raise FetchError(f"chart query interval={interval} failed: {e}") from e

        points = sorted(parse_chart_points(payload), key=lambda p: p.timestamp)[:-1]
        logger.debug("market_points_fetched", interval=interval, points=len(points))
        return points

    def close(self) -> None:
        self._session.close()
