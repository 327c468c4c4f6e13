"""Hedera mirror node exchange-rate client.

GET {base_url}?timestamp=lt:{seconds} returns the network exchange-rate
file in force before that instant:

    {
      "current_rate": {"cent_equivalent": 759774, "hbar_equivalent": 30000,
                       "expiration_time": 1755259200},
      "next_rate":    {"cent_equivalent": 760012, "hbar_equivalent": 30000,
                       "expiration_time": 1755262800},
      "timestamp": "1755259199.123456789"
    }

One response therefore describes two consecutive hours, which is why
steps_per_window is 2.
"""

from typing import Any

import requests

from hbar.config import MirrorNodeSettings
from hbar.data.models import Rate, RateWindow
from hbar.exceptions import FetchError
from hbar.logging import get_logger
from hbar.sources.client import RateSource

logger = get_logger(__name__)


def _parse_rate(payload: dict[str, Any], key: str) -> Rate:
    try:
        raw = payload[key]
        return Rate(
            cent_equivalent=int(raw["cent_equivalent"]),
            hbar_equivalent=int(raw["hbar_equivalent"]),
            expiration_time=int(raw["expiration_time"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise FetchError(f"malformed {key} in exchange-rate response: {e!r}") from e


def parse_rate_window(payload: Any) -> RateWindow:
    """Convert a decoded exchange-rate response into a RateWindow.

    Raises:
        FetchError: If either rate is missing or has non-integer fields.
    """
    if not isinstance(payload, dict):
        raise FetchError(f"unexpected exchange-rate response type: {type(payload).__name__}")
    return RateWindow(
        current_rate=_parse_rate(payload, "current_rate"),
        next_rate=_parse_rate(payload, "next_rate"),
    )


class MirrorNodeClient(RateSource):
    """Synchronous mirror node client over a requests.Session.

    Usage:
        client = MirrorNodeClient(settings.mirror_node)
        window = client.fetch_rate_window(1755262800)
    """

    steps_per_window = 2

    def __init__(
        self,
        settings: MirrorNodeSettings,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    def fetch_rate_window(self, before: int) -> RateWindow:
        params = {"timestamp": f"lt:{before}"}
        try:
            response = self._session.get(
                self._settings.base_url,
                params=params,
                timeout=self._settings.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            # JSON decode errors are RequestException subclasses in requests >= 2.27
            raise FetchError(f"exchange-rate query lt:{before} failed: {e}") from e

        window = parse_rate_window(payload)
        logger.debug(
            "rate_window_fetched",
            before=before,
            current_expiration=window.current_rate.expiration_time,
            next_expiration=window.next_rate.expiration_time,
        )
        return window

    def close(self) -> None:
        self._session.close()
