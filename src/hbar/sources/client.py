"""Abstract rate source interface.

Collection code depends only on this interface, keeping the mirror node
request and response shape isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod

from hbar.data.models import RateWindow


class RateSource(ABC):
    """Abstract base class for point-in-time exchange-rate backends."""

    # Number of consecutive grid steps described by one RateWindow. The range
    # fetcher queries this many steps ahead and advances by the same amount.
    steps_per_window: int = 1

    @abstractmethod
    def fetch_rate_window(self, before: int) -> RateWindow:
        """Return the rate window in force just before the given instant.

        For a grid-aligned ``before`` the current rate expires at ``before``
        and the next rate one step later.

        Raises:
            FetchError: On network, timeout, status or payload errors.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the underlying HTTP resources."""
        ...
