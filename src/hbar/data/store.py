"""Flat-file dataset stores for the oracle and market price series.

Each series lives in one header-labeled CSV file, sorted ascending by
timestamp with one row per timestamp. Files are read fully into memory
with pandas (every column as text, so decimal prices keep their exact
digits), transformed, and written back atomically: the new content goes to
a temporary file in the same directory which then replaces the original,
so a crash mid-write leaves the previous file intact.
"""

import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Generic, TypeVar

import pandas as pd

from hbar.data.models import MarketPoint, MergedRow, PricePoint
from hbar.data.timegrid import format_timestamp
from hbar.exceptions import DatasetFormatError, DatasetNotFoundError
from hbar.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", PricePoint, MarketPoint)

ORACLE_COLUMNS = (
    "hour_start_date",
    "hbar_price_usd",
    "hour_start_timestamp",
    "cent_equivalent",
    "hbar_equivalent",
)
MARKET_COLUMNS = ("timestamp", "CMC")
MERGED_COLUMNS = ("Date", "CMC", "HEDERA")


def write_csv_atomically(path: Path, columns: Iterable[str], rows: list[list[str]]) -> None:
    """Write rows under a header to path via a temporary file and os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(rows, columns=list(columns))

    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    os.close(fd)
    try:
        df.to_csv(tmp_name, index=False)
        os.replace(tmp_name, path)
    except Exception:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def write_merged_csv(path: str | Path, rows: list[MergedRow]) -> None:
    """Write the merged market/oracle table."""
    write_csv_atomically(
        Path(path),
        MERGED_COLUMNS,
        [[str(r.timestamp), str(r.market_price), str(r.oracle_price)] for r in rows],
    )
    logger.info("merged_csv_written", path=str(path), rows=len(rows))


class CsvDatasetStore(ABC, Generic[T]):
    """Typed read/merge/write access to one series CSV file.

    Usage:
        store = OracleDatasetStore("data/hedera-hbar-prices.csv")
        points = store.merge(store.load(), fetched)
        store.save(points)
    """

    columns: tuple[str, ...] = ()

    def __init__(self, path: str | Path, required: bool = False) -> None:
        self.path = Path(path)
        self._required = required

    # ──────────────────────────────────────────────
    # Row conversion
    # ──────────────────────────────────────────────

    @abstractmethod
    def _from_row(self, row: dict[str, str]) -> T:
        """Parse one CSV row. May raise ValueError or InvalidOperation."""
        ...

    @abstractmethod
    def _to_row(self, item: T) -> list[str]:
        """Render one item as CSV cells, in column order."""
        ...

    # ──────────────────────────────────────────────
    # Public methods
    # ──────────────────────────────────────────────

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> list[T]:
        """Read the dataset, sorted ascending and deduplicated by timestamp.

        A missing file yields an empty dataset unless the store is required.

        Raises:
            DatasetNotFoundError: If the store is required and the file is missing.
            DatasetFormatError: If the header differs from the expected columns
                or a row cannot be parsed.
        """
        if not self.exists():
            if self._required:
                raise DatasetNotFoundError(f"dataset not found: {self.path}")
            logger.info("dataset_missing_starting_empty", path=str(self.path))
            return []

        # The header is read as a data row so that pandas never infers an
        # index column from rows wider than the header.
        try:
            df = pd.read_csv(self.path, header=None, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError as e:
            raise DatasetFormatError(f"{self.path} is empty, expected a header") from e
        except pd.errors.ParserError as e:
            raise DatasetFormatError(f"{self.path} has a malformed row: {e}") from e

        found = tuple(str(c) for c in df.iloc[0])
        if found != self.columns:
            raise DatasetFormatError(
                f"{self.path} has unexpected header: expected "
                f"{','.join(self.columns)}, found {','.join(found)}"
            )

        body = df.iloc[1:].set_axis(list(self.columns), axis=1)

        items: list[T] = []
        for line_no, row in enumerate(body.to_dict("records"), start=2):
            # short rows come back with NaN cells
            if any(not isinstance(cell, str) for cell in row.values()):
                raise DatasetFormatError(f"{self.path}:{line_no}: missing fields in row {row}")
            try:
                items.append(self._from_row(row))
            except (ValueError, InvalidOperation) as e:
                raise DatasetFormatError(
                    f"{self.path}:{line_no}: cannot parse row {row}"
                ) from e

        items = self.merge([], items)
        logger.debug("dataset_loaded", path=str(self.path), rows=len(items))
        return items

    def merge(self, existing: Iterable[T], incoming: Iterable[T]) -> list[T]:
        """Combine two series into one sorted list with unique timestamps.

        For a timestamp present in both, the incoming item wins. Differing
        values for the same timestamp are logged so the run can be inspected.
        """
        by_timestamp: dict[int, T] = {item.timestamp: item for item in existing}
        conflicts = 0

        for item in incoming:
            prior = by_timestamp.get(item.timestamp)
            if prior is not None and prior != item:
                conflicts += 1
                logger.warning(
                    "conflicting_duplicate_timestamp",
                    path=str(self.path),
                    timestamp=item.timestamp,
                    kept=str(item.price),
                    replaced=str(prior.price),
                )
            by_timestamp[item.timestamp] = item

        if conflicts:
            logger.warning(
                "dataset_conflicts_resolved",
                path=str(self.path),
                conflicts=conflicts,
            )
        return [by_timestamp[ts] for ts in sorted(by_timestamp)]

    def save(self, items: list[T]) -> None:
        """Atomically replace the dataset file with items (already merged)."""
        write_csv_atomically(self.path, self.columns, [self._to_row(i) for i in items])
        logger.info("dataset_saved", path=str(self.path), rows=len(items))


class OracleDatasetStore(CsvDatasetStore[PricePoint]):
    """Hourly mirror node prices, one row per hour start."""

    columns = ORACLE_COLUMNS

    def _from_row(self, row: dict[str, str]) -> PricePoint:
        return PricePoint(
            timestamp=int(row["hour_start_timestamp"]),
            price=Decimal(row["hbar_price_usd"]),
            cent_equivalent=int(row["cent_equivalent"]),
            hbar_equivalent=int(row["hbar_equivalent"]),
        )

    def _to_row(self, item: PricePoint) -> list[str]:
        return [
            format_timestamp(item.timestamp),
            str(item.price),
            str(item.timestamp),
            str(item.cent_equivalent),
            str(item.hbar_equivalent),
        ]


class MarketDatasetStore(CsvDatasetStore[MarketPoint]):
    """Market aggregator prices at mixed 5m/15m/1h sampling."""

    columns = MARKET_COLUMNS

    def _from_row(self, row: dict[str, str]) -> MarketPoint:
        return MarketPoint(
            timestamp=int(row["timestamp"]),
            price=Decimal(row["CMC"]),
        )

    def _to_row(self, item: MarketPoint) -> list[str]:
        return [str(item.timestamp), str(item.price)]
