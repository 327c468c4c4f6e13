"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import Field, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict


class MirrorNodeSettings(BaseSettings):
    """Hedera mirror node exchange-rate endpoint."""

    model_config = SettingsConfigDict(env_prefix="MIRROR_")

    base_url: str = "https://mainnet.mirrornode.hedera.com/api/v1/network/exchangerate"
    timeout_seconds: float = 30.0


class MarketSettings(BaseSettings):
    """CoinMarketCap chart endpoint used for the market price series."""

    model_config = SettingsConfigDict(env_prefix="CMC_")

    chart_url: str = (
        "https://api.coinmarketcap.com/data-api/v3.3/cryptocurrency/detail/chart"
    )
    asset_id: int = 4642  # HBAR
    intervals: list[str] = ["5m", "15m", "1h"]
    time_range: str | None = None
    timeout_seconds: float = 30.0


class CollectionSettings(BaseSettings):
    """Hourly grid and bulk range collection parameters."""

    model_config = SettingsConfigDict(env_prefix="COLLECT_")

    step_seconds: PositiveInt = 3600
    fallback_lookback_seconds: int = 864_000  # 10 days, used when no dataset exists
    progress_every: PositiveInt = 100  # log progress every N successful requests


class BackfillSettings(BaseSettings):
    """Gap backfill throttling and retry parameters.

    Transient fetch errors are retried with delays of
    retry_base_delay * 2**attempt. request_delay is a politeness pause
    between consecutive missing timestamps.
    """

    model_config = SettingsConfigDict(env_prefix="BACKFILL_")

    request_delay: float = 0.1
    max_retries: PositiveInt = 3
    retry_base_delay: float = 1.0


class PathSettings(BaseSettings):
    """Locations of datasets, the merged table and the chart page."""

    model_config = SettingsConfigDict(env_prefix="PATHS_")

    oracle_dataset: str = "data/hedera-hbar-prices.csv"
    market_dataset: str = "data/cmc-hbar-prices.csv"
    merged_csv: str = "build/uncompressed-hbar-prices.csv"
    chart_template: str = "chart/index.html"
    chart_output: str = "release/index.html"
    chart_assets: list[str] = ["index.css", "contrib"]


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"
    # Sub-settings are built per AppSettings() so their env vars are read then
    mirror_node: MirrorNodeSettings = Field(default_factory=MirrorNodeSettings)
    market: MarketSettings = Field(default_factory=MarketSettings)
    collection: CollectionSettings = Field(default_factory=CollectionSettings)
    backfill: BackfillSettings = Field(default_factory=BackfillSettings)
    paths: PathSettings = Field(default_factory=PathSettings)
