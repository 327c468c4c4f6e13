"""Entry point for the HBAR price chart pipeline.

Wires settings, logging and the two HTTP clients together and runs the
pipeline once. Intended to be scheduled (cron, CI) rather than kept alive.

Exit status is 0 on success and 1 when the settings are invalid or a stage
fails structurally (missing or malformed dataset, nothing to merge, chart
template problems).
Per-hour fetch failures do not change the exit status; they are reported
in the final log events and retried on the next run.
"""

import argparse
import sys

from pydantic import ValidationError

from hbar.config import AppSettings
from hbar.exceptions import PipelineError
from hbar.logging import get_logger, setup_logging
from hbar.pipeline import Pipeline
from hbar.sources.market import MarketDataClient
from hbar.sources.mirror_node import MirrorNodeClient


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="hbar-chart",
        description=(
            "Fetch hourly HBAR exchange rates and market prices, fill gaps, "
            "merge both series and publish the chart page."
        ),
    )
    parser.add_argument(
        "--start",
        type=int,
        help="Unix timestamp to start collecting from "
        "(default: one hour after the last stored hour, or 10 days ago)",
    )
    parser.add_argument(
        "--end",
        type=int,
        help="Unix timestamp to stop collecting at (default: now)",
    )
    parser.add_argument(
        "--skip-market",
        action="store_true",
        help="Do not refresh the market dataset; use the stored one",
    )
    parser.add_argument(
        "--skip-publish",
        action="store_true",
        help="Stop after writing the merged CSV",
    )
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    """Run the pipeline once and return the process exit status."""
    args = _parse_args(argv)

    # 1. Load settings
    try:
        settings = AppSettings()
    except ValidationError as e:
        setup_logging()
        get_logger("hbar.main").error(
            "invalid_settings", errors=e.error_count(), error=str(e)
        )
        return 1

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("hbar.main")

    # 3. Build clients and pipeline
    rate_source = MirrorNodeClient(settings.mirror_node)
    market_client = MarketDataClient(settings.market)
    pipeline = Pipeline(settings, rate_source, market_client)

    try:
        pipeline.run(
            start=args.start,
            end=args.end,
            skip_market=args.skip_market,
            skip_publish=args.skip_publish,
        )
    except PipelineError as e:
        logger.error("pipeline_failed", error_type=type(e).__name__, error=str(e))
        return 1
    finally:
        rate_source.close()
        market_client.close()

    return 0


def main() -> None:
    """Console script entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
