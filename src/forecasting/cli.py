"""Command-line entry point: forecast per-product sales from a sales export."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from src.ingestion import SalesRecordsConfig, load_sales_records

from .forecaster import forecast_to_frame
from .pipeline import ForecastConfig, ForecastResult, run_forecast_pipeline

logger = logging.getLogger(__name__)


def write_forecast(
    result: ForecastResult,
    config: ForecastConfig,
    output_dir: Path,
    *,
    source_path: Path | None = None,
) -> Path:
    """Persist forecast rows as CSV alongside a JSON metadata file."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    forecast_path = output_dir / f"nn_forecast_{timestamp}.csv"
    metadata_path = output_dir / f"nn_forecast_{timestamp}.json"

    forecast_to_frame(result.records).to_csv(forecast_path, index=False)

    metadata = {
        "generated_at": timestamp,
        "method": "feed_forward_regression",
        "forecast_horizon": config.horizon,
        "period_freq": config.period_freq,
        "epochs": config.epochs,
        "hidden_units": list(config.hidden_units),
        "min_quantity": result.bounds.min_quantity,
        "max_quantity": result.bounds.max_quantity,
        "final_loss": result.loss_history[-1] if result.loss_history else None,
        "products": list(result.products),
        "dropped_records": result.dropped_records,
        "record_count": len(result.records),
        "source_file": str(source_path) if source_path else None,
    }
    metadata_path.write_text(json.dumps(metadata, indent=2), encoding="utf-8")

    logger.info("Forecast saved to %s", forecast_path)
    return forecast_path


def parse_args(args: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "sales_file",
        type=Path,
        help="CSV or Excel export with created, short_desc and total_sold columns",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        dest="output",
        help="Optional directory where the forecast CSV and metadata should be written",
    )
    parser.add_argument("--horizon", type=int, help="Number of future periods per product")
    parser.add_argument("--epochs", type=int, help="Training epochs over the full dataset")
    parser.add_argument("--seed", type=int, help="Seed for weight initialization and shuffling")
    parser.add_argument(
        "--sheet",
        dest="sheet",
        default=0,
        help="Worksheet to read when the sales file is an Excel workbook",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(args=args)


def main(cli_args: Iterable[str] | None = None) -> None:
    args = parse_args(cli_args)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {
        name: value
        for name, value in (("horizon", args.horizon), ("epochs", args.epochs), ("seed", args.seed))
        if value is not None
    }
    config = replace(ForecastConfig.from_env(), **overrides)

    rows = load_sales_records(
        SalesRecordsConfig(source_path=args.sales_file, sheet_name=args.sheet)
    )
    result = run_forecast_pipeline(rows, config)

    if args.output:
        path = write_forecast(result, config, args.output, source_path=args.sales_file)
        print(f"Forecast written to {path}")
    else:
        print(forecast_to_frame(result.records).head(len(result.products) * config.horizon))


if __name__ == "__main__":
    main()
