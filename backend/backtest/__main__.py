"""CLI entry point for the backtesting system.

Usage:
    python -m backtest --csv data/BTCUSDT_1h.csv
    python -m backtest --data-dir data --symbols BTCUSDT,ETHUSDT --timeframe 1h
    python -m backtest --csv data/BTCUSDT_1h.csv --compare
    python -m backtest --csv data/BTCUSDT_1h.csv --indicator RSI
    python -m backtest --csv data/BTCUSDT_1h.csv --overfit 0.8 -o result.json
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from core.errors import ConfigurationError, EngineError
from core.models.candle import CandleSeries
from core.models.config import INDICATOR_NAMES

from backtest.config import get_backtest_settings
from backtest.report import ReportFormatter
from backtest.runner import BacktestRunner
from backtest.storage.candle_source import CsvCandleSource, load_csv

logger = logging.getLogger(__name__)


def parse_split(value: str) -> float:
    """Parse a train fraction in (0, 1)."""
    try:
        split = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid split: {value} (expected a number)")
    if not 0.0 < split < 1.0:
        raise argparse.ArgumentTypeError(f"Invalid split: {value} (expected 0 < split < 1)")
    return split


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Backtest the weighted indicator consensus on OHLCV candles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m backtest --csv data/BTCUSDT_1h.csv
  python -m backtest --data-dir data --symbols BTCUSDT,ETHUSDT --timeframe 1h
  python -m backtest --csv data/BTCUSDT_1h.csv --compare
  python -m backtest --csv data/BTCUSDT_1h.csv --indicator MACD
        """,
    )

    # Data
    parser.add_argument(
        "--csv",
        type=str,
        nargs="+",
        default=None,
        help="CSV file(s) named <SYMBOL>_<timeframe>.csv",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory holding <SYMBOL>_<timeframe>.csv files",
    )
    parser.add_argument(
        "--symbols",
        type=str,
        default=None,
        help="Comma-separated symbols to load from --data-dir",
    )
    parser.add_argument(
        "--timeframe",
        type=str,
        default="1h",
        help="Timeframe to load from --data-dir (default: 1h)",
    )

    # Mode
    parser.add_argument(
        "--indicator",
        type=str,
        choices=INDICATOR_NAMES,
        default=None,
        help="Backtest a single indicator instead of the consensus",
    )
    parser.add_argument(
        "--compare",
        action="store_true",
        help="Compare every single indicator against the consensus",
    )
    parser.add_argument(
        "--overfit",
        type=parse_split,
        nargs="?",
        const=None,
        default=argparse.SUPPRESS,
        help="Run the train/test overfitting check (default split from settings)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-symbol timeout in seconds",
    )

    # Output
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output file path for JSON results",
    )
    parser.add_argument(
        "--trades",
        action="store_true",
        help="Include trades and equity curve in the JSON output",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )
    return parser.parse_args(argv)


def split_name(path: Path) -> tuple[str, str]:
    """``BTCUSDT_1h.csv`` -> ("BTCUSDT", "1h")."""
    symbol, _, timeframe = path.stem.partition("_")
    return symbol, timeframe


async def load_series(args: argparse.Namespace) -> list[CandleSeries]:
    series: list[CandleSeries] = []
    for name in args.csv or []:
        path = Path(name)
        symbol, timeframe = split_name(path)
        series.append(load_csv(path, symbol=symbol, timeframe=timeframe))

    if args.data_dir:
        if not args.symbols:
            raise SystemExit("Error: --symbols is required with --data-dir")
        source = CsvCandleSource(args.data_dir)
        for symbol in (s.strip() for s in args.symbols.split(",")):
            series.append(await source.get_series(symbol, args.timeframe))
    return series


def cmd_compare(runner: BacktestRunner, series_list: list[CandleSeries], args: argparse.Namespace) -> None:
    """Rank single-indicator backtests for each series."""
    reports = []
    for series in series_list:
        comparison = runner.compare_indicators(series)
        ReportFormatter.print_comparison(comparison)
        reports.append(ReportFormatter.comparison_to_dict(comparison))
    if args.output:
        ReportFormatter.save_json(reports, args.output)


def cmd_single(runner: BacktestRunner, series_list: list[CandleSeries], args: argparse.Namespace) -> None:
    """Backtest one indicator on each series."""
    reports = []
    for series in series_list:
        result = runner.run_single_indicator(series, args.indicator)
        ReportFormatter.print_console(result)
        reports.append(ReportFormatter.to_dict(result, include_series=args.trades))
    if args.output:
        ReportFormatter.save_json(reports, args.output)


async def cmd_run_backtest(
    runner: BacktestRunner,
    series_list: list[CandleSeries],
    args: argparse.Namespace,
    overfit_split: float | None,
) -> int:
    """Run the consensus backtest over every series concurrently."""
    timeout = args.timeout if args.timeout is not None else get_backtest_settings().symbol_timeout
    outcomes = await runner.run_symbols(series_list, timeout=timeout, overfit_split=overfit_split)

    for outcome in outcomes:
        if outcome.result is not None:
            ReportFormatter.print_console(outcome.result)
    if len(outcomes) > 1 or any(not o.ok for o in outcomes):
        ReportFormatter.print_outcomes(outcomes)

    if args.output:
        ReportFormatter.save_json(
            [
                {
                    "symbol": o.symbol,
                    "timeframe": o.timeframe,
                    "error": o.error,
                    "result": o.result.to_dict(include_series=args.trades) if o.result else None,
                }
                for o in outcomes
            ],
            args.output,
        )
    return 0 if all(o.ok for o in outcomes) else 1


async def run(args: argparse.Namespace) -> int:
    settings = get_backtest_settings()
    series_list = await load_series(args)
    if not series_list:
        print("Error: no input; pass --csv or --data-dir/--symbols")
        return 1

    runner = BacktestRunner.from_settings(settings)

    if args.compare:
        cmd_compare(runner, series_list, args)
        return 0
    if args.indicator:
        cmd_single(runner, series_list, args)
        return 0

    overfit_split = None
    if hasattr(args, "overfit"):
        overfit_split = args.overfit if args.overfit is not None else settings.train_fraction
    return await cmd_run_backtest(runner, series_list, args, overfit_split)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        settings = get_backtest_settings()
    except ConfigurationError as e:
        logger.error(f"Backtest failed: {e}")
        return 1

    # Configure logging
    level = logging.DEBUG if args.verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    try:
        return asyncio.run(run(args))
    except EngineError as e:
        logger.error(f"Backtest failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
