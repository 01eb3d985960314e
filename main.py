# main.py

"""Entry point for the market_trust operator CLI."""

import argparse
import logging
import sys
from pathlib import Path

from market_trust.config.logging_config import setup_logging
from market_trust.config.settings import Settings
from market_trust.models.price_record import SourceKind

logger = logging.getLogger("market_trust.main")


def _add_format_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="market_trust",
        description="Local fuel-price trust and matching engine.",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        dest="db_path",
        help="Price database path (default: data/prices.db).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add-price", help="Record a price observation.")
    add.add_argument("supplier_id")
    add.add_argument("price", help="Price per gallon, e.g. 3.499")
    add.add_argument(
        "-k",
        "--kind",
        choices=[k.value for k in SourceKind],
        default=SourceKind.MANUAL.value,
        help="Source kind (default: manual).",
    )
    add.add_argument(
        "--min-quantity",
        type=int,
        default=Settings.DEFAULT_MIN_QUANTITY,
        help="Minimum order gallons for this price.",
    )
    add.add_argument("--note", default="", help="Free-text note.")

    current = sub.add_parser(
        "current", help="Show current displayable prices.",
    )
    current.add_argument("supplier_ids", nargs="+")
    _add_format_flag(current)

    signals = sub.add_parser(
        "signals", help="Internal market-signal dump.",
    )
    signals.add_argument(
        "--hours",
        type=int,
        default=Settings.SIGNAL_LOOKBACK_HOURS,
        help="Lookback window in hours (default: 168).",
    )
    _add_format_flag(signals)

    invalidate = sub.add_parser(
        "invalidate", help="Mark a price record invalid.",
    )
    invalidate.add_argument("record_id", type=int)

    nearby = sub.add_parser(
        "nearby", help="Comparable suppliers for one supplier.",
    )
    nearby.add_argument("supplier_id")
    nearby.add_argument(
        "-d",
        "--directory",
        type=Path,
        required=True,
        help="JSON file of supplier service areas.",
    )
    nearby.add_argument(
        "-n",
        "--limit",
        type=int,
        default=Settings.PROXIMITY_DEFAULT_LIMIT,
    )
    _add_format_flag(nearby)

    check = sub.add_parser(
        "check-submission",
        help="Dry-run the community price plausibility check.",
    )
    check.add_argument("price")
    check.add_argument("quantity", type=float, help="Gallons delivered.")
    check.add_argument(
        "-m", "--market", default=None, help="Market price snapshot.",
    )

    ranks = sub.add_parser("ranks", help="Show activity bands.")
    ranks.add_argument(
        "--counts",
        type=Path,
        default=None,
        help="JSON object of supplier -> interaction count "
             "(default: read the interaction database).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Dispatch to the requested operator command."""
    log_file = setup_logging()
    logger.info("market_trust starting, log file: %s", log_file)

    args = _build_parser().parse_args(argv)

    from market_trust.cli import runner

    if args.command == "add-price":
        code = runner.run_add_price(
            args.supplier_id,
            args.price,
            source_kind=args.kind,
            min_quantity=args.min_quantity,
            note=args.note,
            db_path=args.db_path,
        )
    elif args.command == "current":
        code = runner.run_current(
            args.supplier_ids, args.output_format, args.db_path,
        )
    elif args.command == "signals":
        code = runner.run_signals(
            args.hours, args.output_format, args.db_path,
        )
    elif args.command == "invalidate":
        code = runner.run_invalidate(args.record_id, args.db_path)
    elif args.command == "nearby":
        code = runner.run_nearby(
            args.supplier_id,
            args.directory,
            args.limit,
            args.output_format,
            args.db_path,
        )
    elif args.command == "check-submission":
        code = runner.run_check_submission(
            args.price, args.quantity, args.market,
        )
    else:
        code = runner.run_ranks(args.counts)

    sys.exit(code)


if __name__ == "__main__":
    main()
