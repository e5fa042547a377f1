# main.py

"""Entry point for the price tracker reconciliation cycle."""

import argparse
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("price_tracker.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_ids = ", ".join(s["id"] for s in Settings.AVAILABLE_STORES)

    parser = argparse.ArgumentParser(
        prog="price_tracker",
        description=(
            "Reconcile scraped electronics listings across stores "
            "and report price changes."
        ),
        epilog=f"Stores for --html: {valid_ids}",
    )
    parser.add_argument(
        "-r",
        "--raw",
        action="append",
        default=[],
        dest="raw_files",
        metavar="FILE",
        help="JSON array of raw listing records (repeatable).",
    )
    parser.add_argument(
        "--html",
        action="append",
        default=[],
        dest="html_specs",
        metavar="STORE_ID=FILE",
        help="Saved category page to extract listings from (repeatable).",
    )
    parser.add_argument(
        "-s",
        "--state",
        default=None,
        dest="state_path",
        help="State document path (default: prices.json).",
    )
    parser.add_argument(
        "-o",
        "--report",
        default=None,
        dest="report_path",
        help="Change report path (default: results/changes_<ts>.json).",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    return parser


def main() -> None:
    """Parse arguments and run one reconciliation cycle."""
    log_file = setup_logging()
    logger.info("price_tracker starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    from src.cli.runner import run_cycle_cli

    try:
        exit_code = run_cycle_cli(
            raw_files=args.raw_files,
            html_specs=args.html_specs,
            state_path=args.state_path,
            report_path=args.report_path,
            output_format=args.output_format,
        )
    except Exception:
        logger.critical("Fatal error during cycle", exc_info=True)
        raise
    finally:
        logger.info("price_tracker shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
