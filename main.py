# main.py

"""Entry point for the smartshop headless CLI."""

import argparse
import asyncio
import logging
import sys

from smartshop.config.logging_config import setup_logging
from smartshop.config.settings import Settings

logger = logging.getLogger("smartshop.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_ids = ", ".join(s["id"] for s in Settings.AVAILABLE_SOURCES)

    parser = argparse.ArgumentParser(
        prog="smartshop",
        description="Multi-catalog product search with price comparison.",
        epilog=f"Catalog sources: {valid_ids}",
    )
    parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Search query.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "-n",
        "--limit",
        type=int,
        default=Settings.DEFAULT_SEARCH_LIMIT,
        help=f"Maximum products (default: {Settings.DEFAULT_SEARCH_LIMIT}).",
    )
    parser.add_argument(
        "--csv",
        action="store_true",
        default=False,
        help="Also save search results as a comparison CSV.",
    )

    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--trending", action="store_true", help="Show trending products.",
    )
    group.add_argument(
        "--category", default=None, help="Browse one category.",
    )
    group.add_argument(
        "--favorites", action="store_true", help="List saved favorites.",
    )
    group.add_argument(
        "--alerts", action="store_true", help="List price alerts.",
    )
    group.add_argument(
        "--history", action="store_true", help="List recent searches.",
    )
    group.add_argument(
        "--export",
        nargs="?",
        const="",
        default=None,
        metavar="PATH",
        help="Export local state (default: timestamped file in exports/).",
    )
    group.add_argument(
        "--import",
        default=None,
        dest="import_path",
        metavar="PATH",
        help="Import local state from an export file.",
    )
    group.add_argument(
        "--backup", action="store_true", help="Snapshot local state.",
    )
    group.add_argument(
        "--restore", action="store_true", help="Restore the last snapshot.",
    )
    group.add_argument(
        "--repair", action="store_true", help="Check and repair local state.",
    )
    group.add_argument(
        "--health",
        action="store_true",
        help="Run a connectivity health check on all sources.",
    )
    return parser


def _dispatch(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    """Run the selected command and return its exit code."""
    from smartshop.cli import runner

    fmt = args.output_format
    if args.health:
        return asyncio.run(runner.run_health_check())
    if args.trending:
        return asyncio.run(runner.cli_trending(fmt, args.limit))
    if args.category:
        return asyncio.run(runner.cli_category(args.category, fmt, args.limit))
    if args.favorites:
        return runner.show_collection("favorites", fmt)
    if args.alerts:
        return runner.show_collection("alerts", fmt)
    if args.history:
        return runner.show_collection("history", fmt)
    if args.export is not None:
        return runner.run_export(args.export or None)
    if args.import_path:
        return runner.run_import(args.import_path)
    if args.backup:
        return runner.run_backup()
    if args.restore:
        return runner.run_restore()
    if args.repair:
        return runner.run_repair()
    if args.query:
        return asyncio.run(
            runner.cli_search(args.query, fmt, args.limit, args.csv)
        )
    parser.print_help()
    return 0


def main() -> None:
    """Parse arguments and route to the matching command."""
    log_file = setup_logging()
    logger.info("smartshop starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()
    try:
        exit_code = _dispatch(args, parser)
    except Exception:
        logger.critical("Fatal error during CLI run", exc_info=True)
        raise
    finally:
        logger.info("smartshop shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
