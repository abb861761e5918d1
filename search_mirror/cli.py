"""Command line entry point: search-mirror run|backup|restore."""

import argparse
import asyncio
import logging
from dataclasses import replace
from typing import List, Optional

from ._utils import logger, parse_day
from .backup import BackupManager
from .backup.manager import log_summary
from .backup.models import RunSummary
from .config import RunConfig
from .errors import MirrorError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="search-mirror",
        description="Back up a search index to JSON files and restore it into another index",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=["run", "backup", "restore"],
        help="run = backup then restore (default)",
    )
    parser.add_argument(
        "--config",
        help="appsettings.json style file. Environment variables are used when omitted.",
    )
    parser.add_argument("--start-date", help="First day to export (YYYY-MM-DD). Required to export anything.")
    parser.add_argument("--end-date", help="Day after the last day to export (YYYY-MM-DD, exclusive).")
    parser.add_argument("--backup-dir", help="Directory for schema, manifest and export files.")
    parser.add_argument("--max-batch-size", type=int, help="Documents per page and per file (at most 1000).")
    parser.add_argument("--parallelization-count", type=int, help="Maximum concurrent day or upload jobs.")
    parser.add_argument(
        "--wave-barrier",
        action="store_true",
        help="Run jobs in waves, waiting for the whole wave before starting the next.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    return parser


def load_config(args: argparse.Namespace) -> RunConfig:
    """Build the run config from file or environment, then apply CLI overrides."""
    config = RunConfig.from_file(args.config) if args.config else RunConfig.from_env()

    export_overrides = {}
    if args.start_date:
        export_overrides["start_date"] = parse_day(args.start_date)
    if args.end_date:
        export_overrides["end_date"] = parse_day(args.end_date)
    if args.max_batch_size is not None:
        export_overrides["max_batch_size"] = args.max_batch_size
    if args.parallelization_count is not None:
        export_overrides["parallelization_count"] = args.parallelization_count
    if args.wave_barrier:
        export_overrides["wave_barrier"] = True

    if export_overrides:
        config = replace(config, export=replace(config.export, **export_overrides))
    if args.backup_dir:
        config = replace(config, backup_dir=args.backup_dir)
    return config


async def execute(command: str, config: RunConfig) -> RunSummary:
    async with BackupManager(config) as manager:
        if command == "backup":
            summary = await manager.backup()
        elif command == "restore":
            summary = await manager.restore()
        else:
            return await manager.run()
    log_summary(summary)
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI and return the process exit code.

    0 when everything succeeded, 1 on a fatal error, 2 when some days or files
    failed.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args)
    except (ValueError, OSError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    logger.info(f"CONFIGURATION: {config.to_dict()}")
    try:
        summary = asyncio.run(execute(args.command, config))
    except (MirrorError, OSError) as e:
        logger.error(f"Run failed: {e}")
        return 1
    return summary.exit_code
