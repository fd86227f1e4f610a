# Project: bulkload - gigabyte-scale CSV ingestion into PostgreSQL
import argparse
import asyncio
import json
import os
import sys

from .core.constants import DESTINATIONS
from .core.exceptions import IngestionError
from .core.importer import import_csv
from .setup.config.loader import get_config_loader
from .setup.config.profiles import ProfileType
from .setup.logging import configure_logging, logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Load a CSV file into one of the destination tables.",
        epilog="""
Examples:
  %(prog)s data/engineers.csv engineer
    Load with host-derived defaults (COPY when PostgreSQL is reachable)

  %(prog)s data/commits.csv commit --no-copy --workers 4
    Validate in 4 worker processes, then insert in batches

  %(prog)s data/issues.csv issue --no-copy --no-workers --batch-size 200
    Stream the file with 200-row batches in one transaction
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("file_path", help="CSV file; first line is the header")
    parser.add_argument("destination", choices=sorted(DESTINATIONS), help="Destination table")

    tuning = parser.add_argument_group("Processing options")
    tuning.add_argument("--batch-size", type=int, help="Rows per insert batch")
    tuning.add_argument("--max-concurrent-batches", type=int, help="Batches in flight at once")
    tuning.add_argument("--workers", dest="worker_count", type=int, help="Chunk worker processes")
    tuning.add_argument("--chunk-size-lines", type=int, help="Max data lines per chunk worker")
    tuning.add_argument(
        "--no-transaction", dest="use_transaction", action="store_false", default=None,
        help="Commit each batch on its own",
    )
    tuning.add_argument(
        "--no-workers", dest="use_workers", action="store_false", default=None,
        help="Never use the parallel chunk strategy",
    )
    tuning.add_argument(
        "--no-copy", dest="use_pg_copy_stream", action="store_false", default=None,
        help="Never use the native COPY strategy",
    )
    tuning.add_argument(
        "--dry-run-chunks", dest="persist_chunk_results", action="store_false", default=None,
        help="Parallel strategy validates only; nothing is written",
    )
    tuning.add_argument(
        "--no-sync-schema", dest="sync_schema", action="store_false", default=None,
        help="Do not create the destination table when missing",
    )
    tuning.add_argument("--log-level", choices=["debug", "info", "warn", "error"])

    env_group = parser.add_argument_group("Environment")
    env_group.add_argument("--env-file", default=None, help="Path to a .env file")
    env_group.add_argument(
        "--profile", choices=[profile.value for profile in ProfileType], default=None,
        help="Apply a predefined environment profile",
    )
    return parser


OPTION_NAMES = (
    "batch_size",
    "max_concurrent_batches",
    "worker_count",
    "chunk_size_lines",
    "use_transaction",
    "use_workers",
    "use_pg_copy_stream",
    "persist_chunk_results",
    "sync_schema",
    "log_level",
)


def options_from_args(args: argparse.Namespace) -> dict:
    """Only the options given on the command line."""
    return {
        name: getattr(args, name)
        for name in OPTION_NAMES
        if getattr(args, name) is not None
    }


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config_loader = get_config_loader(args.env_file)
    config_loader.load_environment(profile=args.profile)
    configure_logging(environment=os.getenv("ENVIRONMENT"))

    try:
        metrics = asyncio.run(
            import_csv(
                args.file_path,
                args.destination,
                options_from_args(args),
                config_loader=config_loader,
            )
        )
    except IngestionError as e:
        logger.error(f"[CLI] {type(e).__name__}: {e}")
        return 1

    print(json.dumps(metrics.as_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
