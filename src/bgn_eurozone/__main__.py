"""
CLI entry point for the catalog currency migration.

Usage:
    python -m bgn_eurozone init --currency BGN
    python -m bgn_eurozone status
    python -m bgn_eurozone start
    python -m bgn_eurozone batch --offset 100
    python -m bgn_eurozone resume
    python -m bgn_eurozone run
    python -m bgn_eurozone finalize --strict
    python -m bgn_eurozone reset

The CLI runs as the store operator: every command is authorized.
"""

import argparse
import asyncio
import sys

from bgn_eurozone.config.models import EurozoneConfig
from bgn_eurozone.config.settings import load_config_with_fallback
from bgn_eurozone.db.engine import create_engine
from bgn_eurozone.db.init import ensure_database_directory, init_database
from bgn_eurozone.db.session import create_session_maker
from bgn_eurozone.migration.job import BatchResult, MigrationJob, MigrationStatus
from bgn_eurozone.services.catalog import SqlCatalog
from bgn_eurozone.services.settings_store import SqlSettingsStore
from bgn_eurozone.shared.exceptions import EurozoneError, PreconditionError
from bgn_eurozone.shared.logging_config import configure_structured_logging


def print_status(status: MigrationStatus) -> None:
    print("\n=== Migration Status ===")
    print(f"  Phase:          {status.phase.value}")
    print(f"  Store currency: {status.store_currency or 'N/A'}")
    print(f"  Progress:       {status.offset:,} / {status.total:,} ({status.percent_complete:.1f}%)")
    if status.last_error:
        error = status.last_error
        product = f"Product #{error.entity_id}: " if error.entity_id is not None else ""
        print(f"  Last error:     {product}{error.message} ({error.timestamp:%Y-%m-%d %H:%M:%S})")
    print()


def print_batch(result: BatchResult) -> None:
    print(
        f"  Processed {result.processed} products, offset {result.offset:,} / {result.total:,}"
        f"{' (more remaining)' if result.has_more else ''}"
    )
    for warning in result.warnings:
        print(f"  WARNING: {warning}")


async def cmd_init(job: MigrationJob, args: argparse.Namespace) -> int:
    if args.currency:
        await job.settings.set_store_currency(args.currency)
        print(f"Store currency set to {args.currency.upper()}")
    print("Database initialized")
    return 0


async def cmd_status(job: MigrationJob, args: argparse.Namespace) -> int:
    print_status(await job.status())
    return 0


async def cmd_start(job: MigrationJob, args: argparse.Namespace) -> int:
    state = await job.start()
    print(f"Migration started: {state.total:,} products to convert")
    return 0


async def cmd_batch(job: MigrationJob, args: argparse.Namespace) -> int:
    result = await job.process_batch(offset=args.offset, batch_size=args.batch_size)
    print_batch(result)
    return 0


async def cmd_resume(job: MigrationJob, args: argparse.Namespace) -> int:
    print_batch(await job.resume())
    return 0


async def cmd_run(job: MigrationJob, args: argparse.Namespace) -> int:
    """
    Process batches until the catalog is exhausted.

    Does not finalize: the operator checks the warnings and then runs
    ``finalize`` explicitly.
    """
    warnings = 0
    while True:
        result = await job.process_batch(batch_size=args.batch_size)
        print_batch(result)
        warnings += len(result.warnings)
        if not result.has_more:
            break

    print(f"\nAll batches processed with {warnings} warning(s). Run 'finalize' to switch to EUR.")
    return 0


async def cmd_finalize(job: MigrationJob, args: argparse.Namespace) -> int:
    status = await job.finalize(strict=True if args.strict else None)
    print(f"Migration finalized; store currency is now {status.store_currency}")
    return 0


async def cmd_reset(job: MigrationJob, args: argparse.Namespace) -> int:
    await job.reset()
    print("Migration progress reset. Prices already converted were not reverted.")
    return 0


COMMANDS = {
    "init": cmd_init,
    "status": cmd_status,
    "start": cmd_start,
    "batch": cmd_batch,
    "resume": cmd_resume,
    "run": cmd_run,
    "finalize": cmd_finalize,
    "reset": cmd_reset,
}


async def main(args: argparse.Namespace, config: EurozoneConfig | None = None) -> int:
    """
    Main CLI entry point - routes to subcommands.

    Returns:
        Exit code (0 for success, 1 for refused operations, 2 for failures)
    """
    config = config or load_config_with_fallback(args.config)
    if args.db:
        config = config.model_copy(
            update={"database": config.database.model_copy(update={"path": args.db})}
        )
    configure_structured_logging(level=args.log_level or config.log_level)

    ensure_database_directory(config.database.path)
    engine = create_engine(config.database.path, echo=config.database.echo)
    try:
        await init_database(engine)
        maker = create_session_maker(engine)
        job = MigrationJob(
            SqlSettingsStore(maker),
            SqlCatalog(
                maker,
                cache_ttl_seconds=config.cache.price_range_ttl_seconds,
                cache_max_entries=config.cache.max_entries,
            ),
            batch_size=config.migration.batch_size,
            strict_finalize=config.migration.strict_finalize,
        )
        return await COMMANDS[args.command](job, args)
    except PreconditionError as e:
        print(f"ERROR: {e}")
        return 1
    except EurozoneError as e:
        print(f"ERROR: {e}")
        print("Migration state is intact; run 'resume' to continue.")
        return 2
    finally:
        await engine.dispose()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="BGN to EUR catalog currency migration",
        prog="python -m bgn_eurozone",
    )
    parser.add_argument("--config", help="Path to eurozone.json")
    parser.add_argument("--db", help="SQLite database path (overrides config)")
    parser.add_argument("--log-level", help="Log level (overrides config)")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    init_parser = subparsers.add_parser("init", help="Create tables")
    init_parser.add_argument(
        "--currency", choices=["BGN", "EUR", "bgn", "eur"], help="Set the store currency"
    )

    subparsers.add_parser("status", help="Show migration progress")
    subparsers.add_parser("start", help="Count products and start a migration")

    batch_parser = subparsers.add_parser("batch", help="Process one batch")
    batch_parser.add_argument(
        "--offset", type=int, default=None, help="Start position (default: saved offset)"
    )

    subparsers.add_parser("resume", help="Process one batch from the saved offset")
    run_parser = subparsers.add_parser("run", help="Process batches until done")

    for sub in (batch_parser, run_parser):
        sub.add_argument("--batch-size", type=int, default=None, help="Products per batch")

    finalize_parser = subparsers.add_parser("finalize", help="Switch the store to EUR")
    finalize_parser.add_argument(
        "--strict", action="store_true", help="Refuse while products remain"
    )

    subparsers.add_parser("reset", help="Forget migration progress")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    return args


def cli() -> None:
    args = parse_args()
    exit_code = asyncio.run(main(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
