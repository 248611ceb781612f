#!/usr/bin/env python
# ============================================================================
# SCHEMA DEPLOYMENT SCRIPT
# ============================================================================
# EPOCH: 1 - JOB TREES
# PURPOSE: Install or remove the job tree helper tables using PydanticToSQL
# USAGE:
#   python scripts/deploy_schema.py --dry-run    # Preview SQL
#   python scripts/deploy_schema.py              # Execute deployment
#   python scripts/deploy_schema.py --status     # Check current status
#   python scripts/deploy_schema.py --remove     # Drop the helpers schema
# ============================================================================

import argparse
import asyncio
import os
import sys
from typing import List, Optional

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import psycopg

from core.config import get_defaults
from core.logging import configure_logging
from infrastructure import DatabaseInitializer, SchemaOptions
from repositories.database import get_connection_string, mask_connection_string


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Install job tree helper tables in PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/deploy_schema.py --dry-run     # Preview DDL without executing
  python scripts/deploy_schema.py               # Deploy schema
  python scripts/deploy_schema.py --status      # Check current installation
  python scripts/deploy_schema.py --remove      # Drop helpers schema (CASCADE)

Environment Variables:
  DATABASE_URL            Full PostgreSQL connection string
  POSTGRES_HOST           Database host (default: localhost)
  POSTGRES_DB             Database name (default: postgres)
  POSTGRES_USER           Database user (default: postgres)
  POSTGRES_PASSWORD       Database password
  POSTGRES_PORT           Database port (default: 5432)
  POSTGRES_SSLMODE        SSL mode (default: prefer)
  JOBTREE_HELPERS_SCHEMA  Helpers schema (default: graphile_worker_helpers)
  JOBTREE_QUEUE_SCHEMA    Queue engine schema (default: graphile_worker)
  LOG_FORMAT              Set to "json" for structured logs
        """
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run",
        action="store_true",
        help="Print DDL without executing"
    )
    mode.add_argument(
        "--status",
        action="store_true",
        help="Check current installation status"
    )
    mode.add_argument(
        "--remove",
        action="store_true",
        help="Drop the helpers schema and all of its data"
    )
    parser.add_argument(
        "--schema",
        type=str,
        help="Helpers schema name (overrides environment)"
    )
    parser.add_argument(
        "--queue-schema",
        type=str,
        help="Queue engine schema name (overrides environment)"
    )
    parser.add_argument(
        "--connection",
        type=str,
        help="PostgreSQL connection string (overrides environment)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    return parser


def schema_options(args: argparse.Namespace) -> SchemaOptions:
    defaults = get_defaults().schema
    return SchemaOptions(
        helpers_schema=args.schema or defaults.helpers_schema,
        queue_schema=args.queue_schema or defaults.queue_schema,
    )


def print_status(status: dict) -> bool:
    print(f"Schema exists: {status.get('schema_exists', False)}")
    print(f"Queue schema ({status['queue_schema']}) exists: {status.get('queue_schema_exists', False)}")

    if status.get("tables"):
        print(f"\nTables ({len(status['tables'])}):")
        for table, info in status["tables"].items():
            marker = "present" if info["exists"] else "MISSING"
            print(f"  - {status['schema']}.{table} ({marker})")

    if status.get("error"):
        print(f"\nError: {status['error']}")
        return False
    return True


def print_result(result, verbose: bool) -> None:
    print("\n[RESULTS]\n")
    for step in result.steps:
        status_emoji = {
            "success": "✅",
            "failed": "❌",
            "skipped": "⏭️"
        }.get(step.status, "❓")

        print(f"{status_emoji} {step.name}: {step.message}")
        if step.error:
            print(f"   Error: {step.error}")
        if step.details and verbose:
            for key, value in step.details.items():
                if key == "statements":
                    continue
                print(f"   {key}: {value}")

    statements = next(
        (s.details.get("statements") for s in result.steps if s.details.get("statements")),
        None,
    )
    if statements:
        print("\n[DDL]\n")
        for stmt in statements:
            print(f"{stmt};")


async def run(args: argparse.Namespace) -> int:
    options = schema_options(args)
    conninfo = args.connection or get_connection_string()

    print("=" * 70)
    print("JOB TREE HELPERS - Schema Deployment")
    print("=" * 70)
    print(f"Target: {mask_connection_string(conninfo)}")
    print(f"Schema: {options.helpers_schema}")
    print("=" * 70)

    initializer = DatabaseInitializer(options)

    async with await psycopg.AsyncConnection.connect(conninfo, autocommit=True) as conn:
        if args.status:
            print("\n[STATUS CHECK]\n")
            ok = print_status(await initializer.verify_installation(conn))
            print("\n" + "=" * 70)
            return 0 if ok else 1

        if args.remove:
            result = await initializer.remove(conn)
        else:
            print(f"\nMode: {'DRY RUN' if args.dry_run else 'EXECUTE'}\n")
            result = await initializer.setup(conn, dry_run=args.dry_run)

    print_result(result, args.verbose)

    print("\n" + "=" * 70)
    if not result.success:
        print("❌ Deployment failed!")
        for error in result.errors:
            print(f"   - {error}")
        return 1
    print("✅ Completed successfully!")
    print("=" * 70)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level="DEBUG" if args.verbose else "INFO")
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
