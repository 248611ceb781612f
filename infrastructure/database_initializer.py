# ============================================================================
# DATABASE INITIALIZER - INFRASTRUCTURE AS CODE
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Infrastructure - Helper schema setup and removal
# PURPOSE: Create or drop the job tree helper tables from Pydantic models
# CREATED: 18 OCT 2026
# ============================================================================
"""
DatabaseInitializer - Infrastructure as Code for job tree helpers.

Provides a standardized workflow for installing the helpers schema:
1. Connection test
2. Schema, table and index creation from Pydantic models
3. Verification of the installed tables

Pydantic models are the SINGLE SOURCE OF TRUTH for schema.
DDL is generated via PydanticToSQL.generate_all().

All operations run on a connection supplied by the caller and are
idempotent (safe to run multiple times).

Usage:
    from infrastructure import DatabaseInitializer, SchemaOptions

    initializer = DatabaseInitializer(SchemaOptions(helpers_schema="my_helpers"))
    result = await initializer.setup(conn)

    # Dry run (generate SQL without executing)
    result = await initializer.setup(conn, dry_run=True)

    # Verify installation
    status = await initializer.verify_installation(conn)

    # Tear down
    result = await initializer.remove(conn)
"""

import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from psycopg import AsyncConnection
from psycopg.rows import dict_row

from core.config import get_defaults
from core.schema.sql_generator import PydanticToSQL

logger = logging.getLogger(__name__)


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass(frozen=True)
class SchemaOptions:
    """
    Schema placement for setup and removal.

    helpers_schema receives job_dependencies and job_results.
    queue_schema is only checked for, never created or dropped here.
    """
    helpers_schema: str = "graphile_worker_helpers"
    queue_schema: str = "graphile_worker"

    @classmethod
    def from_defaults(cls) -> "SchemaOptions":
        defaults = get_defaults().schema
        return cls(
            helpers_schema=defaults.helpers_schema,
            queue_schema=defaults.queue_schema,
        )


@dataclass
class StepResult:
    """Result of a single initialization step."""
    name: str
    status: str  # 'success', 'failed', 'skipped'
    message: str = ""
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class InitializationResult:
    """Complete result of a setup or removal run."""
    schema: str
    timestamp: str
    success: bool
    steps: List[StepResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "schema": self.schema,
            "timestamp": self.timestamp,
            "success": self.success,
            "steps": [
                {
                    "name": s.name,
                    "status": s.status,
                    "message": s.message,
                    "error": s.error,
                    "details": s.details
                }
                for s in self.steps
            ],
            "errors": self.errors,
            "warnings": self.warnings,
            "summary": {
                "total_steps": len(self.steps),
                "successful": len([s for s in self.steps if s.status == "success"]),
                "failed": len([s for s in self.steps if s.status == "failed"]),
                "skipped": len([s for s in self.steps if s.status == "skipped"])
            }
        }


# ============================================================================
# DATABASE INITIALIZER
# ============================================================================

class DatabaseInitializer:
    """
    Installs and removes the job tree helper tables.

    The queue engine's own schema is left alone; verification only
    reports whether it is present.
    """

    def __init__(self, options: Optional[SchemaOptions] = None):
        """
        Initialize the database initializer.

        Args:
            options: Schema placement (default from config)
        """
        self.options = options or SchemaOptions.from_defaults()
        self.generator = PydanticToSQL(schema_name=self.options.helpers_schema)

    @property
    def expected_tables(self) -> List[str]:
        return self.generator.table_names()

    # ========================================================================
    # SETUP
    # ========================================================================

    async def setup(self, conn: AsyncConnection, dry_run: bool = False) -> InitializationResult:
        """
        Create the helpers schema, tables and indexes.

        Args:
            conn: Open connection
            dry_run: If True, generate DDL without executing it

        Returns:
            InitializationResult with detailed step results
        """
        result = self._new_result()

        logger.info("=" * 70)
        logger.info("JOB TREE HELPERS - SCHEMA SETUP")
        logger.info(f"   Schema: {self.options.helpers_schema}")
        logger.info(f"   Mode: {'DRY RUN' if dry_run else 'EXECUTE'}")
        logger.info("=" * 70)

        try:
            # Step 1: Test connection
            step_result = await self._test_connection(conn)
            result.steps.append(step_result)
            if step_result.status == "failed":
                result.errors.append(f"Connection failed: {step_result.error}")
                return result

            # Step 2: Deploy schema
            step_result = await self._deploy_schema(conn, dry_run=dry_run)
            result.steps.append(step_result)
            if step_result.status == "failed":
                result.errors.append(f"Schema deployment failed: {step_result.error}")

            # Step 3: Verify installation
            if not dry_run:
                step_result = await self._verify_tables(conn)
                result.steps.append(step_result)
                if step_result.status == "failed":
                    result.warnings.append(f"Verification issue: {step_result.error}")

            critical_failures = [
                s for s in result.steps
                if s.status == "failed" and s.name != "verify_tables"
            ]
            result.success = len(critical_failures) == 0

        except Exception as e:
            logger.error(f"Setup failed: {e}")
            logger.error(traceback.format_exc())
            result.errors.append(str(e))
            result.success = False

        self._log_summary("SETUP", result)
        return result

    async def _test_connection(self, conn: AsyncConnection) -> StepResult:
        """Check the connection answers."""
        step = StepResult(name="test_connection", status="pending")

        logger.info("Step: Testing database connection...")

        try:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute("SELECT version() AS version, current_database() AS db")
                row = await cur.fetchone()

            step.status = "success"
            step.message = f"Connected to {row['db']}"
            step.details = {
                "version": row["version"][:50] + "...",
                "database": row["db"],
            }

        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Connection failed: {e}"
            logger.error(f"Connection test failed: {e}")

        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    async def _deploy_schema(self, conn: AsyncConnection, dry_run: bool = False) -> StepResult:
        """Run the generated DDL in one transaction."""
        step = StepResult(name="deploy_schema", status="pending")

        logger.info(f"Step: Deploying {self.options.helpers_schema} schema...")

        try:
            statements = self.generator.generate_all()
            logger.info(f"   Generated {len(statements)} DDL statements from Pydantic models")

            if dry_run:
                rendered = [stmt.as_string() for stmt in statements]
                for i, stmt_str in enumerate(rendered[:10], 1):
                    logger.info(f"   [{i}] {stmt_str[:80]}...")

                if len(rendered) > 10:
                    logger.info(f"   ... and {len(rendered) - 10} more statements")

                step.status = "success"
                step.message = f"[DRY RUN] Would execute {len(statements)} statements"
                step.details = {"statements_count": len(statements), "statements": rendered}
                return step

            async with conn.transaction():
                async with conn.cursor() as cur:
                    for stmt in statements:
                        await cur.execute(stmt)

            step.status = "success"
            step.message = f"Deployed {len(statements)} statements"
            step.details = {
                "statements_executed": len(statements),
                "schema": self.options.helpers_schema,
            }

        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Schema deployment failed: {e}"
            logger.error(f"Schema deployment failed: {e}")
            logger.error(traceback.format_exc())

        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    async def _verify_tables(self, conn: AsyncConnection) -> StepResult:
        """Verify expected tables exist."""
        step = StepResult(name="verify_tables", status="pending")

        logger.info("Step: Verifying tables...")

        try:
            existing = await self._tables_in_schema(conn, self.options.helpers_schema)

            missing = [t for t in self.expected_tables if t not in existing]
            extra = [t for t in existing if t not in self.expected_tables]

            if missing:
                step.status = "failed"
                step.error = f"Missing tables: {missing}"
                step.message = f"Verification failed: {len(missing)} tables missing"
            else:
                step.status = "success"
                step.message = f"All {len(self.expected_tables)} expected tables exist"

            step.details = {
                "expected": self.expected_tables,
                "existing": existing,
                "missing": missing,
                "extra": extra,
            }

        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Verification failed: {e}"

        logger.info(f"   Result: {step.status} - {step.message}")
        for table in step.details.get("existing", []):
            logger.info(f"      - {self.options.helpers_schema}.{table}")

        return step

    # ========================================================================
    # REMOVAL
    # ========================================================================

    async def remove(self, conn: AsyncConnection) -> InitializationResult:
        """
        Drop the helpers schema and everything in it.

        WARNING: This destroys ALL dependency and result rows!
        """
        result = self._new_result()

        logger.info("=" * 70)
        logger.info("JOB TREE HELPERS - SCHEMA REMOVAL")
        logger.info(f"   Schema: {self.options.helpers_schema}")
        logger.info("=" * 70)

        step = StepResult(name="drop_schema", status="pending")
        try:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute(self.generator.generate_drop_schema())

            step.status = "success"
            step.message = f"Dropped schema {self.options.helpers_schema}"

        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Schema removal failed: {e}"
            logger.error(f"Schema removal failed: {e}")
            result.errors.append(step.message)

        result.steps.append(step)
        result.success = step.status == "success"

        self._log_summary("REMOVAL", result)
        return result

    # ========================================================================
    # CONVENIENCE METHODS
    # ========================================================================

    async def verify_installation(self, conn: AsyncConnection) -> Dict[str, Any]:
        """
        Quick verification of installation state.

        Returns:
            Dict with schema existence, table presence and queue schema presence
        """
        result: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "schema": self.options.helpers_schema,
            "queue_schema": self.options.queue_schema,
            "tables": {},
        }

        try:
            result["schema_exists"] = await self._schema_exists(conn, self.options.helpers_schema)
            result["queue_schema_exists"] = await self._schema_exists(conn, self.options.queue_schema)

            existing = []
            if result["schema_exists"]:
                existing = await self._tables_in_schema(conn, self.options.helpers_schema)
            for table in self.expected_tables:
                result["tables"][table] = {"exists": table in existing}

            result["installed"] = result["schema_exists"] and all(
                t["exists"] for t in result["tables"].values()
            )

        except Exception as e:
            result["error"] = str(e)
            result["installed"] = False

        return result

    # ========================================================================
    # CATALOG QUERIES
    # ========================================================================

    @staticmethod
    async def _schema_exists(conn: AsyncConnection, schema: str) -> bool:
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                "SELECT EXISTS (SELECT 1 FROM information_schema.schemata "
                "WHERE schema_name = %s) AS exists",
                (schema,),
            )
            row = await cur.fetchone()
        return bool(row["exists"])

    @staticmethod
    async def _tables_in_schema(conn: AsyncConnection, schema: str) -> List[str]:
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                "SELECT table_name FROM information_schema.tables "
                "WHERE table_schema = %s ORDER BY table_name",
                (schema,),
            )
            rows = await cur.fetchall()
        return [row["table_name"] for row in rows]

    def _new_result(self) -> InitializationResult:
        return InitializationResult(
            schema=self.options.helpers_schema,
            timestamp=datetime.now(timezone.utc).isoformat(),
            success=False,
        )

    @staticmethod
    def _log_summary(title: str, result: InitializationResult) -> None:
        summary = result.to_dict()["summary"]
        logger.info("=" * 70)
        logger.info(f"{title} {'COMPLETE' if result.success else 'FAILED'}")
        logger.info(f"   Steps: {summary['successful']} succeeded, {summary['failed']} failed")
        if result.errors:
            logger.warning(f"   Errors: {result.errors}")
        logger.info("=" * 70)


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

async def setup_schema(
    conn: AsyncConnection,
    options: Optional[SchemaOptions] = None,
    dry_run: bool = False,
) -> InitializationResult:
    """
    Install the helper tables.

    Convenience function for deployment scripts.
    """
    return await DatabaseInitializer(options).setup(conn, dry_run=dry_run)


async def remove_schema(
    conn: AsyncConnection,
    options: Optional[SchemaOptions] = None,
) -> InitializationResult:
    """Drop the helpers schema."""
    return await DatabaseInitializer(options).remove(conn)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    'SchemaOptions',
    'DatabaseInitializer',
    'InitializationResult',
    'StepResult',
    'setup_schema',
    'remove_schema',
]
