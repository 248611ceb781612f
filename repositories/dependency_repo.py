# ============================================================================
# JOB DEPENDENCY REPOSITORY
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - JobDependency batch inserts and reads
# PURPOSE: Database access for the job_dependencies table
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Dependency Repository

Batch inserts of sibling nodes, readiness updates, and tree reads.

Works on a cursor rather than the pool: JobTreeService runs every
statement of one tree on the same cursor inside one transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from psycopg import AsyncCursor, sql
from psycopg.types.json import Json

from core.contracts import JobTreeError
from core.job_ids import coerce_job_id, coerce_job_ids
from core.models import JobDependency, TaskSpec
from .database import HelperTables

logger = logging.getLogger(__name__)


# Column layout of one inserted row: (column, PostgreSQL cast).
# Placeholders for a batch are generated from this, never written by hand.
INSERT_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("parent_id", "bigint"),
    ("on_failure", "text"),
    ("identifier", "text"),
    ("payload", "jsonb"),
    ("queue_name", "text"),
    ("run_at", "timestamptz"),
    ("max_attempts", "integer"),
    ("job_key", "text"),
    ("priority", "integer"),
    ("flags", "text[]"),
    ("job_key_mode", "text"),
)
INSERT_COLUMN_NAMES = [name for name, _ in INSERT_COLUMNS]
INSERT_COLUMN_TYPES = [pg_type for _, pg_type in INSERT_COLUMNS]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def values_placeholders(row_count: int) -> str:
    """
    Build the VALUES list for row_count rows.

    Each row is "(%s::bigint, %s::text, ...)" following INSERT_COLUMNS.
    """
    if row_count < 1:
        raise ValueError("A batch needs at least one row")
    row = "(" + ", ".join(f"%s::{pg_type}" for pg_type in INSERT_COLUMN_TYPES) + ")"
    return ", ".join([row] * row_count)


def row_values(
    spec: TaskSpec,
    parent_id: Optional[int] = None,
    use_local_time: bool = True,
    clock: Callable[[], datetime] = utc_now,
) -> List[Any]:
    """
    Parameters for one row, in INSERT_COLUMNS order.

    run_at falls back to clock() when use_local_time is set, otherwise
    stays NULL and the queue engine picks its own default.
    """
    run_at = spec.run_at
    if run_at is None and use_local_time:
        run_at = clock()

    return [
        parent_id,
        spec.on_failure.value if spec.on_failure else None,
        spec.identifier,
        Json(spec.payload) if spec.payload is not None else None,
        spec.queue_name,
        run_at,
        spec.max_attempts,
        spec.job_key,
        spec.priority,
        list(spec.flags) if spec.flags is not None else None,
        spec.job_key_mode.value if spec.job_key_mode else None,
    ]


class JobDependencyRepository:
    """Repository for JobDependency rows."""

    def __init__(self, cursor: AsyncCursor, tables: Optional[HelperTables] = None):
        self.cursor = cursor
        self.tables = tables or HelperTables.for_schema()

    async def insert_batch(
        self,
        specs: Sequence[TaskSpec],
        parent_id: Optional[int] = None,
        use_local_time: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> List[int]:
        """
        Insert sibling nodes in one statement.

        Args:
            specs: Nodes sharing parent_id
            parent_id: Id of an already-inserted parent, None for a root
            use_local_time: Fill missing run_at from clock()
            clock: Time source for run_at

        Returns:
            Generated ids, in the same order as specs
        """
        if not specs:
            return []

        query = sql.SQL("INSERT INTO {} ({}) VALUES {} RETURNING id").format(
            self.tables.dependencies,
            sql.SQL(", ").join(sql.Identifier(name) for name in INSERT_COLUMN_NAMES),
            sql.SQL(values_placeholders(len(specs))),
        )
        params = [
            value
            for spec in specs
            for value in row_values(spec, parent_id, use_local_time, clock)
        ]

        await self.cursor.execute(query, params)
        rows = await self.cursor.fetchall()

        if len(rows) != len(specs):
            raise JobTreeError(
                f"Inserted {len(specs)} nodes under parent {parent_id} "
                f"but got {len(rows)} ids back"
            )

        ids = [coerce_job_id(row["id"]) for row in rows]
        logger.debug(f"Inserted {len(ids)} nodes under parent {parent_id}")
        return ids

    async def mark_ready(self, node_ids: Sequence[int]) -> int:
        """
        Set is_ready on the given nodes.

        Rows already ready are left alone, so repeating the call is a no-op.

        Returns:
            Number of rows that changed
        """
        if not node_ids:
            return 0

        await self.cursor.execute(
            sql.SQL("""
            UPDATE {} SET is_ready = true
            WHERE NOT is_ready AND id = ANY(%s::bigint[])
            """).format(self.tables.dependencies),
            (coerce_job_ids(node_ids),),
        )
        return self.cursor.rowcount

    async def get(self, node_id: int) -> Optional[JobDependency]:
        """
        Get a node by id.

        Args:
            node_id: Dependency row id

        Returns:
            JobDependency instance or None
        """
        await self.cursor.execute(
            sql.SQL("SELECT * FROM {} WHERE id = %s::bigint").format(self.tables.dependencies),
            (coerce_job_id(node_id),),
        )
        row = await self.cursor.fetchone()

        if row is None:
            return None

        return self._row_to_dependency(row)

    async def get_children(self, parent_id: int) -> List[JobDependency]:
        """Direct children of a node, in insertion order."""
        await self.cursor.execute(
            sql.SQL("""
            SELECT * FROM {}
            WHERE parent_id = %s::bigint
            ORDER BY id
            """).format(self.tables.dependencies),
            (coerce_job_id(parent_id),),
        )
        rows = await self.cursor.fetchall()
        return [self._row_to_dependency(row) for row in rows]

    async def get_tree(self, root_id: int) -> List[JobDependency]:
        """
        A node and all of its descendants.

        Returns:
            Rows ordered by id, so parents precede their children
        """
        await self.cursor.execute(
            sql.SQL("""
            WITH RECURSIVE tree AS (
                SELECT * FROM {deps} WHERE id = %s::bigint
                UNION ALL
                SELECT child.* FROM {deps} AS child
                INNER JOIN tree ON child.parent_id = tree.id
            )
            SELECT * FROM tree ORDER BY id
            """).format(deps=self.tables.dependencies),
            (coerce_job_id(root_id),),
        )
        rows = await self.cursor.fetchall()
        return [self._row_to_dependency(row) for row in rows]

    def _row_to_dependency(self, row: Dict[str, Any]) -> JobDependency:
        """Convert database row to JobDependency model."""
        return JobDependency(
            id=row["id"],
            parent_id=row.get("parent_id"),
            is_ready=row.get("is_ready", False),
            has_failed=row.get("has_failed", False),
            on_failure=row.get("on_failure"),
            identifier=row["identifier"],
            payload=row.get("payload"),
            queue_name=row.get("queue_name"),
            run_at=row.get("run_at"),
            max_attempts=row.get("max_attempts"),
            job_key=row.get("job_key"),
            priority=row.get("priority"),
            flags=row.get("flags"),
            job_key_mode=row.get("job_key_mode"),
        )


__all__ = [
    "INSERT_COLUMNS",
    "values_placeholders",
    "row_values",
    "JobDependencyRepository",
]
