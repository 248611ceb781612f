# ============================================================================
# JOB RESULT REPOSITORY
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - JobResult reads and guarded writes
# PURPOSE: Database access for the job_results table
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Result Repository

Progress writes, completion and child result aggregation.

Every write is guarded by NOT is_complete, so once a job's result is
final nothing here can change it.
"""

import logging
from typing import Any, Dict, Optional

from psycopg import AsyncCursor, sql
from psycopg.types.json import Json

from core.contracts import ChildOutcome
from core.job_ids import coerce_job_id
from core.models import JobResult
from .database import HelperTables

logger = logging.getLogger(__name__)

_OUTCOME_FILTERS = {
    ChildOutcome.SUCCEEDED: sql.SQL("NOT children.has_failed"),
    ChildOutcome.FAILED: sql.SQL("children.has_failed"),
}


def _json_or_null(payload: Any) -> Optional[Json]:
    return Json(payload) if payload is not None else None


class JobResultRepository:
    """Repository for JobResult rows."""

    def __init__(self, cursor: AsyncCursor, tables: Optional[HelperTables] = None):
        self.cursor = cursor
        self.tables = tables or HelperTables.for_schema()

    async def get(self, job_id: int) -> Optional[JobResult]:
        """
        Get a result row regardless of completion.

        Args:
            job_id: Job identifier

        Returns:
            JobResult or None
        """
        await self.cursor.execute(
            sql.SQL("SELECT id, results, is_complete FROM {} WHERE id = %s::bigint").format(
                self.tables.results
            ),
            (coerce_job_id(job_id),),
        )
        row = await self.cursor.fetchone()

        if row is None:
            return None

        return JobResult(
            id=row["id"],
            results=row.get("results"),
            is_complete=row.get("is_complete", False),
        )

    async def peek_progress(self, job_id: int) -> Optional[Any]:
        """
        Stored progress of an unfinished job.

        Returns:
            The payload, or None when there is no row or the job is complete
        """
        await self.cursor.execute(
            sql.SQL("""
            SELECT results FROM {}
            WHERE id = %s::bigint AND NOT is_complete
            """).format(self.tables.results),
            (coerce_job_id(job_id),),
        )
        row = await self.cursor.fetchone()
        return row["results"] if row is not None else None

    async def write_progress(self, job_id: int, payload: Any) -> bool:
        """
        Create or overwrite the progress payload of an unfinished job.

        Args:
            job_id: Job identifier
            payload: JSON-serializable value, None stores SQL NULL

        Returns:
            False when the job is already complete and nothing was written
        """
        job_id = coerce_job_id(job_id)
        await self.cursor.execute(
            sql.SQL("""
            INSERT INTO {} AS r (id, results, is_complete)
            VALUES (%s::bigint, %s::jsonb, false)
            ON CONFLICT (id) DO UPDATE SET results = EXCLUDED.results
            WHERE NOT r.is_complete
            """).format(self.tables.results),
            (job_id, _json_or_null(payload)),
        )
        written = self.cursor.rowcount > 0
        if not written:
            logger.debug(f"Progress write ignored for completed job {job_id}")
        return written

    async def complete(self, job_id: int, payload: Any) -> bool:
        """
        Store the final payload and mark the result complete.

        Returns:
            False when the job was already complete
        """
        job_id = coerce_job_id(job_id)
        await self.cursor.execute(
            sql.SQL("""
            INSERT INTO {} AS r (id, results, is_complete)
            VALUES (%s::bigint, %s::jsonb, true)
            ON CONFLICT (id) DO UPDATE SET results = EXCLUDED.results, is_complete = true
            WHERE NOT r.is_complete
            """).format(self.tables.results),
            (job_id, _json_or_null(payload)),
        )
        written = self.cursor.rowcount > 0
        if written:
            logger.info(f"Result completed for job {job_id}")
        else:
            logger.warning(f"Job {job_id} already complete, final result unchanged")
        return written

    async def get_children_results(
        self,
        job_id: int,
        outcome: ChildOutcome = ChildOutcome.SUCCEEDED,
    ) -> Dict[int, Any]:
        """
        Results of a job's direct children, filtered by outcome.

        Children without a result row are left out.

        Args:
            job_id: Parent job identifier
            outcome: SUCCEEDED for NOT has_failed, FAILED for has_failed

        Returns:
            Mapping of child id to its stored payload
        """
        await self.cursor.execute(
            sql.SQL("""
            SELECT results.id, results.results
            FROM {deps} AS parent
                INNER JOIN {deps} AS children ON parent.id = children.parent_id
                INNER JOIN {results} AS results ON children.id = results.id
            WHERE parent.id = %s::bigint AND {filter}
            ORDER BY results.id
            """).format(
                deps=self.tables.dependencies,
                results=self.tables.results,
                filter=_OUTCOME_FILTERS[ChildOutcome(outcome)],
            ),
            (coerce_job_id(job_id),),
        )
        rows = await self.cursor.fetchall()
        return {row["id"]: row["results"] for row in rows}


__all__ = ["JobResultRepository"]
