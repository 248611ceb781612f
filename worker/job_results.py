# ============================================================================
# JOB RESULTS
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - Result access for an executing job
# PURPOSE: Own progress and aggregated child results, bound to one job id
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Results

What a running task sees of the results table:
- Its own in-flight progress (resume after a retry)
- The results of its direct children, split by outcome

Usage:
    results = JobResults(conn, job_id)

    state = await results.recover_progress() or {"step": 0}
    ...
    await results.update_progress({"step": state["step"] + 1})

    values = await results.get_children_values()
    failures = await results.get_failed_children_values()
"""

from typing import Any, Dict, Optional

from psycopg import AsyncConnection

from core.contracts import ChildOutcome
from core.job_ids import JOB_ID_DECODING, JobIdDecoding, coerce_job_id
from core.logging import ComponentType, get_logger, log_context
from repositories.database import HelperTables, id_cursor
from repositories.result_repo import JobResultRepository

logger = get_logger(__name__, ComponentType.WORKER)


class JobResults:
    """
    Result helpers bound to one executing job.

    Each call is a single statement on the supplied connection; it joins
    whatever transaction the connection is in.
    """

    def __init__(
        self,
        conn: AsyncConnection,
        job_id: Any,
        schema: Optional[str] = None,
        decoding: JobIdDecoding = JOB_ID_DECODING,
    ):
        """
        Args:
            conn: Connection supplied by the queue engine
            job_id: Executing job's id (int or decimal string)
            schema: Helpers schema (default from config)
            decoding: int8 loader configuration for result cursors
        """
        self.conn = conn
        self.job_id = coerce_job_id(job_id)
        self.tables = HelperTables.for_schema(schema)
        self.decoding = decoding

    async def recover_progress(self) -> Optional[Any]:
        """Progress saved by an earlier attempt, or None once the job is complete."""
        async with id_cursor(self.conn, self.decoding) as cur:
            return await JobResultRepository(cur, self.tables).peek_progress(self.job_id)

    async def update_progress(self, payload: Any) -> bool:
        """
        Save progress for this job.

        Returns:
            False when the job is already complete; the stored result is kept
        """
        with log_context(job_id=self.job_id, operation="update_progress"):
            async with id_cursor(self.conn, self.decoding) as cur:
                written = await JobResultRepository(cur, self.tables).write_progress(
                    self.job_id, payload
                )
            if not written:
                logger.debug("Progress not saved, job already complete")
            return written

    async def get_children_values(self) -> Dict[int, Any]:
        """Results of direct children that have not failed, keyed by child id."""
        return await self._children(ChildOutcome.SUCCEEDED)

    async def get_failed_children_values(self) -> Dict[int, Any]:
        """Results of direct children that failed, keyed by child id."""
        return await self._children(ChildOutcome.FAILED)

    async def _children(self, outcome: ChildOutcome) -> Dict[int, Any]:
        async with id_cursor(self.conn, self.decoding) as cur:
            values = await JobResultRepository(cur, self.tables).get_children_results(
                self.job_id, outcome
            )
        with log_context(job_id=self.job_id):
            logger.debug(f"Read {len(values)} {outcome.value} child results")
        return values


__all__ = ["JobResults"]
