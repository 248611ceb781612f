# ============================================================================
# CLAUDE CONTEXT - JOB RESULT MODEL
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core model - Per-job output / progress payload
# PURPOSE: Persisted results with a completion flag
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: JobResult
# DEPENDENCIES: pydantic
# ============================================================================
"""
Job Result Model

One row per job, sharing the job's id. While is_complete is false the
row holds resumable progress; once true the payload is final and
progress writes no longer touch it.
"""

from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field

from core.job_ids import JobId


class JobResult(BaseModel):
    """
    Result record for a job.

    Maps to: <helpers schema>.job_results
    Primary Key: id
    """

    __sql_table__: ClassVar[str] = "job_results"
    __sql_schema__: ClassVar[str] = "graphile_worker_helpers"
    __sql_primary_key__: ClassVar[List[str]] = ["id"]
    __sql_column_types__: ClassVar[Dict[str, str]] = {
        "id": "BIGINT",
        "results": "JSONB",
    }

    id: JobId
    results: Optional[Any] = Field(default=None, description="Serialized output or progress")
    is_complete: bool = Field(default=False, description="True once the job has finished")


__all__ = ["JobResult"]
