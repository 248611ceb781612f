# ============================================================================
# CLAUDE CONTEXT - JOB DEPENDENCY MODEL
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core model - Stored tree node
# PURPOSE: One row per job that participates in a tree
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: JobDependency
# DEPENDENCIES: pydantic
# ============================================================================
"""
Job Dependency Model

JobDependency is the stored form of one TaskTreeSpec node.

Lifecycle:
    1. Inserted with is_ready=false, parent_id pointing at a row inserted
       earlier in the same transaction
    2. Flipped to is_ready=true before that transaction commits
    3. has_failed set by store-side logic when the job fails
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from core.contracts import FailurePolicy, JobKeyMode
from core.job_ids import JobId


class JobDependency(BaseModel):
    """
    A node of a stored job tree.

    Maps to: <helpers schema>.job_dependencies
    Primary Key: id
    """

    # =========================================================================
    # SQL DDL METADATA (Used by PydanticToSQL generator)
    # =========================================================================
    __sql_table__: ClassVar[str] = "job_dependencies"
    __sql_schema__: ClassVar[str] = "graphile_worker_helpers"
    __sql_primary_key__: ClassVar[List[str]] = ["id"]
    __sql_serial_columns__: ClassVar[List[str]] = ["id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {
        "parent_id": "job_dependencies(id)"
    }
    __sql_column_types__: ClassVar[Dict[str, str]] = {
        "id": "BIGINT",
        "parent_id": "BIGINT",
        "payload": "JSONB",
        "flags": "TEXT[]",
    }
    __sql_indexes__: ClassVar[List] = [
        ("idx_job_dependencies_parent", ["parent_id"], "parent_id IS NOT NULL"),
        ("idx_job_dependencies_not_ready", ["id"], "NOT is_ready"),
        {
            "name": "idx_job_dependencies_job_key",
            "columns": ["job_key"],
            "partial_where": "job_key IS NOT NULL",
            "unique": True,
        },
    ]

    id: JobId
    parent_id: Optional[JobId] = Field(
        default=None,
        description="Owning node; NULL for roots"
    )

    # Flags
    is_ready: bool = Field(default=False, description="Eligible for execution")
    has_failed: bool = Field(default=False, description="Set when the job fails")
    on_failure: Optional[FailurePolicy] = None

    # Scheduling attributes mirrored from the TaskTreeSpec
    identifier: str
    payload: Optional[Any] = None
    queue_name: Optional[str] = None
    run_at: Optional[datetime] = None
    max_attempts: Optional[int] = None
    job_key: Optional[str] = None
    priority: Optional[int] = None
    flags: Optional[List[str]] = None
    job_key_mode: Optional[JobKeyMode] = None

    @computed_field
    @property
    def is_root(self) -> bool:
        """Check if this node has no parent."""
        return self.parent_id is None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["JobDependency"]
