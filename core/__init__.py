# ============================================================================
# CLAUDE CONTEXT - CORE MODULE
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core module initialization
# PURPOSE: Export core contracts, models, and schema utilities
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================

from core.contracts import (
    FailurePolicy,
    JobKeyMode,
    ChildOutcome,
    JobTreeError,
    JobTreeMaterializationError,
)
from core.job_ids import JobId, coerce_job_id, JOB_ID_DECODING
from core.models import TaskSpec, TaskTreeSpec, JobDependency, JobResult
from core.schema import PydanticToSQL

__all__ = [
    # Enums
    "FailurePolicy",
    "JobKeyMode",
    "ChildOutcome",
    # Errors
    "JobTreeError",
    "JobTreeMaterializationError",
    # Identifiers
    "JobId",
    "coerce_job_id",
    "JOB_ID_DECODING",
    # Models
    "TaskSpec",
    "TaskTreeSpec",
    "JobDependency",
    "JobResult",
    # Schema
    "PydanticToSQL",
]
