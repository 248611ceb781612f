# ============================================================================
# CLAUDE CONTEXT - BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Foundation - Core enums, base contracts and errors
# PURPOSE: Define policy enums and shared error types for job trees
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: FailurePolicy, JobKeyMode, ChildOutcome, JobTreeError,
#          JobTreeMaterializationError
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for job trees.

These define the values that cross the boundary between Python and the
queue engine's tables:
- SQL (PostgreSQL text columns)
- Python (task tree specs, aggregated results)
"""

from enum import Enum
from typing import Optional


# ============================================================================
# POLICY ENUMS
# ============================================================================

class FailurePolicy(str, Enum):
    """
    How a parent reacts when this child's job fails.

    Enacted by store-side logic, not by this package. Stored verbatim
    in job_dependencies.on_failure.
    """
    FAIL_PARENT = "fail-parent"  # Parent fails as well
    REMOVE = "remove"            # Drop the child, parent carries on
    IGNORE = "ignore"            # Parent sees the failure in its results


class JobKeyMode(str, Enum):
    """Dedupe behaviour when a job_key already exists in the queue."""
    REPLACE = "replace"
    PRESERVE_RUN_AT = "preserve_run_at"
    UNSAFE_DEDUPE = "unsafe_dedupe"


class ChildOutcome(str, Enum):
    """Which children to aggregate results from."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# ============================================================================
# ERRORS
# ============================================================================

class JobTreeError(Exception):
    """Base class for job tree errors."""
    pass


class JobTreeMaterializationError(JobTreeError):
    """
    Raised after a tree insert was rolled back.

    Nothing from the failed call is visible in the store.
    """

    def __init__(
        self,
        message: str,
        identifier: Optional[str] = None,
        node_count: int = 0,
    ):
        super().__init__(message)
        self.identifier = identifier
        self.node_count = node_count


__all__ = [
    "FailurePolicy",
    "JobKeyMode",
    "ChildOutcome",
    "JobTreeError",
    "JobTreeMaterializationError",
]
