# ============================================================================
# CLAUDE CONTEXT - MODELS MODULE
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

Stored models define SQL metadata via __sql_* ClassVar attributes for DDL
generation:
    - Pydantic models define structure
    - PydanticToSQL reads __sql_* metadata
    - PostgreSQL schema generated from models
"""

from core.models.task_tree import TaskSpec, TaskTreeSpec
from core.models.dependency import JobDependency
from core.models.result import JobResult

__all__ = [
    # Input
    "TaskSpec",
    "TaskTreeSpec",
    # Stored
    "JobDependency",
    "JobResult",
]
