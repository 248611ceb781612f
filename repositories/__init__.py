# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - Database access layer
# PURPOSE: Dependency and result table access
# CREATED: 18 OCT 2026
# ============================================================================
"""
Repositories Module

Provides database access for job trees and job results.
Uses psycopg3 async; repositories run on a cursor supplied by the caller.

Usage:
    from repositories import id_cursor, JobResultRepository

    async with id_cursor(conn) as cur:
        results = await JobResultRepository(cur).get_children_results(job_id)
"""

from .database import (
    get_pool,
    get_connection,
    DatabasePool,
    id_cursor,
    HelperTables,
)
from .dependency_repo import JobDependencyRepository
from .result_repo import JobResultRepository

__all__ = [
    "get_pool",
    "get_connection",
    "DatabasePool",
    "id_cursor",
    "HelperTables",
    "JobDependencyRepository",
    "JobResultRepository",
]
