# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - Business logic layer
# PURPOSE: Job tree materialization
# CREATED: 18 OCT 2026
# ============================================================================
"""
Services Module

Business logic for job trees.
Services coordinate repositories inside one transaction.

Usage:
    from services import JobTreeService

    root_id = await JobTreeService().materialize(conn, tree)
"""

from .job_tree_service import JobTreeService, MaterializeOptions

__all__ = [
    "JobTreeService",
    "MaterializeOptions",
]
