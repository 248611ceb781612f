# ============================================================================
# WORKER MODULE
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - Helpers used from inside an executing job
# PURPOSE: Progress persistence and child result aggregation
# CREATED: 18 OCT 2026
# ============================================================================
"""
Worker Module

Components a task uses while the queue engine runs it:
- job_results: Own progress and results of direct children
"""

from worker.job_results import JobResults

__all__ = [
    "JobResults",
]
