# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Infrastructure - Database schema operations
# PURPOSE: Helper schema deployment and removal
# CREATED: 18 OCT 2026
# ============================================================================
"""
Infrastructure module for job tree helpers.

Provides:
- DatabaseInitializer: Install helper tables from Pydantic models
- setup_schema / remove_schema: Convenience functions for deployment

Usage:
    from infrastructure import DatabaseInitializer

    initializer = DatabaseInitializer()
    result = await initializer.setup(conn)
"""

from infrastructure.database_initializer import (
    SchemaOptions,
    DatabaseInitializer,
    InitializationResult,
    StepResult,
    setup_schema,
    remove_schema,
)

__all__ = [
    "SchemaOptions",
    "DatabaseInitializer",
    "InitializationResult",
    "StepResult",
    "setup_schema",
    "remove_schema",
]
