# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for job trees.
"""

from core.config.defaults import (
    SchemaDefaults,
    PoolDefaults,
    TreeDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "SchemaDefaults",
    "PoolDefaults",
    "TreeDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
