# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for schema names, pooling and tree inserts
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides sensible defaults for schema placement, connection pooling and
task tree materialization. These can be overridden via environment
variables or per call.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    """Read a true/false environment flag."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class SchemaDefaults:
    """
    Defaults for schema placement.

    helpers_schema holds job_dependencies and job_results.
    queue_schema is where the queue engine keeps its own jobs table.
    """
    helpers_schema: str = "graphile_worker_helpers"
    queue_schema: str = "graphile_worker"

    @classmethod
    def from_env(cls) -> "SchemaDefaults":
        """Create from environment variables."""
        return cls(
            helpers_schema=os.getenv("JOBTREE_HELPERS_SCHEMA", "graphile_worker_helpers"),
            queue_schema=os.getenv("JOBTREE_QUEUE_SCHEMA", "graphile_worker"),
        )


@dataclass(frozen=True)
class PoolDefaults:
    """Defaults for the optional async connection pool."""
    min_size: int = 2
    max_size: int = 10

    @classmethod
    def from_env(cls) -> "PoolDefaults":
        """Create from environment variables."""
        return cls(
            min_size=int(os.getenv("JOBTREE_POOL_MIN_SIZE", 2)),
            max_size=int(os.getenv("JOBTREE_POOL_MAX_SIZE", 10)),
        )


@dataclass(frozen=True)
class TreeDefaults:
    """
    Defaults for task tree materialization.

    use_local_time: fill missing run_at with this process's clock
    (False leaves it NULL so the store decides).
    """
    use_local_time: bool = True

    @classmethod
    def from_env(cls) -> "TreeDefaults":
        """Create from environment variables."""
        return cls(
            use_local_time=_env_bool("JOBTREE_USE_LOCAL_TIME", True),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    schema: SchemaDefaults = field(default_factory=SchemaDefaults)
    pool: PoolDefaults = field(default_factory=PoolDefaults)
    tree: TreeDefaults = field(default_factory=TreeDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            schema=SchemaDefaults.from_env(),
            pool=PoolDefaults.from_env(),
            tree=TreeDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "SchemaDefaults",
    "PoolDefaults",
    "TreeDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
