# ============================================================================
# DATABASE CONNECTIONS & TABLE NAMES
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - Async PostgreSQL connection management
# PURPOSE: Optional pooling, helper table identifiers, scoped id cursors
# CREATED: 18 OCT 2026
# ============================================================================
"""
Database Connections & Table Names

Tree and result operations never open connections themselves; the queue
engine hands one in. The pool helpers here exist for hosts (scripts,
tests against a live database) that need to get one.

Usage:
    from repositories.database import get_pool, HelperTables

    pool = await get_pool()
    async with pool.connection() as conn:
        tables = HelperTables.for_schema("graphile_worker_helpers")
"""

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from core.config import get_defaults
from core.job_ids import JOB_ID_DECODING, JobIdDecoding
from core.models import JobDependency, JobResult

logger = logging.getLogger(__name__)

# Global pool instance
_pool: Optional[AsyncConnectionPool] = None


def get_connection_string() -> str:
    """
    Get database connection string from environment.

    Priority:
    1. DATABASE_URL environment variable
    2. Individual POSTGRES_* components

    Returns:
        PostgreSQL connection string
    """
    if url := os.environ.get("DATABASE_URL"):
        return url

    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    name = os.environ.get("POSTGRES_DB", "postgres")
    user = os.environ.get("POSTGRES_USER", "postgres")
    password = os.environ.get("POSTGRES_PASSWORD", "")
    sslmode = os.environ.get("POSTGRES_SSLMODE", "prefer")

    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


def mask_connection_string(conninfo: str) -> str:
    """Strip credentials from a connection string for logging."""
    if "@" in conninfo:
        return conninfo.split("@")[-1]
    if "password=" in conninfo:
        head, _, tail = conninfo.partition("password=")
        rest = tail.split(" ", 1)
        return head + "password=***" + (" " + rest[1] if len(rest) > 1 else "")
    return conninfo


async def init_pool(
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
    connection_string: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Initialize the global connection pool.

    Args:
        min_size: Minimum connections to maintain (default from config)
        max_size: Maximum connections allowed (default from config)
        connection_string: Override connection string (defaults to env)

    Returns:
        AsyncConnectionPool instance
    """
    global _pool

    if _pool is not None:
        logger.warning("Pool already initialized, returning existing pool")
        return _pool

    defaults = get_defaults().pool
    min_size = defaults.min_size if min_size is None else min_size
    max_size = defaults.max_size if max_size is None else max_size
    conninfo = connection_string or get_connection_string()

    logger.info(f"Initializing connection pool: {mask_connection_string(conninfo)}")

    _pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=min_size,
        max_size=max_size,
        open=False,
    )

    await _pool.open()
    logger.info(f"Connection pool opened (min={min_size}, max={max_size})")

    return _pool


async def get_pool() -> AsyncConnectionPool:
    """Get the global connection pool, initializing if needed."""
    if _pool is None:
        await init_pool()
    return _pool


async def close_pool() -> None:
    """Close the global connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Connection pool closed")


@asynccontextmanager
async def get_connection():
    """
    Get a connection from the pool.

    Usage:
        async with get_connection() as conn:
            await JobTreeService().materialize(conn, tree)
    """
    pool = await get_pool()
    async with pool.connection() as conn:
        yield conn


class DatabasePool:
    """
    Context manager for pool lifecycle.

    Usage:
        async with DatabasePool() as pool:
            async with pool.connection() as conn:
                ...
    """

    def __init__(
        self,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        connection_string: Optional[str] = None,
    ):
        self.min_size = min_size
        self.max_size = max_size
        self.connection_string = connection_string

    async def __aenter__(self) -> AsyncConnectionPool:
        return await init_pool(
            min_size=self.min_size,
            max_size=self.max_size,
            connection_string=self.connection_string,
        )

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await close_pool()


# ============================================================================
# SCOPED CURSORS
# ============================================================================

@asynccontextmanager
async def id_cursor(
    conn: AsyncConnection,
    decoding: JobIdDecoding = JOB_ID_DECODING,
):
    """
    Open a dict_row cursor whose int8 columns decode to Python int.

    The loader registration lives on the cursor's own adapters map and
    disappears with it; the connection and pool are left untouched.
    """
    async with conn.cursor(row_factory=dict_row) as cur:
        decoding.apply(cur.adapters)
        yield cur


# ============================================================================
# TABLE IDENTIFIERS
# ============================================================================

@dataclass(frozen=True)
class HelperTables:
    """
    Qualified identifiers for the helper tables in one schema.

    Use with psycopg sql.SQL().format() for injection-safe queries.
    """
    schema: str
    dependencies: sql.Identifier
    results: sql.Identifier

    @classmethod
    def for_schema(cls, schema: Optional[str] = None) -> "HelperTables":
        schema = schema or get_defaults().schema.helpers_schema
        return cls(
            schema=schema,
            dependencies=sql.Identifier(schema, JobDependency.__sql_table__),
            results=sql.Identifier(schema, JobResult.__sql_table__),
        )


__all__ = [
    "get_connection_string",
    "mask_connection_string",
    "init_pool",
    "get_pool",
    "close_pool",
    "get_connection",
    "DatabasePool",
    "id_cursor",
    "HelperTables",
]
