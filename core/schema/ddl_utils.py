# ============================================================================
# CLAUDE CONTEXT - DDL UTILITIES
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - DRY utilities for SQL DDL generation
# PURPOSE: Index and schema builders using psycopg.sql
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: IndexBuilder, SchemaUtils
# DEPENDENCIES: psycopg
# ============================================================================
"""
DDL Utilities - Shared SQL Generation Patterns.

All methods return psycopg.sql.Composed objects for safe execution.
No string concatenation of identifiers.

Usage:
    from core.schema.ddl_utils import IndexBuilder

    idx = IndexBuilder.btree(
        'graphile_worker_helpers', 'job_dependencies', ['parent_id'],
        name='idx_job_dependencies_parent',
    )
    await cur.execute(idx)
"""

from typing import Optional, Sequence

from psycopg import sql


# ============================================================================
# INDEX BUILDER
# ============================================================================

class IndexBuilder:
    """Builder for the helper tables' B-tree index statements."""

    @staticmethod
    def btree(
        schema: str,
        table: str,
        columns: Sequence[str],
        name: str,
        partial_where: Optional[str] = None,
        unique: bool = False,
    ) -> sql.Composed:
        """
        Create a named B-tree index, optionally partial and unique.

        Args:
            schema: Schema name
            table: Table name
            columns: Columns to index, in order
            name: Index name
            partial_where: WHERE clause of a partial index
            unique: Emit CREATE UNIQUE INDEX

        Returns:
            sql.Composed CREATE [UNIQUE] INDEX statement
        """
        if not columns:
            raise ValueError(f"Index {name} on {table} has no columns")

        template = (
            "CREATE UNIQUE INDEX IF NOT EXISTS {name} ON {schema}.{table} ({columns})"
            if unique else
            "CREATE INDEX IF NOT EXISTS {name} ON {schema}.{table} ({columns})"
        )
        stmt = sql.SQL(template).format(
            name=sql.Identifier(name),
            schema=sql.Identifier(schema),
            table=sql.Identifier(table),
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
        )

        if partial_where:
            stmt = sql.SQL("{} WHERE {}").format(stmt, sql.SQL(partial_where))

        return stmt


# ============================================================================
# SCHEMA UTILITIES
# ============================================================================

class SchemaUtils:
    """Schema-level DDL operations."""

    @staticmethod
    def create_schema(schema: str) -> sql.Composed:
        return sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(schema))

    @staticmethod
    def drop_schema(schema: str) -> sql.Composed:
        """
        DROP SCHEMA ... CASCADE.

        WARNING: destroys every tree and result stored in the schema.
        """
        return sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(sql.Identifier(schema))


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    'IndexBuilder',
    'SchemaUtils',
]
