# ============================================================================
# JOB TREE SERVICE
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - Tree materialization
# PURPOSE: Insert a whole task tree atomically and mark its nodes ready
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Tree Service

Turns a TaskTreeSpec into job_dependencies rows:
- One transaction per tree, on the caller's connection
- One INSERT per group of siblings, parents always before children
- A single readiness UPDATE before commit

The tree is walked with an explicit stack, so depth is bounded by memory
rather than by the interpreter's recursion limit.

Usage:
    service = JobTreeService()
    root_id = await service.materialize(conn, TaskTreeSpec(
        identifier="build_report",
        children=[TaskTreeSpec(identifier="fetch_a"), TaskTreeSpec(identifier="fetch_b")],
    ))
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from psycopg import AsyncConnection

from core.config import get_defaults
from core.contracts import JobTreeMaterializationError
from core.job_ids import JOB_ID_DECODING, JobIdDecoding
from core.logging import ComponentType, get_logger, log_context
from core.models import TaskTreeSpec
from repositories.database import HelperTables, id_cursor
from repositories.dependency_repo import JobDependencyRepository, utc_now

logger = get_logger(__name__, ComponentType.SERVICE)


@dataclass(frozen=True)
class MaterializeOptions:
    """
    Per-call settings for materialize().

    use_local_time: fill a missing run_at from clock(); when False the
    column stays NULL and the queue engine applies its own default.
    """
    use_local_time: bool = True
    clock: Callable[[], datetime] = field(default=utc_now)

    @classmethod
    def from_defaults(cls) -> "MaterializeOptions":
        return cls(use_local_time=get_defaults().tree.use_local_time)


@dataclass
class _TreeWalk:
    """Bookkeeping for one materialize() call."""
    root_id: Optional[int] = None
    ready_ids: List[int] = field(default_factory=list)
    inserted: int = 0
    batches: int = 0


class JobTreeService:
    """Service for creating job trees."""

    def __init__(
        self,
        schema: Optional[str] = None,
        decoding: JobIdDecoding = JOB_ID_DECODING,
    ):
        """
        Initialize job tree service.

        Args:
            schema: Helpers schema (default from config)
            decoding: int8 loader configuration for the insert cursor
        """
        self.tables = HelperTables.for_schema(schema)
        self.decoding = decoding

    async def materialize(
        self,
        conn: AsyncConnection,
        tree: TaskTreeSpec,
        options: Optional[MaterializeOptions] = None,
    ) -> int:
        """
        Insert a task tree and return the root's id.

        All rows become visible together or not at all. If the connection
        is already inside a transaction, the tree is written under a
        savepoint of it instead.

        Args:
            conn: Connection supplied by the queue engine
            tree: Root node with nested children
            options: run_at handling (default from config)

        Returns:
            Id of the root dependency row

        Raises:
            JobTreeMaterializationError: Anything failed; nothing was kept
        """
        options = options or MaterializeOptions.from_defaults()
        node_count = tree.count_nodes()
        walk = _TreeWalk()

        with log_context(schema=self.tables.schema, operation="materialize"):
            try:
                async with conn.transaction():
                    async with id_cursor(conn, self.decoding) as cur:
                        repo = JobDependencyRepository(cur, self.tables)
                        await self._insert_tree(repo, tree, options, walk)
                        updated = await repo.mark_ready(walk.ready_ids)
            except Exception as e:
                logger.exception(
                    f"Tree '{tree.identifier}' rolled back after "
                    f"{walk.inserted}/{node_count} nodes: {e}"
                )
                raise JobTreeMaterializationError(
                    f"Failed to materialize tree '{tree.identifier}': {e}",
                    identifier=tree.identifier,
                    node_count=node_count,
                ) from e

            logger.info(
                f"Tree '{tree.identifier}' materialized: root={walk.root_id} "
                f"nodes={walk.inserted} batches={walk.batches} ready={updated}"
            )

        return walk.root_id

    async def _insert_tree(
        self,
        repo: JobDependencyRepository,
        tree: TaskTreeSpec,
        options: MaterializeOptions,
        walk: _TreeWalk,
    ) -> None:
        """Insert every node, parents before children, collecting readiness ids."""
        [root_id] = await self._insert_siblings(repo, [tree], None, options, walk)
        walk.root_id = root_id

        stack: List[Tuple[int, List[TaskTreeSpec]]] = [(root_id, tree.children)]

        while stack:
            parent_id, children = stack.pop()
            walk.ready_ids.append(parent_id)

            if not children:
                continue

            child_ids = await self._insert_siblings(repo, children, parent_id, options, walk)

            for child_id, child in zip(child_ids, children):
                if child.children:
                    stack.append((child_id, child.children))
                else:
                    walk.ready_ids.append(child_id)

    async def _insert_siblings(
        self,
        repo: JobDependencyRepository,
        specs: List[TaskTreeSpec],
        parent_id: Optional[int],
        options: MaterializeOptions,
        walk: _TreeWalk,
    ) -> List[int]:
        with log_context(parent_id=parent_id):
            ids = await repo.insert_batch(
                specs,
                parent_id=parent_id,
                use_local_time=options.use_local_time,
                clock=options.clock,
            )
        walk.inserted += len(ids)
        walk.batches += 1
        return ids


__all__ = ["MaterializeOptions", "JobTreeService"]
