# ============================================================================
# CLAUDE CONTEXT - TASK TREE SPEC MODEL
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core model - Input to tree materialization
# PURPOSE: Describe a job and its nested child jobs before they are stored
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: TaskSpec, TaskTreeSpec
# DEPENDENCIES: pydantic
# ============================================================================
"""
Task Tree Spec Models

A TaskTreeSpec is the in-memory description of a job plus its children,
submitted to JobTreeService.materialize().

Key concept:
- TaskTreeSpec = TEMPLATE (what to enqueue, nested)
- JobDependency = INSTANCE (one stored row per node, with parent_id)

Fields accept both snake_case and the queue engine's camelCase
(queueName, runAt, maxAttempts, jobKey, jobKeyMode, onFailure).
"""

from datetime import datetime
from typing import Any, Iterator, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from core.contracts import FailurePolicy, JobKeyMode


class TaskSpec(BaseModel):
    """
    Scheduling attributes for one job.

    Only the shape is checked here. Values the store rejects (unknown
    queue, duplicate job_key, ...) fail at insert time.
    """

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "frozen": False,
    }

    identifier: str = Field(..., description="Task name registered with the queue engine")
    payload: Optional[Any] = Field(default=None, description="JSON-serialisable job payload")
    queue_name: Optional[str] = None
    run_at: Optional[datetime] = None
    max_attempts: Optional[int] = None
    job_key: Optional[str] = None
    job_key_mode: Optional[JobKeyMode] = None
    priority: Optional[int] = None
    flags: Optional[List[str]] = None
    on_failure: Optional[FailurePolicy] = Field(
        default=None,
        description="How the parent reacts if this job fails"
    )


class TaskTreeSpec(TaskSpec):
    """A TaskSpec with nested children."""

    children: List["TaskTreeSpec"] = Field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def iter_nodes(self) -> Iterator["TaskTreeSpec"]:
        """Walk the tree depth-first without recursion, root first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def count_nodes(self) -> int:
        """Number of jobs this tree will create."""
        return sum(1 for _ in self.iter_nodes())

    def depth(self) -> int:
        """Longest root-to-leaf path, counting the root as 1."""
        deepest = 0
        stack = [(self, 1)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            stack.extend((child, level + 1) for child in node.children)
        return deepest


TaskTreeSpec.model_rebuild()


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["TaskSpec", "TaskTreeSpec"]
