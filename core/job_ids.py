# ============================================================================
# JOB IDENTIFIERS
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - 64-bit identifier handling
# PURPOSE: Range-checked job ids and scoped int8 decoding for cursors
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Identifiers

Job ids are PostgreSQL BIGINTs and may exceed the range a double can
represent exactly. Python ints are unbounded, so the risk is not in Python
itself but in connection-level loader overrides (e.g. an application that
registers a str or float loader for int8 on its pool).

JobIdDecoding pins int8 back to Python int, but only on the adapters
context it is applied to (usually a cursor), so unrelated queries on the
same pool keep whatever configuration they had.

Usage:
    async with conn.cursor() as cur:
        JOB_ID_DECODING.apply(cur.adapters)
        await cur.execute("SELECT id FROM ...")
"""

from dataclasses import dataclass
from typing import Annotated, Any, Iterable, List

from annotated_types import Ge, Le
from psycopg.adapt import AdaptersMap
from psycopg.types.numeric import Int8BinaryLoader, IntLoader

MIN_JOB_ID = 1
MAX_JOB_ID = 2 ** 63 - 1

# Pydantic-compatible type for fields holding a job id
JobId = Annotated[int, Ge(MIN_JOB_ID), Le(MAX_JOB_ID)]


def coerce_job_id(value: Any) -> int:
    """
    Convert a job id from the host environment to a checked int.

    Accepts ints and decimal strings. Rejects bools and floats, which
    would silently lose precision above 2**53.

    Raises:
        TypeError: value is not an int or str
        ValueError: value is out of the BIGINT id range
    """
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise TypeError(f"Job id must be int or str, got {type(value).__name__}")

    job_id = int(value)
    if not MIN_JOB_ID <= job_id <= MAX_JOB_ID:
        raise ValueError(f"Job id {job_id} outside [{MIN_JOB_ID}, {MAX_JOB_ID}]")
    return job_id


def coerce_job_ids(values: Iterable[Any]) -> List[int]:
    """Coerce many job ids, preserving order."""
    return [coerce_job_id(v) for v in values]


@dataclass(frozen=True)
class JobIdDecoding:
    """
    Loader configuration for BIGINT id columns.

    Applied to an AdaptersMap; never to the global psycopg adapters.
    """
    type_name: str = "int8"

    def apply(self, adapters: AdaptersMap) -> None:
        """Register int loaders for both wire formats on this context only."""
        adapters.register_loader(self.type_name, IntLoader)
        adapters.register_loader(self.type_name, Int8BinaryLoader)


JOB_ID_DECODING = JobIdDecoding()


__all__ = [
    "MIN_JOB_ID",
    "MAX_JOB_ID",
    "JobId",
    "coerce_job_id",
    "coerce_job_ids",
    "JobIdDecoding",
    "JOB_ID_DECODING",
]
