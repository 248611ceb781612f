# ============================================================================
# STORE STATEMENT TESTS
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Tests - Service and worker through the real repositories
# PURPOSE: Verify the exact statements and bound values sent to PostgreSQL
# CREATED: 18 OCT 2026
# ============================================================================
"""
Store Statement Tests

JobTreeService and JobResults run unpatched on a scripted FakeCursor, so
every statement their repositories build is checked in full along with
the values bound to it, in execution order.

Set DATABASE_URL to also run the same scenarios against a live server
(each test gets its own throwaway schema).

Covers:
1. Scenario R -> {A, B -> {C}}: batches, parent ids, one readiness UPDATE
2. Rollback on a store error, with the cause logged
3. Progress write / recover / completion statements
4. Succeeded and failed child queries
5. Live database runs of the same scenarios

Run with:
    pytest tests/test_store_statements.py -v
"""

import asyncio
import logging
import os
import uuid
from datetime import datetime, timezone

import psycopg
import pytest
from psycopg import sql
from psycopg.rows import dict_row

from core.contracts import JobTreeMaterializationError
from core.models import TaskTreeSpec
from infrastructure import DatabaseInitializer, SchemaOptions
from repositories import HelperTables, JobResultRepository
from repositories.dependency_repo import INSERT_COLUMNS, values_placeholders
from services import JobTreeService, MaterializeOptions
from worker import JobResults

FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

DEPS = '"graphile_worker_helpers"."job_dependencies"'
RESULTS = '"graphile_worker_helpers"."job_results"'
COLUMNS = ", ".join(f'"{name}"' for name, _ in INSERT_COLUMNS)
ROW_WIDTH = len(INSERT_COLUMNS)

# Offsets inside one row of bound INSERT values
PARENT_ID, IDENTIFIER, RUN_AT, JOB_KEY = 0, 2, 5, 7

WRITE_PROGRESS = (
    f"INSERT INTO {RESULTS} AS r (id, results, is_complete) "
    "VALUES (%s::bigint, %s::jsonb, false) "
    "ON CONFLICT (id) DO UPDATE SET results = EXCLUDED.results "
    "WHERE NOT r.is_complete"
)
COMPLETE = (
    f"INSERT INTO {RESULTS} AS r (id, results, is_complete) "
    "VALUES (%s::bigint, %s::jsonb, true) "
    "ON CONFLICT (id) DO UPDATE SET results = EXCLUDED.results, is_complete = true "
    "WHERE NOT r.is_complete"
)
PEEK_PROGRESS = f"SELECT results FROM {RESULTS} WHERE id = %s::bigint AND NOT is_complete"
MARK_READY = f"UPDATE {DEPS} SET is_ready = true WHERE NOT is_ready AND id = ANY(%s::bigint[])"


def children_query(outcome_filter: str) -> str:
    return (
        "SELECT results.id, results.results "
        f"FROM {DEPS} AS parent "
        f"INNER JOIN {DEPS} AS children ON parent.id = children.parent_id "
        f"INNER JOIN {RESULTS} AS results ON children.id = results.id "
        f"WHERE parent.id = %s::bigint AND {outcome_filter} "
        "ORDER BY results.id"
    )


def insert_query(rows: int) -> str:
    return f"INSERT INTO {DEPS} ({COLUMNS}) VALUES {values_placeholders(rows)} RETURNING id"


def statement(cursor, index: int) -> str:
    """Recorded statement with whitespace collapsed."""
    return " ".join(cursor.query_text(index).split())


def bound_rows(params):
    return [params[i:i + ROW_WIDTH] for i in range(0, len(params), ROW_WIDTH)]


def run(coro):
    return asyncio.run(coro)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def report_tree():
    """R -> {A, B -> {C}}"""
    return TaskTreeSpec(
        identifier="R",
        children=[
            TaskTreeSpec(identifier="A"),
            TaskTreeSpec(
                identifier="B",
                children=[TaskTreeSpec(identifier="C", job_key="report-c")],
            ),
        ],
    )


@pytest.fixture
def options():
    return MaterializeOptions(use_local_time=True, clock=lambda: FIXED_NOW)


def script_tree_ids(cursor, first_id: int):
    """RETURNING rows for the batches [R], [A, B], [C]."""
    cursor.fetch_results.extend([
        [{"id": first_id}],
        [{"id": first_id + 1}, {"id": first_id + 2}],
        [{"id": first_id + 3}],
    ])
    cursor.rowcounts.extend([1, 2, 1, 4])


# ============================================================================
# TREE MATERIALIZATION
# ============================================================================

class TestTreeStatements:
    def test_report_tree_batches_and_parents(self, report_tree, options, fake_conn, fake_cursor):
        script_tree_ids(fake_cursor, 1)

        root_id = run(JobTreeService().materialize(fake_conn, report_tree, options))

        assert root_id == 1
        assert len(fake_cursor.executed) == 4
        assert [statement(fake_cursor, i) for i in range(3)] == [
            insert_query(1), insert_query(2), insert_query(1),
        ]

        rows = [bound_rows(params) for _, params in fake_cursor.executed[:3]]
        assert [[r[IDENTIFIER] for r in batch] for batch in rows] == [["R"], ["A", "B"], ["C"]]
        assert [[r[PARENT_ID] for r in batch] for batch in rows] == [[None], [1, 1], [3]]
        assert rows[2][0][JOB_KEY] == "report-c"
        assert all(r[RUN_AT] == FIXED_NOW for batch in rows for r in batch)

        assert statement(fake_cursor, 3) == MARK_READY
        assert fake_cursor.executed[3][1] == ([1, 2, 3, 4],)
        assert fake_conn.commits == 1
        assert fake_conn.rollbacks == 0

    def test_large_ids_bound_as_parents(self, report_tree, options, fake_conn, fake_cursor):
        first = 2 ** 63 - 4
        script_tree_ids(fake_cursor, first)

        root_id = run(JobTreeService().materialize(fake_conn, report_tree, options))

        assert root_id == 9223372036854775804
        c_row = bound_rows(fake_cursor.executed[2][1])[0]
        assert c_row[PARENT_ID] == first + 2
        assert fake_cursor.executed[3][1] == ([first, first + 1, first + 2, first + 3],)

    def test_store_error_rolls_back_and_logs_cause(self, report_tree, options, fake_conn, fake_cursor, caplog):
        script_tree_ids(fake_cursor, 1)
        real_execute = fake_cursor.execute

        async def reject_c(query, params=None):
            if isinstance(params, list) and params[IDENTIFIER] == "C":
                raise psycopg.errors.UniqueViolation(
                    'duplicate key value violates unique constraint "idx_job_dependencies_job_key"'
                )
            await real_execute(query, params)

        fake_cursor.execute = reject_c

        with caplog.at_level(logging.ERROR, logger="services.job_tree_service"):
            with pytest.raises(JobTreeMaterializationError) as exc_info:
                run(JobTreeService().materialize(fake_conn, report_tree, options))

        assert isinstance(exc_info.value.__cause__, psycopg.errors.UniqueViolation)
        assert fake_conn.rollbacks == 1
        assert fake_conn.commits == 0
        # The readiness UPDATE never ran
        assert all("UPDATE" not in fake_cursor.query_text(i) for i in range(len(fake_cursor.executed)))

        record = caplog.records[-1]
        assert "rolled back after 3/4 nodes" in record.getMessage()
        assert record.exc_info is not None
        assert record.exc_info[0] is psycopg.errors.UniqueViolation


# ============================================================================
# PROGRESS AND COMPLETION
# ============================================================================

class TestResultStatements:
    def test_progress_scenario(self, fake_conn, fake_cursor):
        # write {step:1}, write {step:2}, peek, write {step:4} after completion, peek
        fake_cursor.rowcounts.extend([1, 1, 1, 0])
        fake_cursor.fetch_results.extend([[{"results": {"step": 2}}], []])
        results = JobResults(fake_conn, 7)

        assert run(results.update_progress({"step": 1})) is True
        assert run(results.update_progress({"step": 2})) is True
        assert run(results.recover_progress()) == {"step": 2}
        assert run(results.update_progress({"step": 4})) is False
        assert run(results.recover_progress()) is None

        assert [statement(fake_cursor, i) for i in range(5)] == [
            WRITE_PROGRESS, WRITE_PROGRESS, PEEK_PROGRESS, WRITE_PROGRESS, PEEK_PROGRESS,
        ]
        writes = [fake_cursor.executed[i][1] for i in (0, 1, 3)]
        assert [job_id for job_id, _ in writes] == [7, 7, 7]
        assert [payload.obj for _, payload in writes] == [{"step": 1}, {"step": 2}, {"step": 4}]
        assert fake_cursor.executed[2][1] == (7,)

    def test_null_progress(self, fake_conn, fake_cursor):
        fake_cursor.rowcounts.append(1)

        run(JobResults(fake_conn, "7").update_progress(None))

        assert statement(fake_cursor, 0) == WRITE_PROGRESS
        assert fake_cursor.executed[0][1] == (7, None)

    def test_completion(self, fake_cursor):
        fake_cursor.rowcounts.append(1)
        repo = JobResultRepository(fake_cursor, HelperTables.for_schema())

        assert run(repo.complete(7, {"step": 3})) is True

        assert statement(fake_cursor, 0) == COMPLETE
        job_id, payload = fake_cursor.executed[0][1]
        assert (job_id, payload.obj) == (7, {"step": 3})


# ============================================================================
# CHILD AGGREGATION
# ============================================================================

class TestChildrenStatements:
    def test_succeeded_children(self, fake_conn, fake_cursor):
        fake_cursor.fetch_results.append([{"id": 2, "results": "a"}, {"id": 5, "results": None}])

        values = run(JobResults(fake_conn, 1).get_children_values())

        assert values == {2: "a", 5: None}
        assert statement(fake_cursor, 0) == children_query("NOT children.has_failed")
        assert fake_cursor.executed[0][1] == (1,)

    def test_failed_children(self, fake_conn, fake_cursor):
        fake_cursor.fetch_results.append([{"id": 3, "results": {"error": "boom"}}])

        values = run(JobResults(fake_conn, 1).get_failed_children_values())

        assert values == {3: {"error": "boom"}}
        assert statement(fake_cursor, 0) == children_query("children.has_failed")
        assert fake_cursor.executed[0][1] == (1,)

    def test_schema_override(self, fake_conn, fake_cursor):
        fake_cursor.fetch_results.append([])

        run(JobResults(fake_conn, 1, schema="tenant_a").get_children_values())

        text = statement(fake_cursor, 0)
        assert 'FROM "tenant_a"."job_dependencies" AS parent' in text
        assert 'INNER JOIN "tenant_a"."job_results" AS results' in text


# ============================================================================
# LIVE DATABASE
# ============================================================================

DATABASE_URL = os.environ.get("DATABASE_URL")


@pytest.mark.skipif(not DATABASE_URL, reason="DATABASE_URL not set")
class TestLiveDatabase:
    @pytest.fixture
    def schema(self):
        name = f"jobtree_test_{uuid.uuid4().hex[:8]}"
        yield name
        run(self._drop(name))

    @staticmethod
    async def _drop(schema):
        async with await psycopg.AsyncConnection.connect(DATABASE_URL, autocommit=True) as conn:
            await DatabaseInitializer(SchemaOptions(helpers_schema=schema)).remove(conn)

    @staticmethod
    async def _connect(schema):
        conn = await psycopg.AsyncConnection.connect(DATABASE_URL, autocommit=True)
        result = await DatabaseInitializer(SchemaOptions(helpers_schema=schema)).setup(conn)
        assert result.success, result.errors
        return conn

    @staticmethod
    async def _rows(conn, schema):
        async with conn.cursor() as cur:
            await cur.execute(
                sql.SQL("SELECT identifier, id, parent_id, is_ready FROM {} ORDER BY id").format(
                    sql.Identifier(schema, "job_dependencies")
                )
            )
            return {r[0]: r[1:] for r in await cur.fetchall()}

    def test_report_tree(self, schema, report_tree, options):
        async def scenario():
            async with await self._connect(schema) as conn:
                root_id = await JobTreeService(schema=schema).materialize(conn, report_tree, options)
                return root_id, await self._rows(conn, schema)

        root_id, rows = run(scenario())

        assert rows["R"] == (root_id, None, True)
        assert rows["A"][1] == root_id
        assert rows["B"][1] == root_id
        assert rows["C"][1] == rows["B"][0]
        assert all(ready for _, _, ready in rows.values())

    def test_duplicate_job_key_keeps_nothing(self, schema, report_tree, options):
        duplicate = TaskTreeSpec(
            identifier="R2",
            children=[
                TaskTreeSpec(identifier="X"),
                TaskTreeSpec(identifier="Y", job_key="report-c"),
            ],
        )

        async def scenario():
            async with await self._connect(schema) as conn:
                service = JobTreeService(schema=schema)
                await service.materialize(conn, report_tree, options)
                with pytest.raises(JobTreeMaterializationError) as exc_info:
                    await service.materialize(conn, duplicate, options)
                return exc_info.value, await self._rows(conn, schema)

        error, rows = run(scenario())

        assert isinstance(error.__cause__, psycopg.errors.UniqueViolation)
        assert set(rows) == {"R", "A", "B", "C"}

    def test_progress_and_children(self, schema, report_tree, options):
        async def scenario():
            async with await self._connect(schema) as conn:
                root_id = await JobTreeService(schema=schema).materialize(conn, report_tree, options)
                rows = await self._rows(conn, schema)
                a_id, b_id = rows["A"][0], rows["B"][0]

                a = JobResults(conn, a_id, schema=schema)
                await a.update_progress({"step": 1})
                await a.update_progress({"step": 2})
                recovered = await a.recover_progress()

                async with conn.cursor() as cur:
                    repo = JobResultRepository(cur, HelperTables.for_schema(schema))
                    await repo.complete(a_id, {"step": 3})
                    await repo.complete(b_id, {"error": "boom"})
                    await cur.execute(
                        sql.SQL("UPDATE {} SET has_failed = true WHERE id = %s").format(
                            sql.Identifier(schema, "job_dependencies")
                        ),
                        (b_id,),
                    )
                late_write = await a.update_progress({"step": 4})
                stored = await _stored_result(conn, schema, a_id)

                parent = JobResults(conn, root_id, schema=schema)
                ok = await parent.get_children_values()
                failed = await parent.get_failed_children_values()
                return a_id, b_id, recovered, late_write, stored, ok, failed

        a_id, b_id, recovered, late_write, stored, ok, failed = run(scenario())

        assert recovered == {"step": 2}
        assert late_write is False
        assert stored == {"step": 3}
        assert ok == {a_id: {"step": 3}}
        assert failed == {b_id: {"error": "boom"}}


async def _stored_result(conn, schema, job_id):
    async with conn.cursor(row_factory=dict_row) as cur:
        result = await JobResultRepository(cur, HelperTables.for_schema(schema)).get(job_id)
    return result.results
