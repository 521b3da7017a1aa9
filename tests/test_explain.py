"""Tests for the guarded EXPLAIN tool."""

import psycopg
import pytest

from postgres_mcp.core.exceptions import ScanError, TransactionError
from postgres_mcp.core.explain import build_explain_statement, explain_analyze
from postgres_mcp.core.models import ExplainAnalyzeArgs, ExplainOptions
from tests.fakes import FakeResult

JSON_PLAN = [{"Plan": {"Node Type": "Result", "Actual Rows": 1}}]


def _args(**kwargs):
    return ExplainAnalyzeArgs(query=kwargs.pop("query", "SELECT 1"), **kwargs)


@pytest.mark.unit
class TestBuildExplainStatement:
    def test_default_statement(self):
        options = ExplainOptions.from_args(_args())
        assert build_explain_statement("SELECT 1", options) == (
            "EXPLAIN (ANALYZE true, COSTS true, SUMMARY true, FORMAT json, "
            "TIMING true) SELECT 1"
        )

    def test_query_appended_verbatim(self):
        options = ExplainOptions.from_args(_args(analyze=False))
        statement = build_explain_statement("SELECT '50%'", options)
        assert statement.endswith(") SELECT '50%'")
        assert "TIMING" not in statement


@pytest.mark.unit
class TestExplainAnalyze:
    @pytest.mark.asyncio
    async def test_json_plan_rows(self, db, fake_conn):
        fake_conn.on("EXPLAIN", FakeResult(columns=["QUERY PLAN"], rows=[(JSON_PLAN,)]))
        envelope = await explain_analyze(db, _args())
        assert envelope.is_error is False
        assert envelope.data == [{"QUERY PLAN": JSON_PLAN}]

    @pytest.mark.asyncio
    async def test_wrapped_in_rolled_back_transaction(self, db, fake_conn):
        fake_conn.on("EXPLAIN", FakeResult(columns=["QUERY PLAN"], rows=[(JSON_PLAN,)]))
        await explain_analyze(db, _args(query="DELETE FROM users"))
        assert fake_conn.executed[0] == "BEGIN"
        assert fake_conn.executed[1].startswith("EXPLAIN (")
        assert fake_conn.executed[1].endswith("DELETE FROM users")
        assert fake_conn.executed[-1] == "ROLLBACK"
        assert "COMMIT" not in fake_conn.executed

    @pytest.mark.asyncio
    async def test_explain_sent_as_single_prepared_statement(self, db, fake_conn):
        await explain_analyze(db, _args())
        assert fake_conn.prepared[1] is True
        assert fake_conn.params[1] is None

    @pytest.mark.asyncio
    async def test_trailing_commit_is_rejected(self, db, fake_conn):
        fake_conn.on(
            "EXPLAIN",
            FakeResult(
                error=psycopg.errors.SyntaxError(
                    "cannot insert multiple commands into a prepared statement"
                )
            ),
        )
        envelope = await explain_analyze(db, _args(query="DELETE FROM users; COMMIT"))
        assert envelope.is_error is True
        assert "multiple commands" in envelope.text
        assert fake_conn.executed[-1] == "ROLLBACK"

    @pytest.mark.asyncio
    async def test_text_format_joins_lines(self, db, fake_conn):
        fake_conn.on(
            "EXPLAIN",
            FakeResult(
                columns=["QUERY PLAN"],
                rows=[("Result  (cost=0.00..0.01 rows=1 width=4)",), ("Planning Time: 0.1 ms",)],
            ),
        )
        envelope = await explain_analyze(db, _args(format="text"))
        assert envelope.text == (
            "Result  (cost=0.00..0.01 rows=1 width=4)\nPlanning Time: 0.1 ms\n"
        )
        assert envelope.data == envelope.text
        assert "FORMAT text" in fake_conn.executed[1]

    @pytest.mark.parametrize("fmt", ["", "bogus"])
    @pytest.mark.asyncio
    async def test_unknown_format_uses_json(self, db, fake_conn, fmt):
        fake_conn.on("EXPLAIN", FakeResult(columns=["QUERY PLAN"], rows=[(JSON_PLAN,)]))
        envelope = await explain_analyze(db, _args(format=fmt))
        assert "FORMAT json" in fake_conn.executed[1]
        assert envelope.data == [{"QUERY PLAN": JSON_PLAN}]

    @pytest.mark.asyncio
    async def test_explicit_false_flags_reach_statement(self, db, fake_conn):
        await explain_analyze(db, _args(analyze=False, costs=False))
        statement = fake_conn.executed[1]
        assert "ANALYZE false" in statement
        assert "COSTS false" in statement
        assert "TIMING" not in statement

    @pytest.mark.asyncio
    async def test_sql_error_is_error_envelope_and_rolls_back(self, db, fake_conn):
        fake_conn.on(
            "EXPLAIN",
            FakeResult(error=psycopg.ProgrammingError('relation "nope" does not exist')),
        )
        envelope = await explain_analyze(db, _args(query="SELECT * FROM nope"))
        assert envelope.is_error is True
        assert envelope.text == 'EXPLAIN error: relation "nope" does not exist'
        assert fake_conn.executed[-1] == "ROLLBACK"

    @pytest.mark.asyncio
    async def test_scan_error_raises_and_rolls_back(self, db, fake_conn):
        fake_conn.on("EXPLAIN", FakeResult(columns=["a", "b"], rows=[("x", "y")]))
        with pytest.raises(ScanError):
            await explain_analyze(db, _args(format="yaml"))
        assert fake_conn.executed[-1] == "ROLLBACK"

    @pytest.mark.asyncio
    async def test_rollback_failure_is_swallowed(self, db, fake_conn):
        fake_conn.on("EXPLAIN", FakeResult(columns=["QUERY PLAN"], rows=[(JSON_PLAN,)]))
        fake_conn.rollback_error = psycopg.OperationalError("connection lost")
        envelope = await explain_analyze(db, _args())
        assert envelope.is_error is False
        assert fake_conn.executed[-1] == "ROLLBACK"

    @pytest.mark.asyncio
    async def test_begin_failure_raises(self, db, fake_conn):
        fake_conn.begin_error = psycopg.OperationalError("connection lost")
        with pytest.raises(TransactionError, match="failed to begin transaction"):
            await explain_analyze(db, _args())
        assert fake_conn.executed == ["BEGIN"]
