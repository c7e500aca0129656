import json
from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from psycopg import errors as pg_errors


class MockAsyncCursor:

    def __init__(self, rows=None):
        self.rows = rows or []
        self._index = 0

    async def fetchone(self):
        if self.rows:
            return self.rows[0]
        return None

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._index >= len(self.rows):
            raise StopAsyncIteration
        row = self.rows[self._index]
        self._index += 1
        return row


class MockAsyncConnection:

    def __init__(self, cursor_results=None):
        self.cursor_results = cursor_results or []
        self.calls = []

    async def execute(self, sql, params=None):
        self.calls.append((sql, params))
        index = len(self.calls) - 1
        if index < len(self.cursor_results):
            result = self.cursor_results[index]
            if isinstance(result, Exception):
                raise result
            return MockAsyncCursor(result)
        return MockAsyncCursor([])

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


@pytest.fixture
def mock_psycopg():
    with patch("datepoll.db.core.psycopg.AsyncConnection") as mock:
        yield mock


def use_connection(mock_psycopg, conn):
    async def connect(*args, **kwargs):
        return conn

    mock_psycopg.connect = connect
    return conn


class TestCreateEvent:
    @pytest.mark.asyncio
    async def test_inserts_event(self, mock_psycopg):
        conn = use_connection(mock_psycopg, MockAsyncConnection())

        from datepoll.db import create_event

        event = await create_event(
            title="Dim Sum",
            admin_code="1234",
            host_dates=["2024-06-01"],
            time_slots=["lunch"],
            location="",
        )

        assert len(event["id"]) == 10
        assert event["location"] is None
        sql, params = conn.calls[0]
        assert "INSERT INTO events" in sql
        assert params[0] == event["id"]
        assert params[4] == "1234"

    @pytest.mark.asyncio
    async def test_retries_on_id_collision(self, mock_psycopg):
        conn = use_connection(mock_psycopg, MockAsyncConnection([pg_errors.UniqueViolation("dup")]))

        from datepoll.db import create_event

        event = await create_event("Dim Sum", "1234", ["2024-06-01"], ["lunch"])

        assert len(conn.calls) == 2
        assert conn.calls[1][1][0] == event["id"]

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_collisions(self, mock_psycopg):
        use_connection(mock_psycopg, MockAsyncConnection([pg_errors.UniqueViolation("dup")] * 10))

        from datepoll.db import create_event

        with pytest.raises(RuntimeError):
            await create_event("Dim Sum", "1234", ["2024-06-01"], ["lunch"])


class TestGetEvent:
    @pytest.mark.asyncio
    async def test_parses_json_arriving_as_text(self, mock_psycopg):
        now = datetime.now(UTC)
        use_connection(mock_psycopg, MockAsyncConnection([
            [("abc", "Dim Sum", None, None, json.dumps(["2024-06-01"]), json.dumps(["lunch"]), now)],
        ]))

        from datepoll.db import get_event

        event = await get_event("abc")

        assert event["host_dates"] == ["2024-06-01"]
        assert event["time_slots"] == ["lunch"]
        assert "admin_code" not in event

    @pytest.mark.asyncio
    async def test_accepts_decoded_json(self, mock_psycopg):
        now = datetime.now(UTC)
        use_connection(mock_psycopg, MockAsyncConnection([
            [("abc", "Dim Sum", "Here", "Desc", ["2024-06-01"], ["dinner"], now)],
        ]))

        from datepoll.db import get_event

        event = await get_event("abc")

        assert event["time_slots"] == ["dinner"]
        assert event["location"] == "Here"

    @pytest.mark.asyncio
    async def test_missing_event(self, mock_psycopg):
        use_connection(mock_psycopg, MockAsyncConnection([[]]))

        from datepoll.db import get_event

        assert await get_event("nope") is None


class TestResponses:
    @pytest.mark.asyncio
    async def test_get_responses_in_order(self, mock_psycopg):
        now = datetime.now(UTC)
        conn = use_connection(mock_psycopg, MockAsyncConnection([
            [
                ("Alice", None, '{"2024-06-01": ["lunch"]}', now, now),
                ("Bob", "Sam", {"2024-06-02": ["dinner"]}, now, now),
            ],
        ]))

        from datepoll.db import get_responses

        responses = await get_responses("abc")

        assert [r["name"] for r in responses] == ["Alice", "Bob"]
        assert responses[0]["availability"] == {"2024-06-01": ["lunch"]}
        assert responses[1]["plus_one"] == "Sam"
        assert "ORDER BY created_at ASC" in conn.calls[0][0]

    @pytest.mark.asyncio
    async def test_upsert_is_single_statement(self, mock_psycopg):
        conn = use_connection(mock_psycopg, MockAsyncConnection())

        from datepoll.db import upsert_response

        result = await upsert_response("abc", "Alice", {"2024-06-01": ["lunch"]}, plus_one="Sam")

        assert len(conn.calls) == 1
        assert "ON CONFLICT (event_id, name) DO UPDATE" in conn.calls[0][0]
        assert result["name"] == "Alice"
        assert result["plus_one"] == "Sam"

    @pytest.mark.asyncio
    async def test_delete_counts_rows(self, mock_psycopg):
        use_connection(mock_psycopg, MockAsyncConnection([[(7,)]]))

        from datepoll.db import delete_response

        assert await delete_response("abc", "Alice") == 1

    @pytest.mark.asyncio
    async def test_delete_missing_name(self, mock_psycopg):
        use_connection(mock_psycopg, MockAsyncConnection([[]]))

        from datepoll.db import delete_response

        assert await delete_response("abc", "Nobody") == 0


class TestAdminFields:
    @pytest.mark.asyncio
    async def test_get_admin_code(self, mock_psycopg):
        use_connection(mock_psycopg, MockAsyncConnection([[("1234",)]]))

        from datepoll.db import get_admin_code

        assert await get_admin_code("abc") == "1234"

    @pytest.mark.asyncio
    async def test_update_event_details_missing(self, mock_psycopg):
        use_connection(mock_psycopg, MockAsyncConnection([[]]))

        from datepoll.db import update_event_details

        assert await update_event_details("nope", "T", None, None) is False
