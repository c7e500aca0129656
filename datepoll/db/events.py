import json
import secrets
import string
from datetime import UTC, datetime
from typing import Any

from psycopg import errors as pg_errors
from psycopg.types.json import Json

from datepoll.db.core import _get_connection


def _generate_event_id(length: int = 10) -> str:
    chars = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(chars) for _ in range(length))


def _parse_json_field(value: Any) -> Any:
    # JSONB normally arrives decoded, but text columns and some adapters hand back the raw string.
    if isinstance(value, (str, bytes, bytearray)):
        return json.loads(value)
    return value


def _iso(ts: datetime) -> str:
    return ts.astimezone(UTC).isoformat()


def _event_from_row(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "title": row[1],
        "location": row[2],
        "description": row[3],
        "host_dates": _parse_json_field(row[4]),
        "time_slots": _parse_json_field(row[5]),
        "created_at": _iso(row[6]),
    }


async def create_event(
    title: str,
    admin_code: str,
    host_dates: list[str],
    time_slots: list[str],
    location: str | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    now = datetime.now(UTC)
    async with _get_connection() as conn:
        for _ in range(10):
            event_id = _generate_event_id()
            try:
                await conn.execute(
                    """INSERT INTO events (id, title, location, description, admin_code, host_dates, time_slots, created_at)
                       VALUES (%s, %s, %s, %s, %s, %s, %s, %s)""",
                    (
                        event_id,
                        title,
                        location or None,
                        description or None,
                        admin_code,
                        Json(host_dates),
                        Json(time_slots),
                        now,
                    ),
                )
                return {
                    "id": event_id,
                    "title": title,
                    "location": location or None,
                    "description": description or None,
                    "host_dates": host_dates,
                    "time_slots": time_slots,
                    "created_at": now.isoformat(),
                }
            except pg_errors.UniqueViolation:
                continue
        raise RuntimeError("Failed to generate unique event ID")


async def get_event(event_id: str) -> dict[str, Any] | None:
    """Public view of an event; the admin code is never included."""
    async with _get_connection() as conn:
        cur = await conn.execute(
            "SELECT id, title, location, description, host_dates, time_slots, created_at FROM events WHERE id = %s",
            (event_id,),
        )
        row = await cur.fetchone()
        if not row:
            return None
        return _event_from_row(row)


async def get_admin_code(event_id: str) -> str | None:
    async with _get_connection() as conn:
        cur = await conn.execute("SELECT admin_code FROM events WHERE id = %s", (event_id,))
        row = await cur.fetchone()
        return row[0] if row else None


async def get_responses(event_id: str) -> list[dict[str, Any]]:
    """Responses in creation order."""
    async with _get_connection() as conn:
        rows = await conn.execute(
            """SELECT name, plus_one, availability, created_at, updated_at
               FROM responses WHERE event_id = %s ORDER BY created_at ASC, id ASC""",
            (event_id,),
        )
        result = []
        async for row in rows:
            result.append(
                {
                    "name": row[0],
                    "plus_one": row[1],
                    "availability": _parse_json_field(row[2]),
                    "created_at": _iso(row[3]),
                    "updated_at": _iso(row[4]),
                }
            )
        return result


async def get_event_with_responses(event_id: str) -> dict[str, Any] | None:
    event = await get_event(event_id)
    if not event:
        return None
    return {"event": event, "responses": await get_responses(event_id)}


async def upsert_response(
    event_id: str,
    name: str,
    availability: dict[str, list[str]],
    plus_one: str | None = None,
) -> dict[str, Any]:
    """Insert or overwrite the response for (event_id, name) in one statement."""
    now = datetime.now(UTC)
    async with _get_connection() as conn:
        await conn.execute(
            """INSERT INTO responses (event_id, name, plus_one, availability, created_at, updated_at)
               VALUES (%s, %s, %s, %s, %s, %s)
               ON CONFLICT (event_id, name) DO UPDATE SET
                   plus_one = EXCLUDED.plus_one,
                   availability = EXCLUDED.availability,
                   updated_at = EXCLUDED.updated_at""",
            (event_id, name, plus_one, Json(availability), now, now),
        )
        return {
            "event_id": event_id,
            "name": name,
            "plus_one": plus_one,
            "availability": availability,
            "updated_at": now.isoformat(),
        }


async def update_event_details(
    event_id: str,
    title: str,
    location: str | None,
    description: str | None,
) -> bool:
    async with _get_connection() as conn:
        cur = await conn.execute(
            "UPDATE events SET title = %s, location = %s, description = %s WHERE id = %s RETURNING id",
            (title, location, description, event_id),
        )
        return await cur.fetchone() is not None


async def delete_response(event_id: str, name: str) -> int:
    async with _get_connection() as conn:
        rows = await conn.execute(
            "DELETE FROM responses WHERE event_id = %s AND name = %s RETURNING id",
            (event_id, name),
        )
        count = 0
        async for _ in rows:
            count += 1
        return count
