from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from datepoll import db
from datepoll.config import clear_settings_cache


class FakeEventStore:
    """In-memory stand-in for the datepoll.db event/response functions."""

    def __init__(self):
        self.events = {}
        self.admin_codes = {}
        self.responses = {}
        self._next_id = 0

    async def create_event(self, title, admin_code, host_dates, time_slots, location=None, description=None):
        self._next_id += 1
        event_id = f"evt{self._next_id:07d}"
        self.events[event_id] = {
            "id": event_id,
            "title": title,
            "location": location or None,
            "description": description or None,
            "host_dates": list(host_dates),
            "time_slots": list(time_slots),
            "created_at": datetime.now(UTC).isoformat(),
        }
        self.admin_codes[event_id] = admin_code
        self.responses[event_id] = []
        return dict(self.events[event_id])

    async def get_event(self, event_id):
        event = self.events.get(event_id)
        return dict(event) if event else None

    async def get_admin_code(self, event_id):
        return self.admin_codes.get(event_id)

    async def get_responses(self, event_id):
        return [dict(r) for r in self.responses.get(event_id, [])]

    async def get_event_with_responses(self, event_id):
        event = await self.get_event(event_id)
        if not event:
            return None
        return {"event": event, "responses": await self.get_responses(event_id)}

    async def upsert_response(self, event_id, name, availability, plus_one=None):
        now = datetime.now(UTC).isoformat()
        rows = self.responses.setdefault(event_id, [])
        for row in rows:
            if row["name"] == name:
                row.update(availability=availability, plus_one=plus_one, updated_at=now)
                break
        else:
            rows.append({
                "name": name,
                "plus_one": plus_one,
                "availability": availability,
                "created_at": now,
                "updated_at": now,
            })
        return {"event_id": event_id, "name": name, "plus_one": plus_one, "availability": availability, "updated_at": now}

    async def update_event_details(self, event_id, title, location, description):
        event = self.events.get(event_id)
        if not event:
            return False
        event.update(title=title, location=location, description=description)
        return True

    async def delete_response(self, event_id, name):
        rows = self.responses.get(event_id, [])
        kept = [r for r in rows if r["name"] != name]
        self.responses[event_id] = kept
        return len(rows) - len(kept)


@pytest.fixture
def fake_db(monkeypatch):
    store = FakeEventStore()
    for fn in (
        "create_event",
        "get_event",
        "get_admin_code",
        "get_responses",
        "get_event_with_responses",
        "upsert_response",
        "update_event_details",
        "delete_response",
    ):
        monkeypatch.setattr(db, fn, getattr(store, fn))
    return store


@pytest.fixture
def client(monkeypatch, fake_db):
    monkeypatch.delenv("ENABLE_DB", raising=False)
    monkeypatch.setenv("RATE_LIMIT_BACKEND", "memory")
    clear_settings_cache()

    import datepoll.main as main

    with TestClient(main.app) as c:
        yield c
    clear_settings_cache()
