# tests/unit/cache/test_unit_sqlite_store.py — v1
"""Tests for cache/sqlite_store.py."""

from __future__ import annotations

import pytest

from phasekit.cache.sqlite_store import SqliteStateStore
from phasekit.core.models import PhaseStateRecord


@pytest.fixture
def store(tmp_path):
    s = SqliteStateStore(tmp_path / "state" / "phase_state.db")
    yield s
    s.close()


class TestSqliteStateStore:
    @pytest.mark.asyncio
    async def test_put_get_upsert(self, store):
        await store.put(PhaseStateRecord(series="web", version="1.0.0", phase_id="A", inputs={"x": 1}))
        await store.put(PhaseStateRecord(series="web", version="1.0.0", phase_id="A", inputs={"x": 2}))
        record = await store.get("web", "1.0.0", "A")
        assert record is not None
        assert record.inputs == {"x": 2}
        assert await store.get("web", "1.0.0", "B") is None

    @pytest.mark.asyncio
    async def test_list_records_ordered(self, store):
        for version, phase_id in [("1.1.0", "A"), ("1.0.0", "B"), ("1.0.0", "A")]:
            await store.put(PhaseStateRecord(series="web", version=version, phase_id=phase_id))
        records = await store.list_records("web")
        assert [(r.version, r.phase_id) for r in records] == [
            ("1.0.0", "A"),
            ("1.0.0", "B"),
            ("1.1.0", "A"),
        ]
        assert len(await store.list_records("web", "1.1.0")) == 1

    @pytest.mark.asyncio
    async def test_persists_across_connections(self, tmp_path):
        db = tmp_path / "phase_state.db"
        first = SqliteStateStore(db)
        await first.put(PhaseStateRecord(series="web", version="1.0.0", phase_id="A"))
        first.close()
        second = SqliteStateStore(db)
        assert await second.get("web", "1.0.0", "A") is not None
        second.close()
