# tests/unit/cache/test_unit_json_store.py — v1
"""Tests for cache/json_store.py — file-per-phase state records."""

from __future__ import annotations

import pytest

from phasekit.cache.json_store import JsonStateStore
from phasekit.core.models import PhaseStateRecord


def _record(version="1.0.0", phase_id="P01", **kwargs):
    return PhaseStateRecord(series="web", version=version, phase_id=phase_id, **kwargs)


@pytest.fixture
def store(tmp_path):
    return JsonStateStore(tmp_path / "state")


class TestJsonStateStore:
    @pytest.mark.asyncio
    async def test_put_get(self, store):
        record = _record(inputs={"module": "auth"}, produced_paths=["src/auth.py"])
        await store.put(record)
        loaded = await store.get("web", "1.0.0", "P01")
        assert loaded == record

    @pytest.mark.asyncio
    async def test_missing(self, store):
        assert await store.get("web", "1.0.0", "P01") is None
        assert await store.last_inputs("web", "1.0.0", "P01") == {}

    @pytest.mark.asyncio
    async def test_upsert(self, store):
        await store.put(_record(inputs={"n": 1}))
        await store.put(_record(inputs={"n": 2}))
        assert await store.last_inputs("web", "1.0.0", "P01") == {"n": 2}

    @pytest.mark.asyncio
    async def test_list_records(self, store):
        await store.put(_record("1.0.0", "P01"))
        await store.put(_record("1.0.0", "P02"))
        await store.put(_record("1.1.0", "P01"))
        assert len(await store.list_records("web")) == 3
        assert [r.phase_id for r in await store.list_records("web", "1.0.0")] == ["P01", "P02"]
        assert await store.list_records("api") == []

    @pytest.mark.asyncio
    async def test_corrupt_file_ignored(self, store, tmp_path):
        await store.put(_record())
        path = tmp_path / "state" / "phase_state" / "web" / "1.0.0" / "P01.json"
        path.write_text("{not json", encoding="utf-8")
        assert await store.get("web", "1.0.0", "P01") is None
        assert await store.list_records("web") == []
