"""Shared fixtures: stores, orchestrator, HTTP client."""

import asyncio
from typing import Any, Dict, Optional, Set

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from modelforge.core.errors import StoreError
from modelforge.modules.collection.notifications import Notifier
from modelforge.modules.collection.service import DataOrchestrator
from modelforge.modules.store.json_store import JsonFileStore
from modelforge.modules.store.memory_store import MemoryStore
from modelforge.modules.store.sql_store import SqlStore


def run(coro):
    """Drive one orchestrator/store coroutine to completion."""
    return asyncio.run(coro)


class FlakyStore(MemoryStore):
    """MemoryStore that raises StoreError for selected operations or ids."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_ops: Set[str] = set()
        self.fail_ids: Set[str] = set()

    def _check(self, op: str, entity_id: Optional[str] = None) -> None:
        if op in self.fail_ops or (entity_id is not None and entity_id in self.fail_ids):
            raise StoreError(f"simulated {op} failure")

    async def list(self, kind):
        self._check("list")
        return await super().list(kind)

    async def add(self, kind, fields):
        self._check("add")
        return await super().add(kind, fields)

    async def update(self, kind, entity_id, patch):
        self._check("update", entity_id)
        return await super().update(kind, entity_id, patch)

    async def delete(self, kind, entity_id):
        self._check("delete", entity_id)
        return await super().delete(kind, entity_id)

    async def bulk_add(self, kind, items):
        self._check("bulk_add")
        return await super().bulk_add(kind, items)

    async def save_settings(self, settings):
        self._check("save_settings")
        return await super().save_settings(settings)

    async def clear_all(self):
        self._check("clear_all")
        return await super().clear_all()


@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture(params=["memory", "json", "sql"])
def store(request, tmp_path, sql_engine):
    """Every EntityStore implementation, fresh per test."""
    if request.param == "memory":
        return MemoryStore()
    if request.param == "json":
        return JsonFileStore(root=tmp_path / "storage")
    return SqlStore(engine=sql_engine, create_schema=True)


@pytest.fixture
def notifier():
    return Notifier(ttl_seconds=60)


@pytest.fixture
def flaky_store():
    return FlakyStore()


@pytest.fixture
def orch(notifier):
    return DataOrchestrator(MemoryStore(), notifier)


@pytest.fixture
def flaky_orch(flaky_store, notifier):
    return DataOrchestrator(flaky_store, notifier)


@pytest.fixture
def seeded(orch) -> Dict[str, Any]:
    """
    Two systems, three armies, three models:
      40k: Space Marines, Orks   AoS: Stormcast
      Intercessor (SM), Ork Boy (Orks), Liberator (Stormcast)
    """
    async def _build():
        wh = await orch.add_game_system({"name": "Warhammer 40,000"})
        aos = await orch.add_game_system({"name": "Age of Sigmar"})
        sm = await orch.add_army({"name": "Space Marines", "game_system_id": wh.id})
        orks = await orch.add_army({"name": "Orks", "game_system_id": wh.id})
        sce = await orch.add_army({"name": "Stormcast", "game_system_id": aos.id})
        m1 = await orch.add_model({"name": "Intercessor", "game_system_id": wh.id, "army_ids": [sm.id], "quantity": 10, "status": "Painted"})
        m2 = await orch.add_model({"name": "Ork Boy", "game_system_id": wh.id, "army_ids": [orks.id], "quantity": 20, "status": "Primed"})
        m3 = await orch.add_model({"name": "Liberator", "game_system_id": aos.id, "army_ids": [sce.id], "quantity": 5, "status": "Ready to Game"})
        return {"wh": wh, "aos": aos, "sm": sm, "orks": orks, "sce": sce, "m1": m1, "m2": m2, "m3": m3}

    return run(_build())


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("SEED_ON_STARTUP", raising=False)
    monkeypatch.delenv("EXPORT_IMPORT_ENABLED", raising=False)
    from modelforge.main import create_app

    app = create_app(store=MemoryStore(), notifier=Notifier(ttl_seconds=60))
    with TestClient(app) as c:
        yield c
