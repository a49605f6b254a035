"""Tests for the sync history database."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

from goldfishsync.utils.db import SyncStateDB

if TYPE_CHECKING:
    from pathlib import Path


@pytest_asyncio.fixture
async def state_db(tmp_path: Path) -> SyncStateDB:
    db = SyncStateDB(tmp_path / "nested" / "state.db")
    await db.initialize()
    return db


@pytest.mark.asyncio
async def test_no_runs_yet(state_db: SyncStateDB) -> None:
    assert await state_db.last_success() is None
    assert await state_db.recent_runs() == []


@pytest.mark.asyncio
async def test_last_success_ignores_failures_and_other_kinds(state_db: SyncStateDB) -> None:
    started = datetime(2024, 1, 1, tzinfo=timezone.utc)
    await state_db.record_run("pull", started, "success", stats={"created": 2}, mode="overwrite")
    first = await state_db.last_success()
    await state_db.record_run("pull", started, "failed", error="boom")
    await state_db.record_run("push", started, "success")

    assert await state_db.last_success() == first
    assert first is not None and first > started


@pytest.mark.asyncio
async def test_recent_runs_newest_first(state_db: SyncStateDB) -> None:
    started = datetime(2024, 1, 1, tzinfo=timezone.utc)
    await state_db.record_run("pull", started, "success", stats={"created": 1})
    await state_db.record_run("push", started, "failed", error="offline")

    runs = await state_db.recent_runs()
    assert [run["kind"] for run in runs] == ["push", "pull"]
    assert runs[1]["stats"] == {"created": 1}
    assert runs[0]["error"] == "offline"


@pytest.mark.asyncio
async def test_clear(state_db: SyncStateDB) -> None:
    await state_db.record_run("pull", datetime.now(timezone.utc), "success")
    await state_db.clear()
    assert await state_db.recent_runs() == []
