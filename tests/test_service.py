"""Tests for the session-level sync service."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from conftest import FakeRemoteClient, make_note

from goldfishsync.core.config import AppConfig
from goldfishsync.core.errors import SyncInProgress
from goldfishsync.core.service import AUTO_SYNC_JOB_ID, SessionEvent, SessionEventType, SessionEvents, SyncService
from goldfishsync.core.sync import NotesSyncEngine


class SlowClient(FakeRemoteClient):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.release = asyncio.Event()

    async def fetch_notes(self):
        await self.release.wait()
        return await super().fetch_notes()


def _service(config: AppConfig, client: FakeRemoteClient) -> SyncService:
    return SyncService(NotesSyncEngine(config, client), SessionEvents())


class TestPasses:
    @pytest.mark.asyncio
    async def test_overlapping_pass_is_rejected(self, app_config: AppConfig) -> None:
        client = SlowClient([make_note("a", "Alpha")])
        service = _service(app_config, client)

        first = asyncio.create_task(service.run_pass())
        await asyncio.sleep(0)
        assert service.is_syncing
        with pytest.raises(SyncInProgress):
            await service.run_pass()

        client.release.set()
        result = await first
        assert result.stats["created"] == 1
        assert service.last_result is result
        assert not service.is_syncing

    @pytest.mark.asyncio
    async def test_note_changed_event_reconciles_one_note(self, app_config: AppConfig, notes_dir: Path) -> None:
        service = _service(app_config, FakeRemoteClient())
        service.events.publish(SessionEvent(SessionEventType.NOTE_CHANGED, make_note("a", "Pushed", owner_id="owner-1")))
        service.events.close()

        await service.run_event_loop()

        assert (notes_dir / "Pushed.md").exists()

    @pytest.mark.asyncio
    async def test_changes_to_other_owners_notes_are_ignored(self, app_config: AppConfig, notes_dir: Path) -> None:
        service = _service(app_config, FakeRemoteClient())
        service.events.publish(SessionEvent(SessionEventType.NOTE_CHANGED, make_note("a", "Foreign", owner_id="owner-2")))
        service.events.publish(SessionEvent(SessionEventType.NOTE_CHANGED, make_note("b", "Anonymous")))
        service.events.close()

        await service.run_event_loop()

        assert not (notes_dir / "Foreign.md").exists()
        assert not (notes_dir / "Anonymous.md").exists()
        assert service.last_result is None


class TestAutoSync:
    @pytest.mark.asyncio
    async def test_start_replaces_pending_job_and_sign_out_stops_it(self, app_config: AppConfig) -> None:
        service = _service(app_config, FakeRemoteClient())
        service.start_auto_sync(30)
        service.start_auto_sync(15)

        jobs = service.scheduler.get_jobs()
        assert [job.id for job in jobs] == [AUTO_SYNC_JOB_ID]
        assert jobs[0].trigger.interval.total_seconds() == 15 * 60

        await service.handle_event(SessionEvent(SessionEventType.SIGNED_OUT))
        assert not service.auto_sync_enabled
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_manual_sync_runs_with_auto_sync_enabled(self, app_config: AppConfig, notes_dir: Path) -> None:
        service = _service(app_config, FakeRemoteClient([make_note("a", "Alpha")]))
        service.start_auto_sync(30)

        result = await service.sync_now()

        assert result.stats["created"] == 1
        assert service.auto_sync_enabled
        await service.shutdown()
