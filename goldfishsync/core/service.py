"""Session-level sync service.

Owns the single sync engine of a session and serializes every pass that
touches the managed folder: manual runs, the periodic auto-sync job and
passes triggered by session events all go through :class:`SyncService`.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from goldfishsync.core.errors import SyncError, SyncInProgress
from goldfishsync.core.models import RemoteNote, SyncMode, SyncResult
from goldfishsync.core.sync import NotesSyncEngine

logger = logging.getLogger(__name__)

AUTO_SYNC_JOB_ID = "goldfish_auto_sync"


class SessionEventType(str, Enum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    NOTE_CHANGED = "note_changed"
    SYNC_REQUESTED = "sync_requested"
    CLOSED = "closed"


@dataclass
class SessionEvent:
    type: SessionEventType
    note: RemoteNote | None = None


class SessionEvents:
    """Channel through which the session layer reports auth and note changes."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[SessionEvent] = asyncio.Queue()

    def publish(self, event: SessionEvent) -> None:
        self._queue.put_nowait(event)

    async def receive(self) -> SessionEvent:
        return await self._queue.get()

    def close(self) -> None:
        self.publish(SessionEvent(SessionEventType.CLOSED))


class SyncService:
    """
    Runs sync passes for one session, one at a time.

    Features:
    - Rejects overlapping passes with SyncInProgress
    - Optional periodic pass via APScheduler
    - Reacts to session events (sign-in/out, remote note changes)
    """

    def __init__(
        self,
        engine: NotesSyncEngine,
        events: SessionEvents | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ):
        """
        Initialize the service.

        Args:
            engine: Sync engine owned by this session
            events: Session event channel
            scheduler: Scheduler used for auto-sync (created lazily if omitted)
        """
        self.engine = engine
        self.events = events or SessionEvents()
        self.scheduler = scheduler
        self.last_result: SyncResult | None = None
        self._lock = asyncio.Lock()

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    @property
    def auto_sync_enabled(self) -> bool:
        return self.scheduler is not None and self.scheduler.get_job(AUTO_SYNC_JOB_ID) is not None

    async def run_pass(self, mode: SyncMode | None = None, notes: list[RemoteNote] | None = None) -> SyncResult:
        """
        Run one pass, failing fast if another one is in flight.

        Args:
            mode: Sync mode override
            notes: Reconcile only these notes instead of fetching the remote batch

        Raises:
            SyncInProgress: If a pass is already running
        """
        if self._lock.locked():
            raise SyncInProgress("A sync pass is already running")
        async with self._lock:
            if notes is None:
                result = await self.engine.sync(mode)
            else:
                result = await self.engine.sync_notes(notes, mode)
        self.last_result = result
        return result

    async def sync_now(self, mode: SyncMode | None = None) -> SyncResult:
        """Manual pass; the pending periodic trigger is held back until it finishes."""
        job = self.scheduler.get_job(AUTO_SYNC_JOB_ID) if self.scheduler is not None else None
        if job is not None:
            job.pause()
        try:
            return await self.run_pass(mode)
        finally:
            if job is not None and self.scheduler.get_job(AUTO_SYNC_JOB_ID) is not None:
                job.resume()

    async def _scheduled_pass(self) -> None:
        try:
            result = await self.run_pass()
        except SyncInProgress:
            logger.info("Skipping scheduled sync, a pass is already running")
            return
        except SyncError as e:
            logger.error(f"Scheduled sync failed: {e}")
            return
        logger.info(f"Scheduled sync finished: {result.stats}")

    def start_auto_sync(self, interval_minutes: int | None = None, *, run_now: bool = False) -> None:
        """
        Schedule periodic passes, replacing any pending trigger.

        Args:
            interval_minutes: Interval, defaults to the configured one
            run_now: Also run the first pass immediately
        """
        self.disable_auto_sync()
        minutes = interval_minutes or self.engine.settings.sync_interval_minutes
        if self.scheduler is None:
            self.scheduler = AsyncIOScheduler()
        if not self.scheduler.running:
            self.scheduler.start()

        job_kwargs = {}
        if run_now:
            job_kwargs["next_run_time"] = datetime.now().astimezone()
        self.scheduler.add_job(
            self._scheduled_pass,
            trigger=IntervalTrigger(minutes=minutes),
            id=AUTO_SYNC_JOB_ID,
            name="Goldfish Notes auto sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_kwargs,
        )
        logger.info(f"Auto sync enabled every {minutes} minutes")

    def disable_auto_sync(self) -> None:
        if self.scheduler is None or self.scheduler.get_job(AUTO_SYNC_JOB_ID) is None:
            return
        self.scheduler.remove_job(AUTO_SYNC_JOB_ID)
        logger.info("Auto sync disabled")

    def _owns(self, note: RemoteNote) -> bool:
        owner_id = self.engine.config.remote.owner_id
        return bool(owner_id) and note.owner_id == owner_id

    async def handle_event(self, event: SessionEvent) -> None:
        """React to one session event; pass-level errors are logged, not raised."""
        try:
            if event.type == SessionEventType.SIGNED_IN:
                if self.engine.settings.sync_on_startup:
                    self.start_auto_sync(run_now=True)
            elif event.type == SessionEventType.SIGNED_OUT:
                self.disable_auto_sync()
                logger.warning("Signed out of Goldfish Notes, auto sync stopped")
            elif event.type == SessionEventType.NOTE_CHANGED and event.note is not None:
                if self._owns(event.note):
                    await self.run_pass(notes=[event.note])
                else:
                    logger.debug(f"Ignoring change to note {event.note.id} of another owner")
            elif event.type == SessionEventType.SYNC_REQUESTED:
                await self.sync_now()
        except SyncInProgress:
            logger.info(f"Ignoring {event.type.value} event, a pass is already running")
        except SyncError as e:
            logger.error(f"Sync triggered by {event.type.value} failed: {e}")

    async def run_event_loop(self) -> None:
        """Consume session events until the channel is closed."""
        while True:
            event = await self.events.receive()
            if event.type == SessionEventType.CLOSED:
                break
            await self.handle_event(event)

    async def shutdown(self) -> None:
        self.disable_auto_sync()
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Sync service stopped")
