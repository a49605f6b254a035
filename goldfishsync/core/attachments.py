"""Download note attachments (voice recordings) into the attachments folder."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import aiofiles
import aiofiles.os

from goldfishsync.core.errors import AttachmentError
from goldfishsync.core.models import ErrorKind, RemoteNote, SyncIssue
from goldfishsync.utils.templates import attachment_file_name

if TYPE_CHECKING:
    from goldfishsync.sources.remote.client import RemoteNotesClient

logger = logging.getLogger(__name__)

# The backend deletes attachment files after this long
RETENTION_WINDOW = timedelta(days=7)


class AttachmentFetcher:
    """
    Idempotently materializes note attachments.

    Attachments are keyed by their reference, not by note identity, so a
    fetch never interferes with note files and can run alongside the
    reconciliation loop.
    """

    def __init__(self, client: RemoteNotesClient, attachments_dir: Path):
        self.client = client
        self.attachments_dir = Path(attachments_dir)
        self._tasks: list[asyncio.Task[SyncIssue | None]] = []

    def local_path(self, ref: str) -> Path:
        name = attachment_file_name(ref)
        if not name:
            raise AttachmentError(ref, f"Attachment reference '{ref}' has no file name")
        return self.attachments_dir / name

    async def _download(self, ref: str, target: Path) -> None:
        try:
            data = await self.client.fetch_attachment(ref)
        except Exception as e:
            raise AttachmentError(ref, f"Failed to download attachment {ref}: {e}") from e

        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".goldfish-", suffix=".part")
        os.close(fd)
        try:
            async with aiofiles.open(tmp_name, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(tmp_name, target)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise AttachmentError(ref, f"Failed to write attachment {target}: {e}") from e

    @staticmethod
    def is_expired(note: RemoteNote, now: datetime | None = None) -> bool:
        if note.created_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        return note.created_at < current - RETENTION_WINDOW

    async def ensure(self, note: RemoteNote) -> SyncIssue | None:
        """
        Make sure the attachment of ``note`` exists locally.

        Returns:
            None on success (or when nothing had to be done), otherwise a
            warning describing why the attachment is missing
        """
        ref = note.attachment_ref
        if not ref:
            return None

        try:
            target = self.local_path(ref)
            if await aiofiles.os.path.exists(target):
                logger.debug(f"File '{target}' already exists")
                return None
            await aiofiles.os.makedirs(self.attachments_dir, exist_ok=True)
            await self._download(ref, target)
        except (AttachmentError, OSError, ValueError) as e:
            if self.is_expired(note):
                message = (
                    f"Failed to download audio file for note {ref} "
                    f"since audio files older than {RETENTION_WINDOW.days} days are deleted."
                )
                kind = ErrorKind.ATTACHMENT_EXPIRED
            else:
                message = f"Failed to download audio file for note {ref}."
                kind = ErrorKind.ATTACHMENT_FETCH_ERROR
            logger.warning(f"{message} ({e})")
            return SyncIssue(kind=kind, message=message, note_id=note.id)

        logger.info(f"Downloaded attachment {target.name}")
        return None

    def schedule(self, note: RemoteNote) -> None:
        """Start fetching the attachment of ``note`` without waiting for it."""
        if note.attachment_ref:
            self._tasks.append(asyncio.create_task(self.ensure(note)))

    async def drain(self) -> list[SyncIssue]:
        """Wait for scheduled fetches and return their warnings."""
        tasks, self._tasks = self._tasks, []
        if not tasks:
            return []
        results = await asyncio.gather(*tasks)
        return [issue for issue in results if issue is not None]
