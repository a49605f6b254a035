"""Tests for attachment downloads."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest
from conftest import FakeRemoteClient, make_note

from goldfishsync.core.attachments import AttachmentFetcher
from goldfishsync.core.models import ErrorKind

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def client() -> FakeRemoteClient:
    client = FakeRemoteClient()
    client.attachments["owner/rec.m4a"] = b"audio-bytes"
    return client


class TestAttachmentFetcher:
    @pytest.mark.asyncio
    async def test_downloads_missing_attachment(self, client: FakeRemoteClient, tmp_path: Path) -> None:
        fetcher = AttachmentFetcher(client, tmp_path / "att")
        issue = await fetcher.ensure(make_note("a", attachment_ref="owner/rec.m4a"))
        assert issue is None
        assert (tmp_path / "att" / "rec.m4a").read_bytes() == b"audio-bytes"

    @pytest.mark.asyncio
    async def test_existing_file_is_not_downloaded_again(self, client: FakeRemoteClient, tmp_path: Path) -> None:
        target = tmp_path / "att"
        target.mkdir()
        (target / "rec.m4a").write_bytes(b"local copy")
        client.attachments.clear()

        issue = await AttachmentFetcher(client, target).ensure(make_note("a", attachment_ref="owner/rec.m4a"))
        assert issue is None
        assert (target / "rec.m4a").read_bytes() == b"local copy"

    @pytest.mark.asyncio
    async def test_note_without_attachment(self, client: FakeRemoteClient, tmp_path: Path) -> None:
        assert await AttachmentFetcher(client, tmp_path).ensure(make_note("a")) is None

    @pytest.mark.asyncio
    async def test_failure_on_recent_note(self, client: FakeRemoteClient, tmp_path: Path) -> None:
        note = make_note("a", attachment_ref="missing.m4a", created_at=datetime.now(timezone.utc))
        issue = await AttachmentFetcher(client, tmp_path).ensure(note)
        assert issue is not None
        assert issue.kind == ErrorKind.ATTACHMENT_FETCH_ERROR
        assert not (tmp_path / "missing.m4a").exists()

    @pytest.mark.asyncio
    async def test_failure_on_old_note_mentions_retention(self, client: FakeRemoteClient, tmp_path: Path) -> None:
        created = datetime.now(timezone.utc) - timedelta(days=8)
        note = make_note("a", attachment_ref="missing.m4a", created_at=created)
        issue = await AttachmentFetcher(client, tmp_path).ensure(note)
        assert issue is not None
        assert issue.kind == ErrorKind.ATTACHMENT_EXPIRED
        assert "older than 7 days" in issue.message

    @pytest.mark.asyncio
    async def test_unwritable_attachments_folder_becomes_a_warning(
        self, client: FakeRemoteClient, tmp_path: Path
    ) -> None:
        blocker = tmp_path / "att"
        blocker.write_text("not a folder")
        note = make_note("a", attachment_ref="owner/rec.m4a", created_at=datetime.now(timezone.utc))

        issue = await AttachmentFetcher(client, blocker).ensure(note)
        assert issue is not None
        assert issue.kind == ErrorKind.ATTACHMENT_FETCH_ERROR
        assert blocker.read_text() == "not a folder"

    @pytest.mark.asyncio
    async def test_scheduled_fetches_are_drained(self, client: FakeRemoteClient, tmp_path: Path) -> None:
        fetcher = AttachmentFetcher(client, tmp_path)
        fetcher.schedule(make_note("a", attachment_ref="owner/rec.m4a"))
        fetcher.schedule(make_note("b", attachment_ref="gone.m4a", created_at=datetime.now(timezone.utc)))
        fetcher.schedule(make_note("c"))

        issues = await fetcher.drain()
        assert [issue.note_id for issue in issues] == ["b"]
        assert (tmp_path / "rec.m4a").exists()
        assert await fetcher.drain() == []
