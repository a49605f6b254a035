"""Shared fixtures for GoldfishSync tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

from goldfishsync.core.config import AppConfig, GeneralConfig, NotesConfig, RemoteConfig
from goldfishsync.core.models import RemoteNote

TEMPLATE = """---
uuid: "${uuid}"
title: "${title}"
tags: ${tags}
created_date: "${created_date}"
---
${cleaned}
"""


class FakeRemoteClient:
    """In-memory stand-in for RemoteNotesClient."""

    def __init__(self, notes: list[RemoteNote] | None = None, notes_dir: Path | None = None):
        self.notes = list(notes or [])
        self.notes_dir = notes_dir
        self.records: dict[str, dict] = {note.id: note.to_wire() for note in self.notes}
        self.deleted_calls: list[list[str]] = []
        self.files_at_delete: list[list[str]] = []
        self.upserted: list[dict] = []
        self.attachments: dict[str, bytes] = {}
        self.fail_delete = False
        self.fail_fetch = False

    async def fetch_notes(self) -> list[RemoteNote]:
        if self.fail_fetch:
            raise ValueError("backend unavailable")
        return list(self.notes)

    async def fetch_notes_by_ids(self, ids: list[str]) -> list[dict]:
        return [dict(self.records[note_id]) for note_id in ids if note_id in self.records]

    async def upsert_notes(self, records: list[dict]) -> None:
        self.upserted.extend(records)

    async def mark_deleted(self, ids: list[str], when: datetime | None = None) -> None:
        if self.notes_dir is not None:
            self.files_at_delete.append(sorted(path.name for path in self.notes_dir.glob("*.md")))
        if self.fail_delete:
            raise httpx.ConnectError("connection refused")
        self.deleted_calls.append(list(ids))

    async def create_empty_note(self) -> RemoteNote:
        note = RemoteNote(id="empty-1", title="", content="", created_at=datetime(2024, 3, 1, tzinfo=timezone.utc))
        self.records[note.id] = note.to_wire()
        return note

    async def fetch_attachment(self, ref: str) -> bytes:
        if ref not in self.attachments:
            raise FileNotFoundError(ref)
        return self.attachments[ref]


def make_note(note_id: str, title: str | None = "Note", content: str | None = "<p>Hello</p>", **kwargs) -> RemoteNote:
    created = kwargs.pop("created_at", datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc))
    return RemoteNote(
        id=note_id,
        title=title,
        content=content,
        created_at=created,
        modified_at=kwargs.pop("modified_at", created),
        **kwargs,
    )


@pytest.fixture
def notes_dir(tmp_path: Path) -> Path:
    return tmp_path / "notes"


@pytest.fixture
def app_config(tmp_path: Path, notes_dir: Path) -> AppConfig:
    return AppConfig(
        general=GeneralConfig(data_dir=tmp_path / "data"),
        remote=RemoteConfig(api_key="anon", access_token="token", owner_id="owner-1"),
        notes=NotesConfig(
            notes_folder=notes_dir,
            attachments_folder=None,
            download_attachments=False,
            note_template=TEMPLATE,
            sync_mode="overwrite",
        ),
    )
