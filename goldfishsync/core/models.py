"""Data models shared by the sync engine, the note store and the remote client."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SyncMode(str, Enum):
    """Policy for how remote notes are materialized locally."""

    OVERWRITE = "overwrite"
    NEW_ONLY = "new-only"
    DELETE = "delete"


class NoteAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


class ErrorKind(str, Enum):
    INVALID_TEMPLATE = "invalid_template"
    PARSE_WARNING = "parse_warning"
    FILESYSTEM_ERROR = "filesystem_error"
    ATTACHMENT_EXPIRED = "attachment_expired"
    ATTACHMENT_FETCH_ERROR = "attachment_fetch_error"
    REMOTE_BATCH_ERROR = "remote_batch_error"
    REMOTE_DELETE_ERROR = "remote_delete_error"


class RemoteNote(BaseModel):
    """A note record as stored by the remote backend.

    The wire format has used both ``uuid``/``audio_url`` and
    ``id``/``attachment_ref`` for the identity and attachment fields; both
    spellings are accepted.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "uuid"))
    owner_id: str | None = Field(default=None, validation_alias=AliasChoices("owner_id", "user_id"))
    title: str | None = None
    content: str | None = None
    original_transcript: str | None = None
    attachment_ref: str | None = Field(
        default=None,
        validation_alias=AliasChoices("attachment_ref", "audio_url"),
    )
    created_at: datetime | None = None
    modified_at: datetime | None = None
    deleted_at: datetime | None = None

    @field_validator("created_at", "modified_at", "deleted_at", mode="after")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Treat naive timestamps from the backend as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_wire(self) -> dict[str, Any]:
        """Serialize using the backend's column names."""
        return {
            "uuid": self.id,
            "title": self.title,
            "content": self.content,
            "original_transcript": self.original_transcript,
            "audio_url": self.attachment_ref,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "modified_at": self.modified_at.isoformat() if self.modified_at else None,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }


@dataclass
class LocalArtifact:
    """A markdown file in the managed folder that carries a note identity."""

    path: Path
    identity: str
    frontmatter: dict[str, str]
    body: str
    last_modified: datetime


@dataclass
class SyncIssue:
    """A non-fatal problem recorded during a pass."""

    kind: ErrorKind
    message: str
    note_id: str | None = None
    path: Path | None = None


@dataclass
class NoteResult:
    note_id: str
    action: NoteAction
    path: Path | None = None
    issue: SyncIssue | None = None


@dataclass
class SyncResult:
    """Outcome of reconciling one batch of remote notes."""

    notes: list[NoteResult] = field(default_factory=list)
    warnings: list[SyncIssue] = field(default_factory=list)
    deleted_remote: list[str] = field(default_factory=list)

    def count(self, action: NoteAction) -> int:
        return sum(1 for result in self.notes if result.action == action)

    @property
    def failures(self) -> list[NoteResult]:
        return [result for result in self.notes if result.action == NoteAction.FAILED]

    @property
    def stats(self) -> dict[str, int]:
        return {
            "created": self.count(NoteAction.CREATED),
            "updated": self.count(NoteAction.UPDATED),
            "unchanged": self.count(NoteAction.UNCHANGED),
            "skipped": self.count(NoteAction.SKIPPED),
            "failed": self.count(NoteAction.FAILED),
            "deleted_remote": len(self.deleted_remote),
            "warnings": len(self.warnings),
        }
