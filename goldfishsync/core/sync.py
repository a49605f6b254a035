"""Core synchronization logic for Goldfish Notes → Markdown."""

import logging
from datetime import datetime, timezone
from pathlib import Path

import httpx
from pydantic import ValidationError

from goldfishsync.core.attachments import AttachmentFetcher
from goldfishsync.core.config import AppConfig
from goldfishsync.core.errors import InvalidTemplate, NotAuthenticated, RemoteBatchError, SyncError
from goldfishsync.core.index import LocalIndex
from goldfishsync.core.models import (
    ErrorKind,
    LocalArtifact,
    NoteAction,
    NoteResult,
    RemoteNote,
    SyncIssue,
    SyncMode,
    SyncResult,
)
from goldfishsync.sources.notes.markdown import MarkdownNoteStore
from goldfishsync.sources.remote.client import RemoteNotesClient
from goldfishsync.utils import frontmatter
from goldfishsync.utils.converters import html_to_markdown, markdown_to_html
from goldfishsync.utils.db import SyncStateDB
from goldfishsync.utils.paths import resolve_note_path
from goldfishsync.utils.templates import fill_template, note_title

logger = logging.getLogger(__name__)

# Remote deletes are sent in chunks so one failed request only affects its chunk
DELETE_CHUNK_SIZE = 50
EMBED_TEMPLATE = "![[${linkText}]]\n\n"


class NotesSyncEngine:
    """
    Orchestrates one-way synchronization from Goldfish Notes to markdown.

    This is the CORE SYNC ENGINE that brings together:
    - Remote client (source: the hosted notes table)
    - Markdown store (destination: one managed folder)
    - Local index (identity -> file, rebuilt from the folder)
    - Attachment fetcher (voice recordings)

    Sync Algorithm (per pass):
    1. Fetch live notes, apply the notes filter, convert HTML to markdown
    2. For each note, in the order received:
       - known identity with its file on disk: rewrite only if the rendered
         text differs (never in new-only mode)
       - otherwise: skip in new-only mode, else resolve a free path, create
         the file and index it
    3. Delete mode: flag every note that is now safely on disk as deleted
       remotely, after the loop
    Notes are processed strictly one at a time, so each write is visible in
    the index before the next collision check.
    """

    def __init__(
        self,
        config: AppConfig,
        client: RemoteNotesClient,
        store: MarkdownNoteStore | None = None,
        state_db: SyncStateDB | None = None,
    ):
        """
        Initialize the sync engine.

        Args:
            config: Application configuration
            client: Remote client for this session
            store: Markdown store, defaults to one over the configured notes folder
            state_db: Optional sync history database
        """
        self.config = config
        self.settings = config.notes
        self.client = client
        self.store = store or MarkdownNoteStore(config.notes.notes_folder)
        self.state_db = state_db
        self.index = LocalIndex()
        self.attachments: AttachmentFetcher | None = None
        if self.settings.download_attachments and self.settings.attachments_folder:
            self.attachments = AttachmentFetcher(client, self.settings.attachments_folder)
        self._scan_warnings: list[SyncIssue] = []
        self._initialized = False

    async def initialize(self) -> None:
        """
        Validate the template, create folders and build the local index.

        Raises:
            InvalidTemplate: If the note template has no identity placeholder
            OSError: If the managed folders cannot be created
        """
        frontmatter.validate_template(self.settings.note_template)
        await self._ensure_folders()
        if self.state_db is not None:
            await self.state_db.initialize()
        self.index = await self.store.scan()
        # Reported with the next pass
        self._scan_warnings = list(self.store.warnings)
        self._initialized = True
        logger.info("Sync engine initialized")

    async def _ensure_folders(self) -> None:
        await self.store.ensure_folder_exists()
        if self.attachments is not None:
            await self.store.ensure_folder_exists(self.attachments.attachments_dir)

    # Batch preparation

    def prepare_batch(self, notes: list[RemoteNote]) -> list[RemoteNote]:
        """Drop deleted and filtered-out notes and convert their content to markdown."""
        needle = self.settings.notes_filter
        prepared: list[RemoteNote] = []
        for note in notes:
            if note.is_deleted:
                continue
            if needle and needle not in (note.title or "") and needle not in (note.content or ""):
                continue
            prepared.append(
                note.model_copy(
                    update={
                        "content": html_to_markdown(note.content) if note.content else note.content,
                        "original_transcript": (
                            html_to_markdown(note.original_transcript)
                            if note.original_transcript
                            else note.original_transcript
                        ),
                    }
                )
            )
        skipped = len(notes) - len(prepared)
        if skipped:
            logger.debug(f"Excluded {skipped} deleted or filtered notes from the batch")
        return prepared

    # Reconciliation

    def _render(self, note: RemoteNote, mode: SyncMode) -> str:
        return fill_template(
            self.settings.note_template,
            note,
            deleted_stamp=mode == SyncMode.DELETE,
            date_format=self.settings.date_format,
            attachments_enabled=self.attachments is not None,
        )

    def _file_name(self, note: RemoteNote) -> str:
        return note_title(
            note,
            title_template=self.settings.title_template,
            auto_generate_title=self.settings.auto_generate_title,
            date_format=self.settings.date_format,
        )

    def _index_written(self, note_id: str, path: Path, content: str) -> None:
        parsed = frontmatter.parse(content, source=path)
        self.index.put(
            LocalArtifact(
                path=path,
                identity=note_id,
                frontmatter=parsed.frontmatter,
                body=parsed.body,
                last_modified=datetime.now().astimezone(),
            )
        )

    async def _reconcile_note(self, note: RemoteNote, mode: SyncMode) -> NoteResult:
        if note.is_deleted:
            return NoteResult(note.id, NoteAction.SKIPPED)

        artifact = self.index.get(note.id)
        path: Path | None = artifact.path if artifact else None
        try:
            content = self._render(note, mode)

            if artifact is not None and await self.store.exists(artifact.path):
                if mode == SyncMode.NEW_ONLY:
                    return NoteResult(note.id, NoteAction.SKIPPED, path)
                current = await self.store.read_text(artifact.path)
                if current == content:
                    return NoteResult(note.id, NoteAction.UNCHANGED, path)
                await self.store.write_text(artifact.path, content)
                self._index_written(note.id, artifact.path, content)
                logger.info(f"Updated note file: {artifact.path.name}")
                return NoteResult(note.id, NoteAction.UPDATED, path)

            if mode == SyncMode.NEW_ONLY:
                # Unknown identities and files removed outside of sync stay absent
                return NoteResult(note.id, NoteAction.SKIPPED, path)

            path = resolve_note_path(self.store.base_path, self._file_name(note), self.index, identity=note.id)
            if await self.store.exists(path):
                logger.info(f"Removing stray file at {path}")
                await self.store.delete(path)
            await self.store.write_text(path, content)
            self._index_written(note.id, path, content)
            logger.info(f"Created note file: {path.name}")
            return NoteResult(note.id, NoteAction.CREATED, path)

        except InvalidTemplate as e:
            logger.error(f"Failed to render note {note.id}: {e}")
            issue = SyncIssue(ErrorKind.INVALID_TEMPLATE, str(e), note_id=note.id, path=path)
        except (OSError, ValueError) as e:
            logger.error(f'Failed to write note "{path}" to the notes folder: {e}')
            issue = SyncIssue(ErrorKind.FILESYSTEM_ERROR, str(e), note_id=note.id, path=path)
        return NoteResult(note.id, NoteAction.FAILED, path, issue)

    async def _delete_remote(self, ids: list[str], result: SyncResult) -> None:
        for start in range(0, len(ids), DELETE_CHUNK_SIZE):
            chunk = ids[start:start + DELETE_CHUNK_SIZE]
            try:
                await self.client.mark_deleted(chunk)
            except (httpx.HTTPError, NotAuthenticated) as e:
                logger.error(f"Failed to delete {len(chunk)} notes from Goldfish Notes: {e}")
                result.warnings.append(
                    SyncIssue(ErrorKind.REMOTE_DELETE_ERROR, f"Failed to delete notes from Goldfish Notes: {e}")
                )
                continue
            result.deleted_remote.extend(chunk)

    async def reconcile(
        self,
        notes: list[RemoteNote],
        mode: SyncMode | None = None,
        *,
        delete_remote: bool = True,
    ) -> SyncResult:
        """
        Apply ``notes`` to the managed folder.

        Args:
            notes: Prepared notes (content already converted), in a stable order
            mode: Sync mode, defaults to the configured one
            delete_remote: Allow delete mode to flag notes remotely

        Returns:
            SyncResult with one entry per note plus warnings

        Raises:
            OSError: If the managed folders cannot be created
        """
        mode = SyncMode(mode or self.settings.sync_mode)
        if not self._initialized:
            await self.initialize()
        await self._ensure_folders()

        result = SyncResult()
        result.warnings.extend(self._scan_warnings)
        self._scan_warnings = []
        materialized: list[str] = []
        try:
            for note in notes:
                outcome = await self._reconcile_note(note, mode)
                result.notes.append(outcome)
                if outcome.action in (NoteAction.CREATED, NoteAction.UPDATED, NoteAction.UNCHANGED):
                    materialized.append(note.id)
                    if self.attachments is not None:
                        self.attachments.schedule(note)

            if mode == SyncMode.DELETE and delete_remote and materialized:
                await self._delete_remote(materialized, result)
        finally:
            # Scheduled downloads are always awaited, even when the pass fails
            if self.attachments is not None:
                result.warnings.extend(await self.attachments.drain())

        summary = ", ".join(f"{count} {name}" for name, count in result.stats.items())
        logger.info(f"Sync pass finished ({mode.value} mode): {summary}")
        return result

    async def sync_notes(self, notes: list[RemoteNote], mode: SyncMode | None = None) -> SyncResult:
        """Prepare and reconcile notes that were received outside a full fetch."""
        return await self.reconcile(self.prepare_batch(notes), mode)

    async def sync(self, mode: SyncMode | None = None) -> SyncResult:
        """
        Run one full pull pass.

        Raises:
            InvalidTemplate: If the note template is unusable
            NotAuthenticated: If no session is configured
            RemoteBatchError: If the remote batch cannot be fetched
        """
        started_at = datetime.now(timezone.utc)
        effective_mode = SyncMode(mode or self.settings.sync_mode)
        try:
            if not self._initialized:
                await self.initialize()
            try:
                remote_notes = await self.client.fetch_notes()
            except (httpx.HTTPError, ValidationError, ValueError) as e:
                logger.error(f"Failed to get notes from Goldfish Notes: {e}")
                raise RemoteBatchError("Failed to get notes from Goldfish Notes - check your credentials") from e
            result = await self.sync_notes(remote_notes, effective_mode)
        except (SyncError, OSError) as e:
            await self._record("pull", started_at, "failed", mode=effective_mode, error=str(e))
            raise

        await self._record("pull", started_at, "success", stats=result.stats, mode=effective_mode)
        return result

    async def _record(self, kind: str, started_at: datetime, status: str, **kwargs) -> None:
        if self.state_db is None:
            return
        try:
            await self.state_db.record_run(kind, started_at, status, **kwargs)
        except Exception as e:
            logger.warning(f"Failed to record {kind} pass: {e}")

    # Push-back and local queries

    @staticmethod
    def artifact_to_note(artifact: LocalArtifact) -> RemoteNote:
        """Turn a local file back into a partial note for upload."""
        deleted_at = None
        raw_deleted = artifact.frontmatter.get("deleted_at")
        if raw_deleted:
            try:
                deleted_at = datetime.fromisoformat(raw_deleted)
            except ValueError:
                logger.debug(f"Ignoring unreadable deleted_at in {artifact.path.name}")
        return RemoteNote(
            id=artifact.identity,
            title=artifact.frontmatter.get("title") or None,
            content=artifact.body or None,
            modified_at=artifact.last_modified,
            deleted_at=deleted_at,
        )

    async def locally_modified(self, since: datetime | None) -> list[LocalArtifact]:
        """Notes edited after ``since`` or renamed away from their frontmatter title."""
        self.index = await self.store.scan()
        modified = []
        for artifact in self.index:
            title = artifact.frontmatter.get("title")
            changed = since is None or artifact.last_modified > since
            renamed = bool(title) and title != artifact.path.stem
            if changed or renamed:
                modified.append(artifact)
        return modified

    async def push_local_changes(self) -> int:
        """
        Upload local edits to the remote table.

        Returns:
            Number of notes updated remotely
        """
        started_at = datetime.now(timezone.utc)
        if not self._initialized:
            await self.initialize()
        since = await self.state_db.last_success() if self.state_db is not None else None
        artifacts = await self.locally_modified(since)
        if not artifacts:
            logger.info("No local changes to push")
            return 0

        local_notes = {artifact.identity: self.artifact_to_note(artifact) for artifact in artifacts}
        try:
            remote_records = await self.client.fetch_notes_by_ids(list(local_notes))
            updates = []
            for record in remote_records:
                note = local_notes[record["uuid"]]
                content = markdown_to_html(note.content) if note.content else None
                if (note.title is None or note.title == record.get("title")) and (
                    content is None or content == record.get("content")
                ):
                    continue
                updates.append(
                    {
                        **record,
                        "title": note.title or record.get("title"),
                        "content": content or record.get("content"),
                        "modified_at": datetime.now(timezone.utc).isoformat(),
                        "deleted_at": note.deleted_at.isoformat() if note.deleted_at else record.get("deleted_at"),
                    }
                )
            await self.client.upsert_notes(updates)
        except httpx.HTTPError as e:
            await self._record("push", started_at, "failed", error=str(e))
            raise RemoteBatchError(f"Failed to push notes to Goldfish Notes: {e}") from e

        await self._record("push", started_at, "success", stats={"updated": len(updates)})
        logger.info(f"Pushed {len(updates)} local notes to Goldfish Notes")
        return len(updates)

    async def search(self, text: str) -> list[LocalArtifact]:
        """Managed notes whose frontmatter values or body contain ``text``."""
        if not self._initialized:
            await self.initialize()
        self.index = await self.store.scan()
        matches = []
        for artifact in self.index:
            in_metadata = any(text in value for value in artifact.frontmatter.values())
            if in_metadata or text in artifact.body:
                matches.append(artifact)
        return sorted(matches, key=lambda artifact: artifact.path.name)

    @staticmethod
    def embed_links(artifacts: list[LocalArtifact], template: str = EMBED_TEMPLATE) -> str:
        return "".join(template.replace("${linkText}", artifact.path.stem) for artifact in artifacts)

    async def create_empty_note(self) -> Path | None:
        """Create an empty note remotely and materialize it."""
        note = await self.client.create_empty_note()
        result = await self.reconcile([note], SyncMode.OVERWRITE, delete_remote=False)
        artifact = self.index.get(note.id)
        if result.failures or artifact is None:
            return None
        return artifact.path
