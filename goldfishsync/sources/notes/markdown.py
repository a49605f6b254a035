"""Markdown folder store for synchronized notes.

This store handles the markdown files in the managed notes folder. It only
deals with FILE OPERATIONS; deciding what to write is the sync engine's job.
"""

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

import aiofiles
import aiofiles.os

from goldfishsync.core.index import LocalIndex
from goldfishsync.core.models import LocalArtifact, SyncIssue
from goldfishsync.utils import frontmatter

logger = logging.getLogger(__name__)


class MarkdownNoteStore:
    """
    Reads and writes note files inside one managed folder.

    Files outside the folder, in subfolders, or without a ``uuid`` frontmatter
    key are never indexed and therefore never touched by a sync pass.
    """

    def __init__(self, base_path: Path):
        """
        Initialize the store.

        Args:
            base_path: Managed notes folder (e.g., ~/Vault/GoldfishNotes)
        """
        self.base_path = Path(base_path).expanduser().resolve()
        self.warnings: list[SyncIssue] = []

    async def ensure_folder_exists(self, folder_path: Path | None = None) -> None:
        """
        Ensure a folder exists, create if it doesn't.

        Args:
            folder_path: Path to folder, or None for base_path
        """
        target = folder_path if folder_path else self.base_path
        await aiofiles.os.makedirs(target, exist_ok=True)
        logger.debug(f"Ensured folder exists: {target}")

    async def list_files(self) -> list[Path]:
        """List markdown files directly inside the managed folder, sorted by name."""
        if not self.base_path.exists():
            logger.debug(f"Folder does not exist: {self.base_path}")
            return []
        return sorted(path for path in self.base_path.glob("*.md") if path.is_file())

    async def exists(self, path: Path) -> bool:
        return await aiofiles.os.path.exists(path)

    async def read_text(self, path: Path) -> str:
        async with aiofiles.open(path, "r", encoding="utf-8", newline="") as f:
            return await f.read()

    async def read_artifact(self, path: Path) -> LocalArtifact | None:
        """
        Read a note file and return it as an artifact.

        Returns:
            The artifact, or None when the file carries no note identity
        """
        text = await self.read_text(path)
        parsed = frontmatter.parse(text, source=path)
        if parsed.warning is not None:
            self.warnings.append(parsed.warning)
        identity = parsed.identity
        if identity is None:
            return None

        stat = await aiofiles.os.stat(path)
        return LocalArtifact(
            path=Path(path),
            identity=identity,
            frontmatter=parsed.frontmatter,
            body=parsed.body,
            last_modified=datetime.fromtimestamp(stat.st_mtime).astimezone(),
        )

    async def scan(self) -> LocalIndex:
        """
        Build a fresh index from the files in the managed folder.

        Unreadable files are logged and left out. If two files claim the same
        identity the first one by name wins.
        """
        self.warnings = []
        index = LocalIndex()
        files = await self.list_files()
        for path in files:
            try:
                artifact = await self.read_artifact(path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to read note file {path}: {e}")
                continue
            if artifact is None:
                continue
            if artifact.identity in index:
                logger.warning(
                    f"Note {artifact.identity} is stored in both "
                    f"'{index.get(artifact.identity).path.name}' and '{path.name}', ignoring the latter"
                )
                continue
            index.put(artifact)

        logger.info(f"Indexed {len(index)} of {len(files)} markdown files in {self.base_path}")
        return index

    async def write_text(self, path: Path, content: str) -> None:
        """Write ``content`` to ``path`` via a temporary file in the same folder."""
        path = Path(path)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".goldfish-", suffix=".tmp")
        os.close(fd)
        try:
            async with aiofiles.open(tmp_name, "w", encoding="utf-8", newline="") as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Wrote markdown file: {path}")

    async def delete(self, path: Path) -> bool:
        """
        Delete a note file.

        Returns:
            True if a file was removed, False if it was already gone
        """
        if not await self.exists(path):
            logger.warning(f"File already deleted: {path}")
            return False
        await aiofiles.os.remove(path)
        logger.info(f"Deleted markdown file: {path}")
        return True
