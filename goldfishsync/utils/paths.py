"""File name resolution for notes in the managed folder."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from pathlib import Path

from goldfishsync.core.index import LocalIndex

logger = logging.getLogger(__name__)

NOTE_SUFFIX = ".md"
INVALID_TITLE_CHARS = re.compile(r'[*"\\/<>:|?#^\[\]]')
ORDINAL_RE = re.compile(r"( \(\d+\))?\.([^/.]+)$")


def sanitize_title(file_name: str) -> str:
    """Strip characters that are not allowed in note file names."""
    return INVALID_TITLE_CHARS.sub("", file_name)


def with_ordinal(file_name: str, count: int) -> str:
    """Insert `` (count)`` before the extension, replacing an existing ordinal."""
    return ORDINAL_RE.sub(lambda m: f" ({count}).{m.group(2)}", file_name, count=1)


def resolve_note_path(
    directory: Path,
    file_name: str,
    index: LocalIndex,
    identity: str | None = None,
    exists: Callable[[Path], bool] | None = None,
) -> Path:
    """
    Pick a free path for a note inside ``directory``.

    The first candidate is ``file_name`` as given (with ``.md`` appended if
    missing). A candidate is taken when the index holds it for a different
    note or something already exists on disk there. On a collision the name
    is sanitized and `` (1)``, `` (2)``, ... is inserted before the extension
    until a free path is found. The counter only grows, so the search always
    terminates; results depend on the order notes are resolved in.

    Args:
        directory: Managed folder the note lives in
        file_name: Rendered title, usually already ending in ``.md``
        index: Current local index
        identity: Note the path is being resolved for
        exists: Filesystem existence check, defaults to ``Path.exists``

    Returns:
        A path inside ``directory`` that no other note occupies
    """
    on_disk = exists or Path.exists
    if not file_name.endswith(NOTE_SUFFIX):
        file_name = f"{file_name}{NOTE_SUFFIX}"

    own_path: Path | None = None
    if identity is not None:
        artifact = index.get(identity)
        if artifact is not None:
            own_path = Path(artifact.path)

    def is_taken(candidate: Path) -> bool:
        holder = index.identity_at(candidate)
        if holder is not None and holder != identity:
            return True
        return candidate != own_path and on_disk(candidate)

    path = directory / file_name
    count = 0
    while is_taken(path):
        count += 1
        path = directory / with_ordinal(sanitize_title(file_name), count)

    if count:
        logger.debug(f"Resolved '{file_name}' to '{path.name}' after {count} collision(s)")
    return path
