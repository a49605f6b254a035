"""In-memory index of the notes materialized in the managed folder."""

from collections.abc import Iterator
from pathlib import Path

from goldfishsync.core.models import LocalArtifact


class LocalIndex:
    """
    Keyed table mapping note identity to its local artifact.

    The index is the single source of truth for where a note lives on disk
    during a pass. It is rebuilt from a folder scan at session start and then
    updated synchronously after every local write or delete; it is never
    re-read from disk mid-batch.

    A secondary path -> identity map keeps the one-path-per-entry invariant
    cheap to check.
    """

    def __init__(self, artifacts: list[LocalArtifact] | None = None):
        self._by_identity: dict[str, LocalArtifact] = {}
        self._by_path: dict[Path, str] = {}
        for artifact in artifacts or []:
            self.put(artifact)

    def get(self, identity: str) -> LocalArtifact | None:
        return self._by_identity.get(identity)

    def identity_at(self, path: Path) -> str | None:
        return self._by_path.get(Path(path))

    def put(self, artifact: LocalArtifact) -> None:
        """
        Insert or replace the entry for ``artifact.identity``.

        Raises:
            ValueError: If the path is already held by a different identity
        """
        path = Path(artifact.path)
        holder = self._by_path.get(path)
        if holder is not None and holder != artifact.identity:
            raise ValueError(f"Path {path} is already indexed for note {holder}")

        previous = self._by_identity.get(artifact.identity)
        if previous is not None:
            self._by_path.pop(Path(previous.path), None)

        self._by_identity[artifact.identity] = artifact
        self._by_path[path] = artifact.identity

    def __contains__(self, identity: object) -> bool:
        return identity in self._by_identity

    def __len__(self) -> int:
        return len(self._by_identity)

    def __iter__(self) -> Iterator[LocalArtifact]:
        return iter(list(self._by_identity.values()))
