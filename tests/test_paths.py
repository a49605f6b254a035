"""Tests for note path resolution and the local index."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from goldfishsync.core.index import LocalIndex
from goldfishsync.core.models import LocalArtifact
from goldfishsync.utils.paths import resolve_note_path, sanitize_title, with_ordinal

FOLDER = Path("/vault/Goldfish")


def _artifact(identity: str, name: str) -> LocalArtifact:
    return LocalArtifact(
        path=FOLDER / name,
        identity=identity,
        frontmatter={"uuid": identity},
        body="",
        last_modified=datetime(2024, 1, 1).astimezone(),
    )


def _nothing_on_disk(path: Path) -> bool:
    return False


class TestOrdinals:
    def test_inserts_before_extension(self) -> None:
        assert with_ordinal("Title.md", 1) == "Title (1).md"

    def test_replaces_existing_ordinal(self) -> None:
        assert with_ordinal("Title (1).md", 2) == "Title (2).md"

    def test_sanitize(self) -> None:
        assert sanitize_title('a*b"c<d>e:f|g?h#i^j[k]l.md') == "abcdefghijkl.md"


class TestResolveNotePath:
    def test_free_name_is_used_as_is(self) -> None:
        path = resolve_note_path(FOLDER, "Title.md", LocalIndex(), identity="a", exists=_nothing_on_disk)
        assert path == FOLDER / "Title.md"

    def test_suffix_is_added(self) -> None:
        path = resolve_note_path(FOLDER, "Title", LocalIndex(), exists=_nothing_on_disk)
        assert path == FOLDER / "Title.md"

    def test_collision_with_another_note(self) -> None:
        index = LocalIndex([_artifact("a", "Title.md"), _artifact("b", "Title (1).md")])
        path = resolve_note_path(FOLDER, "Title.md", index, identity="c", exists=_nothing_on_disk)
        assert path == FOLDER / "Title (2).md"

    def test_collision_with_unmanaged_file(self) -> None:
        taken = {FOLDER / "Title.md"}
        path = resolve_note_path(FOLDER, "Title.md", LocalIndex(), identity="a", exists=lambda p: p in taken)
        assert path == FOLDER / "Title (1).md"

    def test_own_path_is_not_a_collision(self) -> None:
        index = LocalIndex([_artifact("a", "Title.md")])
        path = resolve_note_path(FOLDER, "Title.md", index, identity="a", exists=lambda p: True)
        assert path == FOLDER / "Title.md"

    def test_candidate_is_sanitized_after_a_collision(self) -> None:
        index = LocalIndex([_artifact("a", "Q?.md")])
        path = resolve_note_path(FOLDER, "Q?.md", index, identity="b", exists=_nothing_on_disk)
        assert path == FOLDER / "Q (1).md"


class TestLocalIndex:
    def test_put_and_lookup(self) -> None:
        index = LocalIndex()
        index.put(_artifact("a", "One.md"))
        assert "a" in index
        assert index.identity_at(FOLDER / "One.md") == "a"
        assert len(index) == 1

    def test_moving_an_identity_frees_its_old_path(self) -> None:
        index = LocalIndex([_artifact("a", "One.md")])
        index.put(_artifact("a", "Two.md"))
        assert index.identity_at(FOLDER / "One.md") is None
        assert index.get("a").path == FOLDER / "Two.md"
        assert len(index) == 1

    def test_path_cannot_be_shared(self) -> None:
        index = LocalIndex([_artifact("a", "One.md")])
        with pytest.raises(ValueError):
            index.put(_artifact("b", "One.md"))
        assert index.get("b") is None

