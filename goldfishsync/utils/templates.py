"""Render remote notes into note files and derive their titles."""

from __future__ import annotations

import re
from datetime import datetime

from goldfishsync.core.models import RemoteNote
from goldfishsync.utils import frontmatter

TAG_RE = re.compile(r"(?:^|\B)#(?![0-9_]+\b)([A-Za-z0-9_/]{1,50})(?:\b|\r)", re.MULTILINE)
DELETED_AT_RE = re.compile(r"^deleted_at:.*$", re.MULTILINE)
TITLE_HOSTILE_RE = re.compile(r"[\[\]#*:/\\^|?]")
TITLE_LENGTH = 40


def extract_tags(text: str | None) -> list[str]:
    """Return hashtags found in ``text`` without the ``#``, first occurrence first."""
    seen: dict[str, None] = {}
    for match in TAG_RE.finditer(text or ""):
        seen.setdefault(match.group(1), None)
    return list(seen)


def format_tags(tags: list[str]) -> str:
    return "[" + ", ".join(f'"{tag}"' for tag in tags) + "]"


def format_date(value: datetime | None, date_format: str) -> str:
    """Format ``value`` in the local timezone."""
    if value is None:
        return ""
    return value.astimezone().strftime(date_format)


def local_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 local time with millisecond precision and UTC offset."""
    current = (now or datetime.now().astimezone()).astimezone()
    return current.isoformat(timespec="milliseconds")


def attachment_file_name(ref: str | None) -> str | None:
    if not ref:
        return None
    name = ref.rstrip("/").split("/")[-1]
    return name or None


def note_values(
    note: RemoteNote,
    *,
    date_format: str = "%Y-%m-%d",
    attachments_enabled: bool = False,
    with_tags: bool = True,
) -> dict[str, str]:
    """Build the placeholder -> value map for ``note``."""
    embed = ""
    file_name = attachment_file_name(note.attachment_ref)
    if attachments_enabled and file_name:
        embed = f"![[{file_name}]]"

    return {
        "uuid": note.id,
        "title": note.title or "",
        "tags": format_tags(extract_tags(note.content)) if with_tags else "[]",
        "created_date": format_date(note.created_at, date_format),
        "last_modified_date": format_date(note.modified_at, date_format),
        "cleaned": note.content or "",
        "original": note.original_transcript or "",
        "audio_file_embed": embed,
    }


def stamp_deleted_at(text: str, now: datetime | None = None) -> str:
    """Rewrite any ``deleted_at:`` line in the frontmatter with the current time."""
    match = frontmatter.FRONTMATTER_RE.match(text)
    if not match:
        return text
    start, end = match.span("block")
    stamped = DELETED_AT_RE.sub(lambda _: f'deleted_at: "{local_timestamp(now)}"', text[start:end])
    return text[:start] + stamped + text[end:]


def fill_template(
    template: str,
    note: RemoteNote,
    *,
    deleted_stamp: bool = False,
    date_format: str = "%Y-%m-%d",
    attachments_enabled: bool = False,
    now: datetime | None = None,
) -> str:
    """
    Render ``note`` into file text.

    Raises:
        InvalidTemplate: If the template cannot carry the note identity
    """
    frontmatter.validate_template(template)
    values = note_values(
        note,
        date_format=date_format,
        attachments_enabled=attachments_enabled,
        with_tags="${tags}" in template,
    )
    text = frontmatter.render(template, values, escape=True)
    if deleted_stamp:
        text = stamp_deleted_at(text, now)
    return text


def escape_title(text: str | None) -> str:
    """Make a file-name friendly title from the start of ``text``."""
    title = (text or "")[:TITLE_LENGTH]
    title = re.sub(r"[\n\r]", " ", title)
    return TITLE_HOSTILE_RE.sub("", title).strip()


def note_title(
    note: RemoteNote,
    *,
    title_template: str = "${title}",
    auto_generate_title: bool = True,
    date_format: str = "%Y-%m-%d",
) -> str:
    """
    Derive the file name (with ``.md``) for a note that has no file yet.

    Falls back from the explicit title to the first characters of the content,
    and from there to the note identity.
    """
    title = note.title
    if not title:
        from_content = escape_title(note.content)
        if auto_generate_title and from_content:
            title = from_content
        else:
            title = note.id

    values = note_values(note.model_copy(update={"title": title}), date_format=date_format)
    rendered = frontmatter.render(title_template, values, escape=False)
    rendered = re.sub(r"[\\/]", "", rendered)
    return f"{rendered}.md"
