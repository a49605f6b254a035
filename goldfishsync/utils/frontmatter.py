"""Frontmatter codec for note files.

A note file optionally starts with a metadata block fenced by ``---`` lines.
The block is read back as a flat ``key -> string`` mapping: quoted scalars are
decoded, everything else (numbers, dates, list literals) is kept as the raw
text that follows the key.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from goldfishsync.core.errors import InvalidTemplate
from goldfishsync.core.models import ErrorKind, SyncIssue

logger = logging.getLogger(__name__)

FENCE = "---"
IDENTITY_KEY = "uuid"
IDENTITY_PLACEHOLDER = "${" + IDENTITY_KEY + "}"

PLACEHOLDERS = (
    "uuid",
    "title",
    "tags",
    "created_date",
    "last_modified_date",
    "cleaned",
    "original",
    "audio_file_embed",
)

FRONTMATTER_RE = re.compile(r"\A---\n(?P<block>[\s\S]*?)\n---(?:\n|\Z)")
FIELD_LINE_RE = re.compile(r"^(?P<key>[^\s#:][^:]*?)\s*:(?:\s+(?P<value>.*?))?\s*$")
PLACEHOLDER_RE = re.compile(r"\$\{(?P<name>[a-z_]+)\}")
# Values already serialized as YAML literals, inserted without escaping
LITERAL_PLACEHOLDERS = frozenset({"tags"})


@dataclass
class ParsedNote:
    frontmatter: dict[str, str] = field(default_factory=dict)
    body: str = ""
    warning: SyncIssue | None = None

    @property
    def identity(self) -> str | None:
        return self.frontmatter.get(IDENTITY_KEY) or None


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """Return the raw frontmatter block (without fences) and the body."""
    match = FRONTMATTER_RE.match(text)
    if not match:
        return None, text
    return match.group("block"), text[match.end():]


def _unquote(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        return raw[1:-1]
    return raw


def _raw_values(block: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in block.splitlines():
        match = FIELD_LINE_RE.match(line)
        if match:
            values[match.group("key")] = _unquote(match.group("value") or "")
    return values


def parse(text: str, source: Path | str | None = None) -> ParsedNote:
    """
    Split ``text`` into frontmatter and body.

    A block that is present but cannot be read as a flat mapping degrades to an
    empty frontmatter with the whole text as body, so no content is lost.

    Args:
        text: Full file contents
        source: Optional path used in log messages

    Returns:
        ParsedNote with frontmatter, body and an optional parse warning
    """
    block, body = split_frontmatter(text)
    if block is None:
        return ParsedNote(frontmatter={}, body=text)

    try:
        loaded = yaml.safe_load(block) if block.strip() else {}
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError("frontmatter is not a key/value mapping")
    except (yaml.YAMLError, ValueError) as e:
        where = f" for: {source}" if source else ""
        logger.warning(f"Failed to parse metadata{where}: {e}")
        issue = SyncIssue(
            kind=ErrorKind.PARSE_WARNING,
            message=f"Malformed frontmatter{where}",
            path=Path(source) if source else None,
        )
        return ParsedNote(frontmatter={}, body=text, warning=issue)

    raw = _raw_values(block)
    frontmatter: dict[str, str] = {}
    for key, value in loaded.items():
        key = str(key)
        if isinstance(value, str):
            frontmatter[key] = value
        else:
            frontmatter[key] = raw.get(key, "" if value is None else str(value))
    return ParsedNote(frontmatter=frontmatter, body=body)


def escape_yaml(value: str | None) -> str:
    """Escape a value for use inside a double-quoted YAML scalar on one line."""
    text = value or ""
    text = text.replace("\\", "\\\\").replace('"', '\\"')
    return re.sub(r"\r\n|\r|\n", " ", text)


def _substitute(segment: str, values: Mapping[str, str], escape: bool) -> str:
    def replace(match: re.Match[str]) -> str:
        name = match.group("name")
        if name not in values:
            return match.group(0)
        value = values[name]
        return escape_yaml(value) if escape and name not in LITERAL_PLACEHOLDERS else value

    return PLACEHOLDER_RE.sub(replace, segment)


def validate_template(template: str) -> None:
    """
    Ensure the template renders files the sync engine can index.

    Raises:
        InvalidTemplate: If the frontmatter block is missing or lacks ``${uuid}``
    """
    if not template or not template.strip():
        raise InvalidTemplate("Note template cannot be empty")
    block, _ = split_frontmatter(template)
    if block is None:
        raise InvalidTemplate("Note template must start with a '---' frontmatter block")
    if IDENTITY_PLACEHOLDER not in block:
        raise InvalidTemplate(f"Note template frontmatter must contain '{IDENTITY_KEY}: \"{IDENTITY_PLACEHOLDER}\"'")


def render(template: str, values: Mapping[str, str], escape: bool = True) -> str:
    """
    Fill ``${name}`` placeholders in ``template``.

    Inside the frontmatter block values are YAML-escaped (when ``escape`` is
    set) so the block stays parseable; in the body they are inserted verbatim.
    Unknown placeholders are left as they are.
    """
    match = FRONTMATTER_RE.match(template)
    if not match:
        return _substitute(template, values, escape=False)

    block = _substitute(match.group("block"), values, escape=escape)
    body = _substitute(template[match.end():], values, escape=False)
    closing = "\n" if match.group(0).endswith("\n") else ""
    return f"{FENCE}\n{block}\n{FENCE}{closing}{body}"
