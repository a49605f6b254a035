"""HTML/Markdown conversion helpers.

Rich-text note content is converted with ``html-to-markdown``. List,
paragraph and container elements are rendered by an ordered rule table
registered as custom converters: each rule pairs a predicate with a renderer,
rules are tried top to bottom and the first match renders the element from
the already converted text of its children. Every other element keeps the
library's own rendering.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag
from html_to_markdown import convert_to_markdown
from markdown_it import MarkdownIt

logger = logging.getLogger(__name__)

HTML_TAG_RE = re.compile(r"</?[a-zA-Z][a-zA-Z0-9]*(?:\s[^<>]*)?/?>")
TASK_CHECKBOX_RE = re.compile(
    r"<label\b[^>]*>\s*<input\b[^>]*type=\"checkbox\"[^>]*>.*?</label>|<input\b[^>]*type=\"checkbox\"[^>]*>",
    re.DOTALL | re.IGNORECASE,
)
LINE_BREAK_RE = re.compile(r"\s*\n\s*")

LIST_TAGS = frozenset({"ul", "ol"})
INDENT = "    "


def normalize_task_items_html(html: str) -> str:
    """Drop the checkbox widgets of task items; the checked state lives on the ``li``."""
    return TASK_CHECKBOX_RE.sub("", html)


# Rules


def list_depth(tag: Tag) -> int:
    return sum(1 for parent in tag.parents if parent.name in LIST_TAGS)


def indentation(tag: Tag) -> str:
    return INDENT * max(list_depth(tag) - 1, 0)


def _parent_name(tag: Tag) -> str | None:
    return tag.parent.name if tag.parent is not None else None


def _is_task_list(tag: Tag) -> bool:
    return tag.name == "ul" and tag.get("data-type") == "taskList"


def _is_task_item(tag: Tag) -> bool:
    return tag.name == "li" and tag.get("data-type") == "taskItem"


def _render_task_item(tag: Tag, text: str) -> str:
    checkbox = "- [x]" if tag.get("data-checked") == "true" else "- [ ]"
    task_text = LINE_BREAK_RE.sub(" ", text).strip()
    return f"{indentation(tag)}{checkbox} {task_text}\n"


def _render_list_item(tag: Tag, text: str) -> str:
    prefix = "1. " if _parent_name(tag) == "ol" else "- "
    return f"{indentation(tag)}{prefix}{text.strip()}\n"


def _render_list(tag: Tag, text: str) -> str:
    if _parent_name(tag) == "li":
        return f"\n{text}"
    return f"\n\n{text}\n\n"


def _render_paragraph(tag: Tag, text: str) -> str:
    return f"{text}\n\n" if text.strip() else ""


def _children_only(tag: Tag, text: str) -> str:
    return text


@dataclass(frozen=True)
class Rule:
    name: str
    matches: Callable[[Tag], bool]
    render: Callable[[Tag, str], str]


RULES: tuple[Rule, ...] = (
    Rule("task_list", _is_task_list, _children_only),
    Rule("task_item", _is_task_item, _render_task_item),
    Rule("paragraph_in_list_item", lambda t: t.name == "p" and _parent_name(t) == "li", _children_only),
    Rule("paragraph_in_div", lambda t: t.name == "p" and _parent_name(t) == "div", _children_only),
    Rule("div", lambda t: t.name == "div", _children_only),
    Rule("list_item", lambda t: t.name == "li", _render_list_item),
    Rule("list", lambda t: t.name in LIST_TAGS, _render_list),
    Rule("paragraph", lambda t: t.name == "p", _render_paragraph),
)

# Elements the rule table renders; anything else goes to the library
RULE_TAGS = ("ul", "ol", "li", "p", "div")


def find_rule(tag: Tag) -> Rule | None:
    for rule in RULES:
        if rule.matches(tag):
            return rule
    return None


def _convert_with_rules(*, tag: Tag, text: str, convert_as_inline: bool) -> str:
    if convert_as_inline:
        return text
    rule = find_rule(tag)
    return rule.render(tag, text) if rule else text


CUSTOM_CONVERTERS = {name: _convert_with_rules for name in RULE_TAGS}


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _ends_with_list(soup: BeautifulSoup) -> bool:
    root = soup.body or soup
    meaningful = [node for node in root.children if isinstance(node, Tag) or node.strip()]
    return bool(meaningful) and isinstance(meaningful[-1], Tag) and meaningful[-1].name in LIST_TAGS


def looks_like_html(text: str) -> bool:
    return bool(HTML_TAG_RE.search(text or ""))


def html_to_markdown(html: str | None) -> str:
    """
    Convert rich-text note content to markdown.

    Plain text without any markup is returned unchanged so line breaks in
    notes that were never rich text survive.
    """
    if not html or not html.strip():
        return ""
    if not looks_like_html(html):
        return html

    soup = parse_html(normalize_task_items_html(html))
    # List items carry their own line terminator
    trailing = "\n" if _ends_with_list(soup) else ""

    markdown = convert_to_markdown(
        soup,
        custom_converters=CUSTOM_CONVERTERS,
        heading_style="atx",
        newline_style="spaces",
        code_language="",
        wrap_width=0,
        escape_misc=False,
        escape_asterisks=False,
        escape_underscores=False,
        extract_metadata=False,
    )

    markdown = re.sub(r"[ \t]+\n", "\n", markdown)
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    markdown = markdown.strip()
    return f"{markdown}{trailing}" if markdown else ""


def markdown_to_html(markdown: str) -> str:
    """Render a markdown note body to HTML for upload."""
    if not markdown or not markdown.strip():
        return ""

    md_parser = MarkdownIt("commonmark", {"breaks": True})
    return md_parser.render(markdown).strip()
