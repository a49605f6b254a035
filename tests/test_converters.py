"""Tests for HTML to markdown conversion."""

from __future__ import annotations

import pytest

from goldfishsync.utils.converters import (
    find_rule,
    html_to_markdown,
    markdown_to_html,
    normalize_task_items_html,
    parse_html,
)


class TestLists:
    def test_nested_bullets_are_indented_four_spaces(self) -> None:
        assert html_to_markdown("<ul><li>a<ul><li>b</li></ul></li></ul>") == "- a\n    - b\n"

    def test_ordered_list(self) -> None:
        assert html_to_markdown("<ol><li>first</li><li>second</li></ol>") == "1. first\n1. second\n"

    def test_paragraph_inside_list_item_adds_no_blank_lines(self) -> None:
        assert html_to_markdown("<ul><li><p>one</p></li><li><p>two</p></li></ul>") == "- one\n- two\n"

    def test_list_followed_by_paragraph(self) -> None:
        assert html_to_markdown("<ul><li>one</li></ul><p>after</p>") == "- one\n\nafter"

    def test_ordered_list_nested_in_bullets(self) -> None:
        html = "<ul><li>steps<ol><li>mix</li><li>bake</li></ol></li></ul>"
        assert html_to_markdown(html) == "- steps\n    1. mix\n    1. bake\n"


class TestTaskLists:
    def test_checked_and_unchecked_items(self) -> None:
        html = (
            '<ul data-type="taskList">'
            '<li data-type="taskItem" data-checked="true"><label><input type="checkbox" checked></label>'
            "<div><p>Buy milk</p></div></li>"
            '<li data-type="taskItem" data-checked="false"><label><input type="checkbox"></label>'
            "<div><p>Call mom</p></div></li>"
            "</ul>"
        )
        assert html_to_markdown(html) == "- [x] Buy milk\n- [ ] Call mom\n"

    def test_task_item_content_is_flattened_to_one_line(self) -> None:
        html = '<ul data-type="taskList"><li data-type="taskItem" data-checked="false"><div><p>a<br>b</p></div></li></ul>'
        assert html_to_markdown(html) == "- [ ] a b\n"


class TestBlocks:
    def test_paragraphs(self) -> None:
        assert html_to_markdown("<p>Hello <strong>world</strong></p><p>Second</p>") == "Hello **world**\n\nSecond"

    def test_div_contributes_no_wrapper(self) -> None:
        assert html_to_markdown("<div><p>inside</p></div>") == "inside"

    def test_headings_and_rules(self) -> None:
        assert html_to_markdown("<h2>Title</h2><p>text</p><hr>") == "## Title\n\ntext\n\n---"

    def test_inline_formatting(self) -> None:
        html = '<p><em>it</em> <s>gone</s> <code>x()</code> <a href="https://example.com">link</a></p>'
        assert html_to_markdown(html) == "*it* ~~gone~~ `x()` [link](https://example.com)"

    def test_line_breaks(self) -> None:
        assert html_to_markdown("<p>one<br>two</p>") == "one\ntwo"

    def test_blockquote(self) -> None:
        assert html_to_markdown("<blockquote><p>quoted</p></blockquote>") == "> quoted"

    def test_preformatted_keeps_whitespace(self) -> None:
        assert html_to_markdown("<pre><code>a  b\n  c</code></pre>") == "```\na  b\n  c\n```"

    def test_scripts_are_dropped(self) -> None:
        assert html_to_markdown("<p>kept</p><script>alert(1)</script>") == "kept"


class TestPassthrough:
    @pytest.mark.parametrize("value", ["", None, "   "])
    def test_empty(self, value: str | None) -> None:
        assert html_to_markdown(value) == ""

    def test_plain_text_is_unchanged(self) -> None:
        text = "line one\nline two #tag"
        assert html_to_markdown(text) == text

    def test_entities_are_decoded(self) -> None:
        assert html_to_markdown("<p>fish &amp; chips</p>") == "fish & chips"

class TestRuleTable:
    def test_first_matching_rule_wins(self) -> None:
        soup = parse_html('<ul data-type="taskList"><li data-type="taskItem"><p>x</p></li></ul>')
        assert find_rule(soup.ul).name == "task_list"
        assert find_rule(soup.li).name == "task_item"
        assert find_rule(soup.p).name == "paragraph_in_list_item"

    def test_other_elements_are_left_to_the_library(self) -> None:
        soup = parse_html("<section><h1>x</h1></section>")
        assert find_rule(soup.section) is None
        assert find_rule(soup.h1) is None

    def test_checkbox_widgets_are_removed(self) -> None:
        html = '<li data-type="taskItem"><label><input type="checkbox" checked="checked"><span></span></label><div>x</div></li>'
        assert normalize_task_items_html(html) == '<li data-type="taskItem"><div>x</div></li>'


class TestMarkdownToHtml:
    def test_renders_markdown(self) -> None:
        assert markdown_to_html("**bold**") == "<p><strong>bold</strong></p>"

    def test_empty(self) -> None:
        assert markdown_to_html("") == ""
