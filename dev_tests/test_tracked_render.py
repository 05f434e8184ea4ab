"""
Tests for tracked_render.py - HTML and terminal projections.
"""

from tracked_changes import TrackedDocument
from tracked_render import (
    plain_text_with_spacing,
    render_ansi,
    render_html,
    render_inline_html,
)


def make_document():
    return TrackedDocument.from_texts("The cat sat on the mat.", "The dog sat on the mat.")


class TestRenderHtml:
    """Tests for render_inline_html() and render_html()."""

    def test_pending_group_shows_del_and_ins(self):
        markup = render_inline_html(make_document())
        assert markup == (
            'The <del data-change-id="change-1">cat</del>'
            '<ins data-change-id="change-1">dog</ins> sat on the mat.'
        )

    def test_resolved_groups_render_as_plain_text(self):
        document = make_document()
        document.reject_all()
        assert render_html(document) == "<p>The cat sat on the mat.</p>"

    def test_paragraphs_and_headings(self):
        document = TrackedDocument.from_texts("Chapter 1\n\nIt was cold.", "Chapter 1\n\nIt was freezing.")
        rendered = render_html(document)

        assert rendered.startswith('<p class="chapter-heading"><strong>Chapter 1</strong></p>\n')
        assert rendered.endswith(
            '<p>It was <del data-change-id="change-1">cold.</del>'
            '<ins data-change-id="change-1">freezing.</ins></p>'
        )

    def test_paragraph_break_stays_outside_markup(self):
        """
        Given: An inserted paragraph
        Then: The blank line is not wrapped, so the insertion gets its own <p>
        """
        document = TrackedDocument.from_texts("One.", "One.\n\nTwo.")
        assert render_html(document) == '<p>One.</p>\n<p><ins data-change-id="change-1">Two.</ins></p>'

    def test_text_is_escaped(self):
        document = TrackedDocument.from_texts("a < b & c", "a < b & d")
        markup = render_inline_html(document)
        assert "a &lt; b &amp; " in markup
        assert ">d</ins>" in markup

    def test_single_newlines_become_br(self):
        document = TrackedDocument.from_texts("line one\nline two", "line one\nline two")
        assert render_html(document) == "<p>line one<br>line two</p>"

    def test_full_document_wrapper(self):
        page = render_html(make_document(), full_document=True, title="Draft <1>")
        assert page.startswith("<!DOCTYPE html>")
        assert "<title>Draft &lt;1&gt;</title>" in page
        assert "<p>The <del" in page


class TestRenderAnsi:
    def test_pending_markers(self):
        output = render_ansi(make_document())
        assert "[-cat-]" in output
        assert "{+dog+}" in output

    def test_ids_shown_on_request(self):
        assert "<change-1>" in render_ansi(make_document(), show_ids=True)

    def test_resolved_text_is_plain(self):
        document = make_document()
        document.accept_all()
        assert render_ansi(document) == "The dog sat on the mat."


def test_plain_text_with_spacing():
    assert plain_text_with_spacing("a\n\n\n\nb  \n c\n") == "a\n\nb\nc"
