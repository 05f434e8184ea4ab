"""
Tracked Changes Rendering
=========================

Projections of a TrackedDocument for display and export. Nothing here
mutates the document.

- render_html: <ins>/<del> markup, paragraphs in <p>, chapter headings
  marked with class="chapter-heading"
- render_ansi: coloured terminal view used by the CLI
- plain_text_with_spacing: one blank line between paragraphs and headings
"""

import html
import re
from typing import List

from colorama import Fore, Style

from block_classifier import is_heading
from tracked_changes import ChangeGroup, TrackedDocument

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_TAGS = re.compile(r"<[^>]*>")

HTML_DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{title}</title>
  <style>
    p {{ margin: 0 0 1em 0; line-height: 1.5; }}
    p.chapter-heading {{ margin: 2em 0 1em 0; text-align: center; font-weight: bold; page-break-after: avoid; }}
    ins {{ background: #e6ffe6; text-decoration: underline; color: #006400; }}
    del {{ background: #ffe6e6; text-decoration: line-through; color: #b22222; }}
  </style>
</head>
<body>
{body}
</body>
</html>"""


def _wrap_fragment(tag: str, text: str, group_id: str) -> str:
    """Wrap a fragment in a tag, keeping paragraph breaks outside the markup."""
    pieces = re.split(r"(\n\s*\n)", text)
    out = []
    for piece in pieces:
        if not piece:
            continue
        if _PARAGRAPH_BREAK.fullmatch(piece):
            out.append(piece)
        else:
            out.append(f'<{tag} data-change-id="{group_id}">{html.escape(piece)}</{tag}>')
    return "".join(out)


def render_inline_html(document: TrackedDocument) -> str:
    """Inline markup with paragraph breaks still as blank lines."""
    out: List[str] = []
    for node in document.nodes:
        if isinstance(node, ChangeGroup):
            if node.is_pending:
                out.append(_wrap_fragment("del", node.original_fragment, node.id))
                out.append(_wrap_fragment("ins", node.edited_fragment, node.id))
            else:
                out.append(html.escape(node.resolved_text or ""))
        else:
            out.append(html.escape(node.text))
    return "".join(out)


def format_html_paragraphs(inline_html: str) -> str:
    """Turn blank-line separated markup into <p> elements."""
    paragraphs: List[str] = []
    for paragraph in _PARAGRAPH_BREAK.split(inline_html):
        lines = [line.strip() for line in paragraph.strip().split("\n") if line.strip()]
        if not lines:
            continue
        content = "<br>".join(lines)
        plain = html.unescape(_TAGS.sub("", paragraph)).strip()
        if is_heading(plain):
            paragraphs.append(f'<p class="chapter-heading"><strong>{content}</strong></p>')
        else:
            paragraphs.append(f"<p>{content}</p>")
    return "\n".join(paragraphs)


def render_html(document: TrackedDocument, full_document: bool = False, title: str = "Tracked Changes") -> str:
    """Render the document as HTML; ``full_document`` adds a styled page wrapper."""
    body = format_html_paragraphs(render_inline_html(document))
    if not full_document:
        return body
    return HTML_DOCUMENT_TEMPLATE.format(title=html.escape(title), body=body)


def render_ansi(document: TrackedDocument, show_ids: bool = False) -> str:
    """Coloured terminal view: [-removed-] in red, {+added+} in green."""
    out: List[str] = []
    for node in document.nodes:
        if not isinstance(node, ChangeGroup):
            out.append(node.text)
            continue
        if not node.is_pending:
            out.append(node.resolved_text or "")
            continue
        if show_ids:
            out.append(f"{Style.DIM}<{node.id}>{Style.RESET_ALL}")
        if node.original_fragment:
            out.append(f"{Fore.RED}[-{node.original_fragment}-]{Style.RESET_ALL}")
        if node.edited_fragment:
            out.append(f"{Fore.GREEN}{{+{node.edited_fragment}+}}{Style.RESET_ALL}")
    return "".join(out)


def plain_text_with_spacing(text: str) -> str:
    """Normalize paragraph spacing to exactly one blank line between paragraphs."""
    paragraphs = []
    for paragraph in _PARAGRAPH_BREAK.split(text):
        lines = [line.strip() for line in paragraph.strip().split("\n") if line.strip()]
        if lines:
            paragraphs.append("\n".join(lines))
    return "\n\n".join(paragraphs)
