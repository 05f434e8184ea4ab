"""
Word Count Utilities for the Longform Editor
============================================

Word counting, whitespace normalization and paragraph splitting. Every other
component measures text through these helpers so sizes agree everywhere.
"""

import re
from typing import List, NamedTuple


_LINE_ENDINGS = re.compile(r"\r\n?")
_HORIZONTAL_SPACE = re.compile(r"[ \t]+")
_SPACE_AROUND_NEWLINE = re.compile(r" *\n *")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_BLOCK_SEPARATOR = "\n\n"

# A sentence ends at terminal punctuation, optionally followed by closing quotes/brackets
_SENTENCE_END = re.compile(r"[.!?…][\"'”’»)\]]*$")


class TextSpan(NamedTuple):
    """A slice of a normalized text: text == source[start:end]."""
    start: int
    end: int
    text: str


def count_words(text: str) -> int:
    """
    Count words in text

    Words are runs of non-whitespace characters, so punctuation attached to a
    word does not count separately and "don't" is one word.
    """
    if not text:
        return 0
    return len(text.split())


def normalize_text(text: str) -> str:
    """
    Normalize whitespace while keeping paragraph structure.

    Line endings become \\n, runs of spaces/tabs collapse to one space,
    trailing/leading spaces on lines are dropped and three or more newlines
    collapse to a single blank line.
    """
    if not text:
        return ""
    normalized = _LINE_ENDINGS.sub("\n", text)
    normalized = _HORIZONTAL_SPACE.sub(" ", normalized)
    normalized = _SPACE_AROUND_NEWLINE.sub("\n", normalized)
    normalized = _EXCESS_NEWLINES.sub(_BLOCK_SEPARATOR, normalized)
    return normalized.strip()


def split_blocks(normalized: str) -> List[TextSpan]:
    """Split normalized text on blank lines, keeping offsets into ``normalized``."""
    spans: List[TextSpan] = []
    position = 0
    for raw in normalized.split(_BLOCK_SEPARATOR):
        start = position
        end = start + len(raw)
        position = end + len(_BLOCK_SEPARATOR)
        if raw.strip():
            spans.append(TextSpan(start, end, raw))
    return spans


def split_sentences(text: str) -> List[str]:
    """
    Split a block into sentences on whitespace following terminal punctuation.

    Whitespace between sentences is kept at the end of the preceding piece so
    joining the result gives back ``text`` unchanged.
    """
    pieces: List[str] = []
    current = ""
    for token in re.findall(r"\S+\s*", text):
        current += token
        if _SENTENCE_END.search(token.rstrip()):
            pieces.append(current)
            current = ""
    if current:
        pieces.append(current)
    return pieces


def split_words(text: str) -> List[str]:
    """Split text into word tokens that keep their trailing whitespace."""
    return re.findall(r"\S+\s*", text)


def preview(text: str, limit: int = 80) -> str:
    """Single-line, truncated preview of text for logs and reports."""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[: max(0, limit - 3)] + "..."
