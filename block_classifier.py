"""
Structural Classifier - labels paragraph blocks before chunking.

Rules are evaluated in order and the first match wins:

1. Heading: chapter/part/section/volume/book markers, bare front/back matter
   words (Prologue, Epilogue, ...) and short all-caps lines. Only single-line
   blocks are ever considered headings.
2. Speech: the block opens with a quote glyph and closes with its match.
3. Paragraph: everything else.

The heading rules are heuristic; short all-caps sentences ("STOP IT NOW.")
are read as headings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List

from word_count_utils import TextSpan, count_words


class BlockKind(str, Enum):
    """Structural role of a paragraph-level block."""

    HEADING = "chapter-heading"
    SPEECH = "quoted-speech"
    PARAGRAPH = "plain-paragraph"


@dataclass(frozen=True)
class Block:
    """A classified paragraph. ``start``/``end`` index into the normalized text."""

    kind: BlockKind
    text: str
    start: int = 0
    end: int = 0

    @property
    def word_count(self) -> int:
        return count_words(self.text)

    @property
    def is_heading(self) -> bool:
        return self.kind is BlockKind.HEADING


_SUBTITLE = r"(?:\s*[:.–—-]\s*.*)?"
_TITLE_WORD = r"[A-Z][\w'’-]*"

_NUMBERED_HEADING = re.compile(
    r"^(?i:chapter|part|section|volume|book)\s+"
    r"(?:\d+|(?i:[ivxlcdm]+)\b|" + _TITLE_WORD + r"(?:\s+" + _TITLE_WORD + r"){0,4})"
    + _SUBTITLE + r"$"
)

_BARE_HEADING = re.compile(
    r"^(?i:prologue|epilogue|introduction|conclusion|preface|foreword|afterword|"
    r"acknowledge?ments|appendix|interlude|postscript|dedication|contents)"
    + _SUBTITLE + r"$"
)

_CAPS_HEADING_MIN = 3
_CAPS_HEADING_MAX = 60

# Opening glyph -> accepted closing glyphs
QUOTE_PAIRS = {
    '"': ('"', "”"),
    "“": ("”", '"'),
    "‘": ("’",),
    "«": ("»",),
    "‟": ("”",),
    "‛": ("’",),
}


def is_heading(text: str) -> bool:
    """Return True when a single-line block looks like a chapter/section heading."""
    line = text.strip()
    if not line or "\n" in line:
        return False

    if _NUMBERED_HEADING.match(line) or _BARE_HEADING.match(line):
        return True

    if _CAPS_HEADING_MIN <= len(line) <= _CAPS_HEADING_MAX:
        # All caps or punctuation only: no lowercase letter anywhere
        return not any(ch.islower() for ch in line)

    return False


def is_speech(text: str) -> bool:
    """Return True when the block opens with a quote glyph and ends with its match."""
    stripped = text.strip()
    if len(stripped) < 2:
        return False
    closers = QUOTE_PAIRS.get(stripped[0])
    return bool(closers) and stripped[-1] in closers


def classify(text: str) -> BlockKind:
    """Classify a block; heading wins over speech, speech over paragraph."""
    if is_heading(text):
        return BlockKind.HEADING
    if is_speech(text):
        return BlockKind.SPEECH
    return BlockKind.PARAGRAPH


def classify_spans(spans: List[TextSpan]) -> List[Block]:
    """Classify every span produced by :func:`word_count_utils.split_blocks`."""
    return [Block(kind=classify(span.text), text=span.text, start=span.start, end=span.end) for span in spans]
