"""
Diff Engine - word-level diff between an original and an edited text.

Texts are tokenized into alternating word and whitespace tokens (punctuation
stays attached to its word), diffed with difflib's SequenceMatcher and
returned as DiffPart values. ``group_parts`` then coalesces consecutive
added/removed parts into change groups separated by unchanged text.
"""

import difflib
import re
from dataclasses import dataclass
from typing import List, Tuple, Union

_TOKEN_PATTERN = re.compile(r"\S+|\s+")


class DiffError(ValueError):
    """Raised when the diff engine receives something that is not text."""


@dataclass(frozen=True)
class DiffPart:
    """Atomic diff unit; unchanged parts have neither flag set."""

    value: str
    added: bool = False
    removed: bool = False

    @property
    def unchanged(self) -> bool:
        return not (self.added or self.removed)


@dataclass(frozen=True)
class TextRun:
    """Unchanged text between change groups."""

    text: str


@dataclass(frozen=True)
class ChangeRun:
    """A maximal run of removed/added parts."""

    original: str
    edited: str


def tokenize(text: str) -> List[str]:
    """Split text into word and whitespace tokens; ''.join(tokens) == text."""
    return _TOKEN_PATTERN.findall(text)


def _append(parts: List[DiffPart], value: str, added: bool = False, removed: bool = False):
    if not value:
        return
    if parts and parts[-1].added == added and parts[-1].removed == removed:
        parts[-1] = DiffPart(parts[-1].value + value, added=added, removed=removed)
    else:
        parts.append(DiffPart(value, added=added, removed=removed))


def diff_words(original: str, edited: str) -> List[DiffPart]:
    """
    Word-level diff.

    Adjacent tokens with the same status are merged, and a replacement is
    emitted as its removed part followed by its added part. The output is
    deterministic for a given pair.

    Raises:
        DiffError: if either argument is not a string
    """
    if not isinstance(original, str) or not isinstance(edited, str):
        raise DiffError(
            f"diff_words expects two strings, got {type(original).__name__} and {type(edited).__name__}"
        )

    source = tokenize(original)
    target = tokenize(edited)
    matcher = difflib.SequenceMatcher(None, source, target, autojunk=False)

    parts: List[DiffPart] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            _append(parts, "".join(source[i1:i2]))
        elif tag == "delete":
            _append(parts, "".join(source[i1:i2]), removed=True)
        elif tag == "insert":
            _append(parts, "".join(target[j1:j2]), added=True)
        else:
            _append(parts, "".join(source[i1:i2]), removed=True)
            _append(parts, "".join(target[j1:j2]), added=True)
    return parts


def group_parts(parts: List[DiffPart]) -> List[Union[TextRun, ChangeRun]]:
    """Coalesce consecutive changed parts; unchanged parts become text runs."""
    runs: List[Union[TextRun, ChangeRun]] = []
    removed: List[str] = []
    added: List[str] = []

    def flush_change():
        if removed or added:
            runs.append(ChangeRun(original="".join(removed), edited="".join(added)))
            removed.clear()
            added.clear()

    for part in parts:
        if part.removed:
            removed.append(part.value)
        elif part.added:
            added.append(part.value)
        else:
            flush_change()
            runs.append(TextRun(part.value))
    flush_change()
    return runs


def diff_stats(parts: List[DiffPart]) -> Tuple[int, int]:
    """Return (words removed, words added)."""
    removed = sum(len(part.value.split()) for part in parts if part.removed)
    added = sum(len(part.value.split()) for part in parts if part.added)
    return removed, added
