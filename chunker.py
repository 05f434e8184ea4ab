"""
Semantic Chunker
================

Splits long text into bounded, structure-respecting chunks so each one can be
sent to a length-limited editing backend on its own.

Pipeline:
    normalize whitespace -> split blocks -> classify -> group into runs
    -> balanced partition of each run -> rebalance the trailing chunk

Hard constraints:
    - A heading always starts a chunk and is never split.
    - A chunk never ends inside an open quotation.
    - Oversized paragraphs are split at sentence boundaries (word boundaries
      for a single sentence that is itself oversized).

Chunk offsets index into the whitespace-normalized text returned by
``word_count_utils.normalize_text``; ``normalized[start:end] == chunk.text``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from block_classifier import QUOTE_PAIRS, Block, BlockKind, classify_spans
from word_count_utils import count_words, normalize_text, split_blocks, split_sentences, split_words

logger = logging.getLogger(__name__)

DEFAULT_TARGET_WORDS = 500
DEFAULT_TOLERANCE = 100
REBALANCE_TOLERANCE_FACTOR = 1.5


class ChunkingError(ValueError):
    """Raised when the chunker receives something that is not text."""


@dataclass
class Chunk:
    """A contiguous slice of the normalized document."""

    id: str
    text: str
    start_offset: int
    end_offset: int
    starts_with_heading: bool = False

    @property
    def word_count(self) -> int:
        return count_words(self.text)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "word_count": self.word_count,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
        }


@dataclass
class _Unit:
    """Smallest indivisible piece the partitioner works with."""

    start: int
    end: int
    words: int
    text: str
    is_heading: bool = False
    block_first: bool = True
    cut_ok: bool = field(default=True)


class QuoteTracker:
    """
    Tracks open quotation depth across units.

    Curly and guillemet glyphs open/close explicitly, straight double quotes
    toggle. A closing single curly quote between two letters is an apostrophe.
    When a quotation spans paragraphs, the next paragraph re-opens it with an
    opening glyph that must not be counted twice.
    """

    OPEN_DOUBLE = "“«‟"
    CLOSE_DOUBLE = "”»"
    OPEN_SINGLE = "‘‛"
    CLOSE_SINGLE = "’"

    def __init__(self):
        self.double = 0
        self.single = 0
        self.straight = False

    @property
    def depth(self) -> int:
        return self.double + self.single + int(self.straight)

    def reset(self):
        self.double = 0
        self.single = 0
        self.straight = False

    def feed(self, text: str, continuation: bool = False):
        for idx, ch in enumerate(text):
            if idx == 0 and continuation and ch in QUOTE_PAIRS:
                continue
            if ch in self.OPEN_DOUBLE:
                self.double += 1
            elif ch in self.CLOSE_DOUBLE:
                self.double = max(0, self.double - 1)
            elif ch == '"':
                self.straight = not self.straight
            elif ch in self.OPEN_SINGLE:
                self.single += 1
            elif ch in self.CLOSE_SINGLE and self.single:
                before = text[idx - 1] if idx > 0 else ""
                after = text[idx + 1] if idx + 1 < len(text) else ""
                if not (before.isalnum() and after.isalnum()):
                    self.single -= 1


def _starts_with_opener(text: str) -> bool:
    return text[:1] in QUOTE_PAIRS


def chunk_text(
    text: str,
    target_words: int = DEFAULT_TARGET_WORDS,
    tolerance: int = DEFAULT_TOLERANCE,
) -> List[Chunk]:
    """
    Split ``text`` into chunks of roughly ``target_words`` words.

    Args:
        text: Raw document text
        target_words: Ideal chunk size in words
        tolerance: Allowed deviation around the target

    Returns:
        Ordered chunks covering the whole normalized text. Empty input gives [].

    Raises:
        ChunkingError: if ``text`` is not a string or the size knobs are invalid
    """
    if not isinstance(text, str):
        raise ChunkingError(f"chunk_text expects str, got {type(text).__name__}")
    if target_words <= 0 or tolerance < 0:
        raise ChunkingError(f"Invalid chunk sizes: target={target_words}, tolerance={tolerance}")

    normalized = normalize_text(text)
    if not normalized:
        return []

    blocks = classify_spans(split_blocks(normalized))
    upper = target_words + tolerance

    groups = _group_blocks(blocks, upper)
    _mark_quote_boundaries([unit for group in groups for unit in group])

    spans: List[List[_Unit]] = []
    for group in groups:
        spans.extend(_partition(group, target_words, tolerance))

    chunks = [
        Chunk(
            id="",
            text=normalized[units[0].start:units[-1].end],
            start_offset=units[0].start,
            end_offset=units[-1].end,
            starts_with_heading=units[0].is_heading,
        )
        for units in spans
    ]
    chunks = _rebalance_final_chunk(chunks, normalized, target_words, tolerance)

    for index, chunk in enumerate(chunks, start=1):
        chunk.id = f"chunk-{index}"

    logger.debug(
        "Chunked %d words into %d chunks (target=%d, tolerance=%d)",
        count_words(normalized), len(chunks), target_words, tolerance,
    )
    return chunks


def _block_unit(block: Block) -> _Unit:
    return _Unit(
        start=block.start,
        end=block.end,
        words=block.word_count,
        text=block.text,
        is_heading=block.kind is BlockKind.HEADING,
    )


def _group_blocks(blocks: List[Block], upper: int) -> List[List[_Unit]]:
    """
    Group blocks into runs that are partitioned independently.

    A heading always opens a new run. An oversized heading is a run of its own.
    An oversized paragraph or speech block becomes a run of sentence units,
    keeping a lone pending heading in front of it.
    """
    groups: List[List[_Unit]] = []
    pending: List[_Unit] = []

    def flush():
        if pending:
            groups.append(list(pending))
            pending.clear()

    for block in blocks:
        words = block.word_count
        if block.kind is BlockKind.HEADING:
            flush()
            if words > upper:
                logger.warning("Heading of %d words exceeds chunk bound; emitting verbatim", words)
                groups.append([_block_unit(block)])
            else:
                pending.append(_block_unit(block))
            continue

        if words > upper:
            prefix: List[_Unit] = []
            if len(pending) == 1 and pending[0].is_heading:
                prefix = [pending.pop()]
            flush()
            groups.append(prefix + _split_oversized(block, upper))
            continue

        pending.append(_block_unit(block))

    flush()
    return groups


def _split_oversized(block: Block, upper: int) -> List[_Unit]:
    """Break an oversized block into sentence units (word units for huge sentences)."""
    units: List[_Unit] = []
    position = block.start
    for sentence in split_sentences(block.text):
        pieces = [sentence]
        if count_words(sentence) > upper:
            pieces = split_words(sentence)
        for piece in pieces:
            body = piece.rstrip()
            units.append(
                _Unit(
                    start=position,
                    end=position + len(body),
                    words=count_words(body),
                    text=body,
                    block_first=not units,
                )
            )
            position += len(piece)
    return units


def _mark_quote_boundaries(units: List[_Unit]):
    """Forbid cuts after any unit that leaves a quotation open."""
    tracker = QuoteTracker()
    for index, unit in enumerate(units):
        continuation = False
        if unit.block_first and tracker.depth:
            if _starts_with_opener(unit.text):
                continuation = True
            else:
                tracker.reset()
        tracker.feed(unit.text, continuation=continuation)

        if tracker.depth == 0:
            unit.cut_ok = True
            continue

        following = units[index + 1] if index + 1 < len(units) else None
        # An unclosed quote not continued by the next paragraph is treated as closed
        unit.cut_ok = bool(following and following.block_first and not _starts_with_opener(following.text))


def _cut(units: List[_Unit], count: int, upper: int) -> List[List[_Unit]]:
    """
    Cut a run into ``count`` pieces, each cut at the allowed boundary closest
    to the running ideal size.

    A cut past ``upper`` is only taken when no allowed boundary comes earlier
    (an open quotation or a single large unit forces it).
    """
    remaining_chunks = count
    remaining_words = sum(unit.words for unit in units)
    pieces: List[List[_Unit]] = []
    start = 0

    while remaining_chunks > 1 and start < len(units):
        ideal = remaining_words / remaining_chunks
        running = 0
        best: Optional[int] = None
        best_distance = 0.0
        for index in range(start, len(units) - 1):
            unit = units[index]
            running += unit.words
            if unit.is_heading or not unit.cut_ok:
                continue
            if running > upper and best is not None:
                break
            distance = abs(running - ideal)
            if best is None or distance <= best_distance:
                best = index
                best_distance = distance
            elif running > ideal:
                break

        if best is None:
            break

        piece = units[start:best + 1]
        pieces.append(piece)
        remaining_words -= sum(unit.words for unit in piece)
        remaining_chunks -= 1
        start = best + 1

    if start < len(units):
        pieces.append(units[start:])
    return pieces


def _plan_score(pieces: List[List[_Unit]], target_words: int, lower: int, upper: int) -> Tuple[int, int, float, int]:
    """Sort key for candidate plans; smaller is better."""
    sizes = [sum(unit.words for unit in piece) for piece in pieces]
    overflow = sum(size - upper for size in sizes if size > upper)
    short = sum(1 for size in sizes if size < lower)
    # Ties on average size go to more, smaller chunks
    return overflow, short, abs(sum(sizes) / len(sizes) - target_words), -len(sizes)


def _partition(units: List[_Unit], target_words: int, tolerance: int) -> List[List[_Unit]]:
    """
    Cut a run into balanced pieces at allowed boundaries.

    Every chunk count between ``ceil(total/upper)`` and ``ceil(total/lower)``
    is tried. Plans that stay under ``upper`` win, then plans with the fewest
    pieces under ``lower``, then the one whose average is closest to target.
    """
    upper = target_words + tolerance
    lower = max(1, target_words - tolerance)
    total = sum(unit.words for unit in units)
    if total <= upper or len(units) == 1:
        return [units]

    low = max(2, math.ceil(total / upper))
    high = max(low, min(len(units), math.ceil(total / lower)))
    plans = [_cut(units, count, upper) for count in range(low, high + 1)]
    return min(plans, key=lambda pieces: _plan_score(pieces, target_words, lower, upper))


def _rebalance_final_chunk(
    chunks: List[Chunk],
    normalized: str,
    target_words: int,
    tolerance: int,
) -> List[Chunk]:
    """Merge a short trailing chunk into its predecessor when the result stays in bounds."""
    if len(chunks) < 2:
        return chunks

    last = chunks[-1]
    previous = chunks[-2]
    if last.word_count >= target_words - tolerance or last.starts_with_heading:
        return chunks

    combined = previous.word_count + last.word_count
    if combined > target_words + tolerance * REBALANCE_TOLERANCE_FACTOR:
        return chunks

    merged = Chunk(
        id="",
        text=normalized[previous.start_offset:last.end_offset],
        start_offset=previous.start_offset,
        end_offset=last.end_offset,
        starts_with_heading=previous.starts_with_heading,
    )
    logger.debug("Merged trailing chunk of %d words into previous (%d words)", last.word_count, combined)
    return chunks[:-2] + [merged]


def summarize_chunks(chunks: List[Chunk]) -> Dict[str, Any]:
    """Word-count statistics for a chunk plan."""
    counts = [chunk.word_count for chunk in chunks]
    return {
        "chunks": len(chunks),
        "total_words": sum(counts),
        "min_words": min(counts) if counts else 0,
        "max_words": max(counts) if counts else 0,
        "average_words": round(sum(counts) / len(counts), 1) if counts else 0.0,
    }
