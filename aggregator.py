"""
Chunk Aggregator - joins per-chunk results back into one document.
"""

from typing import List, Sequence

CHUNK_SEPARATOR = "\n\n"


def aggregate_chunks(edited_chunks: Sequence[str]) -> str:
    """
    Join edited chunk texts in order with a blank line between them.

    Every slot must be filled: failed chunks are expected to carry their
    original text, so the output always has one piece per input chunk.
    """
    pieces: List[str] = []
    for index, piece in enumerate(edited_chunks):
        if piece is None:
            raise ValueError(f"Chunk slot {index} was never filled")
        pieces.append(piece.strip())
    return CHUNK_SEPARATOR.join(pieces)
