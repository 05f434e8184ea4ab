"""
Tests for chunker.py - semantic chunking.

Covers:
- Empty / invalid input
- Balanced partition (1200 words -> 3 x 400)
- Coverage and offset invariants
- Heading isolation and oversized headings
- Oversized paragraphs split at sentence and word boundaries
- Quotation integrity, including quotes spanning paragraphs
- Trailing-chunk rebalancing
"""

import pytest

from block_classifier import is_heading
from chunker import Chunk, ChunkingError, QuoteTracker, chunk_text, summarize_chunks
from word_count_utils import normalize_text

from conftest import make_document, make_paragraph


def sentences(count: int, words_per_sentence: int = 10, seed: str = "s") -> str:
    """``count`` sentences of exactly ``words_per_sentence`` words each."""
    out = []
    for n in range(count):
        body = " ".join(f"{seed}{n}w{i}" for i in range(words_per_sentence - 1))
        out.append(f"{body} end.")
    return " ".join(out)


def assert_covers(text, chunks):
    normalized = normalize_text(text)
    previous_end = 0
    for chunk in chunks:
        assert normalized[chunk.start_offset:chunk.end_offset] == chunk.text
        assert chunk.start_offset >= previous_end
        assert chunk.text.strip()
        previous_end = chunk.end_offset
    assert " ".join(chunk.text for chunk in chunks).split() == normalized.split()


class TestBasics:
    """Tests for trivial inputs and argument validation."""

    @pytest.mark.parametrize("text", ["", "   \n\n  "])
    def test_empty_input_yields_no_chunks(self, text):
        assert chunk_text(text) == []

    def test_non_string_raises(self):
        with pytest.raises(ChunkingError):
            chunk_text(None)

    def test_invalid_sizes_raise(self):
        with pytest.raises(ChunkingError):
            chunk_text("text", target_words=0)

    def test_small_document_is_one_chunk(self):
        text = make_document([120, 80])
        chunks = chunk_text(text)

        assert len(chunks) == 1
        assert chunks[0].id == "chunk-1"
        assert chunks[0].word_count == 200
        assert_covers(text, chunks)

    def test_word_count_follows_text(self):
        chunk = Chunk(id="chunk-1", text="one two", start_offset=0, end_offset=7)
        assert chunk.word_count == 2
        chunk.text = "one two three"
        assert chunk.word_count == 3


class TestBalancedPartition:
    """Scenario: 1200 words without headings at target 500 / tolerance 100."""

    def test_twelve_paragraphs_give_three_chunks_of_400(self):
        text = make_document([100] * 12)
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert len(chunks) == 3
        assert [chunk.word_count for chunk in chunks] == [400, 400, 400]
        assert [chunk.id for chunk in chunks] == ["chunk-1", "chunk-2", "chunk-3"]
        assert_covers(text, chunks)

    def test_single_oversized_paragraph_splits_at_sentences(self):
        """
        Given: One 1200-word paragraph of 10-word sentences
        Then: Three chunks of 400 words, each ending at a sentence boundary
        """
        text = sentences(120)
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert [chunk.word_count for chunk in chunks] == [400, 400, 400]
        for chunk in chunks:
            assert chunk.text.endswith("end.")
        assert_covers(text, chunks)

    def test_sentence_without_punctuation_splits_at_words(self):
        text = " ".join(f"w{i}" for i in range(1500))
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert [chunk.word_count for chunk in chunks] == [500, 500, 500]
        assert_covers(text, chunks)

    @pytest.mark.parametrize(
        "sizes",
        [
            [100] * 12,
            [50] * 30,
            [300, 250, 200, 180, 90, 400, 20],
            [590, 590, 590],
            [35] * 70,
        ],
    )
    def test_chunks_stay_within_bounds_for_regular_paragraphs(self, sizes):
        text = make_document(sizes)
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert_covers(text, chunks)
        for chunk in chunks:
            assert chunk.word_count <= 650

    def test_cut_never_passes_upper_bound_when_earlier_cut_exists(self):
        """
        Given: Three 380-word paragraphs (two would make 760 words)
        Then: Three chunks, none above target + tolerance
        """
        text = make_document([380, 380, 380])
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert [chunk.word_count for chunk in chunks] == [380, 380, 380]
        assert_covers(text, chunks)

    def test_chunk_count_prefers_sizes_inside_band(self):
        """
        Given: Four 300-word paragraphs
        Then: Two 600-word chunks rather than 300/600/300
        """
        text = make_document([300] * 4)
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert [chunk.word_count for chunk in chunks] == [600, 600]
        assert_covers(text, chunks)

    @pytest.mark.parametrize("sizes", [[380] * 3, [380] * 5, [300] * 4, [550, 350, 550], [450, 200, 450, 450]])
    def test_regular_paragraphs_never_exceed_upper_bound(self, sizes):
        chunks = chunk_text(make_document(sizes), target_words=500, tolerance=100)
        assert all(chunk.word_count <= 600 for chunk in chunks)


class TestHeadings:
    """Heading rules: isolation, flushing and oversized headings."""

    def test_headings_only_open_chunks(self):
        text = "\n\n".join(
            ["Chapter 1"]
            + [make_paragraph(150, f"a{n}x") for n in range(3)]
            + ["Chapter 2"]
            + [make_paragraph(100, f"b{n}x") for n in range(2)]
            + ["Chapter 3"]
            + [make_paragraph(200, f"c{n}x") for n in range(5)]
        )
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert len(chunks) == 4
        assert chunks[0].text.startswith("Chapter 1")
        assert chunks[1].text.startswith("Chapter 2")
        assert chunks[2].text.startswith("Chapter 3")
        for chunk in chunks:
            for block in chunk.text.split("\n\n")[1:]:
                assert not is_heading(block)
        assert_covers(text, chunks)

    def test_heading_flushes_short_buffer(self):
        text = "\n\n".join([make_paragraph(100), "Chapter 2", make_paragraph(100, "b")])
        chunks = chunk_text(text)

        assert len(chunks) == 2
        assert chunks[0].word_count == 100
        assert chunks[1].text.startswith("Chapter 2")

    def test_oversized_heading_is_emitted_verbatim(self):
        heading = "Chapter 1: " + " ".join(["word"] * 700)
        text = "\n\n".join([heading, make_paragraph(100)])
        chunks = chunk_text(text)

        assert len(chunks) == 2
        assert chunks[0].text == heading
        assert chunks[1].word_count == 100

    def test_heading_stays_with_following_oversized_paragraph(self):
        text = "\n\n".join(["Chapter 9", sentences(100)])
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert chunks[0].text.startswith("Chapter 9\n\n")
        assert_covers(text, chunks)


class TestQuotations:
    """No chunk ends inside an open quotation."""

    def test_oversized_block_not_cut_inside_quote(self):
        """
        Given: 300 words of narrative, a 400-word quotation, 300 more words
        Then: The quotation is one chunk and nothing exceeds the upper bound
        """
        narrative_a = sentences(30, seed="a")
        quoted = "“" + sentences(40, seed="q") + "”"
        narrative_b = sentences(30, seed="b")
        text = " ".join([narrative_a, quoted, narrative_b])
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert [chunk.word_count for chunk in chunks] == [300, 400, 300]
        assert chunks[1].text.startswith("“") and chunks[1].text.endswith("”")
        for chunk in chunks:
            assert chunk.text.count("“") == chunk.text.count("”")
        assert_covers(text, chunks)

    def test_quote_continued_across_paragraphs_is_kept_together(self):
        """
        Given: A quotation opened in one paragraph and re-opened in the next
        Then: The paragraph boundary inside the quotation is not a cut point
        """
        first = "“" + make_paragraph(250, "p")
        second = "“" + make_paragraph(250, "q") + "”"
        text = "\n\n".join([first, second, make_paragraph(250, "r"), make_paragraph(250, "s")])
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert len(chunks) == 2
        assert chunks[0].text == f"{first}\n\n{second}"

    def test_stray_quote_does_not_block_later_cuts(self):
        text = "\n\n".join(["“" + make_paragraph(300, "p"), make_paragraph(300, "q"), make_paragraph(300, "r")])
        chunks = chunk_text(text, target_words=500, tolerance=100)
        assert len(chunks) > 1

    def test_tracker_ignores_apostrophes(self):
        tracker = QuoteTracker()
        tracker.feed("‘It’s fine,’ she said. Don't worry.")
        assert tracker.depth == 0

    def test_tracker_straight_quotes_toggle(self):
        tracker = QuoteTracker()
        tracker.feed('"Open')
        assert tracker.depth == 1
        tracker.feed('close."')
        assert tracker.depth == 0


class TestRebalancing:
    """Trailing chunk merge rules."""

    def test_short_tail_merged_when_combined_fits(self):
        text = make_document([550, 100])
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert len(chunks) == 1
        assert chunks[0].text == normalize_text(text)
        assert chunks[0].word_count == 650

    def test_short_tail_kept_when_combined_too_large(self):
        text = make_document([580, 150])
        chunks = chunk_text(text, target_words=500, tolerance=100)

        assert [chunk.word_count for chunk in chunks] == [580, 150]

    @pytest.mark.parametrize(
        "sizes",
        [[550, 100], [580, 150], [100] * 7, [450, 450, 120], [200] * 9, [610], [400, 399]],
    )
    def test_rebalancing_property(self, sizes):
        chunks = chunk_text(make_document(sizes), target_words=500, tolerance=100)
        if len(chunks) >= 2:
            last, previous = chunks[-1], chunks[-2]
            assert last.word_count >= 400 or last.word_count + previous.word_count > 650


def test_summarize_chunks():
    chunks = chunk_text(make_document([100] * 12))
    stats = summarize_chunks(chunks)

    assert stats == {
        "chunks": 3,
        "total_words": 1200,
        "min_words": 400,
        "max_words": 400,
        "average_words": 400.0,
    }
