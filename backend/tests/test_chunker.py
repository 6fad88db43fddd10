"""
Tests for the text chunker.

Covers configuration validation, boundary snapping, termination on
pathological input and determinism.
"""
import string

import pytest

from apps.indexing.chunker import Chunker, InvalidConfiguration, TextChunk


def unpunctuated(length: int) -> str:
    """Text with no '.' or newline and no whitespace to trim."""
    letters = string.ascii_lowercase
    return "".join(letters[i % len(letters)] for i in range(length))


# ============================================================================
# Configuration
# ============================================================================

class TestChunkerConfiguration:
    """Tests for size/overlap validation."""

    def test_defaults(self):
        """Should default to 1000/200."""
        chunker = Chunker()
        assert chunker.chunk_size == 1000
        assert chunker.chunk_overlap == 200

    @pytest.mark.parametrize("size,overlap", [
        (100, 100),
        (100, 150),
        (0, 0),
        (-10, 0),
        (100, -1),
    ])
    def test_rejects_non_terminating_configuration(self, size, overlap):
        """Overlap must be smaller than size and both must be sane."""
        with pytest.raises(InvalidConfiguration):
            Chunker(chunk_size=size, chunk_overlap=overlap)

    def test_rejects_non_integer_size(self):
        with pytest.raises(InvalidConfiguration):
            Chunker(chunk_size="1000", chunk_overlap=200)

    def test_invalid_configuration_is_value_error(self):
        """Callers catching ValueError should see configuration errors."""
        with pytest.raises(ValueError):
            Chunker(chunk_size=10, chunk_overlap=10)

    def test_zero_overlap_allowed(self):
        chunks = Chunker(chunk_size=10, chunk_overlap=0).chunk(unpunctuated(25))
        assert [c.text for c in chunks] == [unpunctuated(25)[0:10], unpunctuated(25)[10:20], unpunctuated(25)[20:25]]


# ============================================================================
# Chunking behaviour
# ============================================================================

class TestChunking:
    """Tests for the chunking walk."""

    def test_empty_text_yields_no_chunks(self):
        assert Chunker().chunk("") == []

    def test_whitespace_only_yields_no_chunks(self):
        assert Chunker().chunk("   \n\n\t  ") == []

    def test_short_text_is_single_trimmed_chunk(self):
        """Input no longer than the window is one chunk equal to the trimmed input."""
        text = "  Coverage starts on the policy date.\nExclusions apply.  "
        chunks = Chunker().chunk(text)

        assert len(chunks) == 1
        assert chunks[0].text == text.strip()
        assert chunks[0].index == 0

    def test_text_exactly_window_size_is_single_chunk(self):
        text = unpunctuated(1000)
        chunks = Chunker().chunk(text)
        assert len(chunks) == 1
        assert chunks[0].text == text

    def test_unpunctuated_2500_chars(self):
        """2,500 characters without boundaries: three hard-cut windows."""
        text = unpunctuated(2500)
        chunks = Chunker(chunk_size=1000, chunk_overlap=200).chunk(text)

        assert len(chunks) == 3
        assert all(len(c.text) <= 1000 for c in chunks)
        assert [(c.start_char, c.end_char) for c in chunks] == [(0, 1000), (800, 1800), (1600, 2500)]

        for previous, current in zip(chunks, chunks[1:]):
            overlap = previous.end_char - current.start_char
            assert 0 < overlap <= 200

        covered = set()
        for c in chunks:
            covered.update(range(c.start_char, c.end_char))
        assert covered == set(range(len(text)))

    def test_snaps_to_sentence_boundary(self):
        """A window end is pulled back to the last '.' in its tail."""
        text = "a" * 850 + "." + "b" * 400
        chunks = Chunker(chunk_size=1000, chunk_overlap=200).chunk(text)

        assert chunks[0].end_char == 851
        assert chunks[0].text.endswith(".")
        assert chunks[1].start_char == 651

    def test_snaps_to_newline(self):
        text = "a" * 900 + "\n" + "b" * 400
        chunks = Chunker(chunk_size=1000, chunk_overlap=200).chunk(text)
        assert chunks[0].end_char == 901

    def test_ignores_boundary_before_search_window(self):
        """Boundaries in the first 70% of the window do not shorten it."""
        text = "a" * 500 + "." + "b" * 1000
        chunks = Chunker(chunk_size=1000, chunk_overlap=200).chunk(text)
        assert chunks[0].end_char == 1000

    def test_indices_contiguous_from_zero(self):
        text = ("Policy clause. " * 300) + ("\nWaiting period applies." * 50)
        chunks = Chunker(chunk_size=200, chunk_overlap=50).chunk(text)

        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert all(c.text.strip() for c in chunks)

    def test_start_strictly_increases(self):
        """Even with dense boundaries the walk always moves forward."""
        text = "." * 3000
        chunks = Chunker(chunk_size=10, chunk_overlap=9).chunk(text)

        starts = [c.start_char for c in chunks]
        assert starts == sorted(set(starts))
        assert chunks[-1].end_char == len(text)

    def test_pathological_large_overlap_terminates(self):
        text = unpunctuated(5000)
        chunks = Chunker(chunk_size=100, chunk_overlap=99).chunk(text)

        assert chunks[-1].end_char == len(text)
        assert all(len(c.text) <= 100 for c in chunks)

    def test_skips_whitespace_only_windows(self):
        """Blank windows produce no chunk and do not consume an index."""
        text = "a" * 10 + " " * 50 + "b" * 10
        chunks = Chunker(chunk_size=10, chunk_overlap=0).chunk(text)

        assert [c.text for c in chunks] == ["a" * 10, "b" * 10]
        assert [c.index for c in chunks] == [0, 1]

    def test_deterministic(self):
        """Re-chunking the same text yields an identical sequence."""
        text = ("The policy covers hospitalisation. Exclusions are listed below.\n" * 80)
        chunker = Chunker(chunk_size=300, chunk_overlap=60)

        first = chunker.chunk(text)
        second = chunker.chunk(text)
        assert first == second
        assert first == Chunker(chunk_size=300, chunk_overlap=60).chunk(text)

    def test_chunk_dataclass(self):
        chunk = TextChunk(index=0, text="abc", start_char=0, end_char=3)
        assert chunk.char_count == 3
