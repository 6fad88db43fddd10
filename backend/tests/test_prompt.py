"""
Tests for prompt composition and its character budget.
"""
import pytest

from apps.rag.prompt import (
    DEFAULT_CONTEXT,
    INSTRUCTIONS,
    NO_CONTENT_NOTICE,
    NOT_AVAILABLE_PHRASE,
    SYSTEM_ROLE,
    PromptComposer,
)
from apps.rag.ranking import RankedChunk


def ranked(n, size=500):
    return [
        RankedChunk(
            chunk_id=f"c{i}",
            document_id=f"d{i}",
            document_name=f"doc{i}.pdf",
            chunk_index=i,
            content=f"[{i}]" + "x" * size,
            score=10.0 - i,
            rank=i + 1,
        )
        for i in range(n)
    ]


class TestPromptComposer:
    """Tests for PromptComposer."""

    def test_rejects_non_positive_budget(self):
        with pytest.raises(ValueError):
            PromptComposer(max_prompt_chars=0)

    def test_layout(self):
        prompt = PromptComposer().compose("Is dental covered?", "Health policy", ranked(2, size=20))

        text = prompt.text
        assert text.startswith(SYSTEM_ROLE)
        assert "CONTEXT: Health policy" in text
        assert "USER QUERY: Is dental covered?" in text
        assert "[Document 1] (source: doc0.pdf)" in text
        assert "[Document 2] (source: doc1.pdf)" in text
        assert text.index("[Document 1]") < text.index("[Document 2]")
        assert text.endswith(INSTRUCTIONS)
        assert NOT_AVAILABLE_PHRASE in text
        assert prompt.chunks_included == 2

    def test_default_context(self):
        prompt = PromptComposer().compose("Is dental covered?", None, [])
        assert f"CONTEXT: {DEFAULT_CONTEXT}" in prompt.text

    def test_blank_context_uses_default(self):
        prompt = PromptComposer().compose("Is dental covered?", "   ", [])
        assert f"CONTEXT: {DEFAULT_CONTEXT}" in prompt.text

    def test_no_chunks_has_no_sections(self):
        prompt = PromptComposer().compose("Is dental covered?", "", [])

        assert prompt.chunks_included == 0
        assert prompt.included == []
        assert "[Document" not in prompt.text
        assert NO_CONTENT_NOTICE in prompt.text

    def test_drops_lowest_ranked_to_fit_budget(self):
        chunks = ranked(3)
        budget = len(PromptComposer(max_prompt_chars=100000).compose("q", "c", chunks[:2]).text)

        prompt = PromptComposer(max_prompt_chars=budget).compose("q", "c", chunks)

        assert [c.chunk_id for c in prompt.included] == ["c0", "c1"]
        assert len(prompt.text) <= budget
        assert "[2]" not in prompt.text

    def test_never_truncates_a_chunk(self):
        chunks = ranked(4, size=300)
        for budget in (1500, 2000, 2500, 3000):
            prompt = PromptComposer(max_prompt_chars=budget).compose("q", "c", chunks)
            for chunk in chunks:
                if chunk in prompt.included:
                    assert chunk.content in prompt.text
                else:
                    assert chunk.content[:10] not in prompt.text

    def test_included_is_prefix_of_ranking(self):
        chunks = ranked(5, size=400)
        prompt = PromptComposer(max_prompt_chars=3000).compose("q", "c", chunks)
        assert prompt.included == chunks[:prompt.chunks_included]

    def test_deterministic(self):
        composer = PromptComposer()
        chunks = ranked(3, size=50)
        assert composer.compose("q", "c", chunks) == composer.compose("q", "c", chunks)
