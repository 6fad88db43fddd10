"""
Prompt construction for document question answering.

The prompt is plain text: a fixed role description, the caller's
context, the question, the ranked document sections and fixed
instructions. Sections are added in rank order until the character
budget is reached; a section is either included whole or left out.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from apps.rag.ranking import RankedChunk

logger = logging.getLogger(__name__)

DEFAULT_MAX_PROMPT_CHARS = 12000
DEFAULT_CONTEXT = 'General document query'

# Answers without supporting content are asked to use this phrasing
NOT_AVAILABLE_PHRASE = "The information is not available in the documents."

SYSTEM_ROLE = """You are DeciGenie, an AI assistant specialized in analyzing insurance policies, contracts, and legal documents.

Your task is to provide clear, accurate, and helpful answers based on the provided document content."""

INSTRUCTIONS = f"""INSTRUCTIONS:
1. Analyze the user query carefully
2. Extract relevant information from the provided document content
3. Provide a clear, structured answer
4. If the information is not available in the documents, say exactly: "{NOT_AVAILABLE_PHRASE}"
5. Include specific details like coverage amounts, exclusions, waiting periods, etc.
6. Format your response in a professional, easy-to-understand manner
7. If applicable, mention the source document for key information

Please provide your analysis:"""

NO_CONTENT_NOTICE = "RELEVANT DOCUMENT CONTENT:\n(No relevant document content was found for this query.)\n\n"


@dataclass
class ComposedPrompt:
    """The prompt text and the chunks that made it in."""
    text: str
    included: List[RankedChunk] = field(default_factory=list)

    @property
    def chunks_included(self) -> int:
        return len(self.included)


def format_section(position: int, chunk: RankedChunk) -> str:
    """One labelled document section."""
    return f"[Document {position}] (source: {chunk.document_name})\n{chunk.content}\n\n"


class PromptComposer:
    """Builds a bounded prompt from a question and ranked chunks."""

    def __init__(self, max_prompt_chars: int = DEFAULT_MAX_PROMPT_CHARS):
        if max_prompt_chars <= 0:
            raise ValueError(f"max_prompt_chars must be positive, got {max_prompt_chars}")
        self.max_prompt_chars = max_prompt_chars

    def _header(self, query: str, context: str) -> str:
        return f"{SYSTEM_ROLE}\n\nCONTEXT: {context}\n\nUSER QUERY: {query}\n\n"

    def compose(
        self,
        query: str,
        context: Optional[str],
        ranked_chunks: Sequence[RankedChunk],
    ) -> ComposedPrompt:
        """
        Assemble the prompt.

        Lower-ranked chunks are dropped first when the budget would be
        exceeded; the kept chunks are always a prefix of the ranking.
        """
        context = (context or '').strip() or DEFAULT_CONTEXT
        header = self._header(query, context)

        content_heading = "RELEVANT DOCUMENT CONTENT:\n"
        used = len(header) + len(content_heading) + len(INSTRUCTIONS)

        included: List[RankedChunk] = []
        sections: List[str] = []
        for chunk in ranked_chunks:
            section = format_section(len(included) + 1, chunk)
            if used + len(section) > self.max_prompt_chars:
                break
            used += len(section)
            included.append(chunk)
            sections.append(section)

        dropped = len(ranked_chunks) - len(included)
        if dropped:
            logger.info(f"Prompt budget {self.max_prompt_chars} reached, dropped {dropped} chunks")

        if included:
            body = content_heading + ''.join(sections)
        else:
            body = NO_CONTENT_NOTICE

        text = header + body + INSTRUCTIONS
        if len(text) > self.max_prompt_chars:
            logger.warning(
                f"Prompt without document content is {len(text)} chars, "
                f"over the {self.max_prompt_chars} budget"
            )

        return ComposedPrompt(text=text, included=included)
