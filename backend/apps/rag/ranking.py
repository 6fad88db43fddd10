"""
Lexical relevance ranking for RAG queries.

Scores an owner's stored chunks against a question with BM25 and
returns the best few. There is no embedding search; a chunk that
shares no term with the question is never returned.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from rank_bm25 import BM25L

from apps.docs.store import ChunkCandidate, DocumentStore

logger = logging.getLogger(__name__)

# Default number of chunks to retrieve
DEFAULT_TOP_K = 5

# Tokens this short carry no signal
MIN_TOKEN_LENGTH = 3

STOP_WORDS = frozenset({
    'about', 'after', 'all', 'also', 'and', 'any', 'are', 'been', 'but', 'can',
    'could', 'did', 'does', 'for', 'from', 'had', 'has', 'have', 'her', 'his',
    'how', 'into', 'its', 'may', 'more', 'not', 'our', 'out', 'she', 'should',
    'than', 'that', 'the', 'their', 'them', 'then', 'there', 'these', 'they',
    'this', 'was', 'were', 'what', 'when', 'where', 'which', 'who', 'why',
    'will', 'with', 'would', 'you', 'your',
})


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens, minus short tokens and stop words."""
    tokens = re.sub(r'[^\w\s-]', ' ', text.lower()).split()
    return [t for t in tokens if len(t) >= MIN_TOKEN_LENGTH and t not in STOP_WORDS]


@dataclass
class RankedChunk:
    """A chunk selected for a query, with its relevance score and 1-based rank."""
    chunk_id: str
    document_id: str
    document_name: str
    chunk_index: int
    content: str
    score: float
    rank: int

    def to_source_dict(self) -> dict:
        """Citation record stored with the query result."""
        return {
            'content': self.content,
            'document_name': self.document_name,
            'chunk_index': self.chunk_index,
            'rank': self.rank,
            'score': round(self.score, 4),
        }


class RelevanceRanker:
    """Ranks candidate chunks against a query with BM25L."""

    def __init__(self, top_k: int = DEFAULT_TOP_K):
        if top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")
        self.top_k = top_k

    def rank(self, query: str, candidates: Sequence[ChunkCandidate]) -> List[RankedChunk]:
        """
        Score candidates and return at most top_k of them.

        Order: score descending, then chunk index ascending, then the
        most recently created document first.

        Returns:
            Ranked chunks; empty when nothing matches
        """
        query_tokens = tokenize(query)
        if not query_tokens or not candidates:
            return []

        corpus = [tokenize(c.content) for c in candidates]
        query_terms = set(query_tokens)
        matching = [i for i, tokens in enumerate(corpus) if query_terms.intersection(tokens)]
        if not matching:
            logger.info("No chunk shares a term with the query")
            return []

        bm25 = BM25L(corpus)
        scores = bm25.get_scores(query_tokens)

        scored = [(float(scores[i]), candidates[i]) for i in matching]
        scored = [(score, c) for score, c in scored if score > 0]
        scored.sort(key=lambda pair: (
            -pair[0],
            pair[1].chunk_index,
            -pair[1].document_created_at.timestamp(),
            pair[1].document_id,
        ))

        return [
            RankedChunk(
                chunk_id=c.chunk_id,
                document_id=c.document_id,
                document_name=c.document_name,
                chunk_index=c.chunk_index,
                content=c.content,
                score=score,
                rank=position,
            )
            for position, (score, c) in enumerate(scored[:self.top_k], 1)
        ]


def retrieve_relevant_chunks(
    store: DocumentStore,
    owner_user_id: str,
    query: str,
    top_k: int = DEFAULT_TOP_K,
    ranker: Optional[RelevanceRanker] = None,
) -> List[RankedChunk]:
    """
    Rank the owner's processed chunks for a query.

    Args:
        store: DocumentStore to read candidates from
        owner_user_id: Only this owner's documents are searched
        query: The user's question
        top_k: Maximum number of chunks to return (ignored when ranker is given)
        ranker: RelevanceRanker to use instead of a fresh one

    Returns:
        Ranked chunks (possibly empty)
    """
    ranker = ranker or RelevanceRanker(top_k=top_k)
    candidates = store.chunks_for_owner(owner_user_id)
    ranked = ranker.rank(query, candidates)

    logger.info(
        f"Retrieved {len(ranked)} of {len(candidates)} chunks for user {owner_user_id} "
        f"(requested top_k={ranker.top_k})"
    )
    return ranked
