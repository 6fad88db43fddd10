"""
Query pipeline: rank, compose, complete, score, persist.

The completion call runs outside any database transaction. A
QueryResult is written only after the answer is complete, in the same
transaction that marks the query COMPLETED, so a failed or abandoned
query never leaves a partial result behind.
"""
import logging
import math
import time
from dataclasses import dataclass, field
from typing import List, Optional

from django.conf import settings
from django.db import DatabaseError, transaction

from apps.authn.audit import audit_query_completed, audit_query_failed
from apps.docs.store import DjangoDocumentStore, DocumentStore, StorageFailure
from apps.rag.confidence import score_confidence
from apps.rag.llm_client import BaseCompletionClient, GenerationParams, get_completion_client
from apps.rag.models import Query, QueryResult, QueryStatus
from apps.rag.prompt import DEFAULT_CONTEXT, PromptComposer
from apps.rag.ranking import RankedChunk, RelevanceRanker, retrieve_relevant_chunks

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 1000
MAX_CONTEXT_LENGTH = 500


class QueryValidationError(ValueError):
    """Raised when a question or its context is out of bounds."""
    code = 'VALIDATION_ERROR'


def estimate_token_count(text: str) -> int:
    """Rough estimation: 1 token is about 4 characters."""
    return math.ceil(len(text) / 4)


def validate_query(query_text: Optional[str], context: Optional[str] = None):
    """
    Trim and bound-check a question and its optional context.

    Returns:
        (query_text, context) trimmed

    Raises:
        QueryValidationError: If the question is empty or either value is too long
    """
    query_text = (query_text or '').strip()
    if not query_text:
        raise QueryValidationError("Query must be between 1 and 1000 characters")
    if len(query_text) > MAX_QUERY_LENGTH:
        raise QueryValidationError("Query must be between 1 and 1000 characters")

    context = (context or '').strip()
    if len(context) > MAX_CONTEXT_LENGTH:
        raise QueryValidationError("Context must be less than 500 characters")

    return query_text, context


@dataclass
class QueryOutcome:
    """A completed query and its answer."""
    query_id: str
    result_text: str
    confidence_score: float
    source_chunks: List[RankedChunk] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'query_id': self.query_id,
            'result_text': self.result_text,
            'confidence_score': self.confidence_score,
            'source_chunks': [c.to_source_dict() for c in self.source_chunks],
            'metadata': self.metadata,
        }


def _fail_query(query: Query, error: Exception) -> None:
    code = getattr(error, 'code', 'INTERNAL_ERROR')
    Query.objects.filter(id=query.id).update(
        status=QueryStatus.FAILED,
        error_message=f"{type(error).__name__}: {error}",
    )
    audit_query_failed(query.owner_user_id, str(query.id), code)


def answer_query(
    owner_user_id: str,
    query_text: str,
    context: Optional[str] = None,
    client: Optional[BaseCompletionClient] = None,
    store: Optional[DocumentStore] = None,
    ranker: Optional[RelevanceRanker] = None,
    composer: Optional[PromptComposer] = None,
    params: Optional[GenerationParams] = None,
) -> QueryOutcome:
    """
    Answer a question from the owner's processed documents.

    Args:
        owner_user_id: Only this owner's documents are searched
        query_text: The question (1-1000 characters)
        context: Optional free-text context (up to 500 characters)
        client: Completion client (configured provider by default)
        store: DocumentStore to read chunks from
        ranker: RelevanceRanker (RAG_TOP_K by default)
        composer: PromptComposer (PROMPT_MAX_CHARS by default)
        params: Generation parameters (settings by default)

    Returns:
        QueryOutcome with the answer, confidence and cited chunks

    Raises:
        QueryValidationError: Before any record is created
        CompletionError, StorageFailure: After the query has been marked FAILED
    """
    if not owner_user_id:
        raise ValueError("owner_user_id is required")
    query_text, context = validate_query(query_text, context)

    store = store or DjangoDocumentStore()
    ranker = ranker or RelevanceRanker(top_k=getattr(settings, 'RAG_TOP_K', 5))
    composer = composer or PromptComposer(max_prompt_chars=getattr(settings, 'PROMPT_MAX_CHARS', 12000))
    params = params or GenerationParams.from_settings()

    query = Query.objects.create(
        owner_user_id=owner_user_id,
        query_text=query_text,
        context=context or DEFAULT_CONTEXT,
        status=QueryStatus.PROCESSING,
    )
    started = time.monotonic()

    try:
        ranked = retrieve_relevant_chunks(store, owner_user_id, query_text, ranker=ranker)

        prompt = composer.compose(query_text, context, ranked)
        logger.debug(f"Prompt length: {len(prompt.text)} chars, {prompt.chunks_included} chunks")

        client = client or get_completion_client()
        completion = client.complete(prompt.text, params)
    except Exception as e:
        logger.error(f"Query {query.id} failed: {e}")
        _fail_query(query, e)
        raise

    confidence = score_confidence(completion.text, prompt.chunks_included)
    metadata = {
        'model_used': completion.model,
        'processing_time_ms': int((time.monotonic() - started) * 1000),
        'chunks_considered': len(ranked),
        'chunks_used': prompt.chunks_included,
        'prompt_tokens': estimate_token_count(prompt.text),
        'response_tokens': estimate_token_count(completion.text),
    }

    try:
        with transaction.atomic():
            QueryResult.objects.create(
                query=query,
                result_text=completion.text,
                confidence_score=confidence,
                source_chunks=[c.to_source_dict() for c in prompt.included],
                metadata=metadata,
            )
            query.status = QueryStatus.COMPLETED
            query.save(update_fields=['status', 'updated_at'])
    except DatabaseError as e:
        failure = StorageFailure(f"Failed to store result for query {query.id}: {e}")
        logger.error(f"Query {query.id} failed: {failure}")
        _fail_query(query, failure)
        raise failure from e

    audit_query_completed(
        owner_user_id,
        str(query.id),
        question_length=len(query_text),
        chunks_used=prompt.chunks_included,
        confidence_score=confidence,
    )

    return QueryOutcome(
        query_id=str(query.id),
        result_text=completion.text,
        confidence_score=confidence,
        source_chunks=list(prompt.included),
        metadata=metadata,
    )
