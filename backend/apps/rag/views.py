"""
Query API views.

Provides endpoints for:
- POST /api/queries - Ask a question over the user's documents
- GET /api/queries/recent - Recent questions and answers
- GET /api/queries/<id> - One question and its answer
- GET /api/queries/stats/summary - Per-user query totals
"""
import json
import logging

from django.db.models import Avg, Count, Max, Q
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.authn.middleware import owner_required
from apps.docs.store import StorageFailure
from apps.rag.llm_client import CompletionError, CompletionTimeout, RateLimited
from apps.rag.models import Query, QueryStatus
from apps.rag.service import QueryValidationError, answer_query

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 10
MAX_RECENT_LIMIT = 100


def serialize_query(query: Query) -> dict:
    """Query plus its result, if one was recorded."""
    data = {
        'id': str(query.id),
        'query_text': query.query_text,
        'context': query.context,
        'status': query.status,
        'error_message': query.error_message,
        'created_at': query.created_at.isoformat(),
        'updated_at': query.updated_at.isoformat(),
        'result': None,
    }
    result = getattr(query, 'result', None)
    if result is not None:
        data['result'] = {
            'result_text': result.result_text,
            'confidence_score': result.confidence_score,
            'source_chunks': result.source_chunks,
            'metadata': result.metadata,
        }
    return data


def completion_error_status(error: CompletionError) -> int:
    if isinstance(error, CompletionTimeout):
        return 504
    if isinstance(error, RateLimited):
        return 429
    return 502


@method_decorator(csrf_exempt, name='dispatch')
@method_decorator(owner_required, name='dispatch')
class QueryView(View):
    """
    POST /api/queries

    Request body:
        {
            "query": "What is the waiting period for pre-existing diseases?",
            "context": "Health policy review"  // optional
        }

    Response (201):
        {
            "query_id": "...",
            "result_text": "...",
            "confidence_score": 0.95,
            "source_chunks": [
                {"content": "...", "document_name": "policy.pdf", "chunk_index": 3, "rank": 1, "score": 2.31}
            ],
            "metadata": {"model_used": "...", "processing_time_ms": 812, ...}
        }
    """

    def post(self, request):
        try:
            body = json.loads(request.body)
        except json.JSONDecodeError:
            return JsonResponse({'error': 'Invalid JSON', 'code': 'INVALID_JSON'}, status=400)

        if not isinstance(body, dict):
            return JsonResponse({'error': 'Request body must be an object', 'code': 'INVALID_JSON'}, status=400)

        query_text = body.get('query')
        context = body.get('context')
        if not isinstance(query_text, str) or (context is not None and not isinstance(context, str)):
            return JsonResponse(
                {'error': 'query and context must be strings', 'code': 'VALIDATION_ERROR'},
                status=400
            )

        try:
            outcome = answer_query(request.owner_user_id, query_text, context)
        except QueryValidationError as e:
            return JsonResponse({'error': str(e), 'code': e.code}, status=400)
        except CompletionError as e:
            return JsonResponse(
                {'error': str(e), 'code': e.code},
                status=completion_error_status(e)
            )
        except StorageFailure as e:
            logger.error(f"Query storage failure: {e}")
            return JsonResponse({'error': 'Query storage failed', 'code': e.code}, status=500)

        return JsonResponse(outcome.to_dict(), status=201)


@method_decorator(csrf_exempt, name='dispatch')
@method_decorator(owner_required, name='dispatch')
class RecentQueriesView(View):
    """GET /api/queries/recent?limit=10"""

    def get(self, request):
        try:
            limit = int(request.GET.get('limit', DEFAULT_RECENT_LIMIT))
        except (TypeError, ValueError):
            limit = DEFAULT_RECENT_LIMIT
        limit = max(1, min(limit, MAX_RECENT_LIMIT))

        queries = (
            Query.objects.filter(owner_user_id=request.owner_user_id)
            .select_related('result')
            .order_by('-created_at')[:limit]
        )
        return JsonResponse({'queries': [serialize_query(q) for q in queries]})


@method_decorator(csrf_exempt, name='dispatch')
@method_decorator(owner_required, name='dispatch')
class QueryDetailView(View):
    """GET /api/queries/<query_id>"""

    def get(self, request, query_id):
        query = (
            Query.objects.filter(id=query_id, owner_user_id=request.owner_user_id)
            .select_related('result')
            .first()
        )
        if query is None:
            return JsonResponse({'error': 'Query not found', 'code': 'NOT_FOUND'}, status=404)
        return JsonResponse(serialize_query(query))


@method_decorator(csrf_exempt, name='dispatch')
@method_decorator(owner_required, name='dispatch')
class QueryStatsView(View):
    """GET /api/queries/stats/summary"""

    def get(self, request):
        stats = Query.objects.filter(owner_user_id=request.owner_user_id).aggregate(
            total_queries=Count('id'),
            completed_queries=Count('id', filter=Q(status=QueryStatus.COMPLETED)),
            failed_queries=Count('id', filter=Q(status=QueryStatus.FAILED)),
            avg_confidence=Avg('result__confidence_score'),
            last_query_time=Max('created_at'),
        )
        avg_confidence = stats['avg_confidence']
        return JsonResponse({
            'stats': {
                'total_queries': stats['total_queries'],
                'completed_queries': stats['completed_queries'],
                'failed_queries': stats['failed_queries'],
                'avg_confidence': round(avg_confidence, 4) if avg_confidence is not None else None,
                'last_query_time': stats['last_query_time'].isoformat() if stats['last_query_time'] else None,
            }
        })
