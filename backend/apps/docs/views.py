"""
Document upload and management views.

Provides endpoints for:
- POST /api/docs/upload - Upload and ingest a document
- POST /api/docs/upload-multiple - Upload and ingest several documents
- GET /api/docs - List user's documents
- GET /api/docs/<id> - Get document details
- DELETE /api/docs/<id> - Delete a document and its chunks
- GET /api/docs/<id>/chunks - Page through a document's chunks
- GET /api/docs/stats/summary - Per-user totals
"""
import logging
from pathlib import Path

from django.conf import settings
from django.db.models import Avg, Count, Max, Q, Sum
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from apps.authn.audit import audit_document_deleted, audit_document_uploaded
from apps.authn.middleware import owner_required
from apps.indexing.chunker import InvalidConfiguration
from apps.indexing.extractor import (
    EmptyExtraction,
    ExtractionError,
    ExtractionFailure,
    UnsupportedFormat,
    UploadTooLarge,
)
from apps.indexing.models import DocumentChunk
from apps.indexing.pipeline import IngestionResult, ingest_document, validate_upload
from .models import Document, DocumentStatus
from .storage import StorageError, get_storage
from .store import DjangoDocumentStore, NotFound, StorageFailure

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

# HTTP status per ingestion failure kind
INGESTION_ERROR_STATUS = {
    UnsupportedFormat: 400,
    UploadTooLarge: 400,
    EmptyExtraction: 422,
    ExtractionFailure: 422,
}


def get_extension(filename: str) -> str:
    """Extract file extension from filename."""
    return Path(filename).suffix.lower()


def parse_pagination(request, default_limit: int = DEFAULT_PAGE_SIZE):
    """Read limit/offset query params, falling back to defaults on bad input."""
    try:
        limit = int(request.GET.get('limit', default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    try:
        offset = int(request.GET.get('offset', 0))
    except (TypeError, ValueError):
        offset = 0
    return max(1, min(limit, MAX_PAGE_SIZE)), max(0, offset)


def serialize_document(doc: Document) -> dict:
    return {
        'id': str(doc.id),
        'filename': doc.filename,
        'fileType': doc.file_type,
        'sizeBytes': doc.size_bytes,
        'status': doc.status,
        'chunksCount': getattr(doc, 'chunks_count', 0) or 0,
        'errorMessage': doc.error_message,
        'createdAt': doc.created_at.isoformat(),
        'updatedAt': doc.updated_at.isoformat(),
    }


def error_response(error: Exception, status: int) -> JsonResponse:
    return JsonResponse(
        {'error': str(error), 'code': getattr(error, 'code', 'INTERNAL_ERROR')},
        status=status
    )


def ingest_uploaded_file(owner_user_id: str, uploaded_file) -> IngestionResult:
    """
    Validate, stage and ingest one uploaded file.

    The staged copy is removed if ingestion fails and kept (referenced by
    the document) if it succeeds.
    """
    filename = uploaded_file.name
    validate_upload(filename, uploaded_file.size)

    storage = get_storage()
    with storage.staged(get_extension(filename), uploaded_file) as staged:
        return ingest_document(
            owner_user_id=owner_user_id,
            filename=filename,
            data=staged.read_bytes(),
            storage_path=staged.storage_path,
            store=DjangoDocumentStore(storage=storage),
        )


def ingestion_error_response(e: Exception) -> JsonResponse:
    """Map an ingestion failure onto an HTTP response."""
    if isinstance(e, ExtractionError):
        return error_response(e, INGESTION_ERROR_STATUS.get(type(e), 422))
    if isinstance(e, InvalidConfiguration):
        return error_response(e, 500)
    if isinstance(e, (StorageFailure, StorageError)):
        return JsonResponse({'error': 'Failed to store document', 'code': 'STORAGE_ERROR'}, status=500)
    logger.exception(f"Unexpected error during upload: {e}")
    return JsonResponse({'error': 'Internal server error', 'code': 'INTERNAL_ERROR'}, status=500)


@csrf_exempt
@require_http_methods(["POST"])
@owner_required
def upload_document(request):
    """
    Upload and ingest a document.

    POST /api/docs/upload

    Accepts multipart/form-data with a 'document' (or 'file') field.

    Allowed file types: PDF, DOCX, TXT
    Max size: 50MB (configurable)

    Returns:
        {
            "documentId": "uuid",
            "filename": "original.pdf",
            "textLength": 12345,
            "chunksCount": 14,
            "status": "processed"
        }
    """
    owner = request.owner_user_id
    uploaded_file = request.FILES.get('document') or request.FILES.get('file')

    if uploaded_file is None:
        return JsonResponse(
            {'error': 'No file uploaded', 'code': 'MISSING_FILE'},
            status=400
        )

    logger.info(f"Upload request: {uploaded_file.name}, {uploaded_file.size} bytes from user {owner}")

    try:
        result = ingest_uploaded_file(owner, uploaded_file)
    except Exception as e:
        return ingestion_error_response(e)

    audit_document_uploaded(
        owner,
        document_id=result.document_id,
        filename=result.filename,
        size_bytes=uploaded_file.size,
        chunks_count=result.chunks_count,
        request=request,
    )

    response = result.to_dict()
    response['message'] = 'Document uploaded and processed successfully'
    return JsonResponse(response, status=201)


@csrf_exempt
@require_http_methods(["POST"])
@owner_required
def upload_multiple_documents(request):
    """
    Upload and ingest several documents in one request.

    POST /api/docs/upload-multiple

    Accepts multipart/form-data with repeated 'documents' fields. Each
    file is ingested independently; one failure does not affect others.
    """
    owner = request.owner_user_id
    files = request.FILES.getlist('documents')

    if not files:
        return JsonResponse(
            {'error': 'No files uploaded', 'code': 'MISSING_FILE'},
            status=400
        )
    if len(files) > settings.MAX_FILES_PER_UPLOAD:
        return JsonResponse(
            {
                'error': f'Too many files. Maximum is {settings.MAX_FILES_PER_UPLOAD}',
                'code': 'TOO_MANY_FILES'
            },
            status=400
        )

    results = []
    errors = []
    for uploaded_file in files:
        try:
            result = ingest_uploaded_file(owner, uploaded_file)
        except Exception as e:
            body = ingestion_error_response(e)
            errors.append({
                'filename': uploaded_file.name,
                'status': body.status_code,
                'error': str(e),
                'code': getattr(e, 'code', 'INTERNAL_ERROR'),
            })
            continue

        audit_document_uploaded(
            owner,
            document_id=result.document_id,
            filename=result.filename,
            size_bytes=uploaded_file.size,
            chunks_count=result.chunks_count,
            request=request,
        )
        results.append(result.to_dict())

    response = {
        'message': 'Documents processed',
        'successful': len(results),
        'failed': len(errors),
        'results': results,
    }
    if errors:
        response['errors'] = errors
    return JsonResponse(response, status=201 if results else 400)


@csrf_exempt
@require_http_methods(["GET"])
@owner_required
def list_documents(request):
    """
    List the authenticated user's documents, newest first.

    GET /api/docs?limit=50&offset=0
    """
    limit, offset = parse_pagination(request)
    documents = DjangoDocumentStore().list_by_owner(request.owner_user_id, limit=limit, offset=offset)

    return JsonResponse({
        'documents': [serialize_document(doc) for doc in documents],
        'pagination': {
            'limit': limit,
            'offset': offset,
            'total': Document.objects.filter(owner_user_id=request.owner_user_id).count(),
        },
    })


@csrf_exempt
@require_http_methods(["GET", "DELETE"])
@owner_required
def document_detail(request, document_id):
    """
    GET /api/docs/<document_id> - document details
    DELETE /api/docs/<document_id> - delete document, chunks and staged file
    """
    store = DjangoDocumentStore()
    owner = request.owner_user_id

    if request.method == 'DELETE':
        try:
            store.delete_document(str(document_id), owner_user_id=owner)
        except NotFound as e:
            return error_response(e, 404)

        audit_document_deleted(owner, str(document_id), request=request)
        return JsonResponse({
            'message': 'Document deleted successfully',
            'documentId': str(document_id),
        })

    try:
        document = store.get_document(str(document_id), owner_user_id=owner)
    except NotFound as e:
        return error_response(e, 404)

    return JsonResponse(serialize_document(document))


@csrf_exempt
@require_http_methods(["GET"])
@owner_required
def list_chunks(request, document_id):
    """
    Page through a document's chunks in index order.

    GET /api/docs/<document_id>/chunks?limit=50&offset=0
    """
    store = DjangoDocumentStore()
    try:
        store.get_document(str(document_id), owner_user_id=request.owner_user_id)
    except NotFound as e:
        return error_response(e, 404)

    limit, offset = parse_pagination(request)
    chunks = store.list_chunks(str(document_id), limit=limit, offset=offset)

    return JsonResponse({
        'chunks': [
            {
                'id': str(chunk.id),
                'chunkIndex': chunk.chunk_index,
                'content': chunk.content,
                'createdAt': chunk.created_at.isoformat(),
            }
            for chunk in chunks
        ],
        'pagination': {
            'limit': limit,
            'offset': offset,
            'total': DocumentChunk.objects.filter(document_id=document_id).count(),
        },
    })


@csrf_exempt
@require_http_methods(["GET"])
@owner_required
def document_stats(request):
    """
    Per-user document totals.

    GET /api/docs/stats/summary
    """
    owner = request.owner_user_id

    stats = Document.objects.filter(owner_user_id=owner).aggregate(
        total_documents=Count('id'),
        processed_documents=Count('id', filter=Q(status=DocumentStatus.PROCESSED)),
        pending_documents=Count(
            'id', filter=Q(status__in=[DocumentStatus.UPLOADED, DocumentStatus.PROCESSING])
        ),
        failed_documents=Count('id', filter=Q(status=DocumentStatus.FAILED)),
        total_size=Sum('size_bytes'),
        avg_file_size=Avg('size_bytes'),
        last_upload_time=Max('created_at'),
    )
    total_chunks = DocumentChunk.objects.filter(document__owner_user_id=owner).count()

    return JsonResponse({
        'stats': {
            'total_documents': stats['total_documents'],
            'processed_documents': stats['processed_documents'],
            'pending_documents': stats['pending_documents'],
            'failed_documents': stats['failed_documents'],
            'total_size': stats['total_size'] or 0,
            'avg_file_size': int(stats['avg_file_size'] or 0),
            'total_chunks': total_chunks,
            'last_upload_time': stats['last_upload_time'].isoformat() if stats['last_upload_time'] else None,
        }
    })
