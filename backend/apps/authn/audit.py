"""
Audit logging for document and query lifecycle events.

Provides structured JSON logging for key events without exposing
document or answer content.
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Dedicated audit logger
audit_logger = logging.getLogger('audit')


class AuditEvent:
    """Standard audit event types."""
    # Document events
    DOCUMENT_UPLOADED = 'document.uploaded'
    DOCUMENT_DELETED = 'document.deleted'

    # Ingestion events
    INGESTION_FAILED = 'ingestion.failed'

    # Query events
    QUERY_COMPLETED = 'query.completed'
    QUERY_FAILED = 'query.failed'


def get_request_id(request) -> str:
    """Get or generate a request ID for correlation."""
    request_id = getattr(request, 'request_id', None)
    if not request_id and request is not None:
        request_id = request.META.get('HTTP_X_REQUEST_ID')
    if not request_id:
        request_id = str(uuid.uuid4())[:8]
    return request_id


def log_audit(
    event_type: str,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
    outcome: str = 'success',
    metadata: Optional[Dict[str, Any]] = None
):
    """
    Log a structured audit event.

    Args:
        event_type: One of AuditEvent constants
        user_id: Owner identity
        request_id: Correlation ID for request tracing
        outcome: 'success' or 'failure'
        metadata: Event-specific data (no document content)
    """
    event = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'event': event_type,
        'outcome': outcome,
        'user_id': user_id,
        'request_id': request_id,
    }
    if metadata:
        event['metadata'] = metadata

    audit_logger.info(json.dumps(event, default=str))


def audit_document_uploaded(user_id: str, document_id: str, filename: str,
                            size_bytes: int, chunks_count: int, request=None):
    log_audit(
        AuditEvent.DOCUMENT_UPLOADED,
        user_id=user_id,
        request_id=get_request_id(request),
        metadata={
            'document_id': document_id,
            'filename': filename,
            'size_bytes': size_bytes,
            'chunks_count': chunks_count,
        },
    )


def audit_document_deleted(user_id: str, document_id: str, request=None):
    log_audit(
        AuditEvent.DOCUMENT_DELETED,
        user_id=user_id,
        request_id=get_request_id(request),
        metadata={'document_id': document_id},
    )


def audit_ingestion_failed(user_id: str, document_id: Optional[str], error_code: str):
    log_audit(
        AuditEvent.INGESTION_FAILED,
        user_id=user_id,
        outcome='failure',
        metadata={'document_id': document_id, 'error_code': error_code},
    )


def audit_query_completed(user_id: str, query_id: str, question_length: int,
                          chunks_used: int, confidence_score: float):
    log_audit(
        AuditEvent.QUERY_COMPLETED,
        user_id=user_id,
        metadata={
            'query_id': query_id,
            'question_length': question_length,
            'chunks_used': chunks_used,
            'confidence_score': confidence_score,
        },
    )


def audit_query_failed(user_id: str, query_id: str, error_code: str):
    log_audit(
        AuditEvent.QUERY_FAILED,
        user_id=user_id,
        outcome='failure',
        metadata={'query_id': query_id, 'error_code': error_code},
    )
