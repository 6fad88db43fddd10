"""
Ingestion pipeline - turns an uploaded file into a processed document.

Stages:
1. VALIDATE: Check extension and size (no record is created on failure)
2. EXTRACT: Extract plain text from the payload
3. CHUNK: Split text into overlapping chunks
4. STORE: Persist the chunk set atomically

Any extraction or chunking error leaves the document FAILED with no
chunks and is re-raised to the caller.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from django.conf import settings

from apps.authn.audit import audit_ingestion_failed
from apps.docs.models import DocumentStatus
from apps.docs.store import DjangoDocumentStore, DocumentMetadata, DocumentStore, NotFound, StorageFailure
from apps.indexing.chunker import Chunker, InvalidConfiguration
from apps.indexing.extractor import (
    ExtractionError,
    EmptyExtraction,
    UnsupportedFormat,
    UploadTooLarge,
    detect_format,
    extract_text,
)

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Outcome of a successful ingestion."""
    document_id: str
    filename: str
    text_length: int
    chunks_count: int
    status: str

    def to_dict(self) -> dict:
        return {
            'documentId': self.document_id,
            'filename': self.filename,
            'textLength': self.text_length,
            'chunksCount': self.chunks_count,
            'status': self.status,
        }


def validate_upload(filename: str, size_bytes: int) -> str:
    """
    Check an upload before anything is persisted.

    Returns:
        The detected file type

    Raises:
        UnsupportedFormat: If the extension is not allowed
        UploadTooLarge: If the payload exceeds MAX_UPLOAD_SIZE
    """
    extension = Path(filename or '').suffix.lower()
    if extension not in settings.ALLOWED_EXTENSIONS:
        raise UnsupportedFormat(f"Unsupported file format: {extension or '(none)'}")

    if size_bytes > settings.MAX_UPLOAD_SIZE:
        max_mb = settings.MAX_UPLOAD_SIZE // (1024 * 1024)
        raise UploadTooLarge(f"File size exceeds maximum limit of {max_mb}MB")

    return detect_format(extension)


def build_chunker() -> Chunker:
    """Build a chunker from CHUNK_SIZE / CHUNK_OVERLAP settings."""
    return Chunker(
        chunk_size=getattr(settings, 'CHUNK_SIZE', 1000),
        chunk_overlap=getattr(settings, 'CHUNK_OVERLAP', 200),
    )


def _mark_failed(store: DocumentStore, document_id: str, reason: str) -> None:
    # The document may have been deleted while it was being ingested
    try:
        store.mark_failed(document_id, reason)
    except NotFound:
        logger.warning(f"Document {document_id} disappeared before it could be marked failed")


def ingest_document(
    owner_user_id: str,
    filename: str,
    data: bytes,
    storage_path: str = '',
    store: Optional[DocumentStore] = None,
    chunker: Optional[Chunker] = None,
) -> IngestionResult:
    """
    Ingest one document end to end.

    Args:
        owner_user_id: Identity that owns the new document
        filename: Original filename (its extension selects the extractor)
        data: Raw file bytes
        storage_path: Where the upload collaborator staged the file
        store: DocumentStore to write to (Django store by default)
        chunker: Chunker to use (built from settings by default)

    Returns:
        IngestionResult for the processed document

    Raises:
        UnsupportedFormat, UploadTooLarge: Before any record is created
        EmptyExtraction, ExtractionFailure, InvalidConfiguration,
        StorageFailure: After the document has been marked FAILED
    """
    if not owner_user_id:
        raise ValueError("owner_user_id is required")

    file_type = validate_upload(filename, len(data))
    store = store or DjangoDocumentStore()

    document_id = store.create_document(DocumentMetadata(
        owner_user_id=owner_user_id,
        filename=filename,
        file_type=file_type,
        size_bytes=len(data),
        storage_path=storage_path,
    ))

    try:
        store.mark_processing(document_id)

        if chunker is None:
            chunker = build_chunker()

        # Stage: EXTRACT
        text = extract_text(data, file_type)
        logger.info(f"Extracted {len(text)} characters from {filename}")

        # Stage: CHUNK
        chunks = chunker.chunk(text)
        if not chunks:
            raise EmptyExtraction("No chunks generated from text")

        for chunk in chunks[:3]:
            preview = chunk.text[:100].replace('\n', ' ')
            logger.debug(f"  Chunk {chunk.index}: {preview}...")

        # Stage: STORE
        store.append_chunks(document_id, chunks)

    except (ExtractionError, InvalidConfiguration) as e:
        _mark_failed(store, document_id, f"{type(e).__name__}: {e}")
        audit_ingestion_failed(owner_user_id, document_id, e.code)
        raise
    except StorageFailure as e:
        # The store has already left the document FAILED
        audit_ingestion_failed(owner_user_id, document_id, e.code)
        raise
    except Exception as e:
        logger.exception(f"Unexpected error ingesting {filename}")
        _mark_failed(store, document_id, f"Unexpected error: {e}")
        audit_ingestion_failed(owner_user_id, document_id, 'INTERNAL_ERROR')
        raise

    logger.info(f"Ingested {filename} as {document_id}: {len(chunks)} chunks")

    return IngestionResult(
        document_id=document_id,
        filename=filename,
        text_length=len(text),
        chunks_count=len(chunks),
        status=DocumentStatus.PROCESSED.value,
    )
