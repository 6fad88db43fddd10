"""
Persistence contract for documents and their chunks.

The ingestion and query pipelines depend only on DocumentStore. The
Django implementation keeps the two atomicity guarantees the pipelines
rely on: a document's chunk set appears all at once or not at all, and
a deleted document disappears together with its chunks.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Count

from apps.docs.models import Document, DocumentStatus
from apps.docs.storage import FileStorage, get_storage
from apps.indexing.chunker import TextChunk
from apps.indexing.models import DocumentChunk

logger = logging.getLogger(__name__)


class StorageFailure(Exception):
    """Raised when the backing store rejects a write."""
    code = 'STORAGE_ERROR'


class NotFound(Exception):
    """Raised when a document does not exist (or is not visible to the caller)."""
    code = 'NOT_FOUND'


@dataclass
class DocumentMetadata:
    """Everything needed to allocate a document record."""
    owner_user_id: str
    filename: str
    file_type: str
    size_bytes: int
    storage_path: str = ''


@dataclass
class ChunkCandidate:
    """A stored chunk together with the document facts ranking needs."""
    chunk_id: str
    document_id: str
    document_name: str
    document_created_at: datetime
    chunk_index: int
    content: str


class DocumentStore(ABC):
    """Abstract persistence contract consumed by the pipelines."""

    @abstractmethod
    def create_document(self, metadata: DocumentMetadata) -> str:
        """Allocate a document in UPLOADED status and return its id."""
        pass

    @abstractmethod
    def mark_processing(self, document_id: str) -> None:
        pass

    @abstractmethod
    def mark_failed(self, document_id: str, reason: str) -> None:
        pass

    @abstractmethod
    def append_chunks(self, document_id: str, chunks: Sequence[TextChunk]) -> None:
        """
        Persist the full ordered chunk set and mark the document PROCESSED.

        Either every chunk is stored or none is; on failure the document
        is left FAILED and StorageFailure is raised.
        """
        pass

    @abstractmethod
    def get_document(self, document_id: str, owner_user_id: Optional[str] = None) -> Document:
        pass

    @abstractmethod
    def list_by_owner(self, owner_user_id: str, limit: int = 50, offset: int = 0) -> List[Document]:
        pass

    @abstractmethod
    def list_chunks(self, document_id: str, limit: int = 50, offset: int = 0) -> List[DocumentChunk]:
        pass

    @abstractmethod
    def chunks_for_owner(self, owner_user_id: str) -> List[ChunkCandidate]:
        """All chunks of the owner's PROCESSED documents."""
        pass

    @abstractmethod
    def delete_document(self, document_id: str, owner_user_id: Optional[str] = None) -> Document:
        pass


class DjangoDocumentStore(DocumentStore):
    """DocumentStore backed by the Django ORM."""

    def __init__(self, storage: Optional[FileStorage] = None):
        self._storage = storage

    @property
    def storage(self) -> FileStorage:
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    def create_document(self, metadata: DocumentMetadata) -> str:
        try:
            document = Document.objects.create(
                owner_user_id=metadata.owner_user_id,
                filename=metadata.filename,
                file_type=metadata.file_type,
                size_bytes=metadata.size_bytes,
                storage_path=metadata.storage_path,
                status=DocumentStatus.UPLOADED,
            )
        except DatabaseError as e:
            logger.error(f"Failed to create document record for {metadata.filename}: {e}")
            raise StorageFailure(f"Failed to create document: {e}") from e

        logger.info(f"Document created: {document.id} ({metadata.filename})")
        return str(document.id)

    def _set_status(self, document_id: str, status: str, error_message: Optional[str] = None) -> None:
        updated = Document.objects.filter(id=document_id).exclude(
            status=DocumentStatus.DELETED
        ).update(status=status, error_message=error_message)
        if not updated:
            raise NotFound(f"Document {document_id} not found")

    def mark_processing(self, document_id: str) -> None:
        self._set_status(document_id, DocumentStatus.PROCESSING)

    def mark_failed(self, document_id: str, reason: str) -> None:
        logger.error(f"Document {document_id} failed: {reason}")
        self._set_status(document_id, DocumentStatus.FAILED, error_message=reason)

    @staticmethod
    def _validate_chunks(chunks: Sequence[TextChunk]) -> None:
        if not chunks:
            raise StorageFailure("Refusing to store an empty chunk set")
        for position, chunk in enumerate(chunks):
            if chunk.index != position:
                raise StorageFailure(
                    f"Chunk indices must be contiguous from 0 (got {chunk.index} at position {position})"
                )
            if not chunk.text.strip():
                raise StorageFailure(f"Chunk {chunk.index} is empty")

    def append_chunks(self, document_id: str, chunks: Sequence[TextChunk]) -> None:
        try:
            self._validate_chunks(chunks)
        except StorageFailure as e:
            self.mark_failed(document_id, f"Storage error: {e}")
            raise

        try:
            with transaction.atomic():
                document = Document.objects.select_for_update().get(id=document_id)
                # An existing chunk set is never touched, and its document keeps its status
                if document.status in (DocumentStatus.PROCESSED, DocumentStatus.DELETED) or \
                        DocumentChunk.objects.filter(document=document).exists():
                    raise StorageFailure(
                        f"Document {document_id} is {document.status}; chunks are append-once"
                    )

                DocumentChunk.objects.bulk_create([
                    DocumentChunk(
                        document=document,
                        chunk_index=chunk.index,
                        content=chunk.text,
                    )
                    for chunk in chunks
                ])

                document.status = DocumentStatus.PROCESSED
                document.error_message = None
                document.save(update_fields=['status', 'error_message', 'updated_at'])
        except (Document.DoesNotExist, ValidationError):
            raise NotFound(f"Document {document_id} not found")
        except DatabaseError as e:
            self.mark_failed(document_id, f"Storage error: {e}")
            raise StorageFailure(f"Failed to store chunks for {document_id}: {e}") from e

        logger.info(f"Stored {len(chunks)} chunks for document {document_id}")

    def get_document(self, document_id: str, owner_user_id: Optional[str] = None) -> Document:
        queryset = Document.objects.annotate(chunks_count=Count('chunks'))
        try:
            document = queryset.get(id=document_id)
        except (Document.DoesNotExist, ValidationError, ValueError):
            raise NotFound(f"Document {document_id} not found")

        # Other owners' documents are reported as missing
        if owner_user_id is not None and document.owner_user_id != owner_user_id:
            raise NotFound(f"Document {document_id} not found")
        return document

    def list_by_owner(self, owner_user_id: str, limit: int = 50, offset: int = 0) -> List[Document]:
        queryset = (
            Document.objects.filter(owner_user_id=owner_user_id)
            .annotate(chunks_count=Count('chunks'))
            .order_by('-created_at', '-id')
        )
        return list(queryset[offset:offset + limit])

    def list_chunks(self, document_id: str, limit: int = 50, offset: int = 0) -> List[DocumentChunk]:
        queryset = DocumentChunk.objects.filter(document_id=document_id).order_by('chunk_index')
        return list(queryset[offset:offset + limit])

    def chunks_for_owner(self, owner_user_id: str) -> List[ChunkCandidate]:
        rows = (
            DocumentChunk.objects.filter(
                document__owner_user_id=owner_user_id,
                document__status=DocumentStatus.PROCESSED,
            )
            .select_related('document')
            .order_by('document_id', 'chunk_index')
        )
        return [
            ChunkCandidate(
                chunk_id=str(row.id),
                document_id=str(row.document_id),
                document_name=row.document.filename,
                document_created_at=row.document.created_at,
                chunk_index=row.chunk_index,
                content=row.content,
            )
            for row in rows
        ]

    def delete_document(self, document_id: str, owner_user_id: Optional[str] = None) -> Document:
        with transaction.atomic():
            try:
                document = Document.objects.select_for_update().get(id=document_id)
            except (Document.DoesNotExist, ValidationError, ValueError):
                raise NotFound(f"Document {document_id} not found")
            if owner_user_id is not None and document.owner_user_id != owner_user_id:
                raise NotFound(f"Document {document_id} not found")

            storage_path = document.storage_path
            document.status = DocumentStatus.DELETED
            document.save(update_fields=['status', 'updated_at'])
            DocumentChunk.objects.filter(document=document).delete()
            Document.objects.filter(id=document.id).delete()

            if storage_path:
                transaction.on_commit(lambda: self.storage.release(storage_path))

        logger.info(f"Deleted document {document_id}")
        return document
