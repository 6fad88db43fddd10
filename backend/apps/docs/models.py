"""
Document model for DeciGenie.

A Document tracks one uploaded file through the ingestion pipeline.
Its text chunks live in apps.indexing.models.DocumentChunk.
"""
import uuid
from django.db import models


class DocumentStatus(models.TextChoices):
    """Lifecycle of a document in the ingestion pipeline."""
    UPLOADED = 'uploaded', 'Uploaded'
    PROCESSING = 'processing', 'Processing'
    PROCESSED = 'processed', 'Processed'
    FAILED = 'failed', 'Processing failed'
    DELETED = 'deleted', 'Deleted'


class FileType(models.TextChoices):
    PDF = 'pdf', 'PDF'
    DOCX = 'docx', 'Word document'
    TXT = 'txt', 'Plain text'


class Document(models.Model):
    """
    A document uploaded by a user for question answering.

    Chunks exist only while the status is PROCESSED; a FAILED document
    never has chunks.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Owner identity as asserted by the auth collaborator
    owner_user_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Identity of the uploading user"
    )

    # File metadata
    filename = models.CharField(
        max_length=255,
        help_text="Original filename"
    )
    file_type = models.CharField(
        max_length=10,
        choices=FileType.choices,
        help_text="Detected format"
    )
    size_bytes = models.PositiveBigIntegerField(
        help_text="File size in bytes"
    )

    # Storage location
    storage_path = models.CharField(
        max_length=500,
        blank=True,
        default='',
        help_text="Path to staged file (relative to upload root)"
    )

    # Processing status
    status = models.CharField(
        max_length=20,
        choices=DocumentStatus.choices,
        default=DocumentStatus.UPLOADED,
        db_index=True,
        help_text="Current status in the ingestion pipeline"
    )
    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Failure reason if processing failed"
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'documents'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner_user_id', 'created_at'], name='documents_owner_created_idx'),
        ]

    def __str__(self):
        return f"{self.filename} ({self.status})"
