"""
Document chunk model for storing retrievable text units.
"""
import uuid
from django.db import models

from apps.docs.models import Document


class DocumentChunk(models.Model):
    """
    A text chunk from a document.

    Chunks are written in one batch per document by the ingestion
    pipeline and are never updated afterwards.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Link to parent document
    document = models.ForeignKey(
        Document,
        on_delete=models.CASCADE,
        related_name='chunks',
        help_text="The source document"
    )

    # Chunk ordering (0-indexed)
    chunk_index = models.PositiveIntegerField(
        help_text="Index of this chunk within the document (0-based)"
    )

    # Chunk text content
    content = models.TextField(
        help_text="The text content of this chunk"
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'document_chunks'
        ordering = ['document', 'chunk_index']
        # Unique constraint prevents duplicate chunks
        constraints = [
            models.UniqueConstraint(
                fields=['document', 'chunk_index'],
                name='unique_document_chunk'
            )
        ]

    def __str__(self):
        preview = self.content[:50] + '...' if len(self.content) > 50 else self.content
        return f"Chunk {self.chunk_index} of {self.document.filename}: {preview}"
