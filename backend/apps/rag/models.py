"""
Query and QueryResult models.
"""
import uuid
from django.db import models


class QueryStatus(models.TextChoices):
    PROCESSING = 'processing', 'Processing'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'


class Query(models.Model):
    """A natural-language question asked against a user's documents."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    owner_user_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Identity of the asking user"
    )
    query_text = models.TextField()
    context = models.TextField(blank=True, default='')

    status = models.CharField(
        max_length=20,
        choices=QueryStatus.choices,
        default=QueryStatus.PROCESSING,
        db_index=True,
    )
    error_message = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'queries'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner_user_id', 'created_at'], name='queries_owner_created_idx'),
        ]

    def __str__(self):
        return f"Query {self.id} ({self.status})"


class QueryResult(models.Model):
    """
    The answer produced for a Query.

    Written once, together with the query's transition to COMPLETED.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    query = models.OneToOneField(
        Query,
        on_delete=models.CASCADE,
        related_name='result',
    )
    result_text = models.TextField()
    confidence_score = models.FloatField(
        help_text="Heuristic confidence in [0.1, 1.0]"
    )
    # Ordered list of {content, document_name, chunk_index, rank, score}
    source_chunks = models.JSONField(default=list)
    # chunks_considered, chunks_used, processing_time_ms, model_used, ...
    metadata = models.JSONField(default=dict)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'query_results'

    def __str__(self):
        return f"Result for {self.query_id} (confidence={self.confidence_score:.2f})"
