"""
Tests for the Django-backed document store.

Tests status transitions, all-or-nothing chunk persistence, deletion
with staged file release, and owner scoping.
"""
import io
import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.utils import timezone

from apps.docs.models import Document, DocumentStatus
from apps.docs.storage import FileStorage
from apps.docs.store import DjangoDocumentStore, DocumentMetadata, NotFound, StorageFailure
from apps.indexing.chunker import TextChunk
from apps.indexing.models import DocumentChunk


def metadata(owner="alice", filename="policy.txt", storage_path=""):
    return DocumentMetadata(
        owner_user_id=owner,
        filename=filename,
        file_type="txt",
        size_bytes=42,
        storage_path=storage_path,
    )


def chunks(*texts):
    return [TextChunk(index=i, text=t, start_char=0, end_char=len(t)) for i, t in enumerate(texts)]


pytestmark = pytest.mark.django_db


# ============================================================================
# Creation and status
# ============================================================================

class TestDocumentLifecycle:
    """Tests for document creation and status transitions."""

    def test_create_document_is_uploaded(self, store):
        document_id = store.create_document(metadata())

        document = Document.objects.get(id=document_id)
        assert document.status == DocumentStatus.UPLOADED
        assert document.owner_user_id == "alice"
        assert document.file_type == "txt"

    def test_mark_processing_and_failed(self, store):
        document_id = store.create_document(metadata())

        store.mark_processing(document_id)
        assert Document.objects.get(id=document_id).status == DocumentStatus.PROCESSING

        store.mark_failed(document_id, "EmptyExtraction: nothing here")
        document = Document.objects.get(id=document_id)
        assert document.status == DocumentStatus.FAILED
        assert document.error_message == "EmptyExtraction: nothing here"

    def test_mark_missing_document(self, store):
        with pytest.raises(NotFound):
            store.mark_processing(str(uuid.uuid4()))


# ============================================================================
# Chunk persistence
# ============================================================================

class TestAppendChunks:
    """Tests for atomic chunk persistence."""

    def test_append_marks_processed(self, store):
        document_id = store.create_document(metadata())
        store.mark_processing(document_id)

        store.append_chunks(document_id, chunks("first", "second", "third"))

        document = store.get_document(document_id)
        assert document.status == DocumentStatus.PROCESSED
        assert document.chunks_count == 3
        assert [c.chunk_index for c in store.list_chunks(document_id)] == [0, 1, 2]

    def test_failure_mid_batch_leaves_no_chunks(self, store):
        """A write failure after some rows went in rolls all of them back."""
        document_id = store.create_document(metadata())
        store.mark_processing(document_id)

        def partial_insert(objs, *args, **kwargs):
            DocumentChunk.objects.create(
                document=objs[0].document,
                chunk_index=objs[0].chunk_index,
                content=objs[0].content,
            )
            raise DatabaseError("disk full")

        with patch.object(DocumentChunk.objects, "bulk_create", side_effect=partial_insert):
            with pytest.raises(StorageFailure):
                store.append_chunks(document_id, chunks("first", "second"))

        assert DocumentChunk.objects.filter(document_id=document_id).count() == 0
        document = Document.objects.get(id=document_id)
        assert document.status == DocumentStatus.FAILED
        assert "disk full" in document.error_message

    def test_rejects_gapped_indices(self, store):
        document_id = store.create_document(metadata())
        bad = [
            TextChunk(index=0, text="a", start_char=0, end_char=1),
            TextChunk(index=2, text="b", start_char=1, end_char=2),
        ]

        with pytest.raises(StorageFailure):
            store.append_chunks(document_id, bad)

        assert DocumentChunk.objects.count() == 0
        assert Document.objects.get(id=document_id).status == DocumentStatus.FAILED

    def test_rejects_blank_chunk(self, store):
        document_id = store.create_document(metadata())
        with pytest.raises(StorageFailure):
            store.append_chunks(document_id, chunks("ok", "   "))
        assert DocumentChunk.objects.count() == 0

    def test_rejects_empty_set(self, store):
        document_id = store.create_document(metadata())
        with pytest.raises(StorageFailure):
            store.append_chunks(document_id, [])
        assert Document.objects.get(id=document_id).status == DocumentStatus.FAILED

    def test_append_is_once_only(self, store):
        """A processed document keeps its original chunk set and status."""
        document_id = store.create_document(metadata())
        store.append_chunks(document_id, chunks("original"))

        with pytest.raises(StorageFailure):
            store.append_chunks(document_id, chunks("replacement"))

        document = store.get_document(document_id)
        assert document.status == DocumentStatus.PROCESSED
        assert [c.content for c in store.list_chunks(document_id)] == ["original"]

    def test_append_to_missing_document(self, store):
        with pytest.raises(NotFound):
            store.append_chunks(str(uuid.uuid4()), chunks("orphan"))


# ============================================================================
# Reads
# ============================================================================

class TestReads:
    """Tests for lookups and listings."""

    def test_get_document_other_owner_is_not_found(self, store):
        document_id = store.create_document(metadata(owner="alice"))

        assert store.get_document(document_id, owner_user_id="alice").id
        with pytest.raises(NotFound):
            store.get_document(document_id, owner_user_id="bob")

    def test_get_document_bad_id(self, store):
        with pytest.raises(NotFound):
            store.get_document("not-a-uuid")

    def test_list_by_owner_newest_first(self, store):
        first = store.create_document(metadata(filename="a.txt"))
        second = store.create_document(metadata(filename="b.txt"))
        store.create_document(metadata(owner="bob", filename="c.txt"))
        now = timezone.now()
        Document.objects.filter(id=first).update(created_at=now - timedelta(hours=1))
        Document.objects.filter(id=second).update(created_at=now)

        listed = store.list_by_owner("alice")
        assert [str(d.id) for d in listed] == [second, first]

        assert len(store.list_by_owner("alice", limit=1)) == 1
        assert [str(d.id) for d in store.list_by_owner("alice", limit=1, offset=1)] == [first]

    def test_chunks_for_owner_only_processed(self, store):
        done = store.create_document(metadata(filename="done.txt"))
        store.append_chunks(done, chunks("visible text"))
        pending = store.create_document(metadata(filename="pending.txt"))
        store.mark_processing(pending)
        other = store.create_document(metadata(owner="bob"))
        store.append_chunks(other, chunks("bob's text"))

        candidates = store.chunks_for_owner("alice")

        assert [c.document_id for c in candidates] == [done]
        assert candidates[0].document_name == "done.txt"
        assert candidates[0].content == "visible text"


# ============================================================================
# Deletion
# ============================================================================

class TestDeleteDocument:
    """Tests for cascading deletion."""

    def test_delete_removes_document_and_chunks(self, store, django_capture_on_commit_callbacks):
        document_id = store.create_document(metadata())
        store.append_chunks(document_id, chunks("one", "two"))

        with django_capture_on_commit_callbacks(execute=True):
            store.delete_document(document_id)

        assert DocumentChunk.objects.filter(document_id=document_id).count() == 0
        with pytest.raises(NotFound):
            store.get_document(document_id)

    def test_delete_releases_staged_file_after_commit(self, upload_root, django_capture_on_commit_callbacks):
        storage = FileStorage(root=upload_root)
        storage_path = storage.save(".txt", io.BytesIO(b"policy text"))
        store = DjangoDocumentStore(storage=storage)
        document_id = store.create_document(metadata(storage_path=storage_path))

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            store.delete_document(document_id)
            # Still present until the transaction commits
            assert storage.exists(storage_path)

        assert len(callbacks) == 1
        callbacks[0]()
        assert not storage.exists(storage_path)

    def test_delete_other_owner_is_not_found(self, store):
        document_id = store.create_document(metadata(owner="alice"))

        with pytest.raises(NotFound):
            store.delete_document(document_id, owner_user_id="bob")
        assert Document.objects.filter(id=document_id).exists()

    def test_delete_missing(self, store):
        with pytest.raises(NotFound):
            store.delete_document(str(uuid.uuid4()))
