"""
Tests for the ingestion pipeline.

Covers the happy path, validation before any record exists, and the
FAILED transition for extraction, chunking and storage errors.
"""
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from apps.docs.models import Document, DocumentStatus
from apps.docs.store import StorageFailure
from apps.indexing.chunker import Chunker, InvalidConfiguration
from apps.indexing.extractor import EmptyExtraction, ExtractionFailure, UnsupportedFormat, UploadTooLarge
from apps.indexing.models import DocumentChunk
from apps.indexing.pipeline import ingest_document, validate_upload


POLICY_TEXT = (
    "Section 1. Hospitalisation expenses are covered up to the sum insured.\n"
    "Section 2. Pre-existing diseases are covered after a waiting period of 48 months.\n"
    "Section 3. Cosmetic surgery is a permanent exclusion.\n"
)


# ============================================================================
# Validation
# ============================================================================

class TestValidateUpload:
    """Tests for pre-persistence checks."""

    @pytest.mark.parametrize("filename,expected", [
        ("policy.pdf", "pdf"),
        ("POLICY.PDF", "pdf"),
        ("terms.docx", "docx"),
        ("notes.txt", "txt"),
    ])
    def test_allowed(self, filename, expected):
        assert validate_upload(filename, 10) == expected

    @pytest.mark.parametrize("filename", ["setup.exe", "policy.doc", "noextension"])
    def test_unsupported(self, filename):
        with pytest.raises(UnsupportedFormat):
            validate_upload(filename, 10)

    def test_too_large(self, settings):
        settings.MAX_UPLOAD_SIZE = 1024 * 1024
        with pytest.raises(UploadTooLarge):
            validate_upload("policy.pdf", 1024 * 1024 + 1)


# ============================================================================
# Ingestion
# ============================================================================

@pytest.mark.django_db
class TestIngestDocument:
    """Tests for end-to-end ingestion."""

    def test_txt_is_processed(self, store):
        result = ingest_document("alice", "policy.txt", POLICY_TEXT.encode(), store=store)

        assert result.status == "processed"
        assert result.text_length == len(POLICY_TEXT)
        assert result.chunks_count == 1

        document = Document.objects.get(id=result.document_id)
        assert document.status == DocumentStatus.PROCESSED
        assert document.file_type == "txt"
        assert document.size_bytes == len(POLICY_TEXT.encode())
        assert DocumentChunk.objects.get(document=document).content == POLICY_TEXT.strip()

    def test_result_dict(self, store):
        result = ingest_document("alice", "policy.txt", POLICY_TEXT.encode(), store=store)
        assert result.to_dict() == {
            "documentId": result.document_id,
            "filename": "policy.txt",
            "textLength": len(POLICY_TEXT),
            "chunksCount": 1,
            "status": "processed",
        }

    def test_uses_given_chunker(self, store):
        result = ingest_document(
            "alice", "policy.txt", POLICY_TEXT.encode(),
            store=store, chunker=Chunker(chunk_size=80, chunk_overlap=10),
        )

        indices = list(
            DocumentChunk.objects.filter(document_id=result.document_id)
            .order_by("chunk_index").values_list("chunk_index", flat=True)
        )
        assert result.chunks_count > 1
        assert indices == list(range(result.chunks_count))

    @patch("apps.indexing.pipeline.audit_ingestion_failed")
    def test_empty_txt_fails(self, mock_audit, store):
        """A 0-byte text file ends FAILED with no chunks."""
        with pytest.raises(EmptyExtraction):
            ingest_document("alice", "empty.txt", b"", store=store)

        document = Document.objects.get(filename="empty.txt")
        assert document.status == DocumentStatus.FAILED
        assert "EmptyExtraction" in document.error_message
        assert DocumentChunk.objects.filter(document=document).count() == 0
        mock_audit.assert_called_once_with("alice", str(document.id), "EMPTY_DOCUMENT")

    def test_exe_rejected_before_extraction(self, store):
        """Unsupported uploads never reach the extractor or the database."""
        with patch("apps.indexing.pipeline.extract_text") as mock_extract:
            with pytest.raises(UnsupportedFormat):
                ingest_document("alice", "setup.exe", b"MZ\x90\x00", store=store)

        mock_extract.assert_not_called()
        assert Document.objects.count() == 0

    def test_corrupt_pdf_fails(self, store):
        with pytest.raises(ExtractionFailure):
            ingest_document("alice", "broken.pdf", b"not a pdf", store=store)

        document = Document.objects.get(filename="broken.pdf")
        assert document.status == DocumentStatus.FAILED
        assert document.chunks.count() == 0

    def test_invalid_chunk_configuration_fails(self, settings, store):
        settings.CHUNK_SIZE = 100
        settings.CHUNK_OVERLAP = 100

        with pytest.raises(InvalidConfiguration):
            ingest_document("alice", "policy.txt", POLICY_TEXT.encode(), store=store)

        assert Document.objects.get().status == DocumentStatus.FAILED

    def test_storage_failure_leaves_failed(self, store):
        with patch.object(DocumentChunk.objects, "bulk_create", side_effect=DatabaseError("locked")):
            with pytest.raises(StorageFailure):
                ingest_document("alice", "policy.txt", POLICY_TEXT.encode(), store=store)

        document = Document.objects.get()
        assert document.status == DocumentStatus.FAILED
        assert document.chunks.count() == 0

    def test_unexpected_error_marks_failed(self, store):
        with patch("apps.indexing.pipeline.extract_text", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                ingest_document("alice", "policy.txt", POLICY_TEXT.encode(), store=store)

        document = Document.objects.get()
        assert document.status == DocumentStatus.FAILED
        assert "boom" in document.error_message

    def test_owner_required(self, store):
        with pytest.raises(ValueError):
            ingest_document("", "policy.txt", POLICY_TEXT.encode(), store=store)

    @patch("apps.indexing.pipeline.audit_ingestion_failed")
    def test_document_deleted_during_extraction(self, mock_audit, store):
        """The extraction error still reaches the caller when the record is already gone."""
        def delete_then_fail(data, file_type):
            Document.objects.filter(filename="policy.txt").delete()
            raise EmptyExtraction("No text content could be extracted")

        with patch("apps.indexing.pipeline.extract_text", side_effect=delete_then_fail):
            with pytest.raises(EmptyExtraction):
                ingest_document("alice", "policy.txt", POLICY_TEXT.encode(), store=store)

        assert Document.objects.count() == 0
        mock_audit.assert_called_once()
        assert mock_audit.call_args.args[2] == "EMPTY_DOCUMENT"
