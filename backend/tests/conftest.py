"""
Shared fixtures for backend tests.
"""
from typing import List, Optional

import pytest

from apps.docs.store import DjangoDocumentStore
from apps.indexing.pipeline import ingest_document
from apps.rag.llm_client import BaseCompletionClient, CompletionResponse, GenerationParams


class FakeCompletionClient(BaseCompletionClient):
    """Completion client that answers from a script instead of the network."""

    def __init__(self, answer: str = "", error: Optional[Exception] = None):
        super().__init__(timeout=1.0)
        self.answer = answer
        self.error = error
        self.prompts: List[str] = []

    @property
    def model_name(self) -> str:
        return "fake-model"

    def complete(self, prompt: str, params: Optional[GenerationParams] = None) -> CompletionResponse:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return CompletionResponse(text=self.answer, model=self.model_name)


@pytest.fixture(autouse=True)
def upload_root(settings, tmp_path):
    """Stage uploads in a per-test directory."""
    root = tmp_path / "uploads"
    settings.UPLOAD_ROOT = root
    return root


@pytest.fixture
def store():
    return DjangoDocumentStore()


@pytest.fixture
def make_document(store):
    """Ingest a plain text document and return its IngestionResult."""
    def _make(owner: str, text: str, filename: str = "policy.txt"):
        return ingest_document(
            owner_user_id=owner,
            filename=filename,
            data=text.encode("utf-8"),
            store=store,
        )
    return _make


@pytest.fixture
def fake_client():
    return FakeCompletionClient
