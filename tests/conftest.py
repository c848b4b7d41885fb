"""Shared fixtures: settings, recording collaborators and a tiny PDF builder."""
from __future__ import annotations

import asyncio
import os
import threading
from typing import Dict, List, Optional, Sequence

os.environ.setdefault("GOOGLE_API_KEY", "test-key")

import pytest
from langchain_core.documents import Document
from langchain_core.messages import AIMessage

from pdf_qa.config import Settings
from pdf_qa.exceptions import IngestionError, RetrievalError
from pdf_qa.models import RetrievalResult
from pdf_qa.services import (
    ChatService,
    DocumentService,
    InMemorySessionStore,
    PDFProcessor,
    QueryRewriter,
)


def make_pdf(pages: Sequence[str]) -> bytes:
    """Build a minimal PDF with one line of Helvetica text per page."""
    page_ids = [4 + 2 * i for i in range(len(pages))]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)
    objects: List[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for page_id, text in zip(page_ids, pages):
        escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        stream = f"BT /F1 12 Tf 72 720 Td ({escaped}) Tj ET".encode()
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {page_id + 1} 0 R >>"
            ).encode()
        )
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"
    xref_offset = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF\n"
    ).encode()
    return bytes(out)


class RecordingChatModel:
    """Chat model double that records every input and replies from a script."""

    def __init__(
        self,
        responses: Optional[Sequence[str]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.responses = list(responses or [])
        self.error = error
        self.delay = delay
        self.calls: List[object] = []

    async def ainvoke(self, input, **kwargs) -> AIMessage:
        self.calls.append(input)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        text = self.responses.pop(0) if self.responses else "The document says so."
        return AIMessage(content=text)


class FakeVectorService:
    """In-process stand-in for VectorService that records calls."""

    def __init__(
        self,
        results: Optional[List[RetrievalResult]] = None,
        search_error: Optional[Exception] = None,
        store_error: Optional[Exception] = None,
        search_delay: float = 0.0,
    ) -> None:
        self.results = results if results is not None else [
            RetrievalResult(text="The warranty lasts two years.", score=0.91),
        ]
        self.search_error = search_error
        self.store_error = store_error
        self.search_delay = search_delay
        self.stored: Dict[str, List[Document]] = {}
        self.searches: List[Dict[str, object]] = []
        self.deleted: List[str] = []
        self.health_threads: List[int] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def store_documents(self, documents: List[Document], namespace: str) -> int:
        if self.store_error is not None:
            raise IngestionError(f"Failed to store documents: {self.store_error}", cause=self.store_error)
        self.stored.setdefault(namespace, []).extend(documents)
        return len(documents)

    async def search(self, query: str, namespace: str, k: Optional[int] = None) -> List[RetrievalResult]:
        self.searches.append({"query": query, "namespace": namespace, "k": k})
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.search_delay:
                await asyncio.sleep(self.search_delay)
            if self.search_error is not None:
                raise RetrievalError(f"Failed to search similar documents: {self.search_error}")
            return list(self.results)
        finally:
            self.in_flight -= 1

    def count_namespace(self, namespace: str) -> int:
        return len(self.stored.get(namespace, []))

    def delete_namespace(self, namespace: str) -> bool:
        self.deleted.append(namespace)
        self.stored.pop(namespace, None)
        return True

    def health_check(self) -> Dict[str, object]:
        self.health_threads.append(threading.get_ident())
        return {"status": "healthy", "collection_name": "test"}


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        google_api_key="test-key",
        vector_dimension=32,
        upsert_batch_size=2,
        max_upsert_concurrency=2,
        collaborator_timeout_seconds=1.0,
    )


@pytest.fixture
def vector_service() -> FakeVectorService:
    return FakeVectorService()


@pytest.fixture
def rewrite_llm() -> RecordingChatModel:
    return RecordingChatModel(responses=["What is the warranty period of the product?"] * 10)


@pytest.fixture
def answer_llm() -> RecordingChatModel:
    return RecordingChatModel(responses=["The warranty lasts two years."] * 10)


@pytest.fixture
def document_service(test_settings, vector_service, rewrite_llm, answer_llm) -> DocumentService:
    return DocumentService(
        session_store=InMemorySessionStore(),
        pdf_processor=PDFProcessor(chunk_size=1000, chunk_overlap=200),
        vector_service=vector_service,
        query_rewriter=QueryRewriter(llm=rewrite_llm, config=test_settings),
        chat_service=ChatService(llm=answer_llm, config=test_settings),
        config=test_settings,
    )


@pytest.fixture
def sample_pdf() -> bytes:
    return make_pdf([
        "The product warranty lasts two years from the date of purchase.",
        "Returns are accepted within thirty days.",
    ])
