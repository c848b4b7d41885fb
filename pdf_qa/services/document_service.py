"""
Main document service that orchestrates PDF ingestion and question answering.
"""

import asyncio
import time
from typing import Any, Dict, Optional, Set

from .pdf_processor import PDFProcessor
from .vector_service import VectorService
from .query_rewriter import QueryRewriter
from .chat_service import ChatService, build_context, filter_results
from .session_store import InMemorySessionStore, SessionStore
from ..config import Settings, settings as default_settings
from ..exceptions import IngestionError, RetrievalError, ValidationError
from ..models import REFUSAL_ANSWER, IngestionResult, Session, Turn
from ..utils import (
    generate_session_id,
    generate_namespace,
    validate_file_size,
    measure_time,
    log_processing_info,
    handle_processing_error,
    truncate,
)
import logging

logger = logging.getLogger(__name__)


class DocumentService:
    """Main service for document ingestion and question answering."""

    def __init__(
        self,
        session_store: Optional[SessionStore] = None,
        pdf_processor: Optional[PDFProcessor] = None,
        vector_service: Optional[VectorService] = None,
        query_rewriter: Optional[QueryRewriter] = None,
        chat_service: Optional[ChatService] = None,
        config: Optional[Settings] = None,
    ):
        """Initialize the document service."""
        self.settings = config or default_settings
        self.session_store = session_store if session_store is not None else InMemorySessionStore()
        self.pdf_processor = pdf_processor or PDFProcessor(
            chunk_size=self.settings.chunk_size,
            chunk_overlap=self.settings.chunk_overlap,
        )
        self.vector_service = vector_service or VectorService(config=self.settings)
        self.query_rewriter = query_rewriter or QueryRewriter(config=self.settings)
        self.chat_service = chat_service or ChatService(config=self.settings)
        self._pending_ids: Set[str] = set()

    def _reserve_session_id(self) -> str:
        """Generate a session ID not used by any live or in-flight session."""
        while True:
            session_id = generate_session_id()
            if session_id not in self.session_store and session_id not in self._pending_ids:
                self._pending_ids.add(session_id)
                return session_id
            logger.warning(f"Session ID collision on {session_id}, regenerating")

    @measure_time
    async def ingest_pdf(self, file_content: bytes, filename: str) -> IngestionResult:
        """
        Parse, chunk and index one PDF under a new session.

        Args:
            file_content: PDF file content as bytes
            filename: Name of the uploaded file

        Returns:
            IngestionResult for the newly registered session

        Raises:
            ValidationError: If the file exceeds the size limit
            IngestionError: If parsing, embedding or storing failed
        """
        if not validate_file_size(len(file_content), self.settings.max_file_size_mb):
            raise ValidationError(
                f"File {filename} is too large: {len(file_content)/1024/1024:.1f}MB. "
                f"Maximum size is {self.settings.max_file_size_mb}MB."
            )

        start_time = time.perf_counter()
        session_id = self._reserve_session_id()
        namespace = generate_namespace(session_id, self.settings.namespace_prefix)

        log_processing_info("Document processing started", {
            "session_id": session_id,
            "namespace": namespace,
            "filename": filename,
            "file_size": len(file_content)
        })

        try:
            pages = await asyncio.to_thread(self.pdf_processor.extract_text_from_pdf, file_content, filename)
            chunks = self.pdf_processor.split_documents_into_chunks(pages, namespace=namespace)
            stored = await self.vector_service.store_documents(chunks, namespace)

            self.session_store.put(Session(
                session_id=session_id,
                namespace=namespace,
                filename=filename,
                pages_loaded=len(pages),
                chunks_indexed=stored,
            ))
        except IngestionError:
            raise
        except Exception as e:
            handle_processing_error("document_processing", e, {"session_id": session_id, "filename": filename})
            await asyncio.to_thread(self.vector_service.delete_namespace, namespace)
            raise IngestionError(str(e) or type(e).__name__, cause=e)
        finally:
            self._pending_ids.discard(session_id)

        await self._log_namespace_stats(namespace)

        result = IngestionResult(
            session_id=session_id,
            namespace=namespace,
            pages_loaded=len(pages),
            chunks_indexed=stored,
            processing_time=time.perf_counter() - start_time,
        )
        log_processing_info("Document processing completed", result.model_dump())
        return result

    async def _log_namespace_stats(self, namespace: str) -> None:
        try:
            count = await asyncio.to_thread(self.vector_service.count_namespace, namespace)
        except Exception as e:
            logger.warning(f"Could not read stats for namespace {namespace}: {e}")
            return
        log_processing_info("Namespace stats", {"namespace": namespace, "points_count": count})

    def get_session(self, session_id: str) -> Session:
        """Return a live session or raise ValidationError."""
        session = self.session_store.get(session_id)
        if session is None:
            raise ValidationError("Invalid session ID")
        return session

    async def retrieve_context(self, query: str, namespace: str) -> str:
        """Retrieve, filter and join the chunks relevant to ``query``."""
        results = await self.vector_service.search(query, namespace, self.settings.similarity_search_k)
        texts = filter_results(results, self.settings.similarity_threshold)

        log_processing_info("Relevance filter applied", {
            "namespace": namespace,
            "relevant": len(texts),
            "retrieved": len(results),
            "threshold": self.settings.similarity_threshold
        })
        return build_context(texts)

    @measure_time
    async def answer_question(self, question: Optional[str], session_id: Optional[str]) -> str:
        """
        Run the question-answering pipeline for one question.

        Collaborator failures never escape: they degrade to the refusal answer.
        Questions against the same session are processed one at a time.

        Raises:
            ValidationError: If the question or session ID is missing, or the session is unknown
        """
        if not question or not session_id:
            raise ValidationError("Missing question or session ID")

        self.get_session(session_id)

        async with self.session_store.lock(session_id):
            session = self.get_session(session_id)
            log_processing_info("Chat query started", {
                "session_id": session_id,
                "question": truncate(question),
                "history_turns": len(session.history)
            })

            query = await self.query_rewriter.rewrite(question, session.history)
            if query != question:
                log_processing_info("Query rewritten", {"session_id": session_id, "query": truncate(query)})

            try:
                context = await self.retrieve_context(query, session.namespace)
            except RetrievalError as e:
                logger.warning(f"Retrieval failed for session {session_id}: {e}")
                context = ""

            if context:
                answer = await self.chat_service.generate(question, context)
            else:
                answer = REFUSAL_ANSWER

            self.session_store.append_turns(session_id, [
                Turn(role="user", text=question),
                Turn(role="model", text=answer),
            ])

        log_processing_info("Chat query completed", {
            "session_id": session_id,
            "answer": truncate(answer)
        })
        return answer

    async def delete_session(self, session_id: str) -> bool:
        """
        Delete a session and its indexed chunks.

        Returns:
            True if the session existed
        """
        session = self.session_store.get(session_id)
        if session is None:
            return False

        async with self.session_store.lock(session_id):
            await asyncio.to_thread(self.vector_service.delete_namespace, session.namespace)
            self.session_store.delete(session_id)

        log_processing_info("Session deleted", {
            "session_id": session_id,
            "namespace": session.namespace
        })
        return True

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform health check.

        Returns:
            Dictionary with health status information
        """
        vector_health = await asyncio.to_thread(self.vector_service.health_check)
        return {
            "status": vector_health.get("status", "unknown"),
            "sessions": len(self.session_store),
            "vector_service": vector_health,
        }
