"""
Services package for the PDF Q&A Backend.
"""

from .pdf_processor import PDFProcessor
from .vector_service import VectorService
from .query_rewriter import QueryRewriter
from .chat_service import ChatService
from .session_store import SessionStore, InMemorySessionStore
from .document_service import DocumentService

__all__ = [
    "PDFProcessor",
    "VectorService",
    "QueryRewriter",
    "ChatService",
    "SessionStore",
    "InMemorySessionStore",
    "DocumentService"
]
