"""
Exception types raised by the PDF Q&A pipeline.
"""

from typing import Optional


class PDFQAError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str, *, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.__cause__ = cause


class ValidationError(PDFQAError):
    """Client supplied a missing or invalid input (HTTP 400)."""


class IngestionError(PDFQAError):
    """Parsing, splitting, embedding or storing an upload failed (HTTP 500)."""


class ParseError(IngestionError):
    """The upload is not a readable PDF or yields no extractable text."""


class CollaboratorError(PDFQAError):
    """An external service failed while answering a question."""


class RetrievalError(CollaboratorError):
    """Embedding the query or searching the vector store failed."""


class GenerationError(CollaboratorError):
    """The language model failed to produce an answer."""
