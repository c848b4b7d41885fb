"""
PDF processing service for extracting text from PDF files and splitting it into chunks.
"""

import PyPDF2
from io import BytesIO
from typing import List, Optional
from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from ..config import settings
from ..exceptions import ParseError
from ..utils import (
    measure_time,
    log_processing_info,
    handle_processing_error,
    truncate,
)
import logging

logger = logging.getLogger(__name__)

# Coarsest to finest: paragraphs, lines, words, characters.
CHUNK_SEPARATORS = ["\n\n", "\n", " ", ""]


class PDFProcessor:
    """Service for processing PDF files and extracting text."""

    def __init__(self, chunk_size: Optional[int] = None, chunk_overlap: Optional[int] = None):
        """Initialize the PDF processor."""
        self.chunk_size = chunk_size or settings.chunk_size
        self.chunk_overlap = settings.chunk_overlap if chunk_overlap is None else chunk_overlap
        self.text_splitter = RecursiveCharacterTextSplitter(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            separators=CHUNK_SEPARATORS,
        )

    @measure_time
    def extract_text_from_pdf(self, file_content: bytes, filename: str) -> List[Document]:
        """
        Extract text from PDF file content.

        Args:
            file_content: PDF file content as bytes
            filename: Name of the PDF file

        Returns:
            One Document per page with extractable text, in page order

        Raises:
            ParseError: If the content is not a PDF, has no pages, or has no text
        """
        if not file_content:
            raise ParseError(f"{filename} is empty")

        try:
            pdf_reader = PyPDF2.PdfReader(BytesIO(file_content))
            total_pages = len(pdf_reader.pages)
        except Exception as e:
            handle_processing_error(
                "pdf_extraction",
                e,
                {"filename": filename, "file_size": len(file_content)}
            )
            raise ParseError(f"{filename} is not a valid PDF: {e}", cause=e)

        if total_pages == 0:
            raise ParseError(f"{filename} has no pages")

        log_processing_info("PDF extraction started", {
            "filename": filename,
            "total_pages": total_pages,
            "file_size": len(file_content)
        })

        documents = []
        for page_num, page in enumerate(pdf_reader.pages):
            try:
                page_text = page.extract_text()
            except Exception as page_error:
                error_info = handle_processing_error(
                    "page_extraction",
                    page_error,
                    {"filename": filename, "page": page_num + 1}
                )
                logger.warning(f"Skipping page {page_num + 1}: {error_info}")
                continue

            if page_text and page_text.strip():
                documents.append(Document(
                    page_content=page_text,
                    metadata={
                        'source': filename,
                        'page': page_num + 1,
                        'total_pages': total_pages,
                    }
                ))

        if not documents:
            raise ParseError(f"No text could be extracted from {filename}")

        log_processing_info("PDF extraction completed", {
            "filename": filename,
            "documents_created": len(documents),
            "total_pages": total_pages,
            "first_page": truncate(documents[0].page_content),
        })

        return documents

    def split_documents_into_chunks(self, documents: List[Document], namespace: Optional[str] = None) -> List[Document]:
        """
        Split documents into smaller chunks for better vector search.

        Args:
            documents: List of page Documents
            namespace: Namespace stamped onto every chunk's metadata

        Returns:
            List of chunked Document objects
        """
        chunks = self.text_splitter.split_documents(documents)

        for i, chunk in enumerate(chunks):
            chunk.metadata['chunk_index'] = i
            if namespace is not None:
                chunk.metadata['namespace'] = namespace

        log_processing_info("Document chunking completed", {
            "original_documents": len(documents),
            "chunks_created": len(chunks),
            "chunk_size": self.chunk_size,
            "chunk_overlap": self.chunk_overlap
        })

        return chunks
