"""
PDF Q&A Backend Application

Upload a PDF, index it in a vector database under a per-session namespace,
and ask questions answered from the retrieved chunks.

Features:
- In-memory PDF processing (no file storage)
- Qdrant vector database integration
- Google Gemini AI integration
- Conversational query rewriting
- Session management
"""

__version__ = "1.0.0"
__description__ = "Retrieval-augmented question answering over uploaded PDFs"
