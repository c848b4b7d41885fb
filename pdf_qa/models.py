"""
Pydantic models for request/response validation and pipeline data.
"""

from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone

from .exceptions import CollaboratorError


REFUSAL_ANSWER = "I couldn't find the answer in the document."


class Turn(BaseModel):
    """One message in a session's conversation history."""
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "model"] = Field(..., description="Who produced the message")
    text: str = Field(..., description="Message content")


class Session(BaseModel):
    """A document upload and the conversation held against it."""
    session_id: str = Field(..., description="Opaque session identifier")
    namespace: str = Field(..., description="Vector store namespace holding this session's chunks")
    history: List[Turn] = Field(default_factory=list, description="Turns in submission order")
    filename: Optional[str] = Field(default=None, description="Name of the uploaded PDF")
    pages_loaded: int = Field(default=0, description="Pages with extractable text")
    chunks_indexed: int = Field(default=0, description="Chunks stored in the vector store")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RetrievalResult(BaseModel):
    """A retrieved chunk and its similarity to the query."""
    text: str = Field(..., description="Chunk content")
    score: float = Field(..., description="Similarity score, higher is more similar")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Chunk metadata")


class AnswerResult(BaseModel):
    """Outcome of answer generation: either an answer or the collaborator error."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    answer: Optional[str] = None
    error: Optional[CollaboratorError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.answer is not None


class IngestionResult(BaseModel):
    """Model for ingestion results."""
    session_id: str = Field(..., description="Session created for the upload")
    namespace: str = Field(..., description="Vector store namespace")
    pages_loaded: int = Field(..., description="Pages with extractable text")
    chunks_indexed: int = Field(..., description="Chunks stored in the vector store")
    processing_time: Optional[float] = Field(default=None, description="Processing time in seconds")


class UploadResponse(BaseModel):
    """Response model for PDF upload."""
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="Success message")
    session_id: str = Field(..., alias="sessionId", description="Session ID for this upload")


class AskRequest(BaseModel):
    """Request model for questions. Fields are optional so missing values map to a 400."""
    model_config = ConfigDict(populate_by_name=True)

    question: Optional[str] = Field(default=None, description="User's question")
    session_id: Optional[str] = Field(default=None, alias="sessionId", description="Session ID returned by /upload")


class AskResponse(BaseModel):
    """Response model for questions."""
    answer: str = Field(..., description="Generated answer")


class SessionInfoResponse(BaseModel):
    """Response model for session information."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    namespace: str
    filename: Optional[str] = None
    pages_loaded: int = Field(..., alias="pagesLoaded")
    chunks_indexed: int = Field(..., alias="chunksIndexed")
    turns: int
    created_at: datetime = Field(..., alias="createdAt")


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str = Field(..., description="Health status")
    version: str = Field(..., description="Application version")
    timestamp: str = Field(..., description="Current timestamp")
    sessions: int = Field(..., description="Number of live sessions")
    vector_store: Dict[str, Any] = Field(default_factory=dict, description="Vector store status")


class ErrorResponse(BaseModel):
    """Response model for errors."""
    error: str = Field(..., description="Error message")
