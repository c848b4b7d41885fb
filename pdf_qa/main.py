"""
FastAPI application for the PDF Q&A Backend.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional
from fastapi import FastAPI, File, UploadFile, HTTPException, Depends, Body, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from .config import settings, validate_required_settings
from .exceptions import IngestionError, ValidationError
from .models import (
    UploadResponse, AskRequest, AskResponse, SessionInfoResponse,
    HealthResponse, ErrorResponse
)
from .services import DocumentService
from .utils import format_timestamp, validate_file_size

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Upload a PDF and ask questions about it",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_document_service() -> DocumentService:
    """Build the process-wide document service on first use."""
    return DocumentService(config=settings)


@app.on_event("startup")
def on_startup_validate_settings():
    try:
        validate_required_settings()
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    return _error(400, exc.message)


@app.exception_handler(IngestionError)
async def ingestion_exception_handler(request: Request, exc: IngestionError):
    logger.error(f"Upload error: {exc.message}")
    return _error(500, f"Failed to process PDF: {exc.message}")


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    if request.url.path == "/upload":
        return _error(400, "No file uploaded")
    if request.url.path == "/ask":
        return _error(400, "Missing question or session ID")
    return _error(400, "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {str(exc)}")
    return _error(500, str(exc) if settings.debug else "Internal server error")


@app.get("/health", response_model=HealthResponse)
async def health_check(service: DocumentService = Depends(get_document_service)):
    """Health check endpoint."""
    health_info = await service.health_check()
    return HealthResponse(
        status=health_info["status"],
        version=settings.app_version,
        timestamp=format_timestamp(),
        sessions=health_info["sessions"],
        vector_store=health_info["vector_service"],
    )


@app.post("/upload", response_model=UploadResponse)
async def upload_pdf(
    pdf: Optional[UploadFile] = File(None),
    service: DocumentService = Depends(get_document_service)
):
    """
    Upload a PDF for indexing.

    The file is processed in memory and never written to disk.
    """
    if pdf is None:
        raise ValidationError("No file uploaded")

    if pdf.size is not None and not validate_file_size(pdf.size, service.settings.max_file_size_mb):
        raise ValidationError(
            f"File {pdf.filename} is too large. Maximum size is {service.settings.max_file_size_mb}MB."
        )

    content = await pdf.read()
    logger.info(f"Processing PDF: {pdf.filename} ({len(content)} bytes)")

    result = await service.ingest_pdf(content, pdf.filename or "upload.pdf")

    return UploadResponse(
        message="PDF processed successfully",
        session_id=result.session_id
    )


@app.post("/ask", response_model=AskResponse)
async def ask_question(
    request: AskRequest = Body(...),
    service: DocumentService = Depends(get_document_service)
):
    """Answer a question about the PDF uploaded in a session."""
    answer = await service.answer_question(request.question, request.session_id)
    return AskResponse(answer=answer)


@app.get("/sessions/{session_id}", response_model=SessionInfoResponse)
async def get_session_info(session_id: str, service: DocumentService = Depends(get_document_service)):
    """Get information about a session."""
    session = service.session_store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")

    return SessionInfoResponse(
        session_id=session.session_id,
        namespace=session.namespace,
        filename=session.filename,
        pages_loaded=session.pages_loaded,
        chunks_indexed=session.chunks_indexed,
        turns=len(session.history),
        created_at=session.created_at,
    )


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str, service: DocumentService = Depends(get_document_service)):
    """Delete a session and its indexed chunks."""
    if not await service.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"message": "Session deleted successfully"}


# Serve the front-end last so API routes take precedence
if Path(settings.static_dir).is_dir():
    app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pdf_qa.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
