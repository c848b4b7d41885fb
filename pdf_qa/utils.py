"""
Utility functions for the PDF Q&A Backend.
"""

import asyncio
import functools
import inspect
import time
import uuid
from typing import Any, Awaitable, Dict, Optional, TypeVar
from datetime import datetime, timezone
import logging

from .config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def generate_session_id() -> str:
    """Generate a unique session ID."""
    return uuid.uuid4().hex


def generate_namespace(session_id: str, prefix: Optional[str] = None) -> str:
    """Generate the vector store namespace for a session."""
    return f"{prefix or settings.namespace_prefix}-{session_id}"


def validate_file_size(file_size: int, max_file_size_mb: Optional[int] = None) -> bool:
    """Validate if the file size is within limits."""
    limit_mb = settings.max_file_size_mb if max_file_size_mb is None else max_file_size_mb
    return file_size <= limit_mb * 1024 * 1024


def format_timestamp() -> str:
    """Get current timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def measure_time(func):
    """Decorator to measure function execution time (sync or async)."""
    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                execution_time = time.perf_counter() - start_time
                logger.info(f"{func.__name__} executed in {execution_time:.2f} seconds")
        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            execution_time = time.perf_counter() - start_time
            logger.info(f"{func.__name__} executed in {execution_time:.2f} seconds")
    return wrapper


async def with_timeout(awaitable: Awaitable[T], timeout: Optional[float] = None) -> T:
    """Await a collaborator call, raising asyncio.TimeoutError past the deadline."""
    if timeout is None:
        timeout = settings.collaborator_timeout_seconds
    return await asyncio.wait_for(awaitable, timeout=timeout)


def truncate(text: str, length: int = 100) -> str:
    """Shorten text for log lines."""
    if len(text) <= length:
        return text
    return text[:length] + "..."


def log_processing_info(operation: str, details: Dict[str, Any]) -> None:
    """Log processing information."""
    logger.info(f"{operation}: {details}")


def handle_processing_error(operation: str, error: BaseException, context: Dict[str, Any] = None) -> Dict[str, Any]:
    """Handle and log processing errors."""
    error_info = {
        'operation': operation,
        'error_type': type(error).__name__,
        'error_message': str(error),
        'timestamp': format_timestamp()
    }

    if context:
        error_info.update(context)

    logger.error(f"Processing error: {error_info}")
    return error_info
