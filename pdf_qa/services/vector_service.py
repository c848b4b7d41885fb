"""
Vector database service for managing embeddings and similarity search.

All sessions share one Qdrant collection; each chunk carries its session's
namespace in ``metadata.namespace`` and every read, count and delete is
filtered on it.
"""

import asyncio
from typing import List, Dict, Any, Optional
from uuid import uuid4

from qdrant_client import QdrantClient, models
from langchain_qdrant import QdrantVectorStore
from langchain_google_genai import GoogleGenerativeAIEmbeddings
from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings

from ..config import Settings, settings as default_settings
from ..exceptions import IngestionError, RetrievalError
from ..models import RetrievalResult
from ..utils import (
    measure_time,
    with_timeout,
    log_processing_info,
    handle_processing_error
)
import logging

logger = logging.getLogger(__name__)

NAMESPACE_KEY = "metadata.namespace"


def namespace_filter(namespace: str) -> models.Filter:
    """Build a Qdrant filter matching the points of a single namespace."""
    return models.Filter(
        must=[
            models.FieldCondition(
                key=NAMESPACE_KEY,
                match=models.MatchValue(value=namespace),
            )
        ]
    )


class VectorService:
    """Service for managing vector database operations."""

    def __init__(
        self,
        client: Optional[QdrantClient] = None,
        embeddings: Optional[Embeddings] = None,
        config: Optional[Settings] = None,
    ):
        """Initialize the vector service."""
        self.settings = config or default_settings
        self.collection_name = self.settings.qdrant_collection
        self.client = client or self._initialize_qdrant_client()
        self.embeddings = embeddings or self._initialize_embeddings()
        self._vector_store: Optional[QdrantVectorStore] = None

    def _initialize_qdrant_client(self) -> QdrantClient:
        """Initialize Qdrant client."""
        if self.settings.qdrant_api_key:
            client = QdrantClient(
                url=self.settings.qdrant_url,
                api_key=self.settings.qdrant_api_key
            )
        else:
            client = QdrantClient(url=self.settings.qdrant_url)

        log_processing_info("Qdrant client initialized", {
            "url": self.settings.qdrant_url,
            "has_api_key": bool(self.settings.qdrant_api_key)
        })
        return client

    def _initialize_embeddings(self) -> GoogleGenerativeAIEmbeddings:
        """Initialize Google Generative AI embeddings."""
        embeddings = GoogleGenerativeAIEmbeddings(
            model=self.settings.google_embedding_model,
            api_key=self.settings.google_api_key
        )

        log_processing_info("Embeddings initialized", {
            "model": self.settings.google_embedding_model
        })
        return embeddings

    def ensure_collection(self) -> bool:
        """
        Create the shared collection and its namespace index if missing.

        Returns:
            True if the collection was created, False if it already existed
        """
        if self.client.collection_exists(self.collection_name):
            return False

        self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=models.VectorParams(
                size=self.settings.vector_dimension,
                distance=models.Distance.COSINE
            )
        )
        self.client.create_payload_index(
            collection_name=self.collection_name,
            field_name=NAMESPACE_KEY,
            field_schema=models.PayloadSchemaType.KEYWORD,
        )

        log_processing_info("Collection created", {
            "collection_name": self.collection_name,
            "vector_dimension": self.settings.vector_dimension
        })
        return True

    @property
    def vector_store(self) -> QdrantVectorStore:
        if self._vector_store is None:
            self.ensure_collection()
            self._vector_store = QdrantVectorStore(
                client=self.client,
                collection_name=self.collection_name,
                embedding=self.embeddings,
                distance=models.Distance.COSINE,
            )
        return self._vector_store

    async def get_vector_store(self) -> QdrantVectorStore:
        """Return the vector store, building it in a worker thread on first use."""
        if self._vector_store is None:
            await asyncio.to_thread(lambda: self.vector_store)
        return self._vector_store

    async def _store_batch(
        self,
        batch: List[Document],
        semaphore: asyncio.Semaphore,
        writes: List[asyncio.Future],
    ) -> int:
        async with semaphore:
            store = await self.get_vector_store()
            ids = [str(uuid4()) for _ in batch]
            # The deadline only stops the wait; the thread keeps writing until it returns.
            write = asyncio.ensure_future(
                asyncio.to_thread(store.add_documents, documents=batch, ids=ids)
            )
            writes.append(write)
            await with_timeout(asyncio.shield(write), self.settings.collaborator_timeout_seconds)
            return len(batch)

    @measure_time
    async def store_documents(self, documents: List[Document], namespace: str) -> int:
        """
        Embed and upsert chunks under a namespace.

        Batches run concurrently, at most ``max_upsert_concurrency`` at a time.
        If any batch fails, the namespace is wiped so no partial index remains.
        Writes still running in worker threads after a timeout are waited for
        before the wipe.

        Returns:
            Number of chunks stored

        Raises:
            IngestionError: If embedding or storing any batch failed
        """
        for doc in documents:
            doc.metadata["namespace"] = namespace

        batch_size = self.settings.upsert_batch_size
        batches = [documents[i:i + batch_size] for i in range(0, len(documents), batch_size)]
        semaphore = asyncio.Semaphore(self.settings.max_upsert_concurrency)

        writes: List[asyncio.Future] = []

        results = await asyncio.gather(
            *(self._store_batch(batch, semaphore, writes) for batch in batches),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            error = failures[0]
            handle_processing_error(
                "document_storage",
                error,
                {
                    "namespace": namespace,
                    "document_count": len(documents),
                    "failed_batches": len(failures),
                }
            )
            await asyncio.gather(*writes, return_exceptions=True)
            await asyncio.to_thread(self.delete_namespace, namespace)
            detail = str(error) or type(error).__name__
            raise IngestionError(f"Failed to store documents: {detail}", cause=error)

        stored = sum(results)
        log_processing_info("Documents stored successfully", {
            "collection_name": self.collection_name,
            "namespace": namespace,
            "document_count": stored,
            "batches": len(batches)
        })
        return stored

    @measure_time
    async def search(self, query: str, namespace: str, k: Optional[int] = None) -> List[RetrievalResult]:
        """
        Search for the chunks of a namespace most similar to the query.

        Args:
            query: Search query
            namespace: Namespace to restrict the search to
            k: Number of results to return

        Returns:
            Results ordered by descending similarity score

        Raises:
            RetrievalError: If embedding the query or the search failed
        """
        if k is None:
            k = self.settings.similarity_search_k

        try:
            store = await self.get_vector_store()
            hits = await with_timeout(
                asyncio.to_thread(
                    store.similarity_search_with_score,
                    query,
                    k=k,
                    filter=namespace_filter(namespace),
                ),
                self.settings.collaborator_timeout_seconds,
            )
        except Exception as e:
            handle_processing_error(
                "similarity_search",
                e,
                {"namespace": namespace, "query": query, "k": k}
            )
            raise RetrievalError(f"Failed to search similar documents: {e}", cause=e)

        results = [
            RetrievalResult(text=doc.page_content, score=score, metadata=doc.metadata)
            for doc, score in hits
        ]
        results.sort(key=lambda r: r.score, reverse=True)

        log_processing_info("Similarity search completed", {
            "namespace": namespace,
            "query_length": len(query),
            "results_count": len(results),
            "k": k
        })
        return results

    def count_namespace(self, namespace: str) -> int:
        """Return the number of points stored under a namespace."""
        if not self.client.collection_exists(self.collection_name):
            return 0
        return self.client.count(
            collection_name=self.collection_name,
            count_filter=namespace_filter(namespace),
            exact=True,
        ).count

    def delete_namespace(self, namespace: str) -> bool:
        """
        Delete every point stored under a namespace.

        Returns:
            True if deleted successfully
        """
        try:
            if not self.client.collection_exists(self.collection_name):
                return True
            self.client.delete(
                collection_name=self.collection_name,
                points_selector=models.FilterSelector(filter=namespace_filter(namespace)),
            )
            log_processing_info("Namespace deleted", {
                "collection_name": self.collection_name,
                "namespace": namespace
            })
            return True

        except Exception as e:
            error_info = handle_processing_error(
                "namespace_deletion",
                e,
                {"namespace": namespace}
            )
            logger.warning(f"Failed to delete namespace {namespace}: {error_info}")
            return False

    def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on the vector service.

        Returns:
            Dictionary with health status information
        """
        try:
            collections = self.client.get_collections()
            return {
                "status": "healthy",
                "collection_name": self.collection_name,
                "collections_count": len(collections.collections),
                "embedding_model": self.settings.google_embedding_model
            }

        except Exception as e:
            handle_processing_error("health_check", e)
            return {
                "status": "unhealthy",
                "error": str(e),
                "qdrant_url": self.settings.qdrant_url
            }
