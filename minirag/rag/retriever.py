"""Retriever for nearest-neighbour search over a stored collection.

Handles:
- Query chunking and embedding (first chunk only)
- Collection loading and k-NN search
- Result formatting
"""
import math
from typing import List, Optional, Tuple
from dataclasses import dataclass
import structlog

from minirag import config
from minirag.embedder import Embedder
from minirag.errors import EmbeddingFailure, InvalidQuery
from minirag.rag.chunker import TextChunker
from minirag.rag.database import Database
from minirag.rag.records import Metadata, metadata_text

logger = structlog.get_logger()


@dataclass
class RetrievalResult:
    """A single retrieved record."""

    distance: float
    record_id: int
    text: Optional[str]
    metadata: Metadata

    @property
    def relevance_score(self) -> float:
        """Map a distance to a (0, 1] relevance score, 1 for distance 0."""
        return math.exp(-self.distance / 2.0)

    def as_tuple(self) -> Tuple[float, int, Optional[str]]:
        return self.distance, self.record_id, self.text


class Retriever:
    """Answers free-text queries against one collection."""

    def __init__(
        self,
        database: Database,
        embedder: Embedder,
        collection_name: Optional[str] = None,
        chunk_size: Optional[int] = None,
        top_k: Optional[int] = None,
    ):
        """Initialize the retriever.

        Args:
            database: Database holding the collection
            embedder: Embedding backend (same model as used for ingestion)
            collection_name: Collection to search (default from config)
            chunk_size: Query chunk size; use the ingestion chunk size
            top_k: Number of results to retrieve (default from config)
        """
        self.database = database
        self.embedder = embedder
        self.collection_name = collection_name or config.DEFAULT_COLLECTION
        self.chunker = TextChunker(chunk_size=chunk_size, chunk_overlap=0)
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k

        logger.debug(
            "retriever_initialized",
            collection=self.collection_name,
            chunk_size=self.chunker.chunk_size,
            top_k=self.top_k,
        )

    async def embed_query(self, query: str) -> List[float]:
        """Embed the first chunk of a query.

        Raises:
            InvalidQuery: If the query is empty or only whitespace
            EmbeddingFailure: If the embedder returns no vector
        """
        if not query or not query.strip():
            logger.warning("empty_query_provided")
            raise InvalidQuery("Query must contain non-whitespace text")

        chunks = self.chunker.chunk_text(query)
        if not chunks:
            raise InvalidQuery("Query produced no chunks")

        if len(chunks) > 1:
            logger.debug("query_truncated_to_first_chunk", chunk_count=len(chunks))

        vectors = await self.embedder.embed([chunks[0].content])
        if len(vectors) != 1:
            raise EmbeddingFailure(f"Embedder returned {len(vectors)} vectors for 1 query")
        return vectors[0]

    async def retrieve(self, query: str, top_k: Optional[int] = None) -> List[RetrievalResult]:
        """Retrieve the records closest to a query.

        Args:
            query: Free-text query
            top_k: Number of results to return (overrides default)

        Returns:
            List of RetrievalResult objects, closest first

        Raises:
            InvalidQuery: If the query is empty
            NotFound: If the collection does not exist
            DimensionMismatch: If the query vector does not fit the collection
            EmbeddingFailure: If embedding fails
        """
        top_k = self.top_k if top_k is None else top_k

        logger.info(
            "retrieval_started",
            collection=self.collection_name,
            query_length=len(query or ""),
            top_k=top_k,
        )

        try:
            query_vector = await self.embed_query(query)
            collection = self.database.get_collection(self.collection_name)
            hits = collection.search(query_vector, top_k)
        except Exception as e:
            logger.error(
                "retrieval_failed",
                collection=self.collection_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        results = [
            RetrievalResult(
                distance=hit.distance,
                record_id=hit.id,
                text=metadata_text(hit.data),
                metadata=hit.data,
            )
            for hit in hits
        ]

        logger.info(
            "retrieval_completed",
            collection=self.collection_name,
            results_returned=len(results),
            top_distance=results[0].distance if results else None,
        )

        return results
