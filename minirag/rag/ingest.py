"""Ingest pipeline for storing documents in a vector collection.

Orchestrates:
- Reading the document
- Text chunking
- Embedding generation (one batch per document)
- Record insertion and saving the collection
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import structlog

from minirag.embedder import Embedder
from minirag.errors import EmbeddingFailure, NotFound, PersistenceFailure
from minirag.rag.chunker import TextChunker
from minirag.rag.collection import Collection, CollectionConfig
from minirag.rag.database import Database
from minirag.rag.records import TextMetadata

logger = structlog.get_logger()


@dataclass
class IngestResult:
    """Outcome of ingesting one document."""

    collection: str
    ids: List[int] = field(default_factory=list)
    chunks_created: int = 0

    @property
    def records_stored(self) -> int:
        return len(self.ids)


class IngestPipeline:
    """Pipeline for ingesting text documents into a named collection."""

    def __init__(
        self,
        database: Database,
        embedder: Embedder,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
        respect_word_boundaries: bool = False,
        collection_config: Optional[CollectionConfig] = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            database: Database the collections are saved to
            embedder: Embedding backend
            chunk_size: Chunk size in characters (default from config)
            chunk_overlap: Chunk overlap in characters (default from config)
            respect_word_boundaries: Avoid cutting chunks inside words
            collection_config: Configuration for collections created here
        """
        self.database = database
        self.embedder = embedder
        self.collection_config = collection_config or CollectionConfig()
        self.chunker = TextChunker(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            respect_word_boundaries=respect_word_boundaries,
        )

        self.stats = {
            "files_processed": 0,
            "chunks_created": 0,
            "embeddings_generated": 0,
        }

        logger.info(
            "ingest_pipeline_initialized",
            database=str(self.database.path),
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
            distance=self.collection_config.distance.value,
        )

    def get_or_create_collection(self, name: str) -> Collection:
        """Load a collection, creating and saving an empty one if needed."""
        try:
            return self.database.get_collection(name)
        except NotFound:
            logger.info("creating_empty_collection", name=name)
            collection = Collection(self.collection_config)
            # Save right away so later runs can find it
            self.database.save_collection(name, collection)
            return collection

    async def ingest_text(self, text: str, collection_name: str) -> IngestResult:
        """Chunk, embed and store a document's text.

        Args:
            text: Document text
            collection_name: Target collection (created if missing)

        Returns:
            IngestResult with the assigned record ids

        Raises:
            EmbeddingFailure: If embedding fails or is misaligned with the chunks
            DimensionMismatch: If the vectors do not fit the collection
            PersistenceFailure: If saving fails
        """
        collection = self.get_or_create_collection(collection_name)

        chunks = self.chunker.chunk_text(text)
        if not chunks:
            logger.warning("no_chunks_created", collection=collection_name)
            return IngestResult(collection=collection_name)

        chunk_texts = [chunk.content for chunk in chunks]
        try:
            embeddings = await self.embedder.embed(chunk_texts)
        except EmbeddingFailure as e:
            logger.error(
                "embedding_generation_failed",
                collection=collection_name,
                chunk_count=len(chunks),
                error=str(e),
            )
            raise

        if len(embeddings) != len(chunks):
            raise EmbeddingFailure(
                f"Embedder returned {len(embeddings)} vectors for {len(chunks)} chunks"
            )
        self.stats["embeddings_generated"] += len(embeddings)

        ids = collection.insert_many(
            [
                (vector, TextMetadata(value=content))
                for content, vector in zip(chunk_texts, embeddings)
            ]
        )
        self.database.save_collection(collection_name, collection)

        self.stats["chunks_created"] += len(chunks)

        logger.info(
            "text_ingested",
            collection=collection_name,
            chunks_created=len(chunks),
            first_id=ids[0],
            last_id=ids[-1],
        )

        return IngestResult(collection=collection_name, ids=ids, chunks_created=len(chunks))

    async def ingest_file(self, file_path: Union[str, Path], collection_name: str) -> IngestResult:
        """Ingest a single UTF-8 text file.

        Raises:
            NotFound: If the file does not exist
            PersistenceFailure: If the file cannot be read
        """
        file_path = Path(file_path)
        logger.info("ingesting_file", path=str(file_path), collection=collection_name)

        try:
            text = file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFound(f"File not found: {file_path}") from None
        except (OSError, UnicodeDecodeError) as e:
            logger.error("file_read_failed", path=str(file_path), error=str(e))
            raise PersistenceFailure(f"Failed to read {file_path}: {e}") from e

        result = await self.ingest_text(text, collection_name)
        self.stats["files_processed"] += 1
        return result

    def get_stats(self) -> Dict[str, Any]:
        return dict(self.stats)
