"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document chunking
- Records and tagged metadata
- In-memory vector collections with k-NN search
- Collection persistence
- Ingestion and retrieval flows
"""
from minirag.rag.chunker import TextChunk, TextChunker, chunk_text
from minirag.rag.collection import (
    Collection,
    CollectionConfig,
    CollectionSnapshot,
    Distance,
    SearchResult,
)
from minirag.rag.database import Database
from minirag.rag.ingest import IngestPipeline, IngestResult
from minirag.rag.records import (
    ArrayMetadata,
    FloatMetadata,
    IntegerMetadata,
    Metadata,
    ObjectMetadata,
    Record,
    TextMetadata,
    metadata_from_value,
    metadata_text,
)
from minirag.rag.retriever import RetrievalResult, Retriever

__all__ = [
    "ArrayMetadata",
    "Collection",
    "CollectionConfig",
    "CollectionSnapshot",
    "Database",
    "Distance",
    "FloatMetadata",
    "IngestPipeline",
    "IngestResult",
    "IntegerMetadata",
    "Metadata",
    "ObjectMetadata",
    "Record",
    "RetrievalResult",
    "Retriever",
    "SearchResult",
    "TextChunk",
    "TextChunker",
    "TextMetadata",
    "chunk_text",
    "metadata_from_value",
    "metadata_text",
]
