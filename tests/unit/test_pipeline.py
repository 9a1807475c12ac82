"""Tests for ingestion and retrieval flows."""
import pytest
import pytest_asyncio

from minirag.embedder import HashEmbedder
from minirag.errors import DimensionMismatch, EmbeddingFailure, InvalidQuery, NotFound
from minirag.rag.collection import CollectionConfig, Distance
from minirag.rag.database import Database
from minirag.rag.ingest import IngestPipeline
from minirag.rag.records import TextMetadata
from minirag.rag.retriever import Retriever


class FailingEmbedder:
    async def embed(self, batch):
        raise EmbeddingFailure("model not loaded")


class ShortEmbedder:
    """Returns one vector fewer than requested."""

    async def embed(self, batch):
        return [[1.0, 2.0] for _ in batch][1:]


@pytest.fixture
def pipeline(database: Database, embedder: HashEmbedder) -> IngestPipeline:
    return IngestPipeline(database, embedder, chunk_size=250, chunk_overlap=0)


class TestIngest:
    @pytest.mark.asyncio
    async def test_ingest_text_stores_one_record_per_chunk(
        self, pipeline: IngestPipeline, database: Database, document: str
    ):
        result = await pipeline.ingest_text(document, "vectors")

        assert result.ids == [0, 1, 2]
        assert result.chunks_created == 3
        assert result.records_stored == 3

        stored = database.get_collection("vectors")
        assert [m for _, m in stored.list()] == [
            TextMetadata(value=document[:250]),
            TextMetadata(value=document[250:500]),
            TextMetadata(value=document[500:]),
        ]
        assert stored.dimension == 16

    @pytest.mark.asyncio
    async def test_second_ingest_continues_ids(self, pipeline: IngestPipeline, document: str):
        await pipeline.ingest_text(document, "vectors")
        result = await pipeline.ingest_text("another short document", "vectors")

        assert result.ids == [3]
        assert pipeline.get_stats()["chunks_created"] == 4

    @pytest.mark.asyncio
    async def test_empty_text_still_creates_collection(
        self, pipeline: IngestPipeline, database: Database
    ):
        result = await pipeline.ingest_text("", "empty")

        assert result.ids == []
        assert "empty" in database
        assert len(database.get_collection("empty")) == 0

    @pytest.mark.asyncio
    async def test_new_collection_saved_before_embedding(self, database: Database, document: str):
        pipeline = IngestPipeline(database, FailingEmbedder(), chunk_size=250)

        with pytest.raises(EmbeddingFailure):
            await pipeline.ingest_text(document, "vectors")

        assert len(database.get_collection("vectors")) == 0

    @pytest.mark.asyncio
    async def test_misaligned_embeddings_rejected(self, database: Database, document: str):
        pipeline = IngestPipeline(database, ShortEmbedder(), chunk_size=250)

        with pytest.raises(EmbeddingFailure):
            await pipeline.ingest_text(document, "vectors")

        assert len(database.get_collection("vectors")) == 0

    @pytest.mark.asyncio
    async def test_dimension_change_rejected_without_partial_insert(
        self, pipeline: IngestPipeline, database: Database, document: str
    ):
        await pipeline.ingest_text(document, "vectors")
        other = IngestPipeline(database, HashEmbedder(dimension=8), chunk_size=250)

        with pytest.raises(DimensionMismatch):
            await other.ingest_text(document, "vectors")

        assert len(database.get_collection("vectors")) == 3

    @pytest.mark.asyncio
    async def test_new_collections_use_given_config(self, database: Database, embedder: HashEmbedder):
        pipeline = IngestPipeline(
            database,
            embedder,
            chunk_size=10,
            collection_config=CollectionConfig(distance=Distance.COSINE),
        )

        await pipeline.ingest_text("hello world", "cos")

        assert database.get_collection("cos").config.distance is Distance.COSINE

    @pytest.mark.asyncio
    async def test_ingest_file(self, pipeline: IngestPipeline, tmp_path, document: str):
        path = tmp_path / "water.txt"
        path.write_text(document, encoding="utf-8")

        result = await pipeline.ingest_file(path, "vectors")

        assert result.records_stored == 3
        assert pipeline.stats["files_processed"] == 1

    @pytest.mark.asyncio
    async def test_missing_file(self, pipeline: IngestPipeline, tmp_path):
        with pytest.raises(NotFound):
            await pipeline.ingest_file(tmp_path / "missing.txt", "vectors")


class TestRetriever:
    @pytest_asyncio.fixture
    async def loaded_database(self, pipeline: IngestPipeline, database: Database, document: str):
        await pipeline.ingest_text(document, "vectors")
        return database

    @pytest.mark.asyncio
    async def test_exact_chunk_query_ranks_first(
        self, loaded_database: Database, embedder: HashEmbedder, document: str
    ):
        retriever = Retriever(loaded_database, embedder, "vectors", chunk_size=250, top_k=8)

        results = await retriever.retrieve(document[250:500])

        assert len(results) == 3
        assert results[0].record_id == 1
        assert results[0].distance == 0.0
        assert results[0].text == document[250:500]
        assert results[0].relevance_score == 1.0
        assert [r.distance for r in results] == sorted(r.distance for r in results)

    @pytest.mark.asyncio
    async def test_only_first_query_chunk_is_embedded(
        self, loaded_database: Database, embedder: HashEmbedder, document: str
    ):
        retriever = Retriever(loaded_database, embedder, "vectors", chunk_size=250)

        results = await retriever.retrieve(document[:250] + " and a long tail that is ignored")

        assert results[0].as_tuple() == (0.0, 0, document[:250])

    @pytest.mark.asyncio
    async def test_top_k_limits_results(self, loaded_database: Database, embedder: HashEmbedder):
        retriever = Retriever(loaded_database, embedder, "vectors", chunk_size=250)

        assert len(await retriever.retrieve("rain", top_k=1)) == 1
        assert await retriever.retrieve("rain", top_k=0) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   \n"])
    async def test_empty_query_rejected(
        self, loaded_database: Database, embedder: HashEmbedder, query: str
    ):
        retriever = Retriever(loaded_database, embedder, "vectors", chunk_size=250)

        with pytest.raises(InvalidQuery):
            await retriever.retrieve(query)

    @pytest.mark.asyncio
    async def test_missing_collection(self, database: Database, embedder: HashEmbedder):
        retriever = Retriever(database, embedder, "nothing-here", chunk_size=250)

        with pytest.raises(NotFound):
            await retriever.retrieve("rain")

    @pytest.mark.asyncio
    async def test_embedder_dimension_mismatch(self, loaded_database: Database):
        retriever = Retriever(loaded_database, HashEmbedder(dimension=3), "vectors", chunk_size=250)

        with pytest.raises(DimensionMismatch):
            await retriever.retrieve("rain")
