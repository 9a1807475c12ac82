"""Pytest configuration and fixtures for unit tests."""
import pytest
import structlog

from minirag.embedder import HashEmbedder
from minirag.rag.collection import Collection
from minirag.rag.database import Database
from minirag.rag.records import TextMetadata


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by CLI tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def database(tmp_path) -> Database:
    """An empty database in a temporary directory."""
    return Database.open(tmp_path / "db")


@pytest.fixture
def embedder() -> HashEmbedder:
    """Deterministic offline embedder."""
    return HashEmbedder(dimension=16)


@pytest.fixture
def document() -> str:
    """A 600 character document."""
    text = (
        "Water evaporates from oceans and lakes, condenses into clouds and "
        "falls back as rain or snow. Rivers carry it back to the sea. "
    ) * 6
    return text[:600]


@pytest.fixture
def four_dim_collection() -> Collection:
    """Collection with five 4-dimensional records."""
    collection = Collection()
    collection.insert_many(
        [
            ([0.0, 0.0, 0.0, 0.0], TextMetadata(value="origin")),
            ([1.0, 0.0, 0.0, 0.0], TextMetadata(value="x")),
            ([0.0, 1.0, 0.0, 0.0], TextMetadata(value="y")),
            ([0.0, 0.0, 1.0, 0.0], TextMetadata(value="z")),
            ([1.0, 1.0, 1.0, 1.0], TextMetadata(value="ones")),
        ]
    )
    return collection
