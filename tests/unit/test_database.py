"""Tests for collection persistence."""
import pytest

from minirag.errors import InvalidConfiguration, NotFound, PersistenceFailure
from minirag.rag.collection import Collection, CollectionConfig, Distance
from minirag.rag.database import Database
from minirag.rag.records import metadata_from_value


def test_open_creates_missing_directory(tmp_path):
    path = tmp_path / "nested" / "db"

    database = Database.open(path)

    assert path.is_dir()
    assert len(database) == 0
    assert database.collection_names() == []


def test_get_unknown_collection_fails(database: Database):
    with pytest.raises(NotFound):
        database.get_collection("vectors")


def test_save_then_get_round_trips_records(database: Database):
    collection = Collection(CollectionConfig(distance=Distance.COSINE))
    collection.insert_many(
        [
            ([0.1, 0.2, 0.3], "first chunk"),
            ([1e-9, -4.75, 123456.789], {"page": 2, "tags": ["x", 1.5]}),
            ([0.0, 0.0, 1.0], 28.0),
        ]
    )
    collection.delete(0)

    database.save_collection("vectors", collection)
    loaded = database.get_collection("vectors")

    assert loaded.config == collection.config
    assert loaded.dimension == 3
    assert loaded.next_id == 3
    assert [loaded.get(i) for i, _ in loaded.list()] == [collection.get(1), collection.get(2)]
    assert loaded.get(1).metadata == metadata_from_value({"page": 2, "tags": ["x", 1.5]})


def test_ids_not_reused_after_reload(database: Database):
    collection = Collection()
    collection.insert_many([([1.0], "a"), ([2.0], "b")])
    collection.delete(1)
    database.save_collection("c", collection)

    loaded = database.get_collection("c")

    assert loaded.insert([3.0], "c") == 2


def test_loaded_collection_is_disconnected(database: Database, four_dim_collection: Collection):
    database.save_collection("vectors", four_dim_collection)

    first = database.get_collection("vectors")
    first.insert([1.0, 2.0, 3.0, 4.0], "unsaved")
    second = database.get_collection("vectors")

    assert len(first) == 6
    assert len(second) == 5


def test_save_replaces_previous_version(database: Database, four_dim_collection: Collection):
    database.save_collection("vectors", four_dim_collection)
    database.save_collection("vectors", Collection())

    assert len(database.get_collection("vectors")) == 0
    assert len(database) == 1


def test_save_leaves_no_temporary_files(database: Database, four_dim_collection: Collection):
    database.save_collection("vectors", four_dim_collection)
    database.save_collection("vectors", four_dim_collection)

    assert sorted(p.name for p in database.path.iterdir()) == ["vectors.json"]


def test_delete_collection(database: Database):
    database.save_collection("a", Collection())
    database.save_collection("b", Collection())

    database.delete_collection("a")

    assert database.collection_names() == ["b"]
    assert "a" not in database
    with pytest.raises(NotFound):
        database.get_collection("a")
    with pytest.raises(NotFound):
        database.delete_collection("a")


def test_collections_visible_to_new_handle(tmp_path, four_dim_collection: Collection):
    Database.open(tmp_path).save_collection("vectors", four_dim_collection)

    reopened = Database.open(tmp_path)

    assert len(reopened) == 1
    assert len(reopened.get_collection("vectors")) == 5


def test_corrupt_collection_fails_only_on_load(tmp_path):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

    database = Database.open(tmp_path)

    assert database.collection_names() == ["broken"]
    with pytest.raises(PersistenceFailure):
        database.get_collection("broken")


def test_inconsistent_collection_rejected(tmp_path):
    (tmp_path / "bad.json").write_text(
        '{"config": {"distance": "euclidean"}, "dimension": 2, "next_id": 1,'
        ' "records": [{"id": 5, "vector": [1.0, 2.0], "metadata": {"kind": "text", "value": "x"}}]}',
        encoding="utf-8",
    )

    with pytest.raises(PersistenceFailure):
        Database.open(tmp_path).get_collection("bad")


def test_undecodable_collection_is_persistence_failure(tmp_path):
    (tmp_path / "bad.json").write_bytes(b"\xff\xfe{}")

    with pytest.raises(PersistenceFailure):
        Database.open(tmp_path).get_collection("bad")


def test_empty_collection_name_rejected(database: Database):
    with pytest.raises(InvalidConfiguration):
        database.save_collection("", Collection())
    with pytest.raises(InvalidConfiguration):
        database.get_collection("")
    with pytest.raises(InvalidConfiguration):
        database.delete_collection("")


@pytest.mark.parametrize(
    "name", ["my notes", "données", "../escape", "a/b", ".hidden", "50%", "a.json"]
)
def test_any_collection_name_stays_inside_root(tmp_path, database: Database, name: str):
    collection = Collection()
    collection.insert([1.0, 2.0], metadata_from_value(name))

    database.save_collection(name, collection)

    assert database.collection_names() == [name]
    assert name in database
    loaded = database.get_collection(name)
    assert loaded.get(0).metadata.value == name

    assert [p.name for p in tmp_path.iterdir()] == ["db"]
    files = list(database.path.iterdir())
    assert len(files) == 1
    assert files[0].is_file()
    assert files[0].parent == database.path

    database.delete_collection(name)
    assert list(database.path.iterdir()) == []
