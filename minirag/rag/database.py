"""On-disk registry of named vector collections.

Each collection is one JSON file under the database directory, named
after the percent-encoded collection name (``my notes`` is stored as
``my%20notes.json``), so any non-empty name maps to exactly one file
directly under the root. Collections are read lazily, one per
``get_collection`` call, and every read returns a fresh copy: changes
become visible to other readers only through ``save_collection``.
"""
import os
import tempfile
from pathlib import Path
from typing import List, Union
from urllib.parse import quote, unquote
import structlog
from pydantic import ValidationError

from minirag.errors import InvalidConfiguration, NotFound, PersistenceFailure
from minirag.rag.collection import Collection, CollectionSnapshot

logger = structlog.get_logger()

COLLECTION_SUFFIX = ".json"


def _file_stem(name: str) -> str:
    # "/" and every non-ASCII or reserved character are escaped
    return quote(name, safe="")


class Database:
    """A directory of persisted collections."""

    def __init__(self, path: Union[str, Path]):
        """Bind to a database directory. Use ``Database.open`` to create it.

        Args:
            path: Storage root
        """
        self.path = Path(path)

    @classmethod
    def open(cls, path: Union[str, Path]) -> "Database":
        """Open a database, creating an empty one if the path does not exist.

        Raises:
            PersistenceFailure: If the directory cannot be created
        """
        database = cls(path)
        try:
            database.path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("database_open_failed", path=str(database.path), error=str(e))
            raise PersistenceFailure(f"Failed to open database at {database.path}: {e}") from e

        logger.info(
            "database_opened",
            path=str(database.path),
            collections=len(database),
        )
        return database

    def _collection_path(self, name: str) -> Path:
        if not isinstance(name, str) or not name:
            raise InvalidConfiguration(f"Collection name must be a non-empty string, got {name!r}")
        return self.path / f"{_file_stem(name)}{COLLECTION_SUFFIX}"

    def collection_names(self) -> List[str]:
        """Names of all persisted collections, sorted."""
        if not self.path.exists():
            return []
        names = []
        for p in self.path.glob(f"*{COLLECTION_SUFFIX}"):
            name = unquote(p.stem)
            # Skip files this class would not have written under that name
            if p.is_file() and name and _file_stem(name) == p.stem:
                names.append(name)
        return sorted(names)

    def __len__(self) -> int:
        return len(self.collection_names())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self.collection_names()

    def get_collection(self, name: str) -> Collection:
        """Load a collection from disk.

        Returns:
            A new Collection not shared with the database or other callers

        Raises:
            NotFound: If no collection with that name has been saved
            PersistenceFailure: If the stored collection cannot be read
        """
        path = self._collection_path(name)

        try:
            data = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFound(f"Collection not found: {name}") from None
        except (OSError, UnicodeDecodeError) as e:
            logger.error("collection_read_failed", name=name, error=str(e))
            raise PersistenceFailure(f"Failed to read collection {name}: {e}") from e

        try:
            snapshot = CollectionSnapshot.model_validate_json(data)
        except ValidationError as e:
            logger.error("collection_corrupt", name=name, path=str(path), error=str(e))
            raise PersistenceFailure(f"Collection {name} is corrupt: {e}") from e

        collection = Collection.from_snapshot(snapshot)

        logger.debug(
            "collection_loaded",
            name=name,
            records=len(collection),
            dimension=collection.dimension,
        )

        return collection

    def save_collection(self, name: str, collection: Collection) -> None:
        """Write a collection, replacing any previous version atomically.

        The data goes to a temporary file in the same directory which is
        then renamed over the target, so readers see either the old or
        the new version.

        Raises:
            PersistenceFailure: If writing fails
        """
        path = self._collection_path(name)
        payload = collection.to_snapshot().model_dump_json()

        tmp_path = None
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path,
                prefix=f".{path.stem}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = Path(f.name)
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            logger.error("collection_save_failed", name=name, error=str(e))
            raise PersistenceFailure(f"Failed to save collection {name}: {e}") from e

        logger.info(
            "collection_saved",
            name=name,
            path=str(path),
            records=len(collection),
        )

    def delete_collection(self, name: str) -> None:
        """Remove a persisted collection.

        Raises:
            NotFound: If the collection does not exist
            PersistenceFailure: If the file cannot be removed
        """
        path = self._collection_path(name)

        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFound(f"Collection not found: {name}") from None
        except OSError as e:
            logger.error("collection_delete_failed", name=name, error=str(e))
            raise PersistenceFailure(f"Failed to delete collection {name}: {e}") from e

        logger.info("collection_deleted", name=name)
