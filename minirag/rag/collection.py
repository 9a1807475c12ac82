"""In-memory vector collection with exhaustive k-NN search.

Handles:
- Dimension establishment (from config or the first insert)
- All-or-nothing batch inserts with monotonic ids
- Euclidean and cosine distance over the full vector
- Snapshots for persistence
"""
from dataclasses import dataclass
from enum import Enum
import threading
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator
import structlog

from minirag.errors import DimensionMismatch, InvalidConfiguration, NotFound
from minirag.rag.records import (
    ArrayMetadata,
    FloatMetadata,
    IntegerMetadata,
    Metadata,
    ObjectMetadata,
    Record,
    TextMetadata,
    Vector,
    metadata_from_value,
    metadata_text,
    validate_vector,
)

logger = structlog.get_logger()

_METADATA_TYPES = (TextMetadata, IntegerMetadata, FloatMetadata, ArrayMetadata, ObjectMetadata)

# 1 - cos(a, b) lies in [0, 2]
MAX_COSINE_DISTANCE = 2.0


class Distance(str, Enum):
    EUCLIDEAN = "euclidean"
    COSINE = "cosine"


class CollectionConfig(BaseModel):
    """Distance metric and optional fixed dimension of a collection."""

    model_config = ConfigDict(frozen=True)

    distance: Distance = Distance.EUCLIDEAN
    dimension: Optional[int] = Field(default=None, gt=0)


class CollectionSnapshot(BaseModel):
    """Serializable state of a collection."""

    config: CollectionConfig = Field(default_factory=CollectionConfig)
    dimension: Optional[int] = Field(default=None, gt=0)
    next_id: int = Field(default=0, ge=0)
    records: List[Record] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_consistency(self) -> "CollectionSnapshot":
        if (
            self.config.dimension is not None
            and self.dimension is not None
            and self.config.dimension != self.dimension
        ):
            raise ValueError(
                f"Configured dimension {self.config.dimension} differs from "
                f"stored dimension {self.dimension}"
            )

        seen = set()
        for record in self.records:
            if record.id in seen:
                raise ValueError(f"Duplicate record id {record.id}")
            if record.id >= self.next_id:
                raise ValueError(f"Record id {record.id} is not below next_id {self.next_id}")
            if self.dimension is None or record.dimension != self.dimension:
                raise ValueError(
                    f"Record {record.id} has dimension {record.dimension}, "
                    f"collection dimension is {self.dimension}"
                )
            seen.add(record.id)
        return self


@dataclass
class SearchResult:
    """A single nearest-neighbour hit."""

    id: int
    distance: float
    data: Metadata

    @property
    def text(self) -> Optional[str]:
        return metadata_text(self.data)


class Collection:
    """A set of vector records supporting insertion and exact k-NN search.

    Ids come from a counter that only grows, so an id is never handed out
    twice, not even after the record holding it is deleted.
    """

    def __init__(self, config: Optional[CollectionConfig] = None):
        self.config = config or CollectionConfig()
        self._dimension: Optional[int] = self.config.dimension
        self._records: Dict[int, Record] = {}
        self._next_id = 0
        self._lock = threading.RLock()
        # (ids, matrix, records) in ascending id order, rebuilt after writes
        self._index: Optional[Tuple[np.ndarray, np.ndarray, List[Record]]] = None

    @property
    def dimension(self) -> Optional[int]:
        """Established vector dimension, None until known."""
        return self._dimension

    @property
    def next_id(self) -> int:
        return self._next_id

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __repr__(self) -> str:
        return (
            f"Collection(distance={self.config.distance.value}, "
            f"dimension={self._dimension}, records={len(self._records)})"
        )

    def insert(self, vector: Vector, metadata) -> int:
        """Insert a single record and return its id."""
        return self.insert_many([(vector, metadata)])[0]

    def insert_many(self, items: Sequence[Tuple[Vector, object]]) -> List[int]:
        """Insert a batch of (vector, metadata) pairs.

        The batch is validated as a whole before anything is stored, so a
        failure leaves the collection untouched.

        Args:
            items: Pairs of vector and metadata (a Metadata variant or a
                plain value accepted by ``metadata_from_value``)

        Returns:
            Assigned ids, in input order

        Raises:
            DimensionMismatch: If any vector disagrees with the collection
                dimension (or, for a collection without one, with the
                first vector of the batch)
            InvalidVector: If any vector is empty or non-finite
            InvalidConfiguration: If metadata cannot be represented
        """
        items = list(items)
        if not items:
            return []

        prepared = []
        for vector, metadata in items:
            if not isinstance(metadata, _METADATA_TYPES):
                metadata = metadata_from_value(metadata)
            prepared.append((validate_vector(vector), metadata))

        with self._lock:
            dimension = self._dimension
            for position, (vector, _) in enumerate(prepared):
                if dimension is None:
                    dimension = len(vector)
                elif len(vector) != dimension:
                    logger.warning(
                        "insert_rejected_dimension_mismatch",
                        expected=dimension,
                        actual=len(vector),
                        batch_position=position,
                        batch_size=len(prepared),
                    )
                    raise DimensionMismatch(dimension, len(vector))

            start_id = self._next_id
            records = [
                Record(id=start_id + offset, vector=vector, metadata=metadata)
                for offset, (vector, metadata) in enumerate(prepared)
            ]

            for record in records:
                self._records[record.id] = record
            self._next_id = start_id + len(records)
            self._dimension = dimension
            self._index = None

        logger.debug(
            "records_inserted",
            count=len(records),
            total_records=len(self._records),
            dimension=dimension,
        )

        return [record.id for record in records]

    def search(self, query: Vector, k: int) -> List[SearchResult]:
        """Find the k records closest to ``query``.

        Args:
            query: Query vector
            k: Maximum number of results

        Returns:
            Results ordered by ascending distance, ties by ascending id

        Raises:
            DimensionMismatch: If the query length differs from the
                collection dimension
            InvalidVector: If the query is empty or non-finite
            InvalidConfiguration: If k is negative
        """
        if k < 0:
            raise InvalidConfiguration(f"k must be non-negative, got {k}")

        query_vector = np.asarray(validate_vector(query), dtype=np.float64)

        with self._lock:
            dimension = self._dimension
            if dimension is not None and query_vector.shape[0] != dimension:
                raise DimensionMismatch(dimension, query_vector.shape[0])
            if k == 0 or not self._records:
                return []
            ids, matrix, records = self._get_index()

        distances = self._distances(matrix, query_vector)
        order = np.lexsort((ids, distances))[:k]

        results = [
            SearchResult(
                id=records[i].id,
                distance=float(distances[i]),
                data=records[i].metadata,
            )
            for i in order
        ]

        logger.debug(
            "collection_search_completed",
            k=k,
            scanned=len(records),
            results_found=len(results),
        )

        return results

    def _distances(self, matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
        if self.config.distance is Distance.COSINE:
            norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
            dots = matrix @ query
            with np.errstate(divide="ignore", invalid="ignore"):
                similarity = np.where(norms > 0, dots / norms, -1.0)
            distances = np.clip(1.0 - similarity, 0.0, MAX_COSINE_DISTANCE)
            # inf/inf on overflowing norms
            return np.nan_to_num(distances, nan=MAX_COSINE_DISTANCE)

        diff = matrix - query
        return np.sqrt(np.einsum("ij,ij->i", diff, diff))

    def _get_index(self) -> Tuple[np.ndarray, np.ndarray, List[Record]]:
        if self._index is None:
            records = [self._records[i] for i in sorted(self._records)]
            ids = np.array([r.id for r in records], dtype=np.int64)
            matrix = np.array([r.vector for r in records], dtype=np.float64)
            self._index = (ids, matrix, records)
        return self._index

    def list(self) -> List[Tuple[int, Metadata]]:
        """Return (id, metadata) for every record in ascending id order."""
        with self._lock:
            return [(i, self._records[i].metadata) for i in sorted(self._records)]

    def get(self, record_id: int) -> Record:
        """Return a record by id.

        Raises:
            NotFound: If no live record has that id
        """
        with self._lock:
            try:
                return self._records[record_id]
            except KeyError:
                raise NotFound(f"Record not found: {record_id}") from None

    def delete(self, record_id: int) -> None:
        """Delete a record. Its id is not reused.

        Raises:
            NotFound: If no live record has that id
        """
        with self._lock:
            if record_id not in self._records:
                raise NotFound(f"Record not found: {record_id}")
            del self._records[record_id]
            self._index = None

        logger.debug("record_deleted", id=record_id, total_records=len(self._records))

    def to_snapshot(self) -> CollectionSnapshot:
        """Capture the collection state for persistence."""
        with self._lock:
            return CollectionSnapshot(
                config=self.config,
                dimension=self._dimension,
                next_id=self._next_id,
                records=[self._records[i] for i in sorted(self._records)],
            )

    @classmethod
    def from_snapshot(cls, snapshot: CollectionSnapshot) -> "Collection":
        """Build a collection from a snapshot."""
        collection = cls(snapshot.config)
        collection._dimension = snapshot.dimension or snapshot.config.dimension
        collection._next_id = snapshot.next_id
        collection._records = {record.id: record for record in snapshot.records}
        return collection

    def copy(self) -> "Collection":
        """Return an independent collection with the same records."""
        return Collection.from_snapshot(self.to_snapshot())
