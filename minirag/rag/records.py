"""Records stored in a vector collection.

A record is a vector plus a tagged metadata value. Metadata is a closed
set of variants discriminated by ``kind``:
- text: the original chunk content
- integer / float: numeric annotations
- array / object: nested values built from the other variants
"""
from typing import Annotated, Any, Dict, Literal, Optional, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from minirag.errors import InvalidConfiguration, InvalidVector

Vector = Sequence[float]


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class TextMetadata(_FrozenModel):
    kind: Literal["text"] = "text"
    value: str


class IntegerMetadata(_FrozenModel):
    kind: Literal["integer"] = "integer"
    value: int


class FloatMetadata(_FrozenModel):
    kind: Literal["float"] = "float"
    value: float = Field(allow_inf_nan=False)


class ArrayMetadata(_FrozenModel):
    kind: Literal["array"] = "array"
    items: Tuple["Metadata", ...] = ()


class ObjectMetadata(_FrozenModel):
    kind: Literal["object"] = "object"
    fields: Dict[str, "Metadata"] = Field(default_factory=dict)


Metadata = Annotated[
    Union[TextMetadata, IntegerMetadata, FloatMetadata, ArrayMetadata, ObjectMetadata],
    Field(discriminator="kind"),
]

ArrayMetadata.model_rebuild()
ObjectMetadata.model_rebuild()


def metadata_from_value(value: Any) -> Metadata:
    """Convert a plain Python value into a metadata variant.

    Args:
        value: str, int, float, list/tuple or dict (with str keys) of those

    Returns:
        The matching metadata variant

    Raises:
        InvalidConfiguration: If the value (or a nested value) has no variant
    """
    if isinstance(value, bool):
        raise InvalidConfiguration("Boolean metadata is not supported")
    if isinstance(value, str):
        return TextMetadata(value=value)
    if isinstance(value, int):
        return IntegerMetadata(value=value)
    if isinstance(value, float):
        if not np.isfinite(value):
            raise InvalidConfiguration(f"Non-finite float metadata: {value}")
        return FloatMetadata(value=value)
    if isinstance(value, (list, tuple)):
        return ArrayMetadata(items=tuple(metadata_from_value(v) for v in value))
    if isinstance(value, dict):
        fields = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise InvalidConfiguration(f"Metadata object keys must be strings, got {key!r}")
            fields[key] = metadata_from_value(item)
        return ObjectMetadata(fields=fields)
    raise InvalidConfiguration(f"Unsupported metadata type: {type(value).__name__}")


def metadata_text(metadata: Metadata) -> Optional[str]:
    """Return the text of a text variant, None for every other variant."""
    if isinstance(metadata, TextMetadata):
        return metadata.value
    return None


def validate_vector(vector: Vector) -> Tuple[float, ...]:
    """Normalise a vector to a tuple of finite floats.

    Raises:
        InvalidVector: If the vector is not one-dimensional, is empty,
            or contains NaN/infinite components
    """
    try:
        array = np.asarray(vector, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidVector(f"Vector is not numeric: {e}") from e

    if array.ndim != 1:
        raise InvalidVector(f"Vector must be one-dimensional, got shape {array.shape}")
    if array.size == 0:
        raise InvalidVector("Vector must not be empty")
    if not np.isfinite(array).all():
        raise InvalidVector("Vector contains non-finite values")

    return tuple(array.tolist())


class Record(_FrozenModel):
    """A stored vector with its metadata. Never mutated after creation."""

    id: int = Field(ge=0)
    vector: Tuple[float, ...]
    metadata: Metadata

    @property
    def dimension(self) -> int:
        return len(self.vector)

    @property
    def text(self) -> Optional[str]:
        return metadata_text(self.metadata)
