"""Megamorphic - schema-driven, lazily resolved models for type-tagged records."""

from megamorphic.collection import RecordCollection
from megamorphic.errors import (
    MegamorphicError,
    ReadOnlyAttribute,
    StaleAccess,
    TransformFailure,
    TypeNotIncluded,
)
from megamorphic.index import InMemoryRecordIndex, RecordIndex
from megamorphic.model import MegamorphicModel
from megamorphic.parsing import MetadataParser
from megamorphic.query_cache import QueryCache, QueryCacheEntry
from megamorphic.resolver import AttributeResolver
from megamorphic.schema import Schema, SchemaRegistry, default_registry, register_schema
from megamorphic.types import (
    ABSENT,
    ModelState,
    NestedModelDescriptor,
    QueryOptions,
    RawRecord,
    ReferenceDescriptor,
    TypeMetadata,
    UnloadedReference,
)

__all__ = [
    # Main API
    "Schema",
    "SchemaRegistry",
    "register_schema",
    "default_registry",
    "MegamorphicModel",
    "RecordCollection",
    "QueryCache",
    "QueryCacheEntry",
    # Collaborator interface
    "RecordIndex",
    "InMemoryRecordIndex",
    "AttributeResolver",
    "MetadataParser",
    # Value types
    "ABSENT",
    "ModelState",
    "NestedModelDescriptor",
    "QueryOptions",
    "RawRecord",
    "ReferenceDescriptor",
    "TypeMetadata",
    "UnloadedReference",
    # Errors
    "MegamorphicError",
    "ReadOnlyAttribute",
    "StaleAccess",
    "TransformFailure",
    "TypeNotIncluded",
]

__version__ = "0.1.0"
