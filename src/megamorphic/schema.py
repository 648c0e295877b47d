"""Schema hooks and the registry holding the active schema."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from megamorphic.parsing import MetadataParser
from megamorphic.types import NestedModelDescriptor, ReferenceDescriptor, TypeMetadata


class Schema:
    """Pluggable classification hooks plus per-type metadata.

    Subclass and override the hooks. Every hook answers independently and
    returns None (or False) for "not applicable"; none should raise for
    well-formed input.
    """

    def __init__(self, models_by_type: Mapping[str, TypeMetadata] | None = None) -> None:
        self.models_by_type: dict[str, TypeMetadata] = dict(models_by_type or {})

    @classmethod
    def parse(
        cls,
        metadata_definitions: str,
        transforms: Mapping[str, Callable[[Any], Any]] | None = None,
    ) -> Schema:
        """Create a schema whose type metadata comes from the metadata DSL.

        Args:
            metadata_definitions: DSL string declaring per-type overlays.
            transforms: Named transform functions the DSL may refer to.

        Returns:
            A new schema of this class.
        """
        parser = MetadataParser(transforms)
        return cls(parser.parse(metadata_definitions))

    def includes_model(self, type_tag: str) -> bool:
        """Return whether records of ``type_tag`` are materialized by this engine."""
        return True

    def compute_attribute_reference(self, key: str, value: Any) -> ReferenceDescriptor | None:
        """Return the (id, type) the value refers to, or None for a plain value."""
        return None

    def is_array_reference(self, key: str, value: Any, type_tag: str) -> bool:
        """Return whether the value is a list of references."""
        return False

    def compute_nested_model(
        self, key: str, value: Any, type_tag: str
    ) -> NestedModelDescriptor | None:
        """Return a descriptor when the value should become an embedded model."""
        return None


class SchemaRegistry:
    """Holds the single active schema.

    Registering replaces the previous schema wholesale; there is no merging.
    """

    def __init__(self, schema: Schema | None = None) -> None:
        self._schema = schema if schema is not None else Schema()

    @property
    def schema(self) -> Schema:
        return self._schema

    def register_schema(self, schema: Schema) -> None:
        """Replace the active schema."""
        self._schema = schema

    def includes_model(self, type_tag: str) -> bool:
        return bool(self._schema.includes_model(type_tag))

    def compute_attribute_reference(self, key: str, value: Any) -> ReferenceDescriptor | None:
        return ReferenceDescriptor.coerce(
            self._schema.compute_attribute_reference(key, value)
        )

    def is_array_reference(self, key: str, value: Any, type_tag: str) -> bool:
        return bool(self._schema.is_array_reference(key, value, type_tag))

    def compute_nested_model(
        self, key: str, value: Any, type_tag: str
    ) -> NestedModelDescriptor | None:
        return NestedModelDescriptor.coerce(
            self._schema.compute_nested_model(key, value, type_tag)
        )

    def metadata_for(self, type_tag: str) -> TypeMetadata:
        """Get a type's metadata, or the permissive default if none is registered."""
        metadata = self._schema.models_by_type.get(type_tag)
        if metadata is None:
            return _PERMISSIVE
        return metadata


_PERMISSIVE = TypeMetadata()

# Process-wide registry for callers that do not manage their own
default_registry = SchemaRegistry()


def register_schema(schema: Schema) -> None:
    """Replace the schema held by the process-wide registry."""
    default_registry.register_schema(schema)
