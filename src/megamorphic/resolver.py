"""Attribute resolution: classify a raw value and materialize what it designates."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from megamorphic.collection import RecordCollection
from megamorphic.errors import TransformFailure
from megamorphic.types import (
    ABSENT,
    NestedModelDescriptor,
    RawRecord,
    ReferenceDescriptor,
    UnloadedReference,
)

if TYPE_CHECKING:
    from megamorphic.index import RecordIndex
    from megamorphic.model import MegamorphicModel
    from megamorphic.schema import SchemaRegistry


class AttributeResolver:
    """Resolves one attribute of one model.

    Stateless per call; the calling model memoizes the result. Resolution
    runs, in order: alias, whitelist, raw lookup with default fallback,
    transform, then classification. Classification precedence is nested
    model, array reference, scalar reference, mixed array of references,
    and finally the plain value.
    """

    def __init__(self, registry: SchemaRegistry, index: RecordIndex | None = None) -> None:
        """Initialize a resolver.

        Args:
            registry: Registry holding the active schema.
            index: Lookup for referenced records. Without one, every
                reference resolves to an UnloadedReference.
        """
        self.registry = registry
        self.index = index

    def resolve(self, model: MegamorphicModel, key: str) -> Any:
        """Resolve ``key`` on ``model`` into its read value."""
        metadata = self.registry.metadata_for(model.type)

        target = metadata.alias_target(key)
        if target is not None:
            # Read through the model so the alias shares the target's cached value
            return model.get(target)

        if not metadata.is_included(key):
            return ABSENT

        if model.has_raw(key):
            value = model.raw_value(key)
        elif key in metadata.defaults:
            # Each model gets its own copy of a mutable default
            value = copy.deepcopy(metadata.defaults[key])
        else:
            return ABSENT

        transform = metadata.transforms.get(key)
        if transform is not None:
            try:
                value = transform(value)
            except Exception as exc:
                raise TransformFailure(model.type, key, value) from exc

        return self.classify(model, key, value)

    def classify(self, model: MegamorphicModel, key: str, value: Any) -> Any:
        """Turn a (transformed) raw value into a scalar, model or collection."""
        registry = self.registry
        type_tag = model.type

        nested = registry.compute_nested_model(key, value, type_tag)
        if nested is not None:
            return self._nested_model(model, nested)
        if isinstance(value, list):
            descriptors = [
                registry.compute_nested_model(key, element, type_tag) for element in value
            ]
            if any(d is not None for d in descriptors):
                return RecordCollection(
                    self._nested_model(model, d) if d is not None
                    else self._resolve_element(key, element)
                    for d, element in zip(descriptors, value)
                )

        if registry.is_array_reference(key, value, type_tag):
            if value is None:
                return RecordCollection()
            if not isinstance(value, (list, tuple)):
                value = [value]
            elements = []
            for element in value:
                reference = registry.compute_attribute_reference(key, element)
                elements.append(None if reference is None else self._lookup(reference))
            return RecordCollection(elements)

        reference = registry.compute_attribute_reference(key, value)
        if reference is not None:
            return self._lookup(reference)

        if isinstance(value, list):
            references = [registry.compute_attribute_reference(key, e) for e in value]
            if any(r is not None for r in references):
                return RecordCollection(
                    element if r is None else self._lookup(r)
                    for r, element in zip(references, value)
                )

        return value

    def _resolve_element(self, key: str, element: Any) -> Any:
        """Resolve an element of a list that also holds nested models."""
        reference = self.registry.compute_attribute_reference(key, element)
        if reference is not None:
            return self._lookup(reference)
        return element

    def _lookup(self, reference: ReferenceDescriptor) -> Any:
        """Find a loaded model for the reference, or a placeholder."""
        if self.index is not None:
            found = self.index.lookup_by_identity(reference.id, reference.type)
            if found is not None:
                return found
        return UnloadedReference(reference.id, reference.type)

    def _nested_model(
        self, parent: MegamorphicModel, descriptor: NestedModelDescriptor
    ) -> MegamorphicModel:
        from megamorphic.model import MegamorphicModel

        child = MegamorphicModel(
            RawRecord(id=descriptor.id, type=descriptor.type, attributes=descriptor.attributes),
            self,
            parent=parent,
        )
        parent.adopt(child)
        return child
