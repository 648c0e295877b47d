"""Materialized models for type-tagged records."""

from __future__ import annotations

import logging
import weakref
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from megamorphic.collection import RecordCollection
from megamorphic.errors import ReadOnlyAttribute, StaleAccess
from megamorphic.types import ABSENT, ModelState, RawRecord, TypeMetadata

if TYPE_CHECKING:
    from megamorphic.resolver import AttributeResolver

logger = logging.getLogger(__name__)


class MegamorphicModel:
    """One materialized record, top-level or nested.

    Reads go through ``get``, which resolves the raw attribute once and
    memoizes the result until the attribute is written. Writes go through
    ``set`` and only ever replace raw values.
    """

    def __init__(
        self,
        record: RawRecord,
        resolver: AttributeResolver,
        parent: MegamorphicModel | None = None,
    ) -> None:
        """Initialize a model.

        Args:
            record: The normalized record. Its attribute map is copied, never mutated.
            resolver: Resolver used for attribute reads.
            parent: The owning model when this is a nested model.
        """
        self.id = record.id
        self.type = record.type
        self.parent = parent
        self.state = ModelState.LIVE
        self._resolver = resolver
        self._attributes: dict[str, Any] = dict(record.attributes)
        self._cache: dict[str, Any] = {}
        # Original raw values of attributes written through set()
        self._original: dict[str, Any] = {}
        # Models referenced by each cached key, for unregistering on invalidation
        self._dependencies: dict[str, list[MegamorphicModel]] = {}
        # Models whose cache holds this one, and under which keys
        self._referrers: weakref.WeakKeyDictionary[MegamorphicModel, set[str]] = (
            weakref.WeakKeyDictionary()
        )
        self._children: list[MegamorphicModel] = []

    @property
    def identity(self) -> tuple[str | None, str]:
        """The (id, type) pair identifying this model."""
        return (self.id, self.type)

    @property
    def is_nested(self) -> bool:
        return self.parent is not None

    @property
    def is_unloaded(self) -> bool:
        return self.state is ModelState.UNLOADED

    @property
    def metadata(self) -> TypeMetadata:
        return self._resolver.registry.metadata_for(self.type)

    def _check_live(self) -> None:
        if self.state is ModelState.UNLOADED:
            raise StaleAccess(self.identity)

    def raw_value(self, key: str) -> Any:
        """Return the raw attribute value, or ABSENT when the payload omits it."""
        return self._attributes.get(key, ABSENT)

    def has_raw(self, key: str) -> bool:
        return key in self._attributes

    def get(self, key: str) -> Any:
        """Get the resolved value of an attribute.

        Returns:
            A scalar, a MegamorphicModel, an UnloadedReference, a
            RecordCollection, or ABSENT.

        Raises:
            StaleAccess: If the model has been unloaded.
            TransformFailure: If the attribute's transform raised.
        """
        self._check_live()
        if key in self._cache:
            return self._cache[key]

        value = self._resolver.resolve(self, key)
        self._cache[key] = value
        self._track(key, value)
        return value

    def set(self, key: str, value: Any) -> None:
        """Overwrite the raw value of an attribute.

        Invalidates the cached value for ``key`` and every alias forwarding
        to it. Assigning a model object is not supported; write the raw
        reference or nested payload instead.

        Raises:
            StaleAccess: If the model has been unloaded.
            ReadOnlyAttribute: If ``key`` is an alias.
        """
        self._check_live()
        metadata = self.metadata
        if metadata.alias_target(key) is not None:
            raise ReadOnlyAttribute(
                f"Attribute '{key}' of type '{self.type}' is an alias and cannot be set"
            )
        if isinstance(value, (MegamorphicModel, RecordCollection)):
            raise TypeError(
                f"Cannot assign a resolved value to '{key}'; set its raw value instead"
            )

        if key in self._original:
            if self._original[key] == value:
                del self._original[key]
        else:
            current = self.raw_value(key)
            if current is ABSENT or current != value:
                self._original[key] = current
        self._attributes[key] = value
        self._invalidate_with_aliases(key, metadata)

    def keys(self) -> list[str]:
        """Attribute names readable on this model, in payload order."""
        self._check_live()
        metadata = self.metadata
        names = list(self._attributes)
        names.extend(k for k in metadata.defaults if k not in self._attributes)
        names.extend(k for k in metadata.aliases if k not in names)
        if metadata.whitelist is not None:
            names = [
                k for k in names
                if metadata.is_included(k) or metadata.alias_target(k) is not None
            ]
        return names

    def changed_attributes(self) -> dict[str, tuple[Any, Any]]:
        """Return ``{key: (original, current)}`` for raw values changed by set()."""
        self._check_live()
        return {
            key: (original, self.raw_value(key))
            for key, original in self._original.items()
        }

    def rollback_attributes(self) -> None:
        """Restore every attribute changed by set() to its original raw value."""
        self._check_live()
        metadata = self.metadata
        for key, original in self._original.items():
            if original is ABSENT:
                self._attributes.pop(key, None)
            else:
                self._attributes[key] = original
            self._invalidate_with_aliases(key, metadata)
        self._original.clear()

    def update_raw(self, attributes: Mapping[str, Any]) -> None:
        """Replace the raw attribute map with a newer payload.

        Every cached value is discarded. Pending set() changes are dropped.
        """
        self._check_live()
        self._attributes = dict(attributes)
        self._original.clear()
        for key in list(self._cache):
            self._invalidate(key)

    def unload(self) -> None:
        """Mark the model terminal. Unloading twice is a no-op.

        Holders of this model drop the cache entries containing it, nested
        children are unloaded, and top-level models are removed from their
        index, which notifies its unload listeners.
        """
        if self.state is ModelState.UNLOADED:
            return
        self.state = ModelState.UNLOADED
        logger.debug("Unloading model %r", self.identity)

        children, self._children = self._children, []
        for child in children:
            child.unload()
        for key in list(self._cache):
            self._invalidate(key)

        for holder, keys in list(self._referrers.items()):
            for key in list(keys):
                holder._invalidate(key)
        self._referrers.clear()

        if not self.is_nested:
            index = self._resolver.index
            if index is not None:
                index.remove(self)
                index.notify_unload(self)

    def adopt(self, child: MegamorphicModel) -> None:
        """Record a nested model created on behalf of this one."""
        self._children.append(child)

    def _track(self, key: str, value: Any) -> None:
        """Register this model as a referrer of every model inside ``value``."""
        if isinstance(value, MegamorphicModel):
            targets: Iterable[MegamorphicModel] = [value]
        elif isinstance(value, RecordCollection):
            targets = value.models()
        else:
            return
        dependencies = self._dependencies.setdefault(key, [])
        for target in targets:
            if target is self:
                continue
            target._referrers.setdefault(self, set()).add(key)
            dependencies.append(target)

    def _invalidate(self, key: str) -> None:
        """Drop a cached value and unregister from the models it referenced."""
        self._cache.pop(key, None)
        for target in self._dependencies.pop(key, []):
            keys = target._referrers.get(self)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del target._referrers[self]
            if target in self._children and not any(
                target in deps for deps in self._dependencies.values()
            ):
                self._children.remove(target)

    def _invalidate_with_aliases(self, key: str, metadata: TypeMetadata) -> None:
        self._invalidate(key)
        for alias in metadata.aliases_of(key):
            self._invalidate(alias)

    def __repr__(self) -> str:
        state = "" if self.state is ModelState.LIVE else ", unloaded"
        return f"MegamorphicModel({self.id!r}, {self.type!r}{state})"
