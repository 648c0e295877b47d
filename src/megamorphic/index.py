"""Record index: the identity map models are materialized into and looked up from."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from megamorphic.collection import RecordCollection
from megamorphic.errors import TypeNotIncluded
from megamorphic.model import MegamorphicModel
from megamorphic.resolver import AttributeResolver
from megamorphic.schema import SchemaRegistry
from megamorphic.types import ModelState, RawRecord

logger = logging.getLogger(__name__)

UnloadListener = Callable[[MegamorphicModel], None]


class RecordIndex:
    """Interface between the engine and the store that owns top-level records.

    Subclasses provide materialization, identity lookup and removal; unload
    notification fan-out is shared.
    """

    def __init__(self) -> None:
        self._listeners: list[UnloadListener] = []

    def materialize(self, record: RawRecord) -> MegamorphicModel:
        """Return the model for a top-level record, creating it if needed."""
        raise NotImplementedError

    def lookup_by_identity(self, id: str, type: str) -> MegamorphicModel | None:
        """Return the loaded model with this identity, or None."""
        raise NotImplementedError

    def remove(self, model: MegamorphicModel) -> None:
        """Forget an unloaded model."""
        raise NotImplementedError

    def subscribe(self, listener: UnloadListener) -> None:
        """Call ``listener(model)`` whenever a top-level model unloads."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: UnloadListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify_unload(self, model: MegamorphicModel) -> None:
        for listener in list(self._listeners):
            listener(model)


class InMemoryRecordIndex(RecordIndex):
    """Dictionary-backed identity map of top-level models."""

    def __init__(self, registry: SchemaRegistry | None = None) -> None:
        """Initialize the index.

        Args:
            registry: Registry holding the active schema. Defaults to a fresh
                registry with the permissive base schema.
        """
        super().__init__()
        self.registry = registry if registry is not None else SchemaRegistry()
        self.resolver = AttributeResolver(self.registry, self)
        self._models: dict[tuple[str, str], MegamorphicModel] = {}

    def materialize(self, record: RawRecord) -> MegamorphicModel:
        """Create a model for the record, or update the live one in place.

        Raises:
            TypeNotIncluded: If the active schema does not include the type.
        """
        if not self.registry.includes_model(record.type):
            raise TypeNotIncluded(f"Type '{record.type}' is not included by the schema")

        key = (record.type, record.id)
        existing = self._models.get(key)
        if existing is not None:
            logger.debug("Updating model %r", existing.identity)
            existing.update_raw(record.attributes)
            return existing

        model = MegamorphicModel(record, self.resolver)
        self._models[key] = model
        logger.debug("Materialized model %r", model.identity)
        return model

    def lookup_by_identity(self, id: str, type: str) -> MegamorphicModel | None:
        return self._models.get((type, id))

    def remove(self, model: MegamorphicModel) -> None:
        key = (model.type, model.id)
        if self._models.get(key) is model:
            del self._models[key]

    def push(self, payload: Mapping[str, Any]) -> MegamorphicModel | RecordCollection | None:
        """Materialize a normalized ``{"data", "included"}`` payload.

        Included records are materialized first so that references from the
        primary data resolve against them.

        Returns:
            The primary model, a RecordCollection for list data, or None when
            ``data`` is null or missing.
        """
        for included in payload.get("included") or []:
            self.materialize(_as_record(included))

        data = payload.get("data")
        if data is None:
            return None
        if isinstance(data, list):
            return RecordCollection(self.materialize(_as_record(item)) for item in data)
        return self.materialize(_as_record(data))

    def unload(self, model: MegamorphicModel) -> None:
        """Unload a model on behalf of the owning store."""
        model.unload()

    def unload_all(self) -> None:
        for model in list(self._models.values()):
            model.unload()

    def models(self) -> list[MegamorphicModel]:
        """List every live top-level model."""
        return [m for m in self._models.values() if m.state is ModelState.LIVE]

    def __contains__(self, identity: tuple[str, str]) -> bool:
        id, type = identity
        return (type, id) in self._models

    def __len__(self) -> int:
        return len(self._models)


def _as_record(value: RawRecord | Mapping[str, Any]) -> RawRecord:
    if isinstance(value, RawRecord):
        return value
    return RawRecord.from_dict(value)
