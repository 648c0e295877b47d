"""Value types shared across the megamorphic engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping


class _Absent:
    """Sentinel for an attribute with no value."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


# Returned by reads of attributes that are missing, defaultless or not whitelisted
ABSENT = _Absent()


class ModelState(Enum):
    """Lifecycle states of a materialized model."""

    LIVE = "live"
    UNLOADED = "unloaded"


@dataclass(frozen=True)
class RawRecord:
    """A normalized record: id, type tag and raw attribute mapping."""

    id: str
    type: str
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RawRecord:
        """Build a record from a ``{"id", "type", "attributes"}`` mapping."""
        try:
            id, type_tag = data["id"], data["type"]
        except KeyError as exc:
            raise ValueError(f"Record is missing required key {exc}") from exc
        if id is None:
            raise ValueError(f"Record of type '{type_tag}' has a null id")
        return cls(id=str(id), type=type_tag, attributes=data.get("attributes") or {})


@dataclass(frozen=True)
class ReferenceDescriptor:
    """Designates another record by (id, type)."""

    id: str
    type: str

    @classmethod
    def coerce(cls, value: Any) -> ReferenceDescriptor | None:
        """Accept a descriptor, an ``{"id", "type"}`` mapping, or None."""
        if value is None or isinstance(value, ReferenceDescriptor):
            return value
        if isinstance(value, Mapping):
            return cls(id=str(value["id"]), type=value["type"])
        raise TypeError(f"Cannot interpret {value!r} as a reference descriptor")


@dataclass(frozen=True)
class NestedModelDescriptor:
    """Describes an embedded record to be materialized as its own model.

    The id and type may be synthesized and are not required to be unique.
    """

    id: str | None
    type: str
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, value: Any) -> NestedModelDescriptor | None:
        """Accept a descriptor, an ``{"id", "type", "attributes"}`` mapping, or None."""
        if value is None or isinstance(value, NestedModelDescriptor):
            return value
        if isinstance(value, Mapping):
            raw_id = value.get("id")
            return cls(
                id=None if raw_id is None else str(raw_id),
                type=value["type"],
                attributes=value.get("attributes") or {},
            )
        raise TypeError(f"Cannot interpret {value!r} as a nested model descriptor")


@dataclass(frozen=True)
class UnloadedReference:
    """Placeholder for a reference whose target is not currently loaded."""

    id: str
    type: str

    @property
    def identity(self) -> tuple[str, str]:
        return (self.id, self.type)

    @property
    def is_loaded(self) -> bool:
        return False


Transform = Callable[[Any], Any]


@dataclass
class TypeMetadata:
    """Per-type overlay of whitelist, defaults, aliases and transforms.

    A type with no registered metadata behaves like ``TypeMetadata()``:
    no whitelist, no defaults, no aliases, no transforms.
    """

    whitelist: frozenset[str] | None = None
    defaults: dict[str, Any] = field(default_factory=dict)
    aliases: dict[str, str] = field(default_factory=dict)
    transforms: dict[str, Transform] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.whitelist is not None and not isinstance(self.whitelist, frozenset):
            self.whitelist = frozenset(self.whitelist)
        self._check_alias_cycles()

    def _check_alias_cycles(self) -> None:
        for start in self.aliases:
            seen = {start}
            target = self.aliases[start]
            while target in self.aliases:
                if target in seen:
                    raise ValueError(f"Alias cycle through '{start}'")
                seen.add(target)
                target = self.aliases[target]

    def is_included(self, key: str) -> bool:
        """Return whether reads of ``key`` pass the whitelist."""
        return self.whitelist is None or key in self.whitelist

    def alias_target(self, key: str) -> str | None:
        return self.aliases.get(key)

    def aliases_of(self, key: str) -> set[str]:
        """Return every alias that eventually forwards to ``key``."""
        found: set[str] = set()
        frontier = [key]
        while frontier:
            target = frontier.pop()
            for alias, alias_target in self.aliases.items():
                if alias_target == target and alias not in found:
                    found.add(alias)
                    frontier.append(alias)
        return found


@dataclass(frozen=True)
class QueryOptions:
    """Options passed through to a query fetcher."""

    reload: bool = False
    background_reload: bool = False
