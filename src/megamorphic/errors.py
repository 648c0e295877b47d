"""Errors raised by the megamorphic engine."""

from __future__ import annotations

from typing import Any


class MegamorphicError(Exception):
    """Base class for engine failures."""


class TransformFailure(MegamorphicError):
    """Raised when a registered transform fails on a raw attribute value."""

    def __init__(self, type_tag: str, key: str, value: Any) -> None:
        self.type_tag = type_tag
        self.key = key
        self.value = value
        super().__init__(
            f"Transform for '{type_tag}.{key}' failed on value {value!r}"
        )


class StaleAccess(MegamorphicError):
    """Raised on any read or write of an unloaded model."""

    def __init__(self, identity: tuple[str | None, str]) -> None:
        self.identity = identity
        super().__init__(f"Model {identity!r} has been unloaded")


class ReadOnlyAttribute(MegamorphicError, AttributeError):
    """Raised when writing to an alias."""


class TypeNotIncluded(MegamorphicError, KeyError):
    """Raised when materializing a type the active schema does not include."""
