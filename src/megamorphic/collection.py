"""Ordered, identity-stable containers of resolved elements."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Iterator

if TYPE_CHECKING:
    from megamorphic.model import MegamorphicModel


class RecordCollection:
    """An immutable sequence of models, placeholders or scalars.

    Built once per array-valued attribute (or query result) and reused
    until the owning attribute is written. Element order follows the source
    array and duplicates are kept.
    """

    def __init__(self, elements: Iterable[Any] = ()) -> None:
        self._elements: tuple[Any, ...] = tuple(elements)

    def __len__(self) -> int:
        return len(self._elements)

    def __getitem__(self, index: int | slice) -> Any:
        if isinstance(index, slice):
            return list(self._elements[index])
        return self._elements[index]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._elements)

    def __contains__(self, item: object) -> bool:
        return any(element is item or element == item for element in self._elements)

    def models(self) -> list[MegamorphicModel]:
        """Return the elements that are materialized models."""
        from megamorphic.model import MegamorphicModel

        return [e for e in self._elements if isinstance(e, MegamorphicModel)]

    @property
    def depends_on(self) -> frozenset[tuple[str | None, str]]:
        """Identities of every model element, used for cache eviction."""
        return frozenset(model.identity for model in self.models())

    def to_list(self) -> list[Any]:
        return list(self._elements)

    def __repr__(self) -> str:
        return f"RecordCollection({list(self._elements)!r})"
