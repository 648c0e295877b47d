"""Shared fixtures: a small bookstore schema and an index using it."""

from __future__ import annotations

import pytest

from megamorphic import InMemoryRecordIndex, RawRecord, Schema, SchemaRegistry, TypeMetadata


class BookstoreSchema(Schema):
    """References are "type:id" strings; embedded dicts with a "type" are nested models."""

    def includes_model(self, type_tag):
        return type_tag != "legacy"

    def compute_attribute_reference(self, key, value):
        if isinstance(value, str) and ":" in value:
            type_tag, id = value.split(":", 1)
            return {"id": id, "type": type_tag}
        return None

    def is_array_reference(self, key, value, type_tag):
        return key.endswith("Refs")

    def compute_nested_model(self, key, value, type_tag):
        if isinstance(value, dict) and "type" in value:
            return {"id": value.get("id"), "type": value["type"], "attributes": value}
        return None


BOOKSTORE_METADATA = {
    "book": TypeMetadata(
        defaults={"pages": 0, "chapterRefs": None},
        aliases={"name": "title", "writer": "author", "label": "name"},
        transforms={"published": lambda value: int(value)},
    ),
    "secret": TypeMetadata(whitelist={"a"}),
}


@pytest.fixture
def registry():
    return SchemaRegistry(BookstoreSchema(BOOKSTORE_METADATA))


@pytest.fixture
def index(registry):
    return InMemoryRecordIndex(registry)


@pytest.fixture
def author(index):
    return index.materialize(RawRecord("1", "author", {"name": "Ursula"}))


@pytest.fixture
def make_book(index):
    def _make(id="b1", **attributes):
        return index.materialize(RawRecord(id, "book", attributes))

    return _make
