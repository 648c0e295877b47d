"""Example usage of the megamorphic library."""

import asyncio

from megamorphic import InMemoryRecordIndex, QueryCache, Schema, SchemaRegistry


class BookstoreSchema(Schema):
    """References are "type:id" strings; dicts carrying a "type" are embedded models."""

    def compute_attribute_reference(self, key, value):
        if isinstance(value, str) and ":" in value:
            type_tag, id = value.split(":", 1)
            return {"id": id, "type": type_tag}
        return None

    def is_array_reference(self, key, value, type_tag):
        return key == "authors"

    def compute_nested_model(self, key, value, type_tag):
        if isinstance(value, dict) and "type" in value:
            return {"id": value.get("id"), "type": value["type"], "attributes": value}
        return None


# Per-type overlays declared with the metadata DSL
metadata = """
book {
    whitelist title, authors, cover, pages, published, name
    default pages = 0
    alias name -> title
    transform published = year
}
"""

schema = BookstoreSchema.parse(metadata, transforms={"year": int})
index = InMemoryRecordIndex(SchemaRegistry(schema))
cache = QueryCache(index)

payload = {
    "data": {
        "id": "1",
        "type": "book",
        "attributes": {
            "title": "A Wizard of Earthsea",
            "authors": ["author:1", "author:2"],
            "cover": {"type": "cover", "color": "blue"},
            "published": "1968",
            "internalNotes": "hidden by the whitelist",
        },
    },
    "included": [
        {"id": "1", "type": "author", "attributes": {"name": "Ursula K. Le Guin"}},
    ],
}


async def fetch_book(cache_key, options):
    print(f"  fetching {cache_key!r} (reload={options.reload})")
    return index.push(payload)


async def main():
    book = await cache.query("/books/1", fetch_book)
    print(f"{book.get('name')} ({book.get('published')}), {book.get('pages')} pages")
    for author in book.get("authors"):
        print(f"  by {author.get('name') if hasattr(author, 'get') else author}")
    print(f"  cover: {book.get('cover').get('color')}")
    print(f"  internalNotes: {book.get('internalNotes')}")

    # Served from the cache; no fetch
    assert await cache.query("/books/1", fetch_book) is book

    # Unloading a member evicts the cached query
    book.unload()
    print(f"cached after unload: {cache.contains('/books/1')}")


if __name__ == "__main__":
    asyncio.run(main())
