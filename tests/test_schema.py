"""Tests for schema hooks, type metadata and the schema registry."""

import pytest

from megamorphic import schema as schema_module
from megamorphic.schema import Schema, SchemaRegistry, register_schema
from megamorphic.types import NestedModelDescriptor, ReferenceDescriptor, TypeMetadata


class RefSchema(Schema):
    def compute_attribute_reference(self, key, value):
        if isinstance(value, str) and ":" in value:
            type_tag, id = value.split(":", 1)
            return {"id": id, "type": type_tag}
        return None

    def compute_nested_model(self, key, value, type_tag):
        if isinstance(value, dict) and "type" in value:
            return {"id": value.get("id"), "type": value["type"], "attributes": value}
        return None


class TestTypeMetadata:
    """Tests for per-type metadata overlays."""

    def test_defaults_are_permissive(self):
        """Test that empty metadata includes every attribute."""
        metadata = TypeMetadata()
        assert metadata.whitelist is None
        assert metadata.is_included("anything")
        assert metadata.alias_target("anything") is None

    def test_whitelist_is_frozen(self):
        """Test that a whitelist given as a list becomes a frozenset."""
        metadata = TypeMetadata(whitelist=["a", "b"])
        assert metadata.whitelist == frozenset({"a", "b"})
        assert metadata.is_included("a")
        assert not metadata.is_included("c")

    def test_self_alias_rejected(self):
        """Test that an alias pointing at itself is rejected."""
        with pytest.raises(ValueError, match="Alias cycle"):
            TypeMetadata(aliases={"a": "a"})

    def test_alias_cycle_rejected(self):
        """Test that a two-step alias cycle is rejected."""
        with pytest.raises(ValueError, match="Alias cycle"):
            TypeMetadata(aliases={"a": "b", "b": "a"})

    def test_alias_chain_allowed(self):
        """Test that an alias may forward to another alias."""
        metadata = TypeMetadata(aliases={"a": "b", "b": "c"})
        assert metadata.alias_target("a") == "b"

    def test_aliases_of_is_transitive(self):
        """Test that aliases_of finds aliases of aliases."""
        metadata = TypeMetadata(aliases={"a": "b", "b": "c", "x": "c", "y": "z"})
        assert metadata.aliases_of("c") == {"a", "b", "x"}
        assert metadata.aliases_of("b") == {"a"}
        assert metadata.aliases_of("q") == set()


class TestSchemaRegistry:
    """Tests for the schema registry."""

    def test_base_schema_is_inert(self):
        """Test that the base schema classifies nothing."""
        registry = SchemaRegistry()
        assert registry.includes_model("book")
        assert registry.compute_attribute_reference("author", "author:1") is None
        assert not registry.is_array_reference("authors", ["author:1"], "book")
        assert registry.compute_nested_model("meta", {"type": "meta"}, "book") is None

    def test_missing_metadata_is_permissive(self):
        """Test that a type without metadata gets the permissive overlay."""
        registry = SchemaRegistry(Schema({"book": TypeMetadata(whitelist={"title"})}))
        metadata = registry.metadata_for("author")
        assert metadata.whitelist is None
        assert metadata.defaults == {}

    def test_registered_metadata_returned(self):
        """Test that registered metadata is returned for its type."""
        book = TypeMetadata(defaults={"pages": 0})
        registry = SchemaRegistry(Schema({"book": book}))
        assert registry.metadata_for("book") is book

    def test_mapping_results_coerced(self):
        """Test that hooks may return plain mappings."""
        registry = SchemaRegistry(RefSchema())

        reference = registry.compute_attribute_reference("author", "author:1")
        assert reference == ReferenceDescriptor(id="1", type="author")

        nested = registry.compute_nested_model("meta", {"type": "meta", "id": 5}, "book")
        assert isinstance(nested, NestedModelDescriptor)
        assert nested.id == "5"
        assert nested.type == "meta"

    def test_register_replaces_wholesale(self):
        """Test that registering a schema replaces the old one entirely."""
        first = Schema({"book": TypeMetadata(defaults={"pages": 0})})
        second = RefSchema()
        registry = SchemaRegistry(first)

        registry.register_schema(second)

        assert registry.schema is second
        # No merge: the first schema's metadata is gone
        assert registry.metadata_for("book").defaults == {}
        assert registry.compute_attribute_reference("a", "author:1") is not None

    def test_bad_hook_result_raises(self):
        """Test that an uninterpretable hook result is a TypeError."""

        class BadSchema(Schema):
            def compute_attribute_reference(self, key, value):
                return "not-a-descriptor"

        registry = SchemaRegistry(BadSchema())
        with pytest.raises(TypeError):
            registry.compute_attribute_reference("a", 1)


class TestDefaultRegistry:
    """Tests for the process-wide registry."""

    @pytest.fixture(autouse=True)
    def restore_default(self):
        original = schema_module.default_registry.schema
        yield
        schema_module.default_registry.register_schema(original)

    def test_register_schema_updates_default(self):
        """Test that register_schema replaces the default registry's schema."""
        schema = RefSchema()
        register_schema(schema)
        assert schema_module.default_registry.schema is schema


class TestSchemaParse:
    """Tests for building a schema from the metadata DSL."""

    def test_parse_builds_subclass(self):
        """Test that parse returns an instance of the calling class."""
        schema = RefSchema.parse("""
        book {
            whitelist title
            default title = "Untitled"
        }
        """)
        assert isinstance(schema, RefSchema)
        assert schema.models_by_type["book"].defaults == {"title": "Untitled"}

    def test_parse_with_transforms(self):
        """Test that transform names resolve against the given mapping."""
        schema = Schema.parse("book { transform pages = to_int }", transforms={"to_int": int})
        assert schema.models_by_type["book"].transforms["pages"] is int
