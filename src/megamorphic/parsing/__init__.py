"""Parsing module for the type metadata DSL."""

from megamorphic.parsing.metadata_parser import MetadataParser

__all__ = [
    "MetadataParser",
]
