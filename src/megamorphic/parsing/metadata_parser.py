"""Parser for the type metadata DSL.

A metadata file is a sequence of blocks, one per type tag::

    book {
        whitelist title, author, pages
        default pages = 0
        alias name -> title
        transform published = parse_date
    }

Type tags and attribute names that are not plain identifiers may be
written as double-quoted strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import ply.yacc as yacc

from megamorphic.parsing.metadata_lexer import MetadataLexer
from megamorphic.types import TypeMetadata


@dataclass
class WhitelistSpec:
    """Attribute names listed by a ``whitelist`` directive."""

    names: list[str]


@dataclass
class DefaultSpec:
    """A ``default name = literal`` directive."""

    name: str
    value: Any


@dataclass
class AliasSpec:
    """An ``alias name -> target`` directive."""

    name: str
    target: str


@dataclass
class TransformSpec:
    """A ``transform name = function`` directive before resolution."""

    name: str
    transform_name: str


Directive = WhitelistSpec | DefaultSpec | AliasSpec | TransformSpec


@dataclass
class TypeMetadataSpec:
    """Specification for one type block before resolution."""

    name: str
    directives: list[Directive] = field(default_factory=list)
    lineno: int = 0


class MetadataParser:
    """Parser for the type metadata DSL."""

    tokens = MetadataLexer.tokens

    def __init__(self, transforms: Mapping[str, Callable[[Any], Any]] | None = None) -> None:
        self.lexer = MetadataLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore
        self.transforms: dict[str, Callable[[Any], Any]] = dict(transforms or {})

    def p_metadata(self, p: yacc.YaccProduction) -> None:
        """metadata : block_list
                    | empty"""
        p[0] = p[1] or []

    def p_empty(self, p: yacc.YaccProduction) -> None:
        """empty :"""
        p[0] = None

    def p_block_list_single(self, p: yacc.YaccProduction) -> None:
        """block_list : block"""
        p[0] = [p[1]]

    def p_block_list_multiple(self, p: yacc.YaccProduction) -> None:
        """block_list : block_list block"""
        p[0] = p[1] + [p[2]]

    def p_block(self, p: yacc.YaccProduction) -> None:
        """block : name LBRACE directive_list RBRACE"""
        p[0] = TypeMetadataSpec(name=p[1], directives=p[3], lineno=p.lineno(2))

    def p_block_empty(self, p: yacc.YaccProduction) -> None:
        """block : name LBRACE RBRACE"""
        p[0] = TypeMetadataSpec(name=p[1], directives=[], lineno=p.lineno(2))

    def p_name(self, p: yacc.YaccProduction) -> None:
        """name : IDENTIFIER
                | STRING"""
        p[0] = p[1]

    def p_directive_list_single(self, p: yacc.YaccProduction) -> None:
        """directive_list : directive"""
        p[0] = [p[1]]

    def p_directive_list_multiple(self, p: yacc.YaccProduction) -> None:
        """directive_list : directive_list directive"""
        p[0] = p[1] + [p[2]]

    def p_directive_whitelist(self, p: yacc.YaccProduction) -> None:
        """directive : WHITELIST name_list"""
        p[0] = WhitelistSpec(names=p[2])

    def p_directive_whitelist_empty(self, p: yacc.YaccProduction) -> None:
        """directive : WHITELIST"""
        p[0] = WhitelistSpec(names=[])

    def p_directive_default(self, p: yacc.YaccProduction) -> None:
        """directive : DEFAULT name EQUALS literal"""
        p[0] = DefaultSpec(name=p[2], value=p[4])

    def p_directive_alias(self, p: yacc.YaccProduction) -> None:
        """directive : ALIAS name ARROW name"""
        p[0] = AliasSpec(name=p[2], target=p[4])

    def p_directive_transform(self, p: yacc.YaccProduction) -> None:
        """directive : TRANSFORM name EQUALS IDENTIFIER"""
        p[0] = TransformSpec(name=p[2], transform_name=p[4])

    def p_name_list_single(self, p: yacc.YaccProduction) -> None:
        """name_list : name"""
        p[0] = [p[1]]

    def p_name_list_multiple(self, p: yacc.YaccProduction) -> None:
        """name_list : name_list COMMA name"""
        p[0] = p[1] + [p[3]]

    def p_literal_scalar(self, p: yacc.YaccProduction) -> None:
        """literal : INTEGER
                   | FLOAT
                   | STRING"""
        p[0] = p[1]

    def p_literal_true(self, p: yacc.YaccProduction) -> None:
        """literal : TRUE"""
        p[0] = True

    def p_literal_false(self, p: yacc.YaccProduction) -> None:
        """literal : FALSE"""
        p[0] = False

    def p_literal_null(self, p: yacc.YaccProduction) -> None:
        """literal : NULL"""
        p[0] = None

    def p_literal_list(self, p: yacc.YaccProduction) -> None:
        """literal : LBRACKET literal_list RBRACKET
                   | LBRACKET literal_list COMMA RBRACKET"""
        p[0] = p[2]

    def p_literal_list_empty(self, p: yacc.YaccProduction) -> None:
        """literal : LBRACKET RBRACKET"""
        p[0] = []

    def p_literal_list_single(self, p: yacc.YaccProduction) -> None:
        """literal_list : literal"""
        p[0] = [p[1]]

    def p_literal_list_multiple(self, p: yacc.YaccProduction) -> None:
        """literal_list : literal_list COMMA literal"""
        p[0] = p[1] + [p[3]]

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (line {p.lineno})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, **kwargs)

    def parse(self, data: str) -> dict[str, TypeMetadata]:
        """Parse metadata definitions and return metadata keyed by type tag."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        self.lexer.lexer.lineno = 1
        specs = self.parser.parse(data, lexer=self.lexer.lexer)
        if specs is None:
            specs = []

        models_by_type: dict[str, TypeMetadata] = {}
        for spec in specs:
            if spec.name in models_by_type:
                raise ValueError(f"Metadata for type '{spec.name}' is already defined")
            models_by_type[spec.name] = self._resolve_spec(spec)
        return models_by_type

    def _resolve_spec(self, spec: TypeMetadataSpec) -> TypeMetadata:
        """Resolve one block's directives into a TypeMetadata."""
        whitelist: set[str] | None = None
        defaults: dict[str, Any] = {}
        aliases: dict[str, str] = {}
        transforms: dict[str, Callable[[Any], Any]] = {}

        for directive in spec.directives:
            if isinstance(directive, WhitelistSpec):
                # Repeated whitelist directives accumulate
                whitelist = (whitelist or set()) | set(directive.names)
            elif isinstance(directive, DefaultSpec):
                if directive.name in defaults:
                    raise ValueError(
                        f"Type '{spec.name}': default for '{directive.name}' is already defined"
                    )
                defaults[directive.name] = directive.value
            elif isinstance(directive, AliasSpec):
                if directive.name in aliases:
                    raise ValueError(
                        f"Type '{spec.name}': alias '{directive.name}' is already defined"
                    )
                aliases[directive.name] = directive.target
            elif isinstance(directive, TransformSpec):
                transform = self.transforms.get(directive.transform_name)
                if transform is None:
                    raise ValueError(
                        f"Type '{spec.name}': unknown transform '{directive.transform_name}'"
                    )
                transforms[directive.name] = transform

        return TypeMetadata(
            whitelist=None if whitelist is None else frozenset(whitelist),
            defaults=defaults,
            aliases=aliases,
            transforms=transforms,
        )
