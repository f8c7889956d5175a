"""
Schema-driven construction of JSON call payloads.

Each declared field is classified once into a field type:

- `Scalar`: one raw value from the value source (quoted when the resolved
  primitive is ``string``, verbatim otherwise)
- `StructRef`: a struct with members, expanded member by member
- `OptionalOf`: either of the above marked optional; an empty scalar answer
  drops the key

Fields are emitted in declared order and joined, so the output never carries a
trailing separator.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass

from rich.markup import escape

from cosmwasm_simulate.constants import QUOTED_PRIMITIVE
from cosmwasm_simulate.editor import ValueSource
from cosmwasm_simulate.schema import Fields, TypeSchema, split_optional

INDENT = "    "


@dataclass(frozen=True)
class Scalar:
    type_name: str
    primitive: str

    @property
    def quoted(self) -> bool:
        return self.primitive == QUOTED_PRIMITIVE


@dataclass(frozen=True)
class StructRef:
    type_name: str
    members: Fields


@dataclass(frozen=True)
class OptionalOf:
    inner: Scalar | StructRef


FieldType = Scalar | StructRef | OptionalOf


def classify_field(schema: TypeSchema, type_name: str, *, expanding: frozenset[str] = frozenset()) -> FieldType:
    """
    Classify a declared field type.

    A struct with no members, or one already being expanded further up
    (a self-referential type), is a scalar leaf that takes one raw value.
    """
    base, optional = split_optional(type_name)
    members = schema.lookup_struct(base)
    inner: Scalar | StructRef
    if members and base not in expanding:
        inner = StructRef(base, members)
    else:
        inner = Scalar(base, schema.resolve_base_type(base))
    return OptionalOf(inner) if optional else inner


def escape_string_value(raw: str) -> str:
    """Drop newlines and escape double quotes for a quoted JSON string."""
    return raw.replace("\n", "").replace('"', '\\"')


class MessageConstructor:
    def __init__(self, schema: TypeSchema, source: ValueSource) -> None:
        self.schema = schema
        self.source = source

    def build(self, name: str, fields: Sequence[tuple[str, str]], is_enum: bool) -> str:
        """
        Prompt for every field of a message variant and return the JSON text.

        Args:
            name: Variant name; becomes the wrapping key when `is_enum`.
            fields: Ordered ``(field, type)`` pairs of the variant.
            is_enum: Whether the message group is a tagged union.

        Returns:
            ``{"<name>":{...}}`` for enum groups, ``{...}`` otherwise.
        """
        body = self._object(fields, depth=0, expanding=frozenset())
        if is_enum:
            return "{" + json.dumps(name) + ":" + body + "}"
        return body

    def _object(self, fields: Sequence[tuple[str, str]], *, depth: int, expanding: frozenset[str]) -> str:
        items = []
        for field_name, type_name in fields:
            item = self._item(field_name, type_name, depth=depth, expanding=expanding)
            if item is not None:
                items.append(item)
        return "{" + ",".join(items) + "}"

    def _item(self, field_name: str, type_name: str, *, depth: int, expanding: frozenset[str]) -> str | None:
        if depth == 0:
            self.source.announce(f"input \\[[bold blue]{escape(field_name)}[/bold blue]]:")
        else:
            label = f"[bold blue]{escape(field_name)}[/bold blue] : [yellow]{escape(type_name)}[/yellow]"
            self.source.announce(f"input {INDENT * depth}\\[{label}]:")

        kind = classify_field(self.schema, type_name, expanding=expanding)
        optional = isinstance(kind, OptionalOf)
        inner = kind.inner if isinstance(kind, OptionalOf) else kind
        key = json.dumps(field_name) + ":"

        if isinstance(inner, StructRef):
            nested = self._object(inner.members, depth=depth + 1, expanding=expanding | {inner.type_name})
            return key + nested

        value = self.source.read(store_input=True)
        if optional and not value.strip():
            return None
        if inner.quoted:
            return key + '"' + escape_string_value(value) + '"'
        return key + value


def build_message(
    schema: TypeSchema,
    name: str,
    fields: Sequence[tuple[str, str]],
    is_enum: bool,
    source: ValueSource,
) -> str:
    return MessageConstructor(schema, source).build(name, fields, is_enum)
