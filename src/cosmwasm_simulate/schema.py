"""Message type schema for a loaded contract.

Contracts describe their messages as JSON Schema documents (one per root
message such as ``InitMsg``/``HandleMsg``/``QueryMsg``, each with its own
``definitions``). `TypeSchema` flattens those documents into four lookup
tables that the message constructor and the session loop query:

- ``base_type_aliases``: alias -> primitive (``Uint128`` -> ``string``)
- ``struct_defs``: struct -> ordered ``(field, type)`` pairs
- ``enum_flags``: message group -> whether it is a tagged union
- ``message_groups``: message group -> variant -> ordered fields

Field type names carry a ``?`` suffix when the field is optional.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cosmwasm_simulate.constants import OPTIONAL_MARKER, SCHEMA_DIR_NAME
from cosmwasm_simulate.errors import SchemaUnavailable

logger = logging.getLogger(__name__)

Fields = tuple[tuple[str, str], ...]

PRIMITIVE_TYPES = frozenset({"string", "integer", "number", "boolean"})


def split_optional(type_name: str) -> tuple[str, bool]:
    """Strip the optional marker: ``"Uint128?"`` -> ``("Uint128", True)``."""
    if type_name.endswith(OPTIONAL_MARKER):
        return type_name[: -len(OPTIONAL_MARKER)], True
    return type_name, False


@dataclass(frozen=True)
class TypeSchema:
    base_type_aliases: Mapping[str, str] = field(default_factory=dict)
    struct_defs: Mapping[str, Fields] = field(default_factory=dict)
    enum_flags: Mapping[str, bool] = field(default_factory=dict)
    message_groups: Mapping[str, Mapping[str, Fields]] = field(default_factory=dict)

    def resolve_base_type(self, name: str) -> str:
        return self.base_type_aliases.get(name, name)

    def lookup_struct(self, name: str) -> Fields | None:
        return self.struct_defs.get(name)

    def is_enum(self, group: str) -> bool:
        return self.enum_flags.get(group, False)

    def lookup_message_group(self, name: str) -> Mapping[str, Fields] | None:
        return self.message_groups.get(name)

    def group_names(self) -> list[str]:
        return sorted(self.message_groups)

    @property
    def is_empty(self) -> bool:
        return not self.message_groups

    @classmethod
    def from_documents(cls, documents: Mapping[str, Any], *, source: str = "schema") -> TypeSchema:
        """
        Parse JSON Schema documents keyed by root message name.

        Raises:
            SchemaUnavailable: If the documents are not JSON objects or no
                message group could be derived from them.
        """
        if not isinstance(documents, Mapping) or not documents:
            raise SchemaUnavailable(source, "no schema documents")

        aliases: dict[str, str] = {}
        structs: dict[str, Fields] = {}
        enums: dict[str, bool] = {}
        groups: dict[str, dict[str, Fields]] = {}

        for root_name, doc in documents.items():
            if not isinstance(doc, Mapping):
                raise SchemaUnavailable(source, f"{root_name}: expected a JSON object, got {type(doc).__name__}")

            definitions = doc.get("definitions") or doc.get("$defs") or {}
            if not isinstance(definitions, Mapping):
                raise SchemaUnavailable(source, f"{root_name}: definitions must be an object")
            for def_name, definition in definitions.items():
                if not isinstance(definition, Mapping):
                    continue
                _register_definition(def_name, definition, aliases, structs)

            is_enum, variants = _parse_root(root_name, doc)
            enums[root_name] = is_enum
            groups[root_name] = variants

        if not any(groups.values()):
            raise SchemaUnavailable(source, "no message variants declared")

        return cls(base_type_aliases=aliases, struct_defs=structs, enum_flags=enums, message_groups=groups)


def _register_definition(
    name: str, definition: Mapping[str, Any], aliases: dict[str, str], structs: dict[str, Fields]
) -> None:
    kind = definition.get("type")
    if isinstance(kind, list):
        non_null = [k for k in kind if k != "null"]
        kind = non_null[0] if len(non_null) == 1 else None

    if isinstance(definition.get("properties"), Mapping):
        structs[name] = _object_fields(definition)
    elif isinstance(kind, str) and kind in PRIMITIVE_TYPES:
        aliases[name] = kind
    else:
        # unions, arrays and refs: the operator types the raw JSON value
        structs[name] = ()


def _parse_root(name: str, doc: Mapping[str, Any]) -> tuple[bool, dict[str, Fields]]:
    alternatives = doc.get("anyOf") or doc.get("oneOf")
    if isinstance(alternatives, list):
        variants: dict[str, Fields] = {}
        for alt in alternatives:
            if not isinstance(alt, Mapping):
                continue
            enum_values = alt.get("enum")
            if isinstance(enum_values, list):
                for v in enum_values:
                    if isinstance(v, str):
                        variants[v] = ()
                continue
            props = alt.get("properties")
            if not isinstance(props, Mapping) or not props:
                continue
            required = alt.get("required")
            if isinstance(required, list) and required and required[0] in props:
                variant = required[0]
            else:
                variant = next(iter(props))
            inner = props[variant]
            variants[variant] = _object_fields(inner) if isinstance(inner, Mapping) else ()
        return True, variants

    if isinstance(doc.get("properties"), Mapping):
        return False, {name: _object_fields(doc)}

    # an object schema with no properties is still a callable, field-less message
    return False, {name: ()}


def _object_fields(obj: Mapping[str, Any]) -> Fields:
    props = obj.get("properties")
    if not isinstance(props, Mapping):
        return ()
    required = obj.get("required")
    required_set = set(required) if isinstance(required, list) else set()

    out: list[tuple[str, str]] = []
    for prop_name, prop_schema in props.items():
        if not isinstance(prop_schema, Mapping):
            out.append((prop_name, "object"))
            continue
        type_name, nullable = _property_type(prop_schema)
        if nullable or prop_name not in required_set:
            type_name += OPTIONAL_MARKER
        out.append((prop_name, type_name))
    return tuple(out)


def _property_type(prop: Mapping[str, Any]) -> tuple[str, bool]:
    """Return ``(type_name, nullable)`` for a property schema."""
    ref = prop.get("$ref")
    if isinstance(ref, str):
        return ref.rsplit("/", 1)[-1], False

    all_of = prop.get("allOf")
    if isinstance(all_of, list) and len(all_of) == 1 and isinstance(all_of[0], Mapping):
        return _property_type(all_of[0])

    union = prop.get("anyOf") or prop.get("oneOf")
    if isinstance(union, list):
        members = [m for m in union if isinstance(m, Mapping)]
        non_null = [m for m in members if m.get("type") != "null"]
        nullable = len(non_null) < len(members)
        if len(non_null) == 1:
            inner, inner_nullable = _property_type(non_null[0])
            return inner, nullable or inner_nullable
        return "object", nullable

    kind = prop.get("type")
    if isinstance(kind, list):
        nullable = "null" in kind
        non_null = [k for k in kind if k != "null"]
        return (non_null[0] if len(non_null) == 1 else "object"), nullable
    if isinstance(kind, str):
        return kind, False
    return "object", False


def load_schema_dir(directory: Path) -> dict[str, Any]:
    """
    Read every ``*.json`` document in a cosmwasm-schema output directory.

    Documents are keyed by their ``title`` (falling back to the file stem).
    Unreadable files are skipped with a warning.
    """
    out: dict[str, Any] = {}
    for path in sorted(directory.glob("*.json")):
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Skipping schema file {path}: {e}")
            continue
        if not isinstance(doc, dict):
            continue
        title = doc.get("title")
        out[title if isinstance(title, str) and title else path.stem] = doc
    return out


def schema_dir_candidates(artifact: Path) -> list[Path]:
    """``schema/`` next to the artifact, then next to its parent directory."""
    parent = artifact.resolve().parent
    return [parent / SCHEMA_DIR_NAME, parent.parent / SCHEMA_DIR_NAME]


def load_type_schema(engine: Any, module: bytes, artifact: Path) -> TypeSchema:
    """
    Derive the `TypeSchema` for a module.

    Asks the engine first (``engine.describe(module)``), then falls back to a
    ``schema/`` directory beside the artifact.

    Raises:
        SchemaUnavailable: If neither source yields a usable schema.
    """
    reasons: list[str] = []
    try:
        documents = engine.describe(module)
    except SchemaUnavailable as e:
        reasons.append(e.data.get("reason", e.message))
        documents = None
    if documents:
        return TypeSchema.from_documents(documents, source=f"{artifact.name} (engine)")

    for directory in schema_dir_candidates(artifact):
        if not directory.is_dir():
            continue
        documents = load_schema_dir(directory)
        if documents:
            return TypeSchema.from_documents(documents, source=str(directory))
        reasons.append(f"{directory} has no schema documents")

    reasons.append("engine reported no schema and no schema directory found")
    raise SchemaUnavailable(artifact.name, "; ".join(reasons))
