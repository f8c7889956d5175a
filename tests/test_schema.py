from __future__ import annotations

import json
from pathlib import Path

import pytest

from cosmwasm_simulate.errors import SchemaUnavailable
from cosmwasm_simulate.schema import TypeSchema, load_schema_dir, load_type_schema, split_optional


class _StaticEngine:
    def __init__(self, documents=None):
        self.documents = documents

    def describe(self, module: bytes):
        return self.documents


def test_split_optional() -> None:
    assert split_optional("Uint128?") == ("Uint128", True)
    assert split_optional("string") == ("string", False)


def test_enum_group_variants_and_fields(profile_schema) -> None:
    schema = TypeSchema.from_documents(profile_schema)

    assert schema.is_enum("ExecuteMsg")
    group = schema.lookup_message_group("ExecuteMsg")
    assert group is not None
    assert sorted(group) == ["increment", "set_owner"]
    assert group["set_owner"] == (("owner", "Owner"), ("limit", "Uint128"))
    assert group["increment"] == ()


def test_definitions_become_structs_and_aliases(profile_schema) -> None:
    schema = TypeSchema.from_documents(profile_schema)

    assert schema.lookup_struct("Owner") == (("addr", "string"), ("weight", "integer"))
    assert schema.resolve_base_type("Uint128") == "string"
    # Unknown names resolve to themselves
    assert schema.resolve_base_type("integer") == "integer"


def test_non_enum_group_is_single_variant_named_after_group(profile_schema) -> None:
    schema = TypeSchema.from_documents(profile_schema)

    assert not schema.is_enum("InitMsg")
    assert schema.lookup_message_group("InitMsg") == {"InitMsg": (("name", "string"), ("memo", "string?"))}


def test_not_required_fields_are_optional() -> None:
    docs = {
        "QueryMsg": {
            "type": "object",
            "required": ["a"],
            "properties": {"a": {"type": "string"}, "b": {"type": "integer"}},
        }
    }
    schema = TypeSchema.from_documents(docs)
    assert schema.lookup_message_group("QueryMsg") == {"QueryMsg": (("a", "string"), ("b", "integer?"))}


def test_nullable_ref_and_all_of() -> None:
    docs = {
        "HandleMsg": {
            "type": "object",
            "required": ["coin", "owner"],
            "properties": {
                "coin": {"anyOf": [{"$ref": "#/definitions/Coin"}, {"type": "null"}]},
                "owner": {"allOf": [{"$ref": "#/definitions/Addr"}]},
            },
            "definitions": {
                "Coin": {"type": "object", "required": ["denom"], "properties": {"denom": {"type": "string"}}},
                "Addr": {"type": "string"},
                "Expiration": {"oneOf": [{"type": "object"}, {"type": "object"}]},
            },
        }
    }
    schema = TypeSchema.from_documents(docs)

    assert schema.lookup_message_group("HandleMsg") == {"HandleMsg": (("coin", "Coin?"), ("owner", "Addr"))}
    assert schema.resolve_base_type("Addr") == "string"
    # Unions and other shapes are empty structs: one raw value
    assert schema.lookup_struct("Expiration") == ()


def test_string_enum_alternatives_are_field_less_variants() -> None:
    docs = {
        "QueryMsg": {
            "oneOf": [
                {"type": "string", "enum": ["config", "state"]},
                {"type": "object", "required": ["balance"], "properties": {"balance": {"type": "object"}}},
            ]
        }
    }
    schema = TypeSchema.from_documents(docs)

    assert schema.is_enum("QueryMsg")
    assert schema.lookup_message_group("QueryMsg") == {"config": (), "state": (), "balance": ()}


def test_group_names_sorted(counter_schema) -> None:
    schema = TypeSchema.from_documents(counter_schema)
    assert schema.group_names() == ["HandleMsg", "InitMsg", "QueryMsg"]
    assert not schema.is_empty


def test_unknown_lookups_are_none(counter_schema) -> None:
    schema = TypeSchema.from_documents(counter_schema)
    assert schema.lookup_struct("Nope") is None
    assert schema.lookup_message_group("Nope") is None
    assert not schema.is_enum("Nope")


def test_empty_documents_raise() -> None:
    with pytest.raises(SchemaUnavailable):
        TypeSchema.from_documents({})


def test_documents_without_variants_raise() -> None:
    with pytest.raises(SchemaUnavailable) as exc_info:
        TypeSchema.from_documents({"HandleMsg": {"anyOf": [{"type": "null"}]}})
    assert "no message variants" in exc_info.value.message


def test_non_object_document_raises() -> None:
    with pytest.raises(SchemaUnavailable):
        TypeSchema.from_documents({"HandleMsg": ["not", "an", "object"]})


def test_load_schema_dir_keys_by_title(tmp_path: Path) -> None:
    (tmp_path / "handle_msg.json").write_text(json.dumps({"title": "HandleMsg", "type": "object"}))
    (tmp_path / "query.json").write_text(json.dumps({"type": "object"}))
    (tmp_path / "broken.json").write_text("{not json")

    docs = load_schema_dir(tmp_path)
    assert sorted(docs) == ["HandleMsg", "query"]


def test_load_type_schema_prefers_engine(tmp_path: Path, counter_schema) -> None:
    artifact = tmp_path / "counter.wasm"
    artifact.write_bytes(b"")

    schema = load_type_schema(_StaticEngine(counter_schema), b"", artifact)
    assert schema.lookup_message_group("HandleMsg") == {"increment": ()}


def test_load_type_schema_falls_back_to_schema_dir(tmp_path: Path, counter_schema) -> None:
    artifact = tmp_path / "artifacts" / "counter.wasm"
    artifact.parent.mkdir()
    artifact.write_bytes(b"")
    schema_dir = tmp_path / "schema"
    schema_dir.mkdir()
    for name, doc in counter_schema.items():
        (schema_dir / f"{name.lower()}.json").write_text(json.dumps(doc))

    schema = load_type_schema(_StaticEngine(None), b"", artifact)
    assert schema.group_names() == ["HandleMsg", "InitMsg", "QueryMsg"]


def test_load_type_schema_unavailable(tmp_path: Path) -> None:
    artifact = tmp_path / "counter.wasm"
    artifact.write_bytes(b"")

    with pytest.raises(SchemaUnavailable):
        load_type_schema(_StaticEngine(None), b"", artifact)
