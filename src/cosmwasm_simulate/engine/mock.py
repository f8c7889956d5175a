from __future__ import annotations

import base64
import binascii
import itertools
import json
from dataclasses import dataclass, field
from typing import Any

from cosmwasm_simulate.engine.base import Environment, QueryCallback, StorageSnapshot
from cosmwasm_simulate.errors import EngineCallError, InstantiationError
from cosmwasm_simulate.utils import encode_base64_text


def _response(action: str, data: Any = None) -> str:
    return json.dumps(
        {"messages": [], "attributes": [{"key": "action", "value": action}], "data": data},
        sort_keys=True,
    )


def _single_variant(entry_point: str, msg: Any) -> tuple[str, Any]:
    if not isinstance(msg, dict) or len(msg) != 1:
        raise EngineCallError(entry_point, "expected an object with exactly one variant key")
    ((variant, fields),) = msg.items()
    return variant, fields


@dataclass
class _MockContract:
    environment: Environment
    query_callback: QueryCallback
    storage: StorageSnapshot = field(default_factory=dict)


def _stored_count(contract: _MockContract, entry_point: str) -> int:
    raw = contract.storage.get("count", "0")
    try:
        return int(raw)
    except ValueError:
        raise EngineCallError(entry_point, f"stored count is not a number: {raw!r}") from None


class MockEngine:
    """
    In-process key/value contract used by tests and demos.

    A mock module is a JSON document ``{"schema": {...}, "storage": {...}}``;
    ``schema`` is what `describe` reports and ``storage`` seeds a fresh
    instance (a carried-over snapshot wins over it).

    behaviours:
      - init: stores the payload under ``config``
      - handle ``increment``: bumps ``count``
      - handle ``fail``: raises `EngineCallError` with the given ``reason``
      - handle <other>: stores the variant's fields under the variant name
      - query ``get_count`` / ``config``: read back the counter / init payload
      - query ``proxy {"contract", "msg"}``: smart-queries another contract
        through the query callback
      - query <other>: reads back what handle stored (``null`` if nothing)
    """

    def __init__(self) -> None:
        self._contracts: dict[int, _MockContract] = {}
        self._handles = itertools.count(1)

    @staticmethod
    def _decode_module(module: bytes) -> dict[str, Any] | None:
        try:
            doc = json.loads(module.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        return doc if isinstance(doc, dict) else None

    def describe(self, module: bytes) -> dict[str, Any] | None:
        doc = self._decode_module(module)
        if doc is None:
            return None
        schema = doc.get("schema")
        return schema if isinstance(schema, dict) and schema else None

    def instantiate(
        self,
        module: bytes,
        environment: Environment,
        query_callback: QueryCallback,
        storage: StorageSnapshot,
    ) -> int:
        doc = self._decode_module(module)
        if doc is None:
            raise InstantiationError(environment.contract_address, "module is not a JSON object")
        seeded = doc.get("storage") or {}
        if not isinstance(seeded, dict):
            raise InstantiationError(environment.contract_address, "module storage must be an object")

        state: StorageSnapshot = {str(k): str(v) for k, v in seeded.items()}
        state.update(storage)
        handle = next(self._handles)
        self._contracts[handle] = _MockContract(environment, query_callback, state)
        return handle

    def _contract(self, handle: int, entry_point: str) -> _MockContract:
        contract = self._contracts.get(handle)
        if contract is None:
            raise EngineCallError(entry_point, f"unknown instance handle {handle}")
        return contract

    def invoke(self, handle: int, entry_point: str, payload: str) -> str:
        contract = self._contract(handle, entry_point)
        try:
            msg = json.loads(payload)
        except json.JSONDecodeError as e:
            raise EngineCallError(entry_point, f"Error parsing into type: {e}") from e

        if entry_point == "init":
            contract.storage["config"] = json.dumps(msg, sort_keys=True)
            return _response("init")
        if entry_point == "handle":
            return self._handle(contract, msg)
        if entry_point == "query":
            return self._query(contract, msg)
        raise EngineCallError(entry_point, "unknown entry point")

    def _handle(self, contract: _MockContract, msg: Any) -> str:
        variant, fields = _single_variant("handle", msg)
        if variant == "increment":
            count = _stored_count(contract, "handle") + 1
            contract.storage["count"] = str(count)
            return _response(variant, {"count": count})
        if variant == "fail":
            reason = fields.get("reason", "failure requested") if isinstance(fields, dict) else "failure requested"
            raise EngineCallError("handle", f"Generic error: {reason}")
        contract.storage[variant] = json.dumps(fields, sort_keys=True)
        return _response(variant)

    def _query(self, contract: _MockContract, msg: Any) -> str:
        variant, fields = _single_variant("query", msg)
        if variant == "get_count":
            return json.dumps({"count": _stored_count(contract, "query")})
        if variant == "proxy":
            return self._proxy(contract, fields)
        if variant == "config":
            return contract.storage.get("config", "null")
        return contract.storage.get(variant, "null")

    def _proxy(self, contract: _MockContract, fields: Any) -> str:
        if not isinstance(fields, dict) or "contract" not in fields:
            raise EngineCallError("query", "proxy needs a contract field")
        inner = json.dumps(fields.get("msg", {}), sort_keys=True)
        request = {
            "wasm": {
                "smart": {
                    "contract_addr": fields["contract"],
                    "msg": encode_base64_text(inner),
                }
            }
        }
        result = contract.query_callback(request)
        if "err" in result:
            raise EngineCallError("query", f"Querier system error: {json.dumps(result['err'], sort_keys=True)}")
        try:
            return base64.b64decode(result["ok"]["ok"]).decode("utf-8")
        except (KeyError, TypeError, binascii.Error, UnicodeDecodeError) as e:
            raise EngineCallError("query", f"unexpected querier result: {result!r}") from e

    def query(self, handle: int, msg: str) -> str:
        return self.invoke(handle, "query", msg)

    def read_storage_snapshot(self, handle: int) -> StorageSnapshot:
        return dict(self._contract(handle, "storage").storage)

    def release(self, handle: int) -> None:
        self._contracts.pop(handle, None)
