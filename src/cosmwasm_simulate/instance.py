"""
A live contract: one engine handle bound to an address, a sender, an
environment and the message schema parsed from the same module.

Instances are immutable. A hot reload builds a new instance seeded with the
old one's storage snapshot and swaps it in; nothing is patched in place.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from cosmwasm_simulate.artifacts import check_artifact_path
from cosmwasm_simulate.constants import ENTRY_POINTS
from cosmwasm_simulate.engine.base import Environment, ExecutionEngine, QueryCallback, StorageSnapshot
from cosmwasm_simulate.errors import EngineCallError, LoadError, SchemaUnavailable, UnsupportedRequest
from cosmwasm_simulate.schema import TypeSchema, load_type_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractInstance:
    address: str
    sender: str
    environment: Environment
    module_path: Path
    engine: ExecutionEngine
    handle: Any
    schema: TypeSchema | None

    @classmethod
    def create(
        cls,
        module_path: Path,
        address: str,
        sender: str,
        query_callback: QueryCallback,
        storage: StorageSnapshot | None = None,
        *,
        engine: ExecutionEngine,
        environment: Environment | None = None,
    ) -> ContractInstance:
        """
        Load a module and instantiate it through the engine.

        Args:
            module_path: Artifact to load.
            address: Contract address the instance is registered under.
            sender: Simulated caller for every call.
            query_callback: Services the module's outbound queries.
            storage: Snapshot to seed the instance's storage with.
            engine: Execution engine binding.
            environment: Chain/contract metadata template; its contract
                address and sender are overwritten with `address`/`sender`.

        Raises:
            LoadError: If the artifact is missing, has the wrong extension, or
                cannot be read.
            InstantiationError: If the engine rejects the module.
        """
        check_artifact_path(module_path)
        try:
            module = module_path.read_bytes()
        except OSError as e:
            raise LoadError(str(module_path), str(e)) from e

        if environment is None:
            env = Environment(contract_address=address, sender=sender)
        else:
            env = replace(environment, contract_address=address, sender=sender)

        handle = engine.instantiate(module, env, query_callback, copy.deepcopy(storage or {}))

        try:
            schema: TypeSchema | None = load_type_schema(engine, module, module_path)
        except SchemaUnavailable as e:
            logger.info(f"{address}: {e.message}; falling back to raw JSON input")
            schema = None
        except Exception:
            engine.release(handle)
            raise

        return cls(
            address=address,
            sender=sender,
            environment=env,
            module_path=module_path,
            engine=engine,
            handle=handle,
            schema=schema,
        )

    @property
    def raw_json_mode(self) -> bool:
        return self.schema is None or self.schema.is_empty

    def call(self, entry_point: str, payload: str) -> str:
        """
        Run an entry point and return its JSON result text.

        The payload is passed through untouched. Failures reported by the
        module come back as ``{"error": "..."}`` text rather than raising.

        Raises:
            UnsupportedRequest: If `entry_point` is not init/handle/query.
        """
        if entry_point not in ENTRY_POINTS:
            raise UnsupportedRequest(f"entry point {entry_point!r}")
        try:
            return self.engine.invoke(self.handle, entry_point, payload)
        except EngineCallError as e:
            logger.debug(f"{self.address}.{entry_point} reported: {e.message}")
            return json.dumps({"error": e.message})

    def query_raw(self, msg: str) -> str:
        """Run the query entry point for another contract; engine errors propagate."""
        return self.engine.query(self.handle, msg)

    def snapshot_storage(self) -> StorageSnapshot:
        return copy.deepcopy(self.engine.read_storage_snapshot(self.handle))

    def release(self) -> None:
        self.engine.release(self.handle)
