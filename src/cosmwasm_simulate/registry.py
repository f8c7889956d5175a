"""
Address-keyed store of live contract instances.

The registry is the only state shared between the artifact watcher, the
interactive session and the HTTP front end. One re-entrant lock guards every
mutation and every call dispatch, so a call never runs against an instance
that is being replaced and a replacement never lands while a call is in
flight. The lock is re-entrant because a module's outbound query is serviced
on the calling thread and may dispatch into another registered contract.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from typing import Any

from cosmwasm_simulate.artifacts import Artifact
from cosmwasm_simulate.engine.base import Environment, ExecutionEngine, StorageSnapshot
from cosmwasm_simulate.errors import (
    EngineCallError,
    InstallError,
    InstantiationError,
    LoadError,
    MalformedPayload,
    NoSuchContract,
    SimulateError,
)
from cosmwasm_simulate.instance import ContractInstance
from cosmwasm_simulate.logging import EventLog, NullEventLog
from cosmwasm_simulate.metrics import CONTRACT_CALLS
from cosmwasm_simulate.utils import decode_base64_text, encode_base64_text

logger = logging.getLogger(__name__)


class ContractRegistry:
    def __init__(
        self,
        *,
        engine: ExecutionEngine,
        sender: str,
        environment: Environment | None = None,
        events: EventLog | NullEventLog | None = None,
    ) -> None:
        self.engine = engine
        self.sender = sender
        self.environment = environment
        self.events = events or NullEventLog()
        self._instances: dict[str, ContractInstance] = {}
        self._lock = threading.RLock()

    def get(self, address: str) -> ContractInstance | None:
        with self._lock:
            return self._instances.get(address)

    def addresses(self) -> list[str]:
        with self._lock:
            return sorted(self._instances)

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._instances

    def upsert(self, address: str, factory: Callable[[], ContractInstance]) -> ContractInstance:
        """
        Build a replacement with `factory` and swap it in atomically.

        The previous instance, if any, keeps serving until the new one is
        fully constructed, and stays registered when construction fails.

        Raises:
            InstallError: If `factory` raises `LoadError` or `InstantiationError`.
        """
        with self._lock:
            try:
                instance = factory()
            except (LoadError, InstantiationError) as e:
                raise InstallError(address, e) from e
            previous = self._instances.get(address)
            self._instances[address] = instance
        if previous is not None and previous.handle != instance.handle:
            logger.debug(f"Releasing replaced instance of {address}")
            previous.release()
        return instance

    def install(self, artifact: Artifact, *, storage: StorageSnapshot | None = None) -> ContractInstance:
        """Upsert a fresh instance built from `artifact`, seeded with `storage`."""

        def build() -> ContractInstance:
            return ContractInstance.create(
                artifact.path,
                artifact.address,
                self.sender,
                self.handle_query,
                storage,
                engine=self.engine,
                environment=self.environment,
            )

        return self.upsert(artifact.address, build)

    def rebuild(self, artifact: Artifact) -> tuple[ContractInstance, bool]:
        """
        Reinstall `artifact`, carrying the current instance's storage forward.

        Returns:
            ``(instance, reloaded)``; `reloaded` is false when there was no
            previous instance and the contract was installed with empty storage.

        Raises:
            InstallError: If the replacement cannot be built.
        """
        with self._lock:
            current = self._instances.get(artifact.address)
            if current is None:
                return self.install(artifact), False
            try:
                snapshot = current.snapshot_storage()
            except EngineCallError as e:
                raise InstallError(artifact.address, e) from e
            return self.install(artifact, storage=snapshot), True

    def call(self, address: str, entry_point: str, payload: str) -> str:
        """
        Dispatch a call against the registered instance for `address`.

        Raises:
            NoSuchContract: If nothing is registered under `address`.
            UnsupportedRequest: If `entry_point` is not init/handle/query.
        """
        with self._lock:
            instance = self._instances.get(address)
            if instance is None:
                CONTRACT_CALLS.labels(entry_point=entry_point, outcome="no_such_contract").inc()
                raise NoSuchContract(address)
            result = instance.call(entry_point, payload)

        outcome = "error" if _is_error_result(result) else "ok"
        CONTRACT_CALLS.labels(entry_point=entry_point, outcome=outcome).inc()
        self.events.event("call", address=address, entry_point=entry_point, payload=payload, outcome=outcome)
        return result

    def handle_query(self, request: dict[str, Any]) -> dict[str, Any]:
        """
        Query callback handed to every instance.

        Only smart queries addressed to a registered contract are served;
        the result mirrors the querier's system result shape.
        """
        wasm = request.get("wasm")
        smart = wasm.get("smart") if isinstance(wasm, dict) else None
        if not isinstance(smart, dict):
            return {"err": {"unsupported_request": {"kind": "Not implemented"}}}

        contract_addr = str(smart.get("contract_addr", ""))
        try:
            msg = decode_base64_text(str(smart.get("msg", "")))
        except MalformedPayload as e:
            return {"err": {"invalid_request": {"error": e.message, "request": json.dumps(request, sort_keys=True)}}}

        with self._lock:
            instance = self._instances.get(contract_addr)
            if instance is None:
                return {"err": {"no_such_contract": {"addr": contract_addr}}}
            try:
                response = instance.query_raw(msg)
            except SimulateError as e:
                return {"err": {"invalid_response": {"error": e.message, "response": ""}}}

        return {"ok": {"ok": encode_base64_text(response)}}


def _is_error_result(result: str) -> bool:
    try:
        parsed = json.loads(result)
    except json.JSONDecodeError:
        return False
    return isinstance(parsed, dict) and set(parsed) == {"error"}
