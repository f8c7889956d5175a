"""
Execution engine interface.

The simulator never executes contract bytecode itself. An engine instantiates
a module with an environment, a storage snapshot and a query callback, then
runs its entry points on request. Storage snapshots are opaque to everything
but the engine that produced them; the harness only copies them forward.

Engines report failures with `InstantiationError` (module or environment
rejected) and `EngineCallError` (the module failed while running).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from cosmwasm_simulate.constants import DEFAULT_BLOCK_HEIGHT, DEFAULT_BLOCK_TIME, DEFAULT_CHAIN_ID

StorageSnapshot = dict[str, str]

# Receives a query request emitted by a module and returns a system result:
# {"ok": {"ok": "<base64 response>"}} or {"err": {...}}
QueryCallback = Callable[[dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class Environment:
    contract_address: str
    sender: str
    chain_id: str = DEFAULT_CHAIN_ID
    block_height: int = DEFAULT_BLOCK_HEIGHT
    block_time: int = DEFAULT_BLOCK_TIME
    sent_funds: tuple[tuple[str, str], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "block": {
                "height": self.block_height,
                "time": self.block_time,
                "chain_id": self.chain_id,
            },
            "message": {
                "sender": self.sender,
                "sent_funds": [{"denom": denom, "amount": amount} for denom, amount in self.sent_funds],
            },
            "contract": {"address": self.contract_address},
        }


class ExecutionEngine(Protocol):
    def describe(self, module: bytes) -> dict[str, Any] | None:
        """Declared message schema documents keyed by root name, if the module exports them."""
        ...

    def instantiate(
        self,
        module: bytes,
        environment: Environment,
        query_callback: QueryCallback,
        storage: StorageSnapshot,
    ) -> Any: ...

    def invoke(self, handle: Any, entry_point: str, payload: str) -> str: ...

    def query(self, handle: Any, msg: str) -> str: ...

    def read_storage_snapshot(self, handle: Any) -> StorageSnapshot: ...

    def release(self, handle: Any) -> None: ...
