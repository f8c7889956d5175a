"""Error types for the contract simulator.

Every failure the harness reports carries a human-readable message plus a small
structured ``data`` dict, so the same error can be printed on the console,
written to the event log, or returned from the HTTP call API.
"""

from __future__ import annotations

from typing import Any


class SimulateError(Exception):
    """Base class for simulator errors."""

    def __init__(self, message: str, data: dict[str, Any] | None = None):
        self.message = message
        self.data = data or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a JSON-serialisable dictionary."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "data": self.data,
        }


class LoadError(SimulateError):
    """Artifact path is missing, unreadable, or has the wrong extension."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Cannot load {path}: {reason}",
            data={"path": path, "reason": reason},
        )


class InstantiationError(SimulateError):
    """The execution engine rejected the module or its environment."""

    def __init__(self, address: str, reason: str):
        super().__init__(
            message=f"Failed to instantiate contract {address}: {reason}",
            data={"address": address, "reason": reason},
        )


class SchemaUnavailable(SimulateError):
    """No usable message schema could be derived for a module."""

    def __init__(self, source: str, reason: str):
        super().__init__(
            message=f"Schema unavailable for {source}: {reason}",
            data={"source": source, "reason": reason},
        )


class NoSuchContract(SimulateError):
    """Address is not registered."""

    def __init__(self, address: str):
        super().__init__(
            message=f"No such contract: {address}",
            data={"addr": address},
        )


class UnsupportedRequest(SimulateError):
    """Request shape or entry point the harness does not handle."""

    def __init__(self, kind: str):
        super().__init__(
            message=f"Unsupported request: {kind}",
            data={"kind": kind},
        )


class MalformedPayload(SimulateError):
    """Operator or request input could not be decoded."""

    def __init__(self, reason: str):
        super().__init__(message=f"Malformed payload: {reason}", data={"reason": reason})


class EngineCallError(SimulateError):
    """The module itself reported a failure during init/handle/query."""

    def __init__(self, entry_point: str, reason: str):
        super().__init__(
            message=f"{entry_point} failed: {reason}",
            data={"entry_point": entry_point, "reason": reason},
        )


class InstallError(SimulateError):
    """A registry upsert could not construct the replacement instance."""

    def __init__(self, address: str, cause: SimulateError):
        super().__init__(
            message=f"error occurred during install contract {address}: {cause.message}",
            data={"address": address, "cause": cause.to_dict()},
        )
        self.cause = cause
