"""
Engine binding for an external sandbox runner process.

The runner is started once and spoken to over JSON lines on stdin/stdout:

    -> {"id": 7, "op": "invoke", "handle": "h1", "entry_point": "handle", "msg": "{...}"}
    <- {"id": 7, "ok": {"result": "{...}"}}
    <- {"id": 7, "err": "Generic error: ..."}

Operations: ``describe``, ``instantiate``, ``invoke``, ``query``, ``storage``,
``release``. Modules travel base64-encoded.

While an ``invoke``/``query`` is in flight, the runner may ask the host to
service a query the module issued:

    <- {"callback": "query", "qid": 3, "request": {"wasm": {"smart": {...}}}}
    -> {"qid": 3, "result": {"ok": {"ok": "<base64>"}}}

The callback may itself dispatch into another instance on the same runner, so
requests nest; replies are matched by id.
"""

from __future__ import annotations

import base64
import itertools
import json
import logging
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cosmwasm_simulate.constants import RUNNER_SHUTDOWN_TIMEOUT_SECONDS
from cosmwasm_simulate.engine.base import Environment, QueryCallback, StorageSnapshot
from cosmwasm_simulate.errors import EngineCallError, InstantiationError
from cosmwasm_simulate.utils import validate_binary

logger = logging.getLogger(__name__)

UNSUPPORTED_CALLBACK = {"err": {"unsupported_request": {"kind": "no query callback bound"}}}


class RunnerError(RuntimeError):
    """The runner replied with an error or stopped responding."""

    pass


@dataclass
class RunnerEngine:
    runner_bin: Path
    extra_args: tuple[str, ...] = ()
    _process: subprocess.Popen | None = field(default=None, init=False)
    _ids: Any = field(default_factory=lambda: itertools.count(1), init=False)
    _callbacks: dict[str, QueryCallback] = field(default_factory=dict, init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False)

    def __post_init__(self) -> None:
        self.runner_bin = validate_binary(self.runner_bin, binary_name="Sandbox runner")

    def _start(self) -> None:
        cmd = [str(self.runner_bin), "serve", "--json-lines", *self.extra_args]
        try:
            self._process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise RunnerError(f"could not start sandbox runner: {e}") from e
        logger.info(f"Started sandbox runner: {' '.join(cmd)}")

    def _ensure_running(self) -> subprocess.Popen:
        if self._process is None or self._process.poll() is not None:
            if self._process is not None:
                logger.warning(f"Sandbox runner exited with code {self._process.returncode}; restarting")
                # handles belonged to the dead process
                self._callbacks.clear()
            self._start()
        assert self._process is not None
        return self._process

    def _write(self, proc: subprocess.Popen, obj: dict[str, Any]) -> None:
        assert proc.stdin is not None
        proc.stdin.write(json.dumps(obj) + "\n")
        proc.stdin.flush()

    def _request(self, op: str, *, callback: QueryCallback | None = None, **params: Any) -> dict[str, Any]:
        with self._lock:
            proc = self._ensure_running()
            rid = next(self._ids)
            try:
                self._write(proc, {"id": rid, "op": op, **params})
            except (BrokenPipeError, OSError) as e:
                raise RunnerError(f"runner not accepting requests: {e}") from e

            assert proc.stdout is not None
            while True:
                line = proc.stdout.readline()
                if not line:
                    raise RunnerError(f"runner closed its output while handling {op}")
                try:
                    msg = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug(f"runner: {line.rstrip()}")
                    continue
                if not isinstance(msg, dict):
                    continue

                if msg.get("callback") == "query":
                    result = callback(msg.get("request") or {}) if callback else UNSUPPORTED_CALLBACK
                    try:
                        self._write(proc, {"qid": msg.get("qid"), "result": result})
                    except OSError as e:
                        raise RunnerError(f"runner stopped accepting query results: {e}") from e
                    continue

                if msg.get("id") != rid:
                    logger.warning(f"Ignoring runner reply for id={msg.get('id')} while waiting for {rid}")
                    continue
                if "err" in msg:
                    raise RunnerError(str(msg["err"]))
                ok = msg.get("ok")
                return ok if isinstance(ok, dict) else {}

    def describe(self, module: bytes) -> dict[str, Any] | None:
        try:
            ok = self._request("describe", module=base64.b64encode(module).decode("ascii"))
        except RunnerError as e:
            logger.info(f"Runner could not describe module: {e}")
            return None
        schema = ok.get("schema")
        return schema if isinstance(schema, dict) and schema else None

    def instantiate(
        self,
        module: bytes,
        environment: Environment,
        query_callback: QueryCallback,
        storage: StorageSnapshot,
    ) -> str:
        try:
            ok = self._request(
                "instantiate",
                module=base64.b64encode(module).decode("ascii"),
                env=environment.to_dict(),
                storage=storage,
            )
        except RunnerError as e:
            raise InstantiationError(environment.contract_address, str(e)) from e
        handle = ok.get("handle")
        if not isinstance(handle, str):
            raise InstantiationError(environment.contract_address, f"runner returned no handle: {ok!r}")
        self._callbacks[handle] = query_callback
        return handle

    def invoke(self, handle: str, entry_point: str, payload: str) -> str:
        try:
            ok = self._request(
                "invoke",
                callback=self._callbacks.get(handle),
                handle=handle,
                entry_point=entry_point,
                msg=payload,
            )
        except RunnerError as e:
            raise EngineCallError(entry_point, str(e)) from e
        return str(ok.get("result", "null"))

    def query(self, handle: str, msg: str) -> str:
        try:
            ok = self._request("query", callback=self._callbacks.get(handle), handle=handle, msg=msg)
        except RunnerError as e:
            raise EngineCallError("query", str(e)) from e
        return str(ok.get("result", "null"))

    def read_storage_snapshot(self, handle: str) -> StorageSnapshot:
        try:
            ok = self._request("storage", handle=handle)
        except RunnerError as e:
            raise EngineCallError("storage", str(e)) from e
        storage = ok.get("storage")
        return dict(storage) if isinstance(storage, dict) else {}

    def release(self, handle: str) -> None:
        self._callbacks.pop(handle, None)
        try:
            self._request("release", handle=handle)
        except RunnerError as e:
            logger.debug(f"Release of {handle} failed: {e}")

    def close(self) -> None:
        """Terminate the runner process."""
        with self._lock:
            if self._process is None:
                return
            self._process.terminate()
            try:
                self._process.wait(timeout=RUNNER_SHUTDOWN_TIMEOUT_SECONDS)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait()
            self._process = None
