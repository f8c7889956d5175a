"""
Polling hot reload for contract artifacts.

Each tracked artifact is stat'ed once per pass. A changed modification time
(every artifact counts as changed on the first pass) rebuilds the contract,
carrying its storage forward when it is already registered. Failures are
logged and recorded; the previous instance keeps serving and the artifact is
retried the next time its file changes.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Sequence

from cosmwasm_simulate.artifacts import Artifact
from cosmwasm_simulate.constants import DEFAULT_POLL_INTERVAL_SECONDS, DEFAULT_RELOAD_DELAY_SECONDS
from cosmwasm_simulate.errors import InstallError
from cosmwasm_simulate.logging import EventLog, NullEventLog
from cosmwasm_simulate.metrics import CONTRACT_RELOADS
from cosmwasm_simulate.registry import ContractRegistry
from cosmwasm_simulate.utils import log_exception

logger = logging.getLogger(__name__)


class ArtifactWatcher:
    def __init__(
        self,
        registry: ContractRegistry,
        artifacts: Sequence[Artifact],
        *,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_SECONDS,
        reload_delay_s: float = DEFAULT_RELOAD_DELAY_SECONDS,
        events: EventLog | NullEventLog | None = None,
    ) -> None:
        self.registry = registry
        self.artifacts = list(artifacts)
        self.poll_interval_s = poll_interval_s
        self.reload_delay_s = reload_delay_s
        self.events = events or NullEventLog()
        # Carries the first registered address once, after the first pass
        # that ends with something registered.
        self.ready: queue.Queue[str] = queue.Queue(maxsize=1)
        self._mtimes: dict[str, float | None] = {a.address: None for a in self.artifacts}
        self._ready_sent = False
        self._thread: threading.Thread | None = None

    def poll_once(self) -> list[str]:
        """Run a single pass. Returns the addresses installed or reloaded."""
        changed: list[str] = []
        for artifact in self.artifacts:
            try:
                mtime = artifact.path.stat().st_mtime
            except OSError as e:
                logger.warning(f"Cannot stat {artifact.path}: {e}")
                self.events.event("watch_error", address=artifact.address, path=str(artifact.path), error=str(e))
                continue

            if self._mtimes.get(artifact.address) == mtime:
                continue
            self._mtimes[artifact.address] = mtime

            if self._refresh(artifact):
                changed.append(artifact.address)

        self._signal_ready()
        return changed

    def _refresh(self, artifact: Artifact) -> bool:
        if artifact.address in self.registry and self.reload_delay_s > 0:
            # Give the toolchain a moment to finish writing the file.
            time.sleep(self.reload_delay_s)

        try:
            _, reloaded = self.registry.rebuild(artifact)
        except InstallError as e:
            logger.error(e.message)
            CONTRACT_RELOADS.labels(outcome="failed").inc()
            self.events.event("install_failed", address=artifact.address, path=str(artifact.path), error=e.to_dict())
            return False

        if reloaded:
            logger.info(f"Reloaded contract {artifact.address} from {artifact.path}")
            CONTRACT_RELOADS.labels(outcome="reloaded").inc()
            self.events.event("contract_reloaded", address=artifact.address, path=str(artifact.path))
        else:
            logger.info(f"Installed contract {artifact.address} from {artifact.path}")
            CONTRACT_RELOADS.labels(outcome="installed").inc()
            self.events.event("contract_installed", address=artifact.address, path=str(artifact.path))
        return True

    def _signal_ready(self) -> None:
        if self._ready_sent:
            return
        for artifact in self.artifacts:
            if artifact.address in self.registry:
                self.ready.put_nowait(artifact.address)
                self._ready_sent = True
                return

    def run(self, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                self.poll_once()
            except Exception as e:
                log_exception("Artifact watcher pass failed", {"artifacts": [a.address for a in self.artifacts]})
                self.events.event("watch_error", error=str(e))
            stop.wait(self.poll_interval_s)

    def start(self, stop: threading.Event | None = None) -> threading.Event:
        """Run the watcher on a daemon thread. Returns the event that stops it."""
        stop = stop or threading.Event()
        self._thread = threading.Thread(target=self.run, args=(stop,), name="artifact-watcher", daemon=True)
        self._thread.start()
        return stop
