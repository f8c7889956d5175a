from __future__ import annotations

import json
import os
import secrets
import socket
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path


def _now_unix() -> int:
    return int(time.time())


def _safe_filename(s: str) -> str:
    out = []
    for ch in s:
        if ch.isalnum() or ch in ("-", "_", "."):
            out.append(ch)
        else:
            out.append("_")
    return "".join(out)[:120]


def default_run_id(*, prefix: str) -> str:
    """
    Generate a unique run ID using timestamp, PID, and a random suffix.
    """
    ts = time.strftime("%Y%m%d_%H%M%S", time.gmtime())
    pid = os.getpid()
    rand = secrets.token_hex(3)  # 6 chars
    return f"{prefix}_{ts}_pid{pid}_{rand}"


@dataclass(frozen=True)
class EventLogPaths:
    root: Path
    run_metadata: Path
    events: Path


class EventLog:
    """
    JSONL diagnostics for one simulator session:
    - run_metadata.json: one JSON object (artifacts, sender, engine)
    - events.jsonl: installs, reloads, failures and dispatched calls
    - .hostname: identity file for the host that created the logs

    The watcher thread and the session thread both write here, so appends are
    serialised with a lock.
    """

    def __init__(self, *, base_dir: Path, run_id: str, use_stdout: bool = False) -> None:
        run_id = _safe_filename(run_id)
        root = base_dir / run_id
        root.mkdir(parents=True, exist_ok=True)
        self.paths = EventLogPaths(
            root=root,
            run_metadata=root / "run_metadata.json",
            events=root / "events.jsonl",
        )
        self.use_stdout = use_stdout
        self._lock = threading.Lock()

        try:
            (root / ".hostname").write_text(socket.gethostname(), encoding="utf-8")
        except OSError:
            pass

    def write_run_metadata(self, obj: dict) -> None:
        self.paths.run_metadata.write_text(json.dumps(obj, indent=2, sort_keys=True) + "\n")

    def event(self, name: str, **fields: object) -> None:
        """
        Log an event with consistent schema.

        All events include:
        - `t`: Unix timestamp (seconds)
        - `event`: Event name (string)

        Additional fields are included as provided.
        """
        row = {"t": _now_unix(), "event": name, **fields}
        line = json.dumps(row, sort_keys=True, default=str) + "\n"
        with self._lock:
            with self.paths.events.open("a", encoding="utf-8") as f:
                f.write(line)

        if self.use_stdout:
            sys.stdout.write(f"SIMULATE_EVENT:{line}")
            sys.stdout.flush()


class NullEventLog:
    """Stand-in used when no log directory is configured."""

    def write_run_metadata(self, obj: dict) -> None:
        pass

    def event(self, name: str, **fields: object) -> None:
        pass
