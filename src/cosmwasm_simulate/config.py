from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from cosmwasm_simulate.constants import (
    DEFAULT_CHAIN_ID,
    DEFAULT_ENGINE,
    DEFAULT_HOST,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_RELOAD_DELAY_SECONDS,
    DEFAULT_SENDER_ADDRESS,
    ENGINE_MOCK,
    ENGINE_RUNNER,
    RUNNER_BINARY_NAME,
)
from cosmwasm_simulate.utils import safe_bool, safe_parse_float


@dataclass(frozen=True)
class SimulateConfig:
    sender: str
    engine: str
    runner_bin: Path | None
    poll_interval_s: float
    reload_delay_s: float
    host: str
    chain_id: str
    debug: bool
    log_dir: Path | None


def load_dotenv(path: Path) -> dict[str, str]:
    """
    Minimal .env loader:
    - supports KEY=VALUE and `export KEY=VALUE`
    - strips surrounding quotes
    - ignores blank lines and `#` comments
    - does not expand variables
    """
    out: dict[str, str] = {}
    if not path.exists():
        return out

    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        if "=" not in line:
            continue
        k, v = line.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            continue
        if len(v) >= 2 and ((v[0] == v[-1] == '"') or (v[0] == v[-1] == "'")):
            v = v[1:-1]
        out[k] = v
    return out


def _default_runner_bin() -> Path | None:
    found = shutil.which(RUNNER_BINARY_NAME)
    return Path(found) if found else None


def load_config(env_overrides: dict[str, str] | None = None) -> SimulateConfig:
    """
    Build the simulator configuration from the process environment and an
    optional dict of overrides (usually a parsed .env file).

    Process env wins over `env_overrides`, so an operator can override a
    checked-in .env without editing it.
    """
    env_overrides = env_overrides or {}

    def get(k: str) -> str | None:
        v = os.environ.get(k)
        if v:
            return v
        return env_overrides.get(k) or None

    def get_float(k: str, default: float, lo: float, hi: float) -> float:
        v = get(k)
        if v is None:
            return default
        return safe_parse_float(v, default, min_val=lo, max_val=hi, name=k)

    engine = (get("SIMULATE_ENGINE") or DEFAULT_ENGINE).strip().lower()
    if engine not in (ENGINE_RUNNER, ENGINE_MOCK):
        raise ValueError(f"unknown engine {engine!r} (expected {ENGINE_RUNNER} or {ENGINE_MOCK})")

    runner_bin_raw = get("SIMULATE_RUNNER_BIN")
    runner_bin = Path(runner_bin_raw).expanduser() if runner_bin_raw else _default_runner_bin()

    log_dir_raw = get("SIMULATE_LOG_DIR")

    return SimulateConfig(
        sender=get("SIMULATE_SENDER") or DEFAULT_SENDER_ADDRESS,
        engine=engine,
        runner_bin=runner_bin,
        poll_interval_s=get_float("SIMULATE_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS, 0.05, 60.0),
        reload_delay_s=get_float("SIMULATE_RELOAD_DELAY", DEFAULT_RELOAD_DELAY_SECONDS, 0.0, 10.0),
        host=get("SIMULATE_HOST") or DEFAULT_HOST,
        chain_id=get("SIMULATE_CHAIN_ID") or DEFAULT_CHAIN_ID,
        debug=safe_bool(get("DEBUG"), False),
        log_dir=Path(log_dir_raw).expanduser() if log_dir_raw else None,
    )
