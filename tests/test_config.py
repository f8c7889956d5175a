from __future__ import annotations

from pathlib import Path

import pytest

from cosmwasm_simulate.config import load_config, load_dotenv

CONFIG_VARS = [
    "SIMULATE_SENDER",
    "SIMULATE_ENGINE",
    "SIMULATE_RUNNER_BIN",
    "SIMULATE_POLL_INTERVAL",
    "SIMULATE_RELOAD_DELAY",
    "SIMULATE_HOST",
    "SIMULATE_CHAIN_ID",
    "SIMULATE_LOG_DIR",
    "DEBUG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in CONFIG_VARS:
        monkeypatch.delenv(name, raising=False)


def test_load_dotenv_parses_basic(tmp_path: Path) -> None:
    p = tmp_path / ".env"
    p.write_text(
        """
# comment
SIMULATE_SENDER=alice
export SIMULATE_ENGINE="mock"
EMPTY=
not a pair
""".strip()
        + "\n"
    )
    env = load_dotenv(p)
    assert env["SIMULATE_SENDER"] == "alice"
    assert env["SIMULATE_ENGINE"] == "mock"
    assert env["EMPTY"] == ""
    assert "not a pair" not in env


def test_load_dotenv_missing_file(tmp_path: Path) -> None:
    assert load_dotenv(tmp_path / "nope.env") == {}


def test_defaults() -> None:
    cfg = load_config({})
    assert cfg.engine == "runner"
    assert cfg.poll_interval_s == 1.0
    assert cfg.reload_delay_s == 0.1
    assert cfg.host == "0.0.0.0"
    assert cfg.debug is False
    assert cfg.log_dir is None


def test_overrides_apply(tmp_path: Path) -> None:
    cfg = load_config(
        {
            "SIMULATE_SENDER": "bob",
            "SIMULATE_ENGINE": "MOCK",
            "SIMULATE_RUNNER_BIN": str(tmp_path / "runner"),
            "SIMULATE_LOG_DIR": str(tmp_path / "logs"),
            "DEBUG": "1",
        }
    )
    assert cfg.sender == "bob"
    assert cfg.engine == "mock"
    assert cfg.runner_bin == tmp_path / "runner"
    assert cfg.log_dir == tmp_path / "logs"
    assert cfg.debug is True


def test_process_env_wins(monkeypatch) -> None:
    monkeypatch.setenv("SIMULATE_SENDER", "from-env")
    assert load_config({"SIMULATE_SENDER": "from-file"}).sender == "from-env"


def test_numeric_values_clamped_or_defaulted() -> None:
    cfg = load_config({"SIMULATE_POLL_INTERVAL": "0.001", "SIMULATE_RELOAD_DELAY": "soon"})
    assert cfg.poll_interval_s == 0.05
    assert cfg.reload_delay_s == 0.1


@pytest.mark.parametrize("value,expected", [("false", False), ("0", False), ("FALSE", False), ("yes", True)])
def test_debug_flag(value: str, expected: bool) -> None:
    assert load_config({"DEBUG": value}).debug is expected


def test_unknown_engine_rejected() -> None:
    with pytest.raises(ValueError, match="unknown engine"):
        load_config({"SIMULATE_ENGINE": "wasmer"})
