"""
Shared pytest fixtures for simulator tests.

This module provides:
- Mock contract modules written to tmp_path (JSON documents the MockEngine loads)
- A registry backed by the in-process MockEngine
- Scripted value sources that replay operator answers
"""

from __future__ import annotations

import copy
import io
import json
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from cosmwasm_simulate.editor import ScriptedSource
from cosmwasm_simulate.engine.mock import MockEngine
from cosmwasm_simulate.registry import ContractRegistry

SENDER = "fake_sender_addr"

# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

COUNTER_SCHEMA: dict[str, Any] = {
    "InitMsg": {
        "title": "InitMsg",
        "type": "object",
        "required": ["count"],
        "properties": {"count": {"type": "integer"}},
    },
    "HandleMsg": {
        "title": "HandleMsg",
        "anyOf": [
            {
                "type": "object",
                "required": ["increment"],
                "properties": {"increment": {"type": "object"}},
            }
        ],
    },
    "QueryMsg": {
        "title": "QueryMsg",
        "anyOf": [
            {
                "type": "object",
                "required": ["get_count"],
                "properties": {"get_count": {"type": "object"}},
            },
            {
                "type": "object",
                "required": ["config"],
                "properties": {"config": {"type": "object"}},
            },
        ],
    },
}

PROFILE_SCHEMA: dict[str, Any] = {
    "InitMsg": {
        "title": "InitMsg",
        "type": "object",
        "required": ["name"],
        "properties": {
            "name": {"type": "string"},
            "memo": {"type": ["string", "null"]},
        },
    },
    "ExecuteMsg": {
        "title": "ExecuteMsg",
        "anyOf": [
            {
                "type": "object",
                "required": ["set_owner"],
                "properties": {
                    "set_owner": {
                        "type": "object",
                        "required": ["owner", "limit"],
                        "properties": {
                            "owner": {"$ref": "#/definitions/Owner"},
                            "limit": {"$ref": "#/definitions/Uint128"},
                        },
                    }
                },
            },
            {
                "type": "object",
                "required": ["increment"],
                "properties": {"increment": {"type": "object"}},
            },
        ],
        "definitions": {
            "Owner": {
                "type": "object",
                "required": ["addr", "weight"],
                "properties": {
                    "addr": {"type": "string"},
                    "weight": {"type": "integer"},
                },
            },
            "Uint128": {"type": "string"},
        },
    },
}

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def write_module() -> Callable[..., Path]:
    """Write a mock module (``{"schema", "storage"}`` JSON) to `path` and return it."""

    def _write(path: Path, schema: dict[str, Any] | None = None, storage: dict[str, str] | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"schema": schema or {}, "storage": storage or {}}))
        return path

    return _write


@pytest.fixture
def engine() -> MockEngine:
    return MockEngine()


@pytest.fixture
def registry(engine: MockEngine) -> ContractRegistry:
    return ContractRegistry(engine=engine, sender=SENDER)


@pytest.fixture
def console() -> Console:
    """A console that records output instead of writing to the terminal."""
    return Console(record=True, width=200, highlight=False, color_system=None, file=io.StringIO())


@pytest.fixture
def scripted(console: Console) -> Callable[[Iterable[str]], ScriptedSource]:
    def _make(lines: Iterable[str]) -> ScriptedSource:
        return ScriptedSource(lines, console)

    return _make


@pytest.fixture
def counter_schema() -> dict[str, Any]:
    return copy.deepcopy(COUNTER_SCHEMA)


@pytest.fixture
def profile_schema() -> dict[str, Any]:
    return copy.deepcopy(PROFILE_SCHEMA)
