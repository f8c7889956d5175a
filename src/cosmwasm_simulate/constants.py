"""
Centralized constants for cosmwasm-simulate configuration.

This module provides single-source-of-truth defaults for values used across
multiple modules. `config.load_config()` layers environment overrides on top.

Environment variable overrides:
- SIMULATE_SENDER: Simulated caller address
- SIMULATE_CHAIN_ID: Chain id reported to contracts
"""

from __future__ import annotations

import os

# Simulated caller used when no sender is configured
DEFAULT_SENDER_ADDRESS = os.environ.get("SIMULATE_SENDER", "fake_sender_addr")

# Module artifacts are recognised by this extension; the file stem is the address
ARTIFACT_EXTENSION = ".wasm"

# Directory of cosmwasm-schema output looked up next to an artifact
SCHEMA_DIR_NAME = "schema"

# The three supported entry points, in prompt order
ENTRY_POINTS = ("init", "handle", "query")
SWITCH_COMMAND = "switch"

# Conventional root message per entry point (older name first)
ROOT_MESSAGES = {
    "init": ("InitMsg", "InstantiateMsg"),
    "handle": ("HandleMsg", "ExecuteMsg"),
    "query": ("QueryMsg",),
}

# Suffix marking an optional field type in the parsed schema
OPTIONAL_MARKER = "?"

# Primitive that must be quoted when emitted (text and base64 binary alike)
QUOTED_PRIMITIVE = "string"

# =============================================================================
# Watcher timing
# =============================================================================

# Seconds between artifact modification checks
DEFAULT_POLL_INTERVAL_SECONDS = 1.0

# Pause before rebuilding, in case a build tool is still writing the artifact
DEFAULT_RELOAD_DELAY_SECONDS = 0.1

# Poll intervals a scripted run waits for a first loadable artifact before giving up
SCRIPT_STARTUP_POLLS = 3

# =============================================================================
# Mock environment (matches the values contracts see in unit tests)
# =============================================================================

DEFAULT_CHAIN_ID = os.environ.get("SIMULATE_CHAIN_ID", "cosmos-testnet-14002")
DEFAULT_BLOCK_HEIGHT = 12_345
DEFAULT_BLOCK_TIME = 1_571_797_419

# =============================================================================
# Engines and HTTP
# =============================================================================

ENGINE_RUNNER = "runner"
ENGINE_MOCK = "mock"
DEFAULT_ENGINE = ENGINE_RUNNER

# Executable name of the external sandbox runner
RUNNER_BINARY_NAME = "cosmwasm-runner"

# Seconds to wait for the runner process to exit on close
RUNNER_SHUTDOWN_TIMEOUT_SECONDS = 5.0

DEFAULT_HOST = "0.0.0.0"
REST_BASE_PATH = "/wasm"
