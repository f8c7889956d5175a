"""Shared utility functions for parsing, validation, and error reporting."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import stat
import sys
import traceback
from pathlib import Path
from typing import Any

from cosmwasm_simulate.errors import MalformedPayload

logger = logging.getLogger(__name__)


class BinaryNotFoundError(FileNotFoundError):
    """Raised when a required binary is not found."""

    pass


class BinaryNotExecutableError(PermissionError):
    """Raised when a binary exists but is not executable."""

    pass


def safe_parse_float(
    val: Any, default: float, min_val: float = -float("inf"), max_val: float = float("inf"), name: str = "value"
) -> float:
    """
    Safe float parsing with range validation.
    """
    try:
        f = float(val)
    except (ValueError, TypeError):
        logger.warning(f"Invalid {name}={val!r}, using default {default}")
        return default

    if f < min_val or f > max_val:
        logger.warning(f"{name}={f} out of range [{min_val}, {max_val}], clamping")
        return max(min_val, min(max_val, f))
    return f


def safe_bool(val: Any, default: bool) -> bool:
    """
    Parse a boolean flag the way the DEBUG variable has always been read:
    any value other than "false" (case-insensitive) or "0" enables it.
    """
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    if isinstance(val, str):
        s = val.strip().lower()
        if not s:
            return default
        return s not in ("false", "0")
    return bool(val)


def log_exception(msg: str, extra: dict[str, Any] | None = None) -> None:
    """
    Log an exception with traceback and optional extra structured info.
    """
    err_info = {
        "error_type": getattr(sys.exc_info()[0], "__name__", "Unknown"),
        "error_message": str(sys.exc_info()[1]),
        "traceback": traceback.format_exc(),
    }
    if extra:
        err_info.update(extra)
    logger.error(f"{msg}: {err_info['error_message']}", extra={"structured_error": err_info})


def validate_binary(path: Path, *, binary_name: str = "binary") -> Path:
    """
    Validate that a binary exists and is executable.

    Args:
        path: Path to the binary.
        binary_name: Human-readable name for error messages.

    Returns:
        The validated path.

    Raises:
        BinaryNotFoundError: If the binary doesn't exist.
        BinaryNotExecutableError: If the binary isn't executable.
    """
    if not path.exists():
        raise BinaryNotFoundError(f"{binary_name} not found: {path}\nSet SIMULATE_RUNNER_BIN or pass --runner-bin")
    st = path.stat()
    if not stat.S_ISREG(st.st_mode):
        raise BinaryNotFoundError(f"{binary_name} is not a regular file: {path}")
    if not os.access(path, os.X_OK):
        raise BinaryNotExecutableError(f"{binary_name} is not executable: {path}")
    return path


def decode_base64_text(encoded: str) -> str:
    """
    Decode a base64-encoded UTF-8 string.

    Accepts both the standard and the URL-safe alphabet, with or without
    trailing padding, since payloads usually arrive as URL path segments.

    Raises:
        MalformedPayload: If the input is not base64 or not UTF-8.
    """
    s = encoded.strip().replace("-", "+").replace("_", "/")
    s += "=" * (-len(s) % 4)
    try:
        raw = base64.b64decode(s, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedPayload(f"invalid base64: {e}") from e
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedPayload(f"invalid utf-8: {e}") from e


def encode_base64_text(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def json_or_text(text: str) -> Any:
    """Parse `text` as JSON, returning it unchanged when it is not valid JSON."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return text
