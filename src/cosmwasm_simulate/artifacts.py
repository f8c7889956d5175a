from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from cosmwasm_simulate.constants import ARTIFACT_EXTENSION
from cosmwasm_simulate.errors import LoadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Artifact:
    path: Path
    address: str


def check_artifact_path(path: Path) -> None:
    """
    Raises:
        LoadError: If `path` lacks the artifact extension or is not a file.
    """
    if path.suffix != ARTIFACT_EXTENSION:
        raise LoadError(str(path), f"only support file[*{ARTIFACT_EXTENSION}]")
    if not path.is_file():
        raise LoadError(str(path), "file not found")


def discover_artifacts(file_path: Path, contract_folder: str | None = None) -> list[Artifact]:
    """
    List the artifacts to load, main artifact first.

    The main artifact's stem is its address. When `contract_folder` is given
    (relative to the main artifact's directory), every ``{address}/{address}.wasm``
    inside it is added, sorted by address. Subdirectories without a matching
    artifact are skipped.

    Raises:
        LoadError: If the main artifact is missing or has the wrong extension.
    """
    check_artifact_path(file_path)
    artifacts = [Artifact(path=file_path, address=file_path.stem)]

    if not contract_folder:
        return artifacts

    folder = file_path.parent / contract_folder
    if not folder.is_dir():
        logger.warning(f"Contract folder not found: {folder}")
        return artifacts

    for entry in sorted(folder.iterdir(), key=lambda p: p.name):
        if not entry.is_dir():
            continue
        candidate = entry / f"{entry.name}{ARTIFACT_EXTENSION}"
        if entry.name == file_path.stem:
            logger.warning(f"Skipping {candidate}: address {entry.name} is already taken by {file_path}")
        elif candidate.is_file():
            artifacts.append(Artifact(path=candidate, address=entry.name))
        else:
            logger.debug(f"Skipping {entry}: no {candidate.name}")
    return artifacts
