from __future__ import annotations

from pathlib import Path

import pytest

from cosmwasm_simulate.artifacts import Artifact, check_artifact_path, discover_artifacts
from cosmwasm_simulate.errors import LoadError


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"{}")
    return path


def test_main_artifact_only(tmp_path: Path) -> None:
    main = _touch(tmp_path / "counter.wasm")
    assert discover_artifacts(main) == [Artifact(path=main, address="counter")]


def test_companion_folder_sorted_by_address(tmp_path: Path) -> None:
    main = _touch(tmp_path / "main.wasm")
    zeta = _touch(tmp_path / "contracts" / "zeta" / "zeta.wasm")
    alpha = _touch(tmp_path / "contracts" / "alpha" / "alpha.wasm")
    # no matching artifact inside: skipped
    _touch(tmp_path / "contracts" / "empty" / "other.wasm")
    # plain files at the top of the folder are ignored
    _touch(tmp_path / "contracts" / "loose.wasm")

    found = discover_artifacts(main, "contracts")

    assert [a.address for a in found] == ["main", "alpha", "zeta"]
    assert found[1].path == alpha
    assert found[2].path == zeta


def test_companion_with_main_address_is_skipped(tmp_path: Path) -> None:
    main = _touch(tmp_path / "main.wasm")
    _touch(tmp_path / "contracts" / "main" / "main.wasm")

    assert [a.address for a in discover_artifacts(main, "contracts")] == ["main"]


def test_missing_folder_keeps_main(tmp_path: Path) -> None:
    main = _touch(tmp_path / "main.wasm")
    assert [a.address for a in discover_artifacts(main, "nowhere")] == ["main"]


def test_wrong_extension(tmp_path: Path) -> None:
    with pytest.raises(LoadError) as exc_info:
        check_artifact_path(_touch(tmp_path / "main.txt"))
    assert exc_info.value.data["reason"] == "only support file[*.wasm]"


def test_missing_main_artifact(tmp_path: Path) -> None:
    with pytest.raises(LoadError) as exc_info:
        discover_artifacts(tmp_path / "missing.wasm")
    assert exc_info.value.data["reason"] == "file not found"
