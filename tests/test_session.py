from __future__ import annotations

import json
from pathlib import Path

import pytest

from cosmwasm_simulate.artifacts import Artifact
from cosmwasm_simulate.session import Dispatched, SessionLoop, SwitchTo


@pytest.fixture
def counter(tmp_path: Path, registry, write_module, counter_schema):
    path = write_module(tmp_path / "counter.wasm", schema=counter_schema)
    return registry.install(Artifact(path=path, address="counter"))


def test_single_variant_is_auto_selected(registry, counter, scripted) -> None:
    loop = SessionLoop(registry, scripted(["handle"]))

    outcome = loop.step("counter")

    assert isinstance(outcome, Dispatched)
    assert outcome.payload == '{"increment":{}}'
    assert json.loads(outcome.result)["data"] == {"count": 1}


def test_variant_is_chosen_by_name(registry, counter, scripted) -> None:
    loop = SessionLoop(registry, scripted(["handle", "query", "bogus", "get_count"]))
    loop.step("counter")

    outcome = loop.step("counter")

    assert outcome.payload == '{"get_count":{}}'
    assert json.loads(outcome.result) == {"count": 1}


def test_blank_optional_field_is_omitted(tmp_path: Path, registry, write_module, profile_schema, scripted) -> None:
    registry.install(Artifact(path=write_module(tmp_path / "profile.wasm", schema=profile_schema), address="profile"))
    loop = SessionLoop(registry, scripted(["init", "bob", ""]))

    outcome = loop.step("profile")

    assert outcome.payload == '{"name":"bob"}'
    assert json.loads(registry.call("profile", "query", '{"config":{}}')) == {"name": "bob"}


def test_execute_msg_is_the_handle_root(tmp_path: Path, registry, write_module, profile_schema, scripted) -> None:
    registry.install(Artifact(path=write_module(tmp_path / "profile.wasm", schema=profile_schema), address="profile"))
    loop = SessionLoop(registry, scripted(["handle", "set_owner", "alice", "2", "1000"]))

    outcome = loop.step("profile")

    assert json.loads(outcome.payload) == {"set_owner": {"owner": {"addr": "alice", "weight": 2}, "limit": "1000"}}


def test_unknown_call_type_is_rejected(registry, counter, scripted, console) -> None:
    loop = SessionLoop(registry, scripted(["switch", "migrate", "handle"]))

    outcome = loop.step("counter")

    assert isinstance(outcome, Dispatched)
    text = console.export_text()
    assert "Unsupported call type: switch" in text
    assert "Unsupported call type: migrate" in text


def test_raw_json_mode(tmp_path: Path, registry, write_module, scripted, console) -> None:
    registry.install(Artifact(path=write_module(tmp_path / "plain.wasm"), address="plain"))
    loop = SessionLoop(registry, scripted(["handle", '{"increment":{}}']))

    outcome = loop.step("plain")

    assert outcome.payload == '{"increment":{}}'
    assert "Input json string:" in console.export_text()


def test_switch_to_unregistered_address(tmp_path: Path, registry, counter, write_module, scripted, console) -> None:
    registry.install(Artifact(path=write_module(tmp_path / "other.wasm"), address="other"))
    loop = SessionLoop(registry, scripted(["switch", "ghost"]))

    assert loop.step("counter") is None
    assert "No such contract: ghost" in console.export_text()


def test_switch_to_active_address_repeats(tmp_path: Path, registry, counter, write_module, scripted) -> None:
    registry.install(Artifact(path=write_module(tmp_path / "other.wasm"), address="other"))
    loop = SessionLoop(registry, scripted(["switch", "counter"]))
    assert loop.step("counter") is None


def test_switch_to_other_contract(tmp_path: Path, registry, counter, write_module, scripted) -> None:
    registry.install(Artifact(path=write_module(tmp_path / "other.wasm"), address="other"))
    loop = SessionLoop(registry, scripted(["switch", "other"]))
    assert loop.step("counter") == SwitchTo("other")


def test_run_forever_follows_switches_until_exhausted(
    tmp_path: Path, registry, counter, write_module, scripted
) -> None:
    registry.install(Artifact(path=write_module(tmp_path / "other.wasm"), address="other"))
    source = scripted(["switch", "other", "handle", '{"increment":{}}', "switch", "counter", "query", "get_count"])
    loop = SessionLoop(registry, source)

    with pytest.raises(EOFError):
        loop.run_forever("counter")

    assert json.loads(registry.call("other", "query", '{"get_count":{}}')) == {"count": 1}
    assert json.loads(registry.call("counter", "query", '{"get_count":{}}')) == {"count": 0}


def test_loop_ends_when_active_contract_disappears(registry, counter, scripted, console) -> None:
    registry._instances.clear()
    loop = SessionLoop(registry, scripted([]))

    assert loop.simulate("counter") is None
    assert "No such contract: counter" in console.export_text()


def test_debug_prints_schema(registry, counter, scripted, console) -> None:
    loop = SessionLoop(registry, scripted([]), debug=True)

    with pytest.raises(EOFError):
        loop.simulate("counter")

    text = console.export_text()
    assert "Message groups" in text
    assert "get_count" in text


def test_corrupt_state_is_reported_and_the_loop_continues(tmp_path: Path, registry, write_module, scripted) -> None:
    registry.install(Artifact(path=write_module(tmp_path / "raw.wasm"), address="raw"))
    loop = SessionLoop(registry, scripted(["handle", '{"count":"x"}', "handle", '{"increment":{}}', "query"]))

    loop.step("raw")
    outcome = loop.step("raw")

    assert "stored count is not a number" in json.loads(outcome.result)["error"]
    # the next prompt is still served
    with pytest.raises(EOFError):
        loop.step("raw")


def test_unexpected_call_failure_becomes_an_error_result(registry, counter, scripted, console, monkeypatch) -> None:
    def explode(address, entry_point, payload):
        raise RuntimeError("engine crashed")

    monkeypatch.setattr(registry, "call", explode)
    loop = SessionLoop(registry, scripted(["handle"]))

    outcome = loop.step("counter")

    assert isinstance(outcome, Dispatched)
    assert json.loads(outcome.result) == {"error": "engine crashed"}
    assert "engine crashed" in console.export_text()
