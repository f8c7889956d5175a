from __future__ import annotations

import argparse
import logging
import queue
import sys
from dataclasses import replace
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from cosmwasm_simulate.artifacts import discover_artifacts
from cosmwasm_simulate.config import SimulateConfig, load_config, load_dotenv
from cosmwasm_simulate.constants import ENGINE_MOCK, ENGINE_RUNNER, REST_BASE_PATH, SCRIPT_STARTUP_POLLS
from cosmwasm_simulate.editor import ScriptedSource, TerminalEditor, ValueSource
from cosmwasm_simulate.engine.base import Environment
from cosmwasm_simulate.engine.factory import create_engine
from cosmwasm_simulate.errors import LoadError
from cosmwasm_simulate.logging import EventLog, NullEventLog, default_run_id
from cosmwasm_simulate.registry import ContractRegistry
from cosmwasm_simulate.server import start_server
from cosmwasm_simulate.session import SessionLoop
from cosmwasm_simulate.utils import BinaryNotExecutableError, BinaryNotFoundError
from cosmwasm_simulate.watcher import ArtifactWatcher

logger = logging.getLogger(__name__)
console = Console(highlight=False)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="cosmwasm-simulate",
        description="Interactive harness for calling smart-contract modules in a local sandbox",
    )
    p.add_argument("run", metavar="RUN", type=Path, help="Contract artifact (*.wasm); its file stem is the address")
    p.add_argument("port", metavar="PORT", type=int, nargs="?", default=None, help="Serve the HTTP call API on PORT")
    p.add_argument(
        "-c",
        "--contract",
        metavar="FOLDER",
        default=None,
        help="Folder (relative to RUN's directory) holding {address}/{address}.wasm artifacts to load as well",
    )
    p.add_argument("--engine", choices=[ENGINE_RUNNER, ENGINE_MOCK], default=None)
    p.add_argument("--runner-bin", type=Path, default=None, help="Sandbox runner binary (runner engine)")
    p.add_argument("--sender", type=str, default=None, help="Simulated sender address for every call")
    p.add_argument("--script", type=Path, default=None, help="Read answers from FILE instead of the terminal")
    p.add_argument("--env-file", type=Path, default=Path(".env"))
    p.add_argument("--log-dir", type=Path, default=None, help="Write JSONL run events under DIR")
    return p


def _apply_args(config: SimulateConfig, args: argparse.Namespace) -> SimulateConfig:
    changes: dict[str, object] = {}
    if args.engine:
        changes["engine"] = args.engine
    if args.runner_bin:
        changes["runner_bin"] = args.runner_bin
    if args.sender:
        changes["sender"] = args.sender
    if args.log_dir:
        changes["log_dir"] = args.log_dir
    return replace(config, **changes) if changes else config


def _wait_until_ready(watcher: ArtifactWatcher, poll_interval_s: float, *, scripted: bool) -> str | None:
    """
    Block until the watcher has registered a first contract and return its address.

    Interactive runs wait until interrupted; scripted runs give up (None)
    after a few poll intervals.
    """
    waited = 0
    while True:
        try:
            return watcher.ready.get(timeout=poll_interval_s)
        except queue.Empty:
            waited += 1
        if waited == 1:
            console.print("[yellow]Waiting for a loadable artifact...[/yellow]")
        if scripted and waited >= SCRIPT_STARTUP_POLLS:
            return None


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = _apply_args(load_config(load_dotenv(args.env_file)), args)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1

    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        artifacts = discover_artifacts(args.run.expanduser(), args.contract)
    except LoadError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        return 1

    try:
        engine = create_engine(config)
    except (BinaryNotFoundError, BinaryNotExecutableError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1

    events: EventLog | NullEventLog = NullEventLog()
    if config.log_dir is not None:
        events = EventLog(base_dir=config.log_dir, run_id=default_run_id(prefix="simulate"))
        events.write_run_metadata(
            {
                "artifacts": [{"address": a.address, "path": str(a.path)} for a in artifacts],
                "sender": config.sender,
                "engine": config.engine,
                "chain_id": config.chain_id,
                "argv": sys.argv if argv is None else argv,
            }
        )

    registry = ContractRegistry(
        engine=engine,
        sender=config.sender,
        environment=Environment(contract_address="", sender=config.sender, chain_id=config.chain_id),
        events=events,
    )

    if args.port is not None:
        start_server(registry, args.port, config.host)
        if config.debug:
            console.print(f"Call API at http://{config.host}:{args.port}{REST_BASE_PATH}/contract/")

    watcher = ArtifactWatcher(
        registry,
        artifacts,
        poll_interval_s=config.poll_interval_s,
        reload_delay_s=config.reload_delay_s,
        events=events,
    )
    stop = watcher.start()

    source: ValueSource
    if args.script is not None:
        source = ScriptedSource.from_file(args.script, console)
    else:
        source = TerminalEditor(console)

    try:
        first = _wait_until_ready(watcher, config.poll_interval_s, scripted=args.script is not None)
        if first is None:
            console.print("[red]No artifact could be installed[/red]")
            return 1
        for entry in [config.sender, *registry.addresses()]:
            source.add_input_history(entry)
        SessionLoop(registry, source, debug=config.debug).run_forever(first)
    except (KeyboardInterrupt, EOFError):
        console.print()
        return 0
    finally:
        stop.set()
        close = getattr(engine, "close", None)
        if callable(close):
            close()

    # The active contract disappeared
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
