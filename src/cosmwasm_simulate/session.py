"""
Interactive call loop against one active contract.

Each step walks: choose a call type, choose a message variant, collect its
fields, dispatch through the registry and print the result. When several
contracts are registered the call type prompt also offers ``switch``, which
hands control back to `run_forever` with a different active address.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cosmwasm_simulate.constants import ENTRY_POINTS, ROOT_MESSAGES, SWITCH_COMMAND
from cosmwasm_simulate.editor import ValueSource
from cosmwasm_simulate.errors import NoSuchContract
from cosmwasm_simulate.message import build_message
from cosmwasm_simulate.registry import ContractRegistry
from cosmwasm_simulate.schema import TypeSchema
from cosmwasm_simulate.utils import log_exception

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dispatched:
    entry_point: str
    payload: str
    result: str


@dataclass(frozen=True)
class SwitchTo:
    address: str


StepOutcome = Dispatched | SwitchTo | None


class SessionLoop:
    def __init__(self, registry: ContractRegistry, source: ValueSource, *, debug: bool = False) -> None:
        self.registry = registry
        self.source = source
        self.debug = debug

    @property
    def console(self) -> Console:
        return self.source.console

    def run_forever(self, address: str) -> None:
        """Serve `address`, following switches, until the active contract disappears."""
        active: str | None = address
        while active is not None:
            active = self.simulate(active)

    def simulate(self, address: str) -> str | None:
        """
        Loop on `address` until the operator switches away or it disappears.

        Returns:
            The address switched to, or None when the active contract is no
            longer registered.
        """
        instance = self.registry.get(address)
        if self.debug and instance is not None and instance.schema is not None:
            self.print_schema(instance.schema)

        while True:
            try:
                outcome = self.step(address)
            except NoSuchContract as e:
                self.console.print(f"[red]{escape(e.message)}[/red]")
                return None
            if isinstance(outcome, SwitchTo):
                return outcome.address

    def step(self, address: str) -> StepOutcome:
        """
        Run one pass of the call loop.

        The instance is looked up afresh so hot reloads are picked up.

        Raises:
            NoSuchContract: If `address` is no longer registered.
        """
        instance = self.registry.get(address)
        if instance is None:
            raise NoSuchContract(address)

        call_type = self._choose_call_type(address)
        if call_type == SWITCH_COMMAND:
            return self._choose_contract(address)

        if instance.raw_json_mode:
            self.source.announce("Input json string:")
            payload = self.source.read(store_input=True)
        else:
            assert instance.schema is not None
            payload = self._compose(instance.schema, call_type)

        try:
            result = self.registry.call(address, call_type, payload)
        except NoSuchContract:
            raise
        except Exception as e:
            log_exception("Session call failed", {"address": address, "entry_point": call_type})
            result = json.dumps({"error": str(e)})
        self.console.print(f"[green]{escape(call_type)}[/green] result: {escape(result)}")
        return Dispatched(entry_point=call_type, payload=payload, result=result)

    def _choose_call_type(self, address: str) -> str:
        offered = list(ENTRY_POINTS)
        if len(self.registry) > 1:
            offered.append(SWITCH_COMMAND)
        menu = " | ".join(f"[green]{c}[/green]" for c in offered)

        while True:
            self.source.set_suggestions(offered)
            self.source.announce(f"\\[[green]{escape(address)}[/green]] Input call type ({menu}):")
            call_type = self.source.read(store_input=False)
            if call_type in offered:
                return call_type
            self.console.print(f"[red]Unsupported call type: {escape(call_type)}[/red]")

    def _choose_contract(self, active: str) -> SwitchTo | None:
        addresses = self.registry.addresses()
        self.source.set_suggestions(addresses)
        self.source.announce("Input contract address:")
        for addr in addresses:
            marker = " (active)" if addr == active else ""
            self.console.print(f"  [green]{escape(addr)}[/green]{marker}")

        target = self.source.read(store_input=False)
        if target not in self.registry:
            self.console.print(f"[red]{escape(NoSuchContract(target).message)}[/red]")
            return None
        if target == active:
            return None
        logger.debug(f"Switching active contract {active} -> {target}")
        return SwitchTo(target)

    def _choose_name(self, title: str, names: list[str]) -> str:
        while True:
            self.source.set_suggestions(names)
            self.source.announce(f"{title} ({' | '.join(f'[green]{escape(n)}[/green]' for n in names)}):")
            name = self.source.read(store_input=False)
            if name in names:
                return name
            self.console.print(f"[red]Unknown name: {escape(name)}[/red]")

    def _root_group(self, schema: TypeSchema, call_type: str) -> str:
        for candidate in ROOT_MESSAGES.get(call_type, ()):
            if schema.lookup_message_group(candidate) is not None:
                return candidate
        return self._choose_name("Input message type", schema.group_names())

    def _compose(self, schema: TypeSchema, call_type: str) -> str:
        group_name = self._root_group(schema, call_type)
        group = schema.lookup_message_group(group_name) or {}
        if not group:
            self.console.print(f"[yellow]{escape(group_name)} declares no variants[/yellow]")
            self.source.announce("Input json string:")
            return self.source.read(store_input=True)

        variants = sorted(group)
        variant = variants[0] if len(variants) == 1 else self._choose_name("Input message variant", variants)
        fields = group[variant]

        self.console.print(f"[bold]{escape(variant)}[/bold]")
        if not fields:
            self.console.print("  (no fields)")
        for field_name, type_name in fields:
            self.console.print(f"  [blue]{escape(field_name)}[/blue] : [yellow]{escape(type_name)}[/yellow]")

        self.source.restore_input_suggestions()
        return build_message(schema, variant, fields, schema.is_enum(group_name), self.source)

    def print_schema(self, schema: TypeSchema) -> None:
        groups = Table(title="Message groups", show_header=True)
        groups.add_column("Group", style="cyan")
        groups.add_column("Enum", width=5)
        groups.add_column("Variant", style="green")
        groups.add_column("Fields", style="dim")
        for name in schema.group_names():
            for variant, fields in sorted((schema.lookup_message_group(name) or {}).items()):
                rendered = ", ".join(f"{f}: {t}" for f, t in fields)
                groups.add_row(name, "yes" if schema.is_enum(name) else "no", variant, escape(rendered))
        self.console.print(groups)

        if schema.struct_defs:
            structs = Table(title="Structs", show_header=True)
            structs.add_column("Struct", style="cyan")
            structs.add_column("Members", style="dim")
            for name, members in sorted(schema.struct_defs.items()):
                structs.add_row(name, escape(", ".join(f"{f}: {t}" for f, t in members)))
            self.console.print(structs)

        if schema.base_type_aliases:
            aliases = Table(title="Type aliases", show_header=True)
            aliases.add_column("Alias", style="cyan")
            aliases.add_column("Primitive", style="yellow")
            for name, primitive in sorted(schema.base_type_aliases.items()):
                aliases.add_row(name, primitive)
            self.console.print(aliases)
