"""
Env - the register file of one run.

Addresses are opaque register names. A write replaces whatever the address
held before; there is no delete. An Env is created empty for each run, is
mutated only by the interpreter, and is never shared between runs.
"""

from typing import Any, Iterator, Optional

from foundry.errors import UnboundRegister
from foundry.schemas import Address, Param


class Env:
    """Mutable Address -> Param mapping owned by a single run."""

    def __init__(self) -> None:
        self._registers: dict[Address, Param] = {}

    def write(self, address: Address, param: Param) -> None:
        """Store a Param at an address, overwriting any earlier value."""
        self._registers[address] = param

    def read(self, address: Address, node: Optional[str] = None) -> Param:
        """
        Load the Param at an address.

        Raises:
            UnboundRegister: If the address was never written this run
        """
        try:
            return self._registers[address]
        except KeyError:
            raise UnboundRegister(address, node=node) from None

    def gather(self, table: dict[str, Address], node: Optional[str] = None) -> dict[str, Param]:
        """
        Read every address of a name table.

        Returns a mapping of the table's names to the Params found. Fails on
        the first unbound address, in table order.
        """
        return {name: self.read(address, node=node) for name, address in table.items()}

    def snapshot(self) -> dict[Address, Any]:
        """Plain-value copy of the registers, for traces and diagnostics."""
        return {address: param.value for address, param in self._registers.items()}

    def __contains__(self, address: object) -> bool:
        return address in self._registers

    def __len__(self) -> int:
        return len(self._registers)

    def __iter__(self) -> Iterator[Address]:
        return iter(list(self._registers))

    def __repr__(self) -> str:
        return f"Env({sorted(self._registers)})"
