"""
Foundry - the apparatus registry.

The Foundry maps apparatus names to Processors and Switchers. It is built
once, validated at construction, and read-only thereafter, so any number of
runs may share it without locking.

Usage:
    foundry = Foundry.register(
        processors=[Processor(name="uppercase", ...)],
        switchers=[Switcher(name="is-long", ...)],
        description="Text utilities",
    )
    foundry.lookup("uppercase")
"""

import logging
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from foundry.apparatus import Apparatus, Processor, Switcher
from foundry.errors import UnknownApparatus, ValidationFault

logger = logging.getLogger(__name__)

ProcessorSpec = Union[Processor, Mapping[str, Any]]
SwitcherSpec = Union[Switcher, Mapping[str, Any]]


def _as_apparatus(spec: Any, cls: type) -> Apparatus:
    """Accept a ready apparatus or a mapping of its constructor fields."""
    if isinstance(spec, cls):
        return spec
    if isinstance(spec, Mapping):
        try:
            return cls(**spec)
        except TypeError as e:
            name = spec.get("name", "<unnamed>")
            raise ValidationFault(f"Malformed {cls.__name__.lower()} '{name}': {e}") from e
    raise ValidationFault(
        f"Expected {cls.__name__}, got {type(spec).__name__}"
    )


class Foundry:
    """
    Immutable registry of apparatuses, looked up by name.

    Names are unique across both kinds: a processor and a switcher cannot
    share a name.
    """

    def __init__(self, apparatuses: Mapping[str, Apparatus], description: str = ""):
        """
        Initialize from an already-validated name table.

        Prefer Foundry.register(), which validates its inputs.
        """
        self._apparatuses: Mapping[str, Apparatus] = MappingProxyType(dict(apparatuses))
        self._description = description

    @classmethod
    def register(
        cls,
        processors: Iterable[ProcessorSpec] = (),
        switchers: Iterable[SwitcherSpec] = (),
        description: str = "",
    ) -> "Foundry":
        """
        Build a Foundry from processor and switcher declarations.

        Args:
            processors: Processors, or mappings of Processor fields
            switchers: Switchers, or mappings of Switcher fields
            description: What this foundry is for (shown to planners)

        Returns:
            The validated Foundry

        Raises:
            ValidationFault: On a duplicate name or a malformed contract
        """
        table: dict[str, Apparatus] = {}
        candidates = [
            *(_as_apparatus(p, Processor) for p in processors),
            *(_as_apparatus(s, Switcher) for s in switchers),
        ]
        for apparatus in candidates:
            if apparatus.name in table:
                raise ValidationFault(f"Duplicate apparatus name: {apparatus.name}")
            table[apparatus.name] = apparatus

        logger.debug(
            f"Registered foundry with {len(table)} apparatuses: {sorted(table)}"
        )
        return cls(table, description=description)

    @property
    def description(self) -> str:
        return self._description

    def lookup(self, name: str) -> Apparatus:
        """
        Get an apparatus by name.

        Raises:
            UnknownApparatus: If no apparatus is registered under this name
        """
        apparatus = self._apparatuses.get(name)
        if apparatus is None:
            raise UnknownApparatus(
                f'No apparatus found for name "{name}". '
                f"Registered: {list(self._apparatuses)}"
            )
        return apparatus

    def lookup_processor(self, name: str, node: Optional[str] = None) -> Processor:
        """
        Get a processor by name.

        Raises:
            UnknownApparatus: If the name is absent or registered as a switcher
        """
        apparatus = self._apparatuses.get(name)
        if not isinstance(apparatus, Processor):
            raise UnknownApparatus(f'No processor found for opcode "{name}"', node=node)
        return apparatus

    def lookup_switcher(self, name: str, node: Optional[str] = None) -> Switcher:
        """
        Get a switcher by name.

        Raises:
            UnknownApparatus: If the name is absent or registered as a processor
        """
        apparatus = self._apparatuses.get(name)
        if not isinstance(apparatus, Switcher):
            raise UnknownApparatus(f'No switcher found for opcode "{name}"', node=node)
        return apparatus

    def has(self, name: str) -> bool:
        return name in self._apparatuses

    def names(self) -> list[str]:
        """All registered apparatus names, in registration order."""
        return list(self._apparatuses)

    @property
    def processors(self) -> list[Processor]:
        return [a for a in self._apparatuses.values() if isinstance(a, Processor)]

    @property
    def switchers(self) -> list[Switcher]:
        return [a for a in self._apparatuses.values() if isinstance(a, Switcher)]

    def __len__(self) -> int:
        return len(self._apparatuses)

    def __contains__(self, name: object) -> bool:
        return name in self._apparatuses

    def explain(self) -> str:
        """
        Render a markdown description of the foundry.

        This is the catalogue a blueprint planner is prompted with: the
        foundry description followed by every processor and switcher with
        its opcode and type contract.
        """
        processors = "\n".join(
            f"### 2-{i}. {p.name}\n\n{p.explain()}\n"
            for i, p in enumerate(self.processors, start=1)
        )
        switchers = "\n".join(
            f"### 3-{i}. {s.name}\n\n{s.explain()}\n"
            for i, s in enumerate(self.switchers, start=1)
        )
        return (
            f"## 1. Foundry Description\n\n{self._description}\n\n"
            f"## 2. Processors\n\n{processors}\n"
            f"## 3. Switchers\n\n{switchers}\n"
        )

    def __repr__(self) -> str:
        return f"Foundry(processors={len(self.processors)}, switchers={len(self.switchers)})"
