"""
Apparatus - the callable units an Alignment can invoke by name.

Two kinds exist:
- Processor: transforms its inputs into a mapping of named outputs
- Switcher: evaluates a predicate and returns (verdict, mapping of named outputs)

Apparatus contract:
- Functions receive a dict of variable name -> Param (the values read from registers)
- Processors return dict of variable name -> value
- Switchers return a (bool, dict of variable name -> value) pair
- Either may be a coroutine function; the interpreter awaits it
- Failures are exceptions; the interpreter wraps them in ApparatusFailure

Type declarations are advisory: they tag written registers and document the
apparatus for planners, but the interpreter does not enforce them.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from foundry.errors import ValidationFault
from foundry.schemas import Param, VariableName, VirtualType, as_type_table

Inputs = dict[VariableName, Param]
Outputs = dict[VariableName, Any]

ProcessFn = Callable[[Inputs], Union[Outputs, Awaitable[Outputs]]]
CheckFn = Callable[[Inputs], Union[tuple[bool, Outputs], Awaitable[tuple[bool, Outputs]]]]

TypeTable = dict[VariableName, VirtualType]


def _validate_name(name: Any, kind: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise ValidationFault(f"{kind} is missing a name")


def _coerce_types(value: Any, what: str) -> TypeTable:
    if value is None:
        raise ValidationFault(f"{what} is missing its type declaration")
    try:
        return as_type_table(value)
    except ValueError as e:
        raise ValidationFault(f"{what} has an invalid type declaration: {e}") from e


def _format_entries(types: TypeTable) -> str:
    if not types:
        return "None"
    return "\n" + "\n".join(f"  - {vt.format(name)}" for name, vt in types.items())


@dataclass(frozen=True)
class Processor:
    """
    A data transform registered under `name`.

    Attributes:
        name: Name used by Process operations to invoke this processor
        description: What the processor does (shown to planners)
        input_type: Declared arguments, variable name -> VirtualType
        output_type: Declared results, variable name -> VirtualType
        process: The transform function
    """
    name: str
    description: str
    input_type: TypeTable
    output_type: TypeTable
    process: ProcessFn

    def __post_init__(self):
        _validate_name(self.name, "Processor")
        object.__setattr__(self, "input_type", _coerce_types(self.input_type, f"Processor '{self.name}' input"))
        object.__setattr__(self, "output_type", _coerce_types(self.output_type, f"Processor '{self.name}' output"))
        if not callable(self.process):
            raise ValidationFault(f"Processor '{self.name}' has no callable 'process'")

    @property
    def kind(self) -> str:
        return "processor"

    def output_type_of(self, var: VariableName, verdict: Optional[bool] = None) -> Optional[VirtualType]:
        return self.output_type.get(var)

    def explain(self) -> str:
        """Markdown description of this processor."""
        return (
            f"{self.description}\n\n"
            f"- Opcode: `{self.name}`\n"
            f"- Arguments: {_format_entries(self.input_type)}\n"
            f"- Returns: {_format_entries(self.output_type)}"
        )


@dataclass(frozen=True)
class Switcher:
    """
    A boolean branching predicate registered under `name`.

    Attributes:
        name: Name used by Switch operations to invoke this switcher
        description: What the switcher decides (shown to planners)
        input_type: Declared arguments
        output_type_when_true: Declared results when the verdict is True
        output_type_when_false: Declared results when the verdict is False
        check: The predicate function
    """
    name: str
    description: str
    input_type: TypeTable
    output_type_when_true: TypeTable
    output_type_when_false: TypeTable
    check: CheckFn

    def __post_init__(self):
        _validate_name(self.name, "Switcher")
        object.__setattr__(self, "input_type", _coerce_types(self.input_type, f"Switcher '{self.name}' input"))
        object.__setattr__(
            self, "output_type_when_true",
            _coerce_types(self.output_type_when_true, f"Switcher '{self.name}' true-branch output"),
        )
        object.__setattr__(
            self, "output_type_when_false",
            _coerce_types(self.output_type_when_false, f"Switcher '{self.name}' false-branch output"),
        )
        if not callable(self.check):
            raise ValidationFault(f"Switcher '{self.name}' has no callable 'check'")

    @property
    def kind(self) -> str:
        return "switcher"

    def output_type_of(self, var: VariableName, verdict: Optional[bool] = None) -> Optional[VirtualType]:
        table = self.output_type_when_true if verdict else self.output_type_when_false
        return table.get(var)

    def explain(self) -> str:
        """Markdown description of this switcher."""
        return (
            f"{self.description}\n\n"
            f"- Opcode: `{self.name}`\n"
            f"- Arguments: {_format_entries(self.input_type)}\n"
            f"- Returns When True: {_format_entries(self.output_type_when_true)}\n"
            f"- Returns When False: {_format_entries(self.output_type_when_false)}"
        )


Apparatus = Union[Processor, Switcher]
