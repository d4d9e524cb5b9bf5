"""
Operation schemas - the nodes of an Alignment.

Operations form a closed sum of four variants:
- IngressOperation: entry point, binds the Order's text and files to registers
- ProcessOperation: runs a processor, then continues to `next`
- SwitchOperation: runs a switcher, then branches on its verdict
- EgressOperation: exit point, maps registers to named output fields

Process, Switch and Egress nodes are addressable by name; Ingress is not.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from foundry.errors import StructuralFault

from .virtual_type import Address, VariableName

# Number of file attachments an Ingress can bind
MAX_INGRESS_FILES = 5

# Name an Egress takes when none is given, so `next: egress` reaches it
DEFAULT_EGRESS_NAME = "egress"


class OperationKind(str, Enum):
    """Discriminator for the operation variants."""
    INGRESS = "ingress"
    PROCESS = "process"
    SWITCH = "switch"
    EGRESS = "egress"


def _check_name(value: Any, what: str) -> None:
    if not isinstance(value, str) or not value:
        raise StructuralFault(f"{what} must be a non-empty string, got {value!r}")


def _check_table(table: Any, what: str) -> None:
    if not isinstance(table, dict):
        raise StructuralFault(f"{what} must be a mapping, got {type(table).__name__}")
    for var, addr in table.items():
        _check_name(var, f"{what} variable name")
        _check_name(addr, f"{what} address for '{var}'")


@dataclass(frozen=True)
class IngressOperation:
    """
    Entry point that assigns the Order's prompt and files to registers.

    Attributes:
        next: Name of the first node to run
        prompt_addr: Register receiving the Order's text
        file_addrs: Registers receiving file attachments, in order (at most five)
    """
    next: str
    prompt_addr: Address
    file_addrs: tuple[Address, ...] = ()

    kind = OperationKind.INGRESS

    def __post_init__(self):
        _check_name(self.next, "Ingress 'next'")
        _check_name(self.prompt_addr, "Ingress 'prompt_addr'")
        if len(self.file_addrs) > MAX_INGRESS_FILES:
            raise StructuralFault(
                f"Ingress binds at most {MAX_INGRESS_FILES} files, "
                f"got {len(self.file_addrs)}"
            )
        for addr in self.file_addrs:
            _check_name(addr, "Ingress file address")

    @property
    def successors(self) -> tuple[str, ...]:
        return (self.next,)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.kind.value,
            "next": self.next,
            "prompt_addr": self.prompt_addr,
        }
        if self.file_addrs:
            result["file_addrs"] = list(self.file_addrs)
        return result


@dataclass(frozen=True)
class ProcessOperation:
    """
    Runs a processor and continues to `next`.

    Attributes:
        name: Unique node name within the Alignment
        apparatus: Name of the processor to invoke
        inputs: Variable name -> register read before invocation
        outputs: Variable name -> register written from the result
        next: Name of the successor node
    """
    name: str
    apparatus: str
    next: str
    inputs: dict[VariableName, Address] = field(default_factory=dict)
    outputs: dict[VariableName, Address] = field(default_factory=dict)

    kind = OperationKind.PROCESS

    def __post_init__(self):
        _check_name(self.name, "Process 'name'")
        _check_name(self.apparatus, f"Process '{self.name}' apparatus")
        _check_name(self.next, f"Process '{self.name}' next")
        _check_table(self.inputs, f"Process '{self.name}' inputs")
        _check_table(self.outputs, f"Process '{self.name}' outputs")

    @property
    def successors(self) -> tuple[str, ...]:
        return (self.next,)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "name": self.name,
            "apparatus": self.apparatus,
            "inputs": dict(self.inputs),
            "outputs": dict(self.outputs),
            "next": self.next,
        }


@dataclass(frozen=True)
class SwitchOperation:
    """
    Runs a switcher and branches on its boolean verdict.

    Exactly one of the two branches is taken per evaluation: its output
    table is written and its successor becomes the next node.
    """
    name: str
    apparatus: str
    next_when_true: str
    next_when_false: str
    inputs: dict[VariableName, Address] = field(default_factory=dict)
    outputs_when_true: dict[VariableName, Address] = field(default_factory=dict)
    outputs_when_false: dict[VariableName, Address] = field(default_factory=dict)

    kind = OperationKind.SWITCH

    def __post_init__(self):
        _check_name(self.name, "Switch 'name'")
        _check_name(self.apparatus, f"Switch '{self.name}' apparatus")
        _check_name(self.next_when_true, f"Switch '{self.name}' next_when_true")
        _check_name(self.next_when_false, f"Switch '{self.name}' next_when_false")
        _check_table(self.inputs, f"Switch '{self.name}' inputs")
        _check_table(self.outputs_when_true, f"Switch '{self.name}' outputs_when_true")
        _check_table(self.outputs_when_false, f"Switch '{self.name}' outputs_when_false")

    @property
    def successors(self) -> tuple[str, ...]:
        return (self.next_when_true, self.next_when_false)

    def branch(self, verdict: bool) -> tuple[dict[VariableName, Address], str]:
        """Return (output table, successor name) for a verdict."""
        if verdict:
            return self.outputs_when_true, self.next_when_true
        return self.outputs_when_false, self.next_when_false

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "name": self.name,
            "apparatus": self.apparatus,
            "inputs": dict(self.inputs),
            "outputs_when_true": dict(self.outputs_when_true),
            "outputs_when_false": dict(self.outputs_when_false),
            "next_when_true": self.next_when_true,
            "next_when_false": self.next_when_false,
        }


@dataclass(frozen=True)
class EgressOperation:
    """
    Exit point that maps registers to output field names.

    Attributes:
        result: Output field name -> register read at exit
        name: Node name used by successor edges (default "egress")
    """
    result: dict[str, Address] = field(default_factory=dict)
    name: str = DEFAULT_EGRESS_NAME

    kind = OperationKind.EGRESS

    def __post_init__(self):
        _check_name(self.name, "Egress 'name'")
        _check_table(self.result, f"Egress '{self.name}' result")

    @property
    def successors(self) -> tuple[str, ...]:
        return ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "name": self.name,
            "result": dict(self.result),
        }


Operation = Union[IngressOperation, ProcessOperation, SwitchOperation, EgressOperation]
InternalOperation = Union[ProcessOperation, SwitchOperation]

# Operations reachable through successor edges
NamedOperation = Union[ProcessOperation, SwitchOperation, EgressOperation]


def node_ref(op: Operation) -> str:
    """Name used for an operation in traces and fault messages."""
    if isinstance(op, IngressOperation):
        return OperationKind.INGRESS.value
    return op.name


def _table(value: Any) -> Any:
    # Copy mappings so the operation never aliases caller data; anything
    # else is left for _check_table to reject.
    if value is None:
        return {}
    return dict(value) if isinstance(value, dict) else value


def _addresses(value: Any) -> tuple:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise StructuralFault(f"Ingress 'file_addrs' must be a list, got {type(value).__name__}")
    return tuple(value)


def operation_from_dict(data: dict[str, Any]) -> Operation:
    """
    Deserialize an operation from its dictionary form.

    The "type" key selects the variant.

    Raises:
        StructuralFault: If the type is unknown or required fields are missing
    """
    if not isinstance(data, dict):
        raise StructuralFault(f"Operation must be a mapping, got {type(data).__name__}")

    op_type = data.get("type")
    try:
        if op_type == OperationKind.INGRESS.value:
            return IngressOperation(
                next=data["next"],
                prompt_addr=data["prompt_addr"],
                file_addrs=_addresses(data.get("file_addrs")),
            )
        if op_type == OperationKind.PROCESS.value:
            return ProcessOperation(
                name=data["name"],
                apparatus=data["apparatus"],
                next=data["next"],
                inputs=_table(data.get("inputs")),
                outputs=_table(data.get("outputs")),
            )
        if op_type == OperationKind.SWITCH.value:
            return SwitchOperation(
                name=data["name"],
                apparatus=data["apparatus"],
                next_when_true=data["next_when_true"],
                next_when_false=data["next_when_false"],
                inputs=_table(data.get("inputs")),
                outputs_when_true=_table(data.get("outputs_when_true")),
                outputs_when_false=_table(data.get("outputs_when_false")),
            )
        if op_type == OperationKind.EGRESS.value:
            return EgressOperation(
                result=_table(data.get("result")),
                name=data.get("name", DEFAULT_EGRESS_NAME),
            )
    except KeyError as e:
        raise StructuralFault(f"{op_type} operation is missing field {e}") from e

    raise StructuralFault(f"Unknown operation type: {op_type!r}")


def find_operation(operations: "tuple[Operation, ...]", name: Optional[str]) -> Optional[NamedOperation]:
    """Find the first addressable operation with the given name."""
    for op in operations:
        if not isinstance(op, IngressOperation) and op.name == name:
            return op
    return None
