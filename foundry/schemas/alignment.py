"""
Alignment schema - the program the interpreter runs.

An Alignment is produced externally (by a blueprint planner, a definition
file, or a test) and owns an ordered tuple of Operations. Construction only
checks each operation's own fields; whole-program invariants (one Ingress,
at least one Egress, unique names, resolvable edges and apparatuses) are
checked by foundry.validator before execution.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from foundry.errors import StructuralFault

from .operations import (
    EgressOperation,
    IngressOperation,
    InternalOperation,
    NamedOperation,
    Operation,
    ProcessOperation,
    SwitchOperation,
    find_operation,
    operation_from_dict,
)


@dataclass(frozen=True)
class Alignment:
    """
    A sequence of operations that turns an Order into an output record.

    Attributes:
        operations: Ordered operations forming the program graph
        user_request: The planner's restatement of the user's request
        analysis: The planner's analysis of the request
        rationale: The planner's reasoning for this composition
        alignment_id: Identifier when loaded from a definitions directory
    """
    operations: tuple[Operation, ...] = field(default_factory=tuple)
    user_request: str = ""
    analysis: str = ""
    rationale: str = ""
    alignment_id: Optional[str] = None

    @property
    def ingresses(self) -> tuple[IngressOperation, ...]:
        return tuple(op for op in self.operations if isinstance(op, IngressOperation))

    @property
    def ingress(self) -> Optional[IngressOperation]:
        """The entry point, or None when the Alignment has none."""
        found = self.ingresses
        return found[0] if found else None

    @property
    def egresses(self) -> tuple[EgressOperation, ...]:
        return tuple(op for op in self.operations if isinstance(op, EgressOperation))

    @property
    def internal_operations(self) -> tuple[InternalOperation, ...]:
        return tuple(
            op for op in self.operations
            if isinstance(op, (ProcessOperation, SwitchOperation))
        )

    def get(self, name: str) -> Optional[NamedOperation]:
        """
        Find an addressable operation by name.

        When names are duplicated the first occurrence wins; validation
        rejects such Alignments before they run.
        """
        return find_operation(self.operations, name)

    def names(self) -> list[str]:
        """Names of all addressable operations, in program order."""
        return [
            op.name for op in self.operations
            if not isinstance(op, IngressOperation)
        ]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON/YAML output."""
        result: dict[str, Any] = {}
        if self.alignment_id is not None:
            result["alignment_id"] = self.alignment_id
        result.update({
            "user_request": self.user_request,
            "analysis": self.analysis,
            "rationale": self.rationale,
            "operations": [op.to_dict() for op in self.operations],
        })
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Alignment":
        """
        Deserialize from dictionary.

        Raises:
            StructuralFault: If the data is not a mapping or an operation is malformed
        """
        if not isinstance(data, dict):
            raise StructuralFault(f"Alignment must be a mapping, got {type(data).__name__}")

        operations = data.get("operations", [])
        if not isinstance(operations, list):
            raise StructuralFault("Alignment 'operations' must be a list")

        return cls(
            operations=tuple(operation_from_dict(op) for op in operations),
            user_request=data.get("user_request", ""),
            analysis=data.get("analysis", ""),
            rationale=data.get("rationale", ""),
            alignment_id=data.get("alignment_id"),
        )
