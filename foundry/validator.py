"""
Validator - structural checks an Alignment must pass before it runs.

Alignments come from outside the engine (a planner, a file, a test), so they
are revalidated rather than trusted:
- every element is one of the four operation variants
- exactly one Ingress
- at least one Egress
- node names are unique (the first occurrence is not silently preferred)
- every successor edge names an existing Process, Switch or Egress
- every Process names a registered processor, every Switch a registered switcher

Cycles are legal (a Switch may loop back to retry); the interpreter's step
ceiling bounds them instead.
"""

import logging
from typing import Optional

from foundry.errors import StructuralFault, UnknownApparatus
from foundry.registry import Foundry
from foundry.schemas import (
    Alignment,
    EgressOperation,
    IngressOperation,
    ProcessOperation,
    SwitchOperation,
    node_ref,
)

logger = logging.getLogger(__name__)

OPERATION_TYPES = (IngressOperation, ProcessOperation, SwitchOperation, EgressOperation)


def _check_operation_types(alignment: Alignment) -> None:
    if not isinstance(alignment.operations, (tuple, list)):
        raise StructuralFault(
            f"Alignment operations must be a sequence, got {type(alignment.operations).__name__}"
        )
    for i, op in enumerate(alignment.operations):
        if not isinstance(op, OPERATION_TYPES):
            raise StructuralFault(
                f"Alignment operation {i} is not an operation: {type(op).__name__}"
            )


def _check_entry_and_exits(alignment: Alignment) -> None:
    ingresses = alignment.ingresses
    if not ingresses:
        raise StructuralFault("Alignment has no ingress operation")
    if len(ingresses) > 1:
        raise StructuralFault(
            f"Alignment must have exactly one ingress operation, found {len(ingresses)}"
        )
    if not alignment.egresses:
        raise StructuralFault("Alignment has no egress operation")


def _check_unique_names(alignment: Alignment) -> None:
    seen: set[str] = set()
    duplicates: list[str] = []
    for name in alignment.names():
        if name in seen and name not in duplicates:
            duplicates.append(name)
        seen.add(name)
    if duplicates:
        raise StructuralFault(f"Duplicate operation names: {duplicates}")


def _check_references(alignment: Alignment) -> None:
    names = set(alignment.names())
    for op in alignment.operations:
        for target in op.successors:
            if target not in names:
                raise StructuralFault(
                    f"Operation '{node_ref(op)}' references unknown node '{target}'",
                    node=node_ref(op),
                )


def _check_apparatuses(alignment: Alignment, foundry: Foundry) -> None:
    for op in alignment.internal_operations:
        if isinstance(op, ProcessOperation):
            foundry.lookup_processor(op.apparatus, node=op.name)
        elif isinstance(op, SwitchOperation):
            foundry.lookup_switcher(op.apparatus, node=op.name)


def reachable_names(alignment: Alignment) -> set[str]:
    """Names of the nodes reachable from the Ingress by following successor edges."""
    ingress = alignment.ingress
    if ingress is None:
        return set()
    seen: set[str] = set()
    frontier = list(ingress.successors)
    while frontier:
        name = frontier.pop()
        if name in seen:
            continue
        op = alignment.get(name)
        if op is None:
            continue
        seen.add(name)
        frontier.extend(op.successors)
    return seen


def validate_alignment(alignment: Alignment, foundry: Optional[Foundry] = None) -> None:
    """
    Check an Alignment's whole-program invariants.

    Args:
        alignment: The Alignment to check
        foundry: When given, apparatus names are resolved against it

    Raises:
        StructuralFault: If the program graph is malformed
        UnknownApparatus: If an operation names an apparatus the Foundry lacks
    """
    if not isinstance(alignment, Alignment):
        raise StructuralFault(f"Expected an Alignment, got {type(alignment).__name__}")

    _check_operation_types(alignment)
    _check_entry_and_exits(alignment)
    _check_unique_names(alignment)
    _check_references(alignment)
    if foundry is not None:
        _check_apparatuses(alignment, foundry)

    unreachable = set(alignment.names()) - reachable_names(alignment)
    if unreachable:
        logger.debug(f"Alignment has unreachable operations: {sorted(unreachable)}")


def is_valid(alignment: Alignment, foundry: Optional[Foundry] = None) -> bool:
    """Return True when validate_alignment would pass."""
    try:
        validate_alignment(alignment, foundry)
    except (StructuralFault, UnknownApparatus):
        return False
    return True
