"""
Fault classes for foundry execution.

Every fault aborts only the current run, never the host process:
- ValidationFault: a Foundry could not be constructed (bad apparatus contract)
- StructuralFault: an Alignment failed pre-execution validation
- UnknownApparatus: an operation names an apparatus absent from the Foundry
- UnboundRegister: a node reads an Address never written this run
- DanglingReference: a successor edge names a nonexistent node
- StepLimitExceeded: the step counter reached the configured ceiling
- TimeoutExceeded: the wall-clock budget was exhausted
- Cancelled: caller-initiated cancellation observed at a transition boundary
- ApparatusFailure: the invoked processor/switcher itself errored
- BlueprintFault: the external planner failed to produce an Alignment

Error handling contract:
- Faults are exceptions inside the engine
- The interpreter catches them at the run boundary and returns them in a RunResult
- The interpreter never retries; retries belong inside the Alignment
"""

from typing import Optional


class FoundryError(Exception):
    """Base exception for foundry."""

    def __init__(self, message: str, node: Optional[str] = None):
        self.node = node
        super().__init__(message)


class ValidationFault(FoundryError):
    """
    Foundry construction failed.

    Raised for duplicate apparatus names and malformed contracts
    (missing name, missing type declarations, non-callable function).
    """
    pass


class StructuralFault(FoundryError):
    """
    Alignment is structurally invalid.

    Examples:
    - No Ingress, or more than one
    - No Egress
    - Two operations share a name
    - A successor edge names no node
    """
    pass


class UnknownApparatus(FoundryError):
    """A Process/Switch names an apparatus absent from the Foundry."""
    pass


class UnboundRegister(FoundryError):
    """A node read an Address that was never written this run."""

    def __init__(self, address: str, node: Optional[str] = None):
        self.address = address
        where = f" (node '{node}')" if node else ""
        super().__init__(f'No value found at load address "{address}"{where}', node=node)


class DanglingReference(FoundryError):
    """A successor edge names a nonexistent node at runtime."""

    def __init__(self, target: str, node: Optional[str] = None):
        self.target = target
        super().__init__(f'No operation found for name "{target}"', node=node)


class StepLimitExceeded(FoundryError):
    """The step counter reached the configured ceiling."""

    def __init__(self, limit: int, node: Optional[str] = None):
        self.limit = limit
        super().__init__(f"Operation limit exceeded ({limit} steps)", node=node)


class TimeoutExceeded(FoundryError):
    """The run's wall-clock budget was exhausted."""

    def __init__(self, timeout_s: float, node: Optional[str] = None):
        self.timeout_s = timeout_s
        super().__init__(f"Run exceeded its {timeout_s}s budget", node=node)


class Cancelled(FoundryError):
    """The caller cancelled the run."""
    pass


class ApparatusFailure(FoundryError):
    """
    The invoked processor or switcher raised, or returned a malformed value.

    Wraps the original exception (available as `cause` and `__cause__`)
    together with the name of the node that invoked it.
    """

    def __init__(self, node: str, apparatus: str, cause: Exception):
        self.apparatus = apparatus
        self.cause = cause
        super().__init__(
            f"Operation '{node}' failed in apparatus '{apparatus}': {cause}",
            node=node,
        )


class BlueprintFault(FoundryError):
    """The blueprint planner raised or returned something other than an Alignment."""
    pass
