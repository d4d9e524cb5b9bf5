"""
foundry.schemas - Data model for the alignment engine.

Order -> Alignment (Operations) -> Env of Params -> output record, with a Medium trace

Lifecycle:
1. Order: the external request (text + files) that seeds a run
2. Alignment: ordered Operations produced externally, validated before execution
3. Param: a register value tagged with its declared VirtualType
4. StepRecord / Medium: append-only trace of the transitions of one run
"""

from .virtual_type import (
    Address,
    VariableName,
    VirtualType,
    Param,
    as_virtual_type,
    as_type_table,
)
from .operations import (
    OperationKind,
    Operation,
    InternalOperation,
    NamedOperation,
    IngressOperation,
    ProcessOperation,
    SwitchOperation,
    EgressOperation,
    MAX_INGRESS_FILES,
    DEFAULT_EGRESS_NAME,
    node_ref,
    operation_from_dict,
)
from .alignment import Alignment
from .order import Order
from .medium import Medium, StepRecord

__all__ = [
    # Types
    "Address",
    "VariableName",
    "VirtualType",
    "Param",
    "as_virtual_type",
    "as_type_table",
    # Operations
    "OperationKind",
    "Operation",
    "InternalOperation",
    "NamedOperation",
    "IngressOperation",
    "ProcessOperation",
    "SwitchOperation",
    "EgressOperation",
    "MAX_INGRESS_FILES",
    "DEFAULT_EGRESS_NAME",
    "node_ref",
    "operation_from_dict",
    # Program
    "Alignment",
    "Order",
    # Trace
    "Medium",
    "StepRecord",
]
