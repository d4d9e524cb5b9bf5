"""
VirtualType and Param schemas.

A VirtualType is the declared type of an apparatus argument or return value:
a free-form type name plus an optional flag and a description. It is advisory;
the interpreter tags values with it but never checks them against it.

A Param is a runtime value tagged with its VirtualType. Registers in the Env
hold Params.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

# Register address in the register machine (e.g., "r0", "r1")
Address = str

# Variable name used in apparatus arguments or return values
VariableName = str


@dataclass(frozen=True)
class VirtualType:
    """
    Type descriptor for apparatus arguments and return values.

    Attributes:
        type: Type name (e.g., "string", "number", "image[]")
        optional: Whether the value may be absent; None means undeclared
        description: Human-readable description of the value
    """
    type: str
    optional: Optional[bool] = None
    description: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.type, str) or not self.type:
            raise ValueError("VirtualType requires a non-empty 'type'")

    def format(self, name: str) -> str:
        """Format as `name: type?` with an optional trailing description."""
        # Undeclared optionality renders as optional, matching planner prompts
        is_optional = self.optional if self.optional is not None else True
        suffix = f" ({self.description})" if self.description else ""
        return f"{name}: {self.type}{'?' if is_optional else ''}{suffix}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON/YAML output."""
        result: dict[str, Any] = {"type": self.type}
        if self.optional is not None:
            result["optional"] = self.optional
        if self.description is not None:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VirtualType":
        """Deserialize from dictionary."""
        return cls(
            type=data["type"],
            optional=data.get("optional"),
            description=data.get("description"),
        )


VirtualTypeSpec = Union[VirtualType, str, dict]

ANY = VirtualType(type="any")
STRING = VirtualType(type="string")
BINARY = VirtualType(type="binary")


def as_virtual_type(spec: VirtualTypeSpec) -> VirtualType:
    """
    Coerce a spec into a VirtualType.

    Accepts a VirtualType, a bare type name ("string"), or a dict
    ({"type": "string", "description": "..."}).

    Raises:
        ValueError: If the spec cannot be interpreted
    """
    if isinstance(spec, VirtualType):
        return spec
    if isinstance(spec, str):
        return VirtualType(type=spec)
    if isinstance(spec, dict):
        if "type" not in spec:
            raise ValueError(f"VirtualType spec is missing 'type': {spec}")
        return VirtualType.from_dict(spec)
    raise ValueError(f"Invalid VirtualType spec: {spec!r}")


def as_type_table(specs: Optional[dict[str, VirtualTypeSpec]]) -> Optional[dict[str, VirtualType]]:
    """Coerce a mapping of variable name to VirtualType spec; None passes through."""
    if specs is None:
        return None
    if not isinstance(specs, dict):
        raise ValueError(f"Type declaration must be a mapping, got {type(specs).__name__}")
    return {name: as_virtual_type(spec) for name, spec in specs.items()}


@dataclass(frozen=True)
class Param:
    """
    A runtime value tagged with its declared VirtualType.

    Attributes:
        type: The declared type of the value
        value: The value itself
    """
    type: VirtualType
    value: Any

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary; binary values are summarized by length."""
        value = self.value
        if isinstance(value, (bytes, bytearray)):
            value = f"<{len(value)} bytes>"
        return {"type": self.type.to_dict(), "value": value}
