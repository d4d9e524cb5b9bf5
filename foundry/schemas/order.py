"""
Order schema - the external request that seeds a run.
"""

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class Order:
    """
    A user request: prompt text plus optional file attachments.

    Attributes:
        text: The request text, bound to the Ingress prompt register
        files: Binary attachments, bound in order to the Ingress file registers
    """
    text: str
    files: tuple[bytes, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.text, str):
            raise ValueError(f"Order text must be a string, got {type(self.text).__name__}")
        # Accept lists from callers but store an immutable tuple
        object.__setattr__(self, "files", tuple(self.files))
        for i, f in enumerate(self.files):
            if not isinstance(f, (bytes, bytearray)):
                raise ValueError(f"Order file {i} must be bytes, got {type(f).__name__}")

    def explain(self) -> str:
        """Describe the order: its text plus an attachment count when files are present."""
        count = len(self.files)
        if count == 0:
            return self.text
        noun = "1 file" if count == 1 else f"{count} files"
        return f"{self.text}\n\n({noun} attached)"

    @classmethod
    def of(cls, value: Union["Order", str, dict[str, Any]]) -> "Order":
        """Build an Order from an Order, a bare string, or a {text, files} mapping."""
        if isinstance(value, Order):
            return value
        if isinstance(value, str):
            return cls(text=value)
        if isinstance(value, dict):
            return cls(text=value.get("text"), files=tuple(value.get("files") or ()))
        raise ValueError(f"Cannot build an Order from {type(value).__name__}")
