"""
Medium schemas - the execution trace of a run.

StepRecord captures one transition: which node ran, when, what it read and
what it wrote. Medium is the append-only list of StepRecords for one run.
Listeners are notified as records arrive; a failing listener is logged and
otherwise ignored, so tracing can never fault a run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterator, Optional

from .operations import OperationKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepRecord:
    """
    The record of a single transition.

    Attributes:
        step: Step number within the run (0 for Ingress)
        node_ref: Name of the node that ran ("ingress" for the entry point)
        kind: Operation variant of the node
        started_at: When the node started
        ended_at: When the node finished
        inputs: Snapshot of the values read, keyed by variable name or output field
        outputs: Snapshot of the values written, keyed by register address
        branch: Verdict taken by a Switch node, None for other kinds
        next: Name of the successor node, None at Egress
    """
    step: int
    node_ref: str
    kind: OperationKind
    started_at: datetime
    ended_at: datetime
    inputs: dict[str, Any] = field(default_factory=dict)
    outputs: dict[str, Any] = field(default_factory=dict)
    branch: Optional[bool] = None
    next: Optional[str] = None

    @property
    def duration_ms(self) -> int:
        """Execution duration in milliseconds."""
        delta = self.ended_at - self.started_at
        return int(delta.total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {
            "step": self.step,
            "node_ref": self.node_ref,
            "kind": self.kind.value,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "inputs": self.inputs,
            "outputs": self.outputs,
        }
        if self.branch is not None:
            result["branch"] = self.branch
        if self.next is not None:
            result["next"] = self.next
        return result


StepListener = Callable[[StepRecord], None]


class Medium:
    """
    Append-only trace of a run's steps.

    Usage:
        medium = Medium(listeners=[lambda rec: print(rec.node_ref)])
        medium.record(step_record)
        [r.node_ref for r in medium]
    """

    def __init__(self, listeners: Optional[list[StepListener]] = None, enabled: bool = True):
        self._records: list[StepRecord] = []
        self._listeners: list[StepListener] = list(listeners or [])
        self.enabled = enabled

    def record(self, entry: StepRecord) -> None:
        """Append a record and notify listeners. Never raises."""
        if not self.enabled:
            return
        self._records.append(entry)
        for listener in self._listeners:
            try:
                listener(entry)
            except Exception as e:
                logger.warning(
                    f"Trace listener failed on step {entry.step} ({entry.node_ref}): {e}",
                    exc_info=True,
                )

    def add_listener(self, listener: StepListener) -> None:
        self._listeners.append(listener)

    @property
    def records(self) -> tuple[StepRecord, ...]:
        return tuple(self._records)

    def node_refs(self) -> list[str]:
        """Visited node names in order."""
        return [r.node_ref for r in self._records]

    def __iter__(self) -> Iterator[StepRecord]:
        return iter(tuple(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def to_dict(self) -> dict[str, Any]:
        return {"steps": [r.to_dict() for r in self._records]}
