"""
Interpreter - the register machine that runs an Alignment.

The Interpreter implements:
- Pre-execution validation of the Alignment against the Foundry
- A transition loop from the Ingress to an Egress
- Dispatch of Process/Switch nodes to apparatuses by name
- Register reads/writes through a per-run Env
- Termination guards: step ceiling, wall-clock budget, cooperative cancellation
- An optional Medium trace of every transition

Execution flow:
1. Validate the Alignment (StructuralFault / UnknownApparatus, before any mutation)
2. Create a fresh OperationContext (Env, step counter, clock)
3. Starting at the Ingress, for each node:
   a. Check cancellation, the wall-clock budget and the step ceiling
   b. Ingress: bind the Order's text and files into registers
   c. Process: read inputs, invoke the processor, write outputs, go to `next`
   d. Switch: read inputs, invoke the switcher, write the taken branch's outputs,
      go to `next_when_true` or `next_when_false`
   e. Egress: read the result registers and assemble the output record
   f. Record a StepRecord, advance the step counter, resolve the successor
4. Return a RunResult holding either the output record or the fault

States are Running(node), Succeeded(output) and Faulted(fault). A fault stops
the run at the current node; registers written so far are kept in the result
for diagnostics. The interpreter never retries: a retry is a Switch looping
back inside the Alignment.

run() drives apparatuses synchronously (awaitables are resolved on a private
event loop); arun() awaits them on the caller's loop. Both walk the same
transitions.
"""

import asyncio
import copy
import inspect
import logging
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, Union

from foundry.apparatus import Apparatus, Processor
from foundry.config import FoundryConfig
from foundry.env import Env
from foundry.errors import (
    ApparatusFailure,
    BlueprintFault,
    Cancelled,
    DanglingReference,
    FoundryError,
    StepLimitExceeded,
    StructuralFault,
    TimeoutExceeded,
)
from foundry.registry import Foundry
from foundry.schemas import (
    Alignment,
    EgressOperation,
    IngressOperation,
    Medium,
    Operation,
    Order,
    Param,
    ProcessOperation,
    StepRecord,
    SwitchOperation,
    node_ref,
)
from foundry.schemas.medium import StepListener
from foundry.schemas.virtual_type import BINARY, STRING
from foundry.validator import validate_alignment

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def generate_run_id() -> str:
    """Generate an identifier for one run."""
    return uuid.uuid4().hex


class CancelHandle(Protocol):
    """Anything with is_set(), e.g. threading.Event or asyncio.Event."""

    def is_set(self) -> bool: ...


OrderLike = Union[Order, str, dict]
BeforeRunHook = Callable[[Alignment, Order], None]
AfterRunHook = Callable[["RunResult", Order], None]
Blueprint = Callable[[Foundry], Callable[[Order], Any]]


@dataclass
class OperationContext:
    """
    Working state of one run. Never shared between runs.

    Attributes:
        run_id: Identifier of the run
        foundry: The apparatus registry
        alignment: The program being run
        order: The request that seeded the run
        env: The run's register file
        step_count: Transitions taken so far
        started_monotonic: Clock reading at run start, for the wall-clock budget
        cancel: Optional cancellation handle checked at every boundary
        visited: Node names in visit order
    """
    run_id: str
    foundry: Foundry
    alignment: Alignment
    order: Order
    env: Env = field(default_factory=Env)
    step_count: int = 0
    started_monotonic: float = field(default_factory=time.monotonic)
    cancel: Optional[CancelHandle] = None
    visited: list[str] = field(default_factory=list)

    @property
    def elapsed_s(self) -> float:
        return time.monotonic() - self.started_monotonic


@dataclass
class RunResult:
    """
    Outcome of one run: exactly one of `output` or `fault` is set.

    Attributes:
        run_id: Identifier of the run
        output: Output record assembled at Egress (field name -> value)
        fault: The fault that stopped the run
        medium: Trace of the run's transitions
        visited: Node names in visit order
        registers: Register values at the end of the run, for diagnostics
        steps: Transitions taken
    """
    run_id: str
    output: Optional[dict[str, Any]] = None
    fault: Optional[FoundryError] = None
    medium: Medium = field(default_factory=Medium)
    visited: tuple[str, ...] = ()
    registers: dict[str, Any] = field(default_factory=dict)
    steps: int = 0

    def __post_init__(self):
        if (self.output is None) == (self.fault is None):
            raise ValueError("RunResult must have exactly one of output or fault")

    @property
    def success(self) -> bool:
        return self.fault is None

    def unwrap(self) -> dict[str, Any]:
        """Return the output record, or raise the fault."""
        if self.fault is not None:
            raise self.fault
        return self.output


@dataclass(frozen=True)
class _Call:
    """A resolved apparatus invocation for a Process or Switch node."""
    op: Union[ProcessOperation, SwitchOperation]
    apparatus: Apparatus
    inputs: dict[str, Param]
    traced_inputs: dict[str, Any]

    @property
    def fn(self) -> Callable[[dict[str, Param]], Any]:
        if isinstance(self.apparatus, Processor):
            return self.apparatus.process
        return self.apparatus.check


async def _await(awaitable: Any) -> Any:
    return await awaitable


def _snapshot(values: dict[str, Any]) -> dict[str, Any]:
    """Deep copy of trace values; values that cannot be copied are kept by reference."""
    result: dict[str, Any] = {}
    for key, value in values.items():
        try:
            result[key] = copy.deepcopy(value)
        except (TypeError, copy.Error):
            result[key] = value
    return result


class Interpreter:
    """
    Runs Alignments against a Foundry.

    An Interpreter holds only immutable settings, so one instance may serve
    any number of concurrent runs; each run gets its own OperationContext.

    Usage:
        interpreter = Interpreter(foundry, config=FoundryConfig(max_steps=20))
        result = interpreter.run(alignment, Order(text="hi"))
        if result.success:
            print(result.output)
        else:
            print(result.fault)
    """

    def __init__(
        self,
        foundry: Foundry,
        config: Optional[FoundryConfig] = None,
        listeners: Optional[list[StepListener]] = None,
        before_run: Optional[BeforeRunHook] = None,
        after_run: Optional[AfterRunHook] = None,
    ):
        """
        Initialize the interpreter.

        Args:
            foundry: Registry of apparatuses the Alignments may call
            config: Engine settings (step ceiling, time budget, tracing)
            listeners: Callbacks notified of every StepRecord
            before_run: Called with (alignment, order) after validation, before the first step
            after_run: Called with (result, order) once the run has settled
        """
        self._foundry = foundry
        self._config = config or FoundryConfig()
        self._listeners = list(listeners or [])
        self._before_run = before_run
        self._after_run = after_run

    @property
    def foundry(self) -> Foundry:
        return self._foundry

    @property
    def config(self) -> FoundryConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def run(
        self,
        alignment: Alignment,
        order: OrderLike,
        cancel: Optional[CancelHandle] = None,
    ) -> RunResult:
        """
        Run an Alignment to completion, invoking apparatuses synchronously.

        Args:
            alignment: The program to run
            order: The request (Order, bare text, or {text, files} mapping)
            cancel: Optional handle; once set, the run settles to Cancelled
                    at the next transition boundary

        Returns:
            RunResult with the output record or the fault
        """
        ctx, medium = self._open(alignment, order, cancel)
        try:
            self._validate(ctx)
            self._notify_before(ctx)
            op: Operation = ctx.alignment.ingress
            while True:
                self._check_boundary(ctx, op)
                started = _utcnow()
                if isinstance(op, EgressOperation):
                    output = self._exec_egress(ctx, op, started, medium)
                    return self._close(ctx, medium, output=output)
                if isinstance(op, IngressOperation):
                    target = self._exec_ingress(ctx, op, started, medium)
                elif isinstance(op, (ProcessOperation, SwitchOperation)):
                    call = self._prepare(ctx, op, medium)
                    raw = self._invoke(call)
                    target = self._apply(ctx, call, raw, started, medium)
                else:
                    raise StructuralFault(f"Unknown operation type: {type(op).__name__}")
                op = self._advance(ctx, op, target)
        except FoundryError as e:
            return self._close(ctx, medium, fault=e)

    async def arun(
        self,
        alignment: Alignment,
        order: OrderLike,
        cancel: Optional[CancelHandle] = None,
    ) -> RunResult:
        """
        Run an Alignment as a cooperative async chain.

        Same transitions as run(); asynchronous apparatuses are awaited on
        the caller's event loop.
        """
        ctx, medium = self._open(alignment, order, cancel)
        try:
            self._validate(ctx)
            self._notify_before(ctx)
            op: Operation = ctx.alignment.ingress
            while True:
                self._check_boundary(ctx, op)
                started = _utcnow()
                if isinstance(op, EgressOperation):
                    output = self._exec_egress(ctx, op, started, medium)
                    return self._close(ctx, medium, output=output)
                if isinstance(op, IngressOperation):
                    target = self._exec_ingress(ctx, op, started, medium)
                elif isinstance(op, (ProcessOperation, SwitchOperation)):
                    call = self._prepare(ctx, op, medium)
                    raw = await self._ainvoke(call)
                    target = self._apply(ctx, call, raw, started, medium)
                else:
                    raise StructuralFault(f"Unknown operation type: {type(op).__name__}")
                op = self._advance(ctx, op, target)
        except FoundryError as e:
            return self._close(ctx, medium, fault=e)

    # -------------------------------------------------------------------------
    # Run lifecycle
    # -------------------------------------------------------------------------

    def _open(
        self,
        alignment: Alignment,
        order: OrderLike,
        cancel: Optional[CancelHandle],
    ) -> tuple[OperationContext, Medium]:
        ctx = OperationContext(
            run_id=generate_run_id(),
            foundry=self._foundry,
            alignment=alignment,
            order=Order.of(order),
            started_monotonic=time.monotonic(),
            cancel=cancel,
        )
        medium = Medium(listeners=self._listeners, enabled=self._config.trace)
        logger.info(
            f"Starting run {ctx.run_id} "
            f"(max_steps={self._config.max_steps}, timeout_s={self._config.timeout_s})"
        )
        return ctx, medium

    def _validate(self, ctx: OperationContext) -> None:
        validate_alignment(ctx.alignment, ctx.foundry)

    def _notify_before(self, ctx: OperationContext) -> None:
        if self._before_run is None:
            return
        try:
            self._before_run(ctx.alignment, ctx.order)
        except Exception as e:
            logger.warning(f"before_run hook failed for run {ctx.run_id}: {e}", exc_info=True)

    def _close(
        self,
        ctx: OperationContext,
        medium: Medium,
        output: Optional[dict[str, Any]] = None,
        fault: Optional[FoundryError] = None,
    ) -> RunResult:
        result = RunResult(
            run_id=ctx.run_id,
            output=output,
            fault=fault,
            medium=medium,
            visited=tuple(ctx.visited),
            registers=ctx.env.snapshot(),
            steps=ctx.step_count,
        )
        if fault is None:
            logger.info(f"Run {ctx.run_id} completed in {ctx.step_count} steps")
        else:
            logger.warning(
                f"Run {ctx.run_id} faulted after {ctx.step_count} steps: "
                f"{type(fault).__name__}: {fault}"
            )

        if self._after_run is not None:
            try:
                self._after_run(result, ctx.order)
            except Exception as e:
                logger.warning(f"after_run hook failed for run {ctx.run_id}: {e}", exc_info=True)
        return result

    # -------------------------------------------------------------------------
    # Transition boundary
    # -------------------------------------------------------------------------

    def _check_boundary(self, ctx: OperationContext, op: Operation) -> None:
        """
        Guards checked before every node.

        Raises:
            Cancelled: If the cancel handle is set
            TimeoutExceeded: If the wall-clock budget is spent
            StepLimitExceeded: If the step counter reached the ceiling
        """
        ref = node_ref(op)
        if ctx.cancel is not None and ctx.cancel.is_set():
            raise Cancelled(f"Run cancelled before '{ref}'", node=ref)
        timeout_s = self._config.timeout_s
        if timeout_s is not None and ctx.elapsed_s >= timeout_s:
            raise TimeoutExceeded(timeout_s, node=ref)
        if ctx.step_count >= self._config.max_steps:
            raise StepLimitExceeded(self._config.max_steps, node=ref)
        ctx.visited.append(ref)

    def _advance(self, ctx: OperationContext, op: Operation, target: str) -> Operation:
        """
        Resolve the successor and count the transition.

        Raises:
            DanglingReference: If no node carries the target name
        """
        next_op = ctx.alignment.get(target)
        if next_op is None:
            raise DanglingReference(target, node=node_ref(op))
        ctx.step_count += 1
        return next_op

    # -------------------------------------------------------------------------
    # Node execution
    # -------------------------------------------------------------------------

    def _exec_ingress(
        self,
        ctx: OperationContext,
        op: IngressOperation,
        started: datetime,
        medium: Medium,
    ) -> str:
        """Bind the Order's text and files; files without a register are ignored."""
        written: dict[str, Any] = {}
        ctx.env.write(op.prompt_addr, Param(STRING, ctx.order.text))
        written[op.prompt_addr] = ctx.order.text

        for addr, content in zip(op.file_addrs, ctx.order.files):
            ctx.env.write(addr, Param(BINARY, content))
            written[addr] = content
        if len(ctx.order.files) > len(op.file_addrs):
            logger.debug(
                f"Run {ctx.run_id}: {len(ctx.order.files) - len(op.file_addrs)} "
                f"attachments have no ingress register"
            )

        self._record(ctx, medium, op, started, inputs={}, outputs=written, next=op.next)
        return op.next

    def _prepare(
        self,
        ctx: OperationContext,
        op: Union[ProcessOperation, SwitchOperation],
        medium: Medium,
    ) -> _Call:
        """
        Resolve the apparatus and read the node's inputs.

        The trace copy of the inputs is taken here, before the apparatus runs.

        Raises:
            UnknownApparatus: If the apparatus is missing or of the wrong kind
            UnboundRegister: If an input register was never written
        """
        if isinstance(op, ProcessOperation):
            apparatus: Apparatus = ctx.foundry.lookup_processor(op.apparatus, node=op.name)
        else:
            apparatus = ctx.foundry.lookup_switcher(op.apparatus, node=op.name)
        inputs = ctx.env.gather(op.inputs, node=op.name)
        traced = {var: p.value for var, p in inputs.items()}
        return _Call(
            op=op,
            apparatus=apparatus,
            inputs=inputs,
            traced_inputs=self._trace_values(medium, traced),
        )

    def _invoke(self, call: _Call) -> Any:
        """Call the apparatus, resolving an awaitable result on a private loop."""
        try:
            result = call.fn(dict(call.inputs))
        except Exception as e:
            raise ApparatusFailure(call.op.name, call.apparatus.name, e) from e

        if not inspect.isawaitable(result):
            return result

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            if inspect.iscoroutine(result):
                result.close()
            raise ApparatusFailure(
                call.op.name,
                call.apparatus.name,
                RuntimeError("asynchronous apparatus called from a running event loop; use arun()"),
            )

        try:
            return asyncio.run(_await(result))
        except Exception as e:
            raise ApparatusFailure(call.op.name, call.apparatus.name, e) from e

    async def _ainvoke(self, call: _Call) -> Any:
        """Call the apparatus, awaiting an awaitable result on the current loop."""
        try:
            result = call.fn(dict(call.inputs))
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise ApparatusFailure(call.op.name, call.apparatus.name, e) from e
        return result

    def _apply(
        self,
        ctx: OperationContext,
        call: _Call,
        raw: Any,
        started: datetime,
        medium: Medium,
    ) -> str:
        """
        Write the apparatus result into registers and pick the successor.

        Raises:
            ApparatusFailure: If the result does not match the apparatus contract
        """
        op = call.op
        verdict: Optional[bool] = None

        if isinstance(op, SwitchOperation):
            verdict, values = self._unpack_verdict(call, raw)
            table, target = op.branch(verdict)
        else:
            values = self._unpack_values(call, raw)
            table, target = op.outputs, op.next

        written = self._write_outputs(ctx, call.apparatus, table, values, verdict)
        self._record(
            ctx, medium, op, started,
            inputs=call.traced_inputs,
            outputs=written,
            branch=verdict,
            next=target,
        )
        return target

    def _unpack_values(self, call: _Call, raw: Any) -> Mapping:
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ApparatusFailure(
                call.op.name,
                call.apparatus.name,
                TypeError(f"expected a mapping of outputs, got {type(raw).__name__}"),
            )
        return raw

    def _unpack_verdict(self, call: _Call, raw: Any) -> tuple[bool, Mapping]:
        if not isinstance(raw, (tuple, list)) or len(raw) != 2:
            raise ApparatusFailure(
                call.op.name,
                call.apparatus.name,
                TypeError(f"expected a (bool, outputs) pair, got {raw!r}"),
            )
        verdict, values = raw
        if not isinstance(verdict, bool):
            raise ApparatusFailure(
                call.op.name,
                call.apparatus.name,
                TypeError(f"expected a bool verdict, got {type(verdict).__name__}"),
            )
        return verdict, self._unpack_values(call, values)

    def _write_outputs(
        self,
        ctx: OperationContext,
        apparatus: Apparatus,
        table: dict[str, str],
        values: Mapping,
        verdict: Optional[bool],
    ) -> dict[str, Any]:
        """
        Write each `var -> addr` entry the apparatus both declared and returned.

        Undeclared variables, and variables missing from the result (or None),
        leave their register untouched; a later read of it faults UnboundRegister.
        """
        written: dict[str, Any] = {}
        for var, addr in table.items():
            declared = apparatus.output_type_of(var, verdict)
            if declared is None:
                logger.debug(f"Run {ctx.run_id}: '{apparatus.name}' does not declare '{var}'")
                continue
            value = values.get(var)
            if value is None:
                logger.debug(f"Run {ctx.run_id}: '{apparatus.name}' returned no '{var}'")
                continue
            ctx.env.write(addr, Param(declared, value))
            written[addr] = value
        return written

    def _exec_egress(
        self,
        ctx: OperationContext,
        op: EgressOperation,
        started: datetime,
        medium: Medium,
    ) -> dict[str, Any]:
        """
        Assemble the output record.

        Raises:
            UnboundRegister: If a result register was never written
        """
        params = ctx.env.gather(op.result, node=op.name)
        output = {name: p.value for name, p in params.items()}
        self._record(ctx, medium, op, started, inputs=self._trace_values(medium, output), outputs={})
        return output

    def _trace_values(self, medium: Medium, values: dict[str, Any]) -> dict[str, Any]:
        return _snapshot(values) if medium.enabled else dict(values)

    def _record(
        self,
        ctx: OperationContext,
        medium: Medium,
        op: Operation,
        started: datetime,
        inputs: dict[str, Any],
        outputs: dict[str, Any],
        branch: Optional[bool] = None,
        next: Optional[str] = None,
    ) -> None:
        entry = StepRecord(
            step=ctx.step_count,
            node_ref=node_ref(op),
            kind=op.kind,
            started_at=started,
            ended_at=_utcnow(),
            inputs=inputs,
            outputs=self._trace_values(medium, outputs),
            branch=branch,
            next=next,
        )
        logger.debug(
            f"Run {ctx.run_id} step {entry.step}: {entry.node_ref} ({entry.kind.value})"
            + (f" -> {next}" if next else ""),
            extra={"run_id": ctx.run_id, "node": entry.node_ref, "step": entry.step},
        )
        medium.record(entry)


def operate(
    foundry: Foundry,
    alignment: Alignment,
    order: OrderLike,
    config: Optional[FoundryConfig] = None,
    cancel: Optional[CancelHandle] = None,
) -> RunResult:
    """
    Run one Alignment synchronously.

    Args:
        foundry: The apparatus registry
        alignment: The program to run
        order: The request seeding the run
        config: Optional engine settings
        cancel: Optional cancellation handle

    Returns:
        RunResult with the output record or the fault
    """
    return Interpreter(foundry, config=config).run(alignment, order, cancel=cancel)


async def aoperate(
    foundry: Foundry,
    alignment: Alignment,
    order: OrderLike,
    config: Optional[FoundryConfig] = None,
    cancel: Optional[CancelHandle] = None,
) -> RunResult:
    """Run one Alignment as a cooperative async chain."""
    return await Interpreter(foundry, config=config).arun(alignment, order, cancel=cancel)


def _plan(foundry: Foundry, blueprint: Blueprint, order: Order) -> Alignment:
    """
    Ask the blueprint collaborator for an Alignment.

    A mapping is accepted and parsed; the result is revalidated by the run.

    Raises:
        BlueprintFault: If the planner raises or returns something unusable
        StructuralFault: If a returned mapping is not a well-formed Alignment
    """
    try:
        planned = blueprint(foundry)(order)
    except Exception as e:
        raise BlueprintFault(f"Blueprint failed: {e}") from e

    if isinstance(planned, Alignment):
        return planned
    if isinstance(planned, Mapping):
        return Alignment.from_dict(dict(planned))
    raise BlueprintFault(f"Blueprint returned {type(planned).__name__}, expected an Alignment")


def run_order(
    foundry: Foundry,
    order: OrderLike,
    blueprint: Blueprint,
    config: Optional[FoundryConfig] = None,
    cancel: Optional[CancelHandle] = None,
    before_run: Optional[BeforeRunHook] = None,
    after_run: Optional[AfterRunHook] = None,
) -> RunResult:
    """
    Plan an Alignment for an Order with the blueprint collaborator, then run it.

    Args:
        foundry: The apparatus registry
        order: The request (Order, bare text, or {text, files} mapping)
        blueprint: Planner called as blueprint(foundry)(order)
        config: Optional engine settings
        cancel: Optional cancellation handle
        before_run: Hook called with (alignment, order) before the first step
        after_run: Hook called with (result, order) once the run has settled

    Returns:
        RunResult; a planning failure settles to BlueprintFault or StructuralFault
    """
    order = Order.of(order)
    interpreter = Interpreter(
        foundry, config=config, before_run=before_run, after_run=after_run,
    )
    try:
        alignment = _plan(foundry, blueprint, order)
    except FoundryError as e:
        logger.warning(f"Planning failed for order: {e}")
        return RunResult(
            run_id=generate_run_id(),
            fault=e,
            medium=Medium(enabled=interpreter.config.trace),
        )
    return interpreter.run(alignment, order, cancel=cancel)
