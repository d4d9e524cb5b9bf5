"""Tests for foundry.schemas.

Covers VirtualType/Param, the four operation variants, Alignment
(de)serialization, Order and the Medium trace.
"""

from datetime import datetime, timedelta, timezone

import pytest

from foundry.errors import StructuralFault
from foundry.schemas import (
    Alignment,
    EgressOperation,
    IngressOperation,
    Medium,
    OperationKind,
    Order,
    Param,
    ProcessOperation,
    StepRecord,
    SwitchOperation,
    VirtualType,
    as_type_table,
    as_virtual_type,
    node_ref,
    operation_from_dict,
)


# =============================================================================
# VirtualType / Param
# =============================================================================


class TestVirtualType:
    """Tests for VirtualType."""

    def test_requires_type(self):
        with pytest.raises(ValueError):
            VirtualType(type="")

    def test_format_undeclared_optional_renders_optional(self):
        assert VirtualType(type="string").format("text") == "text: string?"

    def test_format_required_with_description(self):
        vt = VirtualType(type="number", optional=False, description="Character count")
        assert vt.format("length") == "length: number (Character count)"

    def test_from_dict(self):
        vt = VirtualType.from_dict({"type": "image[]", "optional": True})
        assert vt == VirtualType(type="image[]", optional=True)
        assert vt.to_dict() == {"type": "image[]", "optional": True}

    def test_as_virtual_type_accepts_string(self):
        assert as_virtual_type("string") == VirtualType(type="string")

    def test_as_virtual_type_rejects_dict_without_type(self):
        with pytest.raises(ValueError, match="missing 'type'"):
            as_virtual_type({"description": "no type"})

    def test_as_virtual_type_rejects_other(self):
        with pytest.raises(ValueError):
            as_virtual_type(42)

    def test_as_type_table_passes_none(self):
        assert as_type_table(None) is None

    def test_as_type_table_rejects_list(self):
        with pytest.raises(ValueError):
            as_type_table(["string"])


class TestParam:
    """Tests for Param."""

    def test_to_dict_summarizes_bytes(self):
        param = Param(VirtualType(type="binary"), b"\x00\x01\x02")
        assert param.to_dict() == {"type": {"type": "binary"}, "value": "<3 bytes>"}


# =============================================================================
# Operations
# =============================================================================


class TestOperations:
    """Tests for the operation variants."""

    def test_ingress_rejects_more_than_five_files(self):
        with pytest.raises(StructuralFault, match="at most 5"):
            IngressOperation(
                next="a", prompt_addr="r0",
                file_addrs=("f1", "f2", "f3", "f4", "f5", "f6"),
            )

    def test_ingress_node_ref(self):
        op = IngressOperation(next="a", prompt_addr="r0")
        assert node_ref(op) == "ingress"
        assert op.kind == OperationKind.INGRESS
        assert op.successors == ("a",)

    def test_process_requires_name(self):
        with pytest.raises(StructuralFault):
            ProcessOperation(name="", apparatus="uppercase", next="egress")

    def test_process_rejects_non_mapping_inputs(self):
        with pytest.raises(StructuralFault, match="inputs must be a mapping"):
            ProcessOperation(name="p", apparatus="uppercase", next="egress", inputs=["r0"])

    def test_switch_branch(self):
        op = SwitchOperation(
            name="s", apparatus="is-long",
            next_when_true="yes", next_when_false="no",
            outputs_when_true={"length": "r_t"},
            outputs_when_false={"length": "r_f"},
        )
        assert op.branch(True) == ({"length": "r_t"}, "yes")
        assert op.branch(False) == ({"length": "r_f"}, "no")
        assert op.successors == ("yes", "no")

    def test_egress_default_name(self):
        op = EgressOperation(result={"result": "r1"})
        assert op.name == "egress"
        assert op.successors == ()

    def test_from_dict_dispatches_on_type(self):
        op = operation_from_dict({
            "type": "process",
            "name": "upper",
            "apparatus": "uppercase",
            "inputs": {"text": "r0"},
            "outputs": {"text": "r1"},
            "next": "egress",
        })
        assert isinstance(op, ProcessOperation)
        assert op.inputs == {"text": "r0"}

    def test_from_dict_missing_field(self):
        with pytest.raises(StructuralFault, match="missing field"):
            operation_from_dict({"type": "process", "name": "upper"})

    def test_from_dict_unknown_type(self):
        with pytest.raises(StructuralFault, match="Unknown operation type"):
            operation_from_dict({"type": "assign"})

    def test_from_dict_ingress_files(self):
        op = operation_from_dict({
            "type": "ingress", "next": "a", "prompt_addr": "r0", "file_addrs": ["f0"],
        })
        assert op.file_addrs == ("f0",)


# =============================================================================
# Alignment
# =============================================================================


class TestAlignment:
    """Tests for Alignment."""

    def test_accessors(self, routing_alignment):
        assert routing_alignment.ingress.next == "route"
        assert [e.name for e in routing_alignment.egresses] == ["long_exit", "short_exit"]
        assert [op.name for op in routing_alignment.internal_operations] == ["route"]
        assert routing_alignment.names() == ["route", "long_exit", "short_exit"]

    def test_get_returns_none_for_missing(self, uppercase_alignment):
        assert uppercase_alignment.get("missing") is None
        assert uppercase_alignment.get("upper").apparatus == "uppercase"

    def test_ingress_none_when_absent(self):
        assert Alignment().ingress is None

    def test_round_trip(self, routing_alignment):
        restored = Alignment.from_dict(routing_alignment.to_dict())
        assert restored == routing_alignment

    def test_from_dict_rejects_non_list_operations(self):
        with pytest.raises(StructuralFault):
            Alignment.from_dict({"operations": {"type": "ingress"}})

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(StructuralFault):
            Alignment.from_dict(["not", "a", "mapping"])


# =============================================================================
# Order
# =============================================================================


class TestOrder:
    """Tests for Order."""

    def test_files_stored_as_tuple(self):
        order = Order(text="hi", files=[b"a"])
        assert order.files == (b"a",)

    def test_rejects_non_bytes_file(self):
        with pytest.raises(ValueError):
            Order(text="hi", files=["not bytes"])

    def test_explain(self):
        assert Order(text="hi").explain() == "hi"
        assert Order(text="hi", files=(b"a",)).explain() == "hi\n\n(1 file attached)"
        assert Order(text="hi", files=(b"a", b"b")).explain() == "hi\n\n(2 files attached)"

    def test_of(self):
        assert Order.of("hi") == Order(text="hi")
        assert Order.of({"text": "hi", "files": [b"x"]}).files == (b"x",)
        with pytest.raises(ValueError):
            Order.of(42)

    def test_of_mapping_without_text(self):
        with pytest.raises(ValueError, match="text must be a string"):
            Order.of({"files": [b"x"]})


# =============================================================================
# Medium
# =============================================================================


def _record(step: int, ref: str = "upper") -> StepRecord:
    started = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return StepRecord(
        step=step,
        node_ref=ref,
        kind=OperationKind.PROCESS,
        started_at=started,
        ended_at=started + timedelta(milliseconds=25),
        next="egress",
    )


class TestMedium:
    """Tests for Medium and StepRecord."""

    def test_duration_ms(self):
        assert _record(0).duration_ms == 25

    def test_to_dict_omits_empty_branch(self):
        data = _record(0).to_dict()
        assert data["kind"] == "process"
        assert "branch" not in data
        assert data["next"] == "egress"

    def test_records_in_order(self):
        medium = Medium()
        medium.record(_record(0, "a"))
        medium.record(_record(1, "b"))
        assert medium.node_refs() == ["a", "b"]
        assert len(medium) == 2

    def test_disabled_medium_keeps_nothing(self):
        seen = []
        medium = Medium(listeners=[seen.append], enabled=False)
        medium.record(_record(0))
        assert len(medium) == 0
        assert seen == []

    def test_listener_failure_is_swallowed(self):
        def broken(entry):
            raise RuntimeError("listener down")

        seen = []
        medium = Medium(listeners=[broken, seen.append])
        medium.record(_record(0))
        assert len(medium) == 1
        assert len(seen) == 1
