"""Tests for foundry fault classes.

Tests cover:
- Fault hierarchy
- Messages and the node/address/cause attributes faults carry
"""

import pytest

from foundry.errors import (
    ApparatusFailure,
    BlueprintFault,
    Cancelled,
    DanglingReference,
    FoundryError,
    StepLimitExceeded,
    StructuralFault,
    TimeoutExceeded,
    UnboundRegister,
    UnknownApparatus,
    ValidationFault,
)


ALL_FAULTS = [
    ValidationFault,
    StructuralFault,
    UnknownApparatus,
    UnboundRegister,
    DanglingReference,
    StepLimitExceeded,
    TimeoutExceeded,
    Cancelled,
    ApparatusFailure,
    BlueprintFault,
]


class TestFoundryError:
    """Tests for base FoundryError."""

    def test_is_exception(self):
        assert issubclass(FoundryError, Exception)

    def test_has_message(self):
        error = FoundryError("my message")
        assert str(error) == "my message"
        assert error.node is None

    def test_carries_node(self):
        error = FoundryError("boom", node="upper")
        assert error.node == "upper"

    @pytest.mark.parametrize("fault", ALL_FAULTS)
    def test_every_fault_is_foundry_error(self, fault):
        assert issubclass(fault, FoundryError)


class TestUnboundRegister:
    """Tests for UnboundRegister."""

    def test_message_names_address(self):
        error = UnboundRegister("r9")
        assert error.address == "r9"
        assert str(error) == 'No value found at load address "r9"'

    def test_message_names_node(self):
        error = UnboundRegister("r9", node="upper")
        assert error.node == "upper"
        assert "(node 'upper')" in str(error)


class TestDanglingReference:
    """Tests for DanglingReference."""

    def test_carries_target(self):
        error = DanglingReference("nowhere", node="upper")
        assert error.target == "nowhere"
        assert error.node == "upper"
        assert "nowhere" in str(error)


class TestLimits:
    """Tests for StepLimitExceeded and TimeoutExceeded."""

    def test_step_limit(self):
        error = StepLimitExceeded(10, node="loop")
        assert error.limit == 10
        assert "10 steps" in str(error)

    def test_timeout(self):
        error = TimeoutExceeded(1.5)
        assert error.timeout_s == 1.5
        assert "1.5s" in str(error)


class TestApparatusFailure:
    """Tests for ApparatusFailure."""

    def test_wraps_cause(self):
        cause = ValueError("bad input")
        error = ApparatusFailure("upper", "uppercase", cause)
        assert error.node == "upper"
        assert error.apparatus == "uppercase"
        assert error.cause is cause
        assert str(error) == "Operation 'upper' failed in apparatus 'uppercase': bad input"

    def test_can_be_caught_as_foundry_error(self):
        with pytest.raises(FoundryError):
            raise ApparatusFailure("upper", "uppercase", RuntimeError("x"))
