import pytest

from foundry.apparatus import Processor, Switcher
from foundry.registry import Foundry
from foundry.schemas import (
    Alignment,
    EgressOperation,
    IngressOperation,
    ProcessOperation,
    SwitchOperation,
)


def _uppercase(inputs):
    return {"text": inputs["text"].value.upper()}


def _is_long(inputs):
    text = inputs["text"].value
    return len(text) > 10, {"length": len(text)}


@pytest.fixture
def uppercase_processor() -> Processor:
    return Processor(
        name="uppercase",
        description="Convert text to upper case",
        input_type={"text": "string"},
        output_type={"text": {"type": "string", "description": "Upper-cased text"}},
        process=_uppercase,
    )


@pytest.fixture
def is_long_switcher() -> Switcher:
    return Switcher(
        name="is-long",
        description="Check whether text is longer than ten characters",
        input_type={"text": "string"},
        output_type_when_true={"length": "number"},
        output_type_when_false={"length": "number"},
        check=_is_long,
    )


@pytest.fixture
def foundry(uppercase_processor, is_long_switcher) -> Foundry:
    return Foundry.register(
        processors=[uppercase_processor],
        switchers=[is_long_switcher],
        description="Text utilities",
    )


@pytest.fixture
def uppercase_alignment() -> Alignment:
    """Ingress -> uppercase -> Egress."""
    return Alignment(
        operations=(
            IngressOperation(next="upper", prompt_addr="r0"),
            ProcessOperation(
                name="upper",
                apparatus="uppercase",
                inputs={"text": "r0"},
                outputs={"text": "r1"},
                next="egress",
            ),
            EgressOperation(result={"result": "r1"}),
        ),
        user_request="Shout it",
    )


@pytest.fixture
def routing_alignment() -> Alignment:
    """Ingress -> is-long switch -> one of two Egresses."""
    return Alignment(
        operations=(
            IngressOperation(next="route", prompt_addr="r0"),
            SwitchOperation(
                name="route",
                apparatus="is-long",
                inputs={"text": "r0"},
                outputs_when_true={"length": "r_long"},
                outputs_when_false={"length": "r_short"},
                next_when_true="long_exit",
                next_when_false="short_exit",
            ),
            EgressOperation(name="long_exit", result={"route": "r0", "long_length": "r_long"}),
            EgressOperation(name="short_exit", result={"route": "r0", "short_length": "r_short"}),
        ),
    )


@pytest.fixture
def looping_alignment() -> Alignment:
    """A switch that always routes back to itself."""
    return Alignment(
        operations=(
            IngressOperation(next="loop", prompt_addr="r0"),
            SwitchOperation(
                name="loop",
                apparatus="is-long",
                inputs={"text": "r0"},
                next_when_true="loop",
                next_when_false="loop",
            ),
            EgressOperation(result={"result": "r0"}),
        ),
    )
