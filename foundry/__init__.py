"""
foundry - Register-machine interpreter for LLM-planned Alignments

Runs an Alignment (a graph of ingress/process/switch/egress operations)
against a Foundry of registered apparatuses to turn an Order into an
output record.
"""

__version__ = "0.1.0"


__all__ = [
    "Alignment",
    "load_alignment",
    "save_alignment",
    "Foundry",
    "FoundryConfig",
    "FoundryError",
    "Interpreter",
    "Order",
    "Processor",
    "RunResult",
    "Switcher",
    "load_config",
    "operate",
    "aoperate",
    "run_order",
]

from .apparatus import Processor, Switcher
from .config import FoundryConfig, load_config
from .errors import FoundryError
from .interpreter import Interpreter, RunResult, aoperate, operate, run_order
from .loader import load_alignment, save_alignment
from .registry import Foundry
from .schemas import Alignment, Order
