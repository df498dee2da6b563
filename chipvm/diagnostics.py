"""Fault codes and diagnostic reporting for CHIP-8 execution."""

import enum
from dataclasses import dataclass
from typing import Callable

import jax.numpy as jnp

from chipvm.logging import logger


class Fault(enum.IntEnum):
    """Outcome of a single cycle, stored in ``MachineState.fault``."""
    NONE = 0
    UNKNOWN_INSTRUCTION = 1
    INVALID_VARIANT = 2
    STACK_OVERFLOW = 3
    STACK_UNDERFLOW = 4


@dataclass(frozen=True)
class Diagnostic:
    """A faulting instruction, as handed to a ``report`` callable."""
    fault: Fault
    address: int
    instruction: int

    def __str__(self) -> str:
        return (f"{self.fault.name.lower().replace('_', ' ')}: "
                f"0x{self.instruction:04X} at 0x{self.address:03X}")


Reporter = Callable[[Diagnostic], None]


class ProgramTooLargeError(ValueError):
    """Raised when a program image does not fit above the load address."""

    def __init__(self, size: int, capacity: int):
        super().__init__(f"Program is {size} bytes but only {capacity} bytes are available")
        self.size = size
        self.capacity = capacity


def fault_code(fault: Fault) -> jnp.ndarray:
    return jnp.asarray(int(fault), dtype=jnp.uint8)


def log_diagnostic(diagnostic: Diagnostic) -> None:
    """Default reporter: log the fault as a warning and carry on."""
    logger.warning(str(diagnostic))


def ignore_diagnostic(diagnostic: Diagnostic) -> None:
    """Reporter that drops diagnostics; faults stay visible in ``state.fault``."""
