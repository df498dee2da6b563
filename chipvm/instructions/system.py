"""CHIP-8 system instructions (0x0xxx) and fault handlers."""

import jax
import jax.lax
import jax.numpy as jnp
from chipvm.state import MachineState
from chipvm.decode import DecodedInstruction
from chipvm.diagnostics import Fault, fault_code
from chipvm.stack import pop, is_empty


def execute_unknown_instruction(state: MachineState, instruction: DecodedInstruction) -> MachineState:
    """Unassigned encoding: record the fault, change nothing else."""
    return state.replace(fault=fault_code(Fault.UNKNOWN_INSTRUCTION))


def execute_invalid_variant(state: MachineState, instruction: DecodedInstruction) -> MachineState:
    """Known family with a malformed low nibble/byte: record the fault, change nothing else."""
    return state.replace(fault=fault_code(Fault.INVALID_VARIANT))


def execute_clear_screen(state: MachineState, instruction: DecodedInstruction) -> MachineState:
    """00E0 - Clear display."""
    return state.replace(display=jnp.zeros_like(state.display))


def execute_return(state: MachineState, instruction: DecodedInstruction) -> MachineState:
    """00EE - Return from subroutine."""
    def _return(state):
        stack, address = pop(state.stack)
        return state.replace(stack=stack, pc=address)

    return jax.lax.cond(
        is_empty(state.stack),
        lambda state: state.replace(fault=fault_code(Fault.STACK_UNDERFLOW)),
        _return,
        state
    )


def execute_system_instruction(state: MachineState, instruction: DecodedInstruction) -> MachineState:
    """Dispatch system instructions."""
    return jax.lax.cond(
        0x00E0 == instruction.raw,
        execute_clear_screen,
        lambda state, instruction: jax.lax.cond(
            0x00EE == instruction.raw,
            execute_return,
            execute_unknown_instruction,
            state, instruction
        ),
        state, instruction
    )
