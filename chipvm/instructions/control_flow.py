"""CHIP-8 control flow instructions."""

import jax
import jax.lax
import jax.numpy as jnp
from chipvm.state import MachineState
from chipvm.decode import DecodedInstruction
from chipvm.diagnostics import Fault, fault_code
from chipvm.constants import ADDRESS_MASK, INSTRUCTION_SIZE
from chipvm.stack import push, is_full
from chipvm.instructions.system import execute_invalid_variant


def execute_jump(state: MachineState, instruction: DecodedInstruction) -> MachineState:
    """1NNN - Jump to address NNN."""
    return state.replace(pc=jnp.astype(instruction.nnn, jnp.uint16))


def execute_call(state: MachineState, instruction: DecodedInstruction) -> MachineState:
    """2NNN - Call subroutine at NNN."""
    def _call(state):
        state = state.replace(stack=push(state.stack, state.pc))
        return execute_jump(state, instruction)

    return jax.lax.cond(
        is_full(state.stack),
        lambda state: state.replace(fault=fault_code(Fault.STACK_OVERFLOW)),
        _call,
        state
    )


def make_skip_instruction(condition_fn):
    """Factory for skip instructions."""
    def skip_instruction(state: MachineState, instruction: DecodedInstruction) -> MachineState:
        condition = condition_fn(state, instruction)
        return jax.lax.cond(
            condition,
            lambda s: s.replace(pc=s.pc + INSTRUCTION_SIZE),
            lambda s: s,
            state
        )
    return skip_instruction


def require_zero_nibble(execute_fn):
    """5XY0/9XY0 are only defined with a zero low nibble."""
    def checked_instruction(state: MachineState, instruction: DecodedInstruction) -> MachineState:
        return jax.lax.cond(
            instruction.n == 0,
            execute_fn,
            execute_invalid_variant,
            state, instruction
        )
    return checked_instruction


execute_skip_if_equal_immediate = make_skip_instruction(
    lambda state, inst: state.V[inst.x] == inst.nn
)

execute_skip_if_not_equal_immediate = make_skip_instruction(
    lambda state, inst: state.V[inst.x] != inst.nn
)

execute_skip_if_equal_register = require_zero_nibble(make_skip_instruction(
    lambda state, inst: state.V[inst.x] == state.V[inst.y]
))

execute_skip_if_not_equal_register = require_zero_nibble(make_skip_instruction(
    lambda state, inst: state.V[inst.x] != state.V[inst.y]
))


def execute_jump_with_offset(state: MachineState, instruction: DecodedInstruction) -> MachineState:
    """BNNN - Jump to address NNN + V0."""
    jump_address = (instruction.nnn + jnp.astype(state.V[0], jnp.int32)) & ADDRESS_MASK
    return state.replace(pc=jnp.astype(jump_address, jnp.uint16))


def execute_skip_if_key(state: MachineState, instruction: DecodedInstruction) -> MachineState:
    """EX9E/EXA1 - Skip if key pressed/not pressed."""
    def _skip_if_key(state, instruction):
        key_index = state.V[instruction.x] & 0xF
        key_pressed = state.keypad[key_index]
        is_not_instruction = (instruction.nn == 0xA1)
        condition = key_pressed ^ is_not_instruction

        return jax.lax.cond(
            condition,
            lambda state: state.replace(pc=state.pc + INSTRUCTION_SIZE),
            lambda state: state,
            state
        )

    return jax.lax.cond(
        (instruction.nn == 0x9E) | (instruction.nn == 0xA1),
        _skip_if_key,
        execute_invalid_variant,
        state, instruction
    )
