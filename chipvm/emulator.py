"""Main CHIP-8 emulator execution engine."""

from functools import partial
from typing import Optional

import jax
import jax.lax
import jax.numpy as jnp
import numpy as np
from jax.experimental import io_callback

from chipvm.state import MachineState
from chipvm.decode import decode
from chipvm.constants import (
    PROGRAM_START, MEMORY_SIZE, INSTRUCTION_SIZE, INSTRUCTION_FREQUENCY, TIMER_FREQUENCY,
)
from chipvm.diagnostics import Fault, Diagnostic, Reporter, ProgramTooLargeError, fault_code, log_diagnostic
from chipvm.logging import logger, scan_with_progress
from chipvm.instructions.system import execute_system_instruction
from chipvm.instructions.control_flow import (
    execute_jump, execute_call, execute_skip_if_equal_immediate,
    execute_skip_if_not_equal_immediate, execute_skip_if_equal_register,
    execute_skip_if_not_equal_register, execute_jump_with_offset, execute_skip_if_key
)
from chipvm.instructions.alu import execute_alu_operation
from chipvm.instructions.memory import execute_set, execute_add, execute_set_index, execute_random
from chipvm.instructions.display import execute_display
from chipvm.instructions.misc import execute_misc_instruction, poll_keypad


def _execute(state: MachineState, instruction: int) -> MachineState:
    decoded_instruction = decode(instruction)
    state = state.replace(fault=fault_code(Fault.NONE))

    return jax.lax.switch(
        jnp.astype(decoded_instruction.opcode, jnp.int32),
        [
            execute_system_instruction,
            execute_jump,
            execute_call,
            execute_skip_if_equal_immediate,
            execute_skip_if_not_equal_immediate,
            execute_skip_if_equal_register,
            execute_set,
            execute_add,
            execute_alu_operation,
            execute_skip_if_not_equal_register,
            execute_set_index,
            execute_jump_with_offset,
            execute_random,
            execute_display,
            execute_skip_if_key,
            execute_misc_instruction,
        ],
        state, decoded_instruction
    )


@jax.jit
def execute(state: MachineState, instruction: int) -> MachineState:
    """Execute single CHIP-8 instruction.

    ``state.pc`` is expected to already point past the instruction. Invalid
    encodings leave the state untouched apart from ``state.fault``.
    """
    return _execute(state, instruction)


def _pack_u16(high: jnp.uint8, low: jnp.uint8) -> jnp.uint16:
    """Pack two bytes into uint16."""
    return (high.astype(jnp.uint16) << 8) | low.astype(jnp.uint16)


def fetch(state: MachineState) -> tuple[MachineState, jnp.uint16]:
    """Fetch next instruction from memory."""
    address = jnp.astype(state.pc, jnp.int32)
    instruction = _pack_u16(state.memory[address % MEMORY_SIZE], state.memory[(address + 1) % MEMORY_SIZE])
    return state.replace(pc=state.pc + INSTRUCTION_SIZE), instruction


def _fetch_execute(state: MachineState):
    address = state.pc
    state, instruction = fetch(state)
    return _execute(state, instruction), address, instruction


def _await_key(state: MachineState):
    return poll_keypad(state), state.pc, jnp.zeros((), dtype=jnp.uint16)


def _cycle(state: MachineState, report: Optional[Reporter]) -> MachineState:
    state, address, instruction = jax.lax.cond(state.awaiting_key, _await_key, _fetch_execute, state)

    if report is not None:
        def _report(fault, address, instruction):
            report(Diagnostic(Fault(int(fault)), int(address), int(instruction)))

        _ = jax.lax.cond(
            state.fault != int(Fault.NONE),
            lambda _: io_callback(_report, None, state.fault, address, instruction, ordered=True),
            lambda _: None,
            operand=None,
        )
    return state


@partial(jax.jit, static_argnames=("report",))
def cycle(state: MachineState, report: Optional[Reporter] = log_diagnostic) -> MachineState:
    """Run one machine cycle.

    While a wait-for-key is pending the cycle only polls the keypad; otherwise
    it fetches and executes one instruction. A faulting instruction is passed to
    ``report`` as a ``Diagnostic`` and execution carries on.
    """
    return _cycle(state, report)


@jax.jit
def tick_timers(state: MachineState) -> MachineState:
    """Decrement both timers by one, stopping at zero."""
    return state.replace(
        delay_timer=jnp.where(state.delay_timer > 0, state.delay_timer - 1, state.delay_timer),
        sound_timer=jnp.where(state.sound_timer > 0, state.sound_timer - 1, state.sound_timer),
    )


@partial(jax.jit, static_argnums=1, static_argnames=("report",))
def run_cycles(state: MachineState, n: int, report: Optional[Reporter] = log_diagnostic) -> MachineState:
    """Run ``n`` cycles back to back, without any timer decay."""
    def run_cycle(state, _):
        return _cycle(state, report), None

    state, _ = jax.lax.scan(run_cycle, state, length=n)
    return state


@partial(jax.jit, static_argnums=(1, 2), static_argnames=("report", "progress"))
def run_frames(
    state: MachineState,
    frames: int,
    cycles_per_frame: int = INSTRUCTION_FREQUENCY // TIMER_FREQUENCY,
    report: Optional[Reporter] = log_diagnostic,
    progress: bool = False,
) -> MachineState:
    """Run ``frames`` frames headlessly.

    A frame is ``cycles_per_frame`` cycles followed by one timer tick, so
    emulated time advances at the 60 Hz timer rate regardless of wall-clock.
    """
    def run_frame(state, _):
        state = jax.lax.fori_loop(0, cycles_per_frame, lambda _, s: _cycle(s, report), state)
        return tick_timers(state), None

    if progress:
        run_frame = scan_with_progress(frames, desc="Emulating", unit="frame")(run_frame)

    state, _ = jax.lax.scan(run_frame, state, jnp.arange(frames))
    return state


def load_program(state: MachineState, program: bytes) -> MachineState:
    """Copy a program image into memory starting at 0x200.

    Raises:
        ProgramTooLargeError: if the image would run past the end of memory.
    """
    capacity = MEMORY_SIZE - PROGRAM_START
    if len(program) > capacity:
        raise ProgramTooLargeError(len(program), capacity)

    program_array = jnp.asarray(np.frombuffer(bytes(program), dtype=np.uint8))
    new_memory = state.memory.at[PROGRAM_START:PROGRAM_START + len(program)].set(program_array)
    return state.replace(memory=new_memory)


def load_rom(state: MachineState, filename: str) -> MachineState:
    """Load ROM data into CHIP-8 memory starting at 0x200."""
    with open(filename, 'rb') as f:
        rom_data = f.read()
    state = load_program(state, rom_data)
    logger.debug(f"Loaded {len(rom_data)} bytes from {filename}")
    return state
