"""CHIP-8 machine state structures."""

import jax
import jax.numpy as jnp
from flax.struct import dataclass, field, PyTreeNode

from chipvm.constants import (
    MEMORY_SIZE, PROGRAM_START, FONT_START, FONT_DATA, SCREEN_WIDTH, SCREEN_HEIGHT,
    STACK_SIZE, NUM_REGISTERS, NUM_KEYS,
)


@dataclass(frozen=True)
class StackState:
    """Return-address stack for subroutine calls."""
    data: jnp.ndarray = field(default_factory=lambda: jnp.zeros(STACK_SIZE, dtype=jnp.uint16))
    pointer: jnp.ndarray = field(default_factory=lambda: jnp.zeros((), dtype=jnp.int32))


class MachineState(PyTreeNode):
    """Complete CHIP-8 machine state.

    The display is indexed ``[x, y]``. ``awaiting_key`` and ``key_register``
    hold the wait-for-key state: while ``awaiting_key`` is set no instruction
    is fetched and the keypad is polled instead. ``held_keys`` remembers the
    keys that were already down when the wait began, so that only a fresh
    press resolves it.

    ``fault`` is the diagnostic left by the last executed instruction
    (``Fault.NONE`` when it was valid).
    """
    rng: jax.random.PRNGKey
    memory: jnp.ndarray = field(default_factory=lambda: jnp.zeros(MEMORY_SIZE, dtype=jnp.uint8))
    pc: jnp.ndarray = field(default_factory=lambda: jnp.astype(PROGRAM_START, jnp.uint16))
    display: jnp.ndarray = field(default_factory=lambda: jnp.zeros((SCREEN_WIDTH, SCREEN_HEIGHT), dtype=jnp.bool_))
    stack: StackState = StackState()
    delay_timer: jnp.ndarray = field(default_factory=lambda: jnp.zeros((), dtype=jnp.uint8))
    sound_timer: jnp.ndarray = field(default_factory=lambda: jnp.zeros((), dtype=jnp.uint8))
    keypad: jnp.ndarray = field(default_factory=lambda: jnp.zeros(NUM_KEYS, dtype=jnp.bool_))
    V: jnp.ndarray = field(default_factory=lambda: jnp.zeros(NUM_REGISTERS, dtype=jnp.uint8))
    I: jnp.ndarray = field(default_factory=lambda: jnp.zeros((), dtype=jnp.uint16))
    awaiting_key: jnp.ndarray = field(default_factory=lambda: jnp.zeros((), dtype=jnp.bool_))
    key_register: jnp.ndarray = field(default_factory=lambda: jnp.zeros((), dtype=jnp.uint8))
    held_keys: jnp.ndarray = field(default_factory=lambda: jnp.zeros(NUM_KEYS, dtype=jnp.bool_))
    fault: jnp.ndarray = field(default_factory=lambda: jnp.zeros((), dtype=jnp.uint8))


def create_state(rng: jax.random.PRNGKey = jax.random.PRNGKey(0)) -> MachineState:
    """Create initial machine state with font data loaded."""
    state = MachineState(rng)
    return state.replace(memory=state.memory.at[FONT_START:FONT_START + len(FONT_DATA)].set(FONT_DATA))


def set_keypad(state: MachineState, pressed) -> MachineState:
    """Replace the whole keypad with ``pressed`` (16 booleans)."""
    return state.replace(keypad=jnp.asarray(pressed, dtype=jnp.bool_).reshape(NUM_KEYS))


def press_key(state: MachineState, key: int) -> MachineState:
    """Mark key ``key`` (0x0-0xF) as pressed."""
    return state.replace(keypad=state.keypad.at[key].set(True))


def release_key(state: MachineState, key: int) -> MachineState:
    """Mark key ``key`` (0x0-0xF) as released."""
    return state.replace(keypad=state.keypad.at[key].set(False))
