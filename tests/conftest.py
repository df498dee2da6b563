"""Test configuration and fixtures for CHIP-8 virtual machine tests."""

import pytest
import jax
import jax.numpy as jnp
from chipvm import create_state, load_program


@pytest.fixture
def fresh_state():
    """Provide a fresh machine state for each test."""
    return create_state()


class Collector:
    """Reporter that keeps every diagnostic it receives."""

    def __init__(self):
        self.diagnostics = []

    def __call__(self, diagnostic):
        self.diagnostics.append(diagnostic)

    def collected(self):
        jax.effects_barrier()
        return self.diagnostics


@pytest.fixture
def collector():
    """Provide a diagnostic collector usable as a ``report`` argument."""
    return Collector()


def setup_sprite_in_memory(state, address, sprite_bytes):
    """Helper to put sprite data in memory."""
    return state.replace(
        memory=state.memory.at[address:address+len(sprite_bytes)].set(
            jnp.array(sprite_bytes, dtype=jnp.uint8)
        )
    )


def load_words(state, words):
    """Helper to load a program given as 16-bit instruction words."""
    program = b"".join(word.to_bytes(2, "big") for word in words)
    return load_program(state, program)
