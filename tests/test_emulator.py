"""Tests for the fetch/execute cycle, program loading and timers."""

import pytest
import jax
import jax.numpy as jnp
from chipvm import (
    fetch, cycle, tick_timers, run_cycles, run_frames, load_program, load_rom,
    press_key, release_key, set_keypad, Fault, Diagnostic, ProgramTooLargeError,
    PROGRAM_START, MEMORY_SIZE, log_diagnostic, ignore_diagnostic,
)
from conftest import load_words


class TestLoading:
    """Test program loading."""

    def test_load_program(self, fresh_state):
        state = load_program(fresh_state, bytes([0x12, 0x34, 0x56]))
        assert [int(b) for b in state.memory[PROGRAM_START:PROGRAM_START + 4]] == [0x12, 0x34, 0x56, 0x00]
        assert state.pc == PROGRAM_START

    def test_load_program_fills_memory_exactly(self, fresh_state):
        """An image ending at the last byte of memory is accepted."""
        program = bytes([0xAB]) * (MEMORY_SIZE - PROGRAM_START)
        state = load_program(fresh_state, program)
        assert state.memory[MEMORY_SIZE - 1] == 0xAB

    def test_load_program_too_large(self, fresh_state):
        """One byte too many aborts loading."""
        with pytest.raises(ProgramTooLargeError) as excinfo:
            load_program(fresh_state, bytes(MEMORY_SIZE - PROGRAM_START + 1))
        assert excinfo.value.capacity == MEMORY_SIZE - PROGRAM_START

    def test_load_rom(self, fresh_state, tmp_path):
        rom = tmp_path / "test.ch8"
        rom.write_bytes(bytes([0x00, 0xE0, 0x12, 0x00]))

        state = load_rom(fresh_state, str(rom))

        assert state.memory[PROGRAM_START + 1] == 0xE0
        assert state.memory[PROGRAM_START + 2] == 0x12

    def test_load_rom_missing_file(self, fresh_state, tmp_path):
        with pytest.raises(OSError):
            load_rom(fresh_state, str(tmp_path / "missing.ch8"))


class TestFetch:
    """Test instruction fetch."""

    def test_fetch_big_endian(self, fresh_state):
        state = load_words(fresh_state, [0xA2F0])
        state, instruction = fetch(state)
        assert instruction == 0xA2F0
        assert state.pc == PROGRAM_START + 2


class TestCycle:
    """Test full machine cycles."""

    def test_cycle_runs_program(self, fresh_state):
        state = load_words(fresh_state, [0x6005, 0x7003, 0x1204])
        for _ in range(4):
            state = cycle(state, report=None)
        assert state.V[0] == 8
        assert state.pc == 0x204

    def test_invalid_instruction_is_reported(self, fresh_state, collector):
        """A malformed instruction is reported and execution continues."""
        state = load_words(fresh_state, [0x5121, 0x6042])

        state = cycle(state, report=collector)
        assert state.pc == 0x202
        assert int(state.fault) == Fault.INVALID_VARIANT

        state = cycle(state, report=collector)
        assert state.V[0] == 0x42

        diagnostics = collector.collected()
        assert diagnostics == [Diagnostic(Fault.INVALID_VARIANT, 0x200, 0x5121)]

    def test_stack_underflow_is_reported(self, fresh_state, collector):
        state = load_words(fresh_state, [0x00EE])

        state = cycle(state, report=collector)

        assert state.pc == 0x202
        assert state.stack.pointer == 0
        assert collector.collected()[0].fault == Fault.STACK_UNDERFLOW

    def test_valid_instructions_not_reported(self, fresh_state, collector):
        state = load_words(fresh_state, [0x6001, 0x00E0])
        state = cycle(state, report=collector)
        state = cycle(state, report=collector)
        assert collector.collected() == []

    def test_default_reporter_logs_warning(self, capsys):
        log_diagnostic(Diagnostic(Fault.INVALID_VARIANT, 0x200, 0x5121))
        out = capsys.readouterr().out
        assert "WARNING" in out
        assert "invalid variant: 0x5121 at 0x200" in out


class TestWaitForKey:
    """Test the awaiting-key state across cycles."""

    def test_blocks_until_key_press(self, fresh_state):
        state = load_words(fresh_state, [0xF30A, 0x6101])
        state = state.replace(V=state.V.at[5].set(0x55))

        state = cycle(state, report=None)  # FX0A
        assert state.awaiting_key
        assert state.pc == 0x202

        registers = state.V
        for _ in range(5):
            state = cycle(state, report=None)
            assert state.awaiting_key
            assert state.pc == 0x202
            assert jnp.array_equal(state.V, registers)

        state = press_key(state, 0x9)
        state = press_key(state, 0x4)
        state = cycle(state, report=None)
        assert not state.awaiting_key
        assert state.V[3] == 0x4  # Lowest pressed key
        assert state.pc == 0x202
        assert state.V[5] == 0x55

        state = cycle(state, report=None)  # Normal execution resumes
        assert state.V[1] == 1
        assert state.pc == 0x204

    def test_key_held_before_wait_must_be_repressed(self, fresh_state):
        state = load_words(fresh_state, [0xF30A])
        state = press_key(state, 0x5)

        state = cycle(state, report=None)  # FX0A with key 5 already down
        state = cycle(state, report=None)
        assert state.awaiting_key

        state = release_key(state, 0x5)
        state = cycle(state, report=None)
        assert state.awaiting_key

        state = press_key(state, 0x5)
        state = cycle(state, report=None)
        assert not state.awaiting_key
        assert state.V[3] == 0x5

    def test_new_key_while_another_is_held(self, fresh_state):
        state = load_words(fresh_state, [0xF20A])
        state = press_key(state, 0x1)
        state = cycle(state, report=None)

        state = press_key(state, 0xC)
        state = cycle(state, report=None)
        assert not state.awaiting_key
        assert state.V[2] == 0x1  # Lowest key down, even though only C was fresh

    def test_timers_decay_while_waiting(self, fresh_state):
        state = load_words(fresh_state, [0xF00A])
        state = state.replace(delay_timer=jnp.astype(3, jnp.uint8))
        state = cycle(state, report=None)

        state = tick_timers(cycle(state, report=None))
        assert state.awaiting_key
        assert state.delay_timer == 2


class TestTimers:
    """Test timer decay."""

    def test_tick_decrements_by_one(self, fresh_state):
        state = fresh_state.replace(
            delay_timer=jnp.astype(5, jnp.uint8),
            sound_timer=jnp.astype(1, jnp.uint8),
        )
        state = tick_timers(state)
        assert state.delay_timer == 4
        assert state.sound_timer == 0

    def test_tick_never_underflows(self, fresh_state):
        state = fresh_state.replace(delay_timer=jnp.astype(2, jnp.uint8))
        for _ in range(10):
            state = tick_timers(state)
            assert state.delay_timer >= 0
            assert state.sound_timer == 0
        assert state.delay_timer == 0


class TestBatchExecution:
    """Test scan-based headless execution."""

    def test_run_cycles(self, fresh_state):
        state = load_words(fresh_state, [0x7001, 0x1200])
        state = run_cycles(state, 10, report=None)
        assert state.V[0] == 5
        assert state.delay_timer == 0

    def test_run_cycles_reports_faults(self, fresh_state, collector):
        state = load_words(fresh_state, [0x8128, 0x1200])
        run_cycles(state, 4, report=collector)
        diagnostics = collector.collected()
        assert len(diagnostics) == 2
        assert all(d.instruction == 0x8128 for d in diagnostics)

    def test_run_cycles_with_ignoring_reporter(self, fresh_state, capsys):
        state = load_words(fresh_state, [0x8128, 0x1200])
        state = run_cycles(state, 3, report=ignore_diagnostic)
        jax.effects_barrier()
        assert int(state.fault) == Fault.INVALID_VARIANT
        assert "invalid variant" not in capsys.readouterr().out

    def test_run_frames_ticks_timers(self, fresh_state):
        state = load_words(fresh_state, [0x6005, 0xF015, 0x1204])
        state = run_frames(state, 3, 4, report=None)
        # Frame 1 sets the delay timer to 5 and ticks once; frames 2-3 tick twice more
        assert state.delay_timer == 2

    def test_run_frames_with_keypad(self, fresh_state):
        state = load_words(fresh_state, [0xF10A, 0x1202])
        state = run_frames(state, 1, 5, report=None)
        assert state.awaiting_key

        state = set_keypad(state, [False] * 15 + [True])
        state = run_frames(state, 1, 5, report=None)
        assert not state.awaiting_key
        assert state.V[1] == 0xF
