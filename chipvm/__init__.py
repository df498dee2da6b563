"""CHIP-8 virtual machine package."""

from chipvm.state import MachineState, create_state, press_key, release_key, set_keypad
from chipvm.emulator import (
    execute, fetch, cycle, tick_timers, run_cycles, run_frames, load_program, load_rom,
)
from chipvm.decode import DecodedInstruction, decode, encode
from chipvm.diagnostics import Fault, Diagnostic, ProgramTooLargeError, log_diagnostic, ignore_diagnostic
from chipvm.scheduler import Scheduler
from chipvm.constants import *

__all__ = [
    "MachineState",
    "create_state",
    "press_key",
    "release_key",
    "set_keypad",
    "fetch",
    "execute",
    "cycle",
    "tick_timers",
    "run_cycles",
    "run_frames",
    "load_program",
    "load_rom",
    "DecodedInstruction",
    "decode",
    "encode",
    "Fault",
    "Diagnostic",
    "ProgramTooLargeError",
    "log_diagnostic",
    "ignore_diagnostic",
    "Scheduler",
    "PROGRAM_START",
    "FONT_START",
    "MEMORY_SIZE",
    "SCREEN_WIDTH",
    "SCREEN_HEIGHT",
    "STACK_SIZE",
    "FLAG_REGISTER",
]
