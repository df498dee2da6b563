"""Wall-clock scheduling of instruction cycles and timer decay."""

import time
from typing import Callable, Optional

from chipvm.state import MachineState
from chipvm.emulator import cycle, tick_timers
from chipvm.constants import INSTRUCTION_FREQUENCY, TIMER_FREQUENCY
from chipvm.diagnostics import Reporter, log_diagnostic
from chipvm.logging import logger

Host = Callable[[MachineState], Optional[MachineState]]


class Scheduler:
    """Drives a machine at two independent cadences from one clock.

    Each ``poll`` runs at most one instruction cycle and at most one timer
    tick, each only if its own interval has elapsed since its own reference.
    The references advance by whole intervals so the long-run rates match the
    configured frequencies; after a stall longer than ``max_lag`` they are
    re-anchored to the current time instead of replaying the backlog.

    Args:
        instruction_frequency: Instruction cycles per second.
        timer_frequency: Timer decrements per second.
        idle: Seconds to sleep between passes in ``run``.
        report: Receives diagnostics for faulting instructions.
        clock: Monotonic time source in seconds.
        sleep: Called with ``idle`` between passes.
        max_lag: Largest backlog, in seconds, that is still caught up.
    """

    def __init__(
        self,
        instruction_frequency: float = INSTRUCTION_FREQUENCY,
        timer_frequency: float = TIMER_FREQUENCY,
        idle: float = 0.0005,
        report: Optional[Reporter] = log_diagnostic,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], None] = time.sleep,
        max_lag: float = 0.25,
    ):
        if instruction_frequency <= 0 or timer_frequency <= 0:
            raise ValueError("Frequencies must be positive")

        self.instruction_interval = 1.0 / instruction_frequency
        self.timer_interval = 1.0 / timer_frequency
        self.idle = idle
        self.report = report
        self.clock = clock
        self.sleep = sleep
        self.max_lag = max_lag

        self.instructions_executed = 0
        self.timer_ticks = 0
        self.reset()

    def reset(self):
        """Restart both cadences from the current time."""
        now = self.clock()
        self.last_instruction = now
        self.last_timer = now

    def _advance(self, reference: float, interval: float, now: float) -> float:
        reference += interval
        if now - reference > self.max_lag:
            return now
        return reference

    def poll(self, state: MachineState) -> MachineState:
        """Run one scheduling pass."""
        now = self.clock()

        if now - self.last_instruction >= self.instruction_interval:
            state = cycle(state, report=self.report)
            self.instructions_executed += 1
            self.last_instruction = self._advance(self.last_instruction, self.instruction_interval, now)

        if now - self.last_timer >= self.timer_interval:
            state = tick_timers(state)
            self.timer_ticks += 1
            self.last_timer = self._advance(self.last_timer, self.timer_interval, now)

        return state

    def run(
        self,
        state: MachineState,
        host: Optional[Host] = None,
        max_passes: Optional[int] = None,
    ) -> MachineState:
        """Poll until ``host`` returns ``None`` or ``max_passes`` is reached.

        ``host`` is called between passes with the current state and returns
        the state to continue with (e.g. with an updated keypad).
        """
        self.reset()
        passes = 0
        logger.debug(
            f"Scheduler running at {1.0 / self.instruction_interval:.0f} Hz "
            f"(timers {1.0 / self.timer_interval:.0f} Hz)"
        )

        while max_passes is None or passes < max_passes:
            state = self.poll(state)
            passes += 1

            if host is not None:
                next_state = host(state)
                if next_state is None:
                    break
                state = next_state

            self.sleep(self.idle)

        return state
