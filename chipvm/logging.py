"""Console logging and scan progress bars for chipvm.

``logger`` is the package-wide leveled console logger used by the reporter,
the scheduler and the front end. ``scan_with_progress`` attaches a tqdm bar to
a ``jax.lax.scan`` body; the bar is driven from inside the compiled loop with
ordered ``io_callback``s.
"""

import time
import sys
from typing import Callable, Optional, Tuple

import jax
from jax.experimental import io_callback

from tqdm import tqdm

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
}
_RESET = "\033[0m"


class ConsoleLogger:
    """Prints ``[elapsed][LEVEL][name] message`` lines at or above a level."""

    def __init__(self, name: str = "chipvm", log_level: str = "INFO", use_colors: bool = True):
        self.name = name
        self.start_time = time.time()
        self.use_colors = use_colors and hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
        self.set_level(log_level)

    def set_level(self, log_level: str):
        level = log_level.upper()
        if level not in LEVELS:
            raise ValueError(f"Unknown log level '{log_level}'. Available: {list(LEVELS)}")
        self.threshold = LEVELS.index(level)

    def log(self, level: str, message: str):
        if LEVELS.index(level) < self.threshold:
            return
        tag = f"[{level:>8s}]"
        if self.use_colors:
            tag = f"{_COLORS[level]}{tag}{_RESET}"
        print(f"[{time.time() - self.start_time:8.2f}s]{tag}[{self.name}] {message}", flush=True)

    def debug(self, message: str):
        self.log("DEBUG", message)

    def info(self, message: str):
        self.log("INFO", message)

    def warning(self, message: str):
        self.log("WARNING", message)

    def error(self, message: str):
        self.log("ERROR", message)


logger = ConsoleLogger("chipvm")


def build_tqdm_progress_bar(
    n: int,
    print_rate: Optional[int] = None,
    desc: str = None,
    unit: str = "step",
    **kwargs,
) -> Tuple[Callable, Callable]:
    """Build the (update, close) callbacks for a tqdm bar over ``n`` scan steps.

    The bar advances by ``print_rate`` every ``print_rate`` steps; the last
    step pushes whatever is still outstanding so the bar always ends at ``n``.
    """
    if desc is None:
        desc = f"Running ({n:,} {unit}s)"

    for kwarg in ("total", "mininterval", "maxinterval", "miniters"):
        kwargs.pop(kwarg, None)

    if print_rate is None:
        print_rate = max(1, min(n // 20, 50))
    else:
        print_rate = max(1, min(print_rate, n))

    # Steps already pushed by the periodic updates before the last step
    final_steps = n - print_rate * ((n - 1) // print_rate)

    bars = {}

    def _open():
        bars["bar"] = tqdm(total=n, desc=desc, unit=unit, **kwargs)

    def _advance(steps):
        if "bar" in bars:
            bars["bar"].update(int(steps))

    def _close():
        if "bar" in bars:
            bars.pop("bar").close()

    def _when(predicate, callback, *args):
        jax.lax.cond(
            predicate,
            lambda _: io_callback(callback, None, *args, ordered=True),
            lambda _: None,
            operand=None,
        )

    def update_progress_bar(iter_num):
        _when(iter_num == 0, _open)
        _when(((iter_num + 1) % print_rate == 0) & (iter_num != n - 1), _advance, print_rate)
        _when(iter_num == n - 1, _advance, final_steps)

    def close_progress_bar(result, iter_num):
        _when(iter_num == n - 1, _close)
        return result

    return update_progress_bar, close_progress_bar


def scan_with_progress(
    n: int,
    print_rate: Optional[int] = None,
    desc: str = None,
    **tqdm_kwargs,
) -> Callable:
    """Decorator to add a real-time progress bar to a ``jax.lax.scan`` body.

    The scanned ``xs`` must be the iteration index (or a tuple starting with it).
    """
    update_progress_bar, close_progress_bar = build_tqdm_progress_bar(
        n, print_rate, desc, **tqdm_kwargs
    )

    def _scan_progress_decorator(func):
        def wrapper_with_progress(carry, x):
            iter_num = x[0] if isinstance(x, tuple) else x
            update_progress_bar(iter_num)
            result = func(carry, x)
            return close_progress_bar(result, iter_num)

        return wrapper_with_progress

    return _scan_progress_decorator
