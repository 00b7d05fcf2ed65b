"""
Stepper: Time-Gated Animation Driver
====================================

Turns a stream of render frames into discrete animation steps. Once per
frame the owner calls ``on_frame(now)``; the driver advances at most one
step, and only when more than ``cadence_ms`` has passed since the last one.

Nothing here sleeps or owns a thread: waiting is a timestamp comparison.
A bounded driver (convolution) pauses itself after reaching the last step;
an unbounded driver (descent) runs until stopped.
"""

import time
from typing import Callable, Optional

from errors import InvalidArgument
from logs import get_logger

logger = get_logger(__name__)

DEFAULT_CADENCE_MS = 1000.0
DEFAULT_SPEED = 1
MIN_SPEED, MAX_SPEED = 1, 10


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def speed_to_cadence(level: int) -> float:
    """Speed slider level 1..10 -> ms per step (1000 down to 100)."""
    level = max(MIN_SPEED, min(int(level), MAX_SPEED))
    return float(1100 - level * 100)


class AnimationDriver:
    """Two-state (stopped / running) step scheduler."""

    def __init__(
        self,
        advance: Callable[[], object],
        cadence_ms: float = DEFAULT_CADENCE_MS,
        is_finished: Optional[Callable[[], bool]] = None,
        clock: Callable[[], float] = monotonic_ms,
        name: str = "driver",
    ):
        """
        Args:
            advance:     Performs exactly one step.
            cadence_ms:  Minimum wall-clock gap between steps.
            is_finished: For bounded sequences, True once the last step is
                         shown; None for sequences that never end.
            clock:       Millisecond clock used when no explicit time is given.
            name:        Label used in log records.
        """
        self._advance = advance
        self._is_finished = is_finished
        self._clock = clock
        self.name = name
        self.cadence_ms = self._check_cadence(cadence_ms)
        self.is_running = False
        self.last_step_timestamp: Optional[float] = None

    @classmethod
    def for_convolution(cls, engine, **kwargs):
        """Bounded driver walking ``engine`` one output cell at a time."""
        return cls(
            advance=lambda: engine.set_step(engine.step + 1),
            is_finished=engine.is_last_step,
            name=kwargs.pop("name", type(engine).__name__),
            **kwargs,
        )

    @classmethod
    def for_descent(cls, engine, **kwargs):
        """Unbounded driver taking one gradient step per tick."""
        return cls(advance=engine.step,
                   name=kwargs.pop("name", "descent"), **kwargs)

    @property
    def bounded(self) -> bool:
        return self._is_finished is not None

    @staticmethod
    def _check_cadence(value) -> float:
        value = float(value)
        if not value > 0:
            raise InvalidArgument(f"cadence must be positive, got {value!r}")
        return value

    def set_cadence(self, cadence_ms: float) -> None:
        self.cadence_ms = self._check_cadence(cadence_ms)

    def start(self, now: Optional[float] = None) -> None:
        if self.is_running:
            return
        self.is_running = True
        # Time spent paused never counts towards the next step.
        self.last_step_timestamp = self._clock() if now is None else now

    def stop(self) -> None:
        self.is_running = False

    def toggle(self, now: Optional[float] = None) -> bool:
        if self.is_running:
            self.stop()
        else:
            self.start(now)
        return self.is_running

    def on_frame(self, now: Optional[float] = None) -> bool:
        """Advance one step if the cadence allows it.

        Returns:
            True when a step was taken on this frame.
        """
        if not self.is_running:
            return False
        if now is None:
            now = self._clock()

        elapsed = now - self.last_step_timestamp
        if elapsed <= self.cadence_ms:
            return False

        self._advance()
        self.last_step_timestamp = now

        if self._is_finished is not None and self._is_finished():
            if self.is_running:
                logger.info("%s: reached last step, pausing", self.name)
            self.stop()
        return True
