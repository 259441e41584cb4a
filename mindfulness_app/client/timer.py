"""
Exercise timer and breathing guide.

All timing goes through a :class:`Scheduler`, so the timer runs on the
asyncio loop in production and on virtual time in tests. Leaving the running
state by any route (pause, completion, reset, close) cancels the interval
handles.
"""

import asyncio
import enum
import logging
from typing import Callable, List, Optional, Protocol, Sequence

from mindfulness_app.client.storage import CompletedExercises
from mindfulness_app.errors import InvalidTransitionError

logger = logging.getLogger(__name__)

TICK_SECONDS = 1.0
BREATH_TICK_MS = 100
COMPLETE_CUE_REPEAT_SECONDS = 1.5

BREATH_PHASES = (("inhale", 4000), ("hold", 7000), ("exhale", 8000), ("rest", 2000))


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_every(self, interval: float, callback: Callable[[], None]) -> Handle: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle: ...


class _RepeatingHandle:

    def __init__(self, loop: asyncio.AbstractEventLoop, interval: float, callback: Callable[[], None]):
        self.loop = loop
        self.interval = interval
        self.callback = callback
        self.cancelled = False
        self._next = loop.call_later(interval, self._run)

    def _run(self) -> None:
        if self.cancelled:
            return
        self._next = self.loop.call_later(self.interval, self._run)
        self.callback()

    def cancel(self) -> None:
        self.cancelled = True
        self._next.cancel()


class AsyncioScheduler:

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop or asyncio.get_running_loop()

    def call_every(self, interval: float, callback: Callable[[], None]) -> Handle:
        return _RepeatingHandle(self.loop, interval, callback)

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle:
        return self.loop.call_later(delay, callback)


class TimerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class BreathingCycle:
    """4-7-8 breathing with a short rest, advanced every 100 ms."""

    def __init__(self, scheduler: Scheduler):
        self.scheduler = scheduler
        self.phase = "rest"
        self.count = 0
        self._index = len(BREATH_PHASES) - 1
        self._elapsed_ms = 0
        self._handle: Optional[Handle] = None

    def start(self) -> None:
        self.stop()
        self._index = 0
        self.phase = BREATH_PHASES[0][0]
        self._elapsed_ms = 0
        self._handle = self.scheduler.call_every(BREATH_TICK_MS / 1000, self._tick)

    def _tick(self) -> None:
        self._elapsed_ms += BREATH_TICK_MS
        if self._elapsed_ms < BREATH_PHASES[self._index][1]:
            return
        self._elapsed_ms = 0
        self._index = (self._index + 1) % len(BREATH_PHASES)
        self.phase = BREATH_PHASES[self._index][0]
        if self._index == 0:
            self.count += 1

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def reset(self) -> None:
        self.stop()
        self._index = len(BREATH_PHASES) - 1
        self.phase = "rest"
        self.count = 0
        self._elapsed_ms = 0


def active_step(elapsed: int, timings: Sequence[int]) -> int:
    """Index of the first step whose cumulative end is at or after ``elapsed``; the last step otherwise."""
    total = 0
    for index, seconds in enumerate(timings):
        total += seconds
        if elapsed <= total:
            return index
    return max(len(timings) - 1, 0)


class ExerciseTimer:
    """
    Countdown for one exercise.

    ``play_cue`` receives ``"start"``, ``"step"`` or ``"complete"``. On
    completion the exercise id is added to the local completed set.
    """

    def __init__(
        self,
        exercise_id: str,
        category: str,
        duration_minutes: int,
        step_timings: List[int],
        step_count: int,
        scheduler: Scheduler,
        completed: CompletedExercises,
        play_cue: Callable[[str], None] = lambda cue: None,
    ):
        self.exercise_id = exercise_id
        self.category = category
        self.total_seconds = duration_minutes * 60
        self.step_timings = list(step_timings)
        self.step_count = step_count
        self.scheduler = scheduler
        self.completed = completed
        self.play_cue = play_cue

        self.state = TimerState.IDLE
        self.remaining = self.total_seconds
        self.progress = 0
        self.current_step = 0
        self.breathing = BreathingCycle(scheduler) if category == "breathing" else None
        self._tick_handle: Optional[Handle] = None
        self._cue_handle: Optional[Handle] = None

    @classmethod
    def from_exercise(cls, exercise: dict, scheduler: Scheduler, completed: CompletedExercises, **kwargs):
        return cls(
            exercise["id"],
            exercise["category"],
            exercise["duration"],
            exercise.get("step_timings") or [],
            len(exercise.get("steps") or []),
            scheduler,
            completed,
            **kwargs,
        )

    def _require(self, action: str, *allowed: TimerState) -> None:
        if self.state not in allowed:
            raise InvalidTransitionError(f"Cannot {action} a timer that is {self.state.value}")

    def _run(self) -> None:
        self.state = TimerState.RUNNING
        self._tick_handle = self.scheduler.call_every(TICK_SECONDS, self._tick)
        if self.breathing is not None:
            self.breathing.start()

    def _stop_intervals(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        if self.breathing is not None:
            self.breathing.stop()

    def start(self) -> None:
        self._require("start", TimerState.IDLE)
        self.play_cue("start")
        self._run()

    def pause(self) -> None:
        self._require("pause", TimerState.RUNNING)
        self._stop_intervals()
        self.state = TimerState.PAUSED

    def resume(self) -> None:
        self._require("resume", TimerState.PAUSED)
        self._run()

    def reset(self) -> None:
        self.close()
        self.state = TimerState.IDLE
        self.remaining = self.total_seconds
        self.progress = 0
        self.current_step = 0
        if self.breathing is not None:
            self.breathing.reset()

    def close(self) -> None:
        self._stop_intervals()
        if self._cue_handle is not None:
            self._cue_handle.cancel()
            self._cue_handle = None

    def _tick(self) -> None:
        self.remaining -= 1
        elapsed = self.total_seconds - self.remaining
        self.progress = min(100, elapsed * 100 // self.total_seconds)

        step = min(active_step(elapsed, self.step_timings), max(self.step_count - 1, 0))
        if step != self.current_step:
            self.current_step = step
            self.play_cue("step")

        if self.remaining <= 0:
            self.remaining = 0
            self._complete()

    def _complete(self) -> None:
        self._stop_intervals()
        self.state = TimerState.COMPLETED
        self.play_cue("complete")
        self._cue_handle = self.scheduler.call_later(COMPLETE_CUE_REPEAT_SECONDS, lambda: self.play_cue("complete"))
        if self.completed.add(self.exercise_id):
            logger.info("Exercise %s completed", self.exercise_id)
