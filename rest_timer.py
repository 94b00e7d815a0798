import re
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

COMPOUND_REST_SECONDS = 90
ISOLATION_REST_SECONDS = 60

_COMPOUND_PATTERN = re.compile(
    r"\b(bench|press|squat|deadlift|row|pulldown|pull-down)\b", re.IGNORECASE
)


def is_compound(lift_name: str) -> bool:
    return bool(_COMPOUND_PATTERN.search(lift_name or ""))


def rest_seconds_for(
    lift_name: str,
    compound: int = COMPOUND_REST_SECONDS,
    isolation: int = ISOLATION_REST_SECONDS,
) -> int:
    """Return the rest duration for ``lift_name``."""
    return compound if is_compound(lift_name) else isolation


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Running:
    lift_name: str
    duration: float
    deadline: float


@dataclass(frozen=True)
class Done:
    lift_name: str


TimerState = Union[Idle, Running, Done]


class RestTimer:
    """Single countdown between sets, driven by an external tick source.

    Starting a countdown replaces any running one. Reaching the deadline
    moves to ``Done`` which stays until :meth:`dismiss` is called.
    """

    def __init__(
        self,
        compound_seconds: int = COMPOUND_REST_SECONDS,
        isolation_seconds: int = ISOLATION_REST_SECONDS,
        on_done: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.compound_seconds = compound_seconds
        self.isolation_seconds = isolation_seconds
        self.on_done = on_done
        self.state: TimerState = Idle()

    def start(self, lift_name: str, now: float, duration: float | None = None) -> Running:
        if duration is None:
            duration = rest_seconds_for(
                lift_name, self.compound_seconds, self.isolation_seconds
            )
        if duration <= 0:
            raise ValueError("duration must be positive")
        self.state = Running(lift_name, float(duration), now + duration)
        return self.state

    def tick(self, now: float) -> bool:
        """Advance the timer; return ``True`` only on the transition to done."""
        state = self.state
        if isinstance(state, Running) and now >= state.deadline:
            self.state = Done(state.lift_name)
            if self.on_done is not None:
                self.on_done(state.lift_name)
            return True
        return False

    def dismiss(self) -> None:
        self.state = Idle()

    def remaining(self, now: float) -> float:
        if isinstance(self.state, Running):
            return max(0.0, self.state.deadline - now)
        return 0.0

    @property
    def is_idle(self) -> bool:
        return isinstance(self.state, Idle)

    @property
    def is_running(self) -> bool:
        return isinstance(self.state, Running)

    @property
    def is_done(self) -> bool:
        return isinstance(self.state, Done)


def run_countdown(
    timer: RestTimer,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    on_tick: Optional[Callable[[float], None]] = None,
    interval: float = 1.0,
) -> bool:
    """Poll ``timer`` until it finishes or is dismissed.

    Returns ``True`` when the countdown reached zero.
    """
    while timer.is_running:
        now = clock()
        if timer.tick(now):
            return True
        if on_tick is not None:
            on_tick(timer.remaining(now))
        sleep(interval)
    return timer.is_done
