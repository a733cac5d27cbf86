"""
Countdown timer driving ExamSession.tick() once per second.

Two ways to run it:
- start()/cancel() (or a with-block): a daemon thread ticking every period.
- catch_up(): apply the ticks owed since the last call; for Streamlit reruns.
"""
import logging
import threading
import time
from typing import Callable, Optional

from examhall.session import ExamSession

logger = logging.getLogger(__name__)

WARNING_SECONDS = 600  # under 10 min left
DANGER_SECONDS = 300   # under 5 min left


def format_clock(seconds: int) -> str:
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


def clock_level(seconds: int) -> str:
    """'safe', 'warning' or 'danger' for colouring the clock."""
    if seconds > WARNING_SECONDS:
        return "safe"
    if seconds > DANGER_SECONDS:
        return "warning"
    return "danger"


class CountdownTimer:
    """Cancellable one-second tick bound to a session. Fires on_expire at most once."""

    def __init__(
        self,
        session: ExamSession,
        on_expire: Optional[Callable[[], None]] = None,
        period: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.on_expire = on_expire
        self.period = period
        self._clock = clock
        self._last_tick = clock()
        self._expired = False
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> bool:
        """Advance one period. Returns True if this tick expired the session."""
        if self.session.is_submitted:
            return False
        reached_zero = self.session.tick()
        if reached_zero and not self._expired:
            self._expired = True
            logger.info(f"Attempt {self.session.attempt_id}: time expired")
            if self.on_expire is not None and not self.session.is_submitted:
                self.on_expire()
            return True
        return False

    def catch_up(self, now: Optional[float] = None) -> int:
        """Apply every whole period elapsed since the last tick. Returns ticks applied."""
        now = self._clock() if now is None else now
        applied = 0
        while now - self._last_tick >= self.period:
            self._last_tick += self.period
            if self.session.is_submitted or self.session.time_remaining <= 0:
                # nothing left to count; keep the anchor current
                self._last_tick = now
                break
            self.tick()
            applied += 1
        return applied

    def _run(self) -> None:
        while not self._stop.wait(self.period):
            if self.session.is_submitted or self._expired:
                break
            self._last_tick = self._clock()
            self.tick()
        logger.debug(f"Timer thread for attempt {self.session.attempt_id} stopped")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._last_tick = self._clock()
        self._thread = threading.Thread(target=self._run, name="exam-countdown", daemon=True)
        self._thread.start()

    def cancel(self, timeout: Optional[float] = None) -> None:
        """Stop ticking and wait for the thread to exit."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def __enter__(self) -> "CountdownTimer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()
