"""
Debounced interactive token lookup.

Barcode scanners type a whole token in a burst of keystrokes a few
milliseconds apart, while people type slowly and paste. This module turns
both into at most one device lookup per intent:

* keystrokes closer than ``inter_key_gap_ms`` build one buffer, flushed
  after ``idle_flush_ms`` of silence or on Enter;
* candidates inside one ``debounce_ms`` window collapse to the longest;
* a query repeated within ``dedupe_window_ms`` is dropped;
* only the newest request may deliver a result, and delivery finishes
  before a newer request can start.

Timers and background work go through a scheduler so tests can drive
time by hand (see ManualScheduler).
"""

import threading
import time
from typing import Any, Callable, List, Optional, Tuple

from ..config import LookupConfig, get_config
from ..utils.logger import get_logger

ENTER_KEYS = ("\n", "\r")


class CancellationToken:
    """Cooperative cancellation flag handed to each lookup call."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class TimerHandle:
    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel

    def cancel(self) -> None:
        self._cancel()


class ThreadingScheduler:
    """Runs timers with threading.Timer and lookups on daemon threads."""

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_seconds, callback)
        timer.daemon = True
        timer.start()
        return TimerHandle(timer.cancel)

    def submit(self, job: Callable[[], None]) -> None:
        thread = threading.Thread(target=job, daemon=True)
        thread.start()


class ManualScheduler:
    """
    Deterministic scheduler with its own clock.

    ``advance(ms)`` moves time forward and fires due timers in order.
    Submitted jobs run inline unless ``defer_jobs`` is set, in which case
    they wait for ``run_jobs()``.
    """

    def __init__(self, defer_jobs: bool = False):
        self.now = 0.0
        self.defer_jobs = defer_jobs
        self._timers: List[Tuple[float, int, Callable[[], None]]] = []
        self._cancelled = set()
        self._sequence = 0
        self._jobs: List[Callable[[], None]] = []

    def clock(self) -> float:
        return self.now

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        self._sequence += 1
        timer_id = self._sequence
        self._timers.append((self.now + delay_seconds, timer_id, callback))
        return TimerHandle(lambda: self._cancelled.add(timer_id))

    def submit(self, job: Callable[[], None]) -> None:
        if self.defer_jobs:
            self._jobs.append(job)
        else:
            job()

    def advance(self, milliseconds: float) -> None:
        target = self.now + milliseconds / 1000.0
        while True:
            due = [t for t in self._timers if t[0] <= target and t[1] not in self._cancelled]
            if not due:
                break
            due.sort(key=lambda t: (t[0], t[1]))
            fire_at, timer_id, callback = due[0]
            self._timers.remove(due[0])
            self._cancelled.add(timer_id)
            self.now = max(self.now, fire_at)
            callback()
        self.now = target

    def run_jobs(self) -> None:
        jobs, self._jobs = self._jobs, []
        for job in jobs:
            job()

    @property
    def pending_jobs(self) -> int:
        return len(self._jobs)


class DebouncedLookup:
    """
    Coalesces scanner and typed input into single lookups.

    Args:
        lookup_fn: ``lookup_fn(query, cancel_token)`` performing the device call
        on_result: Called with ``(query, result)`` for the current request only
        on_error: Called with ``(query, exception)`` for the current request only
        config: Timing configuration (defaults to the global LookupConfig)
        clock: Monotonic clock in seconds
        scheduler: Timer and job runner
    """

    def __init__(
        self,
        lookup_fn: Callable[[str, CancellationToken], Any],
        on_result: Optional[Callable[[str, Any], None]] = None,
        on_error: Optional[Callable[[str, Exception], None]] = None,
        config: Optional[LookupConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        scheduler=None,
    ):
        self.lookup_fn = lookup_fn
        self.on_result = on_result
        self.on_error = on_error
        self.config = config or get_config().lookup
        self.clock = clock
        self.scheduler = scheduler or ThreadingScheduler()
        self.logger = get_logger()

        self._lock = threading.RLock()
        self._buffer = ""
        self._last_key_at: Optional[float] = None
        self._idle_timer: Optional[TimerHandle] = None

        self._pending: Optional[str] = None
        self._debounce_timer: Optional[TimerHandle] = None

        self._last_query: Optional[str] = None
        self._last_query_at: Optional[float] = None

        self._generation = 0
        self._inflight: Optional[CancellationToken] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def buffer(self) -> str:
        return self._buffer

    # ==================== KEYSTROKES ====================

    def feed_key(self, char: str) -> None:
        """Feed one keystroke; Enter flushes the buffer immediately."""
        if char in ENTER_KEYS:
            self.flush()
            return

        with self._lock:
            now = self.clock()
            gap_ms = None if self._last_key_at is None else (now - self._last_key_at) * 1000
            if gap_ms is not None and gap_ms > self.config.inter_key_gap_ms:
                self._buffer = ""
            self._buffer += char
            self._last_key_at = now

            if self._idle_timer is not None:
                self._idle_timer.cancel()
            self._idle_timer = self.scheduler.call_later(
                self.config.idle_flush_ms / 1000.0, self.flush
            )

    def flush(self) -> None:
        """Hand the buffered keystrokes to ``trigger`` and reset the buffer."""
        with self._lock:
            if self._idle_timer is not None:
                self._idle_timer.cancel()
                self._idle_timer = None
            candidate, self._buffer = self._buffer, ""
            self._last_key_at = None

        if candidate:
            self.trigger(candidate)

    # ==================== TRIGGERS ====================

    def trigger(self, candidate: str) -> None:
        """Paste/input path. The longest candidate inside the debounce window wins."""
        candidate = (candidate or "").strip()
        if len(candidate) < self.config.min_length:
            return

        with self._lock:
            if self._pending is None:
                self._pending = candidate
                self._debounce_timer = self.scheduler.call_later(
                    self.config.debounce_ms / 1000.0, self._fire
                )
            elif len(candidate) > len(self._pending):
                self._pending = candidate

    def cancel(self) -> None:
        """Drop pending input and cancel the in-flight request."""
        with self._lock:
            for timer in (self._idle_timer, self._debounce_timer):
                if timer is not None:
                    timer.cancel()
            self._idle_timer = self._debounce_timer = None
            self._pending = None
            self._buffer = ""
            if self._inflight is not None:
                self._inflight.cancel()
                self._inflight = None
            self._generation += 1

    def _fire(self) -> None:
        with self._lock:
            query, self._pending = self._pending, None
            self._debounce_timer = None
            if query is None:
                return

            now = self.clock()
            if (
                query == self._last_query
                and self._last_query_at is not None
                and (now - self._last_query_at) * 1000 < self.config.dedupe_window_ms
            ):
                self.logger.debug("Duplicate lookup suppressed", extra={"query": query})
                return
            self._last_query, self._last_query_at = query, now

            if self._inflight is not None:
                self._inflight.cancel()
            self._generation += 1
            generation = self._generation
            token = CancellationToken()
            self._inflight = token

        self.scheduler.submit(lambda: self._run(query, generation, token))

    def _run(self, query: str, generation: int, token: CancellationToken) -> None:
        try:
            result = self.lookup_fn(query, token)
        except Exception as e:
            # Delivery holds the lock so no newer request can start mid-callback
            with self._lock:
                if not self._is_current(generation, token):
                    return
                self.logger.warning(
                    "Lookup failed", extra={"query": query, "error_type": type(e).__name__}
                )
                if self.on_error is None:
                    raise
                self.on_error(query, e)
            return

        with self._lock:
            if not self._is_current(generation, token):
                self.logger.debug("Stale lookup result discarded", extra={"query": query})
                return
            if self.on_result is not None:
                self.on_result(query, result)

    def _is_current(self, generation: int, token: CancellationToken) -> bool:
        with self._lock:
            if token.is_cancelled or generation != self._generation:
                return False
            self._inflight = None
            return True
