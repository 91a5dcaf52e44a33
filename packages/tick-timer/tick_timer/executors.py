"""Execution contexts that timer callbacks run on.

Three implementations of the ``Executor`` protocol:

- ``ManualExecutor``: virtual clock advanced by hand. Serial and
  deterministic, used for tests and fixed-step simulations.
- ``ThreadExecutor``: a daemon scheduler thread over a heap. Serial unless
  given ``max_workers > 1``, in which case due callbacks go to a thread pool
  and firings of the same timer may overlap.
- ``AsyncioExecutor``: schedules onto an asyncio event loop.

Callback exceptions are logged and swallowed by the executor so one failing
handler cannot take down the scheduling thread or loop.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from tick_timer.types import Handler

logger = logging.getLogger(__name__)


class _Call:
    """A single pending callback. Satisfies the Handle protocol."""

    __slots__ = ("when", "_fn", "_cancelled")

    def __init__(self, when: float, fn: Handler) -> None:
        self.when = when
        self._fn: Handler | None = fn
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        self._fn = None

    def cancelled(self) -> bool:
        return self._cancelled

    def run(self) -> None:
        fn = self._fn
        if self._cancelled or fn is None:
            return
        self._fn = None
        try:
            fn()
        except Exception:
            logger.exception("Timer callback %r failed", fn)


class ManualExecutor:
    """Executor with a virtual clock that only moves when told to.

    Due callbacks run in (deadline, submission) order. While a callback runs,
    ``time()`` reports its deadline, so periodic schedules stay on their grid
    however far the clock is advanced in one call.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._heap: list[tuple[float, int, _Call]] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def time(self) -> float:
        return self._now

    def call_at(self, when: float, fn: Handler) -> _Call:
        call = _Call(when, fn)
        with self._lock:
            heapq.heappush(self._heap, (when, next(self._seq), call))
        return call

    def call_later(self, delay: float, fn: Handler) -> _Call:
        return self.call_at(self._now + delay, fn)

    def pending(self) -> int:
        """Number of scheduled calls that have not run or been cancelled."""
        with self._lock:
            return sum(1 for _, _, call in self._heap if not call.cancelled())

    def run_until(self, when: float) -> int:
        """Run every call due at or before ``when``, then set the clock to it.

        Returns the number of callbacks run.
        """
        if when < self._now:
            raise ValueError(f"cannot move clock backwards from {self._now} to {when}")
        ran = 0
        while True:
            with self._lock:
                if not self._heap or self._heap[0][0] > when:
                    break
                deadline, _, call = heapq.heappop(self._heap)
            if call.cancelled():
                continue
            self._now = max(self._now, deadline)
            call.run()
            ran += 1
        self._now = when
        return ran

    def advance(self, seconds: float) -> int:
        if seconds < 0:
            raise ValueError(f"seconds must be >= 0, got {seconds}")
        return self.run_until(self._now + seconds)

    def run_pending(self) -> int:
        """Run calls already due without moving the clock."""
        return self.run_until(self._now)


class ThreadExecutor:
    """Real-time executor backed by one daemon scheduler thread.

    The thread starts lazily on the first scheduled call (or explicitly via
    ``start()``). ``shutdown()`` drops everything still pending.

    Args:
        name: Thread name, also the prefix for pool worker threads.
        max_workers: 1 runs callbacks on the scheduler thread, one at a time.
            Larger values dispatch to a ThreadPoolExecutor; callbacks then run
            concurrently and handlers must do their own locking.
    """

    def __init__(self, name: str = "tick-timer", max_workers: int = 1) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._name = name
        self._cond = threading.Condition()
        self._heap: list[tuple[float, int, _Call]] = []
        self._seq = itertools.count()
        self._thread: threading.Thread | None = None
        self._shutdown = False
        self._pool = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
            if max_workers > 1
            else None
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._shutdown

    def time(self) -> float:
        return time.monotonic()

    def start(self) -> ThreadExecutor:
        with self._cond:
            if self._shutdown:
                raise RuntimeError(f"executor {self._name!r} has been shut down")
            self._ensure_thread()
        return self

    def call_at(self, when: float, fn: Handler) -> _Call:
        call = _Call(when, fn)
        with self._cond:
            if self._shutdown:
                logger.debug("Executor %s shut down, dropping %r", self._name, fn)
                call.cancel()
                return call
            heapq.heappush(self._heap, (when, next(self._seq), call))
            self._cond.notify()
            self._ensure_thread()
        return call

    def call_later(self, delay: float, fn: Handler) -> _Call:
        return self.call_at(time.monotonic() + delay, fn)

    def shutdown(self, wait: bool = True) -> None:
        with self._cond:
            if self._shutdown:
                return
            self._shutdown = True
            for _, _, call in self._heap:
                call.cancel()
            self._heap.clear()
            self._cond.notify_all()
            thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()
        if self._pool is not None:
            self._pool.shutdown(wait=wait, cancel_futures=True)
        logger.debug("Executor %s shut down", self._name)

    def __enter__(self) -> ThreadExecutor:
        return self.start()

    def __exit__(self, *exc: object) -> None:
        self.shutdown()

    def _ensure_thread(self) -> None:
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._loop, name=self._name, daemon=True
            )
            self._thread.start()
            logger.debug("Started executor thread %s", self._name)

    def _next_due(self) -> _Call | None:
        """Block until a call is due. Returns None on shutdown."""
        with self._cond:
            while not self._shutdown:
                if not self._heap:
                    self._cond.wait()
                    continue
                when, _, call = self._heap[0]
                if call.cancelled():
                    heapq.heappop(self._heap)
                    continue
                delay = when - time.monotonic()
                if delay > 0:
                    self._cond.wait(delay)
                    continue
                heapq.heappop(self._heap)
                return call
            return None

    def _loop(self) -> None:
        while True:
            call = self._next_due()
            if call is None:
                return
            if self._pool is None:
                call.run()
                continue
            try:
                self._pool.submit(call.run)
            except RuntimeError:
                # Pool closed between pop and submit.
                logger.debug("Executor %s pool closed, dropping call", self._name)


class AsyncioExecutor:
    """Executor that schedules onto an asyncio event loop.

    Safe to call from any thread; calls from outside the loop thread are
    handed over with ``call_soon_threadsafe``.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop if loop is not None else asyncio.get_running_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def time(self) -> float:
        return self._loop.time()

    def call_at(self, when: float, fn: Handler) -> _LoopCall:
        call = _LoopCall(when, fn, self._loop)
        if _in_loop(self._loop):
            call.arm()
        else:
            self._loop.call_soon_threadsafe(call.arm)
        return call

    def call_later(self, delay: float, fn: Handler) -> _LoopCall:
        return self.call_at(self._loop.time() + delay, fn)


def _in_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class _LoopCall(_Call):
    """A call armed on an asyncio loop. Cancelling also drops the loop handle."""

    __slots__ = ("_loop", "_loop_handle")

    def __init__(self, when: float, fn: Handler, loop: asyncio.AbstractEventLoop) -> None:
        super().__init__(when, fn)
        self._loop = loop
        self._loop_handle: asyncio.TimerHandle | None = None

    def arm(self) -> None:
        if self.cancelled():
            return
        handle = self._loop.call_at(self.when, self.run)
        self._loop_handle = handle
        # A cancel from another thread may have landed while arming.
        if self.cancelled():
            self._loop_handle = None
            handle.cancel()

    def cancel(self) -> None:
        super().cancel()
        handle = self._loop_handle
        if handle is None:
            return
        self._loop_handle = None
        if _in_loop(self._loop):
            handle.cancel()
            return
        try:
            self._loop.call_soon_threadsafe(handle.cancel)
        except RuntimeError:
            # Loop already closed; its handles went with it.
            logger.debug("Event loop closed, dropping handle for %r", self)


_main: ThreadExecutor | None = None
_main_lock = threading.Lock()


def main_executor() -> ThreadExecutor:
    """Process-wide default executor, created on first use."""
    global _main
    with _main_lock:
        if _main is None:
            _main = ThreadExecutor(name="tick-timer-main")
        return _main
