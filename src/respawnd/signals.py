"""Converts asynchronous signals into events read by the supervisor loop.

Signal handlers here do no work of their own. ``signal.set_wakeup_fd`` makes
the interpreter write each delivered signal number into a pipe, and the main
loop blocks on that pipe with ``selectors``. Every table mutation therefore
happens in the single main control flow, never inside a handler.
"""
from __future__ import annotations

import os
import selectors
import signal
from collections import deque
from enum import Enum
from typing import Callable
from typing import Iterable


class SupervisorEvent(str, Enum):
    SHUTDOWN = "shutdown"
    RESTART = "restart"
    CHILD = "child"


# order in which a single wake-up is handled
EVENT_ORDER = (SupervisorEvent.SHUTDOWN, SupervisorEvent.RESTART, SupervisorEvent.CHILD)

DEFAULT_SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def _ordered(events: Iterable[SupervisorEvent]) -> list[SupervisorEvent]:
    received = set(events)
    return [event for event in EVENT_ORDER if event in received]


class SignalWaiter:
    """Blocks until SIGCHLD, the restart signal or a shutdown signal arrives."""

    def __init__(
        self,
        restart_signal: int = signal.SIGHUP,
        shutdown_signals: Iterable[int] = DEFAULT_SHUTDOWN_SIGNALS,
    ) -> None:
        shutdown = tuple(shutdown_signals)
        if restart_signal == signal.SIGCHLD or restart_signal in shutdown:
            raise ValueError(f"restart signal {restart_signal} conflicts with another supervisor signal")
        self._events: dict[int, SupervisorEvent] = {signal.SIGCHLD: SupervisorEvent.CHILD}
        self._events[restart_signal] = SupervisorEvent.RESTART
        for signum in shutdown:
            self._events[signum] = SupervisorEvent.SHUTDOWN
        self._previous_handlers: dict[int, object] = {}
        self._previous_wakeup_fd = -1
        self._selector: selectors.BaseSelector | None = None
        self._read_fd: int | None = None
        self._write_fd: int | None = None

    def install(self) -> "SignalWaiter":
        if self._selector is not None:
            return self
        read_fd, write_fd = os.pipe()
        os.set_blocking(read_fd, False)
        os.set_blocking(write_fd, False)
        self._read_fd, self._write_fd = read_fd, write_fd
        self._previous_wakeup_fd = signal.set_wakeup_fd(write_fd, warn_on_full_buffer=False)
        for signum in self._events:
            self._previous_handlers[signum] = signal.signal(signum, self._on_signal)
        self._selector = selectors.DefaultSelector()
        self._selector.register(read_fd, selectors.EVENT_READ)
        return self

    def _on_signal(self, signum: int, frame: object) -> None:
        # the wakeup fd has already carried ``signum`` to the main loop
        return None

    def wait(self, timeout: float | None = None) -> list[SupervisorEvent]:
        """Return the events delivered since the last call, [] on timeout."""
        if self._selector is None or self._read_fd is None:
            raise RuntimeError("SignalWaiter is not installed")
        if not self._selector.select(timeout):
            return []
        received: list[SupervisorEvent] = []
        while True:
            try:
                data = os.read(self._read_fd, 512)
            except BlockingIOError:
                break
            if not data:
                break
            received.extend(self._events[signum] for signum in data if signum in self._events)
        return _ordered(received)

    def close(self) -> None:
        if self._selector is None:
            return
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers.clear()
        signal.set_wakeup_fd(self._previous_wakeup_fd)
        self._selector.close()
        self._selector = None
        for fd in (self._read_fd, self._write_fd):
            if fd is not None:
                os.close(fd)
        self._read_fd = self._write_fd = None

    def __enter__(self) -> "SignalWaiter":
        return self.install()

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ScriptedWaiter:
    """Testing double that replays queued event batches."""

    def __init__(self) -> None:
        self._batches: deque[tuple[list[SupervisorEvent], Callable[[], None] | None]] = deque()
        self.waits = 0

    def push(self, *events: SupervisorEvent, before: Callable[[], None] | None = None) -> None:
        """Queue one wake-up; ``before`` runs right before it is delivered."""
        self._batches.append((list(events), before))

    def pending(self) -> int:
        return len(self._batches)

    def wait(self, timeout: float | None = None) -> list[SupervisorEvent]:  # noqa: ARG002
        self.waits += 1
        if not self._batches:
            raise RuntimeError("no scripted events left")
        events, before = self._batches.popleft()
        if before is not None:
            before()
        return _ordered(events)

    def __enter__(self) -> "ScriptedWaiter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None
