"""Supervisor loop and restart coordination for respawnd."""
from __future__ import annotations

import logging
import signal
from enum import Enum
from typing import Callable
from typing import Protocol
from typing import Sequence

from . import metrics
from .config import ConfigError
from .config import ProcessSpec
from .constants import MAX_PROCESSES
from .process import ProcessAdapter
from .process import Termination
from .signals import SupervisorEvent
from .table import ProcessTable

logger = logging.getLogger(__name__)


class EventSource(Protocol):
    def wait(self, timeout: float | None = None) -> list[SupervisorEvent]:
        ...


class SupervisorState(str, Enum):
    STEADY = "STEADY"
    RESTARTING = "RESTARTING"
    STOPPING = "STOPPING"


class Supervisor:
    """Keeps every slot of a ProcessTable running.

    The supervisor is the only component that mutates the table. It launches
    each slot once, then relaunches any slot whose process terminates. A
    restart event kills every running process, reloads the process list when a
    loader is given, and launches the whole set again.
    Processes killed by a restart are reaped later as ordinary terminations;
    their pids no longer appear in the table, so they are logged and dropped.
    A pid cannot be reused by the kernel before it has been reaped, which is
    what makes matching on pid safe across restarts.
    """

    def __init__(
        self,
        table: ProcessTable,
        adapter: ProcessAdapter,
        waiter: EventSource,
        loader: Callable[[], Sequence[ProcessSpec]] | None = None,
        max_processes: int = MAX_PROCESSES,
    ) -> None:
        self.table = table
        self.adapter = adapter
        self.waiter = waiter
        self.loader = loader
        self.max_processes = max_processes
        self.state = SupervisorState.STEADY
        self.restarts = 0
        self._killed: set[int] = set()

    def launch(self, index: int) -> int:
        spec = self.table.get(index)
        pid = self.adapter.spawn(spec)
        self.table.set_running(index, pid)
        metrics.record_launch(index)
        metrics.set_running(self.table.running_count())
        logger.info("Process %d started: %s (PID: %d)", index, spec.command_line(), pid)
        return pid

    def launch_all(self) -> None:
        for index in self.table.indices():
            self.launch(index)

    def handle_termination(self, termination: Termination) -> int | None:
        """Clear the slot owning ``termination.pid`` and relaunch it.

        Returns the new pid, or None when nothing was relaunched.
        """
        index = self.table.find(termination.pid)
        if index is None:
            if termination.pid in self._killed:
                self._killed.discard(termination.pid)
                logger.debug("Reaped PID %d killed during restart (%s)", termination.pid, termination.describe())
            else:
                logger.debug("Ignoring untracked child PID %d (%s)", termination.pid, termination.describe())
            return None

        logger.info("Process %d terminated with %s", index, termination.describe())
        self.table.clear(index)
        metrics.record_termination(index, termination.outcome)
        metrics.set_running(self.table.running_count())
        if self.state is SupervisorState.STOPPING:
            return None
        return self.launch(index)

    def restart_all(self) -> None:
        if self.state is SupervisorState.STOPPING:
            logger.info("Ignoring restart request while shutting down")
            return
        self.state = SupervisorState.RESTARTING
        logger.info("Received restart signal - restarting all processes")
        for index, pid in self.table.running_slots():
            self.adapter.kill(pid, signal.SIGKILL)
            self.table.clear(index)
            self._killed.add(pid)
            logger.info("Process %d (PID: %d) killed for restart", index, pid)
        self._reload()
        metrics.set_running(self.table.running_count())
        self.launch_all()
        self.restarts += 1
        metrics.record_restart()
        self.state = SupervisorState.STEADY

    def _reload(self) -> None:
        """Replace the table with a freshly parsed one; keep it on failure.

        Only called once every slot has been cleared.
        """
        if self.loader is None:
            return
        try:
            table = ProcessTable(self.loader(), max_processes=self.max_processes)
        except ConfigError as exc:
            logger.error("Cannot reload process list, keeping the previous one: %s", exc)
            return
        if len(table) != len(self.table):
            logger.info("Process list reloaded: %d process(es), was %d", len(table), len(self.table))
        self.table = table

    def shutdown(self) -> None:
        """Stop relaunching and signal every running process.

        The first call sends SIGTERM; any later call escalates to SIGKILL.
        """
        if self.state is SupervisorState.STOPPING:
            sig = signal.SIGKILL
        else:
            sig = signal.SIGTERM
            self.state = SupervisorState.STOPPING
        logger.info("Shutting down, sending %s to %d process(es)", sig.name, self.table.running_count())
        for index, pid in self.table.running_slots():
            if not self.adapter.kill(pid, sig):
                logger.debug("Process %d (PID: %d) already gone", index, pid)

    def step(self, timeout: float | None = None) -> bool:
        """Wait for one wake-up and act on it.

        Returns True while at least one slot is still running.
        """
        events = self.waiter.wait(timeout)
        if SupervisorEvent.SHUTDOWN in events:
            self.shutdown()
        if SupervisorEvent.RESTART in events:
            self.restart_all()
        for termination in self.adapter.reap():
            self.handle_termination(termination)
        return self.table.running_count() > 0

    def run(self) -> None:
        logger.info("respawnd supervising %d process(es)", len(self.table))
        self.launch_all()
        while self.step():
            pass
        logger.info("All supervised processes stopped")
