"""Process creation, signalling and reaping for supervised children."""
from __future__ import annotations

import errno
import os
import signal
from dataclasses import dataclass

from .config import ProcessSpec
from .constants import CHILD_EXEC_FAILURE


class LaunchError(RuntimeError):
    """The supervisor could not create a new process."""


def signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


@dataclass(frozen=True)
class Termination:
    """A reaped child and its raw wait status."""

    pid: int
    status: int

    @property
    def exit_code(self) -> int | None:
        if os.WIFEXITED(self.status):
            return os.WEXITSTATUS(self.status)
        return None

    @property
    def signal(self) -> int | None:
        if os.WIFSIGNALED(self.status):
            return os.WTERMSIG(self.status)
        return None

    @property
    def outcome(self) -> str:
        return "signaled" if self.signal is not None else "exited"

    def describe(self) -> str:
        if self.exit_code is not None:
            return f"exit status {self.exit_code}"
        if self.signal is not None:
            message = f"terminated by {signal_name(self.signal)}"
            if os.WCOREDUMP(self.status):
                message += " (core dumped)"
            return message
        return f"unknown termination cause 0x{self.status:04x}"


def _redirect(path: str, flags: int, target_fd: int) -> None:
    fd = os.open(path, flags, 0o644)
    if fd != target_fd:
        os.dup2(fd, target_fd)
        os.close(fd)


class ProcessAdapter:
    """Forks and execs supervised children on a POSIX host."""

    def spawn(self, spec: ProcessSpec) -> int:
        try:
            pid = os.fork()
        except OSError as exc:
            raise LaunchError(f"Failed to start process {spec.executable}: {exc}") from exc
        if pid == 0:  # pragma: no cover - runs in the child
            self._exec_child(spec)
        return pid

    def _exec_child(self, spec: ProcessSpec) -> None:  # pragma: no cover - runs in the child
        # The child never returns into the supervisor's code: either execv
        # replaces the image or we leave with CHILD_EXEC_FAILURE.
        try:
            _redirect(spec.input_path, os.O_RDONLY, 0)
            _redirect(spec.output_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 1)
            os.execv(spec.executable, list(spec.argv))
        finally:
            os._exit(CHILD_EXEC_FAILURE)

    def kill(self, pid: int, sig: int = signal.SIGKILL) -> bool:
        """Send ``sig`` to ``pid``; return False if the process is already gone."""
        try:
            os.kill(pid, sig)
        except ProcessLookupError:
            return False
        return True

    def reap(self) -> list[Termination]:
        """Collect every child that has terminated, without blocking."""
        reaped: list[Termination] = []
        while True:
            try:
                pid, status = os.waitpid(-1, os.WNOHANG)
            except ChildProcessError:
                break
            except OSError as exc:
                if exc.errno == errno.EINTR:
                    continue
                raise
            if pid == 0:
                break
            reaped.append(Termination(pid=pid, status=status))
        return reaped


def exit_status(code: int) -> int:
    """Encode ``code`` the way ``waitpid`` reports a normal exit."""
    return (code & 0xFF) << 8


def signal_status(signum: int) -> int:
    """Encode a death by ``signum`` the way ``waitpid`` reports it."""
    return signum & 0x7F


class FakeProcessAdapter(ProcessAdapter):
    """Testing double that hands out pids and queues terminations in memory."""

    def __init__(self, *, first_pid: int = 1000, reap_killed: bool = True) -> None:
        self.next_pid = first_pid
        self.reap_killed = reap_killed
        self.fail_spawns = 0
        self.spawned: list[tuple[int, ProcessSpec]] = []
        self.killed: list[tuple[int, int]] = []
        self._alive: set[int] = set()
        self._pending: list[Termination] = []

    def spawn(self, spec: ProcessSpec) -> int:
        if self.fail_spawns:
            self.fail_spawns -= 1
            raise LaunchError(f"Failed to start process {spec.executable}: resource temporarily unavailable")
        pid = self.next_pid
        self.next_pid += 1
        self.spawned.append((pid, spec))
        self._alive.add(pid)
        return pid

    def kill(self, pid: int, sig: int = signal.SIGKILL) -> bool:
        if pid not in self._alive:
            return False
        self.killed.append((pid, sig))
        if self.reap_killed:
            self.finish(pid, status=signal_status(sig))
        return True

    def finish(self, pid: int, code: int = 0, *, status: int | None = None) -> None:
        """Make ``pid`` terminate; the next ``reap`` reports it."""
        if pid not in self._alive:
            raise ValueError(f"PID {pid} is not alive")
        self._alive.discard(pid)
        self._pending.append(Termination(pid=pid, status=exit_status(code) if status is None else status))

    def alive(self) -> set[int]:
        return set(self._alive)

    def spawned_specs(self) -> list[ProcessSpec]:
        return [spec for _, spec in self.spawned]

    def reap(self) -> list[Termination]:
        reaped, self._pending = self._pending, []
        return reaped
