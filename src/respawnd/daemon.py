"""Detach respawnd from its controlling terminal."""
from __future__ import annotations

import logging
import os
import resource
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

# used when RLIMIT_NOFILE is unlimited
FALLBACK_MAX_FD = 4096


def _max_fd() -> int:
    soft, _ = resource.getrlimit(resource.RLIMIT_NOFILE)
    if soft == resource.RLIM_INFINITY:
        return FALLBACK_MAX_FD
    return soft


def close_inherited_fds(keep_fds: Iterable[int] = ()) -> None:
    """Close every descriptor from 3 up to the open-file limit except ``keep_fds``."""
    start = 3
    for fd in sorted(fd for fd in set(keep_fds) if fd >= start):
        os.closerange(start, fd)
        start = fd + 1
    os.closerange(start, _max_fd())


def daemonize(workdir: Path, keep_fds: Iterable[int] = ()) -> None:
    """Fork into the background; only the detached child returns.

    The child starts a new session, changes into ``workdir``, points the
    standard descriptors at /dev/null and closes every other inherited
    descriptor except ``keep_fds`` (the open log files).
    """
    if os.fork() > 0:
        os._exit(0)
    os.setsid()
    os.chdir(workdir)
    devnull = os.open(os.devnull, os.O_RDWR)
    for fd in (0, 1, 2):
        os.dup2(devnull, fd)
    if devnull > 2:
        os.close(devnull)
    close_inherited_fds(keep_fds)
    logger.info("Detached from terminal, running as PID %d", os.getpid())
