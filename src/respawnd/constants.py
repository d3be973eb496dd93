"""Shared constants for respawnd."""
from __future__ import annotations

MAX_PROCESSES = 10
# hard ceiling for max_processes in the settings file
PROCESS_LIMIT = 64
DEFAULT_LOG_FILE = "/tmp/respawnd.log"
DEFAULT_WORKDIR = "/"
DEFAULT_RESTART_SIGNAL = "SIGHUP"
# exit status of a child whose redirection or exec failed
CHILD_EXEC_FAILURE = 127
