"""Prometheus metrics helpers for respawnd."""
from __future__ import annotations

from prometheus_client import Counter
from prometheus_client import Gauge
from prometheus_client import start_http_server as _start_http_server

RESPAWND_LAUNCHES_TOTAL = Counter(
    "respawnd_launches_total",
    "Number of processes started per slot",
    labelnames=("slot",),
)
RESPAWND_TERMINATIONS_TOTAL = Counter(
    "respawnd_terminations_total",
    "Supervised process terminations per slot, split by exit or signal",
    labelnames=("slot", "outcome"),
)
RESPAWND_RESTARTS_TOTAL = Counter(
    "respawnd_restarts_total",
    "Full supervised-set restarts triggered by the restart signal",
)
RESPAWND_RUNNING_SLOTS = Gauge(
    "respawnd_running_slots",
    "Slots that currently have a live process",
)


def record_launch(slot: int) -> None:
    """Count a process start for the slot."""

    RESPAWND_LAUNCHES_TOTAL.labels(slot=str(slot)).inc()


def record_termination(slot: int, outcome: str) -> None:
    """Count a termination for the slot, labelled exited or signaled."""

    RESPAWND_TERMINATIONS_TOTAL.labels(slot=str(slot), outcome=outcome).inc()


def record_restart() -> None:
    """Count a full restart of the supervised set."""

    RESPAWND_RESTARTS_TOTAL.inc()


def set_running(count: int) -> None:
    """Update the gauge of slots with a live process."""

    RESPAWND_RUNNING_SLOTS.set(count)


def start_server(port: int, host: str = "127.0.0.1") -> None:
    """Expose the metrics over HTTP on ``host:port``."""

    _start_http_server(port, addr=host)
