"""CLI entry point for respawnd."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from functools import partial
from pathlib import Path

from . import metrics
from .config import ConfigError
from .config import SupervisorSettings
from .config import load_settings
from .daemon import daemonize
from .parser import load_process_specs
from .process import LaunchError
from .process import ProcessAdapter
from .signals import SignalWaiter
from .supervisor import Supervisor
from .table import ProcessTable

logger = logging.getLogger("respawnd")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="minimal process supervisor")
    parser.add_argument("config", type=Path, help="Process list, one '/cmd [args] /input /output' per line")
    parser.add_argument("--settings", type=Path, default=None, help="Optional supervisor settings YAML")
    parser.add_argument("--log-file", type=Path, default=os.getenv("RESPAWND_LOG_FILE"), help="Log file path")
    parser.add_argument("--log-level", type=str, default=os.getenv("LOG_LEVEL"))
    parser.add_argument("--restart-signal", type=str, default=None, help="Signal that restarts all processes (default SIGHUP)")
    parser.add_argument("--metrics-port", type=int, default=None, help="Serve Prometheus metrics on this port")
    parser.add_argument("--foreground", action="store_true", default=None, help="Do not detach from the terminal")
    parser.add_argument("--check", action="store_true", help="Validate the process list and exit")
    return parser


def configure_logging(settings: SupervisorSettings) -> None:
    handlers: list[logging.Handler] = []
    log_file = settings.expanded_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    if settings.foreground:
        handlers.append(logging.StreamHandler(sys.stderr))
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def _log_fds() -> list[int]:
    return [
        handler.stream.fileno()
        for handler in logging.getLogger().handlers
        if isinstance(handler, logging.FileHandler) and handler.stream is not None
    ]


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.settings).with_overrides(
            log_file=args.log_file,
            log_level=args.log_level,
            restart_signal=args.restart_signal,
            metrics_port=args.metrics_port,
            foreground=args.foreground,
        )
    except ConfigError as exc:
        print(f"respawnd: {exc}", file=sys.stderr)
        return 1

    try:
        configure_logging(settings)
    except OSError as exc:
        print(f"respawnd: cannot open log file {settings.log_file}: {exc}", file=sys.stderr)
        return 1
    logger.info("respawnd started")

    # absolute, so restarts can re-read it after daemonize changes directory
    config_path = args.config.resolve()
    try:
        specs = load_process_specs(config_path, max_processes=settings.max_processes)
        table = ProcessTable(specs, max_processes=settings.max_processes)
    except ConfigError as exc:
        logger.error("Error: %s", exc)
        if not settings.foreground:
            print(f"respawnd: {exc}", file=sys.stderr)
        return 1

    if args.check:
        logger.info("Configuration %s is valid: %d process(es)", args.config, len(table))
        return 0

    if not settings.foreground:
        daemonize(settings.workdir, keep_fds=_log_fds())
    if settings.metrics_port is not None:
        metrics.start_server(settings.metrics_port, host=settings.metrics_host)

    try:
        with SignalWaiter(restart_signal=settings.restart_signum()) as waiter:
            loader = partial(load_process_specs, config_path, max_processes=settings.max_processes)
            Supervisor(table, ProcessAdapter(), waiter, loader=loader, max_processes=settings.max_processes).run()
    except LaunchError as exc:
        logger.critical("%s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bootstrap
    raise SystemExit(main())
