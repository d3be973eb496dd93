"""Configuration models for respawnd."""
from __future__ import annotations

import os
import signal
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic import Field
from pydantic import ValidationError
from pydantic import field_validator

from .constants import DEFAULT_LOG_FILE
from .constants import DEFAULT_RESTART_SIGNAL
from .constants import DEFAULT_WORKDIR
from .constants import MAX_PROCESSES
from .constants import PROCESS_LIMIT


# handled by the supervisor itself or not catchable
RESERVED_SIGNALS = frozenset({"SIGCHLD", "SIGTERM", "SIGINT", "SIGKILL", "SIGSTOP"})


class ConfigError(ValueError):
    """Raised for configuration problems that must abort the supervisor."""


def _require_absolute(path: str, label: str) -> str:
    if not os.path.isabs(path):
        raise ValueError(f"{label} must be an absolute path, got {path!r}")
    return path


class ProcessSpec(BaseModel):
    """Command line and stdio redirections for one supervised process."""

    argv: tuple[str, ...]
    input_path: str
    output_path: str

    model_config = {"frozen": True}

    @field_validator("argv")
    @classmethod
    def _check_argv(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("command must not be empty")
        _require_absolute(value[0], "executable")
        return value

    @field_validator("input_path")
    @classmethod
    def _check_input(cls, value: str) -> str:
        return _require_absolute(value, "input file")

    @field_validator("output_path")
    @classmethod
    def _check_output(cls, value: str) -> str:
        return _require_absolute(value, "output file")

    @property
    def executable(self) -> str:
        return self.argv[0]

    def command_line(self) -> str:
        return " ".join(self.argv)


class SupervisorSettings(BaseModel):
    """Runtime options for the supervisor itself."""

    log_file: Path = Path(DEFAULT_LOG_FILE)
    log_level: str = "INFO"
    max_processes: int = Field(default=MAX_PROCESSES, ge=1, le=PROCESS_LIMIT)
    restart_signal: str = DEFAULT_RESTART_SIGNAL
    metrics_port: int | None = None
    metrics_host: str = "127.0.0.1"
    workdir: Path = Path(DEFAULT_WORKDIR)
    foreground: bool = False

    @field_validator("restart_signal")
    @classmethod
    def _check_signal(cls, value: str) -> str:
        name = value.upper()
        if not name.startswith("SIG"):
            name = f"SIG{name}"
        if name not in signal.Signals.__members__:
            raise ValueError(f"unknown signal {value!r}")
        if name in RESERVED_SIGNALS:
            raise ValueError(f"{name} cannot be used as the restart signal")
        return name

    def restart_signum(self) -> signal.Signals:
        return signal.Signals[self.restart_signal]

    def expanded_log_file(self) -> Path:
        return self.log_file.expanduser()

    def with_overrides(self, **overrides: Any) -> "SupervisorSettings":
        """Return a copy with every non-None override applied and re-validated."""
        values = self.model_dump()
        values.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return SupervisorSettings.model_validate(values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid settings: {exc}") from exc


def load_yaml(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def load_settings(path: Path | None = None) -> SupervisorSettings:
    if path is None:
        return SupervisorSettings()
    try:
        raw = load_yaml(path)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc
    try:
        return SupervisorSettings.model_validate(raw or {})
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings at {path}: {exc}") from exc
