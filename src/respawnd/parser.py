"""Parser for the line-oriented process list."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable

from pydantic import ValidationError

from .config import ConfigError
from .config import ProcessSpec
from .constants import MAX_PROCESSES


def parse_spec_line(line: str) -> ProcessSpec:
    """Parse ``/abs/cmd [args...] /abs/input /abs/output`` into a spec."""
    tokens = line.split()
    if len(tokens) < 3:
        raise ValueError(
            f"expected a command followed by input and output paths, got {len(tokens)} token(s)"
        )
    *argv, input_path, output_path = tokens
    return ProcessSpec(argv=tuple(argv), input_path=input_path, output_path=output_path)


def parse_specs(
    lines: Iterable[str],
    max_processes: int = MAX_PROCESSES,
    source: str = "<config>",
) -> list[ProcessSpec]:
    specs: list[ProcessSpec] = []
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        try:
            spec = parse_spec_line(line)
        except ValidationError as exc:
            errors = "; ".join(error["msg"] for error in exc.errors())
            raise ConfigError(f"{source}:{lineno}: {errors}") from exc
        except ValueError as exc:
            raise ConfigError(f"{source}:{lineno}: {exc}") from exc
        specs.append(spec)
        if len(specs) > max_processes:
            raise ConfigError(f"{source}: more than {max_processes} processes configured")
    if not specs:
        raise ConfigError(f"{source}: no processes configured")
    return specs


def load_process_specs(path: Path, max_processes: int = MAX_PROCESSES) -> list[ProcessSpec]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            lines = handle.readlines()
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    return parse_specs(lines, max_processes=max_processes, source=str(path))
