"""Fixed-capacity registry of supervised process slots."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .config import ConfigError
from .config import ProcessSpec
from .constants import MAX_PROCESSES


@dataclass
class Slot:
    index: int
    spec: ProcessSpec
    pid: int | None = None
    launches: int = 0

    @property
    def running(self) -> bool:
        return self.pid is not None


class ProcessTable:
    """Maps stable slot indices to specs and the pid currently running for each.

    Only the supervisor mutates the table. Indices outside ``0..len-1`` are
    programming errors and raise ``IndexError``.
    """

    def __init__(self, specs: Sequence[ProcessSpec], max_processes: int = MAX_PROCESSES) -> None:
        if len(specs) > max_processes:
            raise ConfigError(f"{len(specs)} processes configured, the limit is {max_processes}")
        self._slots = [Slot(index=index, spec=spec) for index, spec in enumerate(specs)]
        self._running = 0

    def __len__(self) -> int:
        return len(self._slots)

    def _slot(self, index: int) -> Slot:
        if not 0 <= index < len(self._slots):
            raise IndexError(f"slot {index} out of range for a table of {len(self._slots)}")
        return self._slots[index]

    def indices(self) -> range:
        return range(len(self._slots))

    def slots(self) -> list[Slot]:
        return list(self._slots)

    def get(self, index: int) -> ProcessSpec:
        return self._slot(index).spec

    def pid(self, index: int) -> int | None:
        return self._slot(index).pid

    def set_running(self, index: int, pid: int) -> None:
        slot = self._slot(index)
        if slot.pid is not None:
            raise RuntimeError(f"slot {index} is already running as PID {slot.pid}")
        slot.pid = pid
        slot.launches += 1
        self._running += 1

    def clear(self, index: int) -> int | None:
        """Mark the slot not running and return the pid it held, if any."""
        slot = self._slot(index)
        pid = slot.pid
        if pid is None:
            return None
        slot.pid = None
        self._running -= 1
        return pid

    def find(self, pid: int) -> int | None:
        for slot in self._slots:
            if slot.pid == pid:
                return slot.index
        return None

    def running_count(self) -> int:
        return self._running

    def running_slots(self) -> list[tuple[int, int]]:
        return [(slot.index, slot.pid) for slot in self._slots if slot.pid is not None]

    def all_running_handles(self) -> list[int]:
        return [pid for _, pid in self.running_slots()]
