import logging
import shutil

import pytest

from respawnd.config import ProcessSpec
from respawnd.process import FakeProcessAdapter
from respawnd.signals import ScriptedWaiter
from respawnd.supervisor import Supervisor
from respawnd.table import ProcessTable


@pytest.fixture()
def tool_path():
    def _lookup(name: str) -> str:
        path = shutil.which(name)
        if path is None:
            pytest.skip(f"{name} is not available")
        return path

    return _lookup


@pytest.fixture()
def specs() -> list[ProcessSpec]:
    return [
        ProcessSpec(argv=("/bin/cat",), input_path="/tmp/in1", output_path="/tmp/out1"),
        ProcessSpec(argv=("/bin/echo", "hi"), input_path="/tmp/in2", output_path="/tmp/out2"),
    ]


@pytest.fixture()
def adapter() -> FakeProcessAdapter:
    return FakeProcessAdapter()


@pytest.fixture()
def waiter() -> ScriptedWaiter:
    return ScriptedWaiter()


@pytest.fixture()
def supervisor(specs, adapter, waiter) -> Supervisor:
    return Supervisor(ProcessTable(specs), adapter, waiter)


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers and type(handler) in (logging.FileHandler, logging.StreamHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
