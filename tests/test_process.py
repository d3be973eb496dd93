import os
import signal
import time

import pytest

from respawnd.config import ProcessSpec
from respawnd.constants import CHILD_EXEC_FAILURE
from respawnd.process import FakeProcessAdapter
from respawnd.process import LaunchError
from respawnd.process import ProcessAdapter
from respawnd.process import Termination
from respawnd.process import exit_status
from respawnd.process import signal_status


def _wait(pid: int) -> Termination:
    _, status = os.waitpid(pid, 0)
    return Termination(pid=pid, status=status)


def test_termination_describe():
    assert Termination(1, exit_status(3)).describe() == "exit status 3"
    assert Termination(1, exit_status(3)).exit_code == 3
    assert Termination(1, exit_status(3)).outcome == "exited"
    killed = Termination(1, signal_status(signal.SIGKILL))
    assert killed.exit_code is None
    assert killed.signal == signal.SIGKILL
    assert killed.outcome == "signaled"
    assert killed.describe() == "terminated by SIGKILL"


def test_spawn_redirects_stdio(tmp_path, tool_path):
    source = tmp_path / "in.txt"
    source.write_text("hello respawnd\n", encoding="utf-8")
    target = tmp_path / "out.txt"
    target.write_text("stale content that must be truncated\n", encoding="utf-8")
    spec = ProcessSpec(argv=(tool_path("cat"),), input_path=str(source), output_path=str(target))

    pid = ProcessAdapter().spawn(spec)

    termination = _wait(pid)
    assert termination.exit_code == 0
    assert target.read_text(encoding="utf-8") == "hello respawnd\n"


def test_spawn_passes_arguments(tmp_path, tool_path):
    target = tmp_path / "out.txt"
    spec = ProcessSpec(argv=(tool_path("echo"), "hi", "there"), input_path=os.devnull, output_path=str(target))
    termination = _wait(ProcessAdapter().spawn(spec))
    assert termination.exit_code == 0
    assert target.read_text(encoding="utf-8") == "hi there\n"


def test_missing_input_fails_in_child(tmp_path, tool_path):
    spec = ProcessSpec(
        argv=(tool_path("cat"),),
        input_path=str(tmp_path / "missing"),
        output_path=str(tmp_path / "out.txt"),
    )
    termination = _wait(ProcessAdapter().spawn(spec))
    assert termination.exit_code == CHILD_EXEC_FAILURE


def test_missing_executable_fails_in_child(tmp_path):
    spec = ProcessSpec(
        argv=(str(tmp_path / "no-such-binary"),),
        input_path=os.devnull,
        output_path=str(tmp_path / "out.txt"),
    )
    termination = _wait(ProcessAdapter().spawn(spec))
    assert termination.exit_code == CHILD_EXEC_FAILURE


def test_kill_and_reap(tmp_path, tool_path):
    adapter = ProcessAdapter()
    spec = ProcessSpec(argv=(tool_path("sleep"), "30"), input_path=os.devnull, output_path=str(tmp_path / "out"))
    pid = adapter.spawn(spec)
    assert adapter.kill(pid) is True

    reaped: list[Termination] = []
    deadline = time.monotonic() + 10
    while time.monotonic() < deadline:
        reaped.extend(t for t in adapter.reap() if t.pid == pid)
        if reaped:
            break
        time.sleep(0.01)

    assert len(reaped) == 1
    assert reaped[0].signal == signal.SIGKILL
    assert adapter.kill(pid) is False


def test_fake_adapter_tracks_lifecycle(specs):
    adapter = FakeProcessAdapter(first_pid=10)
    first = adapter.spawn(specs[0])
    second = adapter.spawn(specs[1])
    assert (first, second) == (10, 11)
    assert adapter.spawned_specs() == specs

    adapter.finish(first, 2)
    assert adapter.kill(second) is True
    assert adapter.kill(first) is False
    reaped = adapter.reap()
    assert [(t.pid, t.describe()) for t in reaped] == [(10, "exit status 2"), (11, "terminated by SIGKILL")]
    assert adapter.reap() == []
    assert adapter.alive() == set()


def test_fake_adapter_spawn_failure(specs):
    adapter = FakeProcessAdapter()
    adapter.fail_spawns = 1
    with pytest.raises(LaunchError):
        adapter.spawn(specs[0])
    assert adapter.spawn(specs[0]) == 1000
