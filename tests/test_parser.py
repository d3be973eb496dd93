import pytest

from respawnd.config import ConfigError
from respawnd.parser import load_process_specs
from respawnd.parser import parse_spec_line
from respawnd.parser import parse_specs


def test_parse_two_line_config():
    specs = parse_specs(
        [
            "/bin/cat /tmp/in1 /tmp/out1\n",
            "/bin/echo hi /tmp/in2 /tmp/out2\n",
        ]
    )
    assert len(specs) == 2
    assert specs[0].argv == ("/bin/cat",)
    assert specs[0].input_path == "/tmp/in1"
    assert specs[0].output_path == "/tmp/out1"
    assert specs[1].argv == ("/bin/echo", "hi")
    assert specs[1].input_path == "/tmp/in2"
    assert specs[1].output_path == "/tmp/out2"


def test_parse_line_splits_on_any_whitespace():
    spec = parse_spec_line("/usr/bin/env  FOO=1\t/bin/run   /dev/null /var/log/run.out")
    assert spec.argv == ("/usr/bin/env", "FOO=1", "/bin/run")
    assert spec.executable == "/usr/bin/env"
    assert spec.command_line() == "/usr/bin/env FOO=1 /bin/run"


@pytest.mark.parametrize(
    "line",
    [
        "bin/cat /tmp/in /tmp/out",
        "/bin/cat tmp/in /tmp/out",
        "/bin/cat /tmp/in out",
    ],
)
def test_relative_paths_are_fatal(line):
    with pytest.raises(ConfigError) as excinfo:
        parse_specs([line])
    assert "absolute" in str(excinfo.value)


def test_line_needs_command_and_two_paths():
    with pytest.raises(ConfigError) as excinfo:
        parse_specs(["/bin/cat /tmp/in"], source="procs.conf")
    assert str(excinfo.value).startswith("procs.conf:1:")


def test_comments_and_blank_lines_are_skipped():
    specs = parse_specs(["# daemons\n", "\n", "/bin/cat /tmp/in /tmp/out\n"])
    assert [spec.executable for spec in specs] == ["/bin/cat"]


def test_error_reports_line_number():
    with pytest.raises(ConfigError) as excinfo:
        parse_specs(["/bin/cat /tmp/in /tmp/out", "", "/bin/cat in /tmp/out"], source="x")
    assert str(excinfo.value).startswith("x:3:")


def test_too_many_processes():
    lines = [f"/bin/cat /tmp/in{i} /tmp/out{i}" for i in range(4)]
    with pytest.raises(ConfigError):
        parse_specs(lines, max_processes=3)
    assert len(parse_specs(lines, max_processes=4)) == 4


def test_empty_config_is_rejected():
    with pytest.raises(ConfigError):
        parse_specs(["# nothing here\n"])


def test_load_process_specs(tmp_path):
    path = tmp_path / "procs.conf"
    path.write_text("/bin/cat /tmp/in1 /tmp/out1\n/bin/echo hi /tmp/in2 /tmp/out2\n", encoding="utf-8")
    specs = load_process_specs(path)
    assert [spec.argv for spec in specs] == [("/bin/cat",), ("/bin/echo", "hi")]


def test_load_missing_config(tmp_path):
    with pytest.raises(ConfigError) as excinfo:
        load_process_specs(tmp_path / "missing.conf")
    assert "Cannot read config file" in str(excinfo.value)


def test_undecodable_config_is_a_config_error(tmp_path):
    path = tmp_path / "procs.conf"
    path.write_bytes(b"/bin/cat /tmp/in\xff /tmp/out\n")
    with pytest.raises(ConfigError) as excinfo:
        load_process_specs(path)
    assert "Cannot read config file" in str(excinfo.value)
