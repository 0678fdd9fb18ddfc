import os
import sys

import pytest

from telebox_setup import shell
from telebox_setup.errors import ExecutionError
from telebox_setup.shell import CommandRunner


def python(code):
    return [sys.executable, "-c", code]


@pytest.fixture
def runner():
    return CommandRunner(verbose=False)


def test_run_captures_output(runner, tmp_path):
    result = runner.run(python("import os; print(os.getcwd())"), cwd=tmp_path)
    assert result.returncode == 0
    assert os.path.samefile(result.stdout.strip(), tmp_path)


def test_non_zero_exit_raises_with_code_and_stderr(runner):
    with pytest.raises(ExecutionError) as info:
        runner.run(python("import sys; sys.stderr.write('boom'); sys.exit(3)"))
    assert info.value.returncode == 3
    assert info.value.stderr == "boom"
    assert info.value.cmd[0] == sys.executable
    assert "code 3" in str(info.value)


def test_non_zero_exit_without_check_returns_result(runner):
    result = runner.run(python("import sys; sys.exit(3)"), check=False)
    assert result.returncode == 3


def test_missing_binary_raises(runner):
    with pytest.raises(ExecutionError) as info:
        runner.run(["telebox-no-such-binary", "--version"])
    assert info.value.cmd == ["telebox-no-such-binary", "--version"]
    assert info.value.returncode is None


def test_timeout_raises(runner):
    with pytest.raises(ExecutionError, match="timed out"):
        runner.run(python("import time; time.sleep(5)"), timeout=0.01)


def test_env_is_merged_over_the_environment(runner, monkeypatch):
    monkeypatch.setenv("TELEBOX_OUTER", "kept")
    code = "import os; print(os.environ['TELEBOX_OUTER'], os.environ['TELEBOX_EXTRA'])"
    result = runner.run(python(code), env={"TELEBOX_EXTRA": "added"})
    assert result.stdout.split() == ["kept", "added"]


def test_which_searches_path(runner, monkeypatch):
    monkeypatch.setenv("PATH", os.path.dirname(sys.executable))
    assert runner.which(os.path.basename(sys.executable)) is not None
    assert runner.which("telebox-no-such-binary") is None


def test_run_foreground_returns_exit_code(runner):
    assert runner.run_foreground(python("import sys; sys.exit(5)")) == 5


def test_run_foreground_missing_binary_raises(runner):
    with pytest.raises(ExecutionError):
        runner.run_foreground(["telebox-no-such-binary"])


class InterruptedProcess:
    """Popen stand-in whose first wait() is cut short by Ctrl+C."""

    instances = []

    def __init__(self, cmd, cwd=None, env=None):
        self.cmd = cmd
        self.cwd = cwd
        self.env = env
        self.waits = 0
        InterruptedProcess.instances.append(self)

    def wait(self):
        self.waits += 1
        if self.waits == 1:
            raise KeyboardInterrupt
        return 130


def test_run_foreground_keeps_waiting_after_ctrl_c(runner, monkeypatch, tmp_path):
    InterruptedProcess.instances = []
    monkeypatch.setattr(shell.subprocess, "Popen", InterruptedProcess)

    code = runner.run_foreground(["npm", "start"], cwd=tmp_path, env={"A": "1"})

    assert code == 130
    process = InterruptedProcess.instances[0]
    assert process.waits == 2
    assert process.cwd == str(tmp_path)
    assert process.env["A"] == "1"
    assert set(os.environ) <= set(process.env)
