"""Shared fakes for the installer tests."""

import subprocess
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from telebox_setup.config import InstallConfig
from telebox_setup.errors import ExecutionError
from telebox_setup.installer import Installer, Operator


class FakeRunner:
    """CommandRunner stand-in that records commands instead of running them."""

    def __init__(self, returncodes: Optional[Dict[str, int]] = None, stdout: str = ""):
        self.calls: List[List[str]] = []
        self.cwds: List[Optional[str]] = []
        self.returncodes = returncodes or {}
        self.stdout = stdout
        self.on_path: Dict[str, str] = {}

    def which(self, name):
        return self.on_path.get(name)

    def _code(self, cmd):
        return self.returncodes.get(" ".join(cmd), self.returncodes.get(cmd[0], 0))

    def run(self, cmd, cwd=None, env=None, check=True, capture_output=True, timeout=None):
        self.calls.append(list(cmd))
        self.cwds.append(str(cwd) if cwd is not None else None)
        code = self._code(cmd)
        if code != 0 and check:
            raise ExecutionError(f"Command failed (code {code})", cmd=cmd, returncode=code)
        return subprocess.CompletedProcess(cmd, code, stdout=self.stdout, stderr="")

    def run_foreground(self, cmd, cwd=None, env=None):
        self.calls.append(list(cmd))
        self.cwds.append(str(cwd) if cwd is not None else None)
        return self._code(cmd)


class Recorder:
    """Collects provider calls in the order they happen."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}

    def record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.failures:
            raise self.failures[name]

    def names(self):
        return [c[0] for c in self.calls]


class FakePackages:
    def __init__(self, rec):
        self.rec = rec

    def update(self):
        self.rec.record("apt.update")

    def install(self, packages):
        self.rec.record("apt.install", tuple(packages))


class FakeRuntime:
    def __init__(self, rec):
        self.rec = rec

    def install(self, major_version):
        self.rec.record("node.install", major_version)

    def versions(self):
        return {"node": "v20.11.0", "npm": "10.2.4"}


class FakeGit:
    def __init__(self, rec):
        self.rec = rec

    def is_checkout(self, path):
        return (Path(path) / ".git").is_dir()

    def clone(self, url, path):
        self.rec.record("git.clone", url, Path(path))
        (Path(path) / ".git").mkdir(parents=True)

    def pull(self, path):
        self.rec.record("git.pull", Path(path))


class FakeNpm:
    def __init__(self, rec, start_code=0):
        self.rec = rec
        self.start_code = start_code

    def install(self, path):
        self.rec.record("npm.install", Path(path))

    def rebuild(self, path, package):
        self.rec.record("npm.rebuild", package)

    def install_global(self, package):
        self.rec.record("npm.install_global", package)

    def start(self, path):
        self.rec.record("npm.start", Path(path))
        return self.start_code


class FakeSupervisor:
    def __init__(self, rec, available=True, registered=False):
        self.rec = rec
        self.is_available = available
        self.registered = registered

    def available(self):
        return self.is_available

    def delete(self, name):
        self.rec.record("pm2.delete", name)
        was = self.registered
        self.registered = False
        return was

    def start(self, config_path):
        self.rec.record("pm2.start", Path(config_path))
        self.registered = True

    def save(self):
        self.rec.record("pm2.save")

    def startup(self, init_system, user, home):
        self.rec.record("pm2.startup", init_system, user, str(home))

    def install_module(self, name):
        self.rec.record("pm2.install", name)

    def set(self, key, value):
        self.rec.record("pm2.set", key, value)


class FakeProcesses:
    def __init__(self, rec):
        self.rec = rec

    def kill_matching(self, pattern):
        self.rec.record("kill", pattern)
        return False


class FakeOperator(Operator):
    def __init__(self, answer=""):
        self.prompts: List[str] = []

        def ask(prompt, **kwargs):
            self.prompts.append(prompt)
            return answer

        super().__init__(cleanup_answer=None, ask=ask)


@pytest.fixture
def config(tmp_path):
    return InstallConfig(
        install_dir=tmp_path / "telebox-data",
        service_name="telebox-test",
        cache_globs=[str(tmp_path / "tmp" / "telebox*")],
        settle_seconds=0,
        startup_home=tmp_path / "home",
        log_file=tmp_path / "log" / "telebox_setup.log",
    )


@pytest.fixture
def rec():
    return Recorder()


@pytest.fixture
def make_installer(config, rec):
    def factory(answer="", euid=0, start_code=0, supervisor=None, **kwargs):
        operator = FakeOperator(answer)
        installer = Installer(
            config,
            packages=FakePackages(rec),
            runtime=FakeRuntime(rec),
            git=FakeGit(rec),
            npm=FakeNpm(rec, start_code=start_code),
            supervisor=supervisor or FakeSupervisor(rec),
            processes=FakeProcesses(rec),
            operator=operator,
            geteuid=lambda: euid,
            sleep=lambda seconds: rec.record("sleep", seconds),
            **kwargs,
        )
        return installer

    return factory


@pytest.fixture(autouse=True)
def _close_log_files():
    yield
    from telebox_setup.ui import close_file_handlers

    close_file_handlers()
