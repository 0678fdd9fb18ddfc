"""
Thin wrappers around the external tools the installer drives.

Each tool sits behind a small Protocol so the workflow can be exercised
with fakes. The concrete classes only build argument lists and hand them
to a ``CommandRunner``.
"""

import os
import signal
import tempfile
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Set

import requests

from .config import InstallConfig
from .errors import ExecutionError, NetworkError
from .shell import CommandRunner
from .ui import logger

APT_ENV: Dict[str, str] = {"DEBIAN_FRONTEND": "noninteractive"}
DOWNLOAD_TIMEOUT = 60


# ----------------------------------------------------------------
# Capability Interfaces
# ----------------------------------------------------------------
class PackageInstaller(Protocol):
    def update(self) -> None: ...

    def install(self, packages: Sequence[str]) -> None: ...


class RuntimeInstaller(Protocol):
    def install(self, major_version: str) -> None: ...

    def versions(self) -> Dict[str, str]: ...


class SourceControl(Protocol):
    def is_checkout(self, path: Path) -> bool: ...

    def clone(self, url: str, path: Path) -> None: ...

    def pull(self, path: Path) -> None: ...


class NodePackageManager(Protocol):
    def install(self, path: Path) -> None: ...

    def rebuild(self, path: Path, package: str) -> None: ...

    def install_global(self, package: str) -> None: ...

    def start(self, path: Path) -> int: ...


class ServiceSupervisor(Protocol):
    def available(self) -> bool: ...

    def delete(self, name: str) -> bool: ...

    def start(self, config_path: Path) -> None: ...

    def save(self) -> None: ...

    def startup(self, init_system: str, user: str, home: Path) -> None: ...

    def install_module(self, name: str) -> None: ...

    def set(self, key: str, value: str) -> None: ...


class ProcessKiller(Protocol):
    def kill_matching(self, pattern: str) -> bool: ...


# ----------------------------------------------------------------
# apt
# ----------------------------------------------------------------
class AptInstaller:
    """Installs Debian packages with apt-get."""

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def update(self) -> None:
        self.runner.run(["apt-get", "update"], env=APT_ENV, capture_output=False)

    def install(self, packages: Sequence[str]) -> None:
        self.runner.run(
            ["apt-get", "install", "-y", *packages], env=APT_ENV, capture_output=False
        )


# ----------------------------------------------------------------
# Node.js from NodeSource
# ----------------------------------------------------------------
class NodeSourceInstaller:
    """
    Installs Node.js from the NodeSource repository.

    The vendor setup script is downloaded first and only then handed to
    bash, so a failed download never runs a truncated script.
    """

    def __init__(
        self,
        runner: CommandRunner,
        apt: PackageInstaller,
        url_template: str = "https://deb.nodesource.com/setup_{version}.x",
        package: str = "nodejs",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.runner = runner
        self.apt = apt
        self.url_template = url_template
        self.package = package
        self.session = session or requests.Session()

    def fetch_setup_script(self, major_version: str) -> str:
        url = self.url_template.format(version=major_version)
        logger.info(f"Downloading NodeSource setup script from {url}")
        try:
            response = self.session.get(url, timeout=DOWNLOAD_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"Failed to download {url}: {e}") from e
        return response.text

    def install(self, major_version: str) -> None:
        script = self.fetch_setup_script(major_version)
        fd, script_path = tempfile.mkstemp(prefix="nodesource_", suffix=".sh")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(script)
            self.runner.run(["bash", script_path], env=APT_ENV, capture_output=False)
        finally:
            os.unlink(script_path)
        self.apt.install([self.package])

    def versions(self) -> Dict[str, str]:
        """Report installed node and npm versions; missing tools report 'unknown'."""
        found = {}
        for tool in ("node", "npm"):
            try:
                result = self.runner.run([tool, "-v"])
                found[tool] = result.stdout.strip() or "unknown"
            except ExecutionError:
                found[tool] = "unknown"
        return found


# ----------------------------------------------------------------
# git
# ----------------------------------------------------------------
class GitClient:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def is_checkout(self, path: Path) -> bool:
        return (Path(path) / ".git").is_dir()

    def clone(self, url: str, path: Path) -> None:
        # Cloning into "." keeps an existing (empty) directory in place.
        self.runner.run(["git", "clone", url, "."], cwd=path, capture_output=False)

    def pull(self, path: Path) -> None:
        self.runner.run(["git", "-C", str(path), "pull"], capture_output=False)


# ----------------------------------------------------------------
# npm
# ----------------------------------------------------------------
class NpmClient:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def install(self, path: Path) -> None:
        self.runner.run(["npm", "install"], cwd=path, capture_output=False)

    def rebuild(self, path: Path, package: str) -> None:
        self.runner.run(["npm", "rebuild", package], cwd=path, capture_output=False)

    def install_global(self, package: str) -> None:
        self.runner.run(["npm", "install", "-g", package], capture_output=False)

    def start(self, path: Path) -> int:
        return self.runner.run_foreground(["npm", "start"], cwd=path)


# ----------------------------------------------------------------
# pm2
# ----------------------------------------------------------------
class Pm2Supervisor:
    def __init__(self, runner: CommandRunner, executable: str = "pm2") -> None:
        self.runner = runner
        self.executable = executable

    def _pm2(self, *args: str, check: bool = True):
        return self.runner.run([self.executable, *args], check=check)

    def available(self) -> bool:
        return self.runner.which(self.executable) is not None

    def delete(self, name: str) -> bool:
        """Remove ``name`` from pm2; returns False when it was not registered."""
        result = self._pm2("delete", name, check=False)
        if result.returncode != 0:
            logger.debug(f"pm2 delete {name} exited {result.returncode}")
            return False
        return True

    def start(self, config_path: Path) -> None:
        self.runner.run(
            [self.executable, "start", Path(config_path).name],
            cwd=Path(config_path).parent,
        )

    def save(self) -> None:
        self._pm2("save")

    def startup(self, init_system: str, user: str, home: Path) -> None:
        self._pm2("startup", init_system, "-u", user, "--hp", str(home))

    def install_module(self, name: str) -> None:
        self._pm2("install", name)

    def set(self, key: str, value: str) -> None:
        self._pm2("set", key, str(value))


# ----------------------------------------------------------------
# Stray processes
# ----------------------------------------------------------------
def parent_pid(pid: int, proc_root: str = "/proc") -> Optional[int]:
    """Return the parent of ``pid`` from ``/proc/<pid>/stat``, or None."""
    try:
        with open(os.path.join(proc_root, str(pid), "stat")) as f:
            stat = f.read()
    except OSError:
        return None
    # comm is parenthesised and may itself contain spaces or ")".
    fields = stat.rsplit(")", 1)[-1].split()
    try:
        return int(fields[1])
    except (IndexError, ValueError):
        return None


def ancestor_pids(
    pid: int, parent_of: Callable[[int], Optional[int]] = parent_pid
) -> Set[int]:
    """Return ``pid`` and every ancestor up to init."""
    chain: Set[int] = set()
    current: Optional[int] = pid
    while current and current not in chain:
        chain.add(current)
        if current == 1:
            break
        current = parent_of(current)
    return chain


class ProcessTable:
    """
    Kills processes by command line.

    Matching uses ``pgrep -f``. The installer's own process and all of its
    ancestors are never signalled: ``sudo telebox-setup`` and
    ``python -m telebox_setup`` launchers contain the service name too.
    """

    def __init__(
        self,
        runner: CommandRunner,
        kill: Optional[Callable[[int, int], None]] = None,
        parent_of: Callable[[int], Optional[int]] = parent_pid,
    ) -> None:
        self.runner = runner
        self.kill = kill or os.kill
        self.parent_of = parent_of

    def protected_pids(self) -> Set[int]:
        return ancestor_pids(os.getpid(), self.parent_of) | {os.getppid()}

    def find(self, pattern: str) -> List[int]:
        """
        Return the pids whose command line matches ``pattern``.

        Raises:
            ExecutionError: If pgrep fails for a reason other than no match
        """
        cmd = ["pgrep", "-f", pattern]
        result = self.runner.run(cmd, check=False)
        if result.returncode == 1:
            return []
        if result.returncode != 0:
            raise ExecutionError(
                f"pgrep failed (code {result.returncode}) for pattern {pattern!r}",
                cmd=cmd,
                returncode=result.returncode,
                stderr=(result.stderr or "").strip(),
            )
        own = self.protected_pids()
        pids = [int(line) for line in result.stdout.split() if line.strip().isdigit()]
        return [pid for pid in pids if pid not in own]

    def kill_matching(self, pattern: str) -> bool:
        """
        Send SIGKILL to every process matching ``pattern``.

        Returns False when nothing was killed.
        """
        killed = False
        for pid in self.find(pattern):
            try:
                self.kill(pid, signal.SIGKILL)
            except ProcessLookupError:
                continue
            logger.info(f"Killed pid {pid} matching {pattern!r}")
            killed = True
        return killed


def default_providers(
    runner: CommandRunner, config: InstallConfig
) -> Dict[str, object]:
    """Build the real provider set keyed by Installer argument name."""
    apt = AptInstaller(runner)
    return {
        "packages": apt,
        "runtime": NodeSourceInstaller(
            runner,
            apt,
            url_template=config.node_setup_url_template,
            package=config.runtime_package,
        ),
        "git": GitClient(runner),
        "npm": NpmClient(runner),
        "supervisor": Pm2Supervisor(runner),
        "processes": ProcessTable(runner),
    }
