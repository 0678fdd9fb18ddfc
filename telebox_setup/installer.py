"""
TeleBox installation stages.

``Installer.steps()`` lists the stages in the order they must run:

1. root check
2. optional cleanup of a previous installation
3. system packages
4. Node.js runtime
5. application checkout and npm dependencies
6. interactive first-run Telegram login
7. pm2 service registration and boot-time startup
8. pm2-logrotate
9. completion report

Cleanup and the first-run login are tolerated steps; every other failure
stops the run.
"""

import glob
import os
import shutil
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from rich.prompt import Prompt

from .config import InstallConfig
from .ecosystem import write_ecosystem
from .errors import ExecutionError, PrivilegeError, SetupError
from .providers import (
    NodePackageManager,
    PackageInstaller,
    ProcessKiller,
    RuntimeInstaller,
    ServiceSupervisor,
    SourceControl,
)
from .ui import (
    NordColors,
    add_file_handler,
    console,
    display_panel,
    logger,
    print_step,
    print_success,
    print_table,
    print_warning,
)
from .workflow import Step, StepResult, WorkflowRunner


# ----------------------------------------------------------------
# Operator Interaction
# ----------------------------------------------------------------
class Operator:
    """
    Prompts answered by the person running the installer.

    ``cleanup_answer`` pre-answers the cleanup question (CLI
    ``--cleanup/--no-cleanup``); None means ask.
    """

    YES_ANSWERS = ("y", "yes")

    def __init__(
        self,
        cleanup_answer: Optional[bool] = None,
        ask: Callable[..., str] = Prompt.ask,
    ) -> None:
        self.cleanup_answer = cleanup_answer
        self.ask = ask

    def confirm(self, question: str) -> bool:
        """Return True only for y/yes (any case); empty input declines."""
        if self.cleanup_answer is not None:
            return self.cleanup_answer
        answer = self.ask(
            f"[prompt]{question}[/prompt] (y/N)",
            default="",
            show_default=False,
            console=console,
        )
        return is_yes(answer)

    def pause(self, message: str) -> None:
        self.ask(
            f"[prompt]{message}[/prompt]",
            default="",
            show_default=False,
            console=console,
        )


def is_yes(answer: Optional[str]) -> bool:
    return (answer or "").strip().lower() in Operator.YES_ANSWERS


def management_commands(service_name: str) -> List[Tuple[str, str]]:
    """pm2 commands for day-to-day management of the service."""
    return [
        ("Status", f"pm2 status {service_name}"),
        ("Logs", f"pm2 logs {service_name}"),
        ("Tail last 50 lines", f"pm2 logs {service_name} --lines 50"),
        ("Restart", f"pm2 restart {service_name}"),
        ("Stop", f"pm2 stop {service_name}"),
        ("Delete", f"pm2 delete {service_name}"),
    ]


# ----------------------------------------------------------------
# Installer
# ----------------------------------------------------------------
class Installer:
    """Drives a full TeleBox installation on a Debian/Ubuntu host."""

    def __init__(
        self,
        config: InstallConfig,
        packages: PackageInstaller,
        runtime: RuntimeInstaller,
        git: SourceControl,
        npm: NodePackageManager,
        supervisor: ServiceSupervisor,
        processes: ProcessKiller,
        operator: Optional[Operator] = None,
        skip_login: bool = False,
        geteuid: Optional[Callable[[], int]] = None,
        sleep: Callable[[float], None] = time.sleep,
        runner: Optional[WorkflowRunner] = None,
    ) -> None:
        self.config = config
        self.packages = packages
        self.runtime = runtime
        self.git = git
        self.npm = npm
        self.supervisor = supervisor
        self.processes = processes
        self.operator = operator or Operator()
        self.skip_login = skip_login
        self.geteuid = geteuid
        self.sleep = sleep
        self.runner = runner or WorkflowRunner()

    def steps(self) -> List[Step]:
        login = self.first_run_login
        if self.skip_login:
            login = self.skip_first_run_login
        return [
            Step("Root check", "Checking privileges", self.check_privileges),
            Step(
                "Cleanup",
                "Removing previous installation",
                self.confirm_and_cleanup,
                tolerated=True,
            ),
            Step(
                "Dependencies",
                "Installing system packages",
                self.install_dependencies,
            ),
            Step(
                "Node.js",
                f"Installing Node.js v{self.config.node_version}",
                self.install_runtime,
            ),
            Step("Application", "Setting up TeleBox", self.setup_application),
            Step("First login", "First-run Telegram login", login, tolerated=True),
            Step("pm2 service", "Registering pm2 service", self.setup_supervisor),
            Step("Log rotation", "Configuring pm2 log rotation", self.setup_logrotate),
            Step("Report", "Installation complete", self.show_completion),
        ]

    def run(self) -> List[StepResult]:
        """
        Run every stage.

        Raises:
            WorkflowAborted: When a fatal stage fails
        """
        return self.runner.run(self.steps())

    # ------------------------------------------------------------
    # Stage 1: privileges
    # ------------------------------------------------------------
    def check_privileges(self) -> None:
        """
        Ensure the installer runs as root, then start the log file.

        Raises:
            PrivilegeError: If not running as root
        """
        euid = (self.geteuid or os.geteuid)()
        if euid != 0:
            raise PrivilegeError(
                "This installer must run as root (use sudo or log in as root)"
            )
        add_file_handler(self.config.log_file)
        logger.info("Root privileges confirmed.")

    # ------------------------------------------------------------
    # Stage 2: cleanup
    # ------------------------------------------------------------
    def confirm_and_cleanup(self) -> None:
        console.print()
        question = "Remove any previous TeleBox installation and reinstall?"
        if self.operator.confirm(question):
            self.cleanup()
        else:
            print_warning("Skipping cleanup.")

    def cleanup(self) -> None:
        """Best-effort removal of the service, stray processes and files."""
        cfg = self.config

        if self.supervisor.available():
            print_step(f"Removing pm2 service {cfg.service_name}...")
            self._best_effort(
                f"pm2 delete {cfg.service_name}",
                lambda: self.supervisor.delete(cfg.service_name),
            )

        print_step("Terminating leftover TeleBox processes...")
        for pattern in cfg.process_patterns:
            self._best_effort(
                f"kill processes matching {pattern!r}",
                lambda p=pattern: self.processes.kill_matching(p),
            )
        self.sleep(cfg.settle_seconds)

        if cfg.install_dir.exists():
            print_step(f"Deleting {cfg.install_dir}...")
            self._best_effort(
                f"remove {cfg.install_dir}", lambda: remove_path(cfg.install_dir)
            )

        print_step("Clearing cache files...")
        for pattern in cfg.cache_globs:
            for match in glob.glob(pattern):
                self._best_effort(
                    f"remove {match}", lambda m=match: remove_path(Path(m))
                )

        print_success("Cleanup finished.")

    @staticmethod
    def _best_effort(description: str, action: Callable[[], object]) -> None:
        try:
            action()
        except (SetupError, OSError) as e:
            print_warning(f"Could not {description}: {e}")

    # ------------------------------------------------------------
    # Stages 3-5: packages, runtime, application
    # ------------------------------------------------------------
    def install_dependencies(self) -> None:
        print_step("Updating package lists...")
        self.packages.update()
        print_step(f"Installing {', '.join(self.config.system_packages)}...")
        self.packages.install(self.config.system_packages)
        print_success("System packages installed.")

    def install_runtime(self) -> None:
        print_step(f"Installing Node.js v{self.config.node_version} from NodeSource...")
        self.runtime.install(self.config.node_version)
        versions = self.runtime.versions()
        print_success(f"Node.js version: {versions.get('node', 'unknown')}")
        print_success(f"npm version: {versions.get('npm', 'unknown')}")

    def setup_application(self) -> None:
        cfg = self.config
        cfg.install_dir.mkdir(parents=True, exist_ok=True)

        if self.git.is_checkout(cfg.install_dir):
            print_warning("Existing checkout found, pulling latest changes...")
            self.git.pull(cfg.install_dir)
        else:
            print_step(f"Cloning {cfg.repo_url}...")
            self.git.clone(cfg.repo_url, cfg.install_dir)

        print_step("Installing npm dependencies...")
        self.npm.install(cfg.install_dir)
        for package in cfg.native_rebuild:
            print_step(f"Rebuilding {package} for this host...")
            self.npm.rebuild(cfg.install_dir, package)
        print_success(f"TeleBox ready in {cfg.install_dir}")

    # ------------------------------------------------------------
    # Stage 6: first-run login
    # ------------------------------------------------------------
    def login_instructions(self) -> str:
        cfg = self.config
        return (
            "Enter your Telegram API details when TeleBox asks for them:\n\n"
            f"1. Get api_id and api_hash from {cfg.credentials_url}\n"
            "2. Enter your phone number in international format, "
            f"e.g. {cfg.phone_example}\n"
            f"3. Once you see '{cfg.login_success_text}' press Ctrl+C to stop"
        )

    def first_run_login(self) -> None:
        """
        Run TeleBox in the foreground so the operator can log in.

        Raises:
            ExecutionError: If npm start exits non-zero (expected after Ctrl+C)
        """
        display_panel(
            self.login_instructions(), style=NordColors.FROST_3, title="Telegram Login"
        )
        self.operator.pause("Press Enter to start the first login...")

        returncode = self.npm.start(self.config.install_dir)
        if returncode != 0:
            raise ExecutionError(
                f"npm start exited with code {returncode}",
                cmd=["npm", "start"],
                returncode=returncode,
            )
        print_success("First login finished, moving TeleBox to the background...")

    def skip_first_run_login(self) -> None:
        print_warning("Skipping first-run login; an existing session is assumed.")

    # ------------------------------------------------------------
    # Stages 7-8: pm2
    # ------------------------------------------------------------
    def setup_supervisor(self) -> None:
        cfg = self.config
        print_step(f"Installing {cfg.supervisor_package} globally...")
        self.npm.install_global(cfg.supervisor_package)

        path = write_ecosystem(cfg)
        print_success(f"Wrote {path}")
        cfg.logs_dir.mkdir(parents=True, exist_ok=True)

        print_step(f"Starting {cfg.service_name} under pm2...")
        self.supervisor.start(path)
        self.supervisor.save()

        print_step(f"Enabling boot-time startup for {cfg.startup_user}...")
        self.supervisor.startup(
            cfg.startup_init_system, cfg.startup_user, cfg.startup_home
        )
        print_success(f"{cfg.service_name} is running under pm2.")

    def setup_logrotate(self) -> None:
        cfg = self.config
        module = cfg.logrotate_module
        print_step(f"Installing {module}...")
        self.supervisor.install_module(module)
        self.supervisor.set(f"{module}:max_size", cfg.logrotate_max_size)
        self.supervisor.set(f"{module}:retain", str(cfg.logrotate_retain))
        print_success(
            f"Logs rotate at {cfg.logrotate_max_size}, "
            f"keeping {cfg.logrotate_retain} files."
        )

    # ------------------------------------------------------------
    # Stage 9: report
    # ------------------------------------------------------------
    def show_completion(self) -> None:
        cfg = self.config
        console.print(
            f"Install directory: [path]{cfg.install_dir}[/path]", highlight=False
        )
        print_table(
            "Management Commands",
            ["Action", "Command"],
            management_commands(cfg.service_name),
        )
        print_success(
            "TeleBox runs under pm2 with log rotation and boot-time startup."
        )


def remove_path(path: Path) -> None:
    """Delete a file, symlink or directory tree; a missing path is fine."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)
