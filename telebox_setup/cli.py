#!/usr/bin/env python3
"""
TeleBox one-shot installer for Debian / Ubuntu.

Installs the build dependencies, Node.js and TeleBox itself, walks the
operator through the first Telegram login, then leaves TeleBox running
under pm2 with log rotation and boot-time startup.

Usage:
  sudo telebox-setup [--cleanup | --no-cleanup] [--skip-login] [--debug]
"""

import signal
import sys
from pathlib import Path
from typing import Any, List, Optional

import click

from . import __version__
from .config import InstallConfig
from .errors import ConfigurationError, PrivilegeError, WorkflowAborted
from .installer import Installer, Operator
from .providers import default_providers
from .shell import CommandRunner
from .ui import (
    NordColors,
    close_file_handlers,
    console,
    create_header,
    logger,
    print_error,
    print_message,
    print_table,
    print_warning,
    setup_logging,
)
from .workflow import StepResult


# ----------------------------------------------------------------
# Signal Handling and Cleanup
# ----------------------------------------------------------------
def signal_handler(signum: int, frame: Optional[Any]) -> None:
    """Exit with 128 + signum on termination signals."""
    sig_name = f"signal {signum}"
    try:
        sig_name = signal.Signals(signum).name
    except ValueError:
        pass
    console.print()
    print_message(f"Process interrupted by {sig_name}", NordColors.YELLOW, "⚠")
    logger.error(f"Interrupted by {sig_name}. Exiting.")
    close_file_handlers()
    sys.exit(128 + signum)


def install_signal_handlers() -> None:
    # SIGINT stays a KeyboardInterrupt so the foreground login can be stopped.
    for sig in (signal.SIGTERM, signal.SIGHUP):
        try:
            signal.signal(sig, signal_handler)
        except (AttributeError, ValueError):
            pass


def create_installer(
    config: InstallConfig, cleanup: Optional[bool], skip_login: bool
) -> Installer:
    """Wire the installer to the real system tools."""
    runner = CommandRunner()
    return Installer(
        config,
        operator=Operator(cleanup_answer=cleanup),
        skip_login=skip_login,
        **default_providers(runner, config),
    )


def print_summary(results: List[StepResult]) -> None:
    styles = {
        "done": f"[{NordColors.GREEN}]✓ Done[/]",
        "tolerated": f"[{NordColors.YELLOW}]⚠ Continued[/]",
        "failed": f"[{NordColors.RED}]✗ Failed[/]",
        "skipped": f"[{NordColors.POLAR_NIGHT_4}]- Not run[/]",
    }
    rows = [
        (r.name, styles.get(r.status, r.status), f"{r.elapsed:.1f}s", r.message[:60])
        for r in results
    ]
    print_table("Setup Summary", ["Step", "Status", "Time", "Details"], rows)


# ----------------------------------------------------------------
# Main CLI Entry Point with Click
# ----------------------------------------------------------------
@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--install-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="TELEBOX_INSTALL_DIR",
    help="Where TeleBox is cloned (default /root/telebox-data)",
)
@click.option(
    "--service-name",
    envvar="TELEBOX_SERVICE_NAME",
    help="pm2 process name (default telebox)",
)
@click.option("--repo-url", envvar="TELEBOX_REPO_URL", help="Git repository to clone")
@click.option(
    "--node-version",
    envvar="TELEBOX_NODE_VERSION",
    help="Node.js major version (default 20)",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="TELEBOX_LOG_FILE",
    help="Installer log file (default /var/log/telebox_setup.log)",
)
@click.option(
    "--cleanup/--no-cleanup",
    default=None,
    help="Answer the remove-previous-installation prompt in advance",
)
@click.option("--skip-login", is_flag=True, help="Skip the first-run Telegram login")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="telebox-setup")
def main(
    install_dir: Optional[Path],
    service_name: Optional[str],
    repo_url: Optional[str],
    node_version: Optional[str],
    log_file: Optional[Path],
    cleanup: Optional[bool],
    skip_login: bool,
    debug: bool,
) -> None:
    """Install TeleBox and keep it running under pm2."""
    setup_logging(debug)
    install_signal_handlers()

    try:
        config = (
            InstallConfig()
            .with_overrides(
                install_dir=install_dir,
                service_name=service_name,
                repo_url=repo_url,
                node_version=node_version,
                log_file=log_file,
            )
            .validate()
        )
    except ConfigurationError as e:
        print_error(str(e))
        sys.exit(2)

    console.print(create_header(__version__))
    installer = create_installer(config, cleanup, skip_login)

    try:
        results = installer.run()
    except WorkflowAborted as e:
        print_summary(installer.runner.results)
        if isinstance(e.cause, PrivilegeError):
            print_error(str(e.cause))
        else:
            print_error(
                f"Setup failed at step {e.position}/{e.total} ({e.step}). "
                "Check the output above."
            )
        sys.exit(1)
    except KeyboardInterrupt:
        print_warning("Setup interrupted by user.")
        sys.exit(130)
    finally:
        close_file_handlers()

    print_summary(results)


if __name__ == "__main__":
    main()
