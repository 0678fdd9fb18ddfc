"""
Install configuration for the TeleBox installer.

All paths and names the workflow touches live in a single ``InstallConfig``
so tests can point the installer at a temporary directory and a throwaway
service name.
"""

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List

from .errors import ConfigurationError


# ----------------------------------------------------------------
# Configuration & Constants
# ----------------------------------------------------------------
@dataclass
class InstallConfig:
    """Settings for one TeleBox installation."""

    # Application
    install_dir: Path = Path("/root/telebox-data")
    service_name: str = "telebox"
    repo_url: str = "https://github.com/TeleBoxDev/TeleBox.git"

    # Node.js runtime
    node_version: str = "20"
    node_setup_url_template: str = "https://deb.nodesource.com/setup_{version}.x"
    runtime_package: str = "nodejs"

    # System packages needed to build sharp against libvips
    system_packages: List[str] = field(
        default_factory=lambda: [
            "curl",
            "git",
            "build-essential",
            "libvips",
            "libvips-dev",
        ]
    )
    native_rebuild: List[str] = field(default_factory=lambda: ["sharp"])

    # pm2 process supervisor
    supervisor_package: str = "pm2"
    ecosystem_filename: str = "ecosystem.config.js"
    start_script: str = "npm"
    start_args: str = "start"
    max_restarts: int = 10
    min_uptime: str = "10s"
    restart_delay_ms: int = 4000
    node_env: str = "production"
    startup_init_system: str = "systemd"
    startup_user: str = "root"
    startup_home: Path = Path("/root")

    # pm2-logrotate
    logrotate_module: str = "pm2-logrotate"
    logrotate_max_size: str = "10M"
    logrotate_retain: int = 7

    # Cleanup of a previous installation
    cache_globs: List[str] = field(
        default_factory=lambda: ["/tmp/telebox*", "/root/.telebox*"]
    )
    settle_seconds: float = 2.0

    # First-run login hints
    credentials_url: str = "https://my.telegram.org"
    phone_example: str = "+8613812345678"
    login_success_text: str = "You should now be connected."

    # Installer log
    log_file: Path = Path("/var/log/telebox_setup.log")

    def __post_init__(self) -> None:
        self.install_dir = Path(self.install_dir)
        self.startup_home = Path(self.startup_home)
        self.log_file = Path(self.log_file)

    # ------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------
    @property
    def node_setup_url(self) -> str:
        return self.node_setup_url_template.format(version=self.node_version)

    @property
    def ecosystem_path(self) -> Path:
        return self.install_dir / self.ecosystem_filename

    @property
    def logs_dir(self) -> Path:
        return self.install_dir / "logs"

    @property
    def out_log(self) -> Path:
        return self.logs_dir / "out.log"

    @property
    def error_log(self) -> Path:
        return self.logs_dir / "error.log"

    @property
    def process_patterns(self) -> List[str]:
        """pgrep -f patterns matching stray TeleBox processes."""
        name = self.service_name
        return [name, f"npm.*start.*{name}", f"node.*{name}"]

    # ------------------------------------------------------------
    # Overrides and validation
    # ------------------------------------------------------------
    def with_overrides(self, **overrides: Any) -> "InstallConfig":
        """
        Return a copy with every non-None override applied.

        Raises:
            ConfigurationError: If an override names an unknown setting
        """
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(f"Unknown setting(s): {', '.join(unknown)}")
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)

    def validate(self) -> "InstallConfig":
        """
        Check the configuration for values the workflow cannot use.

        Raises:
            ConfigurationError: On the first invalid value
        """
        if not self.service_name.strip():
            raise ConfigurationError("Service name must not be empty")
        if not self.install_dir.is_absolute():
            raise ConfigurationError(
                f"Install directory must be an absolute path: {self.install_dir}"
            )
        if not str(self.node_version).isdigit():
            raise ConfigurationError(
                f"Node.js version must be a major version number: {self.node_version}"
            )
        if self.max_restarts <= 0:
            raise ConfigurationError("max_restarts must be positive")
        if self.restart_delay_ms < 0:
            raise ConfigurationError("restart_delay_ms must not be negative")
        if self.logrotate_retain <= 0:
            raise ConfigurationError("logrotate_retain must be positive")
        return self
