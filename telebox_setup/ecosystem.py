"""pm2 ecosystem file generation."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

from .config import InstallConfig

ECOSYSTEM_PREFIX = "module.exports = "


def build_app_definition(config: InstallConfig) -> Dict[str, Any]:
    """Return the pm2 app entry for the TeleBox service."""
    return {
        "name": config.service_name,
        "script": config.start_script,
        "args": config.start_args,
        "cwd": str(config.install_dir),
        "error_file": str(config.error_log),
        "out_file": str(config.out_log),
        "merge_logs": True,
        "time": True,
        "autorestart": True,
        "max_restarts": config.max_restarts,
        "min_uptime": config.min_uptime,
        "restart_delay": config.restart_delay_ms,
        "env": {"NODE_ENV": config.node_env},
    }


def render_ecosystem(config: InstallConfig) -> str:
    """
    Render ecosystem.config.js.

    The object literal is plain JSON, which pm2 reads as JavaScript and
    which ``load_ecosystem`` can parse back.
    """
    body = json.dumps({"apps": [build_app_definition(config)]}, indent=2)
    return f"{ECOSYSTEM_PREFIX}{body};\n"


def write_ecosystem(config: InstallConfig) -> Path:
    """
    Write the ecosystem file into the install directory, replacing any
    previous one.
    """
    path = config.ecosystem_path
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=".ecosystem.")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(render_ecosystem(config))
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    return path


def load_ecosystem(path: Path) -> Dict[str, Any]:
    """Parse an ecosystem file written by ``write_ecosystem``."""
    text = Path(path).read_text().strip()
    if not text.startswith(ECOSYSTEM_PREFIX):
        raise ValueError(f"{path} was not generated by telebox-setup")
    return json.loads(text[len(ECOSYSTEM_PREFIX):].rstrip(";"))
