"""Subprocess helpers shared by the providers."""

import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import ExecutionError
from .ui import NordColors, console, logger

PathLike = Union[str, Path]


# ----------------------------------------------------------------
# Command Execution Helper
# ----------------------------------------------------------------
class CommandRunner:
    """Runs external commands and turns failures into ExecutionError."""

    def __init__(self, verbose: bool = True) -> None:
        self.verbose = verbose

    def which(self, name: str) -> Optional[str]:
        return shutil.which(name)

    def run(
        self,
        cmd: List[str],
        cwd: Optional[PathLike] = None,
        env: Optional[Dict[str, str]] = None,
        check: bool = True,
        capture_output: bool = True,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        """
        Execute a system command.

        Args:
            cmd: Command and arguments as a list
            cwd: Working directory for the command
            env: Extra environment variables, merged over os.environ
            check: Whether to raise on a non-zero exit
            capture_output: Whether to capture stdout/stderr
            timeout: Command timeout in seconds, None waits forever

        Returns:
            subprocess.CompletedProcess object

        Raises:
            ExecutionError: If the command fails, times out or cannot start
        """
        cmd_str = " ".join(cmd)
        logger.debug(f"Executing: {cmd_str}")
        if self.verbose:
            display_cmd = cmd_str[:80] + ("..." if len(cmd_str) > 80 else "")
            console.print(f"[{NordColors.SNOW_STORM_1}]→ Running: {display_cmd}[/]")

        try:
            return subprocess.run(
                cmd,
                cwd=str(cwd) if cwd is not None else None,
                env=self._merge_env(env),
                check=check,
                text=True,
                capture_output=capture_output,
                timeout=timeout,
            )
        except subprocess.CalledProcessError as e:
            error_msg = f"Command failed (code {e.returncode}): {cmd_str}"
            stderr = (e.stderr or "").strip()
            if stderr:
                error_msg += f"\nError: {stderr}"
            logger.error(error_msg)
            raise ExecutionError(
                error_msg, cmd=cmd, returncode=e.returncode, stderr=stderr
            ) from e
        except subprocess.TimeoutExpired as e:
            error_msg = f"Command timed out after {timeout} seconds: {cmd_str}"
            logger.error(error_msg)
            raise ExecutionError(error_msg, cmd=cmd) from e
        except OSError as e:
            error_msg = f"Error executing command: {cmd_str}: {e}"
            logger.error(error_msg)
            raise ExecutionError(error_msg, cmd=cmd) from e

    def run_foreground(
        self,
        cmd: List[str],
        cwd: Optional[PathLike] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> int:
        """
        Run an interactive command attached to the terminal and return its
        exit code.

        Ctrl+C reaches the child through the terminal's process group; the
        installer keeps waiting for the child instead of dying with it.
        """
        cmd_str = " ".join(cmd)
        logger.info(f"Running in foreground: {cmd_str}")
        try:
            process = subprocess.Popen(
                cmd, cwd=str(cwd) if cwd is not None else None, env=self._merge_env(env)
            )
        except OSError as e:
            error_msg = f"Error executing command: {cmd_str}: {e}"
            logger.error(error_msg)
            raise ExecutionError(error_msg, cmd=cmd) from e

        while True:
            try:
                returncode = process.wait()
                break
            except KeyboardInterrupt:
                logger.info("Interrupt received, waiting for %s to exit", cmd[0])
        logger.info(f"Foreground command exited with code {returncode}")
        return returncode

    @staticmethod
    def _merge_env(env: Optional[Dict[str, str]]) -> Dict[str, str]:
        merged = os.environ.copy()
        if env:
            merged.update(env)
        return merged
