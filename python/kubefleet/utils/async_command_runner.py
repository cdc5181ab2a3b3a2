"""
kubefleet/utils/async_command_runner.py

Runs local commands (kubectl) asynchronously with optional retries.

Usage example:
    from kubefleet.utils.async_command_runner import run_command, CommandError

    try:
        output = await run_command(["kubectl", "version", "-o", "json"], retries=1)
    except CommandError as err:
        print(f"Command failed: {err}")
"""

from __future__ import annotations

import asyncio
import os
from typing import Dict, List, Optional

from kubefleet.utils.async_retry import async_retry


class CommandError(Exception):
    """Represents a failure when executing a local command.

    Attributes:
        return_code (Optional[int]): The exit code if available.
    """

    def __init__(self, message: str, return_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.return_code = return_code


async def run_command(
    command: List[str],
    *,
    sensitive: bool = True,
    env: Optional[Dict[str, str]] = None,
    retries: int = 1,
    retry_delay: float = 1.0,
) -> str:
    """
    Execute `command` in a subprocess and return its stripped stdout.

    When `sensitive=True`, the command line, stdout and stderr are left out of
    the raised error message.

    Args:
        command (List[str]): The command and arguments to execute.
        sensitive (bool): If True, hides command details in the raised error.
        env (Optional[Dict[str, str]]): Extra environment variables.
        retries (int): Total attempts. Defaults to 1 (no retry).
        retry_delay (float): Delay in seconds between attempts.

    Returns:
        str: The captured stdout of the command on success.

    Raises:
        CommandError: If the executable is missing or every attempt exits non-zero.
    """

    @async_retry(retries=retries, delay=retry_delay, retry_on=(CommandError,))
    async def _inner_run_command() -> str:
        proc_env = None if env is None else {**os.environ, **env}
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=proc_env,
            )
        except FileNotFoundError as exc:
            raise CommandError(f"Executable not found: {command[0]}") from exc

        stdout_bytes, stderr_bytes = await proc.communicate()
        stdout_str = stdout_bytes.decode(errors="replace").strip()
        stderr_str = stderr_bytes.decode(errors="replace").strip()

        if proc.returncode != 0:
            detail = ""
            if not sensitive:
                detail = (
                    f"\nCommand: {' '.join(command)}"
                    f"\nStdout: {stdout_str}"
                    f"\nStderr: {stderr_str}"
                )
            raise CommandError(
                f"Command failed with return code {proc.returncode}.{detail}",
                proc.returncode,
            )
        return stdout_str

    return await _inner_run_command()
