"""
rancher_ha/utils/async_command_runner.py

Runs local programs (ssh, terraform, the generated install script) as asyncio
subprocesses and returns their stdout.

A failing run raises CommandError carrying the exit code, or None when the
program could not be started at all. Callers may pass an `error_parser` that
turns known stderr patterns (rejected cloud credentials, say) into a short
message. With `sensitive=True` the error never echoes the argv or the output,
which may hold keys or tokens.

The child is always reaped: if the awaiting task is interrupted, the process is
killed before the interruption propagates.
"""

from __future__ import annotations

import os
import asyncio
import logging
from typing import Callable, Dict, List, Optional

from rancher_ha.utils.async_retry import async_retry

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """A local command failed.

    Attributes:
        return_code (Optional[int]): Exit status, None if the process never started.
    """

    def __init__(self, message: str, return_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.return_code = return_code


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill and wait for a process that is still running. Failures are only logged."""
    if proc.returncode is not None:
        return
    try:
        proc.kill()
        await proc.wait()
    except ProcessLookupError:
        pass
    except OSError as exc:
        logger.warning("Failed to reap process %s: %s", proc.pid, exc)


def _failure(
    command: List[str],
    return_code: Optional[int],
    stdout: str,
    stderr: str,
    sensitive: bool,
    error_parser: Optional[Callable[[str], Optional[str]]],
) -> CommandError:
    short = error_parser(stderr) if error_parser else None
    if short is not None:
        return CommandError(short, return_code)
    message = f"Command failed with return code {return_code}."
    if not sensitive:
        message += (
            f"\nCommand: {' '.join(command)}\nStdout: {stdout}\nStderr: {stderr}"
        )
    return CommandError(message, return_code)


async def run_command(
    command: List[str],
    *,
    sensitive: bool = True,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    retries: int = 3,
    retry_delay: float = 1.0,
    error_parser: Optional[Callable[[str], Optional[str]]] = None,
) -> str:
    """
    Run `command` and return its stdout with trailing CR/LF removed.

    Args:
        command (List[str]): argv of the program.
        sensitive (bool): Keep argv and output out of error messages.
        env (Optional[Dict[str, str]]): Variables layered over the current environment.
        cwd (Optional[str]): Working directory.
        retries (int): Total attempts.
        retry_delay (float): Seconds between attempts.
        error_parser (Optional[Callable[[str], Optional[str]]]): Maps stderr to a
            short message, or None to keep the generic one.

    Raises:
        CommandError: If the program cannot be started or exits with a
            non-zero status on every attempt.
    """
    proc_env = None
    if env:
        proc_env = os.environ.copy()
        proc_env.update(env)

    @async_retry(retries=retries, delay=retry_delay, retry_on=(CommandError,))
    async def _attempt() -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=proc_env,
                cwd=cwd,
            )
        except OSError as exc:
            raise CommandError(f"Failed to start '{command[0]}': {exc}") from exc

        try:
            out, err = await proc.communicate()
        finally:
            await _reap(proc)

        stdout = out.decode(errors="replace").rstrip("\r\n")
        if proc.returncode == 0:
            return stdout
        raise _failure(
            command,
            proc.returncode,
            stdout,
            err.decode(errors="replace").strip(),
            sensitive,
            error_parser,
        )

    return await _attempt()
