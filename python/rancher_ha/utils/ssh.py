"""
rancher_ha/utils/ssh.py

Runs one command on one remote host over SSH, using an ephemeral private key
stored in /dev/shm. Each call opens a fresh connection and session and closes
both before returning, on success and failure alike.

Host-key verification is disabled (StrictHostKeyChecking=no with an empty
known_hosts). The nodes are brand new and their keys are unknown; this is an
accepted operational risk of the bootstrap flow.

Error mapping:
  - the private key cannot be parsed          => CredentialError
  - ssh exits 255 or cannot be started         => SSHConnectionError
  - the key cannot be staged on local disk     => SSHConnectionError
  - the remote command exits with another code => ExecutionError

Nothing is retried here; retrying is the readiness poller's job.
"""

from __future__ import annotations

import os
import shlex
import aiofiles
from typing import List

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from rancher_ha.models.ssh import SSHConfig
from rancher_ha.utils.async_command_runner import run_command, CommandError
from rancher_ha.utils.ephemeral_file import ephemeral_manager
from rancher_ha.utils.errors import (
    CredentialError,
    ExecutionError,
    SSHConnectionError,
)

SSH_CONNECTION_FAILURE_CODE = 255


def load_private_key(private_key: str, host: str = "") -> bytes:
    """
    Parse a private key (OpenSSH or PEM) and return it as bytes ready to write.

    Args:
        private_key: The private key text.
        host: Host the key is used for, only for error reporting.

    Returns:
        The key bytes, newline-terminated as OpenSSH expects.

    Raises:
        CredentialError: If the key is empty, malformed, encrypted or unsupported.
    """
    data = private_key.strip().encode("utf-8") + b"\n"
    loader = (
        serialization.load_ssh_private_key
        if b"BEGIN OPENSSH PRIVATE KEY" in data
        else serialization.load_pem_private_key
    )
    try:
        loader(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CredentialError(
            f"failed to parse private key: {exc}", host=host
        ) from exc
    return data


def build_ssh_command(ssh_config: SSHConfig, key_path: str, remote: str) -> List[str]:
    """Build the ssh argv for one non-interactive command."""
    return [
        "ssh",
        "-p",
        str(ssh_config.port),
        "-i",
        key_path,
        "-o",
        "BatchMode=yes",
        "-o",
        "IdentitiesOnly=yes",
        "-o",
        "StrictHostKeyChecking=no",
        "-o",
        "UserKnownHostsFile=/dev/null",
        "-o",
        "GlobalKnownHostsFile=/dev/null",
        "-o",
        "LogLevel=ERROR",
        "-o",
        f"ConnectTimeout={ssh_config.connect_timeout}",
        f"{ssh_config.user}@{ssh_config.hostname}",
        remote,
    ]


async def _stage_key(pk_path: str, key_bytes: bytes) -> None:
    async with aiofiles.open(pk_path, "wb") as fpk:
        await fpk.write(key_bytes)
    os.chmod(pk_path, 0o600)


async def run_ssh_command(
    ssh_config: SSHConfig,
    remote_command: List[str],
    *,
    sensitive: bool = True,
) -> str:
    """
    Run a single command on the remote host and return its stdout.

    Args:
      ssh_config: user, hostname, port and private key for the host.
      remote_command: The remote command tokens; they are shell-quoted and joined.
      sensitive: If True, hides command details on error.

    Returns:
      captured stdout from the remote command, trailing newlines trimmed

    Raises:
      CredentialError, SSHConnectionError, ExecutionError
    """
    host = ssh_config.hostname
    key_bytes = load_private_key(ssh_config.private_key, host=host)
    cmd_str = " ".join(shlex.quote(x) for x in remote_command)

    try:
        async with ephemeral_manager(
            single_file_name="ssh_idkey", prefix="sshpk-"
        ) as pk_path:
            await _stage_key(pk_path, key_bytes)
            ssh_cmd = build_ssh_command(ssh_config, pk_path, cmd_str)
            try:
                return await run_command(
                    ssh_cmd,
                    sensitive=sensitive,
                    retries=1,
                    retry_delay=0.0,
                )
            except CommandError as exc:
                if exc.return_code is None or exc.return_code == SSH_CONNECTION_FAILURE_CODE:
                    raise SSHConnectionError(
                        f"failed to establish ssh connection to {host}:{ssh_config.port}: {exc}",
                        host=host,
                        return_code=exc.return_code,
                    ) from exc
                raise ExecutionError(
                    f"failed to run ssh command on {host}: {exc}",
                    host=host,
                    return_code=exc.return_code,
                ) from exc
    except OSError as exc:
        # Key staging (temp dir, write, chmod) happens before any connection.
        raise SSHConnectionError(
            f"failed to stage ssh key for {host}: {exc}", host=host
        ) from exc
