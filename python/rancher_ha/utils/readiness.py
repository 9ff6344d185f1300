"""
rancher_ha/utils/readiness.py

Polls a remote probe command until its trimmed output equals an expected token
(e.g. "ready" or "active"). There is no push signal for node readiness, so we
observe a marker file or service state on the node.

Transient SSH or command failures count as "not ready yet" and the loop goes on.
A CredentialError aborts at once: a key that fails to parse will not parse on
the next attempt either.
"""

from __future__ import annotations

import logging
from typing import List

from rancher_ha.models.ssh import SSHConfig
from rancher_ha.utils.async_retry import async_retry
from rancher_ha.utils.errors import (
    ExecutionError,
    HASetupError,
    ReadinessTimeoutError,
    SSHConnectionError,
)
from rancher_ha.utils.ssh import run_ssh_command

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_POLL_MAX_ATTEMPTS = 30


class _NotReadyError(HASetupError):
    """The probe ran but did not report the expected token."""


async def wait_until_ready(
    ssh_config: SSHConfig,
    probe_command: List[str],
    expected: str,
    *,
    interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS,
) -> None:
    """
    Run `probe_command` on the host until its output is exactly `expected`.

    Args:
        ssh_config: Target host connection details.
        probe_command: Remote command tokens for the probe.
        expected: Success token; compared against the whitespace-trimmed output.
            Prefixes and substrings do not match.
        interval: Seconds to wait between attempts.
        max_attempts: Upper bound on probe executions.

    Raises:
        ReadinessTimeoutError: If no attempt matched within `max_attempts`.
        CredentialError: If the private key cannot be parsed.
    """
    host = ssh_config.hostname

    @async_retry(
        retries=max_attempts,
        delay=interval,
        retry_on=(_NotReadyError, SSHConnectionError, ExecutionError),
    )
    async def _probe() -> None:
        status = await run_ssh_command(ssh_config, probe_command)
        if status.strip() != expected:
            logger.debug("Probe on %s returned %r, want %r", host, status, expected)
            raise _NotReadyError(f"{host} reported {status.strip()!r}")

    try:
        await _probe()
    except (_NotReadyError, SSHConnectionError, ExecutionError) as exc:
        raise ReadinessTimeoutError(
            f"timeout waiting for {host} to report '{expected}' after {max_attempts} attempts",
            host=host,
            attempts=max_attempts,
        ) from exc
