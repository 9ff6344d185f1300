"""
rancher_ha/utils/errors.py

Exception hierarchy for HA cluster bootstrap. Every error raised by this package
derives from HASetupError so callers can catch a single base error.

Layers wrap one another with `raise ... from exc`, so a top-level failure reads
as a chain of causes: fleet -> instance ordinal -> node host and step -> the
remote command failure that started it.
"""

from __future__ import annotations

from typing import List, Optional


class HASetupError(Exception):
    """Base error for HA cluster provisioning and bootstrap."""


class ValidationError(HASetupError):
    """A precondition failed before any remote work (bad address, wrong command count)."""


class RemoteCommandError(HASetupError):
    """Base error for a single remote (SSH) command.

    Attributes:
        host (str): The target host address.
        return_code (Optional[int]): The remote exit code if known.
    """

    def __init__(
        self, message: str, host: str, return_code: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.host = host
        self.return_code = return_code


class CredentialError(RemoteCommandError):
    """The private key could not be parsed."""


class SSHConnectionError(RemoteCommandError):
    """The host was unreachable, the port closed, or authentication was rejected."""


class ExecutionError(RemoteCommandError):
    """The remote command exited non-zero or its session failed."""


class ReadinessTimeoutError(HASetupError):
    """A readiness probe never reported success within its attempt budget."""

    def __init__(self, message: str, host: str, attempts: int) -> None:
        super().__init__(message)
        self.host = host
        self.attempts = attempts


class WorkspaceError(HASetupError):
    """A local file or workspace operation failed, or the kubeconfig could not be saved."""


class TokenUnavailableError(HASetupError):
    """The join token could not be read from the first node."""


class NodeBootstrapError(HASetupError):
    """A node bootstrap step failed.

    Attributes:
        host (str): The node address.
        step (str): The name of the failed step.
    """

    def __init__(self, host: str, step: str, detail: str) -> None:
        super().__init__(f"node {host}: step '{step}' failed: {detail}")
        self.host = host
        self.step = step


class InstanceSetupError(HASetupError):
    """An HA instance failed to bootstrap."""

    def __init__(self, instance_num: int, detail: str) -> None:
        super().__init__(f"HA instance {instance_num} setup failed: {detail}")
        self.instance_num = instance_num


class FleetSetupError(HASetupError):
    """One or more HA instances failed. All instances have already run to completion."""

    def __init__(self, failed_instances: List[int], first_error: BaseException) -> None:
        failed = ", ".join(str(n) for n in failed_instances)
        super().__init__(
            f"Error during parallel HA setup (failed instances: {failed}): {first_error}"
        )
        self.failed_instances = failed_instances
        self.first_error = first_error


def describe_chain(exc: BaseException) -> str:
    """Render an exception and its __cause__ chain as a single 'a: b: c' line."""
    parts: List[str] = []
    current: Optional[BaseException] = exc
    while current is not None:
        text = str(current) or type(current).__name__
        if not parts or text not in parts[-1]:
            parts.append(text)
        current = current.__cause__
    return ": ".join(parts)
