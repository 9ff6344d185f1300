"""
Shared fixtures: a fake remote fleet standing in for SSH, a flat terraform
output map, and a ToolConfig with zero-length waits.
"""

from __future__ import annotations

import os
from typing import Callable, Dict, List, Optional, Tuple

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from rancher_ha.models.config import ToolConfig
from rancher_ha.models.ssh import SSHConfig
from rancher_ha.utils.async_command_runner import CommandError

TOKEN = "K10abcdef::server:0123456789"

KUBECONFIG_TEMPLATE = """apiVersion: v1
clusters:
- cluster:
    certificate-authority-data: Zm9v
    server: https://127.0.0.1:6443
  name: default
contexts:
- context:
    cluster: default
    user: default
  name: default
current-context: default
kind: Config
"""


CONFIG_FILE = """total_has: 1
rancher:
  helm_commands:
    - helm install rancher rancher-latest/rancher --namespace cattle-system
aws:
  rsa_private_key: unused
"""


def public_ip(instance_num: int, node: int) -> str:
    return f"10.{instance_num}.0.{node}"


def private_ip(instance_num: int, node: int) -> str:
    return f"172.16.{instance_num}.{node}"


def make_outputs(total: int) -> Dict[str, str]:
    outputs: Dict[str, str] = {}
    for n in range(1, total + 1):
        for k in (1, 2, 3):
            outputs[f"ha_{n}_server{k}_ip"] = public_ip(n, k)
            outputs[f"ha_{n}_server{k}_private_ip"] = private_ip(n, k)
        outputs[f"ha_{n}_aws_lb"] = f"ha-{n}-lb.elb.amazonaws.com"
        outputs[f"ha_{n}_rancher_url"] = f"rancher-{n}.example.com"
    return outputs


class FakeRemote:
    """
    Answers remote commands the way a healthy RKE2 node would. Failures are
    injected per (host, command substring).
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str]] = []
        self._failures: List[Tuple[str, str, Exception]] = []
        self.token = TOKEN
        self.kubeconfig = KUBECONFIG_TEMPLATE
        self.overrides: Dict[Tuple[str, str], Callable[[], str]] = {}

    def fail(self, host: str, fragment: str, exc: Exception) -> None:
        self._failures.append((host, fragment, exc))

    def respond(self, host: str, fragment: str, answer: Callable[[], str]) -> None:
        self.overrides[(host, fragment)] = answer

    def hosts(self) -> List[str]:
        return [h for h, _ in self.calls]

    def commands_for(self, host: str) -> List[str]:
        return [c for h, c in self.calls if h == host]

    def index_of(self, host: str, fragment: str) -> Optional[int]:
        for i, (h, c) in enumerate(self.calls):
            if h == host and fragment in c:
                return i
        return None

    async def __call__(
        self, ssh_config: SSHConfig, remote_command: List[str], *, sensitive: bool = True
    ) -> str:
        host = ssh_config.hostname
        cmd = " ".join(remote_command)
        self.calls.append((host, cmd))
        for f_host, fragment, exc in self._failures:
            if f_host == host and fragment in cmd:
                raise exc
        for (o_host, fragment), answer in self.overrides.items():
            if o_host == host and fragment in cmd:
                return answer()
        if "test -f" in cmd:
            return "ready"
        if "is-active" in cmd:
            return "active"
        if cmd.endswith("node-token"):
            return self.token
        if cmd.endswith("rke2.yaml"):
            return self.kubeconfig.rstrip("\n")
        return ""


class FakeLocal:
    """Stands in for the local command runner (install script, terraform)."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, object]] = []
        self.fail_with: Optional[CommandError] = None

    async def __call__(self, command: List[str], **kwargs: object) -> str:
        self.calls.append({"command": command, **kwargs})
        if self.fail_with is not None:
            raise self.fail_with
        return "ok"


@pytest.fixture
def remote(monkeypatch: pytest.MonkeyPatch) -> FakeRemote:
    fake = FakeRemote()
    monkeypatch.setattr("rancher_ha.deployment.rke2.run_ssh_command", fake)
    monkeypatch.setattr("rancher_ha.utils.readiness.run_ssh_command", fake)
    return fake


@pytest.fixture
def local(monkeypatch: pytest.MonkeyPatch) -> FakeLocal:
    fake = FakeLocal()
    monkeypatch.setattr("rancher_ha.deployment.rancher.run_command", fake)
    return fake


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("HA_"):
            monkeypatch.delenv(key)


def make_config(tmp_path, total: int = 2, commands: Optional[int] = None) -> ToolConfig:
    count = total if commands is None else commands
    return ToolConfig(
        total_has=total,
        rancher={
            "helm_commands": [
                f"helm install rancher rancher-latest/rancher --namespace cattle-system "
                f"--set hostname=placeholder-{i}"
                for i in range(1, count + 1)
            ]
        },
        k8s={"version": "v1.30.4+rke2r1"},
        aws={"rsa_private_key": "unused-by-fake-remote"},
        timings={
            "poll_interval_seconds": 0,
            "poll_max_attempts": 3,
            "convergence_delay_seconds": 0,
        },
        terraform_dir=str(tmp_path / "terraform"),
        workspace_root=str(tmp_path),
    )


@pytest.fixture
def config(tmp_path) -> ToolConfig:
    return make_config(tmp_path)


@pytest.fixture
def outputs() -> Dict[str, str]:
    return make_outputs(2)


@pytest.fixture(scope="session")
def openssh_key() -> str:
    key = ed25519.Ed25519PrivateKey.generate()
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.OpenSSH,
        serialization.NoEncryption(),
    ).decode()
