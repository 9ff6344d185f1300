"""
Brings up RKE2 server nodes of one HA instance over SSH. Remote execution is in
rancher_ha.utils.ssh and readiness polling in rancher_ha.utils.readiness.

Each node goes through the same linear sequence, one remote command per step:

  create config dir -> write config.yaml -> install RKE2 -> enable service
  -> start service -> poll until ready

A failed step raises NodeBootstrapError naming the host and the step. Nothing
is rolled back: the nodes are fresh VMs and a failed bootstrap is re-run on
new infrastructure, not retried in place.

Usage:
  1) bootstrap_first_node => wait for the node-token file
  2) get_node_token => JoinToken
  3) bootstrap_joining_node (nodes 2 and 3) => wait for rke2-server active
  4) fetch_and_save_kubeconfig => <workspace>/kube_config.yaml
"""

from __future__ import annotations

import logging
import shlex
from enum import Enum
from pathlib import Path
from typing import List

from rancher_ha.models.config import BootstrapTimings, K8sSettings
from rancher_ha.models.rke2 import (
    JoinToken,
    NodeConfiguration,
    first_node_config,
    joining_node_config,
)
from rancher_ha.models.ssh import SSHConfig
from rancher_ha.models.topology import InstanceTopology
from rancher_ha.utils.errors import (
    HASetupError,
    NodeBootstrapError,
    TokenUnavailableError,
    WorkspaceError,
)
from rancher_ha.utils.kubeconfig import rewrite_kubeconfig, save_kubeconfig
from rancher_ha.utils.readiness import wait_until_ready
from rancher_ha.utils.ssh import run_ssh_command

logger = logging.getLogger(__name__)

RKE2_CONFIG_DIR = "/etc/rancher/rke2"
RKE2_CONFIG_FILE = f"{RKE2_CONFIG_DIR}/config.yaml"
RKE2_KUBECONFIG_FILE = f"{RKE2_CONFIG_DIR}/rke2.yaml"
RKE2_NODE_TOKEN_FILE = "/var/lib/rancher/rke2/server/node-token"
RKE2_INSTALL_URL = "https://get.rke2.io"
RKE2_SERVICE = "rke2-server.service"

FIRST_NODE_READY_TOKEN = "ready"
JOINING_NODE_READY_TOKEN = "active"


class NodeBootstrapStep(str, Enum):
    CREATE_CONFIG_DIR = "create config directory"
    WRITE_CONFIG = "create config file"
    INSTALL = "install RKE2"
    ENABLE = "enable RKE2 server"
    START = "start RKE2 server"
    WAIT_READY = "wait for RKE2 to initialize"


def _bash(script: str) -> List[str]:
    return ["bash", "-c", script]


def install_command(k8s: K8sSettings) -> List[str]:
    """RKE2 server install via the official script, pinned to a version when one is set."""
    if k8s.version:
        selector = f"INSTALL_RKE2_VERSION={shlex.quote(k8s.version)}"
    else:
        selector = f"INSTALL_RKE2_CHANNEL={shlex.quote(k8s.channel)}"
    return _bash(
        f"curl -sfL {RKE2_INSTALL_URL} | sudo {selector} INSTALL_RKE2_TYPE=server sh -"
    )


def write_config_command(config: NodeConfiguration) -> List[str]:
    """Upload config.yaml hex-encoded so no quoting of its content is needed."""
    enc = config.to_yaml().encode("utf-8").hex()
    return _bash(
        f"echo '{enc}' | xxd -r -p | sudo tee {RKE2_CONFIG_FILE} >/dev/null"
        f" && sudo chmod 600 {RKE2_CONFIG_FILE}"
    )


def first_node_probe() -> List[str]:
    return _bash(
        f"sudo test -f {RKE2_NODE_TOKEN_FILE} && echo '{FIRST_NODE_READY_TOKEN}'"
        " || echo 'not-ready'"
    )


def joining_node_probe() -> List[str]:
    return _bash(
        f"sudo systemctl is-active --quiet rke2-server && echo '{JOINING_NODE_READY_TOKEN}'"
        " || echo 'inactive'"
    )


async def _run_step(
    ssh_config: SSHConfig, step: NodeBootstrapStep, remote_command: List[str]
) -> str:
    try:
        return await run_ssh_command(ssh_config, remote_command)
    except HASetupError as exc:
        raise NodeBootstrapError(ssh_config.hostname, step.value, str(exc)) from exc


async def _bootstrap_server(
    ssh_config: SSHConfig,
    config: NodeConfiguration,
    k8s: K8sSettings,
    timings: BootstrapTimings,
    probe: List[str],
    ready_token: str,
) -> None:
    host = ssh_config.hostname

    await _run_step(
        ssh_config,
        NodeBootstrapStep.CREATE_CONFIG_DIR,
        ["sudo", "mkdir", "-p", RKE2_CONFIG_DIR],
    )
    await _run_step(ssh_config, NodeBootstrapStep.WRITE_CONFIG, write_config_command(config))
    await _run_step(ssh_config, NodeBootstrapStep.INSTALL, install_command(k8s))
    await _run_step(
        ssh_config,
        NodeBootstrapStep.ENABLE,
        ["sudo", "systemctl", "enable", RKE2_SERVICE],
    )
    # --no-block: the first server's start job only finishes once etcd is up.
    await _run_step(
        ssh_config,
        NodeBootstrapStep.START,
        ["sudo", "systemctl", "start", "--no-block", RKE2_SERVICE],
    )

    logger.info(
        "Waiting for RKE2 to initialize on %s (this may take several minutes)...", host
    )
    try:
        await wait_until_ready(
            ssh_config,
            probe,
            ready_token,
            interval=timings.poll_interval_seconds,
            max_attempts=timings.poll_max_attempts,
        )
    except HASetupError as exc:
        raise NodeBootstrapError(host, NodeBootstrapStep.WAIT_READY.value, str(exc)) from exc
    logger.info("RKE2 initialized successfully on %s", host)


async def bootstrap_first_node(
    ssh_config: SSHConfig,
    topology: InstanceTopology,
    k8s: K8sSettings,
    timings: BootstrapTimings,
) -> None:
    """
    Initialize the cluster on server 1. Done once the node-token file exists;
    the token itself is read separately by get_node_token.

    Raises:
        NodeBootstrapError: naming the failed step.
    """
    await _bootstrap_server(
        ssh_config,
        first_node_config(topology),
        k8s,
        timings,
        first_node_probe(),
        FIRST_NODE_READY_TOKEN,
    )


async def bootstrap_joining_node(
    ssh_config: SSHConfig,
    topology: InstanceTopology,
    token: JoinToken,
    k8s: K8sSettings,
    timings: BootstrapTimings,
) -> None:
    """
    Join a server to the cluster through the first node's private address. Done
    once rke2-server reports active.

    Raises:
        NodeBootstrapError: naming the failed step.
    """
    await _bootstrap_server(
        ssh_config,
        joining_node_config(topology, token),
        k8s,
        timings,
        joining_node_probe(),
        JOINING_NODE_READY_TOKEN,
    )


async def get_node_token(ssh_config: SSHConfig, instance_num: int) -> JoinToken:
    """
    Read the node token from the first server. Not retried: the readiness poll
    already saw the file, so a failure here is a new problem.

    Raises:
        TokenUnavailableError: If the read fails or the token is empty.
    """
    try:
        out = await run_ssh_command(
            ssh_config, ["sudo", "cat", RKE2_NODE_TOKEN_FILE]
        )
    except HASetupError as exc:
        raise TokenUnavailableError(
            f"failed to get node token from {ssh_config.hostname}: {exc}"
        ) from exc
    token_val = out.strip()
    if not token_val:
        raise TokenUnavailableError(
            f"empty node token from {ssh_config.hostname}"
        )
    return JoinToken(instance_num=instance_num, value=token_val)


async def fetch_kubeconfig(ssh_config: SSHConfig) -> str:
    """
    Fetch /etc/rancher/rke2/rke2.yaml for the admin kubeconfig.

    Raises:
        WorkspaceError: If the remote read fails.
    """
    try:
        return await run_ssh_command(
            ssh_config, ["sudo", "cat", RKE2_KUBECONFIG_FILE]
        )
    except HASetupError as exc:
        raise WorkspaceError(
            f"failed to retrieve kubeconfig from {ssh_config.hostname}: {exc}"
        ) from exc


async def fetch_and_save_kubeconfig(ssh_config: SSHConfig, path: Path) -> Path:
    """
    Fetch the kubeconfig from the first server, point it at the server's public
    address and write it to `path`.

    Raises:
        WorkspaceError: If the fetch or the local write fails.
    """
    raw = await fetch_kubeconfig(ssh_config)
    saved = await save_kubeconfig(path, rewrite_kubeconfig(raw, ssh_config.hostname))
    logger.info("Kubeconfig saved to %s", saved)
    return saved
