"""
rancher_ha/deployment/ha_instance.py

Bootstraps one HA instance end to end:

  1) resolve + validate topology   (abort on the first invalid address)
  2) ensure the workspace directory
  3) write install.sh with the instance hostname injected
  4) bootstrap server 1            (abort on failure; servers 2/3 untouched)
  5) read the join token           (abort on failure)
  6) bootstrap servers 2 and 3 concurrently, both run to completion
  7) fixed convergence delay
  8) fetch + rewrite kubeconfig    (failure is only a warning)
  9) run install.sh                (abort on failure)

Every abort raises InstanceSetupError chained to the underlying cause.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Iterator, Mapping, Optional

from rancher_ha.deployment.rancher import run_install_script, write_install_script
from rancher_ha.deployment.rke2 import (
    bootstrap_first_node,
    bootstrap_joining_node,
    fetch_and_save_kubeconfig,
    get_node_token,
)
from rancher_ha.models.config import ToolConfig
from rancher_ha.models.ha import HAInstanceResult
from rancher_ha.models.rke2 import JoinToken
from rancher_ha.models.topology import InstanceTopology, resolve_instance_topology
from rancher_ha.utils.errors import HASetupError, InstanceSetupError
from rancher_ha.utils.first_error import FirstErrorSlot, gather_isolated
from rancher_ha.utils.workspace import InstanceWorkspace

logger = logging.getLogger(__name__)


@contextmanager
def _instance_step(instance_num: int, what: str) -> Iterator[None]:
    try:
        yield
    except InstanceSetupError:
        raise
    except Exception as exc:
        raise InstanceSetupError(instance_num, f"{what}: {exc}") from exc


async def _bootstrap_joining_nodes(
    config: ToolConfig, topology: InstanceTopology, token: JoinToken
) -> None:
    slot = FirstErrorSlot()
    jobs = {
        node_num: bootstrap_joining_node(
            config.ssh_config_for(ip), topology, token, config.k8s, config.timings
        )
        for node_num, ip in ((2, topology.server2_ip), (3, topology.server3_ip))
    }
    for node_num, ip in ((2, topology.server2_ip), (3, topology.server3_ip)):
        logger.info(
            "HA %d: setting up server node %d with IP %s",
            topology.instance_num,
            node_num,
            ip,
        )
    await gather_isolated(jobs, slot, label=f"HA {topology.instance_num} server node")
    if slot.error is not None:
        failed = ", ".join(str(n) for n in slot.failed)
        raise InstanceSetupError(
            topology.instance_num,
            f"node setup error: failed to setup server node(s) {failed}: {slot.error}",
        ) from slot.error


async def setup_ha_instance(
    instance_num: int,
    outputs: Mapping[str, str],
    config: ToolConfig,
) -> HAInstanceResult:
    """
    Bootstrap one HA instance.

    Args:
        instance_num: 1-based instance ordinal.
        outputs: Terraform flat outputs for the whole fleet.
        config: The tool configuration.

    Returns:
        HAInstanceResult for the instance.

    Raises:
        InstanceSetupError: chained to the step that failed.
    """
    logger.info("Starting setup for HA instance %d", instance_num)

    # 1) Topology
    topology = resolve_instance_topology(outputs, instance_num)
    with _instance_step(instance_num, "invalid topology"):
        topology.validate_addresses()

    # 2) + 3) Workspace and install script
    workspace = InstanceWorkspace(config.workspace_root, instance_num)
    with _instance_step(instance_num, "failed to prepare workspace"):
        workspace.ensure()
        await write_install_script(
            workspace, config.helm_command_for(instance_num), topology.rancher_url
        )

    # 4) First server
    first_ssh = config.ssh_config_for(topology.server1_ip)
    logger.info(
        "HA %d: setting up first server node with IP %s", instance_num, topology.server1_ip
    )
    with _instance_step(instance_num, "failed to setup first server node"):
        await bootstrap_first_node(first_ssh, topology, config.k8s, config.timings)

    # 5) Join token
    with _instance_step(instance_num, "failed to get node token"):
        token = await get_node_token(first_ssh, instance_num)

    # 6) Servers 2 and 3
    await _bootstrap_joining_nodes(config, topology, token)

    # 7) Convergence
    logger.info("HA %d: waiting for cluster to fully initialize...", instance_num)
    await asyncio.sleep(config.timings.convergence_delay_seconds)

    # 8) Kubeconfig
    kubeconfig_path: Optional[str] = None
    try:
        saved = await fetch_and_save_kubeconfig(first_ssh, workspace.kubeconfig)
        kubeconfig_path = str(saved)
    except HASetupError as exc:
        logger.warning("HA %d: failed to save kubeconfig: %s", instance_num, exc)

    # 9) Rancher install
    with _instance_step(instance_num, "failed to execute install script"):
        await run_install_script(workspace)

    logger.info("HA %d setup complete", instance_num)
    logger.info("HA %d LB: %s", instance_num, topology.load_balancer_dns)
    logger.info("HA %d Rancher URL: %s", instance_num, topology.rancher_url)

    return HAInstanceResult(
        instance_num=instance_num,
        workspace=str(workspace.path),
        kubeconfig_path=kubeconfig_path,
        load_balancer_dns=topology.load_balancer_dns,
        rancher_url=topology.rancher_url,
    )
