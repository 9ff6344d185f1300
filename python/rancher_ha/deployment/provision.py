"""
rancher_ha/deployment/provision.py

Top-level deploy flow:

  1) check one helm command per instance
  2) terraform init + apply (skippable when the infrastructure already exists)
  3) read the `flat_outputs` map
  4) bootstrap the fleet
"""

from __future__ import annotations

import logging
from typing import Dict, List

from rancher_ha.deployment.fleet import deploy_ha_fleet
from rancher_ha.models.config import ToolConfig
from rancher_ha.models.ha import HAInstanceResult
from rancher_ha.utils.terraform import apply_terraform, init_terraform, read_flat_outputs

logger = logging.getLogger(__name__)


async def provision_infrastructure(
    config: ToolConfig, apply: bool = True
) -> Dict[str, str]:
    """
    Create (or refresh) the HA infrastructure and return its flat outputs.

    Args:
        config: The tool configuration.
        apply: If False => skip init/apply and only read outputs of an existing state.

    Returns:
        Dict[str, str]: The `flat_outputs` map.
    """
    if apply:
        logger.info(
            "Provisioning %d HA instance(s) from %s", config.total_has, config.terraform_dir
        )
        await init_terraform(config.terraform_dir)
        await apply_terraform(config.terraform_dir, variables=config.terraform_variables())
    outputs = await read_flat_outputs(config.terraform_dir)
    logger.info("Read %d terraform output(s)", len(outputs))
    return outputs


async def deploy(config: ToolConfig, skip_provision: bool = False) -> List[HAInstanceResult]:
    """
    Provision the infrastructure and bootstrap every HA instance on it.

    Raises:
        ValidationError: On a config precondition failure, before terraform runs.
        CommandError: If terraform fails.
        FleetSetupError: If any instance failed to bootstrap.
    """
    config.check_install_commands()
    outputs = await provision_infrastructure(config, apply=not skip_provision)
    return await deploy_ha_fleet(config, outputs)
