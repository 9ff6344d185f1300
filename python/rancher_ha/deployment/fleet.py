"""
rancher_ha/deployment/fleet.py

Runs every HA instance of the fleet concurrently. Instances never share state;
a failing instance does not stop the others, and the first failure observed is
reported once all of them have finished.
"""

from __future__ import annotations

import logging
from typing import List, Mapping

from rancher_ha.deployment.ha_instance import setup_ha_instance
from rancher_ha.models.config import ToolConfig
from rancher_ha.models.ha import HAInstanceResult
from rancher_ha.utils.errors import FleetSetupError
from rancher_ha.utils.first_error import FirstErrorSlot, gather_isolated

logger = logging.getLogger(__name__)


async def deploy_ha_fleet(
    config: ToolConfig, outputs: Mapping[str, str]
) -> List[HAInstanceResult]:
    """
    Bootstrap instances 1..total_has in parallel.

    Args:
        config: The tool configuration.
        outputs: Terraform flat outputs for the whole fleet.

    Returns:
        One HAInstanceResult per instance, ordered by instance number.

    Raises:
        ValidationError: If the helm command count does not match total_has.
            Raised before any remote work.
        FleetSetupError: If any instance failed, chained to the first failure.
    """
    config.check_install_commands()

    slot = FirstErrorSlot()
    jobs = {
        n: setup_ha_instance(n, outputs, config)
        for n in range(1, config.total_has + 1)
    }
    results = await gather_isolated(jobs, slot, label="HA instance")

    if slot.error is not None:
        raise FleetSetupError(slot.failed, slot.error) from slot.error

    logger.info("All %d HA instance(s) set up", config.total_has)
    return [results[n] for n in sorted(results)]
