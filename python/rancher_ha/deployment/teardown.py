"""
rancher_ha/deployment/teardown.py

Destroys the HA infrastructure and removes everything the deploy flow left on
the local disk: the per-instance workspaces and the terraform state files.
State files are only removed after a successful destroy.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from rancher_ha.models.config import ToolConfig
from rancher_ha.utils.terraform import destroy_terraform
from rancher_ha.utils.workspace import InstanceWorkspace, remove_file, remove_folder

logger = logging.getLogger(__name__)

TERRAFORM_STATE_FILES = [
    ".terraform.lock.hcl",
    "terraform.tfstate",
    "terraform.tfstate.backup",
    "terraform.tfvars",
]
TERRAFORM_DATA_DIR = ".terraform"


def remove_workspaces(config: ToolConfig) -> List[Path]:
    """Remove the workspaces of instances 1..total_has. Missing ones are skipped."""
    removed: List[Path] = []
    for n in range(1, config.total_has + 1):
        workspace = InstanceWorkspace(config.workspace_root, n)
        workspace.remove()
        removed.append(workspace.path)
    return removed


def remove_terraform_state(terraform_dir: str) -> None:
    root = Path(terraform_dir)
    for name in TERRAFORM_STATE_FILES:
        remove_file(root / name)
    remove_folder(root / TERRAFORM_DATA_DIR)


async def teardown(config: ToolConfig, skip_destroy: bool = False) -> None:
    """
    Destroy the infrastructure, then clean up local files.

    Args:
        config: The tool configuration.
        skip_destroy: If True => only remove local files.

    Raises:
        CommandError: If terraform destroy fails. Local files are left in place.
    """
    if not skip_destroy:
        logger.info("Destroying HA infrastructure in %s", config.terraform_dir)
        await destroy_terraform(config.terraform_dir, variables=config.terraform_variables())

    for path in remove_workspaces(config):
        logger.info("Removed workspace %s", path)
    remove_terraform_state(config.terraform_dir)
    logger.info("Cleanup complete")
