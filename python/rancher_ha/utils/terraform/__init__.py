"""
rancher_ha/utils/terraform/__init__.py

Provides a convenient import interface for the Terraform submodules:

- ephemeral.py for the ephemeral var-file
- commands.py for Terraform commands

Exports:
  - Terraform command functions (init_terraform, apply_terraform, destroy_terraform,
    read_flat_outputs)
  - Ephemeral context manager (maybe_tfvars)
"""

from rancher_ha.utils.terraform.ephemeral import maybe_tfvars
from rancher_ha.utils.terraform.commands import (
    init_terraform,
    apply_terraform,
    destroy_terraform,
    read_flat_outputs,
)

__all__ = [
    "maybe_tfvars",
    "init_terraform",
    "apply_terraform",
    "destroy_terraform",
    "read_flat_outputs",
]
