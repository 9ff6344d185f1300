"""
rancher_ha/utils/terraform/ephemeral.py

Ephemeral `.auto.tfvars.json` handling: the AWS credentials in the module
variables live in /dev/shm only for the duration of one terraform command.
"""

from __future__ import annotations

import json
import aiofiles
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, AsyncGenerator, List

from rancher_ha.utils.ephemeral_file import ephemeral_manager


@asynccontextmanager
async def maybe_tfvars(
    action: str, variables: Optional[Dict[str, Any]]
) -> AsyncGenerator[List[str], None]:
    """
    Creates an ephemeral .auto.tfvars.json file if `variables` are provided and the
    Terraform action is 'apply' or 'destroy'. Then yields the `-var-file` argument
    so you can pass it to the Terraform command.

    Args:
        action (str):
            One of "apply", "destroy", "init", "output".
        variables (Optional[Dict[str, Any]]):
            Key-value pairs to place into a .auto.tfvars.json file. If None or empty,
            no ephemeral file is created.

    Yields:
        List[str]: e.g. ["-var-file=/dev/shm/tfvars-xxxx/ha.auto.tfvars.json"] if
        ephemeral needed, or an empty list otherwise.
    """
    if action not in ("apply", "destroy") or not variables:
        yield []
        return

    async with ephemeral_manager(
        single_file_name="ha.auto.tfvars.json", prefix="tfvars-"
    ) as tfvars_file:
        async with aiofiles.open(tfvars_file, "w") as f:
            await f.write(json.dumps(variables, indent=2))

        yield [f"-var-file={tfvars_file}"]
