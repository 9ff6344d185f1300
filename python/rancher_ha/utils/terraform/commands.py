"""
rancher_ha/utils/terraform/commands.py

Implements Terraform commands (init, apply, destroy, output) for the AWS module
that provisions the HA instances, plus helpers for building command arrays.
Variables are handed over through an ephemeral var-file (see ephemeral.py) so
no credentials remain on disk. Also integrates an AWS credential failure
parser, by passing an `error_parser` function to `run_command`, raising a short
user-friendly error if the provider rejects the configured keys.

Exports the following primary functions:
    - init_terraform
    - apply_terraform
    - destroy_terraform
    - read_flat_outputs
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional

from rancher_ha.models.validator import validate_type
from rancher_ha.utils.async_command_runner import run_command
from rancher_ha.utils.errors import ValidationError
from rancher_ha.utils.terraform.ephemeral import maybe_tfvars

FLAT_OUTPUTS_NAME = "flat_outputs"


def _aws_credentials_parser(stderr: str) -> Optional[str]:
    """Parse stderr for AWS credential rejections, returning a short message if found.

    Args:
        stderr (str): The standard error output from Terraform.

    Returns:
        Optional[str]: A short user-friendly message if AWS rejected the keys,
            otherwise None.
    """
    low = stderr.lower()
    if (
        "invalidclienttokenid" in low
        or "signaturedoesnotmatch" in low
        or "no valid credential sources found" in low
    ):
        return (
            "AWS rejected the configured credentials. Check tf_vars.aws_access_key "
            "and tf_vars.aws_secret_key in the tool config."
        )
    return None


def _make_base_command(action: str) -> List[str]:
    """Builds the initial Terraform command, adding the flags each action needs.

    Args:
        action: "init", "apply", "destroy" or "output".

    Returns:
        A list of command tokens, e.g. ["terraform","apply","-no-color","-auto-approve"].
    """
    base = ["terraform", action, "-no-color"]

    apply_destroy_flags = (
        ["-auto-approve", "-input=false"] if action in ("apply", "destroy") else []
    )
    init_flags = ["-input=false"] if action == "init" else []
    output_flags = ["-json"] if action == "output" else []

    return base + apply_destroy_flags + init_flags + output_flags


async def _terraform_command(
    action: str,
    terraform_dir: str,
    *,
    variables: Optional[Dict[str, Any]] = None,
    extra_args: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
    sensitive: bool = True,
    retries: int = 3,
) -> str:
    """
    Internal runner for 'terraform <action>' inside `terraform_dir`.

    Args:
        action (str):
            The Terraform action: "init","apply","destroy","output".
        terraform_dir (str):
            Directory containing the terraform module.
        variables (Optional[Dict[str,Any]]):
            Module variables, written to an ephemeral var-file for apply/destroy.
        extra_args (Optional[List[str]]):
            Trailing arguments, e.g. an output name.
        env (Optional[Dict[str,str]]):
            Additional environment variables for Terraform.
        sensitive (bool):
            If True => do not show full command or stdout/stderr in raised errors.
        retries (int):
            Number of attempts for the underlying command.

    Returns:
        str: The Terraform stdout.

    Raises:
        ValidationError: If the terraform directory does not exist.
        CommandError: If the command fails after all retries or if AWS rejected
            the credentials.
    """
    if not os.path.isdir(terraform_dir):
        raise ValidationError(f"Terraform directory not found: {terraform_dir}")

    base_cmd = _make_base_command(action)

    async with maybe_tfvars(action, variables) as tfvars_args:
        final_cmd = base_cmd + tfvars_args + (extra_args or [])
        return await run_command(
            final_cmd,
            sensitive=sensitive,
            env=env,
            cwd=terraform_dir,
            retries=retries,
            error_parser=_aws_credentials_parser,
        )


async def init_terraform(
    terraform_dir: str,
    env: Optional[Dict[str, str]] = None,
    sensitive: bool = True,
    retries: int = 3,
) -> None:
    """Run 'terraform init' in the module directory."""
    await _terraform_command(
        "init", terraform_dir, env=env, sensitive=sensitive, retries=retries
    )


async def apply_terraform(
    terraform_dir: str,
    variables: Optional[Dict[str, Any]] = None,
    env: Optional[Dict[str, str]] = None,
    sensitive: bool = True,
    retries: int = 3,
) -> None:
    """Run 'terraform apply -auto-approve' with the given module variables.

    Args:
        terraform_dir (str):
            Directory containing the terraform module.
        variables (Dict[str,Any], optional):
            Variables to pass to the terraform CLI via an ephemeral var-file.
        env (Dict[str,str], optional):
            Additional environment variables for Terraform.
        sensitive (bool):
            If True => do not show full command or stdout/stderr in error messages.
        retries (int):
            Retry count.
    """
    await _terraform_command(
        "apply",
        terraform_dir,
        variables=variables,
        env=env,
        sensitive=sensitive,
        retries=retries,
    )


async def destroy_terraform(
    terraform_dir: str,
    variables: Optional[Dict[str, Any]] = None,
    env: Optional[Dict[str, str]] = None,
    sensitive: bool = True,
    retries: int = 3,
) -> None:
    """Run 'terraform destroy -auto-approve' with the given module variables."""
    await _terraform_command(
        "destroy",
        terraform_dir,
        variables=variables,
        env=env,
        sensitive=sensitive,
        retries=retries,
    )


async def read_flat_outputs(
    terraform_dir: str,
    env: Optional[Dict[str, str]] = None,
    retries: int = 1,
) -> Dict[str, str]:
    """Read the `flat_outputs` output as a string map.

    Returns:
        Dict[str, str]: e.g. {"ha_1_server1_ip": "3.4.5.6", ...}

    Raises:
        ValidationError: If the output is empty or not a flat string map.
        CommandError: If terraform fails.
    """
    output = await _terraform_command(
        "output",
        terraform_dir,
        extra_args=[FLAT_OUTPUTS_NAME],
        env=env,
        retries=retries,
    )
    try:
        outputs = validate_type(json.loads(output), Dict[str, str])
    except ValueError as exc:
        raise ValidationError(f"Failed to parse terraform outputs: {exc}") from exc
    if not outputs:
        raise ValidationError("No outputs received from terraform")
    return outputs
