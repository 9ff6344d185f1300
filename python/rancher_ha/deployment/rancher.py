"""
rancher_ha/deployment/rancher.py

Generates and runs the per-instance Rancher install script. The user supplies
one helm command per instance in the tool config; we point its hostname at the
instance's Rancher URL, wrap it in a script that checks cluster access first,
and run it with KUBECONFIG set to the instance's kubeconfig.
"""

from __future__ import annotations

import logging
import re
import textwrap
from pathlib import Path

import aiofiles

from rancher_ha.utils.async_command_runner import run_command
from rancher_ha.utils.errors import WorkspaceError
from rancher_ha.utils.workspace import KUBECONFIG_NAME, InstanceWorkspace

logger = logging.getLogger(__name__)

_HOSTNAME_FLAG = re.compile(r"--set hostname=(\S*)")

INSTALL_SCRIPT_TEMPLATE = textwrap.dedent(
    """\
    #!/bin/bash
    # First make sure we're using the right kubeconfig
    if [ ! -f "{kubeconfig}" ]; then
      echo "ERROR: {kubeconfig} not found. Make sure you're in the right directory."
      exit 1
    fi

    # Export KUBECONFIG to point to our kubeconfig file
    export KUBECONFIG=$(pwd)/{kubeconfig}

    # Verify kubectl can connect to the cluster
    echo "Verifying connection to Kubernetes cluster..."
    kubectl cluster-info
    if [ $? -ne 0 ]; then
      echo "ERROR: Unable to connect to Kubernetes cluster. Check your kubeconfig."
      exit 1
    fi

    helm repo update

    echo "Creating namespace..."
    kubectl get namespace cattle-system >/dev/null 2>&1 || kubectl create namespace cattle-system
    if [ $? -ne 0 ]; then
      echo "ERROR: Unable to create namespace cattle-system."
      exit 1
    fi

    echo "Installing Rancher..."
    {helm_command}
    if [ $? -ne 0 ]; then
      echo "ERROR: Rancher installation failed."
      exit 1
    fi

    echo "Rancher installation complete!"
    """
)


def inject_hostname(helm_command: str, hostname: str) -> str:
    """
    Point a helm command at `hostname`: replace the first `--set hostname=<x>`
    value, or append the flag when the command has none.
    """
    if _HOSTNAME_FLAG.search(helm_command):
        return _HOSTNAME_FLAG.sub(
            lambda _m: f"--set hostname={hostname}", helm_command, count=1
        )
    return helm_command.strip() + f" \\\n  --set hostname={hostname}"


def render_install_script(helm_command: str) -> str:
    return INSTALL_SCRIPT_TEMPLATE.format(
        kubeconfig=KUBECONFIG_NAME, helm_command=helm_command.strip()
    )


async def write_install_script(
    workspace: InstanceWorkspace, helm_command: str, hostname: str
) -> Path:
    """
    Render the install script for this instance and write it, executable, into
    the workspace.

    Raises:
        WorkspaceError: If the script cannot be written.
    """
    path = workspace.install_script
    script = render_install_script(inject_hostname(helm_command, hostname))
    try:
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(script)
        path.chmod(0o755)
    except OSError as exc:
        raise WorkspaceError(f"failed to write install script {path}: {exc}") from exc
    return path


async def run_install_script(workspace: InstanceWorkspace) -> str:
    """
    Run the install script from inside the workspace with KUBECONFIG set.

    Returns:
        The script's stdout.

    Raises:
        CommandError: If the script exits non-zero.
    """
    script = workspace.install_script
    logger.info("Executing install script at %s", script)
    output = await run_command(
        [str(script)],
        sensitive=False,
        env={"KUBECONFIG": str(workspace.kubeconfig)},
        cwd=str(workspace.path),
        retries=1,
    )
    logger.info("Install script executed successfully")
    logger.debug("Install script output:\n%s", output)
    return output
