"""
rancher_ha/utils/kubeconfig.py

RKE2 writes its admin kubeconfig bound to the loopback API endpoint. Before it is
usable off-host, that endpoint is replaced with the node's public address. The
substitution is a literal string replace; nothing else in the file changes.
"""

from __future__ import annotations

from pathlib import Path

import aiofiles

from rancher_ha.utils.errors import WorkspaceError

LOOPBACK_ENDPOINT = "https://127.0.0.1:6443"
KUBE_API_PORT = 6443


def external_endpoint(public_ip: str) -> str:
    if ":" in public_ip:
        return f"https://[{public_ip}]:{KUBE_API_PORT}"
    return f"https://{public_ip}:{KUBE_API_PORT}"


def rewrite_kubeconfig(raw: str, public_ip: str) -> str:
    """Replace every occurrence of the loopback endpoint with the node's public endpoint."""
    return raw.replace(LOOPBACK_ENDPOINT, external_endpoint(public_ip))


async def save_kubeconfig(path: Path, content: str) -> Path:
    """
    Write (or overwrite) the kubeconfig with mode 0644.

    Raises:
        WorkspaceError: If the file cannot be written.
    """
    try:
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(content)
        path.chmod(0o644)
    except OSError as exc:
        raise WorkspaceError(f"failed to write kubeconfig file {path}: {exc}") from exc
    return path
