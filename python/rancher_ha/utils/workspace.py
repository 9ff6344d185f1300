"""
rancher_ha/utils/workspace.py

Per-instance workspace directories (`high-availability-<n>`) holding the
generated install script and the kubeconfig. Each workspace belongs to exactly
one instance's orchestrator; nothing else writes into it.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List, Union

from rancher_ha.utils.errors import WorkspaceError

logger = logging.getLogger(__name__)

INSTALL_SCRIPT_NAME = "install.sh"
KUBECONFIG_NAME = "kube_config.yaml"
LB_KUBECONFIG_NAME = "kube_config_lb.yaml"


class InstanceWorkspace:
    """
    The directory of one HA instance.

    Args:
        root: Parent directory of all instance workspaces.
        instance_num: 1-based instance ordinal.
    """

    def __init__(self, root: Union[str, Path], instance_num: int) -> None:
        self.instance_num = instance_num
        self.path = Path(root).resolve() / f"high-availability-{instance_num}"

    @property
    def install_script(self) -> Path:
        return self.path / INSTALL_SCRIPT_NAME

    @property
    def kubeconfig(self) -> Path:
        return self.path / KUBECONFIG_NAME

    def generated_files(self) -> List[Path]:
        return [
            self.install_script,
            self.kubeconfig,
            self.path / LB_KUBECONFIG_NAME,
        ]

    def ensure(self) -> Path:
        """Create the directory if needed. Idempotent."""
        if self.path.is_dir():
            return self.path
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceError(f"failed to create directory {self.path}: {exc}") from exc
        logger.info("Created directory %s", self.path)
        return self.path

    def remove(self) -> None:
        """
        Remove the generated files, then the directory tree. Missing paths are
        fine; any other failure is logged and skipped.
        """
        for file_path in self.generated_files():
            remove_file(file_path)
        remove_folder(self.path)


def remove_file(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to remove file %s: %s", path, exc)


def remove_folder(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to remove folder %s: %s", path, exc)
