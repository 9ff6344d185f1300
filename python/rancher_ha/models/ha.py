"""
rancher_ha/models/ha.py

Result of bootstrapping one HA instance.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class HAInstanceResult(BaseModel):
    """
    Outcome of a successful instance bootstrap.

    Attributes:
        instance_num: 1-based instance ordinal.
        workspace: Absolute path of the instance workspace.
        kubeconfig_path: Saved kubeconfig, or None if it could not be fetched.
        load_balancer_dns: DNS name of the instance load balancer.
        rancher_url: Public Rancher hostname.
    """

    model_config = ConfigDict(frozen=True)

    instance_num: int
    workspace: str
    kubeconfig_path: Optional[str] = None
    load_balancer_dns: str
    rancher_url: str
