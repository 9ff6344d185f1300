"""
rancher_ha/models/rke2.py

Defines Pydantic models for RKE2 server bootstrap:
 - JoinToken
 - NodeConfiguration (first-node and joining-node variants)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, SecretStr

from rancher_ha.models.topology import InstanceTopology

RKE2_SUPERVISOR_PORT = 9345


class JoinToken(BaseModel):
    """
    The node token minted by an instance's first server. Held in memory only and
    scoped to one instance; the value is masked in repr and logs.
    """

    model_config = ConfigDict(frozen=True)

    instance_num: int
    value: SecretStr


class NodeConfiguration(BaseModel):
    """
    Contents of /etc/rancher/rke2/config.yaml for one server node.

    Attributes:
        tls_san: Names and addresses the node certificate must cover.
        server: Supervisor URL of the first node (joining nodes only).
        token: Join token (joining nodes only).
    """

    model_config = ConfigDict(frozen=True)

    tls_san: List[str]
    server: Optional[str] = None
    token: Optional[SecretStr] = None

    @property
    def is_joining(self) -> bool:
        return self.server is not None

    def to_yaml(self) -> str:
        """Serialize to RKE2 config.yaml text."""
        data: Dict[str, Any] = {}
        if self.is_joining:
            data["server"] = self.server
        if self.token is not None:
            data["token"] = self.token.get_secret_value()
        data["tls-san"] = list(self.tls_san)
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)


def first_node_config(topology: InstanceTopology) -> NodeConfiguration:
    """Configuration for the node that initializes the cluster."""
    return NodeConfiguration(tls_san=topology.tls_sans())


def joining_node_config(
    topology: InstanceTopology, token: JoinToken
) -> NodeConfiguration:
    """
    Configuration for a node joining through the first node's private address.
    The SAN list is the same as the first node's so the load balancer can reach
    any server under the same certificate names.
    """
    if token.instance_num != topology.instance_num:
        raise ValueError(
            f"join token of HA instance {token.instance_num} used for instance "
            f"{topology.instance_num}"
        )
    return NodeConfiguration(
        tls_san=topology.tls_sans(),
        server=f"https://{topology.server1_private_ip}:{RKE2_SUPERVISOR_PORT}",
        token=token.value,
    )
