"""
rancher_ha/models/topology.py

Typed network topology of one HA instance, resolved from terraform's flat
`flat_outputs` map. Each instance owns keys of the form:

    ha_<n>_server{1,2,3}_ip
    ha_<n>_server{1,2,3}_private_ip
    ha_<n>_aws_lb
    ha_<n>_rancher_url
"""

from __future__ import annotations

import logging
from typing import List, Mapping

from pydantic import BaseModel, ConfigDict

from rancher_ha.models.validator import is_valid_ip
from rancher_ha.utils.errors import ValidationError

logger = logging.getLogger(__name__)


class InstanceTopology(BaseModel):
    """
    Addresses of one three-node HA instance.

    Attributes:
        instance_num: 1-based instance ordinal.
        server{1,2,3}_ip: Public node addresses.
        server{1,2,3}_private_ip: Private node addresses.
        load_balancer_dns: DNS name of the instance load balancer.
        rancher_url: Public Rancher hostname.
    """

    model_config = ConfigDict(frozen=True)

    instance_num: int
    server1_ip: str = ""
    server2_ip: str = ""
    server3_ip: str = ""
    server1_private_ip: str = ""
    server2_private_ip: str = ""
    server3_private_ip: str = ""
    load_balancer_dns: str = ""
    rancher_url: str = ""

    @property
    def public_ips(self) -> List[str]:
        return [self.server1_ip, self.server2_ip, self.server3_ip]

    @property
    def private_ips(self) -> List[str]:
        return [self.server1_private_ip, self.server2_private_ip, self.server3_private_ip]

    def addresses(self) -> List[str]:
        """All six node addresses, public then private."""
        return self.public_ips + self.private_ips

    def tls_sans(self) -> List[str]:
        """
        Subject alternative names every node certificate must cover: the public
        hostname, then each server's public and private address.
        """
        return [
            self.rancher_url,
            self.server1_ip,
            self.server1_private_ip,
            self.server2_ip,
            self.server2_private_ip,
            self.server3_ip,
            self.server3_private_ip,
        ]

    def validate_addresses(self) -> None:
        """
        Raise ValidationError on the first of the six node addresses that is not
        an IP address. The load balancer and hostname are not checked.
        """
        for ip in self.addresses():
            if not is_valid_ip(ip):
                raise ValidationError(
                    f"HA instance {self.instance_num}: invalid IP address: {ip!r}"
                )


def output_keys(instance_num: int) -> List[str]:
    """The eight flat-output keys owned by one instance."""
    prefix = f"ha_{instance_num}"
    return [
        f"{prefix}_server1_ip",
        f"{prefix}_server2_ip",
        f"{prefix}_server3_ip",
        f"{prefix}_server1_private_ip",
        f"{prefix}_server2_private_ip",
        f"{prefix}_server3_private_ip",
        f"{prefix}_aws_lb",
        f"{prefix}_rancher_url",
    ]


def resolve_instance_topology(
    outputs: Mapping[str, str], instance_num: int
) -> InstanceTopology:
    """
    Build an InstanceTopology from the flat output map. Only the eight keys of
    `instance_num` are read; missing keys become empty strings and are left for
    `validate_addresses` to reject.
    """
    prefix = f"ha_{instance_num}"
    missing = [key for key in output_keys(instance_num) if not outputs.get(key)]
    if missing:
        logger.warning(
            "HA instance %d: outputs missing or empty: %s",
            instance_num,
            ", ".join(missing),
        )

    def _get(suffix: str) -> str:
        return str(outputs.get(f"{prefix}_{suffix}", "") or "")

    return InstanceTopology(
        instance_num=instance_num,
        server1_ip=_get("server1_ip"),
        server2_ip=_get("server2_ip"),
        server3_ip=_get("server3_ip"),
        server1_private_ip=_get("server1_private_ip"),
        server2_private_ip=_get("server2_private_ip"),
        server3_private_ip=_get("server3_private_ip"),
        load_balancer_dns=_get("aws_lb"),
        rancher_url=_get("rancher_url"),
    )
