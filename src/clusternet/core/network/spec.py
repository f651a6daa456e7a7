# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from typing import Dict, Iterable, List, Optional

from clusternet.core.entity import CoreData
from clusternet.core.network.tags import PUBLIC_ROLE, Tags, is_managed, role_of


class VPCSpec(CoreData):
    def __init__(
        self,
        id: str = "",
        cidr_block: str = "",
        enable_ipv6: bool = False,
        ipv6_cidr_block: Optional[str] = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> None:
        self.id = id
        self.cidr_block = cidr_block
        self.enable_ipv6 = enable_ipv6
        self.ipv6_cidr_block = ipv6_cidr_block
        self.tags = Tags(tags) if tags else Tags()

    def is_managed(self, cluster_name: str) -> bool:
        return is_managed(self.tags, cluster_name)

    def is_unmanaged(self, cluster_name: str) -> bool:
        """A VPC that already exists (has an ID) but is not owned by the cluster, i.e brought by the operator."""
        return bool(self.id) and not self.is_managed(cluster_name)


class SubnetSpec(CoreData):
    def __init__(
        self,
        id: str = "",
        availability_zone: str = "",
        cidr_block: str = "",
        is_public: bool = False,
        is_ipv6: bool = False,
        ipv6_cidr_block_id: Optional[int] = None,
        ipv6_cidr_block: Optional[str] = None,
        route_table_id: Optional[str] = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> None:
        self.id = id
        self.availability_zone = availability_zone
        self.cidr_block = cidr_block
        self.is_public = is_public
        self.is_ipv6 = is_ipv6
        self.ipv6_cidr_block_id = ipv6_cidr_block_id
        self.ipv6_cidr_block = ipv6_cidr_block
        self.route_table_id = route_table_id
        self.tags = Tags(tags) if tags else Tags()

    def role(self) -> Optional[str]:
        return role_of(self.tags)

    def has_public_role(self) -> bool:
        """Public either by observed routing or by the role recorded at creation (routing may not exist yet)."""
        role = self.role()
        if role:
            return role == PUBLIC_ROLE
        return self.is_public


class NetworkSpec(CoreData):
    def __init__(self, vpc: Optional[VPCSpec] = None, subnets: Optional[Iterable[SubnetSpec]] = None) -> None:
        self.vpc = vpc if vpc is not None else VPCSpec()
        self.subnets: List[SubnetSpec] = list(subnets) if subnets else []

    def find_subnet(self, subnet_id: str) -> Optional[SubnetSpec]:
        return find_subnet(self.subnets, subnet_id)

    def public_subnets(self) -> List[SubnetSpec]:
        return [subnet for subnet in self.subnets if subnet.is_public]

    def private_subnets(self) -> List[SubnetSpec]:
        return [subnet for subnet in self.subnets if not subnet.is_public]


def find_subnet(subnets: Iterable[SubnetSpec], subnet_id: str) -> Optional[SubnetSpec]:
    for subnet in subnets:
        if subnet.id and subnet.id == subnet_id:
            return subnet
    return None
