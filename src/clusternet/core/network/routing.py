# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Route Table / NAT Gateway inspection.

Read-only. Supplies the public/private signal and the NAT gateway inventory to the subnet reconciler.
"""

import logging
from typing import Any, Dict, List, Sequence

from clusternet.core.entity import CoreData
from clusternet.core.platform.definitions.aws.ec2 import client_wrapper

module_logger = logging.getLogger(__name__)

ANY_IPV4_DESTINATION = "0.0.0.0/0"
ANY_IPV6_DESTINATION = "::/0"
INTERNET_GATEWAY_ID_PREFIX = "igw-"


class RouteTableAssociation(CoreData):
    def __init__(self, route_table_id: str, is_public: bool) -> None:
        self.route_table_id = route_table_id
        self.is_public = is_public


def is_default_route(route: Dict[str, Any]) -> bool:
    return route.get("DestinationCidrBlock", None) == ANY_IPV4_DESTINATION or route.get("DestinationIpv6CidrBlock", None) == ANY_IPV6_DESTINATION


def has_internet_gateway_route(route_table: Dict[str, Any]) -> bool:
    for route in route_table.get("Routes", []):
        gateway_id = route.get("GatewayId", None) or ""
        if is_default_route(route) and gateway_id.startswith(INTERNET_GATEWAY_ID_PREFIX):
            return True
    return False


def classify_subnets(route_tables: Sequence[Dict[str, Any]]) -> Dict[str, RouteTableAssociation]:
    """Maps each explicitly associated subnet to its route table and whether that table routes to the internet.

    Main table associations carry no subnet and are skipped, subnets that are not listed here are private.
    """
    associations: Dict[str, RouteTableAssociation] = dict()
    for route_table in route_tables:
        is_public = has_internet_gateway_route(route_table)
        for association in route_table.get("Associations", []):
            subnet_id = association.get("SubnetId", None)
            if subnet_id:
                associations[subnet_id] = RouteTableAssociation(route_table["RouteTableId"], is_public)
    return associations


def describe_subnet_route_associations(ec2_client, vpc_id: str) -> Dict[str, RouteTableAssociation]:
    return classify_subnets(client_wrapper.describe_route_tables(ec2_client, vpc_id))


def describe_nat_gateways(ec2_client, vpc_id: str) -> Dict[str, List[str]]:
    """Subnet ID -> IDs of the pending/available NAT gateways placed in it."""
    inventory: Dict[str, List[str]] = dict()
    for nat_gateway in client_wrapper.describe_nat_gateways(ec2_client, vpc_id):
        inventory.setdefault(nat_gateway["SubnetId"], []).append(nat_gateway["NatGatewayId"])
    module_logger.debug(f"NAT gateways of VPC {vpc_id}: {inventory}")
    return inventory
