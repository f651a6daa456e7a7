# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any, Dict, Iterator, List, Optional

from botocore.exceptions import ClientError

from clusternet.core.network.tags import ResourceLifecycle, Tags, cluster_filter_key

from ..common import exponential_retry

module_logger = logging.getLogger(__name__)

EC2_RETRYABLE_ERRORS = {"RequestLimitExceeded", "ServiceUnavailable"}

VPC_STATE_PENDING = "pending"
VPC_STATE_AVAILABLE = "available"
SUBNET_STATE_PENDING = "pending"
SUBNET_STATE_AVAILABLE = "available"
NAT_GATEWAY_STATE_PENDING = "pending"
NAT_GATEWAY_STATE_AVAILABLE = "available"
CIDR_BLOCK_STATE_ASSOCIATED = "associated"

ATTRIBUTE_ENABLE_DNS_HOSTNAMES = "enableDnsHostnames"
ATTRIBUTE_ENABLE_DNS_SUPPORT = "enableDnsSupport"

# describe_vpc_attribute response keys
_VPC_ATTRIBUTE_RESPONSE_KEYS = {
    ATTRIBUTE_ENABLE_DNS_HOSTNAMES: "EnableDnsHostnames",
    ATTRIBUTE_ENABLE_DNS_SUPPORT: "EnableDnsSupport",
}


# Filters
# -------
def state_filter(*states: str) -> Dict[str, Any]:
    return {"Name": "state", "Values": list(states)}


def vpc_filter(vpc_id: str) -> Dict[str, Any]:
    return {"Name": "vpc-id", "Values": [vpc_id]}


def cluster_filter(cluster_name: str) -> Dict[str, Any]:
    return {"Name": cluster_filter_key(cluster_name), "Values": [ResourceLifecycle.OWNED.value]}


def ipv6_associated_vpc_filter() -> Dict[str, Any]:
    """Only VPCs that have an associated (not merely associating) IPv6 block."""
    return {"Name": "ipv6-cidr-block-association.state", "Values": [CIDR_BLOCK_STATE_ASSOCIATED]}


# Tags
# ----
def tags_to_map(tags: Optional[List[Dict[str, str]]]) -> Tags:
    return Tags({tag["Key"]: tag["Value"] for tag in tags}) if tags else Tags()


def map_to_tags(tags: Dict[str, str]) -> List[Dict[str, str]]:
    # sorted for deterministic requests
    return [{"Key": key, "Value": tags[key]} for key in sorted(tags.keys())]


def create_tags(ec2_client, resource_id: str, tags: Dict[str, str]) -> None:
    exponential_retry(ec2_client.create_tags, EC2_RETRYABLE_ERRORS, Resources=[resource_id], Tags=map_to_tags(tags))


# VPC
# ---
def describe_vpcs(ec2_client, filters: List[Dict[str, Any]], vpc_ids: Optional[List[str]] = None) -> List[Dict[str, Any]]:
    kwargs: Dict[str, Any] = {"Filters": filters}
    if vpc_ids:
        kwargs["VpcIds"] = vpc_ids
    response = exponential_retry(ec2_client.describe_vpcs, EC2_RETRYABLE_ERRORS, **kwargs)
    return response.get("Vpcs", [])


def create_vpc(ec2_client, cidr_block: str, amazon_provided_ipv6_cidr_block: bool = False) -> Dict[str, Any]:
    response = exponential_retry(
        ec2_client.create_vpc,
        EC2_RETRYABLE_ERRORS,
        CidrBlock=cidr_block,
        AmazonProvidedIpv6CidrBlock=amazon_provided_ipv6_cidr_block,
    )
    return response["Vpc"]


def wait_until_vpc_available(ec2_client, vpc_id: str, ipv6_associated: bool = False) -> None:
    kwargs: Dict[str, Any] = {"VpcIds": [vpc_id]}
    if ipv6_associated:
        kwargs["Filters"] = [ipv6_associated_vpc_filter()]
    ec2_client.get_waiter("vpc_available").wait(**kwargs)


def delete_vpc(ec2_client, vpc_id: str) -> None:
    exponential_retry(ec2_client.delete_vpc, EC2_RETRYABLE_ERRORS, VpcId=vpc_id)


def describe_vpc_attribute(ec2_client, vpc_id: str, attribute: str) -> bool:
    """EC2 only allows a single attribute per call."""
    response = exponential_retry(ec2_client.describe_vpc_attribute, EC2_RETRYABLE_ERRORS, VpcId=vpc_id, Attribute=attribute)
    return bool(response.get(_VPC_ATTRIBUTE_RESPONSE_KEYS[attribute], {}).get("Value", False))


def modify_vpc_attribute(ec2_client, vpc_id: str, attribute: str, value: bool) -> None:
    exponential_retry(
        ec2_client.modify_vpc_attribute,
        EC2_RETRYABLE_ERRORS,
        **{"VpcId": vpc_id, _VPC_ATTRIBUTE_RESPONSE_KEYS[attribute]: {"Value": value}},
    )


def associated_ipv6_cidr_block(vpc: Dict[str, Any]) -> Optional[str]:
    for association in vpc.get("Ipv6CidrBlockAssociationSet", []):
        if association.get("Ipv6CidrBlockState", {}).get("State", None) == CIDR_BLOCK_STATE_ASSOCIATED:
            return association["Ipv6CidrBlock"]
    return None


# Subnets
# -------
def describe_subnets(ec2_client, vpc_id: str) -> List[Dict[str, Any]]:
    response = exponential_retry(
        ec2_client.describe_subnets,
        EC2_RETRYABLE_ERRORS,
        Filters=[state_filter(SUBNET_STATE_PENDING, SUBNET_STATE_AVAILABLE), vpc_filter(vpc_id)],
    )
    return response.get("Subnets", [])


def create_subnet(
    ec2_client, vpc_id: str, cidr_block: str, availability_zone: Optional[str] = None, ipv6_cidr_block: Optional[str] = None
) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"VpcId": vpc_id, "CidrBlock": cidr_block}
    if ipv6_cidr_block:
        kwargs["Ipv6CidrBlock"] = ipv6_cidr_block
    if availability_zone:
        kwargs["AvailabilityZone"] = availability_zone
    response = exponential_retry(ec2_client.create_subnet, EC2_RETRYABLE_ERRORS, **kwargs)
    return response["Subnet"]


def wait_until_subnet_available(ec2_client, subnet_id: str) -> None:
    ec2_client.get_waiter("subnet_available").wait(SubnetIds=[subnet_id])


def delete_subnet(ec2_client, subnet_id: str) -> None:
    exponential_retry(ec2_client.delete_subnet, EC2_RETRYABLE_ERRORS, SubnetId=subnet_id)


def modify_subnet_attribute(
    ec2_client, subnet_id: str, map_public_ip_on_launch: Optional[bool] = None, assign_ipv6_address_on_creation: Optional[bool] = None
) -> None:
    """EC2 accepts one attribute per call, so exactly one of the optional flags must be set."""
    if (map_public_ip_on_launch is None) == (assign_ipv6_address_on_creation is None):
        raise ValueError("Exactly one subnet attribute should be modified per call")
    kwargs: Dict[str, Any] = {"SubnetId": subnet_id}
    if map_public_ip_on_launch is not None:
        kwargs["MapPublicIpOnLaunch"] = {"Value": map_public_ip_on_launch}
    else:
        kwargs["AssignIpv6AddressOnCreation"] = {"Value": assign_ipv6_address_on_creation}
    exponential_retry(ec2_client.modify_subnet_attribute, EC2_RETRYABLE_ERRORS, **kwargs)


def associated_subnet_ipv6_cidr_block(subnet: Dict[str, Any]) -> Optional[str]:
    for association in subnet.get("Ipv6CidrBlockAssociationSet", []):
        if association.get("Ipv6CidrBlockState", {}).get("State", None) in (CIDR_BLOCK_STATE_ASSOCIATED, "associating"):
            return association["Ipv6CidrBlock"]
    return None


# Routing
# -------
def describe_route_tables(ec2_client, vpc_id: str) -> List[Dict[str, Any]]:
    response = exponential_retry(ec2_client.describe_route_tables, EC2_RETRYABLE_ERRORS, Filters=[vpc_filter(vpc_id)])
    return response.get("RouteTables", [])


def describe_nat_gateways(ec2_client, vpc_id: str) -> Iterator[Dict[str, Any]]:
    # DescribeNatGateways names its filter parameter 'Filter'
    try:
        paginator = ec2_client.get_paginator("describe_nat_gateways")
        response_iterator = paginator.paginate(
            Filter=[vpc_filter(vpc_id), state_filter(NAT_GATEWAY_STATE_PENDING, NAT_GATEWAY_STATE_AVAILABLE)]
        )
        for page in response_iterator:
            for nat_gateway in page.get("NatGateways", []):
                yield nat_gateway
    except ClientError:
        module_logger.exception(f"Couldn't list NAT gateways of VPC {vpc_id}")
        raise


# Zones
# -----
def describe_availability_zones(ec2_client) -> List[Dict[str, Any]]:
    response = exponential_retry(
        ec2_client.describe_availability_zones,
        EC2_RETRYABLE_ERRORS,
        Filters=[state_filter("available")],
    )
    return response.get("AvailabilityZones", [])
