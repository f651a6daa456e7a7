# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import ipaddress
from typing import Dict, Iterable, Optional

from clusternet.core.network.errors import InvalidSpecError
from clusternet.core.network.spec import SubnetSpec

SUBNET_IPV6_PREFIX_LENGTH = 64


def ipv6_subnet_block_count(vpc_ipv6_cidr_block: str, new_prefix: int = SUBNET_IPV6_PREFIX_LENGTH) -> int:
    """Number of /64 slices (valid block indexes) in the VPC block, 256 for an AWS provided /56."""
    parent = ipaddress.IPv6Network(vpc_ipv6_cidr_block, strict=False)
    if new_prefix < parent.prefixlen:
        raise ValueError(f"Cannot carve a /{new_prefix} out of {parent}")
    return 1 << (new_prefix - parent.prefixlen)


def ipv6_subnet_cidr_block(vpc_ipv6_cidr_block: str, index: int, new_prefix: int = SUBNET_IPV6_PREFIX_LENGTH) -> str:
    """Returns the 'index'th /64 slice of the VPC block.

    >>> ipv6_subnet_cidr_block("2001:10:10:10::/56", 10)
    '2001:10:10:a::/64'

    Host bits of the parent are ignored, AWS reports the /56 as it was allocated.
    """
    parent = ipaddress.IPv6Network(vpc_ipv6_cidr_block, strict=False)
    slots = ipv6_subnet_block_count(vpc_ipv6_cidr_block, new_prefix)
    if index < 0 or index >= slots:
        raise ValueError(f"IPv6 block index {index} out of range for {parent} (0-{slots - 1})")
    step = 1 << (128 - new_prefix)
    return str(ipaddress.IPv6Network((int(parent.network_address) + index * step, new_prefix)))


def ipv6_subnet_block_index(vpc_ipv6_cidr_block: str, subnet_ipv6_cidr_block: str) -> Optional[int]:
    """Inverse of ipv6_subnet_cidr_block, None when the subnet block is not a /64 slice of the VPC block."""
    parent = ipaddress.IPv6Network(vpc_ipv6_cidr_block, strict=False)
    child = ipaddress.IPv6Network(subnet_ipv6_cidr_block, strict=False)
    if child.prefixlen != SUBNET_IPV6_PREFIX_LENGTH or not child.subnet_of(parent):
        return None
    return (int(child.network_address) - int(parent.network_address)) >> (128 - SUBNET_IPV6_PREFIX_LENGTH)


def validate_ipv6_block_ids(subnets: Iterable[SubnetSpec]) -> None:
    """IPv6 block indexes are assigned by the caller and must not collide, otherwise EC2 rejects the second create
    with an opaque conflict."""
    owners: Dict[int, str] = dict()
    for subnet in subnets:
        if not subnet.is_ipv6 or subnet.ipv6_cidr_block_id is None:
            continue
        label = subnet.id or subnet.cidr_block
        previous = owners.get(subnet.ipv6_cidr_block_id, None)
        if previous is not None:
            raise InvalidSpecError(
                f"IPv6 block index {subnet.ipv6_cidr_block_id} is used by both {previous!r} and {label!r}",
                resource_id=label,
            )
        owners[subnet.ipv6_cidr_block_id] = label
