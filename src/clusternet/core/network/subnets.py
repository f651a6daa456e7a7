# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Subnet Reconciler.

Converges the desired subnet list of one VPC in a single pass:

    1. discover availability zones (only when a default subnet may be needed)
    2. discover existing subnets (pending/available)
    3. classify them as public/private using the route tables of the VPC
    4. collect the NAT gateway inventory
    5. merge desired and observed subnets, then create/tag/ensure attributes per subnet, in list order

Each subnet goes through its whole create -> wait -> tag -> attributes pipeline before the next one starts. Any failure
aborts the pass, whatever was already applied on the provider side is picked up and healed by the next pass.
"""

import logging
from typing import Dict, List, Optional, Sequence, Set

from botocore.exceptions import ClientError

from clusternet.core.entity import CoreData
from clusternet.core.network.cidr import (
    ipv6_subnet_block_count,
    ipv6_subnet_block_index,
    ipv6_subnet_cidr_block,
    validate_ipv6_block_ids,
)
from clusternet.core.network.errors import (
    AggregateAttributeError,
    InvalidSpecError,
    NotFoundError,
    client_error_code,
    raise_translated,
    translate_client_error,
)
from clusternet.core.network.routing import RouteTableAssociation, describe_nat_gateways, describe_subnet_route_associations
from clusternet.core.network.scope import ClusterScope
from clusternet.core.network.spec import SubnetSpec, VPCSpec
from clusternet.core.network.state import StateMachine, SubnetState, new_subnet_state_machine
from clusternet.core.network.tags import (
    NAME_TAG_KEY,
    PRIVATE_ROLE,
    PUBLIC_ROLE,
    BuildParams,
    ResourceLifecycle,
    Tags,
    build,
)
from clusternet.core.network.zones import get_available_zones, select_zones
from clusternet.core.platform.definitions.aws.common import wait_for_with_retryable
from clusternet.core.platform.definitions.aws.ec2 import client_wrapper

module_logger = logging.getLogger(__name__)

DEFAULT_PRIVATE_SUBNET_CIDR = "10.0.0.0/24"
DEFAULT_PUBLIC_SUBNET_CIDR = "10.0.1.0/24"
DEFAULT_PRIVATE_IPV6_BLOCK_ID = 0
DEFAULT_PUBLIC_IPV6_BLOCK_ID = 1

SUBNET_NOT_FOUND = "InvalidSubnetID.NotFound"
SUBNET_RETRYABLE_ERRORS = {SUBNET_NOT_FOUND}


class SubnetReconcileResult(CoreData):
    def __init__(
        self,
        subnets: List[SubnetSpec],
        nat_gateways: Dict[str, List[str]],
        zones: List[str],
        states: Dict[str, List[SubnetState]],
    ) -> None:
        self.subnets = subnets
        self.nat_gateways = nat_gateways
        self.zones = zones
        self.states = states


class SubnetPlanEntry:
    """One subnet of the merged plan along with what was observed about it and how far it got in this pass."""

    def __init__(
        self,
        spec: SubnetSpec,
        machine: StateMachine[SubnetState],
        role: str,
        managed: bool,
        map_public_ip_on_launch: bool = False,
        assign_ipv6_address_on_creation: bool = False,
    ) -> None:
        self.spec = spec
        self.machine = machine
        self.role = role
        self.managed = managed
        self.map_public_ip_on_launch = map_public_ip_on_launch
        self.assign_ipv6_address_on_creation = assign_ipv6_address_on_creation

    @property
    def is_pending(self) -> bool:
        return self.machine.state == SubnetState.PENDING

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(spec={self.spec!r}, machine={self.machine!r}, role={self.role!r}, managed={self.managed})"


def intended_role(subnet: SubnetSpec) -> str:
    return PUBLIC_ROLE if subnet.has_public_role() else PRIVATE_ROLE


class SubnetReconciler:
    def __init__(self, scope: ClusterScope) -> None:
        self._scope = scope

    @property
    def _ec2(self):
        return self._scope.ec2

    @property
    def _cluster_name(self) -> str:
        return self._scope.cluster_name

    def reconcile(self, vpc: VPCSpec, desired: Sequence[SubnetSpec]) -> SubnetReconcileResult:
        if not vpc.id:
            raise InvalidSpecError("Cannot reconcile subnets of a VPC that has not been resolved yet")
        module_logger.info(f"Reconciling subnets of VPC {vpc.id!r}")
        vpc = vpc.clone()
        desired = [subnet.clone() for subnet in desired]
        managed_vpc = vpc.is_managed(self._cluster_name)

        zones: List[str] = []
        if managed_vpc and self._lacks_role(desired):
            zones = self._get_zones()

        observed = self._describe(vpc, managed_vpc)
        nat_gateways = self._describe_nat_gateways(vpc)

        plan = self._merge(vpc, managed_vpc, desired, observed)
        if managed_vpc:
            zones = self._add_defaults(vpc, plan, zones)
        self._validate(vpc, plan)

        for entry in plan:
            self._converge(vpc, entry)

        return SubnetReconcileResult(
            subnets=[entry.spec for entry in plan],
            nat_gateways=nat_gateways,
            zones=zones,
            states={entry.machine.resource: entry.machine.history for entry in plan},
        )

    def delete(self, vpc: VPCSpec, subnets: Sequence[SubnetSpec]) -> None:
        """Deletes the subnets of the VPC that belong to the cluster.

        A discovered subnet qualifies when it carries the 'owned' tag, or when it carries no ownership tag for this
        cluster but is listed in 'subnets'. Subnets of unmanaged VPCs are never touched.
        """
        if not vpc.id or not vpc.is_managed(self._cluster_name):
            module_logger.info(f"Skipping subnet deletion for unmanaged VPC {vpc.id!r}")
            return

        listed = {subnet.id for subnet in subnets if subnet.id}
        try:
            observed = client_wrapper.describe_subnets(self._ec2, vpc.id)
        except ClientError as error:
            raise translate_client_error(error, f"Failed to describe subnets of VPC {vpc.id!r}", vpc.id) from error

        for subnet in observed:
            subnet_id = subnet["SubnetId"]
            tags = client_wrapper.tags_to_map(subnet.get("Tags", []))
            lifecycle = tags.cluster_lifecycle(self._cluster_name)
            if not (tags.has_owned(self._cluster_name) or (lifecycle is None and subnet_id in listed)):
                module_logger.info(f"Skipping deletion of subnet {subnet_id!r} not owned by cluster {self._cluster_name!r}")
                continue

            try:
                client_wrapper.delete_subnet(self._ec2, subnet_id)
            except ClientError as error:
                if client_error_code(error) == SUBNET_NOT_FOUND:
                    module_logger.info(f"Skipping deletion of subnet {subnet_id!r}, subnet not found")
                    continue
                self._scope.recorder.warn("FailedDeleteSubnet", f"Failed to delete managed subnet {subnet_id!r}: {error}")
                raise translate_client_error(error, f"Failed to delete subnet {subnet_id!r}", subnet_id) from error
            module_logger.info(f"Deleted subnet {subnet_id!r} of VPC {vpc.id!r}")
            self._scope.recorder.event("SuccessfulDeleteSubnet", f"Deleted managed subnet {subnet_id!r}")

    # Discovery
    # ---------
    @staticmethod
    def _lacks_role(subnets: Sequence[SubnetSpec]) -> bool:
        roles = {intended_role(subnet) for subnet in subnets}
        return PRIVATE_ROLE not in roles or PUBLIC_ROLE not in roles

    def _get_zones(self) -> List[str]:
        try:
            return get_available_zones(self._ec2)
        except ClientError as error:
            raise translate_client_error(error, "Failed to describe availability zones") from error

    def _describe(self, vpc: VPCSpec, managed_vpc: bool) -> List[SubnetPlanEntry]:
        try:
            subnets = client_wrapper.describe_subnets(self._ec2, vpc.id)
            associations = describe_subnet_route_associations(self._ec2, vpc.id)
        except ClientError as error:
            raise translate_client_error(error, f"Failed to describe subnets of VPC {vpc.id!r}", vpc.id) from error

        entries: List[SubnetPlanEntry] = []
        for subnet in subnets:
            spec = self._to_spec(vpc, subnet, associations.get(subnet["SubnetId"], None))
            lifecycle = spec.tags.cluster_lifecycle(self._cluster_name)
            entries.append(
                SubnetPlanEntry(
                    spec,
                    new_subnet_state_machine(spec.id, SubnetState.DISCOVERED),
                    role=spec.role() or intended_role(spec),
                    # a subnet of our VPC that lost its tags is ours to heal, an explicit 'shared' is not
                    managed=managed_vpc and lifecycle in (None, ResourceLifecycle.OWNED.value),
                    map_public_ip_on_launch=subnet.get("MapPublicIpOnLaunch", False),
                    assign_ipv6_address_on_creation=subnet.get("AssignIpv6AddressOnCreation", False),
                )
            )
        module_logger.info(f"Discovered {len(entries)} subnet(s) in VPC {vpc.id!r}")
        return entries

    def _describe_nat_gateways(self, vpc: VPCSpec) -> Dict[str, List[str]]:
        try:
            return describe_nat_gateways(self._ec2, vpc.id)
        except ClientError as error:
            raise translate_client_error(error, f"Failed to describe NAT gateways of VPC {vpc.id!r}", vpc.id) from error

    @staticmethod
    def _to_spec(vpc: VPCSpec, subnet, association: Optional[RouteTableAssociation]) -> SubnetSpec:
        ipv6_cidr_block = client_wrapper.associated_subnet_ipv6_cidr_block(subnet)
        ipv6_cidr_block_id = None
        if ipv6_cidr_block and vpc.ipv6_cidr_block:
            ipv6_cidr_block_id = ipv6_subnet_block_index(vpc.ipv6_cidr_block, ipv6_cidr_block)
        return SubnetSpec(
            id=subnet["SubnetId"],
            availability_zone=subnet.get("AvailabilityZone", ""),
            cidr_block=subnet.get("CidrBlock", ""),
            is_public=association.is_public if association else False,
            is_ipv6=bool(ipv6_cidr_block),
            ipv6_cidr_block_id=ipv6_cidr_block_id,
            ipv6_cidr_block=ipv6_cidr_block,
            route_table_id=association.route_table_id if association else None,
            tags=client_wrapper.tags_to_map(subnet.get("Tags", [])),
        )

    # Merge
    # -----
    def _merge(
        self, vpc: VPCSpec, managed_vpc: bool, desired: List[SubnetSpec], observed: List[SubnetPlanEntry]
    ) -> List[SubnetPlanEntry]:
        """Desired order first, then the discovered subnets nobody asked for. Observed values win on a match."""
        plan: List[SubnetPlanEntry] = []
        matched = set()
        for wanted in desired:
            match = self._find_match(wanted, observed, matched)
            if match:
                matched.add(match.spec.id)
                if not match.spec.role():
                    match.role = intended_role(wanted)
                plan.append(match)
                continue

            if not managed_vpc:
                raise NotFoundError(
                    f"Subnet {wanted.id or wanted.cidr_block!r} not found in unmanaged VPC {vpc.id!r}",
                    resource_id=wanted.id or None,
                )
            if wanted.id:
                module_logger.warning(f"Subnet {wanted.id!r} no longer exists in VPC {vpc.id!r}, it will be re-created")
            plan.append(self._pending_entry(wanted, intended_role(wanted)))

        for entry in observed:
            if entry.spec.id not in matched:
                plan.append(entry)
        return plan

    @staticmethod
    def _find_match(wanted: SubnetSpec, observed: List[SubnetPlanEntry], matched) -> Optional[SubnetPlanEntry]:
        for entry in observed:
            if entry.spec.id in matched:
                continue
            if wanted.id:
                if entry.spec.id == wanted.id:
                    return entry
            elif wanted.cidr_block and entry.spec.cidr_block == wanted.cidr_block:
                return entry
        return None

    @staticmethod
    def _pending_entry(wanted: SubnetSpec, role: str) -> SubnetPlanEntry:
        spec = SubnetSpec(
            availability_zone=wanted.availability_zone,
            cidr_block=wanted.cidr_block,
            is_ipv6=wanted.is_ipv6,
            ipv6_cidr_block_id=wanted.ipv6_cidr_block_id,
        )
        return SubnetPlanEntry(spec, new_subnet_state_machine(wanted.cidr_block, SubnetState.PENDING), role=role, managed=True)

    def _add_defaults(self, vpc: VPCSpec, plan: List[SubnetPlanEntry], zones: List[str]) -> List[str]:
        roles = {entry.role for entry in plan}
        missing = [role for role in (PRIVATE_ROLE, PUBLIC_ROLE) if role not in roles]
        if not missing:
            return zones

        if not zones:
            zones = self._get_zones()
        zone = select_zones(zones, 1)[0]
        ipv6 = bool(vpc.ipv6_cidr_block)
        used_block_ids = {entry.spec.ipv6_cidr_block_id for entry in plan if entry.spec.is_ipv6 and entry.spec.ipv6_cidr_block_id is not None}
        for role in missing:
            ipv6_cidr_block_id = None
            if ipv6:
                preferred = DEFAULT_PUBLIC_IPV6_BLOCK_ID if role == PUBLIC_ROLE else DEFAULT_PRIVATE_IPV6_BLOCK_ID
                ipv6_cidr_block_id = _free_ipv6_block_id(preferred, used_block_ids)
                used_block_ids.add(ipv6_cidr_block_id)
            default = SubnetSpec(
                availability_zone=zone,
                cidr_block=DEFAULT_PUBLIC_SUBNET_CIDR if role == PUBLIC_ROLE else DEFAULT_PRIVATE_SUBNET_CIDR,
                is_ipv6=ipv6,
                ipv6_cidr_block_id=ipv6_cidr_block_id,
            )
            module_logger.info(f"No {role} subnet in VPC {vpc.id!r}, adding default {default.cidr_block!r} in {zone!r}")
            plan.append(self._pending_entry(default, role))
        return zones

    @staticmethod
    def _validate(vpc: VPCSpec, plan: List[SubnetPlanEntry]) -> None:
        validate_ipv6_block_ids([entry.spec for entry in plan])
        for entry in plan:
            if not entry.is_pending:
                continue
            spec = entry.spec
            if not spec.cidr_block:
                raise InvalidSpecError("Subnet to create has no CIDR block")
            if spec.is_ipv6:
                if not vpc.ipv6_cidr_block:
                    raise InvalidSpecError(
                        f"IPv6 subnet {spec.cidr_block!r} requested in VPC {vpc.id!r} which has no IPv6 block",
                        resource_id=spec.cidr_block,
                    )
                if spec.ipv6_cidr_block_id is None:
                    raise InvalidSpecError(f"IPv6 subnet {spec.cidr_block!r} has no IPv6 block index", resource_id=spec.cidr_block)
                slots = ipv6_subnet_block_count(vpc.ipv6_cidr_block)
                if not 0 <= spec.ipv6_cidr_block_id < slots:
                    raise InvalidSpecError(
                        f"IPv6 block index {spec.ipv6_cidr_block_id} of subnet {spec.cidr_block!r} is out of range for "
                        f"{vpc.ipv6_cidr_block!r} (0-{slots - 1})",
                        resource_id=spec.cidr_block,
                    )

    # Converge
    # --------
    def _converge(self, vpc: VPCSpec, entry: SubnetPlanEntry) -> None:
        if entry.is_pending:
            self._create(vpc, entry)

        if not entry.managed:
            entry.machine.advance(SubnetState.ADOPTED)
            module_logger.info(f"Subnet {entry.spec.id!r} is not managed by cluster {self._cluster_name!r}, leaving it as is")
            return

        self._ensure_tags(entry)
        entry.machine.advance(SubnetState.TAGGED)
        self._ensure_attributes(entry)
        entry.machine.advance(SubnetState.ATTRIBUTES_ENSURED)

    def _create(self, vpc: VPCSpec, entry: SubnetPlanEntry) -> None:
        spec = entry.spec
        ipv6_cidr_block = ipv6_subnet_cidr_block(vpc.ipv6_cidr_block, spec.ipv6_cidr_block_id) if spec.is_ipv6 else None
        try:
            created = client_wrapper.create_subnet(self._ec2, vpc.id, spec.cidr_block, spec.availability_zone or None, ipv6_cidr_block)
        except ClientError as error:
            self._scope.recorder.warn("FailedCreateSubnet", f"Failed creating new managed subnet {spec.cidr_block!r}: {error}")
            raise translate_client_error(error, f"Failed to create subnet {spec.cidr_block!r} in VPC {vpc.id!r}") from error

        subnet_id = created["SubnetId"]
        entry.machine.resource = subnet_id
        entry.machine.advance(SubnetState.CREATED)
        self._scope.recorder.event("SuccessfulCreateSubnet", f"Created new managed subnet {subnet_id!r}")
        module_logger.info(f"Created new subnet {subnet_id!r} in VPC {vpc.id!r} with cidr {spec.cidr_block!r} and zone {created.get('AvailabilityZone')!r}")

        def _available() -> bool:
            client_wrapper.wait_until_subnet_available(self._ec2, subnet_id)
            return True

        try:
            wait_for_with_retryable(_available, SUBNET_RETRYABLE_ERRORS, subnet_id, self._scope.backoff)
        except Exception as error:
            raise_translated(error, f"Failed waiting for subnet {subnet_id!r} to become available", subnet_id)
        entry.machine.advance(SubnetState.AVAILABLE)

        entry.spec = SubnetSpec(
            id=subnet_id,
            availability_zone=created.get("AvailabilityZone", spec.availability_zone),
            cidr_block=created.get("CidrBlock", spec.cidr_block),
            is_public=False,
            is_ipv6=spec.is_ipv6,
            ipv6_cidr_block_id=spec.ipv6_cidr_block_id,
            ipv6_cidr_block=client_wrapper.associated_subnet_ipv6_cidr_block(created) or ipv6_cidr_block,
        )
        entry.map_public_ip_on_launch = created.get("MapPublicIpOnLaunch", False)
        entry.assign_ipv6_address_on_creation = created.get("AssignIpv6AddressOnCreation", False)

    def _ensure_tags(self, entry: SubnetPlanEntry) -> None:
        spec = entry.spec
        wanted = build(
            BuildParams(
                cluster_name=self._cluster_name,
                resource_id=spec.id,
                lifecycle=ResourceLifecycle.OWNED,
                name=f"{self._cluster_name}-subnet-{entry.role}-{spec.availability_zone}",
                role=entry.role,
                additional=self._scope.additional_tags,
            )
        )
        if spec.tags.name():
            wanted.pop(NAME_TAG_KEY)
        missing = wanted.difference(spec.tags)
        if not missing:
            return

        def _apply_missing() -> bool:
            client_wrapper.create_tags(self._ec2, spec.id, missing)
            return True

        try:
            wait_for_with_retryable(_apply_missing, SUBNET_RETRYABLE_ERRORS, spec.id, self._scope.backoff)
        except Exception as error:
            self._scope.recorder.warn("FailedTagSubnet", f"Failed tagging managed subnet {spec.id!r}: {error}")
            raise_translated(error, f"Failed to tag subnet {spec.id!r}", spec.id)
        tags = Tags(spec.tags)
        tags.update(missing)
        spec.tags = tags
        self._scope.recorder.event("SuccessfulTagSubnet", f"Tagged managed subnet {spec.id!r}")

    def _ensure_attributes(self, entry: SubnetPlanEntry) -> None:
        spec = entry.spec
        needs_public_ip = entry.role == PUBLIC_ROLE and not entry.map_public_ip_on_launch
        needs_ipv6_address = spec.is_ipv6 and not entry.assign_ipv6_address_on_creation
        if not (needs_public_ip or needs_ipv6_address):
            return

        def _apply_attributes() -> bool:
            errors: List[Exception] = []
            if entry.role == PUBLIC_ROLE and not entry.map_public_ip_on_launch:
                try:
                    client_wrapper.modify_subnet_attribute(self._ec2, spec.id, map_public_ip_on_launch=True)
                    entry.map_public_ip_on_launch = True
                except ClientError as error:
                    errors.append(translate_client_error(error, "failed to set MapPublicIpOnLaunch", spec.id))
            if spec.is_ipv6 and not entry.assign_ipv6_address_on_creation:
                try:
                    client_wrapper.modify_subnet_attribute(self._ec2, spec.id, assign_ipv6_address_on_creation=True)
                    entry.assign_ipv6_address_on_creation = True
                except ClientError as error:
                    errors.append(translate_client_error(error, "failed to set AssignIpv6AddressOnCreation", spec.id))
            if errors:
                raise AggregateAttributeError(f"Failed to set attributes of subnet {spec.id!r}", errors, resource_id=spec.id)
            return True

        try:
            wait_for_with_retryable(_apply_attributes, SUBNET_RETRYABLE_ERRORS, spec.id, self._scope.backoff)
        except AggregateAttributeError:
            self._scope.recorder.warn("FailedModifySubnetAttributes", f"Failed modifying managed subnet {spec.id!r} attributes")
            raise
        self._scope.recorder.event("SuccessfulModifySubnetAttributes", f"Modified managed subnet {spec.id!r} attributes")


def _free_ipv6_block_id(preferred: int, used: Set[int]) -> int:
    """'preferred' unless a declared or discovered subnet holds it already, then the lowest free index."""
    if preferred not in used:
        return preferred
    candidate = 0
    while candidate in used:
        candidate += 1
    return candidate
