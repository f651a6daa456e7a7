# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""VPC Reconciler.

One VPC per pass: ``describe -> {found: adopt or tag, not found: create} -> ensure attributes``. A VPC that exists but
is not owned by the cluster is only mirrored into the output, it is never tagged, modified or deleted.
"""

import logging
from typing import Any, Dict, List

from botocore.exceptions import ClientError

from clusternet.core.entity import CoreData
from clusternet.core.network.errors import (
    AggregateAttributeError,
    ConflictError,
    InvalidSpecError,
    IPv6BlockNotFoundError,
    NotFoundError,
    client_error_code,
    raise_translated,
    translate_client_error,
)
from clusternet.core.network.scope import ClusterScope
from clusternet.core.network.spec import VPCSpec
from clusternet.core.network.state import VPCState, new_vpc_state_machine
from clusternet.core.network.tags import COMMON_ROLE, NAME_TAG_KEY, BuildParams, ResourceLifecycle, build
from clusternet.core.platform.definitions.aws.common import wait_for_with_retryable
from clusternet.core.platform.definitions.aws.ec2 import client_wrapper
from clusternet.core.platform.definitions.aws.ec2.client_wrapper import (
    ATTRIBUTE_ENABLE_DNS_HOSTNAMES,
    ATTRIBUTE_ENABLE_DNS_SUPPORT,
    VPC_STATE_AVAILABLE,
    VPC_STATE_PENDING,
)

module_logger = logging.getLogger(__name__)

DEFAULT_VPC_CIDR = "10.0.0.0/16"

VPC_NOT_FOUND = "InvalidVpcID.NotFound"
VPC_RETRYABLE_ERRORS = {VPC_NOT_FOUND}

# enforced on managed VPCs, fetched and set one at a time
MANAGED_VPC_ATTRIBUTES = [ATTRIBUTE_ENABLE_DNS_HOSTNAMES, ATTRIBUTE_ENABLE_DNS_SUPPORT]


class VPCReconcileResult(CoreData):
    def __init__(self, vpc: VPCSpec, state: VPCState, history: List[VPCState], created: bool = False) -> None:
        self.vpc = vpc
        self.state = state
        self.history = history
        self.created = created


class VPCReconciler:
    def __init__(self, scope: ClusterScope) -> None:
        self._scope = scope

    @property
    def _ec2(self):
        return self._scope.ec2

    @property
    def _cluster_name(self) -> str:
        return self._scope.cluster_name

    def reconcile(self, desired: VPCSpec) -> VPCReconcileResult:
        module_logger.info(f"Reconciling VPC for cluster {self._cluster_name!r}")
        desired = desired.clone()
        machine = new_vpc_state_machine(desired.id or self._cluster_name)
        created = False

        try:
            vpc = self.describe(desired)
            machine.advance(VPCState.FOUND)
        except NotFoundError:
            machine.advance(VPCState.NOT_FOUND)
            vpc = self.create(desired)
            created = True
            machine.advance(VPCState.CREATED)
        machine.resource = vpc.id

        if vpc.is_unmanaged(self._cluster_name):
            machine.advance(VPCState.ADOPTED)
            module_logger.info(f"Working on unmanaged VPC {vpc.id!r}, no mutation will be attempted")
            return VPCReconcileResult(vpc, machine.state, machine.history, created)

        self._ensure_tags(vpc)
        machine.advance(VPCState.TAGGED)

        try:
            wait_for_with_retryable(lambda: self._ensure_attributes(vpc), VPC_RETRYABLE_ERRORS, vpc.id, self._scope.backoff)
        except Exception as error:
            raise_translated(error, f"Failed to set attributes of VPC {vpc.id!r}", vpc.id)
        machine.advance(VPCState.ATTRIBUTES_ENSURED)

        module_logger.info(f"Working on managed VPC {vpc.id!r}")
        return VPCReconcileResult(vpc, machine.state, machine.history, created)

    def describe(self, desired: VPCSpec) -> VPCSpec:
        filters = [client_wrapper.state_filter(VPC_STATE_PENDING, VPC_STATE_AVAILABLE)]
        vpc_ids = None
        if desired.id:
            vpc_ids = [desired.id]
        else:
            # previously created and tagged VPC
            filters.append(client_wrapper.cluster_filter(self._cluster_name))
        if desired.enable_ipv6:
            filters.append(client_wrapper.ipv6_associated_vpc_filter())

        try:
            vpcs = client_wrapper.describe_vpcs(self._ec2, filters, vpc_ids)
        except ClientError as error:
            raise translate_client_error(error, f"Failed to query EC2 for VPC {desired.id!r}", desired.id) from error

        if not vpcs:
            raise NotFoundError(f"Could not find VPC {desired.id!r} of cluster {self._cluster_name!r}", resource_id=desired.id)
        elif len(vpcs) > 1:
            raise ConflictError(
                f"Found more than one VPC with the supplied filters, please clean up the extra VPCs: " f"{[vpc['VpcId'] for vpc in vpcs]}",
                resource_id=desired.id,
            )

        observed = vpcs[0]
        if observed.get("State", None) not in (VPC_STATE_PENDING, VPC_STATE_AVAILABLE):
            raise NotFoundError(f"Could not find an available or pending VPC, {observed['VpcId']!r} is {observed.get('State')!r}")

        vpc = self._to_spec(observed, desired.enable_ipv6)
        if desired.enable_ipv6:
            vpc.ipv6_cidr_block = client_wrapper.associated_ipv6_cidr_block(observed)
            if not vpc.ipv6_cidr_block:
                raise IPv6BlockNotFoundError(f"Failed to obtain an IPv6 prefix for VPC {vpc.id!r}", resource_id=vpc.id)
            module_logger.info(f"VPC {vpc.id!r} IPv6 enabled with cidr {vpc.ipv6_cidr_block!r}")
        return vpc

    def create(self, desired: VPCSpec) -> VPCSpec:
        if desired.is_unmanaged(self._cluster_name):
            raise InvalidSpecError(f"Cannot create a managed VPC in unmanaged mode (VPC {desired.id!r})", resource_id=desired.id)

        cidr_block = desired.cidr_block if desired.cidr_block else DEFAULT_VPC_CIDR
        try:
            created = client_wrapper.create_vpc(self._ec2, cidr_block, desired.enable_ipv6)
        except ClientError as error:
            self._scope.recorder.warn("FailedCreateVPC", f"Failed to create new managed VPC: {error}")
            raise translate_client_error(error, "Failed to create VPC") from error

        vpc_id = created["VpcId"]
        self._scope.recorder.event("SuccessfulCreateVPC", f"Created new managed VPC {vpc_id!r}")
        module_logger.info(f"Created new VPC {vpc_id!r} with cidr {created.get('CidrBlock', cidr_block)!r}")

        if desired.enable_ipv6 and not created.get("Ipv6CidrBlockAssociationSet", []):
            raise IPv6BlockNotFoundError(f"Failed to find an associated IPv6 prefix creating VPC {vpc_id!r}", resource_id=vpc_id)

        def _available() -> bool:
            client_wrapper.wait_until_vpc_available(self._ec2, vpc_id, desired.enable_ipv6)
            return True

        try:
            wait_for_with_retryable(_available, VPC_RETRYABLE_ERRORS, vpc_id, self._scope.backoff)
        except Exception as error:
            raise_translated(error, f"Failed waiting for VPC {vpc_id!r} to become available", vpc_id)

        tags = build(self._tag_params(vpc_id))

        def _apply_tags() -> bool:
            client_wrapper.create_tags(self._ec2, vpc_id, tags)
            return True

        try:
            wait_for_with_retryable(_apply_tags, VPC_RETRYABLE_ERRORS, vpc_id, self._scope.backoff)
        except Exception as error:
            self._scope.recorder.warn("FailedTagVPC", f"Failed to tag managed VPC {vpc_id!r}: {error}")
            raise_translated(error, f"Failed to tag VPC {vpc_id!r}", vpc_id)
        self._scope.recorder.event("SuccessfulTagVPC", f"Tagged managed VPC {vpc_id!r}")

        vpc = VPCSpec(
            id=vpc_id,
            cidr_block=created.get("CidrBlock", cidr_block),
            enable_ipv6=desired.enable_ipv6,
            tags=tags,
        )
        if desired.enable_ipv6:
            # association completes asynchronously, the waiter above made sure it did
            observed = client_wrapper.describe_vpcs(self._ec2, [client_wrapper.ipv6_associated_vpc_filter()], [vpc_id])
            vpc.ipv6_cidr_block = client_wrapper.associated_ipv6_cidr_block(observed[0]) if observed else None
            if not vpc.ipv6_cidr_block:
                raise IPv6BlockNotFoundError(f"Failed waiting to associate an IPv6 prefix creating VPC {vpc_id!r}", resource_id=vpc_id)
            module_logger.info(f"VPC {vpc_id!r} IPv6 enabled with cidr {vpc.ipv6_cidr_block!r}")
        return vpc

    def delete(self, desired: VPCSpec) -> None:
        if desired.is_unmanaged(self._cluster_name):
            module_logger.info(f"Skipping deletion of unmanaged VPC {desired.id!r}")
            return

        try:
            vpc = self.describe(desired)
        except NotFoundError:
            module_logger.info(f"VPC {desired.id!r} of cluster {self._cluster_name!r} is already gone")
            return

        if not vpc.is_managed(self._cluster_name):
            module_logger.info(f"Skipping deletion of VPC {vpc.id!r} not owned by cluster {self._cluster_name!r}")
            return

        try:
            client_wrapper.delete_vpc(self._ec2, vpc.id)
        except ClientError as error:
            if client_error_code(error) == VPC_NOT_FOUND:
                module_logger.info(f"Skipping deletion of VPC {vpc.id!r}, VPC not found")
                return
            self._scope.recorder.warn("FailedDeleteVPC", f"Failed to delete managed VPC {vpc.id!r}: {error}")
            raise translate_client_error(error, f"Failed to delete VPC {vpc.id!r}", vpc.id) from error

        module_logger.info(f"Deleted VPC {vpc.id!r}")
        self._scope.recorder.event("SuccessfulDeleteVPC", f"Deleted managed VPC {vpc.id!r}")

    def _ensure_tags(self, vpc: VPCSpec) -> None:
        """Re-asserts ownership tags, covers a VPC that exists but never got tagged (e.g earlier partial failure)."""
        wanted = build(self._tag_params(vpc.id))
        if vpc.tags.name():
            # never rename
            wanted.pop(NAME_TAG_KEY)
        missing = wanted.difference(vpc.tags)
        if not missing:
            return

        def _apply_missing() -> bool:
            client_wrapper.create_tags(self._ec2, vpc.id, missing)
            return True

        try:
            wait_for_with_retryable(_apply_missing, VPC_RETRYABLE_ERRORS, vpc.id, self._scope.backoff)
        except Exception as error:
            self._scope.recorder.warn("FailedTagVPC", f"Failed to tag managed VPC {vpc.id!r}: {error}")
            raise_translated(error, f"Failed to tag VPC {vpc.id!r}", vpc.id)
        vpc.tags.update(missing)
        self._scope.recorder.event("SuccessfulTagVPC", f"Tagged managed VPC {vpc.id!r}")

    def _ensure_attributes(self, vpc: VPCSpec) -> bool:
        errors: List[Exception] = []
        updated = False
        for attribute in MANAGED_VPC_ATTRIBUTES:
            try:
                enabled = client_wrapper.describe_vpc_attribute(self._ec2, vpc.id, attribute)
            except ClientError as error:
                errors.append(_attribute_error(error, f"failed to describe {attribute} vpc attribute", vpc.id))
                continue
            if enabled:
                continue
            try:
                client_wrapper.modify_vpc_attribute(self._ec2, vpc.id, attribute, True)
                updated = True
            except ClientError as error:
                errors.append(_attribute_error(error, f"failed to set {attribute} vpc attribute", vpc.id))

        if errors:
            self._scope.recorder.warn("FailedSetVPCAttributes", f"Failed to set managed VPC attributes for {vpc.id!r}")
            raise AggregateAttributeError(f"Failed to set attributes of VPC {vpc.id!r}", errors, resource_id=vpc.id)

        if updated:
            self._scope.recorder.event("SuccessfulSetVPCAttributes", f"Set managed VPC attributes for {vpc.id!r}")
        return True

    def _tag_params(self, vpc_id: str) -> BuildParams:
        return BuildParams(
            cluster_name=self._cluster_name,
            resource_id=vpc_id,
            lifecycle=ResourceLifecycle.OWNED,
            name=f"{self._cluster_name}-vpc",
            role=COMMON_ROLE,
            additional=self._scope.additional_tags,
        )

    @staticmethod
    def _to_spec(observed: Dict[str, Any], enable_ipv6: bool) -> VPCSpec:
        return VPCSpec(
            id=observed["VpcId"],
            cidr_block=observed.get("CidrBlock", ""),
            enable_ipv6=enable_ipv6,
            tags=client_wrapper.tags_to_map(observed.get("Tags", [])),
        )


def _attribute_error(error: ClientError, context: str, vpc_id: str) -> Exception:
    translated = translate_client_error(error, context, vpc_id)
    translated.__cause__ = error
    return translated
