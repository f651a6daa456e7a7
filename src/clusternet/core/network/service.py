# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Dict, List

from clusternet.core.entity import CoreData
from clusternet.core.network.errors import NotFoundError
from clusternet.core.network.scope import ClusterScope
from clusternet.core.network.spec import NetworkSpec
from clusternet.core.network.state import SubnetState, VPCState
from clusternet.core.network.subnets import SubnetReconciler
from clusternet.core.network.vpc import VPCReconciler

module_logger = logging.getLogger(__name__)


class ReconcileResult(CoreData):
    def __init__(
        self,
        network: NetworkSpec,
        nat_gateways: Dict[str, List[str]],
        vpc_state: VPCState,
        subnet_states: Dict[str, List[SubnetState]],
    ) -> None:
        self.network = network
        self.nat_gateways = nat_gateways
        self.vpc_state = vpc_state
        self.subnet_states = subnet_states


class NetworkService:
    """Entry point of a convergence pass over one cluster network.

    The desired NetworkSpec is never modified, the converged state comes back as a new NetworkSpec inside the
    ReconcileResult. Callers are expected to persist it (IDs in particular) and re-run the whole pass on failure.
    """

    def __init__(self, scope: ClusterScope) -> None:
        self._scope = scope
        self._vpc_reconciler = VPCReconciler(scope)
        self._subnet_reconciler = SubnetReconciler(scope)

    @property
    def scope(self) -> ClusterScope:
        return self._scope

    def reconcile_network(self, network: NetworkSpec) -> ReconcileResult:
        module_logger.info(f"Reconciling network of cluster {self._scope.cluster_name!r}")
        desired = network.clone()

        vpc_result = self._vpc_reconciler.reconcile(desired.vpc)
        subnet_result = self._subnet_reconciler.reconcile(vpc_result.vpc, desired.subnets)

        converged = NetworkSpec(vpc=vpc_result.vpc, subnets=subnet_result.subnets)
        module_logger.info(
            f"Reconciled network of cluster {self._scope.cluster_name!r}: VPC {converged.vpc.id!r}, "
            f"{len(converged.public_subnets())} public / {len(converged.private_subnets())} private subnet(s)"
        )
        return ReconcileResult(converged, subnet_result.nat_gateways, vpc_result.state, subnet_result.states)

    def delete_network(self, network: NetworkSpec) -> None:
        module_logger.info(f"Deleting network of cluster {self._scope.cluster_name!r}")
        desired = network.clone()
        if desired.vpc.is_unmanaged(self._scope.cluster_name):
            module_logger.info(f"Skipping deletion of unmanaged VPC {desired.vpc.id!r} and its subnets")
            return

        try:
            vpc = self._vpc_reconciler.describe(desired.vpc)
        except NotFoundError:
            module_logger.info(f"No VPC left for cluster {self._scope.cluster_name!r}")
            return

        # subnets first, EC2 refuses to delete a VPC that still has dependencies
        self._subnet_reconciler.delete(vpc, desired.subnets)
        self._vpc_reconciler.delete(vpc)
