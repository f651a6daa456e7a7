# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from typing import Any, Dict

from ._logging_config import init_basic_logging
from .core.network.errors import (
    AggregateAttributeError,
    ConflictError,
    InvalidSpecError,
    IPv6BlockNotFoundError,
    NetworkReconcileError,
    NotFoundError,
    ProviderRejectedError,
    WaitTimeoutError,
)
from .core.network.events import Event, EventRecorder, EventType, LoggingEventRecorder
from .core.network.scope import ClusterScope, ScopeParams
from .core.network.service import NetworkService, ReconcileResult
from .core.network.spec import NetworkSpec, SubnetSpec, VPCSpec
from .core.network.tags import PRIVATE_ROLE, PUBLIC_ROLE, ResourceLifecycle
from .core.platform.definitions.aws.common import Backoff

Network = NetworkSpec
VPC = VPCSpec
Subnet = SubnetSpec


def create_network_service(params: Dict[str, Any]) -> NetworkService:
    """Convenience entry point, builds the scope out of ScopeParams keyed 'params' (see ClusterScope.from_params)."""
    return NetworkService(ClusterScope.from_params(params))
