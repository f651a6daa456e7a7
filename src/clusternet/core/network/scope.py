# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
import os
from enum import Enum, unique
from typing import Any, Dict, Optional

from clusternet.core.network.events import EventRecorder, LoggingEventRecorder
from clusternet.core.platform.definitions.aws.common import DEFAULT_BACKOFF, Backoff, get_session

module_logger = logging.getLogger(__name__)

REGION_ENV_VARS = ["AWS_REGION", "AWS_DEFAULT_REGION"]


@unique
class ScopeParams(str, Enum):
    CLUSTER_NAME = "CLUSTER_NAME"
    REGION = "AWS_REGION"
    PROFILE = "AWS_PROFILE"
    BOTO_SESSION = "AWS_BOTO_SESSION"
    ADDITIONAL_TAGS = "ADDITIONAL_TAGS"
    BACKOFF = "BACKOFF"
    EVENT_RECORDER = "EVENT_RECORDER"


class ClusterScope:
    """Everything a convergence pass needs besides the desired state: who we are (cluster name, extra tags), how we
    reach EC2 and how patient we are with it."""

    def __init__(
        self,
        cluster_name: str,
        ec2_client,
        additional_tags: Optional[Dict[str, str]] = None,
        backoff: Optional[Backoff] = None,
        recorder: Optional[EventRecorder] = None,
    ) -> None:
        if not cluster_name:
            raise ValueError("Cluster name is required for a network scope")
        self._cluster_name = cluster_name
        self._ec2 = ec2_client
        self._additional_tags = dict(additional_tags) if additional_tags else dict()
        self._backoff = backoff if backoff else DEFAULT_BACKOFF
        self._recorder = recorder if recorder else LoggingEventRecorder(cluster_name)

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "ClusterScope":
        cluster_name = params.get(ScopeParams.CLUSTER_NAME, None)
        session = params.get(ScopeParams.BOTO_SESSION, None)
        region = params.get(ScopeParams.REGION, None) or _region_from_env()
        if session is None:
            session = get_session(region, params.get(ScopeParams.PROFILE, None))
        ec2_client = session.client("ec2", region_name=region) if region else session.client("ec2")
        module_logger.info(f"Created network scope for cluster {cluster_name!r} in region {region or session.region_name!r}")
        return cls(
            cluster_name,
            ec2_client,
            additional_tags=params.get(ScopeParams.ADDITIONAL_TAGS, None),
            backoff=params.get(ScopeParams.BACKOFF, None),
            recorder=params.get(ScopeParams.EVENT_RECORDER, None),
        )

    @property
    def cluster_name(self) -> str:
        return self._cluster_name

    @property
    def ec2(self):
        return self._ec2

    @property
    def additional_tags(self) -> Dict[str, str]:
        return dict(self._additional_tags)

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    @property
    def recorder(self) -> EventRecorder:
        return self._recorder


def _region_from_env() -> Optional[str]:
    for env_var in REGION_ENV_VARS:
        if os.environ.get(env_var, None):
            return os.environ[env_var]
    return None
