# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import List, Sequence

from clusternet.core.network.errors import NotFoundError
from clusternet.core.platform.definitions.aws.ec2.client_wrapper import describe_availability_zones

module_logger = logging.getLogger(__name__)


def get_available_zones(ec2_client) -> List[str]:
    """Zone names in lexicographical order so that default placement does not depend on the provider's ordering."""
    zones = sorted({zone["ZoneName"] for zone in describe_availability_zones(ec2_client)})
    module_logger.debug(f"Available zones: {zones}")
    return zones


def select_zones(zones: Sequence[str], count: int = 1) -> List[str]:
    if not zones:
        raise NotFoundError("No availability zone is available for default subnet placement")
    return list(zones[:count])
