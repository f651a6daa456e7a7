# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest
from mock import MagicMock

from clusternet.core.network.errors import NotFoundError
from clusternet.core.network.zones import get_available_zones, select_zones


class TestZones:
    def test_zones_sorted_and_unique(self):
        ec2_client = MagicMock()
        ec2_client.describe_availability_zones.return_value = {
            "AvailabilityZones": [{"ZoneName": "us-east-1c"}, {"ZoneName": "us-east-1a"}, {"ZoneName": "us-east-1c"}, {"ZoneName": "us-east-1b"}]
        }

        assert get_available_zones(ec2_client) == ["us-east-1a", "us-east-1b", "us-east-1c"]
        ec2_client.describe_availability_zones.assert_called_once_with(Filters=[{"Name": "state", "Values": ["available"]}])

    def test_zones_select(self):
        zones = ["us-east-1a", "us-east-1b", "us-east-1c"]
        assert select_zones(zones) == ["us-east-1a"]
        assert select_zones(zones, 2) == ["us-east-1a", "us-east-1b"]
        assert select_zones(zones, 5) == zones

    def test_zones_select_none_available(self):
        with pytest.raises(NotFoundError):
            select_zones([])
