# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import os
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from clusternet.core.network.events import EventRecorder, LoggingEventRecorder
from clusternet.core.network.scope import ClusterScope
from clusternet.core.platform.definitions.aws.common import Backoff


class AWSTestBase:
    testing_keyname = "testing"
    region = "us-east-1"
    # default moto acc id
    account_id = "123456789012"
    cluster_name = "test-cluster"

    # no sleeps in tests, still enough attempts to exercise the retry paths
    fast_backoff = Backoff(initial_delay_in_secs=0, factor=1, max_delay_in_secs=0, max_attempts=3)

    @pytest.fixture(scope="class")
    def aws_credentials(self):
        os.environ["AWS_ACCESS_KEY_ID"] = self.testing_keyname
        os.environ["AWS_SECRET_ACCESS_KEY"] = self.testing_keyname
        os.environ["AWS_SECURITY_TOKEN"] = self.testing_keyname
        os.environ["AWS_SESSION_TOKEN"] = self.testing_keyname
        os.environ["AWS_DEFAULT_REGION"] = self.region

    @pytest.fixture()
    def ec2_client(self, aws_credentials):
        with mock_aws():
            yield boto3.client(service_name="ec2", region_name=self.region)

    @pytest.fixture()
    def recorder(self) -> LoggingEventRecorder:
        return LoggingEventRecorder(self.cluster_name)

    def new_scope(
        self, ec2_client, recorder: Optional[EventRecorder] = None, additional_tags: Optional[Dict[str, str]] = None
    ) -> ClusterScope:
        return ClusterScope(
            self.cluster_name, ec2_client, additional_tags=additional_tags, backoff=self.fast_backoff, recorder=recorder
        )

    @staticmethod
    def client_error(code: str, operation_name: str = "op", message: str = "") -> ClientError:
        return ClientError(operation_name=operation_name, error_response={"Error": {"Code": code, "Message": message}})

    @staticmethod
    def owned_tags(cluster_name: str, **extra: str) -> List[Dict[str, str]]:
        tags = [{"Key": f"clusternet.io/cluster/{cluster_name}", "Value": "owned"}]
        tags.extend([{"Key": key, "Value": value} for key, value in extra.items()])
        return tags

    @staticmethod
    def mock_ec2_client(
        vpcs: Optional[List[Dict[str, Any]]] = None,
        subnets: Optional[List[Dict[str, Any]]] = None,
        route_tables: Optional[List[Dict[str, Any]]] = None,
        nat_gateways: Optional[List[Dict[str, Any]]] = None,
        zones: Optional[List[str]] = None,
    ) -> MagicMock:
        """EC2 client double returning the given resources from its describe calls.

        VPC attributes are reported as already enabled, mutating calls succeed and return MagicMocks unless the
        caller configures them.
        """
        ec2_client = MagicMock()
        ec2_client.describe_vpcs.return_value = {"Vpcs": vpcs if vpcs else []}
        ec2_client.describe_subnets.return_value = {"Subnets": subnets if subnets else []}
        ec2_client.describe_route_tables.return_value = {"RouteTables": route_tables if route_tables else []}
        ec2_client.describe_availability_zones.return_value = {
            "AvailabilityZones": [{"ZoneName": zone, "State": "available"} for zone in (zones if zones else [])]
        }
        ec2_client.get_paginator.return_value.paginate.return_value = [{"NatGateways": nat_gateways if nat_gateways else []}]
        ec2_client.describe_vpc_attribute.side_effect = lambda VpcId, Attribute: {
            "VpcId": VpcId,
            "EnableDnsHostnames" if Attribute == "enableDnsHostnames" else "EnableDnsSupport": {"Value": True},
        }
        return ec2_client
