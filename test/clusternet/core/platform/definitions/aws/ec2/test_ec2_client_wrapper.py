# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest
from botocore.exceptions import ClientError
from mock import MagicMock

from clusternet.core.platform.definitions.aws.ec2.client_wrapper import *
from clusternet.mixins.aws.test import AWSTestBase


class TestClientWrapperForEC2(AWSTestBase):
    @pytest.fixture()
    def vpc(self, ec2_client):
        return create_vpc(ec2_client, "10.0.0.0/16")

    def test_ec2_filters(self):
        assert state_filter("pending", "available") == {"Name": "state", "Values": ["pending", "available"]}
        assert vpc_filter("vpc-1") == {"Name": "vpc-id", "Values": ["vpc-1"]}
        assert cluster_filter("test-cluster") == {"Name": "tag:clusternet.io/cluster/test-cluster", "Values": ["owned"]}
        assert ipv6_associated_vpc_filter() == {"Name": "ipv6-cidr-block-association.state", "Values": ["associated"]}

    def test_ec2_tag_conversion(self):
        tags = tags_to_map([{"Key": "b", "Value": "2"}, {"Key": "a", "Value": "1"}])
        assert tags == {"a": "1", "b": "2"}
        assert map_to_tags(tags) == [{"Key": "a", "Value": "1"}, {"Key": "b", "Value": "2"}]
        assert tags_to_map(None) == {}

    def test_ec2_create_and_describe_vpc(self, ec2_client, vpc):
        vpc_id = vpc["VpcId"]
        wait_until_vpc_available(ec2_client, vpc_id)
        create_tags(ec2_client, vpc_id, {"clusternet.io/cluster/test-cluster": "owned"})

        vpcs = describe_vpcs(ec2_client, [state_filter("pending", "available"), cluster_filter("test-cluster")])
        assert [v["VpcId"] for v in vpcs] == [vpc_id]
        assert tags_to_map(vpcs[0]["Tags"]).has_owned("test-cluster")

        assert not describe_vpcs(ec2_client, [cluster_filter("another-cluster")])

    def test_ec2_describe_missing_vpc(self, ec2_client):
        with pytest.raises(ClientError) as error:
            describe_vpcs(ec2_client, [], ["vpc-12345678"])
        assert error.value.response["Error"]["Code"] == "InvalidVpcID.NotFound"

    def test_ec2_vpc_attributes(self, ec2_client, vpc):
        vpc_id = vpc["VpcId"]
        assert describe_vpc_attribute(ec2_client, vpc_id, ATTRIBUTE_ENABLE_DNS_SUPPORT)
        assert not describe_vpc_attribute(ec2_client, vpc_id, ATTRIBUTE_ENABLE_DNS_HOSTNAMES)

        modify_vpc_attribute(ec2_client, vpc_id, ATTRIBUTE_ENABLE_DNS_HOSTNAMES, True)
        assert describe_vpc_attribute(ec2_client, vpc_id, ATTRIBUTE_ENABLE_DNS_HOSTNAMES)

    def test_ec2_subnet_lifecycle(self, ec2_client, vpc):
        vpc_id = vpc["VpcId"]
        subnet = create_subnet(ec2_client, vpc_id, "10.0.1.0/24", "us-east-1a")
        subnet_id = subnet["SubnetId"]
        wait_until_subnet_available(ec2_client, subnet_id)

        modify_subnet_attribute(ec2_client, subnet_id, map_public_ip_on_launch=True)
        subnets = describe_subnets(ec2_client, vpc_id)
        assert [s["SubnetId"] for s in subnets] == [subnet_id]
        assert subnets[0]["MapPublicIpOnLaunch"]
        assert subnets[0]["AvailabilityZone"] == "us-east-1a"

        delete_subnet(ec2_client, subnet_id)
        assert not describe_subnets(ec2_client, vpc_id)

    def test_ec2_modify_subnet_attribute_one_at_a_time(self):
        ec2_client = MagicMock()
        with pytest.raises(ValueError):
            modify_subnet_attribute(ec2_client, "subnet-1")
        with pytest.raises(ValueError):
            modify_subnet_attribute(ec2_client, "subnet-1", map_public_ip_on_launch=True, assign_ipv6_address_on_creation=True)
        assert not ec2_client.modify_subnet_attribute.called

        modify_subnet_attribute(ec2_client, "subnet-1", assign_ipv6_address_on_creation=True)
        ec2_client.modify_subnet_attribute.assert_called_once_with(SubnetId="subnet-1", AssignIpv6AddressOnCreation={"Value": True})

    def test_ec2_route_tables_and_nat_gateways(self, ec2_client, vpc):
        vpc_id = vpc["VpcId"]
        route_tables = describe_route_tables(ec2_client, vpc_id)
        # main route table of the new VPC
        assert len(route_tables) == 1
        assert list(describe_nat_gateways(ec2_client, vpc_id)) == []

    def test_ec2_availability_zones(self, ec2_client):
        zones = [zone["ZoneName"] for zone in describe_availability_zones(ec2_client)]
        assert "us-east-1a" in zones

    def test_ec2_associated_ipv6_cidr_blocks(self):
        vpc = {
            "Ipv6CidrBlockAssociationSet": [
                {"Ipv6CidrBlock": "2001:db8:1::/56", "Ipv6CidrBlockState": {"State": "disassociated"}},
                {"Ipv6CidrBlock": "2001:10:10::/56", "Ipv6CidrBlockState": {"State": "associated"}},
            ]
        }
        assert associated_ipv6_cidr_block(vpc) == "2001:10:10::/56"
        assert associated_ipv6_cidr_block({"Ipv6CidrBlockAssociationSet": [{"Ipv6CidrBlock": "x", "Ipv6CidrBlockState": {"State": "associating"}}]}) is None
        assert associated_ipv6_cidr_block({}) is None

        subnet = {"Ipv6CidrBlockAssociationSet": [{"Ipv6CidrBlock": "2001:10:10::/64", "Ipv6CidrBlockState": {"State": "associating"}}]}
        assert associated_subnet_ipv6_cidr_block(subnet) == "2001:10:10::/64"

    def test_ec2_throttled_call_is_retried(self, monkeypatch):
        monkeypatch.setattr("clusternet.core.platform.definitions.aws.common.time.sleep", MagicMock())
        ec2_client = MagicMock()
        ec2_client.describe_subnets.side_effect = [self.client_error("RequestLimitExceeded"), {"Subnets": [{"SubnetId": "subnet-1"}]}]
        assert describe_subnets(ec2_client, "vpc-1") == [{"SubnetId": "subnet-1"}]
        assert ec2_client.describe_subnets.call_count == 2
