# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from clusternet.core.network.spec import NetworkSpec, SubnetSpec, VPCSpec, find_subnet
from clusternet.core.network.tags import ROLE_TAG_KEY, Tags, cluster_tag_key


class TestSpec:
    cluster_name = "test-cluster"

    def test_vpc_spec_ownership(self):
        fresh = VPCSpec()
        assert not fresh.is_managed(self.cluster_name)
        assert not fresh.is_unmanaged(self.cluster_name)

        owned = VPCSpec(id="vpc-1", tags={cluster_tag_key(self.cluster_name): "owned"})
        assert owned.is_managed(self.cluster_name)
        assert not owned.is_unmanaged(self.cluster_name)

        brought = VPCSpec(id="vpc-2")
        assert brought.is_unmanaged(self.cluster_name)

        shared = VPCSpec(id="vpc-3", tags={cluster_tag_key(self.cluster_name): "shared"})
        assert shared.is_unmanaged(self.cluster_name)

    def test_subnet_spec_role(self):
        assert SubnetSpec(is_public=True).has_public_role()
        assert not SubnetSpec(is_public=False).has_public_role()
        # role tag takes precedence over the observed routing
        assert SubnetSpec(is_public=False, tags={ROLE_TAG_KEY: "public"}).has_public_role()
        assert not SubnetSpec(is_public=True, tags={ROLE_TAG_KEY: "private"}).has_public_role()
        assert SubnetSpec(tags={ROLE_TAG_KEY: "private"}).role() == "private"
        assert isinstance(SubnetSpec().tags, Tags)

    def test_network_spec_queries(self):
        network = NetworkSpec(
            vpc=VPCSpec(id="vpc-1"),
            subnets=[SubnetSpec(id="subnet-1", is_public=True), SubnetSpec(id="subnet-2"), SubnetSpec(cidr_block="10.0.2.0/24")],
        )
        assert network.find_subnet("subnet-2").id == "subnet-2"
        assert network.find_subnet("subnet-9") is None
        # subnets without an ID never match
        assert find_subnet(network.subnets, "") is None
        assert [s.id for s in network.public_subnets()] == ["subnet-1"]
        assert len(network.private_subnets()) == 2

    def test_network_spec_clone_is_deep(self):
        network = NetworkSpec(vpc=VPCSpec(id="vpc-1", tags={"a": "1"}), subnets=[SubnetSpec(id="subnet-1")])
        network_clone = network.clone()
        assert network_clone == network

        network_clone.vpc.tags["a"] = "2"
        network_clone.subnets[0].id = "subnet-2"
        assert network.vpc.tags["a"] == "1"
        assert network.subnets[0].id == "subnet-1"
        assert network_clone != network
        assert isinstance(network_clone.vpc.tags, Tags)

    def test_network_spec_to_dict(self):
        network = NetworkSpec(vpc=VPCSpec(id="vpc-1", cidr_block="10.0.0.0/16"), subnets=[SubnetSpec(id="subnet-1")])
        as_dict = network.to_dict()
        assert as_dict["vpc"]["id"] == "vpc-1"
        assert as_dict["subnets"][0]["id"] == "subnet-1"
