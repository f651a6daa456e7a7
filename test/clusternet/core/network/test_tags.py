# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest

from clusternet.core.network.tags import *


class TestTags:
    cluster_name = "test-cluster"

    params_basic = BuildParams(cluster_name="test-cluster", resource_id="vpc-1", name="test-cluster-vpc", role=COMMON_ROLE)

    def test_tags_build_basic(self):
        tags = build(self.params_basic)
        assert tags == {
            "clusternet.io/cluster/test-cluster": "owned",
            "clusternet.io/role": "common",
            "Name": "test-cluster-vpc",
        }
        assert isinstance(tags, Tags)

    def test_tags_build_is_deterministic(self):
        assert build(self.params_basic) == build(self.params_basic.clone())

    def test_tags_build_builtin_keys_win_over_additional(self):
        params = BuildParams(
            cluster_name=self.cluster_name,
            resource_id="subnet-1",
            lifecycle=ResourceLifecycle.SHARED,
            role=PUBLIC_ROLE,
            additional={"clusternet.io/role": "hijacked", "team": "infra"},
        )
        tags = build(params)
        assert tags.role() == PUBLIC_ROLE
        assert tags["team"] == "infra"
        assert tags.cluster_lifecycle(self.cluster_name) == "shared"
        assert tags.name() is None
        assert not tags.has_owned(self.cluster_name)

    def test_tags_build_does_not_alias_additional(self):
        additional = {"team": "infra"}
        tags = build(BuildParams(cluster_name=self.cluster_name, resource_id="subnet-1", additional=additional))
        tags["team"] = "changed"
        assert additional == {"team": "infra"}

    def test_tags_is_managed(self):
        assert is_managed({cluster_tag_key(self.cluster_name): "owned"}, self.cluster_name)
        assert not is_managed({cluster_tag_key(self.cluster_name): "shared"}, self.cluster_name)
        assert not is_managed({cluster_tag_key("another-cluster"): "owned"}, self.cluster_name)
        assert not is_managed({"Name": "test-cluster"}, self.cluster_name)
        assert not is_managed({}, self.cluster_name)
        assert not is_managed(None, self.cluster_name)

    def test_tags_role_of(self):
        assert role_of({ROLE_TAG_KEY: PRIVATE_ROLE}) == PRIVATE_ROLE
        assert role_of({"Name": "foo"}) is None
        assert role_of(None) is None

    def test_tags_keys(self):
        assert cluster_tag_key(self.cluster_name) == "clusternet.io/cluster/test-cluster"
        assert cluster_filter_key(self.cluster_name) == "tag:clusternet.io/cluster/test-cluster"

    def test_tags_difference(self):
        wanted = Tags({"a": "1", "b": "2", "c": "3"})
        observed = {"a": "1", "b": "changed", "d": "4"}
        diff = wanted.difference(observed)
        assert diff == {"b": "2", "c": "3"}
        assert isinstance(diff, Tags)
        assert not wanted.difference(wanted)

    def test_tags_copy(self):
        tags = Tags({"a": "1"})
        tags_copy = tags.copy()
        tags_copy["a"] = "2"
        assert isinstance(tags_copy, Tags)
        assert tags["a"] == "1"
