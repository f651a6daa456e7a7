# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Tag Builder and ownership model.

Tags are the only record of which cluster owns a VPC or subnet and which role a subnet plays, so every ownership
decision in the reconcilers goes through :func:`is_managed` and :func:`role_of` rather than matching strings inline.
Nothing in this module talks to AWS.
"""

from enum import Enum, unique
from typing import Dict, Optional

from clusternet.core.entity import CoreData

NAME_PREFIX = "clusternet.io/"
CLUSTER_TAG_PREFIX = NAME_PREFIX + "cluster/"
ROLE_TAG_KEY = NAME_PREFIX + "role"
NAME_TAG_KEY = "Name"

# filter prefix for tag based describe calls
TAG_FILTER_PREFIX = "tag:"

COMMON_ROLE = "common"
PUBLIC_ROLE = "public"
PRIVATE_ROLE = "private"


@unique
class ResourceLifecycle(str, Enum):
    OWNED = "owned"
    SHARED = "shared"


def cluster_tag_key(cluster_name: str) -> str:
    return CLUSTER_TAG_PREFIX + cluster_name


def cluster_filter_key(cluster_name: str) -> str:
    return TAG_FILTER_PREFIX + cluster_tag_key(cluster_name)


class Tags(dict):
    """String key -> string value map of an EC2 resource."""

    def cluster_lifecycle(self, cluster_name: str) -> Optional[str]:
        return self.get(cluster_tag_key(cluster_name), None)

    def has_owned(self, cluster_name: str) -> bool:
        return self.cluster_lifecycle(cluster_name) == ResourceLifecycle.OWNED.value

    def role(self) -> Optional[str]:
        return self.get(ROLE_TAG_KEY, None)

    def name(self) -> Optional[str]:
        return self.get(NAME_TAG_KEY, None)

    def difference(self, other: Dict[str, str]) -> "Tags":
        """Entries of this tag set that are missing from (or have a different value in) other."""
        return Tags({key: value for key, value in self.items() if other.get(key, None) != value})

    def copy(self) -> "Tags":
        return Tags(self)


class BuildParams(CoreData):
    def __init__(
        self,
        cluster_name: str,
        resource_id: str,
        lifecycle: ResourceLifecycle = ResourceLifecycle.OWNED,
        name: Optional[str] = None,
        role: Optional[str] = None,
        additional: Optional[Dict[str, str]] = None,
    ) -> None:
        self.cluster_name = cluster_name
        self.resource_id = resource_id
        self.lifecycle = lifecycle
        self.name = name
        self.role = role
        self.additional = dict(additional) if additional else dict()


def build(params: BuildParams) -> Tags:
    """Same params always yield the same tags. Built-in keys override operator supplied additional tags."""
    tags = Tags(params.additional)
    tags[cluster_tag_key(params.cluster_name)] = ResourceLifecycle(params.lifecycle).value
    if params.role:
        tags[ROLE_TAG_KEY] = params.role
    if params.name:
        tags[NAME_TAG_KEY] = params.name
    return tags


def is_managed(tags: Optional[Dict[str, str]], cluster_name: str) -> bool:
    if not tags:
        return False
    return tags.get(cluster_tag_key(cluster_name), None) == ResourceLifecycle.OWNED.value


def role_of(tags: Optional[Dict[str, str]]) -> Optional[str]:
    if not tags:
        return None
    return tags.get(ROLE_TAG_KEY, None)
