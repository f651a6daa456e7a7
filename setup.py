# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from setuptools import find_packages, setup
from src.clusternet import __version__ as version

REQUIRED_PACKAGES = [
    'boto3 >= 1.41.1',
    'python-dateutil >= 2.9.0',
    'overrides >= 3.1.0',
]

TEST_PACKAGES = [
    'moto >= 5.0',
    'pytest',
    'mock'
]

setup(
    name="clusternet",
    python_requires=">=3.10",
    version=version,
    description="clusternet converges the VPC and subnets of a cluster network on AWS EC2 from a declarative spec.",
    keywords="aws ec2 vpc subnet network reconciliation cluster infrastructure idempotent tags",
    author="Amazon.com Inc.",
    license="Apache 2.0",

    packages=find_packages(where="src", exclude=("test",)),
    package_dir={"": "src"},
    install_requires=REQUIRED_PACKAGES,
    extras_require={"test": TEST_PACKAGES},
    include_package_data=True,
)
