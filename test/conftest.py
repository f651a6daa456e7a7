# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import os

import pytest

AWS_ENV_VARS = ["AWS_PROFILE", "AWS_REGION"]


@pytest.fixture(autouse=True)
def isolated_aws_env(monkeypatch):
    """Keeps a developer's AWS profile or region from leaking into the fake EC2 endpoints."""
    for env_var in AWS_ENV_VARS:
        if env_var in os.environ:
            monkeypatch.delenv(env_var)
    yield
