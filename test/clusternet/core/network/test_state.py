# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest

from clusternet.core.network.state import *


class TestStateMachine:
    def test_vpc_state_machine_create_path(self):
        machine = new_vpc_state_machine("test-cluster")
        assert machine.state == VPCState.UNKNOWN
        machine.advance(VPCState.NOT_FOUND)
        machine.advance(VPCState.CREATED)
        machine.resource = "vpc-1"
        machine.advance(VPCState.TAGGED)
        machine.advance(VPCState.ATTRIBUTES_ENSURED)

        assert machine.is_terminal()
        assert machine.resource == "vpc-1"
        assert machine.history == [VPCState.UNKNOWN, VPCState.NOT_FOUND, VPCState.CREATED, VPCState.TAGGED, VPCState.ATTRIBUTES_ENSURED]

    def test_vpc_state_machine_adopt_path(self):
        machine = new_vpc_state_machine("vpc-1")
        machine.advance(VPCState.FOUND)
        machine.advance(VPCState.ADOPTED)
        assert machine.is_terminal()

        with pytest.raises(IllegalTransitionError):
            machine.advance(VPCState.TAGGED)

    def test_vpc_state_machine_illegal_transitions(self):
        machine = new_vpc_state_machine("vpc-1")
        with pytest.raises(IllegalTransitionError):
            machine.advance(VPCState.CREATED)
        machine.advance(VPCState.NOT_FOUND)
        # a VPC that was not found cannot be adopted
        with pytest.raises(IllegalTransitionError):
            machine.advance(VPCState.ADOPTED)
        # failed moves leave no trace
        assert machine.history == [VPCState.UNKNOWN, VPCState.NOT_FOUND]

    def test_subnet_state_machine_paths(self):
        created = new_subnet_state_machine("10.0.0.0/24", SubnetState.PENDING)
        for state in [SubnetState.CREATED, SubnetState.AVAILABLE, SubnetState.TAGGED, SubnetState.ATTRIBUTES_ENSURED]:
            created.advance(state)
        assert created.is_terminal()

        discovered = new_subnet_state_machine("subnet-1", SubnetState.DISCOVERED)
        with pytest.raises(IllegalTransitionError):
            discovered.advance(SubnetState.CREATED)
        discovered.advance(SubnetState.ADOPTED)
        assert discovered.is_terminal()

        pending = new_subnet_state_machine("10.0.1.0/24", SubnetState.PENDING)
        with pytest.raises(IllegalTransitionError):
            pending.advance(SubnetState.TAGGED)

    def test_state_machine_history_is_a_copy(self):
        machine = new_subnet_state_machine("subnet-1", SubnetState.DISCOVERED)
        history = machine.history
        history.append(SubnetState.ADOPTED)
        assert machine.state == SubnetState.DISCOVERED
