# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from enum import Enum, unique
from typing import Dict, FrozenSet, Generic, List, TypeVar


@unique
class VPCState(str, Enum):
    UNKNOWN = "UNKNOWN"
    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"
    CREATED = "CREATED"
    ADOPTED = "ADOPTED"  # unmanaged, mirrored read-only
    TAGGED = "TAGGED"
    ATTRIBUTES_ENSURED = "ATTRIBUTES_ENSURED"


@unique
class SubnetState(str, Enum):
    PENDING = "PENDING"  # declared (or defaulted), no provider resource yet
    DISCOVERED = "DISCOVERED"
    CREATED = "CREATED"
    AVAILABLE = "AVAILABLE"
    ADOPTED = "ADOPTED"
    TAGGED = "TAGGED"
    ATTRIBUTES_ENSURED = "ATTRIBUTES_ENSURED"


VPC_TRANSITIONS: Dict[VPCState, FrozenSet[VPCState]] = {
    VPCState.UNKNOWN: frozenset({VPCState.FOUND, VPCState.NOT_FOUND}),
    VPCState.NOT_FOUND: frozenset({VPCState.CREATED}),
    VPCState.FOUND: frozenset({VPCState.ADOPTED, VPCState.TAGGED}),
    VPCState.CREATED: frozenset({VPCState.TAGGED}),
    VPCState.TAGGED: frozenset({VPCState.ATTRIBUTES_ENSURED}),
    VPCState.ADOPTED: frozenset(),
    VPCState.ATTRIBUTES_ENSURED: frozenset(),
}

SUBNET_TRANSITIONS: Dict[SubnetState, FrozenSet[SubnetState]] = {
    SubnetState.PENDING: frozenset({SubnetState.CREATED}),
    SubnetState.CREATED: frozenset({SubnetState.AVAILABLE}),
    SubnetState.AVAILABLE: frozenset({SubnetState.TAGGED}),
    SubnetState.DISCOVERED: frozenset({SubnetState.TAGGED, SubnetState.ADOPTED}),
    SubnetState.TAGGED: frozenset({SubnetState.ATTRIBUTES_ENSURED}),
    SubnetState.ADOPTED: frozenset(),
    SubnetState.ATTRIBUTES_ENSURED: frozenset(),
}

_StateType = TypeVar("_StateType", VPCState, SubnetState)


class IllegalTransitionError(RuntimeError):
    pass


class StateMachine(Generic[_StateType]):
    """Keeps the current state of one resource within a pass along with the path that led there."""

    def __init__(self, resource: str, initial: _StateType, transitions: Dict[_StateType, FrozenSet[_StateType]]) -> None:
        self._resource = resource
        self._transitions = transitions
        self._history: List[_StateType] = [initial]

    @property
    def state(self) -> _StateType:
        return self._history[-1]

    @property
    def history(self) -> List[_StateType]:
        return list(self._history)

    @property
    def resource(self) -> str:
        return self._resource

    @resource.setter
    def resource(self, value: str) -> None:
        self._resource = value

    def is_terminal(self) -> bool:
        return not self._transitions[self.state]

    def advance(self, new_state: _StateType) -> _StateType:
        if new_state not in self._transitions[self.state]:
            raise IllegalTransitionError(f"{self._resource}: cannot move from {self.state.value} to {new_state.value}")
        self._history.append(new_state)
        return new_state

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(resource={self._resource!r}, history={[s.value for s in self._history]})"


def new_vpc_state_machine(resource: str) -> StateMachine[VPCState]:
    return StateMachine(resource, VPCState.UNKNOWN, VPC_TRANSITIONS)


def new_subnet_state_machine(resource: str, initial: SubnetState) -> StateMachine[SubnetState]:
    return StateMachine(resource, initial, SUBNET_TRANSITIONS)
