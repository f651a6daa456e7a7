# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import copy
from typing import Any, Dict, TypeVar

_CoreDataType = TypeVar("_CoreDataType", bound="CoreData")


class CoreData:
    """Provide basic dunder implementations for core entities (value equality, readable repr) and a deep copy
    mechanism so that reconciliation components can work on snapshots rather than on shared instances.
    """

    def __eq__(self, other) -> bool:
        return type(other) is type(self) and self.__dict__ == other.__dict__

    # entities are mutable value holders
    __hash__ = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({','.join([f'{name}={repr(value)}' for name, value in self.__dict__.items()])})"

    def __str__(self) -> str:
        return self.__repr__()

    def clone(self: _CoreDataType) -> _CoreDataType:
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {name: _to_primitive(value) for name, value in self.__dict__.items()}


def _to_primitive(value: Any) -> Any:
    if isinstance(value, CoreData):
        return value.to_dict()
    if isinstance(value, dict):
        return {k: _to_primitive(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_primitive(v) for v in value]
    return value
