# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import datetime
import logging
from abc import ABC, abstractmethod
from enum import Enum, unique
from typing import List

from dateutil.tz import tzlocal
from overrides import overrides

from clusternet.core.entity import CoreData

module_logger = logging.getLogger(__name__)


@unique
class EventType(str, Enum):
    NORMAL = "Normal"
    WARNING = "Warning"


class Event(CoreData):
    def __init__(self, type: EventType, reason: str, message: str, object_name: str, timestamp: datetime.datetime) -> None:
        self.type = type
        self.reason = reason
        self.message = message
        self.object_name = object_name
        self.timestamp = timestamp


class EventRecorder(ABC):
    """Side channel for human readable outcomes of mutating actions.

    Recording is best effort. A failing recorder must never fail the reconciliation, so the public methods guard the
    actual sink (:meth:`_record`).
    """

    def __init__(self, object_name: str) -> None:
        self._object_name = object_name

    @property
    def object_name(self) -> str:
        return self._object_name

    def event(self, reason: str, message: str) -> None:
        self._safe_record(EventType.NORMAL, reason, message)

    def warn(self, reason: str, message: str) -> None:
        self._safe_record(EventType.WARNING, reason, message)

    def _safe_record(self, type: EventType, reason: str, message: str) -> None:
        try:
            self._record(Event(type, reason, message, self._object_name, datetime.datetime.now(tzlocal())))
        except Exception as error:
            module_logger.warning(f"Could not record event {reason!r} for {self._object_name!r}: {error!r}")

    @abstractmethod
    def _record(self, event: Event) -> None:
        ...


class LoggingEventRecorder(EventRecorder):
    def __init__(self, object_name: str) -> None:
        super().__init__(object_name)
        self._events: List[Event] = []

    @property
    def events(self) -> List[Event]:
        return list(self._events)

    def reasons(self) -> List[str]:
        return [event.reason for event in self._events]

    @overrides
    def _record(self, event: Event) -> None:
        self._events.append(event)
        level = logging.WARNING if event.type == EventType.WARNING else logging.INFO
        module_logger.log(level, f"[{event.object_name}] {event.reason}: {event.message}")
