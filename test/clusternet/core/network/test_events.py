# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import datetime

from overrides import overrides

from clusternet.core.network.events import Event, EventRecorder, EventType, LoggingEventRecorder


class FailingEventRecorder(EventRecorder):
    @overrides
    def _record(self, event: Event) -> None:
        raise RuntimeError("event sink is down")


class TestEvents:
    def test_logging_event_recorder(self):
        recorder = LoggingEventRecorder("test-cluster")
        recorder.event("SuccessfulCreateVPC", "Created new managed VPC 'vpc-1'")
        recorder.warn("FailedTagVPC", "Failed to tag managed VPC 'vpc-1'")

        assert recorder.reasons() == ["SuccessfulCreateVPC", "FailedTagVPC"]
        normal, warning = recorder.events
        assert normal.type == EventType.NORMAL
        assert warning.type == EventType.WARNING
        assert warning.object_name == "test-cluster"
        assert isinstance(normal.timestamp, datetime.datetime)
        assert normal.timestamp.tzinfo is not None

    def test_logging_event_recorder_events_is_a_copy(self):
        recorder = LoggingEventRecorder("test-cluster")
        recorder.event("SuccessfulCreateVPC", "")
        recorder.events.clear()
        assert len(recorder.events) == 1

    def test_failing_event_recorder_never_raises(self):
        recorder = FailingEventRecorder("test-cluster")
        recorder.event("SuccessfulCreateVPC", "Created new managed VPC 'vpc-1'")
        recorder.warn("FailedCreateVPC", "boom")
        assert recorder.object_name == "test-cluster"
