"""Domain events and their delivery."""

from apiwave.events.models import (
    DomainEvent,
    PackageStatusChangedEvent,
    TestRunCompletedEvent,
    TestRunStartedEvent,
    event_from_dict,
    event_to_dict,
)
from apiwave.events.publisher import EventPublisher, EventSink, InMemoryEventSink, LoggingEventSink

__all__ = [
    # Events
    "DomainEvent",
    "TestRunStartedEvent",
    "TestRunCompletedEvent",
    "PackageStatusChangedEvent",
    "event_to_dict",
    "event_from_dict",
    # Delivery
    "EventPublisher",
    "EventSink",
    "InMemoryEventSink",
    "LoggingEventSink",
]
