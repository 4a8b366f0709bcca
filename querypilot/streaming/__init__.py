"""
Streaming Module

Incremental field extraction and the NDJSON event channel.
"""

from querypilot.streaming.events import EventType, StreamEvent
from querypilot.streaming.field_extractor import IncrementalFieldExtractor, ScannerState
from querypilot.streaming.sink import (
    BaseEventSink,
    CollectingEventSink,
    EventSink,
    NDJSONEventSink,
)

__all__ = [
    "BaseEventSink",
    "CollectingEventSink",
    "EventSink",
    "EventType",
    "IncrementalFieldExtractor",
    "NDJSONEventSink",
    "ScannerState",
    "StreamEvent",
]
