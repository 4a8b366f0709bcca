"""
Stream Events

Outbound event model of the NDJSON protocol. Every event serializes to one
line ``{"type": ..., "text": ...}``. Structured payloads (``partialResult``,
``result``, ``error``) are JSON-encoded into ``text``, so consumers decode
them twice.
"""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Event tags of the NDJSON protocol."""

    STATUS = "status"
    CONTENT = "content"
    PARTIAL_RESULT = "partialResult"
    RESULT = "result"
    ERROR = "error"


TERMINAL_EVENT_TYPES = {EventType.RESULT, EventType.ERROR}


class StreamEvent(BaseModel):
    """One outbound event."""

    type: EventType = Field(..., description="Event tag")
    text: str = Field(..., description="Human-readable text or JSON-encoded payload")

    model_config = ConfigDict(frozen=True)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def payload(self) -> Any:
        """Decode the JSON payload of a structured event."""
        return json.loads(self.text)

    def to_line(self) -> str:
        """Serialize as a single NDJSON line (newline included)."""
        return json.dumps({"type": self.type.value, "text": self.text}) + "\n"

    @classmethod
    def status(cls, text: str) -> "StreamEvent":
        return cls(type=EventType.STATUS, text=text)

    @classmethod
    def content(cls, text: str) -> "StreamEvent":
        return cls(type=EventType.CONTENT, text=text)

    @classmethod
    def partial_result(cls, payload: dict[str, Any]) -> "StreamEvent":
        return cls(type=EventType.PARTIAL_RESULT, text=json.dumps(payload))

    @classmethod
    def result(cls, payload: dict[str, Any]) -> "StreamEvent":
        return cls(type=EventType.RESULT, text=json.dumps(payload))

    @classmethod
    def error(cls, payload: dict[str, Any]) -> "StreamEvent":
        return cls(type=EventType.ERROR, text=json.dumps(payload))
