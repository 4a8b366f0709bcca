"""
Event Sinks

Ordered outbound channels for pipeline events.

A sink accepts events in emission order and closes itself right after the
terminal (``result`` or ``error``) event. Writing to a closed sink is a
programming error and raises SinkClosedError.

Usage:
    sink = NDJSONEventSink()
    task = asyncio.create_task(pipeline.run(request, sink))
    async for line in sink.lines():
        ...
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Protocol

from querypilot.models.errors import SinkClosedError
from querypilot.streaming.events import EventType, StreamEvent

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Anything that accepts pipeline events in order."""

    def emit(self, event: StreamEvent) -> None: ...


class BaseEventSink(ABC):
    """Common close-after-terminal behavior."""

    def __init__(self):
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: StreamEvent) -> None:
        """
        Write an event.

        Raises:
            SinkClosedError: If the sink was already closed
        """
        if self._closed:
            raise SinkClosedError(f"Cannot emit '{event.type.value}' event: sink is closed")
        self._write(event)
        if event.is_terminal:
            self.close()

    def status(self, text: str) -> None:
        self.emit(StreamEvent.status(text))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._on_close()

    @abstractmethod
    def _write(self, event: StreamEvent) -> None:
        """Store or forward a single event."""

    def _on_close(self) -> None:
        pass


class NDJSONEventSink(BaseEventSink):
    """
    Queue-backed sink producing NDJSON lines for a streaming HTTP response.

    Emission never blocks; the consumer drains lines with ``lines()``.
    """

    def __init__(self):
        super().__init__()
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()

    def _write(self, event: StreamEvent) -> None:
        self._queue.put_nowait(event.to_line())

    def _on_close(self) -> None:
        self._queue.put_nowait(None)

    async def lines(self) -> AsyncIterator[str]:
        """Yield serialized lines until the sink closes."""
        while True:
            line = await self._queue.get()
            if line is None:
                return
            yield line


class CollectingEventSink(BaseEventSink):
    """In-memory sink used by the CLI and tests."""

    def __init__(self):
        super().__init__()
        self.events: list[StreamEvent] = []

    def _write(self, event: StreamEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[StreamEvent]:
        return [event for event in self.events if event.type == event_type]

    def texts(self, event_type: EventType) -> list[str]:
        return [event.text for event in self.of_type(event_type)]

    @property
    def terminal(self) -> StreamEvent | None:
        terminal = [event for event in self.events if event.is_terminal]
        return terminal[-1] if terminal else None
