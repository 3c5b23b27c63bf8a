"""
One-way Server-Sent Events channel for a single analysis request.

The orchestrator writes ``progress`` events followed by one terminal
``result`` or ``error`` event and then closes the stream; the HTTP layer
drains it with :meth:`ProgressStream.sse`. Each event is framed as
``data: {"type": ..., "data": ...}\\n\\n``.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)

EVENT_PROGRESS = "progress"
EVENT_RESULT = "result"
EVENT_ERROR = "error"
TERMINAL_EVENTS = (EVENT_RESULT, EVENT_ERROR)


@dataclass(frozen=True)
class StreamEvent:
    type: str
    data: Any

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data}

    def encode(self) -> str:
        return f"data: {json.dumps(self.to_dict(), ensure_ascii=False)}\n\n"


class ProgressStream:
    def __init__(self) -> None:
        self._queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        self._closed = False
        self._detached = False
        self.terminal_emitted: str | None = None
        self.emitted_count = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached

    async def progress(self, step: str, message: str) -> bool:
        return await self._emit(StreamEvent(type=EVENT_PROGRESS, data={"step": step, "message": message}))

    async def result(self, document: Any) -> bool:
        return await self._emit(StreamEvent(type=EVENT_RESULT, data=document))

    async def error(self, payload: dict[str, Any]) -> bool:
        return await self._emit(StreamEvent(type=EVENT_ERROR, data=payload))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except Exception as exc:
            logger.error("Error closing progress stream: %s", exc)

    def detach(self) -> None:
        """Mark the consumer as gone; later writes are dropped."""
        if not self._detached:
            logger.info("Progress stream consumer disconnected")
        self._detached = True

    async def events(self) -> AsyncIterator[StreamEvent]:
        try:
            while True:
                event = await self._queue.get()
                if event is None:
                    break
                yield event
        finally:
            if not self._closed:
                self.detach()

    async def sse(self) -> AsyncIterator[str]:
        async for event in self.events():
            yield event.encode()

    async def _emit(self, event: StreamEvent) -> bool:
        if self._closed:
            logger.warning("Dropping %s event emitted after the stream was closed", event.type)
            return False
        if self._detached:
            logger.debug("Dropping %s event, consumer already disconnected", event.type)
            return False
        try:
            self._queue.put_nowait(event)
        except Exception as exc:
            logger.error("Failed to write %s event to progress stream: %s", event.type, exc)
            return False
        self.emitted_count += 1
        if event.type in TERMINAL_EVENTS:
            self.terminal_emitted = event.type
        return True
