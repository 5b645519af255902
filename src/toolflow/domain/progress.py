"""Progress Bus - Session-Scoped Live Stage Events.

Pushes stage-transition events to whichever client is currently watching a
session. Delivery is at-most-once and best-effort:

    - A session has zero or one bound channel; join() replaces the old one
    - publish() to an unbound session is a silent no-op (nothing is buffered)
    - publish() never blocks: a full channel drops the event with a warning

One pipeline run is the only publisher for its session and emits in program
order, so events within a run arrive in order. Nothing is promised across
sessions.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from .domain_type import ProgressEventType, ProgressStage
from .domain_value import ProgressEvent

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100


class ProgressChannel:
    """Delivery endpoint for one live client.

    The WebSocket handler iterates the channel and forwards each event.
    """

    def __init__(self, session_id: str, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        self.session_id = session_id
        self._queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=maxsize)

    def deliver(self, event: ProgressEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Progress channel for session %s is full; dropping %s event", self.session_id, event.type)
            return False
        return True

    async def next_event(self) -> ProgressEvent:
        return await self._queue.get()

    def drain(self) -> list[ProgressEvent]:
        """Everything queued right now, without waiting."""
        events = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        while True:
            yield await self._queue.get()


class ProgressBus:
    """Publish/subscribe hub keyed by session id."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._channels: dict[str, ProgressChannel] = {}

    def join(self, session_id: str) -> ProgressChannel:
        """Bind a fresh channel to session_id and return it."""
        channel = ProgressChannel(session_id, maxsize=self.queue_size)
        if session_id in self._channels:
            logger.info("Session %s rebound to a new channel", session_id)
        self._channels[session_id] = channel
        return channel

    def leave(self, session_id: str, channel: ProgressChannel | None = None) -> None:
        """Unbind session_id. With channel given, only if it is still the bound one."""
        current = self._channels.get(session_id)
        if current is None:
            return
        if channel is None or current is channel:
            del self._channels[session_id]

    def is_bound(self, session_id: str) -> bool:
        return session_id in self._channels

    def publish(self, session_id: str, event: ProgressEvent) -> bool:
        """Deliver event to the bound channel; returns whether it was queued."""
        channel = self._channels.get(session_id)
        if channel is None:
            return False
        return channel.deliver(event)

    # -- convenience emitters -------------------------------------------------

    def _emit(
        self,
        session_id: str,
        event_type: ProgressEventType,
        message: str,
        stage: ProgressStage | None = None,
        progress: int | None = None,
    ) -> bool:
        event = ProgressEvent(
            type=event_type,
            message=message,
            session_id=session_id,
            stage=stage,
            progress=progress,
        )
        return self.publish(session_id, event)

    def emit_thinking(self, session_id: str, message: str = "Thinking...") -> bool:
        return self._emit(session_id, ProgressEventType.STATUS, message, ProgressStage.THINKING)

    def emit_researching(self, session_id: str, message: str = "Researching...") -> bool:
        return self._emit(session_id, ProgressEventType.STATUS, message, ProgressStage.RESEARCHING)

    def emit_writing(self, session_id: str, message: str = "Writing draft...") -> bool:
        return self._emit(session_id, ProgressEventType.STATUS, message, ProgressStage.WRITING)

    def emit_reviewing(self, session_id: str, message: str = "Reviewing content...") -> bool:
        return self._emit(session_id, ProgressEventType.STATUS, message, ProgressStage.REVIEWING)

    def emit_progress(self, session_id: str, progress: int, message: str) -> bool:
        return self._emit(session_id, ProgressEventType.PROGRESS, message, progress=progress)

    def emit_complete(self, session_id: str, message: str = "Complete!") -> bool:
        return self._emit(session_id, ProgressEventType.RESULT, message, ProgressStage.COMPLETE)

    def emit_error(self, session_id: str, message: str) -> bool:
        return self._emit(session_id, ProgressEventType.ERROR, message, ProgressStage.ERROR)


__all__ = ["DEFAULT_QUEUE_SIZE", "ProgressBus", "ProgressChannel"]
