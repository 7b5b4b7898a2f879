"""
Real-time fan-out channel.

Handlers push named events through ``EventChannel.emit``; every connected
WebSocket client receives them as ``{"event": <name>, "data": <payload>}``.
A client authenticated as a user also sits in that user's room, which is how
recipient-scoped events (notifications) reach only their addressee.

``emit`` is fire-and-forget. It is safe to call from synchronous handlers
running in the threadpool: messages are handed to each subscriber's event
loop with ``call_soon_threadsafe`` and written to the socket by a per-socket
pump task. Delivery problems are logged and never raised to the caller.
"""

import asyncio
import logging
import threading
from typing import Any, Optional
from uuid import UUID

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

NEW_POST = "newPost"
POST_UPDATED = "postUpdated"
POST_DELETED = "postDeleted"
RECIPE_UPDATED = "recipeUpdated"
NEW_NOTIFICATION = "newNotification"

# Pending messages per socket; a client that falls further behind loses events
SUBSCRIBER_QUEUE_SIZE = 100


class Subscriber:
    def __init__(
        self,
        room: Optional[UUID],
        loop: asyncio.AbstractEventLoop,
        maxsize: int = SUBSCRIBER_QUEUE_SIZE,
    ):
        self.room = room
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def offer(self, message: dict) -> None:
        """Runs on the subscriber's loop. Drops the message if the queue is full."""
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Subscriber (room={self.room}) is lagging, dropping {message['event']}")


class EventChannel:
    def __init__(self):
        self._subscribers: set[Subscriber] = set()
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, room: Optional[UUID] = None) -> Subscriber:
        """Must be called from the event loop that will serve the socket."""
        subscriber = Subscriber(room, asyncio.get_running_loop())
        with self._lock:
            self._subscribers.add(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.discard(subscriber)

    def emit(self, event: str, payload: Any, room: Optional[UUID] = None) -> None:
        """
        Queue ``event`` for every subscriber, or only those in ``room``.
        """
        try:
            message = self._encode(event, payload)
            with self._lock:
                targets = [s for s in self._subscribers if room is None or s.room == room]
            for subscriber in targets:
                self._deliver(subscriber, message)
            logger.debug(f"Emitted {event} to {len(targets)} subscriber(s)")
        except Exception:
            logger.exception(f"Failed to emit {event}")

    def _encode(self, event: str, payload: Any) -> dict:
        return {"event": event, "data": jsonable_encoder(payload)}

    def _deliver(self, subscriber: Subscriber, message: dict) -> None:
        try:
            subscriber.loop.call_soon_threadsafe(subscriber.offer, message)
        except RuntimeError:
            # The subscriber's loop has shut down underneath us
            logger.warning("Dropping subscriber with a closed event loop")
            self.unsubscribe(subscriber)

    async def serve(self, websocket: WebSocket, room: Optional[UUID] = None) -> None:
        """
        Run one client connection until it disconnects. Subscription happens
        before the handshake completes, so nothing emitted after ``accept``
        is missed.
        """
        subscriber = self.subscribe(room)
        try:
            await websocket.accept()
            logger.info(f"Client connected (room={room})")
            pump = asyncio.create_task(self._pump(websocket, subscriber))
            try:
                while True:
                    message = await websocket.receive()
                    if message["type"] == "websocket.disconnect":
                        break
            finally:
                pump.cancel()
            logger.info(f"Client disconnected (room={room})")
        finally:
            self.unsubscribe(subscriber)

    async def _pump(self, websocket: WebSocket, subscriber: Subscriber) -> None:
        while True:
            message = await subscriber.queue.get()
            try:
                await websocket.send_json(message)
            except Exception:
                logger.debug("Send failed, stopping pump", exc_info=True)
                return
