"""WebSocket progress manager for real-time bulk job updates."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any
from uuid import uuid4

from fastapi import WebSocket

from shared.logging_utils import setup_logging

logger = setup_logging("websocket-progress")


class WebSocketProgressManager:
    """Track WebSocket clients and the bulk jobs they follow.

    The latest update of every job is remembered so a client subscribing to a
    job that is already running immediately receives its current state.
    """

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._subscribers: dict[str, set[str]] = defaultdict(set)
        self._subscriptions: dict[str, set[str]] = defaultdict(set)
        self._latest: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, client_id: str | None = None) -> str:
        """Accept WebSocket connection and register client."""
        client_key = client_id or str(uuid4())
        await websocket.accept()
        async with self._lock:
            self._connections[client_key] = websocket
        return client_key

    async def disconnect(self, client_id: str) -> None:
        """Remove client connection and subscriptions."""
        async with self._lock:
            websocket = self._connections.pop(client_id, None)
            for job_id in self._subscriptions.pop(client_id, set()):
                self._drop_subscriber(job_id, client_id)
        if websocket:
            await websocket.close()

    def _drop_subscriber(self, job_id: str, client_id: str) -> None:
        subscribers = self._subscribers.get(job_id)
        if subscribers is None:
            return
        subscribers.discard(client_id)
        if not subscribers:
            del self._subscribers[job_id]

    async def subscribe(self, client_id: str, job_id: str) -> dict[str, Any] | None:
        """Subscribe a client to a job and return the job's latest update, if any."""
        async with self._lock:
            if client_id not in self._connections:
                raise RuntimeError("Client not connected")
            self._subscribers[job_id].add(client_id)
            self._subscriptions[client_id].add(job_id)
            return self._latest.get(job_id)

    async def unsubscribe(self, client_id: str, job_id: str | None = None) -> None:
        """Unsubscribe a client from one job, or from every job when ``job_id`` is None."""
        async with self._lock:
            if client_id not in self._connections:
                return
            followed = self._subscriptions.get(client_id, set())
            job_ids = list(followed) if job_id is None else [job_id]
            for jid in job_ids:
                self._drop_subscriber(jid, client_id)
                followed.discard(jid)
            if not followed:
                self._subscriptions.pop(client_id, None)

    def subscriber_count(self, job_id: str) -> int:
        return len(self._subscribers.get(job_id, ()))

    async def send_progress_update(self, job_id: str, progress_data: dict[str, Any]) -> None:
        """Remember the update and push it to every subscriber of the job."""
        async with self._lock:
            self._latest[job_id] = progress_data
            recipients = [
                (client_id, self._connections[client_id])
                for client_id in self._subscribers.get(job_id, set())
                if client_id in self._connections
            ]

        for client_id, websocket in recipients:
            try:
                await websocket.send_json(progress_data)
            except Exception as exc:
                logger.warning(f"Dropping client {client_id} after failed send: {exc}")
                await self.disconnect(client_id)

    async def reset(self) -> None:
        """Clear all connections, subscriptions and cached updates (primarily for tests)."""
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
            self._subscribers.clear()
            self._subscriptions.clear()
            self._latest.clear()

        for websocket in connections:
            try:
                await websocket.close()
            except Exception as exc:
                logger.debug(f"Ignoring error while closing websocket: {exc}")


# Shared manager instance
websocket_manager = WebSocketProgressManager()
