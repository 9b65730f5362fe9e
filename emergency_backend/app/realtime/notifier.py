"""
Real-Time Notifier.

Fire-and-forget delivery of dispatch events. A failed push is logged and
reported as False; it never raises into the operation that triggered it,
and nothing is queued or replayed for offline recipients.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Union

from emergency_backend.app.core.exceptions import TransportUnavailableError
from emergency_backend.app.realtime.events import WireModel
from emergency_backend.app.realtime.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

Payload = Union[WireModel, Dict[str, Any]]


class Notifier:
    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    async def send(self, socket_id: Optional[str], event: str, payload: Payload) -> bool:
        """
        Emit `event` to one connection.

        Returns:
            True if handed to the transport, False otherwise
        """
        try:
            await self._emit(socket_id, event, payload)
            return True
        except TransportUnavailableError as exc:
            logger.info("Dropped '%s' for %s: %s", event, socket_id, exc.message)
            return False

    async def notify_user(self, user_id: int, event: str, payload: Payload) -> bool:
        """Emit to a user's routed connection, if they have one."""
        socket_id = self.registry.connection_for(user_id)
        if socket_id is None:
            logger.info("Dropped '%s' for user %s: not connected", event, user_id)
            return False
        return await self.send(socket_id, event, payload)

    async def broadcast(self, socket_ids: Iterable[Optional[str]], event: str, payload: Payload) -> int:
        """Emit the same payload to several connections; returns how many were handed off."""
        delivered = 0
        for socket_id in socket_ids:
            if socket_id and await self.send(socket_id, event, payload):
                delivered += 1
        return delivered

    async def _emit(self, socket_id: Optional[str], event: str, payload: Payload) -> None:
        if not self.registry.is_ready:
            raise TransportUnavailableError("Socket.IO not initialized")
        if not socket_id:
            raise TransportUnavailableError("No connection id")

        data = payload.to_wire() if isinstance(payload, WireModel) else payload
        try:
            await self.registry.transport.emit(event, data, to=socket_id)
        except Exception as exc:
            logger.warning("Emit of '%s' to %s failed", event, socket_id, exc_info=True)
            raise TransportUnavailableError(str(exc)) from exc
