"""
Connection Registry.

Maps live Socket.IO connections to authenticated users. Constructed once
in main.py, bound to the transport in the application lifespan, and passed
by reference to the notifier and the gateway.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from emergency_backend.app.models.enums import UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionIdentity:
    """Who is on the other end of a connection, as established at connect time."""
    user_id: int
    role: UserRole
    email: Optional[str] = None


class ConnectionRegistry:
    """
    Two maps, kept consistent:

    - socket id -> identity, filled when a connection authenticates
    - user id -> socket id, filled when that connection joins

    A user has at most one routed connection; a later join replaces the
    earlier one.
    """

    def __init__(self):
        self._transport: Any = None
        self._identities: Dict[str, ConnectionIdentity] = {}
        self._routes: Dict[int, str] = {}

    def init(self, transport: Any) -> None:
        """Bind the transport (an object exposing async `emit(event, data, to=sid)`)."""
        self._transport = transport
        logger.info("Connection registry bound to %s", type(transport).__name__)

    def teardown(self) -> None:
        """Drop the transport and every mapping."""
        self._transport = None
        self._identities.clear()
        self._routes.clear()
        logger.info("Connection registry torn down")

    @property
    def transport(self) -> Any:
        return self._transport

    @property
    def is_ready(self) -> bool:
        return self._transport is not None

    def authenticate(self, socket_id: str, identity: ConnectionIdentity) -> None:
        self._identities[socket_id] = identity

    def identity_for(self, socket_id: str) -> Optional[ConnectionIdentity]:
        return self._identities.get(socket_id)

    def join(self, socket_id: str) -> ConnectionIdentity:
        """
        Route the authenticated user of `socket_id` to this connection.

        Raises:
            KeyError: the connection never authenticated
        """
        identity = self._identities[socket_id]
        previous = self._routes.get(identity.user_id)
        if previous and previous != socket_id:
            logger.info("User %s moved from connection %s to %s", identity.user_id, previous, socket_id)
        self._routes[identity.user_id] = socket_id
        return identity

    def connection_for(self, user_id: int) -> Optional[str]:
        return self._routes.get(user_id)

    def remove(self, socket_id: str) -> Optional[ConnectionIdentity]:
        """
        Forget a connection (reverse lookup by socket id).

        Only drops the user's route if it still points at this connection.
        """
        identity = self._identities.pop(socket_id, None)
        if identity is not None and self._routes.get(identity.user_id) == socket_id:
            del self._routes[identity.user_id]
        return identity

    def __len__(self) -> int:
        return len(self._identities)
