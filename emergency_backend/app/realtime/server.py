"""
Socket.IO server wiring.

One AsyncServer, one ConnectionRegistry and one Notifier per process. The
registry is bound to the server in the application lifespan (main.py);
until then every push is dropped and logged.
"""

import socketio

from emergency_backend.app.core.config import settings
from emergency_backend.app.realtime.gateway import RealtimeGateway
from emergency_backend.app.realtime.notifier import Notifier
from emergency_backend.app.realtime.registry import ConnectionRegistry


def _cors_origins():
    origins = settings.socketio_cors_origins
    return "*" if origins == ["*"] else origins


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=_cors_origins(),
    logger=False,
    engineio_logger=False,
)

connection_registry = ConnectionRegistry()
notifier = Notifier(connection_registry)
gateway = RealtimeGateway(connection_registry, notifier)
gateway.attach(sio)


def get_notifier() -> Notifier:
    """FastAPI dependency for the process-wide notifier."""
    return notifier
