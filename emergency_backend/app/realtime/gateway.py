"""
Socket.IO gateway.

Event handlers for the real-time channel:

- connect:          authenticate the JWT passed in the handshake `auth`
- join:             route the user's id to this connection
- update-location:  driver pushes a position
- update-status:    driver advances their active request
- disconnect:       forget the connection

Identity and role always come from the handshake token and the users
table. Anything a client claims in an event body is only cross-checked.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import socketio
from fastapi import HTTPException
from pydantic import ValidationError

from emergency_backend.app.core.dependencies import authenticate_token
from emergency_backend.app.core.exceptions import AppException
from emergency_backend.app.db.session import AsyncSessionLocal
from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.realtime import events
from emergency_backend.app.realtime.notifier import Notifier
from emergency_backend.app.realtime.registry import ConnectionIdentity, ConnectionRegistry
from emergency_backend.app.services.dispatch_coordinator import DispatchCoordinator
from emergency_backend.app.services.driver_registry import DriverRegistry

logger = logging.getLogger(__name__)


class RealtimeGateway:
    def __init__(
        self,
        registry: ConnectionRegistry,
        notifier: Notifier,
        session_factory: Callable = AsyncSessionLocal,
    ):
        self.registry = registry
        self.notifier = notifier
        self.session_factory = session_factory

    def attach(self, sio: socketio.AsyncServer) -> None:
        sio.on("connect", self.on_connect)
        sio.on(events.JOIN, self.on_join)
        sio.on(events.UPDATE_LOCATION, self.on_update_location)
        sio.on(events.UPDATE_STATUS, self.on_update_status)
        sio.on("disconnect", self.on_disconnect)

    async def on_connect(self, sid: str, environ: Dict[str, Any], auth: Optional[Dict[str, Any]] = None) -> None:
        token = (auth or {}).get("token")
        if not token:
            raise socketio.exceptions.ConnectionRefusedError("Authentication required")

        async with self.session_factory() as db:
            try:
                user = await authenticate_token(token, db)
            except HTTPException as exc:
                logger.info("Rejected connection %s: %s", sid, exc.detail)
                raise socketio.exceptions.ConnectionRefusedError(exc.detail)

        self.registry.authenticate(
            sid,
            ConnectionIdentity(user_id=user["user_id"], role=UserRole(user["role"]), email=user["sub"]),
        )
        logger.info("Connection %s authenticated as user %s (%s)", sid, user["user_id"], user["role"])

    async def on_join(self, sid: str, data: Any = None) -> None:
        async def handle(identity: ConnectionIdentity):
            event = events.JoinEvent.model_validate(data or {})
            if event.user_id is not None and event.user_id != identity.user_id:
                await self._error(sid, "userId does not match the authenticated user")
                return
            if event.user_type and event.user_type.upper() != identity.role.value:
                logger.warning(
                    "Connection %s claimed userType=%s, stored role is %s; using stored role",
                    sid, event.user_type, identity.role.value
                )

            self.registry.join(sid)
            if identity.role == UserRole.DRIVER:
                async with self.session_factory() as db:
                    await DriverRegistry(db).set_connection(identity.user_id, sid)
            logger.info("User %s joined on %s", identity.user_id, sid)

        await self._dispatch(sid, handle)

    async def on_update_location(self, sid: str, data: Any = None) -> None:
        async def handle(identity: ConnectionIdentity):
            if not await self._require_driver(sid, identity):
                return
            payload = events.LocationUpdateEvent.model_validate(data or {})
            if payload.driver_id is not None and payload.driver_id != identity.user_id:
                await self._error(sid, "driverId does not match the authenticated driver")
                return

            async with self.session_factory() as db:
                await DispatchCoordinator(db, self.notifier).update_location(
                    identity.user_id, payload.location.latitude, payload.location.longitude
                )

        await self._dispatch(sid, handle)

    async def on_update_status(self, sid: str, data: Any = None) -> None:
        async def handle(identity: ConnectionIdentity):
            if not await self._require_driver(sid, identity):
                return
            payload = events.StatusUpdateEvent.model_validate(data or {})
            if payload.driver_id is not None and payload.driver_id != identity.user_id:
                await self._error(sid, "driverId does not match the authenticated driver")
                return

            async with self.session_factory() as db:
                driver = await DriverRegistry(db).get_driver(identity.user_id)
                if driver.current_request_id is None:
                    await self._error(sid, "No active request")
                    return
                await DispatchCoordinator(db, self.notifier).update_status(
                    self._actor(identity),
                    driver.current_request_id,
                    payload.status,
                    event=events.DRIVER_STATUS_UPDATE,
                )

        await self._dispatch(sid, handle)

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        identity = self.registry.remove(sid)
        if identity is None:
            return

        if identity.role == UserRole.DRIVER:
            async with self.session_factory() as db:
                await DriverRegistry(db).clear_connection(sid)
        logger.info("User %s disconnected from %s (%s)", identity.user_id, sid, reason)

    async def _dispatch(self, sid: str, handler: Callable[[ConnectionIdentity], Awaitable[None]]) -> None:
        """Run an event handler for an authenticated connection, reporting failures as `error`."""
        identity = self.registry.identity_for(sid)
        if identity is None:
            await self._error(sid, "Not authenticated")
            return

        try:
            await handler(identity)
        except AppException as exc:
            await self._error(sid, exc.message)
        except ValidationError as exc:
            await self._error(sid, f"Invalid payload: {exc.errors()[0]['msg']}")
        except Exception:
            logger.exception("Socket handler failed for %s", sid)
            await self._error(sid, "Internal error")

    async def _require_driver(self, sid: str, identity: ConnectionIdentity) -> bool:
        if identity.role != UserRole.DRIVER:
            await self._error(sid, "Only drivers can send this event")
            return False
        return True

    async def _error(self, sid: str, message: str) -> None:
        await self.notifier.send(sid, events.ERROR, events.ErrorEvent(message=message))

    @staticmethod
    def _actor(identity: ConnectionIdentity) -> Dict[str, Any]:
        return {"user_id": identity.user_id, "sub": identity.email, "role": identity.role.value}
