"""
Real-time channel tests.

Covers the connection registry, best-effort delivery in the notifier, and
the Socket.IO gateway handlers (called directly, with a recording transport
standing in for the server).
"""

import pytest
from socketio.exceptions import ConnectionRefusedError as SocketRefused

from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.realtime import events
from emergency_backend.app.realtime.notifier import Notifier
from emergency_backend.app.realtime.registry import ConnectionIdentity, ConnectionRegistry
from emergency_backend.app.services.driver_registry import DriverRegistry
from conftest import FakeTransport, auth_headers, connect, create_request, register_driver, register_patient


# --- Connection registry ---

def test_registry_routes_latest_join():
    registry = ConnectionRegistry()
    registry.authenticate("a", ConnectionIdentity(user_id=1, role=UserRole.PATIENT))
    registry.authenticate("b", ConnectionIdentity(user_id=1, role=UserRole.PATIENT))

    registry.join("a")
    registry.join("b")
    assert registry.connection_for(1) == "b"

    # dropping the stale connection keeps the live route
    registry.remove("a")
    assert registry.connection_for(1) == "b"

    assert registry.remove("b").user_id == 1
    assert registry.connection_for(1) is None
    assert len(registry) == 0


def test_registry_join_requires_authentication():
    with pytest.raises(KeyError):
        ConnectionRegistry().join("nobody")


def test_registry_teardown_clears_everything():
    registry = ConnectionRegistry()
    registry.init(FakeTransport())
    registry.authenticate("a", ConnectionIdentity(user_id=1, role=UserRole.DRIVER))
    registry.join("a")

    registry.teardown()
    assert registry.is_ready is False
    assert registry.connection_for(1) is None
    assert registry.identity_for("a") is None


# --- Notifier ---

@pytest.mark.asyncio
async def test_send_without_transport_returns_false():
    notifier = Notifier(ConnectionRegistry())
    assert await notifier.send("sid", events.ERROR, {"message": "x"}) is False


@pytest.mark.asyncio
async def test_send_swallows_transport_failure():
    registry = ConnectionRegistry()
    fake = FakeTransport()
    fake.fail = True
    registry.init(fake)

    delivered = await Notifier(registry).send("sid", events.ERROR, events.ErrorEvent(message="boom"))
    assert delivered is False


@pytest.mark.asyncio
async def test_send_serializes_camel_case():
    registry = ConnectionRegistry()
    fake = FakeTransport()
    registry.init(fake)

    payload = events.DriverLocationEvent(request_id=5, location=events.GeoPoint(latitude=1.5, longitude=2.5))
    assert await Notifier(registry).send("sid-1", events.DRIVER_LOCATION_UPDATE, payload) is True

    name, data, to = fake.emitted[0]
    assert (name, to) == ("driver-location-update", "sid-1")
    assert data["requestId"] == 5
    assert data["location"] == {"latitude": 1.5, "longitude": 2.5}


@pytest.mark.asyncio
async def test_notify_user_and_broadcast():
    registry = ConnectionRegistry()
    fake = FakeTransport()
    registry.init(fake)
    notifier = Notifier(registry)

    assert await notifier.notify_user(9, events.ERROR, {"message": "x"}) is False

    registry.authenticate("s9", ConnectionIdentity(user_id=9, role=UserRole.PATIENT))
    registry.join("s9")
    assert await notifier.notify_user(9, events.ERROR, {"message": "x"}) is True

    assert await notifier.broadcast(["s1", None, "s2"], events.ERROR, {"message": "y"}) == 2


# --- Gateway ---

@pytest.mark.asyncio
async def test_connect_requires_valid_token(gateway, transport):
    with pytest.raises(SocketRefused):
        await gateway.on_connect("sid-x", {}, None)
    with pytest.raises(SocketRefused):
        await gateway.on_connect("sid-x", {}, {"token": "not-a-jwt"})


@pytest.mark.asyncio
async def test_connect_uses_stored_role(client, gateway, transport, registry):
    patient = await register_patient(client)

    # client claims to be a driver; stored role wins
    await connect(gateway, "sid-p", patient["access_token"], userId=patient["user_id"], userType="driver")

    identity = registry.identity_for("sid-p")
    assert identity.role == UserRole.PATIENT
    assert registry.connection_for(patient["user_id"]) == "sid-p"
    assert transport.events_for("sid-p", events.ERROR) == []


@pytest.mark.asyncio
async def test_join_with_someone_elses_id_is_refused(client, gateway, transport, registry):
    patient = await register_patient(client)
    await gateway.on_connect("sid-p", {}, {"token": patient["access_token"]})

    await gateway.on_join("sid-p", {"userId": patient["user_id"] + 100, "userType": "patient"})

    assert registry.connection_for(patient["user_id"]) is None
    errors = transport.events_for("sid-p", events.ERROR)
    assert errors[0][1]["message"] == "userId does not match the authenticated user"


@pytest.mark.asyncio
async def test_events_from_unauthenticated_connection(gateway, transport):
    await gateway.on_join("ghost", {"userId": 1})
    assert transport.events_for("ghost", events.ERROR)[0][1]["message"] == "Not authenticated"


@pytest.mark.asyncio
async def test_driver_join_and_disconnect_maintain_socket_id(client, gateway, transport, registry, db_session):
    driver = await register_driver(client)
    await connect(gateway, "sid-d", driver["access_token"])

    profile = await client.get("/v1/driver/profile", headers=auth_headers(driver["access_token"]))
    assert profile.json()["data"]["connected"] is True

    await gateway.on_disconnect("sid-d", "client disconnect")

    assert registry.identity_for("sid-d") is None
    assert registry.connection_for(driver["user_id"]) is None
    stored = await DriverRegistry(db_session).get_driver(driver["user_id"])
    assert stored.socket_id is None


@pytest.mark.asyncio
async def test_location_update_reaches_patient(client, gateway, transport, db_session):
    patient = await register_patient(client)
    driver = await register_driver(client)
    await connect(gateway, "sid-p", patient["access_token"])
    await connect(gateway, "sid-d", driver["access_token"])

    request = await create_request(client, patient["access_token"])
    await client.post(
        f"/v1/emergency/request/{request['id']}/accept", headers=auth_headers(driver["access_token"])
    )

    await gateway.on_update_location("sid-d", {
        "driverId": driver["user_id"],
        "location": {"latitude": 12.95, "longitude": 77.61},
    })

    pushes = transport.events_for("sid-p", events.DRIVER_LOCATION_UPDATE)
    assert len(pushes) == 1
    assert pushes[0][1]["requestId"] == request["id"]
    assert pushes[0][1]["location"] == {"latitude": 12.95, "longitude": 77.61}

    ambulance = await DriverRegistry(db_session).get_ambulance_for(driver["user_id"])
    assert (ambulance.current_latitude, ambulance.current_longitude) == (12.95, 77.61)


@pytest.mark.asyncio
async def test_idle_driver_location_is_stored_not_pushed(client, gateway, transport):
    patient = await register_patient(client)
    driver = await register_driver(client)
    await connect(gateway, "sid-p", patient["access_token"])
    await connect(gateway, "sid-d", driver["access_token"])

    await gateway.on_update_location("sid-d", {"location": {"latitude": 10.0, "longitude": 20.0}})

    assert transport.events_for("sid-p", events.DRIVER_LOCATION_UPDATE) == []
    assert transport.events_for("sid-d", events.ERROR) == []


@pytest.mark.asyncio
async def test_location_update_rejected_for_patients_and_bad_payloads(client, gateway, transport):
    patient = await register_patient(client)
    driver = await register_driver(client)
    await connect(gateway, "sid-p", patient["access_token"])
    await connect(gateway, "sid-d", driver["access_token"])

    await gateway.on_update_location("sid-p", {"location": {"latitude": 1, "longitude": 1}})
    assert transport.events_for("sid-p", events.ERROR)[0][1]["message"] == "Only drivers can send this event"

    await gateway.on_update_location("sid-d", {"location": {"latitude": 123, "longitude": 1}})
    assert transport.events_for("sid-d", events.ERROR)[0][1]["message"].startswith("Invalid payload")


@pytest.mark.asyncio
async def test_status_over_socket_notifies_with_driver_status_event(client, gateway, transport):
    patient = await register_patient(client)
    driver = await register_driver(client)
    await connect(gateway, "sid-p", patient["access_token"])
    await connect(gateway, "sid-d", driver["access_token"])

    await gateway.on_update_status("sid-d", {"status": "on_the_way"})
    assert transport.events_for("sid-d", events.ERROR)[0][1]["message"] == "No active request"

    request = await create_request(client, patient["access_token"])
    await client.post(
        f"/v1/emergency/request/{request['id']}/accept", headers=auth_headers(driver["access_token"])
    )

    await gateway.on_update_status("sid-d", {"driverId": driver["user_id"], "status": "on_the_way"})
    pushes = transport.events_for("sid-p", events.DRIVER_STATUS_UPDATE)
    assert [p["status"] for _, p in pushes] == ["on_the_way"]
    assert transport.events_for("sid-p", events.REQUEST_STATUS_UPDATE) == []

    await gateway.on_update_status("sid-d", {"status": "completed"})
    last_error = transport.events_for("sid-d", events.ERROR)[-1][1]["message"]
    assert last_error == "Cannot change status from 'on_the_way' to 'completed'"
