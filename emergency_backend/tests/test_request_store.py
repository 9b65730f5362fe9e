"""
Request Store tests.

Exercises the persistence layer directly: fare derivation, validation,
the transition table and the compare-and-swap claim.
"""

import pytest

from emergency_backend.app.core.exceptions import (
    ConflictError, InvalidTransitionError, ResourceNotFoundError, ValidationFailedError
)
from emergency_backend.app.models.user import User
from emergency_backend.app.models.driver import Driver
from emergency_backend.app.models.ambulance import Ambulance
from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.models.dispatch_enums import (
    VehicleType, RequestStatus, PaymentStatus, STATUS_TRANSITIONS, is_legal_transition
)
from emergency_backend.app.services.request_store import Location, RequestStore

PICKUP = Location(latitude=12.97, longitude=77.59, address="MG Road")
DESTINATION = Location(latitude=12.93, longitude=77.62, address="City Hospital")


async def _make_patient(db, email="p@test.com") -> User:
    user = User(email=email, full_name="Patient", phone="900", hashed_password="x", role=UserRole.PATIENT)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def _make_driver(db, email="d@test.com", vehicle_type=VehicleType.ICU, plate="P-1"):
    user = User(email=email, full_name="Driver", phone="901", hashed_password="x", role=UserRole.DRIVER)
    db.add(user)
    await db.flush()
    db.add(Driver(id=user.id, license_number=f"L-{plate}"))
    await db.flush()
    ambulance = Ambulance(driver_id=user.id, vehicle_type=vehicle_type, vehicle_name="Unit", plate_number=plate)
    db.add(ambulance)
    await db.commit()
    return user, ambulance


@pytest.mark.asyncio
@pytest.mark.parametrize("vehicle_type,amount", [("AC", 1000), ("ICU", 2000), ("VIP", 3000)])
async def test_amount_follows_vehicle_type(db_session, vehicle_type, amount):
    patient = await _make_patient(db_session)
    request = await RequestStore(db_session).create(
        patient.id, PICKUP, DESTINATION, vehicle_type, "trauma", notes="large note " * 10
    )
    assert request.amount == amount
    assert request.status == RequestStatus.PENDING
    assert request.payment_status == PaymentStatus.PENDING
    assert request.driver_id is None


@pytest.mark.asyncio
async def test_unknown_vehicle_type_rejected(db_session):
    patient = await _make_patient(db_session)
    with pytest.raises(ValidationFailedError) as exc:
        await RequestStore(db_session).create(patient.id, PICKUP, DESTINATION, "SUV", "trauma")
    assert exc.value.details == {"field": "vehicle_type"}


@pytest.mark.asyncio
async def test_missing_fields_rejected(db_session):
    patient = await _make_patient(db_session)
    store = RequestStore(db_session)

    with pytest.raises(ValidationFailedError):
        await store.create(patient.id, None, DESTINATION, "AC", "trauma")
    with pytest.raises(ValidationFailedError):
        await store.create(patient.id, PICKUP, Location(12.9, 77.6, "  "), "AC", "trauma")
    with pytest.raises(ValidationFailedError):
        await store.create(patient.id, PICKUP, DESTINATION, "AC", "")


def test_transition_table_is_a_single_chain_plus_cancel():
    chain = [
        RequestStatus.PENDING, RequestStatus.ACCEPTED, RequestStatus.ON_THE_WAY,
        RequestStatus.NEARBY, RequestStatus.ARRIVED, RequestStatus.COMPLETED,
    ]
    for current, nxt in zip(chain, chain[1:]):
        assert is_legal_transition(current, nxt)

    allowed_pairs = {(c, n) for c, targets in STATUS_TRANSITIONS.items() for n in targets}
    expected = set(zip(chain, chain[1:])) | {
        (RequestStatus.PENDING, RequestStatus.CANCELLED),
        (RequestStatus.ACCEPTED, RequestStatus.CANCELLED),
    }
    assert allowed_pairs == expected


@pytest.mark.asyncio
async def test_assign_is_compare_and_swap(db_session):
    patient = await _make_patient(db_session)
    d1, a1 = await _make_driver(db_session, "d1@test.com", plate="P-1")
    d2, a2 = await _make_driver(db_session, "d2@test.com", plate="P-2")
    d1_id, d2_id, a2_id = d1.id, d2.id, a2.id
    store = RequestStore(db_session)
    request = await store.create(patient.id, PICKUP, DESTINATION, "ICU", "trauma")
    request_id = request.id

    claimed = await store.assign(request_id, d1_id, a1.id)
    assert claimed.status == RequestStatus.ACCEPTED
    assert claimed.driver_id == d1_id
    assert claimed.accepted_at is not None

    # the losing claim rolls back, which expires loaded instances
    with pytest.raises(ConflictError) as exc:
        await store.assign(request_id, d2_id, a2_id)
    assert exc.value.message == "Request is no longer available"

    reloaded = await store.get(request_id)
    assert reloaded.driver_id == d1_id


@pytest.mark.asyncio
async def test_assign_unknown_request(db_session):
    d1, a1 = await _make_driver(db_session)
    with pytest.raises(ResourceNotFoundError):
        await RequestStore(db_session).assign(999, d1.id, a1.id)


@pytest.mark.asyncio
async def test_illegal_transitions(db_session):
    patient = await _make_patient(db_session)
    d1, a1 = await _make_driver(db_session)
    store = RequestStore(db_session)
    request = await store.create(patient.id, PICKUP, DESTINATION, "ICU", "trauma")

    with pytest.raises(InvalidTransitionError):
        await store.update_status(request.id, "completed")

    # accepted is only reachable through assign
    with pytest.raises(InvalidTransitionError):
        await store.update_status(request.id, "accepted")

    await store.assign(request.id, d1.id, a1.id)
    with pytest.raises(InvalidTransitionError) as exc:
        await store.update_status(request.id, RequestStatus.ARRIVED)
    assert exc.value.details == {"current": "accepted", "requested": "arrived"}

    with pytest.raises(ValidationFailedError):
        await store.update_status(request.id, "teleported")


@pytest.mark.asyncio
async def test_full_lifecycle_and_terminal_state(db_session):
    patient = await _make_patient(db_session)
    d1, a1 = await _make_driver(db_session)
    store = RequestStore(db_session)
    request = await store.create(patient.id, PICKUP, DESTINATION, "ICU", "trauma")
    await store.assign(request.id, d1.id, a1.id)

    for status in ("on_the_way", "nearby", "arrived", "completed"):
        request = await store.update_status(request.id, status)
        assert request.status.value == status

    assert request.completed_at is not None
    assert request.driver_id == d1.id

    for status in ("cancelled", "on_the_way", "pending"):
        with pytest.raises(InvalidTransitionError):
            await store.update_status(request.id, status)


@pytest.mark.asyncio
async def test_cancel_detaches_driver(db_session):
    patient = await _make_patient(db_session)
    d1, a1 = await _make_driver(db_session)
    store = RequestStore(db_session)
    request = await store.create(patient.id, PICKUP, DESTINATION, "ICU", "trauma")
    await store.assign(request.id, d1.id, a1.id)

    request = await store.update_status(request.id, "cancelled")
    assert request.status == RequestStatus.CANCELLED
    assert request.driver_id is None
    assert request.ambulance_id is None
    assert request.cancelled_at is not None


@pytest.mark.asyncio
async def test_mark_paid_is_idempotent(db_session):
    patient = await _make_patient(db_session)
    store = RequestStore(db_session)
    request = await store.create(patient.id, PICKUP, DESTINATION, "AC", "fall")

    await store.mark_paid(request.id)
    request = await store.mark_paid(request.id)
    assert request.payment_status == PaymentStatus.COMPLETED
    assert request.amount == 1000


@pytest.mark.asyncio
async def test_history_pagination(db_session):
    patient = await _make_patient(db_session)
    other = await _make_patient(db_session, email="other@test.com")
    store = RequestStore(db_session)
    created = [
        await store.create(patient.id, PICKUP, DESTINATION, "AC", f"case {i}") for i in range(5)
    ]
    await store.create(other.id, PICKUP, DESTINATION, "AC", "not mine")

    first = await store.history_for(patient.id, UserRole.PATIENT, page=1, limit=2)
    assert first.total == 5
    assert first.total_pages == 3
    assert first.has_next_page is True
    assert first.has_prev_page is False
    assert [r.id for r in first.items] == [created[4].id, created[3].id]

    last = await store.history_for(patient.id, UserRole.PATIENT, page=3, limit=2)
    assert [r.id for r in last.items] == [created[0].id]
    assert last.has_next_page is False
    assert last.has_prev_page is True
