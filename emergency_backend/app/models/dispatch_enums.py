"""
Dispatch-related enumerations.

Vehicle classes, request lifecycle states, and the transition table that
governs which status changes are legal.
"""

import enum
from typing import Dict, FrozenSet


class VehicleType(str, enum.Enum):
    """Ambulance class requested by the patient."""
    AC = "AC"
    ICU = "ICU"
    VIP = "VIP"


class RequestStatus(str, enum.Enum):
    """Emergency request status enumeration."""
    PENDING = "pending"  # Waiting for a driver to claim it
    ACCEPTED = "accepted"  # Claimed, driver not yet moving
    ON_THE_WAY = "on_the_way"
    NEARBY = "nearby"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    """Payment status enumeration."""
    PENDING = "pending"
    COMPLETED = "completed"


# Static fare table, currency-agnostic units
VEHICLE_BASE_AMOUNT: Dict[VehicleType, int] = {
    VehicleType.AC: 1000,
    VehicleType.ICU: 2000,
    VehicleType.VIP: 3000,
}


STATUS_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.ACCEPTED, RequestStatus.CANCELLED}),
    RequestStatus.ACCEPTED: frozenset({RequestStatus.ON_THE_WAY, RequestStatus.CANCELLED}),
    RequestStatus.ON_THE_WAY: frozenset({RequestStatus.NEARBY}),
    RequestStatus.NEARBY: frozenset({RequestStatus.ARRIVED}),
    RequestStatus.ARRIVED: frozenset({RequestStatus.COMPLETED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
}

# States in which a driver and ambulance are attached to the request
ASSIGNED_STATUSES: FrozenSet[RequestStatus] = frozenset({
    RequestStatus.ACCEPTED,
    RequestStatus.ON_THE_WAY,
    RequestStatus.NEARBY,
    RequestStatus.ARRIVED,
    RequestStatus.COMPLETED,
})

# States that release the driver back into the available pool
RELEASING_STATUSES: FrozenSet[RequestStatus] = frozenset({
    RequestStatus.COMPLETED,
    RequestStatus.CANCELLED,
})


def is_legal_transition(current: RequestStatus, new: RequestStatus) -> bool:
    """Return True if `new` may directly follow `current`."""
    return new in STATUS_TRANSITIONS[current]
