"""Domain-level invariants for rooms, requests, and status transitions."""

from __future__ import annotations

from collections import Counter, defaultdict

from backend.domain.models import AllocationState, RequestStatus, Room


ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED}),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    if current.is_terminal:
        return False
    return target in ALLOWED_TRANSITIONS[current]


def validate_room(room: Room) -> None:
    if not room.number.strip():
        raise ValueError("room number must be non-empty")
    if room.capacity < 0:
        raise ValueError(f"room {room.number} capacity must be >= 0")
    if not 0 <= room.occupied <= room.capacity:
        raise ValueError(
            f"room {room.number} occupied must be between 0 and capacity {room.capacity}"
        )


def validate_state(state: AllocationState) -> None:
    """Raise ValueError when the state breaks any structural invariant.

    Requests may point at rooms that no longer exist; that is reported by the
    operations that touch them, not here.
    """
    room_counts = Counter(room.number for room in state.rooms)
    duplicates = sorted(number for number, count in room_counts.items() if count > 1)
    if duplicates:
        raise ValueError(f"duplicate room numbers: {', '.join(duplicates)}")
    for room in state.rooms:
        validate_room(room)

    request_counts = Counter(request.request_id for request in state.requests)
    duplicate_ids = sorted(rid for rid, count in request_counts.items() if count > 1)
    if duplicate_ids:
        raise ValueError(f"duplicate request ids: {', '.join(duplicate_ids)}")

    approved_load: dict[str, int] = defaultdict(int)
    for request in state.requests:
        if request.occupant_count < 1:
            raise ValueError(f"request {request.request_id} occupant_count must be >= 1")
        if request.roommate_count < 1:
            raise ValueError(f"request {request.request_id} roommate_count must be >= 1")
        if request.status is RequestStatus.APPROVED:
            approved_load[request.room_number] += request.occupant_count

    # Seeded occupancy is not attributed to any request, so approvals can only
    # account for part of `occupied`.
    for room in state.rooms:
        if approved_load.get(room.number, 0) > room.occupied:
            raise ValueError(
                f"room {room.number} has more approved slots than recorded occupancy"
            )
