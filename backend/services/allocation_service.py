"""Allocation state manager: request lifecycle and slot accounting."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Optional

from backend.domain.constraints import can_transition
from backend.domain.models import (
    AllocationRequest,
    AllocationState,
    RequestStatus,
    Room,
    RoomAvailability,
)
from backend.repository.state_repository import (
    PersistenceWriteError,
    StateRepository,
    default_state,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class AllocationError(Exception):
    """Base exception for allocation workflow failures."""


class AllocationValidationError(AllocationError):
    """Raised when submitted applicant input is missing or invalid."""


class RoomNotFoundError(AllocationError):
    """Raised when a room number does not match any room."""


class RoomFullError(AllocationError):
    """Raised when a room lacks the free slots a request needs."""


class RequestNotFoundError(AllocationError):
    """Raised when a request id is unknown."""


class InvariantViolationError(AllocationError):
    """Raised when an illegal status transition is attempted."""


def _new_request_id() -> str:
    return uuid.uuid4().hex


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(value: object, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise AllocationValidationError(message)
    return value.strip()


def _availability(room: Room) -> RoomAvailability:
    return RoomAvailability(room=room, free_slots=room.free_slots)


class AllocationStateManager:
    """Owns the allocation state and every mutation applied to it.

    Each mutation builds a new state value and swaps it in only after all
    checks pass, so a failed call leaves the state untouched. Successful
    mutations are written through to the repository; write failures are
    logged and do not undo the change.
    """

    def __init__(
        self,
        repository: Optional[StateRepository] = None,
        settings: Optional[Settings] = None,
        id_factory: Callable[[], str] = _new_request_id,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or StateRepository(self._settings)
        self._id_factory = id_factory
        self._clock = clock
        self._lock = RLock()
        self._state: Optional[AllocationState] = None

    def initialize(self) -> AllocationState:
        """Prepare storage and load the persisted (or seeded) state."""
        with self._lock:
            self._repository.initialize_database()
            self._state = self._repository.load()
            logger.info(
                "Allocation state loaded: %s rooms, %s requests",
                len(self._state.rooms),
                len(self._state.requests),
            )
            return self._state

    @property
    def state(self) -> AllocationState:
        return self._current_state()

    def _current_state(self) -> AllocationState:
        with self._lock:
            if self._state is None:
                return self.initialize()
            return self._state

    def _commit(self, state: AllocationState) -> None:
        self._state = state
        try:
            self._repository.save(state)
        except PersistenceWriteError:
            logger.exception("Failed to persist allocation state")

    def _replace_request(
        self,
        state: AllocationState,
        updated: AllocationRequest,
    ) -> tuple[AllocationRequest, ...]:
        return tuple(
            updated if item.request_id == updated.request_id else item
            for item in state.requests
        )

    def _get_request(self, state: AllocationState, request_id: str) -> AllocationRequest:
        request = state.find_request(request_id)
        if request is None:
            raise RequestNotFoundError(f"Request {request_id} not found")
        return request

    def submit_request(
        self,
        applicant_name: str,
        enrollment_id: str,
        contact: str,
        room_number: str,
        roommate_count: int,
    ) -> AllocationRequest:
        name = _require_text(applicant_name, "Please fill all fields.")
        enrollment = _require_text(enrollment_id, "Please fill all fields.")
        contact_value = _require_text(contact, "Please fill all fields.")
        if (
            isinstance(roommate_count, bool)
            or not isinstance(roommate_count, int)
            or roommate_count < 1
        ):
            raise AllocationValidationError("You must choose at least 1 roommate.")
        room_key = _require_text(room_number, "Please choose a room from the list.")
        occupant_count = self._settings.occupant_slots_per_request

        with self._lock:
            state = self._current_state()
            room = state.find_room(room_key)
            if room is None:
                raise RoomNotFoundError(f"Room {room_key} not found.")
            if room.free_slots < occupant_count:
                raise RoomFullError(f"Room {room_key} no longer has a free slot.")

            request = AllocationRequest(
                request_id=self._id_factory(),
                applicant_name=name,
                enrollment_id=enrollment,
                contact=contact_value,
                room_number=room_key,
                occupant_count=occupant_count,
                roommate_count=roommate_count,
                status=RequestStatus.PENDING,
                submitted_at=self._clock(),
            )
            if state.find_request(request.request_id) is not None:
                raise InvariantViolationError(
                    f"Request id {request.request_id} is already in use"
                )
            self._commit(replace(state, requests=state.requests + (request,)))

        logger.info("Request %s submitted for room %s", request.request_id, room_key)
        return request

    def approve_request(self, request_id: str) -> AllocationRequest:
        with self._lock:
            state = self._current_state()
            request = self._get_request(state, request_id)
            if not can_transition(request.status, RequestStatus.APPROVED):
                raise InvariantViolationError(
                    f"Request {request_id} is already {request.status.value}"
                )
            room = state.find_room(request.room_number)
            if room is None:
                raise RoomNotFoundError(f"Room {request.room_number} no longer exists.")
            if room.free_slots < request.occupant_count:
                raise RoomFullError(
                    f"Not enough free slots in room {room.number} to approve this request."
                )

            updated_room = replace(room, occupied=room.occupied + request.occupant_count)
            updated_request = replace(request, status=RequestStatus.APPROVED)
            rooms = tuple(
                updated_room if item.number == room.number else item
                for item in state.rooms
            )
            self._commit(
                replace(
                    state,
                    rooms=rooms,
                    requests=self._replace_request(state, updated_request),
                )
            )

        logger.info(
            "Request %s approved; room %s occupancy %s/%s",
            request_id,
            updated_room.number,
            updated_room.occupied,
            updated_room.capacity,
        )
        return updated_request

    def reject_request(self, request_id: str) -> AllocationRequest:
        with self._lock:
            state = self._current_state()
            request = self._get_request(state, request_id)
            if not can_transition(request.status, RequestStatus.REJECTED):
                if not self._settings.allow_reject_after_decision:
                    raise InvariantViolationError(
                        f"Request {request_id} is already {request.status.value}"
                    )
                logger.warning(
                    "Overwriting %s request %s with rejected; occupancy is not reversed",
                    request.status.value,
                    request_id,
                )

            updated_request = replace(request, status=RequestStatus.REJECTED)
            self._commit(
                replace(state, requests=self._replace_request(state, updated_request))
            )

        logger.info("Request %s rejected", request_id)
        return updated_request

    def get_request(self, request_id: str) -> AllocationRequest:
        return self._get_request(self._current_state(), request_id)

    def list_all_rooms(self) -> list[RoomAvailability]:
        return [_availability(room) for room in self._current_state().rooms]

    def list_available_rooms(self) -> list[RoomAvailability]:
        return [item for item in self.list_all_rooms() if item.free_slots > 0]

    def list_requests(self) -> list[AllocationRequest]:
        """Return requests newest first."""
        return list(reversed(self._current_state().requests))

    def reset_state(self) -> AllocationState:
        """Discard all requests and occupancy changes, restoring the seed rooms."""
        with self._lock:
            state = default_state()
            self._commit(state)
        logger.warning("Allocation state reset to default seed")
        return state
