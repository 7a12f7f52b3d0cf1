"""Domain models for hostel room allocation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


@dataclass(frozen=True)
class Room:
    number: str
    capacity: int
    occupied: int

    @property
    def free_slots(self) -> int:
        return max(0, self.capacity - self.occupied)


@dataclass(frozen=True)
class AllocationRequest:
    request_id: str
    applicant_name: str
    enrollment_id: str
    contact: str
    room_number: str
    occupant_count: int
    roommate_count: int
    status: RequestStatus
    submitted_at: datetime


@dataclass(frozen=True)
class RoomAvailability:
    room: Room
    free_slots: int


@dataclass(frozen=True)
class AllocationState:
    """Canonical record of rooms and requests, replaced wholesale on every change."""

    rooms: tuple[Room, ...]
    requests: tuple[AllocationRequest, ...] = ()

    def find_room(self, number: str) -> Optional[Room]:
        for room in self.rooms:
            if room.number == number:
                return room
        return None

    def find_request(self, request_id: str) -> Optional[AllocationRequest]:
        for request in self.requests:
            if request.request_id == request_id:
                return request
        return None
