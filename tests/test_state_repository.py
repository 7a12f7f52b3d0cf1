from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from backend.domain.models import AllocationRequest, AllocationState, RequestStatus, Room
from backend.repository.state_repository import (
    PersistenceCorruptError,
    PersistenceWriteError,
    StateRepository,
    default_state,
)
from backend.utils.config import get_settings


def _build_repository(tmp_path, filename: str = "state.db") -> StateRepository:
    settings = replace(get_settings(), database_path=tmp_path / filename)
    repository = StateRepository(settings)
    repository.initialize_database()
    return repository


def _populated_state() -> AllocationState:
    submitted_at = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)
    return AllocationState(
        rooms=(
            Room("101", 2, 1),
            Room("102", 3, 0),
        ),
        requests=(
            AllocationRequest(
                request_id="a1",
                applicant_name="Alice",
                enrollment_id="E1",
                contact="alice@example.com",
                room_number="101",
                occupant_count=1,
                roommate_count=2,
                status=RequestStatus.APPROVED,
                submitted_at=submitted_at,
            ),
            AllocationRequest(
                request_id="b2",
                applicant_name="Bob",
                enrollment_id="E2",
                contact="555-0100",
                room_number="102",
                occupant_count=1,
                roommate_count=1,
                status=RequestStatus.REJECTED,
                submitted_at=submitted_at,
            ),
            AllocationRequest(
                request_id="c3",
                applicant_name="Chidi",
                enrollment_id="E3",
                contact="chidi@example.com",
                room_number="102",
                occupant_count=1,
                roommate_count=3,
                status=RequestStatus.PENDING,
                submitted_at=submitted_at,
            ),
        ),
    )


def test_default_state_matches_seed_rooms():
    state = default_state()

    assert [room.number for room in state.rooms] == [
        "101", "102", "103", "104", "105", "106", "107",
    ]
    assert [room.capacity for room in state.rooms] == [2, 2, 3, 3, 2, 3, 2]
    assert [room.occupied for room in state.rooms] == [0, 0, 0, 1, 2, 0, 0]
    assert state.requests == ()


def test_load_without_stored_state_seeds_and_persists_default(tmp_path):
    repository = _build_repository(tmp_path)

    assert repository.read_payload() is None
    assert repository.load() == default_state()
    assert repository.read_payload() is not None
    assert repository.diagnostics == []


def test_save_then_load_round_trips(tmp_path):
    repository = _build_repository(tmp_path)
    state = _populated_state()

    repository.save(state)

    assert repository.load() == state


def test_round_trip_survives_new_repository_instance(tmp_path):
    first = _build_repository(tmp_path, "shared.db")
    first.save(_populated_state())

    second = _build_repository(tmp_path, "shared.db")

    assert second.load() == _populated_state()


@pytest.mark.parametrize(
    "payload",
    [
        json.dumps({"rooms": "not an array"}),
        "{not json",
        json.dumps([1, 2, 3]),
        json.dumps({"rooms": [{"number": "101", "capacity": 2}]}),
        json.dumps({"rooms": [{"number": "101", "capacity": 2, "occupied": 3}]}),
        json.dumps({"rooms": [], "requests": [{"id": "x", "status": "archived"}]}),
    ],
)
def test_malformed_payload_resets_to_default(tmp_path, payload):
    repository = _build_repository(tmp_path)
    repository.write_payload(payload)

    state = repository.load()

    assert state == default_state()
    assert len(repository.diagnostics) == 1
    assert repository.load() == default_state()
    assert len(repository.diagnostics) == 1


def test_unreadable_storage_file_resets_to_default(tmp_path):
    repository = _build_repository(tmp_path, "garbage.db")
    repository.save(_populated_state())
    (tmp_path / "garbage.db").write_bytes(b"garbage" * 1000)

    state = repository.load()

    assert state == default_state()
    assert len(repository.diagnostics) == 1
    assert repository.read_payload() is not None
    assert repository.load() == default_state()
    assert len(repository.diagnostics) == 1
    assert len(list(tmp_path.glob("garbage.db.corrupt-*"))) == 1


def test_initialize_recovers_unreadable_storage_file(tmp_path):
    db_path = tmp_path / "garbage.db"
    db_path.write_bytes(b"garbage" * 1000)
    repository = StateRepository(replace(get_settings(), database_path=db_path))

    repository.initialize_database()

    assert repository.load() == default_state()
    assert len(repository.diagnostics) == 1


def test_clear_on_unreadable_storage_file_reports_corruption(tmp_path):
    repository = _build_repository(tmp_path, "garbage.db")
    (tmp_path / "garbage.db").write_bytes(b"garbage" * 1000)

    with pytest.raises(PersistenceCorruptError):
        repository.clear()


def test_payload_without_requests_is_accepted(tmp_path):
    repository = _build_repository(tmp_path)
    repository.write_payload(
        json.dumps({"rooms": [{"number": "201", "capacity": 4, "occupied": 1}]})
    )

    state = repository.load()

    assert state == AllocationState(rooms=(Room("201", 4, 1),), requests=())
    assert repository.diagnostics == []


def test_save_refuses_invalid_state(tmp_path):
    repository = _build_repository(tmp_path)
    invalid = AllocationState(rooms=(Room("101", 1, 2),))

    with pytest.raises(PersistenceWriteError):
        repository.save(invalid)
    assert repository.read_payload() is None


def test_clear_removes_stored_state(tmp_path):
    repository = _build_repository(tmp_path)
    repository.save(_populated_state())

    repository.clear()

    assert repository.read_payload() is None
    assert repository.load() == default_state()
