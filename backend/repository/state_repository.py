"""Repository layer persisting the allocation state as a single JSON blob."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from backend.domain.constraints import validate_state
from backend.domain.models import AllocationRequest, AllocationState, RequestStatus, Room
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


DEFAULT_ROOMS: tuple[tuple[str, int, int], ...] = (
    ("101", 2, 0),
    ("102", 2, 0),
    ("103", 3, 0),
    ("104", 3, 1),
    ("105", 2, 2),
    ("106", 3, 0),
    ("107", 2, 0),
)


def default_state() -> AllocationState:
    """Seed state used when nothing valid is stored."""
    return AllocationState(
        rooms=tuple(
            Room(number=number, capacity=capacity, occupied=occupied)
            for number, capacity, occupied in DEFAULT_ROOMS
        ),
        requests=(),
    )


class PersistenceError(Exception):
    """Base exception for state storage failures."""


class PersistenceCorruptError(PersistenceError):
    """Raised when the stored blob is unparseable or structurally invalid."""


class PersistenceWriteError(PersistenceError):
    """Raised when the state cannot be written to storage."""


def _is_corrupt_file(exc: sqlite3.Error) -> bool:
    # "file is not a database" and "disk image is malformed" surface as plain
    # DatabaseError; its subclasses cover locks, permissions, and bad SQL.
    return type(exc) is sqlite3.DatabaseError


class StoredRoom(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: str = Field(min_length=1)
    capacity: int = Field(ge=0)
    occupied: int = Field(ge=0)


class StoredRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    applicant_name: str
    enrollment_id: str
    contact: str
    room_number: str
    occupant_count: int = Field(default=1, ge=1)
    roommate_count: int = Field(ge=1)
    status: RequestStatus
    submitted_at: datetime


class StoredState(BaseModel):
    """Wire shape of the persisted blob."""

    model_config = ConfigDict(extra="ignore")

    rooms: list[StoredRoom]
    requests: list[StoredRequest] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, state: AllocationState) -> "StoredState":
        return cls(
            rooms=[
                StoredRoom(number=room.number, capacity=room.capacity, occupied=room.occupied)
                for room in state.rooms
            ],
            requests=[
                StoredRequest(
                    id=request.request_id,
                    applicant_name=request.applicant_name,
                    enrollment_id=request.enrollment_id,
                    contact=request.contact,
                    room_number=request.room_number,
                    occupant_count=request.occupant_count,
                    roommate_count=request.roommate_count,
                    status=request.status,
                    submitted_at=request.submitted_at,
                )
                for request in state.requests
            ],
        )

    def to_domain(self) -> AllocationState:
        return AllocationState(
            rooms=tuple(
                Room(number=room.number, capacity=room.capacity, occupied=room.occupied)
                for room in self.rooms
            ),
            requests=tuple(
                AllocationRequest(
                    request_id=request.id,
                    applicant_name=request.applicant_name,
                    enrollment_id=request.enrollment_id,
                    contact=request.contact,
                    room_number=request.room_number,
                    occupant_count=request.occupant_count,
                    roommate_count=request.roommate_count,
                    status=request.status,
                    submitted_at=request.submitted_at,
                )
                for request in self.requests
            ),
        )


def serialize_state(state: AllocationState) -> str:
    return StoredState.from_domain(state).model_dump_json()


def deserialize_state(payload: str) -> AllocationState:
    """Parse a stored blob, raising PersistenceCorruptError on any defect."""
    try:
        state = StoredState.model_validate_json(payload).to_domain()
    except ValidationError as exc:
        raise PersistenceCorruptError(
            f"stored state failed schema validation: {exc.error_count()} error(s)"
        ) from exc
    try:
        validate_state(state)
    except ValueError as exc:
        raise PersistenceCorruptError(f"stored state violates invariants: {exc}") from exc
    return state


class StateRepository:
    """Key/value storage for the allocation state on top of SQLite."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._key = self._settings.state_storage_key
        self._diagnostics: list[str] = []

    @property
    def diagnostics(self) -> list[str]:
        """Messages recorded whenever stored state had to be discarded."""
        return list(self._diagnostics)

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        return connection

    def _record_diagnostic(self, message: str) -> None:
        self._diagnostics.append(message)
        logger.warning("%s; resetting to default state", message)

    def _quarantine_database(self) -> Path:
        """Move an unreadable storage file aside so a fresh one can be created."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        target = self._db_path.with_name(f"{self._db_path.name}.corrupt-{stamp}")
        try:
            self._db_path.replace(target)
        except OSError as exc:
            raise RuntimeError(f"Could not move corrupt state storage aside: {exc}") from exc
        logger.warning("Corrupt state storage moved to %s", target)
        return target

    def _create_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS AppState (
                    key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                );
                """
            )
            conn.commit()

    def initialize_database(self) -> None:
        """Create the state table, replacing a storage file SQLite cannot read."""
        try:
            self._create_schema()
        except sqlite3.Error as exc:
            if not _is_corrupt_file(exc):
                raise RuntimeError(f"State storage initialization failed: {exc}") from exc
            self._record_diagnostic(f"State storage at {self._db_path} unreadable: {exc}")
            self._quarantine_database()
            try:
                self._create_schema()
            except sqlite3.Error as retry_exc:
                raise RuntimeError(
                    f"State storage initialization failed: {retry_exc}"
                ) from retry_exc
        logger.info("State storage initialized at %s", self._db_path)

    def read_payload(self) -> Optional[str]:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT payload FROM AppState WHERE key = ?;", (self._key,))
                row = cursor.fetchone()
        except sqlite3.Error as exc:
            if _is_corrupt_file(exc):
                raise PersistenceCorruptError(f"storage file is unreadable: {exc}") from exc
            raise
        if row is None:
            return None
        return str(row["payload"])

    def write_payload(self, payload: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO AppState (key, payload, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        payload = excluded.payload,
                        updated_at = excluded.updated_at;
                    """,
                    (self._key, payload),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceWriteError(f"Failed to write state: {exc}") from exc

    def clear(self) -> None:
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM AppState WHERE key = ?;", (self._key,))
                conn.commit()
        except sqlite3.Error as exc:
            if _is_corrupt_file(exc):
                raise PersistenceCorruptError(f"storage file is unreadable: {exc}") from exc
            raise

    def save(self, state: AllocationState) -> None:
        try:
            validate_state(state)
        except ValueError as exc:
            raise PersistenceWriteError(f"Refusing to save invalid state: {exc}") from exc
        self.write_payload(serialize_state(state))

    def load(self) -> AllocationState:
        """Return the stored state, falling back to the default seed.

        Missing or corrupt blobs are replaced by the seed in storage as well.
        A storage file SQLite cannot read is moved aside and recreated.
        """
        try:
            payload = self.read_payload()
        except PersistenceCorruptError as exc:
            self._record_diagnostic(f"State storage at {self._db_path} discarded: {exc}")
            try:
                self._quarantine_database()
                self.initialize_database()
            except RuntimeError:
                logger.exception("Failed to recreate state storage; using default state in memory")
                return default_state()
            return self._reset_to_default()

        if payload is None:
            logger.info("No stored state under '%s'; seeding default rooms", self._key)
            return self._reset_to_default()

        try:
            return deserialize_state(payload)
        except PersistenceCorruptError as exc:
            self._record_diagnostic(f"Stored state under '{self._key}' discarded: {exc}")
            return self._reset_to_default()

    def _reset_to_default(self) -> AllocationState:
        state = default_state()
        try:
            self.save(state)
        except PersistenceWriteError:
            logger.exception("Failed to persist default state")
        return state
