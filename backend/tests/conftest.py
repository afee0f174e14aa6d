import pytest
from fastapi.testclient import TestClient

from allocation.api.deps import session_store
from allocation.core.config import Settings
from allocation.main import app
from allocation.schemas.roster import Roster
from allocation.services.session import AllocationSession


ROSTER_PAYLOAD = {
    "teachers": [
        {
            "mis_id": "T1",
            "name": "Dr. Asha Rao",
            "email": "asha.rao@example.com",
            "designation": "Associate Professor",
            "subject_preferences": ["CS301", "cs302"],
            "max_hours": 16,
        },
        {
            "mis_id": "T2",
            "name": "Prof. Vikram Shah",
            "email": "vikram.shah@example.com",
            "subject_preferences": "CS401, CS301",
            "max_hours": 10,
        },
        {
            "mis_id": "T3",
            "name": "Ms. Neha Kulkarni",
            "email": "neha.k@example.com",
            "designation": "Assistant Professor",
            "max_hours": 8,
        },
    ],
    "subjects": [
        {"code": "CS301", "name": "Data Structures", "total_hours": 3},
        {"code": "CS302", "name": "Operating Systems", "total_hours": 6},
        {"code": "CS401", "name": "Computer Networks Lab", "requires_lab": "yes", "total_hours": 2},
        {"code": "CS501", "name": "Compiler Design", "total_hours": 4},
    ],
    "rooms": [
        {"room_id": "R1", "capacity": 50},
        {"room_id": "R2", "capacity": 35},
        {"room_id": "R3", "capacity": 40, "room_type": "Classroom"},
        {"room_id": "R4", "capacity": 70, "room_type": "Classroom"},
        {"room_id": "L1", "capacity": 35, "room_type": "Lab", "equipment": "Computers, Projector"},
        {"room_id": "L2", "capacity": 32, "room_type": "Lab"},
    ],
    "divisions": [
        {"name": "Division A", "semester": 3, "strength": 60},
        {"name": "Division B", "semester": 3, "strength": 55},
    ],
}


@pytest.fixture
def roster_payload():
    return {key: [dict(item) for item in value] for key, value in ROSTER_PAYLOAD.items()}


@pytest.fixture
def roster(roster_payload):
    return Roster.model_validate(roster_payload)


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def session(roster, settings):
    return AllocationSession(roster, settings)


@pytest.fixture
def client(roster_payload):
    session_store.clear()  # every test starts without a loaded roster
    with TestClient(app) as test_client:
        response = test_client.put("/api/roster", json=roster_payload)
        assert response.status_code == 200
        yield test_client
    session_store.clear()


@pytest.fixture
def empty_client():
    session_store.clear()
    with TestClient(app) as test_client:
        yield test_client
    session_store.clear()
