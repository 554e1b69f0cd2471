import pytest
from fastapi.testclient import TestClient

from timetracker.auth import build_pwd_context, get_password_hash
from timetracker.config import Settings
from timetracker.main import create_app
from timetracker.services.cache_manager import CacheManager
from timetracker.services.data_service import DataService
from timetracker.services.metrics import RecordingMetrics
from timetracker.store.keyvalue import MemoryKeyValueStore
from timetracker.store.memory import InMemoryStoreClient

# Minimum bcrypt cost keeps hashing fast in tests
PWD_CONTEXT = build_pwd_context(4)

ADMIN_PASSWORD = "admin123"
STACY_PASSWORD = "stacy123"


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def sample_tables():
    return {
        "users": [
            {
                "id": "u-admin",
                "username": "admin@example.com",
                "name": "Admin",
                "role": "admin",
                "password_hash": get_password_hash(ADMIN_PASSWORD, PWD_CONTEXT),
            },
            {
                "id": "u-stacy",
                "username": "stacy@example.com",
                "name": "Stacy",
                "role": "user",
                "password_hash": get_password_hash(STACY_PASSWORD, PWD_CONTEXT),
            },
        ],
        "time_entries": [
            {
                "id": "e1", "user_id": "u-stacy", "duration": 3600, "csi_division": "Demolition",
                "job_address": "4 Hayden Ln", "date": "2024-03-05", "created_at": "2024-03-05T10:00:00+00:00",
            },
            {
                "id": "e2", "user_id": "u-stacy", "duration": 1800, "csi_division": "Framing",
                "job_address": "4 Hayden Ln", "date": "2024-03-20", "created_at": "2024-03-20T10:00:00+00:00",
            },
            {
                "id": "e3", "user_id": "u-admin", "duration": 7200, "csi_division": "Demolition",
                "job_address": "804 N Broad St", "date": "2024-03-20", "created_at": "2024-03-21T09:00:00+00:00",
            },
        ],
        "job_addresses": [
            {"id": "a1", "user_id": "u-stacy", "address": "4 Hayden Ln"},
            {"id": "a2", "user_id": "u-admin", "address": "4 Hayden Ln"},
            {"id": "a3", "user_id": "u-admin", "address": "804 N Broad St"},
        ],
        "csi_tasks": [
            {"id": "t1", "name": "Framing"},
            {"id": "t2", "name": "Demolition"},
            {"id": "t3", "name": "Painting"},
        ],
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryStoreClient:
    return InMemoryStoreClient(sample_tables())


@pytest.fixture
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def metrics() -> RecordingMetrics:
    return RecordingMetrics()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(seed_on_initialize=False, bcrypt_rounds=4, session_key="test_session")


@pytest.fixture
def service(store, kv_store, metrics, clock, test_settings) -> DataService:
    return DataService(
        store,
        kv_store,
        settings=test_settings,
        cache=CacheManager(clock=clock),
        metrics=metrics,
        pwd_context=PWD_CONTEXT,
    )


@pytest.fixture
def client(service) -> TestClient:
    app = create_app(data_service=service)
    with TestClient(app) as test_client:
        yield test_client
