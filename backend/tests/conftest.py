"""
Pytest fixtures for backend tests.
"""

import os
import pytest
from typing import Callable, Generator

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

# Set test environment before importing app
os.environ["TASKFLOW_DATABASE_DSN"] = "sqlite://"
os.environ["TASKFLOW_SESSION_SECRET"] = "test-secret"
os.environ["TASKFLOW_BCRYPT_ROUNDS"] = "4"
os.environ["TASKFLOW_ENABLE_SWEEP"] = "false"

from taskflow.main import app
from taskflow.core.database import Base, SessionLocal, engine
import taskflow.models  # noqa: F401

PASSWORD = "secret123"


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# --- Fixtures ---

@pytest.fixture(autouse=True)
def database() -> Generator[None, None, None]:
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(database) -> Generator[Session, None, None]:
    """A database session for direct service-level tests."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Synchronous test client for FastAPI."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register(client: TestClient) -> Callable[..., dict]:
    """
    Register a user and return the auth payload plus ready-made headers.

    Usage: register("Alice", "alice@acme.com", organization_name="Acme")
    """
    def _register(name: str, email: str, password: str = PASSWORD, **join) -> dict:
        response = client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password, **join}
        )
        assert response.status_code == 201, response.text
        data = response.json()
        data["headers"] = auth_headers(data["token"])
        return data

    return _register


@pytest.fixture
def acme_admin(register) -> dict:
    """Admin of the 'Acme' organization."""
    return register("Alice", "alice@acme.com", organization_name="Acme")


@pytest.fixture
def acme_code(client: TestClient, acme_admin: dict) -> str:
    response = client.get("/api/organizations/current", headers=acme_admin["headers"])
    assert response.status_code == 200
    return response.json()["code"]


@pytest.fixture
def acme_member(register, acme_code: str) -> dict:
    """Member who joined 'Acme' by join-code."""
    return register("Mallory", "mallory@acme.com", organization_code=acme_code)


@pytest.fixture
def globex_admin(register) -> dict:
    """Admin of a second, unrelated organization."""
    return register("Gina", "gina@globex.com", organization_name="Globex")


@pytest.fixture
def create_task(client: TestClient) -> Callable[..., dict]:
    """Create a task through the API and return its JSON."""
    def _create(headers: dict, **fields) -> dict:
        payload = {"title": "Write docs", "due_date": "2030-01-01T12:00:00Z", **fields}
        response = client.post("/api/tasks", json=payload, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
