"""Shared test fixtures and configuration.

Every test gets a fresh app backed by an in-memory SQLite database and a
cheap password hash so signups stay fast.
"""

import pytest

from donext import create_app
from donext.models import db

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "PASSWORD_HASH_METHOD": "pbkdf2:sha256:1000",
    "SECRET_KEY": "test-secret",
    "APP_URL": "http://testserver",
}

PASSWORD = "secret123"


@pytest.fixture
def app():
    app = create_app(dict(TEST_CONFIG))
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    """SQLAlchemy session inside an app context."""
    with app.app_context():
        yield db.session


def signup(client, name="Alice", email="alice@example.com", password=PASSWORD):
    response = client.post("/api/auth/signup", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.get_json()
    return response.get_json()["user"]


@pytest.fixture
def user_client(app):
    """A client signed in as Alice."""
    client = app.test_client()
    client.user = signup(client)
    return client


@pytest.fixture
def other_client(app):
    """A second client signed in as Bob."""
    client = app.test_client()
    client.user = signup(client, name="Bob", email="bob@example.com")
    return client


@pytest.fixture
def third_client(app):
    client = app.test_client()
    client.user = signup(client, name="Carol", email="carol@example.com")
    return client


def create_task(client, **fields):
    body = {"title": "Write report", **fields}
    response = client.post("/api/tasks", json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["task"]


def create_habit(client, **fields):
    body = {"name": "Read", "category": "Study", **fields}
    response = client.post("/api/habits", json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["habit"]
