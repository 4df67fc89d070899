import os
import tempfile

# Settings are read at import time, so configure the environment first
_db_dir = tempfile.mkdtemp(prefix="chatbot-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["SECRET_KEY"] = "test-access-secret"
os.environ["REFRESH_SECRET_KEY"] = "test-refresh-secret"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["COOKIE_SECURE"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient

from app.db.session import Base, SessionLocal, engine, init_db
from app.main import app
from app.api.auth import services as auth_services


@pytest.fixture(autouse=True)
def _schema():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(db):
    def _make_user(username="alice", email=None, password="s3cret-pass", full_name="Alice Example"):
        return auth_services.register_user(
            db,
            full_name=full_name,
            email=email or f"{username}@example.com",
            username=username,
            password=password,
        )
    return _make_user


@pytest.fixture
def auth_headers(client):
    """Register + log in through the API, returning bearer headers for that user."""
    def _auth_headers(username="alice", password="s3cret-pass"):
        client.post("/auth/register", json={
            "fullName": username.title(),
            "email": f"{username}@example.com",
            "username": username,
            "password": password,
        })
        response = client.post("/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        # Drop the cookies so each request authenticates only with the header it sends
        client.cookies.clear()
        return {"Authorization": f"Bearer {response.json()['accessToken']}"}
    return _auth_headers
