import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from database import DocumentStore
from main import create_app


@pytest.fixture()
def store():
    """A document store backed by an in-memory MongoDB."""
    return DocumentStore(AsyncMongoMockClient(), "test_chat_api")


@pytest.fixture()
def app(store):
    """Create a new FastAPI app instance around the test store."""
    return create_app(store=store)


@pytest.fixture()
def client(app):
    """A test client for the FastAPI app, with startup/shutdown run."""
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_user(client):
    def _make_user(email="a@x.com", fname="A", lname="B", **extra):
        res = client.post("/user", json={"email": email, "fname": fname, "lname": lname, **extra})
        assert res.status_code == 200
        return res.json()
    return _make_user


@pytest.fixture()
def make_group(client):
    def _make_group(creator_id, group_name="G"):
        res = client.post("/group", json={"group_name": group_name, "creator_id": creator_id})
        assert res.status_code == 200
        return res.json()
    return _make_group
